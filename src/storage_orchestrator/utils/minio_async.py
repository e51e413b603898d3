import asyncio
from functools import partial
from typing import Any, AsyncIterator, Callable, Iterable, TypeVar

T = TypeVar("T")

_EXHAUSTED = object()


async def run_io_bound(func: Callable[..., Any], *args, **kwargs):
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(func, *args, **kwargs))


async def iterate_io_bound(make_iterable: Callable[[], Iterable[T]]) -> AsyncIterator[T]:
    """
    Лениво перебирает блокирующий генератор SDK, вытягивая по одному элементу в executor.
    Весь результат в памяти не собирается; остановка перебора закрывает генератор.
    """
    iterator = iter(await run_io_bound(make_iterable))
    try:
        while True:
            item = await run_io_bound(next, iterator, _EXHAUSTED)
            if item is _EXHAUSTED:
                return
            yield item
    finally:
        close = getattr(iterator, "close", None)
        if close is not None:
            await run_io_bound(close)
