import asyncio
import typer
import logging
import sys
from typing import Optional
if sys.platform == "win32":
    # asyncpg не работает с ProactorEventLoop по умолчанию в Windows
    asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
from storage_orchestrator import create_storage_client
from storage_orchestrator.db.base import Base
from storage_orchestrator.exceptions import StorageError
from storage_orchestrator.logging import configure
from storage_orchestrator.utils.cli_utils import get_rich_console, listing_table, stats_table


app = typer.Typer(help="CLI for storage-orchestrator management.")
logger = logging.getLogger(__name__)
console = get_rich_console()


@app.callback()
def main(log_level: Optional[str] = typer.Option(None, "--log-level", help="Override LOG_LEVEL")):
    configure(log_level)


@app.command()
def init():
    """
    Creates the catalog tables and ensures the default bucket exists.
    """
    console.rule("[bold cyan]Service Initialization[/bold cyan]")

    async def _init():
        client = create_storage_client()
        try:
            try:
                async with client.engine.begin() as conn:
                    await conn.run_sync(Base.metadata.create_all)
                console.log("[bold green]✔[/bold green] Catalog tables created successfully.")
            except Exception as e:
                console.log(f"[bold red]✖[/bold red] Catalog initialization FAILED: {e}")
                raise typer.Exit(code=1)

            try:
                await client.blobs.check_connection()
                console.log(f"[bold green]✔[/bold green] Bucket '{client.blobs.default_bucket}' is ready.")
            except StorageError as e:
                console.log(f"[bold red]✖[/bold red] Blob storage initialization FAILED: {e}")
                raise typer.Exit(code=1)
        finally:
            await client.aclose()

    with console.status("Initializing services...", spinner="dots"):
        asyncio.run(_init())

    console.print("\n[bold green]All services initialized successfully![/bold green]")


@app.command()
def check():
    """Checks connectivity to the catalog and blob storage."""
    console.rule("[bold cyan]Connection Check[/bold cyan]")

    async def _check() -> bool:
        client = create_storage_client()
        try:
            statuses = await client.check_connections()
        finally:
            await client.aclose()

        pg_status = statuses.get("postgres", "unknown error")
        if pg_status == "ok":
            console.print("[bold green]✔[/bold green] Catalog connection: OK")
        else:
            console.print(f"[bold red]✖[/bold red] Catalog connection: FAILED ({pg_status})")

        minio_status = statuses.get("minio", "unknown error")
        if minio_status == "ok":
            console.print(f"[bold green]✔[/bold green] Blob storage connection: OK (bucket: '{client.blobs.default_bucket}')")
        else:
            console.print(f"[bold red]✖[/bold red] Blob storage connection: FAILED ({minio_status})")
        return pg_status == "ok" and minio_status == "ok"

    if not asyncio.run(_check()):
        raise typer.Exit(code=1)


@app.command("ls")
def list_objects(
    bucket: str = typer.Argument(..., help="Bucket to list"),
    prefix: Optional[str] = typer.Option(None, "--prefix", "-p"),
    max_keys: int = typer.Option(100, "--max-keys", "-n", min=1),
    token: Optional[str] = typer.Option(None, "--token", help="Continuation token from a previous page"),
):
    """Lists one page of objects in a bucket."""
    async def _ls():
        client = create_storage_client()
        try:
            return await client.list_objects(bucket, prefix, max_keys, token)
        finally:
            await client.aclose()

    try:
        result = asyncio.run(_ls())
    except StorageError as e:
        console.print(f"[bold red]✖[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(listing_table(result, bucket))
    if result.is_truncated:
        console.print(f"More objects available. Next token: {result.next_continuation_token}")


@app.command()
def stats(bucket: str = typer.Argument(..., help="Bucket to summarize")):
    """Counts objects and bytes in a bucket (scans the whole bucket)."""
    async def _stats():
        client = create_storage_client()
        try:
            return await client.bucket_stats(bucket)
        finally:
            await client.aclose()

    try:
        with console.status(f"Scanning bucket '{bucket}'...", spinner="dots"):
            result = asyncio.run(_stats())
    except StorageError as e:
        console.print(f"[bold red]✖[/bold red] {e}")
        raise typer.Exit(code=1)

    console.print(stats_table(result))
