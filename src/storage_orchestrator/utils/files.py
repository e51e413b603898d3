import mimetypes

DEFAULT_CONTENT_TYPE = "application/octet-stream"


def guess_content_type(filename: str) -> str:
    return mimetypes.guess_type(filename)[0] or DEFAULT_CONTENT_TYPE
