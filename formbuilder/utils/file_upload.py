"""Upload size helpers: early Content-Length rejection and stream sizing."""

from __future__ import annotations

from os import SEEK_END
from typing import BinaryIO, Mapping

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool


# Allowance for multipart boundaries and part headers around the file bytes
MULTIPART_OVERHEAD_BYTES = 64 * 1024


def declared_content_length(headers: Mapping[str, str]) -> int | None:
    """Content-Length as an int, or None when absent or malformed."""
    raw = headers.get("content-length")
    if not raw:
        return None
    try:
        return int(raw)
    except ValueError:
        return None


def request_exceeds_upload_limit(
    headers: Mapping[str, str],
    *,
    max_size_bytes: int,
    overhead_bytes: int = MULTIPART_OVERHEAD_BYTES,
) -> bool:
    """True when the declared body cannot fit one allowed file plus multipart framing."""
    length = declared_content_length(headers)
    return length is not None and length > max_size_bytes + overhead_bytes


def stream_size(stream: BinaryIO) -> int:
    """Size of a seekable stream, leaving its position unchanged."""
    position = stream.tell()
    try:
        return stream.seek(0, SEEK_END)
    finally:
        stream.seek(position)


async def get_upload_file_size(file: UploadFile) -> int:
    return await run_in_threadpool(stream_size, file.file)
