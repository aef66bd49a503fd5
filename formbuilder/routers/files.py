"""Upload and authenticated file retrieval endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, File, Request, UploadFile
from fastapi.responses import FileResponse, StreamingResponse
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from formbuilder.core.config import settings
from formbuilder.core.deps import get_caller_identity, get_db, get_scanner
from formbuilder.core.errors import error_response
from formbuilder.core.rate_limit import limiter
from formbuilder.db.enums import ErrorKind
from formbuilder.schemas.forms import UploadResult
from formbuilder.services import file_store, response_service, upload_service
from formbuilder.services.errors import NotFoundError, UnauthenticatedError
from formbuilder.services.file_scanner import FileScanner
from formbuilder.services.response_payload import FileValue
from formbuilder.utils.file_upload import get_upload_file_size, request_exceeds_upload_limit

router = APIRouter(tags=["files"])

SERVE_HEADERS = {
    "Content-Disposition": "inline",
    "Cache-Control": "private, max-age=3600",
}


@router.post("/upload", response_model=UploadResult)
@limiter.limit(f"{settings.RATE_LIMIT_UPLOAD}/minute")
async def upload_file(
    request: Request,
    file: Annotated[UploadFile, File()],
    caller_id: str | None = Depends(get_caller_identity),
    scanner: FileScanner = Depends(get_scanner),
):
    """Validate, scan and store a single file."""
    if not caller_id:
        raise UnauthenticatedError("Authentication required")

    if request_exceeds_upload_limit(request.headers, max_size_bytes=settings.MAX_FILE_SIZE):
        max_mb = settings.MAX_FILE_SIZE / (1024 * 1024)
        return error_response(
            f"File size exceeds the maximum allowed size of {max_mb:g}MB",
            ErrorKind.VALIDATION_FAILED,
            status_code=413,
        )

    upload = FileValue(
        filename=file.filename or "untitled",
        content_type=file.content_type or "application/octet-stream",
        stream=file.file,
        size=await get_upload_file_size(file),
    )
    stored = await run_in_threadpool(
        upload_service.process_upload,
        upload,
        prefix=file_store.STANDALONE_UPLOAD_PREFIX,
        scanner=scanner,
    )
    return UploadResult(
        file_name=stored.file_name,
        file_path=stored.file_path,
        file_size=stored.file_size,
        mime_type=stored.mime_type,
    )


@router.get("/files/{file_path:path}")
def serve_file(
    file_path: str,
    db: Session = Depends(get_db),
    caller_id: str | None = Depends(get_caller_identity),
):
    """Serve a stored file by its storage-relative path."""
    key = response_service.authorize_file_access(db, file_path, caller_id)
    media_type = file_store.content_type_for(key)

    if file_store.uses_object_storage():
        body = file_store.open_stored_object(key)
        if body is None:
            raise NotFoundError("File not found")
        return StreamingResponse(body.iter_chunks(), media_type=media_type, headers=SERVE_HEADERS)

    path = file_store.resolve_local_path(key)
    if path is None or not path.is_file():
        raise NotFoundError("File not found")
    return FileResponse(path, media_type=media_type, headers=SERVE_HEADERS)

