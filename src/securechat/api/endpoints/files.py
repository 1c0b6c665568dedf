"""Attachment upload and download endpoints."""

from __future__ import annotations

from fastapi import APIRouter, File, UploadFile
from fastapi.responses import FileResponse

from securechat.api.dependencies import CurrentUserDep, FileStorageDep
from securechat.core.settings import settings
from securechat.schemas.file import FileUploadResponse
from securechat.services.files import file_url_for, too_large_error

router = APIRouter(prefix="/files", tags=["files"])

# Serves the "/files/<name>" handles returned by the upload endpoint; mounted at the root.
download_router = APIRouter(tags=["files"])

UPLOAD_CHUNK_SIZE = 64 * 1024


async def _read_capped(file: UploadFile) -> bytes:
    """Read the upload in chunks, stopping once it passes ``max_upload_bytes``."""
    chunks: list[bytes] = []
    size = 0
    while True:
        chunk = await file.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        size += len(chunk)
        if size > settings.max_upload_bytes:
            raise too_large_error()
        chunks.append(chunk)
    return b"".join(chunks)


@router.post("/upload", response_model=FileUploadResponse)
async def upload_file(
    current_user: CurrentUserDep,
    storage: FileStorageDep,
    file: UploadFile = File(...),
) -> FileUploadResponse:
    """Store a client-encrypted attachment and return its handle.

    The returned ``file_url`` and ``original_filename`` are what a FILE
    message must carry.
    """
    content = await _read_capped(file)
    record = storage.store(current_user, file.filename, file.content_type, content)
    return FileUploadResponse(
        file_name=record.storage_name,
        file_url=file_url_for(record.storage_name),
        original_filename=record.original_filename,
        content_type=record.content_type,
        size=record.size,
    )


@download_router.get("/files/{storage_name}")
async def download_file(
    storage_name: str,
    current_user: CurrentUserDep,
    storage: FileStorageDep,
) -> FileResponse:
    """Return the stored ciphertext blob."""
    record, path = storage.resolve(storage_name)
    return FileResponse(path, media_type=record.content_type, filename=record.original_filename)
