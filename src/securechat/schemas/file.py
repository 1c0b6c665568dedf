"""Attachment upload schemas."""

from pydantic import BaseModel


class FileUploadResponse(BaseModel):
    """Handle and metadata for a stored attachment blob."""

    file_name: str
    file_url: str
    original_filename: str
    content_type: str
    size: int
