"""
Single-field photo upload handling.

handle_upload("photo", directory) returns a FastAPI dependency that pulls one
file out of the multipart body and returns a PendingUpload. Nothing is written
until the handler calls save(), after form validation, login and ownership
checks have passed; the file then lands in `directory` as
"<token>-<original name>". A request without that field (or with an empty
file input) yields None; handlers decide whether a file was required.
"""

import logging
import os
import secrets
import string
from typing import Optional

from fastapi import Request
from pydantic import BaseModel
from starlette.concurrency import run_in_threadpool
from starlette.datastructures import UploadFile

logger = logging.getLogger(__name__)

UPLOAD_URL_PREFIX = "/uploads"
TOKEN_LENGTH = 8
TOKEN_ALPHABET = string.ascii_lowercase + string.digits
CHUNK_SIZE = 1024 * 1024


class UploadedFile(BaseModel):
    filename: str           # "<token>-<original name>"
    original_filename: str
    path: str               # where it was written
    url: str                # canonical public URL, always under /uploads/
    content_type: Optional[str] = None
    size: int = 0


def random_token(length: int = TOKEN_LENGTH) -> str:
    return "".join(secrets.choice(TOKEN_ALPHABET) for _ in range(length))


def stored_filename(original: str) -> str:
    # Browsers on Windows may send a full path.
    base = os.path.basename(original.replace("\\", "/"))
    return f"{random_token()}-{base}"


def upload_url(filename: str) -> str:
    return f"{UPLOAD_URL_PREFIX}/{filename}"


def _write_file(upload: UploadFile, dest: str) -> int:
    written = 0
    upload.file.seek(0)
    with open(dest, "wb") as out:
        while True:
            chunk = upload.file.read(CHUNK_SIZE)
            if not chunk:
                break
            out.write(chunk)
            written += len(chunk)
    return written


async def save_upload(upload: UploadFile, directory: str) -> UploadedFile:
    os.makedirs(directory, exist_ok=True)
    filename = stored_filename(upload.filename)
    dest = os.path.join(directory, filename)
    size = await run_in_threadpool(_write_file, upload, dest)
    logger.info("Stored upload %s (%d bytes)", filename, size)
    return UploadedFile(
        filename=filename,
        original_filename=upload.filename,
        path=dest,
        url=upload_url(filename),
        content_type=upload.content_type,
        size=size,
    )


def remove_upload(url: Optional[str], directory: str) -> bool:
    """Delete a previously stored upload given its public URL."""
    if not url or not url.startswith(UPLOAD_URL_PREFIX + "/"):
        return False
    path = os.path.join(directory, os.path.basename(url))
    try:
        os.remove(path)
    except FileNotFoundError:
        logger.warning("Upload %s already gone", path)
        return False
    return True


class PendingUpload:
    """A received file that is not on disk yet; handlers call save() once the
    rest of the request has been accepted."""

    def __init__(self, upload: UploadFile, directory: str):
        self.upload = upload
        self.directory = directory

    @property
    def filename(self) -> str:
        return self.upload.filename

    async def save(self) -> UploadedFile:
        return await save_upload(self.upload, self.directory)


def handle_upload(field_name: str, directory: Optional[str] = None):
    async def dependency(request: Request) -> Optional[PendingUpload]:
        content_type = request.headers.get("content-type", "")
        if not content_type.startswith("multipart/form-data"):
            return None

        form = await request.form()
        upload = form.get(field_name)
        if not isinstance(upload, UploadFile) or not upload.filename:
            return None
        return PendingUpload(upload, directory or request.app.state.settings.upload_dir)

    return dependency
