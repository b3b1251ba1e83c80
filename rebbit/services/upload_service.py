"""
File ingestion for post images.

Files land in ``UPLOAD_DIR`` as ``<epoch-ms>-<original name>`` and are
served back read-only under ``UPLOAD_URL_PREFIX``.  There is no size,
content-type or virus check beyond what the multipart parser enforces.
"""
import logging
import os
import shutil
import time

from fastapi import UploadFile
from starlette.concurrency import run_in_threadpool

logger = logging.getLogger(__name__)


def stored_name(original: str | None, now_ms: int | None = None) -> str:
    """Build the on-disk name; directory parts of the client name are discarded."""
    base = os.path.basename((original or "").replace("\\", "/")) or "upload"
    if now_ms is None:
        now_ms = int(time.time() * 1000)
    return f"{now_ms}-{base}"


def _write(upload: UploadFile, path: str) -> None:
    upload.file.seek(0)
    with open(path, "wb") as out:
        shutil.copyfileobj(upload.file, out)


async def save_uploads(upload_dir: str, files: list[UploadFile]) -> list[str]:
    """Persist every file and return the generated names in upload order."""
    os.makedirs(upload_dir, exist_ok=True)
    names: list[str] = []
    for upload in files:
        name = stored_name(upload.filename)
        await run_in_threadpool(_write, upload, os.path.join(upload_dir, name))
        names.append(name)
    logger.info("Stored %d upload(s) in %s", len(names), upload_dir)
    return names
