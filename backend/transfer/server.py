"""
HTTP file server over the shared directory.

Peers pull files with GET /file/{name} and push them with POST /upload.
Every request is independent; the only shared state is the directory path,
which is fixed once init_file_server() has run.
"""

import asyncio
import logging
import os
from urllib.parse import quote

from fastapi import APIRouter, HTTPException, Request, Response
from fastapi.responses import PlainTextResponse
from starlette.datastructures import UploadFile

from config import DEMO_FILE_CONTENT, DEMO_FILE_NAME, SHARED_DIR

logger = logging.getLogger(__name__)

router = APIRouter()

HEALTH_MESSAGE = "AirShare Server OK"

# Set by init_file_server() at startup
_shared_dir: str = SHARED_DIR


def init_file_server(shared_dir: str = SHARED_DIR) -> str:
    """Create the shared directory if needed and seed the demo file."""
    global _shared_dir
    os.makedirs(shared_dir, exist_ok=True)
    _shared_dir = shared_dir

    demo_path = os.path.join(shared_dir, DEMO_FILE_NAME)
    if not os.path.exists(demo_path):
        try:
            with open(demo_path, "w", encoding="utf-8") as f:
                f.write(DEMO_FILE_CONTENT)
            logger.info(f"Created {DEMO_FILE_NAME} in shared folder")
        except OSError as e:
            logger.warning(f"Failed to create demo file: {e}")

    logger.info(f"Shared directory: {os.path.abspath(shared_dir)}")
    return shared_dir


def list_shared_files() -> list[str]:
    with os.scandir(_shared_dir) as entries:
        return sorted(e.name for e in entries if e.is_file())


def content_disposition(name: str) -> str:
    """Attachment header that survives non-latin-1 and quote characters (RFC 6266)."""
    quoted = quote(name)
    if quoted == name:
        return f'attachment; filename="{name}"'
    return f"attachment; filename*=utf-8''{quoted}"


def _read_bytes(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()


def _write_bytes(path: str, data: bytes) -> None:
    with open(path, "wb") as f:
        f.write(data)


@router.get("/file/{name}")
async def serve_file(name: str):
    """Stream a file from the shared directory verbatim."""
    file_path = os.path.join(_shared_dir, name)
    try:
        contents = await asyncio.to_thread(_read_bytes, file_path)
    except FileNotFoundError:
        raise HTTPException(status_code=404, detail=f"File not found: {name}")
    except OSError as e:
        logger.error(f"Failed to read file {name}: {e}")
        raise HTTPException(status_code=500, detail=f"Failed to read file: {name}")

    logger.info(f"Serving file: {name}")
    return Response(
        content=contents,
        media_type="application/octet-stream",
        headers={"Content-Disposition": content_disposition(name)},
    )


@router.get("/files")
async def list_files():
    """Return the names of the files directly under the shared directory."""
    try:
        files = await asyncio.to_thread(list_shared_files)
    except OSError as e:
        logger.error(f"Failed to list shared directory: {e}")
        raise HTTPException(status_code=500, detail="Failed to list shared directory")
    return {"files": files}


@router.post("/upload")
async def upload(request: Request):
    """
    Save every multipart part that carries a filename into the shared directory.

    Existing files with the same name are overwritten. The client-supplied
    name is joined to the shared directory as-is.
    """
    form = await request.form()
    saved: list[str] = []
    try:
        for _, value in form.multi_items():
            if not isinstance(value, UploadFile) or not value.filename:
                continue
            data = await value.read()
            dest = os.path.join(_shared_dir, value.filename)
            try:
                await asyncio.to_thread(_write_bytes, dest, data)
            except OSError as e:
                logger.error(f"Failed to save upload {value.filename}: {e}")
                raise HTTPException(
                    status_code=500,
                    detail=f"Failed to save {value.filename}: {e.strerror or e}",
                )
            logger.info(f"Saved upload: {value.filename} ({len(data)} bytes)")
            saved.append(value.filename)
    finally:
        await form.close()

    return {"saved": saved}


@router.get("/health", response_class=PlainTextResponse)
async def health():
    return HEALTH_MESSAGE
