"""
FastAPI layer exposing the batch resizer.

Endpoints:
 - GET /api/health
 - GET /api/formats
 - POST /api/resize
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from starlette.concurrency import run_in_threadpool
from starlette.types import Receive, Scope, Send

from . import config
from .errors import ResizeServiceError
from .pipeline import IncomingFile, process_batch
from .policy import FORMAT_OPTIONS, resolve_resize_spec
from .workspace import RequestWorkspace

GENERIC_SERVER_ERROR = "Error processing images"

settings = config.get_settings()
logging.basicConfig(level=getattr(logging, settings.log_level.upper(), logging.INFO))
logger = logging.getLogger(__name__)

app = FastAPI(title="Batch Image Resizer", version="0.1.0")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origin_list,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition", "X-Processed-Count", "X-Failed-Count"],
)


class WorkspaceFileResponse(FileResponse):
    """
    Sends a file from a request workspace and releases the workspace after.

    Release runs whether the transfer completed, failed or the client went
    away mid-download.
    """

    def __init__(self, *args, workspace: RequestWorkspace, grace_seconds: float = 0.0, **kwargs):
        super().__init__(*args, **kwargs)
        self.workspace = workspace
        self.grace_seconds = grace_seconds

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        try:
            await super().__call__(scope, receive, send)
        except Exception as exc:  # noqa: BLE001
            logger.warning("Archive delivery for %s failed: %s", self.workspace.session_dir.name, exc)
            raise
        finally:
            try:
                if self.grace_seconds > 0:
                    await asyncio.sleep(self.grace_seconds)
            finally:
                await run_in_threadpool(self.workspace.release_all)


@app.exception_handler(ResizeServiceError)
async def handle_resize_error(request: Request, exc: ResizeServiceError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Error processing images (%s): %s", exc.kind, exc.message)
        message = GENERIC_SERVER_ERROR
        if exc.expose_message:
            message = f"{GENERIC_SERVER_ERROR}: {exc.message}"
        return JSONResponse(status_code=exc.status_code, content={"error": message})
    logger.info("Rejected resize request (%s): %s", exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


def _describe_validation_error(error: dict) -> str:
    field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
    return f"{field}: {error.get('msg', 'invalid value')}"


@app.exception_handler(RequestValidationError)
async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
    problems = "; ".join(_describe_validation_error(error) for error in exc.errors())
    logger.info("Rejected malformed resize request: %s", problems)
    return JSONResponse(status_code=400, content={"error": f"Invalid request: {problems}"})


@app.exception_handler(Exception)
async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unexpected failure: %s", exc)
    return JSONResponse(status_code=500, content={"error": GENERIC_SERVER_ERROR})


@app.get("/api/health")
def health():
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


@app.get("/api/formats")
def formats():
    return {"formats": FORMAT_OPTIONS}


def _incoming(upload: UploadFile) -> IncomingFile:
    return IncomingFile(
        filename=upload.filename or "",
        content_type=upload.content_type,
        stream=upload.file,
        size=upload.size,
    )


@app.post("/api/resize")
def resize_images(
    images: List[UploadFile] = File(default=[]),
    width: Optional[str] = Form(None),
    height: Optional[str] = Form(None),
    output_format: Optional[str] = Form(None, alias="format"),
    maintain_aspect_ratio: Optional[str] = Form(None, alias="maintainAspectRatio"),
    settings: config.Settings = Depends(config.get_settings),
):
    # Browsers post an empty, nameless part when no file was picked.
    files = [_incoming(upload) for upload in images if upload.filename]
    spec = resolve_resize_spec(
        width,
        height,
        output_format,
        maintain_aspect_ratio,
        max_dimension=settings.max_dimension,
    )

    outcome = process_batch(files, spec, settings)
    try:
        return WorkspaceFileResponse(
            outcome.archive_path,
            workspace=outcome.workspace,
            grace_seconds=settings.cleanup_grace_seconds,
            media_type="application/zip",
            filename=outcome.archive_name,
            headers={
                "X-Processed-Count": str(outcome.processed_count),
                "X-Failed-Count": str(len(outcome.failures)),
            },
        )
    except BaseException:
        outcome.workspace.release_all()
        raise
