"""FastAPI fill estimator: container image in, fill and material percentages out.

Accepts either a multipart upload (field ``image``) or a JSON body with
``imageBase64``. Images are processed in memory and never logged.
"""

import base64
import binascii
import json
import logging
import threading
from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, Request, UploadFile
from fastapi.responses import JSONResponse
from starlette.concurrency import run_in_threadpool

from config import settings
from extraction import analyze_image
from models import AnalysisResponse
from vision_client import VisionClient, VisionServiceError, strip_data_uri

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

MISSING_KEY_MESSAGE = "Missing OPENAI_API_KEY. Set it in .env or environment."
UPLOAD_FIELD = "image"

_vision_client: VisionClient | None = None
_vision_client_lock = threading.Lock()


class BadRequest(Exception):
    """Request body is unusable; mapped to a 400 response."""


def get_vision_client() -> VisionClient | None:
    """Return the shared vision client, or None when no API key is configured."""
    global _vision_client

    if not settings.OPENAI_API_KEY:
        return None
    if _vision_client is None:
        # dependency runs in the threadpool
        with _vision_client_lock:
            if _vision_client is None:
                logger.info("Creating vision client for model %s", settings.OPENAI_MODEL)
                _vision_client = VisionClient()
    return _vision_client


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Close the shared vision client on shutdown."""
    global _vision_client

    if not settings.OPENAI_API_KEY:
        logger.warning("OPENAI_API_KEY is not set: /analyze will answer 500 until configured")
    yield

    if _vision_client is not None:
        _vision_client.close()
        _vision_client = None


app = FastAPI(title="FillScan Fill Estimator", version="1.0.0", lifespan=lifespan)


@app.post("/analyze", response_model=AnalysisResponse)
@app.post("/api/analyze", response_model=AnalysisResponse)
async def analyze(
    request: Request,
    client: VisionClient | None = Depends(get_vision_client),
):
    """Estimate container fullness and stone/plastic/other share from an image."""
    if client is None:
        return JSONResponse(status_code=500, content={"detail": MISSING_KEY_MESSAGE})

    upload: UploadFile | None = None
    try:
        content_type = request.headers.get("content-type", "").lower()
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            upload = form.get(UPLOAD_FIELD)
            image_bytes = await _read_upload(upload)
        else:
            image_bytes = _decode_json_image(await request.body())
    except BadRequest as e:
        await _close_upload(upload)
        return JSONResponse(status_code=400, content={"detail": str(e)})

    # log byte count only, never image content
    logger.info("Processing analysis: size=%d bytes", len(image_bytes))

    try:
        return await run_in_threadpool(analyze_image, image_bytes, client)
    except VisionServiceError as e:
        logger.error("Vision analysis failed (%d): %s", e.status_code, e)
        return JSONResponse(status_code=e.status_code, content={"detail": e.message})
    finally:
        await _close_upload(upload)


@app.get("/health")
async def health(client: VisionClient | None = Depends(get_vision_client)):
    """Return service status and vision model reachability."""
    base = {
        "status": "healthy",
        "vision_configured": client is not None,
        "model": settings.OPENAI_MODEL,
    }

    if client is not None:
        base["vision_health"] = await run_in_threadpool(client.health)

    return base


async def _read_upload(upload) -> bytes:
    if upload is None or isinstance(upload, str):
        raise BadRequest("image file is required in multipart form.")

    image_bytes = await upload.read()
    if not image_bytes:
        raise BadRequest("Empty file uploaded")
    return image_bytes


def _decode_json_image(body: bytes) -> bytes:
    try:
        payload = json.loads(body or b"{}")
    except (ValueError, UnicodeDecodeError):
        raise BadRequest("Invalid JSON body.")

    image_b64 = payload.get("imageBase64") if isinstance(payload, dict) else None
    if not isinstance(image_b64, str) or not image_b64:
        raise BadRequest("imageBase64 is required in JSON body.")

    encoded = "".join(strip_data_uri(image_b64).split())
    try:
        image_bytes = base64.b64decode(encoded, validate=True)
    except (binascii.Error, ValueError):
        raise BadRequest("imageBase64 is not valid base64.")

    if not image_bytes:
        raise BadRequest("imageBase64 is required in JSON body.")
    return image_bytes


async def _close_upload(upload) -> None:
    """Release the spooled upload file; cleanup errors are logged, not raised."""
    if upload is None or isinstance(upload, str):
        return
    try:
        await upload.close()
    except Exception as e:
        logger.warning("Failed to release uploaded file: %s", e)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
