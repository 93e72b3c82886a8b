"""Extraction service — FastAPI application."""

import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Optional

import uvicorn
from fastapi import Body, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse, PlainTextResponse

from config import get_bucket, get_port
from exceptions import ClientInputError, ExtractionError
from models import ErrorResponse, ExtractionRequest, ExtractionResult
from pipeline import run_pipeline
from stages.fetch import DriveFetcher
from stages.publish import StoragePublisher
from stages.transcode import check_ffmpeg

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_fetcher() -> DriveFetcher:
    return DriveFetcher()


@lru_cache(maxsize=None)
def get_publisher(bucket: str) -> StoragePublisher:
    return StoragePublisher(bucket)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan — report missing configuration on startup."""
    # Don't hard-fail startup; a missing bucket is reported per request.
    if not get_bucket():
        logger.warning("BUCKET is not set — /extract-audio will fail until it is configured")

    if check_ffmpeg():
        logger.info("ffmpeg is available")
    else:
        logger.error("ffmpeg is NOT available — audio extraction will fail")

    yield


app = FastAPI(
    title="Audio Extraction API",
    description="Drive video file ID → compressed audio in Cloud Storage with a signed URL",
    version="0.1.0",
    lifespan=lifespan,
)


@app.exception_handler(RequestValidationError)
async def invalid_body(request: Request, exc: RequestValidationError):
    logger.warning("Rejected malformed request body: %s", exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid request body"})


@app.get("/", response_class=PlainTextResponse)
def root():
    """Liveness probe."""
    return "ok"


@app.get("/health")
def health():
    return {"ok": True, "bucket_configured": get_bucket() is not None}


@app.post(
    "/extract-audio",
    response_model=ExtractionResult,
    responses={400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
def extract_audio(body: Optional[ExtractionRequest] = Body(default=None)):
    """Download a Drive video, extract its audio and return a signed URL."""
    request = body or ExtractionRequest()
    bucket = get_bucket()

    try:
        return run_pipeline(
            request,
            bucket=bucket,
            fetcher=get_fetcher(),
            publisher=get_publisher(bucket or ""),
        )
    except ClientInputError as e:
        logger.warning("Bad request: %s", e)
        return JSONResponse(status_code=e.status_code, content={"error": str(e)})
    except ExtractionError as e:
        logger.exception("Extraction failed for %s", request.file_id)
        return JSONResponse(status_code=e.status_code, content={"error": str(e)})
    except Exception as e:
        logger.exception("Pipeline error")
        return JSONResponse(status_code=500, content={"error": str(e)})


if __name__ == "__main__":
    uvicorn.run(app, host="0.0.0.0", port=get_port())
