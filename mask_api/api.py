import asyncio
import logging
from typing import List, Optional

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from mask_api.core.fetch import ImageFetchError, clean_url, fetch_image_bytes
from mask_api.core.temp_store import TempStore
from mask_api.vision.background import DEFAULT_CONFIG, classify_background, with_threshold
from mask_api.vision.codec import decode_rgba, encode_png
from mask_api.vision.crop import compute_crop_rect, crop_image, resolve_padding
from mask_api.vision.vision_types import BboxRequest

logger = logging.getLogger(__name__)

router = APIRouter()

TEMP_ROUTE_NAME = "temp-crops"


class ErrorBody(BaseModel):
    error: str


class CropByBboxPayload(BaseModel):
    sourceUrl: Optional[str] = Field(None, description="URL of the source image to crop")
    bbox: Optional[List[float]] = Field(
        None, description="Bounding box coordinates [x1, y1, x2, y2] in pixels"
    )
    paddingRatio: Optional[float] = Field(
        None, description="Padding ratio relative to bbox size (default: 0.1)"
    )


class CropByBboxResponse(BaseModel):
    url: str


class CheckWhiteBgPayload(BaseModel):
    sourceUrl: Optional[str] = Field(None, description="URL of the image to analyze")
    threshold: Optional[float] = Field(
        None, description="RGB threshold for considering a pixel white (default: 230)"
    )


class CheckWhiteBgResponse(BaseModel):
    isWhiteBg: bool
    cornerRatio: float
    borderRatio: float


ERROR_RESPONSES = {400: {"model": ErrorBody}, 500: {"model": ErrorBody}}


async def _fetch(request: Request, source_url: str) -> bytes:
    timeout = request.app.state.config.fetch_timeout_s
    try:
        # requests is blocking, so it must run off the event loop.
        return await asyncio.to_thread(fetch_image_bytes, source_url, timeout)
    except ImageFetchError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc


def _crop_to_store(data: bytes, bbox: BboxRequest, padding_ratio: float, store: TempStore) -> str:
    image = decode_rgba(data)
    rect = compute_crop_rect(bbox, padding_ratio, image.width, image.height)
    cropped = crop_image(image.pixels, rect)
    return store.save_png(encode_png(cropped))


def _check_white_bg(data: bytes, threshold: Optional[float]) -> dict:
    image = decode_rgba(data)
    result = classify_background(image, with_threshold(DEFAULT_CONFIG, threshold))
    return result.to_dict()


@router.get("/api/status")
def status(request: Request):
    return {"ready": bool(getattr(request.app.state, "ready", False))}


@router.post(
    "/crop-by-bbox",
    response_model=CropByBboxResponse,
    responses=ERROR_RESPONSES,
    summary="Crop an image by bounding box",
)
async def crop_by_bbox(payload: CropByBboxPayload, request: Request):
    """
    Fetches an image from the given URL, crops it using the provided bounding
    box coordinates (with optional padding), saves the result as a temporary
    PNG, and returns a public URL to the cropped image. Temporary files are
    automatically deleted after 30 minutes.
    """
    source_url = clean_url(payload.sourceUrl)
    if not source_url or not payload.bbox or len(payload.bbox) != 4:
        raise HTTPException(status_code=400, detail="Missing sourceUrl or bbox")

    bbox = BboxRequest.from_sequence(payload.bbox)
    padding_ratio = resolve_padding(payload.paddingRatio)
    data = await _fetch(request, source_url)

    try:
        filename = await asyncio.to_thread(
            _crop_to_store, data, bbox, padding_ratio, request.app.state.temp_store
        )
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("crop-by-bbox error")
        raise HTTPException(status_code=500, detail=str(exc)) from exc

    url = request.url_for(TEMP_ROUTE_NAME, path=filename)
    return {"url": str(url)}


@router.post(
    "/check-white-bg",
    response_model=CheckWhiteBgResponse,
    responses=ERROR_RESPONSES,
    summary="Check if an image has a white background",
)
async def check_white_bg(payload: CheckWhiteBgPayload, request: Request):
    """
    Analyzes the border and corner regions of an image to determine whether it
    has a white background. Returns boolean result along with corner and
    border white-pixel ratios.
    """
    source_url = clean_url(payload.sourceUrl)
    if not source_url:
        raise HTTPException(status_code=400, detail="Missing sourceUrl")

    data = await _fetch(request, source_url)

    try:
        return await asyncio.to_thread(_check_white_bg, data, payload.threshold)
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc)) from exc
    except Exception as exc:
        logger.exception("check-white-bg error")
        raise HTTPException(status_code=500, detail=str(exc)) from exc


# -----------------------------
# Error bodies
# -----------------------------
async def _http_error(request: Request, exc: StarletteHTTPException):
    return JSONResponse({"error": str(exc.detail)}, status_code=exc.status_code, headers=exc.headers)


async def _validation_error(request: Request, exc: RequestValidationError):
    # Malformed JSON or wrongly typed fields are client errors, reported like the others.
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        parts.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    message = "Invalid request body" + (f" ({'; '.join(parts)})" if parts else "")
    return JSONResponse({"error": message}, status_code=400)


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, _http_error)
    app.add_exception_handler(RequestValidationError, _validation_error)
