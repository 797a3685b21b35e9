# main.py

from __future__ import annotations

from typing import Any, List, Optional

import os
import time
import json
import secrets
import logging

import sentry_sdk
import uvicorn
from fastapi import Body, FastAPI, File, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from qrkit.cache import TTLCache, cached
from qrkit.history import HistoryStore
from qrkit.models import (
    ClassifyRequest,
    ContentType,
    HistoryAddRequest,
    PayloadRequest,
    UrlSafetyRequest,
)
from qrkit.qr_scanner.payloads import MAX_CONTENT_LENGTH, PayloadError, build_payload
from qrkit.qr_scanner.qr_engine import classify_qr_content, process_qr_image
from qrkit.url_scanner import check_url_safety

LOG_LEVEL = os.getenv("QRKIT_LOG_LEVEL", "INFO").upper()
SENTRY_DSN = os.getenv("SENTRY_DSN", "")
ALLOWED_ORIGINS = [
    origin.strip().rstrip("/")
    for origin in os.getenv("QRKIT_ALLOWED_ORIGINS", "http://localhost:3000").split(",")
    if origin.strip()
]

PARSE_CACHE_SIZE = int(os.getenv("QRKIT_PARSE_CACHE_SIZE", "100"))
PARSE_CACHE_TTL = float(os.getenv("QRKIT_PARSE_CACHE_TTL", "300"))
SAFETY_CACHE_SIZE = int(os.getenv("QRKIT_SAFETY_CACHE_SIZE", "50"))
SAFETY_CACHE_TTL = float(os.getenv("QRKIT_SAFETY_CACHE_TTL", "600"))
MAX_IMAGE_BYTES = int(os.getenv("QRKIT_MAX_IMAGE_BYTES", str(5 * 1024 * 1024)))

HOST = os.getenv("QRKIT_HOST", "127.0.0.1")
PORT = int(os.getenv("QRKIT_PORT", "8000"))

# Init Sentry if configured
if SENTRY_DSN:
    sentry_sdk.init(dsn=SENTRY_DSN, traces_sample_rate=0.2)

logger = logging.getLogger("qrkit")
logging.basicConfig(level=LOG_LEVEL, format="%(message)s")

# ---------------------------------------------------------
# Engines (cached) + history
# ---------------------------------------------------------
PARSE_CACHE = TTLCache(max_size=PARSE_CACHE_SIZE, ttl_seconds=PARSE_CACHE_TTL)
SAFETY_CACHE = TTLCache(max_size=SAFETY_CACHE_SIZE, ttl_seconds=SAFETY_CACHE_TTL)

classify = cached(classify_qr_content, PARSE_CACHE)
check_url = cached(check_url_safety, SAFETY_CACHE)

HISTORY = HistoryStore(classify=classify, check_url=check_url)

# ---------------------------------------------------------
# FastAPI
# ---------------------------------------------------------
app = FastAPI(title="qrkit API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Return JSON for unexpected errors/validation failures to avoid empty/HTML responses
@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception):
    logger.error(json.dumps({"event": "error", "path": str(request.url), "error": str(exc)}))
    return JSONResponse({"error": "Internal server error."}, status_code=500)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(
        {"error": "Invalid request.", "detail": json.loads(json.dumps(exc.errors(), default=str))},
        status_code=422,
    )


# Request id + one JSON log line per request
@app.middleware("http")
async def request_log(request: Request, call_next):
    request_id = secrets.token_hex(8)
    request.state.request_id = request_id
    start_time = time.time()
    response = await call_next(request)
    duration = round((time.time() - start_time) * 1000, 2)
    log_payload = {
        "event": "request",
        "request_id": request_id,
        "path": request.url.path,
        "method": request.method,
        "status": response.status_code,
        "duration_ms": duration,
    }
    logger.info(json.dumps(log_payload))
    response.headers["X-Request-ID"] = request_id
    return response


def _dump(model) -> dict:
    return model.model_dump(mode="json", by_alias=True)


def _not_found():
    return JSONResponse({"error": "History item not found."}, status_code=404)


def _too_long():
    return JSONResponse(
        {"error": f"Content too long. Max {MAX_CONTENT_LENGTH} characters."},
        status_code=413,
    )


# ---------------------------------------------------------
# Routes
# ---------------------------------------------------------
@app.get("/health")
def health():
    return {"status": "ok"}


@app.post("/classify")
def classify_endpoint(body: ClassifyRequest):
    if body.content is not None and len(body.content.strip()) > MAX_CONTENT_LENGTH:
        return _too_long()

    content = classify(body.content)
    security = None
    if content.type == "url":
        security = check_url(content.parsed_data.url)

    return {
        "content": _dump(content),
        "security": _dump(security) if security else None,
    }


@app.post("/url-safety")
def url_safety(body: UrlSafetyRequest):
    if len(body.url.strip()) > MAX_CONTENT_LENGTH:
        return _too_long()
    return _dump(check_url(body.url))


@app.post("/payload")
def payload_endpoint(body: PayloadRequest):
    try:
        payload = build_payload(body.type, body.fields)
    except PayloadError as exc:
        return JSONResponse({"error": str(exc)}, status_code=400)

    return {"payload": payload, "content": _dump(classify(payload))}


@app.post("/qr")
async def qr(request: Request, image: UploadFile = File(...)):
    content_length = request.headers.get("content-length")
    if content_length and content_length.isdigit() and int(content_length) > MAX_IMAGE_BYTES:
        return JSONResponse({"error": "Image too large."}, status_code=413)

    img_bytes = await image.read()
    if len(img_bytes) > MAX_IMAGE_BYTES:
        return JSONResponse({"error": "Image too large."}, status_code=413)

    try:
        result = process_qr_image(img_bytes, classify=classify, check_url=check_url)
    except Exception as exc:
        logger.error(json.dumps({"event": "qr_scan_failed", "error": str(exc)}))
        return JSONResponse({"error": "QR scanner unavailable. Try again later."}, status_code=503)

    return result


# ---------------------------------------------------------
# History
# ---------------------------------------------------------
@app.get("/history")
def history_list(
    q: Optional[str] = None,
    type: Optional[ContentType] = None,
    favorites: bool = False,
):
    items = HISTORY.search(q)
    if type:
        items = [item for item in items if item.content_type == type]
    if favorites:
        items = [item for item in items if item.is_favorite]
    return [_dump(item) for item in items]


@app.post("/history")
def history_add(body: HistoryAddRequest):
    if len(body.content.strip()) > MAX_CONTENT_LENGTH:
        return _too_long()

    item = HISTORY.add(body.content, body.image_url)
    if item is None:
        return JSONResponse({"error": "Content cannot be empty."}, status_code=400)
    return _dump(item)


@app.get("/history/export")
def history_export():
    return HISTORY.export()


@app.post("/history/import")
def history_import(records: List[Any] = Body(...)):
    loaded = HISTORY.load(records)
    return {"loaded": loaded, "skipped": len(records) - loaded}


@app.post("/history/{item_id}/favorite")
def history_favorite(item_id: str):
    item = HISTORY.toggle_favorite(item_id)
    if item is None:
        return _not_found()
    return _dump(item)


@app.delete("/history/{item_id}")
def history_remove(item_id: str):
    if not HISTORY.remove(item_id):
        return _not_found()
    return {"removed": item_id}


@app.delete("/history")
def history_clear():
    HISTORY.clear()
    return {"status": "cleared"}


if __name__ == "__main__":
    uvicorn.run("qrkit.main:app", host=HOST, port=PORT, log_level=LOG_LEVEL.lower())
