# qrkit/qr_scanner/qr_engine.py

import json
import logging
from io import BytesIO
from typing import Any, Callable, Dict, List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from ..models import (
    PARSED_DATA_MODELS,
    RISK_ORDER,
    ParsedContent,
    ParsedData,
    SecurityAnalysis,
    TextData,
)
from ..url_scanner import check_url_safety
from .actions import generate_actions
from .qr_utils import (
    parse_email,
    parse_phone,
    parse_sms,
    parse_text,
    parse_url,
    parse_vcard,
    parse_wifi,
)

logger = logging.getLogger(__name__)

# First match wins; text always matches.
DETECTORS: Tuple[Tuple[str, Callable[[str], Optional[ParsedData]]], ...] = (
    ("url", parse_url),
    ("email", parse_email),
    ("sms", parse_sms),
    ("wifi", parse_wifi),
    ("vcard", parse_vcard),
    ("phone", parse_phone),
    ("text", parse_text),
)

PREVIEW_CHARS = 140


# ---------------------------------------------------------
# CLASSIFICATION
# ---------------------------------------------------------
def build_parsed_content(content_type: str, data: ParsedData) -> ParsedContent:
    return ParsedContent(
        type=content_type,
        parsed_data=data,
        actions=tuple(generate_actions(content_type, data)),
    )


def rehydrate_parsed_content(content_type: str, parsed_data: Any) -> ParsedContent:
    """
    Rebuild a full ParsedContent from a stored type + parsedData pair.

    Actions are never stored; they are generated again here. Raises
    KeyError for an unknown type and pydantic.ValidationError when the
    stored fields do not fit the type's model.
    """
    model = PARSED_DATA_MODELS[content_type]
    data = parsed_data if isinstance(parsed_data, model) else model.model_validate(parsed_data)
    return build_parsed_content(content_type, data)


def _fallback(text: str) -> ParsedContent:
    data = TextData(text=text)
    try:
        return build_parsed_content("text", data)
    except Exception:
        return ParsedContent(type="text", parsed_data=data)


def classify_qr_content(raw: Any) -> ParsedContent:
    """
    Classify decoded QR text into one of the seven content types.

    Never raises: None, non-strings and blank input come back as empty text,
    and an unexpected failure falls back to text of the trimmed input.
    """
    content = raw.strip() if isinstance(raw, str) else ""

    try:
        if not content:
            return build_parsed_content("text", TextData(text=""))

        for content_type, detect in DETECTORS:
            try:
                data = detect(content)
            except Exception as exc:
                logger.warning(
                    json.dumps(
                        {"event": "detector_failed", "detector": content_type, "error": str(exc)}
                    )
                )
                continue

            if data is None:
                continue

            result = build_parsed_content(content_type, data)
            logger.info(
                json.dumps(
                    {
                        "event": "qr_classification",
                        "qr_type": content_type,
                        "actions": len(result.actions),
                        "content_preview": content[:PREVIEW_CHARS],
                    }
                )
            )
            return result

        return _fallback(content)

    except Exception as exc:
        logger.error(json.dumps({"event": "classification_failed", "error": str(exc)}))
        return _fallback(content)


# ---------------------------------------------------------
# QR DECODING
# ---------------------------------------------------------
def decode_qr_opencv(img: np.ndarray) -> List[Dict[str, Any]]:
    detector = cv2.QRCodeDetector()
    results = []

    # Try Multi QR
    try:
        ret, data, points, _ = detector.detectAndDecodeMulti(img)
    except cv2.error as exc:
        logger.info(json.dumps({"event": "qr_multi_decode_failed", "error": str(exc)}))
        ret, data, points = False, None, None

    if ret and data and points is not None:
        for i, txt in enumerate(data):
            if not txt:
                continue
            pts = points[i].astype(int).tolist()
            results.append({"data": txt.strip(), "points": pts})

        if results:
            return results

    # Single fallback
    try:
        txt, pts, _ = detector.detectAndDecode(img)
    except cv2.error as exc:
        logger.info(json.dumps({"event": "qr_decode_failed", "error": str(exc)}))
        return results

    if txt:
        polygon = pts.astype(int).tolist() if pts is not None else []
        results.append({"data": txt.strip(), "points": polygon})

    return results


def pil_to_cv2(image: Image.Image) -> np.ndarray:
    rgb = np.array(image.convert("RGB"))
    return cv2.cvtColor(rgb, cv2.COLOR_RGB2BGR)


def load_image(image_bytes: bytes) -> Optional[np.ndarray]:
    """Decode with OpenCV, then Pillow for formats OpenCV does not read (GIF, ...)."""
    if not image_bytes:
        return None

    np_arr = np.frombuffer(image_bytes, np.uint8)
    img = cv2.imdecode(np_arr, cv2.IMREAD_COLOR)
    if img is not None:
        return img

    try:
        with Image.open(BytesIO(image_bytes)) as im:
            return pil_to_cv2(im)
    except (UnidentifiedImageError, OSError) as exc:
        logger.info(json.dumps({"event": "image_unreadable", "error": str(exc)}))
        return None


def _empty_result() -> Dict[str, Any]:
    return {
        "qr_found": False,
        "count": 0,
        "items": [],
        "overall": {"risk_level": "low"},
    }


# ---------------------------------------------------------
# MAIN ENTRY
# ---------------------------------------------------------
def process_qr_image(
    image_bytes: bytes,
    classify: Callable[[Any], ParsedContent] = classify_qr_content,
    check_url: Callable[[Any], SecurityAnalysis] = check_url_safety,
) -> Dict[str, Any]:
    img = load_image(image_bytes)
    if img is None:
        return _empty_result()

    qrs = decode_qr_opencv(img)
    if not qrs:
        return _empty_result()

    items = []
    logs = []
    overall = "low"
    for qr in qrs:
        content = classify(qr["data"])
        security = None
        if content.type == "url":
            security = check_url(content.parsed_data.url)
            if RISK_ORDER[security.risk_level] > RISK_ORDER[overall]:
                overall = security.risk_level

        items.append(
            {
                "data": qr["data"],
                "points": qr["points"],
                "content": content.model_dump(mode="json", by_alias=True),
                "security": (
                    security.model_dump(mode="json", by_alias=True) if security else None
                ),
            }
        )
        logs.append(
            {
                "qr_type": content.type,
                "risk_level": security.risk_level if security else None,
                "content_preview": qr["data"][:120],
            }
        )

    logger.info(json.dumps({"event": "qr_gateway", "items": logs, "risk_level": overall}))

    return {
        "qr_found": True,
        "count": len(items),
        "items": items,
        "overall": {"risk_level": overall},
    }
