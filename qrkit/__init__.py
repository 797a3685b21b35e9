# qrkit/__init__.py

"""QR payload builder, content classifier and URL risk checks."""

from .cache import TTLCache, cached
from .history import HistoryStore
from .qr_scanner import (
    PayloadError,
    build_payload,
    classify_qr_content,
    process_qr_image,
    rehydrate_parsed_content,
)
from .url_scanner import check_url_safety

__version__ = "0.1.0"
