# qrkit/history.py

"""
In-memory history of classified QR payloads.

Items are kept newest first. Only the type and parsed fields are exported;
actions are regenerated from them on load, so a stored record never carries
anything executable.
"""

from __future__ import annotations

import json
import logging
import secrets
import threading
import time
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple

from pydantic import ValidationError

from .models import Action, ContentType, ParsedContent, ParsedData, Record, SecurityAnalysis
from .qr_scanner.qr_engine import classify_qr_content, rehydrate_parsed_content
from .url_scanner import check_url_safety

logger = logging.getLogger(__name__)

MAX_HISTORY_ITEMS = 50      # cap applied on every add
STORAGE_HISTORY_ITEMS = 50  # cap applied on export
CLEANUP_THRESHOLD = 100     # cleanup() trims down to this size


class HistoryItem(Record):
    id: str
    text: str
    timestamp: int
    image_url: Optional[str] = None
    content_type: ContentType
    is_favorite: bool = False
    parsed_data: ParsedData
    actions: Tuple[Action, ...] = ()
    security_analysis: Optional[SecurityAnalysis] = None


def _now_ms() -> int:
    return int(time.time() * 1000)


def _contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value


def _lower_contains(value: Optional[str], needle: str) -> bool:
    return bool(value) and needle in value.lower()


def matches_query(item: HistoryItem, query: str) -> bool:
    """Text and type match case-insensitively; then per-type parsed fields."""
    lowered = query.lower()
    data = item.parsed_data

    if lowered in item.text.lower() or lowered in item.content_type:
        return True

    if item.content_type == "url":
        return _lower_contains(data.domain, lowered) or _lower_contains(data.protocol, lowered)
    if item.content_type == "email":
        return _lower_contains(data.email, lowered) or _lower_contains(data.subject, lowered)
    if item.content_type == "phone":
        # digits are matched as typed
        return _contains(data.phone, query) or _contains(data.formatted, query)
    if item.content_type == "sms":
        return _contains(data.phone, query) or _lower_contains(data.message, lowered)
    if item.content_type == "wifi":
        return _lower_contains(data.ssid, lowered) or _lower_contains(data.security, lowered)
    if item.content_type == "vcard":
        return (
            _lower_contains(data.name, lowered)
            or _lower_contains(data.organization, lowered)
            or _lower_contains(data.email, lowered)
            or _contains(data.phone, query)
        )
    if item.content_type == "text":
        return _lower_contains(data.text, lowered)
    return False


class HistoryStore:
    def __init__(
        self,
        classify: Callable[[Any], ParsedContent] = classify_qr_content,
        check_url: Callable[[Any], SecurityAnalysis] = check_url_safety,
        clock: Callable[[], int] = _now_ms,
        id_factory: Callable[[], str] = lambda: secrets.token_hex(8),
    ):
        self._classify = classify
        self._check_url = check_url
        self._clock = clock
        self._new_id = id_factory
        self._lock = threading.Lock()
        self._items: List[HistoryItem] = []

    def _snapshot(self) -> List[HistoryItem]:
        with self._lock:
            return list(self._items)

    def __len__(self) -> int:
        with self._lock:
            return len(self._items)

    @property
    def items(self) -> List[HistoryItem]:
        return self._snapshot()

    def get(self, item_id: str) -> Optional[HistoryItem]:
        return next((item for item in self._snapshot() if item.id == item_id), None)

    # -------------------------
    # Mutations
    # -------------------------
    def add(self, text: Any, image_url: Optional[str] = None) -> Optional[HistoryItem]:
        if not isinstance(text, str) or not text.strip():
            logger.warning(json.dumps({"event": "history_add_ignored", "reason": "empty text"}))
            return None

        text = text.strip()
        content = self._classify(text)
        security = None
        if content.type == "url":
            security = self._check_url(content.parsed_data.url)

        with self._lock:
            index = next((i for i, item in enumerate(self._items) if item.text == text), None)

            if index is not None:
                existing = self._items.pop(index)
                item = existing.model_copy(
                    update={
                        "timestamp": self._clock(),
                        "image_url": image_url or existing.image_url,
                        "content_type": content.type,
                        "parsed_data": content.parsed_data,
                        "actions": content.actions,
                        "security_analysis": security or existing.security_analysis,
                    }
                )
                self._items.insert(0, item)
                return item

            item = HistoryItem(
                id=self._new_id(),
                text=text,
                timestamp=self._clock(),
                image_url=image_url or None,
                content_type=content.type,
                parsed_data=content.parsed_data,
                actions=content.actions,
                security_analysis=security,
            )
            self._items.insert(0, item)
            del self._items[MAX_HISTORY_ITEMS:]
            return item

    def remove(self, item_id: str) -> bool:
        with self._lock:
            before = len(self._items)
            self._items = [item for item in self._items if item.id != item_id]
            return len(self._items) != before

    def clear(self) -> None:
        with self._lock:
            self._items = []

    def toggle_favorite(self, item_id: str) -> Optional[HistoryItem]:
        with self._lock:
            for i, item in enumerate(self._items):
                if item.id == item_id:
                    updated = item.model_copy(update={"is_favorite": not item.is_favorite})
                    self._items[i] = updated
                    return updated
        return None

    def cleanup(self) -> int:
        """Keep favourites first, then the newest, up to CLEANUP_THRESHOLD items."""
        with self._lock:
            if len(self._items) <= CLEANUP_THRESHOLD:
                return 0
            before = len(self._items)
            ranked = sorted(self._items, key=lambda item: (not item.is_favorite, -item.timestamp))
            self._items = ranked[:CLEANUP_THRESHOLD]
            logger.debug(
                json.dumps({"event": "history_cleanup", "before": before, "after": len(self._items)})
            )
            return before - len(self._items)

    # -------------------------
    # Queries
    # -------------------------
    def favorites(self) -> List[HistoryItem]:
        return [item for item in self._snapshot() if item.is_favorite]

    def filter_by_type(self, content_type: Optional[str]) -> List[HistoryItem]:
        if not content_type:
            return self.items
        return [item for item in self._snapshot() if item.content_type == content_type]

    def search(self, query: Optional[str]) -> List[HistoryItem]:
        if not query or not query.strip():
            return self.items
        return [item for item in self._snapshot() if matches_query(item, query)]

    # -------------------------
    # Persistence
    # -------------------------
    def export(self) -> List[Dict[str, Any]]:
        return [
            item.model_dump(mode="json", by_alias=True, exclude={"actions"})
            for item in self._snapshot()[:STORAGE_HISTORY_ITEMS]
        ]

    def load(self, records: Iterable[Any]) -> int:
        """
        Replace the history with exported records.

        Actions are regenerated from type + parsedData. Records that do not
        validate are skipped and logged. Returns the number loaded.
        """
        loaded: List[HistoryItem] = []
        for position, record in enumerate(records):
            try:
                if not isinstance(record, dict):
                    raise TypeError(f"record is {type(record).__name__}, expected object")
                content_type = record.get("contentType", record.get("content_type"))
                parsed = record.get("parsedData", record.get("parsed_data"))
                content = rehydrate_parsed_content(content_type, parsed)

                fields = {
                    key: value
                    for key, value in record.items()
                    if key not in ("parsedData", "parsed_data", "actions")
                }
                item = HistoryItem.model_validate(
                    {**fields, "parsedData": content.parsed_data, "actions": content.actions}
                )
            except (KeyError, TypeError, ValidationError) as exc:
                logger.warning(
                    json.dumps(
                        {"event": "history_record_skipped", "index": position, "error": str(exc)}
                    )
                )
                continue
            loaded.append(item)

        with self._lock:
            self._items = loaded
        self.cleanup()
        return len(loaded)
