# qrkit/qr_scanner/qr_utils.py

"""
Type detectors for decoded QR payloads.

Each detector takes the trimmed payload and returns the parsed fields for
its content class, or None when the payload is not of that class. Detectors
do not catch their own failures; the classifier treats an exception from a
detector as "no match" and moves on.
"""

from __future__ import annotations

import re
from typing import Dict, Optional
from urllib.parse import parse_qs, unquote, urlsplit

from ..models import EmailData, PhoneData, SmsData, TextData, UrlData, VCardData, WifiData
from ..utils.urls import split_url


# ---------------------------------------------------------
# PATTERNS
# ---------------------------------------------------------

URL_REGEX = re.compile(r"https?://[^\s/$.?#].[^\s]*", re.IGNORECASE)
EMAIL_REGEX = re.compile(r"[^\s@]+@[^\s@]+\.[^\s@]+")
INTERNATIONAL_PHONE_REGEX = re.compile(r"\+[0-9]{5,17}")
DOMESTIC_PHONE_REGEX = re.compile(r"[0-9]{10,15}")
PHONE_STRIP_REGEX = re.compile(r"[^0-9+]")
LINE_SPLIT_REGEX = re.compile(r"\r?\n")

MIN_PHONE_DIGITS = 7


def _query_value(query: str, name: str) -> Optional[str]:
    values = parse_qs(query).get(name)
    if not values:
        return None
    return values[0] or None


# ---------------------------------------------------------
# URL
# ---------------------------------------------------------

def parse_url(content: str) -> Optional[UrlData]:
    if not URL_REGEX.fullmatch(content):
        return None
    try:
        parts = split_url(content)
    except ValueError:
        return None
    return UrlData(
        url=content,
        domain=parts.hostname or "",
        protocol=parts.scheme.lower(),
    )


# ---------------------------------------------------------
# EMAIL
# ---------------------------------------------------------

def parse_email(content: str) -> Optional[EmailData]:
    if content.lower().startswith("mailto:"):
        parts = urlsplit(content)
        address = unquote(parts.path)
        if not EMAIL_REGEX.fullmatch(address):
            return None
        return EmailData(
            email=address,
            subject=_query_value(parts.query, "subject"),
            body=_query_value(parts.query, "body"),
        )

    if EMAIL_REGEX.fullmatch(content):
        return EmailData(email=content)
    return None


# ---------------------------------------------------------
# PHONE
# ---------------------------------------------------------

def format_phone_number(phone: str) -> str:
    """Display form: international numbers as-is, 10 digits as (XXX) XXX-XXXX."""
    if phone.startswith("+"):
        return phone
    if len(phone) == 10:
        return f"({phone[:3]}) {phone[3:6]}-{phone[6:]}"
    return phone


def parse_phone(content: str) -> Optional[PhoneData]:
    if content.lower().startswith("tel:"):
        content = content[4:]

    number = PHONE_STRIP_REGEX.sub("", content)
    if not (
        INTERNATIONAL_PHONE_REGEX.fullmatch(number)
        or DOMESTIC_PHONE_REGEX.fullmatch(number)
    ):
        return None

    digits = len(number.lstrip("+"))
    if digits < MIN_PHONE_DIGITS:
        return None

    return PhoneData(phone=number, formatted=format_phone_number(number))


# ---------------------------------------------------------
# SMS
# ---------------------------------------------------------

def parse_sms(content: str) -> Optional[SmsData]:
    """
    sms:<phone>?body=<message> or SMSTO:<phone>:<message>.

    SMSTO splits on the first colon only, so a message keeps any colons of
    its own. Readers that split on every colon keep just the text before the
    second one; this one returns the whole message.
    """
    lower = content.lower()

    # sms:<phone>?body=<message>
    if lower.startswith("sms:"):
        parts = urlsplit(content)
        phone = unquote(parts.path)
        if not phone:
            return None
        return SmsData(phone=phone, message=_query_value(parts.query, "body"))

    # SMSTO:<phone>:<message>
    if lower.startswith("smsto:"):
        phone, _, message = content[6:].partition(":")
        if not phone:
            return None
        return SmsData(phone=phone, message=message or None)

    return None


# ---------------------------------------------------------
# WIFI
# ---------------------------------------------------------

def _normalize_security(value: Optional[str]) -> str:
    if not value:
        return "WPA"
    if value.lower() == "nopass":
        return "nopass"
    if value.upper() == "WEP":
        return "WEP"
    return "WPA"


def parse_wifi(content: str) -> Optional[WifiData]:
    """WIFI:T:<security>;S:<ssid>;P:<password>;H:<hidden>;;"""
    if not content.lower().startswith("wifi:"):
        return None

    params: Dict[str, str] = {}
    for part in content[5:].split(";"):
        if ":" in part:
            key, _, value = part.partition(":")
            params[key] = value

    ssid = params.get("S", "")
    if not ssid:
        return None

    return WifiData(
        ssid=ssid,
        password=params.get("P", ""),
        security=_normalize_security(params.get("T")),
        hidden=params.get("H") == "true",
    )


# ---------------------------------------------------------
# VCARD
# ---------------------------------------------------------

def parse_vcard(content: str) -> Optional[VCardData]:
    if "BEGIN:VCARD" not in content or "END:VCARD" not in content:
        return None

    fields: Dict[str, str] = {}
    for line in LINE_SPLIT_REGEX.split(content):
        if line.startswith("FN:"):
            fields["name"] = line[3:]
        elif line.startswith("ORG:"):
            fields["organization"] = line[4:]
        elif "TEL:" in line or "TEL;" in line:
            fields["phone"] = line.partition(":")[2]
        elif "EMAIL:" in line or "EMAIL;" in line:
            fields["email"] = line.partition(":")[2]
        elif line.startswith("URL:"):
            fields["url"] = line[4:]

    fields = {key: value for key, value in fields.items() if value}
    if not fields:
        return None
    return VCardData(**fields)


# ---------------------------------------------------------
# TEXT (fallback)
# ---------------------------------------------------------

def parse_text(content: str) -> TextData:
    return TextData(text=content)
