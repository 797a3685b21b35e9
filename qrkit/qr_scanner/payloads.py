# qrkit/qr_scanner/payloads.py

"""
Payload builders: form fields -> the string that gets encoded into a QR code.

Every builder validates its input and raises PayloadError with a message
naming the offending field. The output of each builder classifies back to
the same content type.
"""

from __future__ import annotations

import inspect
import re
from typing import Any, Callable, Dict, Optional
from urllib.parse import urlencode

from .actions import sms_target
from .qr_utils import EMAIL_REGEX, URL_REGEX, parse_phone
from ..utils.urls import split_url

# Largest payload a version 40 QR code holds in byte mode.
MAX_CONTENT_LENGTH = 4296
MAX_SSID_LENGTH = 32
MIN_WPA_PASSWORD_LENGTH = 8

PHONE_INPUT_REGEX = re.compile(r"\+?[0-9\s\-()]+")
WIFI_SECURITY = ("WPA", "WEP", "nopass")


class PayloadError(ValueError):
    """Raised when form fields cannot be turned into a valid payload."""


# ---------------------------------------------------------
# HELPERS
# ---------------------------------------------------------

def _text(value: Any, field: str) -> str:
    if value is None:
        return ""
    if not isinstance(value, str):
        raise PayloadError(f"{field} must be a string")
    return value.strip()


def _required(value: Any, field: str) -> str:
    text = _text(value, field)
    if not text:
        raise PayloadError(f"{field} cannot be empty")
    return text


def _flag(value: Any, field: str) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str) and value.strip().lower() in ("true", "false"):
        return value.strip().lower() == "true"
    raise PayloadError(f"{field} must be true or false")


def _finish(payload: str) -> str:
    payload = payload.strip()
    if not payload:
        raise PayloadError("QR code text cannot be empty")
    if len(payload) > MAX_CONTENT_LENGTH:
        raise PayloadError(f"QR code text is too long (max {MAX_CONTENT_LENGTH} characters)")
    return payload


def normalize_url(url: str) -> str:
    """Prefix https:// when the scheme is missing and check the result is a real URL."""
    if not url.startswith(("http://", "https://")):
        url = "https://" + url
    if not URL_REGEX.fullmatch(url):
        raise PayloadError("URL format is invalid")
    try:
        split_url(url)
    except ValueError as exc:
        raise PayloadError("URL format is invalid") from exc
    return url


def _check_email(email: str) -> str:
    if not EMAIL_REGEX.fullmatch(email):
        raise PayloadError("email format is invalid")
    return email


def _check_phone(phone: str) -> str:
    # the digits must also pass the phone detector
    if not PHONE_INPUT_REGEX.fullmatch(phone) or parse_phone(phone) is None:
        raise PayloadError("phone number format is invalid")
    return phone


# ---------------------------------------------------------
# BUILDERS
# ---------------------------------------------------------

def build_text_payload(text: Any = None) -> str:
    return _finish(_required(text, "text"))


def build_url_payload(url: Any = None) -> str:
    return _finish(normalize_url(_required(url, "url")))


def build_email_payload(email: Any = None, subject: Any = None, body: Any = None) -> str:
    address = _check_email(_required(email, "email"))

    params = {}
    subject = _text(subject, "subject")
    body = _text(body, "body")
    if subject:
        params["subject"] = subject
    if body:
        params["body"] = body

    payload = f"mailto:{address}"
    if params:
        payload += "?" + urlencode(params)
    return _finish(payload)


def build_phone_payload(phone: Any = None) -> str:
    return _finish(f"tel:{_check_phone(_required(phone, 'phone'))}")


def build_sms_payload(phone: Any = None, message: Any = None) -> str:
    number = _check_phone(_required(phone, "phone"))
    return _finish(sms_target(number, _text(message, "message")))


def build_wifi_payload(
    ssid: Any = None,
    password: Any = None,
    security: Any = "WPA",
    hidden: Any = False,
) -> str:
    """WIFI:T:<security>;S:<ssid>;P:<password>;H:<true|false>;"""
    ssid = _required(ssid, "ssid")
    if len(ssid) > MAX_SSID_LENGTH:
        raise PayloadError(f"ssid is too long (max {MAX_SSID_LENGTH} characters)")

    if security not in WIFI_SECURITY:
        raise PayloadError(f"security must be one of {', '.join(WIFI_SECURITY)}")

    password = _text(password, "password")
    if security != "nopass":
        if not password:
            raise PayloadError(f"password is required for {security} security")
        if security == "WPA" and len(password) < MIN_WPA_PASSWORD_LENGTH:
            raise PayloadError(
                f"password must be at least {MIN_WPA_PASSWORD_LENGTH} characters for WPA"
            )

    # The format has no escaping, so a ';' would end the field early.
    if ";" in ssid or ";" in password:
        raise PayloadError("ssid and password cannot contain ';'")

    flag = "true" if _flag(hidden, "hidden") else "false"
    return _finish(f"WIFI:T:{security};S:{ssid};P:{password};H:{flag};")


def build_vcard_payload(
    name: Any = None,
    organization: Any = None,
    phone: Any = None,
    email: Any = None,
    url: Any = None,
) -> str:
    name = _required(name, "name")
    organization = _text(organization, "organization")
    phone = _text(phone, "phone")
    email = _text(email, "email")
    url = _text(url, "url")

    if email:
        _check_email(email)
    if phone:
        _check_phone(phone)
    if url:
        url = normalize_url(url)

    lines = ["BEGIN:VCARD", "VERSION:3.0", f"FN:{name}"]
    if organization:
        lines.append(f"ORG:{organization}")
    if phone:
        lines.append(f"TEL:{phone}")
    if email:
        lines.append(f"EMAIL:{email}")
    if url:
        lines.append(f"URL:{url}")
    lines.append("END:VCARD")
    return _finish("\n".join(lines))


PAYLOAD_BUILDERS: Dict[str, Callable[..., str]] = {
    "url": build_url_payload,
    "email": build_email_payload,
    "phone": build_phone_payload,
    "sms": build_sms_payload,
    "wifi": build_wifi_payload,
    "vcard": build_vcard_payload,
    "text": build_text_payload,
}


def build_payload(content_type: str, fields: Optional[Dict[str, Any]] = None) -> str:
    builder = PAYLOAD_BUILDERS.get(content_type)
    if builder is None:
        raise PayloadError(f"Unsupported content type: {content_type}")

    fields = dict(fields or {})
    accepted = inspect.signature(builder).parameters
    unknown = sorted(set(fields) - set(accepted))
    if unknown:
        raise PayloadError(f"Unknown fields for {content_type}: {', '.join(unknown)}")

    return builder(**fields)
