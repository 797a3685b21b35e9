# qrkit/qr_scanner/actions.py

"""
Action generators: parsed fields -> ordered list of Action descriptors.

The descriptors only name what should happen (open a target, copy a
string); opening windows and writing to the clipboard is left to the
display layer, which also owns reporting failures of those side effects.
"""

from __future__ import annotations

from typing import Callable, Dict, List
from urllib.parse import quote, urlencode

from ..models import (
    Action,
    EmailData,
    ParsedData,
    PhoneData,
    SmsData,
    TextData,
    UrlData,
    VCardData,
    WifiData,
)

ICON_OPEN = "external-link"
ICON_COPY = "copy"
ICON_MAIL = "mail"
ICON_CALL = "phone-call"
ICON_SMS = "message-square"

# characters encodeURIComponent leaves alone besides the unreserved set
URI_COMPONENT_SAFE = "!~*'()"


def _copy(label: str, text: str, variant: str | None = None) -> Action:
    return Action(label=label, kind="copy-text", payload=text, icon=ICON_COPY, variant=variant)


def mailto_target(email: str, subject: str | None = None, body: str | None = None) -> str:
    params = {}
    if subject:
        params["subject"] = subject
    if body:
        params["body"] = body
    if not params:
        return f"mailto:{email}"
    return f"mailto:{email}?{urlencode(params)}"


def sms_target(phone: str, message: str | None = None) -> str:
    if not message:
        return f"sms:{phone}"
    # same escaping as encodeURIComponent
    return f"sms:{phone}?body={quote(message, safe=URI_COMPONENT_SAFE)}"


# ---------------------------------------------------------
# GENERATORS
# ---------------------------------------------------------

def url_actions(data: UrlData) -> List[Action]:
    return [
        Action(label="Open Link", kind="open-url", payload=data.url, icon=ICON_OPEN),
        _copy("Copy URL", data.url),
    ]


def email_actions(data: EmailData) -> List[Action]:
    return [
        Action(
            label="Send Email",
            kind="open-mailto",
            payload=mailto_target(data.email, data.subject, data.body),
            icon=ICON_MAIL,
        ),
        _copy("Copy Email", data.email),
    ]


def phone_actions(data: PhoneData) -> List[Action]:
    return [
        Action(label="Call", kind="open-tel", payload=f"tel:{data.phone}", icon=ICON_CALL),
        _copy("Copy Number", data.phone),
    ]


def sms_actions(data: SmsData) -> List[Action]:
    return [
        Action(
            label="Send SMS",
            kind="open-sms",
            payload=sms_target(data.phone, data.message),
            icon=ICON_SMS,
        ),
        _copy("Copy Number", data.phone),
    ]


def wifi_actions(data: WifiData) -> List[Action]:
    # Browsers cannot join a network programmatically; copying is all we offer.
    return [
        _copy("Copy Network Name", data.ssid),
        _copy("Copy Password", data.password, variant="outline"),
    ]


def contact_text(data: VCardData) -> str:
    fields = data.model_dump(exclude_none=True)
    return "\n".join(f"{key}: {value}" for key, value in fields.items() if value)


def vcard_actions(data: VCardData) -> List[Action]:
    actions: List[Action] = []

    if data.phone:
        actions.append(
            Action(label="Call", kind="open-tel", payload=f"tel:{data.phone}", icon=ICON_CALL)
        )
    if data.email:
        actions.append(
            Action(
                label="Send Email",
                kind="open-mailto",
                payload=mailto_target(data.email),
                icon=ICON_MAIL,
            )
        )
    if data.url:
        actions.append(
            Action(label="Visit Website", kind="open-url", payload=data.url, icon=ICON_OPEN)
        )

    actions.append(_copy("Copy Contact", contact_text(data), variant="outline"))
    return actions


def text_actions(data: TextData) -> List[Action]:
    return [_copy("Copy Text", data.text)]


ACTION_GENERATORS: Dict[str, Callable[..., List[Action]]] = {
    "url": url_actions,
    "email": email_actions,
    "phone": phone_actions,
    "sms": sms_actions,
    "wifi": wifi_actions,
    "vcard": vcard_actions,
    "text": text_actions,
}


def generate_actions(content_type: str, data: ParsedData) -> List[Action]:
    """Dispatch to the generator for content_type; unknown types raise KeyError."""
    return ACTION_GENERATORS[content_type](data)
