# qrkit/models.py

"""
Shared pydantic records for the classifier, the action generators and the
URL risk engine. Field names are snake_case in Python and camelCase on the
wire (parsedData, isSafe, riskLevel, ...).
"""

from __future__ import annotations

from typing import Any, Dict, Literal, Optional, Tuple, Type, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

ContentType = Literal["url", "email", "phone", "sms", "wifi", "vcard", "text"]
ActionKind = Literal["open-url", "open-tel", "open-mailto", "open-sms", "copy-text"]
RiskLevel = Literal["low", "medium", "high"]
WifiSecurity = Literal["WPA", "WEP", "nopass"]

CONTENT_TYPES: Tuple[str, ...] = ("url", "email", "phone", "sms", "wifi", "vcard", "text")
RISK_ORDER: Dict[str, int] = {"low": 0, "medium": 1, "high": 2}


class Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        extra="forbid",
        populate_by_name=True,
        alias_generator=to_camel,
    )


# ---------------------------------------------------------
# PARSED DATA (one model per content type)
# ---------------------------------------------------------

class UrlData(Record):
    url: str
    domain: str
    protocol: str


class EmailData(Record):
    email: str
    subject: Optional[str] = None
    body: Optional[str] = None


class PhoneData(Record):
    phone: str
    formatted: str


class SmsData(Record):
    phone: str
    message: Optional[str] = None


class WifiData(Record):
    ssid: str
    password: str
    security: WifiSecurity
    hidden: bool


class VCardData(Record):
    name: Optional[str] = None
    organization: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    url: Optional[str] = None


class TextData(Record):
    text: str


ParsedData = Union[UrlData, EmailData, PhoneData, SmsData, WifiData, VCardData, TextData]

PARSED_DATA_MODELS: Dict[str, Type[Record]] = {
    "url": UrlData,
    "email": EmailData,
    "phone": PhoneData,
    "sms": SmsData,
    "wifi": WifiData,
    "vcard": VCardData,
    "text": TextData,
}


# ---------------------------------------------------------
# ACTIONS / CLASSIFICATION RESULT
# ---------------------------------------------------------

class Action(Record):
    """Command descriptor; the display layer performs the side effect."""
    label: str
    kind: ActionKind
    payload: str
    icon: str
    variant: Optional[Literal["default", "destructive", "outline"]] = None


class ParsedContent(Record):
    type: ContentType
    parsed_data: ParsedData
    actions: Tuple[Action, ...] = ()

    @model_validator(mode="before")
    @classmethod
    def _select_variant(cls, values: Any) -> Any:
        # Resolve parsed_data by the type tag instead of letting the union guess.
        if not isinstance(values, dict):
            return values
        key = "parsed_data" if "parsed_data" in values else "parsedData"
        data = values.get(key)
        model = PARSED_DATA_MODELS.get(values.get("type"))
        if model is not None and isinstance(data, dict):
            values = {**values, key: model.model_validate(data)}
        return values

    @model_validator(mode="after")
    def _check_variant(self) -> "ParsedContent":
        expected = PARSED_DATA_MODELS[self.type]
        if not isinstance(self.parsed_data, expected):
            raise ValueError(
                f"parsed_data for type '{self.type}' must be {expected.__name__}"
            )
        return self


class SecurityAnalysis(Record):
    is_safe: bool
    risk_level: RiskLevel
    warnings: Tuple[str, ...] = ()
    recommendations: Tuple[str, ...] = ()


# ---------------------------------------------------------
# API REQUESTS
# ---------------------------------------------------------

class ClassifyRequest(BaseModel):
    content: Optional[str] = Field(None, description="Decoded QR text to classify.")


class UrlSafetyRequest(BaseModel):
    url: str


class PayloadRequest(BaseModel):
    type: ContentType
    fields: Dict[str, Any] = Field(default_factory=dict)


class HistoryAddRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    content: str
    image_url: Optional[str] = Field(None, alias="imageUrl")
