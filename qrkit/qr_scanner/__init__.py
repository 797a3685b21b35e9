# qrkit/qr_scanner/__init__.py

"""
QR content package.

Exposes:

    classify_qr_content(raw) -> ParsedContent
    build_payload(content_type, fields) -> str
    process_qr_image(image_bytes) -> dict

which together:
- Recognise decoded text as url, email, phone, sms, wifi, vcard or text
- Extract the fields of that type and the actions offered for it
- Build and validate payloads to encode for each type
- Decode QR codes from an uploaded image and classify every payload
"""

from .payloads import PayloadError, build_payload
from .qr_engine import classify_qr_content, process_qr_image, rehydrate_parsed_content
