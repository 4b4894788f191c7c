"""
QR payload codec.

The wallet QR carries ``{"wi": <wallet item id>, "rc": <redemption code>}``
as compact JSON. Scanners also accept a bare code typed by hand. Payloads
from the retired deal-level flow (``{"dealId", "userId"}`` JSON or
``"<dealId>:<userId>"``) are recognised and rejected with their own error.
"""

import io
import json
import re
import uuid
from dataclasses import dataclass
from typing import Union

import qrcode

from .codes import normalize_manual_code
from .exceptions import InvalidOrExpiredCodeError, LegacyPayloadError


LEGACY_KEYS = {'dealId', 'userId', 'deal_id', 'user_id'}

MANUAL_CODE_PATTERN = re.compile(r'^[A-Z0-9-]{4,32}$')


@dataclass(frozen=True)
class QRPayload:
    wallet_item_id: str
    redemption_code: str


@dataclass(frozen=True)
class ManualCode:
    redemption_code: str


def encode(wallet_item_id, redemption_code: str) -> str:
    return json.dumps(
        {'wi': str(wallet_item_id), 'rc': redemption_code},
        separators=(',', ':'),
    )


def decode(raw: str) -> Union[QRPayload, ManualCode]:
    """
    Classify scanned or typed input.

    Raises:
        LegacyPayloadError: Old deal-level payload
        InvalidOrExpiredCodeError: Anything else that isn't a wallet payload or code
    """
    text = (raw or '').strip()
    if not text:
        raise InvalidOrExpiredCodeError()

    if text.startswith('{'):
        return _decode_json(text)

    if ':' in text:
        left, _, right = text.partition(':')
        if _is_uuid(left) and _is_uuid(right):
            raise LegacyPayloadError()
        raise InvalidOrExpiredCodeError()

    code = normalize_manual_code(text)
    if not MANUAL_CODE_PATTERN.match(code):
        raise InvalidOrExpiredCodeError()
    return ManualCode(redemption_code=code)


def _decode_json(text: str) -> QRPayload:
    try:
        data = json.loads(text)
    except ValueError:
        raise InvalidOrExpiredCodeError()

    if not isinstance(data, dict):
        raise InvalidOrExpiredCodeError()
    if LEGACY_KEYS & data.keys():
        raise LegacyPayloadError()

    wallet_item_id = data.get('wi')
    redemption_code = data.get('rc')
    if not isinstance(wallet_item_id, str) or not isinstance(redemption_code, str):
        raise InvalidOrExpiredCodeError()
    if not wallet_item_id or not redemption_code:
        raise InvalidOrExpiredCodeError()

    return QRPayload(wallet_item_id=wallet_item_id, redemption_code=redemption_code)


def _is_uuid(value: str) -> bool:
    try:
        uuid.UUID(value.strip())
    except ValueError:
        return False
    return True


def render_qr_png(payload: str) -> bytes:
    """Render a payload as PNG bytes at error-correction level M."""
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(payload)
    qr.make(fit=True)

    img = qr.make_image(fill_color="black", back_color="white")
    buffer = io.BytesIO()
    img.save(buffer, format='PNG')
    return buffer.getvalue()
