"""Short human-enterable codes and the payloads embedded in scannable codes."""

import base64
import json
import secrets
import string
from dataclasses import dataclass
from datetime import datetime
from io import BytesIO
from typing import Callable, Optional, TypeVar

import qrcode
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.core.config import settings
from app.core.exceptions.access_exceptions import CodeGenerationError
from app.core.logger import logger
from app.core.utils import current_time, epoch_millis, normalize_code

CODE_ALPHABET = string.ascii_uppercase + string.digits

INVITATION_PAYLOAD_TYPE = 'invitation'
RECEIPT_PAYLOAD_TYPE = 'walk_in_receipt'

T = TypeVar('T')


@dataclass(frozen=True)
class ScannedCredential:
    type: Optional[str]
    id: Optional[str]
    code: str
    # Stripped but case preserved, so a typed id still matches
    raw: str


def generate_alpha_code(length: Optional[int] = None) -> str:
    length = length or settings.ALPHA_CODE_LENGTH
    return ''.join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def generate_payload(
    id: str,
    code: str,
    kind: str = INVITATION_PAYLOAD_TYPE,
    issued_at: Optional[datetime] = None,
) -> str:
    """
    Build the JSON carried by a scannable code.

    The structure is parsed by external scanning clients and must stay
    ``{type, id, code, issuedAtEpochMillis}``. It is not a token: whoever
    reads it back still has to check ``id`` and ``code`` against storage.
    """
    issued_at = issued_at or current_time()
    return json.dumps(
        {
            'type': kind,
            'id': id,
            'code': code,
            'issuedAtEpochMillis': epoch_millis(issued_at),
        }
    )


def parse_payload(raw: str) -> ScannedCredential:
    """Read a scanned value; anything that is not a payload is a typed code."""
    raw = (raw or '').strip()
    try:
        parsed = json.loads(raw)
    except ValueError:
        parsed = None

    if isinstance(parsed, dict) and parsed.get('code'):
        return ScannedCredential(
            type=parsed.get('type'),
            id=str(parsed['id']) if parsed.get('id') else None,
            code=normalize_code(str(parsed['code'])),
            raw=str(parsed['code']).strip(),
        )
    return ScannedCredential(type=None, id=None, code=normalize_code(raw), raw=raw)


def insert_with_unique_code(
    db: Session,
    build: Callable[[str], T],
    label: str,
    max_attempts: Optional[int] = None,
) -> T:
    """
    Insert the object returned by ``build(code)``, drawing a new code each
    time the database reports a unique-index violation.

    The row is flushed, not committed. It must be the first write of the
    caller's transaction, since a collision rolls the session back.
    """
    max_attempts = max_attempts or settings.CODE_GENERATION_MAX_ATTEMPTS
    for attempt in range(1, max_attempts + 1):
        db_obj = build(generate_alpha_code())
        db.add(db_obj)
        try:
            db.flush()
        except IntegrityError as e:
            db.rollback()
            logger.warning(
                'Code collision creating %s (attempt %s/%s): %s',
                label,
                attempt,
                max_attempts,
                str(e.orig),
            )
            continue
        return db_obj

    logger.error('Giving up generating a %s code after %s attempts', label, max_attempts)
    raise CodeGenerationError(max_attempts)


def generate_qr_base64(data: str) -> str:
    """
    Render ``data`` as a QR code and return the PNG image Base64-encoded.

    :param data: The payload to encode
    :return: Base64 string of the PNG image
    """
    qr = qrcode.QRCode(
        version=1,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=2,
    )
    qr.add_data(data)
    qr.make(fit=True)

    img = qr.make_image(fill_color='black', back_color='white')

    buffered = BytesIO()
    img.save(buffered, format='PNG')
    return base64.b64encode(buffered.getvalue()).decode('utf-8')
