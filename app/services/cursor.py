from __future__ import annotations

import base64
import binascii
import json
import logging

from pydantic import ValidationError

from app.core.errors import InvalidCursorError
from app.schemas.pagination import Cursor

_LOG = logging.getLogger("app.pagination")


def encode_cursor(cursor: Cursor) -> str:
    payload = json.dumps({"offset": cursor.offset, "direction": cursor.direction}, separators=(",", ":"))
    return base64.urlsafe_b64encode(payload.encode("utf-8")).decode("ascii").rstrip("=")


def decode_cursor(raw: str) -> Cursor:
    text = str(raw or "").strip()
    if not text:
        raise InvalidCursorError("Empty cursor")
    padded = text + "=" * (-len(text) % 4)
    try:
        decoded = base64.urlsafe_b64decode(padded.encode("ascii"))
        payload = json.loads(decoded.decode("utf-8"))
    except (binascii.Error, UnicodeError, ValueError) as exc:
        raise InvalidCursorError(f"Malformed cursor: {raw!r}") from exc
    if not isinstance(payload, dict):
        raise InvalidCursorError(f"Malformed cursor: {raw!r}")
    try:
        return Cursor.model_validate(payload)
    except ValidationError as exc:
        raise InvalidCursorError(f"Malformed cursor: {raw!r}") from exc


def decode_cursor_or_none(raw: str | None) -> Cursor | None:
    if raw is None or not str(raw).strip():
        return None
    try:
        return decode_cursor(raw)
    except InvalidCursorError:
        _LOG.warning("Ignoring malformed pagination cursor %r", raw)
        return None
