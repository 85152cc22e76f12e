"""Decode one stream message (a JSON object) into an Entry."""

import json
import re
from datetime import datetime, timezone

from logtree.models import Entry, Level


class DecodeError(ValueError):
    """Raised when a message cannot be turned into an Entry."""


# Go's RFC3339Nano carries up to 9 fractional digits; datetime keeps 6.
_FRACTION = re.compile(r"(\.\d{6})\d+")

_LEVEL_ALIASES = {
    "WARNING": "WARN",
    "ERR": "ERROR",
}

_SCALARS = (str, int, float, bool, type(None))


def decode(raw) -> Entry:
    """Parse *raw* (str or bytes) into an Entry. Raises DecodeError."""
    if isinstance(raw, (bytes, bytearray)):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DecodeError(f"payload is not UTF-8: {exc}") from exc

    try:
        obj = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise DecodeError(f"invalid JSON: {exc}") from exc

    if not isinstance(obj, dict):
        raise DecodeError(f"expected a JSON object, got {type(obj).__name__}")

    return decode_object(obj)


def decode_object(obj: dict) -> Entry:
    """Build an Entry from an already-parsed JSON object."""
    entry_id = _as_id(obj.get("id"))
    if entry_id is None:
        raise DecodeError("missing 'id'")

    if "level" not in obj:
        raise DecodeError(f"entry {entry_id}: missing 'level'")
    if "timestamp" not in obj:
        raise DecodeError(f"entry {entry_id}: missing 'timestamp'")

    meta = _parse_meta(obj.get("meta"), entry_id)

    parent_id = _as_id(obj.get("parent_id"))
    if parent_id is None:
        parent_id = _as_id(meta.get("parent_id"))

    correlation_key = _as_id(obj.get("correlation_key"))
    if correlation_key is None:
        correlation_key = _as_id(obj.get("aggregate_id"))
    if correlation_key is None:
        correlation_key = _as_id(meta.get("aggregate_id"))

    message = obj.get("message")
    if message is None:
        message = ""
    elif not isinstance(message, str):
        message = str(message)

    return Entry(
        id=entry_id,
        level=parse_level(obj["level"]),
        timestamp=parse_timestamp(obj["timestamp"]),
        message=message,
        parent_id=parent_id,
        correlation_key=correlation_key,
        meta=meta,
    )


def parse_level(value) -> Level:
    """Map a producer level name onto the closed Level set.

    slog renders intermediate levels as ``INFO+2``; those map to their base.
    """
    if not isinstance(value, str) or not value.strip():
        raise DecodeError(f"invalid level: {value!r}")

    name = re.split(r"[+-]", value.strip().upper(), maxsplit=1)[0]
    name = _LEVEL_ALIASES.get(name, name)
    try:
        return Level(name)
    except ValueError:
        raise DecodeError(f"unknown level: {value!r}") from None


def parse_timestamp(value) -> datetime:
    """Accept an ISO 8601 string or epoch milliseconds; always returns UTC-aware."""
    if isinstance(value, bool):
        raise DecodeError(f"invalid timestamp: {value!r}")

    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value / 1000.0, tz=timezone.utc)
        except (OverflowError, OSError, ValueError) as exc:
            raise DecodeError(f"timestamp out of range: {value!r}") from exc

    if not isinstance(value, str) or not value.strip():
        raise DecodeError(f"invalid timestamp: {value!r}")

    text = value.strip()
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    text = _FRACTION.sub(r"\1", text)

    try:
        ts = datetime.fromisoformat(text)
    except ValueError:
        raise DecodeError(f"invalid timestamp: {value!r}") from None

    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return ts


def _parse_meta(value, entry_id: str) -> dict:
    if value is None:
        return {}
    if not isinstance(value, dict):
        raise DecodeError(f"entry {entry_id}: 'meta' must be an object")

    meta = {}
    for key, item in value.items():
        if isinstance(item, _SCALARS):
            meta[str(key)] = item
        else:
            meta[str(key)] = json.dumps(item, separators=(",", ":"), sort_keys=True)
    return meta


def _as_id(value):
    """Normalise an id-like field; empty or missing means absent."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value or None
    return None
