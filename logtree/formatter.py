"""Entry formatting — restricted display templates with per-field fallbacks.

Operators configure display text with ``str.format`` style templates such as
``"[{level}] {message}"`` or ``"{meta.pkg}.{meta.fn}"``. Only the entry fields
below and ``meta.<key>`` lookups are resolvable; attribute access, indexing
and positional fields are rejected. Nothing operator-supplied is executed.
"""

import logging
import string
from dataclasses import dataclass
from typing import Callable

from logtree.models import Entry

logger = logging.getLogger(__name__)

FIELDS = ("id", "parent_id", "correlation_key", "message", "level", "timestamp")

DEFAULT_TITLE = "{message}"
DEFAULT_SUBTITLE = "{meta.pkg}.{meta.fn}"


class FormatterError(Exception):
    """A template could not be rendered for an entry."""


@dataclass(frozen=True)
class FormattedEntry:
    title: str
    subtitle: str


def fallback(entry: Entry) -> FormattedEntry:
    return FormattedEntry(title=entry.message, subtitle="")


class _FieldFormatter(string.Formatter):
    """string.Formatter that resolves names against one entry only."""

    def get_field(self, field_name, args, kwargs):
        entry = kwargs["entry"]
        return _resolve(entry, field_name), field_name


def _resolve(entry: Entry, field_name: str):
    if field_name.startswith("meta."):
        key = field_name[len("meta."):]
        if not key or any(ch in key for ch in "[]"):
            raise FormatterError(f"invalid meta field: {field_name!r}")
        value = entry.meta.get(key)
        if value is None:
            raise FormatterError(f"entry {entry.id} has no meta.{key}")
        return value

    if field_name not in FIELDS:
        raise FormatterError(f"unknown field: {field_name!r}")

    value = getattr(entry, field_name)
    if field_name == "level":
        return value.value
    if value is None:
        raise FormatterError(f"entry {entry.id} has no {field_name}")
    return value


def validate_template(template: str):
    """Reject templates that could never render. Raises FormatterError."""
    try:
        parsed = list(string.Formatter().parse(template))
    except ValueError as exc:
        raise FormatterError(f"malformed template {template!r}: {exc}") from exc

    for _literal, field_name, format_spec, _conversion in parsed:
        if field_name is None:
            continue
        if field_name == "" or field_name.isdigit():
            raise FormatterError(f"positional fields are not allowed: {template!r}")
        if field_name.startswith("meta."):
            if "[" in field_name or field_name == "meta.":
                raise FormatterError(f"invalid meta field in {template!r}")
        elif field_name not in FIELDS:
            raise FormatterError(f"unknown field {field_name!r} in {template!r}")
        if format_spec and "{" in format_spec:
            validate_template(format_spec)


class TemplateFormatter:
    """Render title and subtitle from templates.

    A field that fails to render falls back on its own: the title becomes the
    raw message and the subtitle becomes empty.
    """

    def __init__(self, title: str = DEFAULT_TITLE, subtitle: str = DEFAULT_SUBTITLE):
        validate_template(title)
        validate_template(subtitle)
        self.title_template = title
        self.subtitle_template = subtitle
        self._formatter = _FieldFormatter()

    def render(self, template: str, entry: Entry) -> str:
        """Render one template. Raises FormatterError."""
        try:
            return self._formatter.vformat(template, (), {"entry": entry})
        except FormatterError:
            raise
        except (ValueError, TypeError, KeyError, IndexError) as exc:
            raise FormatterError(f"cannot render {template!r} for entry {entry.id}: {exc}") from exc

    def format(self, entry: Entry) -> FormattedEntry:
        try:
            title = self.render(self.title_template, entry)
        except FormatterError as exc:
            logger.debug("Title fallback for %s: %s", entry.id, exc)
            title = entry.message
        try:
            subtitle = self.render(self.subtitle_template, entry)
        except FormatterError as exc:
            logger.debug("Subtitle fallback for %s: %s", entry.id, exc)
            subtitle = ""
        return FormattedEntry(title=title, subtitle=subtitle)

    __call__ = format


def safe_format(formatter: Callable[[Entry], object], entry: Entry) -> FormattedEntry:
    """Call any formatter and coerce its output, falling back on failure.

    Accepts a FormattedEntry or a mapping with ``title`` and ``subtitle``
    strings; anything else counts as malformed output.
    """
    try:
        result = formatter(entry)
    except Exception as exc:
        logger.warning("Formatter failed for entry %s: %s", entry.id, exc)
        return fallback(entry)

    if isinstance(result, FormattedEntry):
        return result
    if isinstance(result, dict):
        title, subtitle = result.get("title"), result.get("subtitle", "")
        if isinstance(title, str) and isinstance(subtitle, str):
            return FormattedEntry(title=title, subtitle=subtitle)

    logger.warning("Formatter returned malformed output for entry %s: %r", entry.id, result)
    return fallback(entry)
