"""Tests for logtree/formatter.py"""

import logging
from datetime import datetime, timezone

import pytest

from logtree.formatter import (
    FormattedEntry,
    FormatterError,
    TemplateFormatter,
    fallback,
    safe_format,
    validate_template,
)
from logtree.models import Entry, Level


def _entry(**overrides) -> Entry:
    fields = dict(
        id="42",
        level=Level.WARN,
        timestamp=datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc),
        message="slow query",
        correlation_key="req-1",
        meta={"pkg": "db", "fn": "Query", "duration": 12.5},
    )
    fields.update(overrides)
    return Entry(**fields)


class TestTemplateFormatter:
    def test_defaults(self):
        result = TemplateFormatter().format(_entry())
        assert result == FormattedEntry(title="slow query", subtitle="db.Query")

    def test_entry_fields(self):
        formatter = TemplateFormatter(title="[{level}] {message}", subtitle="{correlation_key}#{id}")
        result = formatter(_entry())
        assert result.title == "[WARN] slow query"
        assert result.subtitle == "req-1#42"

    def test_format_spec_applies(self):
        formatter = TemplateFormatter(title="{meta.duration:.0f}ms", subtitle="{id:>4}")
        result = formatter(_entry())
        assert result.title == "12ms"
        assert result.subtitle == "  42"

    def test_timestamp_format_spec(self):
        formatter = TemplateFormatter(title="{timestamp:%H:%M}")
        assert formatter(_entry()).title == "12:00"

    def test_missing_meta_falls_back_per_field(self):
        formatter = TemplateFormatter(title="{message}", subtitle="{meta.pkg}.{meta.fn}")
        result = formatter(_entry(meta={"pkg": "db"}))
        assert result.title == "slow query"
        assert result.subtitle == ""

    def test_missing_optional_field_falls_back(self):
        formatter = TemplateFormatter(title="{parent_id}: {message}")
        result = formatter(_entry())
        assert result.title == "slow query"
        assert result.subtitle == "db.Query"

    def test_bad_format_spec_falls_back(self):
        formatter = TemplateFormatter(title="{message:d}")
        assert formatter(_entry()).title == "slow query"


class TestValidateTemplate:
    @pytest.mark.parametrize("template", [
        "{message}",
        "{level} {timestamp}",
        "{meta.anything}",
        "plain text",
        "{{literal braces}}",
    ])
    def test_accepted(self, template):
        validate_template(template)

    @pytest.mark.parametrize("template", [
        "{}",
        "{0}",
        "{entry}",
        "{message.__class__}",
        "{meta[pkg]}",
        "{meta.}",
        "{message",
    ])
    def test_rejected(self, template):
        with pytest.raises(FormatterError):
            validate_template(template)

    def test_constructor_validates(self):
        with pytest.raises(FormatterError):
            TemplateFormatter(title="{__init__}")


class TestSafeFormat:
    def test_passes_formatted_entry_through(self):
        result = safe_format(TemplateFormatter(), _entry())
        assert result.title == "slow query"

    def test_accepts_dict_output(self):
        result = safe_format(lambda e: {"title": e.id, "subtitle": "x"}, _entry())
        assert result == FormattedEntry(title="42", subtitle="x")

    def test_dict_without_subtitle(self):
        result = safe_format(lambda e: {"title": "t"}, _entry())
        assert result == FormattedEntry(title="t", subtitle="")

    def test_raising_formatter_falls_back(self, caplog):
        def broken(_entry):
            raise RuntimeError("boom")

        with caplog.at_level(logging.WARNING, logger="logtree.formatter"):
            result = safe_format(broken, _entry())
        assert result == fallback(_entry())
        assert "boom" in caplog.text

    @pytest.mark.parametrize("output", [None, "a string", {"title": 3}, {"subtitle": "s"}])
    def test_malformed_output_falls_back(self, output):
        result = safe_format(lambda e: output, _entry())
        assert result == FormattedEntry(title="slow query", subtitle="")
