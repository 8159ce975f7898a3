"""Tests for text, date, validator and logging helpers."""

import json
import logging

from aeo_scoring.utils.dates import parse_date
from aeo_scoring.utils.logging import JSONFormatter, get_logger
from aeo_scoring.utils.text import average_sentence_length, get_hostname, normalize_domain, split_sentences
from aeo_scoring.utils.validators import (
    clamp_confidence,
    extract_json_object,
    is_valid_authority_response,
    is_valid_category_response,
)


def test_parse_date_formats():
    """ISO, RFC 2822 and written dates all parse to UTC."""
    assert parse_date("2026-05-01T10:00:00Z").isoformat() == "2026-05-01T10:00:00+00:00"
    assert parse_date("2026-05-01").day == 1
    assert parse_date("Fri, 01 May 2026 10:00:00 GMT").hour == 10
    assert parse_date("May 1st, 2026").month == 5
    assert parse_date("soon") is None
    assert parse_date(None) is None


def test_split_sentences_keeps_abbreviations():
    """Periods in known abbreviations do not end a sentence."""
    sentences = split_sentences("Dr. Smith wrote this. It is short, e.g. two lines.")
    assert sentences == ["Dr. Smith wrote this.", "It is short, e.g. two lines."]
    assert average_sentence_length("One two three. Four five six seven.") == 3.5


def test_hostname_helpers():
    """Hostnames are lower-cased without www."""
    assert get_hostname("https://WWW.Example.com/path?q=1") == "example.com"
    assert get_hostname("not a url") == ""
    assert normalize_domain("https://www.Example.com/about") == "example.com"
    assert normalize_domain("www.example.com/about") == "example.com"


def test_extract_json_object_from_fenced_output():
    """JSON wrapped in prose or fences is recovered."""
    assert extract_json_object('Sure!\n```json\n{"category": "faq"}\n```') == {"category": "faq"}
    assert extract_json_object("no json here") is None
    assert extract_json_object("{broken") is None


def test_response_validators():
    """Category and authority payload shapes are checked."""
    assert is_valid_category_response({"category": "faq", "confidence": 0.8}, ["faq"])
    assert not is_valid_category_response({"category": "poem"}, ["faq"])
    assert not is_valid_category_response({"category": "faq", "confidence": "high"}, ["faq"])
    assert is_valid_authority_response({"authority": {"hasAuthor": False}})
    assert not is_valid_authority_response({"authority": {"hasAuthor": "yes"}})
    assert clamp_confidence(1.7) == 1.0
    assert clamp_confidence(True) == 0.5


def test_json_formatter_includes_context_fields():
    """Known extra fields are copied into the JSON line."""
    record = logging.LogRecord("aeo_scoring.test", logging.INFO, __file__, 10, "scored %s", ("page",), None)
    record.run_id = "run-1"
    record.rule_id = "structure.hierarchy_schema"

    payload = json.loads(JSONFormatter().format(record))
    assert payload["message"] == "scored page"
    assert payload["level"] == "INFO"
    assert payload["run_id"] == "run-1"
    assert payload["rule_id"] == "structure.hierarchy_schema"


def test_structured_logger_stamps_run_id(caplog):
    """Records from the structured logger carry the run id."""
    logger = get_logger("aeo_scoring.tests")
    logger.set_run_id("abc123")
    with caplog.at_level(logging.INFO, logger="aeo_scoring.tests"):
        logger.info("hello")
    assert caplog.records[-1].run_id == "abc123"
