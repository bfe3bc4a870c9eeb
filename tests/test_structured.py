import pytest

from recapframe.analysis import ANALYSIS_PARSER
from recapframe.errors import ValidationError
from recapframe.structured import as_string, as_string_list, parse_json


def _payload(**overrides):
    data = {
        "summary": ["Budget approved"],
        "actionItems": ["Send minutes"],
        "sentiment": {"overall": "positive", "positive": 0.8, "negative": 0.1},
    }
    data.update(overrides)
    return data


def test_valid_payload_passes_unchanged():
    parsed = ANALYSIS_PARSER.parse(_payload())
    assert parsed.summary == ["Budget approved"]
    assert parsed.action_items == ["Send minutes"]
    assert parsed.sentiment.positive == 0.8


def test_integer_scores_are_accepted():
    parsed = ANALYSIS_PARSER.parse(_payload(sentiment={"overall": "neutral", "positive": 1, "negative": 0}))
    assert parsed.sentiment.positive == 1


def test_string_summary_is_wrapped():
    parsed = ANALYSIS_PARSER.parse(_payload(summary="Only one point"))
    assert parsed.summary == ["Only one point"]


def test_sentiment_defaults_and_numeric_strings():
    parsed = ANALYSIS_PARSER.parse(_payload(sentiment={"positive": "0.6"}))
    assert parsed.sentiment.overall == "neutral"
    assert parsed.sentiment.positive == 0.6
    assert parsed.sentiment.negative == 0.0


def test_missing_lists_become_empty():
    parsed = ANALYSIS_PARSER.parse({"sentiment": {"overall": "neutral", "positive": 0, "negative": 0}})
    assert parsed.summary == []
    assert parsed.action_items == []


def test_unrepairable_payload_raises():
    with pytest.raises(ValidationError) as info:
        ANALYSIS_PARSER.parse(_payload(sentiment={"overall": "neutral", "positive": "lots"}))
    assert info.value.reason == "shape"

    with pytest.raises(ValidationError):
        ANALYSIS_PARSER.parse(["not", "an", "object"])


def test_parse_many_drops_bad_items():
    good = _payload()
    bad = _payload(sentiment={"overall": "neutral", "positive": "n/a"})
    survivors = ANALYSIS_PARSER.parse_many([good, bad, good])
    assert len(survivors) == 2


def test_parse_json_reports_json_reason():
    with pytest.raises(ValidationError) as info:
        parse_json("{not json")
    assert info.value.reason == "json"


def test_coercion_helpers():
    assert as_string_list([1, "two"]) == ["1", "two"]
    assert as_string_list(None) == []
    assert as_string(True) == "true"
    assert as_string(3) == "3"
    assert as_string(None) is None
