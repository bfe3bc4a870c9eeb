import json

import pytest

from recapframe.analysis import DEFAULT_TITLE, AnalysisEngine, fallback_analysis
from recapframe.errors import ConfigurationError, ServiceError


class FakeLLM:
    def __init__(self, replies=None, error=None):
        self.replies = list(replies or [])
        self.error = error
        self.calls = []

    def chat(self, messages, max_tokens=1000, temperature=0.7, json_object=False, model=None):
        self.calls.append(
            {"messages": messages, "max_tokens": max_tokens, "json_object": json_object}
        )
        if self.error is not None:
            raise self.error
        return self.replies.pop(0) if self.replies else ""


def _reply(**overrides):
    data = {
        "summary": ["Budget approved", "Launch moved to May"],
        "actionItems": ["Alex to send minutes"],
        "sentiment": {"overall": "positive", "positive": 0.7, "negative": 0.1},
    }
    data.update(overrides)
    return json.dumps(data)


def test_analyze_returns_structured_result():
    llm = FakeLLM([_reply()])
    result = AnalysisEngine(llm).analyze("We approved the budget.")

    assert result.summary == ["Budget approved", "Launch moved to May"]
    assert result.action_items == ["Alex to send minutes"]
    assert result.sentiment.overall == "positive"
    assert result.sentiment.positive == 0.7
    assert llm.calls[0]["json_object"] is True
    assert "We approved the budget." in llm.calls[0]["messages"][1]["content"]


def test_analyze_repairs_loose_output():
    llm = FakeLLM([_reply(summary="Single point", sentiment={"positive": "0.5", "negative": 0})])
    result = AnalysisEngine(llm).analyze("text")
    assert result.summary == ["Single point"]
    assert result.sentiment.overall == "neutral"
    assert result.sentiment.positive == 0.5


def test_analyze_falls_back_on_malformed_json():
    result = AnalysisEngine(FakeLLM(["this is not json"])).analyze("text")
    assert result == fallback_analysis()
    assert result.summary == ["Unable to generate summary."]
    assert result.action_items == ["No action items identified."]


def test_analyze_falls_back_on_empty_content():
    assert AnalysisEngine(FakeLLM([""])).analyze("text") == fallback_analysis()


def test_analyze_falls_back_on_service_error():
    engine = AnalysisEngine(FakeLLM(error=ServiceError("boom", status=500)))
    assert engine.analyze("text") == fallback_analysis()


def test_analyze_propagates_configuration_error():
    engine = AnalysisEngine(FakeLLM(error=ConfigurationError("no key")))
    with pytest.raises(ConfigurationError):
        engine.analyze("text")


def test_suggest_title_strips_quotes():
    llm = FakeLLM(['"Quarterly Budget Review"\n'])
    assert AnalysisEngine(llm).suggest_title(["Budget approved"]) == "Quarterly Budget Review"
    assert "Budget approved" in llm.calls[0]["messages"][1]["content"]


def test_suggest_title_defaults():
    assert AnalysisEngine(FakeLLM([""])).suggest_title([]) == DEFAULT_TITLE
    failing = AnalysisEngine(FakeLLM(error=ServiceError("down")))
    assert failing.suggest_title(["x"]) == DEFAULT_TITLE


def test_string_summary_with_empty_action_items_passes_through():
    reply = json.dumps(
        {
            "summary": "one point",
            "actionItems": [],
            "sentiment": {"overall": "neutral", "positive": 0.5, "negative": 0.3},
        }
    )
    result = AnalysisEngine(FakeLLM([reply])).analyze("text")
    assert result.summary == ["one point"]
    assert result.action_items == []
    assert result.sentiment.negative == 0.3


def test_out_of_range_scores_are_not_clamped():
    reply = _reply(sentiment={"overall": "positive", "positive": 1.4, "negative": 0.2})
    result = AnalysisEngine(FakeLLM([reply])).analyze("text")
    assert result.sentiment.positive == 1.4
