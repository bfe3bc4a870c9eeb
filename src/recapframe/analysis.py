"""Meeting analysis: summary points, action items and sentiment."""

from __future__ import annotations

import logging
import re
from typing import List, Union

from pydantic import BaseModel, Field, StrictFloat, StrictInt, StrictStr

from .errors import ConfigurationError, RecapError
from .llm import LanguageModelClient
from .models import AnalysisResult, Sentiment
from .structured import (
    StructuredParser,
    as_number,
    as_string,
    as_string_list,
    nested,
    parse_json,
    with_default,
)

logger = logging.getLogger("recapframe.analysis")

Number = Union[StrictInt, StrictFloat]

DEFAULT_TITLE = "Meeting Summary"

ANALYSIS_SYSTEM_PROMPT = (
    "You are a helpful AI assistant that analyzes meeting transcripts. Always "
    "respond with a valid JSON object containing summary points, action items, "
    "and sentiment analysis."
)

ANALYSIS_USER_PROMPT = """Analyze this meeting transcript and return ONLY a JSON object with this exact structure:
{{
  "summary": ["point 1", "point 2", ...],
  "actionItems": ["item 1", "item 2", ...],
  "sentiment": {{
    "overall": "positive/negative/neutral",
    "positive": 0.0-1.0,
    "negative": 0.0-1.0
  }}
}}

Transcript:
{transcript}"""

TITLE_SYSTEM_PROMPT = (
    "Generate a concise, descriptive title (max 6 words) for a meeting based on "
    "its summary points. The title should capture the main topic or purpose of "
    "the meeting. Do not include quotes in the title."
)


class SentimentShape(BaseModel):
    overall: StrictStr
    positive: Number
    negative: Number


class AnalysisShape(BaseModel):
    summary: List[StrictStr]
    action_items: List[StrictStr] = Field(alias="actionItems")
    sentiment: SentimentShape


ANALYSIS_PARSER = StructuredParser(
    AnalysisShape,
    {
        "summary": as_string_list,
        "actionItems": as_string_list,
        "sentiment": nested(
            {
                "overall": with_default("neutral", as_string),
                "positive": as_number(0.0),
                "negative": as_number(0.0),
            }
        ),
    },
)


def fallback_analysis() -> AnalysisResult:
    return AnalysisResult(
        summary=["Unable to generate summary."],
        action_items=["No action items identified."],
        sentiment=Sentiment(overall="neutral", positive=0.0, negative=0.0),
    )


def to_result(shape: AnalysisShape) -> AnalysisResult:
    return AnalysisResult(
        summary=list(shape.summary),
        action_items=list(shape.action_items),
        sentiment=Sentiment(
            overall=shape.sentiment.overall,
            positive=float(shape.sentiment.positive),
            negative=float(shape.sentiment.negative),
        ),
    )


def strip_quotes(value: str) -> str:
    return re.sub(r"[\"']", "", value)


class AnalysisEngine:
    def __init__(
        self,
        client: LanguageModelClient,
        temperature: float = 0.7,
        max_tokens: int = 1000,
        title_max_tokens: int = 50,
    ) -> None:
        self.client = client
        self.temperature = temperature
        self.max_tokens = max_tokens
        self.title_max_tokens = title_max_tokens

    def analyze(self, text: str) -> AnalysisResult:
        """Analyse a transcript.

        Never raises for malformed service output: anything short of a
        configuration problem yields ``fallback_analysis()``.
        """
        messages = [
            {"role": "system", "content": ANALYSIS_SYSTEM_PROMPT},
            {"role": "user", "content": ANALYSIS_USER_PROMPT.format(transcript=text)},
        ]
        try:
            content = self.client.chat(
                messages,
                max_tokens=self.max_tokens,
                temperature=self.temperature,
                json_object=True,
            )
            if not content:
                raise RecapError("No response from the language model")
            parsed = ANALYSIS_PARSER.parse(parse_json(content))
            return to_result(parsed)
        except ConfigurationError:
            raise
        except RecapError as exc:
            logger.warning("Analysis failed, using fallback: %s", exc.message)
            return fallback_analysis()

    def suggest_title(self, summary: List[str]) -> str:
        messages = [
            {"role": "system", "content": TITLE_SYSTEM_PROMPT},
            {
                "role": "user",
                "content": "Generate a title for a meeting with these summary points:\n"
                + "\n".join(summary),
            },
        ]
        try:
            content = self.client.chat(
                messages,
                max_tokens=self.title_max_tokens,
                temperature=self.temperature,
            )
        except RecapError as exc:
            logger.warning("Title generation failed: %s", exc.message)
            return DEFAULT_TITLE
        title = strip_quotes(content.strip()).strip()
        return title or DEFAULT_TITLE
