"""Meeting and quiz export rendering."""

from __future__ import annotations

import math
import textwrap
from datetime import datetime
from typing import List, Optional

from .models import MeetingRecord, QuizQuestion
from .quiz import MULTIPLE_CHOICE, QuizAttempt

PAGE_WIDTH = 80
PAGE_LINES = 54
PAGE_BREAK = "\f"


def _yaml_quote(value: str) -> str:
    escaped = value.replace("\\", "\\\\").replace('"', '\\"')
    return f"\"{escaped}\""


def _clean_text(value: str) -> str:
    return " ".join(value.split())


def display_date(timestamp: str) -> str:
    try:
        parsed = datetime.fromisoformat(timestamp.replace("Z", "+00:00"))
    except ValueError:
        return timestamp
    return parsed.strftime("%b %d, %Y, %I:%M %p")


def as_percent(value: float) -> int:
    return math.floor(value * 100 + 0.5)


def render_meeting_markdown(record: MeetingRecord) -> str:
    lines: List[str] = []
    lines.append("---")
    lines.append("schema: 1")
    lines.append(f"id: {_yaml_quote(record.id)}")
    lines.append(f"title: {_yaml_quote(record.title)}")
    lines.append(f"date: {_yaml_quote(record.timestamp)}")
    lines.append(f"sentiment: {_yaml_quote(record.sentiment.overall)}")
    lines.append("---")
    lines.append("")
    lines.append(f"# {_clean_text(record.title)}")
    lines.append("")
    lines.append(f"- Date: {display_date(record.timestamp)}")
    lines.append("")
    lines.append("## Summary")
    lines.append("")
    lines.extend(f"- {_clean_text(point)}" for point in record.summary)
    lines.append("")
    lines.append("## Action Items")
    lines.append("")
    lines.extend(f"- [ ] {_clean_text(item)}" for item in record.action_items)
    lines.append("")
    lines.append("## Sentiment Analysis")
    lines.append("")
    lines.append(f"- Overall Tone: {record.sentiment.overall.upper()}")
    lines.append(f"- Positive Score: {as_percent(record.sentiment.positive)}%")
    lines.append(f"- Negative Score: {as_percent(record.sentiment.negative)}%")
    lines.append("")
    lines.append("## Full Transcript")
    lines.append("")
    lines.append(record.text)
    lines.append("")
    return "\n".join(lines)


class PageLayout:
    """Accumulates word-wrapped lines into fixed-height pages."""

    def __init__(self, width: int = PAGE_WIDTH, page_lines: int = PAGE_LINES) -> None:
        if width < 10 or page_lines < 5:
            raise ValueError("Page too small for export layout.")
        self.width = width
        self.page_lines = page_lines
        self.pages: List[List[str]] = [[]]

    @property
    def remaining(self) -> int:
        return self.page_lines - len(self.pages[-1])

    def new_page(self) -> None:
        if self.pages[-1]:
            self.pages.append([])

    def wrap(self, text: str, indent: int = 0, hanging: int = 0) -> List[str]:
        prefix = " " * indent
        wrapped = textwrap.wrap(
            text,
            width=self.width,
            initial_indent=prefix,
            subsequent_indent=prefix + " " * hanging,
        )
        return wrapped or [prefix.rstrip()]

    def block(self, lines: List[str]) -> None:
        """Place lines together, starting a new page if they do not fit."""
        if len(lines) > self.remaining and len(lines) <= self.page_lines:
            self.new_page()
        for line in lines:
            self.line(line)

    def line(self, text: str) -> None:
        if self.remaining <= 0:
            self.new_page()
        self.pages[-1].append(text)

    def blank(self) -> None:
        if self.pages[-1] and self.remaining > 0:
            self.pages[-1].append("")

    def heading(self, text: str, min_following: int = 2) -> None:
        if self.remaining < 1 + min_following:
            self.new_page()
        self.line(text)

    def bullets(self, items: List[str], marker: str = "•") -> None:
        for item in items:
            self.block(self.wrap(f"{marker} {item}", hanging=len(marker) + 1))


def paginate_meeting(
    record: MeetingRecord,
    width: int = PAGE_WIDTH,
    page_lines: int = PAGE_LINES,
) -> List[List[str]]:
    """Lay out title, date, summary, action items, sentiment and transcript."""
    layout = PageLayout(width, page_lines)
    for line in layout.wrap(record.title):
        layout.line(line.center(width).rstrip())
    layout.blank()
    layout.block(layout.wrap(f"Date: {display_date(record.timestamp)}"))
    layout.blank()

    layout.heading("Summary")
    layout.bullets(record.summary)
    layout.blank()

    layout.heading("Action Items")
    layout.bullets(record.action_items)
    layout.blank()

    layout.heading("Sentiment Analysis", min_following=3)
    layout.line(f"Overall Tone: {record.sentiment.overall.upper()}")
    layout.line(f"Positive Score: {as_percent(record.sentiment.positive)}%")
    layout.line(f"Negative Score: {as_percent(record.sentiment.negative)}%")
    layout.blank()

    layout.heading("Full Transcript")
    for paragraph in record.text.splitlines() or [""]:
        for line in layout.wrap(paragraph):
            layout.line(line)
    return layout.pages


def paginate_quiz_results(
    questions: List[QuizQuestion],
    attempt: QuizAttempt,
    width: int = PAGE_WIDTH,
    page_lines: int = PAGE_LINES,
    date: Optional[datetime] = None,
) -> List[List[str]]:
    layout = PageLayout(width, page_lines)
    layout.line("Quiz Results".center(width).rstrip())
    layout.blank()
    layout.line(f"Date: {(date or datetime.now()).strftime('%b %d, %Y, %I:%M %p')}")
    total = len(questions)
    layout.line(f"Score: {attempt.correct_count}/{total} ({attempt.score}%)")
    layout.blank()

    for number, question in enumerate(questions, start=1):
        state = attempt.state(question.id)
        answer = state.selected_answer if state and state.selected_answer else "-"
        correct = bool(state and state.is_correct)
        lines = layout.wrap(f"Question {number}: {question.question}")
        if question.type == MULTIPLE_CHOICE and question.options:
            for letter, option in zip("ABCD", question.options):
                lines.extend(layout.wrap(f"{letter}. {option}", indent=4))
        lines.append("")
        lines.append(f"Your answer: {answer}")
        if not correct:
            lines.append(f"Correct answer: {question.correct_answer}")
        lines.extend(layout.wrap(f"Explanation: {question.explanation}"))
        layout.block(lines)
        layout.blank()
    return layout.pages


def write_document(pages: List[List[str]], path: str) -> None:
    body = f"\n{PAGE_BREAK}\n".join("\n".join(page) for page in pages)
    with open(path, "w", encoding="utf-8") as handle:
        handle.write(body + "\n")
