from datetime import datetime

from recapframe.models import MeetingRecord, QuizQuestion, Sentiment
from recapframe.quiz import QuizAttempt
from recapframe.renderer import (
    PAGE_BREAK,
    display_date,
    paginate_meeting,
    paginate_quiz_results,
    render_meeting_markdown,
    write_document,
)


def _record(text="We approved the budget.", summary=None):
    return MeetingRecord(
        id="meeting-2026-01-13T15-30-00-000Z",
        title="Budget Review",
        timestamp="2026-01-13T15:30:00.000Z",
        text=text,
        summary=summary or ["Budget approved"],
        action_items=["Send minutes"],
        sentiment=Sentiment(overall="positive", positive=0.756, negative=0.1),
    )


def test_display_date():
    assert display_date("2026-01-13T15:30:00.000Z") == "Jan 13, 2026, 03:30 PM"
    assert display_date("not a date") == "not a date"


def test_render_meeting_markdown_includes_frontmatter():
    note = render_meeting_markdown(_record())
    assert note.startswith("---\n")
    assert 'title: "Budget Review"' in note
    assert "# Budget Review" in note
    assert "- Budget approved" in note
    assert "- [ ] Send minutes" in note
    assert "- Overall Tone: POSITIVE" in note
    assert "- Positive Score: 76%" in note
    assert "## Full Transcript" in note


def test_paginate_meeting_section_order():
    lines = [line for page in paginate_meeting(_record()) for line in page]
    headings = ["Summary", "Action Items", "Sentiment Analysis", "Full Transcript"]
    positions = [lines.index(h) for h in headings]
    assert positions == sorted(positions)
    assert lines[0].strip() == "Budget Review"
    assert "Date: Jan 13, 2026, 03:30 PM" in lines
    assert "Negative Score: 10%" in lines


def test_paginate_meeting_wraps_and_breaks_pages():
    text = " ".join(["word"] * 400)
    pages = paginate_meeting(_record(text=text), width=40, page_lines=20)
    assert len(pages) > 1
    assert all(len(page) <= 20 for page in pages)
    assert all(len(line) <= 40 for page in pages for line in page)


def test_bullets_are_not_split_across_pages():
    summary = ["point " * 12] * 6
    pages = paginate_meeting(_record(summary=summary), width=30, page_lines=12)
    assert len(pages) > 1
    for page in pages[1:]:
        if page and page[0].startswith("  "):
            raise AssertionError("bullet continuation at top of page")


def test_paginate_quiz_results():
    questions = [
        QuizQuestion("q-1", "multiple-choice", "When is launch?", "B", "Friday was agreed.", ["Monday", "Friday", "Sunday", "Never"]),
        QuizQuestion("q-2", "true-false", "Budget approved?", "true", "It was approved."),
    ]
    attempt = QuizAttempt(questions)
    attempt.answer("q-1", "A")
    attempt.answer("q-2", "true")

    lines = [
        line
        for page in paginate_quiz_results(questions, attempt, date=datetime(2026, 1, 13, 9, 0))
        for line in page
    ]
    assert "Score: 1/2 (50%)" in lines
    assert "    B. Friday" in lines
    assert "Your answer: A" in lines
    assert "Correct answer: B" in lines
    assert lines.count("Correct answer: true") == 0
    assert "Explanation: It was approved." in lines


def test_write_document_separates_pages(tmp_path):
    path = tmp_path / "out.txt"
    write_document([["page one"], ["page two"]], str(path))
    content = path.read_text(encoding="utf-8")
    assert content == f"page one\n{PAGE_BREAK}\npage two\n"
