"""CLI entry point."""

from __future__ import annotations

import argparse
import logging
import os
import time
from datetime import datetime

from dotenv import load_dotenv

from .analysis import AnalysisEngine
from .audio_utils import clip_from_path
from .config import Config, load_or_default, save_config
from .errors import QUOTA_HELP, ConfigurationError, RecapError, ServiceError, describe_error
from .llm import LanguageModelClient
from .logging_utils import setup_logging
from .models import ProgressEvent, QuizConfig, Transcript
from .qa import QuestionAnswerer
from .quiz import MULTIPLE_CHOICE, OPTION_LETTERS, QuizEngine, QuizSession
from .recorder import AudioRecorder, list_input_devices
from .renderer import (
    as_percent,
    display_date,
    paginate_meeting,
    paginate_quiz_results,
    render_meeting_markdown,
    write_document,
)
from .session import MeetingSession, SessionState, run
from .storage import FileBlobBackend, ensure_structure, export_basename, timestamp_slug
from .store import MeetingStore
from .transcriber import build_transcriber, format_timestamped_transcript

logger = logging.getLogger("recapframe.cli")

DEFAULT_CONFIG = "recapframe_config.yml"


def _print_progress(event: ProgressEvent) -> None:
    print(f"  {event.phase}: {event.percent}%")


def _print_record(record, with_transcript: bool = False) -> None:
    print(record.title)
    print(f"Date: {display_date(record.timestamp)}")
    print("")
    print("Summary:")
    for point in record.summary:
        print(f"  - {point}")
    print("Action Items:")
    for item in record.action_items:
        print(f"  - {item}")
    print(
        f"Sentiment: {record.sentiment.overall.upper()} "
        f"(+{as_percent(record.sentiment.positive)}% / "
        f"-{as_percent(record.sentiment.negative)}%)"
    )
    if with_transcript:
        print("")
        print("Transcript:")
        if record.segments:
            print(format_timestamped_transcript(Transcript(record.text, record.segments)))
        else:
            print(record.text)


def _open_store(cfg: Config, paths: dict, title_fn=None) -> MeetingStore:
    backend = FileBlobBackend(cfg.store.path or paths["store"])
    return MeetingStore(backend, title_fn=title_fn, key=cfg.store.key)


def _build_session(cfg: Config, paths: dict, recorder=None) -> MeetingSession:
    client = LanguageModelClient.from_config(cfg)
    analysis = AnalysisEngine(
        client,
        temperature=cfg.service.temperature,
        max_tokens=cfg.service.analysis_max_tokens,
        title_max_tokens=cfg.service.title_max_tokens,
    )
    answerer = QuestionAnswerer(
        client,
        temperature=cfg.service.temperature,
        max_tokens=cfg.service.answer_max_tokens,
    )
    return MeetingSession(
        transcriber=build_transcriber(cfg),
        analysis=analysis,
        store=_open_store(cfg, paths, title_fn=analysis.suggest_title),
        answerer=answerer,
        recorder=recorder,
    )


def _finish(session: MeetingSession, outcome) -> int:
    if not outcome.ok:
        print(session.error)
        if isinstance(outcome.error, ServiceError) and outcome.error.quota:
            print(QUOTA_HELP)
        return 1
    print("")
    _print_record(outcome.record)
    print("")
    print(f"Saved as {outcome.record.id}")
    return 0


def _require_record(store: MeetingStore, record_id: str):
    record = store.get(record_id)
    if record is None:
        print(f"No meeting with id {record_id}")
    return record


def _read_answer(question) -> str:
    if question.type == MULTIPLE_CHOICE:
        valid = OPTION_LETTERS[: len(question.options or [])]
        prompt = f"Answer ({'/'.join(valid)}): "
    else:
        valid = ("true", "false")
        prompt = "Answer (true/false): "
    while True:
        raw = input(prompt).strip()
        candidate = raw.upper() if question.type == MULTIPLE_CHOICE else raw.lower()
        if candidate in valid:
            return candidate
        print("Please choose one of: " + ", ".join(valid))


def _run_quiz(args, cfg: Config, paths: dict) -> int:
    store = _open_store(cfg, paths)
    record = _require_record(store, args.id)
    if record is None:
        return 1
    engine = QuizEngine(
        LanguageModelClient.from_config(cfg),
        model=cfg.service.quiz_model,
        temperature=cfg.service.temperature,
    )
    quiz = QuizSession(
        engine,
        transcript=record.text,
        config=QuizConfig(
            num_questions=args.questions or cfg.quiz.num_questions,
            difficulty=args.difficulty or cfg.quiz.difficulty,
        ),
    )
    print("Generating questions...")
    attempt = quiz.generate()
    if attempt is None:
        print(describe_error(quiz.error))
        return 1

    number = 0
    for index, group in enumerate(attempt.groups, start=1):
        print(f"\n== Questions {index} of {len(attempt.groups)} ==")
        for question in group:
            number += 1
            print(f"\n{number}. {question.question}")
            if question.type == MULTIPLE_CHOICE:
                for letter, option in zip(OPTION_LETTERS, question.options or []):
                    print(f"   {letter}. {option}")
            state = attempt.answer(question.id, _read_answer(question))
            if state.is_correct:
                print("Correct!")
            else:
                print(f"Incorrect. The answer is {question.correct_answer}.")
            print(question.explanation)

    print(
        f"\nScore: {attempt.correct_count}/{len(attempt.questions)} ({attempt.score}%)"
    )
    if args.export:
        write_document(paginate_quiz_results(attempt.questions, attempt), args.export)
        print(f"Results written to {args.export}")
    return 0


def _record(args, cfg: Config, paths: dict) -> int:
    recorder = AudioRecorder(
        sample_rate_hz=args.rate or cfg.audio.sample_rate_hz,
        channels=args.channels or cfg.audio.channels,
        system_channels=cfg.audio.system_channels,
        device_name=args.device or cfg.device_name,
        system_device_name=args.system_device or cfg.system_device_name,
    )
    session = _build_session(cfg, paths, recorder=recorder)
    session.choose_recording()
    include_system = bool(args.system or cfg.include_system_audio)
    if not session.start_recording(include_system_audio=include_system):
        print(f"Failed to start recording: {session.error}")
        return 1

    if args.duration:
        print(f"Recording for {args.duration} seconds...")
        time.sleep(args.duration)
    else:
        input("Recording... press Enter to stop.")

    clip = recorder.stop()
    wav_path = os.path.join(paths["recordings"], f"recording-{timestamp_slug(datetime.now())}.wav")
    with open(wav_path, "wb") as handle:
        handle.write(clip.data)
    print(f"Wrote {wav_path}")

    with_timestamps = bool(args.timestamps or cfg.with_timestamps)
    stream = session.process(clip, with_timestamps, entry_state=SessionState.RECORDING)
    return _finish(session, run(stream, _print_progress))


def main() -> int:
    parser = argparse.ArgumentParser(prog="recapframe")
    parser.add_argument("--config", default=DEFAULT_CONFIG, help="Config file.")
    sub = parser.add_subparsers(dest="command")

    devices_cmd = sub.add_parser("devices")
    devices_cmd.add_argument("--match", help="Filter device names by substring.")
    devices_cmd.add_argument(
        "--loopback",
        action="store_true",
        help="List output devices for system audio capture (WASAPI).",
    )

    config_cmd = sub.add_parser("config")
    config_cmd.add_argument("--force", action="store_true", help="Overwrite.")

    record_cmd = sub.add_parser("record")
    record_cmd.add_argument(
        "--duration", type=int, help="Seconds. Omit for manual stop."
    )
    record_cmd.add_argument("--device", help="Preferred mic device substring.")
    record_cmd.add_argument("--system-device", help="System device substring.")
    record_cmd.add_argument(
        "--system", action="store_true", help="Also capture system audio."
    )
    record_cmd.add_argument("--rate", type=int, help="Sample rate.")
    record_cmd.add_argument("--channels", type=int, help="Mic channels.")
    record_cmd.add_argument(
        "--timestamps", action="store_true", help="Keep segment timestamps."
    )

    process_cmd = sub.add_parser("process")
    process_cmd.add_argument("audio_path", help="Path to audio file.")
    process_cmd.add_argument(
        "--timestamps", action="store_true", help="Keep segment timestamps."
    )

    sub.add_parser("history")

    show_cmd = sub.add_parser("show")
    show_cmd.add_argument("id", help="Meeting id.")
    show_cmd.add_argument(
        "--transcript", action="store_true", help="Print the full transcript."
    )

    delete_cmd = sub.add_parser("delete")
    delete_cmd.add_argument("id", help="Meeting id.")

    ask_cmd = sub.add_parser("ask")
    ask_cmd.add_argument("id", help="Meeting id.")
    ask_cmd.add_argument("question", help="Question about the meeting.")

    quiz_cmd = sub.add_parser("quiz")
    quiz_cmd.add_argument("id", help="Meeting id.")
    quiz_cmd.add_argument("--questions", type=int, help="Number of questions (5-20).")
    quiz_cmd.add_argument(
        "--difficulty", choices=["easy", "medium", "hard"], help="Difficulty."
    )
    quiz_cmd.add_argument("--export", help="Write graded results to this path.")

    export_cmd = sub.add_parser("export")
    export_cmd.add_argument("id", help="Meeting id.")
    export_cmd.add_argument(
        "--format", choices=["text", "markdown"], default="text", help="Format."
    )
    export_cmd.add_argument("--out", help="Output path.")

    args = parser.parse_args()
    load_dotenv()

    if args.command == "config":
        if os.path.exists(args.config) and not args.force:
            print(f"{args.config} exists. Use --force to overwrite.")
            return 1
        save_config(args.config, Config())
        print(f"Wrote {args.config}")
        return 0

    if args.command == "devices":
        devices = list_input_devices(loopback=bool(args.loopback))
        if args.match:
            devices = [
                d for d in devices if args.match.lower() in d.get("name", "").lower()
            ]
        for device in devices:
            name = device.get("name", "Unknown")
            index = device.get("index", "?")
            if args.loopback:
                line = f"[{index}] {name} (outputs: {device.get('max_output_channels', 0)})"
            else:
                line = f"[{index}] {name} (inputs: {device.get('max_input_channels', 0)})"
            print(line)
        return 0

    if args.command is None:
        parser.print_help()
        return 0

    cfg = load_or_default(args.config)
    paths = ensure_structure(cfg.base_dir)
    try:
        _, log_path = setup_logging(paths["logs"], level=cfg.log_level)
    except ConfigurationError as exc:
        print(exc.message)
        return 1
    logger.info("Command %s", args.command)

    try:
        if args.command == "record":
            return _record(args, cfg, paths)

        if args.command == "process":
            session = _build_session(cfg, paths)
            session.choose_upload()
            clip = clip_from_path(args.audio_path)
            with_timestamps = bool(args.timestamps or cfg.with_timestamps)
            print(f"Processing {clip.filename}...")
            return _finish(session, run(session.upload(clip, with_timestamps), _print_progress))

        if args.command == "history":
            records = _open_store(cfg, paths).list()
            if not records:
                print("No meetings yet.")
            for record in records:
                print(f"{record.id}  {display_date(record.timestamp)}  {record.title}")
            return 0

        if args.command == "show":
            record = _require_record(_open_store(cfg, paths), args.id)
            if record is None:
                return 1
            _print_record(record, with_transcript=args.transcript)
            return 0

        if args.command == "delete":
            if not _open_store(cfg, paths).delete(args.id):
                print(f"No meeting with id {args.id}")
                return 1
            print(f"Deleted {args.id}")
            return 0

        if args.command == "ask":
            session = _build_session(cfg, paths)
            if session.load_record(args.id) is None:
                print(f"No meeting with id {args.id}")
                return 1
            message = session.ask(args.question)
            if message is None:
                print(session.error or "No answer.")
                return 1
            print(message.answer)
            return 0

        if args.command == "quiz":
            return _run_quiz(args, cfg, paths)

        if args.command == "export":
            record = _require_record(_open_store(cfg, paths), args.id)
            if record is None:
                return 1
            suffix = ".md" if args.format == "markdown" else ".txt"
            out_path = args.out or os.path.join(
                paths["exports"], export_basename(record.title) + suffix
            )
            if args.format == "markdown":
                with open(out_path, "w", encoding="utf-8") as handle:
                    handle.write(render_meeting_markdown(record))
            else:
                write_document(paginate_meeting(record), out_path)
            print(f"Wrote {out_path}")
            return 0
    except RecapError as exc:
        logger.error("%s failed: %s", args.command, exc.message)
        print(describe_error(exc))
        print(f"Details in {log_path}")
        return 1

    parser.print_help()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
