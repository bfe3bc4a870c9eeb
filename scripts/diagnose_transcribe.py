import argparse
import os
import sys
import time

ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), "..", "src"))
if ROOT not in sys.path:
    sys.path.insert(0, ROOT)

from dotenv import load_dotenv

from recapframe.audio_utils import clip_from_path
from recapframe.config import load_or_default
from recapframe.errors import RecapError, describe_error
from recapframe.transcriber import build_transcriber, format_timestamped_transcript


def main() -> int:
    parser = argparse.ArgumentParser()
    parser.add_argument("audio_path", help="Path to audio file to transcribe.")
    parser.add_argument("--config", default="recapframe_config.yml", help="Config.")
    parser.add_argument(
        "--backend", choices=["openai", "local"], help="Override the backend."
    )
    parser.add_argument("--model", help="Local Whisper model name.")
    parser.add_argument("--timestamps", action="store_true", help="Show segments.")
    args = parser.parse_args()

    load_dotenv()
    cfg = load_or_default(args.config)
    if args.backend:
        cfg.transcription.backend = args.backend
    if args.model:
        cfg.transcription.local_model = args.model

    started = time.time()
    try:
        transcriber = build_transcriber(cfg)
        transcript = transcriber.transcribe(
            clip_from_path(args.audio_path),
            with_timestamps=args.timestamps,
            progress_cb=lambda event: print(f"{event.phase} {event.percent}%"),
        )
    except RecapError as exc:
        print(describe_error(exc))
        return 1
    elapsed = time.time() - started

    print(format_timestamped_transcript(transcript))
    print(f"Characters: {len(transcript.text)}")
    print(f"Segments: {len(transcript.segments or [])}")
    print(f"Elapsed: {elapsed:.2f}s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
