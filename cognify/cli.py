"""Command-line front end for the cognify tutor.

Examples:
  # Chat in a new session (press Enter on an empty line to speak)
  python -m cognify chat

  # Continue a session, typing only
  python -m cognify chat --session 3f2c... --text

  # Attach a document to a session
  python -m cognify upload notes.pdf --session 3f2c...

  # List and inspect sessions
  python -m cognify sessions
  python -m cognify show 3f2c...
"""

import argparse
import sys
from pathlib import Path
from typing import Optional

from cognify.config import AppConfig
from cognify.dialogue.engine import ConversationEngine, TurnResult
from cognify.errors import CapabilityUnavailableError, CognifyError
from cognify.features.progress import Mastery
from cognify.store import make_session_store
from cognify.util.io import DEFAULT_CONFIG_FILE
from cognify.util.logs import get_logger, setup_logging
from cognify.voice.adapter import AbstractVoiceAdapter, SpeechVoiceAdapter

logger = get_logger(__name__)

QUIT_COMMANDS = {":q", ":quit", ":exit"}
UPLOAD_COMMAND = ":upload"


def load_config(path: Optional[str]) -> AppConfig:
    """Load the config from `path`, the per-user default file, or defaults."""
    if path:
        return AppConfig.load_from_file(path)
    if DEFAULT_CONFIG_FILE.exists():
        return AppConfig.load_from_file(DEFAULT_CONFIG_FILE)
    return AppConfig()


def build_engine(
    config: AppConfig, store_path: Optional[str], with_voice: bool
) -> ConversationEngine:
    if store_path == ":memory:":
        path = None
    elif store_path:
        path = Path(store_path)
    else:
        path = config.storage.path
    store = make_session_store(path)

    voice: Optional[AbstractVoiceAdapter] = None
    if with_voice and config.voice.enabled:
        try:
            voice = SpeechVoiceAdapter(config.voice)
        except CapabilityUnavailableError as e:
            print(f"Voice disabled: {e}")
    return ConversationEngine(store, voice=voice, config=config)


def print_turn(result: TurnResult, engine: ConversationEngine) -> None:
    state = engine.snapshot()
    print(f"\nTutor: {result.tutor_turn.text}")
    if result.reply.evaluated:
        print(f"  [{result.reply.evaluation.value}] {state.mastery.label}")
    for i, suggestion in enumerate(state.suggestions, start=1):
        print(f"  {i}) {suggestion}")


def run_chat(engine: ConversationEngine, session_id: Optional[str]) -> None:
    state = engine.open_session(session_id)
    print(f"Session {state.session_id}: {state.title}")
    print(f"Progress: {state.mastery.label}")
    for turn in state.turns[-4:]:
        print(f"  {turn.role.value}: {turn.text}")

    voice_hint = " Empty line to speak." if engine.voice is not None else ""
    print(
        f"Type your answer, 1/2 to pick a suggestion, "
        f"{UPLOAD_COMMAND} <file> to add a document, :quit to leave.{voice_hint}"
    )

    while True:
        try:
            line = input("\nYou: ").strip()
        except (EOFError, KeyboardInterrupt):
            print()
            break

        if line in QUIT_COMMANDS:
            break

        if line.startswith(UPLOAD_COMMAND):
            run_upload(engine, line[len(UPLOAD_COMMAND) :].strip())
            continue

        if not line:
            if engine.voice is None:
                continue
            print("Listening...")
            result = engine.listen()
        elif line in ("1", "2") and engine.snapshot().suggestions:
            result = engine.choose_suggestion(int(line) - 1)
        else:
            result = engine.submit_text(line)

        notice = engine.snapshot().notice
        if notice:
            print(notice)
        if result is None:
            continue

        if result.learner_turn.text != line:
            print(f"You said: {result.learner_turn.text}")
        print_turn(result, engine)
        engine.wait_until_spoken()


def run_upload(engine: ConversationEngine, file_path: str) -> bool:
    path = Path(file_path)
    try:
        data = path.read_bytes()
    except OSError as e:
        print(f"Could not open {file_path}: {e}")
        return False

    artifact = engine.upload_document(path.name, data)
    print(engine.snapshot().upload_status)
    if artifact is None:
        return False
    for i, label in enumerate(artifact.chapter_index, start=1):
        print(f"  {i}. {label}")
    return True


def run_sessions(engine: ConversationEngine) -> None:
    summaries = engine.summaries()
    if not summaries:
        print("No sessions yet.")
        return
    for summary in summaries:
        session = summary.session
        print(
            f"{session.id}  {session.updated_at:%Y-%m-%d %H:%M}  "
            f"{session.title!r}  turns={summary.turn_count} "
            f"documents={summary.artifact_count}  {Mastery.of(session).label}"
        )


def run_show(engine: ConversationEngine, session_id: str) -> bool:
    session = engine.store.load_session(session_id)
    if session is None:
        print(f"Session {session_id} not found.")
        return False

    print(f"{session.title} ({session.id})")
    print(f"Progress: {Mastery.of(session).label}")
    for artifact in engine.store.list_artifacts(session_id):
        print(f"Document: {artifact.file_name} ({len(artifact.extracted_text)} chars)")
        for i, label in enumerate(artifact.chapter_index, start=1):
            print(f"  {i}. {label}")
    for turn in engine.store.list_turns(session_id):
        print(f"[{turn.created_at:%H:%M:%S}] {turn.role.value}: {turn.text}")
    return True


def run_delete(engine: ConversationEngine, session_id: str, yes: bool) -> bool:
    session = engine.store.load_session(session_id)
    if session is None:
        print(f"Session {session_id} not found.")
        return False
    if not yes:
        answer = input(f"Delete {session.title!r} and all its messages? (y/n) [n]: ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Cancelled.")
            return False
    engine.delete_session(session_id)
    print(f"Deleted {session_id}.")
    return True


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Cognify - study a document with a voice tutor",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=__doc__,
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        help="Logging level (default: WARNING).",
    )
    parser.add_argument(
        "--store",
        type=str,
        help="Session store JSON file, or ':memory:' to keep nothing.",
    )
    parser.add_argument("--config", type=str, help="Path to a configuration file.")

    subparsers = parser.add_subparsers(dest="command", required=True)

    chat_parser = subparsers.add_parser("chat", help="Start or continue a session")
    chat_parser.add_argument("--session", type=str, help="Session id to continue")
    chat_parser.add_argument(
        "--text", action="store_true", help="Disable voice input and output"
    )

    subparsers.add_parser("sessions", help="List sessions, most recent first")

    show_parser = subparsers.add_parser("show", help="Print a session transcript")
    show_parser.add_argument("session_id", type=str)

    upload_parser = subparsers.add_parser("upload", help="Attach a document")
    upload_parser.add_argument("file", type=str)
    upload_parser.add_argument(
        "--session", type=str, help="Session id (a new session by default)"
    )

    delete_parser = subparsers.add_parser("delete", help="Delete a session")
    delete_parser.add_argument("session_id", type=str)
    delete_parser.add_argument(
        "-y", "--yes", action="store_true", help="Do not ask for confirmation"
    )

    return parser.parse_args(argv)


def main(argv: Optional[list[str]] = None) -> int:
    args = parse_args(argv)
    setup_logging(level=args.log_level)

    config = load_config(args.config)
    with_voice = args.command == "chat" and not args.text
    try:
        engine = build_engine(config, args.store, with_voice=with_voice)

        if args.command == "chat":
            run_chat(engine, args.session)
            return 0
        if args.command == "sessions":
            run_sessions(engine)
            return 0
        if args.command == "show":
            return 0 if run_show(engine, args.session_id) else 1
        if args.command == "upload":
            state = engine.open_session(args.session)
            print(f"Session {state.session_id}")
            return 0 if run_upload(engine, args.file) else 1
        if args.command == "delete":
            return 0 if run_delete(engine, args.session_id, args.yes) else 1
    except CognifyError as e:
        logger.error(f"[{e.code}] {e}")
        print(f"Error: {e}", file=sys.stderr)
        return 2

    return 1
