"""Command implementations for the CLI interface."""

from __future__ import annotations

import argparse
import asyncio
import mimetypes
import sys
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from ..api.errors import AuthenticationMissingError, ClinicalPawsError
from ..credentials import (
    CredentialAccessor,
    EnvironmentCredentialAccessor,
    StaticCredentialAccessor,
)
from ..engine import ConsultationEngine, HistoryEntry, Turn
from ..settings import AppSettings
from ..util.time import normalize_timestamp

ASSISTANT_LABEL = "ClinicalPaws"
EXIT_OK = 0
EXIT_ERROR = 1
EXIT_AUTH = 2


@dataclass
class Command:
    """Describe a CLI command and its argument handler."""

    func: Callable[[argparse.Namespace], int]
    help: str
    add_arguments: Callable[[argparse.ArgumentParser], None]


EngineFactory = Callable[[AppSettings, CredentialAccessor], ConsultationEngine]


def _credentials(args: argparse.Namespace) -> CredentialAccessor:
    token = getattr(args, "token", None)
    if token:
        return StaticCredentialAccessor(token)
    return EnvironmentCredentialAccessor()


def _build_engine(args: argparse.Namespace) -> ConsultationEngine:
    factory: EngineFactory = getattr(args, "engine_factory", None) or ConsultationEngine.from_settings
    settings = getattr(args, "app_settings", None) or AppSettings()
    return factory(settings, _credentials(args))


def _run(
    args: argparse.Namespace,
    body: Callable[[ConsultationEngine], Awaitable[int]],
) -> int:
    """Run *body* against a fresh engine translating errors to exit codes."""

    async def _main() -> int:
        engine = _build_engine(args)
        try:
            return await body(engine)
        finally:
            engine.close()

    try:
        return asyncio.run(_main())
    except AuthenticationMissingError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return EXIT_AUTH
    except ClinicalPawsError as exc:
        sys.stderr.write(f"error: {exc}\n")
        return EXIT_ERROR


def write_turn(turn: Turn, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    out.write(f"You: {turn.user_text}\n")
    out.write(f"{ASSISTANT_LABEL}: {turn.display_text}\n")


def _summary(text: str | None, width: int = 70) -> str:
    lines = (text or "").strip().splitlines()
    line = lines[0] if lines else ""
    if len(line) > width:
        return line[: width - 1] + "…"
    return line


def write_history_entry(entry: HistoryEntry, stream: TextIO | None = None) -> None:
    out = stream or sys.stdout
    suffix = ""
    if entry.has_follow_ups:
        suffix = f" (+{len(entry.follow_ups)} follow-ups)"
    created_at = normalize_timestamp(entry.created_at)
    created = f" [{created_at}]" if created_at else ""
    out.write(f"{entry.entry_id}{created} {_summary(entry.transcribed_text)}{suffix}\n")


async def _await_answer(engine: ConsultationEngine) -> int:
    turn = await engine.wait_until_processed()
    if turn is not None:
        write_turn(turn)
        return EXIT_OK
    error = engine.last_error
    if error is not None:
        raise error
    return EXIT_ERROR


# ---------------------------------------------------------------------------
def cmd_ask(args: argparse.Namespace) -> int:
    """Submit a text question and print the answer."""

    async def body(engine: ConsultationEngine) -> int:
        if args.continue_from:
            engine.resume_job(args.continue_from)
        job_id = await engine.submit_text(args.text)
        sys.stderr.write(f"submitted {job_id}, waiting for the analysis...\n")
        return await _await_answer(engine)

    return _run(args, body)


def add_ask_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("text", help="question or case description")
    p.add_argument(
        "--continue-from",
        metavar="JOB_ID",
        help="continue the conversation that ended with JOB_ID",
    )


def _read_file(path: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as exc:
        raise ClinicalPawsError(f"cannot read {path}: {exc.strerror or exc}") from exc


def cmd_audio(args: argparse.Namespace) -> int:
    """Upload a voice recording and print the answer."""

    async def body(engine: ConsultationEngine) -> int:
        if args.continue_from:
            engine.resume_job(args.continue_from)
        data = _read_file(args.path)
        job_id = await engine.submit_audio(data, filename=Path(args.path).name)
        sys.stderr.write(f"submitted {job_id}, waiting for the analysis...\n")
        return await _await_answer(engine)

    return _run(args, body)


def cmd_image(args: argparse.Namespace) -> int:
    """Upload an image and print the answer."""

    async def body(engine: ConsultationEngine) -> int:
        if args.continue_from:
            engine.resume_job(args.continue_from)
        data = _read_file(args.path)
        image_type = args.type or mimetypes.guess_type(args.path)[0] or "image/jpeg"
        job_id = await engine.submit_image(data, image_type, filename=Path(args.path).name)
        sys.stderr.write(f"submitted {job_id}, waiting for the analysis...\n")
        return await _await_answer(engine)

    return _run(args, body)


def add_audio_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("path", help="recorded audio file (WAV)")
    p.add_argument("--continue-from", metavar="JOB_ID")


def add_image_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("path", help="image file")
    p.add_argument("--type", help="MIME type; guessed from the file name by default")
    p.add_argument("--continue-from", metavar="JOB_ID")


# ---------------------------------------------------------------------------
def cmd_chat(args: argparse.Namespace) -> int:
    """Interactive conversation; ``/new`` resets, ``/quit`` exits."""

    stream: TextIO = getattr(args, "input", None) or sys.stdin

    async def body(engine: ConsultationEngine) -> int:
        while True:
            sys.stdout.write("> ")
            sys.stdout.flush()
            line = await asyncio.to_thread(stream.readline)
            if not line:
                break
            text = line.strip()
            if not text:
                continue
            if text == "/quit":
                break
            if text == "/new":
                engine.start_new_conversation()
                sys.stdout.write("started a new conversation\n")
                continue
            try:
                await engine.submit_text(text)
                await _await_answer(engine)
            except AuthenticationMissingError:
                raise
            except ClinicalPawsError as exc:
                sys.stdout.write(f"error: {exc}\n")
        return EXIT_OK

    return _run(args, body)


def add_chat_arguments(p: argparse.ArgumentParser) -> None:
    p.set_defaults(input=None)


# ---------------------------------------------------------------------------
async def _load_pages(engine: ConsultationEngine, pages: int) -> None:
    for _ in range(pages):
        if await engine.load_more_history() is None:
            break


def cmd_history(args: argparse.Namespace) -> int:
    """List past conversations."""

    async def body(engine: ConsultationEngine) -> int:
        await _load_pages(engine, args.pages)
        for entry in engine.history_data:
            write_history_entry(entry)
        if engine.has_more_history:
            sys.stdout.write(f"... more available, use --pages {args.pages + 1}\n")
        return EXIT_OK

    return _run(args, body)


def add_history_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("--pages", type=int, default=1, help="number of pages to load")


def cmd_thread(args: argparse.Namespace) -> int:
    """Print the full thread of one history entry."""

    async def body(engine: ConsultationEngine) -> int:
        for _ in range(args.pages):
            if any(entry.entry_id == args.entry_id for entry in engine.history_data):
                break
            if await engine.load_more_history() is None:
                break
        thread = engine.select_history_entry(args.entry_id)
        for turn in thread.turns:
            write_turn(turn)
        sys.stdout.write(f"continue with: ask --continue-from {thread.last_job_id} TEXT\n")
        return EXIT_OK

    return _run(args, body)


def add_thread_arguments(p: argparse.ArgumentParser) -> None:
    p.add_argument("entry_id", help="history entry id")
    p.add_argument("--pages", type=int, default=10, help="maximum pages to search")


COMMANDS: dict[str, Command] = {
    "ask": Command(cmd_ask, "ask a text question", add_ask_arguments),
    "audio": Command(cmd_audio, "upload a voice recording", add_audio_arguments),
    "image": Command(cmd_image, "upload an image", add_image_arguments),
    "chat": Command(cmd_chat, "interactive conversation", add_chat_arguments),
    "history": Command(cmd_history, "list past conversations", add_history_arguments),
    "thread": Command(cmd_thread, "show a past conversation", add_thread_arguments),
}
