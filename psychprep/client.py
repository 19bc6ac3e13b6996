"""
Take an assessment in the terminal against a running psychprep server.

Usage:
    psychprep-run wat --base-url http://127.0.0.1:8000
    psychprep-run sdt --persona professional --hide-timer

The timer choice is remembered in ~/.psychprep/preferences.json. During
the SDT each line typed on stdin answers the next question.
"""

from __future__ import annotations

import argparse
import asyncio
import contextlib
import json
import logging
import sys
import threading
from pathlib import Path
from typing import Optional, TextIO

import httpx

from psychprep.sequencer.deck import AssessmentKind, Prompt, build_deck
from psychprep.sequencer.machine import Phase, Sequencer, format_time
from psychprep.sequencer.ticker import Ticker

logger = logging.getLogger(__name__)

DEFAULT_PREFERENCES = Path.home() / ".psychprep" / "preferences.json"
TIMER_VISIBILITY_KEY = "timer_visible"

DECK_PATHS = {
    AssessmentKind.TAT: "/api/tat/random-set",
    AssessmentKind.WAT: "/api/wat",
    AssessmentKind.SRT: "/api/srt",
    AssessmentKind.SDT: "/api/sdt/{persona}",
}

TITLES = {
    AssessmentKind.TAT: "Thematic Apperception Test",
    AssessmentKind.WAT: "Word Association Test",
    AssessmentKind.SRT: "Situation Reaction Test",
    AssessmentKind.SDT: "Self Description Test",
}


def fetch_deck(
    kind: AssessmentKind,
    base_url: str = "http://127.0.0.1:8000",
    persona: str = "student",
    client: Optional[httpx.Client] = None,
) -> tuple[Prompt, ...]:
    """Fetch and assemble a deck.

    Any fetch failure, including a response whose records cannot be turned
    into prompts, yields an empty deck.
    """
    path = DECK_PATHS[kind].format(persona=persona)
    http = client or httpx.Client(base_url=base_url, timeout=10)
    try:
        resp = http.get(path)
        resp.raise_for_status()
        data = resp.json()
    except (httpx.HTTPError, ValueError) as e:
        logger.warning(f"Could not fetch {kind.value} content: {e}")
        return build_deck(kind, [])
    finally:
        if client is None:
            http.close()

    if isinstance(data, dict):
        data = data.get("images", [])
    try:
        return build_deck(kind, data)
    except (TypeError, ValueError) as e:
        logger.warning(f"Unexpected {kind.value} content from {path}: {e}")
        return build_deck(kind, [])


class ConsoleView:
    """Prints a session to a text stream as it progresses."""

    def __init__(self, out: TextIO = sys.stdout):
        self.out = out

    def attach(self, seq: Sequencer):
        seq.add_transition_listener(self.on_transition)
        seq.add_completion_listener(self.on_complete)

    def on_transition(self, seq: Sequencer, previous: Phase, phase: Phase):
        if phase is Phase.GAP:
            print("\nWrite your story. The next image appears after the gap.", file=self.out)
        elif phase is Phase.ACTIVE:
            print(f"\n[{seq.progress:5.1f}%] {self.describe(seq)}", file=self.out)

    def on_tick(self, seq: Sequencer):
        if seq.timer_visible and seq.running:
            print(f"\r{format_time(seq.remaining_seconds)}", end="", file=self.out, flush=True)

    def on_complete(self, seq: Sequencer):
        print(f"\n{TITLES[seq.kind]} complete.", file=self.out)

    def describe(self, seq: Sequencer) -> str:
        if seq.is_empty:
            return "No content available"
        if seq.kind is AssessmentKind.SDT:
            return "\n".join(f"{i}. {p.payload}" for i, p in enumerate(seq.deck, start=1))
        prompt = seq.current
        if prompt.is_blank:
            return "Blank slide"
        return f"{seq.cursor + 1} of {seq.length}: {prompt.payload}"


def load_timer_visibility(path: Path) -> bool:
    """Stored timer preference; visible when nothing usable is stored."""
    try:
        with open(path, "r", encoding="utf-8") as f:
            value = json.load(f).get(TIMER_VISIBILITY_KEY, True)
    except (OSError, ValueError, AttributeError):
        return True
    return value if isinstance(value, bool) else True


def save_timer_visibility(path: Path, visible: bool):
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            prefs = json.load(f)
        if not isinstance(prefs, dict):
            prefs = {}
    except (OSError, ValueError):
        prefs = {}
    prefs[TIMER_VISIBILITY_KEY] = visible
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            json.dump(prefs, f, indent=2)
    except OSError as e:
        logger.warning(f"Could not save preferences to {path}: {e}")


def stdin_lines(loop: asyncio.AbstractEventLoop, stream: TextIO = sys.stdin) -> asyncio.Queue:
    """Feed lines typed on `stream` into a queue; None marks end of input."""
    lines: asyncio.Queue = asyncio.Queue()

    def pump():
        try:
            for line in stream:
                loop.call_soon_threadsafe(lines.put_nowait, line.rstrip("\r\n"))
            loop.call_soon_threadsafe(lines.put_nowait, None)
        except RuntimeError:
            # Session loop already closed
            return

    threading.Thread(target=pump, daemon=True).start()
    return lines


async def capture_answers(
    seq: Sequencer, lines: asyncio.Queue, answers: dict[int, str], out: TextIO = sys.stdout
):
    """Record one typed line per SDT question while the countdown runs.

    Answers land in `answers` as they are typed, so whatever was entered
    before time runs out is kept. Answering every question ends the test.
    """
    for number, prompt in enumerate(seq.deck, start=1):
        print(f"\nAnswer {number}> ", end="", file=out, flush=True)
        line = await lines.get()
        if line is None or not seq.running:
            return
        answers[prompt.id] = line
    seq.advance()


async def run_session(
    kind: AssessmentKind,
    deck: tuple[Prompt, ...],
    out: TextIO = sys.stdout,
    interval: float = 1.0,
    timer_visible: bool = True,
    sleep=asyncio.sleep,
    answer_lines: Optional[asyncio.Queue] = None,
    answers: Optional[dict[int, str]] = None,
) -> Sequencer:
    seq = Sequencer(kind)
    seq.timer_visible = timer_visible
    view = ConsoleView(out)
    view.attach(seq)

    print(TITLES[kind], file=out)
    seq.start(deck)

    capture = None
    if kind is AssessmentKind.SDT and answer_lines is not None and not seq.is_empty:
        answers = {} if answers is None else answers
        capture = asyncio.create_task(capture_answers(seq, answer_lines, answers, out))

    await Ticker(seq, interval=interval, sleep=sleep, after_tick=view.on_tick).run()

    if capture is not None:
        capture.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await capture
        print(f"\nAnswered {len(answers)} of {seq.length} questions.", file=out)
    return seq


async def _run_interactive(kind, deck, interval, timer_visible):
    lines = stdin_lines(asyncio.get_running_loop()) if kind is AssessmentKind.SDT else None
    return await run_session(
        kind, deck, interval=interval, timer_visible=timer_visible, answer_lines=lines
    )


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Take a timed assessment in the terminal")
    parser.add_argument("kind", choices=[k.value for k in AssessmentKind])
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--persona", choices=["student", "professional"], default="student")
    timer = parser.add_mutually_exclusive_group()
    timer.add_argument(
        "--hide-timer", dest="timer_visible", action="store_false", default=None,
        help="Do not print the countdown (remembered for later runs)",
    )
    timer.add_argument(
        "--show-timer", dest="timer_visible", action="store_true",
        help="Print the countdown (remembered for later runs)",
    )
    parser.add_argument("--preferences", default=str(DEFAULT_PREFERENCES))
    parser.add_argument(
        "--interval", type=float, default=1.0, help="Seconds per tick (lower to rehearse quickly)"
    )
    args = parser.parse_args(argv)

    prefs_path = Path(args.preferences)
    if args.timer_visible is None:
        timer_visible = load_timer_visibility(prefs_path)
    else:
        timer_visible = args.timer_visible
        save_timer_visibility(prefs_path, timer_visible)

    kind = AssessmentKind(args.kind)
    deck = fetch_deck(kind, args.base_url, args.persona)
    try:
        asyncio.run(_run_interactive(kind, deck, args.interval, timer_visible))
    except KeyboardInterrupt:
        print("\nExited test.", file=sys.stderr)
        return 130
    return 0


if __name__ == "__main__":
    sys.exit(main())
