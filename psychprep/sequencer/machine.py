"""Timed state machine that walks a client through a deck of prompts.

The machine never reads a clock itself: something outside (the Ticker, or a
test) calls `on_tick()` once per elapsed second. Given the same deck and the
same sequence of calls it always ends in the same state.
"""

import logging
from enum import Enum
from typing import Callable, Iterable, Optional

from psychprep.sequencer.deck import TIMING_PROFILES, AssessmentKind, Prompt, TimingProfile

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    AWAITING_START = "awaiting_start"
    ACTIVE = "active"
    GAP = "gap"
    COMPLETE = "complete"


CompletionListener = Callable[["Sequencer"], None]
TransitionListener = Callable[["Sequencer", Phase, Phase], None]


def format_time(seconds: int) -> str:
    """Render seconds as MM:SS."""
    mins, secs = divmod(max(0, seconds), 60)
    return f"{mins:02d}:{secs:02d}"


class Sequencer:
    """One assessment session.

    TAT entries alternate ACTIVE (image shown) and GAP (writing time) before
    the cursor moves on. WAT and SRT entries have a single ACTIVE phase each.
    SDT is one ACTIVE phase over the whole deck that completes when its
    countdown runs out.

    An empty deck still runs: the session sits in ACTIVE with `is_empty` set
    and completes when the timer expires.
    """

    def __init__(self, kind: AssessmentKind, profile: Optional[TimingProfile] = None):
        self.kind = AssessmentKind(kind)
        self.profile = profile or TIMING_PROFILES[self.kind]
        self.deck: tuple[Prompt, ...] = ()
        self.cursor = 0
        self.phase = Phase.AWAITING_START
        self.remaining_seconds = 0
        self.paused = False
        self.closed = False
        self.timer_visible = True
        self._completion_listeners: list[CompletionListener] = []
        self._transition_listeners: list[TransitionListener] = []

    # Listeners

    def add_completion_listener(self, listener: CompletionListener):
        self._completion_listeners.append(listener)

    def add_transition_listener(self, listener: TransitionListener):
        self._transition_listeners.append(listener)

    # Derived state

    @property
    def completed(self) -> bool:
        return self.phase is Phase.COMPLETE

    @property
    def running(self) -> bool:
        return self.phase in (Phase.ACTIVE, Phase.GAP) and not self.closed

    @property
    def length(self) -> int:
        """Number of deck entries the session will walk through."""
        if self.profile.cap is None:
            return len(self.deck)
        return min(len(self.deck), self.profile.cap)

    @property
    def is_empty(self) -> bool:
        return self.length == 0

    @property
    def current(self) -> Optional[Prompt]:
        if self.phase is Phase.AWAITING_START or self.is_empty:
            return None
        return self.deck[self.cursor]

    @property
    def showing_prompt(self) -> bool:
        return self.phase is Phase.ACTIVE and self.current is not None

    @property
    def progress(self) -> float:
        """Percentage shown in the progress bar."""
        if self.completed:
            return 100.0
        if self.phase is Phase.AWAITING_START:
            return 0.0
        if self.kind is AssessmentKind.SDT:
            return self.remaining_seconds / self.profile.display_seconds * 100
        total = self.profile.cap if self.kind is AssessmentKind.TAT else self.length
        if not total:
            return 0.0
        return (self.cursor + 1) / total * 100

    @property
    def display_time(self) -> str:
        return format_time(self.remaining_seconds)

    # Commands

    def start(self, deck: Iterable[Prompt], profile: Optional[TimingProfile] = None):
        if self.phase is not Phase.AWAITING_START or self.closed:
            raise RuntimeError("Session has already been started")
        if profile is not None:
            self.profile = profile
        self.deck = tuple(deck)
        self.cursor = 0
        if self.is_empty:
            logger.info(f"{self.kind.value} session started with no content")
        self._enter(Phase.ACTIVE, self.profile.display_seconds)

    def on_tick(self):
        if not self.running or self.paused:
            return
        self.remaining_seconds -= 1
        if self.remaining_seconds <= 0:
            self.remaining_seconds = 0
            self.on_expire()

    def on_expire(self):
        """Leave the current phase as if its timer had run out."""
        if not self.running:
            return

        if self.kind is AssessmentKind.SDT:
            self._complete()
        elif self.kind is AssessmentKind.TAT and self.phase is Phase.ACTIVE:
            self._enter(Phase.GAP, self.profile.gap_seconds)
        elif self.cursor < self.length - 1:
            self.cursor += 1
            self._enter(Phase.ACTIVE, self.profile.display_seconds)
        else:
            self._complete()

    def advance(self):
        """User finished the current item early."""
        self.on_expire()

    def pause(self):
        if self.running:
            self.paused = True

    def resume(self):
        self.paused = False

    def toggle_timer_visibility(self) -> bool:
        self.timer_visible = not self.timer_visible
        return self.timer_visible

    def close(self):
        """Tear the session down; no further input has any effect."""
        self.closed = True
        self.paused = False

    # Internals

    def _enter(self, phase: Phase, seconds: int):
        previous = self.phase
        self.phase = phase
        self.remaining_seconds = seconds
        for listener in self._transition_listeners:
            listener(self, previous, phase)

    def _complete(self):
        self._enter(Phase.COMPLETE, 0)
        logger.info(f"{self.kind.value} session complete")
        for listener in self._completion_listeners:
            listener(self)
