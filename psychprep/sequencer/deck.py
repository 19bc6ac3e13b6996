"""Test kinds, timing profiles and deck assembly."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Optional

BLANK_SLIDE_ID = -1

# Keys under which the API returns a record's prompt text
PAYLOAD_KEYS = ("image_url", "word", "scenario", "question", "payload")


class AssessmentKind(str, Enum):
    TAT = "tat"
    WAT = "wat"
    SRT = "srt"
    SDT = "sdt"


@dataclass(frozen=True)
class TimingProfile:
    """Per-test timing.

    For SDT `display_seconds` is the single countdown over the whole deck.
    `cap` bounds how many deck entries are walked (None for no bound).
    """

    display_seconds: int
    gap_seconds: int = 0
    cap: Optional[int] = None


TIMING_PROFILES = {
    AssessmentKind.TAT: TimingProfile(display_seconds=30, gap_seconds=240, cap=12),  # 11 images + blank
    AssessmentKind.WAT: TimingProfile(display_seconds=15, cap=60),
    AssessmentKind.SRT: TimingProfile(display_seconds=30, cap=60),
    AssessmentKind.SDT: TimingProfile(display_seconds=15 * 60),
}


@dataclass(frozen=True)
class Prompt:
    id: int
    payload: str
    active: bool = True

    @property
    def is_blank(self) -> bool:
        return self.id == BLANK_SLIDE_ID


def blank_slide() -> Prompt:
    return Prompt(id=BLANK_SLIDE_ID, payload="")


def to_prompt(item: Any, position: int) -> Prompt:
    """Coerce an API record, a bare string or a Prompt into a Prompt.

    Bare strings (the random image-set endpoint returns plain URLs) are
    numbered by their 1-based position.
    """
    if isinstance(item, Prompt):
        return item
    if isinstance(item, str):
        return Prompt(id=position, payload=item)
    if isinstance(item, dict):
        for key in PAYLOAD_KEYS:
            if key in item:
                return Prompt(
                    id=int(item.get("id", position)),
                    payload=str(item[key]),
                    active=bool(item.get("active", True)),
                )
    raise TypeError(f"Cannot build a prompt from {item!r}")


def build_deck(
    kind: AssessmentKind, items: Iterable[Any], profile: Optional[TimingProfile] = None
) -> tuple[Prompt, ...]:
    profile = profile or TIMING_PROFILES[kind]
    prompts = [to_prompt(item, i) for i, item in enumerate(items, start=1)]

    if kind is AssessmentKind.TAT:
        image_slots = (profile.cap or len(prompts) + 1) - 1
        images = [p for p in prompts if not p.is_blank][:image_slots]
        return tuple(images) + (blank_slide(),)

    if profile.cap is not None:
        prompts = prompts[: profile.cap]
    return tuple(prompts)
