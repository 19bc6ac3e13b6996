import asyncio

import pytest

from psychprep.sequencer.deck import AssessmentKind, build_deck
from psychprep.sequencer.machine import Phase, Sequencer
from psychprep.sequencer.ticker import Ticker


class FakeClock:
    def __init__(self):
        self.sleeps = []

    async def sleep(self, seconds):
        self.sleeps.append(seconds)


def test_runs_wat_session_to_completion():
    seq = Sequencer(AssessmentKind.WAT)
    seq.start(build_deck(AssessmentKind.WAT, ["one", "two", "three"]))
    clock = FakeClock()
    ticker = Ticker(seq, sleep=clock.sleep)

    assert asyncio.run(ticker.run()) is Phase.COMPLETE
    assert ticker.ticks_delivered == 45
    assert clock.sleeps == [1.0] * 45


def test_after_tick_sees_every_tick():
    seq = Sequencer(AssessmentKind.SDT)
    seq.start(())
    seen = []
    ticker = Ticker(seq, sleep=FakeClock().sleep, after_tick=lambda s: seen.append(s.remaining_seconds))

    asyncio.run(ticker.run())
    assert seen[0] == 899
    assert seen[-1] == 0
    assert len(seen) == 900


def test_paused_session_gets_no_ticks():
    seq = Sequencer(AssessmentKind.WAT)
    seq.start(build_deck(AssessmentKind.WAT, ["one"]))
    seq.pause()
    clock = FakeClock()

    async def sleep(seconds):
        await clock.sleep(seconds)
        if len(clock.sleeps) == 5:
            seq.resume()

    ticker = Ticker(seq, sleep=sleep)
    asyncio.run(ticker.run())
    assert ticker.ticks_delivered == 15
    # Four idle intervals before the resume, then one per tick
    assert len(clock.sleeps) == 19


def test_stops_when_closed():
    seq = Sequencer(AssessmentKind.TAT)
    seq.start(build_deck(AssessmentKind.TAT, ["/a.png"]))
    ticker = Ticker(seq, sleep=FakeClock().sleep, after_tick=lambda s: s.close())

    assert asyncio.run(ticker.run()) is Phase.ACTIVE
    assert ticker.ticks_delivered == 1


def test_requires_started_sequencer():
    ticker = Ticker(Sequencer(AssessmentKind.SRT), sleep=FakeClock().sleep)
    with pytest.raises(RuntimeError):
        asyncio.run(ticker.run())
