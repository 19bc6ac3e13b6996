import asyncio
from typing import Awaitable, Callable, Optional

from psychprep.sequencer.machine import Phase, Sequencer

Sleep = Callable[[float], Awaitable[None]]


class Ticker:
    """Deliver one tick per interval to a sequencer until it completes.

    `sleep` is injectable so tests can drive a whole session without waiting.
    Ticks are not delivered while the sequencer is paused.
    """

    def __init__(
        self,
        sequencer: Sequencer,
        interval: float = 1.0,
        sleep: Sleep = asyncio.sleep,
        after_tick: Optional[Callable[[Sequencer], None]] = None,
    ):
        self.sequencer = sequencer
        self.interval = interval
        self._sleep = sleep
        self._after_tick = after_tick
        self.ticks_delivered = 0

    async def run(self) -> Phase:
        seq = self.sequencer
        if seq.phase is Phase.AWAITING_START:
            raise RuntimeError("Start the sequencer before running its ticker")

        while not (seq.completed or seq.closed):
            await self._sleep(self.interval)
            if seq.paused:
                continue
            seq.on_tick()
            self.ticks_delivered += 1
            if self._after_tick:
                self._after_tick(seq)
        return seq.phase
