import itertools

from coordis import Clock


class ManualClock(Clock):
    """A clock that only moves when told to."""

    def __init__(self, now_ms: int) -> None:
        self.now = now_ms

    def now_ms(self) -> int:
        return self.now

    def advance(self, ms: int) -> None:
        self.now += ms


class SkewedClock(Clock):
    """Another host's view of ``clock``, ``skew_ms`` ahead (or behind)."""

    def __init__(self, clock: Clock, skew_ms: int) -> None:
        self.clock = clock
        self.skew_ms = skew_ms

    def now_ms(self) -> int:
        return self.clock.now_ms() + self.skew_ms


def sequential_tokens(prefix="token"):
    """Tokens sorting in the order they are generated."""
    counter = itertools.count()
    return lambda: f"{prefix}-{next(counter):06d}"


def get_logs(caplog, msg):
    records = []
    for record in caplog.records:
        if msg in record.message:
            records.append(record)
    return records
