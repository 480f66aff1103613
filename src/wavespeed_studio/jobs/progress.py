from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Callable, Mapping, Optional

from ..types import JobStatus


@dataclass(frozen=True, slots=True)
class ProgressEvent:
    """Live status of one job within an engine run."""

    index: int
    phase: JobStatus
    elapsed_ms: int
    cost: Decimal | None = None
    job_id: str | None = None
    raw: Mapping[str, Any] | None = field(default=None, compare=False)


ProgressSink = Callable[[ProgressEvent], None]


def emit(sink: Optional[ProgressSink], event: ProgressEvent) -> None:
    if sink is not None:
        sink(event)


class ProgressBoard:
    """Keeps the latest event per job index.

    Concurrent jobs report through one sink, so updates interleave; each event
    carries its own index and the last one written for an index wins.
    """

    def __init__(self) -> None:
        self._latest: dict[int, ProgressEvent] = {}

    def __call__(self, event: ProgressEvent) -> None:
        self._latest[event.index] = event

    def latest(self, index: int) -> ProgressEvent | None:
        return self._latest.get(index)

    def events(self) -> list[ProgressEvent]:
        return [self._latest[index] for index in sorted(self._latest)]

    def reported_cost(self) -> Decimal | None:
        """Sum of the costs reported so far, or None when no job reported one."""
        costs = [event.cost for event in self._latest.values() if event.cost is not None]
        if not costs:
            return None
        return sum(costs, Decimal("0"))

    def reset(self) -> None:
        self._latest.clear()
