"""Review session summary: a pure function of the recorded responses and timestamps."""

import math
from dataclasses import dataclass, field, asdict
from typing import Dict, List, Optional, Sequence

# A response at or above this level counts as answered correctly.
CORRECT_LEVEL = 4


@dataclass
class ReviewResponse:
    """One recorded answer: understanding level before and after review."""
    note_id: str
    previous: int
    next: int

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> 'ReviewResponse':
        return cls(
            note_id=str(data['note_id']),
            previous=int(data['previous']),
            next=int(data['next']),
        )


@dataclass
class SessionSummary:
    total: int
    improved: int
    regressed: int
    unchanged: int
    accuracy_pct: int
    elapsed_seconds: int
    weakest: List[ReviewResponse] = field(default_factory=list)

    @property
    def minutes(self) -> int:
        return self.elapsed_seconds // 60

    @property
    def seconds(self) -> int:
        return self.elapsed_seconds % 60

    def to_dict(self) -> Dict:
        d = asdict(self)
        d['minutes'] = self.minutes
        d['seconds'] = self.seconds
        return d


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def summarize(
    responses: Sequence[ReviewResponse],
    started_at: Optional[float],
    finished_at: float,
) -> SessionSummary:
    """
    Compute the end-of-session summary.

    Args:
        responses:   recorded responses, in answer order
        started_at:  session start (epoch seconds); None/0 means unknown
        finished_at: completion time (epoch seconds)

    accuracy_pct is round(100 * count(next >= 4) / total), 0 with no responses.
    weakest lists the responses by `next` ascending (stable).
    """
    total = len(responses)
    improved = sum(1 for r in responses if r.next > r.previous)
    regressed = sum(1 for r in responses if r.next < r.previous)
    correct = sum(1 for r in responses if r.next >= CORRECT_LEVEL)
    accuracy = _round_half_up(100.0 * correct / total) if total else 0
    elapsed = int(max(0.0, finished_at - started_at)) if started_at else 0

    return SessionSummary(
        total=total,
        improved=improved,
        regressed=regressed,
        unchanged=total - improved - regressed,
        accuracy_pct=accuracy,
        elapsed_seconds=elapsed,
        weakest=sorted(responses, key=lambda r: r.next),
    )
