"""
Review session state machine with a resumable checkpoint.

    NOT_STARTED --start--> IN_PROGRESS --record/skip (last item)--> COMPLETED | ABORTED
    IN_PROGRESS --end--> NOT_STARTED
    COMPLETED --restart--> IN_PROGRESS, COMPLETED/ABORTED --close--> NOT_STARTED

The ordered snapshot of note ids is frozen at start; later changes to the
note list never reorder or resize it. A checkpoint is written after every
transition while IN_PROGRESS, so a reload re-enters the session where it was.
"""

import logging
import random
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from study.backend import EntityRepository
from study.errors import NotFound
from study.kv import KeyValueStorage
from study.models import Note, check_level
from study.storage import REVIEW_SESSION_KEY
from study.summary import ReviewResponse, SessionSummary, summarize

logger = logging.getLogger("rootly.review")

CHECKPOINT_VERSION = 2
DEFAULT_LIMIT = 20
MAX_LIMIT = 100


class ReviewState(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    ABORTED = "aborted"


class SessionStateError(RuntimeError):
    """Transition not allowed from the current state."""


@dataclass
class Checkpoint:
    ordered_note_ids: List[str]
    current_index: int = 0
    completed_note_ids: List[str] = field(default_factory=list)
    responses: List[ReviewResponse] = field(default_factory=list)
    started_at: float = 0.0
    is_active: bool = True
    saved_at: Optional[float] = None
    version: int = CHECKPOINT_VERSION

    def to_dict(self) -> Dict:
        return {
            'version': self.version,
            'ordered_note_ids': list(self.ordered_note_ids),
            'current_index': self.current_index,
            'completed_note_ids': list(self.completed_note_ids),
            'responses': [r.to_dict() for r in self.responses],
            'started_at': self.started_at,
            'is_active': self.is_active,
            'saved_at': self.saved_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Checkpoint':
        """Raises ValueError for other schema versions or malformed payloads."""
        if not isinstance(data, dict) or data.get('version') != CHECKPOINT_VERSION:
            raise ValueError("unsupported checkpoint version")
        try:
            return cls(
                ordered_note_ids=[str(i) for i in data['ordered_note_ids']],
                current_index=int(data.get('current_index', 0)),
                completed_note_ids=[str(i) for i in data.get('completed_note_ids', [])],
                responses=[ReviewResponse.from_dict(r) for r in data.get('responses', [])],
                started_at=float(data.get('started_at') or 0.0),
                is_active=bool(data.get('is_active', False)),
                saved_at=data.get('saved_at'),
            )
        except (KeyError, TypeError) as e:
            raise ValueError(f"malformed checkpoint: {e}")


class CheckpointStore:
    """The review checkpoint under a fixed key in client-side durable storage."""

    def __init__(self, storage: KeyValueStorage, key: str = REVIEW_SESSION_KEY):
        self._storage = storage
        self._key = key

    def load(self) -> Optional[Checkpoint]:
        """Incompatible or unreadable checkpoints are discarded, not raised."""
        data = self._storage.get_json(self._key)
        if data is None:
            return None
        try:
            return Checkpoint.from_dict(data)
        except ValueError as e:
            logger.info("Discarding review checkpoint: %s", e)
            self.clear()
            return None

    def save(self, checkpoint: Checkpoint) -> None:
        self._storage.set_json(self._key, checkpoint.to_dict())

    def clear(self) -> None:
        self._storage.remove(self._key)


@dataclass
class SessionOutcome:
    """What a finished session hands back for summary display."""
    state: ReviewState
    responses: List[ReviewResponse]
    started_at: float
    finished_at: float
    total: int

    @property
    def reviewed(self) -> int:
        return len(self.responses)

    def summary(self) -> SessionSummary:
        return summarize(self.responses, self.started_at, self.finished_at)


def select_review_notes(
    notes: Sequence[Note],
    course_id: Optional[str] = None,
    flagged: Optional[bool] = None,
    shuffle: bool = True,
    limit: int = DEFAULT_LIMIT,
    rng: Optional[random.Random] = None,
) -> List[Note]:
    """
    Pick the candidate notes for a session.

    Optional course and flag filters, shuffled by default, capped at
    `limit` (clamped to [1, 100]).
    """
    limit = max(1, min(MAX_LIMIT, int(limit)))
    picked = [
        n for n in notes
        if (course_id is None or n.course_id == course_id)
        and (flagged is None or n.flag == flagged)
    ]
    if shuffle:
        (rng or random.Random()).shuffle(picked)
    return picked[:limit]


class ReviewSession:
    """
    An in-progress practice run over a frozen, ordered set of notes.

    Understanding-level updates go through the same notes repository the
    rest of the app uses, whichever backend is active. A failed update
    leaves the session on the same item so the user can retry.
    """

    def __init__(
        self,
        notes: EntityRepository,
        checkpoints: CheckpointStore,
        clock: Callable[[], float] = time.time,
    ):
        self._notes = notes
        self._checkpoints = checkpoints
        self._clock = clock
        self._reset()

    def _reset(self) -> None:
        self.state = ReviewState.NOT_STARTED
        self._ordered_ids: List[str] = []
        self._snapshot: Dict[str, Note] = {}
        self._current_index = 0
        self._completed: List[str] = []
        self._responses: List[ReviewResponse] = []
        self._started_at: float = 0.0
        self._revealed = False
        self._outcome: Optional[SessionOutcome] = None

    # ---- read-only views ----

    @property
    def ordered_note_ids(self) -> List[str]:
        return list(self._ordered_ids)

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def total(self) -> int:
        return len(self._ordered_ids)

    @property
    def current_note(self) -> Optional[Note]:
        if self.state != ReviewState.IN_PROGRESS or not self._ordered_ids:
            return None
        return self._snapshot.get(self._ordered_ids[self._current_index])

    @property
    def is_last(self) -> bool:
        return bool(self._ordered_ids) and self._current_index == len(self._ordered_ids) - 1

    @property
    def progress(self) -> float:
        if not self._ordered_ids:
            return 0.0
        return (self._current_index + 1) / len(self._ordered_ids) * 100

    @property
    def answer_revealed(self) -> bool:
        return self._revealed

    @property
    def responses(self) -> List[ReviewResponse]:
        return list(self._responses)

    @property
    def completed_note_ids(self) -> List[str]:
        return list(self._completed)

    @property
    def started_at(self) -> float:
        return self._started_at

    @property
    def outcome(self) -> Optional[SessionOutcome]:
        return self._outcome

    def snapshot_notes(self) -> List[Note]:
        """Notes of the session in snapshot order (kept after completion for the summary)."""
        return [self._snapshot[i] for i in self._ordered_ids if i in self._snapshot]

    # ---- transitions ----

    def start(self, candidate_notes: Sequence[Note]) -> None:
        if self.state not in (ReviewState.NOT_STARTED, ReviewState.ABORTED):
            raise SessionStateError(f"cannot start from {self.state.value}")
        self._begin(candidate_notes)

    def restart(self, candidate_notes: Sequence[Note]) -> None:
        """Fresh start after completion; pass the re-fetched candidate set."""
        if self.state != ReviewState.COMPLETED:
            raise SessionStateError(f"cannot restart from {self.state.value}")
        self._begin(candidate_notes)

    def _begin(self, candidate_notes: Sequence[Note]) -> None:
        notes = list(candidate_notes)
        if not notes:
            raise SessionStateError("no notes to review")
        self._reset()
        self._ordered_ids = [n.id for n in notes]
        self._snapshot = {n.id: n for n in notes}
        self._started_at = self._clock()
        self.state = ReviewState.IN_PROGRESS
        self._persist()
        logger.info("Review session started with %d note(s)", len(notes))

    def resume(self, live_notes: Sequence[Note]) -> bool:
        """
        Re-enter a checkpointed session after a reload.

        Ids that no longer resolve against live_notes are dropped from the
        snapshot and the index is clamped to the shorter list. Returns False
        (and clears the checkpoint) when there is nothing left to resume.
        """
        if self.state != ReviewState.NOT_STARTED:
            raise SessionStateError(f"cannot resume from {self.state.value}")
        checkpoint = self._checkpoints.load()
        if checkpoint is None or not checkpoint.is_active:
            return False

        by_id = {n.id: n for n in live_notes}
        ordered = [i for i in checkpoint.ordered_note_ids if i in by_id]
        if not ordered:
            self._checkpoints.clear()
            return False

        self._ordered_ids = ordered
        self._snapshot = {i: by_id[i] for i in ordered}
        self._current_index = max(0, min(checkpoint.current_index, len(ordered) - 1))
        self._completed = [i for i in checkpoint.completed_note_ids if i in by_id]
        self._responses = list(checkpoint.responses)
        self._started_at = checkpoint.started_at or self._clock()
        self.state = ReviewState.IN_PROGRESS
        self._persist()
        logger.info("Resumed review session at %d/%d", self._current_index + 1, len(ordered))
        return True

    def sync_notes(self, live_notes: Sequence[Note]) -> None:
        """Refresh display data for notes already in the snapshot. Never adds or reorders."""
        for note in live_notes:
            if note.id in self._snapshot:
                self._snapshot[note.id] = note

    def reveal_answer(self) -> None:
        self._require(ReviewState.IN_PROGRESS)
        self._revealed = True

    def hide_answer(self) -> None:
        self._revealed = False

    def record_response(self, level: int) -> Optional[SessionOutcome]:
        """
        Record the new understanding level for the current note.

        Returns the outcome when this was the last note, else None.
        Raises ValidationViolation for a level outside [1, 5], and lets
        NotFound/BackendUnavailable from the note update propagate; in all
        those cases nothing is recorded and the index does not move.
        """
        self._require(ReviewState.IN_PROGRESS)
        note = self.current_note
        if note is None:
            raise SessionStateError("no current note")
        if not self._revealed:
            raise SessionStateError("reveal the answer before recording a response")
        check_level('understanding_level', level)

        updated = self._notes.update(note.id, {'understanding_level': level})
        if updated is None:
            raise NotFound(f"note {note.id} no longer exists")

        self._snapshot[note.id] = updated
        self._responses.append(ReviewResponse(note.id, note.understanding_level, level))
        self._completed.append(note.id)

        if self.is_last:
            return self._finish(ReviewState.COMPLETED)
        self._advance()
        return None

    def skip(self) -> Optional[SessionOutcome]:
        """Move on without recording. Skipping the last note aborts the session."""
        self._require(ReviewState.IN_PROGRESS)
        if self.current_note is None:
            raise SessionStateError("no current note")
        if self.is_last:
            return self._finish(ReviewState.ABORTED)
        self._advance()
        return None

    def end(self) -> None:
        """User abort: drop the checkpoint and the snapshot, no summary."""
        self._require(ReviewState.IN_PROGRESS)
        self._checkpoints.clear()
        self._reset()
        logger.info("Review session ended by user")

    def close(self) -> None:
        """Dismiss the finished session's summary."""
        if self.state not in (ReviewState.COMPLETED, ReviewState.ABORTED):
            raise SessionStateError(f"cannot close from {self.state.value}")
        self._reset()

    def summary(self) -> SessionSummary:
        if self.state != ReviewState.COMPLETED or self._outcome is None:
            raise SessionStateError("summary is only available for a completed session")
        return self._outcome.summary()

    # ---- internals ----

    def _require(self, state: ReviewState) -> None:
        if self.state != state:
            raise SessionStateError(f"expected {state.value}, session is {self.state.value}")

    def _advance(self) -> None:
        self._current_index += 1
        self._revealed = False
        self._persist()

    def _finish(self, state: ReviewState) -> SessionOutcome:
        self._checkpoints.clear()
        self.state = state
        self._revealed = False
        self._outcome = SessionOutcome(
            state=state,
            responses=list(self._responses),
            started_at=self._started_at,
            finished_at=self._clock(),
            total=len(self._ordered_ids),
        )
        logger.info(
            "Review session %s: %d of %d note(s) reviewed",
            state.value, len(self._responses), len(self._ordered_ids),
        )
        return self._outcome

    def _persist(self) -> None:
        self._checkpoints.save(Checkpoint(
            ordered_note_ids=list(self._ordered_ids),
            current_index=self._current_index,
            completed_note_ids=list(self._completed),
            responses=list(self._responses),
            started_at=self._started_at,
            is_active=True,
            saved_at=self._clock(),
        ))
