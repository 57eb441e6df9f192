"""Run history: one row per ingestion attempt and its state machine.

    pending -> in_progress -> completed
                           -> failed

completed and failed are terminal; a new run always gets a new row.
in_progress -> in_progress is accepted so a queue retry of the same run can
re-enter the scrape stage.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict

from sitebrain.main.exceptions import InvalidRunTransitionException


class RunStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (RunStatus.COMPLETED, RunStatus.FAILED)

    def can_transition_to(self, target: "RunStatus") -> bool:
        return target in _ALLOWED_TRANSITIONS[self]

    @classmethod
    def sources_of(cls, target: "RunStatus") -> tuple["RunStatus", ...]:
        """States from which ``target`` may be entered."""
        return tuple(status for status in cls if status.can_transition_to(target))


_ALLOWED_TRANSITIONS: dict[RunStatus, frozenset[RunStatus]] = {
    RunStatus.PENDING: frozenset({RunStatus.IN_PROGRESS}),
    RunStatus.IN_PROGRESS: frozenset(
        {RunStatus.IN_PROGRESS, RunStatus.COMPLETED, RunStatus.FAILED}
    ),
    RunStatus.COMPLETED: frozenset(),
    RunStatus.FAILED: frozenset(),
}


class TriggerSource(str, Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"
    INITIAL = "initial"


class ScrapeHistoryEntry(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: Optional[str] = None
    chatbot_id: str
    status: RunStatus = RunStatus.PENDING
    pages_scraped: int = 0
    embeddings_created: int = 0
    error_message: Optional[str] = None
    triggered_by: TriggerSource
    started_at: datetime
    completed_at: Optional[datetime] = None

    @classmethod
    def create(cls, chatbot_id: str, triggered_by: TriggerSource) -> "ScrapeHistoryEntry":
        return cls(
            chatbot_id=chatbot_id,
            triggered_by=triggered_by,
            started_at=datetime.now(timezone.utc),
        )

    def transition_to(self, target: RunStatus) -> None:
        if not self.status.can_transition_to(target):
            raise InvalidRunTransitionException(
                f"Run {self.id} cannot go from {self.status.value} to {target.value}"
            )
        self.status = target
        if target.is_terminal:
            self.completed_at = datetime.now(timezone.utc)
