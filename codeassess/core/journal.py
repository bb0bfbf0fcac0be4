"""Append-only JSONL journal of submission outcomes.

This is the default persistence hook for attempts; deployments with a real
data store pass their own recorder instead.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Protocol

from pydantic import BaseModel, Field

from .models import Submission

LOGGER = logging.getLogger(__name__)


class SubmissionRecorder(Protocol):
    """Collaborator called exactly once per resolved submit."""

    def record(self, submission: Submission, *, attempt_id: str, user_id: str | None = None) -> Any: ...


class SubmissionEvent(BaseModel):
    """Structured record for a single graded submission."""

    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    attempt_id: str
    user_id: str | None = None
    submission: Submission


class SubmissionJournal:
    """JSONL-backed SubmissionRecorder."""

    def __init__(self, output_path: Path):
        self.output_path = output_path
        self.output_path.parent.mkdir(parents=True, exist_ok=True)

    def record(self, submission: Submission, *, attempt_id: str, user_id: str | None = None) -> SubmissionEvent:
        """Write a single event to disk and return the normalized object."""
        event = SubmissionEvent(attempt_id=attempt_id, user_id=user_id, submission=submission)
        with self.output_path.open("a", encoding="utf-8") as handle:
            handle.write(event.model_dump_json() + "\n")
        LOGGER.debug(
            "Recorded submission",
            extra={"attempt_id": attempt_id, "question_id": submission.question_id, "path": str(self.output_path)},
        )
        return event

    def read(self) -> List[SubmissionEvent]:
        if not self.output_path.exists():
            return []
        events: List[SubmissionEvent] = []
        with self.output_path.open("r", encoding="utf-8") as handle:
            for line in handle:
                line = line.strip()
                if not line:
                    continue
                payload: Dict[str, Any] = json.loads(line)
                events.append(SubmissionEvent.model_validate(payload))
        return events


__all__ = ["SubmissionEvent", "SubmissionJournal", "SubmissionRecorder"]
