"""Persisted workflow state and the working directory lock."""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import List, Optional

from pydantic import BaseModel, Field

from .errors import ExternalCommandError, LockedError

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    """Latest milestone reached in a working directory."""

    EMPTY = "EMPTY"
    AUTHORITY_READY = "AUTHORITY_READY"
    SERVER_ISSUED = "SERVER_ISSUED"
    CLIENT_ISSUED = "CLIENT_ISSUED"
    PUBLISHED = "PUBLISHED"


class WorkflowState(BaseModel):
    """State record stored next to the PKI artifacts."""

    phase: Phase = Phase.EMPTY
    completed: List[Phase] = Field(default_factory=list)
    certificate_arn: Optional[str] = None
    updated_at: Optional[datetime] = None

    def advance(self, phase: Phase, certificate_arn: Optional[str] = None) -> "WorkflowState":
        """Return a copy recording that phase has been reached."""
        completed = list(self.completed)
        if phase not in completed:
            completed.append(phase)

        return WorkflowState(
            phase=phase,
            completed=completed,
            certificate_arn=certificate_arn or self.certificate_arn,
            updated_at=datetime.now(timezone.utc),
        )


class StateStore:
    """Reads and atomically replaces the state record."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> WorkflowState:
        if not self.path.exists():
            return WorkflowState()

        try:
            return WorkflowState.model_validate_json(self.path.read_text())
        except (OSError, ValueError) as e:
            raise ExternalCommandError(f"Unreadable state record {self.path}: {e}", e)

    def save(self, state: WorkflowState):
        data = json.dumps(state.model_dump(mode="json"), indent=2)

        # Write to a sibling temp file and rename so readers never see a partial record
        try:
            fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=".state-", suffix=".tmp")
        except OSError as e:
            raise ExternalCommandError(f"Failed to write state record {self.path}: {e}", e)

        try:
            with os.fdopen(fd, "w") as f:
                f.write(data)
            os.replace(tmp_name, self.path)
        except OSError as e:
            Path(tmp_name).unlink(missing_ok=True)
            raise ExternalCommandError(f"Failed to write state record {self.path}: {e}", e)

        logger.debug(f"State record updated: {state.phase.value}")

    def record(
        self,
        phase: Phase,
        certificate_arn: Optional[str] = None,
        current: Optional[WorkflowState] = None
    ) -> WorkflowState:
        """
        Advance the record to phase and save it.

        Args:
            phase: Phase just reached
            certificate_arn: Published certificate ARN, if any
            current: State loaded earlier in the same operation (re-read if omitted)
        """
        state = (current if current is not None else self.load()).advance(phase, certificate_arn)
        self.save(state)
        logger.info(f"Workflow state: {phase.value}")
        return state


class WorkflowLock:
    """
    Exclusive lock on a working directory.

    The lock file is created with O_EXCL; a second holder fails immediately
    with LockedError. The file is removed on every exit path.
    """

    def __init__(self, path: Path):
        self.path = Path(path)
        self._held = False

    def acquire(self):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        try:
            fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_EXCL, 0o600)
        except FileExistsError:
            raise LockedError(
                f"{self.path} is held by another invocation; "
                f"remove it if no other run is in progress"
            )

        with os.fdopen(fd, "w") as f:
            f.write(str(os.getpid()))
        self._held = True
        logger.debug(f"Acquired lock: {self.path}")

    def release(self):
        if self._held:
            self.path.unlink(missing_ok=True)
            self._held = False
            logger.debug(f"Released lock: {self.path}")

    def __enter__(self) -> "WorkflowLock":
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb):
        self.release()
