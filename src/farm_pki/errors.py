"""Error taxonomy for the certificate issuance workflow."""

from pathlib import Path
from typing import Optional


class WorkflowError(Exception):
    """Base class for fatal workflow errors."""

    code = "WORKFLOW_ERROR"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class AlreadyExistsError(WorkflowError):
    """A target artifact is already present."""

    code = "ALREADY_EXISTS"


class CANotFoundError(WorkflowError):
    """The authority key or certificate is missing."""

    code = "CA_NOT_FOUND"


class MissingFileError(WorkflowError):
    """A file required for publishing is missing."""

    code = "MISSING_FILE"

    def __init__(self, path: Path):
        super().__init__(f"Required file missing: {path}")
        self.path = path


class ImportFailedError(WorkflowError):
    """The certificate store returned an empty identifier."""

    code = "IMPORT_FAILED"


class ExternalCommandError(WorkflowError):
    """A cryptographic, filesystem or remote call failed."""

    code = "EXTERNAL_COMMAND_FAILED"

    def __init__(self, message: str, cause: Optional[BaseException] = None):
        super().__init__(message)
        self.cause = cause


class LockedError(WorkflowError):
    """Another invocation holds the working directory lock."""

    code = "LOCKED"
