"""Writing PKI artifacts with cleanup on partial failure."""

import logging
import os
import tempfile
from pathlib import Path
from typing import List, NamedTuple

from crypto_utils import X509Utils

from .errors import AlreadyExistsError, ExternalCommandError

logger = logging.getLogger(__name__)


class Artifact(NamedTuple):
    path: Path
    data: bytes
    private: bool = False
    replace: bool = False


def ensure_absent(paths: List[Path], what: str):
    """Raise AlreadyExistsError naming every path that already exists."""
    existing = [p for p in paths if p.exists()]
    if existing:
        names = ", ".join(str(p) for p in existing)
        raise AlreadyExistsError(f"{what} already exists ({names}). Aborting.")


def _replace_file(path: Path, data: bytes):
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}-", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_name, path)
    except OSError:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def write_artifacts(artifacts: List[Artifact]) -> List[Path]:
    """
    Write a set of artifacts produced by one operation.

    New files are created exclusively. Files flagged ``replace`` are swapped in
    atomically and are left in place on failure; every newly created file is
    removed again if any write fails, so a failed run leaves nothing behind.

    Args:
        artifacts: Artifacts in write order

    Returns:
        Paths written

    Raises:
        AlreadyExistsError: If a new file appeared since the precondition check
        ExternalCommandError: If a write fails
    """
    created: List[Path] = []
    written: List[Path] = []

    try:
        for artifact in artifacts:
            artifact.path.parent.mkdir(parents=True, exist_ok=True)

            if artifact.replace:
                _replace_file(artifact.path, artifact.data)
            else:
                _create_file(artifact, created)

            written.append(artifact.path)
            logger.debug(f"Wrote {artifact.path} ({len(artifact.data)} bytes)")

    except AlreadyExistsError:
        _remove(created)
        raise
    except OSError as e:
        _remove(created)
        raise ExternalCommandError(f"Failed to write artifacts: {e}", e)

    return written


def remove_created(artifacts: List[Artifact]):
    """Remove the new files of an operation whose later step failed."""
    _remove([a.path for a in artifacts if not a.replace])


def _create_file(artifact: Artifact, created: List[Path]):
    try:
        if artifact.private:
            if artifact.path.exists():
                raise FileExistsError(str(artifact.path))
            created.append(artifact.path)
            X509Utils.write_private_file(artifact.path, artifact.data)
        else:
            with open(artifact.path, "xb") as f:
                created.append(artifact.path)
                f.write(artifact.data)
    except FileExistsError:
        raise AlreadyExistsError(f"{artifact.path} appeared while writing. Aborting.")


def _remove(paths: List[Path]):
    for path in paths:
        logger.warning(f"Removing partially written artifact: {path}")
        path.unlink(missing_ok=True)
