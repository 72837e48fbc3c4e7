"""Pytest configuration and shared fixtures for PKI workflow testing."""

import pytest
import tempfile
import shutil
from pathlib import Path
from typing import Generator

from farm_pki import CAManager, CertificateIssuer, WorkflowConfig


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test artifacts."""
    temp_path = Path(tempfile.mkdtemp())
    yield temp_path
    shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def workflow_config(temp_dir: Path) -> WorkflowConfig:
    """Workflow configuration rooted in the temp directory, with small keys for speed."""
    return WorkflowConfig(
        base_dir=temp_dir,
        lb_dns="deadline.test.example.com",
        client_name="TestRemoteClient",
        ca_key_size=2048,
        leaf_key_size=2048,
        region="eu-west-2",
        profile=None,
    )


@pytest.fixture
def ca_manager(workflow_config: WorkflowConfig) -> CAManager:
    return CAManager(workflow_config)


@pytest.fixture
def authority(ca_manager: CAManager) -> CAManager:
    """CA manager whose authority has already been created."""
    ca_manager.create_authority()
    return ca_manager


@pytest.fixture
def issuer(authority: CAManager) -> CertificateIssuer:
    return CertificateIssuer(authority)
