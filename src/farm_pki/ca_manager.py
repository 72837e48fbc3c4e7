"""Certificate Authority management module."""

from pathlib import Path
from typing import List, Optional, Tuple
import logging

from cryptography import x509
from cryptography.exceptions import UnsupportedAlgorithm
from cryptography.hazmat.primitives.asymmetric import rsa

from crypto_utils import X509Utils, CertificateVerifier

from .artifacts import Artifact, ensure_absent, remove_created, write_artifacts
from .config import WorkflowConfig
from .errors import CANotFoundError, ExternalCommandError
from .models import USAGE_POLICY, AuthorityInfo, CertificateSummary, UsagePolicy
from .state import Phase, StateStore, WorkflowLock

logger = logging.getLogger(__name__)


class CAManager:
    """Manages the authority stored in a working directory."""

    def __init__(self, config: WorkflowConfig):
        """
        Initialize CA Manager.

        Args:
            config: Workflow configuration naming the working directory
        """
        self.config = config
        self.ca_dir = config.ca_dir
        self.key_path = self.ca_dir / "ca.key"
        self.cert_path = self.ca_dir / "ca.crt"
        self.usage_path = self.ca_dir / "usage.cnf"
        self.serial_path = self.ca_dir / "ca.srl"
        self.state = StateStore(config.state_path)

        # Authority cache
        self._private_key: Optional[rsa.RSAPrivateKey] = None
        self._cert: Optional[x509.Certificate] = None

        logger.debug(f"CA Manager initialized with storage path: {self.ca_dir}")

    def lock(self) -> WorkflowLock:
        return WorkflowLock(self.config.lock_path)

    def authority_exists(self) -> bool:
        return self.key_path.exists() and self.cert_path.exists()

    def create_authority(self) -> AuthorityInfo:
        """
        Create the self-signed authority and its usage policy.

        Returns:
            Details of the new authority certificate

        Raises:
            AlreadyExistsError: If ca.key or ca.crt is already present
            ExternalCommandError: If key generation or a write fails
        """
        with self.lock():
            ensure_absent([self.key_path, self.cert_path], f"CA in {self.ca_dir}")
            state = self.state.load()

            logger.info("Generating CA private key and self-signed certificate (CN=CA)")
            try:
                private_key, cert = X509Utils.create_authority(
                    common_name="CA",
                    key_size=self.config.ca_key_size,
                    validity_days=self.config.ca_days,
                )
            except (ValueError, TypeError, UnsupportedAlgorithm) as e:
                raise ExternalCommandError(f"Failed to create authority: {e}", e)

            logger.info(f"Creating {self.usage_path.name}")
            artifacts = [
                Artifact(self.key_path, X509Utils.private_key_pem(private_key), private=True),
                Artifact(self.cert_path, X509Utils.certificate_pem(cert)),
                Artifact(self.usage_path, USAGE_POLICY.encode(), replace=True),
            ]
            files = write_artifacts(artifacts)

            try:
                self.state.record(Phase.AUTHORITY_READY, current=state)
            except ExternalCommandError:
                remove_created(artifacts)
                raise

            self._private_key, self._cert = private_key, cert

        logger.info(f"CA setup complete. Files created in {self.ca_dir}")
        return AuthorityInfo(
            certificate=CertificateSummary.from_certificate(
                cert, CertificateVerifier.get_certificate_fingerprint(cert)
            ),
            files=files,
        )

    def get_authority(self) -> Tuple[rsa.RSAPrivateKey, x509.Certificate]:
        """
        Get the authority key and certificate (from cache or disk).

        Raises:
            CANotFoundError: If the authority has not been created
            ExternalCommandError: If the files cannot be parsed
        """
        if self._private_key and self._cert:
            return self._private_key, self._cert

        if not self.authority_exists():
            raise CANotFoundError(f"CA not found at {self.ca_dir}. Run 'ca' first.")

        try:
            self._private_key = X509Utils.load_private_key(self.key_path)
            self._cert = X509Utils.load_certificate(self.cert_path)
        except (ValueError, TypeError, UnsupportedAlgorithm) as e:
            raise ExternalCommandError(f"Failed to load CA from {self.ca_dir}: {e}", e)

        return self._private_key, self._cert

    def get_certificate(self) -> x509.Certificate:
        """Load only the authority certificate."""
        if self._cert:
            return self._cert
        if not self.cert_path.exists():
            raise CANotFoundError(f"CA certificate not found: {self.cert_path}")
        try:
            return X509Utils.load_certificate(self.cert_path)
        except ValueError as e:
            raise ExternalCommandError(f"Failed to load {self.cert_path}: {e}", e)

    def usage_policy(self) -> UsagePolicy:
        """
        Load the usage-policy file.

        Raises:
            CANotFoundError: If usage.cnf is missing
            ExternalCommandError: If usage.cnf cannot be parsed
        """
        if not self.usage_path.exists():
            raise CANotFoundError(f"Usage policy not found: {self.usage_path}")

        try:
            return UsagePolicy.load(self.usage_path)
        except (OSError, ValueError) as e:
            raise ExternalCommandError(f"Failed to read {self.usage_path}: {e}", e)

    def next_serial(self) -> Tuple[int, Artifact]:
        """
        Allocate the serial number for the next leaf certificate.

        The first issuance starts from a random serial; later ones increment
        the value recorded in ca.srl.

        Returns:
            Tuple of (serial_number, artifact updating ca.srl)
        """
        if self.serial_path.exists():
            try:
                serial = int(self.serial_path.read_text().strip(), 16) + 1
            except ValueError as e:
                raise ExternalCommandError(f"Corrupt serial file {self.serial_path}: {e}", e)
        else:
            serial = x509.random_serial_number()
            logger.info(f"Creating serial file {self.serial_path}")

        return serial, Artifact(self.serial_path, self.format_serial(serial).encode(), replace=True)

    @staticmethod
    def format_serial(serial: int) -> str:
        text = f"{serial:X}"
        if len(text) % 2:
            text = "0" + text
        return text + "\n"

    def get_authority_info(self) -> CertificateSummary:
        """Get summary details of the authority certificate."""
        cert = self.get_certificate()
        return CertificateSummary.from_certificate(
            cert, CertificateVerifier.get_certificate_fingerprint(cert)
        )

    def artifact_paths(self) -> List[Path]:
        return [self.key_path, self.cert_path, self.usage_path, self.serial_path]
