"""Leaf certificate issuance module."""

from typing import Optional
import logging

from cryptography.exceptions import UnsupportedAlgorithm

from crypto_utils import (
    X509Utils,
    CertificateFormatConverter,
    CertificateVerifier,
)

from .artifacts import Artifact, ensure_absent, remove_created, write_artifacts
from .ca_manager import CAManager
from .errors import CANotFoundError, ExternalCommandError, MissingFileError
from .models import CertificateSummary, IssuedCertificate, LeafPaths, LeafRole
from .state import Phase

logger = logging.getLogger(__name__)


class CertificateIssuer:
    """Issues the server and client leaf certificates."""

    def __init__(self, ca_manager: CAManager):
        """
        Initialize Certificate Issuer.

        Args:
            ca_manager: CA Manager for the same working directory
        """
        self.ca_manager = ca_manager
        self.config = ca_manager.config

    def paths(self, role: LeafRole) -> LeafPaths:
        return LeafPaths.for_role(role, self.config)

    def create_server_certificate(self) -> IssuedCertificate:
        """
        Issue the server certificate for the load balancer DNS name.

        The bundle is exported without a password.
        """
        return self._issue(
            role=LeafRole.SERVER,
            common_name=self.config.lb_dns,
            validity_days=self.config.server_days,
            password=None,
        )

    def create_client_certificate(self) -> IssuedCertificate:
        """
        Issue the certificate for the fixed client identity.

        The bundle is protected with the configured client password when one
        is set.
        """
        issued = self._issue(
            role=LeafRole.CLIENT,
            common_name=self.config.client_name,
            validity_days=self.config.client_days,
            password=self.config.client_password_bytes(),
        )
        logger.info(
            f"Distribute {self.paths(LeafRole.CLIENT).bundle.name} to all client machines"
            f"{' (with password)' if issued.bundle_password_protected else ''}"
        )
        return issued

    def _issue(
        self,
        role: LeafRole,
        common_name: str,
        validity_days: int,
        password: Optional[bytes]
    ) -> IssuedCertificate:
        paths = self.paths(role)

        # Checked before taking the lock so a missing CA leaves no trace
        if not self.ca_manager.authority_exists():
            raise CANotFoundError(f"CA not found at {self.ca_manager.ca_dir}. Run 'ca' first.")

        with self.ca_manager.lock():
            ca_key, ca_cert = self.ca_manager.get_authority()
            ensure_absent(paths.all(), f"{role.value.capitalize()} cert for {common_name}")
            policy = self.ca_manager.usage_policy()
            state = self.ca_manager.state.load()

            try:
                usage = policy.extended_key_usage(role.profile)

                logger.info(f"Generating {role.value} key + CSR (CN={common_name})")
                private_key, csr = X509Utils.create_signing_request(
                    common_name, key_size=self.config.leaf_key_size
                )

                serial, serial_artifact = self.ca_manager.next_serial()

                logger.info(
                    f"Signing {role.value} certificate with CA "
                    f"({validity_days} days, EKU={role.profile})"
                )
                cert = X509Utils.sign_request(
                    csr,
                    ca_private_key=ca_key,
                    ca_cert=ca_cert,
                    serial_number=serial,
                    validity_days=validity_days,
                    extended_key_usage=usage,
                )

                bundle = CertificateFormatConverter.to_pkcs12(
                    cert,
                    private_key,
                    ca_certs=[ca_cert],
                    password=password,
                    friendly_name=common_name.encode(),
                )
            except (ValueError, TypeError, UnsupportedAlgorithm) as e:
                raise ExternalCommandError(f"Failed to issue {role.value} certificate: {e}", e)

            artifacts = [
                Artifact(paths.key, X509Utils.private_key_pem(private_key), private=True),
                Artifact(paths.request, X509Utils.signing_request_pem(csr)),
                Artifact(paths.certificate, X509Utils.certificate_pem(cert)),
                Artifact(paths.bundle, bundle, private=True),
                serial_artifact,
            ]
            files = write_artifacts(artifacts)

            # ca.srl keeps the advanced serial
            try:
                self.ca_manager.state.record(
                    Phase.SERVER_ISSUED if role is LeafRole.SERVER else Phase.CLIENT_ISSUED,
                    current=state,
                )
            except ExternalCommandError:
                remove_created(artifacts)
                raise

        logger.info(f"{role.value.capitalize()} certificate created in {paths.certificate.parent} (serial: {serial:X})")
        return IssuedCertificate(
            role=role,
            certificate=CertificateSummary.from_certificate(
                cert, CertificateVerifier.get_certificate_fingerprint(cert)
            ),
            files=files[:-1],
            bundle_password_protected=bool(password),
        )

    def verify(self, role: LeafRole) -> CertificateSummary:
        """
        Verify an issued certificate against the authority and its usage profile.

        Raises:
            MissingFileError: If the role's certificate is missing
            CANotFoundError: If the authority certificate is missing
            CertificateVerificationError: If verification fails
        """
        cert_path = self.paths(role).certificate
        if not cert_path.exists():
            raise MissingFileError(cert_path)

        ca_cert = self.ca_manager.get_certificate()
        policy = self.ca_manager.usage_policy()
        try:
            cert = X509Utils.load_certificate(cert_path)
            usage = policy.extended_key_usage(role.profile)
        except ValueError as e:
            raise ExternalCommandError(f"Failed to verify {cert_path}: {e}", e)

        CertificateVerifier.verify_leaf_certificate(cert, ca_cert, expected_usage=usage)

        return CertificateSummary.from_certificate(
            cert, CertificateVerifier.get_certificate_fingerprint(cert)
        )
