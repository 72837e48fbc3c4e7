"""Publishing the server certificate to AWS Certificate Manager and SSM."""

from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple
import logging

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from .ca_manager import CAManager
from .errors import ExternalCommandError, ImportFailedError, MissingFileError
from .models import LeafPaths, LeafRole, PublishedCertificateRecord
from .state import Phase

logger = logging.getLogger(__name__)


class AcmCertificateStore:
    """Certificate store backed by AWS Certificate Manager."""

    def __init__(self, client):
        self.client = client

    def import_certificate(self, certificate: bytes, private_key: bytes, chain: bytes) -> str:
        """
        Import a certificate with its key and chain.

        Returns:
            Certificate ARN (empty string if the service returned none)
        """
        response = self.client.import_certificate(
            Certificate=certificate,
            PrivateKey=private_key,
            CertificateChain=chain,
        )
        return response.get("CertificateArn") or ""


class SsmParameterStore:
    """Hierarchical configuration store backed by SSM Parameter Store."""

    def __init__(self, client):
        self.client = client

    def put(self, name: str, value: str):
        self.client.put_parameter(
            Name=name,
            Value=value,
            Type="String",
            Overwrite=True,
        )

    def get(self, name: str) -> Optional[str]:
        try:
            response = self.client.get_parameter(Name=name)
        except ClientError as e:
            if e.response.get("Error", {}).get("Code") == "ParameterNotFound":
                return None
            raise
        return response["Parameter"]["Value"]


def build_aws_stores(region: str, profile: Optional[str] = None) -> Tuple[AcmCertificateStore, SsmParameterStore]:
    """
    Create ACM and SSM stores from a boto3 session.

    Raises:
        ExternalCommandError: If the session cannot be created (e.g. unknown profile)
    """
    try:
        session = boto3.Session(profile_name=profile, region_name=region)
        return (
            AcmCertificateStore(session.client("acm")),
            SsmParameterStore(session.client("ssm")),
        )
    except BotoCoreError as e:
        raise ExternalCommandError(f"Failed to create AWS session (profile={profile}): {e}", e)


class CertificatePublisher:
    """Publishes the server certificate and records its identifier."""

    def __init__(self, ca_manager: CAManager, certificate_store, parameter_store):
        """
        Initialize Certificate Publisher.

        Args:
            ca_manager: CA Manager for the working directory
            certificate_store: Object with import_certificate(certificate, private_key, chain) -> str
            parameter_store: Object with put(name, value) and get(name)
        """
        self.ca_manager = ca_manager
        self.config = ca_manager.config
        self.certificate_store = certificate_store
        self.parameter_store = parameter_store

    def publish_server_certificate(self) -> PublishedCertificateRecord:
        """
        Import the server certificate and store the returned ARN.

        Raises:
            MissingFileError: If server.crt, server.key or ca.crt is missing
            ImportFailedError: If the certificate store returned no identifier
            ExternalCommandError: If a remote call fails
        """
        paths = LeafPaths.for_role(LeafRole.SERVER, self.config)
        required = [paths.certificate, paths.key, self.ca_manager.cert_path]
        parameter = self.config.cert_arn_parameter

        # Checked before taking the lock so missing inputs leave no trace
        self._require(required)

        with self.ca_manager.lock():
            self._require(required)
            state = self.ca_manager.state.load()

            try:
                certificate, private_key, chain = (p.read_bytes() for p in required)
            except OSError as e:
                raise ExternalCommandError(f"Failed to read server certificate files: {e}", e)

            logger.info(f"Importing server certificate into ACM (region={self.config.region}, profile={self.config.profile})")
            try:
                arn = self.certificate_store.import_certificate(certificate, private_key, chain)
            except (ClientError, BotoCoreError) as e:
                raise ExternalCommandError(f"Failed to import certificate to ACM: {e}", e)

            if not arn:
                raise ImportFailedError("Failed to import certificate to ACM: no ARN returned")

            logger.info(f"Certificate imported to ACM: {arn}")

            try:
                self.parameter_store.put(parameter, arn)
            except (ClientError, BotoCoreError) as e:
                raise ExternalCommandError(f"Failed to store ARN in SSM at {parameter}: {e}", e)

            logger.info(f"Stored ARN in SSM: {parameter}")
            self.ca_manager.state.record(Phase.PUBLISHED, certificate_arn=arn, current=state)

        return PublishedCertificateRecord(
            certificate_arn=arn,
            parameter_name=parameter,
            published_at=datetime.now(timezone.utc),
            region=self.config.region,
        )

    @staticmethod
    def _require(paths: List[Path]):
        for path in paths:
            if not path.exists():
                raise MissingFileError(path)

    def read_published_arn(self) -> Optional[str]:
        """Read the recorded certificate ARN back from the parameter store."""
        try:
            return self.parameter_store.get(self.config.cert_arn_parameter)
        except (ClientError, BotoCoreError) as e:
            raise ExternalCommandError(f"Failed to read {self.config.cert_arn_parameter}: {e}", e)
