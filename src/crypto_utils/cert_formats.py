"""Certificate format conversion utilities."""

import logging
from typing import List, Optional, Tuple

from cryptography import x509
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from cryptography.hazmat.primitives.serialization import pkcs12

logger = logging.getLogger(__name__)


class CertificateFormatConverter:
    """Convert certificates between different formats."""

    @staticmethod
    def to_pkcs12(
        cert: x509.Certificate,
        key: rsa.RSAPrivateKey,
        ca_certs: Optional[List[x509.Certificate]] = None,
        password: Optional[bytes] = None,
        friendly_name: Optional[bytes] = None
    ) -> bytes:
        """
        Combine certificate, key and CA certificates into a PKCS12 bundle (.pfx).

        Args:
            cert: Leaf certificate
            key: Private key matching the leaf certificate
            ca_certs: Optional CA certificates to include in the bundle
            password: Optional password to encrypt the bundle
            friendly_name: Optional friendly name for the certificate

        Returns:
            PKCS12-encoded data bytes
        """
        if password:
            encryption = serialization.BestAvailableEncryption(password)
        else:
            encryption = serialization.NoEncryption()

        logger.info(
            f"Exporting PKCS12 bundle ({'password protected' if password else 'no password'})"
        )

        return pkcs12.serialize_key_and_certificates(
            name=friendly_name,
            key=key,
            cert=cert,
            cas=ca_certs or None,
            encryption_algorithm=encryption
        )

    @staticmethod
    def from_pkcs12(
        data: bytes,
        password: Optional[bytes] = None
    ) -> Tuple[rsa.RSAPrivateKey, x509.Certificate, List[x509.Certificate]]:
        """
        Load a PKCS12 bundle.

        Args:
            data: PKCS12-encoded bytes
            password: Password the bundle was exported with, if any

        Returns:
            Tuple of (private_key, certificate, additional_certificates)

        Raises:
            ValueError: If the password is wrong or the data is malformed
        """
        key, cert, additional = pkcs12.load_key_and_certificates(data, password)
        return key, cert, additional
