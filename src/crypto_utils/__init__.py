"""Cryptographic utilities for PKI operations."""

from .x509_utils import X509Utils
from .cert_formats import CertificateFormatConverter
from .verification import CertificateVerifier, CertificateVerificationError

__all__ = ['X509Utils', 'CertificateFormatConverter', 'CertificateVerifier', 'CertificateVerificationError']
