"""
Models package for the certificate probe.
"""

from .config import Config, ConfigValidationError, ConfigValidationResult
from .handshake import (
    CertificateChain,
    CertificateEntry,
    ErrorDetail,
    ErrorKind,
    HandshakeAttempt,
    RevocationStatus,
    ValidationOutcome,
)

__all__ = [
    'Config',
    'ConfigValidationError',
    'ConfigValidationResult',
    'CertificateChain',
    'CertificateEntry',
    'ErrorDetail',
    'ErrorKind',
    'HandshakeAttempt',
    'RevocationStatus',
    'ValidationOutcome'
]
