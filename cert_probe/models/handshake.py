"""
Data models describing a TLS handshake attempt and its validation outcome.
"""
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Iterator, List, Optional


class ErrorKind(Enum):
    """Root cause categories for a failed handshake."""
    EXPIRED_CERTIFICATE = "expired_certificate"
    REVOKED_CERTIFICATE = "revoked_certificate"
    UNKNOWN_ISSUER = "unknown_issuer"
    NETWORK_ERROR = "network_error"
    OTHER = "other"


class RevocationStatus(Enum):
    """Revocation state of a single certificate."""
    GOOD = "good"
    REVOKED = "revoked"
    UNKNOWN = "unknown"
    NOT_CHECKED = "not_checked"


class ValidationOutcome(Enum):
    """Closed set of outcomes a handshake attempt is classified into."""
    TRUSTED = "Trusted"
    EXPIRED = "Expired"
    REVOKED = "Revoked"
    UNKNOWN_ISSUER = "UnknownIssuer"
    UNREACHABLE = "Unreachable"
    OTHER_FAILURE = "OtherFailure"


@dataclass
class ErrorDetail:
    """Describes why a handshake attempt failed."""
    kind: ErrorKind
    message: Optional[str] = None

    @classmethod
    def expired(cls, message: Optional[str] = None) -> 'ErrorDetail':
        return cls(ErrorKind.EXPIRED_CERTIFICATE, message)

    @classmethod
    def revoked(cls, message: Optional[str] = None) -> 'ErrorDetail':
        return cls(ErrorKind.REVOKED_CERTIFICATE, message)

    @classmethod
    def unknown_issuer(cls, message: Optional[str] = None) -> 'ErrorDetail':
        return cls(ErrorKind.UNKNOWN_ISSUER, message)

    @classmethod
    def network_error(cls, message: Optional[str] = None) -> 'ErrorDetail':
        return cls(ErrorKind.NETWORK_ERROR, message)

    @classmethod
    def other(cls, message: Optional[str] = None) -> 'ErrorDetail':
        return cls(ErrorKind.OTHER, message)

    def __str__(self):
        if self.message:
            return f"{self.kind.value}: {self.message}"
        return self.kind.value


@dataclass
class CertificateEntry:
    """A single certificate as presented by the server."""
    subject: str
    issuer: str
    not_before: datetime
    not_after: datetime
    serial_number: str = ""
    fingerprint: str = ""
    revocation_status: RevocationStatus = RevocationStatus.NOT_CHECKED

    def is_within_validity(self, at: Optional[datetime] = None) -> bool:
        """Check whether the certificate is valid at the given time (default: now)."""
        moment = at or datetime.now(timezone.utc)
        return self.not_before <= moment <= self.not_after


@dataclass
class CertificateChain:
    """Certificates ordered from leaf to root."""
    certificates: List[CertificateEntry] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.certificates)

    def __iter__(self) -> Iterator[CertificateEntry]:
        return iter(self.certificates)

    def __getitem__(self, index: int) -> CertificateEntry:
        return self.certificates[index]

    def is_empty(self) -> bool:
        return len(self.certificates) == 0

    @property
    def leaf(self) -> Optional[CertificateEntry]:
        return self.certificates[0] if self.certificates else None

    def issuer_at(self, index: int) -> Optional[str]:
        """
        Get the issuer name of the certificate at the given depth.

        Args:
            index: Position in the chain, 0 being the leaf

        Returns:
            Issuer distinguished name, or None if the chain is shorter
        """
        if 0 <= index < len(self.certificates):
            return self.certificates[index].issuer
        return None


@dataclass
class HandshakeAttempt:
    """Result of a single connection attempt against an endpoint."""
    success: bool
    chain: Optional[CertificateChain] = None
    http_status: Optional[int] = None
    cause: Optional[ErrorDetail] = None
    url: Optional[str] = None

    @classmethod
    def success_result(cls, chain: CertificateChain, http_status: int,
                       url: Optional[str] = None) -> 'HandshakeAttempt':
        """Create a successful handshake attempt."""
        return cls(success=True, chain=chain, http_status=http_status, url=url)

    @classmethod
    def failure_result(cls, cause: ErrorDetail, url: Optional[str] = None) -> 'HandshakeAttempt':
        """Create a failed handshake attempt."""
        return cls(success=False, cause=cause, url=url)
