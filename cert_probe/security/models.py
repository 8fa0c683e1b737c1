"""
Security models for revocation checking.
"""
from dataclasses import dataclass
from typing import Optional

from ..models.handshake import RevocationStatus


@dataclass
class RevocationCheck:
    """Result of checking one certificate's revocation status."""
    status: RevocationStatus
    source: Optional[str] = None  # ocsp, crl
    responder_url: Optional[str] = None
    error_message: Optional[str] = None

    @property
    def is_revoked(self) -> bool:
        return self.status == RevocationStatus.REVOKED

    @property
    def is_conclusive(self) -> bool:
        return self.status in (RevocationStatus.GOOD, RevocationStatus.REVOKED)

    @classmethod
    def not_checked(cls) -> 'RevocationCheck':
        return cls(status=RevocationStatus.NOT_CHECKED)

    @classmethod
    def unknown(cls, error_message: str) -> 'RevocationCheck':
        return cls(status=RevocationStatus.UNKNOWN, error_message=error_message)
