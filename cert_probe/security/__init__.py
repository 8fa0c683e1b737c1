"""
Security package for TLS handshakes, certificate chains and revocation checks.
"""
from .models import RevocationCheck
from .revocation_service import RevocationService
from .chain_builder import ChainBuilder
from .chain_provider import ChainProviderInterface, TLSChainProvider, describe_failure

__all__ = [
    'RevocationCheck',
    'RevocationService',
    'ChainBuilder',
    'ChainProviderInterface',
    'TLSChainProvider',
    'describe_failure'
]
