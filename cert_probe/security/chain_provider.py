"""
Chain providers performing live TLS handshakes and HTTPS requests.
"""
import logging
import socket
import ssl
from typing import Iterator, List, Optional
from urllib.parse import urlparse

import requests
from cryptography import x509
from requests.adapters import HTTPAdapter
from requests.utils import DEFAULT_CA_BUNDLE_PATH
from urllib3.exceptions import ConnectTimeoutError, NewConnectionError, ReadTimeoutError
from urllib3.util.retry import Retry

from ..models.config import Config
from ..models.handshake import ErrorDetail, HandshakeAttempt, RevocationStatus
from .certificates import build_chain, format_distinguished_name, load_der_chain
from .chain_builder import ChainBuilder
from .models import RevocationCheck
from .revocation_service import RevocationService


# OpenSSL X509_V_ERR_* verification codes
X509_V_ERR_UNABLE_TO_GET_ISSUER_CERT = 2
X509_V_ERR_CERT_HAS_EXPIRED = 10
X509_V_ERR_DEPTH_ZERO_SELF_SIGNED_CERT = 18
X509_V_ERR_SELF_SIGNED_CERT_IN_CHAIN = 19
X509_V_ERR_UNABLE_TO_GET_ISSUER_CERT_LOCALLY = 20
X509_V_ERR_UNABLE_TO_VERIFY_LEAF_SIGNATURE = 21
X509_V_ERR_CERT_REVOKED = 23

UNKNOWN_ISSUER_CODES = {
    X509_V_ERR_UNABLE_TO_GET_ISSUER_CERT,
    X509_V_ERR_DEPTH_ZERO_SELF_SIGNED_CERT,
    X509_V_ERR_SELF_SIGNED_CERT_IN_CHAIN,
    X509_V_ERR_UNABLE_TO_GET_ISSUER_CERT_LOCALLY,
    X509_V_ERR_UNABLE_TO_VERIFY_LEAF_SIGNATURE,
}

NETWORK_ERROR_TYPES = (
    requests.exceptions.Timeout,
    requests.exceptions.ConnectionError,
    ConnectTimeoutError,
    ReadTimeoutError,
    NewConnectionError,
    TimeoutError,
    ConnectionError,
    socket.gaierror,
)


def iter_causes(error: BaseException) -> Iterator[BaseException]:
    """
    Walk an exception and everything it wraps, outermost first.

    Follows __cause__, __context__, urllib3's ``reason`` attribute and
    exceptions passed as arguments (as requests does when wrapping urllib3).
    """
    pending = [error]
    seen = set()
    while pending:
        current = pending.pop(0)
        if id(current) in seen:
            continue
        seen.add(id(current))
        yield current

        reason = getattr(current, 'reason', None)
        for wrapped in (reason, current.__cause__, current.__context__, *current.args):
            if isinstance(wrapped, BaseException):
                pending.append(wrapped)


def describe_failure(error: BaseException) -> ErrorDetail:
    """
    Translate a handshake or request exception into an ErrorDetail.

    Certificate verification errors anywhere in the cause chain take
    precedence over the transport error wrapping them.
    """
    causes = list(iter_causes(error))

    for cause in causes:
        if isinstance(cause, ssl.SSLCertVerificationError):
            return _describe_verification_error(cause)

    for cause in causes:
        if isinstance(cause, (ssl.SSLError, requests.exceptions.SSLError)):
            return ErrorDetail.other(f"TLS error: {cause}")

    for cause in causes:
        if isinstance(cause, NETWORK_ERROR_TYPES):
            return ErrorDetail.network_error(str(cause))

    if isinstance(error, OSError):
        return ErrorDetail.network_error(str(error))

    return ErrorDetail.other(f"{type(error).__name__}: {error}")


def _describe_verification_error(error: ssl.SSLCertVerificationError) -> ErrorDetail:
    code = getattr(error, 'verify_code', None)
    message = getattr(error, 'verify_message', None) or str(error)
    lowered = message.lower()

    if code == X509_V_ERR_CERT_HAS_EXPIRED or "certificate has expired" in lowered:
        return ErrorDetail.expired(message)
    if code == X509_V_ERR_CERT_REVOKED or "certificate revoked" in lowered:
        return ErrorDetail.revoked(message)
    if code in UNKNOWN_ISSUER_CODES or "issuer certificate" in lowered or "self-signed" in lowered:
        return ErrorDetail.unknown_issuer(message)
    return ErrorDetail.other(message)


class ChainProviderInterface:
    """Interface for components producing handshake attempts."""

    def attempt_handshake(self, url: str) -> HandshakeAttempt:
        """Connect to url and report the handshake result."""
        raise NotImplementedError

    def close(self) -> None:
        """Release any connection resources."""

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_value, traceback):
        self.close()
        return False


class TLSChainProvider(ChainProviderInterface):
    """Performs a verifying TLS handshake, revocation checks and an HTTPS GET."""

    def __init__(self,
                 config: Config,
                 session: Optional[requests.Session] = None,
                 revocation_service: Optional[RevocationService] = None,
                 chain_builder: Optional[ChainBuilder] = None):
        """
        Initialize the provider.

        Args:
            config: Probe configuration (timeouts, CA bundle, revocation settings)
            session: requests session to use (a new one is created if omitted)
            revocation_service: Service used for OCSP/CRL checks
            chain_builder: Completes the presented chain up to a trust anchor
        """
        self.config = config
        self.timeout = config.request_timeout_seconds
        self.logger = logging.getLogger(__name__)
        self.session = session or self._create_session()
        self.revocation_service = revocation_service or RevocationService(
            session=self.session,
            timeout=self.timeout,
            enable_ocsp=config.enable_ocsp,
            enable_crl_fallback=config.enable_crl_fallback
        )
        self.chain_builder = chain_builder or ChainBuilder(
            session=self.session,
            timeout=self.timeout,
            ca_bundle_path=config.ca_bundle_path
        )

    def _create_session(self) -> requests.Session:
        """Create a requests session that never retries on its own."""
        session = requests.Session()

        adapter = HTTPAdapter(max_retries=Retry(total=0, read=False))
        session.mount("http://", adapter)
        session.mount("https://", adapter)
        session.headers.update({'User-Agent': 'cert-probe'})

        return session

    def _create_ssl_context(self) -> ssl.SSLContext:
        context = ssl.create_default_context(cafile=self.config.ca_bundle_path or DEFAULT_CA_BUNDLE_PATH)
        context.minimum_version = ssl.TLSVersion.TLSv1_2
        return context

    def attempt_handshake(self, url: str) -> HandshakeAttempt:
        """
        Connect to an HTTPS endpoint and describe what happened.

        Args:
            url: HTTPS URL to request

        Returns:
            HandshakeAttempt with the completed chain and HTTP status on
            success, or the root cause of the failure
        """
        parsed = urlparse(url)
        if parsed.scheme != 'https' or not parsed.hostname:
            return HandshakeAttempt.failure_result(ErrorDetail.other(f"Invalid HTTPS URL: {url}"), url)

        try:
            presented = self._handshake(parsed.hostname, parsed.port or 443)
            certificates = self.chain_builder.complete(presented)

            statuses = None
            if self.config.check_revocation:
                checks = self.revocation_service.check_chain(certificates)
                failure = self._revocation_failure(certificates, checks)
                if failure is not None:
                    self.logger.warning(f"Revocation check for {url} failed: {failure}")
                    return HandshakeAttempt.failure_result(failure, url)
                statuses = [check.status for check in checks]

            chain = build_chain(certificates, statuses)
            status_code = self._fetch(url)

        except (OSError, requests.exceptions.RequestException, ValueError) as e:
            detail = describe_failure(e)
            self.logger.warning(f"Handshake with {url} failed: {detail}")
            return HandshakeAttempt.failure_result(detail, url)

        self.logger.info(f"Handshake with {url} succeeded (status: {status_code}, chain length: {len(chain)})")
        return HandshakeAttempt.success_result(chain, status_code, url)

    def _handshake(self, host: str, port: int) -> List[x509.Certificate]:
        """Open a verified TLS connection and return the presented chain."""
        context = self._create_ssl_context()

        with socket.create_connection((host, port), timeout=self.timeout) as sock:
            with context.wrap_socket(sock, server_hostname=host) as tls_sock:
                certificates = self._presented_chain(tls_sock)
                self._log_session(host, tls_sock, certificates)
                return certificates

    def _presented_chain(self, tls_sock: ssl.SSLSocket) -> List[x509.Certificate]:
        # get_unverified_chain is only available from Python 3.13
        if hasattr(tls_sock, 'get_unverified_chain'):
            der_certificates = tls_sock.get_unverified_chain() or []
        else:
            der_certificates = [tls_sock.getpeercert(binary_form=True)]
        return load_der_chain(der for der in der_certificates if der)

    def _log_session(self, host: str, tls_sock: ssl.SSLSocket, certificates: List[x509.Certificate]):
        if not self.logger.isEnabledFor(logging.DEBUG):
            return
        cipher = tls_sock.cipher()
        self.logger.debug(f"TLS session with {host}: {tls_sock.version()}, cipher {cipher[0] if cipher else None}")
        for depth, cert in enumerate(certificates):
            self.logger.debug(
                f"  [{depth}] subject={format_distinguished_name(cert.subject)} "
                f"issuer={format_distinguished_name(cert.issuer)}"
            )

    def _revocation_failure(self, certificates: List[x509.Certificate],
                            checks: List[RevocationCheck]) -> Optional[ErrorDetail]:
        for cert, check in zip(certificates, checks):
            if check.is_revoked:
                subject = format_distinguished_name(cert.subject)
                return ErrorDetail.revoked(f"Certificate revoked ({check.source}): {subject}")

        if not self.config.revocation_soft_fail:
            for cert, check in zip(certificates, checks):
                if check.status == RevocationStatus.UNKNOWN:
                    subject = format_distinguished_name(cert.subject)
                    return ErrorDetail.other(
                        f"Unable to determine revocation status of {subject}: {check.error_message}"
                    )
        return None

    def _fetch(self, url: str) -> int:
        response = self.session.get(
            url,
            timeout=self.timeout,
            verify=self.config.verify,
            allow_redirects=True
        )
        try:
            return response.status_code
        finally:
            response.close()

    def close(self) -> None:
        self.session.close()
