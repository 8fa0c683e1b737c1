"""
Tests for the TLS chain provider and failure root-cause mapping.
"""
import socket
import ssl
import unittest
from unittest.mock import Mock, patch

import requests
from cryptography.hazmat.primitives import serialization
from cryptography.x509 import ocsp
from urllib3.exceptions import MaxRetryError
from urllib3.exceptions import SSLError as Urllib3SSLError

from cert_probe.models.config import Config
from cert_probe.models.handshake import ErrorKind, RevocationStatus
from cert_probe.security.chain_builder import ChainBuilder
from cert_probe.security.chain_provider import TLSChainProvider, describe_failure, iter_causes
from cert_probe.security.models import RevocationCheck
from cert_probe.security.revocation_service import RevocationService
from certificate_builders import CA_ISSUERS_URL, OCSP_URL, create_ca, create_leaf, make_name, ocsp_response_der


def verification_error(code, message):
    error = ssl.SSLCertVerificationError(
        1, f"[SSL: CERTIFICATE_VERIFY_FAILED] certificate verify failed: {message} (_ssl.c:1000)"
    )
    error.verify_code = code
    error.verify_message = message
    return error


def wrapped_by_requests(error):
    """Wrap an error the way requests/urllib3 do for a failed HTTPS request."""
    reason = Urllib3SSLError(error)
    return requests.exceptions.SSLError(MaxRetryError(None, "/", reason=reason))


class TestDescribeFailure(unittest.TestCase):
    """Test cases for describe_failure()."""

    def test_verification_codes(self):
        expectations = [
            (10, "certificate has expired", ErrorKind.EXPIRED_CERTIFICATE),
            (23, "certificate revoked", ErrorKind.REVOKED_CERTIFICATE),
            (20, "unable to get local issuer certificate", ErrorKind.UNKNOWN_ISSUER),
            (19, "self-signed certificate in certificate chain", ErrorKind.UNKNOWN_ISSUER),
            (18, "self-signed certificate", ErrorKind.UNKNOWN_ISSUER),
            (62, "hostname mismatch", ErrorKind.OTHER),
        ]
        for code, message, kind in expectations:
            with self.subTest(code=code):
                detail = describe_failure(verification_error(code, message))
                self.assertEqual(detail.kind, kind)
                self.assertEqual(detail.message, message)

    def test_root_cause_found_through_requests_wrapping(self):
        error = wrapped_by_requests(verification_error(10, "certificate has expired"))

        detail = describe_failure(error)

        self.assertEqual(detail.kind, ErrorKind.EXPIRED_CERTIFICATE)

    def test_root_cause_found_through_exception_chaining(self):
        try:
            try:
                raise verification_error(23, "certificate revoked")
            except ssl.SSLError as inner:
                raise requests.exceptions.ConnectionError("handshake failed") from inner
        except requests.exceptions.ConnectionError as outer:
            detail = describe_failure(outer)

        self.assertEqual(detail.kind, ErrorKind.REVOKED_CERTIFICATE)

    def test_message_fallback_without_code(self):
        error = ssl.SSLCertVerificationError(1, "certificate verify failed: certificate has expired")

        self.assertEqual(describe_failure(error).kind, ErrorKind.EXPIRED_CERTIFICATE)

    def test_timeouts_are_network_errors(self):
        for error in (socket.timeout("timed out"),
                      TimeoutError("timed out"),
                      requests.exceptions.ConnectTimeout("connect timeout"),
                      requests.exceptions.ReadTimeout("read timeout")):
            with self.subTest(error=error):
                self.assertEqual(describe_failure(error).kind, ErrorKind.NETWORK_ERROR)

    def test_connection_errors_are_network_errors(self):
        for error in (ConnectionRefusedError(111, "Connection refused"),
                      socket.gaierror(-2, "Name or service not known"),
                      requests.exceptions.ConnectionError("connection aborted"),
                      OSError(101, "Network is unreachable")):
            with self.subTest(error=error):
                self.assertEqual(describe_failure(error).kind, ErrorKind.NETWORK_ERROR)

    def test_other_tls_errors(self):
        error = ssl.SSLError(1, "[SSL: TLSV1_ALERT_PROTOCOL_VERSION] tlsv1 alert protocol version")

        detail = describe_failure(error)

        self.assertEqual(detail.kind, ErrorKind.OTHER)
        self.assertIn("TLS error", detail.message)

    def test_unrelated_errors_are_other(self):
        detail = describe_failure(ValueError("bad certificate encoding"))

        self.assertEqual(detail.kind, ErrorKind.OTHER)
        self.assertIn("ValueError", detail.message)

    def test_iter_causes_handles_cycles(self):
        first = RuntimeError("first")
        second = RuntimeError("second", first)
        first.__context__ = second

        self.assertEqual(list(iter_causes(first)), [first, second])


class TestTLSChainProvider(unittest.TestCase):
    """Test cases for TLSChainProvider."""

    URL = "https://good.sca1a.amazontrust.com/"

    @classmethod
    def setUpClass(cls):
        cls.ca_cert, cls.ca_key = create_ca(make_name("Amazon Root CA 1", "Amazon", "US"))
        cls.leaf_cert, _ = create_leaf(cls.ca_cert, cls.ca_key, "good.sca1a.amazontrust.com")

    def setUp(self):
        self.config = Config(request_timeout_seconds=5)
        self.session = Mock()
        self.session.get.return_value = Mock(status_code=200)
        self.revocation_service = Mock()
        self.revocation_service.check_chain.return_value = [
            RevocationCheck(RevocationStatus.GOOD, source="ocsp"),
            RevocationCheck.not_checked(),
        ]
        self.chain_builder = Mock()
        self.chain_builder.complete.side_effect = lambda certificates: list(certificates)
        self.provider = TLSChainProvider(
            self.config,
            session=self.session,
            revocation_service=self.revocation_service,
            chain_builder=self.chain_builder
        )

    def test_default_session_and_revocation_service(self):
        provider = TLSChainProvider(self.config)
        try:
            self.assertIsInstance(provider.session, requests.Session)
            self.assertIs(provider.revocation_service.session, provider.session)
            self.assertEqual(provider.revocation_service.timeout, 5)
            self.assertIs(provider.chain_builder.session, provider.session)
            self.assertEqual(provider.chain_builder.timeout, 5)
            self.assertEqual(provider.session.headers['User-Agent'], 'cert-probe')
        finally:
            provider.close()

    def test_ssl_context_requires_verification(self):
        context = self.provider._create_ssl_context()

        self.assertEqual(context.verify_mode, ssl.CERT_REQUIRED)
        self.assertTrue(context.check_hostname)
        self.assertEqual(context.minimum_version, ssl.TLSVersion.TLSv1_2)

    def test_successful_attempt(self):
        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert, self.ca_cert]) as handshake:
            attempt = self.provider.attempt_handshake(self.URL)

        handshake.assert_called_once_with("good.sca1a.amazontrust.com", 443)
        self.chain_builder.complete.assert_called_once_with([self.leaf_cert, self.ca_cert])
        self.assertTrue(attempt.success)
        self.assertEqual(attempt.http_status, 200)
        self.assertEqual(attempt.url, self.URL)
        self.assertEqual(len(attempt.chain), 2)
        self.assertEqual(attempt.chain.issuer_at(1), "CN=Amazon Root CA 1, O=Amazon, C=US")
        self.assertEqual(attempt.chain[0].revocation_status, RevocationStatus.GOOD)

        self.session.get.assert_called_once_with(self.URL, timeout=5, verify=True, allow_redirects=True)
        self.session.get.return_value.close.assert_called_once()

    def test_revoked_certificate_fails_before_request(self):
        self.revocation_service.check_chain.return_value = [
            RevocationCheck(RevocationStatus.REVOKED, source="ocsp"),
            RevocationCheck.not_checked(),
        ]

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert, self.ca_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertFalse(attempt.success)
        self.assertEqual(attempt.cause.kind, ErrorKind.REVOKED_CERTIFICATE)
        self.assertIn("good.sca1a.amazontrust.com", attempt.cause.message)
        self.session.get.assert_not_called()

    def test_unknown_revocation_status_fails_by_default(self):
        self.revocation_service.check_chain.return_value = [
            RevocationCheck.unknown("responder unreachable"),
            RevocationCheck.not_checked(),
        ]

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert, self.ca_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertFalse(attempt.success)
        self.assertEqual(attempt.cause.kind, ErrorKind.OTHER)
        self.assertIn("responder unreachable", attempt.cause.message)

    def test_unknown_revocation_status_with_soft_fail(self):
        self.config.revocation_soft_fail = True
        self.revocation_service.check_chain.return_value = [
            RevocationCheck.unknown("responder unreachable"),
            RevocationCheck.not_checked(),
        ]

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert, self.ca_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertTrue(attempt.success)
        self.assertEqual(attempt.chain[0].revocation_status, RevocationStatus.UNKNOWN)

    def test_revocation_checking_disabled(self):
        self.config.check_revocation = False

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertTrue(attempt.success)
        self.revocation_service.check_chain.assert_not_called()
        self.assertEqual(attempt.chain[0].revocation_status, RevocationStatus.NOT_CHECKED)

    def test_expired_handshake_failure(self):
        error = verification_error(10, "certificate has expired")

        with patch.object(self.provider, '_handshake', side_effect=error):
            attempt = self.provider.attempt_handshake("https://expired.sca1a.amazontrust.com/")

        self.assertFalse(attempt.success)
        self.assertEqual(attempt.cause.kind, ErrorKind.EXPIRED_CERTIFICATE)
        self.session.get.assert_not_called()

    def test_timeout_is_network_error(self):
        with patch.object(self.provider, '_handshake', side_effect=socket.timeout("timed out")):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertEqual(attempt.cause.kind, ErrorKind.NETWORK_ERROR)

    def test_request_failure_after_handshake(self):
        self.session.get.side_effect = wrapped_by_requests(
            verification_error(20, "unable to get local issuer certificate")
        )

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert, self.ca_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertEqual(attempt.cause.kind, ErrorKind.UNKNOWN_ISSUER)

    def test_invalid_urls_are_rejected(self):
        for url in ("http://good.sca1a.amazontrust.com/", "not-a-url", "https://"):
            with self.subTest(url=url):
                attempt = self.provider.attempt_handshake(url)
                self.assertFalse(attempt.success)
                self.assertEqual(attempt.cause.kind, ErrorKind.OTHER)
                self.assertIn("Invalid HTTPS URL", attempt.cause.message)

    def test_explicit_port_is_used(self):
        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert]) as handshake:
            self.provider.attempt_handshake("https://localhost:8443/status")

        handshake.assert_called_once_with("localhost", 8443)

    def test_presented_chain_from_unverified_chain(self):
        tls_sock = Mock()
        tls_sock.get_unverified_chain.return_value = [
            self.leaf_cert.public_bytes(serialization.Encoding.DER),
            self.ca_cert.public_bytes(serialization.Encoding.DER),
        ]

        self.assertEqual(self.provider._presented_chain(tls_sock), [self.leaf_cert, self.ca_cert])

    def test_presented_chain_falls_back_to_leaf(self):
        tls_sock = Mock(spec=['getpeercert'])
        tls_sock.getpeercert.return_value = self.leaf_cert.public_bytes(serialization.Encoding.DER)

        self.assertEqual(self.provider._presented_chain(tls_sock), [self.leaf_cert])
        tls_sock.getpeercert.assert_called_once_with(binary_form=True)

    def test_completed_chain_is_reported(self):
        self.chain_builder.complete.side_effect = lambda certificates: [self.leaf_cert, self.ca_cert]

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.revocation_service.check_chain.assert_called_once_with([self.leaf_cert, self.ca_cert])
        self.assertEqual(len(attempt.chain), 2)

    def test_context_manager_closes_session(self):
        with self.provider as provider:
            self.assertIs(provider, self.provider)

        self.session.close.assert_called_once()


def http_response(content, status_code=200):
    response = Mock(status_code=status_code)
    response.content = content
    response.raise_for_status.return_value = None
    return response


class TestLeafOnlyChains(unittest.TestCase):
    """Leaf-only handshakes checked by the real revocation service and chain builder."""

    URL = "https://revoked.sca1a.amazontrust.com/"

    @classmethod
    def setUpClass(cls):
        cls.ca_cert, cls.ca_key = create_ca(make_name("Amazon Root CA 1", "Amazon", "US"))
        cls.leaf_cert, _ = create_leaf(cls.ca_cert, cls.ca_key, "revoked.sca1a.amazontrust.com")

    def setUp(self):
        self.config = Config(request_timeout_seconds=5)
        self.session = Mock()
        self.responses = {
            CA_ISSUERS_URL: http_response(self.ca_cert.public_bytes(serialization.Encoding.DER)),
            self.URL: http_response(b"", status_code=200),
        }
        self.session.get.side_effect = lambda url, **kwargs: self.responses[url]
        self.provider = TLSChainProvider(
            self.config,
            session=self.session,
            revocation_service=RevocationService(session=self.session, timeout=5),
            chain_builder=ChainBuilder(session=self.session, timeout=5, trust_anchors=[])
        )

    def _answer_ocsp(self, status):
        self.session.post.return_value = http_response(
            ocsp_response_der(self.leaf_cert, self.ca_cert, self.ca_key, status)
        )

    def test_revoked_leaf_is_reported_revoked(self):
        self._answer_ocsp(ocsp.OCSPCertStatus.REVOKED)

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertFalse(attempt.success)
        self.assertEqual(attempt.cause.kind, ErrorKind.REVOKED_CERTIFICATE)
        self.assertEqual(self.session.post.call_args[0][0], OCSP_URL)
        self.session.get.assert_called_once_with(CA_ISSUERS_URL, timeout=5)

    def test_good_leaf_chain_is_completed(self):
        self._answer_ocsp(ocsp.OCSPCertStatus.GOOD)

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertTrue(attempt.success)
        self.assertEqual(len(attempt.chain), 2)
        self.assertEqual(attempt.chain[0].revocation_status, RevocationStatus.GOOD)
        self.assertEqual(attempt.chain.issuer_at(1), "CN=Amazon Root CA 1, O=Amazon, C=US")

    def test_unavailable_issuer_fails_closed(self):
        self.responses[CA_ISSUERS_URL] = http_response(b"not a certificate")

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertFalse(attempt.success)
        self.assertEqual(attempt.cause.kind, ErrorKind.OTHER)
        self.assertIn("Issuer certificate of CN=revoked.sca1a.amazontrust.com not available",
                      attempt.cause.message)
        self.session.post.assert_not_called()

    def test_unavailable_issuer_passes_with_soft_fail(self):
        self.config.revocation_soft_fail = True
        self.responses[CA_ISSUERS_URL] = http_response(b"not a certificate")

        with patch.object(self.provider, '_handshake', return_value=[self.leaf_cert]):
            attempt = self.provider.attempt_handshake(self.URL)

        self.assertTrue(attempt.success)
        self.assertEqual(attempt.chain[0].revocation_status, RevocationStatus.UNKNOWN)


if __name__ == '__main__':
    unittest.main()
