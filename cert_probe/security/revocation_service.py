"""
Revocation checking for presented certificate chains using OCSP with CRL fallback.
"""
import logging
from typing import List, Optional

import requests
from cryptography import x509
from cryptography.hazmat.primitives import hashes, serialization
from cryptography.x509 import ocsp
from cryptography.x509.oid import AuthorityInformationAccessOID, ExtensionOID

from ..models.handshake import RevocationStatus
from .certificates import authority_info_urls, find_issuer, format_distinguished_name, is_self_issued
from .models import RevocationCheck


OCSP_REQUEST_CONTENT_TYPE = "application/ocsp-request"


class RevocationService:
    """Service for determining whether certificates have been revoked."""

    def __init__(self,
                 session: Optional[requests.Session] = None,
                 timeout: int = 30,
                 enable_ocsp: bool = True,
                 enable_crl_fallback: bool = True):
        """
        Initialize the revocation service.

        Args:
            session: requests session used to reach OCSP responders and CRLs
            timeout: Request timeout in seconds
            enable_ocsp: Query OCSP responders listed in the AIA extension
            enable_crl_fallback: Download CRLs when OCSP gives no answer
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.enable_ocsp = enable_ocsp
        self.enable_crl_fallback = enable_crl_fallback
        self.logger = logging.getLogger(__name__)

    def check_chain(self, certificates: List[x509.Certificate]) -> List[RevocationCheck]:
        """
        Check every certificate of a chain against its issuer.

        Self-issued trust anchors are not checked. A certificate whose
        issuer is not in the chain cannot be checked and is UNKNOWN.

        Args:
            certificates: Certificates ordered from leaf to root

        Returns:
            One RevocationCheck per certificate, in the same order
        """
        checks = []
        for cert in certificates:
            if is_self_issued(cert):
                checks.append(RevocationCheck.not_checked())
                continue

            issuer = find_issuer(cert, certificates)
            if issuer is None:
                subject = format_distinguished_name(cert.subject)
                self.logger.warning(f"Issuer of {subject} not available, revocation status unknown")
                checks.append(RevocationCheck.unknown(f"Issuer certificate of {subject} not available"))
                continue

            checks.append(self.check_certificate(cert, issuer))
        return checks

    def check_certificate(self, cert: x509.Certificate, issuer: x509.Certificate) -> RevocationCheck:
        """
        Determine the revocation status of a single certificate.

        OCSP responders are tried first; CRL distribution points are only
        consulted when no responder gave a conclusive answer.

        Args:
            cert: Certificate to check
            issuer: Certificate of its issuer

        Returns:
            RevocationCheck describing the status and where it came from
        """
        subject = format_distinguished_name(cert.subject)
        errors = []

        if self.enable_ocsp:
            for url in self._ocsp_urls(cert):
                check = self._query_ocsp(url, cert, issuer)
                if check.is_conclusive:
                    self.logger.info(f"OCSP status for {subject}: {check.status.value}")
                    return check
                errors.append(check.error_message)

        if self.enable_crl_fallback:
            for url in self._crl_urls(cert):
                check = self._query_crl(url, cert, issuer)
                if check.is_conclusive:
                    self.logger.info(f"CRL status for {subject}: {check.status.value}")
                    return check
                errors.append(check.error_message)

        message = "; ".join(e for e in errors if e) or "No revocation source available"
        self.logger.warning(f"Could not determine revocation status for {subject}: {message}")
        return RevocationCheck.unknown(message)

    def _ocsp_urls(self, cert: x509.Certificate) -> List[str]:
        return authority_info_urls(cert, AuthorityInformationAccessOID.OCSP)

    def _crl_urls(self, cert: x509.Certificate) -> List[str]:
        try:
            points = cert.extensions.get_extension_for_oid(ExtensionOID.CRL_DISTRIBUTION_POINTS).value
        except x509.ExtensionNotFound:
            return []
        urls = []
        for point in points:
            for name in point.full_name or []:
                if isinstance(name, x509.UniformResourceIdentifier):
                    urls.append(name.value)
        return urls

    def _query_ocsp(self, url: str, cert: x509.Certificate, issuer: x509.Certificate) -> RevocationCheck:
        request = ocsp.OCSPRequestBuilder().add_certificate(cert, issuer, hashes.SHA1()).build()

        try:
            self.logger.debug(f"Querying OCSP responder {url}")
            response = self.session.post(
                url,
                data=request.public_bytes(serialization.Encoding.DER),
                headers={'Content-Type': OCSP_REQUEST_CONTENT_TYPE},
                timeout=self.timeout
            )
            response.raise_for_status()
            ocsp_response = ocsp.load_der_ocsp_response(response.content)
        except requests.exceptions.RequestException as e:
            return RevocationCheck.unknown(f"OCSP request to {url} failed: {e}")
        except ValueError as e:
            return RevocationCheck.unknown(f"Invalid OCSP response from {url}: {e}")

        if ocsp_response.response_status != ocsp.OCSPResponseStatus.SUCCESSFUL:
            return RevocationCheck.unknown(
                f"OCSP responder {url} answered {ocsp_response.response_status.name}"
            )

        try:
            if ocsp_response.serial_number != cert.serial_number:
                return RevocationCheck.unknown(f"OCSP response from {url} is for another certificate")
            cert_status = ocsp_response.certificate_status
        except ValueError as e:
            return RevocationCheck.unknown(f"Unusable OCSP response from {url}: {e}")

        if cert_status == ocsp.OCSPCertStatus.GOOD:
            return RevocationCheck(RevocationStatus.GOOD, source="ocsp", responder_url=url)
        if cert_status == ocsp.OCSPCertStatus.REVOKED:
            return RevocationCheck(RevocationStatus.REVOKED, source="ocsp", responder_url=url)
        return RevocationCheck(
            RevocationStatus.UNKNOWN,
            source="ocsp",
            responder_url=url,
            error_message=f"OCSP responder {url} does not know the certificate"
        )

    def _query_crl(self, url: str, cert: x509.Certificate, issuer: x509.Certificate) -> RevocationCheck:
        try:
            self.logger.debug(f"Downloading CRL {url}")
            response = self.session.get(url, timeout=self.timeout)
            response.raise_for_status()
            crl = self._load_crl(response.content)
        except requests.exceptions.RequestException as e:
            return RevocationCheck.unknown(f"CRL download from {url} failed: {e}")
        except ValueError as e:
            return RevocationCheck.unknown(f"Invalid CRL from {url}: {e}")

        if crl.issuer != issuer.subject or not crl.is_signature_valid(issuer.public_key()):
            return RevocationCheck.unknown(f"CRL from {url} is not signed by the issuer")

        if crl.get_revoked_certificate_by_serial_number(cert.serial_number) is not None:
            return RevocationCheck(RevocationStatus.REVOKED, source="crl", responder_url=url)
        return RevocationCheck(RevocationStatus.GOOD, source="crl", responder_url=url)

    def _load_crl(self, content: bytes) -> x509.CertificateRevocationList:
        if content.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_crl(content)
        return x509.load_der_x509_crl(content)
