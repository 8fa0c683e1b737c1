"""
Completion of presented certificate chains up to a trust anchor.
"""
import logging
from typing import List, Optional

import requests
from cryptography import x509
from cryptography.hazmat.primitives.serialization import pkcs7
from cryptography.x509.oid import AuthorityInformationAccessOID
from requests.utils import DEFAULT_CA_BUNDLE_PATH

from .certificates import authority_info_urls, format_distinguished_name, is_issued_by, is_self_issued


MAX_CHAIN_LENGTH = 10


class ChainBuilder:
    """Appends missing issuers to a chain from the trust store or AIA caIssuers."""

    def __init__(self,
                 session: Optional[requests.Session] = None,
                 timeout: int = 30,
                 ca_bundle_path: Optional[str] = None,
                 trust_anchors: Optional[List[x509.Certificate]] = None):
        """
        Initialize the chain builder.

        Args:
            session: requests session used to download issuer certificates
            timeout: Request timeout in seconds
            ca_bundle_path: PEM bundle of trusted roots (requests' bundle if omitted)
            trust_anchors: Trusted certificates to use instead of loading the bundle
        """
        self.session = session or requests.Session()
        self.timeout = timeout
        self.ca_bundle_path = ca_bundle_path or DEFAULT_CA_BUNDLE_PATH
        self._trust_anchors = trust_anchors
        self.logger = logging.getLogger(__name__)

    @property
    def trust_anchors(self) -> List[x509.Certificate]:
        if self._trust_anchors is None:
            self._trust_anchors = self._load_trust_anchors()
        return self._trust_anchors

    def _load_trust_anchors(self) -> List[x509.Certificate]:
        try:
            with open(self.ca_bundle_path, 'rb') as f:
                anchors = x509.load_pem_x509_certificates(f.read())
        except (OSError, ValueError) as e:
            self.logger.warning(f"Could not load trust anchors from {self.ca_bundle_path}: {e}")
            return []
        self.logger.debug(f"Loaded {len(anchors)} trust anchors from {self.ca_bundle_path}")
        return anchors

    def complete(self, certificates: List[x509.Certificate]) -> List[x509.Certificate]:
        """
        Extend a leaf-first chain until it ends in a self-issued certificate.

        Issuers are looked up in the trust store first, then downloaded from
        the caIssuers URLs of the last certificate. The chain is returned as
        far as it could be built.

        Args:
            certificates: Presented certificates ordered from leaf to root

        Returns:
            The presented certificates followed by any issuers found
        """
        chain = list(certificates)

        while chain and not is_self_issued(chain[-1]) and len(chain) < MAX_CHAIN_LENGTH:
            last = chain[-1]
            issuer = self._find_trust_anchor(last) or self._fetch_issuer(last)
            if issuer is None or issuer in chain:
                self.logger.info(
                    f"Chain ends at {format_distinguished_name(last.subject)}, issuer not found"
                )
                break
            self.logger.debug(f"Added issuer {format_distinguished_name(issuer.subject)} to chain")
            chain.append(issuer)

        return chain

    def _find_trust_anchor(self, cert: x509.Certificate) -> Optional[x509.Certificate]:
        for anchor in self.trust_anchors:
            if is_issued_by(cert, anchor):
                return anchor
        return None

    def _fetch_issuer(self, cert: x509.Certificate) -> Optional[x509.Certificate]:
        for url in authority_info_urls(cert, AuthorityInformationAccessOID.CA_ISSUERS):
            try:
                self.logger.debug(f"Downloading issuer certificate {url}")
                response = self.session.get(url, timeout=self.timeout)
                response.raise_for_status()
                candidates = self._load_certificates(response.content)
            except requests.exceptions.RequestException as e:
                self.logger.warning(f"Issuer download from {url} failed: {e}")
                continue
            except ValueError as e:
                self.logger.warning(f"Invalid issuer certificate from {url}: {e}")
                continue

            for candidate in candidates:
                if is_issued_by(cert, candidate):
                    return candidate
            self.logger.warning(f"Certificate from {url} did not issue {format_distinguished_name(cert.subject)}")
        return None

    def _load_certificates(self, content: bytes) -> List[x509.Certificate]:
        # caIssuers may serve a DER or PEM certificate or a PKCS#7 bundle
        if content.lstrip().startswith(b"-----BEGIN PKCS7"):
            return pkcs7.load_pem_pkcs7_certificates(content)
        if content.lstrip().startswith(b"-----BEGIN"):
            return x509.load_pem_x509_certificates(content)
        try:
            return [x509.load_der_x509_certificate(content)]
        except ValueError:
            return pkcs7.load_der_pkcs7_certificates(content)
