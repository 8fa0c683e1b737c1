"""
Helpers for turning X.509 certificates into chain entries.
"""
from typing import Iterable, List, Optional

from cryptography import x509
from cryptography.exceptions import InvalidSignature
from cryptography.hazmat.primitives import hashes
from cryptography.x509.oid import ExtensionOID

from ..models.handshake import CertificateChain, CertificateEntry, RevocationStatus


def format_distinguished_name(name: x509.Name) -> str:
    """
    Render a name most-specific attribute first, e.g. "CN=Amazon Root CA 1, O=Amazon, C=US".
    """
    return ", ".join(rdn.rfc4514_string() for rdn in reversed(name.rdns))


def load_der_chain(der_certificates: Iterable[bytes]) -> List[x509.Certificate]:
    """Parse DER encoded certificates, keeping their order."""
    return [x509.load_der_x509_certificate(der) for der in der_certificates]


def is_self_issued(cert: x509.Certificate) -> bool:
    return cert.issuer == cert.subject


def is_issued_by(cert: x509.Certificate, candidate: x509.Certificate) -> bool:
    """Check that candidate's name matches cert's issuer and its key signed cert."""
    if candidate.subject != cert.issuer:
        return False
    try:
        cert.verify_directly_issued_by(candidate)
    except (ValueError, TypeError, InvalidSignature):
        return False
    return True


def find_issuer(cert: x509.Certificate,
                candidates: Iterable[x509.Certificate]) -> Optional[x509.Certificate]:
    """Find the certificate among candidates that issued cert."""
    for candidate in candidates:
        if candidate is cert:
            continue
        if is_issued_by(cert, candidate):
            return candidate
    return None


def authority_info_urls(cert: x509.Certificate, access_method: x509.ObjectIdentifier) -> List[str]:
    """
    Return the URIs listed in the Authority Information Access extension.

    Args:
        cert: Certificate to inspect
        access_method: AuthorityInformationAccessOID.OCSP or CA_ISSUERS
    """
    try:
        aia = cert.extensions.get_extension_for_oid(ExtensionOID.AUTHORITY_INFORMATION_ACCESS).value
    except x509.ExtensionNotFound:
        return []
    return [
        description.access_location.value
        for description in aia
        if description.access_method == access_method
        and isinstance(description.access_location, x509.UniformResourceIdentifier)
    ]


def certificate_entry_from_x509(cert: x509.Certificate,
                                revocation_status: RevocationStatus = RevocationStatus.NOT_CHECKED
                                ) -> CertificateEntry:
    """Extract the fields of a certificate needed by the classifier and harness."""
    return CertificateEntry(
        subject=format_distinguished_name(cert.subject),
        issuer=format_distinguished_name(cert.issuer),
        not_before=cert.not_valid_before_utc,
        not_after=cert.not_valid_after_utc,
        serial_number=format(cert.serial_number, 'x'),
        fingerprint=cert.fingerprint(hashes.SHA256()).hex(),
        revocation_status=revocation_status
    )


def build_chain(certificates: List[x509.Certificate],
                statuses: Optional[List[RevocationStatus]] = None) -> CertificateChain:
    """Build a CertificateChain, pairing each certificate with its revocation status."""
    entries = []
    for position, cert in enumerate(certificates):
        status = RevocationStatus.NOT_CHECKED
        if statuses is not None and position < len(statuses):
            status = statuses[position]
        entries.append(certificate_entry_from_x509(cert, status))
    return CertificateChain(entries)
