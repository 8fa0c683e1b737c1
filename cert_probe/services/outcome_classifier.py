"""
Classification of handshake attempts into validation outcomes.
"""
import logging

from ..models.handshake import ErrorKind, HandshakeAttempt, ValidationOutcome


_CAUSE_OUTCOMES = {
    ErrorKind.EXPIRED_CERTIFICATE: ValidationOutcome.EXPIRED,
    ErrorKind.REVOKED_CERTIFICATE: ValidationOutcome.REVOKED,
    ErrorKind.UNKNOWN_ISSUER: ValidationOutcome.UNKNOWN_ISSUER,
    ErrorKind.NETWORK_ERROR: ValidationOutcome.UNREACHABLE,
}


def classify(attempt: HandshakeAttempt) -> ValidationOutcome:
    """
    Map a handshake attempt to exactly one validation outcome.

    A successful attempt is only trusted when it returned HTTP 200 and
    carried a non-empty chain. Failed attempts are classified by the kind
    of their root cause; anything unrecognised is an OTHER_FAILURE.

    Args:
        attempt: The attempt to classify

    Returns:
        ValidationOutcome for the attempt
    """
    if attempt.success:
        chain = attempt.chain
        if attempt.http_status == 200 and chain is not None and len(chain) > 0:
            return ValidationOutcome.TRUSTED
        return ValidationOutcome.OTHER_FAILURE

    if attempt.cause is None:
        return ValidationOutcome.OTHER_FAILURE

    return _CAUSE_OUTCOMES.get(attempt.cause.kind, ValidationOutcome.OTHER_FAILURE)


class ValidationOutcomeClassifier:
    """Stateless classifier wrapping classify() with logging."""

    def __init__(self):
        self.logger = logging.getLogger(__name__)

    def classify(self, attempt: HandshakeAttempt) -> ValidationOutcome:
        outcome = classify(attempt)
        self.logger.debug(f"Classified attempt for {attempt.url} as {outcome.value}")
        return outcome
