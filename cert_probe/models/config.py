"""
Configuration data models for the certificate probe.
"""
from dataclasses import dataclass
from typing import Optional


DEFAULT_ROOT_ISSUER = "CN=Amazon Root CA 1, O=Amazon, C=US"


@dataclass
class Config:
    """Main configuration class containing all probe settings."""

    # Endpoint settings
    valid_url: str = "https://good.sca1a.amazontrust.com/"
    expired_url: str = "https://expired.sca1a.amazontrust.com/"
    revoked_url: str = "https://revoked.sca1a.amazontrust.com/"
    expected_root_issuer: str = DEFAULT_ROOT_ISSUER
    root_issuer_chain_index: int = 2

    # Network settings
    request_timeout_seconds: int = 30
    ca_bundle_path: Optional[str] = None

    # Revocation settings
    check_revocation: bool = True
    enable_ocsp: bool = True
    enable_crl_fallback: bool = True
    revocation_soft_fail: bool = False

    # Application settings
    tls_debug: bool = False
    log_level: str = "INFO"
    log_file_path: str = "logs/cert_probe.log"

    def __post_init__(self):
        """Validate configuration after initialization."""
        self._validate_types()

    def _validate_types(self):
        """Ensure all configuration values have correct types."""
        if not isinstance(self.request_timeout_seconds, int) or self.request_timeout_seconds <= 0:
            raise ValueError("request_timeout_seconds must be a positive integer")

        if not isinstance(self.root_issuer_chain_index, int) or self.root_issuer_chain_index < 0:
            raise ValueError("root_issuer_chain_index must be a non-negative integer")

        if self.log_level not in ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]:
            raise ValueError("log_level must be one of: DEBUG, INFO, WARNING, ERROR, CRITICAL")

    @property
    def verify(self):
        """Value for the requests ``verify`` argument."""
        return self.ca_bundle_path or True


@dataclass
class ConfigValidationError:
    """Represents a configuration validation error."""
    field: str
    message: str
    severity: str = "error"  # error, warning

    def __str__(self):
        return f"{self.severity.upper()}: {self.field} - {self.message}"


@dataclass
class ConfigValidationResult:
    """Result of configuration validation."""
    is_valid: bool
    errors: list[ConfigValidationError]
    warnings: list[ConfigValidationError]

    def __post_init__(self):
        """Separate errors and warnings."""
        all_issues = self.errors + self.warnings
        self.errors = [e for e in all_issues if e.severity == "error"]
        self.warnings = [e for e in all_issues if e.severity == "warning"]

    def has_errors(self) -> bool:
        return len(self.errors) > 0

    def has_warnings(self) -> bool:
        return len(self.warnings) > 0

    def get_error_summary(self) -> str:
        """Get a formatted summary of all errors and warnings."""
        lines = []

        if self.errors:
            lines.append("Configuration Errors:")
            for error in self.errors:
                lines.append(f"  - {error}")

        if self.warnings:
            lines.append("Configuration Warnings:")
            for warning in self.warnings:
                lines.append(f"  - {warning}")

        return "\n".join(lines) if lines else "Configuration is valid"
