"""
Configuration service for loading and validating probe settings.
"""
import os
import configparser
from typing import Optional, Dict, Any
from urllib.parse import urlparse
import logging

from ..models.config import Config, ConfigValidationError, ConfigValidationResult


class ConfigService:
    """Service for loading and validating probe configuration."""

    def __init__(self, config_path: Optional[str] = None):
        self.logger = logging.getLogger(__name__)
        self._config = None
        if config_path:
            self._config = self.load_config(config_path)

    def get_config(self) -> Config:
        """
        Get the loaded configuration.

        Returns:
            Config object

        Raises:
            ValueError: If no configuration has been loaded
        """
        if self._config is None:
            raise ValueError("No configuration loaded. Call load_config() first.")
        return self._config

    def load_config(self, config_path: str) -> Config:
        """
        Load configuration from a property file.

        Args:
            config_path: Path to the configuration file

        Returns:
            Config object with loaded settings

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config file is invalid or has validation errors
        """
        if not os.path.exists(config_path):
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        config_data = self._load_config_file(config_path)
        config = self._create_config_from_data(config_data)

        validation_result = self.validate_config(config)

        if validation_result.has_errors():
            error_summary = validation_result.get_error_summary()
            raise ValueError(f"Configuration validation failed:\n{error_summary}")

        if validation_result.has_warnings():
            warning_summary = validation_result.get_error_summary()
            self.logger.warning(f"Configuration warnings:\n{warning_summary}")

        self._config = config
        return config

    def _load_config_file(self, config_path: str) -> Dict[str, Any]:
        """Load configuration data from file."""
        config_parser = configparser.ConfigParser()

        try:
            config_parser.read(config_path)
        except configparser.Error as e:
            raise ValueError(f"Failed to parse configuration file: {e}")

        # Flatten to section.key
        config_data = {}
        for section in config_parser.sections():
            for key, value in config_parser.items(section):
                config_key = f"{section}.{key}" if section != "DEFAULT" else key
                config_data[config_key] = value

        for key, value in config_parser.defaults().items():
            if key not in config_data:
                config_data[key] = value

        return config_data

    def _create_config_from_data(self, config_data: Dict[str, Any]) -> Config:
        """Create Config object from configuration data."""
        config_mapping = {
            # Endpoint settings
            "endpoints.valid_url": ("valid_url", str),
            "valid_url": ("valid_url", str),
            "endpoints.expired_url": ("expired_url", str),
            "expired_url": ("expired_url", str),
            "endpoints.revoked_url": ("revoked_url", str),
            "revoked_url": ("revoked_url", str),
            "endpoints.expected_root_issuer": ("expected_root_issuer", str),
            "expected_root_issuer": ("expected_root_issuer", str),
            "endpoints.root_issuer_chain_index": ("root_issuer_chain_index", int),
            "root_issuer_chain_index": ("root_issuer_chain_index", int),

            # Network settings
            "network.request_timeout_seconds": ("request_timeout_seconds", int),
            "request_timeout_seconds": ("request_timeout_seconds", int),
            "network.ca_bundle_path": ("ca_bundle_path", str),
            "ca_bundle_path": ("ca_bundle_path", str),

            # Revocation settings
            "revocation.check_revocation": ("check_revocation", bool),
            "check_revocation": ("check_revocation", bool),
            "revocation.enable_ocsp": ("enable_ocsp", bool),
            "enable_ocsp": ("enable_ocsp", bool),
            "revocation.enable_crl_fallback": ("enable_crl_fallback", bool),
            "enable_crl_fallback": ("enable_crl_fallback", bool),
            "revocation.soft_fail": ("revocation_soft_fail", bool),
            "revocation_soft_fail": ("revocation_soft_fail", bool),

            # Application settings
            "app.tls_debug": ("tls_debug", bool),
            "tls_debug": ("tls_debug", bool),
            "app.log_level": ("log_level", str),
            "log_level": ("log_level", str),
            "app.log_file_path": ("log_file_path", str),
            "log_file_path": ("log_file_path", str),
        }

        config_kwargs = {}

        for config_key, raw_value in config_data.items():
            if config_key in config_mapping:
                field_name, field_type = config_mapping[config_key]
                try:
                    if field_type == bool:
                        value = self._parse_bool(raw_value)
                    elif field_type == int:
                        value = int(raw_value)
                    else:
                        # Empty strings mean "not set"
                        value = str(raw_value).strip() or None
                        if value is None and field_name != "ca_bundle_path":
                            continue

                    config_kwargs[field_name] = value
                except (ValueError, TypeError) as e:
                    raise ValueError(f"Invalid value for {config_key}: {raw_value} ({e})")

        return Config(**config_kwargs)

    def _parse_bool(self, value: Any) -> bool:
        """Parse boolean value from string."""
        if isinstance(value, bool):
            return value
        if isinstance(value, str):
            return value.lower() in ("true", "yes", "1", "on", "enabled")
        return bool(value)

    def validate_config(self, config: Config) -> ConfigValidationResult:
        """
        Validate configuration settings.

        Args:
            config: Configuration object to validate

        Returns:
            ConfigValidationResult with validation results
        """
        errors = []
        warnings = []

        # Endpoints must be HTTPS
        endpoints = [
            ("valid_url", config.valid_url),
            ("expired_url", config.expired_url),
            ("revoked_url", config.revoked_url)
        ]
        for field_name, url in endpoints:
            parsed = urlparse(url or "")
            if parsed.scheme != "https" or not parsed.netloc:
                errors.append(ConfigValidationError(
                    field_name,
                    f"Endpoint must be an https:// URL: {url}"
                ))

        if config.ca_bundle_path and not os.path.exists(config.ca_bundle_path):
            errors.append(ConfigValidationError(
                "ca_bundle_path",
                f"CA bundle file not found: {config.ca_bundle_path}"
            ))

        if config.check_revocation:
            if not config.enable_ocsp and not config.enable_crl_fallback:
                errors.append(ConfigValidationError(
                    "check_revocation",
                    "Revocation checking requires OCSP or CRL to be enabled"
                ))
            if config.revocation_soft_fail:
                warnings.append(ConfigValidationError(
                    "revocation_soft_fail",
                    "Certificates with unknown revocation status will be accepted",
                    "warning"
                ))

        if not config.expected_root_issuer:
            warnings.append(ConfigValidationError(
                "expected_root_issuer",
                "No expected root issuer, the valid scenario will not check the chain",
                "warning"
            ))

        if config.log_file_path:
            log_dir = os.path.dirname(config.log_file_path)
            if log_dir and not os.path.exists(log_dir):
                warnings.append(ConfigValidationError(
                    "log_file_path",
                    f"Log directory does not exist: {log_dir}",
                    "warning"
                ))

        if config.request_timeout_seconds > 300:
            warnings.append(ConfigValidationError(
                "request_timeout_seconds",
                "Request timeout over 5 minutes may cause performance issues",
                "warning"
            ))

        all_issues = errors + warnings
        return ConfigValidationResult(
            is_valid=len(errors) == 0,
            errors=all_issues,
            warnings=[]
        )

    def create_default_config_file(self, config_path: str) -> None:
        """
        Create a default configuration file with example settings.

        Args:
            config_path: Path where to create the config file
        """
        config_content = """# Certificate probe configuration file

[endpoints]
valid_url = https://good.sca1a.amazontrust.com/
expired_url = https://expired.sca1a.amazontrust.com/
revoked_url = https://revoked.sca1a.amazontrust.com/
expected_root_issuer = CN=Amazon Root CA 1, O=Amazon, C=US
root_issuer_chain_index = 2

[network]
request_timeout_seconds = 30
# Leave empty to use the bundled CA store
ca_bundle_path =

[revocation]
check_revocation = true
enable_ocsp = true
enable_crl_fallback = true
soft_fail = false

[app]
tls_debug = false
log_level = INFO
log_file_path = logs/cert_probe.log
"""

        config_dir = os.path.dirname(config_path)
        if config_dir:
            os.makedirs(config_dir, exist_ok=True)

        with open(config_path, 'w') as f:
            f.write(config_content)

        self.logger.info(f"Created default configuration file: {config_path}")
