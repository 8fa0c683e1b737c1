"""
Command line entry point for the certificate probe.
Loads configuration, sets up logging and runs the valid/expired/revoked scenarios.
"""

import os
import sys
import logging
from typing import List, Optional

from .models.config import Config
from .services.config_service import ConfigService
from .services.logging_service import LoggingService
from .services.outcome_classifier import ValidationOutcomeClassifier
from .services.scenario_harness import ScenarioHarness, ScenarioResult, default_scenarios
from .security.chain_provider import TLSChainProvider


DEFAULT_CONFIG_PATHS = [
    "config/default.properties",
    "cert_probe.properties",
    os.path.expanduser("~/.cert_probe/config.properties"),
]

EXIT_PASSED = 0
EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2


class CertProbeApplication:
    """Wires configuration, logging and the scenario harness together."""

    def __init__(self, config_path: Optional[str] = None, debug: bool = False):
        """
        Initialize the application.

        Args:
            config_path: Path to configuration file (optional)
            debug: Force TLS debug logging regardless of configuration
        """
        self.config_path = config_path
        self.debug = debug
        self.logger = logging.getLogger(__name__)
        self.config_service = ConfigService()
        self.config: Optional[Config] = None
        self.logging_service: Optional[LoggingService] = None
        self.harness: Optional[ScenarioHarness] = None

    def _find_default_config(self) -> Optional[str]:
        for path in DEFAULT_CONFIG_PATHS:
            if os.path.exists(path):
                return path
        return None

    def initialize(self) -> None:
        """
        Load configuration, set up logging and build the harness.

        Raises:
            FileNotFoundError: If an explicit configuration file is missing
            ValueError: If the configuration is invalid
        """
        path = self.config_path or self._find_default_config()
        if path:
            self.config = self.config_service.load_config(path)
        else:
            self.config = Config()

        if self.debug:
            self.config.tls_debug = True
            self.config.log_level = "DEBUG"

        self.logging_service = LoggingService(self.config)
        self.logger.info(f"Configuration loaded from: {path or 'built-in defaults'}")
        self.logger.info(
            f"Revocation checking: {self.config.check_revocation} "
            f"(ocsp: {self.config.enable_ocsp}, crl fallback: {self.config.enable_crl_fallback})"
        )

        self.harness = ScenarioHarness(
            provider_factory=self._create_provider,
            classifier=ValidationOutcomeClassifier(),
            scenarios=default_scenarios(self.config),
            logging_service=self.logging_service
        )

    def _create_provider(self) -> TLSChainProvider:
        return TLSChainProvider(self.config)

    def run(self, scenario_names: Optional[List[str]] = None) -> List[ScenarioResult]:
        """Run the selected scenarios (all when none are given)."""
        if self.harness is None:
            raise RuntimeError("Application not initialized. Call initialize() first.")

        results = self.harness.run_all(scenario_names)
        passed = sum(1 for r in results if r.passed)
        self.logger.info(f"{passed}/{len(results)} scenarios passed")
        return results


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for the probe."""
    import argparse

    parser = argparse.ArgumentParser(description='Check TLS certificate chain validation outcomes')
    parser.add_argument('scenarios', nargs='*', help='Scenarios to run (default: all)')
    parser.add_argument('--config', '-c', help='Configuration file path')
    parser.add_argument('--debug', action='store_true', help='Enable verbose TLS debug logging')
    parser.add_argument('--list', action='store_true', help='List scenarios and exit')
    parser.add_argument('--create-config', metavar='PATH', help='Write a default configuration file and exit')

    args = parser.parse_args(argv)

    if args.create_config:
        ConfigService().create_default_config_file(args.create_config)
        print(f"Created default configuration at: {args.create_config}")
        return EXIT_PASSED

    app = CertProbeApplication(config_path=args.config, debug=args.debug)
    try:
        app.initialize()
    except (FileNotFoundError, ValueError) as e:
        print(f"Configuration error: {e}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    if args.list:
        for scenario in default_scenarios(app.config):
            print(f"{scenario.name}: {scenario.url} -> {scenario.expected_outcome.value}")
        return EXIT_PASSED

    unknown = [name for name in args.scenarios if name not in app.harness.scenario_names()]
    if unknown:
        print(f"Unknown scenario(s): {', '.join(unknown)}", file=sys.stderr)
        return EXIT_CONFIG_ERROR

    results = app.run(args.scenarios or None)
    for result in results:
        print(result.summary())

    return EXIT_PASSED if all(r.passed for r in results) else EXIT_FAILED


if __name__ == '__main__':
    sys.exit(main())
