"""
Scenario harness driving handshake attempts through the outcome classifier.
"""
import logging
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from ..models.config import Config
from ..models.handshake import HandshakeAttempt, ValidationOutcome
from ..security.chain_provider import ChainProviderInterface
from .outcome_classifier import ValidationOutcomeClassifier


@dataclass
class Scenario:
    """A named endpoint check and the outcome it is expected to produce."""
    name: str
    url: str
    expected_outcome: ValidationOutcome
    expected_root_issuer: Optional[str] = None
    root_issuer_index: int = 2


@dataclass
class ScenarioResult:
    """Result of running a single scenario."""
    scenario: Scenario
    outcome: Optional[ValidationOutcome] = None
    attempt: Optional[HandshakeAttempt] = None
    failures: List[str] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def passed(self) -> bool:
        return not self.failures

    def summary(self) -> str:
        """One line description of the result."""
        status = "PASS" if self.passed else "FAIL"
        outcome = self.outcome.value if self.outcome else "none"
        line = f"{status} {self.scenario.name}: {outcome} ({self.duration_ms:.0f} ms)"
        if self.failures:
            line += " - " + "; ".join(self.failures)
        return line


class ScenarioMismatchError(AssertionError):
    """Raised when an observed outcome does not match the expected one."""

    def __init__(self, result: ScenarioResult):
        super().__init__(result.summary())
        self.result = result


def default_scenarios(config: Config) -> List[Scenario]:
    """Build the valid/expired/revoked scenarios from configuration."""
    return [
        Scenario(
            name="valid",
            url=config.valid_url,
            expected_outcome=ValidationOutcome.TRUSTED,
            expected_root_issuer=config.expected_root_issuer,
            root_issuer_index=config.root_issuer_chain_index
        ),
        Scenario(
            name="expired",
            url=config.expired_url,
            expected_outcome=ValidationOutcome.EXPIRED
        ),
        Scenario(
            name="revoked",
            url=config.revoked_url,
            expected_outcome=ValidationOutcome.REVOKED
        ),
    ]


class ScenarioHarness:
    """Runs scenarios against chain providers and checks their outcomes."""

    def __init__(self,
                 provider_factory: Callable[[], ChainProviderInterface],
                 classifier: Optional[ValidationOutcomeClassifier] = None,
                 scenarios: Optional[List[Scenario]] = None,
                 logging_service=None):
        """
        Initialize the harness.

        Args:
            provider_factory: Callable returning a fresh chain provider per scenario
            classifier: Outcome classifier (a default one is created if omitted)
            scenarios: Scenarios to run (defaults built from Config() if omitted)
            logging_service: Optional LoggingService used to time scenarios
        """
        self.provider_factory = provider_factory
        self.classifier = classifier or ValidationOutcomeClassifier()
        self.logging_service = logging_service
        self.logger = logging.getLogger(__name__)

        scenario_list = scenarios if scenarios is not None else default_scenarios(Config())
        self._scenarios: Dict[str, Scenario] = {s.name: s for s in scenario_list}

    def scenario_names(self) -> List[str]:
        return list(self._scenarios.keys())

    def get_scenario(self, name: str) -> Scenario:
        if name not in self._scenarios:
            raise KeyError(f"Unknown scenario: {name}")
        return self._scenarios[name]

    def run_scenario(self, name: str) -> ScenarioResult:
        """
        Run one scenario and compare the observed outcome with the expected one.

        Mismatches are reported in the result, not raised.

        Args:
            name: Scenario name

        Returns:
            ScenarioResult for the run
        """
        scenario = self.get_scenario(name)
        self.logger.info(f"Running scenario '{name}' against {scenario.url}")

        start_time = time.time()
        if self.logging_service is not None:
            with self.logging_service.measure_performance(f"scenario.{name}", {'url': scenario.url}):
                result = self._execute(scenario)
        else:
            result = self._execute(scenario)
        result.duration_ms = (time.time() - start_time) * 1000

        if result.passed:
            self.logger.info(result.summary())
        else:
            self.logger.warning(result.summary())
        return result

    def check_scenario(self, name: str) -> ScenarioResult:
        """
        Run one scenario and raise if it does not match its expectation.

        Raises:
            ScenarioMismatchError: If the outcome or root issuer differs
        """
        result = self.run_scenario(name)
        if not result.passed:
            raise ScenarioMismatchError(result)
        return result

    def run_all(self, names: Optional[List[str]] = None) -> List[ScenarioResult]:
        """Run the given scenarios (all by default) one after another."""
        return [self.run_scenario(name) for name in (names or self.scenario_names())]

    def _execute(self, scenario: Scenario) -> ScenarioResult:
        provider = self.provider_factory()
        try:
            attempt = provider.attempt_handshake(scenario.url)
            outcome = self.classifier.classify(attempt)
            failures = self._compare(scenario, attempt, outcome)
        finally:
            provider.close()

        return ScenarioResult(
            scenario=scenario,
            outcome=outcome,
            attempt=attempt,
            failures=failures
        )

    def _compare(self, scenario: Scenario, attempt: HandshakeAttempt,
                 outcome: ValidationOutcome) -> List[str]:
        failures = []

        if outcome != scenario.expected_outcome:
            message = f"expected {scenario.expected_outcome.value}, got {outcome.value}"
            if attempt.cause is not None:
                message += f" ({attempt.cause})"
            failures.append(message)

        # Root issuer is only checked on trusted handshakes
        if (scenario.expected_root_issuer is not None
                and scenario.expected_outcome == ValidationOutcome.TRUSTED
                and outcome == ValidationOutcome.TRUSTED):
            actual_issuer = attempt.chain.issuer_at(scenario.root_issuer_index)
            if actual_issuer != scenario.expected_root_issuer:
                failures.append(
                    f"expected issuer '{scenario.expected_root_issuer}' at chain index "
                    f"{scenario.root_issuer_index}, got '{actual_issuer}'"
                )

        return failures
