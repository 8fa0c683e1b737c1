"""
Services package for the certificate probe.
"""

from .config_service import ConfigService
from .outcome_classifier import ValidationOutcomeClassifier, classify
from .scenario_harness import ScenarioHarness, Scenario, ScenarioResult, ScenarioMismatchError

__all__ = [
    'ConfigService',
    'ValidationOutcomeClassifier',
    'classify',
    'ScenarioHarness',
    'Scenario',
    'ScenarioResult',
    'ScenarioMismatchError'
]
