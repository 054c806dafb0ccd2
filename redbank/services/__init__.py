"""Services: ledger assembly and scenario replay."""
from .environment import LedgerEnvironment, build_environment
from .scenario import ScenarioError, ScenarioReport, ScenarioRunner, StepResult

__all__ = [
    "LedgerEnvironment",
    "ScenarioError",
    "ScenarioReport",
    "ScenarioRunner",
    "StepResult",
    "build_environment",
]
