# ==============================================
# Errors & Analysis Warnings
# ==============================================
#
# PURPOSE:
#   One place for every failure the assessment can surface.
#
#   Exceptions (raised):
#   --------------------
#   - AssessmentError           → Base class
#   - FatalConfigurationError   → Invalid options, raised before any analysis
#   - InputError                → Malformed / empty sample for one container
#   - AssessmentCancelled       → Cancellation signal observed
#
#   Warnings (recorded, never raised):
#   ----------------------------------
#   - AnalysisWarning(kind, container, message, field)
#       kind ∈ WarningKind: InputError, PartialAnalysisWarning,
#       ComputationDegenerate
#
# ==============================================

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional


class AssessmentError(Exception):
    """Base class for all assessment errors."""


class FatalConfigurationError(AssessmentError):
    """Options are invalid. Nothing has been analyzed."""


class InputError(AssessmentError):
    """The sample for a container is malformed or empty."""


class AssessmentCancelled(AssessmentError):
    """
    Raised when the cancellation signal is observed.

    Attributes:
        outcomes: Per-container outcomes gathered before the run stopped
                  (each one either finished or marked as cancelled).
    """

    def __init__(self, message: str = "Assessment cancelled", outcomes: Optional[List[Any]] = None):
        super().__init__(message)
        self.outcomes = outcomes or []


class WarningKind(Enum):
    INPUT_ERROR = "InputError"
    PARTIAL_ANALYSIS = "PartialAnalysisWarning"
    COMPUTATION_DEGENERATE = "ComputationDegenerate"


@dataclass(frozen=True)
class AnalysisWarning:
    """A degraded or partial result that must stay visible in the output."""

    kind: WarningKind
    container: str
    message: str
    field: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "container": self.container,
            "field": self.field,
            "message": self.message,
        }
