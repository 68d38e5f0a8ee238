# ==============================================
# Checker plumbing
# ==============================================
#
# PURPOSE:
#   Shared input bundle and per-field failure isolation for the
#   quality checkers.
#
# CLASS: CheckContext (frozen dataclass)
# --------------------------------------
#   - sample: SampleSet               (read-only arena)
#   - profile: ContainerProfile       (inferred schema)
#   - options: AnalysisOptions
#   - metadata: ContainerMetadata
#   - cancellation: CancellationToken | None
#
# FUNCTION:
# ---------
# - run_per_field(context, check, paths, analyze_field) -> CheckOutput
#     Calls analyze_field(path) for every path. An exception on one
#     field is logged and recorded as an AnalysisFailure; the other
#     fields still run. Cancellation is checked before every field.
#
# ==============================================

import logging
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from docmigrate.cancellation import CancellationToken
from docmigrate.config import AnalysisOptions
from docmigrate.errors import AssessmentCancelled
from docmigrate.inference.schema import ContainerProfile
from docmigrate.sample import SampleSet
from docmigrate.sources.base import ContainerMetadata

from .models import AnalysisFailure, CheckOutput

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CheckContext:
    sample: SampleSet
    profile: ContainerProfile
    options: AnalysisOptions
    metadata: ContainerMetadata
    cancellation: Optional[CancellationToken] = None

    @property
    def container(self) -> str:
        return self.sample.container

    def raise_if_cancelled(self) -> None:
        if self.cancellation is not None:
            self.cancellation.raise_if_cancelled()


def run_per_field(
    context: CheckContext,
    check: str,
    paths: Iterable[str],
    analyze_field: Callable[[str], Any],
) -> CheckOutput:
    output = CheckOutput(check=check)
    for path in paths:
        context.raise_if_cancelled()
        try:
            result = analyze_field(path)
        except AssessmentCancelled:
            raise
        except Exception as e:
            logger.warning(
                "%s check failed for %s.%s: %s", check, context.container, path, e, exc_info=True
            )
            output.failures.append(
                AnalysisFailure(container=context.container, check=check, field=path, error=f"{type(e).__name__}: {e}")
            )
            continue
        if result is None:
            continue
        if isinstance(result, list):
            output.results.extend(result)
        else:
            output.results.append(result)
    return output


def preview(value: Any, length: int = 50) -> str:
    text = value if isinstance(value, str) else repr(value)
    if len(text) <= length:
        return text
    return text[:length] + "..."
