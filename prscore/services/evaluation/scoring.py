"""
Scoring.

Turns a validated judgment into points using the organization's catalog.
"""

from dataclasses import dataclass
from typing import Optional

from prscore.core.logging import get_logger
from prscore.db.models import ProductComponent, SeverityLevel
from prscore.services.evaluation.catalog import ScoringCatalog
from prscore.services.evaluation.judgment import Judgment

logger = get_logger(__name__)


@dataclass
class ScoreResult:
    """Points awarded to one change."""

    component: Optional[ProductComponent] = None
    severity: Optional[SeverityLevel] = None
    base_points: int = 0
    multiplier: float = 1.0
    final_score: float = 0.0
    is_eligible: bool = False


def resolve_component(
    catalog: ScoringCatalog, key: Optional[str]
) -> Optional[ProductComponent]:
    """Judged key, then OTHER, then the first configured component."""
    component = catalog.component_by_key(key)
    if component is not None:
        return component
    if catalog.other is not None:
        logger.info("Unknown component key %r, falling back to OTHER", key)
        return catalog.other
    if catalog.components:
        logger.info("Unknown component key %r, falling back to first component", key)
        return catalog.components[0]
    return None


def resolve_severity(
    catalog: ScoringCatalog, key: Optional[str]
) -> Optional[SeverityLevel]:
    severity = catalog.severity_by_key(key)
    if severity is None:
        logger.warning("Unknown severity key %r, awarding zero base points", key)
    return severity


def score_judgment(judgment: Judgment, catalog: ScoringCatalog) -> ScoreResult:
    """
    Score a judgment.

    A change is eligible only when all four eligibility gates hold. Ineligible
    changes score 0 but keep their resolved component and severity.
    """
    component = resolve_component(catalog, judgment.primary_component_key)
    severity = resolve_severity(catalog, judgment.severity_key)

    base_points = severity.base_points if severity is not None else 0
    multiplier = component.multiplier if component is not None else 1.0
    is_eligible = judgment.eligibility.all_met

    return ScoreResult(
        component=component,
        severity=severity,
        base_points=base_points,
        multiplier=multiplier,
        final_score=base_points * multiplier if is_eligible else 0.0,
        is_eligible=is_eligible,
    )
