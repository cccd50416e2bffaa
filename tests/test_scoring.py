import itertools
import uuid

import pytest

from prscore.db.models import ProductComponent, SeverityLevel
from prscore.services.evaluation.catalog import ScoringCatalog
from prscore.services.evaluation.judgment import parse_judgment
from prscore.services.evaluation.scoring import (
    resolve_component,
    resolve_severity,
    score_judgment,
)

from factories import judgment_payload

ORG_ID = uuid.uuid4()


def _catalog(with_other: bool = True) -> ScoringCatalog:
    components = [ProductComponent(org_id=ORG_ID, key="AUTH", name="Auth", multiplier=1.5)]
    if with_other:
        components.append(
            ProductComponent(org_id=ORG_ID, key="OTHER", name="Other", multiplier=1.0, sort_order=999)
        )
    severities = [
        SeverityLevel(org_id=ORG_ID, key=key, name=key, base_points=points)
        for key, points in (("P0", 100), ("P1", 50), ("P2", 25), ("P3", 10))
    ]
    return ScoringCatalog(components=components, severities=severities)


@pytest.mark.parametrize("flags", list(itertools.product([True, False], repeat=4)))
def test_score_is_positive_only_when_all_four_flags_hold(flags) -> None:
    issue, fix, linked, tests = flags
    judgment = parse_judgment(
        judgment_payload(
            issue=issue, fix_implementation=fix, pr_linked=linked, tests=tests
        )
    )

    result = score_judgment(judgment, _catalog())

    assert result.is_eligible == all(flags)
    if all(flags):
        assert result.final_score == 75.0
    else:
        assert result.final_score == 0.0
    assert result.base_points == 50
    assert result.multiplier == 1.5


def test_p1_auth_without_tests_scores_zero() -> None:
    result = score_judgment(parse_judgment(judgment_payload(tests=False)), _catalog())

    assert result.final_score == 0.0
    assert result.component.key == "AUTH"
    assert result.severity.key == "P1"


def test_p1_auth_with_tests_scores_75() -> None:
    result = score_judgment(parse_judgment(judgment_payload()), _catalog())

    assert result.final_score == 75.0


def test_unknown_component_falls_back_to_other() -> None:
    catalog = _catalog()

    assert resolve_component(catalog, "BILLING").key == "OTHER"


def test_unknown_component_without_other_uses_first_component() -> None:
    catalog = _catalog(with_other=False)

    assert resolve_component(catalog, "BILLING").key == "AUTH"


def test_no_components_means_multiplier_one() -> None:
    catalog = ScoringCatalog(
        severities=[SeverityLevel(org_id=ORG_ID, key="P0", name="P0", base_points=100)]
    )

    result = score_judgment(
        parse_judgment(judgment_payload(component="AUTH", severity="P0")), catalog
    )

    assert result.component is None
    assert result.multiplier == 1.0
    assert result.final_score == 100.0


def test_unknown_severity_awards_zero_points() -> None:
    catalog = _catalog()

    assert resolve_severity(catalog, "P9") is None
    result = score_judgment(parse_judgment(judgment_payload(severity="P9")), catalog)
    assert result.base_points == 0
    assert result.final_score == 0.0
    assert result.is_eligible
