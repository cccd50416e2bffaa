import uuid
from datetime import timedelta

import pytest
from sqlalchemy.exc import IntegrityError
from sqlmodel import select

from prscore.core.exceptions import ConfigurationError
from prscore.db.models import ProductComponent, PromptTemplate, ScoringRuleSet, SeverityLevel
from prscore.db.models.base import utcnow
from prscore.services.evaluation.catalog import (
    load_catalog,
    load_evaluation_config,
    seed_default_catalog,
)

from factories import seed_org


def test_missing_rule_set_is_a_configuration_error(run_db) -> None:
    async def scenario(session_factory):
        async with session_factory() as session:
            with pytest.raises(ConfigurationError, match="rule set"):
                await load_evaluation_config(session, uuid.uuid4())

    run_db(scenario)


def test_missing_prompt_template_is_a_configuration_error(run_db) -> None:
    org_id = uuid.uuid4()

    async def scenario(session_factory):
        async with session_factory() as session:
            async with session.begin():
                session.add(ScoringRuleSet(org_id=org_id, name="bare", is_default=True))
        async with session_factory() as session:
            with pytest.raises(ConfigurationError, match="prompt template"):
                await load_evaluation_config(session, org_id)

    run_db(scenario)


def test_highest_template_version_is_validated(run_db) -> None:
    org_id = uuid.uuid4()

    async def scenario(session_factory):
        rule_set = await seed_org(session_factory, org_id)
        async with session_factory() as session:
            async with session.begin():
                session.add(
                    PromptTemplate(
                        org_id=org_id,
                        rule_set_id=rule_set.id,
                        template="{{pr_section}} only",
                        version=2,
                    )
                )
        async with session_factory() as session:
            with pytest.raises(ConfigurationError, match="components_table"):
                await load_evaluation_config(session, org_id)

    run_db(scenario)


def test_default_rule_set_wins_over_newer_one(run_db) -> None:
    org_id = uuid.uuid4()

    async def scenario(session_factory):
        seeded = await seed_org(session_factory, org_id)
        async with session_factory() as session:
            async with session.begin():
                session.add(
                    ScoringRuleSet(
                        org_id=org_id,
                        name="experiment",
                        active_from=utcnow() + timedelta(seconds=1),
                    )
                )
                session.add(
                    ScoringRuleSet(
                        org_id=org_id,
                        name="retired",
                        is_default=True,
                        active_to=utcnow() - timedelta(days=1),
                    )
                )
        async with session_factory() as session:
            rule_set, template = await load_evaluation_config(session, org_id)
        return seeded, rule_set, template

    seeded, rule_set, template = run_db(scenario)

    assert rule_set.id == seeded.id
    assert template.rule_set_id == seeded.id


def test_explicit_rule_set_must_belong_to_org(run_db) -> None:
    org_id = uuid.uuid4()

    async def scenario(session_factory):
        rule_set = await seed_org(session_factory, org_id)
        async with session_factory() as session:
            found, _ = await load_evaluation_config(session, org_id, rule_set.id)
            assert found.id == rule_set.id
            with pytest.raises(ConfigurationError):
                await load_evaluation_config(session, uuid.uuid4(), rule_set.id)

    run_db(scenario)


def test_seed_is_idempotent_and_catalog_is_ordered(run_db) -> None:
    org_id = uuid.uuid4()

    async def scenario(session_factory):
        first = await seed_org(session_factory, org_id)
        async with session_factory() as session:
            async with session.begin():
                again = await seed_default_catalog(session, org_id)
        async with session_factory() as session:
            rule_sets = (await session.execute(select(ScoringRuleSet))).scalars().all()
            catalog = await load_catalog(session, org_id)
        return first, again, rule_sets, catalog

    first, again, rule_sets, catalog = run_db(scenario)

    assert again.id == first.id
    assert len(rule_sets) == 1
    assert [c.key for c in catalog.components] == ["AUTH", "UI", "OTHER"]
    assert [s.key for s in catalog.severities] == ["P0", "P1", "P2", "P3"]
    assert catalog.other.key == "OTHER"
    assert len(catalog.rules) == 2
    assert catalog.severity_by_key("P1").base_points == 50


def test_catalog_rejects_non_positive_multiplier_and_negative_points(run_db) -> None:
    org_id = uuid.uuid4()
    invalid_rows = [
        ProductComponent(org_id=org_id, key="ZERO", name="Zero", multiplier=0.0),
        ProductComponent(org_id=org_id, key="NEG", name="Negative", multiplier=-1.5),
        SeverityLevel(org_id=org_id, key="PX", name="Broken", base_points=-10),
    ]

    async def scenario(session_factory):
        for row in invalid_rows:
            async with session_factory() as session:
                session.add(row)
                with pytest.raises(IntegrityError):
                    await session.commit()

        async with session_factory() as session:
            session.add(SeverityLevel(org_id=org_id, key="P9", name="Free", base_points=0))
            await session.commit()

    run_db(scenario)
