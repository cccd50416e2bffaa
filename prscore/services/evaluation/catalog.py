"""
Scoring catalog loading.

Reads the organization's rule set, prompt template, components, rules and
severities. The catalog is read-only during a batch and loaded once per run.
"""

import os
import uuid
from dataclasses import dataclass, field
from functools import lru_cache
from typing import Any, Dict, List, Optional

import yaml
from sqlalchemy import desc, or_
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from prscore.core.exceptions import ConfigurationError
from prscore.core.logging import get_logger
from prscore.db.models import (
    OTHER_COMPONENT_KEY,
    ComponentRule,
    ProductComponent,
    PromptTemplate,
    ScoringRuleSet,
    SeverityLevel,
)
from prscore.db.models.base import utcnow
from prscore.services.evaluation.prompts import validate_template

logger = get_logger(__name__)

DEFAULT_CATALOG_PATH = os.path.join(os.path.dirname(__file__), "defaults.yaml")


@dataclass
class ScoringCatalog:
    """Active components (ordered), their rules, and severities of one organization."""

    components: List[ProductComponent] = field(default_factory=list)
    rules: List[ComponentRule] = field(default_factory=list)
    severities: List[SeverityLevel] = field(default_factory=list)

    @property
    def other(self) -> Optional[ProductComponent]:
        return self.component_by_key(OTHER_COMPONENT_KEY)

    def component_by_key(self, key: Optional[str]) -> Optional[ProductComponent]:
        return next((c for c in self.components if c.key == key), None)

    def severity_by_key(self, key: Optional[str]) -> Optional[SeverityLevel]:
        return next((s for s in self.severities if s.key == key), None)


async def get_rule_set_by_id(
    session: AsyncSession, org_id: uuid.UUID, rule_set_id: uuid.UUID
) -> Optional[ScoringRuleSet]:
    result = await session.execute(
        select(ScoringRuleSet).where(
            ScoringRuleSet.org_id == org_id, ScoringRuleSet.id == rule_set_id
        )
    )
    return result.scalar_one_or_none()


async def get_active_rule_set(
    session: AsyncSession, org_id: uuid.UUID
) -> Optional[ScoringRuleSet]:
    """Default rule set first, then the most recently activated one."""
    result = await session.execute(
        select(ScoringRuleSet)
        .where(
            ScoringRuleSet.org_id == org_id,
            or_(ScoringRuleSet.active_to.is_(None), ScoringRuleSet.active_to > utcnow()),
        )
        .order_by(desc(ScoringRuleSet.is_default), desc(ScoringRuleSet.active_from))
        .limit(1)
    )
    return result.scalars().first()


async def get_prompt_template(
    session: AsyncSession, org_id: uuid.UUID, rule_set_id: uuid.UUID
) -> Optional[PromptTemplate]:
    """Highest version of the rule set's prompt template."""
    result = await session.execute(
        select(PromptTemplate)
        .where(
            PromptTemplate.org_id == org_id,
            PromptTemplate.rule_set_id == rule_set_id,
        )
        .order_by(desc(PromptTemplate.version))
        .limit(1)
    )
    return result.scalars().first()


async def load_evaluation_config(
    session: AsyncSession,
    org_id: uuid.UUID,
    rule_set_id: Optional[uuid.UUID] = None,
) -> tuple[ScoringRuleSet, PromptTemplate]:
    """
    Resolve the rule set and a validated prompt template.

    Raises:
        ConfigurationError: No rule set, no template, or a template that is
            missing placeholders.
    """
    if rule_set_id is not None:
        rule_set = await get_rule_set_by_id(session, org_id, rule_set_id)
    else:
        rule_set = await get_active_rule_set(session, org_id)
    if rule_set is None:
        raise ConfigurationError("No active scoring rule set found for organization.")

    prompt = await get_prompt_template(session, org_id, rule_set.id)
    if prompt is None:
        raise ConfigurationError("No prompt template configured for rule set.")

    validate_template(prompt.template)
    return rule_set, prompt


async def load_catalog(session: AsyncSession, org_id: uuid.UUID) -> ScoringCatalog:
    """Load active components with their rules, and all severities."""
    components = (
        await session.execute(
            select(ProductComponent)
            .where(
                ProductComponent.org_id == org_id,
                ProductComponent.is_active.is_(True),
            )
            .order_by(ProductComponent.sort_order, ProductComponent.key)
        )
    ).scalars().all()

    rules: List[ComponentRule] = []
    if components:
        order = {c.id: i for i, c in enumerate(components)}
        fetched = (
            await session.execute(
                select(ComponentRule).where(
                    ComponentRule.component_id.in_(list(order))
                )
            )
        ).scalars().all()
        rules = sorted(fetched, key=lambda r: (order[r.component_id], r.id or 0))

    severities = (
        await session.execute(
            select(SeverityLevel)
            .where(SeverityLevel.org_id == org_id)
            .order_by(SeverityLevel.sort_order, SeverityLevel.key)
        )
    ).scalars().all()

    catalog = ScoringCatalog(
        components=list(components), rules=rules, severities=list(severities)
    )
    if catalog.components and catalog.other is None:
        logger.warning(
            "Organization %s has components but no %s fallback component",
            org_id,
            OTHER_COMPONENT_KEY,
        )
    return catalog


@lru_cache(maxsize=4)
def load_default_catalog(path: str = DEFAULT_CATALOG_PATH) -> Dict[str, Any]:
    """
    Load the default catalog from YAML.

    Args:
        path: Path to the catalog YAML file.

    Returns:
        Dictionary with components, severities, rule_set and prompt_template.
    """
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


async def seed_default_catalog(
    session: AsyncSession,
    org_id: uuid.UUID,
    path: str = DEFAULT_CATALOG_PATH,
    model_name: Optional[str] = None,
) -> ScoringRuleSet:
    """
    Create the default catalog for an organization that has none.

    Existing rule sets are left untouched and the active one is returned.
    The caller owns the transaction.
    """
    existing = await get_active_rule_set(session, org_id)
    if existing is not None:
        logger.info("Organization %s already has a rule set, skipping seed", org_id)
        return existing

    data = load_default_catalog(path)

    for item in data.get("components", []):
        session.add(ProductComponent(org_id=org_id, **item))
    for item in data.get("severities", []):
        session.add(SeverityLevel(org_id=org_id, **item))

    rule_set = ScoringRuleSet(
        org_id=org_id, is_default=True, model_name=model_name, **data["rule_set"]
    )
    session.add(rule_set)
    await session.flush()

    template = data["prompt_template"]
    validate_template(template["template"])
    session.add(
        PromptTemplate(
            org_id=org_id,
            rule_set_id=rule_set.id,
            name=template.get("name", "PR evaluation"),
            template=template["template"],
        )
    )
    await session.flush()

    logger.info("Seeded default catalog for organization %s", org_id)
    return rule_set
