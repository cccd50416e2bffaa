"""
Component classifier.

Maps a change's file list onto configured product components using path
rules, and selects exactly one primary component.
"""

import re
import uuid
from functools import lru_cache
from typing import Dict, List, Optional, Sequence

from sqlalchemy import delete
from sqlmodel import Field, SQLModel
from sqlalchemy.ext.asyncio import AsyncSession

from prscore.core.logging import get_logger
from prscore.db.models import (
    ChangeComponent,
    ChangedFile,
    ComponentRule,
    MatchType,
    ProductComponent,
)

logger = get_logger(__name__)


class ComponentMatch(SQLModel):
    """Accumulated match data for one component."""

    component_id: uuid.UUID
    component_key: str
    lines_changed: int = 0
    priority: int = 0
    is_primary: bool = False


class Classification(SQLModel):
    """Classifier output for a single change."""

    matches: List[ComponentMatch] = Field(default_factory=list)

    @property
    def primary(self) -> Optional[ComponentMatch]:
        return next((m for m in self.matches if m.is_primary), None)


@lru_cache(maxsize=512)
def _compile(pattern: str) -> Optional[re.Pattern]:
    try:
        return re.compile(pattern)
    except re.error as e:
        logger.warning("Invalid rule regex %r treated as non-matching: %s", pattern, e)
        return None


def glob_to_regex(glob: str) -> str:
    """``*`` matches any characters; everything else is literal; anchored both ends."""
    return "^" + re.escape(glob).replace(r"\*", ".*") + "$"


def matches_rule(path: str, rule: ComponentRule) -> bool:
    """Test a file path against a single rule."""
    if rule.match_type == MatchType.PREFIX:
        return path.startswith(rule.pattern)
    if rule.match_type == MatchType.SUFFIX:
        return path.endswith(rule.pattern)
    if rule.match_type == MatchType.REGEX:
        compiled = _compile(rule.pattern)
        return bool(compiled and compiled.search(path))
    if rule.match_type == MatchType.GLOB:
        compiled = _compile(glob_to_regex(rule.pattern))
        return bool(compiled and compiled.search(path))
    return False


def _pick_primary(
    matches: Dict[uuid.UUID, ComponentMatch], order: Dict[uuid.UUID, int]
) -> Optional[uuid.UUID]:
    # Full ties go to the component listed first in the catalog
    ranked = sorted(
        matches.values(),
        key=lambda m: (-m.priority, -m.lines_changed, order.get(m.component_id, len(order))),
    )
    return ranked[0].component_id if ranked else None


def classify_files(
    files: Sequence[ChangedFile],
    components: Sequence[ProductComponent],
    rules: Sequence[ComponentRule],
    other: Optional[ProductComponent] = None,
) -> Classification:
    """
    Classify a change's files into components.

    Args:
        files: Changed files of the change.
        components: Active components of the organization.
        rules: Rules belonging to those components, in evaluation order.
        other: The OTHER fallback component, if configured.

    Returns:
        Classification with one primary match, or an empty classification
        when nothing matched and no OTHER component exists.
    """
    by_id = {c.id: c for c in components}
    matches: Dict[uuid.UUID, ComponentMatch] = {}

    for file in files:
        lines = (file.additions or 0) + (file.deletions or 0)
        for rule in rules:
            component = by_id.get(rule.component_id)
            if component is None or not matches_rule(file.path, rule):
                continue
            entry = matches.get(component.id)
            if entry is None:
                entry = ComponentMatch(
                    component_id=component.id,
                    component_key=component.key,
                    priority=rule.priority or 0,
                )
                matches[component.id] = entry
            entry.lines_changed += lines
            entry.priority = max(entry.priority, rule.priority or 0)

    if not matches:
        if other is None:
            return Classification()
        return Classification(
            matches=[
                ComponentMatch(
                    component_id=other.id,
                    component_key=other.key,
                    is_primary=True,
                )
            ]
        )

    primary_id = _pick_primary(matches, {c.id: i for i, c in enumerate(components)})
    for match in matches.values():
        match.is_primary = match.component_id == primary_id

    result = list(matches.values())
    if not any(m.is_primary for m in result) and other is not None:
        result.append(
            ComponentMatch(component_id=other.id, component_key=other.key, is_primary=True)
        )

    return Classification(matches=result)


async def replace_change_components(
    session: AsyncSession, change_id: uuid.UUID, classification: Classification
) -> None:
    """
    Replace the component associations of a change.

    The caller owns the transaction.
    """
    await session.execute(
        delete(ChangeComponent).where(ChangeComponent.change_id == change_id)
    )
    for match in classification.matches:
        session.add(
            ChangeComponent(
                change_id=change_id,
                component_id=match.component_id,
                lines_changed=match.lines_changed,
                is_primary=match.is_primary,
            )
        )
    await session.flush()
