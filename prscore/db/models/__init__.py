"""
Database models package.

Import all models here so Alembic can discover them.
"""

from prscore.db.models.catalog import (
    OTHER_COMPONENT_KEY,
    ComponentRule,
    MatchType,
    ProductComponent,
    PromptTemplate,
    ScoringRuleSet,
    SeverityLevel,
)
from prscore.db.models.change import (
    Change,
    ChangeComponent,
    ChangedFile,
    Issue,
    IssueLink,
    Repository,
)
from prscore.db.models.evaluation import (
    BatchStatus,
    Evaluation,
    EvaluationBatch,
    EvaluationBatchPublic,
    RunType,
)
from prscore.db.models.developer_stats import SEVERITY_COUNTERS, DeveloperDailyStat

__all__ = [
    "OTHER_COMPONENT_KEY",
    "ComponentRule",
    "MatchType",
    "ProductComponent",
    "PromptTemplate",
    "ScoringRuleSet",
    "SeverityLevel",
    "Change",
    "ChangeComponent",
    "ChangedFile",
    "Issue",
    "IssueLink",
    "Repository",
    "BatchStatus",
    "Evaluation",
    "EvaluationBatch",
    "EvaluationBatchPublic",
    "RunType",
    "SEVERITY_COUNTERS",
    "DeveloperDailyStat",
]
