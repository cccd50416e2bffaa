"""
Pipeline state model for per-change evaluation.

Pure graph state, no service-layer imports.
"""

import uuid
from typing import Optional

from sqlmodel import Field, SQLModel

from prscore.services.evaluation.classifier import Classification
from prscore.services.evaluation.judgment import Judgment


class EvaluationState(SQLModel):
    """
    State of the evaluation pipeline for one change.

    This is used by LangGraph to manage workflow state, not a database table.
    """

    change_id: uuid.UUID = Field(description="The change being evaluated.")
    model_name: str = Field(description="Model the rule set is evaluated with.")
    template: str = Field(description="Validated prompt template text.")
    classification: Optional[Classification] = Field(
        default=None, description="Component classification of the change."
    )
    prompt: Optional[str] = Field(
        default=None, description="Rendered evaluation prompt."
    )
    judgment: Optional[Judgment] = Field(
        default=None, description="Validated judgment of the change."
    )
