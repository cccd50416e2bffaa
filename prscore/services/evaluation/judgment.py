"""
Judgment client.

Sends a rendered evaluation prompt to a structured-completion service and
validates the response against the fixed judgment schema.
"""

import asyncio
import json
from typing import Any, Dict, Optional, Protocol, Union

from pydantic import BaseModel, ConfigDict, StrictBool, ValidationError
from pydantic.alias_generators import to_camel

from prscore.core.exceptions import JudgmentError
from prscore.core.logging import get_logger
from prscore.services.evaluation.prompts import SYSTEM_PROMPT

logger = get_logger(__name__)


class JudgmentService(Protocol):
    """Structured completion in JSON-only, temperature-zero mode."""

    async def complete(
        self, model: str, system_prompt: str, user_prompt: str
    ) -> Union[str, Dict[str, Any]]: ...


class _JudgmentModel(BaseModel):
    # Accept snake_case and camelCase keys
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Eligibility(_JudgmentModel):
    """The four eligibility gates."""

    issue: StrictBool
    fix_implementation: StrictBool
    pr_linked: StrictBool
    tests: StrictBool

    @property
    def all_met(self) -> bool:
        return self.issue and self.fix_implementation and self.pr_linked and self.tests


class Judgment(_JudgmentModel):
    """Validated structured output of the judgment service for one change."""

    primary_component_key: str
    severity_key: str
    eligibility: Eligibility
    justification_component: str
    justification_severity: str
    impact_summary: str
    eligibility_notes: Optional[str] = None
    review_notes: Optional[str] = None


def parse_judgment(content: Any) -> Judgment:
    """
    Parse and validate a raw completion.

    String content is decoded as JSON first; content that is not JSON is
    passed through unchanged and fails validation. A JSON string that itself
    encodes a JSON object is unwrapped once.

    Raises:
        JudgmentError: if the payload does not match the schema.
    """
    data = content
    for _ in range(2):
        if not isinstance(data, str):
            break
        try:
            data = json.loads(data)
        except json.JSONDecodeError:
            break

    try:
        return Judgment.model_validate(data)
    except ValidationError as e:
        raise JudgmentError(f"Judgment failed schema validation: {e}") from e


class JudgmentClient:
    """Wraps a JudgmentService with timeout handling and schema validation."""

    def __init__(self, service: JudgmentService, timeout: Optional[float] = None):
        self.service = service
        self.timeout = timeout

    async def judge(self, model: str, prompt: str) -> Judgment:
        """
        Obtain a validated judgment.

        Raises:
            JudgmentError: transport failure, timeout, non-JSON or invalid schema.
        """
        try:
            content = await asyncio.wait_for(
                self.service.complete(model, SYSTEM_PROMPT, prompt),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError as e:
            raise JudgmentError(
                f"Judgment service timed out after {self.timeout}s"
            ) from e
        except JudgmentError:
            raise
        except Exception as e:
            raise JudgmentError(f"Judgment service call failed: {e}") from e

        if content is None or content == "":
            raise JudgmentError("Judgment service returned an empty response")

        judgment = parse_judgment(content)
        logger.debug(
            "Judgment: component=%s severity=%s",
            judgment.primary_component_key,
            judgment.severity_key,
        )
        return judgment
