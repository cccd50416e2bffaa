import asyncio
import json

import httpx
import pytest

from prscore.core.config import Settings
from prscore.core.exceptions import ConfigurationError, JudgmentError
from prscore.core.llm import OpenAIJudgmentService
from prscore.services.evaluation.judgment import JudgmentClient, parse_judgment
from prscore.services.evaluation.prompts import SYSTEM_PROMPT

from factories import FakeJudgmentService, judgment_payload


def _judge(responses, timeout=None):
    service = FakeJudgmentService(responses)
    client = JudgmentClient(service, timeout=timeout)
    return asyncio.run(client.judge("test-model", "prompt")), service


def test_string_content_is_decoded_and_validated() -> None:
    judgment, service = _judge([json.dumps(judgment_payload(severity="P2"))])

    assert judgment.primary_component_key == "AUTH"
    assert judgment.severity_key == "P2"
    assert judgment.eligibility.all_met
    assert service.calls == [("test-model", SYSTEM_PROMPT, "prompt")]


def test_camel_case_keys_are_accepted() -> None:
    payload = {
        "primaryComponentKey": "UI",
        "severityKey": "P3",
        "eligibility": {
            "issue": True,
            "fixImplementation": True,
            "prLinked": False,
            "tests": True,
        },
        "justificationComponent": "Button styles.",
        "justificationSeverity": "Cosmetic.",
        "impactSummary": "Fixes alignment.",
    }

    judgment = parse_judgment(payload)

    assert judgment.primary_component_key == "UI"
    assert judgment.eligibility.pr_linked is False
    assert not judgment.eligibility.all_met
    assert judgment.review_notes is None


def test_double_encoded_json_is_unwrapped() -> None:
    content = json.dumps(json.dumps(judgment_payload()))

    judgment = parse_judgment(content)

    assert judgment.severity_key == "P1"


def test_non_json_content_fails_validation() -> None:
    with pytest.raises(JudgmentError):
        _judge(["Sure! Here is my evaluation."])


def test_missing_field_fails_validation() -> None:
    payload = judgment_payload()
    del payload["eligibility"]

    with pytest.raises(JudgmentError, match="schema"):
        _judge([payload])


def test_eligibility_flags_must_be_real_booleans() -> None:
    payload = judgment_payload()
    payload["eligibility"]["tests"] = "yes"

    with pytest.raises(JudgmentError):
        parse_judgment(payload)


def test_empty_response_is_an_error() -> None:
    with pytest.raises(JudgmentError, match="empty"):
        _judge([""])


def test_transport_errors_are_wrapped() -> None:
    with pytest.raises(JudgmentError, match="call failed") as exc:
        _judge([httpx.ConnectError("connection refused")])

    assert isinstance(exc.value.__cause__, httpx.ConnectError)


def test_timeout_is_a_judgment_error() -> None:
    class SlowService:
        async def complete(self, model, system_prompt, user_prompt):
            await asyncio.sleep(1)
            return judgment_payload()

    client = JudgmentClient(SlowService(), timeout=0.01)

    with pytest.raises(JudgmentError, match="timed out"):
        asyncio.run(client.judge("test-model", "prompt"))


def test_openai_service_requires_api_key() -> None:
    with pytest.raises(ConfigurationError):
        OpenAIJudgmentService(Settings(OPENAI_API_KEY=None))
