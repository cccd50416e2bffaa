"""
LLM Client Construction.

Builds the structured-completion service used by the judgment client.
Nothing is constructed at import time: callers build a service from
settings and hand it to the pipeline, so tests can inject a fake.
"""

from typing import Any, Dict, Optional, Union

from langchain_core.messages import HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import SecretStr

from prscore.core.config import Settings, settings as default_settings
from prscore.core.exceptions import ConfigurationError


class OpenAIJudgmentService:
    """
    OpenAI-compatible chat completion in JSON-only, temperature-zero mode.

    One ChatOpenAI instance is kept per model name, since a rule set chooses
    the model it is evaluated with.
    """

    def __init__(self, app_settings: Optional[Settings] = None):
        self.settings = app_settings or default_settings
        if not self.settings.OPENAI_API_KEY:
            raise ConfigurationError("OPENAI_API_KEY is required for judgments.")
        self._models: Dict[str, Any] = {}

    def _chat_model(self, model: str):
        if model not in self._models:
            llm = ChatOpenAI(
                api_key=SecretStr(self.settings.OPENAI_API_KEY),
                base_url=self.settings.OPENAI_BASE_URL,
                model=model,
                temperature=0,
                timeout=self.settings.JUDGMENT_TIMEOUT_SECONDS,
                max_retries=self.settings.JUDGMENT_MAX_RETRIES,
            )
            self._models[model] = llm.bind(response_format={"type": "json_object"})
        return self._models[model]

    async def complete(
        self, model: str, system_prompt: str, user_prompt: str
    ) -> Union[str, Dict[str, Any]]:
        """Return the raw message content of a single completion."""
        message = await self._chat_model(model).ainvoke(
            [SystemMessage(content=system_prompt), HumanMessage(content=user_prompt)]
        )
        return message.content
