import logging
from typing import Optional
from langsmith import traceable
from openai import OpenAI, OpenAIError
from kpi_reports.core.config import OPENAI_MODEL, OPENAI_TEMPERATURE, SYSTEM_PROMPT
from kpi_reports.errors import ProviderFailure

logger = logging.getLogger(__name__)

class CompletionProvider:
    """Chat-completion client for report generation.

    Every failure, including a missing API key or an empty answer, is raised
    as ProviderFailure so the processor can apply its retry policy.
    """
    def __init__(self, api_key: Optional[str] = None, model: str = OPENAI_MODEL,
                 temperature: float = OPENAI_TEMPERATURE, timeout: float = 120.0,
                 client: Optional[OpenAI] = None):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.timeout = timeout
        self._client = client

    @property
    def client(self) -> OpenAI:
        if self._client is None:
            if not self.api_key:
                raise ProviderFailure("OpenAI API key is not configured")
            self._client = OpenAI(api_key=self.api_key, timeout=self.timeout)
        return self._client

    @traceable(name="report_completion")
    def complete(self, prompt: str) -> str:
        """Send ``prompt`` and return the completion text."""
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=[{
                    "role": "system",
                    "content": SYSTEM_PROMPT
                }, {
                    "role": "user",
                    "content": prompt
                }],
                temperature=self.temperature,
            )
        except OpenAIError as e:
            logger.error(f"OpenAI API call failed: {str(e)}")
            raise ProviderFailure(f"OpenAI API error: {str(e)}") from e

        content = response.choices[0].message.content if response.choices else None
        if not content:
            raise ProviderFailure("OpenAI API returned an empty completion")
        return content
