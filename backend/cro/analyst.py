# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20260206v1
# ---------------------------------------------------------------------------
"""
LLM stage of the pipeline: sample the scraped page and ask an OpenAI chat
model for a CRO audit.
"""

from typing import Optional

from openai import OpenAI

from core.logger import logger
from cro.prompts import CRO_ANALYSIS_PROMPT

_ELLIPSIS = "\n...\n"


def trim_sample(text: str, max_chars: int = 8000) -> str:
    """
    Keep the head and the tail of *text*, ``max_chars // 2`` characters each,
    joined by an ellipsis line.  Short input is returned unchanged.
    """
    if len(text) <= max_chars:
        return text
    half = max_chars // 2
    return text[:half] + _ELLIPSIS + text[-half:]


class CroAnalyst:
    def __init__(
        self,
        api_key: str = "",
        model: str = "gpt-4-turbo",
        temperature: float = 0.7,
        sample_chars: int = 8000,
        client: Optional[OpenAI] = None,
    ):
        self.api_key = api_key
        self.model = model
        self.temperature = temperature
        self.sample_chars = sample_chars
        self._client = client

    @property
    def client(self) -> OpenAI:
        # Built on first use so the service starts without an API key
        if self._client is None:
            self._client = OpenAI(api_key=self.api_key or None)
        return self._client

    def build_prompt(self, text: str, html: str, url: str) -> str:
        return CRO_ANALYSIS_PROMPT.format(
            url=url,
            text=trim_sample(text, self.sample_chars),
            html=trim_sample(html, self.sample_chars),
        )

    def analyze(self, text: str, html: str, url: str) -> str:
        prompt = self.build_prompt(text, html, url)
        logger.info("Requesting CRO analysis of %s from %s (%d prompt chars)", url, self.model, len(prompt))

        response = self.client.chat.completions.create(
            model=self.model,
            messages=[{"role": "user", "content": prompt}],
            temperature=self.temperature,
        )

        reply = ""
        if response.choices:
            reply = response.choices[0].message.content or ""

        usage = getattr(response, "usage", None)
        if usage:
            logger.info(
                "Token usage: prompt=%s completion=%s total=%s",
                usage.prompt_tokens,
                usage.completion_tokens,
                usage.total_tokens,
            )
        return reply
