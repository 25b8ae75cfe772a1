"""AI content analysis using the OpenAI chat completions API.

The model is asked for a JSON object with ``seo``, ``readability`` and
``engagement`` sections, each scored 0-100 with actionable suggestions.
The response is validated against ``AnalysisResults`` before anyone
persists it; anything else is an ``AnalysisFailed``.
"""

from __future__ import annotations

import json
import logging
import textwrap
from typing import Optional

from openai import AsyncOpenAI, OpenAIError
from pydantic import ValidationError

from draftwise.core.exceptions import AnalysisFailed, AnalysisUnavailable
from draftwise.models.schemas import AnalysisResults

logger = logging.getLogger(__name__)

_PROMPT = textwrap.dedent(
    """\
    Analyze the following text for SEO, Readability, and Engagement. Provide a score from 0 to 100 for each category and actionable suggestions for improvement. Format the output as a JSON object with keys "seo", "readability", and "engagement". Each key should have an object with "score" (0-100) and "suggestions" (an array of strings). Include relevant keywords for SEO as "keywords", estimated grade level for readability as "gradeLevel", and detected tone for engagement as "tone" if possible.

    Text to analyze:
    --- START TEXT ---
    {text}
    --- END TEXT ---

    JSON Output:
    """
)


def build_prompt(text: str) -> str:
    return _PROMPT.format(text=text)


def parse_analysis(raw: Optional[str]) -> AnalysisResults:
    """Validate the model's JSON answer."""
    if not raw:
        raise AnalysisFailed("AI response was empty or invalid.")
    try:
        return AnalysisResults.model_validate(json.loads(raw))
    except (json.JSONDecodeError, ValidationError) as exc:
        logger.error("[analysis] unparseable model output: %s", exc)
        raise AnalysisFailed("Failed to parse analysis results from AI.") from exc


class AnalysisService:
    """Runs the analysis prompt against a configured model."""

    def __init__(self, api_key: Optional[str], model: str = "gpt-4", temperature: float = 0.5, client: Optional[AsyncOpenAI] = None) -> None:
        self.model = model
        self.temperature = temperature
        self._client = client
        if self._client is None and api_key:
            self._client = AsyncOpenAI(api_key=api_key)

    @property
    def configured(self) -> bool:
        return self._client is not None

    async def analyze(self, text: str) -> AnalysisResults:
        if self._client is None:
            logger.error("[analysis] OpenAI API key not configured")
            raise AnalysisUnavailable("AI analysis service is not configured.")
        try:
            completion = await self._client.chat.completions.create(
                model=self.model,
                messages=[{"role": "user", "content": build_prompt(text)}],
                response_format={"type": "json_object"},
                temperature=self.temperature,
            )
        except OpenAIError as exc:
            logger.error("[analysis] model call failed model=%s: %s", self.model, exc)
            raise AnalysisFailed("Failed to analyze content") from exc
        choices = getattr(completion, "choices", None) or []
        raw = choices[0].message.content if choices else None
        return parse_analysis(raw)
