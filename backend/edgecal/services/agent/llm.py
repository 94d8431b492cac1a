"""Language-model recommendation service for the improvement agent."""

import json
import re
from typing import Protocol

import httpx
import structlog
from pydantic import TypeAdapter, ValidationError

from edgecal.config import settings
from edgecal.schemas.agent import Recommendation

logger = structlog.get_logger()

ANTHROPIC_VERSION = "2023-06-01"

SYSTEM_PROMPT = """You are an expert fantasy football analyst improving a start/sit prediction system by studying its failures.

Your job is to:
1. Explain WHY predictions failed, not only that they did
2. Propose specific, measurable improvements
3. Separate changes that are safe to apply automatically from changes that need human review

GUIDELINES:
- Weight adjustments that land between 0.5 and 2.0 are "safe" and may be marked autoApplicable
- More drastic weight changes need review (autoApplicable: false)
- Code changes and new data sources always need review (autoApplicable: false)
- Be specific: "Reduce weather_wind weight to 0.7", not "reduce weather impact"
- Back every recommendation with evidence
- Keep expected improvements realistic (e.g. "+3% hit rate")

Respond with a JSON array of objects shaped like:
{
  "type": "weight_adjustment" | "threshold_change" | "new_edge" | "code_change" | "data_source",
  "priority": "critical" | "high" | "medium" | "low",
  "title": "Short descriptive title",
  "description": "Detailed explanation",
  "evidence": ["Evidence point 1", "Evidence point 2"],
  "proposedChange": {
    "edgeType": "edge_type_name (if applicable)",
    "currentValue": 1.0,
    "newValue": 0.7,
    "codeChange": "Description of code change if applicable",
    "reasoning": "Why this specific change"
  },
  "autoApplicable": true,
  "expectedImprovement": "Expected impact description"
}

Output only the JSON array, no other text."""

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL)
_ARRAY_RE = re.compile(r"\[.*\]", re.DOTALL)

_recommendations = TypeAdapter(list[Recommendation])


class RecommendationService(Protocol):
    """Anything that turns an analysis context into recommendations."""

    async def recommend(self, context: str) -> list[Recommendation]: ...


def parse_recommendations(text: str) -> list[Recommendation]:
    """
    Parse a model response into recommendations.

    Tolerates a fenced code block around the array. Anything that is not a
    JSON array of well-formed recommendations yields an empty list.
    """
    if not text:
        return []

    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1)

    match = _ARRAY_RE.search(text)
    if not match:
        logger.warning("Recommendation response has no JSON array", preview=text[:200])
        return []

    try:
        return _recommendations.validate_python(json.loads(match.group(0)))
    except json.JSONDecodeError as e:
        logger.warning("Recommendation response is not valid JSON", error=str(e))
    except ValidationError as e:
        logger.warning("Recommendations failed validation", errors=e.error_count())
    return []


class AnthropicRecommendationService:
    """Calls the Anthropic Messages API with the fixed improvement prompt."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        base_url: str | None = None,
        timeout: float | None = None,
        max_tokens: int | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key if api_key is not None else settings.anthropic_api_key
        self.model = model or settings.anthropic_model
        self.base_url = (base_url or settings.anthropic_base_url).rstrip("/")
        self.timeout = timeout or settings.llm_timeout_seconds
        self.max_tokens = max_tokens or settings.llm_max_tokens
        self.transport = transport

    async def recommend(self, context: str) -> list[Recommendation]:
        if not self.api_key:
            logger.warning("No Anthropic API key configured, skipping recommendations")
            return []

        payload = {
            "model": self.model,
            "max_tokens": self.max_tokens,
            "system": SYSTEM_PROMPT,
            "messages": [
                {
                    "role": "user",
                    "content": (
                        "Analyze this prediction system data and provide specific "
                        f"improvement recommendations:\n\n{context}"
                    ),
                }
            ],
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.post(
                    f"{self.base_url}/v1/messages",
                    headers={
                        "x-api-key": self.api_key,
                        "anthropic-version": ANTHROPIC_VERSION,
                        "content-type": "application/json",
                    },
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.TimeoutException:
            logger.error("Recommendation request timed out", timeout=self.timeout)
            return []
        except httpx.HTTPError as e:
            logger.error("Recommendation request failed", error=str(e))
            return []
        except ValueError as e:
            logger.error("Recommendation response was not JSON", error=str(e))
            return []

        blocks = (data.get("content") or []) if isinstance(data, dict) else []
        text = "".join(
            block.get("text", "")
            for block in blocks
            if isinstance(block, dict) and block.get("type") == "text"
        )

        recommendations = parse_recommendations(text)
        logger.info("Received recommendations", count=len(recommendations), model=self.model)
        return recommendations
