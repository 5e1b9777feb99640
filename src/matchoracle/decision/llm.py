"""LLM outcome adviser over an OpenRouter-compatible chat completions API.

The model's answer is untrusted. A response is only accepted when it holds
a JSON object whose ``outcome`` is an integer inside the label range; any
other shape yields Unavailable. A well-formed but wrong answer cannot be
detected here.
"""

from __future__ import annotations

import json
from typing import Any, Sequence

import httpx
import structlog

from matchoracle.decision.base import DecisionResult, DecisionStrategy, Unavailable, Verdict
from matchoracle.models import EventRecord

log = structlog.get_logger(__name__)

OPENROUTER_URL = "https://openrouter.ai/api/v1/chat/completions"
DEFAULT_MODEL = "google/gemini-2.0-flash-001"
MAX_TOWER_OBJECTIVES = 5

PROMPT_TEMPLATE = """You are a Dota 2 match oracle. Given match data and a prediction market question, determine which outcome won.

MATCH DATA:
{summary}

QUESTION: "{question}"
OUTCOMES: {outcomes}

Based on the match data, which outcome index won? Reply with ONLY a JSON object: {{"outcome": <index>, "reasoning": "<brief explanation>"}}"""


def summarize_event(event: EventRecord) -> dict[str, Any]:
    """Bounded summary sent to the model; never the raw match payload."""
    fb = event.first_blood_time
    return {
        "duration_seconds": event.duration,
        "duration_minutes": round(event.duration / 60),
        "radiant_win": event.radiant_win,
        "radiant_score": event.radiant_score,
        "dire_score": event.dire_score,
        "total_kills": event.total_kills,
        "first_blood_time_seconds": fb,
        "first_blood_time_minutes": round(fb / 60, 1) if fb is not None else None,
        "objectives": [
            {
                "type": o.type,
                "key": o.key,
                "time": o.time,
                "team": o.side.value if o.side else None,
            }
            for o in event.tower_kills()[:MAX_TOWER_OBJECTIVES]
        ],
    }


def build_prompt(question: str, labels: Sequence[str], summary: dict[str, Any]) -> str:
    outcomes = ", ".join(f'{i}="{label}"' for i, label in enumerate(labels))
    return PROMPT_TEMPLATE.format(
        summary=json.dumps(summary, indent=2),
        question=question,
        outcomes=outcomes,
    )


def extract_json_object(text: str) -> dict[str, Any] | None:
    """First decodable JSON object embedded in free text."""
    decoder = json.JSONDecoder()
    start = text.find("{")
    while start != -1:
        try:
            obj, _ = decoder.raw_decode(text, start)
        except json.JSONDecodeError:
            start = text.find("{", start + 1)
            continue
        if isinstance(obj, dict):
            return obj
        start = text.find("{", start + 1)
    return None


def parse_verdict(content: str, n_outcomes: int) -> DecisionResult:
    """Validate model output into a Verdict, or Unavailable."""
    obj = extract_json_object(content)
    if obj is None:
        return Unavailable("no JSON object in adviser response")
    outcome = obj.get("outcome")
    # bool is an int subclass; reject it explicitly
    if isinstance(outcome, bool) or not isinstance(outcome, int):
        return Unavailable(f"outcome is not an integer: {outcome!r}")
    if not 0 <= outcome < n_outcomes:
        return Unavailable(f"outcome {outcome} out of range [0, {n_outcomes})")
    reasoning = obj.get("reasoning")
    return Verdict(outcome, str(reasoning) if reasoning is not None else "")


class LLMAdviser(DecisionStrategy):
    """Asks a language model for the winning outcome index."""

    name = "llm"

    def __init__(
        self,
        api_key: str,
        endpoint: str = OPENROUTER_URL,
        model: str = DEFAULT_MODEL,
        max_tokens: int = 150,
        timeout: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.api_key = api_key
        self.endpoint = endpoint
        self.model = model
        self.max_tokens = max_tokens
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    def _request_body(self, prompt: str) -> dict[str, Any]:
        return {
            "model": self.model,
            "messages": [{"role": "user", "content": prompt}],
            "max_tokens": self.max_tokens,
            "temperature": 0,
        }

    async def decide(self, question: str, labels: Sequence[str], event: EventRecord) -> DecisionResult:
        prompt = build_prompt(question, labels, summarize_event(event))
        try:
            resp = await self._client.post(
                self.endpoint,
                headers={"Authorization": f"Bearer {self.api_key}"},
                json=self._request_body(prompt),
            )
        except httpx.TimeoutException:
            return Unavailable("adviser timeout")
        except httpx.HTTPError as e:
            return Unavailable(f"adviser transport error: {e}")
        if resp.status_code >= 400:
            log.warning("adviser_http_error", status=resp.status_code, body=resp.text[:200])
            return Unavailable(f"adviser http {resp.status_code}")
        try:
            data = resp.json()
            content = data["choices"][0]["message"]["content"]
        except (ValueError, KeyError, IndexError, TypeError):
            return Unavailable("adviser response missing message content")
        if not isinstance(content, str) or not content.strip():
            return Unavailable("adviser returned empty content")
        result = parse_verdict(content.strip(), len(labels))
        if isinstance(result, Unavailable):
            log.info("adviser_output_rejected", reason=result.reason, raw=content[:200])
        return result

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()
