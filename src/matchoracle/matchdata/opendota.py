"""OpenDota API client - finished match details by match id."""

from __future__ import annotations

from typing import Any

import httpx
import structlog

from matchoracle.matchdata.base import EventFinished, FetchFailed, FetchResult, NotFinished, NotFound
from matchoracle.models import EventRecord, Objective, Side

log = structlog.get_logger(__name__)

OPENDOTA_BASE_URL = "https://api.opendota.com/api"


def _objective_side(raw: dict[str, Any]) -> Side | None:
    slot = raw.get("player_slot")
    if isinstance(slot, int):
        return Side.from_player_slot(slot)
    team = raw.get("team")
    if team == 2:
        return Side.RADIANT
    if team == 3:
        return Side.DIRE
    return None


def _parse_objectives(raw_objectives: Any) -> tuple[Objective, ...]:
    if not isinstance(raw_objectives, list):
        return ()
    objectives = []
    for o in raw_objectives:
        if not isinstance(o, dict) or o.get("time") is None:
            continue
        objectives.append(
            Objective(
                time=int(o["time"]),
                type=str(o.get("type") or ""),
                key=str(o.get("key") or ""),
                side=_objective_side(o),
            )
        )
    return tuple(objectives)


def parse_match(raw: dict[str, Any], match_id: str) -> EventRecord | None:
    """Convert an OpenDota match payload to EventRecord; None while unfinished."""
    duration = raw.get("duration")
    if not duration:
        return None
    radiant_win = raw.get("radiant_win")
    return EventRecord(
        match_id=str(raw.get("match_id") or match_id),
        duration=int(duration),
        radiant_score=int(raw.get("radiant_score") or 0),
        dire_score=int(raw.get("dire_score") or 0),
        radiant_win=bool(radiant_win) if radiant_win is not None else None,
        first_blood_time=int(raw["first_blood_time"]) if raw.get("first_blood_time") is not None else None,
        start_time=int(raw["start_time"]) if raw.get("start_time") is not None else None,
        objectives=_parse_objectives(raw.get("objectives")),
    )


class OpenDotaClient:
    """Async client for ``GET /matches/{id}``. Fails closed on unfinished matches."""

    def __init__(
        self,
        base_url: str = OPENDOTA_BASE_URL,
        timeout: float = 15.0,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.AsyncClient(timeout=timeout)
        self._owns_client = client is None

    async def fetch(self, event_id: str) -> FetchResult:
        event_id = str(event_id).strip()
        if not event_id.isdigit():
            return NotFound(event_id, reason="invalid_id")
        url = f"{self.base_url}/matches/{event_id}"
        try:
            resp = await self._client.get(url)
        except httpx.TimeoutException:
            return FetchFailed(event_id, reason="timeout")
        except httpx.HTTPError as e:
            return FetchFailed(event_id, reason=f"transport: {e}")
        if resp.status_code == 404:
            return NotFound(event_id)
        if resp.status_code >= 400:
            return FetchFailed(event_id, reason=f"http_{resp.status_code}")
        try:
            data = resp.json()
        except ValueError:
            return FetchFailed(event_id, reason="invalid_json")
        if not isinstance(data, dict):
            return FetchFailed(event_id, reason="unexpected_payload")
        if data.get("error"):
            return NotFound(event_id, reason=str(data["error"]))
        try:
            record = parse_match(data, event_id)
        except (TypeError, ValueError) as e:
            log.warning("match_parse_failed", event_id=event_id, error=str(e))
            return FetchFailed(event_id, reason="unparseable_match")
        if record is None:
            return NotFinished(event_id)
        return EventFinished(record)

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> OpenDotaClient:
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()
