"""OpenDota client tests against a mocked transport."""

import asyncio

import httpx

from matchoracle.matchdata import EventFinished, FetchFailed, NotFinished, NotFound
from matchoracle.matchdata.opendota import OpenDotaClient, parse_match
from matchoracle.models import Side

MATCH = {
    "match_id": 7913368966,
    "duration": 2280,
    "radiant_win": False,
    "radiant_score": 21,
    "dire_score": 41,
    "first_blood_time": 95,
    "start_time": 1_730_000_000,
    "objectives": [
        {"time": 95, "type": "CHAT_MESSAGE_FIRSTBLOOD", "player_slot": 130},
        {"time": 700, "type": "building_kill", "key": "npc_dota_goodguys_tower1_top", "player_slot": 131},
        {"time": 800, "type": "CHAT_MESSAGE_ROSHAN_KILL", "team": 3},
        {"type": "building_kill", "key": "no_time"},
    ],
}


def _fetch(handler, event_id="7913368966"):
    async def go():
        async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as http:
            client = OpenDotaClient(base_url="https://api.test/api/", client=http)
            return await client.fetch(event_id)

    return asyncio.run(go())


def test_finished_match():
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, json=MATCH)

    result = _fetch(handler)
    assert seen == ["https://api.test/api/matches/7913368966"]
    assert isinstance(result, EventFinished)
    record = result.record
    assert record.match_id == "7913368966"
    assert record.total_kills == 62
    assert record.radiant_win is False
    assert record.first_blood_time == 95
    assert len(record.objectives) == 3
    assert record.objectives[2].side is Side.DIRE
    (tower,) = record.tower_kills()
    assert tower.side is Side.DIRE


def test_missing_duration_is_not_finished():
    result = _fetch(lambda r: httpx.Response(200, json={"match_id": 1, "duration": None}))
    assert result == NotFinished("7913368966")


def test_404_is_not_found():
    result = _fetch(lambda r: httpx.Response(404, json={"error": "Not Found"}))
    assert isinstance(result, NotFound)


def test_error_body_is_not_found():
    result = _fetch(lambda r: httpx.Response(200, json={"error": "match not parsed"}))
    assert result == NotFound("7913368966", reason="match not parsed")


def test_server_error_is_fetch_failed():
    result = _fetch(lambda r: httpx.Response(503, text="busy"))
    assert result == FetchFailed("7913368966", reason="http_503")


def test_invalid_json_is_fetch_failed():
    result = _fetch(lambda r: httpx.Response(200, text="<html>"))
    assert result == FetchFailed("7913368966", reason="invalid_json")


def test_transport_error_is_fetch_failed():
    def handler(request):
        raise httpx.ConnectError("refused", request=request)

    result = _fetch(handler)
    assert isinstance(result, FetchFailed)
    assert result.reason.startswith("transport")


def test_timeout_is_fetch_failed():
    def handler(request):
        raise httpx.ReadTimeout("slow", request=request)

    assert _fetch(handler) == FetchFailed("7913368966", reason="timeout")


def test_non_numeric_id_never_hits_network():
    def handler(request):
        raise AssertionError("should not be called")

    assert _fetch(handler, event_id="abc") == NotFound("abc", reason="invalid_id")


def test_parse_match_team_fallback():
    record = parse_match({"duration": 100, "objectives": [{"time": 5, "type": "x", "team": 2}]}, "9")
    assert record.match_id == "9"
    assert record.objectives[0].side is Side.RADIANT
    assert record.radiant_win is None
