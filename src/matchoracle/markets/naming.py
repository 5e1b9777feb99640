"""Market name grammar: ``Subject [eventId]{streamURL}: Question``.

Three ordered alternatives, first match wins:

1. bracketed  ``Topson [7913368966]{https://twitch.tv/topson}: Which team wins?``
   (the ``{...}`` stream URL is optional)
2. legacy     ``Match 7913368966: Game ends before 45 minutes?``
3. standalone anything else; the whole name is the question and the
   market is never auto-resolved.

Names already live on the ledger, so both event forms are parsed forever.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from urllib.parse import parse_qs, urlparse

_BRACKETED = re.compile(
    r"^(?P<subject>.+?)\s*\[(?P<event_id>\d+)\](?:\s*\{(?P<stream_url>[^{}]+?)\})?:\s*(?P<question>.*)$",
    re.DOTALL,
)
_LEGACY = re.compile(r"^Match (?P<event_id>\d+):\s*(?P<question>.*)$", re.DOTALL)


@dataclass(frozen=True)
class EventName:
    """Name that references an external event."""

    subject: str
    event_id: str
    question: str
    stream_url: str | None = None
    legacy: bool = False


@dataclass(frozen=True)
class StandaloneName:
    """Name matching neither event form."""

    question: str


ParsedName = EventName | StandaloneName


def parse_market_name(name: str) -> ParsedName:
    """Parse a market name into its tagged form."""
    m = _BRACKETED.match(name)
    if m:
        return EventName(
            subject=m.group("subject").strip(),
            event_id=m.group("event_id"),
            question=m.group("question").strip(),
            stream_url=(m.group("stream_url") or "").strip() or None,
        )
    m = _LEGACY.match(name)
    if m:
        event_id = m.group("event_id")
        return EventName(
            subject=f"Match {event_id}",
            event_id=event_id,
            question=m.group("question").strip(),
            legacy=True,
        )
    return StandaloneName(question=name.strip())


def market_question(name: str) -> str:
    return parse_market_name(name).question


def market_event_id(name: str) -> str | None:
    parsed = parse_market_name(name)
    return parsed.event_id if isinstance(parsed, EventName) else None


def format_market_name(
    subject: str,
    event_id: str | int,
    question: str,
    stream_url: str | None = None,
) -> str:
    """Build a name in the bracketed form. Inverse of parse_market_name."""
    event_id = str(event_id)
    if not event_id.isdigit():
        raise ValueError(f"event id must be numeric, got {event_id!r}")
    subject = subject.strip()
    if not subject or any(ch in subject for ch in "[]{}"):
        raise ValueError(f"invalid subject {subject!r}")
    if not question.strip():
        raise ValueError("question must not be empty")
    stream = ""
    if stream_url:
        if any(ch in stream_url for ch in "{}"):
            raise ValueError("stream URL must not contain braces")
        stream = "{" + stream_url.strip() + "}"
    return f"{subject} [{event_id}]{stream}: {question.strip()}"


def embed_url(stream_url: str, parent: str = "localhost") -> str | None:
    """Player embed URL for Twitch, YouTube or Kick stream links; None otherwise."""
    try:
        u = urlparse(stream_url)
    except ValueError:
        return None
    host = (u.hostname or "").lower()
    segments = [s for s in u.path.split("/") if s]
    if "twitch.tv" in host:
        if segments:
            return f"https://player.twitch.tv/?channel={segments[0]}&parent={parent}"
        return None
    if "youtube.com" in host or "youtu.be" in host:
        video_id = (parse_qs(u.query).get("v") or [None])[0]
        if not video_id and "youtu.be" in host and segments:
            video_id = segments[0]
        if not video_id and len(segments) >= 2 and segments[0] == "live":
            video_id = segments[1]
        if video_id:
            return f"https://www.youtube.com/embed/{video_id}"
        return None
    if "kick.com" in host:
        if segments:
            return f"https://player.kick.com/{segments[0]}"
        return None
    return None
