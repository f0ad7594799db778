"""Generation output parsing into speaker segments."""

from __future__ import annotations

from brew_chat.models import SpeakerSegment


def parse_response(text: str) -> list[SpeakerSegment]:
    """Parse a raw response into (speaker, text) segments.

    Format: one record per line, "Speaker: line". Blank lines are dropped.
    Each line is split on its first colon and both halves trimmed, so later
    colons stay in the text. A line with no colon becomes a segment with an
    empty speaker and the whole line as text.
    """
    segments: list[SpeakerSegment] = []
    for line in text.split("\n"):
        if not line.strip():
            continue
        speaker, sep, rest = line.partition(":")
        if not sep:
            segments.append(SpeakerSegment(speaker="", text=line.strip()))
            continue
        segments.append(SpeakerSegment(speaker=speaker.strip(), text=rest.strip()))
    return segments


def segments_to_text(segments: list[SpeakerSegment]) -> str:
    """Join segment texts into the displayed message body."""
    return "\n".join(seg.text for seg in segments)
