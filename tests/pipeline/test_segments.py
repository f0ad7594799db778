"""Tests for parse_response and segments_to_text."""

from brew_chat.models import SpeakerSegment
from brew_chat.pipeline import parse_response, segments_to_text


# ── parse_response ─────────────────────────────────────────


def test_parse_character_and_narrator():
    text = "Mira: *shuffles the deck* Sit down, stranger.\nNarrator: Thunder rolls over the harbor."
    segments = parse_response(text)
    assert segments == [
        SpeakerSegment(speaker="Mira", text="*shuffles the deck* Sit down, stranger."),
        SpeakerSegment(speaker="Narrator", text="Thunder rolls over the harbor."),
    ]


def test_parse_blank_lines_dropped():
    text = "\nMira: Hello.\n\n   \nNarrator: The fog thickens.\n\n"
    segments = parse_response(text)
    assert [s.speaker for s in segments] == ["Mira", "Narrator"]


def test_parse_segment_count_matches_non_blank_lines():
    lines = ["Mira: one", "Brant: two", "Narrator: three", "Mira: four"]
    segments = parse_response("\n\n".join(lines))
    assert len(segments) == len(lines)


def test_parse_splits_on_first_colon_only():
    segments = parse_response("Brant: Ship arrives at 12:30: sharp.")
    assert segments[0].speaker == "Brant"
    assert segments[0].text == "Ship arrives at 12:30: sharp."


def test_parse_trims_speaker_and_text():
    segments = parse_response("   Mira   :    Well then.   ")
    assert segments[0].speaker == "Mira"
    assert segments[0].text == "Well then."


def test_parse_line_without_colon_has_empty_speaker():
    segments = parse_response("The lantern gutters out.")
    assert len(segments) == 1
    assert segments[0].speaker == ""
    assert segments[0].text == "The lantern gutters out."


def test_parse_empty_input():
    assert parse_response("") == []
    assert parse_response("  \n \n") == []


def test_parse_windows_line_endings():
    segments = parse_response("Mira: Hi.\r\nNarrator: Rain.\r\n")
    assert [s.text for s in segments] == ["Hi.", "Rain."]


# ── segments_to_text ───────────────────────────────────────


def test_segments_to_text_joins_texts():
    segments = [
        SpeakerSegment(speaker="Mira", text="Sit."),
        SpeakerSegment(speaker="Narrator", text="She points at a stool."),
    ]
    assert segments_to_text(segments) == "Sit.\nShe points at a stool."


def test_segments_to_text_empty():
    assert segments_to_text([]) == ""
