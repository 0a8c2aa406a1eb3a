# tests/unit/captions/test_builder.py — v1
"""Tests for captions/builder.py — ASS output."""

from __future__ import annotations

import pytest

from shortrender.captions.builder import (
    build_ass,
    escape_ass_text,
    format_ass_time,
    group_words,
    hex_to_ass,
    write_captions_from_scenes,
    write_captions_from_words,
)
from shortrender.core.models import SceneTiming, WordTiming
from shortrender.core.niche_packs import CaptionStyle


def _words(entries: list[tuple[str, float, float]]) -> list[WordTiming]:
    return [WordTiming(word=w, start=s, end=e) for w, s, e in entries]


def _dialogues(ass: str) -> list[str]:
    return [line for line in ass.splitlines() if line.startswith("Dialogue:")]


class TestFormatAssTime:
    @pytest.mark.parametrize(
        "seconds,expected",
        [(0, "0:00:00.00"), (1.5, "0:00:01.50"), (61.239, "0:01:01.23"), (3725.0, "1:02:05.00")],
    )
    def test_values(self, seconds, expected):
        assert format_ass_time(seconds) == expected

    def test_negative_clamped(self):
        assert format_ass_time(-1) == "0:00:00.00"


class TestHexToAss:
    def test_bgr_order(self):
        assert hex_to_ass("#FFD700") == "&H0000D7FF&"

    def test_lowercase_input(self):
        assert hex_to_ass("#00d4ff") == "&H00FFD400&"

    def test_invalid(self):
        with pytest.raises(ValueError):
            hex_to_ass("#FFF")


class TestEscape:
    def test_braces_and_newlines(self):
        assert escape_ass_text("a{b}\nc") == "a\\{b\\}\\Nc"


class TestGroupWords:
    def test_splits_on_pause(self):
        words = _words([("one", 0.0, 0.3), ("two", 0.35, 0.6), ("three", 1.5, 1.8)])
        segments = group_words(words)
        assert [s.text for s in segments] == ["one two", "three"]
        assert segments[0].end == 0.6

    def test_splits_every_six_words(self):
        words = _words([(f"w{i}", i * 0.3, i * 0.3 + 0.25) for i in range(8)])
        assert [len(s.words) for s in group_words(words)] == [6, 2]

    def test_empty(self):
        assert group_words([]) == []


class TestBuildAss:
    def test_header(self):
        ass = build_ass([], CaptionStyle())
        assert "PlayResX: 1080" in ass
        assert "PlayResY: 1920" in ass
        assert "Style: Default,Arial Black,48,&H00FFFFFF&" in ass
        assert _dialogues(ass) == []

    def test_one_event_per_word_with_highlight(self):
        words = _words([("Honey", 0.0, 0.4), ("never", 0.45, 0.8), ("spoils", 0.85, 1.3)])
        ass = build_ass(group_words(words), CaptionStyle(highlight_color="#FFD700"))
        events = _dialogues(ass)
        assert len(events) == 3
        assert events[1].startswith("Dialogue: 0,0:00:00.45,0:00:00.80,Default")
        assert events[1].endswith("Honey {\\c&H0000D7FF&}never{\\c} spoils")


class TestWriters:
    def test_from_words(self, tmp_path):
        out = write_captions_from_words(
            _words([("hi", 0.0, 0.5)]), CaptionStyle(), tmp_path / "captions" / "c.ass"
        )
        assert out.is_file()
        assert len(_dialogues(out.read_text(encoding="utf-8"))) == 1

    def test_from_scenes(self, tmp_path):
        timings = [
            SceneTiming(idx=0, text="First scene.", start_sec=0.0, end_sec=2.5),
            SceneTiming(idx=1, text="Second scene.", start_sec=2.5, end_sec=5.0),
        ]
        out = write_captions_from_scenes(timings, CaptionStyle(), tmp_path / "c.ass")
        events = _dialogues(out.read_text(encoding="utf-8"))
        assert len(events) == 2
        assert events[1] == "Dialogue: 0,0:00:02.50,0:00:05.00,Default,,0,0,0,,Second scene."
