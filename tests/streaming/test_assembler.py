"""Tests for the live turn assembler."""

from uuid import uuid4

import pytest

from legalmemo.models.transcript import SpeakerLabel
from legalmemo.streaming.assembler import TurnAssembler
from legalmemo.streaming.protocol import TurnMessage, WordTiming


def final_turn(text: str, start: int, end: int, confidence: float = 0.9) -> TurnMessage:
    return TurnMessage(
        end_of_turn=True,
        transcript=text,
        end_of_turn_confidence=confidence,
        words=[
            WordTiming(text=text.split()[0], start=start, end=start + 100, confidence=confidence),
            WordTiming(text=text.split()[-1], start=end - 100, end=end, confidence=confidence),
        ],
    )


class TestPartialTurns:
    """Tests for in-progress turns."""

    def test_partial_replaces_previous_partial(self):
        """Each partial carries the full current text; nothing accumulates."""
        assembler = TurnAssembler()
        assembler.on_turn(TurnMessage(transcript="The client"))
        update = assembler.on_turn(TurnMessage(transcript="The client agreed"))

        assert update.partial_text == "The client agreed"
        assert assembler.current_partial == "The client agreed"
        assert assembler.turns == []

    def test_final_clears_partial(self):
        """A final turn clears the partial text."""
        assembler = TurnAssembler()
        assembler.on_turn(TurnMessage(transcript="The client agreed"))
        update = assembler.on_turn(final_turn("The client agreed to the settlement.", 0, 2400))

        assert update.partial_text == ""
        assert assembler.current_partial == ""
        assert len(update.new_final_turns) == 1

    def test_blank_final_is_ignored(self):
        """A final turn with only whitespace adds nothing."""
        assembler = TurnAssembler()
        update = assembler.on_turn(TurnMessage(end_of_turn=True, transcript="   "))

        assert update.new_final_turns == []
        assert assembler.turns == []


class TestFinalTurns:
    """Tests for final turn construction."""

    def test_uses_first_and_last_word_timings(self):
        """Start and end come from the first and last words."""
        assembler = TurnAssembler()
        assembler.on_turn(final_turn("Please sign the retainer", 1200, 3400))

        turn = assembler.turns[0]
        assert turn.start_ms == 1200
        assert turn.end_ms == 3400
        assert turn.is_final is True
        assert turn.speaker == "Speaker A"

    def test_turn_without_words_starts_at_zero(self):
        """Missing word timings default to zero."""
        assembler = TurnAssembler()
        assembler.on_turn(TurnMessage(end_of_turn=True, transcript="Hello"))

        assert assembler.turns[0].start_ms == 0
        assert assembler.turns[0].end_ms == 0

    def test_turn_ids_are_unique(self):
        """Ids follow turn-<ms>-<counter> and never repeat."""
        assembler = TurnAssembler(merge_gap_ms=0)
        assembler.on_turn(final_turn("First point here", 0, 1000))
        assembler.on_turn(final_turn("Second point here", 5000, 6000))

        ids = [t.id for t in assembler.turns]
        assert len(set(ids)) == 2
        assert all(i.startswith("turn-") for i in ids)
        assert ids[0].endswith("-1")
        assert ids[1].endswith("-2")


class TestMerging:
    """Tests for merging adjacent same-speaker turns."""

    def test_merges_when_gap_under_threshold(self):
        """Two turns 1999ms apart become one with joined text and mean confidence."""
        assembler = TurnAssembler()
        assembler.on_turn(final_turn("We filed the motion.", 0, 2000, confidence=0.8))
        update = assembler.on_turn(final_turn("The hearing is Monday.", 3999, 6000, confidence=0.6))

        assert len(assembler.turns) == 1
        merged = assembler.turns[0]
        assert merged.text == "We filed the motion. The hearing is Monday."
        assert merged.end_ms == 6000
        assert merged.confidence == pytest.approx(0.7)
        assert update.merged is True

    def test_merged_end_is_latest_turns_end(self):
        """The merged turn ends where the newest turn ends, even if it overlaps."""
        assembler = TurnAssembler()
        assembler.on_turn(final_turn("We filed the motion today.", 0, 5000))
        assembler.on_turn(final_turn("Monday then.", 4000, 4800))

        assert len(assembler.turns) == 1
        assert assembler.turns[0].end_ms == 4800

    def test_gap_of_exactly_threshold_is_not_merged(self):
        """A 2000ms gap keeps turns separate."""
        assembler = TurnAssembler()
        assembler.on_turn(final_turn("We filed the motion.", 0, 2000))
        assembler.on_turn(final_turn("The hearing is Monday.", 4000, 6000))

        assert len(assembler.turns) == 2

    def test_large_gap_is_not_merged(self):
        """Turns far apart stay separate."""
        assembler = TurnAssembler()
        assembler.on_turn(final_turn("We filed the motion.", 0, 2000))
        update = assembler.on_turn(final_turn("The hearing is Monday.", 9000, 11000))

        assert len(assembler.turns) == 2
        assert update.merged is False

    def test_custom_merge_gap(self):
        """The merge threshold is configurable."""
        assembler = TurnAssembler(merge_gap_ms=500)
        assembler.on_turn(final_turn("We filed the motion.", 0, 2000))
        assembler.on_turn(final_turn("The hearing is Monday.", 2800, 4000))

        assert len(assembler.turns) == 2


class TestOutputs:
    """Tests for derived views of the assembled turns."""

    def test_full_text_joins_final_turns(self):
        assembler = TurnAssembler(merge_gap_ms=0)
        assembler.on_turn(final_turn("First point here", 0, 1000))
        assembler.on_turn(final_turn("Second point here", 5000, 6000))

        assert assembler.full_text == "First point here Second point here"

    def test_as_segments_marks_streaming_results(self):
        """Live turns become UNKNOWN streaming segments."""
        meeting_id = uuid4()
        assembler = TurnAssembler()
        assembler.on_turn(final_turn("The client agreed to the settlement.", 0, 2400))

        segments = assembler.as_segments(meeting_id)

        assert len(segments) == 1
        assert segments[0].meeting_id == meeting_id
        assert segments[0].speaker_label == SpeakerLabel.UNKNOWN
        assert segments[0].is_streaming_result is True

    def test_clear_resets_state(self):
        assembler = TurnAssembler()
        assembler.on_turn(TurnMessage(transcript="partial"))
        assembler.on_turn(final_turn("Final words here", 0, 1000))
        assembler.clear()

        assert assembler.turns == []
        assert assembler.current_partial == ""
