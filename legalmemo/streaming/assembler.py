"""Turn assembly for the live transcript.

Streaming Turn messages carry the full running transcript of the current
turn, so a partial simply replaces the previous partial. A final turn is
appended to the list of finished turns, or merged into the previous one
when the same speaker resumes within the merge gap.
"""

import itertools
import time
from dataclasses import dataclass, field
from uuid import UUID

from legalmemo.config import settings
from legalmemo.models.transcript import (
    SpeakerLabel,
    TranscriptSegment,
    TranscriptTurn,
)
from legalmemo.streaming.protocol import TurnMessage

DEFAULT_SPEAKER = "Speaker A"


@dataclass
class AssemblyUpdate:
    """Result of feeding one Turn message to the assembler."""

    partial_text: str
    new_final_turns: list[TranscriptTurn] = field(default_factory=list)
    merged: bool = False


class TurnAssembler:
    """Builds a display-ready list of final turns plus one partial turn.

    Streaming sessions are not diarized, so every turn gets the same
    placeholder speaker label.
    """

    def __init__(
        self,
        speaker: str = DEFAULT_SPEAKER,
        merge_gap_ms: int | None = None,
    ):
        """Initialize an empty assembler.

        Args:
            speaker: Label assigned to every live turn
            merge_gap_ms: Turns from the same speaker closer than this are
                merged. Defaults to settings.
        """
        self._speaker = speaker
        self._merge_gap_ms = (
            settings.turn_merge_gap_ms if merge_gap_ms is None else merge_gap_ms
        )
        self._counter = itertools.count(1)
        self.turns: list[TranscriptTurn] = []
        self.current_partial = ""

    def on_turn(self, message: TurnMessage) -> AssemblyUpdate:
        """Apply one Turn message.

        Args:
            message: Decoded Turn message from the streaming socket

        Returns:
            AssemblyUpdate with the current partial text and the final turn
            that was appended or extended, if any
        """
        if not message.end_of_turn:
            self.current_partial = message.transcript
            return AssemblyUpdate(partial_text=self.current_partial)

        text = message.transcript.strip()
        if not text:
            return AssemblyUpdate(partial_text=self.current_partial)

        words = message.words
        turn = TranscriptTurn(
            id=self._next_id(),
            speaker=self._speaker,
            text=text,
            start_ms=words[0].start if words else 0,
            end_ms=words[-1].end if words else 0,
            confidence=message.end_of_turn_confidence,
            is_final=True,
        )
        result, merged = self._append_or_merge(turn)
        self.current_partial = ""
        return AssemblyUpdate(partial_text="", new_final_turns=[result], merged=merged)

    def _append_or_merge(self, turn: TranscriptTurn) -> tuple[TranscriptTurn, bool]:
        if self.turns:
            last = self.turns[-1]
            gap = turn.start_ms - last.end_ms
            if last.speaker == turn.speaker and gap < self._merge_gap_ms:
                merged = last.model_copy(
                    update={
                        "text": f"{last.text} {turn.text}",
                        "end_ms": turn.end_ms,
                        "confidence": (last.confidence + turn.confidence) / 2,
                    }
                )
                self.turns[-1] = merged
                return merged, True

        self.turns.append(turn)
        return turn, False

    def _next_id(self) -> str:
        return f"turn-{int(time.time() * 1000)}-{next(self._counter)}"

    @property
    def full_text(self) -> str:
        """Space-joined text of all final turns."""
        return " ".join(turn.text for turn in self.turns)

    def clear(self) -> None:
        """Drop all turns and the partial text."""
        self.turns = []
        self.current_partial = ""

    def as_segments(self, meeting_id: UUID) -> list[TranscriptSegment]:
        """Convert final turns into provisional streaming segments."""
        return [
            TranscriptSegment(
                meeting_id=meeting_id,
                speaker_label=SpeakerLabel.UNKNOWN,
                speaker_name=turn.speaker,
                text=turn.text,
                start_ms=turn.start_ms,
                end_ms=turn.end_ms,
                confidence=turn.confidence,
                is_streaming_result=True,
            )
            for turn in self.turns
        ]
