"""Keyword heuristics used when the language model is unavailable.

Also used to repair weak model output: an empty or evasive summary, or a
missing topic list.
"""

import re

from legalmemo.models.ai_output import KeyFact, MeetingOverview, Participant
from legalmemo.models.transcript import SpeakerLabel, TranscriptSegment

MIN_TEXT_CHARS = 10
MIN_SUMMARY_CHARS = 20
MAX_FALLBACK_TOPICS = 3
DEFAULT_TOPIC = "General discussion"

# First match wins.
_SUMMARY_PATTERNS: list[tuple[tuple[str, ...], str]] = [
    (("schedule", "appointment", "calendar"), "conversation about scheduling and availability"),
    (("contract", "agreement", "document"), "discussion about documents or agreements"),
    (("case", "matter", "client"), "discussion about a case or client matter"),
    (("question", "help", "need"), "consultation addressing questions and concerns"),
    (("update", "status", "progress"), "status update and progress discussion"),
    (("meeting", "call", "discuss"), "meeting covering various topics"),
]

_TOPIC_PATTERNS: list[tuple[tuple[str, ...], str]] = [
    (("schedule", "appointment", "calendar", "meeting", "available"), "Scheduling"),
    (("contract", "agreement", "sign", "document"), "Documents"),
    (("case", "matter", "lawsuit", "litigation"), "Case Discussion"),
    (("client", "consultation", "advice"), "Client Consultation"),
    (("deadline", "due", "filing", "court"), "Deadlines"),
    (("payment", "invoice", "billing", "fee", "cost"), "Billing"),
    (("update", "status", "progress", "report"), "Status Update"),
    (("question", "concern", "issue", "problem"), "Questions & Concerns"),
    (("plan", "strategy", "next steps", "action"), "Planning"),
    (("review", "analyze", "look at", "examine"), "Review"),
]

_MONTH_DAY = re.compile(
    r"\b(january|february|march|april|may|june|july|august|september|october"
    r"|november|december)\s+\d{1,2}",
    re.IGNORECASE,
)
_CAPITALIZED_NAME = re.compile(r"\b([A-Z][a-z]+(?:\s+[A-Z][a-z]+)?)\b")


def format_time_ms(ms: int) -> str:
    """Format milliseconds as MM:SS."""
    total_seconds = ms // 1000
    return f"{total_seconds // 60:02d}:{total_seconds % 60:02d}"


def format_transcript(segments: list[TranscriptSegment]) -> str:
    """Render segments as '[MM:SS] LABEL (name): text' lines."""
    lines = []
    for segment in segments:
        speaker = segment.speaker_label.value
        if segment.speaker_name:
            speaker = f"{speaker} ({segment.speaker_name})"
        lines.append(f"[{format_time_ms(segment.start_ms)}] {speaker}: {segment.text}")
    return "\n\n".join(lines)


def is_weak_summary(summary: str | None) -> bool:
    """True for summaries that say nothing useful."""
    if not summary or not summary.strip():
        return True
    lowered = summary.lower()
    if "no legal" in lowered or "no content" in lowered:
        return True
    return len(summary.strip()) < MIN_SUMMARY_CHARS


def fallback_summary(transcript_text: str, duration_seconds: int) -> str:
    """One-sentence summary built from keywords and the recording length."""
    minutes = round(duration_seconds / 60)
    text = (transcript_text or "").strip()
    if len(text) < MIN_TEXT_CHARS:
        return f"{minutes}-minute recording with limited audio clarity."

    lowered = text.lower()
    for keywords, description in _SUMMARY_PATTERNS:
        if any(keyword in lowered for keyword in keywords):
            return f"{minutes}-minute {description}."

    word_count = len(text.split())
    if word_count > 50:
        return f"{minutes}-minute recorded conversation ({word_count} words transcribed)."
    return f"{minutes}-minute recording captured for documentation."


def extract_topics(transcript_text: str) -> list[str]:
    """Up to three topics matched by keyword."""
    text = (transcript_text or "").strip()
    if len(text) < MIN_TEXT_CHARS:
        return [DEFAULT_TOPIC]

    lowered = text.lower()
    topics: list[str] = []
    for keywords, topic in _TOPIC_PATTERNS:
        if any(keyword in lowered for keyword in keywords):
            topics.append(topic)
        if len(topics) >= MAX_FALLBACK_TOPICS:
            break
    return topics or [DEFAULT_TOPIC]


def participants_from_segments(segments: list[TranscriptSegment]) -> list[Participant]:
    """One participant per distinct label, in order of first appearance."""
    participants: dict[SpeakerLabel, Participant] = {}
    for segment in segments:
        existing = participants.get(segment.speaker_label)
        if existing is None:
            participants[segment.speaker_label] = Participant(
                label=segment.speaker_label, name=segment.speaker_name
            )
        elif existing.name is None and segment.speaker_name:
            existing.name = segment.speaker_name
    return list(participants.values()) or [Participant(label=SpeakerLabel.UNKNOWN)]


def heuristic_key_facts(transcript_text: str) -> list[KeyFact]:
    """Dates and capitalized names mentioned in the transcript, marked unclear."""
    facts: list[KeyFact] = []
    if not transcript_text or len(transcript_text) <= 50:
        return facts

    date_match = _MONTH_DAY.search(transcript_text)
    if date_match:
        facts.append(KeyFact(fact=f"Date mentioned: {date_match.group(0)}"))

    names: list[str] = []
    for name in _CAPITALIZED_NAME.findall(transcript_text):
        if len(name) > 2 and name not in names:
            names.append(name)
    if names:
        facts.append(KeyFact(fact=f"Names mentioned: {', '.join(names[:3])}"))
    return facts


def fallback_overview(
    transcript_text: str,
    duration_seconds: int,
    segments: list[TranscriptSegment],
) -> MeetingOverview:
    """Overview derived from speaker labels and keyword heuristics only."""
    return MeetingOverview(
        one_sentence_summary=fallback_summary(transcript_text, duration_seconds),
        participants=participants_from_segments(segments),
        topics=extract_topics(transcript_text),
    )
