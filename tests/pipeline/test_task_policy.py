"""Tests for deadline and owner policies."""

from datetime import date, datetime

import pytest

from legalmemo.pipeline.task_policy import (
    is_duplicate_task,
    normalize_deadline,
    suggest_deadline,
    suggest_owner,
)

# 2026-01-14 is a Wednesday
WEDNESDAY = date(2026, 1, 14)


class TestSuggestDeadline:
    """Tests for suggest_deadline."""

    @pytest.mark.parametrize("text", ["Call client ASAP", "URGENT: file reply", "Send immediately"])
    def test_urgent_words_mean_tomorrow(self, text):
        """Urgency cues suggest the next day."""
        assert suggest_deadline(text, WEDNESDAY) == date(2026, 1, 15)

    def test_this_week_is_coming_friday(self):
        """'this week' on a Wednesday is two days later."""
        assert suggest_deadline("File motion this week", WEDNESDAY) == date(2026, 1, 16)

    def test_this_week_on_friday_is_a_week_out(self):
        """'this week' on a Friday moves to the next Friday."""
        assert suggest_deadline("Review this week", date(2026, 1, 16)) == date(2026, 1, 23)

    def test_this_week_on_saturday(self):
        """Saturday rolls forward to the coming Friday."""
        assert suggest_deadline("Review this week", date(2026, 1, 17)) == date(2026, 1, 23)

    def test_next_week_is_friday_of_following_week(self):
        """'next week' on a Wednesday is Friday nine days later."""
        assert suggest_deadline("Draft letter next week", WEDNESDAY) == date(2026, 1, 23)

    def test_next_week_counts_weeks_from_sunday(self):
        """On a Sunday the following week starts a week later."""
        assert suggest_deadline("Draft letter next week", date(2026, 1, 18)) == date(2026, 1, 30)

    def test_next_week_on_saturday(self):
        """Saturday belongs to the week that started the previous Sunday."""
        assert suggest_deadline("Draft letter next week", date(2026, 1, 17)) == date(2026, 1, 23)

    def test_month_is_last_day_of_month(self):
        """'month' suggests the end of the current month."""
        assert suggest_deadline("Pay invoice by end of month", date(2026, 2, 10)) == date(2026, 2, 28)

    def test_urgent_wins_over_later_rules(self):
        """The first matching rule wins."""
        assert suggest_deadline("Urgent, ideally this week", WEDNESDAY) == date(2026, 1, 15)

    def test_case_insensitive(self):
        """Cues match regardless of case."""
        assert suggest_deadline("NEXT WEEK please", WEDNESDAY) == date(2026, 1, 23)

    def test_no_cue_returns_none(self):
        """Text without a timing cue has no suggestion."""
        assert suggest_deadline("Send the engagement letter", WEDNESDAY) is None

    def test_accepts_datetime(self):
        """A datetime reference uses its date part."""
        now = datetime(2026, 1, 14, 23, 30)
        assert suggest_deadline("asap", now) == date(2026, 1, 15)


class TestSuggestOwner:
    """Tests for suggest_owner."""

    def test_first_mentioned_participant(self):
        """Returns the participant named in the text."""
        assert suggest_owner("Ask Maria to file the brief", ["John", "Maria"]) == "Maria"

    def test_matches_whole_words_only(self):
        """A name inside another word does not match."""
        assert suggest_owner("Send to Johnson", ["John"]) is None

    def test_case_insensitive(self):
        """Names match regardless of case."""
        assert suggest_owner("maria will call", ["Maria"]) == "Maria"

    def test_no_participants(self):
        """No participants means no owner."""
        assert suggest_owner("Anything", []) is None


class TestNormalizeDeadline:
    """Tests for normalize_deadline."""

    @pytest.fixture
    def meeting_date(self):
        return datetime(2026, 1, 14, 10, 0)

    def test_relative_date(self, meeting_date):
        """Relative phrases resolve against the meeting date."""
        assert normalize_deadline("tomorrow", meeting_date) == date(2026, 1, 15)

    def test_absolute_date(self, meeting_date):
        """Explicit dates are parsed as-is."""
        assert normalize_deadline("March 3, 2026", meeting_date) == date(2026, 3, 3)

    @pytest.mark.parametrize("raw", [None, "", "   "])
    def test_empty_returns_none(self, raw, meeting_date):
        """Missing deadlines stay missing."""
        assert normalize_deadline(raw, meeting_date) is None

    def test_unparseable_returns_none(self, meeting_date):
        """Text that is not a date returns None."""
        assert normalize_deadline("xyzzy", meeting_date) is None


class TestIsDuplicateTask:
    """Tests for is_duplicate_task."""

    def test_reordered_words_are_duplicates(self):
        """Word order does not matter."""
        assert is_duplicate_task(
            "Send draft settlement client", ["client settlement draft send"]
        )

    def test_case_and_punctuation_ignored(self):
        """Matching ignores case and punctuation."""
        assert is_duplicate_task("Call opposing counsel.", ["call opposing counsel"])

    def test_different_tasks_are_not_duplicates(self):
        """Unrelated titles do not match."""
        assert not is_duplicate_task("File motion to dismiss", ["Call opposing counsel"])

    def test_no_existing_titles(self):
        """Nothing to compare against means no duplicate."""
        assert not is_duplicate_task("File motion", [])
