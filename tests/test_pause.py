"""Tests for tracker.lib.pause module."""

import logging
from datetime import date, datetime, timedelta, timezone

import pytest

from tracker.lib.config import TrackerConfig
from tracker.lib.deadlines import due_at_for, effective_due_for
from tracker.lib.errors import InvalidStateError
from tracker.lib.pause import apply_client_mutation, pause, resume, toggle_pause
from tracker.lib.types import Client, Experience

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_client(**kwargs) -> Client:
    return Client(id="c1", name="Acme", signed_on_date=date(2026, 2, 24), **kwargs)


class TestPause:
    """Tests for pausing a client."""

    def test_pause_sets_start(self):
        """Pausing records the start instant."""
        mutation = pause(make_client(), T0)
        assert mutation.paused is True
        assert mutation.pause_started_at == T0
        assert mutation.paused_total_seconds == 0

    def test_pause_keeps_existing_total(self):
        """Pausing carries the accumulated total forward."""
        mutation = pause(make_client(paused_total_seconds=500), T0)
        assert mutation.paused_total_seconds == 500

    def test_pause_does_not_mutate_client(self):
        """Pause returns a mutation and leaves the client alone."""
        client = make_client()
        pause(client, T0)
        assert client.paused is False
        assert client.pause_started_at is None

    def test_pause_already_paused_raises(self):
        """A paused client cannot be paused again."""
        client = make_client(paused=True, pause_started_at=T0)
        with pytest.raises(InvalidStateError, match="already paused"):
            pause(client, T0 + timedelta(minutes=5))

    def test_pause_logs(self, caplog):
        """Pausing is logged under [PAUSE]."""
        with caplog.at_level(logging.INFO):
            pause(make_client(), T0)
        assert "[PAUSE] c1: paused" in caplog.text


class TestResume:
    """Tests for resuming a client."""

    def test_resume_after_one_hour(self):
        """Paused at T0, resumed at T0+3600s: total 3600 and deadlines shift by 3600s."""
        config = TrackerConfig()
        client = make_client(experiences=[Experience(id="e1", client_id="c1", kind="day10")])
        apply_client_mutation(client, pause(client, T0))

        mutation = resume(client, T0 + timedelta(seconds=3600))
        assert mutation.paused is False
        assert mutation.pause_started_at is None
        assert mutation.paused_total_seconds == 3600

        apply_client_mutation(client, mutation)
        exp = client.experiences[0]
        raw_due = due_at_for(exp, client, config)
        assert effective_due_for(exp, client, config) == raw_due + timedelta(seconds=3600)

    def test_resume_accumulates(self):
        """Resuming adds the elapsed seconds to the total."""
        client = make_client(paused=True, pause_started_at=T0, paused_total_seconds=100)
        mutation = resume(client, T0 + timedelta(seconds=50))
        assert mutation.paused_total_seconds == 150

    def test_resume_floors_fractional_seconds(self):
        """Partial seconds are dropped."""
        client = make_client(paused=True, pause_started_at=T0)
        mutation = resume(client, T0 + timedelta(seconds=3600, milliseconds=900))
        assert mutation.paused_total_seconds == 3600

    def test_resume_clock_skew_never_decreases_total(self):
        """A clock earlier than the start adds nothing."""
        client = make_client(paused=True, pause_started_at=T0, paused_total_seconds=42)
        mutation = resume(client, T0 - timedelta(minutes=5))
        assert mutation.paused_total_seconds == 42

    def test_resume_not_paused_raises(self):
        """A running client cannot be resumed."""
        with pytest.raises(InvalidStateError, match="not paused"):
            resume(make_client(), T0)

    def test_resume_without_start_raises(self):
        """A paused flag without a start instant is rejected."""
        client = make_client(paused=True, pause_started_at=None)
        with pytest.raises(InvalidStateError, match="no pause_started_at"):
            resume(client, T0)


class TestToggle:
    """Tests for toggle_pause and apply_client_mutation."""

    def test_toggle_pauses_running_client(self):
        """Toggling a running client pauses it."""
        assert toggle_pause(make_client(), T0).paused is True

    def test_toggle_resumes_paused_client(self):
        """Toggling a paused client resumes it."""
        client = make_client(paused=True, pause_started_at=T0)
        assert toggle_pause(client, T0 + timedelta(seconds=10)).paused is False

    def test_apply_moves_all_three_fields(self):
        """Applying a mutation sets every pause field."""
        client = make_client()
        apply_client_mutation(client, pause(client, T0))
        assert client.paused is True
        assert client.pause_started_at == T0
        assert client.paused_total_seconds == 0

    def test_apply_to_wrong_client_raises(self):
        """A mutation only applies to its own client."""
        mutation = pause(make_client(), T0)
        other = Client(id="c2", name="Other", signed_on_date=date(2026, 1, 1))
        with pytest.raises(InvalidStateError):
            apply_client_mutation(other, mutation)

    def test_to_fields(self):
        """Fields serialize with ISO instants."""
        fields = pause(make_client(), T0).to_fields()
        assert fields == {
            "paused": True,
            "pause_started_at": "2026-03-01T12:00:00+00:00",
            "paused_total_seconds": 0,
        }
