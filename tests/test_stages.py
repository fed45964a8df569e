"""Tests for tracker.workflow.stages module."""

from datetime import date, datetime, timedelta, timezone

import pytest

from tracker.lib.config import TrackerConfig
from tracker.lib.types import MONTHLY_KIND, Client, Experience, RawStatus
from tracker.workflow.stages import (
    initial_experiences,
    is_active_stage,
    is_future,
    monthly_experiences,
    next_active_deadline,
    next_monthly_deadline,
    ongoing_summary,
    resolve_active_month,
    resolve_active_stage,
    summary_counts,
    visible_monthly_window,
)

UTC = timezone.utc
# Signed 2026-01-01 in New York: hour24 due 2026-01-03T04:59Z,
# day10 due 2026-01-12T04:59Z, day30 due 2026-02-01T04:59Z
NOW = datetime(2026, 1, 2, 12, 0, tzinfo=UTC)


def make_client(statuses=None, months=(), client_id="c1", signed_on=date(2026, 1, 1), **kwargs) -> Client:
    statuses = statuses or {}
    client = Client(id=client_id, name=client_id, signed_on_date=signed_on, **kwargs)
    for kind in ("hour24", "day10", "day30"):
        if statuses.get(kind) == "missing":
            continue
        client.experiences.append(Experience(
            id=f"{client_id}-{kind}",
            client_id=client_id,
            kind=kind,
            status=statuses.get(kind, RawStatus.PENDING),
        ))
    for n in months:
        client.experiences.append(Experience(
            id=f"{client_id}-m{n}",
            client_id=client_id,
            kind=MONTHLY_KIND,
            month_number=n,
            status=statuses.get(n, RawStatus.PENDING),
        ))
    return client


@pytest.fixture
def config():
    return TrackerConfig()


class TestSequences:
    """Tests for sequence ordering."""

    def test_initial_in_kind_order(self, config):
        """Initial experiences follow the configured kind order."""
        client = make_client()
        client.experiences.reverse()
        assert [e.kind for e in initial_experiences(client, config)] == ["hour24", "day10", "day30"]

    def test_monthly_sorted_by_number(self):
        """Monthly experiences sort by month number."""
        client = make_client(months=(4, 2, 3))
        assert [e.month_number for e in monthly_experiences(client)] == [2, 3, 4]


class TestResolveActiveStage:
    """Tests for initial active-stage resolution."""

    def test_first_pending_is_active(self, config):
        """The first pending kind is the active stage."""
        assert resolve_active_stage(make_client(), config, NOW) == "hour24"

    def test_done_stage_is_skipped(self, config):
        """A done kind hands the stage to the next one."""
        client = make_client({"hour24": RawStatus.YES})
        assert resolve_active_stage(client, config, NOW) == "day10"

    def test_overdue_pending_stays_active(self, config):
        """An overdue (displayed failed) experience still blocks later ones."""
        later = datetime(2026, 1, 5, tzinfo=UTC)
        assert resolve_active_stage(make_client(), config, later) == "hour24"

    def test_explicit_failure_stays_active(self, config):
        """An explicitly failed kind keeps the stage."""
        client = make_client({"hour24": RawStatus.NO})
        assert resolve_active_stage(client, config, NOW) == "hour24"

    def test_all_done_returns_none(self, config):
        """No stage is active once every kind is done."""
        client = make_client({k: RawStatus.YES for k in ("hour24", "day10", "day30")})
        assert resolve_active_stage(client, config, NOW) is None

    def test_missing_kind_skipped(self, config):
        """A kind absent from the client is skipped."""
        client = make_client({"hour24": "missing"})
        assert resolve_active_stage(client, config, NOW) == "day10"

    def test_is_active_and_future(self, config):
        """Stages split into done, active and future."""
        client = make_client({"hour24": RawStatus.YES})
        h, d10, d30 = initial_experiences(client, config)

        assert is_active_stage(d10, client, config, NOW)
        assert not is_active_stage(h, client, config, NOW)
        assert is_future(d30, client, config, NOW)
        assert not is_future(d10, client, config, NOW)
        assert not is_future(h, client, config, NOW)

    def test_nothing_is_future_once_resolved(self, config):
        """With every kind done nothing is future."""
        client = make_client({k: RawStatus.YES for k in ("hour24", "day10", "day30")})
        for exp in initial_experiences(client, config):
            assert not is_future(exp, client, config, NOW)


class TestResolveActiveMonth:
    """Tests for monthly active-stage resolution."""

    def test_gated_while_last_initial_pending(self, config):
        """No month is active until the last initial kind moves."""
        client = make_client(months=(2, 3))
        assert resolve_active_month(client, config, NOW) is None

    def test_first_open_month_after_onboarding(self, config):
        """The first open month is active after onboarding."""
        client = make_client({"day30": RawStatus.YES}, months=(2, 3, 4))
        assert resolve_active_month(client, config, NOW) == 2

    def test_skips_done_months(self, config):
        """Done months are passed over."""
        client = make_client({"day30": RawStatus.NO, 2: RawStatus.YES}, months=(2, 3, 4))
        assert resolve_active_month(client, config, NOW) == 3

    def test_all_months_done(self, config):
        """No month is active once the series is done."""
        client = make_client({"day30": RawStatus.YES, 2: RawStatus.YES, 3: RawStatus.YES}, months=(2, 3))
        assert resolve_active_month(client, config, NOW) is None

    def test_monthly_is_active_stage(self, config):
        """is_active_stage agrees with the resolved month."""
        client = make_client({"day30": RawStatus.YES}, months=(2, 3))
        m2, m3 = monthly_experiences(client)
        assert is_active_stage(m2, client, config, NOW)
        assert not is_active_stage(m3, client, config, NOW)
        assert is_future(m3, client, config, NOW)


class TestNextDeadlines:
    """Tests for nearest pending deadlines."""

    def test_next_active_deadline(self, config):
        """The nearest pending initial deadline is returned."""
        client = make_client({"hour24": RawStatus.YES})
        assert next_active_deadline(client, config) == datetime(2026, 1, 12, 4, 59, tzinfo=UTC)

    def test_includes_overdue(self, config):
        """An overdue pending stage still counts as next."""
        client = make_client()
        assert next_active_deadline(client, config) == datetime(2026, 1, 3, 4, 59, tzinfo=UTC)

    def test_none_when_nothing_pending(self, config):
        """No pending stage means no next deadline."""
        client = make_client({k: RawStatus.NO for k in ("hour24", "day10", "day30")})
        assert next_active_deadline(client, config) is None

    def test_shifted_by_pause_total(self, config):
        """Accumulated pause time moves the next deadline."""
        client = make_client(paused_total_seconds=60)
        assert next_active_deadline(client, config) == datetime(2026, 1, 3, 5, 0, tzinfo=UTC)

    def test_next_monthly_deadline(self, config):
        """The nearest pending month is returned."""
        client = make_client({2: RawStatus.YES}, months=(2, 3))
        # 2026-04-01 23:59 EDT
        assert next_monthly_deadline(client, config) == datetime(2026, 4, 2, 3, 59, tzinfo=UTC)


class TestVisibleMonthlyWindow:
    """Tests for the sliding monthly window."""

    def test_starts_at_first_open(self, config):
        """The window opens at the first unresolved month."""
        statuses = {2: RawStatus.YES, 3: RawStatus.YES}
        client = make_client(statuses, months=range(2, 9))
        window = visible_monthly_window(client, config, NOW)
        assert [e.month_number for e in window] == [4, 5, 6]

    def test_all_resolved_shows_last(self, config):
        """A fully resolved series shows its tail."""
        statuses = {n: RawStatus.YES for n in range(2, 9)}
        client = make_client(statuses, months=range(2, 9))
        window = visible_monthly_window(client, config, NOW)
        assert [e.month_number for e in window] == [6, 7, 8]

    def test_short_tail(self, config):
        """Fewer remaining months shrink the window."""
        statuses = {2: RawStatus.YES}
        client = make_client(statuses, months=(2, 3))
        assert [e.month_number for e in visible_monthly_window(client, config, NOW)] == [3]

    def test_no_monthly(self, config):
        """A client without months has an empty window."""
        assert visible_monthly_window(make_client(), config, NOW) == []


class TestSummaryCounts:
    """Tests for per-kind summary counts."""

    def test_counts_by_derived_status(self, config):
        """Counts group experiences by derived status."""
        now = datetime(2026, 1, 5, tzinfo=UTC)
        on_time = datetime(2026, 1, 2, tzinfo=UTC)
        late = datetime(2026, 1, 4, tzinfo=UTC)

        done = make_client({"hour24": RawStatus.YES}, client_id="a")
        done.find_kind("hour24").completed_at = on_time
        late_done = make_client({"hour24": RawStatus.YES}, client_id="b")
        late_done.find_kind("hour24").completed_at = late
        overdue = make_client(client_id="c")
        failed = make_client({"hour24": RawStatus.NO}, client_id="d")
        pending = make_client(client_id="e", signed_on=date(2026, 1, 10))
        missing = make_client({"hour24": "missing"}, client_id="f")
        archived = make_client(client_id="g", is_archived=True)

        counts = summary_counts(
            [done, late_done, overdue, failed, pending, missing, archived], "hour24", config, now
        )
        assert counts.done == 1
        assert counts.late == 1
        assert counts.failed == 2
        assert counts.pending == 2


class TestOngoingSummary:
    """Tests for monthly progress summary."""

    @pytest.fixture
    def monthly_config(self):
        return TrackerConfig(monthly_min=2, monthly_max=4)

    def test_up_to_date_due_soon_and_overdue(self, monthly_config):
        """Clients are bucketed by their monthly standing."""
        # Month 2 due 2025-03-01, month 3 due 2025-04-01, month 4 due 2025-05-01 (23:59 local)
        now = datetime(2025, 4, 25, 12, 0, tzinfo=UTC)
        current = make_client({2: RawStatus.YES, 3: RawStatus.YES}, months=(2, 3, 4),
                              client_id="a", signed_on=date(2025, 1, 1))
        behind = make_client({2: RawStatus.YES}, months=(2, 3, 4),
                             client_id="b", signed_on=date(2025, 1, 1))

        summary = ongoing_summary([current, behind], monthly_config, now)
        assert summary.up_to_date == 1
        assert summary.due_soon == 2
        assert summary.overdue == 1
        assert summary.total_due == 4
        assert summary.total_completed == 3
        assert summary.completion_rate == 75

    def test_failed_month_is_not_up_to_date(self, monthly_config):
        """A failed month keeps a client off the up-to-date list."""
        now = datetime(2025, 3, 10, tzinfo=UTC)
        client = make_client({2: RawStatus.NO}, months=(2, 3, 4), signed_on=date(2025, 1, 1))
        summary = ongoing_summary([client], monthly_config, now)
        assert summary.up_to_date == 0
        assert summary.overdue == 0
        assert summary.completion_rate == 0

    def test_rate_rounds_half_up(self, monthly_config):
        """The completion rate rounds to the nearest percent."""
        now = datetime(2025, 6, 1, tzinfo=UTC)
        a = make_client({2: RawStatus.YES}, months=(2, 3, 4), client_id="a", signed_on=date(2025, 1, 1))
        b = make_client({2: RawStatus.YES, 3: RawStatus.YES, 4: RawStatus.YES},
                        months=(2, 3, 4), client_id="b", signed_on=date(2025, 1, 1))
        # 4 of 6 due completed -> 66.67
        assert ongoing_summary([a, b], monthly_config, now).completion_rate == 67

    def test_empty_is_full_rate(self, monthly_config):
        """Nothing due reads as a full completion rate."""
        summary = ongoing_summary([], monthly_config, datetime(2025, 1, 1, tzinfo=UTC))
        assert summary.completion_rate == 100
        assert summary.total_due == 0

    def test_archived_and_monthless_clients_ignored(self, monthly_config):
        """Archived clients and clients without months are skipped."""
        now = datetime(2025, 6, 1, tzinfo=UTC)
        archived = make_client(months=(2,), signed_on=date(2025, 1, 1), is_archived=True)
        no_months = make_client(signed_on=date(2025, 1, 1), client_id="x")
        summary = ongoing_summary([archived, no_months], monthly_config, now)
        assert summary.overdue == 0
        assert summary.total_due == 0

    def test_paused_client_uses_frozen_now(self, monthly_config):
        """A paused client is judged at its pause instant."""
        client = make_client(
            months=(2,), signed_on=date(2025, 1, 1),
            paused=True, pause_started_at=datetime(2025, 2, 1, tzinfo=UTC),
        )
        summary = ongoing_summary([client], monthly_config, datetime(2025, 6, 1, tzinfo=UTC))
        assert summary.overdue == 0
        assert summary.total_due == 0
