from datetime import UTC, datetime, timedelta

from logvault.domain.archive.model import Source

NOW = datetime(2024, 1, 1, 12, 0, tzinfo=UTC)


class TestSourceIsDue:
    def test_never_pulled_is_due(self, source: Source):
        assert source.is_due(NOW)

    def test_inactive_never_due(self, source: Source):
        source.active = False
        assert not source.is_due(NOW)

    def test_due_once_interval_elapsed(self, source: Source):
        source.last_pulled_at = NOW - timedelta(seconds=source.pull_interval)
        assert source.is_due(NOW)

    def test_not_due_within_interval(self, source: Source):
        source.last_pulled_at = NOW - timedelta(seconds=source.pull_interval - 1)
        assert not source.is_due(NOW)


class TestSourceMarkPulled:
    def test_only_moves_forward(self, source: Source):
        source.mark_pulled(NOW)
        source.mark_pulled(NOW - timedelta(hours=1))
        assert source.last_pulled_at == NOW
