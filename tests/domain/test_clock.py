"""Clock implementations."""

from datetime import UTC, date, datetime, timedelta, timezone

from asset_kernel.domain.clock import DeterministicClock, SystemClock


class TestDeterministicClock:

    def test_frozen_until_moved(self):
        clock = DeterministicClock(datetime(2024, 3, 15, 9, 30, tzinfo=UTC))
        assert clock.now() == clock.now()

        moved = clock.advance(90)
        assert moved == datetime(2024, 3, 15, 9, 31, 30, tzinfo=UTC)
        assert clock.now() == moved

    def test_naive_start_is_utc(self):
        clock = DeterministicClock(datetime(2024, 3, 15, 9, 30))
        assert clock.now().tzinfo is UTC

    def test_set_time(self):
        clock = DeterministicClock()
        clock.advance(5)
        clock.set_time(datetime(2025, 1, 1))
        assert clock.now() == datetime(2025, 1, 1, tzinfo=UTC)

    def test_business_date_is_utc_day(self):
        riyadh = timezone(timedelta(hours=3))
        clock = DeterministicClock(datetime(2024, 3, 16, 1, 0, tzinfo=riyadh))
        assert clock.business_date() == date(2024, 3, 15)


def test_system_clock_is_aware():
    assert SystemClock().now().tzinfo is not None
