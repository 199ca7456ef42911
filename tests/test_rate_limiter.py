"""Unit tests for the persisted generation rate limiter."""

from unittest.mock import Mock

import pytest

from app.adapters.rate_limit import (
    REQUESTS_LEFT_KEY,
    RESET_TIME_KEY,
    InMemoryRateLimitStore,
    JsonFileRateLimitStore,
)
from app.services.rate_limiter import RateLimiter, format_countdown

NOW_S = 1000.0
NOW_MS = 1_000_000
WINDOW_S = 60


def make_limiter(
    store: InMemoryRateLimitStore | None = None,
    *,
    max_requests: int = 3,
) -> tuple[RateLimiter, Mock, InMemoryRateLimitStore]:
    store = store if store is not None else InMemoryRateLimitStore()
    clock = Mock(return_value=NOW_S)
    limiter = RateLimiter(store, max_requests=max_requests, window_seconds=WINDOW_S, clock=clock)
    return limiter, clock, store


class TestFreshState:
    def test_defaults_to_full_budget_without_window(self) -> None:
        limiter, _, _ = make_limiter()

        assert limiter.state.requests_remaining == 3
        assert limiter.state.window_reset_at_ms is None

    def test_check_allows_and_does_not_spend_budget(self) -> None:
        limiter, _, store = make_limiter()

        decision = limiter.check_and_consume()
        decision_again = limiter.check_and_consume()

        assert decision.allowed is True
        assert decision_again.remaining == 3
        assert store.snapshot() == {}


class TestRecordSuccess:
    def test_first_success_opens_window_and_persists(self) -> None:
        limiter, _, store = make_limiter()

        state = limiter.record_success()

        assert state.requests_remaining == 2
        assert state.window_reset_at_ms == NOW_MS + WINDOW_S * 1000
        assert store.get(REQUESTS_LEFT_KEY) == "2"
        assert store.get(RESET_TIME_KEY) == str(NOW_MS + WINDOW_S * 1000)

    def test_reset_time_does_not_move_within_window(self) -> None:
        limiter, clock, _ = make_limiter()

        limiter.record_success()
        clock.return_value = NOW_S + 10
        limiter.record_success()
        clock.return_value = NOW_S + 20
        state = limiter.record_success()

        assert state.requests_remaining == 0
        assert state.window_reset_at_ms == NOW_MS + WINDOW_S * 1000

    def test_remaining_never_goes_negative(self) -> None:
        limiter, _, store = make_limiter(max_requests=2)

        for _ in range(5):
            limiter.record_success()

        assert limiter.state.requests_remaining == 0
        assert store.get(REQUESTS_LEFT_KEY) == "0"

    def test_success_after_elapsed_window_starts_new_window(self) -> None:
        limiter, clock, _ = make_limiter()
        limiter.record_success()

        clock.return_value = NOW_S + WINDOW_S + 5
        state = limiter.record_success()

        assert state.requests_remaining == 2
        assert state.window_reset_at_ms == (NOW_MS + (WINDOW_S + 5) * 1000) + WINDOW_S * 1000


class TestExhaustion:
    def test_denies_when_exhausted_inside_window(self) -> None:
        limiter, clock, _ = make_limiter()
        for _ in range(3):
            limiter.record_success()

        clock.return_value = NOW_S + 30.5
        decision = limiter.check_and_consume()

        assert decision.allowed is False
        assert decision.remaining == 0
        assert decision.reset_at_ms == NOW_MS + WINDOW_S * 1000
        assert decision.retry_after_seconds == 30

    def test_allows_again_once_window_elapsed(self) -> None:
        limiter, clock, store = make_limiter()
        for _ in range(3):
            limiter.record_success()

        clock.return_value = NOW_S + WINDOW_S
        decision = limiter.check_and_consume()

        assert decision.allowed is True
        assert decision.remaining == 3
        assert limiter.state.window_reset_at_ms is None
        assert store.snapshot() == {}


class TestTick:
    def test_countdown_while_exhausted(self) -> None:
        limiter, _, _ = make_limiter()
        for _ in range(3):
            limiter.record_success()

        assert limiter.tick() == "01:00"
        assert limiter.tick(now_ms=NOW_MS + 30_500) == "00:29"

    def test_empty_countdown_when_budget_left(self) -> None:
        limiter, _, _ = make_limiter()
        limiter.record_success()

        assert limiter.tick() == ""
        assert limiter.state.requests_remaining == 2

    def test_tick_resets_elapsed_window_and_clears_records(self) -> None:
        limiter, _, store = make_limiter()
        for _ in range(3):
            limiter.record_success()

        assert limiter.tick(now_ms=NOW_MS + WINDOW_S * 1000) == ""

        assert limiter.state.requests_remaining == 3
        assert limiter.state.window_reset_at_ms is None
        assert store.snapshot() == {}

    def test_tick_resets_partially_used_window(self) -> None:
        limiter, _, _ = make_limiter()
        limiter.record_success()

        limiter.tick(now_ms=NOW_MS + WINDOW_S * 1000 + 1)

        assert limiter.state.requests_remaining == 3

    def test_status_reports_countdown(self) -> None:
        limiter, _, _ = make_limiter(max_requests=1)
        limiter.record_success()

        status = limiter.status()

        assert status.limit == 1
        assert status.remaining == 0
        assert status.reset_at_ms == NOW_MS + WINDOW_S * 1000
        assert status.countdown == "01:00"


class TestLoadPersistedState:
    def test_restores_state_inside_window(self) -> None:
        store = InMemoryRateLimitStore({REQUESTS_LEFT_KEY: "1", RESET_TIME_KEY: str(NOW_MS + 5000)})

        limiter, _, _ = make_limiter(store)

        assert limiter.state.requests_remaining == 1
        assert limiter.state.window_reset_at_ms == NOW_MS + 5000

    def test_stale_window_yields_defaults_and_clears_records(self) -> None:
        store = InMemoryRateLimitStore({REQUESTS_LEFT_KEY: "0", RESET_TIME_KEY: str(NOW_MS - 1)})

        limiter, _, _ = make_limiter(store)

        assert limiter.state.requests_remaining == 3
        assert limiter.state.window_reset_at_ms is None
        assert store.snapshot() == {}

    @pytest.mark.parametrize(
        "records",
        [
            {REQUESTS_LEFT_KEY: "1"},
            {RESET_TIME_KEY: str(NOW_MS + 5000)},
            {REQUESTS_LEFT_KEY: "one", RESET_TIME_KEY: str(NOW_MS + 5000)},
            {REQUESTS_LEFT_KEY: "1", RESET_TIME_KEY: "soon"},
        ],
    )
    def test_partial_or_corrupt_records_are_discarded(self, records: dict[str, str]) -> None:
        store = InMemoryRateLimitStore(records)

        limiter, _, _ = make_limiter(store)

        assert limiter.state.requests_remaining == 3
        assert limiter.state.window_reset_at_ms is None
        assert store.snapshot() == {}

    def test_counter_above_max_is_clamped(self) -> None:
        store = InMemoryRateLimitStore({REQUESTS_LEFT_KEY: "99", RESET_TIME_KEY: str(NOW_MS + 5000)})

        limiter, _, _ = make_limiter(store)

        assert limiter.state.requests_remaining == 3

    def test_state_survives_restart_with_file_store(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        clock = Mock(return_value=NOW_S)
        first = RateLimiter(JsonFileRateLimitStore(path), max_requests=3, window_seconds=WINDOW_S, clock=clock)
        first.record_success()
        first.record_success()

        second = RateLimiter(JsonFileRateLimitStore(path), max_requests=3, window_seconds=WINDOW_S, clock=clock)

        assert second.state == first.state


@pytest.mark.parametrize(
    "kwargs",
    [
        {"max_requests": 0, "window_seconds": 60},
        {"max_requests": 1, "window_seconds": 0},
    ],
)
def test_invalid_constructor_args(kwargs: dict) -> None:
    with pytest.raises(ValueError):
        RateLimiter(InMemoryRateLimitStore(), **kwargs)


@pytest.mark.parametrize(
    ("remaining_ms", "expected"),
    [
        (0, "00:00"),
        (-500, "00:00"),
        (999, "00:00"),
        (61_999, "01:01"),
        (30 * 60 * 1000, "30:00"),
    ],
)
def test_format_countdown(remaining_ms: int, expected: str) -> None:
    assert format_countdown(remaining_ms) == expected


class FailingWriteStore(JsonFileRateLimitStore):
    """File store whose writes fail once ``fail_writes`` is set."""

    fail_writes = False

    def set_many(self, values) -> None:
        if self.fail_writes:
            raise OSError("disk full")
        super().set_many(values)


class TestPersistenceFailure:
    def test_failed_write_leaves_memory_and_file_in_agreement(self, tmp_path) -> None:
        path = tmp_path / "state.json"
        clock = Mock(return_value=NOW_S)
        store = FailingWriteStore(path)
        limiter = RateLimiter(store, max_requests=3, window_seconds=WINDOW_S, clock=clock)
        limiter.record_success()

        store.fail_writes = True
        with pytest.raises(OSError):
            limiter.record_success()

        assert limiter.state.requests_remaining == 2
        assert limiter.state.window_reset_at_ms == NOW_MS + WINDOW_S * 1000
        reloaded = RateLimiter(JsonFileRateLimitStore(path), max_requests=3, window_seconds=WINDOW_S, clock=clock)
        assert reloaded.state == limiter.state

    def test_failed_first_write_does_not_open_window(self, tmp_path) -> None:
        store = FailingWriteStore(tmp_path / "state.json")
        store.fail_writes = True
        limiter = RateLimiter(store, max_requests=3, window_seconds=WINDOW_S, clock=Mock(return_value=NOW_S))

        with pytest.raises(OSError):
            limiter.record_success()

        assert limiter.state.requests_remaining == 3
        assert limiter.state.window_reset_at_ms is None
        assert not (tmp_path / "state.json").exists()


class TestResetTimeClamp:
    def test_far_future_reset_time_is_clamped_and_persisted(self) -> None:
        store = InMemoryRateLimitStore({REQUESTS_LEFT_KEY: "0", RESET_TIME_KEY: str(NOW_MS + 10**9)})

        limiter, _, _ = make_limiter(store)

        assert limiter.state.requests_remaining == 0
        assert limiter.state.window_reset_at_ms == NOW_MS + WINDOW_S * 1000
        assert store.get(RESET_TIME_KEY) == str(NOW_MS + WINDOW_S * 1000)

    def test_reset_time_inside_window_is_kept(self) -> None:
        store = InMemoryRateLimitStore({REQUESTS_LEFT_KEY: "0", RESET_TIME_KEY: str(NOW_MS + WINDOW_S * 1000)})

        limiter, _, _ = make_limiter(store)

        assert limiter.state.window_reset_at_ms == NOW_MS + WINDOW_S * 1000
