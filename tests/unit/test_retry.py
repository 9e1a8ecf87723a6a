"""Tests for caller-side retries."""

import pytest

from lifepath.errors import BackendError, MissingInputError, ParseError
from lifepath.workflow.retry import RETRY_DELAYS, run_with_retry


class FlakyExecutor:
    """Raises the queued errors, then succeeds."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def execute(self, agent, session_id, **kwargs):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return {"ok": True}


@pytest.fixture
def set_agent(make_agent):
    return make_agent()


@pytest.fixture
def append_agent(make_agent):
    return make_agent(output_field="lifelines", repeatable=True)


class TestRunWithRetry:
    """Tests for run_with_retry."""

    def test_set_agent_retried(self, set_agent) -> None:
        executor = FlakyExecutor(BackendError("busy"), ParseError("bad json"))
        delays = []

        result = run_with_retry(executor, set_agent, "s1", attempts=3, sleep=delays.append)

        assert result == {"ok": True}
        assert executor.calls == 3
        assert delays == RETRY_DELAYS[:2]

    def test_gives_up_after_attempts(self, set_agent) -> None:
        executor = FlakyExecutor(BackendError("1"), BackendError("2"), BackendError("3"))

        with pytest.raises(BackendError, match="2"):
            run_with_retry(executor, set_agent, "s1", attempts=2, sleep=lambda _: None)

        assert executor.calls == 2

    def test_append_agent_runs_once(self, append_agent) -> None:
        """Test that an append agent is never executed a second time."""
        executor = FlakyExecutor(BackendError("busy"))

        with pytest.raises(BackendError):
            run_with_retry(executor, append_agent, "s1", attempts=3, sleep=lambda _: None)

        assert executor.calls == 1

    def test_missing_input_not_retried(self, set_agent) -> None:
        executor = FlakyExecutor(MissingInputError("input.date"))

        with pytest.raises(MissingInputError):
            run_with_retry(executor, set_agent, "s1", attempts=3, sleep=lambda _: None)

        assert executor.calls == 1

    def test_zero_attempts_still_runs_once(self, set_agent) -> None:
        executor = FlakyExecutor()

        assert run_with_retry(executor, set_agent, "s1", attempts=0) == {"ok": True}
        assert executor.calls == 1
