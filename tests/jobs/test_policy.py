"""Tests for RetryPolicy and the retry decision."""

import pytest

from erp.exceptions import AdapterError, AttemptsExhausted, MalformedPayload, RequestRejected
from jobs.policy import (
    PAYMENT_POLICY,
    SYNC_POLICY,
    Done,
    GiveUp,
    Retry,
    RetryPolicy,
    decide,
)


class TestRetryPolicy:

    def test_payment_schedule(self):
        assert PAYMENT_POLICY.max_attempts == 5
        assert [PAYMENT_POLICY.delay_for(n) for n in range(1, 6)] == [60, 300, 900, 1800, 3600]

    def test_sync_schedule(self):
        assert SYNC_POLICY.max_attempts == 3
        assert [SYNC_POLICY.delay_for(n) for n in range(1, 4)] == [60, 300, 900]

    def test_last_entry_reused_past_the_end(self):
        policy = RetryPolicy.of(10, [5, 10])
        assert policy.delay_for(7) == 10

    def test_attempt_numbers_start_at_one(self):
        with pytest.raises(ValueError):
            PAYMENT_POLICY.delay_for(0)

    @pytest.mark.parametrize("max_attempts, backoff", [(0, [1]), (3, []), (3, [10, -1])])
    def test_invalid_policies(self, max_attempts, backoff):
        with pytest.raises(ValueError):
            RetryPolicy.of(max_attempts, backoff)


class TestDecide:

    def test_success_is_done(self):
        assert decide(PAYMENT_POLICY, 1, None) == Done()

    def test_transient_with_attempts_left_retries(self):
        assert decide(PAYMENT_POLICY, 2, AdapterError("down")) == Retry(300)

    def test_transient_on_last_attempt_gives_up_exhausted(self):
        last = AdapterError("down")

        decision = decide(PAYMENT_POLICY, 5, last)

        assert isinstance(decision, GiveUp)
        assert isinstance(decision.error, AttemptsExhausted)
        assert decision.error.last_error is last
        assert "5 attempts" in decision.reason

    @pytest.mark.parametrize("error", [
        MalformedPayload("bad row"),
        RequestRejected("validation failed", status_code=417),
        KeyError("customer_id"),
    ])
    def test_permanent_errors_give_up_at_once(self, error):
        decision = decide(PAYMENT_POLICY, 1, error)

        assert isinstance(decision, GiveUp)
        assert decision.error is error
