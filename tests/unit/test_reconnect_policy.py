"""
Test suite for the reconnect policy.
"""

import pytest

from sessions import ReconnectPolicy


class TestReconnectPolicy:

    def test_defaults(self):
        policy = ReconnectPolicy()

        assert policy.max_attempts == 5
        assert policy.allows(5) is True
        assert policy.allows(6) is False

    def test_first_attempt_is_immediate(self):
        assert ReconnectPolicy(base_delay_s=2.0).delay_for(1) == 0.0

    @pytest.mark.parametrize("attempt, expected", [(2, 1.0), (3, 2.0), (4, 4.0), (5, 8.0)])
    def test_exponential_backoff(self, attempt, expected):
        assert ReconnectPolicy(base_delay_s=1.0).delay_for(attempt) == expected

    def test_delay_is_capped(self):
        policy = ReconnectPolicy(base_delay_s=1.0, max_delay_s=10.0)

        assert policy.delay_for(20) == 10.0

    def test_zero_means_unbounded(self):
        policy = ReconnectPolicy(max_attempts=0)

        assert policy.allows(1_000) is True
