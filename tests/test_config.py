import pytest

from teaching_contracts.config import exchange_rate_from_env


@pytest.fixture
def rate_env(monkeypatch):
    monkeypatch.delenv("USD_TO_KHR", raising=False)
    monkeypatch.delenv("EXCHANGE_RATE_KHR", raising=False)
    return monkeypatch


class TestExchangeRateFromEnv:

    def test_default(self, rate_env):
        assert exchange_rate_from_env() == 4100.0

    def test_primary_variable_wins(self, rate_env):
        rate_env.setenv("USD_TO_KHR", "4050")
        rate_env.setenv("EXCHANGE_RATE_KHR", "4000")
        assert exchange_rate_from_env() == 4050.0

    def test_secondary_variable(self, rate_env):
        rate_env.setenv("EXCHANGE_RATE_KHR", " 4000.5 ")
        assert exchange_rate_from_env() == 4000.5

    @pytest.mark.parametrize("value", ["abc", "", "nan", "-1", "0"])
    def test_bad_secondary_falls_back_to_default(self, rate_env, value):
        rate_env.setenv("EXCHANGE_RATE_KHR", value)
        assert exchange_rate_from_env() == 4100.0

    def test_bad_primary_uses_secondary(self, rate_env):
        rate_env.setenv("USD_TO_KHR", "four thousand")
        rate_env.setenv("EXCHANGE_RATE_KHR", "4000")
        assert exchange_rate_from_env() == 4000.0
