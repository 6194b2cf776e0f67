import json
import threading

import pytest

from bizpulse.data.usage import QuotaExceeded, UsageMeter
from config.settings import Settings


@pytest.fixture
def config_file(tmp_path):
    """写入临时配置文件"""
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "FORECAST_MONTHS": 6,
        "DEFAULT_COST_RATIO": 0.5,
        "COST_RATIO_TIERS": [{"ratio": 0.4, "min_revenue": 100000}],
        "DEFAULT_PLAN": "pro",
    }), encoding="utf-8")
    return path


class TestSettings:
    """测试配置加载"""

    def test_load_from_file(self, config_file):
        settings = Settings(config_path=str(config_file), setup_logging=False)

        assert settings.analytics.forecast_months == 6
        assert settings.analytics.default_cost_ratio == 0.5
        assert settings.app.default_plan == "pro"
        assert settings.app.api_port == 8000

    def test_environment_overrides_file(self, config_file, monkeypatch):
        monkeypatch.setenv("FORECAST_MONTHS", "4")
        monkeypatch.setenv("DEFAULT_COST_RATIO", "0.7")
        settings = Settings(config_path=str(config_file), setup_logging=False)

        assert settings.analytics.forecast_months == 4
        assert settings.analytics.default_cost_ratio == 0.7

    def test_config_path_from_environment(self, config_file, monkeypatch):
        monkeypatch.setenv("BIZPULSE_CONFIG_PATH", str(config_file))
        settings = Settings(setup_logging=False)

        assert settings.analytics.forecast_months == 6

    def test_missing_file_uses_defaults(self, tmp_path):
        settings = Settings(config_path=str(tmp_path / "nope.json"), setup_logging=False)

        assert settings.analytics.forecast_months == 3
        assert settings.analytics.default_cost_ratio == 0.65
        assert len(settings.analytics.cost_ratio_tiers) == 3

    def test_invalid_json_uses_defaults(self, tmp_path):
        path = tmp_path / "broken.json"
        path.write_text("{not json", encoding="utf-8")
        settings = Settings(config_path=str(path), setup_logging=False)

        assert settings.app.default_plan == "free"

    def test_unknown_key(self, config_file):
        settings = Settings(config_path=str(config_file), setup_logging=False)

        with pytest.raises(ValueError):
            settings.get("NO_SUCH_KEY")

    def test_build_cost_policy(self, config_file):
        policy = Settings(config_path=str(config_file), setup_logging=False).build_cost_policy()

        assert policy.ratio_for(200000) == 0.4
        assert policy.ratio_for(1000) == 0.5

    def test_build_engine(self, config_file):
        engine = Settings(config_path=str(config_file), setup_logging=False).build_engine()

        assert engine.forecast_months == 6
        assert engine.cost_policy.default_ratio == 0.5


class TestUsageMeter:
    """测试用量计数"""

    def test_free_plan_quota(self, now):
        meter = UsageMeter()
        for expected in range(1, 6):
            meter.check("u1", now)
            assert meter.reserve("u1", now) == expected

        with pytest.raises(QuotaExceeded) as exc_info:
            meter.check("u1", now)
        assert exc_info.value.used == 5
        assert meter.remaining("u1", now) == 0

    def test_counts_reset_each_month(self, now):
        meter = UsageMeter()
        for _ in range(5):
            meter.reserve("u1", now)

        assert meter.remaining("u1", now.replace(month=7)) == 5

    def test_unknown_plan(self):
        with pytest.raises(ValueError):
            UsageMeter(default_plan="enterprise")

        with pytest.raises(ValueError):
            UsageMeter().set_plan("u1", "enterprise")

    def test_reserve_is_atomic(self, now):
        """并发占用不会超过套餐上限"""
        meter = UsageMeter()
        granted = []
        rejected = []

        def _run():
            try:
                granted.append(meter.reserve("u1", now))
            except QuotaExceeded:
                rejected.append(1)

        threads = [threading.Thread(target=_run) for _ in range(20)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert sorted(granted) == [1, 2, 3, 4, 5]
        assert len(rejected) == 15
        assert meter.runs_used("u1", now) == 5

    def test_release_returns_run(self, now):
        meter = UsageMeter()
        meter.reserve("u1", now)
        meter.reserve("u1", now)
        meter.release("u1", now)

        assert meter.runs_used("u1", now) == 1

    def test_previous_months_dropped(self, now):
        meter = UsageMeter()
        meter.reserve("u1", now.replace(month=5))
        meter.reserve("u2", now.replace(month=5))
        meter.reserve("u1", now)

        assert meter.runs_used("u1", now.replace(month=5)) == 0
        assert meter.runs_used("u2", now.replace(month=5)) == 1
        assert meter.runs_used("u1", now) == 1
