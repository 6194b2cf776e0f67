# config/settings.py
import os
import json
import logging
from typing import Any, Callable, Dict, List, Optional
from pathlib import Path
from dataclasses import dataclass

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "BIZPULSE_CONFIG_PATH"
CONFIG_FILENAME = "bizpulse.json"

DEFAULT_COST_RATIO_TIERS = [
    {"ratio": 0.55, "min_revenue": 50000},
    {"ratio": 0.60, "min_revenue": 20000},
    {"ratio": 0.75, "max_revenue": 5000},
]

DEFAULTS: Dict[str, Any] = {
    "LOG_LEVEL": "INFO",
    "LOG_FILE": "",
    "FORECAST_MONTHS": 3,
    "DEFAULT_COST_RATIO": 0.65,
    "COST_RATIO_TIERS": DEFAULT_COST_RATIO_TIERS,
    "DEFAULT_PLAN": "free",
    "API_PORT": 8000,
}

# 环境变量都是字符串，按键名后缀转换类型
ENV_PARSERS: Dict[str, Callable[[str], Any]] = {
    "_PORT": int,
    "_MONTHS": int,
    "_RATIO": float,
    "_TIERS": json.loads,
}


@dataclass
class AnalyticsConfig:
    """分析引擎配置"""
    forecast_months: int
    default_cost_ratio: float
    cost_ratio_tiers: List[Dict[str, float]]


@dataclass
class AppConfig:
    """服务配置"""
    log_level: str
    log_file: str
    default_plan: str
    api_port: int


class Settings:
    """BizPulse 配置

    读取顺序：环境变量 > JSON 配置文件 > 内置默认值。
    """

    def __init__(self, config_path: Optional[str] = None, setup_logging: bool = True):
        self._config_path = config_path or self._find_config_file()
        self._config = self._read_config_file()

        self.analytics = AnalyticsConfig(
            forecast_months=int(self.get("FORECAST_MONTHS")),
            default_cost_ratio=float(self.get("DEFAULT_COST_RATIO")),
            cost_ratio_tiers=list(self.get("COST_RATIO_TIERS"))
        )
        self.app = AppConfig(
            log_level=str(self.get("LOG_LEVEL")),
            log_file=str(self.get("LOG_FILE")),
            default_plan=str(self.get("DEFAULT_PLAN")),
            api_port=int(self.get("API_PORT"))
        )

        if setup_logging:
            self._setup_logging()

    @staticmethod
    def _find_config_file() -> Optional[str]:
        """依次查找显式指定的路径、当前目录和用户目录，都没有时返回 None"""
        candidates = []
        explicit = os.getenv(CONFIG_ENV_VAR)
        if explicit:
            candidates.append(Path(explicit))
        candidates += [
            Path.cwd() / CONFIG_FILENAME,
            Path.cwd() / "config" / CONFIG_FILENAME,
            Path.home() / ".bizpulse" / "config.json",
        ]

        for candidate in candidates:
            if candidate.is_file():
                return str(candidate)
        return None

    def _read_config_file(self) -> Dict[str, Any]:
        """读取 JSON 配置并叠加到默认值上，文件缺失或格式错误时只用默认值"""
        if self._config_path is None:
            logger.info("No BizPulse config file found, using built-in defaults")
            return dict(DEFAULTS)

        try:
            with open(self._config_path, "r", encoding="utf-8") as f:
                overrides = json.load(f)
        except FileNotFoundError:
            logger.warning(f"Config file {self._config_path} does not exist, using built-in defaults")
            return dict(DEFAULTS)
        except json.JSONDecodeError as e:
            logger.error(f"Config file {self._config_path} is not valid JSON: {e}")
            return dict(DEFAULTS)

        logger.info(f"Loaded {len(overrides)} settings from {self._config_path}")
        return {**DEFAULTS, **overrides}

    def get(self, key: str) -> Any:
        """取配置值，环境变量优先；未知的键抛出 ValueError"""
        raw = os.getenv(key)
        if raw:
            for suffix, parse in ENV_PARSERS.items():
                if key.endswith(suffix):
                    return parse(raw)
            return raw

        if key not in self._config:
            raise ValueError(f"Unknown setting '{key}'")
        return self._config[key]

    def _setup_logging(self):
        """控制台输出，配置了 LOG_FILE 时同时写文件"""
        handlers: List[logging.Handler] = [logging.StreamHandler()]
        if self.app.log_file:
            log_path = Path(self.app.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            handlers.append(logging.FileHandler(log_path, encoding='utf-8'))

        logging.basicConfig(
            level=getattr(logging, self.app.log_level.upper(), logging.INFO),
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            handlers=handlers
        )

    def build_cost_policy(self):
        """把成本率分档配置转换为 CostRatioPolicy"""
        from bizpulse.analytics.profitability import CostRatioPolicy, CostRatioTier

        tiers = [
            CostRatioTier(
                ratio=float(tier["ratio"]),
                min_revenue=tier.get("min_revenue"),
                max_revenue=tier.get("max_revenue")
            )
            for tier in self.analytics.cost_ratio_tiers
        ]
        return CostRatioPolicy(default_ratio=self.analytics.default_cost_ratio, tiers=tiers)

    def build_engine(self):
        """按配置创建分析引擎"""
        from bizpulse.engine.core import AnalyticsEngine

        return AnalyticsEngine(
            cost_policy=self.build_cost_policy(),
            forecast_months=self.analytics.forecast_months
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """进程内共享的配置实例"""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings
