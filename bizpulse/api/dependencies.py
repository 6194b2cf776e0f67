"""API依赖项"""
import logging
from typing import Optional

from bizpulse.data.usage import UsageMeter
from bizpulse.engine.core import AnalyticsEngine

logger = logging.getLogger(__name__)

# 全局实例（由app.py在启动时设置）
_engine: Optional[AnalyticsEngine] = None
_usage_meter: Optional[UsageMeter] = None


def set_engine(engine: Optional[AnalyticsEngine]):
    """设置引擎实例"""
    global _engine
    _engine = engine


def set_usage_meter(meter: Optional[UsageMeter]):
    """设置用量计数器"""
    global _usage_meter
    _usage_meter = meter


def get_engine() -> AnalyticsEngine:
    """获取引擎实例的依赖函数，未初始化时使用默认配置创建"""
    global _engine
    if _engine is None:
        logger.warning("Engine not initialized, creating one with default settings")
        _engine = AnalyticsEngine()
    return _engine


def get_usage_meter() -> UsageMeter:
    """获取用量计数器的依赖函数"""
    global _usage_meter
    if _usage_meter is None:
        logger.warning("Usage meter not initialized, using the free plan by default")
        _usage_meter = UsageMeter()
    return _usage_meter


def engine_ready() -> bool:
    return _engine is not None
