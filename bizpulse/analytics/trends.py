"""趋势判断与月份推算的公共逻辑"""
from typing import List, Optional, Sequence, Tuple

import pandas as pd

from bizpulse.analytics.aggregation import MonthlyTotal

TREND_WINDOW = 3


def window_change_percent(monthly: Sequence[MonthlyTotal], window: int = TREND_WINDOW) -> Optional[float]:
    """最近 window 个月均值相对前 window 个月均值的变化百分比

    没有可比较的前一窗口时返回 None。
    """
    recent = monthly[-window:]
    older = monthly[-2 * window:-window]
    if not recent or not older:
        return None

    recent_avg = sum(m.total for m in recent) / len(recent)
    older_avg = sum(m.total for m in older) / len(older)

    if older_avg == 0:
        # 前期为零时无法计算比例，只看方向
        if recent_avg > 0:
            return float('inf')
        if recent_avg < 0:
            return float('-inf')
        return 0.0

    return (recent_avg - older_avg) / older_avg * 100


def classify_change(change: Optional[float], threshold: float, labels: Tuple[str, str, str]) -> str:
    """按死区阈值把变化分类为 (上升, 下降, 平稳)"""
    rising, falling, flat = labels
    if change is None:
        return flat
    if change > threshold:
        return rising
    if change < -threshold:
        return falling
    return flat


def next_periods(last_period: str, count: int) -> List[Tuple[str, str]]:
    """从 YYYY-MM 向后推 count 个月，返回 (YYYY-MM, 'Mon YYYY')"""
    base = pd.Period(last_period, freq='M')
    periods = []
    for offset in range(1, count + 1):
        period = base + offset
        periods.append((period.strftime('%Y-%m'), period.strftime('%b %Y')))
    return periods
