"""销售预测：月度营收的线性回归外推"""
from typing import List, Sequence

import numpy as np
from sklearn.linear_model import LinearRegression

from bizpulse.analytics.aggregation import MonthlyTotal, aggregate_by_month
from bizpulse.analytics.formatting import format_currency, not_enough, recommendation, role_contact
from bizpulse.analytics.results import ForecastPoint, SalesForecastResult
from bizpulse.analytics.trends import classify_change, next_periods, window_change_percent
from bizpulse.data.models import Recommendation, SalesRecord

FORECAST_MONTHS = 3
MIN_MONTHS = 2
MIN_CONFIDENCE = 0.6
CONFIDENCE_DECAY = 0.1
TREND_THRESHOLD = 5.0


def run_sales_forecasting(
        records: Sequence[SalesRecord],
        months_ahead: int = FORECAST_MONTHS
) -> SalesForecastResult:
    """运行销售预测"""
    monthly = aggregate_by_month(records)
    forecast = linear_forecast(monthly, months_ahead)

    trend = classify_change(
        window_change_percent(monthly),
        TREND_THRESHOLD,
        ('increasing', 'decreasing', 'stable')
    )
    growth_rate = calculate_growth_rate(monthly)

    return SalesForecastResult(
        forecast=forecast,
        monthly_totals=monthly,
        trend=trend,
        growth_rate=growth_rate,
        insights=_build_insights(monthly, forecast, trend, growth_rate),
        recommendations=_build_recommendations(forecast, trend, growth_rate)
    )


def linear_forecast(monthly: Sequence[MonthlyTotal], months_ahead: int) -> List[ForecastPoint]:
    """以月序号为自变量做最小二乘回归，少于两个月返回空列表"""
    if len(monthly) < MIN_MONTHS:
        return []

    n = len(monthly)
    x = np.arange(n).reshape(-1, 1)
    y = np.array([m.total for m in monthly], dtype=float)

    model = LinearRegression()
    model.fit(x, y)
    slope = float(model.coef_[0])
    intercept = float(model.intercept_)

    forecast = []
    for i, (period, label) in enumerate(next_periods(monthly[-1].period, months_ahead), start=1):
        predicted = slope * (n + i - 1) + intercept
        forecast.append(ForecastPoint(
            period=period,
            label=label,
            predicted=max(0.0, predicted),
            confidence=max(MIN_CONFIDENCE, 1 - i * CONFIDENCE_DECAY)
        ))

    return forecast


def calculate_growth_rate(monthly: Sequence[MonthlyTotal]) -> float:
    """后半段均值相对前半段均值的增长率（%）"""
    if len(monthly) < MIN_MONTHS:
        return 0.0

    middle = len(monthly) // 2
    first_half = monthly[:middle]
    second_half = monthly[middle:]

    first_avg = sum(m.total for m in first_half) / len(first_half)
    second_avg = sum(m.total for m in second_half) / len(second_half)

    if first_avg == 0:
        return 0.0

    return (second_avg - first_avg) / first_avg * 100


def _build_insights(
        monthly: Sequence[MonthlyTotal],
        forecast: Sequence[ForecastPoint],
        trend: str,
        growth_rate: float
) -> List[str]:
    insights = []

    if monthly:
        insights.append(f"Current month revenue: {format_currency(monthly[-1].total)}")

    if forecast:
        next_month = forecast[0]
        insights.append(
            f"Next month forecast: {format_currency(next_month.predicted)} "
            f"({round(next_month.confidence * 100)}% confidence)"
        )
    else:
        insights.append(not_enough(
            'monthly history to forecast',
            f"(need at least {MIN_MONTHS} months, found {len(monthly)})"
        ))

    insights.append(f"Sales trend: {trend} with {growth_rate:.1f}% growth rate")

    if trend == 'increasing':
        insights.append('Strong upward momentum detected - consider scaling operations')
    elif trend == 'decreasing':
        insights.append('Declining trend identified - immediate action recommended')

    if forecast:
        total_forecast = sum(f.predicted for f in forecast)
        insights.append(
            f"Total forecasted revenue (next {len(forecast)} months): {format_currency(total_forecast)}"
        )

    return insights


def _build_recommendations(
        forecast: Sequence[ForecastPoint],
        trend: str,
        growth_rate: float
) -> List[Recommendation]:
    recommendations = []
    total_forecast = sum(f.predicted for f in forecast)

    if trend == 'increasing' and growth_rate > 10:
        recommendations.append(recommendation(
            'Scale Operations for Growth',
            'Strong growth trend detected. Consider increasing inventory, staff, and marketing budget.',
            'high',
            total_forecast * 0.15,
            [
                role_contact('Operations Manager', 'Coordinate scaling operations for projected growth'),
                role_contact('Finance Director', 'Approve budget increase for growth initiatives'),
            ]
        ))

    if trend == 'decreasing':
        recommendations.append(recommendation(
            'Urgent: Address Declining Sales',
            'Sales are trending downward. Implement retention campaigns and review pricing strategy.',
            'high',
            total_forecast * 0.25,
            [
                role_contact('Sales Director', 'Implement immediate sales recovery strategies'),
                role_contact('Marketing Manager', 'Launch customer retention and acquisition campaigns'),
            ]
        ))

    if forecast:
        # 取预测值最高的月份，并列时取最早的
        peak = max(forecast, key=lambda f: f.predicted)
        recommendations.append(recommendation(
            f"Prepare for {peak.label} Peak",
            f"{peak.label} shows highest revenue potential. Ensure adequate resources and inventory.",
            'medium',
            peak.predicted * 0.1,
            [role_contact('Supply Chain Manager', f"Prepare inventory for {peak.label} peak demand")]
        ))

    return recommendations
