"""现金流预测：尾部移动平均的平推预测"""
from typing import List, Sequence

import numpy as np
from scipy.stats import variation

from bizpulse.analytics.aggregation import MonthlyTotal, aggregate_by_month
from bizpulse.analytics.formatting import format_currency, mean_of, not_enough, recommendation, role_contact
from bizpulse.analytics.results import CashFlowResult, ForecastPoint
from bizpulse.analytics.trends import classify_change, next_periods, window_change_percent
from bizpulse.data.models import Recommendation, SalesRecord

FORECAST_MONTHS = 3
WINDOW_SIZE = 3
MIN_CONFIDENCE = 0.6
TREND_THRESHOLD = 10.0
SCALE_FLOW_THRESHOLD = 50000
DIP_RATIO = 0.7


def run_cash_flow_prediction(
        records: Sequence[SalesRecord],
        months_ahead: int = FORECAST_MONTHS
) -> CashFlowResult:
    """运行现金流预测"""
    monthly = aggregate_by_month(records)
    predictions = moving_average_forecast(monthly, months_ahead)

    if len(monthly) < WINDOW_SIZE:
        trend = 'stable'
    else:
        trend = classify_change(
            window_change_percent(monthly, WINDOW_SIZE),
            TREND_THRESHOLD,
            ('improving', 'declining', 'stable')
        )
    average_flow = mean_of([m.total for m in monthly])

    return CashFlowResult(
        predictions=predictions,
        trend=trend,
        average_monthly_flow=average_flow,
        insights=_build_insights(monthly, predictions, trend, average_flow),
        recommendations=_build_recommendations(predictions, trend, average_flow)
    )


def moving_average_forecast(monthly: Sequence[MonthlyTotal], months_ahead: int) -> List[ForecastPoint]:
    """取最近三个月均值平推，置信度随窗口波动下降"""
    if len(monthly) < WINDOW_SIZE:
        return []

    window = np.array([m.total for m in monthly[-WINDOW_SIZE:]], dtype=float)
    moving_average = float(window.mean())

    if moving_average <= 0:
        confidence = MIN_CONFIDENCE
    else:
        # 总体变异系数（ddof=0）
        confidence = max(MIN_CONFIDENCE, 1 - float(variation(window)) * 0.5)

    return [
        ForecastPoint(
            period=period,
            label=label,
            predicted=max(0.0, moving_average),
            confidence=confidence
        )
        for period, label in next_periods(monthly[-1].period, months_ahead)
    ]


def _build_insights(
        monthly: Sequence[MonthlyTotal],
        predictions: Sequence[ForecastPoint],
        trend: str,
        average_flow: float
) -> List[str]:
    insights = [f"Average monthly cash flow: {format_currency(average_flow)}"]

    if predictions:
        next_month = predictions[0]
        insights.append(
            f"Next month prediction: {format_currency(next_month.predicted)} "
            f"({round(next_month.confidence * 100)}% confidence)"
        )
    else:
        insights.append(not_enough(
            'monthly history to predict cash flow',
            f"(need at least {WINDOW_SIZE} months, found {len(monthly)})"
        ))

    insights.append(f"Cash flow trend: {trend}")

    if trend == 'declining':
        insights.append('Warning: Cash flow is declining - immediate action recommended')
    elif trend == 'improving':
        insights.append('Positive: Cash flow is improving - consider scaling operations')

    if predictions:
        total_predicted = sum(p.predicted for p in predictions)
        insights.append(
            f"Total predicted cash flow (next {len(predictions)} months): {format_currency(total_predicted)}"
        )

    return insights


def _build_recommendations(
        predictions: Sequence[ForecastPoint],
        trend: str,
        average_flow: float
) -> List[Recommendation]:
    recommendations = []

    if trend == 'declining':
        recommendations.append(recommendation(
            'Urgent: Address Cash Flow Decline',
            'Cash flow is trending downward. Implement immediate cost reduction '
            'and revenue acceleration strategies.',
            'high',
            average_flow * 0.3,
            [
                role_contact('CFO/Finance Manager', 'Review cash flow projections and implement cost controls'),
                role_contact('Sales Director', 'Accelerate revenue collection and new sales'),
            ]
        ))

    if trend == 'improving' and average_flow > SCALE_FLOW_THRESHOLD:
        recommendations.append(recommendation(
            'Scale Operations for Growth',
            'Strong cash flow trend detected. Consider investing in growth opportunities.',
            'medium',
            average_flow * 0.2,
            [role_contact('Operations Manager', 'Plan operational scaling for sustained growth')]
        ))

    if predictions:
        lowest = min(predictions, key=lambda p: p.predicted)
        if lowest.predicted < average_flow * DIP_RATIO:
            recommendations.append(recommendation(
                f"Prepare for {lowest.label} Cash Flow Dip",
                f"{lowest.label} shows lower predicted cash flow. Ensure adequate reserves.",
                'medium',
                average_flow - lowest.predicted,
                [role_contact('Finance Manager', f"Prepare cash reserves for {lowest.label} shortfall")]
            ))

    return recommendations
