"""季节性趋势：按自然月统计跨年平均营收并识别旺季与淡季"""
import calendar
from datetime import datetime
from typing import List, Optional, Sequence, Tuple

import pandas as pd
from scipy.stats import variation

from bizpulse.analytics.formatting import format_currency, join_names, not_enough, recommendation, resolve_now, role_contact
from bizpulse.analytics.results import MonthlyTrend, SeasonalMetrics, SeasonalTrendsResult
from bizpulse.data.models import Recommendation, SalesRecord

MONTHS = range(1, 13)
QUARTERS = [('Q1', (1, 2, 3)), ('Q2', (4, 5, 6)), ('Q3', (7, 8, 9)), ('Q4', (10, 11, 12))]
HIGH_SEASONALITY = 30
LOW_SEASONALITY = 15
IMMINENT_PEAK_MONTHS = 3


def classify_seasonality(deviation: float) -> str:
    if deviation > 25:
        return 'peak'
    if deviation > 10:
        return 'high'
    if deviation < -25:
        return 'low'
    return 'normal'


def analyze_monthly_trends(records: Sequence[SalesRecord]) -> List[MonthlyTrend]:
    """十二个自然月的平均营收

    每个月的营收除以该月出现过的年份数，没有数据的月份按一年计。
    """
    if records:
        frame = pd.DataFrame({
            'month': [record.date.month for record in records],
            'year': [record.date.year for record in records],
            'amount': [record.amount for record in records],
        })
        summary = frame.groupby('month').agg(
            revenue=('amount', 'sum'),
            count=('amount', 'size'),
            years=('year', 'nunique'),
        ).reindex(list(MONTHS), fill_value=0)
    else:
        summary = pd.DataFrame(0, index=list(MONTHS), columns=['revenue', 'count', 'years'])

    averages = []
    for month, row in summary.iterrows():
        year_count = int(row['years']) or 1
        averages.append((int(month), float(row['revenue']) / year_count, round(int(row['count']) / year_count)))

    overall_average = sum(avg for _, avg, _ in averages) / 12

    trends = []
    for month, average_revenue, sales_count in averages:
        if overall_average > 0:
            deviation = (average_revenue - overall_average) / overall_average * 100
        else:
            deviation = 0.0
        trends.append(MonthlyTrend(
            month=month,
            month_name=calendar.month_name[month],
            average_revenue=average_revenue,
            sales_count=sales_count,
            growth_rate=deviation,
            seasonality=classify_seasonality(deviation)
        ))

    return trends


def months_until(target_month: int, now: datetime) -> int:
    """距离目标月份的月数，当月及已过去的月份顺延到下一年"""
    months = target_month - now.month
    if months <= 0:
        months += 12
    return months


def calculate_seasonal_metrics(trends: Sequence[MonthlyTrend], now: datetime) -> SeasonalMetrics:
    ordered = sorted(trends, key=lambda t: -t.average_revenue)
    peak, low = ordered[0], ordered[-1]

    revenues = [t.average_revenue for t in trends]
    next_peak = pd.Timestamp(now) + pd.DateOffset(months=months_until(peak.month, now))

    return SeasonalMetrics(
        peak_month=peak.month_name,
        low_month=low.month_name,
        seasonality_index=round(float(variation(revenues)) * 100),
        predicted_next_peak=next_peak.strftime('%B %Y')
    )


def run_seasonal_trends(
        records: Sequence[SalesRecord],
        now: Optional[datetime] = None
) -> SeasonalTrendsResult:
    """运行季节性趋势分析，总营收为零时不给出季节性指标"""
    now = resolve_now(now)
    trends = analyze_monthly_trends(records)

    if sum(t.average_revenue for t in trends) <= 0:
        return SeasonalTrendsResult(
            monthly_trends=[],
            seasonal_metrics=None,
            insights=[not_enough('revenue history to detect seasonality', '(no positive revenue found)')],
            recommendations=[]
        )

    metrics = calculate_seasonal_metrics(trends, now)

    return SeasonalTrendsResult(
        monthly_trends=trends,
        seasonal_metrics=metrics,
        insights=_build_insights(trends, metrics),
        recommendations=_build_recommendations(trends, metrics, now)
    )


def _strong_and_weak(trends: Sequence[MonthlyTrend]) -> Tuple[List[MonthlyTrend], List[MonthlyTrend]]:
    strong = [t for t in trends if t.seasonality in ('peak', 'high')]
    weak = [t for t in trends if t.seasonality == 'low']
    return strong, weak


def _build_insights(trends: Sequence[MonthlyTrend], metrics: SeasonalMetrics) -> List[str]:
    insights = [
        f"Peak sales month: {metrics.peak_month}",
        f"Lowest sales month: {metrics.low_month}",
        f"Business seasonality index: {metrics.seasonality_index}% (higher = more seasonal)",
    ]

    if metrics.seasonality_index > HIGH_SEASONALITY:
        insights.append('High seasonality detected - significant monthly variations in revenue')
    elif metrics.seasonality_index < LOW_SEASONALITY:
        insights.append('Low seasonality - relatively stable revenue throughout the year')

    insights.append(f"Next predicted peak: {metrics.predicted_next_peak}")

    strong, weak = _strong_and_weak(trends)
    if strong:
        insights.append(f"Strong months: {join_names(t.month_name for t in strong)}")
    if weak:
        insights.append(f"Weak months: {join_names(t.month_name for t in weak)}")

    quarter_revenue = [
        (name, sum(t.average_revenue for t in trends if t.month in months))
        for name, months in QUARTERS
    ]
    best_name, best_revenue = max(quarter_revenue, key=lambda q: q[1])
    insights.append(f"Strongest quarter: {best_name} ({format_currency(best_revenue)} avg)")

    return insights


def _build_recommendations(
        trends: Sequence[MonthlyTrend],
        metrics: SeasonalMetrics,
        now: datetime
) -> List[Recommendation]:
    recommendations = []
    strong, weak = _strong_and_weak(trends)

    if strong:
        names = join_names(t.month_name for t in strong)
        recommendations.append(recommendation(
            f"Prepare for Peak Season: {names}",
            'Peak months identified. Increase inventory, staff, and marketing budget 2 months in advance.',
            'high',
            sum(t.average_revenue for t in strong) * 0.15,
            [
                role_contact('Operations Manager', f"Prepare operations for peak months: {names}"),
                role_contact('Inventory Manager', 'Increase inventory levels before peak season'),
                role_contact('Marketing Manager', 'Plan peak season marketing campaigns'),
            ]
        ))

    if weak:
        names = join_names(t.month_name for t in weak)
        recommendations.append(recommendation(
            f"Boost Low Season Performance: {names}",
            'Low-performing months identified. Implement promotions, new product launches, '
            'or cost reduction strategies.',
            'medium',
            sum(t.average_revenue for t in weak) * 0.25,
            [
                role_contact('Sales Manager', f"Plan special promotions for low months: {names}"),
                role_contact('Product Manager', 'Consider new product launches during slow periods'),
            ]
        ))

    if metrics.seasonality_index > HIGH_SEASONALITY:
        recommendations.append(recommendation(
            'Implement Seasonal Cash Flow Management',
            f"High seasonality ({metrics.seasonality_index}%) requires careful cash flow planning. "
            f"Build reserves during peak months.",
            'medium',
            sum(t.average_revenue for t in trends) * 0.05,
            [
                role_contact('CFO/Finance Manager', 'Develop seasonal cash flow management strategy'),
                role_contact('Business Development Manager', 'Explore counter-seasonal revenue opportunities'),
            ]
        ))

    peak = next(t for t in trends if t.month_name == metrics.peak_month)
    until_peak = months_until(peak.month, now)
    if until_peak <= IMMINENT_PEAK_MONTHS:
        recommendations.append(recommendation(
            f"Immediate: Next Peak Season in {until_peak} Month(s)",
            f"{metrics.peak_month} is approaching. Finalize inventory, staffing, and marketing preparations now.",
            'high',
            peak.average_revenue * 0.2,
            [role_contact(
                'Operations Director', f"Urgent: Peak season {metrics.predicted_next_peak} preparation needed"
            )]
        ))

    return recommendations
