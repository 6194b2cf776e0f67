"""客户留存分析

与客户分析的分群相互独立，按 30/90/180/365 天阈值判断客户状态。
"""
from datetime import datetime
from typing import List, Optional, Sequence

from bizpulse.analytics.aggregation import build_customers
from bizpulse.analytics.formatting import (
    customer_contact, format_currency, format_days, mean_of, not_enough, recommendation, resolve_now, role_contact,
    total_of
)
from bizpulse.analytics.results import CustomerRetentionResult, RetentionMetrics, RetentionSegments
from bizpulse.data.models import Customer, Recommendation, SalesRecord

NEW_DAYS = 30
LOYAL_DAYS = 90
CHURN_DAYS = 180
LAPSED_DAYS = 365
AT_RISK_MIN_VALUE = 500
WIN_BACK_MIN_VALUE = 1000
LOW_RETENTION_RATE = 70
HIGH_RETENTION_RATE = 85
STRATEGY_RETENTION_RATE = 75


def classify_retention(customer: Customer, now: datetime) -> str:
    """按顺序判定：new, loyal, at_risk, churned，其余归入 at_risk"""
    days = customer.days_since_last_purchase(now)
    if days < NEW_DAYS and customer.purchase_count <= 2:
        return 'new'
    if customer.purchase_count >= 3 and days < LOYAL_DAYS:
        return 'loyal'
    if LOYAL_DAYS < days < CHURN_DAYS and customer.total_spent > AT_RISK_MIN_VALUE:
        return 'at_risk'
    if days > CHURN_DAYS:
        return 'churned'
    return 'at_risk'


def segment_by_retention(customers: Sequence[Customer], now: datetime) -> RetentionSegments:
    groups = {'new': [], 'loyal': [], 'at_risk': [], 'churned': []}
    for customer in customers:
        groups[classify_retention(customer, now)].append(customer)
    return RetentionSegments(**groups)


def calculate_retention_metrics(
        customers: Sequence[Customer],
        segments: RetentionSegments,
        now: datetime
) -> RetentionMetrics:
    total = len(customers)
    active = len(segments.loyal) + len(segments.new)

    return RetentionMetrics(
        overall_retention_rate=active / total * 100 if total else 0.0,
        average_days_since_last_purchase=mean_of([c.days_since_last_purchase(now) for c in customers]),
        at_risk_customers=len(segments.at_risk),
        churned_customers=len(segments.churned),
        loyal_customers=len(segments.loyal),
        new_customers=len(segments.new),
        lapsed_customers=sum(1 for c in segments.churned if c.days_since_last_purchase(now) > LAPSED_DAYS)
    )


def run_customer_retention(
        records: Sequence[SalesRecord],
        now: Optional[datetime] = None
) -> CustomerRetentionResult:
    """运行客户留存分析"""
    now = resolve_now(now)
    customers = build_customers(records)
    segments = segment_by_retention(customers, now)
    metrics = calculate_retention_metrics(customers, segments, now)

    if not customers:
        return CustomerRetentionResult(
            retention_metrics=metrics,
            customer_segments=segments,
            insights=[not_enough('customer data to measure retention', '(no sales records provided)')],
            recommendations=[]
        )

    return CustomerRetentionResult(
        retention_metrics=metrics,
        customer_segments=segments,
        insights=_build_insights(metrics, segments),
        recommendations=_build_recommendations(metrics, segments, now)
    )


def _by_value(customers: Sequence[Customer]) -> List[Customer]:
    return sorted(customers, key=lambda c: -c.total_spent)


def _build_insights(metrics: RetentionMetrics, segments: RetentionSegments) -> List[str]:
    rate = metrics.overall_retention_rate
    insights = [
        f"Overall customer retention rate: {rate:.1f}%",
        f"{metrics.loyal_customers} loyal customers identified",
        f"{metrics.at_risk_customers} customers at risk of churning",
        f"{metrics.churned_customers} customers have churned (6+ months inactive)",
    ]

    if rate < LOW_RETENTION_RATE:
        insights.append('Warning: Low retention rate - immediate action needed')
    elif rate > HIGH_RETENTION_RATE:
        insights.append('Excellent: High retention rate - maintain current strategies')

    insights.append(f"Average days since last purchase: {round(metrics.average_days_since_last_purchase)} days")

    if metrics.lapsed_customers:
        insights.append(f"{metrics.lapsed_customers} churned customers have been inactive for over a year")

    if segments.at_risk:
        at_risk_value = total_of(c.total_spent for c in segments.at_risk)
        insights.append(f"At-risk customers represent {format_currency(at_risk_value)} in lifetime value")

    if segments.loyal:
        average_loyal = mean_of([c.total_spent for c in segments.loyal])
        insights.append(f"Loyal customers average {format_currency(average_loyal)} lifetime value")

    return insights


def _build_recommendations(
        metrics: RetentionMetrics,
        segments: RetentionSegments,
        now: datetime
) -> List[Recommendation]:
    recommendations = []

    if segments.at_risk:
        at_risk_value = total_of(c.total_spent for c in segments.at_risk)
        recommendations.append(recommendation(
            'URGENT: Re-engage At-Risk Customers',
            f"{len(segments.at_risk)} high-value customers are at risk of churning. "
            f"Launch immediate win-back campaign.",
            'high',
            at_risk_value * 0.3,
            [
                customer_contact(
                    c,
                    f"At-risk: {format_currency(c.total_spent)} LTV, "
                    f"last purchase {format_days(c.days_since_last_purchase(now))} days ago"
                )
                for c in _by_value(segments.at_risk)[:10]
            ]
        ))

    if segments.loyal:
        loyal_value = total_of(c.total_spent for c in segments.loyal)
        recommendations.append(recommendation(
            'Nurture Loyal Customer Relationships',
            f"{len(segments.loyal)} loyal customers identified. "
            f"Implement VIP program and exclusive offers to maintain loyalty.",
            'high',
            loyal_value * 0.15,
            [
                customer_contact(
                    c, f"Loyal customer: {format_currency(c.total_spent)} LTV, {c.purchase_count} purchases"
                )
                for c in _by_value(segments.loyal)[:5]
            ]
        ))

    # 超过一年未购买的客户不再列入挽回名单
    win_back = [
        c for c in _by_value(segments.churned)
        if c.total_spent > WIN_BACK_MIN_VALUE and c.days_since_last_purchase(now) <= LAPSED_DAYS
    ][:10]
    if win_back:
        recommendations.append(recommendation(
            'Win-Back High-Value Churned Customers',
            f"{len(win_back)} high-value customers have churned. "
            f"Launch targeted win-back campaign with special offers.",
            'medium',
            total_of(c.average_order_value for c in win_back) * 0.2,
            [
                customer_contact(
                    c,
                    f"Churned: {format_currency(c.total_spent)} LTV, "
                    f"inactive for {format_days(c.days_since_last_purchase(now))} days"
                )
                for c in win_back
            ]
        ))

    if segments.new:
        new_value = total_of(c.total_spent for c in segments.new)
        recommendations.append(recommendation(
            'Optimize New Customer Onboarding',
            f"{len(segments.new)} new customers identified. "
            f"Implement onboarding sequence to increase retention and repeat purchases.",
            'medium',
            new_value * 2,
            [
                role_contact(
                    'Customer Success Manager',
                    f"Design onboarding program for {len(segments.new)} new customers"
                ),
                role_contact('Marketing Manager', 'Create new customer nurture email sequence'),
            ]
        ))

    if metrics.overall_retention_rate < STRATEGY_RETENTION_RATE:
        recommendations.append(recommendation(
            'Implement Comprehensive Retention Strategy',
            f"Retention rate is {metrics.overall_retention_rate:.1f}%. Develop loyalty program, "
            f"improve customer service, and create retention campaigns.",
            'high',
            (len(segments.loyal) + len(segments.at_risk)) * 500,
            [
                role_contact('Customer Experience Manager', 'Develop comprehensive customer retention strategy'),
                role_contact('Product Manager', 'Improve product experience to increase retention'),
            ]
        ))

    return recommendations
