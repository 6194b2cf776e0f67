"""客户分析：类 RFM 分群、头部客户与高价值流失风险客户"""
from datetime import datetime
from typing import List, Optional, Sequence

from bizpulse.analytics.aggregation import build_customers
from bizpulse.analytics.formatting import (
    customer_contact, format_currency, format_days, mean_of, not_enough, recommendation, resolve_now, total_of
)
from bizpulse.analytics.results import CustomerAnalysisResult, CustomerSegment
from bizpulse.data.models import Customer, Recommendation, SalesRecord

TOP_CUSTOMER_LIMIT = 10
AT_RISK_DAYS = 90
AT_RISK_MIN_VALUE = 1000

# (名称, 特征)，顺序即判定优先级
SEGMENT_DEFINITIONS = [
    ('VIP Customers', ['High value', 'Frequent purchases', 'Recent activity']),
    ('Loyal Customers', ['Regular purchases', 'Good value', 'Consistent']),
    ('Potential Customers', ['Recent purchases', 'Growing value', 'Opportunity']),
    ('At-Risk Customers', ['Declining activity', 'Long time since purchase', 'Needs attention']),
]


def run_customer_analysis(
        records: Sequence[SalesRecord],
        now: Optional[datetime] = None
) -> CustomerAnalysisResult:
    """运行客户分析"""
    now = resolve_now(now)
    customers = build_customers(records)

    segments = segment_customers(customers, now)
    top_customers = sorted(customers, key=lambda c: -c.total_spent)[:TOP_CUSTOMER_LIMIT]
    at_risk = sorted(
        [
            c for c in customers
            if c.days_since_last_purchase(now) > AT_RISK_DAYS and c.total_spent > AT_RISK_MIN_VALUE
        ],
        key=lambda c: -c.total_spent
    )

    return CustomerAnalysisResult(
        segments=segments,
        top_customers=top_customers,
        at_risk_customers=at_risk,
        insights=_build_insights(customers, segments, top_customers, at_risk),
        recommendations=_build_recommendations(segments, at_risk, now)
    )


def classify_customer(customer: Customer, now: datetime) -> int:
    """返回客户所属分群的下标

    VIP: 消费 > 10000、至少 5 次、60 天内有购买；
    Loyal: 至少 3 次且 90 天内有购买；
    Potential: 30 天内有购买；
    其余归入 At-Risk。
    """
    days = customer.days_since_last_purchase(now)
    if customer.total_spent > 10000 and customer.purchase_count >= 5 and days <= 60:
        return 0
    if customer.purchase_count >= 3 and days <= 90:
        return 1
    if days <= 30:
        return 2
    return 3


def segment_customers(customers: Sequence[Customer], now: datetime) -> List[CustomerSegment]:
    buckets: List[List[Customer]] = [[] for _ in SEGMENT_DEFINITIONS]
    for customer in customers:
        buckets[classify_customer(customer, now)].append(customer)

    return [
        CustomerSegment(
            name=name,
            customers=members,
            characteristics=list(characteristics),
            average_value=mean_of([c.total_spent for c in members]),
            count=len(members)
        )
        for (name, characteristics), members in zip(SEGMENT_DEFINITIONS, buckets)
    ]


def _build_insights(
        customers: Sequence[Customer],
        segments: Sequence[CustomerSegment],
        top_customers: Sequence[Customer],
        at_risk: Sequence[Customer]
) -> List[str]:
    if not customers:
        return [not_enough('customer data to analyze', '(no sales records provided)')]

    insights = [f"Total customers analyzed: {len(customers)}"]

    vip = segments[0]
    total_revenue = total_of(c.total_spent for c in customers)
    if vip.count > 0 and total_revenue > 0:
        vip_revenue = total_of(c.total_spent for c in vip.customers)
        insights.append(
            f"VIP customers ({vip.count}) generate {vip_revenue / total_revenue * 100:.1f}% of revenue"
        )

    top = top_customers[0]
    insights.append(f"Top customer: {top.name} ({format_currency(top.total_spent)})")

    if at_risk:
        at_risk_value = total_of(c.total_spent for c in at_risk)
        insights.append(
            f"{len(at_risk)} high-value customers at risk ({format_currency(at_risk_value)} total value)"
        )

    loyal = segments[1]
    if loyal.count > 0:
        insights.append(
            f"{loyal.count} loyal customers with average value of {format_currency(loyal.average_value)}"
        )

    return insights


def _build_recommendations(
        segments: Sequence[CustomerSegment],
        at_risk: Sequence[Customer],
        now: datetime
) -> List[Recommendation]:
    recommendations = []

    vip = segments[0]
    if vip.count > 0:
        recommendations.append(recommendation(
            'VIP Customer Retention Program',
            f"Launch exclusive program for {vip.count} VIP customers to maintain loyalty and increase spend.",
            'high',
            vip.average_value * vip.count * 0.2,
            [
                customer_contact(c, f"VIP customer - {format_currency(c.total_spent)} lifetime value")
                for c in vip.customers[:3]
            ]
        ))

    if at_risk:
        top_at_risk = at_risk[:5]
        recommendations.append(recommendation(
            'Urgent: At-Risk Customer Recovery',
            f"{len(at_risk)} high-value customers haven't purchased recently. Immediate outreach required.",
            'high',
            total_of(c.average_order_value for c in top_at_risk) * 0.3,
            [
                customer_contact(
                    c,
                    f"At-risk customer - last purchase {format_days(c.days_since_last_purchase(now))} days ago"
                )
                for c in top_at_risk
            ]
        ))

    loyal = segments[1]
    candidates = [c for c in loyal.customers if c.average_order_value < loyal.average_value * 1.5][:5]
    if candidates:
        recommendations.append(recommendation(
            'Loyal Customer Upsell Campaign',
            f"Target {len(candidates)} loyal customers with premium offerings to increase order value.",
            'medium',
            total_of(c.average_order_value for c in candidates) * 0.4,
            [
                customer_contact(c, f"Upsell opportunity - current AOV {format_currency(c.average_order_value)}")
                for c in candidates
            ]
        ))

    return recommendations
