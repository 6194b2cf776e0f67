"""盈利能力分析

没有真实成本数据，成本按营收分档的成本率估算，结果只是启发式近似。
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from bizpulse.analytics.aggregation import aggregate_by_dimension, build_customers, product_key
from bizpulse.analytics.formatting import (
    customer_contact, format_currency, join_names, not_enough, recommendation, role_contact
)
from bizpulse.analytics.results import ProfitabilityLine, ProfitabilityMetrics, ProfitabilityResult
from bizpulse.data.models import Customer, Recommendation, SalesRecord

DEFAULT_COST_RATIO = 0.65
MARGIN_TARGET = 30


@dataclass(frozen=True)
class CostRatioTier:
    """营收落在 (min_revenue, max_revenue) 开区间内时使用 ratio，边界为 None 表示不限"""
    ratio: float
    min_revenue: Optional[float] = None
    max_revenue: Optional[float] = None

    def matches(self, revenue: float) -> bool:
        if self.min_revenue is not None and not revenue > self.min_revenue:
            return False
        if self.max_revenue is not None and not revenue < self.max_revenue:
            return False
        return True


DEFAULT_TIERS = [
    CostRatioTier(ratio=0.55, min_revenue=50000),
    CostRatioTier(ratio=0.60, min_revenue=20000),
    CostRatioTier(ratio=0.75, max_revenue=5000),
]


@dataclass(frozen=True)
class CostRatioPolicy:
    """成本率策略：按顺序取第一个匹配的分档，都不匹配时用默认成本率"""
    default_ratio: float = DEFAULT_COST_RATIO
    tiers: List[CostRatioTier] = field(default_factory=lambda: list(DEFAULT_TIERS))

    def ratio_for(self, revenue: float) -> float:
        for tier in self.tiers:
            if tier.matches(revenue):
                return tier.ratio
        return self.default_ratio


def classify_margin(margin: float) -> str:
    if margin > 40:
        return 'high'
    if margin > 20:
        return 'medium'
    if margin > 0:
        return 'low'
    return 'negative'


def profitability_line(name: str, revenue: float, policy: CostRatioPolicy) -> ProfitabilityLine:
    cost_ratio = policy.ratio_for(revenue)
    estimated_cost = revenue * cost_ratio
    profit = revenue - estimated_cost
    margin = profit / revenue * 100 if revenue > 0 else 0.0

    return ProfitabilityLine(
        name=name,
        revenue=revenue,
        estimated_cost=estimated_cost,
        profit=profit,
        margin=margin,
        profitability=classify_margin(margin),
        cost_ratio=cost_ratio
    )


def calculate_overall_profitability(
        records: Sequence[SalesRecord],
        policy: CostRatioPolicy
) -> ProfitabilityMetrics:
    total_revenue = sum(record.amount for record in records)
    estimated_costs = total_revenue * policy.default_ratio
    gross_profit = total_revenue - estimated_costs

    return ProfitabilityMetrics(
        total_revenue=total_revenue,
        estimated_costs=estimated_costs,
        gross_profit=gross_profit,
        profit_margin=gross_profit / total_revenue * 100 if total_revenue > 0 else 0.0,
        average_order_profit=gross_profit / len(records) if records else 0.0
    )


def run_profitability_analysis(
        records: Sequence[SalesRecord],
        cost_policy: Optional[CostRatioPolicy] = None
) -> ProfitabilityResult:
    """运行盈利能力分析"""
    policy = cost_policy or CostRatioPolicy()
    metrics = calculate_overall_profitability(records, policy)

    products = [
        profitability_line(item.label, item.total, policy)
        for item in aggregate_by_dimension(records, product_key).values()
    ]
    customers = build_customers(records)
    customer_lines = [profitability_line(c.name, c.total_spent, policy) for c in customers]

    products.sort(key=lambda line: -line.profit)
    customer_lines.sort(key=lambda line: -line.profit)

    if not records:
        return ProfitabilityResult(
            profitability_metrics=metrics,
            product_profitability=products,
            customer_profitability=customer_lines,
            insights=[not_enough('sales data to estimate profitability', '(no sales records provided)')],
            recommendations=[]
        )

    customers_by_name = {c.name: c for c in customers}
    return ProfitabilityResult(
        profitability_metrics=metrics,
        product_profitability=products,
        customer_profitability=customer_lines,
        insights=_build_insights(metrics, products, customer_lines),
        recommendations=_build_recommendations(metrics, products, customer_lines, customers_by_name)
    )


def _low_lines(lines: Sequence[ProfitabilityLine]) -> List[ProfitabilityLine]:
    return [line for line in lines if line.profitability in ('low', 'negative')]


def _build_insights(
        metrics: ProfitabilityMetrics,
        products: Sequence[ProfitabilityLine],
        customers: Sequence[ProfitabilityLine]
) -> List[str]:
    insights = [
        f"Total revenue: {format_currency(metrics.total_revenue)}",
        f"Estimated gross profit: {format_currency(metrics.gross_profit)}",
        f"Overall profit margin: {metrics.profit_margin:.1f}%",
    ]

    if metrics.profit_margin > 40:
        insights.append('Excellent: High profit margins - strong business model')
    elif metrics.profit_margin > 25:
        insights.append('Good: Healthy profit margins - room for optimization')
    elif metrics.profit_margin > 10:
        insights.append('Moderate: Profit margins need improvement')
    else:
        insights.append('Warning: Low profit margins - immediate action needed')

    high_products = [p for p in products if p.profitability == 'high']
    if high_products:
        insights.append(f"{len(high_products)} high-profit products identified")
        insights.append(f"Top profit product: {high_products[0].name} ({high_products[0].margin:.1f}% margin)")

    low_products = _low_lines(products)
    if low_products:
        insights.append(f"{len(low_products)} low-profit products need attention")

    high_customers = [c for c in customers if c.profitability == 'high']
    if high_customers:
        insights.append(f"{len(high_customers)} high-profit customers identified")
        insights.append(
            f"Most profitable customer: {customers[0].name} ({format_currency(customers[0].profit)} profit)"
        )

    low_customers = _low_lines(customers)
    if low_customers:
        insights.append(f"{len(low_customers)} low-profit customers may need service optimization")

    insights.append('Costs are estimated from revenue-tiered cost ratios, not actual cost data')

    return insights


def _build_recommendations(
        metrics: ProfitabilityMetrics,
        products: Sequence[ProfitabilityLine],
        customers: Sequence[ProfitabilityLine],
        customers_by_name: Dict[str, Customer]
) -> List[Recommendation]:
    recommendations = []

    high_products = [p for p in products if p.profitability == 'high']
    if high_products:
        focus = join_names(f"{p.name} ({p.margin:.1f}%)" for p in high_products[:3])
        recommendations.append(recommendation(
            'Scale High-Profit Products',
            f"{len(high_products)} products show excellent margins. "
            f"Increase marketing and sales focus on these profitable offerings.",
            'high',
            sum(p.profit for p in high_products) * 0.3,
            [
                role_contact('Product Manager', f"Focus on high-margin products: {focus}"),
                role_contact('Sales Manager', 'Prioritize selling high-profit products'),
            ]
        ))

    low_products = _low_lines(products)
    if low_products:
        review = join_names(f"{p.name} ({p.margin:.1f}%)" for p in low_products[:3])
        recommendations.append(recommendation(
            'Optimize or Discontinue Low-Profit Products',
            f"{len(low_products)} products have poor margins. Review pricing, costs, or consider discontinuation.",
            'high',
            sum(abs(p.profit) for p in low_products) * 0.5,
            [
                role_contact('Product Manager', f"Review low-margin products: {review}"),
                role_contact('Operations Manager', 'Analyze cost reduction opportunities for underperforming products'),
            ]
        ))

    high_customers = [c for c in customers if c.profitability == 'high']
    if high_customers:
        recommendations.append(recommendation(
            'Nurture High-Profit Customers',
            f"{len(high_customers)} customers generate excellent margins. "
            f"Implement VIP program and increase engagement.",
            'high',
            sum(c.profit for c in high_customers) * 0.2,
            [
                customer_contact(
                    customers_by_name[line.name],
                    f"High-profit customer: {format_currency(line.profit)} profit ({line.margin:.1f}% margin)"
                )
                for line in high_customers[:5]
            ]
        ))

    if metrics.profit_margin < MARGIN_TARGET:
        recommendations.append(recommendation(
            'Implement Margin Improvement Strategy',
            f"Current margin is {metrics.profit_margin:.1f}%. Focus on cost reduction, pricing optimization, "
            f"and operational efficiency.",
            'high',
            metrics.total_revenue * 0.05,
            [
                role_contact('CFO/Finance Manager', 'Develop comprehensive margin improvement strategy'),
                role_contact('Operations Director', 'Identify cost reduction opportunities across operations'),
                role_contact('Pricing Manager', 'Review and optimize pricing strategy for better margins'),
            ]
        ))

    recommendations.append(recommendation(
        'Optimize Operational Costs',
        f"Estimated costs are {format_currency(metrics.estimated_costs)}. "
        f"Identify cost reduction opportunities to improve profitability.",
        'medium',
        metrics.estimated_costs * 0.1,
        [
            role_contact('Operations Manager', 'Conduct comprehensive cost analysis and optimization'),
            role_contact('Procurement Manager', 'Negotiate better supplier terms and reduce material costs'),
        ]
    ))

    return recommendations
