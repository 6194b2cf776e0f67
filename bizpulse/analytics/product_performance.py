"""产品表现：按营收排名、集中度与组合建议"""
import math
from typing import List, Sequence

from bizpulse.analytics.aggregation import aggregate_by_dimension, product_key
from bizpulse.analytics.formatting import format_currency, join_names, not_enough, recommendation, role_contact
from bizpulse.analytics.results import PerformanceMetrics, ProductPerformanceResult, ProductRanking
from bizpulse.data.models import Recommendation, SalesRecord

TOP_SHARE = 0.2
CONCENTRATION_LIMIT = 80


def rank_products(records: Sequence[SalesRecord]) -> List[ProductRanking]:
    """按营收降序排名，营收相同时保持首次出现的顺序"""
    totals = aggregate_by_dimension(records, product_key)
    ordered = sorted(totals.values(), key=lambda t: -t.total)

    return [
        ProductRanking(
            product=item.label,
            total_revenue=item.total,
            total_sales=item.count,
            average_order_value=item.total / item.count,
            rank=rank
        )
        for rank, item in enumerate(ordered, start=1)
    ]


def calculate_performance_metrics(ranked: Sequence[ProductRanking]) -> PerformanceMetrics:
    total_revenue = sum(p.total_revenue for p in ranked)
    top_count = max(1, math.ceil(len(ranked) * TOP_SHARE))
    top_revenue = sum(p.total_revenue for p in ranked[:top_count])

    return PerformanceMetrics(
        total_products=len(ranked),
        top_performer_revenue=ranked[0].total_revenue if ranked else 0.0,
        bottom_performer_revenue=ranked[-1].total_revenue if ranked else 0.0,
        revenue_concentration=top_revenue / total_revenue * 100 if total_revenue > 0 else 0.0
    )


def run_product_performance(records: Sequence[SalesRecord]) -> ProductPerformanceResult:
    """运行产品表现分析"""
    ranked = rank_products(records)
    metrics = calculate_performance_metrics(ranked)

    if not ranked:
        return ProductPerformanceResult(
            top_products=ranked,
            performance_metrics=metrics,
            insights=[not_enough('product data to rank', '(no sales records provided)')],
            recommendations=[]
        )

    return ProductPerformanceResult(
        top_products=ranked,
        performance_metrics=metrics,
        insights=_build_insights(ranked, metrics),
        recommendations=_build_recommendations(ranked, metrics)
    )


def _build_insights(ranked: Sequence[ProductRanking], metrics: PerformanceMetrics) -> List[str]:
    total_revenue = sum(p.total_revenue for p in ranked)
    average_revenue = total_revenue / len(ranked)
    top = ranked[0]

    insights = [
        f"{metrics.total_products} products analyzed",
        f"Top performer: {top.product} ({format_currency(top.total_revenue)} revenue)",
    ]
    if total_revenue > 0:
        insights.append(f"Top product generates {top.total_revenue / total_revenue * 100:.1f}% of total revenue")
    insights.append(f"Top 20% of products generate {metrics.revenue_concentration:.1f}% of revenue")

    underperformers = [p for p in ranked if p.total_revenue < average_revenue * 0.5]
    if underperformers:
        insights.append(
            f"{len(underperformers)} products are significantly underperforming (below 50% of average)"
        )

    high_aov = [p for p in ranked if p.average_order_value > average_revenue / len(ranked) * 2]
    if high_aov:
        insights.append(f"{len(high_aov)} products have high average order values - focus on promotion")

    return insights


def _build_recommendations(ranked: Sequence[ProductRanking], metrics: PerformanceMetrics) -> List[Recommendation]:
    recommendations = []
    total_revenue = sum(p.total_revenue for p in ranked)
    average_revenue = total_revenue / len(ranked)

    top_performers = ranked[:3]
    recommendations.append(recommendation(
        'Double Down on Top Performers',
        f"Your top {len(top_performers)} products generate significant revenue. "
        f"Increase marketing and inventory focus.",
        'high',
        sum(p.total_revenue for p in top_performers) * 0.2,
        [
            role_contact('Product Manager', f"Focus on top products: {join_names(p.product for p in top_performers)}"),
            role_contact('Marketing Manager', 'Increase marketing spend on top-performing products'),
        ]
    ))

    underperformers = [p for p in ranked if p.total_revenue < average_revenue * 0.3]
    if underperformers:
        recommendations.append(recommendation(
            'Review Underperforming Products',
            f"{len(underperformers)} products are significantly underperforming. "
            f"Consider discontinuation or repositioning.",
            'medium',
            sum(p.total_revenue for p in underperformers) * 0.5,
            [
                role_contact(
                    'Product Manager',
                    f"Review underperformers: {join_names(p.product for p in underperformers[:3])}"
                ),
                role_contact('Operations Manager', 'Analyze inventory and operational costs for underperforming products'),
            ]
        ))

    by_aov = sorted(ranked, key=lambda p: -p.average_order_value)[:3]
    if by_aov[0].average_order_value > average_revenue:
        products = join_names(f"{p.product} ({format_currency(p.average_order_value)} AOV)" for p in by_aov)
        recommendations.append(recommendation(
            'Promote High-Value Products',
            'Products with high average order values identified. Focus sales efforts on these premium offerings.',
            'medium',
            sum(p.total_revenue for p in by_aov) * 0.15,
            [role_contact('Sales Manager', f"Promote high-AOV products: {products}")]
        ))

    if metrics.revenue_concentration > CONCENTRATION_LIMIT:
        recommendations.append(recommendation(
            'Diversify Product Portfolio',
            f"{metrics.revenue_concentration:.1f}% of revenue comes from top products. "
            f"Consider diversification to reduce risk.",
            'low',
            total_revenue * 0.1,
            [role_contact(
                'Product Strategy Manager',
                'Develop strategy to diversify product portfolio and reduce concentration risk'
            )]
        ))

    return recommendations
