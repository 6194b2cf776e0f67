"""各分析类型的结果模型

每种分析一个变体，通过 analysis_type 标签区分，方便调用方按类型分支处理。
"""
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from bizpulse.analytics.aggregation import MonthlyTotal
from bizpulse.data.models import Customer, Recommendation


@dataclass(frozen=True)
class ForecastPoint:
    """单月预测"""
    period: str  # YYYY-MM
    label: str  # 例如 "May 2024"
    predicted: float
    confidence: float


@dataclass(frozen=True)
class SalesForecastResult:
    forecast: List[ForecastPoint]
    monthly_totals: List[MonthlyTotal]
    trend: str
    growth_rate: float
    insights: List[str]
    recommendations: List[Recommendation]
    analysis_type: str = field(default='sales_forecasting', init=False)


@dataclass(frozen=True)
class CashFlowResult:
    predictions: List[ForecastPoint]
    trend: str
    average_monthly_flow: float
    insights: List[str]
    recommendations: List[Recommendation]
    analysis_type: str = field(default='cash_flow_prediction', init=False)


@dataclass(frozen=True)
class CustomerSegment:
    name: str
    customers: List[Customer]
    characteristics: List[str]
    average_value: float
    count: int


@dataclass(frozen=True)
class CustomerAnalysisResult:
    segments: List[CustomerSegment]
    top_customers: List[Customer]
    at_risk_customers: List[Customer]
    insights: List[str]
    recommendations: List[Recommendation]
    analysis_type: str = field(default='customer_analysis', init=False)


@dataclass(frozen=True)
class RetentionMetrics:
    overall_retention_rate: float
    average_days_since_last_purchase: float
    at_risk_customers: int
    churned_customers: int
    loyal_customers: int
    new_customers: int
    lapsed_customers: int


@dataclass(frozen=True)
class RetentionSegments:
    new: List[Customer]
    loyal: List[Customer]
    at_risk: List[Customer]
    churned: List[Customer]


@dataclass(frozen=True)
class CustomerRetentionResult:
    retention_metrics: RetentionMetrics
    customer_segments: RetentionSegments
    insights: List[str]
    recommendations: List[Recommendation]
    analysis_type: str = field(default='customer_retention', init=False)


@dataclass(frozen=True)
class OverduePayment:
    invoice_id: str
    customer_id: str
    amount: float
    days_past_due: int
    urgency: str  # critical / high / medium


@dataclass(frozen=True)
class PaymentMetrics:
    average_payment_time: float
    payment_rate: float
    total_overdue: float
    overdue_count: int


@dataclass(frozen=True)
class PaymentAnalysisResult:
    overdue_payments: List[OverduePayment]
    payment_metrics: PaymentMetrics
    insights: List[str]
    recommendations: List[Recommendation]
    analysis_type: str = field(default='payment_analysis', init=False)


@dataclass(frozen=True)
class ProductRanking:
    product: str
    total_revenue: float
    total_sales: int
    average_order_value: float
    rank: int


@dataclass(frozen=True)
class PerformanceMetrics:
    total_products: int
    top_performer_revenue: float
    bottom_performer_revenue: float
    revenue_concentration: float  # 前20%产品的营收占比


@dataclass(frozen=True)
class ProductPerformanceResult:
    top_products: List[ProductRanking]
    performance_metrics: PerformanceMetrics
    insights: List[str]
    recommendations: List[Recommendation]
    analysis_type: str = field(default='product_performance', init=False)


@dataclass(frozen=True)
class MonthlyTrend:
    month: int
    month_name: str
    average_revenue: float
    sales_count: int
    growth_rate: float
    seasonality: str  # peak / high / normal / low


@dataclass(frozen=True)
class SeasonalMetrics:
    peak_month: str
    low_month: str
    seasonality_index: float
    predicted_next_peak: str


@dataclass(frozen=True)
class SeasonalTrendsResult:
    monthly_trends: List[MonthlyTrend]
    seasonal_metrics: Optional[SeasonalMetrics]
    insights: List[str]
    recommendations: List[Recommendation]
    analysis_type: str = field(default='seasonal_trends', init=False)


@dataclass(frozen=True)
class ProfitabilityMetrics:
    total_revenue: float
    estimated_costs: float
    gross_profit: float
    profit_margin: float
    average_order_profit: float


@dataclass(frozen=True)
class ProfitabilityLine:
    name: str
    revenue: float
    estimated_cost: float
    profit: float
    margin: float
    profitability: str  # high / medium / low / negative
    cost_ratio: float


@dataclass(frozen=True)
class ProfitabilityResult:
    profitability_metrics: ProfitabilityMetrics
    product_profitability: List[ProfitabilityLine]
    customer_profitability: List[ProfitabilityLine]
    insights: List[str]
    recommendations: List[Recommendation]
    analysis_type: str = field(default='profitability_analysis', init=False)


AnalysisResult = Union[
    SalesForecastResult,
    CashFlowResult,
    CustomerAnalysisResult,
    CustomerRetentionResult,
    PaymentAnalysisResult,
    ProductPerformanceResult,
    SeasonalTrendsResult,
    ProfitabilityResult,
]

RESULT_TYPES: Dict[str, type] = {
    'sales_forecasting': SalesForecastResult,
    'cash_flow_prediction': CashFlowResult,
    'customer_analysis': CustomerAnalysisResult,
    'customer_retention': CustomerRetentionResult,
    'payment_analysis': PaymentAnalysisResult,
    'product_performance': ProductPerformanceResult,
    'seasonal_trends': SeasonalTrendsResult,
    'profitability_analysis': ProfitabilityResult,
}
