# bizpulse/engine/core.py
import logging
from datetime import datetime
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence

from bizpulse.analytics.cash_flow import run_cash_flow_prediction
from bizpulse.analytics.customer_analysis import run_customer_analysis
from bizpulse.analytics.customer_retention import run_customer_retention
from bizpulse.analytics.payment_analysis import run_payment_analysis
from bizpulse.analytics.product_performance import run_product_performance
from bizpulse.analytics.profitability import CostRatioPolicy, run_profitability_analysis
from bizpulse.analytics.results import AnalysisResult
from bizpulse.analytics.sales_forecasting import FORECAST_MONTHS, run_sales_forecasting
from bizpulse.analytics.seasonal_trends import run_seasonal_trends
from bizpulse.data.models import Invoice, Lead, SalesRecord
from bizpulse.leads.generators import (
    generate_overdue_payment_leads,
    generate_prospect_leads,
    generate_reactivation_leads,
    generate_seasonal_leads,
    generate_upsell_leads,
)

logger = logging.getLogger(__name__)


class AnalysisType(str, Enum):
    SALES_FORECASTING = 'sales_forecasting'
    CUSTOMER_ANALYSIS = 'customer_analysis'
    CASH_FLOW_PREDICTION = 'cash_flow_prediction'
    PAYMENT_ANALYSIS = 'payment_analysis'
    PRODUCT_PERFORMANCE = 'product_performance'
    SEASONAL_TRENDS = 'seasonal_trends'
    CUSTOMER_RETENTION = 'customer_retention'
    PROFITABILITY_ANALYSIS = 'profitability_analysis'


class LeadType(str, Enum):
    OVERDUE_PAYMENT_RECOVERY = 'overdue_payment_recovery'
    REPEAT_CUSTOMER_REACTIVATION = 'repeat_customer_reactivation'
    TOP_CUSTOMER_UPSELL = 'top_customer_upsell'
    NEW_CUSTOMER_PROSPECTS = 'new_customer_prospects'
    SEASONAL_OPPORTUNITY = 'seasonal_opportunity'


# 以发票而不是销售记录作为输入的类型
INVOICE_ANALYSES = {AnalysisType.PAYMENT_ANALYSIS}
INVOICE_LEADS = {LeadType.OVERDUE_PAYMENT_RECOVERY}


class InvalidAnalysisType(ValueError):
    """未知的分析类型"""

    def __init__(self, analysis_type):
        self.analysis_type = analysis_type
        super().__init__(f"Unknown analysis type: {analysis_type}")


class InvalidLeadType(ValueError):
    """未知的线索类型"""

    def __init__(self, lead_type):
        self.lead_type = lead_type
        super().__init__(f"Unknown lead type: {lead_type}")


def parse_analysis_type(value) -> AnalysisType:
    try:
        return AnalysisType(value)
    except ValueError:
        raise InvalidAnalysisType(value) from None


def parse_lead_type(value) -> LeadType:
    try:
        return LeadType(value)
    except ValueError:
        raise InvalidLeadType(value) from None


class AnalyticsEngine:
    """分析引擎核心类

    只做分发：根据类型标签选择对应的估算器，不做聚合，不保存任何调用间状态。
    """

    def __init__(self,
                 cost_policy: Optional[CostRatioPolicy] = None,
                 forecast_months: int = FORECAST_MONTHS,
                 clock: Callable[[], datetime] = datetime.now):
        self.cost_policy = cost_policy or CostRatioPolicy()
        self.forecast_months = forecast_months
        self.clock = clock

        self._analyses: Dict[AnalysisType, Callable[[Sequence, datetime], AnalysisResult]] = {
            AnalysisType.SALES_FORECASTING: lambda records, now: run_sales_forecasting(
                records, months_ahead=self.forecast_months),
            AnalysisType.CUSTOMER_ANALYSIS: run_customer_analysis,
            AnalysisType.CASH_FLOW_PREDICTION: lambda records, now: run_cash_flow_prediction(
                records, months_ahead=self.forecast_months),
            AnalysisType.PAYMENT_ANALYSIS: run_payment_analysis,
            AnalysisType.PRODUCT_PERFORMANCE: lambda records, now: run_product_performance(records),
            AnalysisType.SEASONAL_TRENDS: run_seasonal_trends,
            AnalysisType.CUSTOMER_RETENTION: run_customer_retention,
            AnalysisType.PROFITABILITY_ANALYSIS: lambda records, now: run_profitability_analysis(
                records, cost_policy=self.cost_policy),
        }

        self._leads: Dict[LeadType, Callable[[Sequence, datetime], List[Lead]]] = {
            LeadType.OVERDUE_PAYMENT_RECOVERY: generate_overdue_payment_leads,
            LeadType.REPEAT_CUSTOMER_REACTIVATION: generate_reactivation_leads,
            LeadType.TOP_CUSTOMER_UPSELL: generate_upsell_leads,
            LeadType.NEW_CUSTOMER_PROSPECTS: generate_prospect_leads,
            LeadType.SEASONAL_OPPORTUNITY: generate_seasonal_leads,
        }

    def _resolve_now(self, now: Optional[datetime]) -> datetime:
        return now if now is not None else self.clock()

    def run_analysis(self,
                     analysis_type,
                     records: Sequence,
                     now: Optional[datetime] = None) -> AnalysisResult:
        """运行一种分析

        Args:
            analysis_type: AnalysisType 或其字符串值
            records: 销售记录；payment_analysis 传发票
            now: 参考时间，默认取引擎时钟

        Raises:
            InvalidAnalysisType: 类型未知
        """
        kind = parse_analysis_type(analysis_type)
        now = self._resolve_now(now)
        logger.debug(f"Running {kind.value} on {len(records)} records")

        result = self._analyses[kind](records, now)

        logger.debug(f"Finished {kind.value}: {len(result.recommendations)} recommendations")
        return result

    def run_lead_generation(self,
                            lead_type,
                            records: Sequence,
                            now: Optional[datetime] = None) -> List[Lead]:
        """生成一类线索；overdue_payment_recovery 传发票，其余传销售记录"""
        kind = parse_lead_type(lead_type)
        now = self._resolve_now(now)
        logger.debug(f"Generating {kind.value} leads from {len(records)} records")

        leads = self._leads[kind](records, now)

        logger.debug(f"Generated {len(leads)} {kind.value} leads")
        return leads

    def generate_all_leads(self,
                           sales_records: Sequence[SalesRecord],
                           invoices: Sequence[Invoice],
                           now: Optional[datetime] = None) -> Dict[str, List[Lead]]:
        """一次生成全部五类线索，所有类型共用同一个参考时间"""
        now = self._resolve_now(now)
        return {
            kind.value: self.run_lead_generation(
                kind, invoices if kind in INVOICE_LEADS else sales_records, now
            )
            for kind in LeadType
        }


_default_engine: Optional[AnalyticsEngine] = None


def get_default_engine() -> AnalyticsEngine:
    global _default_engine
    if _default_engine is None:
        _default_engine = AnalyticsEngine()
    return _default_engine


def run_analysis(analysis_type, records: Sequence, now: Optional[datetime] = None) -> AnalysisResult:
    return get_default_engine().run_analysis(analysis_type, records, now)


def run_lead_generation(lead_type, records: Sequence, now: Optional[datetime] = None) -> List[Lead]:
    return get_default_engine().run_lead_generation(lead_type, records, now)
