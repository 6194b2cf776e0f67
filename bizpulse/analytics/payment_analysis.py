"""发票付款分析：逾期识别、付款指标与催收建议"""
from datetime import datetime
from typing import List, Optional, Sequence

import pandas as pd

from bizpulse.analytics.formatting import format_currency, mean_of, not_enough, recommendation, resolve_now, role_contact
from bizpulse.analytics.results import OverduePayment, PaymentAnalysisResult, PaymentMetrics
from bizpulse.data.models import ContactInfo, Invoice, Recommendation, days_between, to_naive

CRITICAL_DAYS = 60
HIGH_DAYS = 30
RECENT_MONTHS = 3
SLOW_PAYMENT_DAYS = 45
TARGET_PAYMENT_RATE = 85
CONTACT_LIMIT = 5


def overdue_urgency(days_past_due: int) -> str:
    if days_past_due > CRITICAL_DAYS:
        return 'critical'
    if days_past_due > HIGH_DAYS:
        return 'high'
    return 'medium'


def identify_overdue_payments(invoices: Sequence[Invoice], now: datetime) -> List[OverduePayment]:
    """逾期发票，按逾期天数从多到少排序"""
    overdue = []
    for invoice in invoices:
        if not invoice.is_overdue(now):
            continue
        days = invoice.days_past_due(now)
        overdue.append(OverduePayment(
            invoice_id=invoice.id,
            customer_id=invoice.customer_id,
            amount=invoice.amount,
            days_past_due=days,
            urgency=overdue_urgency(days)
        ))

    return sorted(overdue, key=lambda p: -p.days_past_due)


def calculate_payment_metrics(invoices: Sequence[Invoice], now: datetime) -> PaymentMetrics:
    paid = [inv for inv in invoices if inv.status == 'paid' and inv.paid_date is not None]
    overdue = [inv for inv in invoices if inv.is_overdue(now)]

    return PaymentMetrics(
        average_payment_time=mean_of([days_between(inv.issue_date, inv.paid_date) for inv in paid]),
        payment_rate=len(paid) / len(invoices) * 100 if invoices else 0.0,
        total_overdue=sum(inv.amount for inv in overdue),
        overdue_count=len(overdue)
    )


def recent_overdue_rate(invoices: Sequence[Invoice], now: datetime, months: int = RECENT_MONTHS) -> Optional[float]:
    """最近几个自然月内开具的发票中逾期的比例，没有近期发票时返回 None"""
    cutoff = (pd.Timestamp(to_naive(now)) - pd.DateOffset(months=months)).to_pydatetime()
    recent = [inv for inv in invoices if to_naive(inv.issue_date) >= cutoff]
    if not recent:
        return None
    return sum(1 for inv in recent if inv.is_overdue(now)) / len(recent) * 100


def run_payment_analysis(
        invoices: Sequence[Invoice],
        now: Optional[datetime] = None
) -> PaymentAnalysisResult:
    """运行付款分析"""
    now = resolve_now(now)
    overdue_payments = identify_overdue_payments(invoices, now)
    metrics = calculate_payment_metrics(invoices, now)

    if not invoices:
        return PaymentAnalysisResult(
            overdue_payments=overdue_payments,
            payment_metrics=metrics,
            insights=[not_enough('invoice data to analyze payments', '(no invoices provided)')],
            recommendations=[]
        )

    return PaymentAnalysisResult(
        overdue_payments=overdue_payments,
        payment_metrics=metrics,
        insights=_build_insights(overdue_payments, metrics, recent_overdue_rate(invoices, now)),
        recommendations=_build_recommendations(overdue_payments, metrics)
    )


def _build_insights(
        overdue_payments: Sequence[OverduePayment],
        metrics: PaymentMetrics,
        recent_rate: Optional[float]
) -> List[str]:
    insights = [
        f"{metrics.overdue_count} overdue invoices totaling {format_currency(metrics.total_overdue)}",
        f"Average payment time: {round(metrics.average_payment_time)} days",
        f"Payment success rate: {metrics.payment_rate:.1f}%",
    ]

    critical_count = sum(1 for p in overdue_payments if p.urgency == 'critical')
    high_count = sum(1 for p in overdue_payments if p.urgency == 'high')
    if critical_count:
        insights.append(f"{critical_count} critical overdue payments (60+ days)")
    if high_count:
        insights.append(f"{high_count} high priority overdue payments (30+ days)")

    if recent_rate is not None:
        if recent_rate > 20:
            insights.append(f"Warning: Recent overdue rate is {recent_rate:.1f}% - above healthy threshold")
        elif recent_rate < 10:
            insights.append(f"Good: Recent overdue rate is {recent_rate:.1f}% - within healthy range")

    return insights


def _payment_contact(payment: OverduePayment, label: str) -> ContactInfo:
    # 发票只有客户ID，没有联系方式
    return ContactInfo(
        name=f"Customer {payment.customer_id}",
        context=f"{label}: {format_currency(payment.amount)} overdue {payment.days_past_due} days",
        revenue_value=payment.amount
    )


def _build_recommendations(
        overdue_payments: Sequence[OverduePayment],
        metrics: PaymentMetrics
) -> List[Recommendation]:
    recommendations = []

    critical = [p for p in overdue_payments if p.urgency == 'critical']
    if critical:
        recommendations.append(recommendation(
            'URGENT: Critical Overdue Payments',
            f"{len(critical)} invoices are 60+ days overdue. Immediate collection action required.",
            'high',
            sum(p.amount for p in critical),
            [_payment_contact(p, 'Critical') for p in critical[:CONTACT_LIMIT]]
        ))

    high = [p for p in overdue_payments if p.urgency == 'high']
    if high:
        recommendations.append(recommendation(
            'High Priority Payment Collection',
            f"{len(high)} invoices are 30+ days overdue. Escalate collection efforts.",
            'high',
            sum(p.amount for p in high),
            [_payment_contact(p, 'High priority') for p in high[:CONTACT_LIMIT]]
        ))

    if metrics.average_payment_time > SLOW_PAYMENT_DAYS:
        recommendations.append(recommendation(
            'Improve Payment Terms & Processes',
            f"Average payment time is {round(metrics.average_payment_time)} days. "
            f"Consider shorter terms and automated reminders.",
            'medium',
            metrics.total_overdue * 0.1,
            [
                role_contact('Accounts Receivable Manager', 'Implement automated payment reminders and shorter terms'),
                role_contact('Customer Success Manager', 'Work with customers on payment process improvements'),
            ]
        ))

    if metrics.payment_rate < TARGET_PAYMENT_RATE:
        recommendations.append(recommendation(
            'Implement Early Payment Incentives',
            f"Payment rate is {metrics.payment_rate:.1f}%. Consider early payment discounts to improve cash flow.",
            'medium',
            metrics.total_overdue * 0.05,
            [role_contact('Finance Director', 'Design early payment discount program')]
        ))

    return recommendations
