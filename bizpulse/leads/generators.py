"""销售线索生成

五类线索，每类一个规则集：逾期发票回收、老客户唤醒、头部客户追加销售、新客户培育、季节性复购。
所有分数和金额都由输入数据计算得出，输入里没有的联系方式保持为 None。
"""
from datetime import datetime
from typing import Dict, List, Optional, Sequence

import pandas as pd

from bizpulse.analytics.aggregation import build_customers, customer_key
from bizpulse.analytics.formatting import format_currency, format_days, resolve_now
from bizpulse.data.models import ContactInfo, Customer, Invoice, Lead, RevenueRange, SalesRecord

OVERDUE_MIN_AMOUNT = 1000
OVERDUE_LIMIT = 20
REACTIVATION_LIMIT = 15
UPSELL_LIMIT = 10
PROSPECT_LIMIT = 10
SEASONAL_LIMIT = 15

INACTIVE_DAYS = 90
REACTIVATION_MIN_VALUE = 1000
UPSELL_RECENT_DAYS = 60
PROSPECT_RECENT_DAYS = 30
PEAK_FACTOR = 1.2


def _customer_contact(customer: Customer, context: str, revenue_value: float) -> ContactInfo:
    return ContactInfo(
        name=customer.name,
        email=customer.email,
        phone=customer.phone,
        context=context,
        revenue_value=revenue_value
    )


def generate_overdue_payment_leads(
        invoices: Sequence[Invoice],
        now: Optional[datetime] = None
) -> List[Lead]:
    """逾期且金额不低于 1000 的发票，按金额从高到低，最多 20 条"""
    now = resolve_now(now)
    overdue = [inv for inv in invoices if inv.is_overdue(now) and inv.amount >= OVERDUE_MIN_AMOUNT]
    overdue.sort(key=lambda inv: -inv.amount)

    leads = []
    for invoice in overdue[:OVERDUE_LIMIT]:
        # 显式标记逾期但尚未到期的发票按 0 天计
        days = max(0, invoice.days_past_due(now))
        if days > 30:
            urgency = 'high'
        elif days > 14:
            urgency = 'medium'
        else:
            urgency = 'low'

        leads.append(Lead(
            id=f"overdue_{invoice.id}",
            type='overdue_payment_recovery',
            contact=ContactInfo(
                name=f"Customer {invoice.customer_id}",
                context=f"{days} days overdue",
                revenue_value=invoice.amount
            ),
            score=min(100, 50 + days * 2),
            revenue_range=RevenueRange(
                min=min(5000, invoice.amount * 0.8),
                max=min(25000, invoice.amount)
            ),
            urgency=urgency,
            context=f"Invoice #{invoice.id} - {format_currency(invoice.amount)} overdue by {days} days",
            generated_at=now
        ))

    return leads


def generate_reactivation_leads(
        records: Sequence[SalesRecord],
        now: Optional[datetime] = None
) -> List[Lead]:
    """超过 90 天未购买、购买过多次且累计消费超过 1000 的老客户"""
    now = resolve_now(now)
    candidates = [
        c for c in build_customers(records)
        if c.days_since_last_purchase(now) > INACTIVE_DAYS
        and c.purchase_count > 1
        and c.total_spent > REACTIVATION_MIN_VALUE
    ]
    candidates.sort(key=lambda c: -c.total_spent)

    leads = []
    for customer in candidates[:REACTIVATION_LIMIT]:
        days = format_days(customer.days_since_last_purchase(now))
        if days > 180:
            urgency = 'high'
        elif days > 120:
            urgency = 'medium'
        else:
            urgency = 'low'
        potential = customer.average_order_value * 0.7

        leads.append(Lead(
            id=f"reactivation_{customer.id}",
            type='repeat_customer_reactivation',
            contact=_customer_contact(customer, f"Last purchase {days} days ago", potential),
            score=min(100, max(20, 100 - days / 365 * 50)),
            revenue_range=RevenueRange(
                min=min(3000, potential * 0.5),
                max=min(15000, potential * 2)
            ),
            urgency=urgency,
            context=(
                f"Previous customer - {customer.purchase_count} purchases, "
                f"{format_currency(customer.total_spent)} total value"
            ),
            generated_at=now
        ))

    return leads


def generate_upsell_leads(
        records: Sequence[SalesRecord],
        now: Optional[datetime] = None
) -> List[Lead]:
    """按累计消费取前 20% 的客户（至少一位），最多 10 条"""
    now = resolve_now(now)
    customers = sorted(build_customers(records), key=lambda c: -c.total_spent)
    if not customers:
        return []
    top_count = max(1, len(customers) // 5)

    leads = []
    for customer in customers[:top_count][:UPSELL_LIMIT]:
        recent = customer.days_since_last_purchase(now) < UPSELL_RECENT_DAYS
        potential = customer.average_order_value * 1.5

        leads.append(Lead(
            id=f"upsell_{customer.id}",
            type='top_customer_upsell',
            contact=_customer_contact(
                customer, f"Top customer - {format_currency(customer.total_spent)} total value", potential
            ),
            score=min(100, customer.total_spent / 10000 * 50 + customer.purchase_count * 5),
            revenue_range=RevenueRange(
                min=min(8000, potential * 0.8),
                max=min(40000, potential * 2)
            ),
            urgency='high' if recent else 'medium',
            context=f"High-value customer ready for premium offerings - {customer.purchase_count} purchases",
            generated_at=now
        ))

    return leads


def generate_prospect_leads(
        records: Sequence[SalesRecord],
        now: Optional[datetime] = None
) -> List[Lead]:
    """与成熟客户客单价相近的新客户

    成熟客户指累计消费超过 2000 且购买超过 2 次；没有成熟客户时不生成线索。
    """
    now = resolve_now(now)
    customers = build_customers(records)
    successful = [c for c in customers if c.total_spent > 2000 and c.purchase_count > 2]
    if not successful:
        return []

    average_value = sum(c.average_order_value for c in successful) / len(successful)
    candidates = [
        c for c in customers
        if c.purchase_count == 1
        and c.days_since_last_purchase(now) < PROSPECT_RECENT_DAYS
        and c.total_spent >= average_value * 0.5
    ]

    leads = []
    for customer in candidates[:PROSPECT_LIMIT]:
        potential = average_value * 2
        leads.append(Lead(
            id=f"prospect_{customer.id}",
            type='new_customer_prospects',
            contact=_customer_contact(
                customer, f"Recent first-time buyer - {format_currency(customer.total_spent)}", potential
            ),
            score=min(100, customer.total_spent / average_value * 60),
            revenue_range=RevenueRange(
                min=min(2000, potential * 0.5),
                max=min(12000, potential * 1.5)
            ),
            urgency='medium',
            context='New customer with potential for repeat business',
            generated_at=now
        ))

    return leads


def upcoming_peak_months(records: Sequence[SalesRecord], now: datetime) -> List[int]:
    """未来一到两个月内的旺季月份（1-12）

    旺季指该自然月累计营收超过有销售月份平均值的 1.2 倍。
    """
    if not records:
        return []

    frame = pd.DataFrame({
        'month': [record.date.month for record in records],
        'amount': [record.amount for record in records],
    })
    totals = frame.groupby('month')['amount'].sum()
    threshold = totals.mean() * PEAK_FACTOR

    return [
        int(month) for month, total in totals.items()
        if total > threshold and (int(month) - now.month) % 12 in (1, 2)
    ]


def generate_seasonal_leads(
        records: Sequence[SalesRecord],
        now: Optional[datetime] = None
) -> List[Lead]:
    """在即将到来的旺季月份有过购买的客户，最多 15 条"""
    now = resolve_now(now)
    peak_months = upcoming_peak_months(records, now)
    if not peak_months:
        return []

    customers: Dict[str, Customer] = {
        c.name.lower(): c for c in build_customers(records)
    }
    in_season: Dict[str, List[SalesRecord]] = {}
    purchase_counts: Dict[str, int] = {}
    for record in records:
        key = customer_key(record)
        purchase_counts[key] = purchase_counts.get(key, 0) + 1
        if record.date.month in peak_months:
            in_season.setdefault(key, []).append(record)

    month_names = ', '.join(pd.Timestamp(2000, m, 1).strftime('%B') for m in peak_months)

    leads = []
    for index, (key, seasonal_records) in enumerate(list(in_season.items())[:SEASONAL_LIMIT]):
        customer = customers[key]
        share = len(seasonal_records) / purchase_counts[key]
        potential = sum(r.amount for r in seasonal_records) / len(seasonal_records)

        leads.append(Lead(
            id=f"seasonal_{index}",
            type='seasonal_opportunity',
            contact=_customer_contact(customer, 'Seasonal buyer - peak month approaching', potential),
            score=60 + 30 * share,
            revenue_range=RevenueRange(
                min=min(1000, potential * 0.5),
                max=min(8000, potential * 1.5)
            ),
            urgency='medium',
            context=f"Customer typically buys during peak season ({month_names})",
            generated_at=now
        ))

    return leads
