"""记录聚合：按月份、产品、客户等维度汇总销售记录"""
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional, Sequence

import pandas as pd

from bizpulse.data.models import Customer, SalesRecord, to_naive

UNKNOWN_PRODUCT = 'Unknown Product'


@dataclass(frozen=True)
class MonthlyTotal:
    """月度汇总"""
    period: str  # YYYY-MM
    total: float


@dataclass(frozen=True)
class DimensionTotals:
    """维度汇总"""
    label: str
    total: float
    count: int
    orders: int


def product_key(record: SalesRecord) -> str:
    return record.product or UNKNOWN_PRODUCT


def customer_key(record: SalesRecord) -> str:
    return record.customer_name.lower()


def _optional_text(value) -> Optional[str]:
    if value is None or pd.isna(value):
        return None
    return str(value)


def aggregate_by_month(records: Sequence[SalesRecord]) -> List[MonthlyTotal]:
    """按 YYYY-MM 汇总营收，按月份升序"""
    if not records:
        return []

    frame = pd.DataFrame({
        'period': [record.date.strftime('%Y-%m') for record in records],
        'amount': [record.amount for record in records],
    })
    totals = frame.groupby('period', sort=True)['amount'].sum()

    return [MonthlyTotal(period=str(period), total=float(total)) for period, total in totals.items()]


def aggregate_by_dimension(
        records: Sequence[SalesRecord],
        key_fn: Callable[[SalesRecord], str],
        label_fn: Optional[Callable[[SalesRecord], str]] = None
) -> Dict[str, DimensionTotals]:
    """按任意维度汇总，保持首次出现的顺序

    count 为记录条数，orders 为不同记录ID的数量。
    """
    if not records:
        return {}

    label_fn = label_fn or key_fn
    frame = pd.DataFrame({
        'key': [key_fn(record) for record in records],
        'label': [label_fn(record) for record in records],
        'id': [record.id for record in records],
        'amount': [record.amount for record in records],
    })
    summary = frame.groupby('key', sort=False).agg(
        label=('label', 'first'),
        total=('amount', 'sum'),
        count=('amount', 'size'),
        orders=('id', 'nunique'),
    )

    return {
        str(key): DimensionTotals(
            label=str(row['label']),
            total=float(row['total']),
            count=int(row['count']),
            orders=int(row['orders'])
        )
        for key, row in summary.iterrows()
    }


def build_customers(records: Sequence[SalesRecord]) -> List[Customer]:
    """将销售记录按客户名（不区分大小写）折叠为客户

    联系方式以输入顺序中最后一个非空值为准。
    """
    if not records:
        return []

    frame = pd.DataFrame({
        'key': [customer_key(record) for record in records],
        'name': [record.customer_name for record in records],
        'email': [record.customer_email or None for record in records],
        'phone': [record.customer_phone or None for record in records],
        'amount': [record.amount for record in records],
        'date': [pd.Timestamp(to_naive(record.date)) for record in records],
    })
    summary = frame.groupby('key', sort=False).agg(
        name=('name', 'first'),
        email=('email', 'last'),
        phone=('phone', 'last'),
        total_spent=('amount', 'sum'),
        purchase_count=('amount', 'size'),
        last_purchase=('date', 'max'),
        first_purchase=('date', 'min'),
    )

    customers = []
    for position, (_, row) in enumerate(summary.iterrows(), start=1):
        total_spent = float(row['total_spent'])
        purchase_count = int(row['purchase_count'])
        customers.append(Customer(
            id=f"customer_{position}",
            name=str(row['name']),
            email=_optional_text(row['email']),
            phone=_optional_text(row['phone']),
            total_spent=total_spent,
            last_purchase=pd.Timestamp(row['last_purchase']).to_pydatetime(),
            purchase_count=purchase_count,
            average_order_value=total_spent / purchase_count,
            first_purchase=pd.Timestamp(row['first_purchase']).to_pydatetime()
        ))

    return customers
