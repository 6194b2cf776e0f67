from datetime import datetime, timedelta

import pytest

from bizpulse.data.models import Invoice, SalesRecord

NOW = datetime(2024, 6, 30, 12, 0)


@pytest.fixture
def now():
    """固定的参考时间"""
    return NOW


@pytest.fixture
def make_sale():
    """销售记录工厂，days_ago 相对固定参考时间"""
    counter = {'n': 0}

    def _make(customer_name, amount, days_ago=None, date=None, **kwargs):
        counter['n'] += 1
        if date is None:
            date = NOW - timedelta(days=days_ago or 0)
        return SalesRecord(
            id=kwargs.pop('id', f"s{counter['n']}"),
            date=date,
            amount=amount,
            customer_name=customer_name,
            **kwargs
        )

    return _make


@pytest.fixture
def make_invoice():
    """发票工厂，due_days_ago 为正表示已过到期日"""

    def _make(invoice_id, amount, due_days_ago, status='pending', customer_id=None, paid_after_days=None):
        due_date = NOW - timedelta(days=due_days_ago)
        issue_date = due_date - timedelta(days=30)
        paid_date = None
        if paid_after_days is not None:
            paid_date = issue_date + timedelta(days=paid_after_days)
        return Invoice(
            id=invoice_id,
            customer_id=customer_id or f"C{invoice_id}",
            amount=amount,
            issue_date=issue_date,
            due_date=due_date,
            paid_date=paid_date,
            status=status
        )

    return _make


@pytest.fixture
def monthly_sales():
    """按月生成销售记录：totals 依次对应从 start 开始的各月"""

    def _make(totals, start=(2024, 1), customer_name='Acme'):
        year, month = start
        records = []
        for index, total in enumerate(totals):
            records.append(SalesRecord(
                id=f"m{index}",
                date=datetime(year, month, 15),
                amount=total,
                customer_name=customer_name
            ))
            month += 1
            if month > 12:
                year, month = year + 1, 1
        return records

    return _make
