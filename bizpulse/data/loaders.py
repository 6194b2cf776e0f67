# bizpulse/data/loaders.py
import logging
from datetime import datetime
from typing import List, Optional

import pandas as pd

from bizpulse.data.models import INVOICE_STATUSES, Invoice, SalesRecord

logger = logging.getLogger(__name__)

# 上传模板的列名
SALES_COLUMNS = {
    'date': 'Date',
    'customer_name': 'Customer Name',
    'customer_email': 'Customer Email',
    'customer_phone': 'Customer Phone',
    'amount': 'Amount',
    'product': 'Product',
    'category': 'Category',
    'id': 'ID',
}
SALES_REQUIRED = ['Date', 'Customer Name', 'Amount']

INVOICE_COLUMNS = {
    'id': 'ID',
    'customer_id': 'Customer ID',
    'amount': 'Amount',
    'issue_date': 'Issue Date',
    'due_date': 'Due Date',
    'paid_date': 'Paid Date',
    'status': 'Status',
}
INVOICE_REQUIRED = ['ID', 'Customer ID', 'Amount', 'Issue Date', 'Due Date']


def _check_columns(frame: pd.DataFrame, required: List[str], kind: str):
    missing = [column for column in required if column not in frame.columns]
    if missing:
        raise ValueError(f"{kind} CSV is missing required columns: {', '.join(missing)}")


def _text(row: pd.Series, column: str) -> Optional[str]:
    """缺失列或空单元格返回 None"""
    if column not in row.index:
        return None
    value = row[column]
    if pd.isna(value):
        return None
    value = str(value).strip()
    return value or None


def _date(value) -> Optional[datetime]:
    if value is None or pd.isna(value):
        return None
    return pd.Timestamp(value).to_pydatetime()


def load_sales_csv(source) -> List[SalesRecord]:
    """读取销售记录模板

    Args:
        source: 文件路径或文件对象

    Returns:
        销售记录列表；没有 ID 列时按行号生成 sale_N
    """
    frame = pd.read_csv(source, dtype=str, skipinitialspace=True)
    frame.columns = [str(column).strip() for column in frame.columns]
    _check_columns(frame, SALES_REQUIRED, 'Sales')

    frame[SALES_COLUMNS['date']] = pd.to_datetime(frame[SALES_COLUMNS['date']])
    frame[SALES_COLUMNS['amount']] = pd.to_numeric(frame[SALES_COLUMNS['amount']])

    records = []
    for position, (_, row) in enumerate(frame.iterrows(), start=1):
        records.append(SalesRecord(
            id=_text(row, SALES_COLUMNS['id']) or f"sale_{position}",
            date=_date(row[SALES_COLUMNS['date']]),
            amount=float(row[SALES_COLUMNS['amount']]),
            customer_name=_text(row, SALES_COLUMNS['customer_name']) or '',
            customer_email=_text(row, SALES_COLUMNS['customer_email']),
            customer_phone=_text(row, SALES_COLUMNS['customer_phone']),
            product=_text(row, SALES_COLUMNS['product']),
            category=_text(row, SALES_COLUMNS['category'])
        ))

    logger.info(f"Loaded {len(records)} sales records")
    return records


def load_invoices_csv(source) -> List[Invoice]:
    """读取发票模板，状态为空时视为 pending"""
    frame = pd.read_csv(source, dtype=str, skipinitialspace=True)
    frame.columns = [str(column).strip() for column in frame.columns]
    _check_columns(frame, INVOICE_REQUIRED, 'Invoice')

    for key in ('issue_date', 'due_date', 'paid_date'):
        column = INVOICE_COLUMNS[key]
        if column in frame.columns:
            frame[column] = pd.to_datetime(frame[column])
    frame[INVOICE_COLUMNS['amount']] = pd.to_numeric(frame[INVOICE_COLUMNS['amount']])

    invoices = []
    for _, row in frame.iterrows():
        status = (_text(row, INVOICE_COLUMNS['status']) or 'pending').lower()
        if status not in INVOICE_STATUSES:
            raise ValueError(f"Unknown invoice status: {status}")

        paid_date = None
        if INVOICE_COLUMNS['paid_date'] in row.index:
            paid_date = _date(row[INVOICE_COLUMNS['paid_date']])

        invoices.append(Invoice(
            id=_text(row, INVOICE_COLUMNS['id']),
            customer_id=_text(row, INVOICE_COLUMNS['customer_id']),
            amount=float(row[INVOICE_COLUMNS['amount']]),
            issue_date=_date(row[INVOICE_COLUMNS['issue_date']]),
            due_date=_date(row[INVOICE_COLUMNS['due_date']]),
            paid_date=paid_date,
            status=status
        ))

    logger.info(f"Loaded {len(invoices)} invoices")
    return invoices
