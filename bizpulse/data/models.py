import math
from datetime import datetime, timezone
from typing import List, Optional
from dataclasses import dataclass, field

SECONDS_PER_DAY = 24 * 60 * 60

INVOICE_STATUSES = ('pending', 'paid', 'overdue', 'cancelled')


def to_naive(value: Optional[datetime]) -> Optional[datetime]:
    """带时区的时间统一转为 UTC 后去掉时区，naive 时间原样返回"""
    if value is None or value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def days_between(earlier: datetime, later: datetime) -> float:
    """两个时间点之间的天数（含小数），带时区和不带时区的时间可以混用"""
    return (to_naive(later) - to_naive(earlier)).total_seconds() / SECONDS_PER_DAY


@dataclass(frozen=True)
class SalesRecord:
    """销售记录"""
    id: str
    date: datetime
    amount: float
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    product: Optional[str] = None
    category: Optional[str] = None


@dataclass(frozen=True)
class Invoice:
    """发票"""
    id: str
    customer_id: str
    amount: float
    issue_date: datetime
    due_date: datetime
    paid_date: Optional[datetime] = None
    status: str = 'pending'

    def is_overdue(self, now: datetime) -> bool:
        """显式标记为逾期，或待付款且已过到期日，都视为逾期"""
        if self.status == 'overdue':
            return True
        return self.status == 'pending' and days_between(self.due_date, now) > 0

    def days_past_due(self, now: datetime) -> int:
        return math.floor(days_between(self.due_date, now))


@dataclass(frozen=True)
class Customer:
    """客户模型（由销售记录汇总得到）"""
    id: str
    name: str
    email: Optional[str]
    phone: Optional[str]
    total_spent: float
    last_purchase: datetime
    purchase_count: int
    average_order_value: float
    first_purchase: Optional[datetime] = None

    def days_since_last_purchase(self, now: datetime) -> float:
        return days_between(self.last_purchase, now)


@dataclass(frozen=True)
class ContactInfo:
    """联系人"""
    name: str
    context: str
    email: Optional[str] = None
    phone: Optional[str] = None
    revenue_value: Optional[float] = None


@dataclass(frozen=True)
class Recommendation:
    """行动建议

    revenue_impact 是基于估算值再估算出的潜在收益，不是承诺的结果。
    """
    title: str
    description: str
    priority: str
    revenue_impact: float
    contacts: List[ContactInfo] = field(default_factory=list)
    impact_kind: str = 'potential'


@dataclass(frozen=True)
class RevenueRange:
    min: float
    max: float


@dataclass(frozen=True)
class Lead:
    """销售线索"""
    id: str
    type: str
    contact: ContactInfo
    score: float
    revenue_range: RevenueRange
    urgency: str
    context: str
    generated_at: datetime
