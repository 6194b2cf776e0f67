"""洞察与建议的通用格式化工具"""
import math
from datetime import datetime
from typing import Iterable, List, Optional

from bizpulse.data.models import ContactInfo, Customer, Recommendation


def resolve_now(now: Optional[datetime]) -> datetime:
    """未指定参考时间时使用当前时间"""
    return now if now is not None else datetime.now()


def format_currency(value: float) -> str:
    """金额取整后加千分位，例如 $12,345"""
    return f"${round(value):,}"


def format_days(days: float) -> int:
    return math.floor(days)


def not_enough(subject: str, detail: str) -> str:
    """数据不足时的统一提示"""
    return f"Not enough {subject} {detail}"


def role_contact(name: str, context: str) -> ContactInfo:
    """内部角色联系人，不编造邮箱"""
    return ContactInfo(name=name, context=context)


def customer_contact(customer: Customer, context: str) -> ContactInfo:
    return ContactInfo(
        name=customer.name,
        email=customer.email,
        phone=customer.phone,
        context=context,
        revenue_value=customer.total_spent
    )


def recommendation(
        title: str,
        description: str,
        priority: str,
        revenue_impact: float,
        contacts: Iterable[ContactInfo]
) -> Recommendation:
    """构建建议，收益影响取整"""
    return Recommendation(
        title=title,
        description=description,
        priority=priority,
        revenue_impact=round(revenue_impact),
        contacts=list(contacts)
    )


def join_names(names: Iterable[str]) -> str:
    return ', '.join(names)


def total_of(values: Iterable[float]) -> float:
    return sum(values, 0.0)


def mean_of(values: List[float]) -> float:
    return sum(values) / len(values) if values else 0.0
