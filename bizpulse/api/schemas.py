from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from bizpulse.data.models import Invoice, SalesRecord, to_naive


class CamelModel(BaseModel):
    """接口字段使用 camelCase，同时接受 snake_case"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# 请求模型
class SalesRecordIn(CamelModel):
    """销售记录"""
    id: Optional[str] = None
    date: datetime
    amount: float
    customer_name: str
    customer_email: Optional[str] = None
    customer_phone: Optional[str] = None
    product: Optional[str] = None
    category: Optional[str] = None

    def to_record(self, position: int) -> SalesRecord:
        return SalesRecord(
            id=self.id or f"sale_{position}",
            date=to_naive(self.date),
            amount=self.amount,
            customer_name=self.customer_name,
            customer_email=self.customer_email or None,
            customer_phone=self.customer_phone or None,
            product=self.product or None,
            category=self.category or None
        )


class InvoiceIn(CamelModel):
    """发票"""
    id: str
    customer_id: str
    amount: float
    issue_date: datetime
    due_date: datetime
    paid_date: Optional[datetime] = None
    status: Literal['pending', 'paid', 'overdue', 'cancelled'] = 'pending'

    def to_record(self, position: int) -> Invoice:
        return Invoice(
            id=self.id,
            customer_id=self.customer_id,
            amount=self.amount,
            issue_date=to_naive(self.issue_date),
            due_date=to_naive(self.due_date),
            paid_date=to_naive(self.paid_date),
            status=self.status
        )


class AnalysisRequest(CamelModel):
    """分析请求"""
    analysis_type: str = Field(..., description="分析类型，例如 sales_forecasting")
    user_id: str = Field("anonymous", description="已认证的用户ID")
    data: List[Dict[str, Any]] = Field(default_factory=list, description="销售记录或发票")
    now: Optional[datetime] = Field(None, description="参考时间，默认为服务器当前时间")


class LeadRequest(CamelModel):
    """线索生成请求"""
    lead_type: str = Field(..., description="线索类型，例如 top_customer_upsell")
    user_id: str = Field("anonymous", description="已认证的用户ID")
    data: List[Dict[str, Any]] = Field(default_factory=list, description="销售记录或发票")
    now: Optional[datetime] = Field(None, description="参考时间，默认为服务器当前时间")


# 响应模型
class ApiResponse(BaseModel):
    """统一响应"""
    success: bool
    data: Any = None
    message: str = ""


class HealthResponse(BaseModel):
    """健康检查响应"""
    status: str
    version: str
    engine_status: str
