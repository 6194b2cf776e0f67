import logging
from typing import Any, Dict, List, Type

from fastapi import APIRouter, Depends, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import Response
from pydantic import ValidationError

from bizpulse.api.dependencies import get_engine, get_usage_meter
from bizpulse.api.schemas import AnalysisRequest, ApiResponse, CamelModel, InvoiceIn, LeadRequest, SalesRecordIn
from bizpulse.data.models import to_naive
from bizpulse.data.usage import UsageMeter
from bizpulse.engine.core import (
    INVOICE_ANALYSES, INVOICE_LEADS, AnalyticsEngine, parse_analysis_type, parse_lead_type
)
from bizpulse.leads.actions import export_leads_csv, lead_with_actions

logger = logging.getLogger(__name__)

router = APIRouter()


def decode_records(items: List[Dict[str, Any]], model: Type[CamelModel]) -> list:
    """将请求中的原始记录解码为引擎使用的记录，格式错误返回 422"""
    records = []
    for position, item in enumerate(items, start=1):
        try:
            records.append(model.model_validate(item).to_record(position))
        except ValidationError as e:
            detail = [
                {'loc': ['data', position - 1, *error['loc']], 'msg': error['msg'], 'type': error['type']}
                for error in e.errors()
            ]
            raise HTTPException(status_code=422, detail=detail)
    return records


@router.post("/analytics", response_model=ApiResponse)
def create_analysis(
        request: AnalysisRequest,
        engine: AnalyticsEngine = Depends(get_engine),
        meter: UsageMeter = Depends(get_usage_meter)
):
    """运行一种业务分析"""
    kind = parse_analysis_type(request.analysis_type)
    meter.check(request.user_id)

    model = InvoiceIn if kind in INVOICE_ANALYSES else SalesRecordIn
    records = decode_records(request.data, model)

    meter.reserve(request.user_id)
    logger.info(f"Running {kind.value} for user {request.user_id} with {len(records)} records")
    try:
        result = engine.run_analysis(kind, records, now=to_naive(request.now))
    except Exception:
        meter.release(request.user_id)
        raise

    return ApiResponse(
        success=True,
        data=jsonable_encoder(result),
        message=f"{kind.value} completed"
    )


def _generate_leads(request: LeadRequest, engine: AnalyticsEngine, meter: UsageMeter):
    kind = parse_lead_type(request.lead_type)
    meter.check(request.user_id)

    model = InvoiceIn if kind in INVOICE_LEADS else SalesRecordIn
    records = decode_records(request.data, model)

    meter.reserve(request.user_id)
    logger.info(f"Generating {kind.value} leads for user {request.user_id} with {len(records)} records")
    try:
        leads = engine.run_lead_generation(kind, records, now=to_naive(request.now))
    except Exception:
        meter.release(request.user_id)
        raise
    return kind, leads


@router.post("/leads", response_model=ApiResponse)
def create_leads(
        request: LeadRequest,
        engine: AnalyticsEngine = Depends(get_engine),
        meter: UsageMeter = Depends(get_usage_meter)
):
    """生成一类销售线索，每条线索附带可用的联系方式建议"""
    kind, leads = _generate_leads(request, engine, meter)
    return ApiResponse(
        success=True,
        data=jsonable_encoder([lead_with_actions(lead) for lead in leads]),
        message=f"Generated {len(leads)} {kind.value} leads"
    )


@router.post("/leads/export")
def export_leads(
        request: LeadRequest,
        engine: AnalyticsEngine = Depends(get_engine),
        meter: UsageMeter = Depends(get_usage_meter)
):
    """生成线索并导出为 CSV"""
    kind, leads = _generate_leads(request, engine, meter)
    return Response(
        content=export_leads_csv(leads),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="{kind.value}-leads.csv"'}
    )
