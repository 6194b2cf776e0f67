# bizpulse/api/app.py
import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bizpulse.api import dependencies
from bizpulse.api.schemas import HealthResponse
from bizpulse.data.usage import QuotaExceeded, UsageMeter
from bizpulse.engine.core import InvalidAnalysisType, InvalidLeadType

logger = logging.getLogger(__name__)

VERSION = "1.0.0"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("Starting BizPulse Analytics API")

    # 初始化配置
    from config.settings import get_settings
    settings = get_settings()

    # 初始化引擎和用量计数器
    dependencies.set_engine(settings.build_engine())
    dependencies.set_usage_meter(UsageMeter(default_plan=settings.app.default_plan))
    logger.info("Engine initialized successfully")

    yield

    logger.info("Shutting down BizPulse Analytics API")
    dependencies.set_engine(None)
    dependencies.set_usage_meter(None)


# 创建FastAPI应用
app = FastAPI(
    title="BizPulse Analytics API",
    description="Small-business analytics and lead-scoring engine",
    version=VERSION,
    lifespan=lifespan
)

# CORS配置
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # 生产环境应该设置具体的域名
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 导入路由
from bizpulse.api.routes import router  # noqa: E402

app.include_router(router, prefix="/api/v1")


@app.exception_handler(InvalidAnalysisType)
@app.exception_handler(InvalidLeadType)
async def invalid_type_handler(request, exc):
    logger.warning(f"Rejected request: {exc}")
    return JSONResponse(
        status_code=400,
        content={"success": False, "data": None, "message": str(exc)}
    )


@app.exception_handler(QuotaExceeded)
async def quota_exceeded_handler(request, exc):
    return JSONResponse(
        status_code=429,
        content={"success": False, "data": None, "message": str(exc)}
    )


# 全局异常处理
@app.exception_handler(Exception)
async def global_exception_handler(request, exc):
    logger.error(f"Global exception: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"success": False, "data": None, "message": "Internal server error"}
    )


# 根路径
@app.get("/")
async def root():
    """根路径"""
    return {
        "name": "BizPulse Analytics API",
        "version": VERSION,
        "status": "running",
        "docs": "/docs",
        "health": "/health"
    }


# 健康检查
@app.get("/health", response_model=HealthResponse)
async def health_check():
    """健康检查端点"""
    ready = dependencies.engine_ready()
    return HealthResponse(
        status="healthy" if ready else "degraded",
        version=VERSION,
        engine_status="running" if ready else "not initialized"
    )


def main():
    from config.settings import get_settings
    settings = get_settings()

    # 启动服务器
    uvicorn.run(
        "bizpulse.api.app:app",
        host="0.0.0.0",
        port=settings.app.api_port,
        log_level=settings.app.log_level.lower()
    )


if __name__ == "__main__":
    main()
