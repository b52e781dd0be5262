import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from app.catalogue.router import router as catalogue_router
from app.core.redis_client import get_redis_client
from app.studio.exceptions import ErrorCategory, GenerationInProgressError, StudioError
from app.studio.router import router as studio_router

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

ERROR_STATUS_CODES = {
    ErrorCategory.VALIDATION_ERROR: status.HTTP_422_UNPROCESSABLE_ENTITY,
    ErrorCategory.CONFIGURATION_ERROR: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ErrorCategory.CREDENTIAL_ERROR: status.HTTP_401_UNAUTHORIZED,
    ErrorCategory.QUOTA_ERROR: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorCategory.SERVICE_UNAVAILABLE: status.HTTP_503_SERVICE_UNAVAILABLE,
    ErrorCategory.UNKNOWN_ERROR: status.HTTP_502_BAD_GATEWAY,
}


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    logger.info("start server")
    if get_redis_client().ping():
        logger.info("Application startup complete")
    else:
        # 카탈로그 조회/저장만 실패하고 나머지 API는 동작
        logger.warning("Redis is not reachable; catalogue persistence is degraded")

    yield

    logger.info("shut down server")


app = FastAPI(
    title="Creative Studio",
    lifespan=lifespan,
)

app.include_router(catalogue_router)
app.include_router(studio_router)


@app.get("/")
async def root() -> dict[str, str]:
    return {"status": "running"}


@app.get("/health")
async def health_check() -> JSONResponse:
    redis_ok = get_redis_client().ping()

    response_data = {
        "status": "healthy" if redis_ok else "degraded",
        "services": {"redis": "connected" if redis_ok else "disconnected"},
    }
    status_code = 200 if redis_ok else 503

    return JSONResponse(content=response_data, status_code=status_code)


# ============================================================
# 커스텀 에러 핸들러
# ============================================================


@app.exception_handler(StudioError)
async def studio_exception_handler(request: Request, exc: StudioError) -> JSONResponse:
    """StudioError → 카테고리별 HTTP 상태 코드"""
    if isinstance(exc, GenerationInProgressError):
        status_code = status.HTTP_409_CONFLICT
    else:
        status_code = ERROR_STATUS_CODES[exc.category]

    return JSONResponse(
        status_code=status_code,
        content={
            "success": False,
            "errorCode": exc.category.value,
            "message": exc.message,
        },
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """
    Pydantic 검증 에러 핸들러

    - 필수 필드 누락, 타입 에러 → 400 Bad Request
    - 값 검증 실패 (enum, min_length 등) → 422 Unprocessable Entity
    """
    errors = exc.errors()
    first_error = errors[0] if errors else {}
    error_type = first_error.get("type", "")
    loc = first_error.get("loc", [])

    # 필드명 추출 (body, mode -> mode)
    field_name = str(loc[-1]) if loc else ""

    message = _get_error_message(error_type, field_name)

    if error_type == "missing" or error_type.endswith("_type"):
        status_code = status.HTTP_400_BAD_REQUEST
        error_code = "INVALID_REQUEST"
    else:
        status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
        error_code = ErrorCategory.VALIDATION_ERROR.value

    return JSONResponse(
        status_code=status_code,
        content={"success": False, "errorCode": error_code, "message": message},
    )


def _get_error_message(error_type: str, field_name: str) -> str:
    """에러 타입과 필드명에 따른 메시지 반환"""

    if error_type == "missing":
        return f"{field_name}가 누락됐습니다"

    if error_type.endswith("_type"):
        return f"{field_name}의 타입이 올바르지 않습니다"

    if error_type == "enum":
        field_messages = {
            "profile": "profile은 female 또는 male 이어야 합니다",
            "mode": "mode는 try-on, edit, video 중 하나여야 합니다",
            "aspectRatio": "aspectRatio는 16:9 또는 9:16 이어야 합니다",
        }
        return field_messages.get(field_name, f"{field_name} 값이 올바르지 않습니다")

    if "too_short" in error_type or "too_long" in error_type:
        return f"{field_name}의 길이가 올바르지 않습니다"

    return "요청 데이터가 올바르지 않습니다"
