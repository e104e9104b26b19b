from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
import logging

from app.core.config import settings
from app.core.exceptions import BusinessException

"API异常处理器"

logger = logging.getLogger(__name__)


async def business_exception_handler(request: Request, exc: BusinessException) -> JSONResponse:
    """业务异常：原样返回 message 和 error_code"""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": exc.message, "error_code": exc.error_code}
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """请求参数校验失败"""
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={
            "message": "Dados de requisição inválidos",
            "error_code": "invalid_request",
            "details": jsonable_encoder(exc.errors())
        }
    )


async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """数据库异常，不向调用方暴露SQL细节"""
    logger.error(f"数据库异常 {request.method} {request.url.path}: {exc}")
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": "Erro interno do banco de dados", "error_code": "database_error"}
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """兜底异常处理"""
    logger.exception(f"未处理异常 {request.method} {request.url.path}: {exc}")
    content = {"message": "Erro interno do servidor", "error_code": "internal_error"}
    if settings.debug:
        content["details"] = str(exc)
    return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content=content)


def register_exception_handlers(app: FastAPI) -> None:
    """注册所有异常处理器"""
    app.add_exception_handler(BusinessException, business_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(SQLAlchemyError, database_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)
