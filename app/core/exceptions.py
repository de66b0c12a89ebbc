"""
异常处理模块

定义业务异常和全局异常处理器
"""
from fastapi import Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from loguru import logger

from .response import error_response


class AppException(Exception):
    """应用基础异常"""

    error = "server_error"

    def __init__(
        self,
        message: str = "Internal server error",
        code: int = 500,
        data: dict = None
    ):
        self.message = message
        self.code = code
        self.data = data
        super().__init__(self.message)


class ValidationException(AppException):
    """请求参数不合法（缺少必填项等）"""

    error = "validation_error"

    def __init__(self, message: str = "Invalid request data", data: dict = None):
        super().__init__(message=message, code=400, data=data)


class AuthenticationException(AppException):
    """未认证或令牌无效"""

    error = "authentication_error"

    def __init__(self, message: str = "Could not validate credentials"):
        super().__init__(message=message, code=401)


class AuthorizationException(AppException):
    """角色或归属关系不允许该操作"""

    error = "authorization_error"

    def __init__(self, message: str = "Not authorized to perform this action"):
        super().__init__(message=message, code=403)


class NotFoundException(AppException):
    """资源不存在异常"""

    error = "not_found"

    def __init__(self, message: str = "Resource not found"):
        super().__init__(message=message, code=404)


class InvalidStateException(AppException):
    """当前状态不允许该操作"""

    error = "invalid_state"

    def __init__(self, message: str = "Action not allowed in the current state", data: dict = None):
        super().__init__(message=message, code=400, data=data)


class ConflictException(AppException):
    """违反唯一性或只允许一次的约束"""

    error = "conflict"

    def __init__(self, message: str = "Resource already exists", data: dict = None):
        super().__init__(message=message, code=400, data=data)


class ServerException(AppException):
    """服务端意外错误"""

    def __init__(self, message: str = "Internal server error"):
        super().__init__(message=message, code=500)


async def app_exception_handler(request: Request, exc: AppException) -> JSONResponse:
    """应用异常处理器"""
    logger.warning(f"{type(exc).__name__}: {exc.message} | Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.code,
        content=jsonable_encoder(error_response(
            message=exc.message,
            code=exc.code,
            error=exc.error,
            data=exc.data,
        ))
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """HTTP 异常处理器"""
    logger.warning(f"HTTPException: {exc.detail} | Path: {request.url.path}")
    return JSONResponse(
        status_code=exc.status_code,
        content=error_response(
            message=str(exc.detail),
            code=exc.status_code,
            error="http_error",
        )
    )


async def validation_exception_handler(
    request: Request, exc: RequestValidationError
) -> JSONResponse:
    """请求验证异常处理器"""
    errors = exc.errors()
    error_messages = []
    for error in errors:
        loc = " -> ".join(str(l) for l in error["loc"])
        error_messages.append(f"{loc}: {error['msg']}")

    message = "; ".join(error_messages)
    logger.warning(f"RequestValidationError: {message} | Path: {request.url.path}")

    return JSONResponse(
        status_code=422,
        content=error_response(
            message="Request validation failed",
            code=422,
            error="validation_error",
            data={"errors": [
                {"loc": list(e["loc"]), "msg": e["msg"], "type": e["type"]}
                for e in errors
            ]}
        )
    )


async def general_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """通用异常处理器"""
    logger.exception(f"Unhandled Exception: {exc} | Path: {request.url.path}")
    server_error = ServerException()
    return JSONResponse(
        status_code=server_error.code,
        content=error_response(
            message=server_error.message,
            code=server_error.code,
            error=server_error.error,
        )
    )
