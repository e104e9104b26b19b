"""
业务异常定义
促销子系统对调用方暴露的四类错误
"""


class BusinessException(Exception):
    """业务异常基类"""

    status_code: int = 400
    error_code: str = "business_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class NotFoundError(BusinessException):
    """促销、订单或优惠码不存在"""

    status_code = 404
    error_code = "not_found"


class ValidationFailedError(BusinessException):
    """促销校验未通过，message 为原样返回给界面的原因"""

    status_code = 400
    error_code = "validation_failed"

    @property
    def reason(self) -> str:
        return self.message


class ConflictError(BusinessException):
    """优惠码重复"""

    status_code = 409
    error_code = "conflict"


class ForbiddenError(BusinessException):
    """调用方不是订单所有者"""

    status_code = 403
    error_code = "forbidden"
