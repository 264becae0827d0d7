"""
业务异常定义
对外异常携带稳定的错误码、HTTP状态码和重试提示；内部异常由领取引擎本地重试消化
"""

from typing import Optional


class BusinessException(Exception):
    """业务异常基类"""

    code: str = "business_error"
    status_code: int = 400
    default_message: str = "Request could not be processed"

    def __init__(
        self,
        message: Optional[str] = None,
        retry_after_seconds: Optional[int] = None
    ):
        self.message = message or self.default_message
        self.retry_after_seconds = retry_after_seconds
        super().__init__(self.message)


class MissingIdentityError(BusinessException):
    code = "missing_identity"
    status_code = 400
    default_message = "No session found. Please enable cookies and reload the page."


class CooldownActiveError(BusinessException):
    code = "cooldown_active"
    status_code = 429

    def __init__(self, minutes_remaining: int, retry_after_seconds: int, cooldown_minutes: int = 60):
        self.minutes_remaining = minutes_remaining
        if cooldown_minutes == 60:
            window = "one coupon per hour"
        else:
            window = f"one coupon every {cooldown_minutes} minutes"
        super().__init__(
            f"You can only claim {window}. "
            f"Please wait {minutes_remaining} minutes before claiming another coupon.",
            retry_after_seconds=retry_after_seconds
        )


class PoolExhaustedError(BusinessException):
    code = "pool_exhausted"
    status_code = 429
    default_message = "All coupons are currently in use. Please try again in a few minutes."


class StorageUnavailableError(BusinessException):
    code = "service_unavailable"
    status_code = 503
    default_message = "The coupon service is temporarily unavailable. Please retry shortly."


class RateLimitedError(BusinessException):
    code = "rate_limited"
    status_code = 429
    default_message = "Too many requests, please try again later."


class CouponNotFoundError(BusinessException):
    code = "not_found"
    status_code = 404
    default_message = "Coupon not found"


class PermissionDeniedError(BusinessException):
    code = "forbidden"
    status_code = 403
    default_message = "Not allowed"


# 以下为内部异常，不直接暴露给调用方

class DuplicateCodeError(Exception):
    """优惠券代码冲突"""

    def __init__(self, code: str):
        self.code = code
        super().__init__(f"coupon code already exists: {code}")


class AlreadyExhaustedError(Exception):
    """并发领取中最后一个名额已被占用"""

    def __init__(self, coupon_id: str):
        self.coupon_id = coupon_id
        super().__init__(f"coupon no longer redeemable: {coupon_id}")


class IdentityWindowLockedError(Exception):
    """同一身份在冷却窗口内已有领取（或并发领取中）"""

    def __init__(self, window_key: str):
        self.window_key = window_key
        super().__init__(f"claim window held: {window_key}")
