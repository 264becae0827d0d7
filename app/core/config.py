from pydantic_settings import BaseSettings
from typing import List, Optional
from enum import Enum


class Environment(str, Enum):

    """运行环境枚举"""
    TESTING = "testing"
    PRODUCTION = "production"


class Settings(BaseSettings):

    # 应用基础配置
    app_name: str = "Coupon Claim Service"
    app_version: str = "1.0.0"
    environment: Environment = Environment.TESTING
    debug: bool = False
    admin_token: Optional[str] = None

    # 数据库配置
    database_url: Optional[str] = None
    db_host: str = "localhost"
    db_port: int = 5432
    db_name: str = "coupon_claims_db"
    db_user: str = "coupon_user"
    db_password: str = "coupon_password"
    storage_timeout_seconds: float = 10.0

    # Redis配置 (状态缓存 + 限流计数)
    redis_url: Optional[str] = None
    redis_host: str = "localhost"
    redis_port: int = 6379
    redis_password: Optional[str] = None
    redis_db: int = 0

    # 领取规则配置
    claim_cooldown_minutes: int = 60
    claim_retry_limit: int = 3
    rotation_window_minutes: int = 10
    status_lookback_hours: int = 24
    status_cache_ttl_seconds: int = 5

    # 重试提示（秒）
    pool_exhausted_retry_seconds: int = 300
    unavailable_retry_seconds: int = 30

    # 新券生成配置
    mint_discount_menu: List[int] = [10, 15, 20, 25, 30]
    mint_expiry_days: int = 90
    mint_max_redemptions: Optional[int] = 100
    code_generation_attempts: int = 5
    seed_on_startup: bool = True

    # 会话Cookie配置
    session_cookie_name: str = "sessionId"
    session_cookie_max_age: int = 86400  # 24小时
    session_cookie_secure: bool = True
    session_cookie_samesite: str = "none"
    trust_forwarded_for: bool = True

    # CORS配置
    cors_origins: List[str] = ["http://localhost:5173"]

    # 限流配置
    claim_rate_limit: int = 10
    claim_rate_window_seconds: int = 60
    status_rate_limit: int = 30
    status_rate_window_seconds: int = 60

    # Stripe配置
    stripe_secret_key: Optional[str] = None

    # 日志配置
    log_level: str = "INFO"

    @property
    def is_production(self) -> bool:
        return self.environment == Environment.PRODUCTION

    @property
    def database_url_computed(self) -> str:
        """计算数据库URL"""
        if self.database_url:
            return self.database_url
        return f"postgresql+asyncpg://{self.db_user}:{self.db_password}@{self.db_host}:{self.db_port}/{self.db_name}"

    @property
    def redis_url_computed(self) -> str:
        """计算Redis URL"""
        if self.redis_url:
            return self.redis_url
        if self.redis_password:
            return f"redis://:{self.redis_password}@{self.redis_host}:{self.redis_port}/{self.redis_db}"
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"

    @property
    def stripe_configured(self) -> bool:
        key = (self.stripe_secret_key or "").strip()
        return key.startswith(("sk_", "rk_"))

    class Config:
        env_file = ".env"
        case_sensitive = False


# 全局配置实例
settings = Settings()
