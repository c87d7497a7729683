from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_env: str = "local"
    app_host: str = "0.0.0.0"
    app_port: int = 8080
    log_level: str = "INFO"

    redis_host: str = "redis"
    redis_port: int = 6379
    redis_db: int = 0

    admin_token: str = "change-me"

    # namespaces every counter key: "<prefix>:<identifier>"
    limiter_prefix: str = "limiter"
    # attempts per operation under WATCH conflicts
    limiter_max_retry: int = 3
    limiter_timeout_seconds: float | None = None

    # defaults for routes that don't carry their own rate
    rate_limit_requests: int = 10
    rate_limit_window_seconds: int = 60

    @field_validator("limiter_max_retry")
    @classmethod
    def clamp_max_retry(cls, v: int) -> int:
        return v if v > 0 else 1

    @field_validator("rate_limit_window_seconds")
    @classmethod
    def check_window(cls, v: int) -> int:
        if v <= 0:
            raise ValueError("rate_limit_window_seconds must be positive")
        return v

    @field_validator("rate_limit_requests")
    @classmethod
    def check_requests(cls, v: int) -> int:
        if v < 0:
            raise ValueError("rate_limit_requests must be >= 0")
        return v

    @property
    def redis_url(self) -> str:
        return f"redis://{self.redis_host}:{self.redis_port}/{self.redis_db}"


settings = Settings()  # reads from environment
