# gradebook/core/config.py
"""Application configuration using Pydantic."""
from pydantic_settings import BaseSettings
from typing import List, Optional

class Settings(BaseSettings):
    database_url: str
    jwt_secret: str

    app_version: str = '1.0.0'
    environment: str = 'development'
    log_level: str = 'info'
    allowed_origins: List[str] = ['*']
    create_tables_on_startup: bool = False
    # X-Forwarded-For entries appended by our own proxies; 0 trusts only the socket peer
    trusted_proxy_hops: int = 0

    # Tokens
    jwt_algorithm: str = 'HS256'
    access_token_expire_days: int = 1
    refresh_token_expire_days: int = 30

    # Failed-login backoff
    login_max_attempts: int = 5
    login_base_lockout_seconds: int = 60

    # Sliding-window limits
    refresh_rate_limit: int = 10
    refresh_rate_window_seconds: int = 900
    contact_rate_limit: int = 3
    contact_rate_window_seconds: int = 60

    # "memory" for a single instance, "redis" when running several
    security_store: str = 'memory'
    redis_url: Optional[str] = None

    # Side channels
    brevo_api_key: Optional[str] = None
    email_from: str = 'no-reply@gradebook.app'
    email_from_name: str = 'GradeBook'
    email_timeout_seconds: float = 10.0
    frontend_url: str = 'http://localhost:3000'
    vapid_public_key: Optional[str] = None

    model_config = {
        'env_file': '.env',
        'extra': 'ignore'
    }

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == 'production'

settings = Settings()
