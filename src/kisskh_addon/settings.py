from pydantic_settings import BaseSettings
from typing import Optional


class Settings(BaseSettings):
    """KissKH addon settings.

    All settings can be overridden via environment variables or .env file.
    Environment variables use uppercase names (e.g., MEDIAFLOW_PROXY_URL=...).

    Retry timing:
        Backoff before retry ``n`` is ``n * base_delay`` seconds. Stream
        endpoint calls use ``stream_retry_delay``, everything else uses
        ``api_retry_delay``.
    """
    base_url: str = "https://kisskh.ovh"
    host: str = "0.0.0.0"
    port: int = 7000

    # MediaFlow relay
    mediaflow_proxy_url: str = ""
    mediaflow_api_password: str = ""

    # Upstream HTTP
    request_retries: int = 3
    request_timeout: float = 20.0
    script_timeout: float = 15.0
    api_retry_delay: float = 1.0
    stream_retry_delay: float = 1.5
    cinemeta_timeout: float = 10.0

    # Token sandbox
    sandbox_timeout_ms: int = 5000
    script_failure_threshold: int = 3  # 0 = never drop the cached script
    token_function: Optional[str] = None

    subtitle_language: str = "fr"

    log_level: str = "INFO"
    json_logs: bool = False
    testing: bool = False

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @property
    def api_url(self) -> str:
        return f"{self.base_url.rstrip('/')}/api/DramaList"

    @property
    def relay_configured(self) -> bool:
        return bool(self.mediaflow_proxy_url and self.mediaflow_api_password)


settings = Settings()
