import logging
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env", env_file_encoding="utf-8", extra="ignore"
    )

    # Policy (download settings) endpoint
    policy_base_url: str = "http://localhost:8080/"
    policy_settings_path: str = "download_settings.php"
    # 失敗時は固定間隔で無期限に再試行する (バックオフなし)
    policy_retry_delay_seconds: float = 1.0
    policy_request_timeout_seconds: float = 10.0

    # Revocation (trust authority) endpoint
    revocation_base_url: str = "http://localhost:8080/"
    revocation_path: str = "validate_signature.php"
    revocation_api_token: str = Field(default="", validation_alias="REVOCATION_API_TOKEN")
    revocation_request_timeout_seconds: float = 15.0

    # Download gate
    readiness_timeout_seconds: float = 10.0
    readiness_poll_interval_seconds: float = 0.5
    # ポリシー未取得のままタイムアウトした場合の動作。既定は fail-closed
    readiness_timeout_action: Literal["cancel", "resume"] = "cancel"
    # 失効確認サービスに到達できない場合の動作。既定は fail-closed
    revocation_unavailable_action: Literal["reject", "allow"] = "reject"
    decision_history_size: int = 200

    # Signature verification
    hash_chunk_size_bytes: int = 1024 * 1024

    # CORS Configuration
    cors_origins: str = "http://localhost:3000"

    # Application Configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8000
    log_level: str = "INFO"

    @property
    def cors_origins_list(self) -> list[str]:
        """Parse CORS origins from comma-separated string."""
        return [origin.strip() for origin in self.cors_origins.split(",")]

    @property
    def policy_url(self) -> str:
        """ポリシー取得先の完全な URL."""
        return _join_url(self.policy_base_url, self.policy_settings_path)

    @property
    def revocation_url(self) -> str:
        """失効確認先の完全な URL."""
        return _join_url(self.revocation_base_url, self.revocation_path)

    def model_post_init(self, __context: object) -> None:
        """設定値の下限を補正する。"""
        if self.readiness_poll_interval_seconds <= 0:
            logger.warning(
                "readiness_poll_interval_seconds=%s は不正なため 0.5 秒に補正します。",
                self.readiness_poll_interval_seconds,
            )
            self.readiness_poll_interval_seconds = 0.5
        if self.hash_chunk_size_bytes <= 0:
            logger.warning(
                "hash_chunk_size_bytes=%s は不正なため 1MiB に補正します。",
                self.hash_chunk_size_bytes,
            )
            self.hash_chunk_size_bytes = 1024 * 1024


def _join_url(base: str, path: str) -> str:
    if not path:
        return base
    return base.rstrip("/") + "/" + path.lstrip("/")


settings = Settings()
