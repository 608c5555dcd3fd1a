from __future__ import annotations

from pydantic import Field, SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict

KNOWN_PROVIDERS = ("zai", "gemini")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    pg_dsn: str | None = Field(default=None, alias="PG_DSN")
    pg_schema: str = Field(default="public", alias="PG_SCHEMA")
    postgres_host: str | None = Field(default=None, alias="POSTGRES_HOST")
    postgres_port: int = Field(default=5432, alias="POSTGRES_PORT")
    postgres_db: str | None = Field(default=None, alias="POSTGRES_DB")
    postgres_user: str | None = Field(default=None, alias="POSTGRES_USER")
    postgres_password: SecretStr | None = Field(default=None, alias="POSTGRES_PASSWORD")

    s3_endpoint: str | None = Field(default=None, alias="S3_ENDPOINT")
    s3_access_key: str | None = Field(default=None, alias="S3_ACCESS_KEY")
    s3_secret_key: SecretStr | None = Field(default=None, alias="S3_SECRET_KEY")
    s3_region: str = Field(default="us-east-1", alias="S3_REGION")

    nats_url: str | None = Field(default=None, alias="NATS_URL")
    nats_subject_extracted: str = Field(default="book.content.extracted", alias="NATS_SUBJECT_EXTRACTED")

    # Static order: first entry is the primary provider, the rest are fallbacks.
    chat_provider_order: str = Field(default="zai,gemini", alias="CHAT_PROVIDER_ORDER")

    zai_api_key: SecretStr | None = Field(default=None, alias="ZAI_API_KEY")
    zai_base_url: str = Field(default="https://api.z.ai/api/paas/v4", alias="ZAI_BASE_URL")
    zai_model: str = Field(default="glm-4.5-flash", alias="ZAI_MODEL")

    gemini_api_key: SecretStr | None = Field(default=None, alias="GEMINI_API_KEY")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        alias="GEMINI_BASE_URL",
    )
    gemini_model: str = Field(default="gemini-1.5-flash", alias="GEMINI_MODEL")

    chat_provider_timeout_s: float = Field(default=60.0, alias="CHAT_PROVIDER_TIMEOUT_S")
    chat_retry_backoff_s: float = Field(default=1.0, ge=0, alias="CHAT_RETRY_BACKOFF_S")
    chat_max_output_tokens: int = Field(default=8000, alias="CHAT_MAX_OUTPUT_TOKENS")
    chat_temperature: float = Field(default=0.3, alias="CHAT_TEMPERATURE")
    chat_context_max_chars: int = Field(default=50_000, alias="CHAT_CONTEXT_MAX_CHARS")
    chat_history_max_messages: int = Field(default=20, alias="CHAT_HISTORY_MAX_MESSAGES")
    chat_history_max_chars: int = Field(default=12_000, alias="CHAT_HISTORY_MAX_CHARS")
    chat_message_max_chars: int = Field(default=4_000, alias="CHAT_MESSAGE_MAX_CHARS")

    extraction_stale_after_s: int = Field(default=900, alias="EXTRACTION_STALE_AFTER_S")
    extraction_max_bytes: int = Field(default=200 * 1024 * 1024, alias="EXTRACTION_MAX_BYTES")
    extraction_fetch_timeout_s: float = Field(default=120.0, alias="EXTRACTION_FETCH_TIMEOUT_S")
    # Local paths and file:// locations are read only beneath this directory; unset disables them.
    extraction_local_root: str | None = Field(default=None, alias="EXTRACTION_LOCAL_ROOT")

    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    admin_roles: str = Field(default="ADMIN,SUPER_ADMIN", alias="ADMIN_ROLES")

    def provider_order(self) -> list[str]:
        names = [n.strip().lower() for n in self.chat_provider_order.split(",") if n.strip()]
        unknown = [n for n in names if n not in KNOWN_PROVIDERS]
        if unknown:
            raise ValueError(
                f"Unknown chat provider(s) in CHAT_PROVIDER_ORDER: {', '.join(unknown)} "
                f"(known: {', '.join(KNOWN_PROVIDERS)})"
            )
        if not names:
            raise ValueError("CHAT_PROVIDER_ORDER must name at least one provider")
        return names

    def admin_role_set(self) -> frozenset[str]:
        return frozenset(r.strip().upper() for r in self.admin_roles.split(",") if r.strip())


def load_settings() -> Settings:
    return Settings()
