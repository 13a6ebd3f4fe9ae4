from __future__ import annotations

from typing import ClassVar, final

from pydantic import AliasChoices, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


_CORS_ALLOW_ORIGINS_VALIDATION_ALIAS = AliasChoices("CORS_ALLOW_ORIGINS", "CORS_ORIGINS")

_STORAGE_SIGNING_SECRET_PLACEHOLDER = "storage_signing_secret_change_me"


def _split_csv(value: str | None) -> list[str]:
    if not value:
        return []
    return [x.strip() for x in value.split(",") if x.strip()]


@final
class Settings(BaseSettings):
    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        populate_by_name=True,
        extra="ignore",
    )
    app_name: str = "Tiny Box Backend"
    api_prefix: str = "/api/v1"

    # Environment (ENVIRONMENT): development | production
    environment: str = "development"

    database_url: str = "sqlite:///./dev.db"
    # Refuse to start when the live schema lacks mapped columns (see db.verify_schema).
    verify_schema_on_startup: bool = True

    # Primary env: CORS_ALLOW_ORIGINS; also accept CORS_ORIGINS as alias.
    cors_allow_origins: str = Field(
        default="*",
        validation_alias=_CORS_ALLOW_ORIGINS_VALIDATION_ALIAS,
    )

    # Share URLs are built as {public_base_url}/share/{token}
    public_base_url: str = "http://localhost:8000"

    # Uploads / local object storage
    storage_local_dir: str = ".data/objects"
    storage_signing_secret: str = _STORAGE_SIGNING_SECRET_PLACEHOLDER
    upload_max_size_bytes: int = 50 * 1024 * 1024

    # S3 compatible storage
    s3_endpoint_url: str = ""
    s3_region: str = ""
    s3_bucket: str = ""
    s3_access_key_id: str = ""
    s3_secret_access_key: str = ""
    s3_force_path_style: bool = False
    # Optional CDN / public bucket origin used for public object URLs.
    s3_public_base_url: str = ""

    # E-mail delivery (Resend). Both values are required to send share e-mails.
    resend_api_key: str = ""
    resend_from_email: str = ""
    resend_base_url: str = "https://api.resend.com"
    email_request_timeout_seconds: float = 15.0

    log_level: str = "INFO"

    @model_validator(mode="after")
    def _validate_production_settings(self) -> "Settings":  # pyright: ignore[reportUnusedFunction]
        if self.environment.strip().lower() != "production":
            return self

        errors: list[str] = []

        signing_secret = self.storage_signing_secret.strip()
        if not signing_secret or signing_secret == _STORAGE_SIGNING_SECRET_PLACEHOLDER:
            errors.append("STORAGE_SIGNING_SECRET must be set in production")

        cors_v = self.cors_allow_origins.strip()
        if not cors_v or cors_v == "*":
            errors.append("CORS_ALLOW_ORIGINS must be explicit (not '*') in production")

        public_base = self.public_base_url.strip().lower()
        if not public_base or "localhost" in public_base or "127.0.0.1" in public_base:
            errors.append("PUBLIC_BASE_URL must point at the public origin in production")

        if self.database_url.strip().lower().startswith("sqlite"):
            errors.append("DATABASE_URL must not use sqlite in production")

        # If any S3 setting is provided, require the full set to avoid silently falling back to local storage.
        s3_fields = {
            "S3_BUCKET": self.s3_bucket.strip(),
            "S3_ENDPOINT_URL": self.s3_endpoint_url.strip(),
            "S3_ACCESS_KEY_ID": self.s3_access_key_id.strip(),
            "S3_SECRET_ACCESS_KEY": self.s3_secret_access_key.strip(),
        }
        if any(v for v in s3_fields.values()) and any(not v for v in s3_fields.values()):
            missing = ",".join([k for k, v in s3_fields.items() if not v])
            errors.append(f"S3 config incomplete in production; missing: {missing}")

        if bool(self.resend_api_key.strip()) != bool(self.resend_from_email.strip()):
            errors.append("RESEND_API_KEY and RESEND_FROM_EMAIL must be set together")

        if errors:
            raise ValueError("Invalid production settings: " + "; ".join(errors))
        return self

    def cors_origins_list(self) -> list[str]:
        v = self.cors_allow_origins.strip()
        if not v:
            return []
        if v == "*":
            return ["*"]
        return _split_csv(v)

    def s3_configured(self) -> bool:
        return bool(
            self.s3_bucket.strip()
            and self.s3_endpoint_url.strip()
            and self.s3_access_key_id.strip()
            and self.s3_secret_access_key.strip()
        )

    def email_configured(self) -> bool:
        return bool(self.resend_api_key.strip() and self.resend_from_email.strip())

    def security_warnings(self) -> list[str]:
        warnings: list[str] = []
        signing_secret = self.storage_signing_secret.strip()
        if not signing_secret or signing_secret == _STORAGE_SIGNING_SECRET_PLACEHOLDER:
            warnings.append("STORAGE_SIGNING_SECRET is missing or using placeholder value")
        if self.cors_allow_origins.strip() == "*":
            warnings.append("CORS_ALLOW_ORIGINS='*' is permissive")
        if not self.email_configured():
            warnings.append(
                "RESEND_API_KEY/RESEND_FROM_EMAIL not set; share e-mails are unavailable"
            )
        return warnings


# The validator is invoked by Pydantic at runtime.
_ = Settings._validate_production_settings


settings = Settings()
