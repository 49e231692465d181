import json
import re
from typing import Annotated, List, Optional

from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from ctrm.services.products import ALL_INSTRUMENTS


def _split_list_value(value: str) -> List[str]:
    """Accept JSON, Python-ish list strings, or comma-separated values."""
    s = value.strip()
    # Many .env / docker setups wrap JSON in quotes. Strip a single pair.
    if (s.startswith('"') and s.endswith('"')) or (s.startswith("'") and s.endswith("'")):
        s = s[1:-1].strip()

    try:
        parsed = json.loads(s)
        if isinstance(parsed, list):
            return [str(v).strip() for v in parsed if str(v).strip()]
        return [str(parsed).strip()]
    except json.JSONDecodeError:
        pass

    if s.startswith("[") and s.endswith("]") and "'" in s and '"' not in s:
        try:
            parsed = json.loads(s.replace("'", '"'))
            if isinstance(parsed, list):
                return [str(v).strip() for v in parsed if str(v).strip()]
        except json.JSONDecodeError:
            pass

    return [v.strip() for v in s.split(",") if v.strip()]


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env", case_sensitive=False, extra="ignore", populate_by_name=True
    )

    app_name: str = Field(default="CTRM Exposure API", validation_alias="PROJECT_NAME")
    environment: str = Field(default="dev", validation_alias="ENVIRONMENT")
    build_version: Optional[str] = Field(default=None, validation_alias="BUILD_VERSION")
    # API prefix used by FastAPI router include (e.g. "/api/v1").
    api_prefix: str = Field(default="", validation_alias="API_V1_STR")
    enable_docs: Optional[bool] = Field(
        default=None, validation_alias="ENABLE_DOCS", validate_default=True
    )
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=list, validation_alias="CORS_ORIGINS", validate_default=True
    )
    log_level: str = Field(default="INFO", validation_alias="LOG_LEVEL")

    # Instruments every exposure grid carries, even when no trade touches them.
    default_allowed_products: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: list(ALL_INSTRUMENTS),
        validation_alias="DEFAULT_ALLOWED_PRODUCTS",
    )
    # Number of month codes returned by the default period list.
    default_period_count: int = Field(default=12, validation_alias="DEFAULT_PERIOD_COUNT")

    @field_validator("enable_docs", mode="before")
    @classmethod
    def default_enable_docs(cls, value, info: ValidationInfo):
        if value is None or value == "":
            env = str(info.data.get("environment", "dev") or "dev").lower()
            return env in {"dev", "development", "test"}
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "y", "on"}
        return bool(value)

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_and_default_cors_origins(cls, value, info: ValidationInfo):
        env = str(info.data.get("environment", "dev") or "dev").lower()

        def _normalize_origin(o: str) -> str:
            s = str(o).strip().strip('"').strip("'")
            # Browsers send the Origin header without a trailing slash.
            if s.endswith("/"):
                s = s[:-1]
            return s

        if value is None or value == "" or value == []:
            if env in {"prod", "production"}:
                raise ValueError("CORS_ORIGINS must be explicitly set in production")
            return [
                "http://localhost:5173",
                "http://localhost:3000",
                "http://127.0.0.1:5173",
            ]

        if isinstance(value, str):
            return [_normalize_origin(v) for v in _split_list_value(value)]

        return [_normalize_origin(v) for v in value]

    @field_validator("default_allowed_products", mode="before")
    @classmethod
    def parse_allowed_products(cls, value):
        if isinstance(value, str):
            return _split_list_value(value)
        return value

    @field_validator("default_period_count")
    @classmethod
    def validate_period_count(cls, v: int) -> int:
        if v < 1:
            raise ValueError("DEFAULT_PERIOD_COUNT must be at least 1")
        return v

    @field_validator("log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v) -> str:
        return str(v or "INFO").strip().upper()

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, v) -> str:
        """
        Normalize API prefix coming from env/.env.

        On Windows Git Bash (MSYS), values like "/api/v1" may sometimes appear as a Windows path
        (e.g. "C:/Program Files/Git/api/v1"). When that happens, extract the trailing "/api/..."
        portion so routing keeps working.
        """
        if v is None:
            return ""
        s = str(v).strip()
        if not s:
            return ""

        if s.startswith("/api/") or s == "/api":
            return s

        m = re.search(r"(/api/[^\s]+)$", s.replace("\\", "/"))
        if m:
            return m.group(1)

        if s.startswith("api/") or s == "api":
            return f"/{s}"

        return s


settings = Settings()
