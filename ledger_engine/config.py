import json
import os
import re
from pathlib import Path
from typing import Annotated, List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = Field(default="Payment Ledger API", validation_alias="PROJECT_NAME")
    environment: str = Field(default="dev", validation_alias="ENVIRONMENT")
    build_version: Optional[str] = Field(default=None, validation_alias="BUILD_VERSION")
    database_url: str = Field(
        default="sqlite+pysqlite:///./ledger-local.db", validation_alias="DATABASE_URL"
    )
    # API prefix used by FastAPI router include (e.g. "/api/v1").
    api_prefix: str = Field(default="", validation_alias="API_V1_STR")
    enable_docs: Optional[bool] = Field(default=None, validation_alias="ENABLE_DOCS")
    cors_origins: Annotated[List[str], NoDecode] = Field(
        default_factory=list, validation_alias="CORS_ORIGINS"
    )
    run_migrations_on_start: bool = Field(default=False, validation_alias="RUN_MIGRATIONS_ON_START")

    # Ledger policy.
    base_currency: str = Field(default="AED", validation_alias="BASE_CURRENCY")
    allocation_epsilon: float = Field(default=0.01, validation_alias="ALLOCATION_EPSILON")
    rate_epsilon: float = Field(default=0.000001, validation_alias="RATE_EPSILON")

    # Control accounts: looked up by code first, then by name.
    accounts_payable_code: Optional[str] = Field(default=None, validation_alias="GL_AP_ACCOUNT_CODE")
    accounts_payable_name: str = Field(default="Accounts Payable", validation_alias="GL_AP_ACCOUNT_NAME")
    accounts_receivable_code: Optional[str] = Field(
        default=None, validation_alias="GL_AR_ACCOUNT_CODE"
    )
    accounts_receivable_name: str = Field(
        default="Accounts Receivable", validation_alias="GL_AR_ACCOUNT_NAME"
    )
    cash_account_code: Optional[str] = Field(default=None, validation_alias="GL_CASH_ACCOUNT_CODE")
    cash_account_name: str = Field(default="Cash in Hand", validation_alias="GL_CASH_ACCOUNT_NAME")

    @field_validator("base_currency")
    @classmethod
    def normalize_base_currency(cls, v: str) -> str:
        s = str(v or "").strip().upper()
        if not s:
            raise ValueError("BASE_CURRENCY must not be empty")
        return s

    @field_validator("allocation_epsilon", "rate_epsilon")
    @classmethod
    def validate_epsilon(cls, v: float) -> float:
        if v < 0:
            raise ValueError("tolerances must be >= 0")
        return v

    @field_validator("cors_origins", mode="before")
    @classmethod
    def parse_cors_origins(cls, value):
        def _normalize_origin(o: str) -> str:
            s = str(o).strip().strip('"').strip("'")
            # Browsers send the Origin header without a trailing slash.
            if s.endswith("/"):
                s = s[:-1]
            return s

        if value is None or value == "":
            return []

        if isinstance(value, str):
            s = value.strip()
            try:
                parsed = json.loads(s)
                if isinstance(parsed, str):
                    return [_normalize_origin(parsed)]
                if isinstance(parsed, list):
                    return [_normalize_origin(v) for v in parsed if str(v).strip()]
                return [_normalize_origin(str(parsed))]
            except json.JSONDecodeError:
                pass

            # Accept comma-separated origins.
            return [_normalize_origin(v) for v in s.split(",") if str(v).strip()]

        return value

    @field_validator("api_prefix", mode="before")
    @classmethod
    def normalize_api_prefix(cls, v) -> str:
        if v is None:
            return ""
        s = str(v).strip()
        if not s:
            return ""
        if s.startswith("/api/") or s == "/api":
            return s

        # Git Bash on Windows may rewrite "/api/v1" into a filesystem path.
        m = re.search(r"(/api/[^\s]+)$", s.replace("\\", "/"))
        if m:
            return m.group(1)
        if s.startswith("api/"):
            return f"/{s}"
        return s

    @field_validator("database_url", mode="before")
    @classmethod
    def normalize_database_url(cls, v) -> str:
        """Normalise Postgres schemes for psycopg3 and anchor relative sqlite paths.

        A relative sqlite URL such as ``sqlite+pysqlite:///./ledger-local.db``
        resolves against the current working directory, which differs between
        uvicorn, alembic and pytest runs. Anchor it at the project root.
        """

        if v is None:
            return v

        s = str(v).strip()
        if not s:
            return s

        if s.startswith("postgres://"):
            s = "postgresql://" + s[len("postgres://") :]
        if s.startswith("postgresql://"):
            return "postgresql+psycopg://" + s[len("postgresql://") :]
        if s.startswith("postgresql+psycopg2://"):
            return "postgresql+psycopg://" + s[len("postgresql+psycopg2://") :]

        if not s.startswith("sqlite"):
            return s

        marker = ":///"
        i = s.find(marker)
        if i == -1:
            return s

        path_part = s[i + len(marker) :]
        if path_part.startswith("/") or re.match(r"^[A-Za-z]:/", path_part):
            return s
        if path_part.startswith("./") or path_part.startswith(".\\"):
            project_root = Path(__file__).resolve().parents[1]
            abs_path = (project_root / path_part[2:]).resolve().as_posix()
            return f"{s[: i + len(marker)]}{abs_path}"

        return s

    @model_validator(mode="after")
    def apply_environment_rules(self) -> "Settings":
        env = str(self.environment or "dev").strip().lower()

        if self.enable_docs is None:
            self.enable_docs = env in {"dev", "development", "test"}

        if env in {"prod", "production"}:
            if not os.getenv("DATABASE_URL"):
                raise ValueError("DATABASE_URL must be explicitly set in production")
            if self.database_url.startswith("sqlite"):
                raise ValueError("SQLite DATABASE_URL is not allowed in production")
            if not self.cors_origins:
                raise ValueError("CORS_ORIGINS must be explicitly set in production")
        elif not self.cors_origins:
            self.cors_origins = [
                "http://localhost:5173",
                "http://localhost:3000",
                "http://127.0.0.1:5173",
            ]

        return self


settings = Settings()
