"""
Settings for the team manager API.

Every value comes from an environment variable of the same name (case
insensitive) or from a local .env file. Pydantic checks the types when
the process starts, so a malformed value stops the API before it serves
anything.

The two mock flags swap Snowflake and portrait storage for in-memory
stand-ins; with both on, the API needs no credentials at all.
"""

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from ..core.portraits import DEFAULT_PLACEHOLDER_TEMPLATE
from ..core.results import STRATEGIES


def _split_csv(value: str) -> list[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


class Settings(BaseSettings):
    """
    Runtime configuration.

    List-valued settings (API keys, CORS origins) are plain comma
    separated strings so they stay easy to set from a shell.
    """

    # HTTP surface
    api_title: str = "Swim Team Manager API"
    api_version: str = "v1"
    api_keys: str = Field(
        default="dev-key-1,dev-key-2",
        description="Accepted X-API-Key values, comma separated; several keys allow rotation."
    )
    cors_origins: str = Field(
        default="http://localhost:3000,http://localhost:5173",
        description="Allowed browser origins, comma separated, or * to allow any."
    )

    # Team database
    snowflake_account: str = Field(default="", description="Account locator of the team database")
    snowflake_user: str = Field(default="", description="Login of the API's database user")
    snowflake_password: str = Field(default="", description="Password login; leave empty for key-pair auth")
    snowflake_private_key_path: Optional[str] = Field(
        default=None,
        description="PEM file with the key-pair private key"
    )
    snowflake_private_key_base64: Optional[str] = Field(
        default=None,
        description="Same private key as base64 text, for hosts without a writable disk"
    )
    snowflake_database: str = Field(default="TEAMMANAGER", description="Database holding the team schema")
    snowflake_schema: str = Field(default="SWIMTEAM", description="Schema with the team tables and views")
    snowflake_warehouse: str = Field(default="COMPUTE_WH", description="Warehouse that runs the queries")
    snowflake_role: Optional[str] = Field(default=None, description="Role to assume after login")
    snowflake_mock_mode: bool = Field(
        default=False,
        description="Serve data from an in-memory database instead of Snowflake."
    )

    # Athlete portraits (Cloudflare R2)
    r2_account_id: str = Field(default="", description="Cloudflare account owning the bucket")
    r2_access_key_id: str = Field(default="", description="R2 token key id")
    r2_secret_access_key: str = Field(default="", description="R2 token secret")
    r2_bucket_name: str = Field(default="swimteam-portraits", description="Bucket with athlete portraits")
    r2_endpoint_url: Optional[str] = Field(
        default=None,
        description="Explicit S3 endpoint; derived from r2_account_id when unset."
    )
    r2_mock_mode: bool = Field(
        default=False,
        description="Keep portraits in memory instead of R2."
    )
    portrait_placeholder_url: str = Field(
        default=DEFAULT_PLACEHOLDER_TEMPLATE,
        description="Avatar shown when a portrait is missing; {name} is the athlete's name."
    )

    # Results
    personal_best_strategy: str = Field(
        default="first_match",
        description="How personal bests are picked: first_match (store order) or fastest_time."
    )

    log_level: str = Field(default="INFO", description="Root logger level")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    @field_validator("personal_best_strategy")
    @classmethod
    def _known_strategy(cls, value: str) -> str:
        if value not in STRATEGIES:
            raise ValueError(f"Unknown personal best strategy: {value!r}")
        return value

    @property
    def api_keys_list(self) -> list[str]:
        return _split_csv(self.api_keys)

    @property
    def cors_origins_list(self) -> list[str]:
        if self.cors_origins.strip() == "*":
            return ["*"]
        return _split_csv(self.cors_origins)

    @property
    def r2_endpoint(self) -> str:
        """S3 endpoint for the portrait bucket."""
        if self.r2_endpoint_url:
            return self.r2_endpoint_url
        return f"https://{self.r2_account_id}.r2.cloudflarestorage.com"

    def validate_required_fields(self) -> list[str]:
        """
        Names of the environment variables that still need a value.

        Only services that are not mocked are checked, which is why this
        runs at startup and in the readiness check instead of as a
        pydantic validator.
        """
        missing = []
        if not self.snowflake_mock_mode:
            missing.extend(self._missing_snowflake_fields())
        if not self.r2_mock_mode:
            missing.extend(self._missing_r2_fields())
        return missing

    def _missing_snowflake_fields(self) -> list[str]:
        missing = []
        if not self.snowflake_account:
            missing.append("SNOWFLAKE_ACCOUNT")
        if not self.snowflake_user:
            missing.append("SNOWFLAKE_USER")
        has_key = self.snowflake_private_key_path or self.snowflake_private_key_base64
        if not (self.snowflake_password or has_key):
            missing.append("SNOWFLAKE_PASSWORD or SNOWFLAKE_PRIVATE_KEY_PATH")
        return missing

    def _missing_r2_fields(self) -> list[str]:
        required = {
            "R2_ACCOUNT_ID": self.r2_account_id or self.r2_endpoint_url,
            "R2_ACCESS_KEY_ID": self.r2_access_key_id,
            "R2_SECRET_ACCESS_KEY": self.r2_secret_access_key,
        }
        return [name for name, value in required.items() if not value]


@lru_cache()
def get_settings() -> Settings:
    """
    Process-wide settings, read once.

    Tests override this dependency or call get_settings.cache_clear().
    """
    return Settings()
