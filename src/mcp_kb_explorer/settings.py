"""Application settings (env/.env)."""

from __future__ import annotations

from pydantic import AnyHttpUrl, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Settings for the MCP server and the Stack API."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    stack_api_url: AnyHttpUrl = Field(
        default="https://api.stack-ai.com",
        alias="STACK_API_URL",
    )
    # Either a ready-made token, or the credentials to log in with.
    stack_api_token: str | None = Field(default=None, alias="STACK_API_TOKEN")
    stack_auth_url: AnyHttpUrl = Field(
        default="https://sb.stack-ai.com",
        alias="STACK_AUTH_URL",
    )
    stack_anon_key: str | None = Field(default=None, alias="STACK_ANON_KEY")
    stack_email: str | None = Field(default=None, alias="STACK_EMAIL")
    stack_password: str | None = Field(default=None, alias="STACK_PASSWORD")

    connection_provider: str = Field(default="gdrive", alias="CONNECTION_PROVIDER")
    page_delay_seconds: float = Field(default=0.1, alias="PAGE_DELAY_SECONDS", ge=0)

    mcp_api_key: str = Field(alias="MCP_API_KEY", min_length=1)
    mcp_host: str = Field(default="127.0.0.1", alias="MCP_HOST")
    mcp_port: int = Field(default=5005, alias="MCP_PORT", ge=1, le=65535)

    http_timeout_seconds: float = Field(
        default=15.0,
        alias="HTTP_TIMEOUT_SECONDS",
        gt=0,
    )
    log_level: str = Field(default="info", alias="LOG_LEVEL")

    @model_validator(mode="after")
    def _credentials_present(self) -> Settings:
        if self.stack_api_token:
            return self
        if not (self.stack_email and self.stack_password and self.stack_anon_key):
            raise ValueError(
                "Set STACK_API_TOKEN, or STACK_EMAIL, STACK_PASSWORD and STACK_ANON_KEY"
            )
        return self
