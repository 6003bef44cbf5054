"""
Application settings and configuration management.

Uses Pydantic Settings for validation and environment variable support.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class LLMSettings(BaseSettings):
    """Model backend configuration."""

    backend: Literal["completions", "responses"] = Field(
        default="completions",
        description="Backend protocol: 'completions' sends a message array "
                    "(LiteLLM acompletion), 'responses' sends a flattened transcript "
                    "(LiteLLM aresponses).",
    )
    model: str = Field(
        default="gpt-4o-mini",
        description="LiteLLM model string used when a request does not name one, "
                    "e.g. 'gpt-4o-mini', 'openai/gpt-4.1', 'anthropic/claude-3-5-haiku-latest'.",
    )
    api_key: str = Field(default="", description="API key for the model's provider")
    api_base: str | None = Field(default=None, description="Override the provider base URL")
    temperature: float | None = Field(default=None, description="Sampling temperature")
    max_tokens: int | None = Field(default=None, description="Maximum tokens in response")
    timeout: float | None = Field(
        default=None, description="Transport timeout in seconds (None: provider default)"
    )

    model_config = SettingsConfigDict(env_prefix="LLM_")


class ServerSettings(BaseSettings):
    """HTTP endpoint configuration."""

    host: str = Field(default="0.0.0.0", description="Bind address")
    port: int = Field(default=3000, description="Bind port")
    auth_token: str = Field(
        default="",
        description="Bearer token callers must present. Requests are rejected "
                    "while this is empty.",
    )
    cors_origins: list[str] = Field(
        default_factory=lambda: ["*"],
        description="Allowed CORS origins. Set via SERVER__CORS_ORIGINS='[\"https://a.example\"]'",
    )
    default_channel: str = Field(
        default="ccc", description="Channel used when a request omits 'channel'"
    )
    default_user_id: str = Field(
        default="111", description="User id used when a request omits 'userId'"
    )

    model_config = SettingsConfigDict(env_prefix="SERVER_")


class ContextSettings(BaseSettings):
    """Retrieved-context store configuration."""

    documents: dict[str, str] = Field(
        default_factory=dict,
        description="Static key -> text entries injected into every prompt. "
                    "Set via CONTEXT__DOCUMENTS='{\"doc1\": \"...\"}'",
    )
    documents_file: Path | None = Field(
        default=None,
        description="Optional JSON file with a key -> text object, merged after 'documents'",
    )
    system_template_path: Path | None = Field(
        default=None,
        description="Optional system prompt template with a {context_block} placeholder. "
                    "If None, the bundled prompts/system.txt is used.",
    )

    model_config = SettingsConfigDict(env_prefix="CONTEXT_")


class ToolSettings(BaseSettings):
    """External tool configuration."""

    mcp_server_command: list[str] = Field(
        default_factory=list,
        description="argv of an MCP server to spawn over stdio, e.g. "
                    "TOOLS__MCP_SERVER_COMMAND='[\"node\", \"tools/index.js\"]'. "
                    "If empty, no MCP tools are registered.",
    )
    mcp_server_env: dict[str, str] | None = Field(
        default=None, description="Environment for the MCP server subprocess"
    )

    model_config = SettingsConfigDict(env_prefix="TOOL_")


class Settings(BaseSettings):
    """Main application settings."""

    # Environment
    environment: Literal["development", "production"] = Field(
        default="development", description="Deployment environment"
    )

    # Logging
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(
        default="INFO", description="Logging level"
    )
    log_file: Path | None = Field(default=None, description="Log file path")

    # Sub-configurations
    llm: LLMSettings = Field(default_factory=LLMSettings)
    server: ServerSettings = Field(default_factory=ServerSettings)
    context: ContextSettings = Field(default_factory=ContextSettings)
    tools: ToolSettings = Field(default_factory=ToolSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )


# Global settings instance
_settings: Settings | None = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def load_settings(env_file: str | Path | None = None) -> Settings:
    """
    Load settings from file and environment.

    Args:
        env_file: Path to .env file (optional)

    Returns:
        Loaded settings instance
    """
    global _settings
    if env_file:
        _settings = Settings(_env_file=env_file)
    else:
        _settings = Settings()
    return _settings
