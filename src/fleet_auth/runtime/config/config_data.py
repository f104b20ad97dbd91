"""Pydantic models for parsing the config.yaml configuration file.

This module contains Pydantic models that correspond to the structure of config.yaml.
These models handle validation and type conversion of the YAML configuration data.
"""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, computed_field


class AppConfig(BaseModel):
    """Application configuration model."""

    environment: Literal["development", "production", "test"] = Field(
        default="development", description="Application environment"
    )
    name: str = Field(default="fleet-auth", description="Application name")


class LoggingConfig(BaseModel):
    """Logging configuration model."""

    level: str = Field(default="INFO", description="Logging level")
    format: Literal["json", "plain"] = Field(default="plain", description="Log format")
    file: str | None = Field(default=None, description="Log file path")
    max_size_mb: int = Field(default=10, description="Maximum log file size in MB")
    backup_count: int = Field(
        default=5, description="Number of backup log files to keep"
    )


class RedisConfig(BaseModel):
    """Redis configuration model."""

    enabled: bool = Field(default=False, description="Enable Redis service")
    url: str = Field(default="", description="Redis connection URL")
    password: str | None = Field(
        default=None, description="Password for Redis authentication"
    )
    socket_timeout: float = Field(default=2.0, description="Socket timeout in seconds")

    @computed_field
    @property
    def connection_string(self) -> str:
        """Construct the Redis connection string with password if provided."""
        if self.password:
            if "@" in self.url:
                # URL already has auth info
                return self.url
            parts = self.url.split("://", 1)
            if len(parts) == 2:
                scheme, rest = parts
                return f"{scheme}://:{self.password}@{rest}"
        return self.url


class DocumentStoreConfig(BaseModel):
    """Document store configuration model."""

    backend: Literal["memory", "redis"] = Field(
        default="memory", description="Document store backend"
    )
    key_prefix: str = Field(default="docs", description="Key namespace for documents")
    transaction_attempts: int = Field(
        default=5,
        ge=1,
        description="How many times a conflicting transaction is re-run",
    )


class VerificationConfig(BaseModel):
    """Phone verification provider configuration."""

    base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Hosted verification provider REST endpoint",
    )
    api_key: str = Field(default="", description="Provider API key")
    timeout_seconds: float = Field(default=10.0, description="HTTP timeout")
    code_length: int = Field(default=6, description="Digits in a one-time code")
    max_code_attempts: int = Field(
        default=2, ge=1, description="Code submissions allowed per challenge"
    )
    challenge_ttl_seconds: int = Field(
        default=300, description="Lifetime of an issued challenge"
    )


class AdminProfileConfig(BaseModel):
    """Display profile written for a first-seen administrator."""

    first_name: str = Field(default="Admin")
    last_name: str = Field(default="JezX")
    email: str = Field(default="admin@jezx.in")


class IdentityConfig(BaseModel):
    """Identity resolution configuration."""

    admin_phone_numbers: list[str] = Field(
        default_factory=lambda: ["+919385722102"],
        description="E.164 numbers that always resolve to an administrator",
    )
    admin_profile: AdminProfileConfig = Field(default_factory=AdminProfileConfig)
    default_country_code: str = Field(
        default="+971", description="Prefix applied to numbers without a leading +"
    )
    support_contact: str = Field(
        default="+91 9385 722102", description="Customer care line shown to users"
    )


class ProvisioningConfig(BaseModel):
    """Driver account provisioning configuration."""

    login_email_domain: str = Field(
        default="booba-rides.com", description="Domain for synthesized driver logins"
    )
    temp_password_length: int = Field(default=8, ge=3)
    base_url: str = Field(
        default="https://identitytoolkit.googleapis.com/v1",
        description="Account administration REST endpoint",
    )
    api_key: str = Field(default="", description="Account administration API key")
    timeout_seconds: float = Field(default=10.0)


class ConfigData(BaseModel):
    """Root configuration model that matches the config.yaml structure."""

    app: AppConfig = Field(
        default_factory=AppConfig, description="Application configuration"
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig, description="Logging configuration"
    )
    redis: RedisConfig = Field(
        default_factory=RedisConfig, description="Redis configuration"
    )
    document_store: DocumentStoreConfig = Field(
        default_factory=DocumentStoreConfig, description="Document store configuration"
    )
    verification: VerificationConfig = Field(
        default_factory=VerificationConfig, description="Verification provider"
    )
    identity: IdentityConfig = Field(
        default_factory=IdentityConfig, description="Identity resolution"
    )
    provisioning: ProvisioningConfig = Field(
        default_factory=ProvisioningConfig, description="Driver provisioning"
    )
