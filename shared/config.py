"""
Shared configuration management for the Mehm API Gateway.
"""

from typing import List

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from shared.errors import ConfigurationError


class BaseConfig(BaseSettings):
    """Base configuration class with common settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",
    )

    # Environment
    gateway_env: str = Field(default="local")
    log_level: str = Field(default="info")

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=8080, ge=1, le=65535)

    # CORS
    cors_allowed_origins: str = Field(default="*")

    @property
    def allowed_origins(self) -> List[str]:
        return [origin.strip() for origin in self.cors_allowed_origins.split(",") if origin.strip()]


class GatewayConfig(BaseConfig):
    """Gateway configuration; upstream hosts and the signing secret are mandatory."""

    users_host: str = Field(min_length=1)
    mehms_host: str = Field(min_length=1)
    secret_key: str = Field(min_length=1)
    token_algorithms: str = Field(default="HS256")

    @property
    def algorithms(self) -> List[str]:
        return [alg.strip() for alg in self.token_algorithms.split(",") if alg.strip()]


def get_config(**overrides) -> GatewayConfig:
    """Load gateway configuration from the environment, failing loudly if incomplete."""
    try:
        return GatewayConfig(**overrides)
    except ValidationError as exc:
        fields = sorted({str(error["loc"][0]).upper() for error in exc.errors() if error.get("loc")})
        raise ConfigurationError(
            f"invalid or missing configuration: {', '.join(fields)}",
            details={"errors": exc.errors(include_url=False)},
        ) from exc
