from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings

ALCHEMY_SEPOLIA_URL = "https://eth-sepolia.g.alchemy.com/v2/{api_key}"


class Settings(BaseSettings):
    """Application configuration read from environment variables."""

    app_name: str = Field(default="dNFT Ticketing API")
    environment: str = Field(default="development")
    log_level: str = Field(default="INFO")
    log_format: str = Field(default="%(asctime)s %(levelname)s %(name)s %(message)s")

    # Ledger store; the in-memory store is used when no database is configured
    database_url: str | None = Field(default=None)
    seed_sample_events: bool = Field(default=True)

    # Chain gateway: "memory" runs against a process-local ledger, "web3" against an RPC node
    chain_mode: str = Field(default="memory")
    rpc_url: str | None = Field(default=None)
    alchemy_api_key: str | None = Field(default=None)
    contract_address: str | None = Field(default=None)
    organizer_private_key: str | None = Field(default=None)
    chain_id: int = Field(default=11155111)
    chain_timeout_seconds: float = Field(default=30.0)
    receipt_timeout_seconds: float = Field(default=120.0)

    # HTTP surface
    cors_origins: str = Field(default="http://localhost:3000,http://localhost:5173")
    rate_limit_requests: int = Field(default=100)
    rate_limit_window_seconds: int = Field(default=900)

    # Observability configuration
    otel_enabled: bool = Field(default=False)
    otel_service_name: str = Field(default="dnft-ticketing-api")
    otel_exporter_otlp_endpoint: str | None = Field(default=None)
    otel_exporter_otlp_headers: str | None = Field(default=None)

    class Config:
        env_file = ".env"
        case_sensitive = False

    @property
    def is_development(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def cors_origin_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]

    @property
    def resolved_rpc_url(self) -> str | None:
        if self.rpc_url:
            return self.rpc_url
        if self.alchemy_api_key:
            return ALCHEMY_SEPOLIA_URL.format(api_key=self.alchemy_api_key)
        return None


@lru_cache
def get_settings() -> Settings:
    """Return a cached instance of the application settings."""

    return Settings()
