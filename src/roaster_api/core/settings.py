"""Application settings and configuration.

This module defines all configuration options for the Roaster API service.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    Optional collaborators (ledger RPC, contract, OpenAI) may be left unset;
    the routes that need them fail with a misconfiguration error instead.
    """

    # Application metadata
    app_name: str = Field(default="Roaster API", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    port: int = Field(default=3040, alias="PORT")

    # Database configuration
    database_url: str = Field(default="sqlite:///./roaster.db", alias="DATABASE_URL")
    test_database_url: str | None = Field(default=None, alias="TEST_DATABASE_URL")
    use_testing_database: bool = Field(default=False, alias="USE_TEST_DATABASE")
    sql_debug: bool = Field(default=False, alias="SQL_DEBUG")
    db_pool_size: int = Field(default=10, alias="DB_POOL_SIZE")
    db_statement_timeout_ms: int = Field(default=5_000, alias="DB_STATEMENT_TIMEOUT_MS")
    db_connect_timeout_seconds: int = Field(default=5, alias="DB_CONNECT_TIMEOUT_SECONDS")
    db_pool_timeout_seconds: float = Field(default=10.0, alias="DB_POOL_TIMEOUT_SECONDS")

    # Redis configuration for nonces, daily counters and the plan cache
    redis_url: str = Field(default="redis://127.0.0.1:6379", alias="REDIS_URL")
    redis_socket_timeout_seconds: float = Field(
        default=2.0,
        alias="REDIS_SOCKET_TIMEOUT_SECONDS",
    )
    store_retry_attempts: int = Field(default=3, alias="STORE_RETRY_ATTEMPTS")

    # API key hashing
    api_key_salt: str = Field(default="dev_salt_change_me", alias="API_KEY_SALT")

    # Tier limits (API usage limits; not on-chain pricing)
    free_daily_limit: int = Field(default=5, alias="FREE_DAILY_LIMIT")
    basic_daily_limit: int = Field(default=50, alias="BASIC_DAILY_LIMIT")
    pro_daily_limit: int = Field(default=250, alias="PRO_DAILY_LIMIT")
    free_ip_daily_limit: int = Field(default=20, alias="FREE_IP_DAILY_LIMIT")

    # Sign-in challenge and cache lifetimes
    nonce_ttl_seconds: int = Field(default=300, alias="NONCE_TTL_SECONDS")
    plan_cache_ttl_seconds: int = Field(default=60, alias="PLAN_CACHE_TTL_SECONDS")

    # Onchain configuration (Base)
    chain_id: int = Field(default=8453, alias="ROASTER_CHAIN_ID")
    contract_address: str | None = Field(default=None, alias="ROASTER_CONTRACT")
    domain: str = Field(default="theroaster.app", alias="ROASTER_DOMAIN")
    rpc_url: str | None = Field(default=None, alias="BASE_RPC_URL")
    ledger_http_timeout_seconds: float = Field(
        default=10.0,
        alias="LEDGER_HTTP_TIMEOUT_SECONDS",
    )
    # Base USDC (6 decimals)
    usdc_address: str = Field(
        default="0x833589fCD6eDb6E08f4c7C32D4f71b54bdA02913",
        alias="USDC_ADDRESS",
    )

    # Content generation
    openai_api_key: str | None = Field(default=None, alias="OPENAI_API_KEY")
    model: str = Field(default="gpt-4.1-nano", alias="ROASTER_MODEL")
    generation_timeout_seconds: float = Field(
        default=20.0,
        alias="GENERATION_TIMEOUT_SECONDS",
    )
    generation_max_output_tokens: int = Field(
        default=80,
        alias="GENERATION_MAX_OUTPUT_TOKENS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(default=["*"], alias="CORS_ORIGINS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(default=["*"], alias="CORS_ALLOW_HEADERS")

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )

    @property
    def database_url_sync(self) -> str:
        """Return a sync-compatible database URL for tooling.

        Converts asyncpg URLs to psycopg for synchronous database operations
        like Alembic migrations.
        """
        url = self.effective_database_url
        if url.startswith("postgresql+asyncpg"):
            return url.replace("postgresql+asyncpg", "postgresql+psycopg", 1)
        return url

    @property
    def effective_database_url(self) -> str:
        """Return the database URL respecting testing overrides."""
        if self.use_testing_database and self.test_database_url:
            return self.test_database_url
        return self.database_url

    @property
    def onchain_configured(self) -> bool:
        """Return True when both the RPC endpoint and the contract are set."""
        return bool(self.rpc_url and self.contract_address)

    @property
    def tier_limits(self) -> dict[str, int]:
        """Return the default daily limit for each caller-visible tier."""
        return {
            "basic": self.basic_daily_limit,
            "pro": self.pro_daily_limit,
        }

    def missing_configuration(self) -> list[str]:
        """List the environment variables whose absence disables some routes."""
        missing = []
        if not self.openai_api_key:
            missing.append("OPENAI_API_KEY")
        if not self.rpc_url:
            missing.append("BASE_RPC_URL")
        if not self.contract_address:
            missing.append("ROASTER_CONTRACT")
        if self.api_key_salt == "dev_salt_change_me":
            missing.append("API_KEY_SALT")
        return missing


settings = Settings()  # type: ignore[call-arg]
