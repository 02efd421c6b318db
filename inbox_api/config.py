from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: str = "sqlite:///./inbox.db"
    db_pool_size: int = 10
    db_max_overflow: int = 10
    db_pool_timeout_seconds: float = 2.0

    environment: str = "development"  # development, production
    log_level: str = "INFO"
    debug_tenant: bool = False

    # Local/dev hosts without a subdomain resolve to this tenant
    default_tenant_slug: str = "crunchypaws"
    tenant_cache_max_entries: int = 1024
    # slug -> flow policy name, e.g. {"dkape": "menu_handoff"}
    tenant_flow_policies: dict[str, str] = {}

    # Process-wide transport defaults, used when a tenant has no credentials
    twilio_account_sid: str | None = None
    twilio_auth_token: str | None = None
    whatsapp_from: str | None = None
    twilio_api_base_url: str = "https://api.twilio.com"
    twilio_timeout_seconds: float = 15.0
    enable_twilio_mock: bool = False

    cors_allow_origins: str = "http://localhost:4200,http://127.0.0.1:4200"
    cors_allow_origin_regex: str | None = r"^https?://([a-z0-9-]+\.)*inbox\.example\.com$"

    admin_token: str | None = None

    @property
    def is_production(self) -> bool:
        return self.environment.strip().lower() == "production"

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_allow_origins.split(",") if origin.strip()]


settings = Settings()
