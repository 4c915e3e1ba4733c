import warnings
from typing import List, Optional, Set

from pydantic import model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# ── Known insecure default keys (must never be used in production) ──
_INSECURE_KEYS = {
    "change_this",
    "change_this_to_a_secure_random_string",
    "secret",
}

# Reserved for platform use, never claimable as a tenant slug
_DEFAULT_RESERVED_SUBDOMAINS = ",".join([
    "www", "api", "app", "admin", "dashboard", "domains", "mail", "smtp",
    "ftp", "blog", "help", "support", "status", "docs", "cdn", "assets",
    "static", "images", "img", "files", "download", "uploads", "media",
    "secure", "login", "auth", "oauth", "sso", "account", "accounts",
    "billing", "pay", "checkout", "shop", "store", "test", "staging", "dev",
    "demo", "sandbox", "preview", "beta", "alpha", "platform", "directory",
    "properties", "search", "explore", "book", "booking", "bookings",
    "reserve", "reservation",
])


def _split_csv(value: str) -> Set[str]:
    return {item.strip().lower() for item in value.split(",") if item.strip()}


class Settings(BaseSettings):
    APP_NAME: str = "Domain Router"
    APP_ENV: str = "development"
    API_V1_STR: str = "/api/v1"
    SECRET_KEY: str = "change_this"
    ALGORITHM: str = "HS256"

    # Database
    DATABASE_URL: Optional[str] = None   # overrides POSTGRES_* when set
    POSTGRES_SERVER: str = "localhost"
    POSTGRES_USER: str = "postgres"
    POSTGRES_PASSWORD: str = "postgres"
    POSTGRES_DB: str = "domainrouter"
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800           # 30 minutes
    DB_ECHO: bool = False
    SLOW_QUERY_THRESHOLD_MS: int = 500

    # Redis
    REDIS_HOST: str = "localhost"
    REDIS_PORT: int = 6379

    # Celery
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/0"

    # Hostname classification
    PLATFORM_APEX_DOMAIN: str = "platform.io"
    MAIN_DOMAINS: str = "platform.io,www.platform.io,api.platform.io,app.platform.io,localhost"
    RESERVED_SUBDOMAINS: str = _DEFAULT_RESERVED_SUBDOMAINS
    LOCAL_DEV_SUFFIXES: str = "localhost,local"
    API_PATH_PREFIX: str = "/api/"
    TRUST_PROXY_HEADERS: bool = True

    # Custom domain verification
    CNAME_TARGET: str = "domains.platform.io"
    DNS_LOOKUP_TIMEOUT: float = 5.0       # seconds, independent of the HTTP timeout
    DNS_NAMESERVERS: str = ""             # csv; empty uses /etc/resolv.conf
    VERIFICATION_STALE_AFTER: int = 300   # seconds a "verifying" claim stays valid

    # Tenant lookup
    TENANT_LOOKUP_TIMEOUT: float = 2.0    # seconds
    # redis / none / memory. memory is per-process: other workers keep stale
    # entries until TTL, so only use it with a single worker.
    DOMAIN_CACHE_BACKEND: str = "redis"
    DOMAIN_CACHE_TTL: int = 60            # seconds

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
    )

    @model_validator(mode="after")
    def _validate_production_security(self) -> "Settings":
        """Block startup if critical secrets are insecure in production / staging."""
        if self.APP_ENV in ("production", "staging"):
            if self.SECRET_KEY in _INSECURE_KEYS or len(self.SECRET_KEY) < 32:
                raise ValueError(
                    f"SECRET_KEY is insecure ('{self.SECRET_KEY[:8]}…'). "
                    "Set a strong random key (≥ 32 chars) in .env or environment."
                )
            if self.DATABASE_URL is None and self.POSTGRES_PASSWORD in ("postgres", ""):
                raise ValueError(
                    "POSTGRES_PASSWORD is set to default 'postgres'. "
                    "Set a strong password in .env or environment."
                )
            if self.PLATFORM_APEX_DOMAIN not in self.main_domains:
                warnings.warn(
                    f"PLATFORM_APEX_DOMAIN '{self.PLATFORM_APEX_DOMAIN}' is not listed in MAIN_DOMAINS; "
                    "the apex will be treated as a candidate custom domain.",
                    UserWarning,
                    stacklevel=2,
                )
        if self.DOMAIN_CACHE_BACKEND not in ("memory", "redis", "none"):
            raise ValueError("DOMAIN_CACHE_BACKEND must be one of: memory, redis, none")
        return self

    @property
    def SQLALCHEMY_DATABASE_URI(self) -> str:
        if self.DATABASE_URL:
            return self.DATABASE_URL
        return (
            f"postgresql://{self.POSTGRES_USER}:{self.POSTGRES_PASSWORD}"
            f"@{self.POSTGRES_SERVER}/{self.POSTGRES_DB}"
        )

    @property
    def REDIS_URL(self) -> str:
        return f"redis://{self.REDIS_HOST}:{self.REDIS_PORT}/1"

    @property
    def main_domains(self) -> Set[str]:
        return _split_csv(self.MAIN_DOMAINS)

    @property
    def reserved_subdomains(self) -> Set[str]:
        return _split_csv(self.RESERVED_SUBDOMAINS)

    @property
    def local_dev_suffixes(self) -> Set[str]:
        return {s.lstrip(".") for s in _split_csv(self.LOCAL_DEV_SUFFIXES)}

    @property
    def apex_domain(self) -> str:
        return self.PLATFORM_APEX_DOMAIN.strip().lower()

    @property
    def dns_nameservers(self) -> List[str]:
        return sorted(_split_csv(self.DNS_NAMESERVERS))

    @property
    def cname_target(self) -> str:
        return self.CNAME_TARGET.strip().lower().rstrip(".")

    @property
    def is_production(self) -> bool:
        return self.APP_ENV == "production"

    @property
    def is_staging(self) -> bool:
        return self.APP_ENV == "staging"

    @property
    def is_development(self) -> bool:
        return self.APP_ENV == "development"


settings = Settings()
