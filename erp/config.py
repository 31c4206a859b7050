"""ERP integration configuration."""

import os

from pydantic import BaseModel, Field

from erp.provider import Provider


class ERPNextSettings(BaseModel):
    """Connection settings for a live ERPNext instance."""

    url: str | None = Field(
        default=None,
        description="Base URL of the ERPNext site, e.g. https://erp.example.com",
    )
    api_key: str | None = Field(
        default=None,
        description="API key of the integration user (Vault 'erp' secret when unset)",
    )
    api_secret: str | None = Field(
        default=None,
        description="API secret of the integration user (Vault 'erp' secret when unset)",
    )
    timeout_seconds: float = Field(
        default=30,
        description="Upper bound on any single ERP network call",
        gt=0,
        le=300,
    )


class ERPConfig(BaseModel):
    """
    ERP integration configuration.

    Read once at startup and passed to the ProviderRegistry and services.
    """

    provider: Provider = Field(
        default=Provider.MOCK,
        description="Adapter variant the registry constructs by default",
    )
    erpnext: ERPNextSettings = Field(default_factory=ERPNextSettings)
    cache_ttl_seconds: int = Field(
        default=300,
        description="TTL for customer and invoice reads; 0 disables caching",
        ge=0,
        le=86400,
    )

    @classmethod
    def from_env(cls) -> "ERPConfig":
        """
        Build configuration from environment variables.

        ERP_PROVIDER, ERPNEXT_URL, ERPNEXT_API_KEY, ERPNEXT_API_SECRET,
        ERPNEXT_TIMEOUT, ERP_CACHE_TTL. Unset variables keep their defaults.

        Raises:
            UnknownProvider: ERP_PROVIDER names no known adapter
            pydantic.ValidationError: a numeric option is out of bounds
        """
        provider_name = os.getenv("ERP_PROVIDER")
        provider = Provider.parse(provider_name) if provider_name else Provider.MOCK

        erpnext_kwargs = {
            "url": os.getenv("ERPNEXT_URL"),
            "api_key": os.getenv("ERPNEXT_API_KEY"),
            "api_secret": os.getenv("ERPNEXT_API_SECRET"),
        }
        timeout = os.getenv("ERPNEXT_TIMEOUT")
        if timeout:
            erpnext_kwargs["timeout_seconds"] = timeout

        kwargs = {"provider": provider, "erpnext": ERPNextSettings(**erpnext_kwargs)}
        ttl = os.getenv("ERP_CACHE_TTL")
        if ttl:
            kwargs["cache_ttl_seconds"] = ttl

        return cls(**kwargs)
