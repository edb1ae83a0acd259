"""Configuration management for the gateway.

Loads configuration from environment variables using Pydantic models.
Provides sensible defaults for every setting while allowing override via
environment.

Provides:
- Config: Pydantic model with all gateway settings
- load_config: Factory function to create Config instance
"""

import os

from pydantic import BaseModel, Field

REQUIRED_DOWNSTREAM_ENV = ("GHL_PIT_TOKEN", "GHL_LOCATION_ID")


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


class Config(BaseModel):
    """Gateway configuration loaded from the environment.

    Attributes:
        crm_api_token: Private integration token (GHL_PIT_TOKEN)
        crm_location_id: Default location for location-scoped calls (GHL_LOCATION_ID)
        crm_api_base: Downstream API base URL
        crm_api_version: Value of the downstream Version header
        request_timeout_seconds: Bound on every downstream call
        proposal_ttl_seconds: Lifetime of a pending proposal
        proposal_store_path: Snapshot file; empty keeps proposals in memory only
        dry_run: Validate write tools without proposing or calling downstream
        followup_assignee: Default assignee of firewall follow-up tasks
        followup_contact_id: Default contact of firewall follow-up tasks
        audit_database_url: SQLAlchemy URL of the audit ledger; empty disables it
        host: Bind address of the HTTP server
        port: Bind port of the HTTP server
    """

    # Downstream API
    crm_api_token: str = Field(default_factory=lambda: os.getenv("GHL_PIT_TOKEN", ""))
    crm_location_id: str = Field(default_factory=lambda: os.getenv("GHL_LOCATION_ID", ""))
    crm_api_base: str = Field(
        default_factory=lambda: os.getenv("GHL_API_BASE", "https://services.leadconnectorhq.com")
    )
    crm_api_version: str = Field(default_factory=lambda: os.getenv("GHL_API_VERSION", "2021-07-28"))
    request_timeout_seconds: int = Field(
        default_factory=lambda: _env_int("REQUEST_TIMEOUT_SECONDS", 30)
    )

    # Proposal lifecycle
    proposal_ttl_seconds: int = Field(default_factory=lambda: _env_int("PROPOSAL_TTL_SECONDS", 300))
    proposal_store_path: str = Field(default_factory=lambda: os.getenv("PROPOSAL_STORE_PATH", ""))

    # Safety Settings
    dry_run: bool = Field(default_factory=lambda: os.getenv("DRY_RUN") == "1")
    followup_assignee: str = Field(
        default_factory=lambda: os.getenv("DEFAULT_FOLLOWUP_ASSIGNEE", "")
    )
    followup_contact_id: str = Field(
        default_factory=lambda: os.getenv("DEFAULT_FOLLOWUP_CONTACT_ID", "")
    )

    # Audit ledger
    audit_database_url: str = Field(default_factory=lambda: os.getenv("AUDIT_DATABASE_URL", ""))

    # HTTP server
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(default_factory=lambda: _env_int("PORT", 3000))

    def missing_downstream_settings(self) -> list[str]:
        """Names of required downstream environment variables left unset."""
        values = {
            "GHL_PIT_TOKEN": self.crm_api_token,
            "GHL_LOCATION_ID": self.crm_location_id,
        }
        return [name for name in REQUIRED_DOWNSTREAM_ENV if not values[name]]


def load_config() -> Config:
    """Load configuration from the environment.

    Returns:
        Populated Config instance
    """
    return Config()
