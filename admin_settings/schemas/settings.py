"""Schemas for the system configuration record and the settings endpoints."""

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

DEFAULT_SMTP_PORT = 587


class SystemSettingsConfig(BaseModel):
    """The singleton system configuration record, secrets included.

    Only services handle this model. Anything leaving the API goes through
    ``SystemSettingsResponse`` or ``PublicSettingsResponse`` instead.
    """

    model_config = ConfigDict(extra="ignore")

    # Registration
    registration_enabled: bool = True
    email_verify_enabled: bool = False

    # SMTP
    smtp_host: str = ""
    smtp_port: int = DEFAULT_SMTP_PORT
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = ""
    smtp_from_name: str = ""
    smtp_use_tls: bool = False

    # Cloudflare Turnstile
    turnstile_enabled: bool = False
    turnstile_site_key: str = ""
    turnstile_secret_key: str = ""

    # Branding
    site_name: str = ""
    site_logo: str = ""
    site_subtitle: str = ""
    api_base_url: str = ""
    contact_info: str = ""
    doc_url: str = ""

    # New account defaults
    default_concurrency: int = 1
    default_balance: float = 0.0

    @property
    def smtp_password_configured(self) -> bool:
        return bool(self.smtp_password)

    @property
    def turnstile_secret_key_configured(self) -> bool:
        return bool(self.turnstile_secret_key)


class SystemSettingsResponse(BaseModel):
    """System settings as shown to administrators. Secrets appear only as flags."""

    registration_enabled: bool
    email_verify_enabled: bool

    smtp_host: str
    smtp_port: int
    smtp_username: str
    smtp_password_configured: bool
    smtp_from_email: str
    smtp_from_name: str
    smtp_use_tls: bool

    turnstile_enabled: bool
    turnstile_site_key: str
    turnstile_secret_key_configured: bool

    site_name: str
    site_logo: str
    site_subtitle: str
    api_base_url: str
    contact_info: str
    doc_url: str

    default_concurrency: int
    default_balance: float

    @classmethod
    def from_config(cls, config: SystemSettingsConfig) -> "SystemSettingsResponse":
        """Build the masked view of a configuration record."""
        data = config.model_dump(exclude={"smtp_password", "turnstile_secret_key"})
        return cls(
            **data,
            smtp_password_configured=config.smtp_password_configured,
            turnstile_secret_key_configured=config.turnstile_secret_key_configured,
        )


class PublicSettingsResponse(BaseModel):
    """Settings safe to expose to unauthenticated clients (login/register pages)."""

    registration_enabled: bool
    email_verify_enabled: bool
    turnstile_enabled: bool
    turnstile_site_key: str
    site_name: str
    site_logo: str
    site_subtitle: str
    api_base_url: str
    contact_info: str
    doc_url: str

    @classmethod
    def from_config(cls, config: SystemSettingsConfig) -> "PublicSettingsResponse":
        return cls(**config.model_dump(include=set(cls.model_fields)))


class UpdateSettingsRequest(BaseModel):
    """Full replacement of the system settings.

    Omitted fields take their zero value. An empty ``smtp_password`` or
    ``turnstile_secret_key`` keeps the stored secret.
    """

    registration_enabled: bool = False
    email_verify_enabled: bool = False

    smtp_host: str = ""
    smtp_port: int = 0
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_from_email: str = ""
    smtp_from_name: str = ""
    smtp_use_tls: bool = False

    turnstile_enabled: bool = False
    turnstile_site_key: str = ""
    turnstile_secret_key: str = ""

    site_name: str = ""
    site_logo: str = ""
    site_subtitle: str = ""
    api_base_url: str = ""
    contact_info: str = ""
    doc_url: str = ""

    default_concurrency: int = 0
    default_balance: float = 0.0


class TestSmtpRequest(BaseModel):
    """SMTP parameters to probe. An empty password falls back to the saved one."""

    smtp_host: str = Field(..., min_length=1, max_length=255)
    smtp_port: int = 0
    smtp_username: str = ""
    smtp_password: str = ""
    smtp_use_tls: bool = False

    @field_validator("smtp_host")
    @classmethod
    def host_not_blank(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("SMTP host is required")
        return v


class SendTestEmailRequest(TestSmtpRequest):
    """Recipient plus the SMTP parameters used to deliver the test email."""

    email: EmailStr
    smtp_from_email: str = ""
    smtp_from_name: str = ""


class SmtpConfig(BaseModel):
    """Transient SMTP connection parameters assembled per request."""

    host: str
    port: int = DEFAULT_SMTP_PORT
    username: str = ""
    password: str = ""
    from_email: str = ""
    from_name: str = ""
    use_tls: bool = False


class AdminApiKeyStatusResponse(BaseModel):
    """Whether an admin API key exists, and its masked form."""

    exists: bool
    masked_key: str = ""


class AdminApiKeyResponse(BaseModel):
    """A freshly generated admin API key in plaintext."""

    key: str
