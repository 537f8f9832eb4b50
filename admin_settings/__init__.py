"""Administrative settings service: system configuration, SMTP checks and admin API key."""

__version__ = "1.0.0"
