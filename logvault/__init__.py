"""LogVault: syslog alarm ingestion into Redis with a small web API."""

__version__ = "0.3.0"
