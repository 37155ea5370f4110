"""CarePod: consent, access-control and audit core for per-patient health pods."""

__version__ = "0.1.0"
