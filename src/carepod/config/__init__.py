"""Configuration module for CarePod."""

from carepod.config.base import PatientEntry, Settings
from carepod.config.loader import get_settings

__all__ = ["PatientEntry", "Settings", "get_settings"]
