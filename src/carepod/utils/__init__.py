"""Utility helpers for CarePod."""
