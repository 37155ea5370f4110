"""Test doubles for pod storage."""
