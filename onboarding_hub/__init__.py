"""Onboarding Hub: employee onboarding lifecycle service."""

__version__ = "1.0.0"
