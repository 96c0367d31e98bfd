"""Credential and session-token lifecycle service."""

from authcore.services.auth.service import AuthService

__all__ = ["AuthService"]
