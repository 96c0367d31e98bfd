"""Repository package exposing persistence-layer access for the auth models."""

from __future__ import annotations

from authcore.repositories.account import AccountRepository
from authcore.repositories.base import BaseRepository
from authcore.repositories.session_token import SessionTokenRepository

__all__ = [
    "BaseRepository",
    "AccountRepository",
    "SessionTokenRepository",
]
