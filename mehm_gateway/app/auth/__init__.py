"""
Authentication helpers for the Mehm API Gateway.
"""

from .token_authenticator import Identity, TokenAuthenticator

__all__ = [
    "Identity",
    "TokenAuthenticator",
]
