"""
Authentication helpers for the Work Requests service.
"""

from .api_key import API_KEY_HEADER, ApiKeyAuthenticator, AuthResult

__all__ = ["API_KEY_HEADER", "ApiKeyAuthenticator", "AuthResult"]
