"""
Adapters package for the Work Requests service.

Contains HTTP client wrappers for external dependencies. Adapters
encapsulate base URLs, request shapes and error handling, and stay
side-effect free outside of explicit calls.
"""

from .efiling_client import EFilingClient

__all__ = ["EFilingClient"]
