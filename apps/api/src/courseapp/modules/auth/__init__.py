"""
Authentication Module

Admin session verification. Tokens are issued by the identity provider;
this API only verifies them.

API Endpoints:
- GET /auth/verify - Resolve a bearer token to its admin principal
"""

from .router import router

__all__ = ["router"]
