"""
Authorization header providers for Graph requests
"""
from auth.token_provider import (
    AuthTokenProvider,
    StaticTokenProvider,
    ClientCredentialsTokenProvider,
    token_provider_from_env
)

__all__ = [
    'AuthTokenProvider',
    'StaticTokenProvider',
    'ClientCredentialsTokenProvider',
    'token_provider_from_env'
]
