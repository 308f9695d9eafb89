"""
Interfaces to the external services BizAuth consumes.

- DocumentDb: async access to the credential document database
- IdentityProvider: adapter contract for the external identity provider
"""
from .identity import IdentityProvider, ProviderAuthError, ProviderUser

__all__ = ['IdentityProvider', 'ProviderAuthError', 'ProviderUser']
