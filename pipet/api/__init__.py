"""Provider backends — the remote models the brain can think with."""
from pipet.api.provider import Provider, ProviderError, create_provider

__all__ = ["Provider", "ProviderError", "create_provider"]
