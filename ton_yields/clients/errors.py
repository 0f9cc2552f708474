from __future__ import annotations


class ProviderError(RuntimeError):
    """A provider returned something unusable (HTTP error body, bad shape, missing field)."""


class GraphQLError(ProviderError):
    pass


class RpcError(ProviderError):
    pass
