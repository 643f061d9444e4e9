from __future__ import annotations


class ScopeResolutionError(RuntimeError):
    """
    Raised when grants, city access or zone access cannot be loaded.

    Authorization fails closed on this error: the request is denied with a generic
    server error, never allowed with a default scope.
    """
