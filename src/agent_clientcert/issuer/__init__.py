"""Certificate issuing functionality for local signing authorities."""

from .authority import LocalSigningAuthority

__all__ = ["LocalSigningAuthority"]
