"""Token lookup protocol: resolves display metadata for an address."""
from typing import Protocol

from ..tokens import Token


class TokenLookup(Protocol):
    """Returns None for tokens it does not know."""

    def find_token(self, address: str, chain_id: int) -> Token | None: ...
