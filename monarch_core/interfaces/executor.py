"""Cap transaction executor protocol: signing and broadcasting live elsewhere."""
from typing import Protocol

from ..models import VaultV2Cap


class CapTransactionExecutor(Protocol):
    """Submits an ordered batch of cap mutations for a vault."""

    async def submit(
        self, chain_id: int, vault_address: str, mutations: tuple[VaultV2Cap, ...]
    ) -> bool: ...
