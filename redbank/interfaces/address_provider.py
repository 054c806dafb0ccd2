"""Address provider protocol: resolves protocol contract identities."""
from enum import Enum
from typing import Protocol


class ContractRole(str, Enum):
    ORACLE = "oracle"
    PROTOCOL_REWARDS_COLLECTOR = "protocol_rewards_collector"


class AddressProvider(Protocol):
    """Resolved per call; nothing is cached beyond the config snapshot."""

    def resolve(self, role: ContractRole) -> str: ...
