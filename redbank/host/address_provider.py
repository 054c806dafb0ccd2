"""Address provider backed by a role -> address mapping."""
from __future__ import annotations

from ..errors import ValidationError
from ..interfaces.address_provider import ContractRole


class StaticAddressProvider:
    def __init__(self, addresses: dict[str, str]) -> None:
        self._addresses = dict(addresses)

    def resolve(self, role: ContractRole) -> str:
        address = self._addresses.get(ContractRole(role).value)
        if not address:
            raise ValidationError("No address registered for role", role=ContractRole(role).value)
        return address
