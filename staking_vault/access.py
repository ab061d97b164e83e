"""Single-owner access control."""

from staking_vault.errors import AccessDenied
from staking_vault.formatters import normalize_address


class AccessControl:
    """Capability check against one stored owner address, held by composition."""

    def __init__(self, owner: str) -> None:
        self._owner = normalize_address(owner)

    @property
    def owner(self) -> str:
        return self._owner

    def is_owner(self, caller: str) -> bool:
        return normalize_address(caller) == self._owner

    def require_owner(self, caller: str) -> None:
        """Raise AccessDenied unless `caller` is the owner."""
        if not self.is_owner(caller):
            raise AccessDenied("Ownable: caller is not the owner")

    def transfer_ownership(self, caller: str, new_owner: str) -> None:
        self.require_owner(caller)
        self._owner = normalize_address(new_owner)
