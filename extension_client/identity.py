from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class NotSignedInError(Exception):
    """No identity is available without user interaction, or it was refused."""


@dataclass(frozen=True)
class Identity:
    email: str
    token: str


class IdentityProvider(Protocol):
    def get_identity(self, *, interactive: bool = False) -> Identity:
        """Return the current identity or raise NotSignedInError."""
        ...
