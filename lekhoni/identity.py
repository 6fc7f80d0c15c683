"""Identity provider collaborators.

The interactive sign-in flow itself lives outside this package; it is
consumed only as "produces an identity or fails".
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Awaitable, Callable

from lekhoni.models import Identity


class IdentityError(RuntimeError):
    """Sign-in failed or was cancelled; the caller may retry."""


class IdentityProvider(ABC):
    @abstractmethod
    async def sign_in(self) -> Identity:
        """Return the signed-in identity or raise :class:`IdentityError`."""

    async def sign_out(self) -> None:
        """End the provider-side session, if any."""


DEMO_IDENTITY = Identity(
    id="mock-user-123",
    name="Demo Writer",
    email="writer@demo.com",
    avatar="https://ui-avatars.com/api/?name=Demo+Writer&background=b45309&color=fff",
    provider="google",
)


class DemoIdentityProvider(IdentityProvider):
    """Local-only mode: always signs in the fixed demo writer."""

    def __init__(self, identity: Identity = DEMO_IDENTITY) -> None:
        self.identity = identity

    async def sign_in(self) -> Identity:
        return self.identity


class CallbackIdentityProvider(IdentityProvider):
    """Adapts an external sign-in coroutine (e.g. an OAuth flow) to the provider interface."""

    def __init__(
        self,
        sign_in: Callable[[], Awaitable[Identity]],
        sign_out: Callable[[], Awaitable[None]] | None = None,
    ) -> None:
        self._sign_in = sign_in
        self._sign_out = sign_out

    async def sign_in(self) -> Identity:
        try:
            return await self._sign_in()
        except IdentityError:
            raise
        except Exception as exc:
            raise IdentityError(f"Sign-in failed: {exc}") from exc

    async def sign_out(self) -> None:
        if self._sign_out is not None:
            await self._sign_out()


__all__ = [
    "DEMO_IDENTITY",
    "CallbackIdentityProvider",
    "DemoIdentityProvider",
    "IdentityError",
    "IdentityProvider",
]
