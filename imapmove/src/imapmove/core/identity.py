"""Mailbox identity used to recognise "mail from me".

What:
  Provide :class:`AddressIdentity`, the address a mailbox endpoint answers to,
  and the rule used to derive it from connection settings.

Why:
  Both the skip filter and the recipient rewrite compare header addresses with
  the identity of an endpoint. Fixing the derivation and comparison rules in
  one value type keeps those two decisions consistent.

How:
  A frozen dataclass holding the bare address. :meth:`AddressIdentity.resolve`
  applies the derivation rule: explicit override, else a username that already
  looks like an address, else ``username@host``.

Interfaces:
  :class:`AddressIdentity`.

Invariants & Safety:
  - Comparison is an exact, case-sensitive match on the address string; display
    names never take part.
  - Instances are immutable once built.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class AddressIdentity:
    """Bare email address identifying one mailbox endpoint."""

    address: str

    @classmethod
    def resolve(
        cls,
        username: Optional[str],
        host: Optional[str],
        explicit: Optional[str] = None,
    ) -> "AddressIdentity":
        """Derive the identity of an endpoint.

        What:
          Return the explicit address when one is configured, otherwise derive
          it from the login name.

        Why:
          Most servers log users in with their full address, but some use a
          local name; ``username@host`` is the best guess in that case.

        How:
          ``explicit`` wins verbatim. A username containing ``@`` is taken as
          the address. Anything else is joined with ``host``.

        Args:
          username: Login name configured for the endpoint.
          host: Server hostname configured for the endpoint.
          explicit: Optional address override.

        Returns:
          The resolved :class:`AddressIdentity`.
        """

        if explicit is not None:
            return cls(explicit)
        if username is not None and "@" in username:
            return cls(username)
        return cls(f"{username}@{host}")

    def matches(self, address: Optional[str]) -> bool:
        """Return ``True`` when ``address`` is exactly this identity."""

        return address == self.address

    def __str__(self) -> str:
        return self.address
