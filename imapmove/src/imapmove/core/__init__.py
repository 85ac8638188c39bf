"""Core move logic: identity, skip filter, rewrite, and orchestration.

What:
  Expose the decision and sequencing layer of the mover while deferring the
  submodule imports until a name is actually requested.

Why:
  ``config.schema`` needs :class:`AddressIdentity` while the orchestrator in
  turn depends on the IMAP layer. Resolving names lazily keeps those import
  chains acyclic and keeps ``import imapmove.core`` cheap.

How:
  A module-level :func:`__getattr__` maps each public name to its submodule and
  imports it on first access.

Interfaces:
  ``AddressIdentity``, ``SkipReason``, ``skip_reason``, ``should_skip``,
  ``rewrite``, ``Mover``, ``MoveResult``, and the error classes from
  :mod:`imapmove.core.errors`.
"""
from __future__ import annotations

from typing import Any


__all__ = [
    "AddressIdentity",
    "SkipReason",
    "skip_reason",
    "should_skip",
    "rewrite",
    "Mover",
    "MoveResult",
    "MoveError",
    "MailboxConnectionError",
    "TransferError",
    "FlagError",
    "ExpungeError",
    "AddressFormatError",
]

_SUBMODULES = {
    "AddressIdentity": "identity",
    "SkipReason": "filter",
    "skip_reason": "filter",
    "should_skip": "filter",
    "rewrite": "rewriter",
    "Mover": "mover",
    "MoveResult": "mover",
    "MoveError": "errors",
    "MailboxConnectionError": "errors",
    "TransferError": "errors",
    "FlagError": "errors",
    "ExpungeError": "errors",
    "AddressFormatError": "errors",
}


def __getattr__(name: str) -> Any:
    """Import the submodule owning ``name`` and return the attribute."""

    module_name = _SUBMODULES.get(name)
    if module_name is None:
        raise AttributeError(name)
    from importlib import import_module

    module = import_module(f"{__name__}.{module_name}")
    return getattr(module, name)
