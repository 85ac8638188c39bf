"""
Module: imapmove.__init__

What:
  Aggregate package exports for the IMAP mailbox mover and expose the primary
  namespace segments (configuration, core move logic, IMAP handling, and
  utilities).

Why:
  The command-line entry point and tests import through these names; keeping
  them explicit lets the internal layout evolve without touching callers.

How:
  Provide an explicit ``__all__`` declaration that enumerates the public
  subpackages.

Interfaces:
  - config: Endpoint settings, IMAP URL parsing, and settings file loaders.
  - core: Identity, filter, rewriter, and move orchestration.
  - imap: ``imapclient``-backed mailbox client and message records.
  - utils: Structured JSON logging.
"""

__all__ = [
    "config",
    "core",
    "imap",
    "utils",
]

__version__ = "1.0.0"
