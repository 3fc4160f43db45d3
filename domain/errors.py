from __future__ import annotations


class LedgerError(Exception):
    """Base class for errors raised by the winnings ledger."""


class StoreUnavailable(LedgerError):
    """The document store could not be read or written."""


class NotFound(LedgerError):
    """A requested document does not exist."""


class InvalidConfiguration(LedgerError):
    """A house setting was given an invalid value (e.g. a negative max bet)."""


class AuthenticationFailed(LedgerError):
    """Bad login credentials or a bad admin secret."""
