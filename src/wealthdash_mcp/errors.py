"""Exceptions raised inside the engine and converted at the tool boundary."""


class StoreError(Exception):
    """Query against the ledger store failed."""

    pass


class NoDataError(Exception):
    """An analyzer has no data to work from and must not zero-fill."""

    pass
