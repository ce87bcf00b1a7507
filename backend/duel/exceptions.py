class DuelError(Exception):
    """Base class for errors surfaced to a single connection."""


class AuthError(DuelError):
    """Token missing, malformed, expired, or for an unknown user."""


class SymbolTaken(DuelError):
    """The requested board symbol is already claimed in the pending match."""

    def __init__(self, symbol):
        super().__init__(f'Symbol {symbol!r} is already taken')
        self.symbol = symbol
