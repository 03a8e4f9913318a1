from __future__ import annotations


class QontakError(RuntimeError):
    pass


class QontakConfigError(QontakError):
    """Credentials or settings missing. Fatal for the current operation."""


class QontakTransportError(QontakError):
    """The request never produced an HTTP response (DNS, timeout, reset)."""
