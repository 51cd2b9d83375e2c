from __future__ import annotations


class OrderDataError(Exception):
    """Base class for structural load failures."""


class EmptySourceError(OrderDataError):
    """The tabular source yielded zero rows."""


class SourceFormatError(OrderDataError):
    """The source is not a table this loader understands."""
