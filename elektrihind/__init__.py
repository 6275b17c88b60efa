from . import (
    canon,
    exceptions,
    types,
    utils,
    holidays,
    periods,
    fees,
    pricing,
    transform,
    selection,
    summary,
    config,
    ingest,
)

__all__ = [
    "canon",
    "exceptions",
    "types",
    "utils",
    "holidays",
    "periods",
    "fees",
    "pricing",
    "transform",
    "selection",
    "summary",
    "config",
    "ingest",
]
