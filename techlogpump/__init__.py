"""Follow 1C:Enterprise technological logs and ship parsed events to ClickHouse."""

__version__ = "0.1.0"
__all__ = ["__version__"]