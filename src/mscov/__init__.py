"""mscov — MSTest coverage report discovery, parsing and aggregation."""

__version__ = "0.1.0"
