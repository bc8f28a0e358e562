"""Backend for a traditional-culture resource library."""

__version__ = "1.0.0"
