"""Task lifecycle, capability routing and two-tier memory for an agent crew."""

__version__ = "0.1.0"
