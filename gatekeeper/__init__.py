"""Discord gatekeeper for a validator operator community."""

__version__ = "0.1.0"
