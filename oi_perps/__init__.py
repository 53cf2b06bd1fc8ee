"""oi-perps: accounting and risk core for an open-interest perpetual market."""

__version__ = "0.1.0"
