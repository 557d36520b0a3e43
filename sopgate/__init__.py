"""SOP Gate - approval-gated change control for SOP document repositories."""

__version__ = "0.1.0"
