"""Persistence layer for SOP Gate."""
