"""HTTP API for SOP Gate."""
