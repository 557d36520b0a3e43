"""Services used by the approval engine and the API."""
