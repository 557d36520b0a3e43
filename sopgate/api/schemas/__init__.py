"""Request and response models for the SOP Gate API."""
