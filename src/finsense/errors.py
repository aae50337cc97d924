"""Exceptions raised by the FinSense core."""


class CatalogError(ValueError):
    """A catalog source could not be read or failed validation."""


class StoreError(RuntimeError):
    """A saved-article store rejected an upsert, delete or subscription."""
