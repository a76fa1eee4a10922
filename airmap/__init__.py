"""Point lookups and prediction layer for the California air quality map."""
from . import averaging
from . import predictions

__all__ = ["averaging", "predictions"]
