"""Track charts: monthly popularity and trending rankings for a music platform."""

__version__ = "0.1.0"
