"""Cross-entity search service for the pet community platform."""

__version__ = "0.1.0"
