"""Client library for the Google Photos Library API."""

__version__ = "0.1.0"
