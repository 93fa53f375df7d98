"""Catalog search core for the dataset marketplace."""

__version__ = "0.1.0"
