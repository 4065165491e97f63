"""Typed cloud API response models and object storage workflows."""

__version__ = "0.1.0"
