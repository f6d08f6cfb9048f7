"""Publish files from an eventually consistent remote mount as local symlinks."""

__version__ = "0.3.0"
