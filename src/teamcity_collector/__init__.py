"""Collect and normalize build and changeset history from TeamCity instances."""

__version__ = "0.1.0"
