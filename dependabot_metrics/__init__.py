"""Dependency-update PR health metrics for a fleet of GitHub repositories."""

__version__ = "0.1.0"
