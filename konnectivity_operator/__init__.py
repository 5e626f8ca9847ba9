"""Konnectivity agent operator for Kamaji tenant control planes."""

__version__ = "0.1.0"
