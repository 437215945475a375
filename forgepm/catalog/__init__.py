"""Addon catalog providers."""
