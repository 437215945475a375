"""Configuration schemas and file loading."""
