"""Configuration, logging and startup helpers."""
