"""Core constants shared across the package."""
