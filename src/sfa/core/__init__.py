"""Core layer: domain models, protocols and shared utilities."""
