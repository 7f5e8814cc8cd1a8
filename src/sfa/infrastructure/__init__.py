"""Infrastructure layer: adapters for the OS, configuration and logging."""
