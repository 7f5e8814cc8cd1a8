"""API layer: stdio tool server, wire schemas and the agent CLI."""
