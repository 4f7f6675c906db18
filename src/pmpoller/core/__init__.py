"""Core domain: models, ports, ingestion and transformations."""
