"""Infrastructure layer: persistence, storage and observability adapters."""
