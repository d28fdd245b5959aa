"""Per-entity data access with remote-first, local-fallback semantics."""
