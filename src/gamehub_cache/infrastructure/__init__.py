"""Infrastructure layer: external systems behind the cache interfaces."""
