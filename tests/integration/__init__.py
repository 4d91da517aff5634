"""
Integration tests.

These exercise the cache layer against a real Redis server and are skipped
unless USE_REAL_REDIS is set:
- Connection cycle against a live server
- Command semantics matching the fallback store
- Pattern invalidation through SCAN
"""
