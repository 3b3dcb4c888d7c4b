"""
mockdb Test Suite.

This package contains:
- unit/: Unit tests per module (no threads except the limiter sweep)
- integration/: End-to-end scenarios through MockAdapter
"""
