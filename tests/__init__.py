"""
Test suite for sqlr.

Unit tests live in tests/unit, one module per source module, sharing
the declaration fixtures in tests/conftest.py.
"""
