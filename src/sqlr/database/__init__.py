"""
Database metadata package for sqlr.

Builds the information-schema lookups that the emitted script evaluates
against the live MySQL server.
"""

from .catalog import SchemaCatalog

__all__ = ["SchemaCatalog"]
