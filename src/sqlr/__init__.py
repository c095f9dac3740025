"""
sqlr: Declarative MySQL schema and permission reconciliation.

sqlr compiles a declaration of tables, columns, keys, views, seed rows
and users into one idempotent SQL script that brings a live database in
line with the declaration when executed.
"""

__version__ = "0.1.0"
__author__ = "sqlr Contributors"

from .config import SqlrConfig
from .exceptions import SqlrError, ConfigurationError, DeclarationError, ValidationError
from .schema.compiler import SchemaCompiler, compile_script

__all__ = [
    "__version__",
    "SqlrConfig",
    "SqlrError",
    "ConfigurationError",
    "DeclarationError",
    "ValidationError",
    "SchemaCompiler",
    "compile_script",
]
