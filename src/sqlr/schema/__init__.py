"""
Schema compilation package for sqlr.

This package provides:
- Declaration models for tables, columns, keys, views, rows and clients
- Declaration validation with typed first-failure errors
- Per-entity reconciliation step emitters
- The plan compiler producing one self-checking MySQL script
"""

from .models import (
    ClientSpec,
    ColumnSpec,
    ForeignKeySpec,
    JoinCondition,
    JoinSpec,
    KeySpec,
    PermissionSpec,
    RowSpec,
    TableSpec,
    ViewColumn,
    ViewSpec,
)
from .validator import DeclarationValidator, validate_declaration
from .statements import ExecutionMode, Phase, Plan, Step
from .compiler import (
    CompileOptions,
    CompileResult,
    CompileStatus,
    SchemaCompiler,
    compile_script,
)

__all__ = [
    "ClientSpec",
    "ColumnSpec",
    "ForeignKeySpec",
    "JoinCondition",
    "JoinSpec",
    "KeySpec",
    "PermissionSpec",
    "RowSpec",
    "TableSpec",
    "ViewColumn",
    "ViewSpec",
    "DeclarationValidator",
    "validate_declaration",
    "ExecutionMode",
    "Phase",
    "Plan",
    "Step",
    "CompileOptions",
    "CompileResult",
    "CompileStatus",
    "SchemaCompiler",
    "compile_script",
]
