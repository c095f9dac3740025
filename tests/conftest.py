"""
Pytest configuration and shared fixtures for sqlr tests.

This module provides sample declarations (as raw dicts and as models)
shared by the validator, emitter, compiler and CLI tests.
"""

import os
import re
import tempfile
from typing import Any, Callable, Dict, List

import pytest
import yaml

from sqlr.database.catalog import SchemaCatalog
from sqlr.schema.models import ClientSpec, TableSpec


# ============================================================================
# Declaration Fixtures
# ============================================================================

@pytest.fixture
def users_table_data() -> Dict[str, Any]:
    """The users table: two columns tracked by id."""
    return {
        "id": "t1",
        "name": "users",
        "columns": [
            {"id": "c1", "name": "name", "type": "varchar(50)", "null": False},
            {"id": "c2", "name": "age", "type": "int", "null": True},
        ],
    }


@pytest.fixture
def full_declaration_data() -> Dict[str, Any]:
    """A declaration exercising every entity kind."""
    return {
        "database": "shop",
        "tables": [
            {
                "id": "t1",
                "name": "customers",
                "columns": [
                    {"id": "c1", "name": "id", "type": "int unsigned", "auto": True},
                    {"id": "c2", "name": "email", "type": "varchar(255)"},
                    {
                        "id": "c3",
                        "name": "status",
                        "type": "tinyint",
                        "default": "1",
                    },
                ],
                "keys": [
                    {"type": "primary key", "columns": ["id"]},
                    {"name": "customers_email", "type": "unique", "columns": ["email"]},
                ],
                "views": [
                    {
                        "name": "customer_orders",
                        "columns": ["email"],
                        "joins": [
                            {
                                "type": "left outer",
                                "table": "orders",
                                "alias": "o",
                                "on": [
                                    {
                                        "table": "customers",
                                        "column": "id",
                                        "joined": "customer_id",
                                    }
                                ],
                                "columns": [{"name": "total", "alias": "order_total"}],
                            }
                        ],
                    }
                ],
                "rows": [
                    {"email": "first@example.com", "status": "2"},
                    {"email": "second@example.com"},
                ],
            },
            {
                "id": "t2",
                "name": "orders",
                "engine": "InnoDB",
                "columns": [
                    {"id": "c1", "name": "id", "type": "int unsigned", "auto": True},
                    {"id": "c2", "name": "customer_id", "type": "int unsigned"},
                    {"id": "c3", "name": "total", "type": "decimal(10,2)", "null": True},
                ],
                "keys": [
                    {"type": "primary key", "columns": ["id"]},
                    {"name": "orders_customer", "type": "index", "columns": ["customer_id"]},
                ],
                "foreign-keys": [
                    {
                        "name": "orders_customer_fk",
                        "columns": ["customer_id"],
                        "table": "customers",
                        "keys": ["id"],
                        "delete": "cascade",
                    }
                ],
            },
        ],
        "clients": [
            {
                "user": "shop_app",
                "host": "%",
                "permissions": [
                    {"subject": "customers", "operations": ["Select", "Insert"]},
                    {"subject": "customer_orders", "operations": ["select"]},
                ],
            }
        ],
    }


@pytest.fixture
def users_table(users_table_data) -> TableSpec:
    return TableSpec(**users_table_data)


@pytest.fixture
def full_tables(full_declaration_data) -> List[TableSpec]:
    return [TableSpec(**table) for table in full_declaration_data["tables"]]


@pytest.fixture
def full_clients(full_declaration_data) -> List[ClientSpec]:
    return [ClientSpec(**client) for client in full_declaration_data["clients"]]


@pytest.fixture
def catalog() -> SchemaCatalog:
    """Catalog lookups scoped to database 'db'."""
    return SchemaCatalog("db")


# ============================================================================
# File Fixtures
# ============================================================================

@pytest.fixture
def declaration_file(full_declaration_data):
    """Write the full declaration to a temporary YAML file."""
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.safe_dump(full_declaration_data, f)
        path = f.name
    yield path
    os.unlink(path)


@pytest.fixture
def invalid_declaration_file(full_declaration_data):
    """A declaration whose first table name contains a backtick."""
    full_declaration_data["tables"][0]["name"] = "cust`omers"
    with tempfile.NamedTemporaryFile(mode="w", suffix=".yaml", delete=False) as f:
        yaml.safe_dump(full_declaration_data, f)
        path = f.name
    yield path
    os.unlink(path)


# ============================================================================
# Script Helpers
# ============================================================================

MYSQL_ESCAPES = {"0": "\0", "n": "\n", "r": "\r", "t": "\t", "b": "\b", "Z": "\x1a"}


def _mysql_unquote(literal: str) -> str:
    """Value MySQL reads from a single-quoted string literal."""
    assert literal[0] == literal[-1] == "'", literal
    return re.sub(
        r"\\(.)",
        lambda match: MYSQL_ESCAPES.get(match.group(1), match.group(1)),
        literal[1:-1],
        flags=re.DOTALL,
    )


@pytest.fixture
def mysql_unquote() -> Callable[[str], str]:
    """Unescape a MySQL string literal the way the server parses it."""
    return _mysql_unquote
