"""
Declaration validation for sqlr.

Walks a schema and permission declaration once, in declared order, and
stops at the first malformed or unsafe entry. Nothing is emitted for a
declaration that fails here.
"""

import logging
from typing import Dict, Optional, Sequence

from .identity import STAGING_PREFIX
from .models import (
    PRIMARY_KEY_NAME,
    ClientSpec,
    ColumnSpec,
    ForeignKeySpec,
    KeySpec,
    RowSpec,
    TableSpec,
    ViewSpec,
)
from ..exceptions import (
    DeclarationError,
    DuplicateIdentity,
    EmptyForeignKeyColumns,
    EmptyForeignKeyReferences,
    EmptyKeyColumns,
    EmptyTableColumns,
    ForeignKeyColumnMismatch,
    InvalidJoinType,
    InvalidPermissionOperation,
    InvalidPrimaryKeyName,
    MissingColumnId,
    MissingTableId,
    ReservedPrefixViolation,
    SanitizeViolation,
)


logger = logging.getLogger(__name__)

FORBIDDEN_CHARACTERS = ("`", "'")
JOIN_TYPES = ("inner", "left outer", "right outer")
OPERATIONS = ("SELECT", "INSERT", "UPDATE", "DELETE")


def normalize_join_type(join_type: str) -> str:
    return " ".join(join_type.lower().split())


def sanitize(value: Optional[str], path: str) -> None:
    """Reject a value containing a backtick or single quote."""
    if value is None:
        return
    for character in FORBIDDEN_CHARACTERS:
        if character in value:
            raise SanitizeViolation(path, value, f"contains {character}")


class _UniqueNames:
    """Tracks names seen within one scope of one validation pass."""

    def __init__(self, what: str):
        self.what = what
        self._seen: Dict[str, str] = {}

    def claim(self, name: str, path: str) -> None:
        if name in self._seen:
            raise DuplicateIdentity(
                path, name, f"{self.what} already declared at {self._seen[name]}"
            )
        self._seen[name] = path


class DeclarationValidator:
    """Validates one declaration. Trackers live only for a single call."""

    def __init__(
        self,
        tables: Sequence[TableSpec],
        clients: Sequence[ClientSpec] = (),
        database: Optional[str] = None,
    ):
        self.tables = list(tables)
        self.clients = list(clients)
        self.database = database

    def validate(self) -> None:
        """Raise the first DeclarationError found, in declared order."""
        sanitize(self.database, "database")

        table_ids = _UniqueNames("table id")
        table_names = _UniqueNames("table name")

        for t, table in enumerate(self.tables):
            self._validate_table(table, f"tables[{t}]", table_ids, table_names)

        for c, client in enumerate(self.clients):
            self._validate_client(client, f"clients[{c}]")

        logger.debug(
            f"Declaration valid: {len(self.tables)} tables, {len(self.clients)} clients"
        )

    def _validate_table(
        self,
        table: TableSpec,
        path: str,
        table_ids: _UniqueNames,
        table_names: _UniqueNames,
    ) -> None:
        sanitize(table.name, f"{path}.name")
        _check_prefix(table.name, f"{path}.name")
        sanitize(table.id, f"{path}.id")
        table_ids.claim(table.id, f"{path}.id")
        if not table.id:
            raise MissingTableId(f"{path}.id")
        table_names.claim(table.name, f"{path}.name")
        sanitize(table.engine, f"{path}.engine")

        if not table.columns:
            raise EmptyTableColumns(f"{path}.columns", table.name)

        column_ids = _UniqueNames("column id")
        column_names = _UniqueNames("column name")
        for c, column in enumerate(table.columns):
            self._validate_column(
                column, f"{path}.columns[{c}]", column_ids, column_names
            )

        index_names = _UniqueNames("key name")
        for k, key in enumerate(table.keys):
            self._validate_key(key, f"{path}.keys[{k}]", index_names)

        constraint_names = _UniqueNames("foreign key name")
        for f, foreign_key in enumerate(table.foreign_keys):
            self._validate_foreign_key(
                foreign_key, f"{path}.foreign_keys[{f}]", constraint_names
            )

        for v, view in enumerate(table.views):
            self._validate_view(view, f"{path}.views[{v}]")

        for r, row in enumerate(table.rows):
            self._validate_row(row, f"{path}.rows[{r}]")

    def _validate_column(
        self,
        column: ColumnSpec,
        path: str,
        column_ids: _UniqueNames,
        column_names: _UniqueNames,
    ) -> None:
        sanitize(column.name, f"{path}.name")
        _check_prefix(column.name, f"{path}.name")
        sanitize(column.type, f"{path}.type")
        sanitize(column.id, f"{path}.id")
        sanitize(column.default, f"{path}.default")
        column_ids.claim(column.id, f"{path}.id")
        if not column.id:
            raise MissingColumnId(f"{path}.id", column.name)
        column_names.claim(column.name, f"{path}.name")

    def _validate_key(self, key: KeySpec, path: str, index_names: _UniqueNames) -> None:
        if not key.columns:
            raise EmptyKeyColumns(f"{path}.columns", key.name)
        for i, column in enumerate(key.columns):
            sanitize(column, f"{path}.columns[{i}]")
        sanitize(key.type, f"{path}.type")
        sanitize(key.name, f"{path}.name")
        index_names.claim(key.name, f"{path}.name")
        if key.is_primary and key.name != PRIMARY_KEY_NAME:
            raise InvalidPrimaryKeyName(
                f"{path}.name", key.name, f"primary key must be named {PRIMARY_KEY_NAME}"
            )

    def _validate_foreign_key(
        self,
        foreign_key: ForeignKeySpec,
        path: str,
        constraint_names: _UniqueNames,
    ) -> None:
        sanitize(foreign_key.on_delete, f"{path}.on_delete")
        sanitize(foreign_key.on_update, f"{path}.on_update")
        sanitize(foreign_key.referenced_table, f"{path}.referenced_table")
        sanitize(foreign_key.name, f"{path}.name")
        constraint_names.claim(foreign_key.name, f"{path}.name")

        if not foreign_key.columns:
            raise EmptyForeignKeyColumns(f"{path}.columns", foreign_key.name)
        for i, column in enumerate(foreign_key.columns):
            sanitize(column, f"{path}.columns[{i}]")

        if not foreign_key.referenced_columns:
            raise EmptyForeignKeyReferences(
                f"{path}.referenced_columns", foreign_key.name
            )
        for i, column in enumerate(foreign_key.referenced_columns):
            sanitize(column, f"{path}.referenced_columns[{i}]")

        if len(foreign_key.columns) != len(foreign_key.referenced_columns):
            raise ForeignKeyColumnMismatch(
                path,
                foreign_key.name,
                f"{len(foreign_key.columns)} local columns, "
                f"{len(foreign_key.referenced_columns)} referenced",
            )

    def _validate_view(self, view: ViewSpec, path: str) -> None:
        sanitize(view.name, f"{path}.name")
        for i, column in enumerate(view.columns):
            sanitize(column.name, f"{path}.columns[{i}].name")
            sanitize(column.alias, f"{path}.columns[{i}].alias")

        for j, join in enumerate(view.joins):
            join_path = f"{path}.joins[{j}]"
            if normalize_join_type(join.type) not in JOIN_TYPES:
                raise InvalidJoinType(
                    f"{join_path}.type", join.type, f"expected one of {JOIN_TYPES}"
                )
            sanitize(join.table, f"{join_path}.table")
            sanitize(join.alias, f"{join_path}.alias")
            for i, condition in enumerate(join.on):
                sanitize(condition.table, f"{join_path}.on[{i}].table")
                sanitize(condition.column, f"{join_path}.on[{i}].column")
                sanitize(condition.joined_column, f"{join_path}.on[{i}].joined_column")
            for i, column in enumerate(join.columns):
                sanitize(column.name, f"{join_path}.columns[{i}].name")
                sanitize(column.alias, f"{join_path}.columns[{i}].alias")

    def _validate_row(self, row: RowSpec, path: str) -> None:
        for column, value in row.values.items():
            sanitize(column, f"{path}.{column}")
            sanitize(value, f"{path}.{column}")

    def _validate_client(self, client: ClientSpec, path: str) -> None:
        sanitize(client.user, f"{path}.user")
        sanitize(client.host, f"{path}.host")
        for p, permission in enumerate(client.permissions):
            permission_path = f"{path}.permissions[{p}]"
            sanitize(permission.subject, f"{permission_path}.subject")
            for o, operation in enumerate(permission.operations):
                if operation.strip().upper() not in OPERATIONS:
                    raise InvalidPermissionOperation(
                        f"{permission_path}.operations[{o}]",
                        operation,
                        f"expected one of {OPERATIONS}",
                    )


def _check_prefix(name: str, path: str) -> None:
    if name.startswith(STAGING_PREFIX):
        raise ReservedPrefixViolation(
            path, name, f"names may not start with {STAGING_PREFIX}"
        )


def validate_declaration(
    tables: Sequence[TableSpec],
    clients: Sequence[ClientSpec] = (),
    database: Optional[str] = None,
) -> Optional[DeclarationError]:
    """Return the first declaration error, or None when the declaration is valid."""
    try:
        DeclarationValidator(tables, clients, database).validate()
    except DeclarationError as e:
        logger.warning(f"Declaration rejected: {e}")
        return e
    return None
