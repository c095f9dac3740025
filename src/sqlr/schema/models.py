"""
Declaration models for sqlr.

These pydantic models describe the desired state of one database: its
tables (columns, keys, foreign keys, views, seed rows) and the users
allowed to reach it. They are immutable inputs to a single compile call.
"""

from typing import Any, Dict, List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, model_validator


PRIMARY_KEY_TYPE = "primary key"
PRIMARY_KEY_NAME = "PRIMARY"


class DeclarationModel(BaseModel):
    """Base for declaration models: frozen, populated by name or alias."""

    model_config = ConfigDict(
        frozen=True,
        populate_by_name=True,
        extra="forbid",
        coerce_numbers_to_str=True,
    )


class ColumnSpec(DeclarationModel):
    """A single column. Its position in the owning table is its ordinal."""

    id: str = Field("", description="Stable column identity")
    name: str = Field(..., description="Column display name")
    type: str = Field(..., description="Raw type expression, e.g. 'int unsigned'")
    nullable: bool = Field(
        False,
        validation_alias=AliasChoices("nullable", "null"),
        description="Whether the column accepts NULL",
    )
    default: Optional[str] = Field(None, description="Default expression")
    auto_increment: bool = Field(
        False,
        validation_alias=AliasChoices("auto_increment", "autoIncrement", "auto"),
        description="Whether the column is AUTO_INCREMENT",
    )

    @property
    def has_null_default(self) -> bool:
        """True when the declared default is absent or SQL NULL."""
        return self.default is None or self.default.strip().upper() == "NULL"


class KeySpec(DeclarationModel):
    """An index. Its name doubles as its identity."""

    name: str = Field(..., description="Index name")
    type: str = Field("index", description="'primary key' or another index kind")
    columns: List[str] = Field(default_factory=list, description="Indexed columns")

    @model_validator(mode="before")
    @classmethod
    def name_primary_key(cls, data: Any) -> Any:
        if (
            isinstance(data, dict)
            and "name" not in data
            and str(data.get("type", "")).strip().lower() == PRIMARY_KEY_TYPE
        ):
            return {**data, "name": PRIMARY_KEY_NAME}
        return data

    @property
    def is_primary(self) -> bool:
        return self.type.strip().lower() == PRIMARY_KEY_TYPE

    @property
    def is_unique(self) -> bool:
        return self.is_primary or "unique" in self.type.lower()


class ForeignKeySpec(DeclarationModel):
    """A foreign key constraint, identified by name."""

    name: str = Field(..., description="Constraint name")
    columns: List[str] = Field(default_factory=list, description="Local columns")
    referenced_table: str = Field(
        ...,
        validation_alias=AliasChoices("referenced_table", "referencedTable", "table"),
        description="Referenced table name",
    )
    referenced_columns: List[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices(
            "referenced_columns", "referencedColumns", "references", "keys"
        ),
        description="Referenced columns, positionally matching local columns",
    )
    on_delete: str = Field(
        "RESTRICT",
        validation_alias=AliasChoices("on_delete", "onDelete", "delete"),
        description="ON DELETE referential action",
    )
    on_update: str = Field(
        "RESTRICT",
        validation_alias=AliasChoices("on_update", "onUpdate", "update"),
        description="ON UPDATE referential action",
    )


class ViewColumn(DeclarationModel):
    """A projected column with an optional output alias."""

    name: str
    alias: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def from_name(cls, data: Any) -> Any:
        if isinstance(data, str):
            return {"name": data}
        return data


class JoinCondition(DeclarationModel):
    """ON condition of the form `table`.`column` = `alias`.`joined_column`."""

    table: str = Field(..., description="Base table or previously joined alias")
    column: str = Field(..., description="Column on the base side")
    joined_column: str = Field(
        ...,
        validation_alias=AliasChoices("joined_column", "joinedColumn", "joined"),
        description="Column on the joined table",
    )


class JoinSpec(DeclarationModel):
    type: str = Field("inner", description="inner, left outer or right outer")
    table: str = Field(..., description="Joined table name")
    alias: str = Field(..., description="Alias of the joined table")
    on: List[JoinCondition] = Field(default_factory=list)
    columns: List[ViewColumn] = Field(default_factory=list)


class ViewSpec(DeclarationModel):
    """A view selecting from its owning table and optional joins."""

    name: str
    columns: List[ViewColumn] = Field(default_factory=list)
    joins: List[JoinSpec] = Field(default_factory=list)


class RowSpec(DeclarationModel):
    """A seed row: column name to literal value."""

    values: Dict[str, str] = Field(default_factory=dict)

    @model_validator(mode="before")
    @classmethod
    def wrap_plain_mapping(cls, data: Any) -> Any:
        if isinstance(data, dict) and set(data) != {"values"}:
            return {"values": data}
        return data


class TableSpec(DeclarationModel):
    """Desired state of one table."""

    id: str = Field(..., description="Stable table identity")
    name: str = Field(..., description="Table display name")
    engine: str = Field("InnoDB", description="Storage engine")
    columns: List[ColumnSpec] = Field(default_factory=list)
    keys: List[KeySpec] = Field(default_factory=list)
    foreign_keys: List[ForeignKeySpec] = Field(
        default_factory=list,
        validation_alias=AliasChoices("foreign_keys", "foreignKeys", "foreign-keys"),
    )
    views: List[ViewSpec] = Field(default_factory=list)
    rows: List[RowSpec] = Field(default_factory=list)

    @property
    def column_ids(self) -> List[str]:
        return [column.id for column in self.columns]

    @property
    def auto_increment_columns(self) -> List[ColumnSpec]:
        return [column for column in self.columns if column.auto_increment]


class PermissionSpec(DeclarationModel):
    subject: str = Field(..., description="Table or view name")
    operations: List[str] = Field(default_factory=list)


class ClientSpec(DeclarationModel):
    """A database user and the table privileges it should hold."""

    user: str
    host: str = Field("%", description="Host part of the account")
    permissions: List[PermissionSpec] = Field(default_factory=list)
