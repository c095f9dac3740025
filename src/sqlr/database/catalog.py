"""
MySQL information-schema lookups for sqlr.

Every method returns a SQL expression that reads live metadata when the
emitted script runs. All lookups are scoped to one target database and
identify tables and columns by the id stored in their comment.
"""

from typing import Iterable, Optional

from ..schema.statements import Raw, Var, in_list, quote, starts_with


INFORMATION_SCHEMA = "`information_schema`"
MAX_IDENTIFIER_LENGTH = 64
# Truncated marked names end in '_' and this many hex digits of md5(name).
DIGEST_LENGTH = 7


def _where(*conditions: Optional[str]) -> str:
    return " and ".join(c for c in conditions if c)


def _marked_name(marker: str, name_column: str) -> str:
    """
    Drop-marker name for a live object, within the identifier limit.

    Names too long for the marker are cut and suffixed with a digest of
    the full name, so two long names sharing a prefix stay distinct.
    """
    marked = f"concat({quote(marker)}, {name_column})"
    keep = MAX_IDENTIFIER_LENGTH - DIGEST_LENGTH - 1
    return (
        f"if(char_length({marked}) > {MAX_IDENTIFIER_LENGTH}, "
        f"concat(left({marked}, {keep}), '_', left(md5({name_column}), {DIGEST_LENGTH})), "
        f"{marked})"
    )


class SchemaCatalog:
    """Builds live-state lookups against the information schema."""

    def __init__(self, database: str, table_variable: str = "tbl"):
        self.database = database
        self.table_variable = table_variable

    @property
    def schema_filter(self) -> str:
        return f"`TABLE_SCHEMA` = {quote(self.database)}"

    @property
    def table_filter(self) -> str:
        return f"{self.schema_filter} and `TABLE_NAME` = {Var(self.table_variable)}"

    def schema_exists(self) -> Raw:
        return Raw(
            f"exists(select 1 from {INFORMATION_SCHEMA}.`SCHEMATA` "
            f"where `SCHEMA_NAME` = {quote(self.database)})"
        )

    # Tables

    def _base_table(self, table_id: str, attribute: str) -> Raw:
        return Raw(
            f"(select `{attribute}` from {INFORMATION_SCHEMA}.`TABLES` "
            f"where {self.schema_filter} and `TABLE_TYPE` = 'BASE TABLE' "
            f"and `TABLE_COMMENT` = {quote(table_id)} limit 1)"
        )

    def table_name(self, table_id: str) -> Raw:
        """Live name of the table tagged with this id."""
        return self._base_table(table_id, "TABLE_NAME")

    def table_engine(self, table_id: str) -> Raw:
        return self._base_table(table_id, "ENGINE")

    def undeclared_tables(self, table_ids: Iterable[str], marker: str) -> Raw:
        """RENAME TABLE clauses moving untracked tables under the drop marker."""
        target = _marked_name(marker, "`TABLE_NAME`")
        clause = (
            f"concat({quote(f'`{self.database}`.`')}, `TABLE_NAME`, "
            f"{quote(f'` TO `{self.database}`.`')}, {target}, '`')"
        )
        return Raw(
            f"(select group_concat({clause} separator ', ') "
            f"from {INFORMATION_SCHEMA}.`TABLES` where "
            + _where(
                self.schema_filter,
                "`TABLE_TYPE` = 'BASE TABLE'",
                in_list("`TABLE_COMMENT`", table_ids, negate=True),
                starts_with("`TABLE_NAME`", marker, negate=True),
            )
            + ")"
        )

    def marked_tables(self, marker: str) -> Raw:
        clause = f"concat({quote(f'`{self.database}`.`')}, `TABLE_NAME`, '`')"
        return Raw(
            f"(select group_concat({clause} separator ', ') "
            f"from {INFORMATION_SCHEMA}.`TABLES` where "
            + _where(
                self.schema_filter,
                "`TABLE_TYPE` = 'BASE TABLE'",
                starts_with("`TABLE_NAME`", marker),
            )
            + ")"
        )

    # Views

    def undeclared_views(self, view_names: Iterable[str]) -> Raw:
        clause = f"concat({quote(f'`{self.database}`.`')}, `TABLE_NAME`, '`')"
        return Raw(
            f"(select group_concat({clause} separator ', ') "
            f"from {INFORMATION_SCHEMA}.`VIEWS` where "
            + _where(
                self.schema_filter,
                in_list("`TABLE_NAME`", view_names, negate=True),
            )
            + ")"
        )

    # Columns

    def column_attribute(self, column_id: str, attribute: str) -> Raw:
        """An attribute of the live column tagged with this id."""
        return Raw(
            f"(select `{attribute}` from {INFORMATION_SCHEMA}.`COLUMNS` "
            f"where {self.table_filter} "
            f"and `COLUMN_COMMENT` = {quote(column_id)} limit 1)"
        )

    def column_name(self, column_id: str) -> Raw:
        return self.column_attribute(column_id, "COLUMN_NAME")

    def undeclared_columns(self, column_ids: Iterable[str], marker: str) -> Raw:
        """RENAME COLUMN clauses moving untracked columns under the drop marker."""
        target = _marked_name(marker, "`COLUMN_NAME`")
        clause = (
            f"concat('RENAME COLUMN `', `COLUMN_NAME`, '` TO `', {target}, '`')"
        )
        return Raw(
            f"(select group_concat({clause} separator ', ') "
            f"from {INFORMATION_SCHEMA}.`COLUMNS` where "
            + _where(
                self.table_filter,
                in_list("`COLUMN_COMMENT`", column_ids, negate=True),
                starts_with("`COLUMN_NAME`", marker, negate=True),
            )
            + ")"
        )

    def marked_columns(self, marker: str) -> Raw:
        clause = "concat('DROP COLUMN `', `COLUMN_NAME`, '`')"
        return Raw(
            f"(select group_concat({clause} separator ', ') "
            f"from {INFORMATION_SCHEMA}.`COLUMNS` where "
            + _where(self.table_filter, starts_with("`COLUMN_NAME`", marker))
            + ")"
        )

    # Indexes

    def column_leads_index(self, column_variable: str) -> Raw:
        """Whether the live column is the first column of some index."""
        return Raw(
            f"exists(select 1 from {INFORMATION_SCHEMA}.`STATISTICS` "
            f"where {self.table_filter} "
            f"and `COLUMN_NAME` = {Var(column_variable)} and `SEQ_IN_INDEX` = 1)"
        )

    def index_signature(self, index_name: str) -> Raw:
        """'col1,col2|non_unique' for the named index, NULL when absent."""
        return Raw(
            f"(select concat(group_concat(`COLUMN_NAME` order by `SEQ_IN_INDEX` "
            f"separator ','), '|', min(`NON_UNIQUE`)) "
            f"from {INFORMATION_SCHEMA}.`STATISTICS` "
            f"where {self.table_filter} and `INDEX_NAME` = {quote(index_name)})"
        )

    def undeclared_indexes(self, index_names: Iterable[str]) -> Raw:
        """DROP INDEX clauses for indexes that are neither declared nor backing a foreign key."""
        clause = "concat('DROP INDEX `', `INDEX_NAME`, '`')"
        foreign_key_indexes = (
            f"`INDEX_NAME` not in (select `CONSTRAINT_NAME` "
            f"from {INFORMATION_SCHEMA}.`TABLE_CONSTRAINTS` "
            f"where {self.table_filter} and `CONSTRAINT_TYPE` = 'FOREIGN KEY')"
        )
        return Raw(
            f"(select group_concat(distinct {clause} separator ', ') "
            f"from {INFORMATION_SCHEMA}.`STATISTICS` where "
            + _where(
                self.table_filter,
                in_list("`INDEX_NAME`", index_names, negate=True),
                foreign_key_indexes,
            )
            + ")"
        )

    # Foreign keys

    def foreign_key_exists(self, constraint_name: str) -> Raw:
        return Raw(
            f"exists(select 1 from {INFORMATION_SCHEMA}.`REFERENTIAL_CONSTRAINTS` "
            f"where `CONSTRAINT_SCHEMA` = {quote(self.database)} "
            f"and `TABLE_NAME` = {Var(self.table_variable)} "
            f"and `CONSTRAINT_NAME` = {quote(constraint_name)})"
        )

    def stale_foreign_keys(self, signatures: Iterable[str]) -> Raw:
        """DROP FOREIGN KEY clauses for constraints whose 'name/definition' is not declared."""
        signatures = list(signatures)
        live = (
            "select k.`CONSTRAINT_NAME` as `name`, concat(k.`CONSTRAINT_NAME`, '/', "
            "group_concat(k.`COLUMN_NAME` order by k.`ORDINAL_POSITION` separator ','), "
            "'|', k.`REFERENCED_TABLE_NAME`, '|', "
            "group_concat(k.`REFERENCED_COLUMN_NAME` order by k.`ORDINAL_POSITION` "
            "separator ','), '|', r.`DELETE_RULE`, '|', r.`UPDATE_RULE`) as `signature` "
            f"from {INFORMATION_SCHEMA}.`KEY_COLUMN_USAGE` k "
            f"inner join {INFORMATION_SCHEMA}.`REFERENTIAL_CONSTRAINTS` r "
            "on r.`CONSTRAINT_SCHEMA` = k.`CONSTRAINT_SCHEMA` "
            "and r.`TABLE_NAME` = k.`TABLE_NAME` "
            "and r.`CONSTRAINT_NAME` = k.`CONSTRAINT_NAME` "
            f"where k.`TABLE_SCHEMA` = {quote(self.database)} "
            f"and k.`TABLE_NAME` = {Var(self.table_variable)} "
            "and k.`REFERENCED_TABLE_NAME` is not null "
            "group by k.`CONSTRAINT_NAME`, k.`REFERENCED_TABLE_NAME`, "
            "r.`DELETE_RULE`, r.`UPDATE_RULE`"
        )
        clause = "concat('DROP FOREIGN KEY `', fk.`name`, '`')"
        return Raw(
            f"(select group_concat({clause} separator ', ') from ({live}) fk"
            + (
                f" where {in_list('fk.`signature`', signatures, negate=True)}"
                if signatures
                else ""
            )
            + ")"
        )

    # Privileges

    def account_exists(self, grantee: str) -> Raw:
        return Raw(
            f"exists(select 1 from {INFORMATION_SCHEMA}.`USER_PRIVILEGES` "
            f"where `GRANTEE` = {quote(grantee)})"
        )

    def table_privileges(self, grantee: str, table_name: str, separator: str = ",") -> Raw:
        return Raw(
            f"(select group_concat(`PRIVILEGE_TYPE` order by `PRIVILEGE_TYPE` "
            f"separator {quote(separator)}) "
            f"from {INFORMATION_SCHEMA}.`TABLE_PRIVILEGES` "
            f"where `GRANTEE` = {quote(grantee)} and {self.schema_filter} "
            f"and `TABLE_NAME` = {quote(table_name)})"
        )

    def unlisted_privilege_subjects(self, grantee: str, kept: Iterable[str]) -> Raw:
        """Names of objects outside `kept` on which the grantee holds table privileges."""
        return Raw(
            f"(select group_concat(distinct `TABLE_NAME` order by `TABLE_NAME` "
            f"separator ', ') from {INFORMATION_SCHEMA}.`TABLE_PRIVILEGES` where "
            + _where(
                f"`GRANTEE` = {quote(grantee)}",
                self.schema_filter,
                in_list("`TABLE_NAME`", kept, negate=True),
            )
            + ")"
        )
