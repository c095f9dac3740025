"""
User and privilege reconciliation steps.

Privileges are managed at table level within the target database. The
operation universe is SELECT, INSERT, UPDATE and DELETE; every declared
permission grants exactly its subset and revokes the rest. Grants left on
names outside the declaration are removed from the grant table directly.
"""

import logging
from typing import Iterable, List, Sequence

from .models import ClientSpec, PermissionSpec
from .statements import (
    Assign,
    Concat,
    If,
    NOOP,
    Phase,
    Raw,
    Step,
    Var,
    all_of,
    ident,
    in_list,
    is_null,
    quote,
    unless,
)
from .validator import OPERATIONS
from ..database.catalog import SchemaCatalog


logger = logging.getLogger(__name__)

HELD = Var("held")
REVOKE = Var("revoke")
STALE = Var("stale")

GRANT_TABLE = ident("mysql", "tables_priv")


def grantee(client: ClientSpec) -> str:
    """Account name as reported by the privilege catalogs: 'user'@'host'."""
    return f"'{client.user}'@'{client.host}'"


def account(client: ClientSpec) -> str:
    """Account name as written inside a corrective statement."""
    return f"{quote(client.user)}@{quote(client.host)}"


def normalize_operations(operations: Iterable[str]) -> List[str]:
    """Upper-cased, deduplicated, in universe order."""
    requested = {operation.strip().upper() for operation in operations}
    return [operation for operation in OPERATIONS if operation in requested]


def _holds(operation: str) -> Raw:
    return Raw(f"find_in_set({quote(operation)}, ifnull({HELD}, '')) > 0")


def create_user(catalog: SchemaCatalog, client: ClientSpec) -> Step:
    """Create the account with a server-generated password when it is absent."""
    return Step(
        phase=Phase.USERS,
        description=f"ensure user {grantee(client)}",
        statement=unless(
            catalog.account_exists(grantee(client)),
            f"CREATE USER {account(client)} IDENTIFIED BY RANDOM PASSWORD",
        ),
    )


def revoke_undeclared_subject(
    catalog: SchemaCatalog, client: ClientSpec, subject: str
) -> Step:
    """Revoke whatever the client holds on a subject it no longer lists."""
    return Step(
        phase=Phase.USERS,
        table=subject,
        description=f"revoke privileges of {grantee(client)} on {subject}",
        lookups=(
            Assign(HELD.name, catalog.table_privileges(grantee(client), subject, ", ")),
        ),
        statement=unless(
            is_null(HELD),
            Concat(
                "REVOKE ",
                HELD,
                f" ON {ident(catalog.database, subject)} FROM {account(client)}",
            ),
        ),
    )


def grant_permission(
    catalog: SchemaCatalog, client: ClientSpec, permission: PermissionSpec
) -> Step:
    operations = normalize_operations(permission.operations)
    return Step(
        phase=Phase.USERS,
        table=permission.subject,
        description=(
            f"grant {', '.join(operations)} on {permission.subject} to {grantee(client)}"
        ),
        lookups=(
            Assign(
                HELD.name,
                catalog.table_privileges(grantee(client), permission.subject),
            ),
        ),
        statement=unless(
            all_of(*[_holds(operation) for operation in operations]),
            f"GRANT {', '.join(operations)} "
            f"ON {ident(catalog.database, permission.subject)} TO {account(client)}",
        ),
    )


def revoke_complement(
    catalog: SchemaCatalog, client: ClientSpec, permission: PermissionSpec
) -> Step:
    """Revoke held operations that fall outside the declared subset."""
    declared = normalize_operations(permission.operations)
    complement = [operation for operation in OPERATIONS if operation not in declared]
    held_outside = ", ".join(
        f"if({_holds(operation)}, {quote(operation)}, null)" for operation in complement
    )
    return Step(
        phase=Phase.USERS,
        table=permission.subject,
        description=(
            f"revoke {', '.join(complement)} on {permission.subject} "
            f"from {grantee(client)}"
        ),
        lookups=(
            Assign(
                HELD.name,
                catalog.table_privileges(grantee(client), permission.subject),
            ),
            Assign(REVOKE.name, Raw(f"concat_ws(', ', {held_outside})")),
        ),
        statement=If(
            Raw(f"{REVOKE} = ''"),
            NOOP,
            Concat(
                "REVOKE ",
                REVOKE,
                f" ON {ident(catalog.database, permission.subject)} "
                f"FROM {account(client)}",
            ),
        ),
    )


def revoke_stale_subjects(
    catalog: SchemaCatalog, client: ClientSpec, kept: Sequence[str]
) -> List[Step]:
    """
    Remove table privileges on subjects outside the declaration.

    These are objects that were renamed, dropped or never declared, so
    their names are unknown when compiling. A REVOKE names a single
    object, so the privilege rows are deleted from the grant table in
    one statement and the privilege cache is reloaded afterwards.
    """
    scope = [
        f"`User` = {quote(client.user)}",
        f"`Host` = {quote(client.host)}",
        f"`Db` = {quote(catalog.database)}",
        in_list("`Table_name`", kept, negate=True),
    ]
    delete = f"DELETE FROM {GRANT_TABLE} WHERE " + " AND ".join(c for c in scope if c)
    return [
        Step(
            phase=Phase.USERS,
            description=f"revoke privileges of {grantee(client)} on undeclared subjects",
            lookups=(
                Assign(
                    STALE.name,
                    catalog.unlisted_privilege_subjects(grantee(client), kept),
                ),
            ),
            statement=unless(is_null(STALE), delete),
        ),
        Step(
            phase=Phase.USERS,
            description=f"reload privileges after revoking from {grantee(client)}",
            statement=unless(is_null(STALE), "FLUSH PRIVILEGES"),
        ),
    ]


def client_steps(
    catalog: SchemaCatalog, client: ClientSpec, subjects: Iterable[str]
) -> List[Step]:
    """
    Reconcile one client.

    Args:
        catalog: Lookups for the target database
        client: Declared client
        subjects: Declared table and view names; those the client does not
            list have their privileges revoked, as do subjects outside both
            the declaration and the client's permissions

    Returns:
        Steps in emission order: create, revoke on subjects outside the
        declaration, revoke unlisted declared subjects, then grant and
        revoke per permission
    """
    steps = [create_user(catalog, client)]

    subjects = list(subjects)
    listed = [permission.subject for permission in client.permissions]
    kept = subjects + [subject for subject in listed if subject not in subjects]
    steps.extend(revoke_stale_subjects(catalog, client, kept))

    for subject in subjects:
        if subject not in listed:
            steps.append(revoke_undeclared_subject(catalog, client, subject))

    for permission in client.permissions:
        if normalize_operations(permission.operations):
            steps.append(grant_permission(catalog, client, permission))
        if len(normalize_operations(permission.operations)) < len(OPERATIONS):
            steps.append(revoke_complement(catalog, client, permission))

    logger.debug(f"{grantee(client)}: {len(steps)} steps")
    return steps
