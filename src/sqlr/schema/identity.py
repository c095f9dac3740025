"""
Identity and rename tracking for sqlr.

Tables and columns are matched to live objects by the stable id stored
in their comment, never by name. Renames go through a staging name so
that swaps and cycles never collide; objects that lost their id are
parked under the drop marker until every other phase has run.
"""

from dataclasses import dataclass
from typing import Callable

from .statements import (
    Expr,
    Lit,
    Raw,
    any_of,
    equals,
    is_null,
    quote,
    unless,
    when,
)


STAGING_PREFIX = "_sql_"
# Declared names never start with STAGING_PREFIX, so a staged name never
# starts with the prefix twice.
DROP_PREFIX = f"{STAGING_PREFIX}{STAGING_PREFIX}drop_"


def staging_name(name: str) -> str:
    """Transient name used while an object moves to its declared name."""
    return f"{STAGING_PREFIX}{name}"


def drop_name(name: str) -> str:
    return f"{DROP_PREFIX}{name}"


PLACEHOLDER_COLUMN = drop_name("placeholder")


Renamer = Callable[[Expr, str], Expr]


@dataclass(frozen=True)
class TwoPhaseRename:
    """
    Moves a live object to its declared name in two steps.

    The first step parks the object under its staging name unless it is
    already at its declared or staging name; the second moves the staged
    object to the declared name. Between the two, every declared name
    held by a different object has been vacated.

    Args:
        current: expression evaluating to the object's live name (NULL if absent)
        declared: the declared name
        rename: builds the rename statement from a live-name expression and a target
        case_sensitive: compare live names byte for byte, so that a rename
            changing only letter case is carried out
    """

    current: Expr
    declared: str
    rename: Renamer
    case_sensitive: bool = False

    @property
    def staged(self) -> str:
        return staging_name(self.declared)

    def _named(self, name: str) -> Expr:
        if self.case_sensitive:
            return Raw(f"cast({self.current.render()} as binary) <=> {quote(name)}")
        return equals(self.current, name)

    def stage(self) -> Expr:
        return unless(
            any_of(
                is_null(self.current),
                self._named(self.declared),
                self._named(self.staged),
            ),
            self.rename(self.current, self.staged),
        )

    def finalize(self) -> Expr:
        return when(
            self._named(self.staged),
            self.rename(Lit(self.staged), self.declared),
        )
