"""
Partial-Update Builder

Builds a parameterized ``UPDATE ... RETURNING`` for the subset of columns a
client actually sent.

Only column names from a fixed allow-list ever reach the statement text;
every value is a bound parameter. The SET clause follows the insertion order
of the supplied mapping and the id predicate comes last, which is also the
order of ``PartialUpdate.parameters``.

Usage:
    update = build_partial_update("restaurants", 7, {"name": "New"})
    row = (await db.execute(update.statement)).mappings().one_or_none()
"""

from dataclasses import dataclass, field
from typing import Any, Mapping

from sqlalchemy import Table, update
from sqlalchemy.sql.dml import Update

from food_ordering.database import Base

UPDATABLE_COLUMNS: dict[str, tuple[str, ...]] = {
    "users": ("name", "email", "role"),
    "restaurants": ("name", "cuisine", "rating"),
}

# Never part of a returned projection
PRIVATE_COLUMNS = frozenset({"password_hash"})


@dataclass(frozen=True)
class PartialUpdate:
    statement: Update
    parameters: list[Any] = field(default_factory=list)
    columns: tuple[str, ...] = ()


def _table(table_name: str) -> Table:
    # Models must be imported so their tables are registered
    from food_ordering import models  # noqa: F401

    if table_name not in UPDATABLE_COLUMNS:
        raise ValueError(f"Table '{table_name}' does not support partial updates")
    return Base.metadata.tables[table_name]


def public_columns(table: Table) -> list:
    """All columns of ``table`` except the private ones."""
    return [column for column in table.columns if column.name not in PRIVATE_COLUMNS]


def build_partial_update(
    table_name: str,
    id_value: Any,
    fields: Mapping[str, Any],
) -> PartialUpdate:
    """
    Build an update touching only the supplied, non-None fields.

    Args:
        table_name: Target table; must be in UPDATABLE_COLUMNS
        id_value: Primary key of the row to update
        fields: Column name -> new value, in the order to apply them

    Returns:
        PartialUpdate with the statement and its ordered parameters

    Raises:
        ValueError: unknown table, column outside the allow-list, or no
            field left to update
    """
    table = _table(table_name)
    allowed = UPDATABLE_COLUMNS[table_name]

    provided = [(name, value) for name, value in fields.items() if value is not None]
    if not provided:
        raise ValueError("No fields provided")

    unknown = [name for name, _ in provided if name not in allowed]
    if unknown:
        raise ValueError(f"Columns not updatable on '{table_name}': {unknown}")

    statement = (
        update(table)
        .ordered_values(*[(table.c[name], value) for name, value in provided])
        .where(table.c.id == id_value)
        .returning(*public_columns(table))
    )

    return PartialUpdate(
        statement=statement,
        parameters=[value for _, value in provided] + [id_value],
        columns=tuple(name for name, _ in provided),
    )
