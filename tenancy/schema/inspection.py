"""
Existence checks against the live schema.

Reflection is re-read for every question: the migration steps change the
schema between checks and a cached inspector would answer from stale
metadata.
"""

import sqlalchemy as sa
from sqlalchemy.engine import Connection


class SchemaInspector:
    def __init__(self, bind: Connection):
        self.bind = bind

    def _inspector(self):
        return sa.inspect(self.bind)

    def has_table(self, table: str) -> bool:
        return self._inspector().has_table(table)

    def columns(self, table: str) -> dict[str, dict]:
        return {column["name"]: column for column in self._inspector().get_columns(table)}

    def has_column(self, table: str, column: str) -> bool:
        return column in self.columns(table)

    def has_index(self, table: str, name: str) -> bool:
        return any(index["name"] == name for index in self._inspector().get_indexes(table))

    def foreign_keys_on(self, table: str, column: str) -> list[str | None]:
        """Names of the foreign keys constraining ``column``."""
        return [
            fk.get("name")
            for fk in self._inspector().get_foreign_keys(table)
            if column in fk.get("constrained_columns", [])
        ]

    def has_foreign_key(self, table: str, name: str) -> bool:
        return name in self.foreign_key_names(table)

    def foreign_key_names(self, table: str) -> list[str | None]:
        return [fk.get("name") for fk in self._inspector().get_foreign_keys(table)]

    def has_unique_constraint(self, table: str, name: str) -> bool:
        return any(uq.get("name") == name for uq in self._inspector().get_unique_constraints(table))

    def unique_constraints_on(self, table: str, columns: list[str]) -> list[str | None]:
        """Names of the unique constraints covering exactly ``columns``."""
        return [
            uq.get("name")
            for uq in self._inspector().get_unique_constraints(table)
            if list(uq.get("column_names", [])) == list(columns)
        ]

    def row_count(self, table: str) -> int:
        return self.bind.execute(sa.select(sa.func.count()).select_from(sa.table(table))).scalar_one()

    def null_count(self, table: str, column: str) -> int:
        tbl = sa.table(table, sa.column(column))
        query = sa.select(sa.func.count()).select_from(tbl).where(tbl.c[column].is_(None))
        return self.bind.execute(query).scalar_one()
