from dataclasses import dataclass

import sqlalchemy as sa


@dataclass(frozen=True)
class TenantColumnSpec:
    """Shape of the isolation column added to every tenant-scoped table."""

    name: str = "organization_id"
    referent_table: str = "organizations"
    referent_column: str = "id"
    ondelete: str = "CASCADE"
    length: int = 64

    @classmethod
    def from_settings(cls, settings) -> "TenantColumnSpec":
        return cls(name=settings.tenant_column, referent_table=settings.tenant_table)

    def column_type(self) -> sa.String:
        # must match organizations.id
        return sa.String(self.length)

    def column(self, nullable: bool = True) -> sa.Column:
        return sa.Column(self.name, self.column_type(), nullable=nullable)

    def foreign_key_name(self, table: str) -> str:
        return f"fk_{table}_organization"

    def index_name(self, table: str) -> str:
        return f"ix_{table}_{self.name}"
