# ==============================================
# DDL rendering
# ==============================================
#
# PURPOSE:
#   Render the proposed layout as a SQL Server script for review.
#   Nothing is executed; the script is text.
#
# ORDER:
#   1. CREATE TABLE for every root table
#   2. CREATE TABLE for every child table (shared tables once)
#   3. ALTER TABLE ... FOREIGN KEY
#   4. ALTER TABLE ... UNIQUE
#   5. CREATE NONCLUSTERED INDEX (primary keys and unique
#      constraints are already covered above)
#
# ==============================================

from typing import Iterable, List, Sequence

from .models import ContainerMapping, FieldMapping, IndexType, SharedSchema
from .naming import constraint_name

SCHEMA = "dbo"


def quote(identifier: str) -> str:
    """[bracket] an identifier, escaping closing brackets."""
    return "[" + identifier.replace("]", "]]") + "]"


def qualified(table: str) -> str:
    return f"{quote(SCHEMA)}.{quote(table)}"


def render_column(column: FieldMapping) -> str:
    null = "NULL" if column.is_nullable and not column.is_primary_key else "NOT NULL"
    return f"{quote(column.target_column)} {column.target_type} {null}"


def render_table(table: str, columns: Sequence[FieldMapping]) -> str:
    """CREATE TABLE with a clustered primary key constraint."""
    lines = [f"    {render_column(c)}" for c in columns]
    keys = [c.target_column for c in columns if c.is_primary_key]
    if keys:
        key_list = ", ".join(quote(k) for k in keys)
        lines.append(f"    CONSTRAINT {quote(constraint_name('PK', table))} PRIMARY KEY CLUSTERED ({key_list})")
    body = ",\n".join(lines)
    return f"CREATE TABLE {qualified(table)} (\n{body}\n);"


def render_ddl(mappings: Iterable[ContainerMapping], shared_schemas: Iterable[SharedSchema] = ()) -> str:
    """
    Render CREATE / ALTER statements for a whole assessment.

    Args:
        mappings: Container mappings (after link_child_tables)
        shared_schemas: Shared schemas of the run

    Returns:
        The script, statements separated by blank lines
    """
    mappings = list(mappings)
    statements: List[str] = []
    created = set()

    def create(table: str, columns: Sequence[FieldMapping]) -> None:
        if table.lower() in created:
            return
        created.add(table.lower())
        statements.append(render_table(table, columns))

    for mapping in mappings:
        create(mapping.target_table, mapping.field_mappings)
    for mapping in mappings:
        for child in mapping.all_child_tables():
            if child.shared_schema_id is None:
                create(child.target_table, child.field_mappings)
    for shared in shared_schemas:
        create(shared.target_table, shared.field_mappings)

    for mapping in mappings:
        for fk in mapping.foreign_keys:
            statements.append(
                f"ALTER TABLE {qualified(fk.child_table)} ADD CONSTRAINT {quote(fk.name)} "
                f"FOREIGN KEY ({quote(fk.child_column)}) "
                f"REFERENCES {qualified(fk.parent_table)} ({quote(fk.parent_column)}) "
                f"ON DELETE {fk.on_delete} ON UPDATE {fk.on_update};"
            )

    for mapping in mappings:
        for constraint in mapping.unique_constraints:
            columns = ", ".join(quote(c) for c in constraint.columns)
            statements.append(
                f"ALTER TABLE {qualified(constraint.table)} ADD CONSTRAINT {quote(constraint.name)} UNIQUE ({columns});"
            )

    for mapping in mappings:
        for index in sorted(mapping.indexes, key=lambda i: i.priority):
            if index.index_type is IndexType.CLUSTERED or index.is_unique:
                continue
            columns = ", ".join(quote(c) for c in index.columns)
            statements.append(f"CREATE NONCLUSTERED INDEX {quote(index.name)} ON {qualified(index.table)} ({columns});")

    return "\n\n".join(statements) + ("\n" if statements else "")
