"""
How is one field replaced?

plan() decides the shape of the work for one field: which tables (current and
revision), which bundles and whether a summary column goes along with the value
column. The AttributePlan then builds the SQLAlchemy statements the executor runs:

    update  UPDATE node__body
            SET body_value = replace(body_value, :s, :r),
                body_summary = replace(body_summary, :s, :r)
            WHERE bundle IN (...)
              AND (<body_value contains :s> OR <body_summary contains :s>)
    count   SELECT count(*) FROM node__body WHERE <same condition>
    ids     SELECT entity_id FROM node__body WHERE <same condition> ORDER BY entity_id

update uses the same condition as count, so the number of updated rows is the number
of rows that contained the search string, on every backend.

"contains" is a literal, case sensitive substring test. SQLite's LIKE ignores case,
so there we use instr(). Elsewhere it is LIKE with %, _ and the escape character
escaped. MySQL casts the column to BINARY first so that case matters; the cast
works whatever charset the column has, unlike a COLLATE clause.
"""

from dataclasses import dataclass

from sqlalchemy import (
    Integer,
    LargeBinary,
    String,
    Text,
    and_,
    cast,
    func,
    or_,
    select,
    type_coerce,
    update,
)
from sqlalchemy.sql import column, table

from Drupal.Replace.catalog import AttributeDefinition, Kind, TableLocation

CURRENT = "current"
REVISION = "revision"


@dataclass(frozen=True)
class AttributePlan:
    attribute: AttributeDefinition
    location: TableLocation
    bundles: frozenset
    has_summary: bool

    @property
    def targets(self) -> tuple:
        """(family, table name) pairs in the order they are processed."""
        return (
            (CURRENT, self.location.table),
            (REVISION, self.location.revision_table),
        )

    def count(self, *, table_name: str, search: str, dialect: str):
        t = self._table(table_name)
        return (
            select(func.count())
            .select_from(t)
            .where(self._condition(t=t, search=search, dialect=dialect))
        )

    def ids(self, *, table_name: str, search: str, dialect: str):
        t = self._table(table_name)
        id_column = t.c[self.location.id_column]
        return (
            select(id_column)
            .where(self._condition(t=t, search=search, dialect=dialect))
            .order_by(id_column)
        )

    def update(self, *, table_name: str, search: str, replace: str, dialect: str):
        t = self._table(table_name)
        values = {
            self.location.value_column: func.replace(
                t.c[self.location.value_column], search, replace
            )
        }
        if self.has_summary:
            values[self.location.summary_column] = func.replace(
                t.c[self.location.summary_column], search, replace
            )
        return (
            update(t)
            .where(self._condition(t=t, search=search, dialect=dialect))
            .values(values)
        )

    #
    # private
    #

    def _condition(self, *, t, search: str, dialect: str):
        columns = [t.c[self.location.value_column]]
        if self.has_summary:
            columns.append(t.c[self.location.summary_column])
        match = or_(*[_contains(c, search=search, dialect=dialect) for c in columns])
        in_scope = t.c[self.location.bundle_column].in_(sorted(self.bundles))
        return and_(in_scope, match)

    def _table(self, table_name: str):
        columns = [
            column(self.location.bundle_column, String),
            column(self.location.id_column, Integer),
            column(self.location.value_column, Text),
        ]
        if self.has_summary:
            columns.append(column(self.location.summary_column, Text))
        return table(table_name, *columns)


def plan(
    *, attribute: AttributeDefinition, location: TableLocation, bundles: frozenset
) -> AttributePlan:
    if not bundles:
        raise ValueError(f"Field '{attribute.name}' has no bundles in scope")
    has_summary = attribute.kind is Kind.TEXT_WITH_SUMMARY
    if has_summary and location.summary_column is None:
        raise ValueError(f"Field '{attribute.name}' has no summary column")
    return AttributePlan(
        attribute=attribute,
        location=location,
        bundles=frozenset(bundles),
        has_summary=has_summary,
    )


def _contains(col, *, search: str, dialect: str):
    if dialect == "sqlite":
        return func.instr(col, search) > 0
    elif dialect in ("mysql", "mariadb"):
        # CAST(col AS BINARY) LIKE ...; compared as a string on our side
        return type_coerce(cast(col, LargeBinary), Text).contains(
            search, autoescape=True
        )
    return col.contains(search, autoescape=True)
