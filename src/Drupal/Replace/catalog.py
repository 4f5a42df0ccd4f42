"""
Where do the text fields of an entity type live?

A Catalog answers which fields an entity type has, what kind they are and on which
bundles they are present. A TableMapping answers where a field's values are stored:
the current table, the revision table and the column names.

Both are contracts. We ship two catalogs:
    TomlCatalog: fields declared in the job file
    SchemaCatalog: fields discovered by reflecting the database schema

and one mapping that follows the default SQL table layout

    node__body              current values
    node_revision__body     one row per revision
        bundle, entity_id, body_value, body_summary, body_format
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from sqlalchemy import inspect, select
from sqlalchemy.sql import column, table


class Kind(Enum):
    TEXT = "text"
    TEXT_WITH_SUMMARY = "text_with_summary"
    OTHER = "other"

    @classmethod
    def from_field_type(cls, field_type: str) -> "Kind":
        """
        Maps a declared field type (e.g. "text_long") to its kind. Only an explicit
        list counts as text; everything else is OTHER.
        """
        if field_type in ("text", "text_long"):
            return cls.TEXT
        elif field_type == "text_with_summary":
            return cls.TEXT_WITH_SUMMARY
        return cls.OTHER

    @property
    def eligible(self) -> bool:
        return self is not Kind.OTHER


@dataclass(frozen=True)
class AttributeDefinition:
    name: str
    kind: Kind
    bundles: frozenset = frozenset()
    table: Optional[str] = None
    revision_table: Optional[str] = None


@dataclass(frozen=True)
class TableLocation:
    table: str
    revision_table: str
    value_column: str
    summary_column: Optional[str] = None
    bundle_column: str = "bundle"
    id_column: str = "entity_id"


class Catalog(ABC):
    @abstractmethod
    def entity_types(self) -> list:
        pass

    @abstractmethod
    def storage(self, entity_type: str) -> Optional[str]:
        """Storage family of the entity type ("sql") or None if unknown."""
        pass

    @abstractmethod
    def bundles(self, entity_type: str) -> list:
        pass

    @abstractmethod
    def attributes(self, entity_type: str) -> list:
        """All fields of the entity type in catalog order, text or not."""
        pass


class TableMapping(ABC):
    @abstractmethod
    def location(
        self, *, entity_type: str, attribute: AttributeDefinition
    ) -> TableLocation:
        pass


class DefaultTableMapping(TableMapping):
    def __init__(self, *, prefix: str = "") -> None:
        self.prefix = prefix

    def location(
        self, *, entity_type: str, attribute: AttributeDefinition
    ) -> TableLocation:
        name = attribute.name
        current = attribute.table or f"{self.prefix}{entity_type}__{name}"
        revision = (
            attribute.revision_table or f"{self.prefix}{entity_type}_revision__{name}"
        )
        summary = None
        if attribute.kind is Kind.TEXT_WITH_SUMMARY:
            summary = f"{name}_summary"
        return TableLocation(
            table=current,
            revision_table=revision,
            value_column=f"{name}_value",
            summary_column=summary,
        )


class TomlCatalog(Catalog):
    """
    Catalog from the [entity] section of a job file, already parsed and checked by
    BaseApp._parse_conf:

        [entity.node]
        storage = "sql"
        bundles = ["page", "article"]

        [[entity.node.field]]
        name = "body"
        type = "text_with_summary"
        bundles = ["page", "article"]
    """

    def __init__(self, *, conf: dict) -> None:
        self.conf = conf

    def entity_types(self) -> list:
        return list(self.conf)

    def storage(self, entity_type: str) -> Optional[str]:
        try:
            entity = self.conf[entity_type]
        except KeyError:
            return None
        return entity.get("storage", "sql")

    def bundles(self, entity_type: str) -> list:
        try:
            return list(self.conf[entity_type].get("bundles", []))
        except KeyError:
            return []

    def attributes(self, entity_type: str) -> list:
        try:
            fieldL = self.conf[entity_type].get("field", [])
        except KeyError:
            return []
        attributes = []
        for field in fieldL:
            attributes.append(
                AttributeDefinition(
                    name=field["name"],
                    kind=Kind.from_field_type(field["type"]),
                    bundles=frozenset(field.get("bundles", self.bundles(entity_type))),
                    table=field.get("table"),
                    revision_table=field.get("revision_table"),
                )
            )
        return attributes


class SchemaCatalog(Catalog):
    """
    Catalog that looks at the live schema instead of a config file.

    Every table "{prefix}{entity}__{field}" is a field table. A field is text if the
    table has "{field}_value" and "{field}_format", text with summary if it also has
    "{field}_summary". Bundles are whatever shows up in the bundle column of the
    entity's field tables, so an empty site has no bundles.

    Reads schema metadata and distinct bundle names only, never field content.
    """

    def __init__(self, *, connection, prefix: str = "") -> None:
        self.connection = connection
        self.prefix = prefix
        self._tables = None
        self._bundles = {}  # table name -> frozenset, one scan per table

    def entity_types(self) -> list:
        types = []
        for name in self._field_tables():
            entity_type = name[len(self.prefix) :].split("__", 1)[0]
            if entity_type.endswith("_revision"):
                continue
            if entity_type not in types:
                types.append(entity_type)
        return types

    def storage(self, entity_type: str) -> Optional[str]:
        if entity_type in self.entity_types():
            return "sql"
        return None

    def bundles(self, entity_type: str) -> list:
        bundles = set()
        for name in self._field_tables(entity_type=entity_type):
            bundles |= self._field_bundles(name)
        return sorted(bundles)

    def attributes(self, entity_type: str) -> list:
        attributes = []
        for name in self._field_tables(entity_type=entity_type):
            field = name[len(f"{self.prefix}{entity_type}__") :]
            columns = self._tables[name]
            if f"{field}_value" in columns and f"{field}_format" in columns:
                if f"{field}_summary" in columns:
                    kind = Kind.TEXT_WITH_SUMMARY
                else:
                    kind = Kind.TEXT
            else:
                kind = Kind.OTHER
            bundles = frozenset()
            if kind.eligible:
                bundles = self._field_bundles(name)
            attributes.append(
                AttributeDefinition(name=field, kind=kind, bundles=bundles)
            )
        return attributes

    #
    # private
    #

    def _field_bundles(self, name: str) -> frozenset:
        if name not in self._bundles:
            q = select(column("bundle")).select_from(table(name)).distinct()
            self._bundles[name] = frozenset(self.connection.execute(q).scalars())
        return self._bundles[name]

    def _field_tables(self, *, entity_type: Optional[str] = None) -> list:
        """
        Returns names of field data tables (not revision tables) in schema order,
        optionally for one entity type only.
        """
        if self._tables is None:
            inspector = inspect(self.connection)
            self._tables = {}
            for name in sorted(inspector.get_table_names()):
                if not name.startswith(self.prefix) or "__" not in name:
                    continue
                columns = [c["name"] for c in inspector.get_columns(name)]
                if "bundle" not in columns or "entity_id" not in columns:
                    continue
                self._tables[name] = columns
        names = []
        for name in self._tables:
            entity_type_part = name[len(self.prefix) :].split("__", 1)[0]
            if entity_type_part.endswith("_revision"):
                continue
            if entity_type is None or entity_type_part == entity_type:
                names.append(name)
        return names
