"""
A small site in an in-memory SQLite database, laid out like the default SQL storage:

    node__body / node_revision__body                text with summary, all bundles
    node__field_notes / node_revision__field_notes  long text, page and blog
    node__field_tags / node_revision__field_tags    entity reference, article
"""

import logging

import pytest
from sqlalchemy import (
    Column,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    create_engine,
    select,
)
from sqlalchemy.pool import StaticPool

from Drupal.Replace.catalog import TomlCatalog

OLD = "devel.example.com"
NEW = "www.example.com"

BODY = [
    # entity_id, revision_id, bundle, value, summary
    (1, 2, "page", f"See http://{OLD}/a and {OLD}/b", ""),
    (2, 3, "article", "Nothing here", f"Teaser {OLD}"),
    (3, 4, "blog", f"{OLD} blog", None),
    (4, 5, "page", "DEVEL.EXAMPLE.COM upper", None),
    (5, 6, "article", "devel_example_com", None),
]
BODY_REVISION = [
    (1, 1, "page", f"Old {OLD} text", ""),
    *BODY,
]
NOTES = [
    (1, 2, "page", f"notes {OLD} {OLD}"),
    (3, 4, "blog", OLD),
]
NOTES_REVISION = [
    (1, 1, "page", "x"),
    *NOTES,
]
TAGS = [(2, 3, "article", 7)]

JOB = {
    "node": {
        "storage": "sql",
        "bundles": ["page", "article", "blog"],
        "field": [
            {
                "name": "body",
                "type": "text_with_summary",
                "bundles": ["page", "article", "blog"],
            },
            {"name": "field_notes", "type": "text_long", "bundles": ["page", "blog"]},
            {"name": "field_tags", "type": "entity_reference", "bundles": ["article"]},
        ],
    },
    "media": {"storage": "mongodb", "bundles": ["image"]},
}

JOB_TOML = """
[entity.node]
storage = "sql"
bundles = ["page", "article", "blog"]

[[entity.node.field]]
name = "body"
type = "text_with_summary"
bundles = ["page", "article", "blog"]

[[entity.node.field]]
name = "field_notes"
type = "text_long"
bundles = ["page", "blog"]

[[entity.node.field]]
name = "field_tags"
type = "entity_reference"
bundles = ["article"]
"""


def _field_table(metadata, name: str, field: str, columns: list) -> Table:
    return Table(
        name,
        metadata,
        Column("bundle", String(128)),
        Column("deleted", Integer, default=0),
        Column("entity_id", Integer),
        Column("revision_id", Integer),
        Column("langcode", String(32), default="en"),
        Column("delta", Integer, default=0),
        *[
            Column(f"{field}_{c}", Text if c != "target_id" else Integer)
            for c in columns
        ],
    )


def build_site(engine) -> MetaData:
    metadata = MetaData()
    tables = {}
    for prefix in ("node", "node_revision"):
        tables[f"{prefix}__body"] = _field_table(
            metadata, f"{prefix}__body", "body", ["value", "summary", "format"]
        )
        tables[f"{prefix}__field_notes"] = _field_table(
            metadata, f"{prefix}__field_notes", "field_notes", ["value", "format"]
        )
        tables[f"{prefix}__field_tags"] = _field_table(
            metadata, f"{prefix}__field_tags", "field_tags", ["target_id"]
        )
    metadata.create_all(engine)

    def body(rows):
        return [
            dict(
                entity_id=e, revision_id=r, bundle=b, body_value=v, body_summary=s,
                body_format="basic_html",
            )
            for e, r, b, v, s in rows
        ]

    def notes(rows):
        return [
            dict(
                entity_id=e, revision_id=r, bundle=b, field_notes_value=v,
                field_notes_format="plain_text",
            )
            for e, r, b, v in rows
        ]

    tags = [
        dict(entity_id=e, revision_id=r, bundle=b, field_tags_target_id=t)
        for e, r, b, t in TAGS
    ]
    with engine.begin() as conn:
        conn.execute(tables["node__body"].insert(), body(BODY))
        conn.execute(tables["node_revision__body"].insert(), body(BODY_REVISION))
        conn.execute(tables["node__field_notes"].insert(), notes(NOTES))
        conn.execute(
            tables["node_revision__field_notes"].insert(), notes(NOTES_REVISION)
        )
        conn.execute(tables["node__field_tags"].insert(), tags)
        conn.execute(tables["node_revision__field_tags"].insert(), tags)
    return metadata


def contents(engine, table_name: str, column_name: str) -> dict:
    """{(entity_id, revision_id): value} of one column."""
    metadata = MetaData()
    t = Table(table_name, metadata, autoload_with=engine)
    with engine.connect() as conn:
        rows = conn.execute(select(t.c.entity_id, t.c.revision_id, t.c[column_name]))
        return {(e, r): v for e, r, v in rows}


def snapshot(engine) -> dict:
    tables = {
        "node__body": ("body_value", "body_summary"),
        "node_revision__body": ("body_value", "body_summary"),
        "node__field_notes": ("field_notes_value",),
        "node_revision__field_notes": ("field_notes_value",),
    }
    return {
        (name, c): contents(engine, name, c)
        for name, cols in tables.items()
        for c in cols
    }


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    build_site(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def catalog():
    return TomlCatalog(conf=JOB)


@pytest.fixture
def job_file(tmp_path):
    fn = tmp_path / "replace.toml"
    fn.write_text(JOB_TOML, encoding="utf-8")
    return str(fn)


@pytest.fixture(autouse=True)
def reset_logging():
    yield
    logger = logging.getLogger("Drupal")
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()
    logger.setLevel(logging.NOTSET)
