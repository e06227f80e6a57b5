"""Fixtures partagées — SQLite en mémoire, champ Neo + champs feuilles, réglages types."""
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from neoblocks.database import db_field_catalog, init_db, jd
from neoblocks.models import (
    NEO_BLOCK,
    BlockTypeDefinition, FieldDB, FieldLayout, FieldLayoutField, FieldLayoutTab,
    FieldSettings, Group, Owner,
)
from neoblocks.registry import BlockTypeRegistry
from neoblocks.service import save_settings
from neoblocks.settings import prep_settings


# ── Réglages en mémoire (sans base) ───────────────────────────────────────────

TITLE   = FieldLayoutField(field_id=3, handle="title", name="Title", required=True)
BODY    = FieldLayoutField(field_id=4, handle="body", name="Body", type="textarea")
CAPTION = FieldLayoutField(field_id=5, handle="caption", name="Caption")


@pytest.fixture
def settings() -> FieldSettings:
    """Deux types : text (premier niveau, enfants text/quote) et quote (max 2, jamais au premier niveau)."""
    return FieldSettings(
        field_id=1,
        max_blocks=0,
        block_types=[
            BlockTypeDefinition(
                id=10, field_id=1, name="Text", handle="text", sort_order=1,
                child_blocks={"text", "quote"}, top_level=True,
                layout=FieldLayout(type=NEO_BLOCK, tabs=[FieldLayoutTab(name="Content", fields=[TITLE, BODY])]),
            ),
            BlockTypeDefinition(
                id=11, field_id=1, name="Quote", handle="quote", sort_order=2,
                max_blocks=2, top_level=False,
                layout=FieldLayout(type=NEO_BLOCK, tabs=[
                    FieldLayoutTab(name="Quote", sort_order=1, fields=[BODY]),
                    FieldLayoutTab(name="Meta", sort_order=2, fields=[CAPTION]),
                ]),
            ),
        ],
        groups=[Group(name="Basics", sort_order=0)],
    )


@pytest.fixture
def registry(settings) -> BlockTypeRegistry:
    return BlockTypeRegistry.from_settings(settings)


@pytest.fixture
def owner() -> Owner:
    return Owner(id=100, locale="en", content_post_location="fields")


# ── Base SQLite ───────────────────────────────────────────────────────────────

@pytest.fixture
def engine():
    engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def leaf_fields(db) -> dict:
    """Champs feuilles de l'hôte → {handle: id}."""
    rows = [
        FieldDB(name="Title", handle="title", type="text"),
        FieldDB(name="Body", handle="body", type="textarea"),
        FieldDB(name="Caption", handle="caption", type="text", instructions="Shown under the quote"),
    ]
    db.add_all(rows)
    db.commit()
    return {row.handle: row.id for row in rows}


@pytest.fixture
def neo_field(db) -> FieldDB:
    row = FieldDB(name="Content", handle="content", type="Neo", settings=jd({}))
    db.add(row)
    db.commit()
    db.refresh(row)
    return row


@pytest.fixture
def raw_settings(leaf_fields) -> dict:
    """Réglages tels que postés par le formulaire de configuration."""
    ids = {handle: str(field_id) for handle, field_id in leaf_fields.items()}
    return {
        "maxBlocks": "0",
        "blockTypes": {
            "new1": {
                "name": "Text", "handle": "text", "maxBlocks": "0", "sortOrder": "1",
                "childBlocks": ["text", "quote"], "topLevel": "1",
                "fieldLayout": {"Content": [ids["title"], ids["body"]]},
                "requiredFields": [ids["title"]],
            },
            "new2": {
                "name": "Quote", "handle": "quote", "maxBlocks": "2", "sortOrder": "2",
                "childBlocks": "", "topLevel": "",
                "fieldLayout": {"Quote": [ids["body"]], "Meta": [ids["caption"]]},
            },
        },
        "groups": {"name": ["Basics"], "sortOrder": ["0"]},
    }


@pytest.fixture
def saved_settings(db, neo_field, raw_settings) -> FieldSettings:
    settings = prep_settings(raw_settings, field_id=neo_field.id, catalog=db_field_catalog(db))
    return save_settings(db, settings)
