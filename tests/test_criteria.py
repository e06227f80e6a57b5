"""
Tests des requêtes de blocs
  BlockCriteria / prep_value / has_blocks_clause
  get_eager_loading_map(db, field_id, owner_ids) → EagerLoadingMap
"""
import pytest
import sqlalchemy as sa
from sqlalchemy import event

from neoblocks.criteria import BlockCriteria, has_blocks_clause, prep_value
from neoblocks.eager_loading import get_eager_loading_map
from neoblocks.models import NEO_BLOCK, Block, BlockDB, Owner


# ── Helpers ───────────────────────────────────────────────────────────────

def add_block(db, field_id, type_id, owner_id, sort_order=0, level=1, enabled=True, locale="en"):
    row = BlockDB(field_id=field_id, type_id=type_id, owner_id=owner_id, owner_locale=locale,
                  sort_order=sort_order, level=level, enabled=enabled, content="{}")
    db.add(row)
    db.commit()
    return row.id


@pytest.fixture
def text_id(saved_settings):
    return saved_settings.block_types[0].id


@pytest.fixture
def tree(db, neo_field, text_id):
    """Propriétaire 7 : racine, enfant (désactivé), petit-enfant, racine."""
    return [
        add_block(db, neo_field.id, text_id, 7, sort_order=0, level=1),
        add_block(db, neo_field.id, text_id, 7, sort_order=1, level=2, enabled=False),
        add_block(db, neo_field.id, text_id, 7, sort_order=2, level=3),
        add_block(db, neo_field.id, text_id, 7, sort_order=3, level=1),
    ]


@pytest.fixture
def count_queries(engine):
    statements = []

    def before_execute(conn, cursor, statement, parameters, context, executemany):
        statements.append(statement)

    event.listen(engine, "before_cursor_execute", before_execute)
    yield statements
    event.remove(engine, "before_cursor_execute", before_execute)


# ── BlockCriteria ─────────────────────────────────────────────────────────

class TestBlockCriteria:
    def test_enabled_by_default(self, db, neo_field, tree):
        criteria = BlockCriteria(db, field_id=neo_field.id, owner_id=7, locale="en")
        assert [b.id for b in criteria.find()] == [tree[0], tree[2], tree[3]]

    def test_status_filters(self, db, neo_field, tree):
        assert BlockCriteria(db, field_id=neo_field.id, owner_id=7, status=None).count() == 4
        assert [b.id for b in BlockCriteria(db, field_id=neo_field.id, owner_id=7, status="disabled")] == [tree[1]]

    def test_level_limit_and_ids(self, db, neo_field, tree):
        assert [b.id for b in BlockCriteria(db, field_id=neo_field.id, level=1).find()] == [tree[0], tree[3]]
        assert BlockCriteria(db, field_id=neo_field.id, status=None, limit=2).count() == 2
        assert BlockCriteria(db, field_id=neo_field.id, id=[tree[3]]).first().id == tree[3]
        assert BlockCriteria(db, field_id=neo_field.id, id=tree[0]).first().id == tree[0]

    def test_no_result_markers(self, db, neo_field, tree):
        assert BlockCriteria(db, field_id=neo_field.id, id=False).find() == []
        assert BlockCriteria(None, field_id=neo_field.id).find() == []
        assert BlockCriteria(db, field_id=neo_field.id, owner_id=8).first() is None

    def test_results_linked(self, db, neo_field, tree):
        blocks = BlockCriteria(db, field_id=neo_field.id, owner_id=7, status=None).find()
        assert blocks[0].next is blocks[1]
        assert [b.sort_order for b in blocks] == [0, 1, 2, 3]

    def test_children(self, db, neo_field, tree):
        criteria = BlockCriteria(db, field_id=neo_field.id, owner_id=7, status=None)
        root = criteria.first()
        assert [b.id for b in criteria.children(root)] == [tree[1]]


class TestPrepValue:
    def test_in_memory_blocks_returned_without_query(self, db, count_queries):
        blocks = [Block(type_id=10, level=1), Block(type_id=10, level=2), Block(type_id=10, level=1)]
        criteria = prep_value(db, blocks, 1, Owner(id=7))
        assert criteria.is_in_memory
        assert criteria.find() == blocks
        assert criteria.children(blocks[0]) == [blocks[1]]
        assert blocks[1].prev is blocks[0]
        assert count_queries == []

    def test_empty_string(self, db, neo_field, tree):
        assert prep_value(db, "", neo_field.id, Owner(id=7)).find() == []

    def test_unsaved_owner(self, db, neo_field, tree):
        criteria = prep_value(db, None, neo_field.id, Owner())
        assert criteria.id is False
        assert criteria.find() == []

    def test_query_scoped_to_owner(self, db, neo_field, tree):
        criteria = prep_value(db, None, neo_field.id, Owner(id=7, locale="en"))
        assert not criteria.is_in_memory
        assert criteria.count() == 3
        assert prep_value(db, None, neo_field.id, Owner(id=7, locale="fr")).count() == 0


# ── :empty: / :notempty: ──────────────────────────────────────────────────

class TestHasBlocksClause:
    @pytest.fixture
    def entries(self, engine, db):
        metadata = sa.MetaData()
        table = sa.Table("entries", metadata, sa.Column("id", sa.Integer, primary_key=True))
        metadata.create_all(engine)
        db.execute(table.insert(), [{"id": 7}, {"id": 8}])
        db.commit()
        return table

    def ids(self, db, entries, clause):
        return [row.id for row in db.execute(sa.select(entries.c.id).where(clause).order_by(entries.c.id))]

    def test_not_empty(self, db, neo_field, tree, entries):
        assert self.ids(db, entries, has_blocks_clause(neo_field.id, entries.c.id, ":notempty:")) == [7]
        assert self.ids(db, entries, has_blocks_clause(neo_field.id, entries.c.id, "not :empty:")) == [7]

    def test_empty(self, db, neo_field, tree, entries):
        assert self.ids(db, entries, has_blocks_clause(neo_field.id, entries.c.id, ":empty:")) == [8]

    def test_other_values_ignored(self, neo_field):
        assert has_blocks_clause(neo_field.id, sa.column("id"), "anything") is None


# ── Eager-loading ─────────────────────────────────────────────────────────

class TestEagerLoading:
    def test_exact_pairs_for_batch(self, db, neo_field, text_id):
        a = [add_block(db, neo_field.id, text_id, 1), add_block(db, neo_field.id, text_id, 1)]
        b = [add_block(db, neo_field.id, text_id, 2), add_block(db, neo_field.id, text_id, 2)]
        add_block(db, neo_field.id, text_id, 3)

        result = get_eager_loading_map(db, neo_field.id, [1, 2])
        pairs = {(p["source"], p["target"]) for p in result.map}
        assert pairs == {(1, a[0]), (1, a[1]), (2, b[0]), (2, b[1])}
        assert len(result.map) == 4
        assert result.criteria == {"fieldId": neo_field.id}

    def test_single_query(self, db, neo_field, text_id, count_queries):
        for owner_id in (1, 2, 3):
            add_block(db, neo_field.id, text_id, owner_id)
        count_queries.clear()
        get_eager_loading_map(db, neo_field.id, [1, 2, 3])
        assert len(count_queries) == 1

    def test_other_field_excluded(self, db, neo_field, text_id):
        add_block(db, neo_field.id + 100, text_id, 1)
        assert get_eager_loading_map(db, neo_field.id, [1]).map == []

    def test_empty_batch(self, db, neo_field, count_queries):
        result = get_eager_loading_map(db, neo_field.id, [])
        assert result.map == []
        assert count_queries == []

    def test_payload(self, db, neo_field, text_id):
        target = add_block(db, neo_field.id, text_id, 1)
        assert get_eager_loading_map(db, neo_field.id, [1]).to_payload() == {
            "elementType": NEO_BLOCK,
            "map": [{"source": 1, "target": target}],
            "criteria": {"fieldId": neo_field.id},
        }
