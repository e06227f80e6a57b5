"""
Tests de NeoField — cycle complet vu par l'hôte :
réglages → soumission → validation → enregistrement → rendu.
"""
import pytest

from neoblocks.cache import MemoryCache, RenderCache
from neoblocks.criteria import BlockCriteria
from neoblocks.field import NeoField
from neoblocks.models import Owner
from neoblocks.renderer.input import NESTED_FIELD_HTML, NO_BLOCKS_HTML
from neoblocks.renderer.namespace import namespace_scope


@pytest.fixture
def field(db, neo_field, saved_settings):
    return NeoField(db, neo_field, cache=RenderCache(MemoryCache()))


@pytest.fixture
def owner():
    return Owner(id=7, locale="en", content_post_location="fields")


POSTED = {
    "new1": {"type": "text", "level": 0, "fields": {"title": "Intro"}},
    "new2": {"type": "quote", "level": 1, "fields": {"body": "Quoted"}},
}


class TestLifecycle:
    def test_submit_validate_save_render(self, field, owner):
        blocks = field.prep_value_from_post(POSTED, owner)
        assert field.validate(blocks).valid
        saved = field.on_after_element_save(owner, blocks)
        assert all(b.id for b in saved)

        html = field.get_input_html("content", field.prep_value(None, owner))
        assert "new Neo.Input(" in html
        assert 'value="Intro"' in html

    def test_existing_blocks_reloaded_by_id(self, field, owner):
        saved = field.on_after_element_save(owner, field.prep_value_from_post(POSTED, owner))
        again = field.prep_value_from_post({str(saved[0].id): {"type": "text", "modified": "0"}}, owner)
        assert again[0].id == saved[0].id
        assert again[0].content == {"title": "Intro"}
        assert again[0].content_post_location == f"fields.content.{saved[0].id}.fields"

    def test_non_mapping_post(self, field, owner):
        assert field.prep_value_from_post("garbage", owner) == []

    def test_validation_with_settings_limit(self, db, neo_field, raw_settings, owner):
        field = NeoField(db, neo_field)
        field.prep_settings({**raw_settings, "maxBlocks": "1"})
        field.on_after_save()
        result = NeoField(db, neo_field).validate(field.prep_value_from_post(POSTED, owner))
        assert result.errors == ["There can't be more than one block."]

    def test_host_block_validator(self, db, neo_field, saved_settings, owner):
        field = NeoField(db, neo_field, block_validator=lambda block, block_type: False)
        result = field.validate(field.prep_value_from_post(POSTED, owner))
        assert result.errors == ["Correct the errors listed above."]

    def test_prep_value_in_memory(self, field, owner):
        blocks = field.prep_value_from_post(POSTED, owner)
        criteria = field.prep_value(blocks, owner)
        assert isinstance(criteria, BlockCriteria)
        assert criteria.find() == blocks


class TestRendering:
    def test_static_empty(self, field):
        assert field.get_static_html([]) == NO_BLOCKS_HTML

    def test_input_nested_too_deep(self, field):
        with namespace_scope("fields[matrix][blocks][fields]"):
            assert field.get_input_html("content", []) == NESTED_FIELD_HTML

    def test_settings_html(self, field):
        html = field.get_settings_html()
        assert html.startswith('<div class="neo-configurator" data-field="content"></div>')
        assert "new Neo.Configurator(" in html

    def test_settings_html_nested_too_deep(self, field):
        with namespace_scope("fields[a][fields][b][fields]"):
            assert field.get_settings_html() == NESTED_FIELD_HTML


class TestQueries:
    def test_eager_loading_map(self, field, owner):
        field.on_after_element_save(owner, field.prep_value_from_post(POSTED, owner))
        assert len(field.get_eager_loading_map([owner.id]).map) == 2

    def test_delete(self, db, field, owner):
        field.on_after_element_save(owner, field.prep_value_from_post(POSTED, owner))
        field.on_before_delete()
        assert field.get_settings().block_types == []
        assert field.prep_value(None, owner).find() == []
