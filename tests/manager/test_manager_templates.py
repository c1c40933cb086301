"""Tests for PromptManager template lifecycle, versions and import/export."""

import pytest

from prompt_templates_core.exceptions import (
    DuplicateTemplateError,
    InvalidTypeError,
    TemplateNotFoundError,
    VersionNotFoundError,
)
from prompt_templates_core.manager import EXPORT_FORMAT_VERSION, PromptManager
from prompt_templates_core.settings import Settings


async def render_text(manager: PromptManager, identifier, variables=None, options=None) -> str:
    return (await manager.render_template(identifier, variables, options)).to_string()


# ---------------------------------------------------------------------------
# Template lifecycle
# ---------------------------------------------------------------------------


class TestCreateAndFind:
    @pytest.mark.asyncio
    async def test_create_and_render(self, manager):
        template = await manager.create_template("greeting", "Greeting", content="Hello, {{ name }}!")
        assert template.current_version_id is not None
        assert await render_text(manager, "greeting", {"name": "World"}) == "Hello, World!"

    @pytest.mark.asyncio
    async def test_lookup_by_id_and_slug(self, manager):
        template = await manager.create_template("greeting", "Greeting")
        assert (await manager.get_template(template.id)).slug == "greeting"
        assert (await manager.get_template("greeting")).id == template.id
        assert await manager.find_template("missing") is None
        with pytest.raises(TemplateNotFoundError, match="'missing'"):
            await manager.get_template("missing")

    @pytest.mark.asyncio
    async def test_duplicate_slug_rejected(self, manager):
        await manager.create_template("greeting", "Greeting")
        with pytest.raises(DuplicateTemplateError):
            await manager.create_template("greeting", "Again")

    @pytest.mark.asyncio
    async def test_unknown_type_rejected(self, manager):
        with pytest.raises(InvalidTypeError):
            await manager.create_template("odd", "Odd", type="no-such-type")
        assert await manager.find_template("odd") is None

    @pytest.mark.asyncio
    async def test_list_and_search(self, manager):
        await manager.create_template("support-chat", "Support", type="chat")
        await manager.create_template("summary", "Summary", description="Summarize support tickets")
        assert [t.slug for t in await manager.list_templates(type="chat")] == ["support-chat"]
        assert [t.slug for t in await manager.list_templates(search="tickets")] == ["summary"]


class TestUpdateAndDelete:
    @pytest.mark.asyncio
    async def test_update_attributes(self, manager):
        await manager.create_template("greeting", "Greeting")
        updated = await manager.update_template("greeting", name="Hello", metadata={"team": "growth"})
        assert updated.name == "Hello"
        assert updated.metadata == {"team": "growth"}

    @pytest.mark.asyncio
    async def test_update_content_creates_version(self, manager):
        await manager.create_template("greeting", "Greeting", content="Hello, {{ name }}!")
        await render_text(manager, "greeting", {"name": "Ada"})
        await manager.update_template("greeting", content="Hi, {{ name }}.", change_summary="Shorter")
        versions = await manager.list_versions("greeting")
        assert [v.version_number for v in versions] == [1, 2]
        assert versions[1].change_summary == "Shorter"
        assert await render_text(manager, "greeting", {"name": "Ada"}) == "Hi, Ada."

    @pytest.mark.asyncio
    async def test_update_rejects_unknown_fields(self, manager):
        await manager.create_template("greeting", "Greeting")
        with pytest.raises(ValueError, match="current_version_id"):
            await manager.update_template("greeting", current_version_id=5)

    @pytest.mark.asyncio
    async def test_rename_slug(self, manager):
        await manager.create_template("greeting", "Greeting", content="Hi")
        await manager.create_template("other", "Other")
        with pytest.raises(DuplicateTemplateError):
            await manager.update_template("greeting", slug="other")
        await manager.update_template("greeting", slug="welcome")
        assert await render_text(manager, "welcome") == "Hi"
        assert await manager.find_template("greeting") is None

    @pytest.mark.asyncio
    async def test_soft_delete_and_restore(self, manager):
        await manager.create_template("greeting", "Greeting", content="Hi")
        await render_text(manager, "greeting")
        assert await manager.delete_template("greeting")
        with pytest.raises(TemplateNotFoundError):
            await manager.render_template("greeting")
        restored = await manager.restore_template("greeting")
        assert not restored.is_deleted
        assert await render_text(manager, "greeting") == "Hi"

    @pytest.mark.asyncio
    async def test_restore_blocked_by_new_template_with_slug(self, manager):
        await manager.create_template("greeting", "Greeting")
        await manager.delete_template("greeting")
        await manager.create_template("greeting", "Replacement")
        old = next(t for t in await manager.store.list_templates(include_deleted=True) if t.is_deleted)
        with pytest.raises(DuplicateTemplateError):
            await manager.restore_template(old.id)

    @pytest.mark.asyncio
    async def test_force_delete_is_permanent(self, manager):
        template = await manager.create_template("greeting", "Greeting", content="Hi")
        await manager.delete_template("greeting", force=True)
        with pytest.raises(TemplateNotFoundError):
            await manager.restore_template(template.id)
        assert await manager.store.list_versions(template.id) == []

    @pytest.mark.asyncio
    async def test_hard_delete_when_soft_deletes_disabled(self, store, cache):
        manager = PromptManager(store=store, cache=cache, settings=Settings(soft_deletes=False))
        template = await manager.create_template("greeting", "Greeting")
        await manager.delete_template("greeting")
        assert await store.get_template(template.id, include_deleted=True) is None


class TestHeldEntities:
    @pytest.mark.asyncio
    async def test_render_follows_current_version(self, manager):
        template = await manager.create_template("greet", "Greet", content="v1 {{ x }}")
        await manager.create_version("greet", "v2 {{ x }}")
        assert await render_text(manager, template, {"x": "x"}) == "v2 x"

    @pytest.mark.asyncio
    async def test_update_keeps_current_version_pointer(self, manager):
        template = await manager.create_template("greet", "Greet", content="v1")
        await manager.create_version("greet", "v2")
        updated = await manager.update_template(template, name="Renamed")
        assert updated.name == "Renamed"
        assert await render_text(manager, "greet") == "v2"

    @pytest.mark.asyncio
    async def test_versioning_keeps_later_field_changes(self, manager):
        template = await manager.create_template("greet", "Greet", content="v1")
        await manager.update_template("greet", name="Renamed")
        await manager.create_version(template, "v2")
        await manager.publish_version(template, 1)
        current = await manager.get_template("greet")
        assert current.name == "Renamed"
        assert await render_text(manager, "greet") == "v1"

    @pytest.mark.asyncio
    async def test_deleted_entity_is_not_found(self, manager):
        template = await manager.create_template("greet", "Greet", content="v1")
        await manager.delete_template("greet")
        with pytest.raises(TemplateNotFoundError):
            await manager.render_template(template)
        assert (await manager.get_template(template, include_deleted=True)).is_deleted


class TestDuplicate:
    @pytest.mark.asyncio
    async def test_copies_current_version_and_shared_attachments(self, manager):
        await manager.create_template("greeting", "Greeting", content={"user_prompt": "v1"})
        await manager.update_template("greeting", content={"user_prompt": "v2 {{ name }}"})
        await manager.create_component("footer", "FOOTER")
        await manager.attach_component("greeting", "footer")
        await manager.attach_component("greeting", "footer", user_id="u1", is_enabled=False)

        copy = await manager.duplicate_template("greeting")

        assert copy.slug == "greeting-copy"
        assert copy.name == "Greeting (Copy)"
        versions = await manager.list_versions(copy)
        assert [(v.version_number, v.user_prompt) for v in versions] == [(1, "v2 {{ name }}")]
        assert versions[0].change_summary == "Duplicated from greeting v2"
        attachments = await manager.store.list_attachments(copy.id)
        assert [a.user_id for a in attachments] == [None]
        assert await render_text(manager, copy, {"name": "Ada"}) == "v2 Ada\n\nFOOTER"

    @pytest.mark.asyncio
    async def test_copy_slugs_are_numbered(self, manager):
        await manager.create_template("greeting", "Greeting")
        assert (await manager.duplicate_template("greeting")).slug == "greeting-copy"
        assert (await manager.duplicate_template("greeting")).slug == "greeting-copy-2"
        assert (await manager.duplicate_template("greeting", "custom", name="Custom")).name == "Custom"
        with pytest.raises(DuplicateTemplateError):
            await manager.duplicate_template("greeting", "custom")


# ---------------------------------------------------------------------------
# Export / import
# ---------------------------------------------------------------------------


class TestExportImport:
    @pytest.mark.asyncio
    async def test_import_reproduces_template(self, manager):
        await manager.create_template("greeting", "Greeting", type="chat", content={"system_prompt": "Be kind", "user_prompt": "Hi {{ name }}"})
        await manager.create_version("greeting", {"system_prompt": "Be brief", "user_prompt": "Yo {{ name }}"}, {"set_as_current": False})
        await manager.create_component("sig", "-- bot", template="greeting")

        exported = await manager.export_template("greeting")
        assert exported["export_version"] == EXPORT_FORMAT_VERSION
        assert exported["current_version"] == 1
        assert [c["key"] for c in exported["components"]] == ["sig"]

        imported = await manager.import_template(exported, slug="greeting-imported")

        assert imported.type == "chat"
        assert [v.version_number for v in await manager.list_versions(imported)] == [1, 2]
        original = await manager.render_template("greeting", {"name": "Ada"})
        copy = await manager.render_template("greeting-imported", {"name": "Ada"})
        assert copy.messages == original.messages
        assert original.user_prompt == "Hi Ada\n\n-- bot"

    @pytest.mark.asyncio
    async def test_import_existing_slug_requires_overwrite(self, manager):
        await manager.create_template("greeting", "Greeting", content="old")
        exported = await manager.export_template("greeting")
        await manager.update_template("greeting", content="newer")
        with pytest.raises(DuplicateTemplateError):
            await manager.import_template(exported)
        await manager.import_template(exported, overwrite=True)
        assert await render_text(manager, "greeting") == "old"

    @pytest.mark.asyncio
    async def test_rejects_unknown_export_version(self, manager):
        with pytest.raises(ValueError, match="Unsupported export version"):
            await manager.import_template({"export_version": "0.1", "template": {}})


# ---------------------------------------------------------------------------
# Versions
# ---------------------------------------------------------------------------


class TestVersions:
    @pytest.mark.asyncio
    async def test_numbering_and_current(self, manager):
        await manager.create_template("greeting", "Greeting", content="one")
        second = await manager.create_version("greeting", "two", {"set_as_current": False})
        assert second.version_number == 2
        assert await render_text(manager, "greeting") == "one"
        assert await render_text(manager, "greeting", options={"version": 2}) == "two"

    @pytest.mark.asyncio
    async def test_unknown_section_rejected(self, manager):
        await manager.create_template("greeting", "Greeting")
        with pytest.raises(ValueError, match="Unknown content sections: prompt"):
            await manager.create_version("greeting", {"prompt": "x"})

    @pytest.mark.asyncio
    async def test_missing_version(self, manager):
        await manager.create_template("greeting", "Greeting", content="one")
        with pytest.raises(VersionNotFoundError):
            await manager.get_version("greeting", 7)
        with pytest.raises(VersionNotFoundError):
            await manager.render_template("greeting", options={"version": 7})

    @pytest.mark.asyncio
    async def test_template_without_versions(self, manager):
        await manager.create_template("empty", "Empty")
        with pytest.raises(VersionNotFoundError) as exc_info:
            await manager.render_template("empty")
        assert exc_info.value.no_versions

    @pytest.mark.asyncio
    async def test_publish_and_published_strategy(self, manager):
        await manager.create_template("greeting", "Greeting", content="one")
        await manager.create_version("greeting", "two")
        published = await manager.publish_version("greeting", 1, set_as_current=False)
        assert published.is_published
        assert published.published_at is not None
        assert await render_text(manager, "greeting") == "two"
        assert await render_text(manager, "greeting", options={"version_strategy": "published"}) == "one"

    @pytest.mark.asyncio
    async def test_auto_publish(self, store, cache):
        manager = PromptManager(store=store, cache=cache, settings=Settings(auto_publish=True))
        await manager.create_template("greeting", "Greeting", content="one")
        assert (await manager.get_version("greeting", 1)).is_published

    @pytest.mark.asyncio
    async def test_mark_stable_is_exclusive(self, manager):
        await manager.create_template("greeting", "Greeting", content="one")
        await manager.create_version("greeting", "two")
        await manager.mark_stable("greeting", 1)
        await manager.mark_stable("greeting", 2)
        assert [v.is_stable for v in await manager.list_versions("greeting")] == [False, True]

    @pytest.mark.asyncio
    async def test_deprecate(self, manager):
        await manager.create_template("greeting", "Greeting", content="one")
        deprecated = await manager.deprecate_version("greeting", 1)
        assert deprecated.is_deprecated
        assert deprecated.deprecated_at is not None

    @pytest.mark.asyncio
    async def test_client_version_mapping(self, manager):
        await manager.create_template("greeting", "Greeting", content="legacy")
        await manager.create_version("greeting", "modern")
        mapping = {"rules": [{"pattern": "<2.0", "version": 1}, {"pattern": "*", "version": 2}]}
        old_client = await manager.resolve_version("greeting", {"version_mapping": {**mapping, "client_version": "1.4"}})
        assert old_client.version_number == 1
        assert await render_text(manager, "greeting", {"client_version": "3.0"}, {"version_mapping": mapping}) == "modern"

    @pytest.mark.asyncio
    async def test_migrate_content(self, manager):
        await manager.create_template("greeting", "Greeting")
        await manager.create_version("greeting", "one", {"mapping_rules": [{"type": "rename", "from": "old_key", "to": "new_key"}]})
        await manager.create_version("greeting", "two")

        result = await manager.migrate_content("greeting", 1, 2, {"old_key": "x"})

        assert result.success
        assert result.content == {"new_key": "x"}
        assert result.transformations == ["Renamed 'old_key' to 'new_key'"]
        with pytest.raises(VersionNotFoundError):
            await manager.migrate_content("greeting", 1, 9, {})

    @pytest.mark.asyncio
    async def test_diff(self, manager):
        await manager.create_template("greeting", "Greeting", content="one")
        await manager.create_version("greeting", {"content": "two", "system_prompt": "S"})
        assert await manager.diff_versions("greeting", 1, 2) == {
            "system_prompt": {"from": None, "to": "S"},
            "content": {"from": "one", "to": "two"},
        }
