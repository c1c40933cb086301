"""PromptManager: async facade over storage, caching, rendering, versioning and pipelines.

@public

Every identifier accepted by the facade may be an integer id, a slug (or
component key), or the entity itself. Lookup failures raise immediately;
pipeline-internal failures are reported through the returned PipelineContext.

Example:
    >>> manager = PromptManager()
    >>> await manager.create_template("greeting", "Greeting", content="Hello, {{ name }}!")
    >>> (await manager.render_template("greeting", {"name": "World"})).to_string()
    'Hello, World!'
"""

import time
from collections.abc import Mapping, Sequence
from datetime import UTC, datetime
from typing import Any

from prompt_templates_core.cache import MemoryTemplateCache, TemplateCache, render_key, render_prefix, template_key
from prompt_templates_core.exceptions import (
    ComponentNotFoundError,
    DuplicateTemplateError,
    InvalidTypeError,
    TemplateNotFoundError,
    VersionNotFoundError,
)
from prompt_templates_core.handlers import HandlerRegistry, TypeHandler, default_handler_registry
from prompt_templates_core.logging import get_pipeline_logger
from prompt_templates_core.pipeline import (
    PipelineBuilder,
    PipelineContext,
    PipelineExecutor,
    PipelineRef,
    StepHandlerRegistry,
)
from prompt_templates_core.settings import Settings
from prompt_templates_core.settings import settings as default_settings
from prompt_templates_core.store import MemoryTemplateStore, TemplateStore, get_template_store
from prompt_templates_core.templates.composition import ResolvedComponent
from prompt_templates_core.templates.conditions import Condition
from prompt_templates_core.templates.models import (
    SECTION_NAMES,
    ComponentAttachment,
    MappingRule,
    PromptComponent,
    PromptExecution,
    PromptTemplate,
    PromptType,
    TemplateVersion,
    utcnow,
)
from prompt_templates_core.templates.pipes import Pipe, apply_pipes
from prompt_templates_core.templates.rendered import RenderContext, RenderedPrompt
from prompt_templates_core.transforms import TransformRegistry, default_transforms
from prompt_templates_core.versioning import VersionMappingResult, VersionMigrator, VersionResolver, diff_versions

logger = get_pipeline_logger(__name__)

EXPORT_FORMAT_VERSION = "1.0"

TemplateRef = PromptTemplate | int | str
ComponentRef = PromptComponent | int | str
VersionContent = Mapping[str, Any] | str

_VERSION_OPTIONS = ("variables", "component_config", "mapping_rules", "mapper", "change_summary", "created_by")


def _section_content(content: VersionContent) -> dict[str, Any]:
    """Normalize version content. A bare string is the `content` section."""
    if isinstance(content, str):
        return {"content": content}
    unknown = set(content) - set(SECTION_NAMES)
    if unknown:
        raise ValueError(f"Unknown content sections: {', '.join(sorted(unknown))}")
    return dict(content)


class PromptManager:
    """Entry point for template management and rendering.

    @public

    Collaborators default to in-process implementations: the global template
    store if one is set (otherwise a fresh MemoryTemplateStore), a
    MemoryTemplateCache, the built-in type handlers and the default version
    resolver.
    """

    def __init__(
        self,
        store: TemplateStore | None = None,
        cache: TemplateCache | None = None,
        handlers: HandlerRegistry | None = None,
        resolver: VersionResolver | None = None,
        migrator: VersionMigrator | None = None,
        settings: Settings | None = None,
        *,
        transforms: TransformRegistry | None = None,
        step_handlers: StepHandlerRegistry | None = None,
    ) -> None:
        self.settings = settings or default_settings
        self.store: TemplateStore = store or get_template_store() or MemoryTemplateStore()
        self.cache: TemplateCache = cache if cache is not None else MemoryTemplateCache(self.settings.cache_ttl)
        self.handlers = handlers or default_handler_registry()
        self.resolver = resolver or VersionResolver()
        self.transforms = transforms or default_transforms
        self.migrator = migrator or VersionMigrator(transforms=self.transforms)
        self.step_handlers = step_handlers or StepHandlerRegistry()
        self._executor: PipelineExecutor | None = None

    @property
    def executor(self) -> PipelineExecutor:
        if self._executor is None:
            self._executor = PipelineExecutor(
                self,
                self.store,
                step_handlers=self.step_handlers,
                transforms=self.transforms,
                settings=self.settings,
            )
        return self._executor

    # -- templates ----------------------------------------------------------

    async def find_template(self, identifier: TemplateRef, *, include_deleted: bool = False) -> PromptTemplate | None:
        """Template by id, slug or entity. Entities are always reloaded from the store by id."""
        if isinstance(identifier, PromptTemplate):
            return await self.store.get_template(identifier.id, include_deleted=include_deleted)
        if isinstance(identifier, int):
            return await self.store.get_template(identifier, include_deleted=include_deleted)
        if include_deleted or not self.settings.cache_enabled:
            return await self.store.get_template_by_slug(identifier, include_deleted=include_deleted)

        key = template_key(self.settings.cache_prefix, identifier)
        cached = self.cache.get(key)
        if cached is not None:
            return cached
        template = await self.store.get_template_by_slug(identifier)
        if template is not None:
            self.cache.set(key, template, self.settings.cache_ttl)
        return template

    async def get_template(self, identifier: TemplateRef, *, include_deleted: bool = False) -> PromptTemplate:
        """Template by id or slug.

        Raises:
            TemplateNotFoundError: No matching template (soft-deleted ones are
                                   hidden unless include_deleted).
        """
        template = await self.find_template(identifier, include_deleted=include_deleted)
        if template is None:
            raise TemplateNotFoundError(identifier.slug if isinstance(identifier, PromptTemplate) else identifier)
        return template

    async def list_templates(self, *, type: str | None = None, search: str | None = None) -> list[PromptTemplate]:
        return await self.store.list_templates(type=type, search=search)

    async def create_template(
        self,
        slug: str,
        name: str,
        *,
        description: str = "",
        type: str | None = None,
        metadata: Mapping[str, Any] | None = None,
        content: VersionContent | None = None,
        variables: Mapping[str, dict[str, Any]] | None = None,
        created_by: str | None = None,
        change_summary: str = "Initial version",
    ) -> PromptTemplate:
        """Create a template, and its first version when content is given.

        Raises:
            DuplicateTemplateError: A live template already uses the slug.
            InvalidTypeError: The type has no registered handler.
        """
        if await self.store.get_template_by_slug(slug) is not None:
            raise DuplicateTemplateError(slug)
        type_key = type or self.settings.default_type
        await self._handler_for(type_key)

        template = await self.store.save_template(
            PromptTemplate(slug=slug, name=name, description=description, type=type_key, metadata=dict(metadata or {}))
        )
        logger.info("Created template '%s' (id %d)", slug, template.id)
        if content is not None:
            await self.create_version(
                template,
                content,
                {"variables": dict(variables or {}), "created_by": created_by, "change_summary": change_summary},
            )
            template = await self.get_template(template.id)
        self._invalidate(template)
        return template

    async def update_template(self, identifier: TemplateRef, **changes: Any) -> PromptTemplate:
        """Update template attributes. A `content` change creates a new version.

        Accepted keys: name, description, type, metadata, is_active, slug,
        plus content with the create_version options.
        """
        template = await self.get_template(identifier)
        content = changes.pop("content", None)
        version_options = {name: changes.pop(name) for name in (*_VERSION_OPTIONS, "publish", "set_as_current") if name in changes}
        unknown = set(changes) - {"name", "description", "type", "metadata", "is_active", "slug"}
        if unknown:
            raise ValueError(f"Cannot update template fields: {', '.join(sorted(unknown))}")

        if "slug" in changes and changes["slug"] != template.slug:
            clash = await self.store.get_template_by_slug(changes["slug"])
            if clash is not None and clash.id != template.id:
                raise DuplicateTemplateError(changes["slug"])
        if "type" in changes:
            await self._handler_for(changes["type"])

        self._invalidate(template)
        updated = await self.store.save_template(template.model_copy(update={**changes, "updated_at": utcnow()}))
        if content is not None:
            await self.create_version(updated, content, version_options)
            updated = await self.get_template(updated.id)
        self._invalidate(updated)
        return updated

    async def delete_template(self, identifier: TemplateRef, *, force: bool = False) -> bool:
        """Tombstone a template, or remove it with its versions when force or soft deletes are off."""
        template = await self.get_template(identifier)
        soft = self.settings.soft_deletes and not force
        deleted = await self.store.delete_template(template.id, soft=soft)
        self._invalidate(template)
        logger.info("Deleted template '%s' (%s)", template.slug, "soft" if soft else "hard")
        return deleted

    async def restore_template(self, identifier: TemplateRef) -> PromptTemplate:
        template = await self.get_template(identifier, include_deleted=True)
        if not template.is_deleted:
            return template
        clash = await self.store.get_template_by_slug(template.slug)
        if clash is not None and clash.id != template.id:
            raise DuplicateTemplateError(template.slug)
        restored = await self.store.save_template(template.model_copy(update={"deleted_at": None, "updated_at": utcnow()}))
        self._invalidate(restored)
        return restored

    async def duplicate_template(self, identifier: TemplateRef, slug: str | None = None, *, name: str | None = None) -> PromptTemplate:
        """Copy a template with its current version (as version 1) and shared attachments.

        The slug defaults to `<slug>-copy`, then `<slug>-copy-2` and so on.
        """
        source = await self.get_template(identifier)
        if slug is None:
            slug = await self._free_slug(f"{source.slug}-copy")
        elif await self.store.get_template_by_slug(slug) is not None:
            raise DuplicateTemplateError(slug)

        duplicate = await self.store.save_template(
            source.model_copy(
                update={
                    "id": 0,
                    "slug": slug,
                    "name": name or f"{source.name} (Copy)",
                    "current_version_id": None,
                    "created_at": utcnow(),
                    "updated_at": utcnow(),
                }
            )
        )
        versions = await self.store.list_versions(source.id)
        if versions:
            current = await self.resolve_version(source)
            await self.create_version(duplicate, current.content_dict(), self._version_options(current, change_summary=f"Duplicated from {source.slug} v{current.version_number}"))
        for attachment in await self.store.list_attachments(source.id):
            if attachment.user_id is None:
                await self.store.save_attachment(attachment.model_copy(update={"id": 0, "template_id": duplicate.id}))
        return await self.get_template(duplicate.id)

    async def export_template(self, identifier: TemplateRef) -> dict[str, Any]:
        """Portable JSON-compatible dump of a template, its versions and attached components."""
        template = await self.get_template(identifier)
        versions = await self.store.list_versions(template.id)
        current = next((v.version_number for v in versions if v.id == template.current_version_id), None)
        components = []
        for attachment in await self.store.list_attachments(template.id):
            if attachment.user_id is not None:
                continue
            component = await self.store.get_component(attachment.component_id)
            if component is None:
                continue
            components.append(
                {
                    **component.model_dump(mode="json", exclude={"id", "template_id", "created_at", "deleted_at"}),
                    "scoped": component.template_id is not None,
                    "attachment": attachment.model_dump(mode="json", exclude={"id", "template_id", "component_id", "user_id"}),
                }
            )
        return {
            "export_version": EXPORT_FORMAT_VERSION,
            "exported_at": datetime.now(UTC).isoformat(),
            "template": template.model_dump(mode="json", include={"slug", "name", "description", "type", "metadata", "is_active"}),
            "current_version": current,
            "versions": [
                version.model_dump(mode="json", by_alias=True, exclude={"id", "template_id", "created_at", "published_at", "deprecated_at"})
                for version in versions
            ],
            "components": components,
        }

    async def import_template(self, data: Mapping[str, Any], *, slug: str | None = None, overwrite: bool = False) -> PromptTemplate:
        """Recreate a template from export_template() output.

        With overwrite, an existing template with the slug is hard-deleted first.
        Components are matched by key and only created when missing.
        """
        if data.get("export_version") != EXPORT_FORMAT_VERSION:
            raise ValueError(f"Unsupported export version: {data.get('export_version')!r}")
        fields = data["template"]
        slug = slug or fields["slug"]

        existing = await self.store.get_template_by_slug(slug)
        if existing is not None:
            if not overwrite:
                raise DuplicateTemplateError(slug)
            await self.delete_template(existing, force=True)

        template = await self.create_template(
            slug,
            fields["name"],
            description=fields.get("description", ""),
            type=fields.get("type"),
            metadata=fields.get("metadata"),
        )
        current_number = data.get("current_version")
        for raw in sorted(data.get("versions", []), key=lambda v: v["version_number"]):
            version = TemplateVersion.model_validate({**raw, "template_id": template.id})
            stored = await self.store.save_version(version)
            if current_number is None or stored.version_number == current_number:
                template = await self.store.save_template(template.model_copy(update={"current_version_id": stored.id}))

        for raw in data.get("components", []):
            raw = dict(raw)
            attachment = raw.pop("attachment", {})
            scoped = raw.pop("scoped", False)
            component = await self.store.get_component_by_key(raw["key"])
            if component is None:
                component = await self.store.save_component(
                    PromptComponent.model_validate({**raw, "template_id": template.id if scoped else None})
                )
            await self.store.save_attachment(ComponentAttachment.model_validate({**attachment, "template_id": template.id, "component_id": component.id}))

        self._invalidate(template)
        logger.info("Imported template '%s' with %d versions", slug, len(data.get("versions", [])))
        return await self.get_template(template.id)

    # -- versions -----------------------------------------------------------

    async def create_version(
        self,
        template: TemplateRef,
        content: VersionContent,
        options: Mapping[str, Any] | None = None,
    ) -> TemplateVersion:
        """Snapshot new content as the next version of a template.

        Args:
            template: Template id, slug or entity.
            content: Section texts, or a bare string for the `content` section.
            options: variables, component_config, mapping_rules, mapper,
                     change_summary, created_by, set_as_current (default True),
                     publish (default settings.auto_publish).

        Returns:
            The stored version, numbered one above the current maximum.
        """
        resolved = await self.get_template(template)
        options = dict(options or {})
        sections = _section_content(content)
        versions = await self.store.list_versions(resolved.id)
        number = max((v.version_number for v in versions), default=0) + 1
        publish = options.pop("publish", self.settings.auto_publish)
        set_as_current = options.pop("set_as_current", True)

        rules = [rule if isinstance(rule, MappingRule) else MappingRule.model_validate(rule) for rule in options.pop("mapping_rules", None) or []]
        extra = {name: options[name] for name in _VERSION_OPTIONS if options.get(name) is not None and name != "mapping_rules"}
        version = await self.store.save_version(
            TemplateVersion(
                template_id=resolved.id,
                version_number=number,
                **sections,
                **extra,
                mapping_rules=rules,
                is_published=bool(publish),
                published_at=utcnow() if publish else None,
            )
        )
        if set_as_current:
            await self.store.save_template(resolved.model_copy(update={"current_version_id": version.id, "updated_at": utcnow()}))
        self._invalidate(resolved)
        logger.info("Created version %d of '%s'", number, resolved.slug)
        return version

    async def list_versions(self, template: TemplateRef) -> list[TemplateVersion]:
        resolved = await self.get_template(template)
        return await self.store.list_versions(resolved.id)

    async def get_version(self, template: TemplateRef, version_number: int) -> TemplateVersion:
        resolved = await self.get_template(template)
        for version in await self.store.list_versions(resolved.id):
            if version.version_number == version_number:
                return version
        raise VersionNotFoundError(resolved.slug, version_number)

    async def publish_version(self, template: TemplateRef, version_number: int, *, set_as_current: bool = True) -> TemplateVersion:
        resolved = await self.get_template(template)
        version = await self.get_version(resolved, version_number)
        published = await self.store.save_version(version.model_copy(update={"is_published": True, "published_at": utcnow()}))
        if set_as_current:
            await self.store.save_template(resolved.model_copy(update={"current_version_id": published.id, "updated_at": utcnow()}))
        self._invalidate(resolved)
        return published

    async def mark_stable(self, template: TemplateRef, version_number: int) -> TemplateVersion:
        """Flag one version as stable, clearing the flag on every other version of the template."""
        resolved = await self.get_template(template)
        target = await self.get_version(resolved, version_number)
        for version in await self.store.list_versions(resolved.id):
            if version.is_stable and version.id != target.id:
                await self.store.save_version(version.model_copy(update={"is_stable": False}))
        stable = await self.store.save_version(target.model_copy(update={"is_stable": True}))
        self._invalidate(resolved)
        return stable

    async def deprecate_version(self, template: TemplateRef, version_number: int) -> TemplateVersion:
        resolved = await self.get_template(template)
        version = await self.get_version(resolved, version_number)
        deprecated = await self.store.save_version(version.model_copy(update={"is_deprecated": True, "deprecated_at": utcnow()}))
        self._invalidate(resolved)
        return deprecated

    async def resolve_version(self, template: TemplateRef, context: RenderContext | Mapping[str, Any] | None = None) -> TemplateVersion:
        """Version a render with this context would use.

        Raises:
            VersionNotFoundError: The explicit version is missing, or the template has no versions.
        """
        resolved = await self.get_template(template)
        if not isinstance(context, RenderContext):
            context = RenderContext.from_options(None, dict(context or {}))
        versions = await self.store.list_versions(resolved.id)
        return self.resolver.resolve(resolved, versions, context)

    async def migrate_content(
        self,
        template: TemplateRef,
        from_version: int,
        to_version: int,
        content: Mapping[str, Any],
    ) -> VersionMappingResult:
        resolved = await self.get_template(template)
        versions = await self.store.list_versions(resolved.id)
        by_number = {version.version_number: version for version in versions}
        if from_version not in by_number:
            raise VersionNotFoundError(resolved.slug, from_version)
        if to_version not in by_number:
            raise VersionNotFoundError(resolved.slug, to_version)
        return self.migrator.migrate(versions, by_number[from_version], by_number[to_version], content)

    async def diff_versions(self, template: TemplateRef, version_a: int, version_b: int) -> dict[str, dict[str, Any]]:
        return diff_versions(await self.get_version(template, version_a), await self.get_version(template, version_b))

    # -- rendering ----------------------------------------------------------

    async def render_template(
        self,
        identifier: TemplateRef,
        variables: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | RenderContext | None = None,
        *,
        pipes: Sequence[Pipe] = (),
    ) -> RenderedPrompt:
        """Render a template with its type handler.

        Args:
            identifier: Template id, slug or entity.
            variables: Placeholder values.
            options: RenderContext fields (version, enabled_components,
                     disabled_components, user_id, with_components, strict,
                     previous_result, metadata); other keys land in metadata.
                     `cache=False` bypasses the render cache.
            pipes: Variable pipes applied to the context before rendering.

        Raises:
            TemplateNotFoundError: Unknown template.
            VersionNotFoundError: No version matches the context.
            InvalidTypeError: The template's type has no handler.
            InvalidContextError: The handler rejected the version or context.
            RenderingFailedError: Any other failure during rendering.
        """
        started = time.perf_counter()
        template = await self.get_template(identifier)

        if isinstance(options, RenderContext):
            context = options.with_variables(dict(variables or {}))
            use_cache = True
        else:
            raw_options = dict(options or {})
            use_cache = bool(raw_options.pop("cache", True))
            context = RenderContext.from_options(dict(variables or {}), raw_options)
        context = apply_pipes(context, pipes)
        use_cache = use_cache and self.settings.cache_enabled and not pipes

        key = render_key(self.settings.cache_prefix, template.id, context.version, context.variables, context.model_dump(exclude={"variables"}))
        rendered = self.cache.get(key) if use_cache else None
        if rendered is None:
            versions = await self.store.list_versions(template.id)
            version = self.resolver.resolve(template, versions, context)
            handler = await self._handler_for(template.type)
            components = await self.resolve_components(template, context.user_id) if context.with_components else []
            rendered = handler(template, version, components, context)
            if "validation_errors" in context.metadata:
                rendered = rendered.model_copy(update={"metadata": {**rendered.metadata, "validation_errors": context.metadata["validation_errors"]}})
            if use_cache:
                self.cache.set(key, rendered, self.settings.cache_ttl)
        else:
            logger.debug("Render cache hit for '%s'", template.slug)

        if self.settings.track_executions:
            await self._track(template, rendered, context, (time.perf_counter() - started) * 1000)
        return rendered

    async def resolve_components(self, template: PromptTemplate, user_id: str | None = None) -> list[ResolvedComponent]:
        """Attached components merged with their attachment settings.

        A user's own attachment record replaces the shared record for that
        component; inactive and deleted components are skipped.
        """
        attachments: dict[int, ComponentAttachment] = {}
        for attachment in await self.store.list_attachments(template.id):
            if attachment.user_id is None:
                attachments.setdefault(attachment.component_id, attachment)
        if user_id is not None:
            for attachment in await self.store.list_attachments(template.id):
                if attachment.user_id == user_id:
                    attachments[attachment.component_id] = attachment

        resolved = []
        for component_id, attachment in attachments.items():
            component = await self.store.get_component(component_id)
            if component is None or not component.is_active:
                continue
            resolved.append(ResolvedComponent.from_attachment(component, attachment))
        return sorted(resolved, key=lambda component: component.order)

    async def list_executions(self, template: TemplateRef | None = None) -> list[PromptExecution]:
        template_id = (await self.get_template(template)).id if template is not None else None
        return await self.store.list_executions(template_id=template_id)

    # -- components ---------------------------------------------------------

    async def get_component(self, identifier: ComponentRef) -> PromptComponent:
        if isinstance(identifier, PromptComponent):
            return identifier
        if isinstance(identifier, int):
            component = await self.store.get_component(identifier)
        else:
            component = await self.store.get_component_by_key(identifier)
        if component is None:
            raise ComponentNotFoundError(identifier)
        return component

    async def create_component(
        self,
        key: str,
        content: str,
        *,
        name: str = "",
        description: str = "",
        position: str = "append",
        is_default_enabled: bool = True,
        conditions: Sequence[Condition | Mapping[str, Any]] = (),
        variables: Mapping[str, Any] | None = None,
        template: TemplateRef | None = None,
    ) -> PromptComponent:
        """Create a component. With `template`, it is scoped to and attached to that template."""
        if await self.store.get_component_by_key(key) is not None:
            raise ValueError(f"Component with key '{key}' already exists")
        owner = await self.get_template(template) if template is not None else None
        component = await self.store.save_component(
            PromptComponent(
                key=key,
                name=name or key,
                content=content,
                description=description,
                position=position,
                is_default_enabled=is_default_enabled,
                conditions=[Condition.model_validate(c) if isinstance(c, Mapping) else c for c in conditions],
                variables=dict(variables or {}),
                template_id=owner.id if owner else None,
            )
        )
        if owner is not None:
            await self.attach_component(owner, component)
        return component

    async def attach_component(
        self,
        template: TemplateRef,
        component: ComponentRef,
        *,
        user_id: str | None = None,
        order: int | None = None,
        is_enabled: bool | None = None,
        target: str | None = None,
        position: str | None = None,
        conditions: Sequence[Condition | Mapping[str, Any]] = (),
        variable_overrides: Mapping[str, Any] | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> ComponentAttachment:
        """Attach a component, or update the existing attachment for the same (component, user).

        `order` defaults to one past the highest order in the same scope.
        """
        resolved = await self.get_template(template)
        comp = await self.get_component(component)
        scope = [a for a in await self.store.list_attachments(resolved.id) if a.user_id == user_id]
        existing = next((a for a in scope if a.component_id == comp.id), None)
        if order is None:
            order = existing.order if existing else max((a.order for a in scope), default=-1) + 1

        fields: dict[str, Any] = {
            "template_id": resolved.id,
            "component_id": comp.id,
            "user_id": user_id,
            "order": order,
            "is_enabled": self.settings.components_default_enabled if is_enabled is None else is_enabled,
            "target": target,
            "position": position,
            "conditions": [Condition.model_validate(c) if isinstance(c, Mapping) else c for c in conditions],
            "variable_overrides": dict(variable_overrides or {}),
            "config": dict(config or {}),
        }
        attachment = await self.store.save_attachment(
            existing.model_copy(update=fields) if existing else ComponentAttachment(**fields)
        )
        self._invalidate(resolved)
        return attachment

    async def detach_component(self, template: TemplateRef, component: ComponentRef, *, user_id: str | None = None) -> bool:
        resolved = await self.get_template(template)
        comp = await self.get_component(component)
        removed = False
        for attachment in await self.store.list_attachments(resolved.id):
            if attachment.component_id == comp.id and attachment.user_id == user_id:
                removed = await self.store.delete_attachment(attachment.id) or removed
        self._invalidate(resolved)
        return removed

    async def set_component_enabled(
        self,
        template: TemplateRef,
        component: ComponentRef,
        enabled: bool,
        *,
        user_id: str | None = None,
    ) -> ComponentAttachment:
        """Enable or disable an attached component.

        For a user without their own record, the shared record is copied into a
        user override first, so other users are unaffected.
        """
        resolved = await self.get_template(template)
        comp = await self.get_component(component)
        attachments = [a for a in await self.store.list_attachments(resolved.id) if a.component_id == comp.id]
        own = next((a for a in attachments if a.user_id == user_id), None)
        if own is None:
            shared = next((a for a in attachments if a.user_id is None), None)
            if shared is None:
                raise ComponentNotFoundError(comp.key, resolved.slug)
            own = shared.model_copy(update={"id": 0, "user_id": user_id})
        attachment = await self.store.save_attachment(own.model_copy(update={"is_enabled": enabled}))
        self._invalidate(resolved)
        return attachment

    async def reorder_components(self, template: TemplateRef, components: Sequence[ComponentRef], *, user_id: str | None = None) -> list[ComponentAttachment]:
        """Set attachment order to the position of each component in `components`."""
        resolved = await self.get_template(template)
        by_component = {a.component_id: a for a in await self.store.list_attachments(resolved.id) if a.user_id == user_id}
        reordered = []
        for order, ref in enumerate(components):
            comp = await self.get_component(ref)
            attachment = by_component.get(comp.id)
            if attachment is None:
                raise ComponentNotFoundError(comp.key, resolved.slug)
            reordered.append(await self.store.save_attachment(attachment.model_copy(update={"order": order})))
        self._invalidate(resolved)
        return reordered

    # -- pipelines ----------------------------------------------------------

    def pipeline(self, name: str | None = None) -> PipelineBuilder:
        return PipelineBuilder(name)

    async def execute_pipeline(
        self,
        pipeline: PipelineRef,
        input: Mapping[str, Any] | None = None,
        options: Mapping[str, Any] | None = None,
    ) -> PipelineContext:
        """Run a stored pipeline. Step failures are recorded in the returned context."""
        return await self.executor.execute(pipeline, input, options)

    async def chain_pipelines(self, pipelines: Sequence[PipelineRef], input: Mapping[str, Any] | None = None) -> PipelineContext:
        return await self.executor.chain(pipelines, input)

    async def parallel_pipelines(self, pipelines: Mapping[str, PipelineRef], input: Mapping[str, Any] | None = None) -> dict[str, PipelineContext]:
        return await self.executor.parallel(pipelines, input)

    async def chain_templates(self, templates: Sequence[TemplateRef], input: Mapping[str, Any] | None = None) -> PipelineContext:
        return await self.executor.from_templates(templates, input)

    # -- types and cache ----------------------------------------------------

    async def register_type(
        self,
        key: str,
        handler: TypeHandler,
        *,
        name: str | None = None,
        variable_schema: Mapping[str, dict[str, Any]] | None = None,
        config: Mapping[str, Any] | None = None,
    ) -> PromptType:
        """Register a handler under `key` and record a matching PromptType.

        Raises:
            InvalidTypeError: handler is not a TypeHandler.
        """
        self.handlers.register(key, handler)
        prompt_type = await self.store.save_prompt_type(
            PromptType(
                slug=key,
                name=name or key,
                handler=key,
                variable_schema=dict(variable_schema or {}),
                config=dict(config or {}),
            )
        )
        logger.info("Registered prompt type '%s' (%s)", key, type(handler).__name__)
        return prompt_type

    def clear_cache(self) -> None:
        self.cache.clear(f"{self.settings.cache_prefix}.")

    # -- internals ----------------------------------------------------------

    async def _handler_for(self, type_key: str) -> TypeHandler:
        prompt_type = await self.store.get_prompt_type(type_key)
        if prompt_type is not None:
            return self.handlers.for_prompt_type(prompt_type)
        if not self.handlers.has(type_key):
            raise InvalidTypeError(type_key)
        return self.handlers.get(type_key)

    def _invalidate(self, template: PromptTemplate) -> None:
        prefix = self.settings.cache_prefix
        self.cache.delete(template_key(prefix, template.slug))
        self.cache.clear(render_prefix(prefix, template.id))

    async def _free_slug(self, base: str) -> str:
        if await self.store.get_template_by_slug(base) is None:
            return base
        suffix = 2
        while await self.store.get_template_by_slug(f"{base}-{suffix}") is not None:
            suffix += 1
        return f"{base}-{suffix}"

    @staticmethod
    def _version_options(version: TemplateVersion, **overrides: Any) -> dict[str, Any]:
        options = {
            "variables": version.variables,
            "component_config": version.component_config,
            "mapping_rules": version.mapping_rules,
            "mapper": version.mapper,
            "created_by": version.created_by,
        }
        return {**options, **overrides}

    async def _track(self, template: PromptTemplate, rendered: RenderedPrompt, context: RenderContext, elapsed_ms: float) -> None:
        versions = await self.store.list_versions(template.id)
        version = next((v for v in versions if v.version_number == rendered.version), None)
        if version is None:
            return
        chain = context.metadata.get("pipeline_chain")
        await self.store.add_execution(
            PromptExecution(
                template_id=template.id,
                version_id=version.id,
                input_variables=dict(context.variables),
                enabled_components=list(rendered.used_components),
                rendered_output=rendered.to_dict(),
                pipeline_chain=list(chain) if chain else None,
                execution_time_ms=elapsed_ms,
                user_id=context.user_id,
            )
        )


__all__ = ["EXPORT_FORMAT_VERSION", "PromptManager"]
