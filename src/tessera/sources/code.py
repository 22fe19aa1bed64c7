"""Code-defined component source.

A code component is an editable definition with compiled JavaScript, CSS
and a prop/slot schema. It renders as an island that hydrates in the
browser. Unpublished edits live in a ``DraftStore`` overlay: previews use
the draft transparently, live renders never see it.
"""

from __future__ import annotations

import copy
import hashlib
import json
import logging
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from markupsafe import Markup

from tessera.core.errors import RenderError
from tessera.core.markup import attributes
from tessera.core.models import (
    GLOBAL_IMPORTS,
    SCOPED_IMPORTS,
    Attachments,
    CacheMetadata,
    DependencyReport,
    RenderNode,
)
from tessera.sources.base import CandidateDefinition, ExplicitInput, SourceContext, register_source
from tessera.sources.generated import GeneratedFieldSource, generate_prop_settings

logger = logging.getLogger(__name__)

DEFINITION_GLOB = "*.code.yml"
CONFIG_PREFIX = "tessera.js_component."
GLOBAL_LIBRARY = "tessera/asset_library.global"
HYDRATION_PATH = "tessera/lib/astro-hydration/dist"

# Specifier -> file under HYDRATION_PATH, shared by every island.
GLOBAL_IMPORT_FILES = {
    "preact": "preact.module.js",
    "preact/hooks": "hooks.module.js",
    "react/jsx-runtime": "jsx-runtime-default.js",
    "react": "compat.module.js",
    "react-dom": "compat.module.js",
    "react-dom/client": "compat.module.js",
    "clsx": "clsx.js",
    "@/lib/utils": "utils.js",
}
PRELOAD_FILES = ("signals.module.js", "preload-helper.js")


@dataclass
class CodeComponent:
    """An editable, code-defined component definition."""

    machine_name: str
    name: str
    js: str = ""
    css: str = ""
    status: bool = True
    props: dict = field(default_factory=dict)
    required: list[str] = field(default_factory=list)
    slots: dict = field(default_factory=dict)
    dependencies: list[str] = field(default_factory=list)  # other code components

    @property
    def config_name(self) -> str:
        return f"{CONFIG_PREFIX}{self.machine_name}"

    @property
    def cache_tag(self) -> str:
        return f"config:{self.config_name}"

    @property
    def js_hash(self) -> str:
        return hashlib.sha256(self.js.encode()).hexdigest()[:16]

    def component_url(self, base_path: str, is_preview: bool) -> str:
        """Live URLs are content-addressed; previews go through the draft endpoint."""
        if is_preview:
            return f"{base_path}api/config/auto-save/js/js_component/{self.machine_name}"
        return f"{base_path}files/astro-island/{self.js_hash}.js"

    def asset_library(self, is_preview: bool) -> str:
        return f"tessera/astro_island.{self.machine_name}" + (".draft" if is_preview else "")

    @classmethod
    def from_dict(cls, data: dict) -> CodeComponent:
        return cls(
            machine_name=data["machine_name"],
            name=data.get("name", data["machine_name"]),
            js=data.get("js", ""),
            css=data.get("css", ""),
            status=data.get("status", True),
            props=data.get("props") or {},
            required=list(data.get("required") or []),
            slots=data.get("slots") or {},
            dependencies=list(data.get("dependencies") or []),
        )

    def to_dict(self) -> dict:
        return {
            "machine_name": self.machine_name,
            "name": self.name,
            "js": self.js,
            "css": self.css,
            "status": self.status,
            "props": copy.deepcopy(self.props),
            "required": list(self.required),
            "slots": copy.deepcopy(self.slots),
            "dependencies": list(self.dependencies),
        }


class DraftStore:
    """Unpublished overlays of code components, keyed by machine name."""

    CACHE_TAG = "tessera__auto_save"

    def __init__(self, drafts: Iterable[CodeComponent] = ()):
        self._drafts: dict[str, CodeComponent] = {}
        for draft in drafts:
            self.save(draft)

    def save(self, draft: CodeComponent) -> None:
        self._drafts[draft.machine_name] = draft

    def get(self, machine_name: str) -> CodeComponent | None:
        return self._drafts.get(machine_name)

    def discard(self, machine_name: str) -> CodeComponent | None:
        return self._drafts.pop(machine_name, None)

    def publish(self, machine_name: str, store: CodeComponentStore) -> CodeComponent | None:
        """Promote a draft to the live definition."""
        draft = self.discard(machine_name)
        if draft is not None:
            store.add(draft)
        return draft


class CodeComponentStore:
    """Live (published) code component definitions."""

    def __init__(self, components: Iterable[CodeComponent] = ()):
        self._components: dict[str, CodeComponent] = {}
        for component in components:
            self.add(component)

    def add(self, component: CodeComponent) -> None:
        self._components[component.machine_name] = component

    def remove(self, machine_name: str) -> CodeComponent | None:
        return self._components.pop(machine_name, None)

    def get(self, machine_name: str) -> CodeComponent | None:
        return self._components.get(machine_name)

    def all(self) -> list[CodeComponent]:
        return [self._components[k] for k in sorted(self._components)]

    @classmethod
    def discover(cls, directory: Path) -> tuple[CodeComponentStore, DraftStore]:
        """Load ``*.code.yml`` files; an optional ``draft`` mapping overlays the live definition."""
        store, drafts = cls(), DraftStore()
        if not directory.is_dir():
            return store, drafts
        for path in sorted(directory.rglob(DEFINITION_GLOB)):
            try:
                data = yaml.safe_load(path.read_text()) or {}
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Skipping unreadable code component %s: %s", path, e)
                continue
            data.setdefault("machine_name", path.name[: -len(".code.yml")])
            draft = data.pop("draft", None)
            store.add(CodeComponent.from_dict(data))
            if draft:
                drafts.save(CodeComponent.from_dict({**data, **draft}))
        return store, drafts


def component_id_for(machine_name: str) -> str:
    return f"js.{machine_name}"


@register_source("js")
class CodeDefinedSource(GeneratedFieldSource):
    """Renders a code component as a hydrating island."""

    label = "Code component"

    @classmethod
    def discover(cls, context: SourceContext) -> Iterator[CandidateDefinition]:
        for code in context.code_components.all():
            settings, schema, reasons = generate_prop_settings(code.props, code.required)
            if not code.status:
                reasons.insert(0, "Code component is not exposed.")
            yield CandidateDefinition(
                source=cls.source_id,
                local_id=code.machine_name,
                component_id=component_id_for(code.machine_name),
                label=code.name,
                provider=None,
                category="@javascript",
                settings=settings,
                slot_definitions=code.slots,
                schema=schema,
                reasons=reasons,
            )

    @property
    def machine_name(self) -> str:
        return self.component.source_local_id

    def _resolve(self, machine_name: str, is_preview: bool) -> CodeComponent | None:
        """Draft overlay in preview when one exists, otherwise the live definition."""
        if is_preview:
            draft = self.context.drafts.get(machine_name)
            if draft is not None:
                return draft
        return self.context.code_components.get(machine_name)

    def _scoped_dependencies(
        self,
        code: CodeComponent,
        is_preview: bool,
        seen: set[str],
    ) -> dict[str, dict[str, str]]:
        base = self.context.base_path
        scoped: dict[str, dict[str, str]] = {}
        url = code.component_url(base, is_preview)
        for name in code.dependencies:
            if name in seen:
                continue
            seen.add(name)
            dependency = self._resolve(name, is_preview)
            if dependency is None:
                logger.warning("Code component %s depends on missing component %s", code.machine_name, name)
                continue
            dependency_url = dependency.component_url(base, is_preview)
            scoped.setdefault(url, {})[f"@/components/{name}"] = dependency_url
            for scope, entries in self._scoped_dependencies(dependency, is_preview, set(seen)).items():
                scoped.setdefault(scope, {}).update(entries)
            # The dependencies of a dependency are also ours.
            if dependency_url in scoped:
                scoped[url].update(scoped[dependency_url])
        return scoped

    def _dependency_libraries(self, code: CodeComponent, is_preview: bool, seen: set[str]) -> list[str]:
        libraries: list[str] = []
        for name in code.dependencies:
            if name in seen:
                continue
            seen.add(name)
            dependency = self._resolve(name, is_preview)
            if dependency is None:
                continue
            libraries.append(dependency.asset_library(is_preview))
            libraries.extend(self._dependency_libraries(dependency, is_preview, set(seen)))
        return libraries

    def import_map(self, code: CodeComponent, is_preview: bool) -> dict[str, dict]:
        base = self.context.base_path
        version = self.context.asset_version
        import_map: dict[str, dict] = {
            GLOBAL_IMPORTS: {
                specifier: f"{base}{HYDRATION_PATH}/{filename}?{version}"
                for specifier, filename in GLOBAL_IMPORT_FILES.items()
            }
        }
        scoped = self._scoped_dependencies(code, is_preview, {code.machine_name})
        if scoped:
            import_map[SCOPED_IMPORTS] = scoped
        return import_map

    def render(
        self,
        inputs: ExplicitInput,
        slot_definitions: dict,
        uuid: str,
        is_preview: bool = False,
    ) -> RenderNode:
        live = self.context.code_components.get(self.machine_name)
        if live is None:
            raise RenderError(f"Code component {self.machine_name} does not exist")
        code = self._resolve(self.machine_name, is_preview) or live

        attachments = Attachments(import_maps=self.import_map(code, is_preview))
        attachments.add_library(code.asset_library(is_preview))
        for library in self._dependency_libraries(code, is_preview, {code.machine_name}):
            attachments.add_library(library)
        for filename in PRELOAD_FILES:
            attachments.add_preload(
                f"{self.context.base_path}{HYDRATION_PATH}/{filename}?{self.context.asset_version}"
            )
        attachments.add_library(GLOBAL_LIBRARY + (".draft" if is_preview else ""))

        cache = inputs.cache.merge(self._cacheability(code, is_preview))
        props = {k: v for k, v in inputs.values.items() if k in code.props}
        props.update({
            "tessera_uuid": uuid,
            "tessera_slot_ids": list(slot_definitions),
            "tessera_is_preview": is_preview,
        })
        return RenderNode(
            uuid=uuid,
            component_id=self.component.component_id,
            element="astro_island",
            props={
                "name": code.name,
                "component_url": code.component_url(self.context.base_path, is_preview),
                "props": props,
            },
            cache=cache,
            attachments=attachments,
        )

    def _cacheability(self, code: CodeComponent, is_preview: bool) -> CacheMetadata:
        cache = CacheMetadata(tags={code.cache_tag})
        cache.add_tags(*(f"config:{CONFIG_PREFIX}{name}" for name in code.dependencies))
        if is_preview:
            cache.add_tags(DraftStore.CACHE_TAG)
        return cache

    def markup(self, node: RenderNode) -> str:
        templates = Markup("").join(
            Markup('<template data-astro-template="{}">{}</template>').format(name, Markup(html))
            for name, html in node.slots.items()
        )
        attrs = attributes({
            "uid": node.uuid,
            "component-url": node.props["component_url"],
            "props": json.dumps(node.props["props"], sort_keys=True, default=str),
            "opts": json.dumps({"name": node.props["name"], "value": "preact"}),
            "client": "only",
        })
        return Markup("<astro-island{}>{}</astro-island>").format(attrs, templates)

    def calculate_dependencies(self) -> DependencyReport:
        report = DependencyReport(config=[f"{CONFIG_PREFIX}{self.machine_name}"])
        live = self.context.code_components.get(self.machine_name)
        if live is not None:
            report = report.merge(
                DependencyReport(config=[f"{CONFIG_PREFIX}{name}" for name in live.dependencies])
            )
        return report.merge(self.prop_dependencies())

    def referenced_plugin_class(self) -> str | None:
        return f"{type(self).__module__}.{type(self).__qualname__}"

    def is_broken(self) -> bool:
        return self.context.code_components.get(self.machine_name) is None
