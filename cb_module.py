#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import Any, Callable, Iterator, List, Optional, Sequence, Union

from cb_deps_tree import DepsTree
from cb_errors import AmbiguousBootstrapUnitError, MissingBootstrapUnitError
from cb_source import SourceUnit


# ==========================
# Wrappers
# ==========================

@dataclass(frozen=True)
class TemplateWrapper:
    """A wrapper given as a template string."""
    template: str


@dataclass(frozen=True)
class GeneratorWrapper:
    """A wrapper produced by a callback: generate(builder, module) -> template."""
    generate: Callable[[Any, "ModuleNode"], str]


Wrapper = Union[TemplateWrapper, GeneratorWrapper, None]


def render_wrapper_template(wrapper: Wrapper, builder: Any, module: "ModuleNode", default: str) -> str:
    """Resolve a wrapper variant to its template string, or default if unset."""
    if wrapper is None:
        return default
    if isinstance(wrapper, TemplateWrapper):
        return wrapper.template
    return wrapper.generate(builder, module)


# ==========================
# Module tree
# ==========================

class ModuleNode:
    """
    One output module (chunk) of a build.

    A node owns its children; the parent link is a weak reference used for
    navigation only. `deps` holds the units this module, and only this
    module, emits once the tree is normalized.

    Lifecycle: constructed -> calculate_deps() -> normalize_deps(). The root
    runs all of it through build().
    """

    def __init__(
        self,
        name: str,
        parent: Optional[ModuleNode],
        all_units: Sequence[SourceUnit],
        entry_units: Sequence[SourceUnit],
        wrapper: Wrapper = None,
    ):
        self.name = name
        self._parent_ref = weakref.ref(parent) if parent is not None else None
        # Candidate pool for requirement resolution, shared by the whole tree.
        self.all_units = all_units
        # This module's own declared inputs.
        self.entry_units: List[SourceUnit] = list(entry_units)
        self.deps: List[SourceUnit] = []
        self.children: List[ModuleNode] = []
        self.wrapper = wrapper

    def __repr__(self) -> str:
        return f"ModuleNode({self.name!r}, deps={len(self.deps)}, children={[c.name for c in self.children]})"

    # --- navigation ---

    @property
    def parent(self) -> Optional[ModuleNode]:
        return self._parent_ref() if self._parent_ref is not None else None

    def add_child(self, child: ModuleNode) -> None:
        self.children.append(child)

    def add_children(self, children: Sequence[ModuleNode]) -> None:
        self.children.extend(children)

    def iter_modules(self) -> Iterator[ModuleNode]:
        """Yield this module and all descendants, pre-order."""
        yield self
        for child in self.children:
            yield from child.iter_modules()

    # --- dependency calculation ---

    def find_bootstrap_unit(self) -> SourceUnit:
        candidates = [u for u in self.all_units if u.is_bootstrap]
        if len(candidates) == 1:
            return candidates[0]
        if not candidates:
            raise MissingBootstrapUnitError()
        raise AmbiguousBootstrapUnitError([u.path for u in candidates])

    def build(self) -> None:
        """Root-module pipeline: bootstrap unit first, then resolve and hoist."""
        bootstrap = self.find_bootstrap_unit()
        if bootstrap not in self.deps:
            self.deps.insert(0, bootstrap)
        self.calculate_deps()
        self.normalize_deps()

    def calculate_deps(self, tree: Optional[DepsTree] = None) -> None:
        """
        Resolve this module's inputs into `deps`, then recurse into children.

        The dependency tree is built once from the shared pool and handed
        down, since every module resolves against the same units.
        """
        if tree is None:
            tree = DepsTree(self.all_units)

        for unit in tree.get_dependencies(self.entry_units):
            if unit not in self.deps:
                self.deps.append(unit)

        for child in self.children:
            child.calculate_deps(tree)

    def get_deps(self, with_submodules: bool = False) -> List[SourceUnit]:
        """
        This module's deps, followed by every descendant's deps when
        with_submodules is set. Each unit appears once.
        """
        all_deps: List[SourceUnit] = []
        for dep in self.deps:
            if dep not in all_deps:
                all_deps.append(dep)

        if with_submodules:
            for child in self.children:
                for sub_dep in child.get_deps(True):
                    if sub_dep not in all_deps:
                        all_deps.append(sub_dep)

        return all_deps

    def normalize_deps(self) -> None:
        """
        Hoist deps shared between children up to this module.

        A unit is sharing when it is already in this module's deps or shows up
        in the transitive deps of two or more children. Sharing units are
        appended here, removed from every child subtree, then each child
        normalizes its own subtree. Runs top-down in a single pass.
        """
        sub_deps = [child.get_deps(True) for child in self.children]
        sharing_deps: List[SourceUnit] = []

        for i, deps_i in enumerate(sub_deps):
            for sub_dep in deps_i:
                sharing = sub_dep in self.deps

                for deps_k in sub_deps[i + 1:]:
                    if sub_dep in deps_k:
                        sharing = True
                        deps_k.remove(sub_dep)

                if sharing:
                    sharing_deps.append(sub_dep)

        for dep in sharing_deps:
            if dep not in self.deps:
                self.deps.append(dep)

        for child in self.children:
            for dep in sharing_deps:
                child.remove_dep(dep)
            child.normalize_deps()

    def remove_dep(self, dep: SourceUnit) -> bool:
        """Remove dep from this module and every descendant. True if anything was removed."""
        removed = False
        if dep in self.deps:
            self.deps.remove(dep)
            removed = True

        for child in self.children:
            removed = child.remove_dep(dep) or removed

        return removed

    # --- output ---

    def get_module_flag_value(self) -> str:
        """The compiler's --module value: name:count[:parent]."""
        value = f"{self.name}:{len(self.get_deps())}"
        parent = self.parent
        if parent is not None:
            value += f":{parent.name}"
        return value
