#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

from types import MappingProxyType
from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Set

from cb_errors import CircularDependencyError, DuplicateProvideError, UnknownNamespaceError
from cb_source import SourceUnit


class DepsTree:
    """
    The set of dependencies between a fixed collection of source units.

    Offers a queryable tree of dependencies and validates it on the way:
      - construction rejects a namespace provided by two different units;
      - resolution rejects unknown namespaces and circular requires.

    The provides map is built once and is read-only afterwards, so a tree can
    be shared by every module of a build.
    """

    def __init__(self, units: Iterable[SourceUnit]):
        self.units: List[SourceUnit] = list(units)
        self.provides_map: Mapping[str, SourceUnit] = MappingProxyType(self._build_provides_map(self.units))

    @staticmethod
    def _build_provides_map(units: Sequence[SourceUnit]) -> Dict[str, SourceUnit]:
        provides_map: Dict[str, SourceUnit] = {}
        for unit in units:
            for namespace in unit.provides:
                known = provides_map.get(namespace)
                if known is not None and known.path != unit.path:
                    raise DuplicateProvideError(namespace, known, unit)
                provides_map[namespace] = unit
        return provides_map

    def __contains__(self, namespace: str) -> bool:
        return namespace in self.provides_map

    @property
    def namespaces(self) -> List[str]:
        return sorted(self.provides_map.keys())

    def get_unit(self, namespace: str) -> Optional[SourceUnit]:
        return self.provides_map.get(namespace)

    def resolve(
        self,
        namespace: str,
        deps_list: Optional[List[SourceUnit]] = None,
        traversal_path: Optional[List[str]] = None,
        required_by: Optional[SourceUnit] = None,
    ) -> List[SourceUnit]:
        """
        Resolve a namespace into the ordered list of units it needs.

        Follows the requires down and appends each unit to deps_list once all
        of its own requirements are there, so dependencies always precede
        dependents.

        Args:
            namespace:      The required namespace.
            deps_list:      Accumulator, filled in dependency order and returned.
            traversal_path: Stack of namespaces from the top-level request down
                            to this one; a namespace found on it is a cycle.
            required_by:    Unit that required a top-level namespace; used in
                            the error message when the stack is empty.

        Raises:
            UnknownNamespaceError, CircularDependencyError.
        """
        if deps_list is None:
            deps_list = []
        if traversal_path is None:
            traversal_path = []

        unit = self.provides_map.get(namespace)
        if unit is None:
            if traversal_path:
                required_by = self.provides_map.get(traversal_path.pop(), required_by)
            raise UnknownNamespaceError(namespace, required_by)

        if namespace in traversal_path:
            # Push after the test so the reported path closes the cycle.
            traversal_path.append(namespace)
            raise CircularDependencyError(traversal_path)

        if unit not in deps_list:
            traversal_path.append(namespace)
            for required in unit.requires:
                self.resolve(required, deps_list, traversal_path)
            deps_list.append(unit)
            traversal_path.pop()

        return deps_list

    def get_dependencies(self, input_units: Iterable[SourceUnit]) -> List[SourceUnit]:
        """
        Return the units needed by input_units, in dependency order.

        Each input's requires are resolved first, then the input itself is
        appended. Units are kept once, in first-discovery order.
        """
        deps: List[SourceUnit] = []
        seen: Set[str] = set()

        for input_unit in input_units:
            for namespace in input_unit.requires:
                for unit in self.resolve(namespace, [], [], required_by=input_unit):
                    if unit.path not in seen:
                        seen.add(unit.path)
                        deps.append(unit)

            if input_unit.path not in seen:
                seen.add(input_unit.path)
                deps.append(input_unit)

        return deps
