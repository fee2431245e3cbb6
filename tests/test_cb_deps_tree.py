#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import pytest

from cb_deps_tree import DepsTree
from cb_errors import CircularDependencyError, DuplicateProvideError, UnknownNamespaceError


def _paths(units):
    return [u.path for u in units]


def test_resolve_dependency_first(make_unit):
    a = make_unit("a.js", ["a"])
    b = make_unit("b.js", ["b"], ["a"])

    tree = DepsTree([b, a])

    assert _paths(tree.resolve("b")) == ["a.js", "b.js"]


def test_resolve_diamond_lists_each_unit_once(make_unit):
    units = [
        make_unit("top.js", ["top"], ["left", "right"]),
        make_unit("left.js", ["left"], ["base"]),
        make_unit("right.js", ["right"], ["base"]),
        make_unit("base.js", ["base"]),
    ]

    order = _paths(DepsTree(units).resolve("top"))

    assert order == ["base.js", "left.js", "right.js", "top.js"]
    assert len(order) == len(set(order))


def test_resolve_every_unit_follows_its_requirements(make_unit):
    units = [
        make_unit("app.js", ["app"], ["ui", "net"]),
        make_unit("ui.js", ["ui"], ["dom", "events"]),
        make_unit("net.js", ["net"], ["events"]),
        make_unit("dom.js", ["dom"]),
        make_unit("events.js", ["events"], ["dom"]),
    ]
    tree = DepsTree(units)

    order = tree.resolve("app")
    positions = {u.path: i for i, u in enumerate(order)}

    for unit in order:
        for ns in unit.requires:
            assert positions[tree.get_unit(ns).path] < positions[unit.path]


def test_resolve_is_deterministic(make_unit):
    units = [
        make_unit("x.js", ["x"], ["y", "z"]),
        make_unit("y.js", ["y"], ["z"]),
        make_unit("z.js", ["z"]),
    ]

    first = _paths(DepsTree(units).resolve("x"))
    second = _paths(DepsTree(units).resolve("x"))

    assert first == second == ["z.js", "y.js", "x.js"]


def test_resolve_accumulates_into_given_list(make_unit):
    a = make_unit("a.js", ["a"])
    b = make_unit("b.js", ["b"], ["a"])
    tree = DepsTree([a, b])

    deps = tree.resolve("a")
    result = tree.resolve("b", deps)

    assert result is deps
    assert _paths(result) == ["a.js", "b.js"]


def test_cycle_is_detected(make_unit):
    tree = DepsTree([
        make_unit("a.js", ["a"], ["b"]),
        make_unit("b.js", ["b"], ["a"]),
    ])

    with pytest.raises(CircularDependencyError) as exc:
        tree.resolve("a")
    assert exc.value.path == ["a", "b", "a"]
    assert "a -> b -> a" in str(exc.value)

    with pytest.raises(CircularDependencyError):
        tree.resolve("b")


def test_self_require_is_a_cycle(make_unit):
    tree = DepsTree([make_unit("a.js", ["a"], ["a"])])

    with pytest.raises(CircularDependencyError) as exc:
        tree.resolve("a")
    assert exc.value.path == ["a", "a"]


def test_duplicate_provide_rejected(make_unit):
    first = make_unit("one.js", ["ns.x"])
    second = make_unit("two.js", ["ns.x"])

    with pytest.raises(DuplicateProvideError) as exc:
        DepsTree([first, second])

    assert exc.value.namespace == "ns.x"
    assert exc.value.code == "DEP-0010"
    assert "one.js" in exc.value.message and "two.js" in exc.value.message


def test_same_unit_listed_twice_is_not_a_duplicate(make_unit):
    unit = make_unit("one.js", ["ns.x"])
    tree = DepsTree([unit, make_unit("one.js", ["ns.x"])])
    assert tree.get_unit("ns.x") == unit


def test_unknown_namespace_reports_requiring_unit(make_unit):
    tree = DepsTree([
        make_unit("a.js", ["a"], ["b"]),
        make_unit("b.js", ["b"], ["missing"]),
    ])

    with pytest.raises(UnknownNamespaceError) as exc:
        tree.resolve("a")

    assert exc.value.namespace == "missing"
    assert exc.value.required_by.path == "b.js"
    assert exc.value.code == "DEP-0020"


def test_unknown_namespace_from_input_unit(make_unit):
    tree = DepsTree([make_unit("a.js", ["a"])])
    entry = make_unit("entry.js", [], ["nope"])

    with pytest.raises(UnknownNamespaceError) as exc:
        tree.get_dependencies([entry])

    assert exc.value.required_by == entry
    assert "required in entry.js" in exc.value.message


def test_provides_map_is_read_only(make_unit):
    tree = DepsTree([make_unit("a.js", ["a"])])

    with pytest.raises(TypeError):
        tree.provides_map["b"] = make_unit("b.js", ["b"])  # type: ignore[index]

    assert "a" in tree
    assert "b" not in tree
    assert tree.namespaces == ["a"]


def test_get_dependencies_merges_inputs(make_unit):
    units = [
        make_unit("base.js", ["base"]),
        make_unit("lib.js", ["lib"], ["base"]),
        make_unit("util.js", ["util"], ["base"]),
    ]
    tree = DepsTree(units)
    entry1 = make_unit("entry1.js", [], ["lib"])
    entry2 = make_unit("entry2.js", [], ["util", "lib"])

    deps = tree.get_dependencies([entry1, entry2])

    assert _paths(deps) == ["base.js", "lib.js", "entry1.js", "util.js", "entry2.js"]


def test_get_dependencies_does_not_repeat_input_already_required(make_unit):
    lib = make_unit("lib.js", ["lib"])
    entry = make_unit("entry.js", [], ["lib"])
    tree = DepsTree([lib, entry])

    assert _paths(tree.get_dependencies([entry, lib])) == ["lib.js", "entry.js"]
