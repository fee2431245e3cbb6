#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import os

import pytest

from cb_errors import (
    ConfigError,
    MalformedModuleDescriptorError,
    MissingModuleInputsError,
    MultipleRootModulesError,
    RootModuleNotFoundError,
    UnknownParentModuleError,
    UnreachableModulesError,
)
from cb_module import TemplateWrapper
from cb_module_graph import (
    ModuleConfig,
    ModuleGraphBuilder,
    RawModule,
    get_module_info,
    get_module_info_by_config,
    get_module_uris,
    parse_raw_modules,
    read_config_file,
)
from cb_paths import SourceScanner


def _raw(name, deps=(), inputs=("x.js",)):
    return RawModule(name=name, deps=list(deps), inputs=list(inputs))


@pytest.fixture
def shared_project(write_js_file, write_base_js, temp_project):
    write_base_js()
    write_js_file("shared.js", "goog.provide('shared');")
    write_js_file("entry.js", "goog.provide('entry');\ngoog.require('shared');")
    write_js_file("child.js", "goog.provide('child');\ngoog.require('shared');")
    return temp_project


def test_shared_unit_lives_in_root_module(shared_project):
    modules = {
        "root": {"deps": [], "inputs": ["entry.js"]},
        "child": {"deps": ["root"], "inputs": ["child.js"]},
    }
    scanner = SourceScanner()
    units = scanner.scan([str(shared_project)])
    raw = parse_raw_modules(modules, str(shared_project))

    root = ModuleGraphBuilder(scanner).build_tree(raw, units)
    root.build()
    child = root.children[0]

    root_files = [os.path.basename(u.path) for u in root.deps]
    child_files = [os.path.basename(u.path) for u in child.deps]
    assert root_files == ["base.js", "shared.js", "entry.js"]
    assert child_files == ["child.js"]
    assert child.parent is root


def test_missing_inputs_names_the_module():
    with pytest.raises(MissingModuleInputsError) as exc:
        parse_raw_modules({"main": {"deps": []}, "broken": {"deps": ["main"]}})
    assert exc.value.module_name == "main"

    with pytest.raises(MissingModuleInputsError) as exc:
        parse_raw_modules({"main": {"inputs": "a.js"}, "thatModuleName": {"deps": "main", "inputs": []}})
    assert exc.value.module_name == "thatModuleName"
    assert exc.value.code == "MOD-0030"


def test_parse_raw_modules_accepts_strings_and_lists(temp_project):
    raw = parse_raw_modules(
        {
            "main": {"inputs": "src/main.js", "wrapper": "%source%"},
            "extra": {"deps": "main", "inputs": ["src/a.js", "src/b.js"]},
        },
        str(temp_project),
    )

    assert raw["main"].deps == []
    assert raw["main"].inputs == [os.path.join(str(temp_project), "src", "main.js")]
    assert raw["main"].wrapper == "%source%"
    assert raw["extra"].deps == ["main"]
    assert len(raw["extra"].inputs) == 2


def test_parse_raw_modules_rejects_non_object_descriptor():
    with pytest.raises(MalformedModuleDescriptorError) as exc:
        parse_raw_modules({"main": ["a.js"]})
    assert exc.value.module_name == "main"


def test_parse_raw_modules_rejects_wrong_field_type():
    with pytest.raises(MalformedModuleDescriptorError):
        parse_raw_modules({"main": {"inputs": 42}})


@pytest.mark.parametrize("modules", [None, {}, []])
def test_parse_raw_modules_requires_modules(modules):
    with pytest.raises(ConfigError) as exc:
        parse_raw_modules(modules)
    assert exc.value.code == "CFG-0020"


def test_find_root_errors():
    with pytest.raises(RootModuleNotFoundError):
        ModuleGraphBuilder.find_root({"a": _raw("a", ["b"]), "b": _raw("b", ["a"])})

    with pytest.raises(MultipleRootModulesError) as exc:
        ModuleGraphBuilder.find_root({"a": _raw("a"), "b": _raw("b")})
    assert exc.value.names == ["a", "b"]


def test_children_map_checks_parents():
    with pytest.raises(UnknownParentModuleError) as exc:
        ModuleGraphBuilder.children_map({"root": _raw("root"), "child": _raw("child", ["ghost"])})
    assert exc.value.parent_name == "ghost"

    with pytest.raises(MalformedModuleDescriptorError):
        ModuleGraphBuilder.children_map({
            "root": _raw("root"),
            "other": _raw("other", ["root"]),
            "child": _raw("child", ["root", "other"]),
        })

    children = ModuleGraphBuilder.children_map({
        "root": _raw("root"),
        "b": _raw("b", ["root"]),
        "a": _raw("a", ["root"]),
    })
    assert children == {"root": ["b", "a"]}


def test_parent_cycle_is_unreachable(write_js_file, temp_project):
    path = str(write_js_file("x.js", ""))
    raw = {
        "root": _raw("root", inputs=[path]),
        "a": _raw("a", ["b"], inputs=[path]),
        "b": _raw("b", ["a"], inputs=[path]),
    }
    scanner = SourceScanner()

    with pytest.raises(UnreachableModulesError) as exc:
        ModuleGraphBuilder(scanner).build_tree(raw, scanner.scan([path]))
    assert exc.value.names == ["a", "b"]


def test_build_tree_keeps_wrapper_and_order(write_js_file):
    paths = [str(write_js_file(f"{n}.js", "")) for n in ("r", "a", "b", "a1")]
    raw = parse_raw_modules({
        "r": {"inputs": paths[0], "wrapper": "(function(){%source%})();"},
        "a": {"deps": "r", "inputs": paths[1]},
        "b": {"deps": "r", "inputs": paths[2]},
        "a1": {"deps": "a", "inputs": paths[3]},
    })
    scanner = SourceScanner()

    root = ModuleGraphBuilder(scanner).build_tree(raw, scanner.scan(paths))

    assert [m.name for m in root.iter_modules()] == ["r", "a", "a1", "b"]
    assert root.wrapper == TemplateWrapper("(function(){%source%})();")
    assert root.children[0].wrapper is None
    assert [u.path for u in root.entry_units] == [paths[0]]


def test_module_config_from_json(temp_project):
    config_file = temp_project / "conf" / "modules.json"
    config = ModuleConfig.from_json(
        {
            "outputPath": "../build/",
            "productionUri": "/static/js/",
            "globalScopeName": "_app",
            "modules": {"main": {"inputs": "main.js"}},
        },
        str(config_file),
    )

    assert config.output_path_prefix == os.path.join(str(temp_project), "build") + os.sep
    assert config.production_uri == "/static/js/"
    assert config.global_scope_name == "_app"
    assert config.rename_prefix_namespace == "z"
    assert config.modules["main"].inputs == [os.path.join(str(temp_project), "conf", "main.js")]


@pytest.mark.parametrize(
    "overrides, code, message",
    [
        ({"outputPath": ""}, "CFG-0040", "Empty output path."),
        ({"productionUri": None}, "CFG-0050", "Empty production uri."),
        ({"globalScopeName": 7}, "CFG-0030", "Wrong scope name."),
        ({"renamePrefixNamespace": ["x"]}, "CFG-0060", "Wrong field 'renamePrefixNamespace'."),
        ({"modules": {}}, "CFG-0020", "Modules not found."),
    ],
)
def test_module_config_errors(overrides, code, message):
    json_config = {
        "outputPath": "build/",
        "productionUri": "/js/",
        "modules": {"main": {"inputs": "main.js"}},
    }
    json_config.update(overrides)

    with pytest.raises(ConfigError) as exc:
        ModuleConfig.from_json(json_config)

    assert exc.value.code == code
    assert exc.value.message == message


def test_read_config_file_errors(temp_project):
    with pytest.raises(ConfigError) as exc:
        read_config_file(temp_project / "missing.json")
    assert exc.value.code == "CFG-0010"

    bad = temp_project / "bad.json"
    bad.write_text("{", encoding="utf-8")
    with pytest.raises(ConfigError):
        read_config_file(bad)

    not_object = temp_project / "list.json"
    not_object.write_text("[]", encoding="utf-8")
    with pytest.raises(ConfigError):
        read_config_file(not_object)


def test_module_info_and_uris(write_js_file):
    paths = [str(write_js_file(f"{n}.js", "")) for n in ("main", "extra")]
    raw = parse_raw_modules({
        "main": {"inputs": paths[0]},
        "extra": {"deps": ["main"], "inputs": paths[1]},
    })
    scanner = SourceScanner()
    root = ModuleGraphBuilder(scanner).build_tree(raw, scanner.scan(paths))

    assert get_module_info(root) == {"main": [], "extra": ["main"]}
    assert get_module_uris(root, "/js/") == {"main": "/js/main.js", "extra": "/js/extra.js"}


def test_module_info_by_config():
    info, uris = get_module_info_by_config({
        "productionUri": "https://cdn/",
        "modules": {"main": {"inputs": "a.js"}, "extra": {"deps": "main", "inputs": "b.js"}},
    })

    assert info == {"main": [], "extra": ["main"]}
    assert uris == {"main": "https://cdn/main.js", "extra": "https://cdn/extra.js"}

    with pytest.raises(ConfigError):
        get_module_info_by_config({"productionUri": "/js/"})


def test_module_info_by_config_rejects_module_list():
    with pytest.raises(ConfigError) as exc:
        get_module_info_by_config({"productionUri": "/js/", "modules": [{"inputs": "a.js"}]})

    assert exc.value.code == "CFG-0020"
