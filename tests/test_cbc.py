#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2026 gwz

import argparse
import os

import pytest

import cbc
from cb_context import LogLevel
from cbc import build_context, parse_define, parse_defines


class _RunResult:
    def __init__(self, returncode=0, stdout="", stderr=""):
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


@pytest.fixture
def project(write_js_file, write_base_js, temp_project):
    write_base_js()
    write_js_file("src/util.js", "goog.provide('app.util');")
    write_js_file(
        "src/main.js",
        "goog.provide('app.main');\ngoog.require('app.util');\napp.main.start = function() { return app.util; };",
    )
    write_js_file("src/lazy.js", "goog.provide('app.lazy');\ngoog.require('app.util');\napp.lazy.x = app.util;")
    return temp_project


@pytest.fixture
def modules_config(project, write_config):
    return write_config({
        "outputPath": "build/",
        "productionUri": "/js/",
        "modules": {
            "main": {"inputs": "src/main.js"},
            "lazy": {"deps": "main", "inputs": "src/lazy.js"},
        },
    })


def _run_main(argv):
    with pytest.raises(SystemExit) as exc:
        cbc.main(argv)
    return exc.value.code


@pytest.mark.parametrize(
    "text, expected",
    [
        ("goog.DEBUG=false", ("goog.DEBUG", False)),
        ("app.ON=true", ("app.ON", True)),
        ("app.LEVEL=3", ("app.LEVEL", 3)),
        ("app.RATIO=0.5", ("app.RATIO", 0.5)),
        ("app.NAME=prod", ("app.NAME", "prod")),
        ("app.FLAG", ("app.FLAG", True)),
        ("app.EMPTY=", ("app.EMPTY", "")),
    ],
)
def test_parse_define(text, expected):
    assert parse_define(text) == expected


def test_parse_defines_last_wins():
    assert parse_defines(["a=1", "b", "a=2"]) == {"a": 2, "b": True}
    assert parse_defines(None) == {}


@pytest.mark.parametrize(
    "verbosity, level",
    [(0, LogLevel.ERROR), (1, LogLevel.INFO), (2, LogLevel.INFO), (3, LogLevel.DEBUG)],
)
def test_build_context_levels(verbosity, level):
    context = build_context(argparse.Namespace(verbosity=verbosity, log=False))

    assert context.log_level == level


def test_order(project, capsys):
    rc = _run_main(["order", "-r", str(project), "-i", str(project / "src" / "main.js")])

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert [os.path.basename(line) for line in lines] == ["base.js", "util.js", "main.js"]


def test_order_reports_errors(project, write_js_file, capsys):
    broken = write_js_file("src/broken.js", "goog.require('app.missing');")

    rc = _run_main(["order", "-r", str(project), "-i", str(broken)])

    assert rc == 1
    captured = capsys.readouterr()
    assert "error: [DEP-0020] namespace 'app.missing' never provided" in captured.err
    assert captured.out == ""


def test_order_to_file_with_cache(project):
    out = project / "out" / "order.txt"
    cache = project / "cache.json"

    rc = _run_main(["--cache", str(cache), "order", "-r", str(project),
                    "-i", str(project / "src" / "main.js"), "-o", str(out)])

    assert rc == 0
    assert len(out.read_text(encoding="utf-8").splitlines()) == 3
    assert cache.is_file()


def test_modules(project, modules_config, capsys):
    rc = _run_main(["modules", "-r", str(project), "-c", str(modules_config)])

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[0] == "main:3"
    assert [os.path.basename(line) for line in lines[1:4]] == ["base.js", "util.js", "main.js"]
    assert lines[4] == "lazy:1:main"
    assert lines[5].startswith("  ") and lines[5].endswith("lazy.js")


def test_modules_requires_config(project, capsys):
    rc = _run_main(["modules", "-r", str(project)])

    assert rc == 2


def test_flags(project, modules_config, capsys):
    rc = _run_main(["flags", "-r", str(project), "-c", str(modules_config)])

    assert rc == 0
    assert capsys.readouterr().out.splitlines() == ["--module main:3", "--module lazy:1:main"]


def test_build_without_jar(project, monkeypatch, capsys):
    monkeypatch.delenv("CLOSURE_COMPILER_JAR", raising=False)

    rc = _run_main(["build", "-r", str(project), "-i", str(project / "src" / "main.js")])

    assert rc == 1
    assert "[CMP-0010]" in capsys.readouterr().err


def test_build_single_writes_output(project, monkeypatch):
    calls = []

    def _run(args, **kwargs):
        calls.append(list(args))
        if args[-1] == "-version":
            return _RunResult(stderr='java version "1.8.0_292"')
        return _RunResult(stdout="compiled();")

    monkeypatch.delenv("JAVA", raising=False)
    monkeypatch.setattr("cb_compiler.subprocess.run", _run)
    out = project / "dist" / "app.js"

    rc = _run_main([
        "build", "-r", str(project), "-i", str(project / "src" / "main.js"),
        "-j", "compiler.jar", "-D", "goog.DEBUG=false", "--compiler-flag=--compilation_level=ADVANCED",
        "-o", str(out),
    ])

    assert rc == 0
    assert out.read_text(encoding="utf-8") == "compiled();"
    assert calls[1][:6] == ["java", "-jar", "compiler.jar", "--define", "goog.DEBUG=false",
                            "--compilation_level=ADVANCED"]


def test_build_compiler_failure(project, monkeypatch, capsys):
    def _run(args, **kwargs):
        if args[-1] == "-version":
            return _RunResult(stderr='java version "1.8.0_292"')
        return _RunResult(returncode=1, stderr="1 error(s)")

    monkeypatch.setattr("cb_compiler.subprocess.run", _run)

    rc = _run_main(["build", "-r", str(project), "-i", str(project / "src" / "main.js"), "-j", "c.jar"])

    assert rc == 1
    assert "[CMP-0020]" in capsys.readouterr().err


def test_deps_to_stdout(project, capsys):
    rc = _run_main(["deps", "--root-with-prefix", str(project.resolve() / "src"), "../../src/"])

    assert rc == 0
    lines = capsys.readouterr().out.splitlines()
    assert lines[2:] == [
        "goog.addDependency('../../src/lazy.js', ['app.lazy'], ['app.util'], false);",
        "goog.addDependency('../../src/main.js', ['app.main'], ['app.util'], false);",
        "goog.addDependency('../../src/util.js', ['app.util'], [], false);",
    ]


def test_deps_to_file(project):
    out = project / "deps.js"

    rc = _run_main([
        "deps", "-r", str(project / "src"), "--base-dir", str(project.resolve()),
        "--path-with-depspath", str(project / "closure" / "goog" / "base.js"), "goog/base.js",
        "-o", str(out),
    ])

    assert rc == 0
    content = out.read_text(encoding="utf-8")
    assert "goog.addDependency('goog/base.js', ['goog'], [], false);" in content
    assert "goog.addDependency('src/util.js', ['app.util'], [], false);" in content


def test_deps_missing_root(project, capsys):
    rc = _run_main(["deps", "-r", str(project / "nope")])

    assert rc == 1
    assert "[SRC-0050]" in capsys.readouterr().err


def test_deps_with_unwritable_cache(project, capsys):
    blocker = project / "blocker"
    blocker.write_text("", encoding="utf-8")

    rc = _run_main(["-v", "--cache", str(blocker / "cache.json"), "deps", "-r", str(project / "src")])

    assert rc == 0
    captured = capsys.readouterr()
    assert "goog.addDependency(" in captured.out
    assert "Cannot save cache file" in captured.err


def test_module_deps(project, modules_config):
    info = project / "build" / "info.js"

    rc = _run_main([
        "module-deps", "-r", str(project), "-c", str(modules_config),
        "-D", "goog.DEBUG=true", "--module-info", str(info),
    ])

    assert rc == 0
    assert (project / "build" / "main.js").is_file()
    assert "app.lazy" not in (project / "build" / "lazy.js").read_text(encoding="utf-8")
    assert info.read_text(encoding="utf-8").startswith("goog.module('moduleInfo');")


def test_check_requires(project, write_js_file, capsys):
    write_js_file("src/page.js", "goog.provide('app.page');\napp.main.start();")

    rc = _run_main(["check-requires", "-r", str(project / "src")])

    assert rc == 1
    out = capsys.readouterr().out
    assert out.startswith("Missing requires: 1\n")
    assert "\tapp.main" in out
    assert "Unnecessary requires: 0" in out


def test_check_requires_clean(project, capsys):
    rc = _run_main(["check-requires", "-r", str(project / "src")])

    assert rc == 0
    assert capsys.readouterr().out == "Missing requires: 0\nUnnecessary requires: 0\n"
