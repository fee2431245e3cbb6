#  SPDX-License-Identifier: MIT OR Apache-2.0
#  Copyright (c) 2025-2026 gwz

import argparse
import os
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from cb_cache import SourceCache, save_cache
from cb_compiler import ClosureCompiler
from cb_context import BuildContext, LogLevel
from cb_deps_writer import DepsWriter, ModuleDepsWriter
from cb_diagnostics import diag_from_error
from cb_driver import BuildDriver, BuildResult
from cb_errors import BuildError
from cb_logger import log_error, log_info
from cb_paths import SourceScanner
from cb_require_checker import RequireChecker


def build_context(args: argparse.Namespace) -> BuildContext:
    """Build a BuildContext from command-line arguments."""
    log_rich_format = getattr(args, 'log', False)

    # Convert verbosity count to LogLevel
    verbosity = getattr(args, 'verbosity', 0)
    if verbosity >= 3:
        log_level = LogLevel.DEBUG
    elif verbosity >= 1:
        log_level = LogLevel.INFO
    else:
        log_level = LogLevel.ERROR

    return BuildContext(
        log_rich_format=log_rich_format,
        log_level=log_level,
        scan_hidden=getattr(args, 'scan_hidden', False),
    )


def build_cache(context: BuildContext, args: argparse.Namespace) -> Optional[SourceCache]:
    cache_file = getattr(args, 'cache', None)
    if not cache_file:
        return None
    log_info(context, f"Using cache file: {cache_file}")
    return SourceCache(cache_file, context)


def parse_define(text: str) -> Tuple[str, Any]:
    """NAME=VALUE -> (NAME, value); booleans and numbers are typed, NAME alone is true."""
    name, sep, raw = text.partition("=")
    if not sep:
        return name, True
    if raw in ("true", "false"):
        return name, raw == "true"
    for convert in (int, float):
        try:
            return name, convert(raw)
        except ValueError:
            pass
    return name, raw


def parse_defines(items: Optional[List[str]]) -> Dict[str, Any]:
    return dict(parse_define(item) for item in items or [])


def print_diagnostics(result: BuildResult, context: BuildContext) -> None:
    for diag in result.diagnostics:
        log_error(context, diag.format())


def _write_output(text: str, output: Optional[str]) -> None:
    if output:
        path = Path(output)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
    else:
        print(text)


def _resolve(args: argparse.Namespace, context: BuildContext):
    """Run the resolve pipeline for either a module config or a single input set."""
    driver = BuildDriver(context=context, cache=build_cache(context, args))
    if getattr(args, 'config', None):
        result = driver.build_modules(args.config, args.root)
    else:
        result = driver.build_single(args.root, args.input)
    return driver, result


def cmd_order(args: argparse.Namespace) -> int:
    """Print the sources needed by the inputs, in dependency order."""
    context = build_context(args)
    _, result = _resolve(args, context)
    print_diagnostics(result, context)
    if result.root is None or result.has_errors():
        return 1

    _write_output("\n".join(unit.path for unit in result.get_ordered_units()), args.output)
    return 0


def cmd_modules(args: argparse.Namespace) -> int:
    """Print each module of a config with its exclusive sources."""
    context = build_context(args)
    _, result = _resolve(args, context)
    print_diagnostics(result, context)
    if result.root is None or result.has_errors():
        return 1

    lines = []
    for module in result.root.iter_modules():
        lines.append(f"{module.get_module_flag_value()}")
        lines.extend(f"  {unit.path}" for unit in module.get_deps())
    _write_output("\n".join(lines), args.output)
    return 0


def cmd_flags(args: argparse.Namespace) -> int:
    """Print the compiler's --module values of a config."""
    context = build_context(args)
    _, result = _resolve(args, context)
    print_diagnostics(result, context)
    if result.root is None or result.has_errors():
        return 1

    _write_output("\n".join(f"--module {m.get_module_flag_value()}" for m in result.root.iter_modules()),
                  args.output)
    return 0


def cmd_build(args: argparse.Namespace) -> int:
    """Compile the sources with the Closure Compiler."""
    context = build_context(args)
    if not args.compiler_jar:
        log_error(context, "error: [CMP-0010] no compiler jar given (use --compiler-jar or $CLOSURE_COMPILER_JAR)")
        return 1

    driver, result = _resolve(args, context)
    print_diagnostics(result, context)
    if result.root is None or result.has_errors():
        return 1

    compiler = ClosureCompiler(
        args.compiler_jar,
        java=args.java,
        jvm_flags=args.jvm_flag,
        compiler_flags=args.compiler_flag,
        defines=parse_defines(args.define),
        externs=args.externs,
        timeout=args.timeout,
        context=context,
    )
    driver.compile(result, compiler, source_map_path=args.source_map or "")
    print_diagnostics(result, context)
    if result.has_errors():
        return 1

    if result.config is None:
        _write_output(result.output, args.output)
    return 0


def cmd_deps(args: argparse.Namespace) -> int:
    """Write a deps.js file for the uncompiled Closure loader."""
    context = build_context(args)
    writer = DepsWriter(SourceScanner(build_cache(context, args), context), context)
    if args.root:
        writer.add_files(args.root, base_dir=args.base_dir or "")
    for root, prefix in args.root_with_prefix:
        writer.add_files([root], base_dir=root, prefix=prefix)
    for js_file, dep_path in args.path_with_depspath:
        writer.add_file_with_path(js_file, dep_path)

    try:
        content = writer.write(args.output)
    except BuildError as e:
        log_error(context, diag_from_error(e).format())
        return 1
    finally:
        save_cache(writer.scanner.cache, context)

    if not args.output:
        print(content, end="")
    return 0


def cmd_module_deps(args: argparse.Namespace) -> int:
    """Write one loader file per module for uncompiled module builds."""
    context = build_context(args)
    _, result = _resolve(args, context)
    print_diagnostics(result, context)
    if result.root is None or result.has_errors():
        return 1

    writer = ModuleDepsWriter(
        result.config,
        result.root,
        defines=parse_defines(args.define),
        load_async=args.load_async,
        module_info_file_path=args.module_info,
        context=context,
    )
    try:
        writer.write()
    except OSError as e:
        log_error(context, f"error: cannot write module files: {e}")
        return 1
    return 0


def cmd_check_requires(args: argparse.Namespace) -> int:
    """Report missing and unnecessary goog.require() calls."""
    context = build_context(args)
    checker = RequireChecker(args.root, extern_files=args.externs, exclude_provides=args.exclude, context=context)
    try:
        result = checker.get_wrong_requires()
    except BuildError as e:
        log_error(context, diag_from_error(e).format())
        return 1

    print(result.format())
    return 0 if result.ok else 1


def _add_roots_arg(parser: argparse.ArgumentParser) -> None:
    """Add the source roots argument."""
    parser.add_argument(
        "--root", "-r",
        action="append",
        default=[],
        help="File or directory to scan for JS sources (can be passed multiple times)",
    )


def _add_inputs_args(parser: argparse.ArgumentParser, config_required: bool = False) -> None:
    """Add the roots plus either a module config or single-build inputs."""
    _add_roots_arg(parser)
    parser.add_argument(
        "--config", "-c",
        required=config_required,
        help="Module config file (JSON); builds one output per module",
    )
    if not config_required:
        parser.add_argument(
            "--input", "-i",
            action="append",
            default=[],
            help="Input file whose dependencies are resolved (can be passed multiple times)",
        )


def _add_output_arg(parser: argparse.ArgumentParser, help_text: str) -> None:
    parser.add_argument("--output", "-o", help=help_text)


def _add_define_arg(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--define", "-D",
        action="append",
        default=[],
        help="Define NAME=VALUE (can be passed multiple times)",
    )


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(prog="cbc", description="Closure Library dependency builder")
    subparsers = parser.add_subparsers(dest="command", required=True, help="Command to run")

    parser.add_argument("-v", "--verbose",
                        action='count',
                        default=0,
                        dest='verbosity',
                        help="Increase verbosity: -v=INFO, -vvv=DEBUG")
    parser.add_argument("-l", "--log",
                        action='store_true',
                        default=False,
                        help="Enable rich log formatting (timestamps, levels)")
    parser.add_argument("--cache", help="Scanned-source cache file (JSON)")
    parser.add_argument("--scan-hidden",
                        action='store_true',
                        default=False,
                        help="Also walk hidden files and directories of source roots")

    ###########################
    # order command
    ###########################
    p_order = subparsers.add_parser("order", help="Print sources in dependency order")
    _add_inputs_args(p_order)
    _add_output_arg(p_order, "Output file (default: stdout)")
    p_order.set_defaults(func=cmd_order)

    ###########################
    # build command
    ###########################
    p_build = subparsers.add_parser("build", help="Compile with the Closure Compiler")
    _add_inputs_args(p_build)
    _add_output_arg(p_build, "Compiled output file, single build only (default: stdout)")
    _add_define_arg(p_build)
    p_build.add_argument("--compiler-jar", "-j",
                         default=os.getenv("CLOSURE_COMPILER_JAR"),
                         help="Path to the Closure Compiler jar (default: $CLOSURE_COMPILER_JAR)")
    p_build.add_argument("--java",
                         default=os.getenv("JAVA") or "java",
                         help="Java executable (default: $JAVA or java)")
    p_build.add_argument("--jvm-flag", action="append", default=[],
                         help="Flag passed to the JVM (can be passed multiple times)")
    p_build.add_argument("--compiler-flag", "-f", action="append", default=[],
                         help="Flag passed to the compiler (can be passed multiple times)")
    p_build.add_argument("--externs", action="append", default=[],
                         help="Externs file (can be passed multiple times)")
    p_build.add_argument("--source-map", help="Source map file; module builds write <module>.js.map")
    p_build.add_argument("--timeout", type=float, help="Compiler timeout in seconds")
    p_build.set_defaults(func=cmd_build)

    ###########################
    # modules command
    ###########################
    p_modules = subparsers.add_parser("modules", help="Print modules with their sources")
    _add_inputs_args(p_modules, config_required=True)
    _add_output_arg(p_modules, "Output file (default: stdout)")
    p_modules.set_defaults(func=cmd_modules)

    ###########################
    # flags command
    ###########################
    p_flags = subparsers.add_parser("flags", help="Print the compiler's --module flags")
    _add_inputs_args(p_flags, config_required=True)
    _add_output_arg(p_flags, "Output file (default: stdout)")
    p_flags.set_defaults(func=cmd_flags)

    ###########################
    # deps command
    ###########################
    p_deps = subparsers.add_parser("deps", help="Write a deps.js file")
    _add_roots_arg(p_deps)
    _add_output_arg(p_deps, "Output file (default: stdout)")
    p_deps.add_argument("--base-dir", help="Directory paths of --root sources are relative to (default: cwd)")
    p_deps.add_argument("--root-with-prefix", nargs=2, action="append", default=[], metavar=("ROOT", "PREFIX"),
                        help="Scan ROOT, listing paths relative to it preceded by PREFIX")
    p_deps.add_argument("--path-with-depspath", nargs=2, action="append", default=[], metavar=("FILE", "PATH"),
                        help="List FILE under PATH")
    p_deps.set_defaults(func=cmd_deps)

    ###########################
    # module-deps command
    ###########################
    p_mdeps = subparsers.add_parser("module-deps", help="Write per-module loader files")
    _add_inputs_args(p_mdeps, config_required=True)
    _add_define_arg(p_mdeps)
    p_mdeps.add_argument("--load-async", action="store_true", help="Load module sources asynchronously")
    p_mdeps.add_argument("--module-info", help="Also write a goog.module('moduleInfo') file here")
    p_mdeps.set_defaults(func=cmd_module_deps)

    ###########################
    # check-requires command
    ###########################
    p_check = subparsers.add_parser("check-requires", help="Report missing and unnecessary requires")
    _add_roots_arg(p_check)
    p_check.add_argument("--externs", action="append", default=[],
                         help="Extern file or directory whose provides are known (can be passed multiple times)")
    p_check.add_argument("--exclude", action="append", default=[],
                         help="Namespace never reported (can be passed multiple times)")
    p_check.set_defaults(func=cmd_check_requires)

    args = parser.parse_args(argv)

    rc = args.func(args)
    raise SystemExit(rc)


if __name__ == "__main__":
    main()
