from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

import typer

from mod_inliner.core.cfg.cfg_config import CfgConfigError, load_and_merge
from mod_inliner.core.cfg.evaluator import CfgEvaluator
from mod_inliner.core.errors import FileOpenFailedError, ModuleExpandError, ResolutionFailedError
from mod_inliner.core.expand.expand_modules import iter_modules
from mod_inliner.core.io.dump_tree import dump_tree_json, dump_tree_yaml
from mod_inliner.core.io.load_source import (
    read_full_crate_source_code,
    read_full_crate_source_code_with_dupes,
)
from mod_inliner.core.model import SourceFile
from mod_inliner.core.syntax.render import render_attribute, render_file

app = typer.Typer(add_completion=False, no_args_is_help=True)


@app.callback()
def _callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log every file lookup and cfg answer"),
) -> None:
    """Inline a Rust crate's `mod name;` declarations into a single source tree."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s | %(message)s",
        stream=sys.stderr,
    )


@app.command("expand")
def expand(
    input_file: str = typer.Argument(..., help="Root source file to start crawling from"),
    output: str | None = typer.Option(None, "--output", "-o", help="Write the result here instead of stdout"),
    cfg: list[str] | None = typer.Option(None, "--cfg", "-c", help="Treat this cfg as true (repeatable)"),
    unset_cfg: list[str] | None = typer.Option(None, "--unset-cfg", "-u", help="Treat this cfg as false (repeatable)"),
    cfg_true_by_default: bool = typer.Option(
        False, "--cfg-true-by-default", "-T", help="Treat every cfg as true unless unset with -u"
    ),
    debug_cfg: bool = typer.Option(False, "--debug-cfg", "-d", help="Print each cfg name as it is checked"),
    cfg_file: str | None = typer.Option(None, "--cfg-file", help="Optional YAML file of cfg name -> true/false"),
    dupes: bool = typer.Option(
        False, "--dupes", help="Keep every cfg variant of a module, each under its own #[cfg]"
    ),
    format: str = typer.Option("source", "--format", help="Output format: source|yaml|json"),
) -> None:
    """Expand external modules of INPUT_FILE and print the combined source."""
    if format not in ("source", "yaml", "json"):
        _print_errors(
            [
                ModuleExpandError(
                    code="E_EXPAND_UNKNOWN_FORMAT",
                    message=f"unknown format: {format} (choose one of: source, yaml, json)",
                )
            ]
        )
        raise typer.Exit(code=2)

    evaluator = _build_evaluator(cfg, unset_cfg, cfg_true_by_default, debug_cfg, cfg_file)
    tree = _load_tree(input_file, evaluator, dupes)

    if format == "source":
        text = render_file(tree)
    elif format == "yaml":
        text = dump_tree_yaml(tree)
    else:
        text = dump_tree_json(tree) + "\n"

    if output is None:
        typer.echo(text, nl=False)
        return

    try:
        _write_text(output, text)
    except OSError as e:
        typer.echo(f"Output failed: {e}", err=True)
        raise typer.Exit(code=3)


@app.command("modules")
def modules(
    input_file: str = typer.Argument(..., help="Root source file to start crawling from"),
    cfg: list[str] | None = typer.Option(None, "--cfg", "-c", help="Treat this cfg as true (repeatable)"),
    unset_cfg: list[str] | None = typer.Option(None, "--unset-cfg", "-u", help="Treat this cfg as false (repeatable)"),
    cfg_true_by_default: bool = typer.Option(
        False, "--cfg-true-by-default", "-T", help="Treat every cfg as true unless unset with -u"
    ),
    debug_cfg: bool = typer.Option(False, "--debug-cfg", "-d", help="Print each cfg name as it is checked"),
    cfg_file: str | None = typer.Option(None, "--cfg-file", help="Optional YAML file of cfg name -> true/false"),
    dupes: bool = typer.Option(
        False, "--dupes", help="Keep every cfg variant of a module, each under its own #[cfg]"
    ),
    format: str = typer.Option("text", "--format", help="Output format: text|json"),
) -> None:
    """List the module tree of INPUT_FILE after expansion."""
    if format not in ("text", "json"):
        _print_errors(
            [
                ModuleExpandError(
                    code="E_MODULES_UNKNOWN_FORMAT",
                    message=f"unknown format: {format} (choose one of: text, json)",
                )
            ]
        )
        raise typer.Exit(code=2)

    def _emit_json(ok: bool, *, exit_code: int, errors: list[ModuleExpandError], entries: list[dict] | None) -> None:
        payload = {
            "tool": "mod-inliner",
            "command": "modules",
            "ok": ok,
            "error_count": len(errors),
            "errors": [_to_item(e) for e in errors],
            "modules": entries,
        }
        typer.echo(json.dumps(payload, indent=2, sort_keys=True))
        raise typer.Exit(code=exit_code)

    evaluator = _build_evaluator(cfg, unset_cfg, cfg_true_by_default, debug_cfg, cfg_file)
    try:
        tree = _expand(input_file, evaluator, dupes)
    except ModuleExpandError as e:
        if format == "json":
            _emit_json(False, exit_code=_exit_code_for(e), errors=[e], entries=None)
        _print_errors([e])
        raise typer.Exit(code=_exit_code_for(e))

    entries = [
        {
            "path": "::".join(path),
            "expanded": not decl.is_external,
            "cfg": [render_attribute(a) for a in decl.attrs if a.path == "cfg"],
        }
        for path, decl in iter_modules(tree.items)
    ]

    if format == "json":
        _emit_json(True, exit_code=0, errors=[], entries=entries)

    for entry in entries:
        line = entry["path"]
        if entry["cfg"]:
            line += "  " + " ".join(entry["cfg"])
        if not entry["expanded"]:
            line += "  (not found)"
        typer.echo(line)


def _build_evaluator(
    cfg: list[str] | None,
    unset_cfg: list[str] | None,
    true_by_default: bool,
    debug_cfg: bool,
    cfg_file: str | None,
) -> CfgEvaluator:
    try:
        enabled, disabled = load_and_merge(cfg_file, enabled=cfg, disabled=unset_cfg)
    except OSError as e:
        _print_errors(
            [
                FileOpenFailedError(
                    code="E_CFG_FILE_NOT_FOUND",
                    message=f"cfg file not readable: {e}",
                    file=cfg_file,
                )
            ]
        )
        raise typer.Exit(code=1)
    except CfgConfigError as e:
        _print_errors([ModuleExpandError(code="E_CFG_FILE_INVALID", message=str(e), file=cfg_file)])
        raise typer.Exit(code=2)

    return CfgEvaluator(
        enabled=enabled,
        disabled=disabled,
        true_by_default=true_by_default,
        debug_cli_names=debug_cfg,
        report=lambda name: typer.echo(name, err=True),
    )


def _expand(input_file: str, evaluator: CfgEvaluator, dupes: bool) -> SourceFile:
    if dupes:
        return read_full_crate_source_code_with_dupes(input_file)
    return read_full_crate_source_code(input_file, evaluator)


def _load_tree(input_file: str, evaluator: CfgEvaluator, dupes: bool) -> SourceFile:
    try:
        return _expand(input_file, evaluator, dupes)
    except ModuleExpandError as e:
        _print_errors([e])
        raise typer.Exit(code=_exit_code_for(e))


def _exit_code_for(e: ModuleExpandError) -> int:
    # errors without a module path come from the root file itself
    if isinstance(e, ResolutionFailedError) and not e.module:
        return 1
    return 2


def _to_item(e: ModuleExpandError) -> dict:
    return {
        "code": e.code,
        "message": e.message,
        "file": e.file,
        "module": e.module_display or None,
        "severity": "error",
    }


def _write_text(path: str, text: str) -> None:
    p = Path(path)
    if str(p.parent) not in (".", ""):
        p.parent.mkdir(parents=True, exist_ok=True)
    p.write_text(text, encoding="utf-8")


def _print_errors(errors: list[ModuleExpandError]) -> None:
    errors_sorted = sorted(errors, key=lambda e: (e.file or "", e.module, e.code))
    for e in errors_sorted:
        typer.echo(str(e), err=True)


def main() -> None:
    app(prog_name="mod-inliner")


cli = typer.main.get_command(app)

if __name__ == "__main__":
    main()
