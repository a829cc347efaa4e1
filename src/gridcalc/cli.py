"""Command-line interface for gridcalc."""

from __future__ import annotations

import json
from pathlib import Path

import click

from gridcalc import __version__


@click.group()
@click.version_option(version=__version__, prog_name="gridcalc")
def main() -> None:
    """gridcalc -- spreadsheet formula engine with incremental recalculation."""


# ---------------------------------------------------------------------------
# helpers
# ---------------------------------------------------------------------------


def _parse_assignments(assignments: tuple[str, ...]) -> list[tuple[str, str]]:
    items: list[tuple[str, str]] = []
    for item in assignments:
        if "=" not in item:
            raise click.ClickException(f"Invalid --set format: {item!r}. Use ADDRESS=CONTENT.")
        address, content = item.split("=", 1)
        items.append((address.strip(), content))
    return items


SESSION_VERSION = 1


def _read_session(path: str) -> list[tuple[str, str]]:
    """Cells of a session file: ``{"version": 1, "cells": {"A1": "text", ...}}``."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise click.ClickException(f"Cannot read session {path}: {e}")
    cells = data.get("cells") if isinstance(data, dict) else None
    if not isinstance(cells, dict) or not all(isinstance(v, str) for v in cells.values()):
        raise click.ClickException(f"Session {path} has no 'cells' mapping of ADDRESS to text")
    return list(cells.items())


def _write_session(path: str, dump: list) -> None:
    from gridcalc.address import make_addr

    cells = {make_addr(addr): raw for addr, raw in dump}
    try:
        Path(path).write_text(
            json.dumps({"version": SESSION_VERSION, "cells": cells}, indent=2) + "\n",
            encoding="utf-8",
        )
    except OSError as e:
        raise click.ClickException(f"Cannot write session {path}: {e}")


def _json_value(value: object) -> object:
    from gridcalc.formulas.values import CellError

    if isinstance(value, CellError):
        return value.display
    return value


# ---------------------------------------------------------------------------
# Eval
# ---------------------------------------------------------------------------


@main.command("eval")
@click.option("--set", "assignments", multiple=True, help="Cell assignment as ADDRESS=CONTENT (repeatable).")
@click.option("--load", "load_path", default=None, type=click.Path(exists=True, dir_okay=False), help="Session file to start from; --set edits apply on top.")
@click.option("--save", "save_path", default=None, type=click.Path(dir_okay=False), help="Write the resulting cells to this session file.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True), help="gridcalc.yaml or a directory holding one.")
@click.option("--log-dir", "log_dir", default=None, type=click.Path(), help="Write NDJSON events under this directory.")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def eval_cells(
    assignments: tuple[str, ...],
    load_path: str | None,
    save_path: str | None,
    config_path: str | None,
    log_dir: str | None,
    as_json: bool,
) -> None:
    """Load cell assignments, recalculate, and print every occupied cell."""
    from gridcalc.address import make_addr
    from gridcalc.config import load_config
    from gridcalc.grid import Grid
    from gridcalc.logging import configure_from_config

    try:
        config = load_config(config_path)
    except (OSError, ValueError) as e:
        raise click.ClickException(str(e))
    if log_dir:
        config["logging_dir"] = log_dir
    configure_from_config(config)

    grid = Grid(config)
    try:
        items = _read_session(load_path) if load_path else []
        items.extend(_parse_assignments(assignments))
        diagnostics = grid.load(items)
    except ValueError as e:
        raise click.ClickException(str(e))

    if save_path:
        _write_session(save_path, grid.dump())

    for diagnostic in diagnostics:
        click.echo(str(diagnostic), err=True)

    if as_json:
        out = {
            "cells": {
                make_addr(addr): {
                    "raw": grid.get_raw(addr),
                    "value": _json_value(grid.get_value(addr)),
                    "display": grid.get_display_text(addr),
                }
                for addr in grid.addresses()
            },
            "diagnostics": [
                {
                    "address": make_addr(d.address),
                    "kind": d.kind.value,
                    "message": d.message,
                    "position": d.position,
                    "path": [make_addr(a) for a in d.path],
                }
                for d in diagnostics
            ],
        }
        click.echo(json.dumps(out, indent=2))
        return

    for addr in grid.addresses():
        click.echo(f"{make_addr(addr)}\t{grid.get_display_text(addr)}")


# ---------------------------------------------------------------------------
# Parse
# ---------------------------------------------------------------------------


@main.command("parse")
@click.argument("formula")
@click.option("--json", "as_json", is_flag=True, help="Output as JSON.")
def parse_cmd(formula: str, as_json: bool) -> None:
    """Parse FORMULA and print its canonical form and references."""
    from gridcalc.address import make_addr
    from gridcalc.formulas.ast import CellRef, iter_refs
    from gridcalc.formulas.errors import FormulaFunctionError, FormulaParseError
    from gridcalc.formulas.evaluator import check_functions
    from gridcalc.formulas.parser import parse_formula, render_formula

    try:
        expr = parse_formula(formula)
    except FormulaParseError as e:
        raise click.ClickException(str(e))

    refs: list[str] = []
    for ref in iter_refs(expr):
        if isinstance(ref, CellRef):
            refs.append(make_addr(ref.address))
        else:
            refs.append(f"{make_addr(ref.start)}:{make_addr(ref.end)}")

    warning = None
    try:
        check_functions(expr)
    except FormulaFunctionError as e:
        warning = str(e)

    if as_json:
        click.echo(json.dumps({"formula": render_formula(expr), "refs": refs, "warning": warning}, indent=2))
        return

    click.echo(render_formula(expr))
    if refs:
        click.echo(f"refs: {', '.join(refs)}")
    if warning:
        click.echo(f"warning: {warning}", err=True)
