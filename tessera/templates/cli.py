"""
Template CLI - Command-line interface for template management.

Provides commands:
- tessera compile: Compile templates to cached artifacts
- tessera render: Render a template to stdout
- tessera deps: Show a template's dependency set
- tessera inspect: Inspect template and artifact metadata
- tessera clear-cache: Delete compiled artifacts
"""

from typing import Any, Dict, Optional, Tuple
from pathlib import Path
import json
import logging
import sys

import click

from tessera import __version__
from tessera.config import ConfigLoader, TemplateConfig
from tessera.faults import Fault

from .engine import TemplateEngine


def _fail(fault: Fault) -> None:
    click.echo(click.style(f"✗ {fault}", fg="red"), err=True)
    sys.exit(1)


def _parse_vars(pairs: Tuple[str, ...], vars_file: Optional[str]) -> Dict[str, Any]:
    """Bindings from ``--vars-file`` (JSON or YAML) then ``--var key=value``."""
    context: Dict[str, Any] = {}

    if vars_file:
        path = Path(vars_file)
        with open(path) as f:
            if path.suffix in (".yaml", ".yml"):
                import yaml
                data = yaml.safe_load(f)
            else:
                data = json.load(f)
        if not isinstance(data, dict):
            raise click.BadParameter("must contain a mapping", param_hint="--vars-file")
        context.update(data)

    for pair in pairs:
        if "=" not in pair:
            raise click.BadParameter(f"expected key=value, got {pair!r}", param_hint="--var")
        key, value = pair.split("=", 1)
        context[key.strip()] = value

    return context


def build_config(
    config_file: Optional[str],
    templates: Optional[str],
    cache: Optional[str],
    flags: Dict[str, Optional[bool]],
) -> TemplateConfig:
    """Merge config file, TESSERA_* environment and command-line options."""
    overrides: Dict[str, Any] = {}
    if templates:
        overrides["template_root"] = templates
    if cache:
        overrides["cache_root"] = cache
    overrides.update({key: value for key, value in flags.items() if value is not None})

    loader = ConfigLoader.load(paths=[config_file] if config_file else None)
    section = loader.config_data.get("templates")
    if isinstance(section, dict):
        loader.config_data["templates"] = {**section, **overrides}
    else:
        loader.config_data.update(overrides)

    return loader.template_config(template_root="templates", cache_root=".tessera-cache")


@click.group()
@click.version_option(version=__version__, prog_name="tessera")
@click.option("--config", "config_file", type=click.Path(exists=True, dir_okay=False), help="YAML or JSON config file")
@click.option("--templates", "-t", type=click.Path(file_okay=False), help="Template root directory")
@click.option("--cache-dir", "-c", "cache", type=click.Path(file_okay=False), help="Artifact cache directory")
@click.option("--cache/--no-cache", "cache_enabled", default=None, help="Reuse fresh artifacts")
@click.option("--trim-whitespace/--keep-whitespace", default=None, help="Collapse whitespace runs")
@click.option("--remove-html-comments/--keep-html-comments", default=None, help="Strip <!-- --> comments")
@click.option("--allow-raw-code/--deny-raw-code", default=None, help="Emit {? code ?} blocks")
@click.option("--verbose", "-v", is_flag=True, help="Verbose output")
@click.pass_context
def cli(
    ctx,
    config_file: Optional[str],
    templates: Optional[str],
    cache: Optional[str],
    cache_enabled: Optional[bool],
    trim_whitespace: Optional[bool],
    remove_html_comments: Optional[bool],
    allow_raw_code: Optional[bool],
    verbose: bool,
):
    """Compile and render Tessera templates."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    flags = {
        "cache_enabled": cache_enabled,
        "trim_whitespace": trim_whitespace,
        "remove_html_comments": remove_html_comments,
        "allow_raw_code": allow_raw_code,
    }
    try:
        config = build_config(config_file, templates, cache, flags)
    except Fault as fault:
        _fail(fault)

    ctx.ensure_object(dict)
    ctx.obj["engine"] = TemplateEngine(config)
    ctx.obj["verbose"] = verbose


@cli.command("compile")
@click.argument("names", nargs=-1)
@click.option("--all", "compile_all", is_flag=True, help="Compile every template under the root")
@click.pass_context
def compile_command(ctx, names: Tuple[str, ...], compile_all: bool):
    """Compile templates to cached artifacts."""
    engine: TemplateEngine = ctx.obj["engine"]

    if compile_all:
        report = engine.manager.compile_all()
        for name, path in sorted(report.compiled.items()):
            click.echo(f"  {name} -> {path}")
        for name, fault in sorted(report.failed.items()):
            click.echo(click.style(f"  ✗ {name}: {fault}", fg="red"), err=True)

        click.echo(click.style(f"✓ Compiled {len(report.compiled)} templates", fg="green"))
        if not report.ok:
            sys.exit(1)
        return

    if not names:
        raise click.UsageError("Give template names or --all")

    for name in names:
        try:
            artifact = engine.compile(name)
        except Fault as fault:
            _fail(fault)
        click.echo(f"  {name} -> {artifact}")


@cli.command("render")
@click.argument("name")
@click.option("--var", "variables", multiple=True, help="Binding as key=value (repeatable)")
@click.option("--vars-file", type=click.Path(exists=True, dir_okay=False), help="JSON or YAML bindings")
@click.pass_context
def render_command(ctx, name: str, variables: Tuple[str, ...], vars_file: Optional[str]):
    """Render a template to stdout."""
    engine: TemplateEngine = ctx.obj["engine"]
    context = _parse_vars(variables, vars_file)

    try:
        output = engine.render_to_string(name, context)
    except Fault as fault:
        _fail(fault)
    click.echo(output, nl=False)


@cli.command("deps")
@click.argument("name")
@click.pass_context
def deps_command(ctx, name: str):
    """Show the templates NAME depends on."""
    engine: TemplateEngine = ctx.obj["engine"]
    try:
        dependencies = engine.manager.dependencies(name)
    except Fault as fault:
        _fail(fault)

    for dependency in dependencies:
        click.echo(dependency)


@cli.command("inspect")
@click.argument("name")
@click.pass_context
def inspect_command(ctx, name: str):
    """Inspect template and artifact metadata as JSON."""
    engine: TemplateEngine = ctx.obj["engine"]
    try:
        info = engine.manager.inspect(name)
    except Fault as fault:
        _fail(fault)
    click.echo(json.dumps(info, indent=2))


@cli.command("clear-cache")
@click.pass_context
def clear_cache_command(ctx):
    """Delete every compiled artifact."""
    engine: TemplateEngine = ctx.obj["engine"]
    try:
        removed = engine.clear_cache()
    except Fault as fault:
        _fail(fault)
    click.echo(click.style(f"✓ Removed {removed} cached artifacts", fg="green"))


def main() -> None:
    cli(obj={})


if __name__ == "__main__":
    main()
