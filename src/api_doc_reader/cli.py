"""CLI entry point for api-doc-reader."""

import importlib
import inspect
import json
import logging
from pathlib import Path

import click
import yaml

from api_doc_reader.config import load_settings
from api_doc_reader.export import to_swagger
from api_doc_reader.metadata.facade import TypeRegistry
from api_doc_reader.metadata.loader import DescriptorError, load_descriptors
from api_doc_reader.reader import ApiReader

DESCRIPTOR_SUFFIXES = (".yaml", ".yml", ".json")


def _load_targets(targets: tuple[str, ...], registry: TypeRegistry) -> list:
    """Turn CLI targets into root types: descriptor files, module:Class or whole modules."""
    roots: list = []
    for target in targets:
        file_path = Path(target)
        if file_path.suffix in DESCRIPTOR_SUFFIXES and file_path.exists():
            try:
                descriptors = load_descriptors(file_path)
            except DescriptorError as e:
                raise click.BadParameter(str(e), param_hint="TARGETS")
            for descriptor in descriptors:
                registry.register(descriptor)
            roots.extend(descriptors)
            continue

        module_name, _, attr = target.partition(":")
        try:
            module = importlib.import_module(module_name)
        except ImportError as e:
            raise click.BadParameter(f"cannot import {module_name}: {e}", param_hint="TARGETS")
        if attr:
            if not hasattr(module, attr):
                raise click.BadParameter(f"{module_name} has no attribute {attr}", param_hint="TARGETS")
            roots.append(getattr(module, attr))
        else:
            roots.extend(
                obj for obj in vars(module).values()
                if inspect.isclass(obj) and obj.__module__ == module.__name__
            )
    return roots


def _render(doc: dict, fmt: str) -> str:
    if fmt == "yaml":
        return yaml.safe_dump(doc, sort_keys=False, allow_unicode=True)
    return json.dumps(doc, indent=2, ensure_ascii=False) + "\n"


@click.group()
@click.option("-v", "--verbose", is_flag=True, help="Log resolution details.")
def main(verbose: bool):
    """API Doc Reader: build API descriptions from annotated classes."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


@main.command()
@click.argument("targets", nargs=-1, required=True)
@click.option("-o", "--output", default=None, type=click.Path(path_type=Path), help="Output file; stdout when omitted.")
@click.option("--format", "fmt", default="json", type=click.Choice(["json", "yaml"]), help="Output format.")
@click.option("--config", "config_path", default=None, type=click.Path(exists=True, path_type=Path), help="Reader settings YAML file.")
@click.option("--include-hidden", is_flag=True, default=False, envvar="API_DOC_READ_HIDDEN", help="Document hidden APIs and operations.")
@click.option("--base-path", default=None, envvar="API_DOC_BASE_PATH", help="Base path of the API.")
def generate(targets: tuple[str, ...], output: Path | None, fmt: str, config_path: Path | None, include_hidden: bool, base_path: str | None):
    """Generate an API description from annotated classes or descriptor files."""
    settings = load_settings(config_path)
    if include_hidden:
        settings.read_hidden = True
    if base_path is not None:
        settings.base_path = base_path

    registry = TypeRegistry()
    roots = _load_targets(targets, registry)
    click.echo(f"Reading {len(roots)} candidate types...", err=True)

    reader = ApiReader(registry=registry, settings=settings)
    description = reader.read(*roots)
    for warning in reader.warnings:
        click.echo(f"  warning: {warning.kind} {warning.subject}: {warning.message}", err=True)

    operations = description.operations()
    click.echo(f"Found {len(operations)} operations and {len(description.definitions)} models.", err=True)

    text = _render(to_swagger(description, settings), fmt)
    if output is None:
        click.echo(text, nl=False)
    else:
        output.parent.mkdir(parents=True, exist_ok=True)
        output.write_text(text, encoding="utf-8")
        click.echo(f"API description saved to {output}", err=True)
