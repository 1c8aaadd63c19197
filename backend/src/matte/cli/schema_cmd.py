"""Schema CLI commands - validate, show and rules."""

from pathlib import Path

import click

from matte.errors import CompilationError, MetadataError
from matte.metadata.loader import MetadataLoader
from matte.persistence.sqlite import SQLiteAdapter
from matte.schema.validation import DECISION_TABLE


def _default_metadata_path() -> Path:
    """Resolve the metadata path from cwd."""
    cwd = Path.cwd()
    base_path = cwd.parent if cwd.name == "backend" else cwd
    return base_path / "metadata"


def _load(metadata_path: Path | None) -> MetadataLoader:
    path = metadata_path or _default_metadata_path()
    if not path.exists():
        click.echo(f"Error: Metadata directory not found at {path}", err=True)
        raise SystemExit(1)

    loader = MetadataLoader(path)
    try:
        loader.load_all()
    except CompilationError as e:
        click.echo(click.style(f"[{e.code}] {e.message}", fg="red"), err=True)
        raise SystemExit(1)
    except MetadataError as e:
        click.echo(click.style(f"Invalid metadata: {e}", fg="red"), err=True)
        raise SystemExit(1)
    return loader


path_option = click.option(
    "--path",
    "metadata_path",
    default=None,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Metadata directory (defaults to ./metadata).",
)


@click.group()
def schema():
    """Entity schema commands."""
    pass


@schema.command()
@path_option
def validate(metadata_path: Path | None):
    """Compile every YAML entity and report invariant violations."""
    loader = _load(metadata_path)

    entities = loader.list_entities()
    click.echo(f"Compiled {len(entities)} entities:")
    for name in sorted(entities):
        entity = loader.get_entity(name)
        click.echo(
            f"  ✓ {name} ({len(entity.fields)} fields, read: {entity.read_level.value}, "
            f"write: {entity.write_level.value}, lifecycle: {entity.lifecycle.value})"
        )
    click.echo(click.style("\nAll entities are valid.", fg="green", bold=True))


@schema.command()
@click.argument("name")
@path_option
def show(name: str, metadata_path: Path | None):
    """Show field order, access levels and table DDL for an entity."""
    loader = _load(metadata_path)
    entity = loader.get_entity(name)
    if entity is None:
        click.echo(f"Error: Unknown entity '{name}'", err=True)
        raise SystemExit(1)

    click.echo(click.style(entity.name, bold=True))
    click.echo(f"  table:      {entity.table_name}")
    click.echo(f"  route:      /api/{entity.route_name}")
    click.echo(f"  readLevel:  {entity.read_level.value}")
    click.echo(f"  writeLevel: {entity.write_level.value}")
    click.echo(f"  lifecycle:  {entity.lifecycle.value}")
    click.echo(f"  owned:      {'yes' if entity.owned else 'no'}")
    click.echo("\nFields:")
    for field in entity.fields:
        flags = []
        if field.is_required:
            flags.append("required")
        if field.is_array:
            flags.append("array")
        suffix = f" [{', '.join(flags)}]" if flags else ""
        click.echo(f"  {field.name}: {field.type}{suffix}")
    click.echo("\nDDL:")
    for statement in SQLiteAdapter().create_table_sql(entity):
        click.echo(f"  {statement};")


@schema.command()
@click.option("--all", "show_all", is_flag=True, default=False, help="Include invalid combinations.")
def rules(show_all: bool):
    """Print the access level / lifecycle decision table."""
    for (read, write, lifecycle), rule in DECISION_TABLE.items():
        if rule is not None and not show_all:
            continue
        verdict = click.style("ok", fg="green") if rule is None else click.style(rule.code, fg="red")
        click.echo(f"{read.value:16} {write.value:16} {lifecycle.value:16} {verdict}")
