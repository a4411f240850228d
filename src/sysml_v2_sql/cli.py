"""Command line interface entry point."""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Any

import click

from sysml_v2_sql.configuration import DEFAULT_CONFIG_FILENAME, write_placeholder_configuration
from sysml_v2_sql.model_fetching import CommitSelector, ProjectSelector
from sysml_v2_sql.model_import import ImportSummary
from sysml_v2_sql.run_execution import (
    FetchRequest,
    ImportOptions,
    ImportRequest,
    RunExecutionError,
    SchemaSqlRequest,
    fetch_and_import,
    generate_schema_sql,
    import_element_file,
    initialize_database,
)

_LOG_FORMAT = "%(levelname)s %(name)s: %(message)s"


class CliError(Exception):
    """Custom CLI error."""


def _configure_logging(verbosity: int) -> None:
    level = logging.WARNING
    if verbosity == 1:
        level = logging.INFO
    elif verbosity > 1:
        level = logging.DEBUG
    logging.basicConfig(level=level, format=_LOG_FORMAT, stream=sys.stderr, force=True)


def _database_option(required: bool) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    return click.option(
        "--db",
        "database_path",
        required=required,
        type=click.Path(dir_okay=False, path_type=str),
        help="Path to the SQLite database file",
    )


def _import_options(command: Callable[..., Any]) -> Callable[..., Any]:
    options = (
        click.option(
            "--schema",
            "schema_path",
            type=click.Path(exists=True, dir_okay=False, path_type=str),
            help="JSON schema used to classify relationships (defaults to the bundled schema)",
        ),
        click.option(
            "--tolerant-booleans",
            is_flag=True,
            default=False,
            help='Accept "true"/"false" strings for boolean attributes.',
        ),
        click.option(
            "--disable-foreign-key-checks",
            is_flag=True,
            default=False,
            help="Do not enforce that relations point at stored elements.",
        ),
        click.option(
            "--vacuum",
            is_flag=True,
            default=False,
            help="Run VACUUM after the import to compact the database file.",
        ),
    )
    for option in options:
        command = option(command)
    return command


def _echo_import_summary(summary: ImportSummary) -> None:
    click.echo(
        f"imported {summary.elements_imported} elements and {summary.relations_imported} relations"
    )
    if summary.dangling_references:
        click.echo(
            f"skipped {len(summary.dangling_references)} relations to unknown elements", err=True
        )
    if summary.unmapped_attributes:
        click.echo(
            "attributes without a column: " + ", ".join(summary.unmapped_attributes), err=True
        )


@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(package_name="sysml-v2-sql")
@click.option("-v", "--verbose", count=True, help="Log more details (-v info, -vv debug).")
@click.option(
    "--config",
    "config_path",
    required=False,
    type=click.Path(exists=True, dir_okay=False, path_type=str),
    help="Path to a YAML configuration file",
)
@click.pass_context
def cli(ctx: click.Context, verbose: int, config_path: str | None) -> None:
    """Store SysML v2 models in a queryable SQLite database."""
    _configure_logging(verbose)
    ctx.ensure_object(dict)["config_path"] = config_path


@cli.command(name="init-db")
@_database_option(required=True)
def init_db(database_path: str) -> None:
    """Create the elements and relations tables of the bundled schema."""
    try:
        resolved = initialize_database(database_path)
    except RunExecutionError as exc:
        raise CliError(str(exc)) from exc
    click.echo(str(resolved))


@cli.command(name="import-json")
@_database_option(required=True)
@click.argument("input_path", type=click.Path(exists=True, dir_okay=False, path_type=str))
@_import_options
@click.pass_context
def import_json(
    ctx: click.Context,
    database_path: str,
    input_path: str,
    schema_path: str | None,
    tolerant_booleans: bool,
    disable_foreign_key_checks: bool,
    vacuum: bool,
) -> None:
    """Import a JSON array of elements into the database."""
    try:
        outcome = import_element_file(
            ImportRequest(
                database_path=database_path,
                input_path=input_path,
                config_path=ctx.obj.get("config_path"),
                options=ImportOptions(
                    vacuum=vacuum,
                    disable_foreign_key_checks=disable_foreign_key_checks,
                    tolerant_booleans=tolerant_booleans,
                    schema_path=schema_path,
                ),
            )
        )
    except RunExecutionError as exc:
        raise CliError(str(exc)) from exc
    _echo_import_summary(outcome.summary)


@cli.command(name="fetch")
@_database_option(required=False)
@click.argument("base_url", required=False)
@click.option("--project-id", help="Identifier of the project to fetch")
@click.option("--project-name", help="Unique prefix of the name of the project to fetch")
@click.option("--commit-id", help="Commit to fetch")
@click.option("--branch-id", help="Fetch the head commit of this branch")
@click.option(
    "--branch-name", help="Fetch the head commit of the branch with this unique name prefix"
)
@click.option(
    "--allow-invalid-certs",
    is_flag=True,
    default=False,
    help="Skip TLS certificate verification.",
)
@click.option("--page-size", type=click.IntRange(min=1), help="Elements requested per page")
@click.option(
    "--dump-json",
    "dump_json_path",
    type=click.Path(dir_okay=False, path_type=str),
    help="Also write the fetched elements to this JSON file",
)
@click.option("--pretty", is_flag=True, default=False, help="Indent the dumped JSON.")
@click.option(
    "--no-import",
    "skip_import",
    is_flag=True,
    default=False,
    help="Only fetch (and dump); do not touch the database.",
)
@_import_options
@click.pass_context
def fetch(  # pylint: disable=too-many-arguments,too-many-locals
    ctx: click.Context,
    database_path: str | None,
    base_url: str | None,
    project_id: str | None,
    project_name: str | None,
    commit_id: str | None,
    branch_id: str | None,
    branch_name: str | None,
    allow_invalid_certs: bool,
    page_size: int | None,
    dump_json_path: str | None,
    pretty: bool,
    skip_import: bool,
    schema_path: str | None,
    tolerant_booleans: bool,
    disable_foreign_key_checks: bool,
    vacuum: bool,
) -> None:
    """Fetch all elements of a commit from a SysML v2 API (default: head of the default branch)."""
    if (project_id is None) == (project_name is None):
        raise click.UsageError("Pass exactly one of --project-id or --project-name.")
    if sum(value is not None for value in (commit_id, branch_id, branch_name)) > 1:
        raise click.UsageError("Pass at most one of --commit-id, --branch-id or --branch-name.")
    if database_path is None and not skip_import:
        raise click.UsageError("Pass --db, or --no-import to only fetch.")
    try:
        outcome = fetch_and_import(
            FetchRequest(
                database_path=database_path,
                base_url=base_url,
                project=ProjectSelector(project_id=project_id, project_name=project_name),
                commit=CommitSelector(
                    commit_id=commit_id, branch_id=branch_id, branch_name=branch_name
                ),
                config_path=ctx.obj.get("config_path"),
                allow_invalid_certs=allow_invalid_certs,
                page_size=page_size,
                dump_json_path=dump_json_path,
                pretty=pretty,
                skip_import=skip_import,
                options=ImportOptions(
                    vacuum=vacuum,
                    disable_foreign_key_checks=disable_foreign_key_checks,
                    tolerant_booleans=tolerant_booleans,
                    schema_path=schema_path,
                ),
            )
        )
    except RunExecutionError as exc:
        raise CliError(str(exc)) from exc
    click.echo(
        f"fetched {outcome.element_count} elements in {outcome.page_count} pages"
        f" (project {outcome.reference.project_id}, commit {outcome.reference.commit_id})"
    )
    if outcome.dump_path is not None:
        click.echo(str(outcome.dump_path))
    if outcome.summary is not None:
        _echo_import_summary(outcome.summary)


@cli.command(name="json-schema-to-sql-schema")
@click.argument("schema_path", type=click.Path(exists=True, dir_okay=False, path_type=str))
@click.option(
    "--dump-sql",
    "dump_sql_path",
    type=click.Path(dir_okay=False, path_type=str),
    help="Write the generated DDL to this file",
)
@_database_option(required=False)
@click.option(
    "--no-init",
    is_flag=True,
    default=False,
    help="Do not create the generated tables in --db.",
)
def json_schema_to_sql_schema(
    schema_path: str, dump_sql_path: str | None, database_path: str | None, no_init: bool
) -> None:
    """Generate the SQL schema from a SysML v2 JSON schema."""
    try:
        outcome = generate_schema_sql(
            SchemaSqlRequest(
                schema_path=schema_path,
                dump_sql_path=dump_sql_path,
                database_path=database_path,
                initialize=not no_init,
            )
        )
    except RunExecutionError as exc:
        raise CliError(str(exc)) from exc
    if outcome.dump_path is None and outcome.database_path is None:
        click.echo(outcome.ddl, nl=False)
    for written in (outcome.dump_path, outcome.database_path):
        if written is not None:
            click.echo(str(written))


@cli.command(name="generate-config")
@click.option(
    "--output",
    "output_path",
    required=False,
    default=DEFAULT_CONFIG_FILENAME,
    show_default=True,
    type=click.Path(path_type=str),
    help="Path to the YAML configuration template to write",
)
def generate_config(output_path: str) -> None:
    """Generate a YAML configuration with the default settings and guidance comments."""
    try:
        resolved_output = write_placeholder_configuration(output_path)
    except (FileExistsError, OSError) as exc:
        raise CliError(str(exc)) from exc
    click.echo(str(resolved_output))


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for console_scripts wiring."""
    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=list(argv), standalone_mode=False)
    except CliError as exc:
        click.echo(str(exc), err=True)
        return 1
    except click.ClickException as exc:
        exc.show()
        return exc.exit_code
    except click.Abort:
        click.echo("Aborted.", err=True)
        return 1
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
