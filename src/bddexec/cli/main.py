"""CLI entry point for bddexec."""
from __future__ import annotations

import logging
import sys
from pathlib import Path
from typing import Optional, Tuple

import click

from bddexec import __version__
from bddexec.api import ApiClient
from bddexec.compiler import compile_plan
from bddexec.config import ApiSettings, load_settings
from bddexec.core.errors import BddexecError
from bddexec.core.results import RunOutcome
from bddexec.execution import DEFAULT_TIMEOUT, ExecutionRunner
from bddexec.plan import load_plan, run_testcase
from bddexec.reporting import TerminalReporter

CONTEXT_SETTINGS = {"help_option_names": ["-h", "--help"]}
SCRIPT_TYPES = ("playwright", "selenium")

token_option = click.option(
    "--token",
    envvar="BDDEXEC_TOKEN",
    required=True,
    help="Bearer credential for the runner (or $BDDEXEC_TOKEN).",
)
script_type_option = click.option(
    "--script-type",
    type=click.Choice(SCRIPT_TYPES),
    default="playwright",
    show_default=True,
    help="Automation engine the runner should target.",
)


class CliState:
    """Holds global CLI state."""

    def __init__(self, verbose: bool, use_color: bool, config_path: Optional[str]) -> None:
        self.verbose = verbose
        self.use_color = use_color
        self.config_path = config_path
        self._settings: Optional[ApiSettings] = None

    @property
    def settings(self) -> ApiSettings:
        if self._settings is None:
            try:
                self._settings = load_settings(self.config_path)
            except ValueError as exc:
                raise click.ClickException(str(exc)) from exc
        return self._settings

    def reporter(self) -> TerminalReporter:
        return TerminalReporter(use_color=self.use_color, show_debug=self.verbose, show_states=self.verbose)


def _print_version(_: click.Context, __: click.Parameter, value: bool) -> None:
    if not value or click.get_current_context().resilient_parsing:
        return
    click.echo(f"bddexec {__version__}")
    raise click.exceptions.Exit()


@click.group(context_settings=CONTEXT_SETTINGS)
@click.option("--verbose", is_flag=True, help="Enable verbose logging output.")
@click.option("--config", "config_path", type=click.Path(dir_okay=False), help="appsettings file (JSON or YAML).")
@click.option("--no-color", is_flag=True, help="Disable ANSI colors in terminal output.")
@click.option(
    "--version",
    is_flag=True,
    callback=_print_version,
    expose_value=False,
    is_eager=True,
    help="Show the bddexec version and exit.",
)
@click.pass_context
def cli(ctx: click.Context, verbose: bool, config_path: Optional[str], no_color: bool) -> None:
    """Compile BDD test plans and run them against a remote runner."""

    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    ctx.obj = CliState(verbose=verbose, use_color=not no_color, config_path=config_path)


@cli.command("compile")
@click.option("--plan", "plan_path", type=click.Path(exists=True, dir_okay=False), help="Saved test plan (JSON or YAML).")
@click.option("--testcase", "testcase_id", type=str, help="Fetch the plan for this test case from the server.")
@click.option("--token", envvar="BDDEXEC_TOKEN", help="Bearer credential used when fetching the plan.")
@click.option("--output", "-o", "output_path", type=click.Path(dir_okay=False), help="Write the script here instead of stdout.")
@click.option("--strict", is_flag=True, help="Fail when a step has no code rule.")
@click.pass_obj
def compile_command(
    state: CliState,
    plan_path: Optional[str],
    testcase_id: Optional[str],
    token: Optional[str],
    output_path: Optional[str],
    strict: bool,
) -> None:
    """Generate a Playwright script from a test plan."""

    if bool(plan_path) == bool(testcase_id):
        raise click.UsageError("Pass exactly one of --plan or --testcase.")
    try:
        if plan_path:
            plan = load_plan(plan_path)
        else:
            with ApiClient(state.settings) as api:
                api.set_bearer(token)
                plan = api.fetch_test_plan(testcase_id or "")
    except (ValueError, BddexecError) as exc:
        raise click.ClickException(str(exc)) from exc
    compiled = compile_plan(plan)
    for skipped in compiled.skipped:
        click.echo(f"warning: {skipped.reason}", err=True)
    if strict and compiled.skipped:
        raise click.ClickException(f"{len(compiled.skipped)} step(s) have no code rule")
    if output_path:
        Path(output_path).write_text(compiled.text, encoding="utf-8")
        click.echo(f"Wrote {len(compiled.emitted)} step(s) to {output_path}", err=True)
    else:
        click.echo(compiled.text, nl=False)


@cli.command()
@click.option("--testcase", "testcase_id", type=str, required=True, help="Test case to fetch, compile and run.")
@token_option
@script_type_option
@click.option("--strict", is_flag=True, help="Do not upload scripts with unrecognized steps.")
@click.pass_obj
def run(state: CliState, testcase_id: str, token: str, script_type: str, strict: bool) -> None:
    """Fetch a plan, compile it and upload the script for execution."""

    reporter = state.reporter()
    with ApiClient(state.settings) as api:
        api.set_bearer(token)
        report = run_testcase(api, testcase_id, script_type, on_log=reporter.on_entry, strict=strict)
    reporter.on_report(report)
    raise click.exceptions.Exit(0 if report.passed else 1)


@cli.command()
@click.option("--testcase", "testcase_id", type=str, required=True, help="Test case the runner should execute.")
@token_option
@script_type_option
@click.option(
    "--timeout",
    type=click.FloatRange(min=0, min_open=True),
    default=DEFAULT_TIMEOUT,
    show_default=True,
    help="Overall deadline in seconds for the whole run.",
)
@click.pass_obj
def stream(state: CliState, testcase_id: str, token: str, script_type: str, timeout: float) -> None:
    """Execute a test case on the runner and stream its logs."""

    reporter = state.reporter()
    runner = ExecutionRunner(state.settings, token, timeout=timeout)
    try:
        result = runner.run(testcase_id, script_type, on_event=reporter.on_event)
    except BddexecError as exc:
        raise click.ClickException(str(exc)) from exc
    raise click.exceptions.Exit(0 if result.outcome == RunOutcome.PASSED else 1)


@cli.command()
@click.option("--testcase", "testcase_id", type=str, default="TC0013", show_default=True, help="Test case used for the probe.")
@click.option("--token", envvar="BDDEXEC_TOKEN", help="Bearer credential (or $BDDEXEC_TOKEN).")
@script_type_option
@click.pass_obj
def probe(state: CliState, testcase_id: str, token: Optional[str], script_type: str) -> None:
    """Check that the test plan and execute endpoints answer."""

    reporter = state.reporter()
    with ApiClient(state.settings) as api:
        api.set_bearer(token)
        entries = api.probe_endpoints(testcase_id, script_type)
    for entry in entries:
        reporter.on_entry(entry)
    raise click.exceptions.Exit(1 if any(entry.is_error for entry in entries) else 0)


@cli.command()
@click.argument("key", required=False)
@click.option("--param", "-p", "params", multiple=True, help="Placeholder value as name=value (repeatable).")
@click.pass_obj
def endpoints(state: CliState, key: Optional[str], params: Tuple[str, ...]) -> None:
    """List the endpoint table, or resolve KEY with the given parameters."""

    resolver = state.settings.resolver()
    if key is None:
        for name, template in resolver.table.items():
            click.echo(f"{name}: {template}")
        return
    click.echo(resolver.resolve(key, _parse_params(params)))


def _parse_params(specs: Tuple[str, ...]) -> dict[str, str]:
    values: dict[str, str] = {}
    for spec in specs:
        name, sep, value = spec.partition("=")
        if not sep or not name.strip():
            raise click.BadParameter(f"Expected name=value, got '{spec}'", param_hint="--param")
        values[name.strip()] = value
    return values


def main(argv: Optional[list[str]] = None) -> int:
    """Program entry point for console_scripts shim."""

    argv = argv if argv is not None else sys.argv[1:]
    try:
        cli.main(args=argv, prog_name="bddexec", standalone_mode=True)
    except click.ClickException as err:  # pragma: no cover - click handles display
        err.show()
        return err.exit_code
    except SystemExit as exc:  # click may raise exit code
        return int(exc.code or 0)
    return 0


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
