"""
AutoSPN command line interface.

Commands:
    autospn check            Check (and optionally fix) SPNs for one server
    autospn check-targets    Check every enabled target in spn_targets.json
    autospn validate-config  Validate spn_targets.json
"""

import logging
import socket
from functools import partial
from pathlib import Path
from typing import List, Optional, Tuple

import typer
from rich.console import Console
from rich.markup import escape

from autospn.application.reconciler import SpnReconciler
from autospn.domain.config import SpnTarget
from autospn.domain.errors import (
    AccountMismatchError,
    ConfigError,
    DirectoryError,
    SpnCheckError,
    TopologyDiscoveryError,
)
from autospn.domain.flags import parse_flag
from autospn.domain.models import ReconcileResult
from autospn.infrastructure.config_loader import ConfigLoader
from autospn.infrastructure.directory import SetspnDirectory
from autospn.infrastructure.logging_config import setup_logging
from autospn.infrastructure.psremote.client import ConnectionConfig, PSRemoteClient
from autospn.infrastructure.topology import SqlTopologyDiscovery
from .formatters import ReconcileResultFormatter

logger = logging.getLogger(__name__)

console = Console()

app = typer.Typer(
    name="autospn",
    help="🔐 SQL Server Kerberos SPN checker",
    add_completion=False,
    rich_markup_mode="rich",
)


def _remediate_callback(value: str) -> bool:
    try:
        return parse_flag(value)
    except ValueError as e:
        raise typer.BadParameter(str(e)) from e


def build_reconciler(  # pylint: disable=too-many-arguments
    sql_auth: str = "integrated",
    sql_user: Optional[str] = None,
    sql_password: Optional[str] = None,
    connect_timeout: int = 30,
    dns_domain: Optional[str] = None,
    directory_host: str = "localhost",
    admin_user: Optional[str] = None,
    admin_password: Optional[str] = None,
) -> SpnReconciler:
    """Wire the pyodbc, setspn and WinRM collaborators into a reconciler."""
    from autospn.infrastructure.sql_server import SqlConnector  # pylint: disable=import-outside-toplevel

    connector_factory = partial(
        SqlConnector,
        auth=sql_auth,
        username=sql_user,
        password=sql_password,
        connect_timeout=connect_timeout,
    )
    topology_source = SqlTopologyDiscovery(
        connector_factory, dns_domain=dns_domain, fqdn_resolver=socket.getfqdn
    )

    directory = SetspnDirectory(PSRemoteClient(ConnectionConfig(hostname=directory_host)))
    admin_directory = None
    if admin_user:
        admin_directory = SetspnDirectory(PSRemoteClient(ConnectionConfig(
            hostname=directory_host,
            username=admin_user,
            password=admin_password,
        )))

    return SpnReconciler(topology_source, directory, admin_directory=admin_directory)


def _run_check(reconciler: SpnReconciler, server: str, remediate: bool,
               availability_group: Optional[str]) -> ReconcileResult:
    """Run one check, mapping errors to exit codes."""
    try:
        return reconciler.check(server, remediate=remediate, availability_group=availability_group)
    except (TopologyDiscoveryError, AccountMismatchError) as e:
        logger.error("%s", e)
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(1) from e
    except DirectoryError as e:
        logger.error("Directory operation failed: %s", e)
        console.print(f"[red]❌ Directory operation failed: {escape(str(e))}[/red]")
        raise typer.Exit(2) from e
    except SpnCheckError as e:
        logger.error("%s", e)
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(1) from e


@app.callback()
def main_callback(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug output."),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="Also write a debug log to this file."),
):
    """
    🔐 AutoSPN - verify Kerberos SPNs for SQL Server

    Discovers a standalone, clustered or availability group topology,
    derives the MSSQLSvc SPNs it needs and compares them with the SPNs
    registered on the SQL Server service account.
    """
    setup_logging(logging.DEBUG if verbose else logging.INFO, log_file)


@app.command("check")
def check_command(  # pylint: disable=too-many-arguments,too-many-positional-arguments
    server: str = typer.Option(..., "--server", "-s", help="HOST, HOST\\INSTANCE or HOST,PORT."),
    remediate: str = typer.Option(
        ..., "--remediate", "-r", callback=_remediate_callback,
        help="Register missing SPNs: yes/no/1/0.",
    ),
    availability_group: Optional[str] = typer.Option(
        None, "--ag", "--availability-group",
        help="Availability group name (required when the server is an AG replica).",
    ),
    sql_auth: str = typer.Option("integrated", "--sql-auth", help="integrated or sql."),
    sql_user: Optional[str] = typer.Option(None, "--sql-user", help="SQL login for --sql-auth sql."),
    sql_password: Optional[str] = typer.Option(
        None, "--sql-password", envvar="AUTOSPN_SQL_PASSWORD", help="SQL password.",
    ),
    dns_domain: Optional[str] = typer.Option(
        None, "--dns-domain",
        help="DNS suffix for FQDN SPN forms (default: resolved through DNS from the machine name).",
    ),
    directory_host: str = typer.Option("localhost", "--directory-host", help="Host that runs setspn."),
    admin_user: Optional[str] = typer.Option(None, "--admin-user", help="Account used to register SPNs."),
    admin_password: Optional[str] = typer.Option(
        None, "--admin-password", envvar="AUTOSPN_ADMIN_PASSWORD", help="Password for --admin-user.",
    ),
):
    """Check the SPNs of one SQL Server target."""
    if sql_auth not in ("integrated", "sql"):
        raise typer.BadParameter("--sql-auth must be integrated or sql")
    if sql_auth == "sql" and not sql_user:
        raise typer.BadParameter("--sql-user is required with --sql-auth sql")
    if sql_auth == "sql" and sql_user and not sql_password:
        sql_password = typer.prompt(f"SQL password for {sql_user}", hide_input=True)
    if remediate and admin_user and not admin_password:
        admin_password = typer.prompt(f"Password for {admin_user}", hide_input=True)

    reconciler = build_reconciler(
        sql_auth=sql_auth,
        sql_user=sql_user,
        sql_password=sql_password,
        dns_domain=dns_domain,
        directory_host=directory_host,
        admin_user=admin_user,
        admin_password=admin_password,
    )
    result = _run_check(reconciler, server, remediate, availability_group)
    ReconcileResultFormatter(console).display_result(result)


def _check_target(target: SpnTarget, directory_host: str, admin_user: Optional[str],
                  admin_password: Optional[str]) -> ReconcileResult:
    reconciler = build_reconciler(
        sql_auth=target.auth,
        sql_user=target.username,
        sql_password=target.password,
        connect_timeout=target.connect_timeout,
        dns_domain=target.dns_domain,
        directory_host=directory_host,
        admin_user=admin_user,
        admin_password=admin_password,
    )
    return reconciler.check(
        target.server,
        remediate=target.remediate,
        availability_group=target.availability_group,
    )


@app.command("check-targets")
def check_targets_command(
    config_dir: Path = typer.Option(Path("config"), "--config-dir", help="Directory holding spn_targets.json."),
    only: Optional[List[str]] = typer.Option(None, "--only", help="Check only these target ids."),
):
    """Check every enabled target from the configuration file."""
    try:
        config = ConfigLoader(config_dir).load_targets()
    except ConfigError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    targets = config.enabled_targets
    if only:
        unknown = set(only) - {target.id for target in config.targets}
        if unknown:
            console.print(f"[red]❌ Unknown target id(s): {', '.join(sorted(unknown))}[/red]")
            raise typer.Exit(1)
        targets = [target for target in targets if target.id in only]

    formatter = ReconcileResultFormatter(console)
    rows: List[Tuple[str, str, Optional[ReconcileResult], str]] = []
    for target in targets:
        console.print(f"\n[yellow]🎯 Target: {target.id} ({target.server})[/yellow]")
        try:
            result = _check_target(target, config.directory.host, config.directory.username,
                                   config.directory.password)
        except SpnCheckError as e:
            logger.error("Target %s failed: %s", target.id, e)
            console.print(f"[red]❌ {escape(str(e))}[/red]")
            rows.append((target.id, target.server, None, type(e).__name__))
            continue
        formatter.display_result(result)
        rows.append((target.id, target.server, result, ""))

    formatter.display_summary(rows)

    if any(result is None for _, _, result, _ in rows):
        raise typer.Exit(1)


@app.command("validate-config")
def validate_config_command(
    config_dir: Path = typer.Option(Path("config"), "--config-dir", help="Directory holding spn_targets.json."),
):
    """Validate spn_targets.json and show the configured targets."""
    try:
        config = ConfigLoader(config_dir).load_targets()
    except ConfigError as e:
        console.print(f"[red]❌ {escape(str(e))}[/red]")
        raise typer.Exit(1) from e

    ReconcileResultFormatter(console).display_config(config)
    console.print("[green]✅ Configuration is valid[/green]")


def main() -> None:
    app()
