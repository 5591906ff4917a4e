"""
CLI result formatters for SPN reconciliation.

Keeps rich rendering out of the command functions.
"""

from typing import List, Tuple

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from autospn.domain.config import TargetsConfig
from autospn.domain.models import ReconcileResult

console = Console()


class ReconcileResultFormatter:
    """Renders one or many reconciliation results."""

    def __init__(self, out: Console | None = None):
        self.console = out or console

    def display_result(self, result: ReconcileResult) -> None:
        """Required SPNs with their status, then the outcome line."""
        missing = {spn.casefold() for spn in result.missing}
        registered = {spn.casefold() for spn in result.registered}

        table = Table(title=f"🔐 SPNs for {result.topology.display_name} [{result.topology.kind}]")
        table.add_column("SPN", style="cyan", no_wrap=True)
        table.add_column("Status")

        for spn in result.required:
            key = spn.casefold()
            if key in registered:
                status = "[green]🔧 Registered now[/green]"
            elif key in missing:
                status = "[red]❌ Missing[/red]"
            else:
                status = "[green]✅ Present[/green]"
            table.add_row(spn, status)

        self.console.print(table)

        if not result.missing:
            self.console.print(
                f"[green]✅ All {len(result.required)} required SPNs are registered to {escape(result.owner_label)}[/green]"
            )
            return

        self.console.print(f"[yellow]⚠️  {len(result.missing)} SPN(s) missing on {escape(result.owner.principal)}:[/yellow]")
        for spn in result.missing:
            self.console.print(f"  {spn}")

        if result.registered:
            self.console.print(
                f"[green]🔧 Registered {len(result.registered)} SPN(s) on {escape(result.owner.principal)}[/green]"
            )
        if result.manual_commands:
            self.console.print("\n[blue]Run the following as a domain administrator:[/blue]")
            for command in result.manual_commands:
                self.console.print(f"  {command}", markup=False)

    def display_summary(self, rows: List[Tuple[str, str, ReconcileResult | None, str]]) -> None:
        """
        Summary of a batch run.

        Args:
            rows: (target id, server, result or None, error message)
        """
        table = Table(title="📊 SPN Check Summary")
        table.add_column("Target", style="cyan", no_wrap=True)
        table.add_column("Server", style="blue", no_wrap=True)
        table.add_column("Owner", style="magenta")
        table.add_column("Missing", justify="right")
        table.add_column("Status")

        for target_id, server, result, error in rows:
            if result is None:
                table.add_row(target_id, server, "-", "-", f"[red]❌ {error}[/red]")
            elif result.is_compliant:
                table.add_row(target_id, server, result.owner.principal, str(len(result.missing)),
                              "[green]✅ OK[/green]")
            else:
                table.add_row(target_id, server, result.owner.principal, str(len(result.outstanding)),
                              "[yellow]⚠️  Missing SPNs[/yellow]")

        self.console.print(table)

    def display_config(self, config: TargetsConfig) -> None:
        """Configured targets and directory settings."""
        table = Table(title="⚙️  SPN Targets")
        table.add_column("Target", style="cyan", no_wrap=True)
        table.add_column("Server", style="blue", no_wrap=True)
        table.add_column("Availability Group")
        table.add_column("Remediate")
        table.add_column("Enabled")

        for target in config.targets:
            table.add_row(
                target.id,
                target.server,
                target.availability_group or "-",
                "yes" if target.remediate else "no",
                "[green]yes[/green]" if target.enabled else "[dim]no[/dim]",
            )

        self.console.print(table)
        admin = config.directory.username or "current user"
        self.console.print(f"[blue]Directory host:[/blue] {config.directory.host} (registration as {admin})")
