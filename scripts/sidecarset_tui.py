#!/usr/bin/env python3
"""
SidecarSet TUI - Terminal UI for monitoring sidecar upgrade progress.

Reads a SidecarSet and the pods its selector matches from the Kubernetes API,
runs the same selection pass the operator runs, and displays a live dashboard
of upgrade progress and the next batch.
"""

import argparse
import sys
import time
from typing import Any, Dict, List, Optional, Tuple

import kubernetes
from kubernetes.client import CoreV1Api, CustomObjectsApi, V1Pod
from pydantic import ValidationError
from rich import box
from rich.console import Console, Group
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from sidecarset.control import SidecarSetControl, sidecar_names
from sidecarset.errors import SelectorError
from sidecarset.models import Instance, UpdateStrategy
from sidecarset.pods import current_pods, instance_from_pod
from sidecarset.strategy import Selection, StatusCounts, calculate_status, select_next_upgrade

GROUP = "apps.kruise.io"
VERSION = "v1alpha1"
PLURAL = "sidecarsets"


def short_hash(value: Optional[str], width: int = 12) -> str:
    """Shorten a hash for display."""
    if not value:
        return "N/A"
    return value[:width] + "..." if len(value) > width else value


def format_age(instance: Instance) -> str:
    """Format the age of a pod as a compact duration."""
    created = instance.creation_timestamp.timestamp()
    duration = max(0, int(time.time() - created))
    if duration < 60:
        return f"{duration}s"
    elif duration < 3600:
        return f"{duration // 60}m {duration % 60}s"
    elif duration < 86400:
        return f"{duration // 3600}h {(duration % 3600) // 60}m"
    return f"{duration // 86400}d"


def compute_view(
    sidecar_set: Dict[str, Any],
    pods: List[V1Pod],
) -> Tuple[Optional[UpdateStrategy], List[Instance], Optional[SidecarSetControl], Optional[StatusCounts], Optional[Selection], Optional[str]]:
    """Run the selection pass locally; the last element is an error message, if any."""
    meta = sidecar_set.get("metadata") or {}
    spec = sidecar_set.get("spec") or {}
    sidecars = sidecar_names(spec.get("containers") or [])
    instances = [instance_from_pod(p, sidecars) for p in pods]

    try:
        strategy = UpdateStrategy.model_validate(spec.get("updateStrategy") or {})
    except ValidationError as e:
        return None, instances, None, None, None, f"Invalid updateStrategy: {e}"

    control = SidecarSetControl.from_annotations(meta.get("name", ""), meta.get("annotations") or {})
    if control is None:
        return strategy, instances, None, None, None, "SidecarSet has no template hash annotations yet"

    status = calculate_status(instances, control)
    selection = select_next_upgrade(strategy, instances, control)
    error = f"Rolling selector error: {selection.error}" if selection.error else None
    if spec.get("selector") is None:
        error = "SidecarSet has no selector; no pods matched"
    return strategy, instances, control, status, selection, error


def pod_row_style(updated: bool, ready: bool, selected: bool) -> Tuple[str, str]:
    """Emoji and row style for one pod."""
    if selected:
        return "🚧", "bold bright_yellow"
    if updated and ready:
        return "✅", "green"
    if updated:
        return "⏳", "yellow"
    if ready:
        return "🔄", ""
    return "❌", "red"


def render_dashboard(sidecar_set: Dict[str, Any], pods: List[V1Pod]) -> Panel:
    """Render the upgrade dashboard."""
    meta = sidecar_set.get("metadata") or {}
    name = meta.get("name", "unknown")
    strategy, instances, control, status, selection, error = compute_view(sidecar_set, pods)

    header_table = Table.grid(padding=(0, 2))
    header_table.add_column(style="bold cyan")
    header_table.add_column()
    header_table.add_row("SidecarSet:", name)

    if control is not None:
        header_table.add_row("Hash:", short_hash(control.hash))
        header_table.add_row("Hash (without image):", short_hash(control.hash_without_image))

    if strategy is not None:
        if strategy.halted:
            header_table.add_row("Status:", Text("Paused", style="bold blue"))
        header_table.add_row("Max Unavailable:", str(strategy.max_unavailable or 1))
        header_table.add_row("Partition:", str(strategy.partition or 0))
        if strategy.scatter_strategy:
            terms = ", ".join(f"{t.key}={t.value}" for t in strategy.scatter_strategy)
            header_table.add_row("Scatter:", terms)

    if status is not None:
        if status.matched_pods and status.updated_ready_pods == status.matched_pods:
            header_table.add_row("Status:", Text("Nothing to do", style="bold green"))
        header_table.add_row(
            "Summary:",
            f"Matched {status.matched_pods}, updated {status.updated_pods}, "
            f"ready {status.ready_pods}, updated & ready {status.updated_ready_pods}",
        )

    if selection is not None:
        header_table.add_row(
            "Next Batch:",
            f"{len(selection.instances)} of {selection.eligible_count} eligible "
            f"(budget {selection.need_upgrade_count}, in-flight unavailable {selection.unavailable_count})",
        )

    if error:
        header_table.add_row("Error:", Text(error, style="bold red"))

    selected = {i.key: n for n, i in enumerate(selection.instances, start=1)} if selection else {}

    pod_table = Table(box=box.SIMPLE_HEAVY, expand=True)
    pod_table.add_column("", width=2)
    pod_table.add_column("Pod")
    pod_table.add_column("Age", justify="right")
    pod_table.add_column("Updated")
    pod_table.add_column("Ready")
    pod_table.add_column("Upgradable")
    pod_table.add_column("Batch #", justify="right")

    for instance in sorted(instances, key=lambda i: i.key):
        updated = bool(control and control.is_updated(instance))
        upgradable = bool(control and control.is_upgradable(instance))
        emoji, style = pod_row_style(updated, instance.ready, instance.key in selected)
        pod_table.add_row(
            emoji,
            instance.key,
            format_age(instance),
            "yes" if updated else "no",
            "yes" if instance.ready else "no",
            "yes" if upgradable else "no",
            str(selected.get(instance.key, "")),
            style=style,
        )

    legend = Text()
    legend.append("Legend: ", style="bold")
    legend.append("✅ Up-to-date (Ready)  ", style="bold")
    legend.append("🚧 Next batch  ", style="bold")
    legend.append("⏳ Updated, not ready  ", style="bold")
    legend.append("🔄 Needs update (Ready)  ", style="bold")
    legend.append("❌ Needs update (Not ready)", style="bold")

    content = Group(header_table, Text(""), pod_table, Text(""), legend)
    return Panel(content, title="Sidecar Upgrade Progress", border_style="blue")


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Monitor sidecar upgrade progress of a SidecarSet")
    parser.add_argument("--name", required=True, help="Name of the SidecarSet")
    parser.add_argument("--interval", type=float, default=2.0, help="Refresh interval in seconds")
    args = parser.parse_args()

    try:
        kubernetes.config.load_incluster_config()
    except kubernetes.config.ConfigException:
        try:
            kubernetes.config.load_kube_config()
        except Exception as e:
            print(f"Failed to load Kubernetes config: {e}", file=sys.stderr)
            sys.exit(1)

    custom_api = CustomObjectsApi()
    core_api = CoreV1Api()
    console = Console()

    def refresh() -> Panel:
        try:
            sidecar_set = custom_api.get_cluster_custom_object(GROUP, VERSION, PLURAL, args.name)
            pods = current_pods(core_api, sidecar_set.get("spec") or {})
        except kubernetes.client.exceptions.ApiException as e:
            return Panel(f"[red]Error fetching data: {e.reason}[/red]", title="Error")
        except (SelectorError, ValidationError) as e:
            return Panel(f"[red]Invalid selector: {e}[/red]", title="Error")
        return render_dashboard(sidecar_set, pods)

    try:
        with Live(console=console, refresh_per_second=4, screen=True) as live:
            while True:
                live.update(refresh())
                time.sleep(args.interval)
    except KeyboardInterrupt:
        console.print("\n[yellow]Exiting...[/yellow]")
        sys.exit(0)


if __name__ == "__main__":
    main()
