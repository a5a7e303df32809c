"""
ExLab Admin CLI - exlabctl
Click-based admin tool for lab lifecycle management over the ExLab API.
"""

import json
from typing import Any, Dict, Optional

import click
import requests


# ============================================
# CLI Configuration
# ============================================

class Context:
    """CLI context for global settings."""
    
    def __init__(self):
        self.api_url: str = "http://localhost:8000"
        self.output_format: str = "table"
        self.quiet: bool = False


pass_context = click.make_pass_decorator(Context, ensure=True)


def setup_api_client(ctx: Context) -> requests.Session:
    """Create API client."""
    session = requests.Session()
    session.headers.update({"Content-Type": "application/json"})
    return session


def request(ctx: Context, method: str, path: str, **kwargs: Any) -> Optional[Dict[str, Any]]:
    """Call the API; print the error and return None on failure."""
    session = setup_api_client(ctx)
    try:
        response = session.request(method, f"{ctx.api_url}/api/v1{path}", **kwargs)
        if response.status_code >= 400:
            try:
                detail = response.json().get("detail", response.text)
            except ValueError:
                detail = response.text
            click.echo(f"Error ({response.status_code}): {detail}", err=True)
            return None
        return response.json()
    except requests.RequestException as e:
        click.echo(f"Error: {e}", err=True)
        return None


def echo_lab(ctx: Context, lab: Dict[str, Any]) -> None:
    if ctx.output_format == "json":
        click.echo(json.dumps(lab, indent=2))
        return
    
    click.echo(f"Lab {lab.get('id')}  network={lab.get('network')}  dns={lab.get('dns_ip')}")
    click.echo(f"{'Exercise':<20} {'State':<12} {'IPs':<20} {'Machines'}")
    click.echo("-" * 70)
    for ex in lab.get("exercises", []):
        click.echo(
            f"{ex.get('tag', ''):<20} "
            f"{ex.get('state', ''):<12} "
            f"{','.join(str(ip) for ip in ex.get('ips', [])):<20} "
            f"{len(ex.get('machines', []))}"
        )
    records = lab.get("dns_records", [])
    if records:
        click.echo("\nDNS records:")
        for record in records:
            click.echo(f"  {record}")


# ============================================
# Base Commands
# ============================================

@click.group()
@click.option(
    "--api-url",
    default="http://localhost:8000",
    help="API URL for the ExLab server",
    envvar="EXLAB_API_URL",
)
@click.option(
    "--output",
    type=click.Choice(["table", "json"]),
    default="table",
    help="Output format",
)
@click.option(
    "--quiet",
    is_flag=True,
    help="Suppress output except errors",
)
@click.pass_context
def cli(
    ctx: click.Context,
    api_url: str,
    output: str,
    quiet: bool,
):
    """ExLab Admin CLI"""
    ctx.ensure_object(Context)
    ctx.obj.api_url = api_url
    ctx.obj.output_format = output
    ctx.obj.quiet = quiet


# ============================================
# Exercise Commands
# ============================================

@cli.group()
def exercise():
    """Exercise catalog commands"""
    pass


@exercise.command("list")
@click.option("--category", help="Filter by category")
@pass_context
def exercise_list(ctx: Context, category: Optional[str]):
    """List registered exercises"""
    params = {"category": category} if category else None
    exercises = request(ctx, "GET", "/exercises", params=params)
    if exercises is None:
        return
    
    if ctx.output_format == "json":
        click.echo(json.dumps(exercises, indent=2))
    else:
        click.echo(f"{'Tag':<20} {'Name':<30} {'Category':<15} {'Containers':<11} {'VMs'}")
        click.echo("-" * 85)
        for ex in exercises:
            click.echo(
                f"{ex.get('tag', ''):<20} "
                f"{ex.get('name', ''):<30} "
                f"{ex.get('category', ''):<15} "
                f"{ex.get('containers', 0):<11} "
                f"{ex.get('vms', 0)}"
            )


@exercise.command("categories")
@pass_context
def exercise_categories(ctx: Context):
    """List exercise categories"""
    categories = request(ctx, "GET", "/exercises/categories")
    if categories is None:
        return
    
    if ctx.output_format == "json":
        click.echo(json.dumps(categories, indent=2))
    else:
        for category in categories:
            click.echo(f"{category.get('tag', ''):<20} {category.get('name', '')}")


# ============================================
# Lab Commands
# ============================================

@cli.group()
def lab():
    """Lab lifecycle commands"""
    pass


@lab.command("list")
@pass_context
def lab_list(ctx: Context):
    """List labs"""
    result = request(ctx, "GET", "/labs")
    if result is None:
        return
    
    if ctx.output_format == "json":
        click.echo(json.dumps(result, indent=2))
    else:
        click.echo(f"{'ID':<10} {'Network':<20} {'Exercises'}")
        click.echo("-" * 60)
        for item in result.get("labs", []):
            tags = ",".join(ex.get("tag", "") for ex in item.get("exercises", []))
            click.echo(f"{item.get('id', ''):<10} {item.get('network', ''):<20} {tags}")


@lab.command("create")
@click.argument("tags", nargs=-1, required=True)
@pass_context
def lab_create(ctx: Context, tags: tuple):
    """Create and start a lab with the given exercise tags"""
    result = request(ctx, "POST", "/labs", json={"tags": list(tags)})
    if result is not None and not ctx.quiet:
        echo_lab(ctx, result)


@lab.command("show")
@click.argument("lab_id")
@pass_context
def lab_show(ctx: Context, lab_id: str):
    """Show lab state, addresses and DNS records"""
    result = request(ctx, "GET", f"/labs/{lab_id}")
    if result is not None:
        echo_lab(ctx, result)


@lab.command("start")
@click.argument("lab_id")
@pass_context
def lab_start(ctx: Context, lab_id: str):
    """Start all exercises of a lab"""
    result = request(ctx, "POST", f"/labs/{lab_id}/start")
    if result is not None and not ctx.quiet:
        echo_lab(ctx, result)


@lab.command("stop")
@click.argument("lab_id")
@pass_context
def lab_stop(ctx: Context, lab_id: str):
    """Stop all exercises of a lab"""
    result = request(ctx, "POST", f"/labs/{lab_id}/stop")
    if result is not None and not ctx.quiet:
        echo_lab(ctx, result)


@lab.command("restart")
@click.argument("lab_id")
@pass_context
def lab_restart(ctx: Context, lab_id: str):
    """Restart all exercises of a lab"""
    result = request(ctx, "POST", f"/labs/{lab_id}/restart")
    if result is not None and not ctx.quiet:
        echo_lab(ctx, result)


@lab.command("add")
@click.argument("lab_id")
@click.argument("tags", nargs=-1, required=True)
@pass_context
def lab_add(ctx: Context, lab_id: str, tags: tuple):
    """Add exercises to a running lab"""
    result = request(ctx, "POST", f"/labs/{lab_id}/exercises", json={"tags": list(tags)})
    if result is not None and not ctx.quiet:
        echo_lab(ctx, result)


@lab.command("reset")
@click.argument("lab_id")
@click.argument("tag")
@pass_context
def lab_reset(ctx: Context, lab_id: str, tag: str):
    """Rebuild one exercise of a lab (addresses are kept)"""
    result = request(ctx, "POST", f"/labs/{lab_id}/exercises/{tag}/reset")
    if result is not None and not ctx.quiet:
        echo_lab(ctx, result)


@lab.command("close")
@click.argument("lab_id")
@click.option("--force", is_flag=True, help="Skip confirmation")
@pass_context
def lab_close(ctx: Context, lab_id: str, force: bool):
    """Close a lab and remove its network"""
    if not force:
        if not click.confirm(f"Close lab {lab_id}?"):
            return
    
    result = request(ctx, "DELETE", f"/labs/{lab_id}")
    if result is not None and not ctx.quiet:
        click.echo(result.get("message", f"Lab {lab_id} closed"))


# ============================================
# Main Entry Point
# ============================================

if __name__ == "__main__":
    cli()
