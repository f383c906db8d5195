#!/usr/bin/env python3
"""
CLI tool for the AWS resource provider.
Applies desired-state documents and inspects managed resources through the
HTTP API.
"""

import json
import os

import click
import requests
import yaml
from tabulate import tabulate

API_BASE_URL = os.getenv("AWSPROV_API_URL", "http://localhost:8000/api/v1")


class ProviderCLI:
    """CLI client for the provider HTTP API"""

    def __init__(self, base_url: str = API_BASE_URL):
        self.base_url = base_url.rstrip("/")

    def _make_request(self, method: str, endpoint: str, **kwargs):
        """Make HTTP request to the API"""
        url = f"{self.base_url}{endpoint}"
        try:
            response = requests.request(method, url, timeout=300, **kwargs)
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()
        except requests.exceptions.RequestException as e:
            click.echo(f"Error: {e}", err=True)
            if getattr(e, "response", None) is not None:
                try:
                    error_detail = e.response.json()
                    click.echo(f"Detail: {error_detail.get('detail', error_detail)}", err=True)
                except ValueError:
                    click.echo(f"Response: {e.response.text}", err=True)
            return None


def load_document(filename: str):
    """Read a YAML or JSON document"""
    with open(filename, "r") as f:
        if filename.endswith(".yaml") or filename.endswith(".yml"):
            return yaml.safe_load(f)
        return json.load(f)


def echo_result(result, output: str):
    if output == "yaml":
        click.echo(yaml.safe_dump(result, default_flow_style=False, sort_keys=False))
    else:
        click.echo(json.dumps(result, indent=2, default=str))


@click.group()
@click.option(
    "--api-url",
    envvar="AWSPROV_API_URL",
    default=API_BASE_URL,
    show_default=True,
    help="Base URL of the provider API",
)
@click.pass_context
def cli(ctx, api_url):
    """awsprovctl - manage AWS resources through the provider API"""
    ctx.obj = ProviderCLI(api_url)


@cli.command()
@click.pass_obj
def types(client):
    """List resource types"""
    result = client._make_request("GET", "/resource-types")
    if result is None:
        raise click.exceptions.Exit(1)

    rows = [
        [t["name"], t["version"], ", ".join(t.get("requires_replace", [])) or "-"]
        for t in result
    ]
    click.echo(
        tabulate(rows, headers=["Type", "Version", "Replace On"], tablefmt="simple")
    )


@cli.command()
@click.argument("filename", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="json")
@click.pass_obj
def apply(client, filename, output):
    """Create a resource from a YAML/JSON document with 'type' and 'spec'"""
    data = load_document(filename)
    if not isinstance(data, dict) or "type" not in data or "spec" not in data:
        raise click.BadParameter(
            "document must contain 'type' and 'spec'", param_hint="FILENAME"
        )

    result = client._make_request(
        "POST", f"/resources/{data['type']}", json={"spec": data["spec"]}
    )
    if result is None:
        raise click.exceptions.Exit(1)

    click.echo(f"Created {result['resource_type']} {result['resource_id']}")
    echo_result(result["state"], output)


@cli.command(name="list")
@click.argument("resource_type", required=False)
@click.pass_obj
def list_resources(client, resource_type):
    """List managed resources"""
    endpoint = f"/resources/{resource_type}" if resource_type else "/resources"
    result = client._make_request("GET", endpoint)
    if result is None:
        raise click.exceptions.Exit(1)

    rows = [[r["resource_type"], r["resource_id"], r.get("updated_at")] for r in result]
    click.echo(tabulate(rows, headers=["Type", "ID", "Updated"], tablefmt="simple"))


@cli.command()
@click.argument("resource_type")
@click.argument("resource_id")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="json")
@click.option(
    "--no-refresh", is_flag=True, help="Show stored state without reading AWS"
)
@click.pass_obj
def get(client, resource_type, resource_id, output, no_refresh):
    """Read a managed resource"""
    result = client._make_request(
        "GET",
        f"/resources/{resource_type}/{resource_id}",
        params={"refresh": str(not no_refresh).lower()},
    )
    if result is None:
        raise click.exceptions.Exit(1)

    echo_result(result["state"], output)


@cli.command()
@click.argument("resource_type")
@click.argument("resource_id")
@click.argument("filename", type=click.Path(exists=True))
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="json")
@click.pass_obj
def update(client, resource_type, resource_id, filename, output):
    """Update a resource from a YAML/JSON document"""
    data = load_document(filename)
    spec = data.get("spec", data) if isinstance(data, dict) else data

    result = client._make_request(
        "PUT", f"/resources/{resource_type}/{resource_id}", json={"spec": spec}
    )
    if result is None:
        raise click.exceptions.Exit(1)

    click.echo(f"Updated {result['resource_type']} {result['resource_id']}")
    echo_result(result["state"], output)


@cli.command()
@click.argument("resource_type")
@click.argument("resource_id")
@click.confirmation_option(prompt="Are you sure you want to delete this resource?")
@click.pass_obj
def delete(client, resource_type, resource_id):
    """Delete a managed resource"""
    result = client._make_request("DELETE", f"/resources/{resource_type}/{resource_id}")
    if result is None:
        raise click.exceptions.Exit(1)

    click.echo(f"Deleted {resource_type} {resource_id}")


@cli.command(name="import")
@click.argument("resource_type")
@click.argument("resource_id")
@click.option("--output", "-o", type=click.Choice(["json", "yaml"]), default="json")
@click.pass_obj
def import_resource(client, resource_type, resource_id, output):
    """Bring an existing AWS object under management"""
    result = client._make_request(
        "POST", f"/resources/{resource_type}/import", json={"id": resource_id}
    )
    if result is None:
        raise click.exceptions.Exit(1)

    click.echo(f"Imported {result['resource_type']} {result['resource_id']}")
    echo_result(result["state"], output)


@cli.command()
@click.argument("resource_type")
@click.argument("resource_id")
@click.option("--limit", "-l", default=10, help="Number of history entries to show")
@click.pass_obj
def history(client, resource_type, resource_id, limit):
    """Show operation history for a resource"""
    result = client._make_request(
        "GET", f"/history/{resource_type}/{resource_id}", params={"limit": limit}
    )
    if result is None:
        raise click.exceptions.Exit(1)

    headers = ["ID", "Operation", "Success", "Drift", "Duration (s)", "Error", "Time"]
    rows = []
    for entry in result:
        duration = entry.get("duration_seconds")
        rows.append(
            [
                entry["id"],
                entry["operation"],
                "✓" if entry["success"] else "✗",
                "yes" if entry.get("drift_detected") else "",
                f"{duration:.2f}" if duration is not None else "-",
                entry.get("error_message") or "",
                entry["operation_time"],
            ]
        )

    click.echo(tabulate(rows, headers=headers, tablefmt="grid"))


if __name__ == "__main__":
    cli()
