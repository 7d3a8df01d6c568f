#!/usr/bin/env python
"""Command-line interface for kubeconfig-client.

This module provides the main CLI entry point: it locates the
kubeconfig, resolves a context (optionally chosen interactively),
runs any exec auth plugin, builds the client and optionally issues
a GET request with it.
"""

import os
import sys
from pathlib import Path

import click
import questionary
import requests
from icecream import ic

from kubeconfig_client import __version__, console
from kubeconfig_client.client import KubernetesClient, client_for
from kubeconfig_client.config import KubernetesConfig, load_config
from kubeconfig_client.exceptions import KubeconfigError
from kubeconfig_client.styles import POINTER, PROMPT_STYLE, QMARK

_REQUEST_TIMEOUT = 60


def default_kubeconfig_path() -> Path:
    """Return the kubeconfig location kubectl would use.

    The first entry of ``$KUBECONFIG`` wins; otherwise ``~/.kube/config``.
    """
    kubeconfig = os.environ.get("KUBECONFIG", "")
    first = next((entry for entry in kubeconfig.split(os.pathsep) if entry), None)
    if first is not None:
        return Path(first).expanduser()
    return Path.home() / ".kube" / "config"


def select_context(config: KubernetesConfig) -> str:
    """Prompt the user to pick one of the contexts in ``config``.

    Raises:
        click.ClickException: If the kubeconfig defines no contexts.
        click.Abort: If the user cancels the selection.

    """
    names = config.context_names()
    if not names:
        raise click.ClickException("The kubeconfig does not define any contexts")

    default = config.current_context_name if config.current_context_name in names else None
    context: str | None = questionary.select(
        "Select context to work with",
        choices=names,
        default=default,
        style=PROMPT_STYLE,
        pointer=POINTER,
        qmark=QMARK,
    ).ask()
    if context is None:
        console.warning("Context selection cancelled.")
        raise click.Abort()
    return context


def show_client(client: KubernetesClient, context_name: str) -> None:
    """Print a summary of the client that was built."""
    console.summary_panel(
        "Resolved Context",
        {
            "Context": context_name,
            "Server": client.server,
            "Namespace": client.namespace,
            "Auth": client.auth.kind.value,
        },
    )


def fetch(client: KubernetesClient, path: str) -> None:
    """GET ``path`` and print the response body on stdout.

    Raises:
        click.ClickException: If the server answers with an error status.

    """
    with console.spinner(f"GET {client.url(path)}"):
        response = client.send(client.get(path), timeout=_REQUEST_TIMEOUT)
    ic(response.status_code)

    click.echo(response.text)
    if not response.ok:
        raise click.ClickException(f"Request failed with HTTP {response.status_code}")
    console.success(f"GET {path} returned HTTP {response.status_code}")


@click.command(help="Resolve a kubeconfig context into an authenticated API client")
@click.option("--version", "-v", required=False, is_flag=True, help="print version")
@click.option("--debug", required=False, is_flag=True, help="print debug information")
@click.option(
    "--kubeconfig",
    "-k",
    required=False,
    type=click.Path(dir_okay=False, path_type=Path),
    help="kubeconfig file (default: $KUBECONFIG or ~/.kube/config)",
)
@click.option("--select", required=False, is_flag=True, default=False, help="prompt for context select")
@click.option("--get", "get_path", required=False, help="API path to GET with the resolved context")
def cli(
    version: bool,
    debug: bool,
    kubeconfig: Path | None,
    select: bool,
    get_path: str | None,
) -> None:
    """Process CLI arguments and execute the appropriate action.

    Args:
        version: Print version and exit.
        debug: Enable debug output.
        kubeconfig: Path to the kubeconfig file.
        select: Prompt for Kubernetes context selection.
        get_path: API path to request.

    """
    if debug:
        ic.enable()

    if version:
        click.echo(__version__)
        return

    path = kubeconfig if kubeconfig is not None else default_kubeconfig_path()
    ic(path)

    try:
        config = load_config(path)
        context_name = select_context(config) if select else config.current_context_name
        if context_name is not None:
            console.action(f"Working with {console.highlight(context_name)} context")

        with client_for(config, context_name) as client:
            show_client(client, str(context_name))
            if get_path:
                fetch(client, get_path)
    except KubeconfigError as e:
        console.error(str(e))
        sys.exit(1)
    except requests.RequestException as e:
        console.error(f"Request failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli()
