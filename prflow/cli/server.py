"""Server command."""

import click

from prflow.cli.common import console
from prflow.config import Config


@click.command()
@click.option("--host", default="127.0.0.1", show_default=True, help="Host to bind to")
@click.option("--port", default=8080, show_default=True, type=int, help="Port to bind to")
@click.pass_obj
def serve(config: Config, host: str, port: int) -> None:
    """Serve the PR API over HTTP."""
    from prflow.web.app import run_server

    console.print(f"[green]Serving prflow API on http://{host}:{port}[/green]")
    run_server(host=host, port=port, config=config)
