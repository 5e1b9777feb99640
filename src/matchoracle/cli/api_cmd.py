"""API server command."""

import typer

from matchoracle.api.main import run_api

app = typer.Typer(help="Start the read API for market and thread views")


@app.callback(invoke_without_command=True)
def api(
    ctx: typer.Context,
    host: str = typer.Option("127.0.0.1", "--host", help="Bind host"),
    port: int = typer.Option(8000, "--port", "-p", help="Bind port"),
    with_oracle: bool = typer.Option(
        False, "--with-oracle", help="Run the resolution loop in the same process",
    ),
    profile: str | None = typer.Option(None, "--profile", help="Config profile (e.g. dev)"),
    embed_parent: str = typer.Option(
        "localhost", "--embed-parent", help="Parent domain passed to Twitch embed URLs",
    ),
) -> None:
    if ctx.invoked_subcommand is not None:
        return
    run_api(host=host, port=port, with_oracle=with_oracle, profile=profile, embed_parent=embed_parent)


if __name__ == "__main__":
    app()
