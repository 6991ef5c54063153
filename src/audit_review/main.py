"""CLI entrypoint for audit-review."""

from __future__ import annotations

import typer
import uvicorn

app = typer.Typer(name="audit-review", help="Review comment reconciliation dashboard", invoke_without_command=True)


@app.callback(invoke_without_command=True)
def start(
    port: int | None = typer.Option(None, help="Server port (defaults to $PORT or 3000)"),
    host: str = typer.Option("0.0.0.0", help="Bind address"),
) -> None:
    """Start the Audit Review server."""
    from audit_review.config import load_settings
    from audit_review.server import create_app

    settings = load_settings()
    if port is not None:
        settings.port = port
    if not settings.github_token:
        typer.echo("Warning: GITHUB_TOKEN is not set; GitHub requests will be unauthenticated", err=True)

    fastapi_app = create_app(settings)

    typer.echo(f"Starting Audit Review on http://localhost:{settings.port}")

    log_config = uvicorn.config.LOGGING_CONFIG
    log_config["formatters"]["default"]["fmt"] = "%(asctime)s %(levelprefix)s %(message)s"
    log_config["formatters"]["default"]["datefmt"] = "%Y-%m-%d %H:%M:%S"
    log_config["formatters"]["access"]["fmt"] = '%(asctime)s %(levelprefix)s %(client_addr)s - "%(request_line)s" %(status_code)s'
    log_config["formatters"]["access"]["datefmt"] = "%Y-%m-%d %H:%M:%S"
    log_config["loggers"]["audit_review"] = {"handlers": ["default"], "level": "INFO", "propagate": False}

    uvicorn.run(
        fastapi_app,
        host=host,
        port=settings.port,
        log_level="info",
        log_config=log_config,
    )


if __name__ == "__main__":
    app()
