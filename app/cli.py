"""Attestation gateway command line.

Commands:
    attestation-gateway issue --subject S --scope C --days N   Issue a credential locally
    attestation-gateway serve --host H --port P                Run the HTTP gateway
"""

from typing import Optional

import typer

from app.core.config import DEFAULT_DAYS_VALID, DEFAULT_SCOPE, DEFAULT_SUBJECT, JWT_SIGNING_KEY_FILE

EXIT_ISSUE_FAILURE = 1
EXIT_KEY_ERROR = 2

app = typer.Typer(
    name="attestation-gateway",
    help="Attestation verification gateway.",
    no_args_is_help=True,
)


@app.command("issue")
def issue_cmd(
    subject: str = typer.Option(
        DEFAULT_SUBJECT,
        "--subject",
        help="Credential subject (e.g. customer name)",
    ),
    scope: str = typer.Option(
        DEFAULT_SCOPE,
        "--scope",
        help="Comma-separated scopes (verify, admin)",
    ),
    days: int = typer.Option(
        DEFAULT_DAYS_VALID,
        "--days",
        help="Validity in days (capped by GATEWAY_MAX_DAYS_VALID)",
    ),
    key_file: Optional[str] = typer.Option(
        None,
        "--key-file",
        help="PEM Ed25519 private key (defaults to JWT_SIGNING_KEY_FILE)",
    ),
) -> None:
    """Issue a signed credential with the gateway key and print it.

    Examples:
        attestation-gateway issue --subject acme-corp --scope verify --days 90
        attestation-gateway issue --subject ops --scope verify,admin
    """
    from app.auth import CredentialIssuer, IssuanceError, KeyMaterialError, load_key_material
    from app.auth.credential import validity_from_days

    try:
        key_material = load_key_material(key_file or JWT_SIGNING_KEY_FILE)
    except KeyMaterialError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=EXIT_KEY_ERROR)

    try:
        signed = CredentialIssuer(key_material).issue(subject, scope, validity_from_days(days))
    except IssuanceError as e:
        typer.echo(f"Error: {e.message}", err=True)
        raise typer.Exit(code=EXIT_ISSUE_FAILURE)

    credential = signed.credential
    typer.echo(f"Subject: {credential.subject}")
    typer.echo(f"Scope:   {credential.scope}")
    typer.echo(f"Expires: {credential.expires_at.strftime('%Y-%m-%dT%H:%M:%SZ')}")
    typer.echo(f"Token:   {signed.token}")


@app.command("serve")
def serve_cmd(
    host: str = typer.Option("0.0.0.0", "--host", help="Bind address"),
    port: int = typer.Option(8080, "--port", help="Listen port"),
) -> None:
    """Run the gateway with uvicorn."""
    import uvicorn

    uvicorn.run("app.main:app", host=host, port=port)


def main() -> None:
    app()


if __name__ == "__main__":
    main()
