"""
Command-line interface for VP Signer.

Usage:
    vp-signer derive-did 58ffea3c...6aae
    vp-signer sign-credential credential.json --account-id 0 --key-id 0
    vp-signer verify-credential credential.json
    vp-signer verify-presentation https://example.com/presentations/123
    cat presentation.json | vp-signer verify-presentation -
"""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Any

import click
import httpx
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from vp_signer.crypto import LocalCryptoProvider
from vp_signer.did import InvalidPublicKeyError, derive_did
from vp_signer.generators import VerifiablePresentationGenerator
from vp_signer.models import KeySet, ModelError, VerifiableCredential, VerifiablePresentation
from vp_signer.signers import VerifiableCredentialSigner, VerifiablePresentationSigner


console = Console()


def load_document(source: str, timeout: float = 30.0, verify_ssl: bool = True) -> dict[str, Any]:
    """Load a JSON document from file, URL, or stdin.

    Args:
        source: File path, URL, or "-" for stdin.
        timeout: HTTP request timeout in seconds.
        verify_ssl: Whether to verify SSL certificates.

    Returns:
        Parsed JSON document.
    """
    if source == "-":
        return json.loads(sys.stdin.read())

    if source.startswith("http://") or source.startswith("https://"):
        with httpx.Client(timeout=timeout, verify=verify_ssl) as client:
            response = client.get(
                source,
                headers={"Accept": "application/vc+ld+json, application/json"},
            )
            response.raise_for_status()
            return response.json()

    path = Path(source)
    if not path.exists():
        raise click.ClickException(f"File not found: {source}")

    with path.open() as f:
        return json.load(f)


def parse_key_set(value: str) -> KeySet:
    """Parse an ACCOUNT:KEY option value."""
    try:
        account_id, key_id = value.split(":")
        return KeySet(account_id=int(account_id), key_id=int(key_id))
    except ValueError as e:
        raise click.BadParameter(f"Expected ACCOUNT:KEY, got {value!r}") from e


def print_result(title: str, valid: bool, rows: list[tuple[str, str]], json_output: bool) -> None:
    """Print a verification outcome as a panel or as JSON."""
    if json_output:
        console.print_json(data={"valid": valid, **{k.lower().replace(" ", "_"): v for k, v in rows}})
        return

    table = Table(show_header=False, box=None, padding=(0, 2))
    table.add_column("Field", style="dim")
    table.add_column("Value")
    table.add_row("Status", "[bold green]VALID[/]" if valid else "[bold red]INVALID[/]")
    for field_name, value in rows:
        table.add_row(field_name, value)

    console.print(Panel(table, title=title, border_style="green" if valid else "red"))


def _provider(ctx: click.Context) -> LocalCryptoProvider:
    options = ctx.obj
    if not options["mnemonic"]:
        raise click.UsageError("A mnemonic is required (--mnemonic or VP_SIGNER_MNEMONIC)")
    return LocalCryptoProvider(options["mnemonic"], passphrase=options["passphrase"])


@click.group()
@click.option(
    "--mnemonic",
    envvar="VP_SIGNER_MNEMONIC",
    help="BIP-39 mnemonic of the local wallet",
)
@click.option(
    "--passphrase",
    envvar="VP_SIGNER_PASSPHRASE",
    default="",
    help="BIP-39 passphrase of the local wallet",
)
@click.option(
    "--timeout",
    type=float,
    default=30.0,
    help="HTTP request timeout in seconds",
)
@click.option(
    "--no-ssl-verify",
    is_flag=True,
    help="Disable SSL certificate verification",
)
@click.option("-v", "--verbose", is_flag=True, help="Enable debug logging")
@click.version_option(package_name="vp-signer")
@click.pass_context
def main(
    ctx: click.Context,
    mnemonic: str | None,
    passphrase: str,
    timeout: float,
    no_ssl_verify: bool,
    verbose: bool,
) -> None:
    """Sign and verify W3C Verifiable Credentials and Presentations."""
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format="%(message)s",
            handlers=[RichHandler(console=Console(stderr=True))],
        )
    ctx.obj = {
        "mnemonic": mnemonic,
        "passphrase": passphrase,
        "timeout": timeout,
        "verify_ssl": not no_ssl_verify,
    }


@main.command("derive-did")
@click.argument("public_key")
def derive_did_command(public_key: str) -> None:
    """Print the did:eth identifier of a hex encoded PUBLIC_KEY."""
    try:
        console.print(derive_did(public_key))
    except InvalidPublicKeyError as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(2)


@main.command("address")
@click.option("--account-id", type=int, default=0, show_default=True)
@click.option("--key-id", type=int, default=0, show_default=True)
@click.pass_context
def address_command(ctx: click.Context, account_id: int, key_id: int) -> None:
    """Show the address, public key and DID of a wallet key."""
    provider = _provider(ctx)
    public_key = provider.derive_public_key(account_id, key_id)
    print_result(
        "Wallet Key",
        True,
        [
            ("Address", provider.derive_address(account_id, key_id)),
            ("Public Key", public_key),
            ("DID", derive_did(public_key)),
        ],
        json_output=False,
    )


@main.command("sign-credential")
@click.argument("source", required=True)
@click.option("--account-id", type=int, default=0, show_default=True)
@click.option("--key-id", type=int, default=0, show_default=True)
@click.pass_context
def sign_credential_command(ctx: click.Context, source: str, account_id: int, key_id: int) -> None:
    """Sign the credential in SOURCE and print it with its signature value.

    SOURCE can be a file path, a URL or "-" to read from stdin.
    """
    options = ctx.obj
    try:
        credential = VerifiableCredential.from_dict(
            load_document(source, options["timeout"], options["verify_ssl"])
        )
        signer = VerifiableCredentialSigner(_provider(ctx))
        credential.proof.signature_value = signer.sign_verifiable_credential(
            credential, account_id, key_id
        )
    except (json.JSONDecodeError, ModelError, httpx.HTTPError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    click.echo(json.dumps(credential.to_dict(), indent=2))


@main.command("verify-credential")
@click.argument("source", required=True)
@click.option("--bind-issuer", is_flag=True, help="Require the signing key to derive the issuer DID")
@click.option("--json-output", is_flag=True, help="Output result as JSON")
@click.pass_context
def verify_credential_command(
    ctx: click.Context, source: str, bind_issuer: bool, json_output: bool
) -> None:
    """Verify the signature of the credential in SOURCE.

    SOURCE can be a file path, a URL or "-" to read from stdin.
    """
    options = ctx.obj
    try:
        credential = VerifiableCredential.from_dict(
            load_document(source, options["timeout"], options["verify_ssl"])
        )
    except (json.JSONDecodeError, ModelError, httpx.HTTPError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    signer = VerifiableCredentialSigner(LocalCryptoProvider(), bind_issuer=bind_issuer)
    valid = signer.verify_verifiable_credential(credential)

    print_result(
        "Credential Verification",
        valid,
        [
            ("Credential ID", credential.id or ""),
            ("Issuer", credential.issuer),
            ("Subject", credential.subject_id or ""),
        ],
        json_output,
    )
    sys.exit(0 if valid else 1)


@main.command("verify-presentation")
@click.argument("source", required=True)
@click.option("--skip-ownership", is_flag=True, help="Only verify the credential signatures")
@click.option("--correspondence-id", help="Required nonce of every ownership proof")
@click.option("--json-output", is_flag=True, help="Output result as JSON")
@click.pass_context
def verify_presentation_command(
    ctx: click.Context,
    source: str,
    skip_ownership: bool,
    correspondence_id: str | None,
    json_output: bool,
) -> None:
    """Verify the credentials and ownership proofs of the presentation in SOURCE."""
    options = ctx.obj
    try:
        presentation = VerifiablePresentation.from_dict(
            load_document(source, options["timeout"], options["verify_ssl"])
        )
    except (json.JSONDecodeError, ModelError, httpx.HTTPError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    provider = LocalCryptoProvider()
    signer = VerifiablePresentationSigner(provider, VerifiableCredentialSigner(provider))
    valid = signer.verify_verifiable_presentation(
        presentation,
        skip_ownership_validation=skip_ownership,
        correspondence_id=correspondence_id,
    )

    print_result(
        "Presentation Verification",
        valid,
        [
            ("Credentials", str(len(presentation.verifiable_credential))),
            ("Proofs", str(len(presentation.proof))),
            ("Ownership", "skipped" if skip_ownership else "checked"),
        ],
        json_output,
    )
    sys.exit(0 if valid else 1)


@main.command("generate-presentation")
@click.argument("source", required=True)
@click.option(
    "--key",
    "keys",
    multiple=True,
    default=("0:0",),
    show_default=True,
    help="ACCOUNT:KEY pair of the holder, can be repeated",
)
@click.option("--correspondence-id", help="Nonce binding the proofs to a session")
@click.pass_context
def generate_presentation_command(
    ctx: click.Context, source: str, keys: tuple[str, ...], correspondence_id: str | None
) -> None:
    """Attach ownership proofs to the presentation parameters in SOURCE."""
    options = ctx.obj
    key_sets = [parse_key_set(k) for k in keys]
    provider = _provider(ctx)
    generator = VerifiablePresentationGenerator(
        VerifiablePresentationSigner(provider, VerifiableCredentialSigner(provider))
    )
    try:
        presentation = generator.generate_verifiable_presentation(
            load_document(source, options["timeout"], options["verify_ssl"]),
            key_sets,
            correspondence_id,
        )
    except (json.JSONDecodeError, ModelError, httpx.HTTPError) as e:
        console.print(f"[red]Error:[/] {e}")
        sys.exit(2)

    click.echo(json.dumps(presentation.to_dict(), indent=2))


if __name__ == "__main__":
    main()
