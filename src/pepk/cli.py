"""Command line interface for PEPK."""

from __future__ import annotations

import getpass
import logging
from importlib.metadata import PackageNotFoundError, version
from pathlib import Path
from typing import Callable

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.markup import escape

from pepk import __version__
from pepk.errors import (
    EncryptionError,
    InputFormatError,
    KeyFormatError,
    KeyRetrievalError,
    OutputAlreadyExistsError,
    SigningError,
    UnsupportedAlgorithmError,
)
from pepk.export import EncryptionMode, ExportPipeline, ExportRequest
from pepk.keystore import KeystoreKey

EXIT_SUCCESS = 0
EXIT_USAGE = 1
EXIT_CRYPTO = 2
EXIT_FS = 3
EXIT_KEYSTORE = 4

console = Console()


def _package_version() -> str:
    try:
        return version("pepk")
    except PackageNotFoundError:
        return __version__


def _configure_logging(verbose: bool) -> None:
    if not verbose:
        return
    logging.basicConfig(
        level=logging.DEBUG,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True,
    )


def _prompt_password(password_opt: str | None, prompt: str) -> str:
    if password_opt is not None:
        return password_opt
    return getpass.getpass(prompt)


def _handle_action(action: Callable[[], None]) -> int:
    try:
        action()
    except KeyRetrievalError as exc:
        console.print(f"[red]Unable to load key:[/red] {escape(str(exc))}")
        return EXIT_KEYSTORE
    except (KeyFormatError, InputFormatError) as exc:
        console.print(f"[red]Invalid key material:[/red] {escape(str(exc))}")
        return EXIT_USAGE
    except UnsupportedAlgorithmError as exc:
        console.print(f"[red]Unsupported signing key:[/red] {escape(str(exc))}")
        return EXIT_CRYPTO
    except (EncryptionError, SigningError) as exc:
        console.print(f"[red]Cryptographic failure:[/red] {escape(str(exc))}")
        return EXIT_CRYPTO
    except OutputAlreadyExistsError as exc:
        console.print(f"[red]{escape(str(exc))}. Choose a new --output path.[/red]")
        return EXIT_FS
    except FileNotFoundError as exc:
        console.print(f"[red]File not found:[/red] {escape(str(exc))}")
        return EXIT_FS
    except PermissionError as exc:
        console.print(f"[red]Permission denied:[/red] {escape(str(exc))}")
        return EXIT_FS
    except OSError as exc:  # noqa: BLE001
        console.print(f"[red]Filesystem error:[/red] {escape(str(exc))}")
        return EXIT_FS
    except Exception as exc:  # noqa: BLE001
        console.print(f"[red]Unexpected error:[/red] {escape(str(exc))}")
        return EXIT_USAGE
    return EXIT_SUCCESS


@click.group(
    context_settings={"help_option_names": ["-h", "--help"]},
    invoke_without_command=False,
)
@click.version_option(version=_package_version(), prog_name="PEPK")
def cli() -> None:
    """Export a keystore private key encrypted for secure transfer."""


@cli.command(
    help="Extract a private key from a keystore and encrypt it for transfer.",
    epilog=(
        "Examples:\n"
        "  pepk export --keystore app.p12 --alias upload --output key.enc "
        "--encryptionkey 04ab...\n"
        "  pepk export --keystore app.p12 --alias upload --output key.zip "
        "--rsa-aes-encryption --encryption-key-path wrap.pem "
        "--signing-keystore sign.p12 --signing-key-alias signer"
    ),
)
@click.option("--keystore", "keystore", required=True, type=click.Path(path_type=Path), help="Keystore holding the key to export.")
@click.option("--alias", required=True, help="Alias of the key to export.")
@click.option("--output", "output", required=True, type=click.Path(path_type=Path), help="Destination file (must not exist).")
@click.option(
    "--rsa-aes-encryption/--hybrid-encryption",
    "rsa_aes",
    default=False,
    help="Use RSA-OAEP + AES key wrap instead of hybrid EC encryption.",
)
@click.option(
    "--encryption-key-path",
    type=click.Path(path_type=Path),
    help="RSA public key (PEM or DER) for --rsa-aes-encryption.",
)
@click.option("--encryptionkey", "encryption_key_hex", help="Hex encoded recipient key for hybrid encryption.")
@click.option("--signing-keystore", type=click.Path(path_type=Path), help="Keystore holding the signing key.")
@click.option("--signing-key-alias", help="Alias of the key used to sign the encrypted key.")
@click.option("--keystore-pass", envvar="PEPK_KEYSTORE_PASS", help="Keystore password (prompts if omitted).")
@click.option("--key-pass", envvar="PEPK_KEY_PASS", help="Key password (defaults to the keystore password).")
@click.option("--signing-keystore-pass", envvar="PEPK_SIGNING_KEYSTORE_PASS", help="Signing keystore password.")
@click.option("--signing-key-pass", envvar="PEPK_SIGNING_KEY_PASS", help="Signing key password.")
@click.option(
    "--include-cert/--no-include-cert",
    default=False,
    help="Include the certificate even without a signing key.",
)
@click.option("--verbose/--quiet", "verbose", default=False, help="Log each export step.")
@click.pass_context
def export(
    ctx: click.Context,
    keystore: Path,
    alias: str,
    output: Path,
    rsa_aes: bool,
    encryption_key_path: Path | None,
    encryption_key_hex: str | None,
    signing_keystore: Path | None,
    signing_key_alias: str | None,
    keystore_pass: str | None,
    key_pass: str | None,
    signing_keystore_pass: str | None,
    signing_key_pass: str | None,
    include_cert: bool,
    verbose: bool,
) -> None:
    _configure_logging(verbose)

    if rsa_aes and encryption_key_path is None:
        console.print("[red]--encryption-key-path must be specified with --rsa-aes-encryption.[/red]")
        ctx.exit(EXIT_USAGE)
        return
    if not rsa_aes and encryption_key_hex is None:
        console.print("[red]--encryptionkey must be specified.[/red]")
        ctx.exit(EXIT_USAGE)
        return
    if signing_key_alias is not None and signing_keystore is None:
        console.print("[red]--signing-keystore must be specified with --signing-key-alias.[/red]")
        ctx.exit(EXIT_USAGE)
        return
    if signing_keystore is not None and signing_key_alias is None:
        console.print("[red]--signing-key-alias must be specified with --signing-keystore.[/red]")
        ctx.exit(EXIT_USAGE)
        return
    if include_cert and signing_key_alias is not None:
        console.print("[red]--include-cert cannot be combined with a signing key; signed exports always include the certificate.[/red]")
        ctx.exit(EXIT_USAGE)
        return

    if keystore_pass is None and key_pass is None:
        keystore_pass = _prompt_password(None, "Keystore password: ")
    key_to_export = KeystoreKey(keystore, alias, keystore_pass, key_pass)

    signing_key = None
    if signing_key_alias is not None:
        if signing_keystore_pass is None and signing_key_pass is None:
            signing_keystore_pass = _prompt_password(None, "Signing keystore password: ")
        signing_key = KeystoreKey(signing_keystore, signing_key_alias, signing_keystore_pass, signing_key_pass)

    def _run() -> None:
        if rsa_aes:
            mode = EncryptionMode.RSA_AES_KEY_WRAP
            encryption_key: bytes | str = encryption_key_path.read_bytes()
        else:
            mode = EncryptionMode.HYBRID_EC
            encryption_key = encryption_key_hex
        request = ExportRequest(
            key_to_export=key_to_export,
            mode=mode,
            encryption_key=encryption_key,
            output=output,
            signing_key=signing_key,
            include_certificate=include_cert,
        )
        result = ExportPipeline().run(request)
        kind = "archive" if result.is_archive else "encrypted key"
        console.print(f"[green]Wrote {kind} to[/green] {escape(str(result.output))}.")

    ctx.exit(_handle_action(_run))


def main(argv: list[str] | None = None) -> int:
    try:
        return cli.main(args=argv, prog_name="pepk", standalone_mode=False)
    except SystemExit as exc:  # noqa: TRY003
        code = exc.code if isinstance(exc.code, int) else EXIT_USAGE
        return code
    except click.ClickException as exc:
        exc.show()
        return EXIT_USAGE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
