"""selfsigned-installer CLI - Create a self-signed certificate and install it."""

import logging
import sys
from dataclasses import fields

import click
import questionary
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.progress import Progress, SpinnerColumn, TextColumn

from . import __version__
from .config import CONFIG_DIR, Settings, load_settings, update_settings
from .errors import CertificateError
from .installer import CommandInstaller, InstallStatus, StoreName
from .keys import KEY_SIZES
from .pipeline import generate_and_install
from .request import CertificateRequest
from .signer import DIGESTS

console = Console()
logger = logging.getLogger(__name__)

custom_style = questionary.Style([
    ('qmark', 'fg:cyan bold'),
    ('question', 'bold'),
    ('answer', 'fg:cyan bold'),
    ('pointer', 'fg:cyan bold'),
    ('highlighted', 'fg:cyan bold'),
    ('selected', 'fg:cyan'),
])


def report_error(exc: BaseException, context: dict):
    """Forward unexpected failures to the log with their traceback."""
    logger.error(f"Unexpected failure ({context}): {exc}", exc_info=exc)


@click.group()
@click.version_option(version=__version__, prog_name="selfsigned-installer")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose):
    """selfsigned-installer - Generate self-signed certificates and install them."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(asctime)s %(name)s %(levelname)s %(message)s",
    )


@main.command()
@click.argument("names")
@click.option("--friendly-name", "-n", default=None, help="Display name in the certificate store")
@click.option("--key-size", "-k", type=click.Choice([str(s) for s in KEY_SIZES]), default=None, help="RSA key length")
@click.option("--digest", "-d", type=click.Choice(list(DIGESTS), case_sensitive=False), default=None, help="Signature hash")
@click.option("--store", "-s", type=click.Choice([s.value for s in StoreName]), default=None, help="Target store")
@click.option("--days", type=click.IntRange(min=1), default=None, help="Validity period in days")
@click.option("--no-san", is_flag=True, help="Do not emit the Subject Alternative Name extension")
@click.option("--password", "-p", default=None, help="Container password (random if omitted)")
@click.option("--yes", "-y", is_flag=True, help="Install without asking for confirmation")
def create(names, friendly_name, key_size, digest, store, days, no_san, password, yes):
    """Create a certificate for comma-separated DNS NAMES and install it."""
    settings = load_settings()

    if friendly_name is None:
        friendly_name = questionary.text(
            "Friendly name:",
            default=names.split(",")[0].strip(),
            style=custom_style
        ).ask()
        if friendly_name is None:
            return

    try:
        request = CertificateRequest.from_input(
            names,
            friendly_name=friendly_name,
            key_size=int(key_size or settings.key_size),
            digest=digest or settings.digest,
            validity_days=days if days is not None else settings.validity_days,
            include_san=not no_san,
            store=store or settings.store,
        )
    except CertificateError as e:
        console.print(f"[red]✗[/red] {e}")
        sys.exit(1)

    console.print()
    console.print(Panel(
        f"[bold cyan]{request.subject}[/bold cyan]\n\n"
        f"DNS names: {', '.join(request.dns_names)}\n"
        f"Key: RSA {request.key_size} / {request.digest}\n"
        f"Valid: {request.not_before:%Y-%m-%d} to {request.not_after:%Y-%m-%d}\n"
        f"Store: {request.store.display_name} ({request.store.value})",
        border_style="cyan"
    ))

    if not yes:
        proceed = questionary.confirm(
            f"Install '{request.friendly_name}' into the {request.store.display_name} store?",
            default=True,
            style=custom_style
        ).ask()
        if not proceed:
            console.print("[dim]Cancelled.[/dim]")
            return

    installer = CommandInstaller(
        settings.installer,
        elevate=settings.elevate,
        timeout=settings.installer_timeout,
    )

    try:
        with Progress(SpinnerColumn(), TextColumn("{task.description}"), console=console) as progress:
            task = progress.add_task("Generating certificate...", total=None)
            outcome = generate_and_install(
                request,
                installer,
                password=password,
                report_error=report_error,
                callback=lambda msg: progress.update(task, description=msg),
            )
    except CertificateError as e:
        console.print(f"[red]✗[/red] Certificate generation error: {e}")
        sys.exit(1)

    if outcome.status is InstallStatus.INSTALLED:
        console.print(f"[green]✓[/green] Installed '{request.friendly_name}' into {request.store.display_name}")
    elif outcome.status is InstallStatus.CANCELLED:
        console.print("[dim]Elevation cancelled, nothing was installed.[/dim]")
    elif outcome.status is InstallStatus.FAILED:
        console.print(f"[red]✗[/red] Installer failed with exit code {outcome.exit_code}")
        sys.exit(1)
    else:
        console.print(f"[red]✗[/red] Could not start installer: {outcome.message}")
        sys.exit(1)


@main.command()
def stores():
    """List target certificate stores."""
    console.print("\n[bold]Certificate Stores:[/bold]\n")
    for store in StoreName:
        console.print(f"  {store.value:<12} {store.display_name}")
    console.print()


@main.command()
@click.option("--set", "assignments", multiple=True, metavar="KEY=VALUE", help="Save a setting to config.yaml")
def config(assignments):
    """Show effective settings, or save them with --set."""
    if assignments:
        known = {f.name for f in fields(Settings)}
        values = {}
        for item in assignments:
            key, sep, value = item.partition("=")
            key = key.strip().replace("-", "_")
            if not sep or key not in known:
                raise click.BadParameter(
                    f"expected KEY=VALUE with KEY one of {', '.join(sorted(known))}, got '{item}'",
                    param_hint="--set",
                )
            values[key] = yaml.safe_load(value) if value.strip() else None
        path = update_settings(values)
        console.print(f"[green]✓[/green] Saved {', '.join(values)} to {path}")
        return

    settings = load_settings()
    console.print(f"\n[bold]Config Directory:[/bold] {CONFIG_DIR}\n")
    console.print(yaml.dump(vars(settings), default_flow_style=False))


if __name__ == "__main__":
    main()
