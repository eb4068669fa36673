"""Wallet, address book and settings command groups."""

import json
from contextlib import contextmanager
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from utils import DEFAULT_SETTINGS, get_settings_path, get_wallet_file_path, load_settings, save_settings
from wallet import (
    AddressBook,
    CONFLICT_CHOICES,
    KeystoreError,
    PasswordPolicy,
    StoreGateway,
    ValidationError,
    WalletManager,
)
from .prompts import TerminalPrompter

console = Console()

app = typer.Typer(help="Encrypted multi-wallet key store for Rootstock", no_args_is_help=True)
wallet_app = typer.Typer(help="Wallet: create, import, list, switch, rename, delete, backup, restore",
                         no_args_is_help=True)
addressbook_app = typer.Typer(help="Address book: labelled reference addresses", no_args_is_help=True)
config_app = typer.Typer(help="Settings: show and change", no_args_is_help=True)
app.add_typer(wallet_app, name="wallet")
app.add_typer(addressbook_app, name="addressbook")
app.add_typer(config_app, name="config")


@contextmanager
def handle_errors():
    """Print keystore errors in red and exit 1."""
    try:
        yield
    except KeystoreError as e:
        console.print(f"[red]✗ {e}[/red]")
        if isinstance(e, ValidationError):
            for reason in e.reasons:
                console.print(f"[red]  - {reason}[/red]")
        raise typer.Exit(code=1)


def _components():
    settings = load_settings()
    gateway = StoreGateway(get_wallet_file_path())
    store = gateway.load()
    policy = PasswordPolicy(min_score=int(settings["min_password_score"]))
    prompter = TerminalPrompter(console)
    manager = WalletManager(gateway, policy=policy, prompter=prompter, store=store,
                            backup_filename=settings["backup_filename"])
    book = AddressBook(gateway, store=store, policy=policy, prompter=prompter)
    return manager, book


def _manager() -> WalletManager:
    return _components()[0]


def _address_book() -> AddressBook:
    return _components()[1]


# ============================================
# wallet
# ============================================

@wallet_app.command("create")
def wallet_create(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Wallet name"),
    switch: Optional[bool] = typer.Option(None, "--switch/--no-switch", help="Make it the current wallet"),
) -> None:
    """Generate a new wallet and store its key encrypted."""
    with handle_errors():
        info = _manager().create_wallet(name=name, switch=switch)
    console.print(f"[green]✓[/green] Wallet '{info.name}' created")
    console.print(f"Address: [cyan]{info.address}[/cyan]")
    if info.is_current:
        console.print("[dim]Set as current wallet[/dim]")


@wallet_app.command("import")
def wallet_import(
    name: Optional[str] = typer.Option(None, "--name", "-n", help="Wallet name"),
    switch: Optional[bool] = typer.Option(None, "--switch/--no-switch", help="Make it the current wallet"),
) -> None:
    """Import an existing private key."""
    private_key = typer.prompt("Enter the private key", hide_input=True)
    with handle_errors():
        info = _manager().import_wallet(private_key, name=name, switch=switch)
    console.print(f"[green]✓[/green] Wallet '{info.name}' imported")
    console.print(f"Address: [cyan]{info.address}[/cyan]")


@wallet_app.command("list")
def wallet_list(
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """List saved wallets."""
    with handle_errors():
        wallets = _manager().list_wallets()

    if as_json:
        typer.echo(json.dumps([w.to_dict() for w in wallets], indent=2))
        return

    table = Table(title="Wallets")
    table.add_column("Name")
    table.add_column("Address", style="cyan")
    table.add_column("Current")
    for w in wallets:
        table.add_row(w.name, w.address, "[green]yes[/green]" if w.is_current else "")
    console.print(table)


@wallet_app.command("current")
def wallet_current() -> None:
    """Show the current wallet."""
    with handle_errors():
        info = _manager().wallet_info()
    console.print(f"{info['name']}: [cyan]{info['address']}[/cyan]")


@wallet_app.command("address")
def wallet_address(
    name: Optional[str] = typer.Argument(None, help="Wallet name (default: current)"),
) -> None:
    """Print a wallet's public address."""
    with handle_errors():
        address = _manager().get_address(name)
    typer.echo(address)


@wallet_app.command("switch")
def wallet_switch(
    name: Optional[str] = typer.Argument(None, help="Wallet to make current"),
) -> None:
    """Change the current wallet."""
    with handle_errors():
        name = _manager().switch_wallet(name)
    console.print(f"[green]✓[/green] Current wallet is now '{name}'")


@wallet_app.command("rename")
def wallet_rename(
    old: str = typer.Argument(..., help="Current name"),
    new: str = typer.Argument(..., help="New name"),
) -> None:
    """Rename a wallet."""
    with handle_errors():
        new = _manager().rename_wallet(old, new)
    console.print(f"[green]✓[/green] Renamed '{old}' to '{new}'")


@wallet_app.command("delete")
def wallet_delete(
    name: str = typer.Argument(..., help="Wallet to delete"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete a wallet that is not the current one."""
    with handle_errors():
        deleted = _manager().delete_wallet(name, confirmed=True if yes else None)
    if deleted:
        console.print(f"[green]✓[/green] Wallet '{name}' deleted")
    else:
        console.print("[yellow]Cancelled[/yellow]")


@wallet_app.command("backup")
def wallet_backup(
    path: Optional[Path] = typer.Argument(None, help="Backup file or directory"),
    encrypt: bool = typer.Option(False, "--encrypt/--no-encrypt", help="Encrypt the backup file"),
) -> None:
    """Write a backup of all wallets."""
    with handle_errors():
        manager = _manager()
        password = None
        if encrypt:
            password = manager.prompter.password("Choose a backup password", confirm=True)
        target = manager.backup(path, password=password)
    console.print(f"[green]✓[/green] Backup written to {target}")


@wallet_app.command("restore")
def wallet_restore(
    path: Path = typer.Argument(..., help="Backup file"),
    on_conflict: Optional[str] = typer.Option(
        None, "--on-conflict", help=f"One of: {', '.join(CONFLICT_CHOICES)}"),
) -> None:
    """Restore wallets from a backup file."""
    with handle_errors():
        report = _manager().restore(path, on_conflict=on_conflict)

    if report.cancelled:
        console.print("[yellow]Restore cancelled[/yellow]")
        return
    console.print(f"[green]✓[/green] Restored {len(report.restored)} wallet(s)")
    for old, new in report.renamed.items():
        console.print(f"  '{old}' restored as '{new}'")
    if report.skipped:
        console.print(f"[yellow]Skipped: {', '.join(report.skipped)}[/yellow]")


@wallet_app.command("info")
def wallet_info(
    name: Optional[str] = typer.Argument(None, help="Wallet name (default: current)"),
    as_json: bool = typer.Option(False, "--json", help="Print JSON"),
) -> None:
    """Show a wallet's details."""
    with handle_errors():
        info = _manager().wallet_info(name)
    if as_json:
        typer.echo(json.dumps(info, indent=2))
        return
    console.print(f"Name:    {info['name']}")
    console.print(f"Address: [cyan]{info['address']}[/cyan]")
    console.print(f"Current: {'yes' if info['isCurrentWallet'] else 'no'}")


@wallet_app.command("change-password")
def wallet_change_password(
    name: Optional[str] = typer.Argument(None, help="Wallet name (default: current)"),
) -> None:
    """Re-encrypt a wallet under a new password."""
    with handle_errors():
        _manager().change_password(name)
    console.print("[green]✓[/green] Password changed")


# ============================================
# addressbook
# ============================================

@addressbook_app.command("add")
def addressbook_add(
    label: str = typer.Argument(..., help="Label"),
    address: str = typer.Argument(..., help="0x address"),
    notes: Optional[str] = typer.Option(None, "--notes", help="Free-form notes"),
) -> None:
    """Add an address."""
    with handle_errors():
        item = _address_book().add(label, address, notes)
    console.print(f"[green]✓[/green] Added '{item.label}' → [cyan]{item.address}[/cyan]")


@addressbook_app.command("list")
def addressbook_list() -> None:
    """List all entries."""
    items = _address_book().entries()
    if not items:
        console.print("[yellow]Address book is empty[/yellow]")
        return
    _print_items(items)


@addressbook_app.command("view")
def addressbook_view(label: str = typer.Argument(..., help="Label")) -> None:
    """Show one entry (asks for its password if encrypted)."""
    with handle_errors():
        item = _address_book().view(label)
    _print_items([item])


@addressbook_app.command("edit")
def addressbook_edit(
    label: str = typer.Argument(..., help="Label"),
    address: Optional[str] = typer.Option(None, "--address", help="New address"),
    notes: Optional[str] = typer.Option(None, "--notes", help="New notes (empty to clear)"),
    new_label: Optional[str] = typer.Option(None, "--label", help="New label"),
) -> None:
    """Change an entry."""
    with handle_errors():
        if address is None and notes is None and new_label is None:
            raise ValidationError("Nothing to change: pass --address, --notes or --label")
        item = _address_book().edit(label, address=address, notes=notes, new_label=new_label)
    console.print(f"[green]✓[/green] Updated '{item.label}'")


@addressbook_app.command("delete")
def addressbook_delete(
    label: str = typer.Argument(..., help="Label"),
    yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation"),
) -> None:
    """Delete an entry."""
    with handle_errors():
        deleted = _address_book().delete(label, confirmed=True if yes else None)
    console.print(f"[green]✓[/green] Deleted '{label}'" if deleted else "[yellow]Cancelled[/yellow]")


@addressbook_app.command("search")
def addressbook_search(query: str = typer.Argument(..., help="Text to look for")) -> None:
    """Search labels and addresses."""
    items = _address_book().search(query)
    if not items:
        console.print(f"[yellow]No entries match '{query}'[/yellow]")
        return
    _print_items(items)


@addressbook_app.command("encrypt")
def addressbook_encrypt(label: str = typer.Argument(..., help="Label")) -> None:
    """Encrypt an entry under its own password."""
    with handle_errors():
        _address_book().encrypt(label)
    console.print(f"[green]✓[/green] Entry '{label}' encrypted")


@addressbook_app.command("decrypt")
def addressbook_decrypt(
    label: str = typer.Argument(..., help="Label"),
    keep: Optional[bool] = typer.Option(None, "--keep/--no-keep", help="Store the entry decrypted"),
) -> None:
    """Decrypt an entry, showing it and optionally keeping it decrypted."""
    with handle_errors():
        item = _address_book().decrypt(label, keep_decrypted=keep)
    _print_items([item])


@addressbook_app.command("resolve")
def addressbook_resolve(target: str = typer.Argument(..., help="Label or 0x address")) -> None:
    """Print the address for a label."""
    with handle_errors():
        address = _address_book().resolve(target)
    typer.echo(address)


# ============================================
# config
# ============================================

@config_app.command("show")
def config_show() -> None:
    """Print the effective settings."""
    typer.echo(json.dumps(load_settings(), indent=2))


@config_app.command("set")
def config_set(
    key: str = typer.Argument(..., help=f"One of: {', '.join(DEFAULT_SETTINGS)}"),
    value: str = typer.Argument(..., help="New value"),
) -> None:
    """Change one setting."""
    with handle_errors():
        if key not in DEFAULT_SETTINGS:
            raise ValidationError(f"Unknown setting: {key}")
        if isinstance(DEFAULT_SETTINGS[key], int):
            if not value.lstrip("-").isdigit():
                raise ValidationError(f"{key} must be a whole number")
            parsed = int(value)
        else:
            parsed = value

    settings = load_settings()
    settings[key] = parsed
    save_settings(settings)
    console.print(f"[green]✓[/green] {key} = {parsed!r} saved to {get_settings_path()}")


def _print_items(items) -> None:
    table = Table(title="Address Book")
    table.add_column("Label")
    table.add_column("Address", style="cyan")
    table.add_column("Notes", style="dim")
    for item in items:
        if item.encrypted:
            table.add_row(item.label, "[yellow]🔒 encrypted[/yellow]", "")
        else:
            table.add_row(item.label, item.address, item.notes or "")
    console.print(table)
