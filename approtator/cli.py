import typer
from pathlib import Path
from typing import Optional

from approtator.batch import BatchOrchestrator, pair_keys
from approtator.chain import ChainClient, PocketCliClient
from approtator.config import Settings, load_settings
from approtator.errors import (
    ConfigError,
    CountMismatchError,
    KeyFileNotFoundError,
    RotatorError,
    UserAbortError,
    ValidationError,
)
from approtator.executor import RetryingExecutor
from approtator.key_files import load_private_keys, render_private_keys
from approtator.keys import generate_private_keys
from approtator.log import console, setup_logging
from approtator.models import BatchResult, StakeAction
from approtator.prompt import Prompter
from approtator.report import timestamp, write_report
from approtator.verify import verify_stakes

OLD_KEYS_FILE = "old-app-private-keys.csv"
NEW_KEYS_FILE = "new-app-private-keys.csv"
APP_KEYS_FILE = "app-private-keys.csv"

app = typer.Typer(
    help="Approtator CLI: batch rotation of POKT app stakes.",
    add_help_option=True,
    rich_markup_mode="rich",
    context_settings={"help_option_names": ["-h", "--help"]},
)


def build_chain_client(settings: Settings, rpc_url: str) -> ChainClient:
    return PocketCliClient(settings, rpc_url)


def make_prompter() -> Prompter:
    return Prompter()


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    config: Optional[Path] = typer.Option(None, "--config", help="YAML settings file (default: ./approtator.yaml)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show debug logging"),
):
    """
    Approtator CLI: batch rotation of POKT app stakes.

    Available commands:
    - transfer: Transfer old app stakes to new app keys
    - stake: Stake apps from a key file
    - unstake: Unstake apps from a key file
    - generate-keys: Generate a file of new app keys
    - verify: Verify the new app keys are staked
    """
    try:
        settings = load_settings(config)
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    setup_logging("DEBUG" if verbose else settings.log_level)
    ctx.obj = settings

    if ctx.invoked_subcommand is None:
        console.print("[bold blue]Approtator CLI[/bold blue]")
        console.print("Batch rotation of POKT app stakes.\n")

        console.print("[bold]Available Commands:[/bold]")
        console.print("  [cyan]transfer[/cyan]        Transfer old app stakes to new app keys")
        console.print("  [cyan]stake[/cyan]           Stake apps from a key file")
        console.print("  [cyan]unstake[/cyan]         Unstake apps from a key file")
        console.print("  [cyan]generate-keys[/cyan]   Generate a file of new app keys")
        console.print("  [cyan]verify[/cyan]          Verify the new app keys are staked")

        console.print("\n[dim]Use 'approtator [COMMAND] --help' for more information.[/dim]")
        ctx.exit(0)


def _fail(error: RotatorError):
    if isinstance(error, UserAbortError):
        console.print(f"[red]Aborted:[/red] {error}")
    else:
        console.print(f"[red]Error:[/red] {error}")
    raise typer.Exit(1)


def _ask_rpc_url(prompter: Prompter) -> str:
    rpc_url = prompter.ask("Enter your POKT RPC Provider URL: ")
    if not rpc_url:
        raise ValidationError("An RPC provider URL is required")
    return rpc_url


def _load_key_files(settings: Settings, *names: str) -> list[list[str]]:
    """Check every file exists before parsing any of them."""
    paths = [settings.input_path / name for name in names]
    for path in paths:
        if not path.is_file():
            raise KeyFileNotFoundError(path)
    return [
        load_private_keys(path, max_rows=settings.max_keys_per_file)
        for path in paths
    ]


def _run_batch(settings: Settings, rpc_url: str, action: StakeAction, jobs: list) -> BatchResult:
    chain = build_chain_client(settings, rpc_url)

    def on_chunk(index, total):
        console.print(f"[blue]Processing batch {index}/{total}...[/blue]")

    orchestrator = BatchOrchestrator(
        chain,
        RetryingExecutor(settings.retry_attempts),
        chunk_size=settings.batch_size,
        on_chunk=on_chunk,
    )
    result = orchestrator.run(action, jobs)
    path = write_report(action, result.outcomes, settings.output_path)
    console.print(f"[yellow]Results saved to {path}[/yellow]")
    return result


def _print_summary(result: BatchResult):
    console.print("=" * 60)
    console.print(f"Total keys processed: {len(result)}")
    console.print(f"[green]Successful: {len(result) - len(result.failures)}[/green]")
    console.print(f"[red]Failed: {len(result.failures)}[/red]")
    console.print("=" * 60)


@app.command()
def transfer(ctx: typer.Context):
    """
    Transfer app stakes from old keys to new keys.

    Reads old-app-private-keys.csv and new-app-private-keys.csv from the input
    directory; row N of the old file is transferred to row N of the new file.
    Keys are submitted in batches and every result is written to a CSV report.
    Re-run the command to retry a partial failure.

    Security Warning:
    Each key is imported with `pocket accounts import-raw <key>`, so it is
    visible in the local process list while the import runs. The temporary
    keybase is encrypted with `keybase_passphrase` and deleted after use.
    Run on a single-user host and set your own passphrase in the settings file.
    """
    settings = ctx.obj
    prompter = make_prompter()
    try:
        rpc_url = _ask_rpc_url(prompter)
        old_keys, new_keys = _load_key_files(settings, OLD_KEYS_FILE, NEW_KEYS_FILE)
        if len(old_keys) != len(new_keys):
            raise CountMismatchError(len(old_keys), len(new_keys))

        console.print()
        console.print(f"App stakes count being rotated: {len(old_keys)}")
        console.print(f"RPC Provider: {rpc_url}")
        console.print(f"Network: {settings.network_id}")
        console.print()
        prompter.require_confirmation("Does this seem correct? Confirm by typing yes: ")

        result = _run_batch(settings, rpc_url, StakeAction.TRANSFER, pair_keys(old_keys, new_keys))
    except RotatorError as e:
        _fail(e)
    finally:
        prompter.close()

    _print_summary(result)
    if not result.ok:
        console.print("[red]Failed to transfer all apps, try running the script again![/red]")
        raise typer.Exit(1)
    console.print("[green]App stakes successfully rotated[/green]")


def _single_key_command(ctx: typer.Context, action: StakeAction):
    settings = ctx.obj
    prompter = make_prompter()
    try:
        rpc_url = _ask_rpc_url(prompter)
        (keys,) = _load_key_files(settings, APP_KEYS_FILE)

        console.print()
        console.print(f"App stakes count to {action.value}: {len(keys)}")
        if action is StakeAction.STAKE:
            console.print(f"Stake amount: {settings.stake_amount}upokt")
            console.print(f"Relay chains: {', '.join(settings.relay_chains)}")
        console.print(f"RPC Provider: {rpc_url}")
        console.print(f"Network: {settings.network_id}")
        console.print()
        prompter.require_confirmation("Does this seem correct? Confirm by typing yes: ")

        result = _run_batch(settings, rpc_url, action, keys)
    except RotatorError as e:
        _fail(e)
    finally:
        prompter.close()

    _print_summary(result)
    if not result.ok:
        console.print(f"[red]Failed to {action.value} all apps, try running the script again![/red]")
        raise typer.Exit(1)
    console.print(f"[green]All apps successfully {action.value}d[/green]")


@app.command()
def stake(ctx: typer.Context):
    """
    Stake every app in app-private-keys.csv.

    Amount, relay chains, fee and network come from the settings file.

    Security Warning:
    Keys are visible in the local process list while they are imported;
    see `approtator transfer --help`.
    """
    _single_key_command(ctx, StakeAction.STAKE)


@app.command()
def unstake(ctx: typer.Context):
    """
    Unstake every app in app-private-keys.csv.

    Security Warning:
    Keys are visible in the local process list while they are imported;
    see `approtator transfer --help`.
    """
    _single_key_command(ctx, StakeAction.UNSTAKE)


@app.command()
def generate_keys(ctx: typer.Context):
    """
    Generate new app keys and save them as a privateKey CSV in the input directory.

    Security Warning:
    The output file contains private keys. Keep it out of version control.
    """
    settings = ctx.obj
    prompter = make_prompter()
    try:
        answer = prompter.ask("How many app stakes to generate?: ")
        try:
            count = int(answer)
        except ValueError:
            raise ValidationError(f"Expected a positive integer, got {answer!r}") from None
        if count < 1:
            raise ValidationError(f"Expected a positive integer, got {answer!r}")
    except RotatorError as e:
        _fail(e)
    finally:
        prompter.close()

    if count > settings.max_keys_per_file:
        console.print(f"[yellow]Warning: files with more than {settings.max_keys_per_file} keys are rejected "
                      f"by the other commands; split the file before using it.[/yellow]")

    keys = generate_private_keys(count)
    output_file = settings.input_path / f"new-app-private-keys-{timestamp()}.csv"
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(render_private_keys(keys), encoding="utf-8")

    console.print(f"[green]✓ Generated {count} app keys[/green]")
    console.print(f"[yellow]Results saved to: {output_file}[/yellow]")
    console.print(f"[red]⚠️  IMPORTANT: Keep the {output_file} file secure![/red]")
    console.print(f"[blue]Run: chmod 600 {output_file}[/blue]")


@app.command()
def verify(ctx: typer.Context):
    """
    Verify every app in new-app-private-keys.csv is staked on chain.
    """
    settings = ctx.obj
    prompter = make_prompter()
    try:
        rpc_url = _ask_rpc_url(prompter)
        (keys,) = _load_key_files(settings, NEW_KEYS_FILE)
    except RotatorError as e:
        _fail(e)
    finally:
        prompter.close()

    result = verify_stakes(build_chain_client(settings, rpc_url), keys)
    if not result.ok:
        console.print(f"[red]{len(result.unverified)}/{result.total} new app stakes could not be verified.[/red]")
        raise typer.Exit(1)
    console.print(f"[green]All {result.total} new app stakes are verified staked into the network.[/green]")
