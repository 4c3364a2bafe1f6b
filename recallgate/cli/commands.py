"""CLI commands for recallgate."""

import json
import random
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from recallgate import __logo__, __version__

app = typer.Typer(
    name="recallgate",
    help=f"{__logo__} recallgate - collection activation and temporal relevance",
    no_args_is_help=True,
)

console = Console()


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} recallgate v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
    log_level: str = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ..."),
):
    """recallgate - collection activation and temporal relevance."""
    from recallgate.logging_config import setup_logging

    setup_logging(log_level)


# ============================================================================
# Shared helpers
# ============================================================================

StoreOption = typer.Option(None, "--store", "-s", help="Policy store file (default: from config)")


def _open_store(store_path: Path | None):
    """Open the policy store named on the command line, or the configured one."""
    from recallgate.config.loader import load_config
    from recallgate.policy.store import PolicyStore

    if store_path is None:
        store_path = load_config().policy_store_path
    return PolicyStore(store_path)


def _save(store, collection_id: str, policy) -> None:
    from recallgate.errors import PolicyStoreError

    try:
        store.save_policy(collection_id, policy)
    except PolicyStoreError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


# ============================================================================
# Policy Commands
# ============================================================================

policy_app = typer.Typer(help="Manage collection activation policies")
app.add_typer(policy_app, name="policy")


@policy_app.command("list")
def policy_list(store_path: Path = StoreOption):
    """List stored collection policies."""
    from recallgate.policy.summary import activation_summary, decay_summary

    store = _open_store(store_path)
    ids = store.list_ids()

    if not ids:
        console.print("No collection policies.")
        return

    table = Table(title="Collection Policies")
    table.add_column("Collection", style="cyan")
    table.add_column("Activation")
    table.add_column("Temporal")

    for cid in ids:
        policy = store.load_policy(cid)
        table.add_row(cid, activation_summary(policy), decay_summary(policy.decay))

    console.print(table)


@policy_app.command("show")
def policy_show(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    store_path: Path = StoreOption,
):
    """Show one collection's policy as JSON."""
    store = _open_store(store_path)
    if not store.has_policy(collection_id):
        console.print(f"[dim]No stored policy for {collection_id}; showing defaults[/dim]")
    policy = store.load_policy(collection_id)
    console.print_json(json.dumps(policy.to_record()))


@policy_app.command("reset")
def policy_reset(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    store_path: Path = StoreOption,
):
    """Remove a collection's policy so it falls back to defaults."""
    store = _open_store(store_path)
    if store.delete_policy(collection_id):
        console.print(f"[green]✓[/green] Reset policy for {collection_id}")
    else:
        console.print(f"[red]No policy for {collection_id}[/red]")


@policy_app.command("triggers")
def policy_triggers(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    text: str = typer.Argument(..., help="Triggers separated by commas or newlines ('' clears)"),
    mode: str = typer.Option("any", "--mode", "-m", help="any or all"),
    depth: int = typer.Option(5, "--depth", "-d", help="Messages to scan"),
    case_sensitive: bool = typer.Option(False, "--case-sensitive", help="Match case exactly"),
    store_path: Path = StoreOption,
):
    """Set a collection's triggers."""
    from recallgate.policy.types import TriggerConfig

    store = _open_store(store_path)
    policy = store.load_policy(collection_id)
    triggers = TriggerConfig(values=text, match_mode=mode, case_sensitive=case_sensitive, scan_depth=depth)
    _save(store, collection_id, policy.model_copy(update={"triggers": triggers}))

    if triggers.is_empty:
        console.print(f"[green]✓[/green] Cleared triggers for {collection_id}")
    else:
        console.print(
            f"[green]✓[/green] {len(triggers.values)} trigger(s) for {collection_id} "
            f"({triggers.match_mode.value}, depth {triggers.scan_depth})"
        )


@policy_app.command("decay")
def policy_decay(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    enable: bool = typer.Option(None, "--enable/--disable", help="Turn temporal weighting on or off"),
    decay_type: str = typer.Option(None, "--type", "-t", help="decay or nostalgia"),
    mode: str = typer.Option(None, "--mode", "-m", help="exponential or linear"),
    half_life: int = typer.Option(None, "--half-life", help="Messages until weight halves"),
    rate: float = typer.Option(None, "--rate", help="Linear change per message"),
    min_relevance: float = typer.Option(None, "--min", help="Decay floor"),
    max_boost: float = typer.Option(None, "--max-boost", help="Nostalgia ceiling"),
    scene_aware: bool = typer.Option(None, "--scene-aware/--no-scene-aware", help="Reset age at scene boundaries"),
    store_path: Path = StoreOption,
):
    """Configure a collection's temporal decay or nostalgia."""
    from recallgate.policy.summary import decay_summary
    from recallgate.policy.types import DecayConfig

    store = _open_store(store_path)
    policy = store.load_policy(collection_id)

    changes = {
        "enabled": enable,
        "type": decay_type,
        "mode": mode,
        "halfLife": half_life,
        "linearRate": rate,
        "minRelevance": min_relevance,
        "maxBoost": max_boost,
        "sceneAware": scene_aware,
    }
    record = policy.decay.model_dump(by_alias=True, mode="json")
    record.update({k: v for k, v in changes.items() if v is not None})
    decay = DecayConfig.model_validate(record)

    _save(store, collection_id, policy.model_copy(update={"decay": decay}))
    console.print(f"[green]✓[/green] {collection_id}: {decay_summary(decay)}")


@policy_app.command("always")
def policy_always(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    off: bool = typer.Option(False, "--off", help="Stop forcing activation"),
    store_path: Path = StoreOption,
):
    """Mark a collection as always active."""
    store = _open_store(store_path)
    policy = store.load_policy(collection_id)
    _save(store, collection_id, policy.model_copy(update={"always_active": not off}))

    status = "no longer always active" if off else "always active"
    console.print(f"[green]✓[/green] {collection_id} {status}")


# ============================================================================
# Evaluation / Scoring
# ============================================================================


@app.command()
def evaluate(
    snapshot_file: Path = typer.Argument(..., help="Conversation snapshot JSON"),
    collection: list[str] = typer.Option(None, "--collection", "-c", help="Collection ID (repeatable)"),
    seed: int = typer.Option(None, "--seed", help="Seed for randomChance rules"),
    store_path: Path = StoreOption,
):
    """Show which collections would activate for a conversation."""
    from recallgate.config.loader import load_config
    from recallgate.conversation.snapshot import ConversationSnapshot
    from recallgate.engine import RetrievalEngine

    try:
        payload = json.loads(snapshot_file.read_text())
    except (OSError, json.JSONDecodeError) as e:
        console.print(f"[red]Error: cannot read snapshot {snapshot_file}: {e}[/red]")
        raise typer.Exit(1)

    if isinstance(payload, list):
        payload = {"messages": payload}

    config = load_config()
    store = _open_store(store_path)
    snapshot = ConversationSnapshot.from_dict(payload, max_messages=config.scan.max_messages)
    ids = collection or store.list_ids()

    if not ids:
        console.print("No collections to evaluate.")
        return

    engine = RetrievalEngine(store, config=config)
    decisions = engine.decide(ids, snapshot, rng=random.Random(seed))

    table = Table(title=f"Activation ({snapshot.message_count} messages)")
    table.add_column("Collection", style="cyan")
    table.add_column("Stage")
    table.add_column("Active")
    table.add_column("Detail", style="dim")

    for cid, decision in decisions.items():
        active = "[green]yes[/green]" if decision.activated else "[red]no[/red]"
        table.add_row(cid, decision.stage.value, active, decision.detail)

    console.print(table)


@app.command()
def score(
    collection_id: str = typer.Argument(..., help="Collection ID"),
    similarity: float = typer.Option(..., "--similarity", help="Raw similarity score"),
    age: int = typer.Option(..., "--age", help="Chunk age in messages"),
    crossed: bool = typer.Option(False, "--crossed", help="Chunk lies before a scene boundary"),
    scene_age: int = typer.Option(None, "--scene-age", help="Messages since the scene boundary"),
    store_path: Path = StoreOption,
):
    """Apply a collection's temporal weighting to one similarity score."""
    from recallgate.policy.summary import decay_summary
    from recallgate.scoring.temporal import ScoredChunk, effective_age, score as score_chunk

    store = _open_store(store_path)
    decay = store.load_policy(collection_id).decay
    chunk = ScoredChunk(
        text="",
        similarity_score=similarity,
        message_age=age,
        scene_boundary_crossed=crossed,
        scene_age=scene_age,
    )

    console.print(f"{collection_id}: {decay_summary(decay)}")
    console.print(f"  effective age: {effective_age(chunk, decay)}")
    console.print(f"  adjusted score: [bold]{score_chunk(chunk, decay):.4f}[/bold]")


if __name__ == "__main__":
    app()
