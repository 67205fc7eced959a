# main.py
import logging
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from persona_dispatch.config.settings import PersonaSettings
from persona_dispatch.database.persona_store import InMemoryPersonaStore, SqlitePersonaStore
from persona_dispatch.exceptions import PersonaDispatchError
from persona_dispatch.logging_config import setup_structured_logging
from persona_dispatch.models import FounderRole, OnboardingAnswers, StartupStage
from persona_dispatch.persona.prompting import build_system_prompt, resolve_user_content
from persona_dispatch.persona_manager import PersonaManager
from persona_dispatch.personas.generator import generate_personas, get_suggested_gaps
from persona_dispatch.personas.templates import get_default_templates

app = typer.Typer(help="Persona dispatch: deterministic persona routing for founder assistants.")
console = Console()


def _settings(verbose: bool) -> PersonaSettings:
    settings = PersonaSettings()
    if verbose:
        setup_structured_logging(getattr(logging, settings.log_level.upper(), logging.INFO))
    return settings


def _answers(
    stage: Optional[StartupStage], role: Optional[FounderRole], gaps: Optional[List[str]]
) -> Optional[OnboardingAnswers]:
    if stage is None:
        return None
    return OnboardingAnswers(
        startup_stage=stage,
        founder_role=role or FounderRole.GENERALIST,
        gaps=gaps if gaps is not None else get_suggested_gaps(stage),
    )


@app.command()
def templates():
    """Lists the built-in persona template catalog."""
    table = Table(title="Persona templates")
    table.add_column("Id")
    table.add_column("Slug")
    table.add_column("Name")
    table.add_column("Default")
    table.add_column("Keywords", justify="right")
    for template in get_default_templates(PersonaSettings().templates_file):
        table.add_row(
            template.id,
            f"@{template.slug}",
            template.name,
            "yes" if template.is_default else "",
            str(len(template.keywords)),
        )
    console.print(table)


@app.command("suggest-gaps")
def suggest_gaps(stage: StartupStage = typer.Argument(..., help="Startup stage.")):
    """Shows the capability gaps suggested for a startup stage."""
    gaps = get_suggested_gaps(stage)
    console.print(", ".join(gaps) if gaps else "[yellow]No suggestions.[/yellow]")


@app.command()
def generate(
    stage: StartupStage = typer.Option(..., "--stage", "-s", help="Startup stage."),
    role: FounderRole = typer.Option(FounderRole.GENERALIST, "--role", "-r", help="Founder role."),
    gaps: Optional[List[str]] = typer.Option(None, "--gap", "-g", help="Capability gap. Repeatable."),
    show_identity: bool = typer.Option(False, "--show-identity", help="Print each generated identity."),
):
    """Shows the personas onboarding would seed for the given answers."""
    try:
        generated = generate_personas(_answers(stage, role, gaps), PersonaSettings().templates_file)
    except PersonaDispatchError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)

    for template in generated:
        console.print(f"[bold]{template.name}[/bold] (@{template.slug})")
        if show_identity:
            console.print(Panel(template.identity, title=template.id))


@app.command()
def route(
    message: str = typer.Argument(..., help="The user message to route."),
    stage: Optional[StartupStage] = typer.Option(None, "--stage", "-s", help="Seed from onboarding answers for this stage."),
    role: Optional[FounderRole] = typer.Option(None, "--role", "-r", help="Founder role for onboarding seeding."),
    gaps: Optional[List[str]] = typer.Option(None, "--gap", "-g", help="Capability gap. Repeatable."),
    db_path: Optional[str] = typer.Option(None, "--db", help="SQLite database to use instead of an in-memory store."),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Emit structured logs."),
):
    """Routes a message to a persona, seeding the store first if it is empty."""
    settings = _settings(verbose)
    store = SqlitePersonaStore(db_path) if db_path else InMemoryPersonaStore()

    manager = PersonaManager(settings)
    manager.initialize(store)
    try:
        manager.seed_defaults(_answers(stage, role, gaps))
        result = manager.route(message)
    except PersonaDispatchError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        raise typer.Exit(code=1)
    finally:
        if isinstance(store, SqlitePersonaStore):
            store.close()

    console.print(
        f"[bold green]{result.persona.name}[/bold green] (@{result.persona.slug}) "
        f"via [cyan]{result.method.value}[/cyan], confidence {result.confidence:.2f}"
    )
    console.print(f"User content: {resolve_user_content(result, message)}")
    prompt_head = build_system_prompt(result.persona).splitlines()[0:3]
    console.print(Panel("\n".join(prompt_head), title="System prompt"))


if __name__ == "__main__":
    app()
