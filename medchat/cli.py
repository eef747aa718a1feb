"""
Terminal client for the medical chat relay.

Commands:
- personas: List the doctor personas the relay understands
- ask: Stream an answer from the relay into the terminal

Exit codes: 0 (answer complete), 1 (relay/transport failure or truncated
answer), 2 (invalid usage)

Usage:
    # Ask a cardiologist about a patient
    python -m medchat.cli ask "Is my blood pressure reading worrying?" \\
        --persona cardiologist --age 61 --conditions "Hypertension"

    # Ask about an image only
    python -m medchat.cli ask --image rash.jpg --persona dermatologist
"""

from pathlib import Path
from typing import Optional
import asyncio
import base64
import logging
import mimetypes

import typer
from dotenv import load_dotenv
from pydantic import ValidationError
from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.table import Table

from medchat.client import (
    ChatTransportError,
    ConversationAccumulator,
    EmptyTurnError,
    MedicalChatClient,
    RelayClientError,
    StreamOutcome,
)
from medchat.models import PatientInfo
from medchat.relay.prompts import DOCTOR_PERSONAS, get_persona

# Load environment variables from .env file
load_dotenv()

# Configure logging with rich
logging.basicConfig(
    level=logging.WARNING,
    format="%(message)s",
    handlers=[RichHandler(rich_tracebacks=True, show_time=False)]
)

logger = logging.getLogger(__name__)
console = Console()

# Typer app
app = typer.Typer(
    name="medchat",
    help="Ask the medical chat relay questions about a patient",
    add_completion=False,
    pretty_exceptions_show_locals=False,
)


def image_to_data_url(path: Path) -> str:
    """Read an image file into a ``data:image/...;base64,`` URL.

    Raises:
        ValueError: If the file type is not an image
    """
    mime_type, _ = mimetypes.guess_type(path.name)
    if mime_type is None or not mime_type.startswith("image/"):
        raise ValueError(f"Not an image file: {path}")
    encoded = base64.b64encode(path.read_bytes()).decode("ascii")
    return f"data:{mime_type};base64,{encoded}"


@app.command()
def personas():
    """List the available doctor personas."""
    table = Table(title="Doctor personas", show_header=True, header_style="bold magenta")
    table.add_column("", width=3)
    table.add_column("ID", style="cyan", no_wrap=True)
    table.add_column("Name", style="white")

    for persona in DOCTOR_PERSONAS:
        table.add_row(persona.icon, persona.id, persona.name)

    console.print(table)


@app.command()
def ask(
    question: Optional[str] = typer.Argument(None, help="Question to ask (optional with --image)"),
    relay_url: str = typer.Option(
        "http://localhost:8000/medical-chat",
        "--url",
        envvar="MEDCHAT_RELAY_URL",
        help="Relay endpoint URL",
    ),
    token: str = typer.Option(
        ...,
        "--token",
        envvar="MEDCHAT_TOKEN",
        help="Bearer credential (session access token)",
    ),
    persona_id: Optional[str] = typer.Option(None, "--persona", "-p", help="Doctor persona id"),
    name: Optional[str] = typer.Option(None, "--name", help="Patient name"),
    age: Optional[str] = typer.Option(None, "--age", help="Patient age"),
    gender: Optional[str] = typer.Option(None, "--gender", help="Patient gender"),
    medications: Optional[str] = typer.Option(None, "--medications", help="Current medications"),
    conditions: Optional[str] = typer.Option(None, "--conditions", help="Previous conditions"),
    allergies: Optional[str] = typer.Option(None, "--allergies", help="Known allergies"),
    image: Optional[Path] = typer.Option(
        None, "--image", "-i", exists=True, dir_okay=False, help="Medical image to attach"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable verbose logging"),
):
    """Stream an answer from the relay."""
    if verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    persona = None
    if persona_id is not None:
        persona = get_persona(persona_id)
        if persona is None:
            console.print(f"[red]❌ Unknown persona '{persona_id}'. See: medchat personas[/red]")
            raise typer.Exit(code=2)

    image_url = None
    if image is not None:
        try:
            image_url = image_to_data_url(image)
        except ValueError as e:
            console.print(f"[red]❌ {e}[/red]")
            raise typer.Exit(code=2)

    try:
        patient = PatientInfo(
            name=name,
            age=age,
            gender=gender,
            medications=medications,
            conditions=conditions,
            allergies=allergies,
        )
    except ValidationError as e:
        console.print(f"[red]❌ Invalid patient details: {e.errors()[0]['msg']}[/red]")
        raise typer.Exit(code=2)

    header = persona.icon + " " + persona.name if persona else "Medical assistant"
    console.print(Panel.fit(f"[bold cyan]{header}[/bold cyan]", border_style="cyan"))

    conversation = ConversationAccumulator()
    printed = 0

    def print_growth(message):
        nonlocal printed
        console.print(message.content[printed:], end="", markup=False, highlight=False, soft_wrap=True)
        printed = len(message.content)

    conversation.subscribe(print_growth)

    async def run_ask() -> StreamOutcome:
        async with MedicalChatClient(relay_url, token) as client:
            return await client.ask(
                conversation,
                question,
                patient_info=patient,
                persona=persona,
                image=image_url,
            )

    try:
        outcome = asyncio.run(run_ask())
    except EmptyTurnError:
        console.print("[red]❌ Provide a question, an image, or both[/red]")
        raise typer.Exit(code=2)
    except RelayClientError as e:
        console.print(f"[red]❌ Relay error ({e.status_code}): {e.message}[/red]")
        raise typer.Exit(code=1)
    except ChatTransportError as e:
        console.print(f"\n[red]❌ Connection failed: {e}[/red]")
        raise typer.Exit(code=1)

    console.print()
    if outcome == StreamOutcome.TRUNCATED:
        console.print("[yellow]⚠️  The answer was cut off before it finished[/yellow]")
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
