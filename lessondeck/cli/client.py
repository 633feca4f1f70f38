"""Interactive terminal client.

Usage:
    lessondeck --url ws://localhost:8080/ws --output lesson.pptx

Plain text is submitted as a generation request (or as an edit instruction
while a slide is being edited). Lines starting with ``:`` are commands:

    :next  :back  :remove  :edit  :done  :insert  :cancel  :new
    :type <category>  :settings  :quit
"""

import asyncio
import logging
from typing import Optional

import click
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table

from ..config import settings
from ..logger import logger
from ..presentation import PptxCollaborator, RecordingCollaborator
from ..schema import CATEGORY_VALUES, ContentCategory, TeachingSettings, WorkflowState
from ..settings_store import SettingsStore
from ..workflow.dispatcher import Dispatcher
from ..workflow.effects import Display, DisplayLevel, Effect, Render, RequestSettings, Status
from ..workflow.machine import WorkflowStateMachine
from ..ws.events import UserEvents, UserIntent
from ..ws.host import detect_category
from ..ws.retry_config import ReconnectPolicy
from ..ws.session import SessionCorrelator
from ..ws.supervisor import ReconnectionSupervisor

console = Console()

QUIT_COMMANDS = {":quit", ":q", ":exit"}
SETTINGS_COMMAND = ":settings"

COMMANDS = {
    ":next": UserEvents.NEXT,
    ":back": UserEvents.BACK,
    ":remove": UserEvents.REMOVE,
    ":edit": UserEvents.EDIT,
    ":done": UserEvents.EXIT_EDIT,
    ":insert": UserEvents.INSERT,
    ":cancel": UserEvents.CANCEL,
    ":new": UserEvents.NEW_CONVERSATION,
}

LEVEL_STYLES = {
    DisplayLevel.INFO: "cyan",
    DisplayLevel.NOTICE: "yellow",
    DisplayLevel.VALIDATION: "yellow",
    DisplayLevel.ERROR: "red",
    DisplayLevel.SUCCESS: "green",
}


def parse_line(line: str, auto_category: bool = False) -> list[UserIntent]:
    """Map one input line to the intents it stands for.

    Raises:
        click.UsageError: for an unknown command or category
    """
    text = line.strip()
    if not text:
        return []

    if not text.startswith(":"):
        intents = []
        if auto_category:
            detected = detect_category(text)
            if detected is not None:
                intents.append(UserIntent(UserEvents.SELECT_CATEGORY, category=detected.value))
        intents.append(UserIntent(UserEvents.SUBMIT, text=text))
        return intents

    command, _, argument = text.partition(" ")
    command = command.lower()
    if command == ":type":
        category = ContentCategory.parse(argument)
        if category is None:
            raise click.UsageError(f"Unknown content type '{argument}'. Choose one of: {', '.join(CATEGORY_VALUES)}")
        return [UserIntent(UserEvents.SELECT_CATEGORY, category=category.value)]
    if command in COMMANDS:
        return [UserIntent(COMMANDS[command])]

    raise click.UsageError(f"Unknown command: {command}")


def prompt_teaching_settings(current: Optional[TeachingSettings] = None) -> TeachingSettings:
    """Blocking prompt for the per-document teaching settings."""
    current = current or TeachingSettings()
    console.print(Panel("Set the teaching context used for every request.", title="Teaching Settings"))
    return TeachingSettings(
        language=Prompt.ask("Language", default=current.language),
        level=Prompt.ask("Level", default=current.level),
        native_language=Prompt.ask("Use native language", default=current.native_language),
        age_group=Prompt.ask("Age group", default=current.age_group),
        class_name=Prompt.ask("Class name", default=current.class_name or "") or None,
    )


class ConsoleRenderer:
    """Renders display effects and the review state to the terminal."""

    def __init__(self, machine: WorkflowStateMachine, output: Optional[Console] = None):
        self.machine = machine
        self.console = output or console
        self.settings_requested = False

    def __call__(self, effect: Effect) -> None:
        if isinstance(effect, Display):
            style = LEVEL_STYLES.get(effect.level, "white")
            self.console.print(effect.text, style=style)
        elif isinstance(effect, Status):
            if effect.text:
                self.console.print(f"… {effect.text}", style="dim")
        elif isinstance(effect, Render):
            self.render()
        elif isinstance(effect, RequestSettings):
            self.settings_requested = True
            self.console.print("Teaching settings are required first. Use :settings", style="yellow")

    def render(self) -> None:
        view = self.machine.view()
        slide = view.current
        if slide is None:
            return

        table = Table(show_header=False, box=None)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        table.add_row("Type", slide.kind.value)
        table.add_row("Title", slide.title)
        if slide.subtitle:
            table.add_row("Subtitle", slide.subtitle)
        if slide.body:
            table.add_row("Content", slide.body)
        if slide.example:
            table.add_row("Example", slide.example)

        heading = f"{view.preview_title} · Slide {view.cursor + 1} of {len(view.slides)}"
        if view.edit_target is not None:
            heading += " · editing"
        self.console.print(Panel(table, title=heading, subtitle=f":next → {view.next_label}"))


async def run_client(
    url: str,
    document: Optional[str],
    output: Optional[str],
    category: Optional[str],
    auto_category: bool,
) -> None:
    store = SettingsStore()
    teaching = store.load(document)
    if teaching is None:
        teaching = await asyncio.to_thread(prompt_teaching_settings)
        store.save(document, teaching)
    console.print(f"Settings: {teaching.badge}", style="green")

    machine = WorkflowStateMachine(
        SessionCorrelator(),
        teaching,
        settings_confirmed=True,
        default_category=ContentCategory.parse(category) if category else None,
    )
    renderer = ConsoleRenderer(machine)
    collaborator = PptxCollaborator(output) if output else RecordingCollaborator()
    supervisor = ReconnectionSupervisor(url, ReconnectPolicy.from_settings())
    dispatcher = Dispatcher(
        machine,
        supervisor,
        collaborator=collaborator,
        settings_store=store,
        document=document,
        sink=renderer,
    )

    consumer = asyncio.create_task(dispatcher.run())
    await asyncio.sleep(settings.initial_connect_delay_s)
    await supervisor.connect()

    try:
        while True:
            try:
                line = await asyncio.to_thread(console.input, "[bold]> [/bold]")
            except EOFError:
                break

            command = line.strip().lower()
            if command in QUIT_COMMANDS:
                break
            if command == SETTINGS_COMMAND:
                updated = await asyncio.to_thread(prompt_teaching_settings, machine.teaching)
                dispatcher.post(UserIntent(UserEvents.SAVE_SETTINGS, data=updated.model_dump(by_alias=True)))
                continue

            try:
                intents = parse_line(line, auto_category)
            except click.UsageError as e:
                console.print(e.message, style="red")
                continue
            for intent in intents:
                dispatcher.post(intent)
            await dispatcher.queue.join()
    finally:
        dispatcher.stop()
        await consumer
        await supervisor.close()
        if machine.state == WorkflowState.INSERTING:
            logger.warning("Exited while an insertion was in progress")


@click.command()
@click.option("--url", default=lambda: settings.ws_url, help="WebSocket URL of the generation backend")
@click.option("--document", default=None, help="Document path used to key the teaching settings")
@click.option("--output", type=click.Path(dir_okay=False), help="Insert slides into this .pptx file")
@click.option(
    "--category",
    type=click.Choice(CATEGORY_VALUES, case_sensitive=False),
    default=lambda: settings.default_category,
    help="Content type selected at start",
)
@click.option("--auto-category", is_flag=True, help="Pick the content type from keywords in each request")
@click.option("--debug", is_flag=True, help="Enable debug logging")
def cli(url, document, output, category, auto_category, debug):
    """Generate, review and insert lesson slides."""
    if debug:
        logger.setLevel(logging.DEBUG)
    if not url:
        console.print("No WebSocket URL configured; set LESSONDECK_WS_URL or pass --url", style="yellow")

    try:
        asyncio.run(run_client(url, document, output, category, auto_category))
    except KeyboardInterrupt:
        console.print("\nBye.", style="dim")
