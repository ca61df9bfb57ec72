#!/usr/bin/env python3
"""Story Voice CLI - Terminal client for the story voice server.

Renders the orchestrator state with rich: story text with a character counter,
the voice picker, the generate trigger and saving of the generated audio.
"""

from __future__ import annotations

import argparse
import asyncio
import os
import signal
import sys
from pathlib import Path
from typing import Optional

import httpx
from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.style import Style
from rich.table import Table

from ..config import DEFAULT_MAX_TEXT_LENGTH
from .orchestrator import OrchestratorState, StoryVoiceOrchestrator

ERROR_STYLE = Style(color="red", bold=True)
INFO_STYLE = Style(color="cyan")
WARNING_STYLE = Style(color="yellow")

# Counter turns yellow past this share of the limit
COUNTER_WARNING_RATIO = 0.9


def format_counter(length: int, max_length: int) -> str:
    return f"{length:,} / {max_length:,} characters"


class StoryVoiceShell:
    """Interactive terminal front end driven by `StoryVoiceOrchestrator`."""

    def __init__(
        self,
        server_url: str,
        *,
        max_text_length: int = DEFAULT_MAX_TEXT_LENGTH,
        output_dir: Optional[Path] = None,
    ) -> None:
        self.server_url = server_url.rstrip("/")
        self.max_text_length = max_text_length
        self.output_dir = output_dir or Path.cwd()
        self.console = Console()
        self.running = True
        self._last_error: Optional[str] = None

    def _on_change(self, state: OrchestratorState) -> None:
        if state.error and state.error != self._last_error:
            self.console.print(state.error, style=ERROR_STYLE, markup=False)
        self._last_error = state.error

    def _show_voices(self, orchestrator: StoryVoiceOrchestrator) -> None:
        state = orchestrator.state
        if state.is_loading_voices:
            self.console.print("[dim]Loading voices...[/dim]")
            return
        if not state.voices:
            self.console.print("[dim]No voices available[/dim]")
            return

        table = Table(title="Voices", show_lines=False)
        table.add_column("#", justify="right")
        table.add_column("Name")
        table.add_column("Category", style="dim")
        table.add_column("Description", style="dim")
        for index, voice in enumerate(state.voices, start=1):
            marker = " *" if voice.voice_id == state.selected_voice_id else ""
            table.add_row(
                str(index),
                f"{voice.name}{marker}",
                voice.category or "",
                voice.description or "",
            )
        self.console.print(table)

    def _select_voice(self, orchestrator: StoryVoiceOrchestrator, choice: str) -> None:
        voices = orchestrator.state.voices
        voice_id: Optional[str] = None
        if choice.isdigit() and 1 <= int(choice) <= len(voices):
            voice_id = voices[int(choice) - 1].voice_id
        else:
            voice_id = next(
                (
                    v.voice_id
                    for v in voices
                    if choice in (v.voice_id, v.name) or v.name.lower() == choice.lower()
                ),
                None,
            )
        if voice_id is None:
            self.console.print(f"Voice '{choice}' not found", style=ERROR_STYLE)
            return

        orchestrator.select_voice(voice_id)
        voice = orchestrator.selected_voice
        if voice is not None:
            detail = f" (Category: {voice.category})" if voice.category else ""
            self.console.print(f"Voice: {voice.name}{detail}", style=INFO_STYLE)

    def _read_text(self, orchestrator: StoryVoiceOrchestrator) -> None:
        self.console.print("[dim]Enter your story. Finish with an empty line.[/dim]")
        lines: list[str] = []
        while True:
            try:
                line = input()
            except EOFError:
                break
            if not line:
                break
            lines.append(line)

        text = "\n".join(lines)
        if not orchestrator.set_story_text(text):
            self.console.print(
                f"Text is {len(text):,} characters; the limit is "
                f"{orchestrator.max_text_length:,}",
                style=ERROR_STYLE,
            )
            return
        self._show_counter(orchestrator)

    def _show_counter(self, orchestrator: StoryVoiceOrchestrator) -> None:
        length = len(orchestrator.state.story_text)
        limit = orchestrator.max_text_length
        style = WARNING_STYLE if length > limit * COUNTER_WARNING_RATIO else INFO_STYLE
        self.console.print(format_counter(length, limit), style=style)

    async def _generate(self, orchestrator: StoryVoiceOrchestrator) -> None:
        if not orchestrator.can_generate:
            self.console.print(
                "[dim]Enter some text (/text) and pick a voice (/voice) first[/dim]"
            )
            return
        with self.console.status("Generating audio..."):
            await orchestrator.generate()
        audio = orchestrator.state.audio
        if audio is not None:
            self.console.print(
                f"Audio ready: {audio.path} ({audio.size:,} bytes)",
                style=INFO_STYLE,
            )

    def _save(self, orchestrator: StoryVoiceOrchestrator, destination: Optional[str]) -> None:
        audio = orchestrator.state.audio
        if audio is None:
            self.console.print("[dim]Nothing to save yet - run /generate[/dim]")
            return
        try:
            target = audio.save(Path(destination) if destination else self.output_dir)
        except OSError as exc:
            self.console.print(f"Failed to save audio: {exc}", style=ERROR_STYLE)
            return
        self.console.print(f"Saved {target}", style=INFO_STYLE)

    def _show_status(self, orchestrator: StoryVoiceOrchestrator) -> None:
        state = orchestrator.state
        voice = orchestrator.selected_voice
        lines = [
            format_counter(len(state.story_text), orchestrator.max_text_length),
            f"Voice: {voice.name if voice else '(none)'}",
            f"Audio: {state.audio.path if state.audio else '(none)'}",
        ]
        if state.error:
            lines.append(f"[red]Error: {state.error}[/red]")
        self.console.print(Panel("\n".join(lines), title="Status", border_style="dim"))

    def _show_help(self) -> None:
        help_text = """
[bold]Commands:[/bold]
  /voices            List available voices
  /voice <n|name>    Select a voice by number, name or id
  /text              Enter the story text
  /generate          Generate speech for the text
  /save \\[path]       Save the generated audio
  /status            Show current text, voice and audio
  /help              Show this help message
  /quit              Exit
"""
        self.console.print(
            Panel(help_text.strip(), title="Story Voice Help", border_style="blue")
        )

    async def _handle_command(self, orchestrator: StoryVoiceOrchestrator, cmd: str) -> None:
        parts = cmd.strip().split(maxsplit=1)
        command = parts[0].lower()
        argument = parts[1].strip() if len(parts) > 1 else None

        if command == "/help":
            self._show_help()
        elif command == "/quit":
            self.running = False
        elif command == "/voices":
            self._show_voices(orchestrator)
        elif command == "/voice":
            if argument:
                self._select_voice(orchestrator, argument)
            else:
                self.console.print("[dim]Usage: /voice <number|name>[/dim]")
        elif command == "/text":
            self._read_text(orchestrator)
        elif command == "/generate":
            await self._generate(orchestrator)
        elif command == "/save":
            self._save(orchestrator, argument)
        elif command == "/status":
            self._show_status(orchestrator)
        else:
            self.console.print(f"[dim]Unknown command {command}; try /help[/dim]")

    async def run(self) -> None:
        """Main loop."""
        async with httpx.AsyncClient(base_url=self.server_url, timeout=120.0) as client:
            orchestrator = StoryVoiceOrchestrator(
                client,
                max_text_length=self.max_text_length,
                on_change=self._on_change,
            )
            async with orchestrator:
                if orchestrator.state.voices:
                    self._show_voices(orchestrator)
                self.console.print(
                    "[bold]Story Voice[/bold] - Type /help for commands, Ctrl+D to exit",
                    style=INFO_STYLE,
                )
                while self.running:
                    try:
                        user_input = Prompt.ask("[bold blue]>[/bold blue]")
                    except EOFError:
                        self.console.print("\n[dim]Goodbye![/dim]")
                        break
                    except KeyboardInterrupt:
                        self.console.print()
                        continue
                    if not user_input.strip():
                        continue
                    if user_input.startswith("/"):
                        await self._handle_command(orchestrator, user_input)
                    else:
                        self.console.print("[dim]Use /text to enter the story[/dim]")


def main() -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Story Voice - Terminal client for the story voice server",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  story-voice                           Connect to localhost:8000
  story-voice --server http://pi:8000   Connect to remote server

Environment Variables:
  STORY_VOICE_SERVER    Default server URL
  MAX_TEXT_LENGTH       Maximum story length (must match the server)
""",
    )
    parser.add_argument(
        "--server",
        "-s",
        default=os.environ.get("STORY_VOICE_SERVER", "http://localhost:8000"),
        help="Server URL (default: http://localhost:8000)",
    )
    parser.add_argument(
        "--output-dir",
        "-o",
        type=Path,
        default=None,
        help="Directory for /save without a path (default: current directory)",
    )
    parser.add_argument(
        "--max-length",
        type=int,
        default=int(os.environ.get("MAX_TEXT_LENGTH", DEFAULT_MAX_TEXT_LENGTH)),
        help="Maximum story length in characters",
    )

    args = parser.parse_args()

    def signal_handler(sig, frame):
        print("\nExiting...")
        sys.exit(0)

    signal.signal(signal.SIGTERM, signal_handler)

    shell = StoryVoiceShell(
        server_url=args.server,
        max_text_length=args.max_length,
        output_dir=args.output_dir,
    )
    try:
        asyncio.run(shell.run())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
