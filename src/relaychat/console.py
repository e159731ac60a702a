"""
Terminal front end for the chat relay.

Streams replies as they arrive and exposes the conversation list, model
picker, ratings, regeneration and export as slash commands.
"""

from __future__ import annotations

import asyncio
import sys
from typing import TextIO

import httpx

from relaychat.chat_service import ChatService, NotifyVariant
from relaychat.config import Configuration
from relaychat.history.models import Conversation, Turn
from relaychat.llm.models import ModelOption

HELP_TEXT = """\
Commands:
  /new              start a new chat
  /list             list chats
  /switch <n>       switch to chat number n
  /delete [n]       delete chat n (default: current)
  /regen            regenerate the last response
  /export [dir]     export the current chat as JSON
  /models           list available models
  /model [id|n]     show or select the model
  /rate up|down     rate the last response
  /help             show this help
  /quit             exit"""


class ConsoleUI:
    """Renders service callbacks and dispatches commands."""

    def __init__(
        self,
        models: list[ModelOption],
        out: TextIO | None = None,
    ) -> None:
        self.models = models
        self.out = out or sys.stdout
        self.service: ChatService | None = None
        self._printed = 0

    def attach(self, service: ChatService) -> None:
        self.service = service

    # Callbacks ---------------------------------------------------------

    def on_update(self, transcript: str) -> None:
        if self._printed == 0:
            self.out.write("assistant> ")
        self.out.write(transcript[self._printed:])
        self.out.flush()
        self._printed = len(transcript)

    def on_notify(self, title: str, description: str, variant: NotifyVariant) -> None:
        marker = "!" if variant == "destructive" else "*"
        suffix = f": {description}" if description else ""
        self.out.write(f"[{marker}] {title}{suffix}\n")

    def write(self, text: str) -> None:
        self.out.write(text + "\n")

    # Commands ----------------------------------------------------------

    def _conversation_at(self, index_text: str) -> Conversation | None:
        assert self.service is not None
        conversations = self.service.state.conversations
        try:
            index = int(index_text) - 1
        except ValueError:
            return None
        if 0 <= index < len(conversations):
            return conversations[index]
        return None

    def _resolve_model(self, arg: str) -> str | None:
        if arg.isdigit():
            index = int(arg) - 1
            if 0 <= index < len(self.models):
                return self.models[index].id
            return None
        if any(option.id == arg for option in self.models):
            return arg
        return None

    def _model_label(self, model_id: str) -> str:
        for option in self.models:
            if option.id == model_id:
                return f"{option.name} ({option.short_name})"
        return model_id

    async def handle(self, line: str) -> bool:
        """Process one input line. Returns False when the user quits."""
        assert self.service is not None
        service = self.service
        command, _, arg = line.strip().partition(" ")
        arg = arg.strip()

        if not command.startswith("/"):
            await self._send(line)
            return True

        if command in ("/quit", "/exit"):
            return False
        if command == "/help":
            self.write(HELP_TEXT)
        elif command == "/new":
            service.new_conversation()
            self.write("Started a new chat")
        elif command == "/list":
            active = service.state.active_id
            for number, conversation in enumerate(service.state.conversations, 1):
                marker = ">" if conversation.id == active else " "
                self.write(f"{marker} {number}. {conversation.title}")
        elif command == "/switch":
            conversation = self._conversation_at(arg)
            if conversation is None:
                self.write("No such chat")
            else:
                service.select_conversation(conversation.id)
                self.write(f"Switched to: {conversation.title}")
                for turn in conversation.turns:
                    self.write(f"{turn.role}> {turn.content}")
        elif command == "/delete":
            conversation = (
                self._conversation_at(arg) if arg else service.state.active
            )
            if conversation is None:
                self.write("No such chat")
            else:
                service.delete_conversation(conversation.id)
        elif command == "/regen":
            self._printed = 0
            turn = await service.regenerate()
            self._finish(turn)
        elif command == "/export":
            path = service.export_active(arg or ".")
            if path:
                self.write(f"Saved {path}")
        elif command == "/models":
            for number, option in enumerate(self.models, 1):
                marker = ">" if option.id == service.state.selected_model else " "
                self.write(f"{marker} {number}. {option.name}: {option.description}")
        elif command == "/model":
            if not arg:
                self.write(self._model_label(service.state.selected_model))
            else:
                model_id = self._resolve_model(arg)
                if model_id is None:
                    self.write("Unknown model")
                elif service.select_model(model_id):
                    self.write(f"Model: {self._model_label(model_id)}")
        elif command == "/rate":
            self._rate(arg)
        else:
            self.write(f"Unknown command {command}, try /help")
        return True

    def _rate(self, arg: str) -> None:
        assert self.service is not None
        if arg not in ("up", "down"):
            self.write("Usage: /rate up|down")
            return
        conversation = self.service.state.active
        last = conversation.last_turn if conversation else None
        if last is None or last.role != "assistant":
            self.write("Nothing to rate")
            return
        self.service.rate_turn(last.id, arg)

    async def _send(self, text: str) -> None:
        assert self.service is not None
        self._printed = 0
        turn = await self.service.send_message(text)
        self._finish(turn)

    def _finish(self, turn: Turn | None) -> None:
        if turn is None:
            return
        streamed_all = self._printed and self._printed == len(turn.content)
        if self._printed:
            self.out.write("\n")
        if not streamed_all:
            # fallback or error turn
            self.out.write(f"assistant> {turn.content}\n")
        self._printed = 0


async def run(configuration: Configuration) -> None:
    """Interactive loop against a running relay."""
    relay_url = configuration.get_chat_config()["relay_url"]
    ui = ConsoleUI(configuration.get_model_options())

    async with httpx.AsyncClient(base_url=relay_url, timeout=None) as http_client:
        service = ChatService.from_configuration(
            configuration,
            http_client,
            on_update=ui.on_update,
            on_notify=ui.on_notify,
        )
        ui.attach(service)
        service.ensure_conversation()
        ui.write(f"Connected to {relay_url}. Type /help for commands.")

        while True:
            try:
                line = await asyncio.to_thread(input, "you> ")
            except EOFError:
                break
            if not line.strip():
                continue
            if not await ui.handle(line):
                break
