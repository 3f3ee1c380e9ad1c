"""Terminal chat client — talk to the newsdesk backend from a shell.

Usage::

    newsdesk-chat

    # Other backend / HTTP only:
    NEWSDESK_API_BASE_URL=http://localhost:9000 newsdesk-chat
    newsdesk-chat --no-socket

Commands inside the prompt::

    /new [title]      start a new session
    /list             list sessions
    /switch <id>      switch to another session
    /rename <title>   rename the current session
    /delete [id]      delete a session (default: the current one)
    /quit             leave

Loads .env from the current working directory or any parent directory.
"""

import argparse
import asyncio
import logging
import sys
from typing import Optional, TextIO

from newsdesk_chat.chat_config import ChatClientConfig
from newsdesk_chat.chat_coordinator import ChatCoordinator
from newsdesk_chat.chat_models import ChatMessage
from newsdesk_chat.chat_types import SessionError
from newsdesk_chat.session_store import FileCurrentSessionStore

logger = logging.getLogger(__name__)


class TerminalChatCoordinator(ChatCoordinator):
    """ChatCoordinator that renders to a text stream."""

    def __init__(self, *, out: Optional[TextIO] = None, **kwargs):
        super().__init__(**kwargs)
        self.out = out or sys.stdout
        self._streamed_any = False

    def _write(self, text: str) -> None:
        self.out.write(text)
        self.out.flush()

    def _on_response_started(self) -> None:
        self._streamed_any = False
        self._write("assistant> ")

    def _on_text_chunk(self, content: str) -> None:
        self._streamed_any = True
        self._write(content)

    def _on_response_completed(self, message: ChatMessage) -> None:
        # HTTP replies arrive in one piece
        if not self._streamed_any:
            self._write(message.content)
        self._write("\n")
        for index, source in enumerate(message.sources, start=1):
            label = source.title or "News Article"
            outlet = f" ({source.source})" if source.source else ""
            self._write(f"  [{index}] {label}{outlet} {source.url or ''}\n")

    def _on_error(self, message: str) -> None:
        self._write(f"\n! {message}\n")

    def _on_connection_changed(self, connected: bool) -> None:
        self._write(f"\n* {'live streaming' if connected else 'offline, using HTTP'}\n")

    def print_sessions(self) -> None:
        if not self.sessions:
            self._write("No chat sessions yet\n")
        for session in self.sessions:
            marker = "*" if session.id == self.current_session_id else " "
            self._write(f"{marker} {session.id}  {session.title}  ({session.message_count} messages)\n")

    def print_history(self) -> None:
        for message in self.messages:
            self._write(f"{message.role.value}> {message.content}\n")

    async def handle_line(self, line: str) -> bool:
        """Run one prompt line. Returns False when the user wants to quit."""
        line = line.strip()
        if not line:
            return True
        if not line.startswith("/"):
            if not self.current_session_id:
                await self.reset_session()
            await self.send_message(line)
            return True

        command, _, argument = line.partition(" ")
        argument = argument.strip()
        if command == "/quit":
            return False
        if command == "/new":
            try:
                session = await self.create_session(argument or None)
                self._write(f"Started {session.id}\n")
            except SessionError:
                pass
        elif command == "/list":
            await self.load_sessions()
            self.print_sessions()
        elif command == "/switch" and argument:
            await self.select_session(argument)
            self.print_history()
        elif command == "/rename" and argument and self.current_session_id:
            try:
                await self.rename_session(self.current_session_id, argument)
            except SessionError:
                pass
        elif command == "/delete":
            target = argument or self.current_session_id
            if target and await self.delete_session(target):
                self._write(f"Deleted {target}\n")
        else:
            self._write(__doc__.split("Commands inside the prompt::")[1].split("Loads .env")[0])
        return True


async def run(config: ChatClientConfig, use_socket: bool = True) -> None:
    chat = TerminalChatCoordinator(config=config, store=FileCurrentSessionStore(config.resolved_state_file()))
    await chat.start(connect=use_socket)
    chat.print_sessions()
    if chat.messages:
        chat.print_history()
    try:
        while True:
            line = await asyncio.to_thread(input, "you> ")
            if not await chat.handle_line(line):
                break
            chat.clear_error()
    except (EOFError, KeyboardInterrupt):
        pass
    finally:
        await chat.close()


def main():
    """Load .env, configure logging and start the prompt loop."""
    from dotenv import load_dotenv, find_dotenv
    load_dotenv(find_dotenv(usecwd=True))

    parser = argparse.ArgumentParser(description="Terminal client for the newsdesk chat backend")
    parser.add_argument("--no-socket", action="store_true", help="never open the push channel")
    parser.add_argument("--verbose", action="store_true", help="log debug output")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )

    asyncio.run(run(ChatClientConfig.from_env(), use_socket=not args.no_socket))


if __name__ == "__main__":
    main()
