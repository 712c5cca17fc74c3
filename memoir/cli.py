"""Interactive shell for chatting with a memory-backed assistant.

Usage:
    memoir
    memoir --backend faiss --log-level DEBUG
    python -m memoir --env-file ./local.env
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import Callable, Optional, Sequence, TextIO

from memoir.config import BACKENDS, load_settings
from memoir.engine import MemoryEngine, build_engine
from memoir.utils.exceptions import MemoirError, failure_status
from memoir.utils.logging_utils import configure_logging

logger = logging.getLogger(__name__)

HELP_TEXT = """
=== Available Commands ===
  Normal text       - Chat with AI
  memories          - Show all stored memory chunks
  process           - Process summaries into chunks and store in vector DB
  cache             - Show current conversation cache
  summaries         - Show collected summaries
  clear             - Clear all memories from vector database
  help              - Show this help message
  exit              - Quit the application
==========================
"""

FAILURE_MESSAGES = {
    "authentication": "Authentication failed. Please check your OPENAI_API_KEY in .env file",
    "rate_limit": "Rate limit exceeded. Please try again later.",
}
GENERIC_FAILURE = "Sorry, I encountered an error processing your message."


class MemoryShell:
    """Line-oriented command loop around a :class:`MemoryEngine`."""

    def __init__(
        self,
        engine: MemoryEngine,
        *,
        read_line: Callable[[str], str] = input,
        out: TextIO = sys.stdout,
    ) -> None:
        self.engine = engine
        self._read_line = read_line
        self._out = out

    def _print(self, text: str = "") -> None:
        self._out.write(f"{text}\n")

    def run(self) -> int:
        self._print('Type "help" for available commands\n')
        while True:
            try:
                line = self._read_line("> ")
            except (EOFError, KeyboardInterrupt):
                self._print("\nGoodbye!")
                return 0
            if not self.handle(line):
                return 0

    def handle(self, line: str) -> bool:
        """Run one input line; returns ``False`` when the shell should exit."""

        text = line.strip()
        if not text:
            return True
        command = text.lower()
        if command in ("exit", "quit"):
            self._print("Goodbye!")
            return False

        handlers = {
            "help": self.show_help,
            "cache": self.show_cache,
            "summaries": self.show_summary,
            "memories": self.show_memories,
            "process": self.process,
            "clear": self.clear,
        }
        handler = handlers.get(command)
        try:
            if handler is not None:
                handler()
            else:
                self.chat(text)
        except MemoirError as exc:
            logger.error("Command failed", extra={"command": command, "error": str(exc)})
            self._print(FAILURE_MESSAGES.get(failure_status(exc), GENERIC_FAILURE))
        return True

    def show_help(self) -> None:
        self._print(HELP_TEXT)

    def show_cache(self) -> None:
        self._print("\n=== Conversation Cache ===")
        turns = self.engine.buffer.turns
        if not turns:
            self._print("Cache is empty")
        for index, turn in enumerate(turns, start=1):
            self._print(f"{index}. [{turn.role}] {turn.content}")
        self._print(f"Total: {len(turns)} messages\n")

    def show_summary(self) -> None:
        self._print("\n=== Current Summary ===")
        self._print(self.engine.summary or "No summary yet")
        self._print()

    def show_memories(self) -> None:
        self._print("\n=== Stored Memories ===")
        memories = self.engine.memories()
        if not memories:
            self._print("No memories stored yet")
        for index, memory in enumerate(memories, start=1):
            self._print(f"\nMemory {index}:")
            self._print(f"  Narrative: {memory.narrative}")
            if memory.metadata:
                self._print(f"  Metadata: {json.dumps(dict(memory.metadata), indent=2)}")
        self._print(f"\nTotal: {len(memories)} memories\n")

    def process(self) -> None:
        outcome = self.engine.process()
        if outcome.status == "empty":
            self._print("\nNo conversation to process\n")
        elif outcome.status == "no_chunks":
            self._print("No chunks created\n")
        else:
            self._print(f"Created {len(outcome.chunks)} narrative chunks")
            self._print("Stored in vector database")
            self._print("Summary and cache cleared.\n")

    def clear(self) -> None:
        self._print("\nThis will delete ALL memories from the vector database.")
        self._print('Type "confirm" to proceed or anything else to cancel:')
        try:
            confirmation = self._read_line("")
        except (EOFError, KeyboardInterrupt):
            confirmation = ""
        if confirmation.strip().lower() != "confirm":
            self._print("\nCancelled. No memories were deleted.\n")
            return
        deleted = self.engine.clear_memories()
        self._print(f"\nDatabase cleared. {deleted} memories deleted.\n")

    def chat(self, text: str) -> None:
        result = self.engine.chat(text)
        if result.query != text:
            self._print(f'[Reformulated query: "{result.query}"]')
        if result.memories:
            self._print(f"Found {len(result.memories)} relevant memories:")
            for index, memory in enumerate(result.memories, start=1):
                self._print(f"  {index}. {memory.narrative}")
        else:
            self._print("No relevant memories found.")
        self._print(f"\nAI: {result.reply}\n")
        if result.rotated:
            self._print("[Conversation summarized and cache reset]\n")
        if result.rotation_error is not None:
            self._print("[Could not summarize conversation; history kept for the next attempt]\n")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="memoir", description="Chat with an assistant that keeps long-term memory."
    )
    parser.add_argument("--backend", choices=BACKENDS, help="Vector backend to use")
    parser.add_argument("--log-level", help="Logging level (default from MEMOIR_LOG_LEVEL)")
    parser.add_argument("--env-file", help="Path to a .env file to load")
    return parser


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        settings = load_settings(args.env_file)
        if args.backend:
            settings.backend = args.backend
        if args.log_level:
            settings.log_level = args.log_level
        settings.validate()
        configure_logging(level=settings.log_level_value)
        engine = build_engine(settings)
    except MemoirError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    print("\n====================================")
    print("  AI Memory with Vector Database")
    print("====================================\n")
    return MemoryShell(engine).run()


__all__ = ["MemoryShell", "build_parser", "main"]
