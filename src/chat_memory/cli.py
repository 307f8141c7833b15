"""Command-line access to conversations stored on disk."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from typing import List, Optional

from .config import ChatMemoryConfig, build_config, load_config
from .disk import DiskChatMemoryRepository
from .errors import ChatMemoryError, ConfigurationError
from .memory import DEFAULT_CONVERSATION_ID, MessageWindowChatMemory
from .messages import Message, MessageType

logger = logging.getLogger("chat_memory.cli")

_ID_HELP = f"Conversation id (default: {DEFAULT_CONVERSATION_ID!r})."


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="chat-memory",
        description="Inspect and edit windowed chat memory stored on disk.",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to a YAML config file.")
    parser.add_argument("--data-dir", type=str, default=None, help="Override memory.data_dir.")
    parser.add_argument("--max-messages", type=int, default=None, help="Override memory.max_messages.")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging.")

    sub = parser.add_subparsers(dest="command", required=True)
    sub.add_parser("list", help="List conversation ids.")

    show = sub.add_parser("show", help="Print a conversation.")
    show.add_argument("conversation_id", nargs="?", default=DEFAULT_CONVERSATION_ID, help=_ID_HELP)
    show.add_argument("--json", action="store_true", help="Print messages as JSON.")

    add = sub.add_parser("add", help="Append one message to a conversation.")
    add.add_argument("conversation_id", nargs="?", default=DEFAULT_CONVERSATION_ID, help=_ID_HELP)
    add.add_argument("role", choices=[t.value for t in MessageType if t is not MessageType.TOOL])
    add.add_argument("text")

    clear = sub.add_parser("clear", help="Delete a conversation.")
    clear.add_argument("conversation_id", nargs="?", default=DEFAULT_CONVERSATION_ID, help=_ID_HELP)
    return parser


def _resolve_config(args: argparse.Namespace) -> ChatMemoryConfig:
    base = build_config(load_config(args.config))
    return ChatMemoryConfig(
        max_messages=args.max_messages if args.max_messages is not None else base.max_messages,
        repository="disk",
        data_dir=args.data_dir or base.data_dir,
    )


def _format(message: Message) -> str:
    if message.message_type is MessageType.TOOL:
        body = "; ".join(f"{r.name}={r.response_data}" for r in message.tool_responses)
    else:
        body = message.content
        if message.tool_calls:
            calls = ", ".join(f"{c.name}({c.arguments})" for c in message.tool_calls)
            body = f"{body} [tool calls: {calls}]".strip()
    return f"{message.message_type.value}: {body}"


def main(argv: Optional[List[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.WARNING)

    try:
        cfg = _resolve_config(args)
        memory = MessageWindowChatMemory(
            DiskChatMemoryRepository(cfg.data_dir),
            max_messages=cfg.max_messages,
        )
    except ConfigurationError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except OSError as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1

    try:
        if args.command == "list":
            for cid in memory.conversation_ids():
                print(cid)
        elif args.command == "show":
            messages = memory.get(args.conversation_id)
            if args.json:
                print(json.dumps([m.to_dict() for m in messages], ensure_ascii=False, indent=2))
            else:
                for m in messages:
                    print(_format(m))
        elif args.command == "add":
            memory.add(args.conversation_id, Message(message_type=MessageType(args.role), content=args.text))
        elif args.command == "clear":
            memory.clear(args.conversation_id)
    except ValueError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2
    except (ChatMemoryError, OSError) as e:
        logger.error("%s", e)
        print(f"error: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
