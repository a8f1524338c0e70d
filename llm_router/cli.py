"""Command-line interface for the LLM router"""

from __future__ import annotations

import argparse
import asyncio
import sys

from .config import load_config, setup_logging
from .conversations import ConversationService
from .engine import RoutingEngine
from .errors import ConversationNotFound
from .models import Message
from .storage import SQLiteConversationStore


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="llm-router", description="Route conversation turns to LLM backends"
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--configure", action="store_true", help="Configure API keys")
    parser.add_argument(
        "--list-profiles", action="store_true", help="List model profiles and routes"
    )
    parser.add_argument("--db", help="Path to the conversation database")

    subparsers = parser.add_subparsers(dest="command")

    new = subparsers.add_parser("new", help="Create a conversation")
    new.add_argument("--title", help="Conversation title")
    new.add_argument("--model", "-m", help="Default model profile for the conversation")

    send = subparsers.add_parser("send", help="Send a message and print the reply")
    send.add_argument("conversation_id")
    send.add_argument("text")
    send.add_argument("--model", "-m", help="Override model profile for this turn")

    reply = subparsers.add_parser("reply", help="Generate a reply to the current history")
    reply.add_argument("conversation_id")
    reply.add_argument("--model", "-m", help="Override model profile for this turn")

    history = subparsers.add_parser("history", help="Print a conversation")
    history.add_argument("conversation_id")

    preview = subparsers.add_parser("preview", help="Suggest a model for draft text")
    preview.add_argument("text")
    preview.add_argument("--last-model", help="Model used for the previous reply")

    return parser


def _print_message(message: Message) -> None:
    role = message.role.value if hasattr(message.role, "value") else message.role
    model = f" [{message.model_used}]" if message.model_used else ""
    print(f"\n{role}{model}:")
    print("-" * 60)
    print(message.content)


async def main(argv: list[str] | None = None) -> int:
    """CLI interface for the router"""
    parser = build_parser()
    args = parser.parse_args(argv)

    config = load_config()
    setup_logging(config, verbose=args.verbose)

    if args.configure:
        from .credentials import configure_credentials_interactive

        configure_credentials_interactive()
        return 0

    if args.list_profiles:
        print("\nModel profiles:")
        print("=" * 60)
        for name, route in sorted(config.profiles.routes.items()):
            marker = " (default)" if name == config.default_profile else ""
            print(f"  {name:<22} -> {route.provider_id.value}/{route.backend_model_id}{marker}")
        default = config.profiles.default_route
        print(f"\nUnknown profiles route to {default.provider_id.value}/{default.backend_model_id}")
        return 0

    if not args.command:
        parser.print_help()
        return 0

    store = SQLiteConversationStore(args.db)
    engine = RoutingEngine.from_config(config, store)
    service = ConversationService(store, engine, config.default_profile)

    try:
        if args.command == "new":
            conversation = await service.create_conversation(args.title, args.model)
            print(conversation.id)

        elif args.command == "send":
            try:
                turn = await service.add_message(
                    args.conversation_id, args.text, model_profile=args.model
                )
            except ValueError as e:
                print(f"\nError: {e}")
                return 2
            if turn.assistant_message is None:
                print(f"\nNo reply produced: {turn.error or 'unknown'}")
                return 1
            _print_message(turn.assistant_message)

        elif args.command == "reply":
            message = await service.regenerate_reply(args.conversation_id, args.model)
            if message is None:
                print("\nNo reply produced")
                return 1
            _print_message(message)

        elif args.command == "history":
            for message in await service.list_messages(args.conversation_id):
                _print_message(message)

        elif args.command == "preview":
            result = await service.preview(args.text, args.last_model)
            print(f"Intent: {result.intent.value}")
            print(f"Suggested model: {result.suggested_model}")
            if result.reason:
                print(f"Reason: {result.reason}")

    except ConversationNotFound as e:
        print(f"\nError: {e.message}")
        return 2

    return 0


def run() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    run()
