"""
convollm CLI entry point.

Provides the command-line interface for serving the completion endpoint and
utility commands.
"""

import argparse
import asyncio
import sys
from pathlib import Path

from convollm import __version__
from convollm.components import Components
from convollm.config.logging import get_logger, setup_logging
from convollm.config.settings import Settings, load_settings
from convollm.llm.errors import OrchestrationError
from convollm.llm.models import Message, RequestContext


def create_parser() -> argparse.ArgumentParser:
    """Create and configure argument parser."""
    parser = argparse.ArgumentParser(
        prog="convollm",
        description="Chat-completion service with retrieved context and tool calling "
                    "for conversational AI agents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"convollm {__version__}",
    )

    parser.add_argument(
        "--env-file",
        type=Path,
        default=None,
        help="Path to .env file (default: .env in current directory)",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"],
        default=None,
        help="Override logging level from config",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    # Serve command
    serve_parser = subparsers.add_parser(
        "serve",
        help="Run the HTTP completion endpoint",
    )
    serve_parser.add_argument(
        "--host",
        default=None,
        help="Bind address (default: SERVER__HOST from config)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=None,
        help="Bind port (default: SERVER__PORT from config)",
    )

    # Config command
    subparsers.add_parser(
        "config",
        help="Show current configuration",
    )

    # Ask command
    ask_parser = subparsers.add_parser(
        "ask",
        help="Send one question through the orchestrator and print the answer",
    )
    ask_parser.add_argument(
        "question",
        help='Question to ask, e.g. "What is Agora?"',
    )
    ask_parser.add_argument(
        "--stream",
        action="store_true",
        help="Stream the answer as it is generated",
    )
    ask_parser.add_argument(
        "--app-id",
        default="cli",
        help="App id passed to tools (default: cli)",
    )
    ask_parser.add_argument(
        "--user-id",
        default=None,
        help="User id passed to tools (default: SERVER__DEFAULT_USER_ID)",
    )
    ask_parser.add_argument(
        "--channel",
        default=None,
        help="Channel passed to tools (default: SERVER__DEFAULT_CHANNEL)",
    )
    ask_parser.add_argument(
        "--model",
        default=None,
        help="Model to use (default: LLM__MODEL)",
    )

    return parser


def cmd_config(settings: Settings) -> int:
    """Show current configuration."""
    logger = get_logger(__name__)

    logger.info("\n=== convollm Configuration ===\n")
    logger.info(f"Environment: {settings.environment}")
    logger.info(f"Log Level: {settings.log_level}")
    logger.info(f"Log File: {settings.log_file or 'None (console only)'}")
    logger.info(f"\nLLM Backend: {settings.llm.backend}")
    logger.info(f"LLM Model: {settings.llm.model}")
    logger.info(f"LLM API Key: {'Set' if settings.llm.api_key else 'Not set'}")
    logger.info(f"LLM API Base: {settings.llm.api_base or 'Provider default'}")
    logger.info(f"\nServer: {settings.server.host}:{settings.server.port}")
    logger.info(f"Server Auth Token: {'Set' if settings.server.auth_token else 'Not set'}")
    logger.info(f"CORS Origins: {settings.server.cors_origins}")
    logger.info(f"\nContext Documents: {len(settings.context.documents)} inline")
    logger.info(f"Context Documents File: {settings.context.documents_file or 'None'}")
    logger.info(f"System Template: {settings.context.system_template_path or 'Bundled default'}")
    command = " ".join(settings.tools.mcp_server_command) or "None"
    logger.info(f"\nMCP Tool Server: {command}")

    return 0


def cmd_serve(args, settings: Settings) -> int:
    """Start the HTTP server."""
    logger = get_logger(__name__)

    if not settings.server.auth_token:
        logger.warning(
            "SERVER__AUTH_TOKEN is not set; every completion request will be rejected."
        )
    if not settings.llm.api_key:
        logger.warning(
            "LLM API key not set (LLM__API_KEY). The provider's own environment "
            "variables will be used if present."
        )

    import uvicorn

    from convollm.server import create_app

    host = args.host or settings.server.host
    port = args.port or settings.server.port
    logger.info(f"Starting server on {host}:{port}...")
    # log_config=None: keep our logging setup instead of uvicorn's
    uvicorn.run(create_app(settings), host=host, port=port, log_config=None)
    return 0


async def cmd_ask(args, settings: Settings) -> int:
    """
    Send one question through the full pipeline.

    Uses the same components as the server: context store, configured
    backend and any MCP tools.
    """
    logger = get_logger(__name__)

    context = RequestContext(
        app_id=args.app_id,
        user_id=args.user_id or settings.server.default_user_id,
        channel=args.channel or settings.server.default_channel,
        model=args.model or settings.llm.model,
        stream=args.stream,
    )
    messages = [Message(role="user", content=args.question)]

    try:
        factory = Components(settings)
        async with factory.create_tool_registry() as registry:
            orchestrator = factory.create_orchestrator(registry)
            logger.info(f"Sending to {context.model}...")

            if args.stream:
                chunks = await orchestrator.stream(messages, context)
                finish_reason = None
                async for chunk in chunks:
                    if chunk.content:
                        print(chunk.content, end="", flush=True)
                    finish_reason = chunk.finish_reason or finish_reason
                print()
                if finish_reason == "function_call":
                    # No follow-up was streamed, so the tool was not run
                    print("Model requested an unavailable function")
                return 0

            completion = await orchestrator.complete(messages, context)
            choice = completion.choices[0]
            if choice.finish_reason == "function_call":
                call = choice.message.function_call
                print(f"Model requested unavailable function: {call.name}({call.arguments})")
            else:
                print(choice.message.content)
            return 0

    except OrchestrationError as e:
        print(f"\nError: {e}", file=sys.stderr)
        return 1
    except Exception as e:
        logger.error(f"Ask failed: {e}", exc_info=True)
        return 1


def main() -> int:
    """Main entry point."""
    parser = create_parser()
    args = parser.parse_args()

    # Load settings
    try:
        settings = load_settings(env_file=args.env_file)
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return 1

    # Override log level if specified
    if args.log_level:
        settings.log_level = args.log_level

    # Setup logging
    setup_logging(settings)

    # Execute command
    if args.command == "config":
        return cmd_config(settings)
    elif args.command == "serve":
        return cmd_serve(args, settings)
    elif args.command == "ask":
        return asyncio.run(cmd_ask(args, settings))
    else:
        # Default: show help
        parser.print_help()
        return 0


if __name__ == "__main__":
    sys.exit(main())
