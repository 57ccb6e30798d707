"""
Main application entry point - console chat with logging configured from YAML.
"""

from __future__ import annotations

import asyncio
import logging
import sys
from typing import Any

from src.chat.chat_orchestrator import ChatOrchestrator
from src.chat.logging_utils import set_module_features
from src.config import Configuration
from src.errors import LLMChatError

# Module-to-logger mapping
MODULE_LOGGER_MAP: dict[str, dict[str, Any]] = {
    "chat": {
        "loggers": ["src.chat", "src.services"],
        "default_level": "INFO",
        "features": ["llm_replies"],
    },
    "clients": {
        "loggers": ["src.clients"],
        "default_level": "WARNING",
        "features": ["http_requests"],
    },
    "usage": {
        "loggers": ["src.usage"],
        "default_level": "INFO",
        "features": ["usage_stats"],
    },
}

_LEVEL_MAP = {
    "DEBUG": logging.DEBUG,
    "INFO": logging.INFO,
    "WARNING": logging.WARNING,
    "ERROR": logging.ERROR,
    "CRITICAL": logging.CRITICAL,
}

HELP_TEXT = """Commands:
  /model NAME    switch the active model or deployment
  /system TEXT   replace the system prompt
  /clear         start a new conversation (history and stats)
  /stats         show token usage, cost and latency
  /quit          exit"""


def configure_logging(logging_config: dict[str, Any]) -> None:
    """
    Logging configuration with hierarchical loggers and feature control.

    Sets the global level, per-module levels on parent loggers (children
    inherit) and the feature flags checked by ``should_log_feature``.
    """
    global_level = str(logging_config.get("level", "WARNING")).upper()
    root = logging.getLogger()
    root.setLevel(_LEVEL_MAP.get(global_level, logging.WARNING))

    if "format" in logging_config:
        for handler in root.handlers:
            if isinstance(handler, logging.StreamHandler):
                handler.setFormatter(logging.Formatter(logging_config["format"]))

    modules_config = logging_config.get("modules", {}) or {}
    for module_name, module_config in modules_config.items():
        if not isinstance(module_config, dict):
            continue

        mapping = MODULE_LOGGER_MAP.get(module_name, {})
        module_level = str(module_config.get("level", mapping.get("default_level", global_level))).upper()
        level_value = _LEVEL_MAP.get(module_level, logging.WARNING)

        for logger_name in mapping.get("loggers", []):
            logging.getLogger(logger_name).setLevel(level_value)

        set_module_features(module_name, module_config.get("enable_features", {}) or {})


def _format_stats(orchestrator: ChatOrchestrator) -> str:
    usage = orchestrator.usage
    return (
        f"Model: {usage.last_used_model or orchestrator.model} | "
        f"In: {usage.input_tokens} | Out: {usage.output_tokens} | "
        f"Cost: ${usage.total_cost:.4f} | Requests: {usage.request_count} | "
        f"Avg latency: {usage.average_latency_seconds:.1f}s"
    )


async def _handle_command(orchestrator: ChatOrchestrator, line: str) -> bool:
    """Run a slash command. Returns False when the loop should stop."""
    command, _, argument = line.partition(" ")
    argument = argument.strip()

    if command in ("/quit", "/exit"):
        return False
    if command == "/model":
        await orchestrator.switch_model(argument)
        print(f"Active model: {orchestrator.model}")
    elif command == "/system":
        if argument:
            orchestrator.set_system_prompt(argument)
        print(f"System prompt: {orchestrator.system_prompt}")
    elif command == "/clear":
        await orchestrator.clear_history()
        print("Conversation cleared.")
    elif command == "/stats":
        print(_format_stats(orchestrator))
    else:
        print(HELP_TEXT)
    return True


async def main() -> None:
    """Main entry point - line-based chat loop on stdin/stdout."""
    config = Configuration()
    configure_logging(config.get_logging_config())

    settings = config.get_provider_settings()
    system_prompt = config.get_system_prompt()

    orchestrator = (
        ChatOrchestrator(settings, system_prompt=system_prompt)
        if system_prompt
        else ChatOrchestrator(settings)
    )

    async with orchestrator:
        print(f"Chatting with {orchestrator.model}. Type /help for commands.")
        while True:
            try:
                line = (await asyncio.to_thread(input, "> ")).strip()
            except EOFError:
                break
            if not line:
                continue
            if line.startswith("/"):
                if not await _handle_command(orchestrator, line):
                    break
                continue

            try:
                reply = await orchestrator.send_message(line)
            except LLMChatError as e:
                # Already logged by the orchestrator; keep the session alive
                print(f"[error] {e}")
                continue
            print(reply)

    logging.info("Application shutdown complete")


# Configure logging for the application
logging.basicConfig(level=logging.INFO, format="%(asctime)s - %(levelname)s - %(message)s")


def cli_main() -> None:
    """Synchronous CLI entrypoint that runs the async main."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logging.info("Keyboard interrupt received, shutting down...")
    except LLMChatError as e:
        logging.error(f"Application error: {e}")
        sys.exit(1)


if __name__ == "__main__":
    cli_main()
