import argparse
import asyncio
import sys

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from api.anthropic_client import AnthropicChatClient
from config.config import Config
from orchestrator.errors import FallbackFailedError
from orchestrator.fallback_orchestrator import FallbackOrchestrator
from orchestrator.model_catalog import ModelCatalog


def initialize_orchestrator(config: Config) -> tuple[FallbackOrchestrator, ModelCatalog]:
    """
    Build the fallback orchestrator from environment configuration.

    Raises:
        ValueError: If required environment variables are missing or the ladder is invalid
    """
    problems = config.validate()
    if problems:
        raise ValueError("; ".join(problems))

    catalog = config.load_catalog()
    fallback_config = config.fallback_config(catalog)
    client = AnthropicChatClient(
        api_key=config.ANTHROPIC_API_KEY,
        base_url=config.ANTHROPIC_BASE_URL,
        default_system_prompt=config.DEFAULT_SYSTEM_PROMPT,
    )
    orchestrator = FallbackOrchestrator(
        client,
        config=fallback_config,
        catalog=catalog,
        default_model=config.default_model(catalog, fallback_config),
    )
    print(
        f"Initialized Claude client, ladder: {' -> '.join(fallback_config.ladder)} "
        f"(timeout {fallback_config.timeout_ms}ms, {fallback_config.max_attempts} attempts)"
    )
    return orchestrator, catalog


def print_help() -> None:
    print("\n=== Available Commands ===")
    print("help          - Show this help message")
    print("models        - List models in the fallback ladder")
    print("model <id>    - Start future requests from another ladder model")
    print("clear         - Forget the conversation so far")
    print("exit/quit     - Exit the program\n")


async def stream_reply(
    orchestrator: FallbackOrchestrator,
    catalog: ModelCatalog,
    history: list[dict[str, str]],
    model: str | None,
) -> str | None:
    """Stream one reply to stdout; returns the full text, or None on failure."""
    parts: list[str] = []
    sys.stdout.write("\nAI: ")
    async for event in orchestrator.generate_stream(history, starting_model=model):
        if event.type == "fallback":
            sys.stdout.write(f"\033[93m[{catalog.explain_fallback(event.fallback)}]\033[0m\n    ")
        elif event.type == "content":
            parts.append(event.content)
            sys.stdout.write(event.content)
        elif event.type == "error":
            sys.stdout.write(f"\nError: {event.error}\n\n")
            return None
        sys.stdout.flush()
    sys.stdout.write("\n\n")
    return "".join(parts)


async def reply_once(
    orchestrator: FallbackOrchestrator,
    catalog: ModelCatalog,
    history: list[dict[str, str]],
    model: str | None,
) -> str | None:
    try:
        result = await orchestrator.generate(history, starting_model=model)
    except FallbackFailedError as e:
        print(f"\nError: {e} (after {e.attempts} attempt(s))\n")
        return None
    if result.fallback:
        print(f"\033[93m[{catalog.explain_fallback(result.fallback)}]\033[0m")
    print(f"\nAI: {result.text}")
    print(f"[{result.model} | tokens: {result.token_usage.total_tokens}]\n")
    return result.text


async def chat_loop(stream: bool) -> None:
    orchestrator, catalog = initialize_orchestrator(Config())
    history: list[dict[str, str]] = []
    model: str | None = None

    print("\n=== Duckline Chat ===")
    print("Type 'exit' to quit or 'help' for commands\n")

    try:
        while True:
            try:
                user_input = (await asyncio.to_thread(input, "You: ")).strip()
            except EOFError:
                break

            if not user_input:
                continue

            command = user_input.lower()
            if command in ("exit", "quit"):
                print("\nGoodbye!")
                break
            if command == "help":
                print_help()
                continue
            if command == "clear":
                history.clear()
                print("Conversation cleared.\n")
                continue
            if command == "models":
                print("\n=== Fallback Ladder ===")
                current = model or orchestrator.default_model
                for model_id in orchestrator.config.ladder:
                    prefix = "* " if model_id == current else "  "
                    print(f"{prefix}{model_id} ({catalog.display_name(model_id)})")
                print("* = starting model\n")
                continue
            if command.startswith("model "):
                candidate = user_input.split(maxsplit=1)[1].strip()
                if orchestrator.config.contains(candidate):
                    model = candidate
                    print(f"Starting model set to {catalog.display_name(candidate)}\n")
                else:
                    print(f"Unknown model: {candidate}. Use 'models' to list options.\n")
                continue

            history.append({"role": "user", "content": user_input})
            responder = stream_reply if stream else reply_once
            text = await responder(orchestrator, catalog, history, model)
            if text is None:
                history.pop()
            else:
                history.append({"role": "assistant", "content": text})
    finally:
        await orchestrator.client.close()


def main():
    parser = argparse.ArgumentParser(description="Duckline interactive chat")
    parser.add_argument(
        "--no-stream", action="store_true", help="Wait for full replies instead of streaming"
    )
    args = parser.parse_args()

    try:
        asyncio.run(chat_loop(stream=not args.no_stream))
    except KeyboardInterrupt:
        print("\nExiting...")
    except ValueError as e:
        print(f"Error initializing client: {e}")


if __name__ == "__main__":
    main()
