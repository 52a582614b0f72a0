"""CLI entry point for idphoto.

This module acts as the central entry point for the project's CLI tools.
It parses the command and delegates to the matching handler.
"""

import argparse
import mimetypes
import sys
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from pathlib import Path

from dotenv import load_dotenv

from idphoto.config import (
    EnvVar,
    get_available_providers,
    get_environment,
    get_environment_info,
    get_window_ms,
    list_environment_variables,
)
from idphoto.core import get_logger, setup_logging

logger = get_logger("cli")

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_QUOTA = 2

_SECRET_VARS = (EnvVar.GOOGLE_API_KEY, EnvVar.OPENAI_API_KEY)


def _create_limiter(state: Path | None):
    """Build the persisted sliding-window limiter from configuration."""
    from idphoto.quota import RateLimiter
    from idphoto.storage import create_store

    store = create_store(state)
    return RateLimiter(
        store,
        max_generations=get_environment(EnvVar.RATE_LIMIT_MAX),
        window_ms=get_window_ms(),
    )


# =============================================================================
# Generate Command
# =============================================================================


def _status_line(seconds_left: int) -> None:
    if seconds_left > 0:
        text = f"Estimated time left: {seconds_left}s"
    else:
        text = "Still processing, almost done..."
    sys.stderr.write(f"\r{text:<40}")
    sys.stderr.flush()


def _wait_for_session(future, orchestrator):
    """Wait for a session result, turning Ctrl+C into a cancellation request.

    An interrupt that lands before the session reaches loading is kept and
    applied as soon as the session starts.
    """
    cancel_pending = False
    while True:
        try:
            return future.result(timeout=0.1 if cancel_pending else None)
        except FutureTimeoutError:
            interrupted = False
        except KeyboardInterrupt:
            interrupted = True

        if orchestrator.cancel():
            cancel_pending = False
            logger.warning("Cancelling; waiting for the current attempt to finish")
        elif interrupted and not cancel_pending:
            cancel_pending = True
            logger.warning("Session not started yet; cancelling once it starts")


def _run_session(orchestrator, kind, estimate):
    """Run one session on a worker thread so Ctrl+C can request cancellation."""
    if estimate is not None:
        estimate.start()

    with ThreadPoolExecutor(max_workers=1, thread_name_prefix="generation") as pool:
        future = pool.submit(orchestrator.request_generation, kind)
        try:
            return _wait_for_session(future, orchestrator)
        finally:
            if estimate is not None:
                estimate.stop()
                sys.stderr.write("\n")


def _variant_path(output: Path, index: int) -> Path:
    return output.with_name(f"{output.stem}-{index}{output.suffix}")


def cmd_generate(args: argparse.Namespace) -> int:
    """Handle the generate command."""
    from idphoto.llm import GeneratorConfig, create_image_backend
    from idphoto.orchestrator import GenerationKind, Orchestrator
    from idphoto.prompt import PromptConfig
    from idphoto.quota import EstimateCountdown, QuotaExceededError, format_remaining

    image_path: Path = args.image
    if not image_path.is_file():
        logger.error(f"Image not found: {image_path}")
        return EXIT_FAILED

    mime_type = mimetypes.guess_type(image_path.name)[0] or "application/octet-stream"
    output: Path = args.output or image_path.with_name(
        f"{image_path.stem}-idphoto.png"
    )

    try:
        backend = create_image_backend(
            args.provider,
            model=args.model,
            api_key=args.api_key,
        )
        orchestrator = Orchestrator(
            backend,
            _create_limiter(args.state),
            generator_config=GeneratorConfig(
                max_attempts=get_environment(
                    EnvVar.MAX_ATTEMPTS, override=args.attempts
                )
            ),
            prompt_config=PromptConfig(
                expression=args.expression,
                remove_glasses=args.remove_glasses,
                cartoon_mode=args.cartoon,
                cartoon_description=args.cartoon_description,
            ),
            on_validating=lambda: logger.info("Verifying likeness..."),
        )
        orchestrator.load_source(image_path.read_bytes(), mime_type)
    except Exception as e:
        logger.error(f"Setup failed: {e}")
        return EXIT_FAILED

    logger.info(f"Using {backend.name}")
    estimate = EstimateCountdown(_status_line) if sys.stderr.isatty() else None
    kinds = [GenerationKind.GENERATE] + [GenerationKind.REGENERATE] * args.regenerate

    for index, kind in enumerate(kinds):
        try:
            session = _run_session(orchestrator, kind, estimate)
        except QuotaExceededError as e:
            remaining = orchestrator.quota().remaining_ms or 0
            logger.error(f"{e}. Next slot in {format_remaining(remaining)}")
            return EXIT_QUOTA

        if session.terminated:
            logger.warning("Generation terminated")
            return EXIT_FAILED
        if not session.succeeded:
            logger.error(
                f"No acceptable image after {session.attempts_made} attempt(s) "
                f"(failures this photo: {orchestrator.failure_count})"
            )
            if kind == GenerationKind.GENERATE:
                return EXIT_FAILED
            continue

        target = output if index == 0 else _variant_path(output, index)
        target.write_bytes(session.image)
        print(target)

    usage = orchestrator.quota()
    logger.info(f"Quota used: {usage.used}/{usage.limit}")
    return EXIT_OK


def handle_generate_command(argv: list[str]) -> int:
    """Handle generate-specific commands."""
    parser = argparse.ArgumentParser(
        prog="idphoto generate",
        description="Turn a photo into a studio-style ID photo",
    )
    parser.add_argument("image", type=Path, help="Source photo")
    parser.add_argument(
        "--output",
        "-o",
        type=Path,
        default=None,
        help="Output file (default: <image>-idphoto.png)",
    )
    parser.add_argument(
        "--expression",
        "-e",
        type=str,
        default="preserve",
        help="'preserve' or a phrase such as 'a gentle smile' (default: preserve)",
    )
    parser.add_argument(
        "--remove-glasses",
        action="store_true",
        help="Remove glasses from the result",
    )
    parser.add_argument(
        "--cartoon",
        action="store_true",
        help="Treat the source as a cartoon character (skips likeness check)",
    )
    parser.add_argument(
        "--cartoon-description",
        type=str,
        default="",
        help="Hint identifying the cartoon character",
    )
    parser.add_argument(
        "--regenerate",
        type=int,
        default=0,
        metavar="N",
        help="Extra variants to request after a successful generation",
    )
    parser.add_argument(
        "--attempts",
        type=int,
        default=None,
        help="Attempt budget per session (default: IDPHOTO_MAX_ATTEMPTS or 5)",
    )
    parser.add_argument(
        "--provider",
        "-p",
        type=str,
        default=None,
        choices=["google", "openai"],
        help="Image provider (default: IDPHOTO_PROVIDER or google)",
    )
    parser.add_argument(
        "--model",
        "-m",
        type=str,
        default=None,
        help="Image model name (e.g. gemini-2.5-flash-image-preview, gpt-image-1)",
    )
    parser.add_argument(
        "--api-key",
        "-k",
        type=str,
        default=None,
        help="API key (uses env var if not provided)",
    )
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        help="Quota state database (default: IDPHOTO_STATE_PATH)",
    )

    if not argv:
        parser.print_help()
        return EXIT_FAILED

    return cmd_generate(parser.parse_args(argv))


# =============================================================================
# Quota Command
# =============================================================================


def _print_usage(usage) -> None:
    from idphoto.quota import format_remaining

    line = f"Generations: {usage.used}/{usage.limit}"
    if usage.remaining_ms is not None:
        line += f" (next slot in {format_remaining(usage.remaining_ms)})"
    print(line)


def cmd_quota(args: argparse.Namespace) -> int:
    """Handle the quota command."""
    from idphoto.quota import ExpiryCountdown, format_remaining

    limiter = _create_limiter(args.state)
    limiter.load()
    _print_usage(limiter.usage())

    if not args.watch:
        return EXIT_OK

    done = threading.Event()
    countdown = ExpiryCountdown(
        limiter,
        on_tick=lambda ms: print(f"\rNext slot in {format_remaining(ms)}", end=""),
        on_expire=lambda: print("\nA generation slot is available"),
        on_idle=done.set,
    )
    countdown.start()
    try:
        while not done.wait(0.5):
            pass
    except KeyboardInterrupt:
        print()
    finally:
        countdown.stop()

    _print_usage(limiter.usage())
    return EXIT_OK


def handle_quota_command(argv: list[str]) -> int:
    """Handle quota-specific commands."""
    parser = argparse.ArgumentParser(
        prog="idphoto quota",
        description="Show generation quota usage",
    )
    parser.add_argument(
        "--watch",
        "-w",
        action="store_true",
        help="Count down until every slot is free",
    )
    parser.add_argument(
        "--state",
        type=Path,
        default=None,
        help="Quota state database (default: IDPHOTO_STATE_PATH)",
    )
    return cmd_quota(parser.parse_args(argv))


# =============================================================================
# Env Command
# =============================================================================


def handle_env_command(argv: list[str]) -> int:
    """Show configuration variables and their resolved values."""
    parser = argparse.ArgumentParser(
        prog="idphoto env",
        description="Show environment configuration",
    )
    parser.add_argument(
        "--category",
        "-c",
        type=str,
        default=None,
        help="Only show one category (provider, quota, generation, storage, logging)",
    )
    args = parser.parse_args(argv)

    current = None
    for var in list_environment_variables(args.category):
        info = get_environment_info(var)
        if info.category != current:
            current = info.category
            print(f"\n[{current}]")
        value = get_environment(var)
        if var in _SECRET_VARS and value:
            value = "set"
        print(f"  {info.name:<36} {value!s:<24} {info.description}")

    providers = get_available_providers()
    print(f"\nProviders with keys: {', '.join(providers) if providers else 'none'}")
    return EXIT_OK


# =============================================================================
# Main
# =============================================================================


def show_help() -> None:
    """Display CLI help message."""
    print("Usage: idphoto {command} [args]")
    print("\nCommands:")
    print("  generate   Turn a photo into a studio-style ID photo")
    print("  quota      Show generation quota usage")
    print("  env        Show environment configuration")
    print("\nExamples:")
    print("  idphoto generate me.jpg -o id.png")
    print("  idphoto generate me.jpg --remove-glasses --expression 'a gentle smile'")
    print("  idphoto generate hero.png --cartoon --cartoon-description 'Saber'")
    print("  idphoto quota --watch")
    print("\nExit codes: 0 success, 1 failed or cancelled, 2 quota exceeded")


def main(argv: list[str] | None = None) -> int:
    """Main entry point for the CLI."""
    load_dotenv()
    argv = sys.argv[1:] if argv is None else argv

    if not argv:
        show_help()
        return EXIT_FAILED

    command, rest_args = argv[0], argv[1:]

    if command in ("-h", "--help"):
        show_help()
        return EXIT_OK

    commands = {
        "generate": lambda: handle_generate_command(rest_args),
        "quota": lambda: handle_quota_command(rest_args),
        "env": lambda: handle_env_command(rest_args),
    }

    if command in commands:
        setup_logging(get_environment(EnvVar.LOG_LEVEL))
        return commands[command]()

    logger.error(f"Unknown command: {command}")
    show_help()
    return EXIT_FAILED


if __name__ == "__main__":
    sys.exit(main())
