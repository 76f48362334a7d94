"""CLI command for running one generation end to end.

Usage:
    python -m modelsmith.cli.generate [OPTIONS]

Examples:
    # Text-to-3D
    python -m modelsmith.cli.generate --prompt "a weathered bronze owl"

    # Image-to-3D with options, saving the GLB locally
    python -m modelsmith.cli.generate --image front.png --image side.png \\
        --option quality=high --option "export_variants[]=web" --output owl.glb

    # Verbose logging
    python -m modelsmith.cli.generate --prompt "a teapot" -v
"""

import asyncio
import mimetypes
import sys
from argparse import ArgumentParser, Namespace
from pathlib import Path

import httpx
import structlog
from pydantic import ValidationError as PydanticValidationError

from modelsmith.app import build_session_registry
from modelsmith.core.config import Settings, configure_logging
from modelsmith.models.generation import GenerationOptions, GenerationRequest, ImageUpload
from modelsmith.services.exceptions import ValidationError
from modelsmith.services.session import SessionPhase

logger = structlog.get_logger()

PROGRESS_REFRESH_SECONDS = 0.5


def parse_args(argv: list[str] | None = None) -> Namespace:
    """Parse command-line arguments."""
    parser = ArgumentParser(
        description="Submit a 3D generation job and wait for the resulting model",
        epilog="Options use the form field names; list options are given as key[]=value",
    )

    parser.add_argument("--prompt", help="Text prompt")
    parser.add_argument(
        "--image",
        action="append",
        default=[],
        type=Path,
        help="Reference image path (repeatable, up to 8)",
    )
    parser.add_argument(
        "--option",
        action="append",
        default=[],
        metavar="KEY=VALUE",
        help="Generation option, e.g. quality=high or export_variants[]=vr (repeatable)",
    )
    parser.add_argument("--output", type=Path, help="Download the resolved model to this file")
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging (DEBUG level)",
    )

    return parser.parse_args(argv)


def parse_option_pairs(pairs: list[str]) -> GenerationOptions:
    """Turn KEY=VALUE pairs into GenerationOptions.

    Raises:
        ValueError: Pair without '='
        pydantic.ValidationError: Unknown option or invalid value
    """
    raw: dict[str, object] = {}
    for pair in pairs:
        key, sep, value = pair.partition("=")
        if not sep:
            raise ValueError(f"Option must be KEY=VALUE, got {pair!r}")
        key = key.strip()
        if key.endswith("[]"):
            items = raw.setdefault(key[:-2], [])
            assert isinstance(items, list)
            items.append(value)
        else:
            raw[key] = value
    return GenerationOptions.model_validate(raw)


def load_images(paths: list[Path]) -> list[ImageUpload]:
    """Read image files into ImageUpload entities."""
    images = []
    for path in paths:
        content_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
        images.append(
            ImageUpload(filename=path.name, content=path.read_bytes(), content_type=content_type)
        )
    return images


async def download(http_client: httpx.AsyncClient, url: str, destination: Path) -> int:
    """Stream ``url`` to ``destination``. Returns the number of bytes written."""
    destination.parent.mkdir(parents=True, exist_ok=True)
    written = 0
    async with http_client.stream("GET", url) as response:
        response.raise_for_status()
        with destination.open("wb") as handle:
            async for chunk in response.aiter_bytes():
                handle.write(chunk)
                written += len(chunk)
    return written


async def async_main(argv: list[str] | None = None) -> int:
    """Async entry point for CLI."""
    args = parse_args(argv)

    try:
        settings = Settings()  # type: ignore[call-arg]
    except PydanticValidationError as e:
        print(f"\nConfiguration error: {e}", file=sys.stderr)
        return 1

    if args.verbose:
        settings.log_level = "DEBUG"
    configure_logging(settings)

    try:
        request = GenerationRequest(
            images=load_images(args.image),
            prompt=args.prompt,
            options=parse_option_pairs(args.option),
        )
    except (OSError, ValueError, PydanticValidationError) as e:
        print(f"\nInvalid input: {e}", file=sys.stderr)
        return 2

    async with httpx.AsyncClient(
        timeout=settings.upstream_timeout_seconds, follow_redirects=True
    ) as http_client:
        registry = build_session_registry(settings, http_client)
        session = registry.create()

        try:
            session.start(request)
        except ValidationError as e:
            print(f"\nInvalid input ({e.field}): {e.message}", file=sys.stderr)
            return 2

        try:
            last_line = ""
            while session.running:
                view = session.view()
                if view.progress is not None:
                    line = (
                        f"[{view.phase.value:>10}] {view.progress.percentage:5.1f}% "
                        f"{view.progress.stage_label}"
                    )
                    if line != last_line:
                        print(line)
                        last_line = line
                await asyncio.sleep(PROGRESS_REFRESH_SECONDS)
            await session.wait()
        except asyncio.CancelledError:
            await registry.shutdown()
            raise

        view = session.view()
        if view.phase is not SessionPhase.COMPLETED:
            logger.error("cli.generation_failed", error=view.error)
            print(f"\nError: {view.error}", file=sys.stderr)
            return 1

        print("\n" + "=" * 60)
        print("Generation Summary")
        print("=" * 60)
        print(f"Task ID: {view.task_id}")
        print(f"Artifact: {view.artifact_name}")
        print(f"Download URL: {view.download_url}")

        if args.output and view.download_url:
            try:
                size = await download(http_client, view.download_url, args.output)
            except (httpx.HTTPError, OSError) as e:
                logger.error("cli.download_failed", error=str(e), error_type=type(e).__name__)
                print(f"\nDownload failed: {e}", file=sys.stderr)
                return 1
            print(f"Saved {size} bytes to {args.output}")

        print("=" * 60 + "\n")
        return 0


def main() -> None:
    """Synchronous entry point for CLI."""
    try:
        sys.exit(asyncio.run(async_main()))
    except KeyboardInterrupt:
        print("\nGeneration interrupted by user", file=sys.stderr)
        sys.exit(130)


if __name__ == "__main__":
    main()
