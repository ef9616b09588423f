"""CLI for synchronizing overlays into an installation directory."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from overlay_sync.config import Settings
from overlay_sync.filesystem.manifest_builder import write_manifest
from overlay_sync.filesystem.toml_manager import parse_overlay_config
from overlay_sync.services.session_service import SyncSession

if TYPE_CHECKING:
    from overlay_sync.schemas.overlay import OverlaySpec
    from overlay_sync.services.session_service import OverlayPreview, SyncReport


def _configure_logging(debug: bool) -> None:
    """Configure CLI logging."""
    level = logging.DEBUG if debug else logging.INFO
    fmt = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"
    logging.basicConfig(
        level=level,
        format=fmt,
        stream=sys.stdout,
        force=True,
    )
    # Quiet noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)


def _overlay_label(spec: OverlaySpec) -> str:
    return f"{spec.uri} -> {spec.path or '.'}"


def _non_negative_int(value: str) -> int:
    try:
        number = int(value)
    except ValueError:
        msg = f"expected an integer, got {value!r}"
        raise argparse.ArgumentTypeError(msg) from None
    if number < 0:
        msg = f"must be 0 or greater, got {number}"
        raise argparse.ArgumentTypeError(msg)
    return number


def build_settings(args: argparse.Namespace) -> Settings:
    """Apply command-line overrides on top of environment settings.

    Raises:
        ValidationError: If an environment value or an override is invalid.
    """
    overrides: dict[str, Any] = {}
    if args.config:
        overrides["overlays_file"] = Path(args.config)
    if args.allow_insecure_http:
        overrides["allow_insecure_http"] = True
    if args.max_downloads is not None:
        overrides["max_concurrent_downloads"] = args.max_downloads
    if args.verify_hashes:
        overrides["verify_hashes"] = True
    if args.verbose:
        overrides["debug"] = True
    return Settings(**overrides)


def load_overlays(settings: Settings, root_arg: str | None) -> tuple[Path, list[OverlaySpec]]:
    """Resolve the install root and overlay list for sync/status."""
    config = parse_overlay_config(
        settings.overlays_file, allow_insecure_http=settings.allow_insecure_http
    )
    if root_arg:
        install_root = Path(root_arg)
    elif config.root is not None:
        install_root = config.root
    else:
        install_root = settings.install_root
    return install_root.resolve(), config.overlays


async def run_sync(settings: Settings, install_root: Path, specs: list[OverlaySpec]) -> SyncReport:
    async with SyncSession(install_root, specs, settings=settings) as session:
        return await session.run()


async def run_status(
    settings: Settings, install_root: Path, specs: list[OverlaySpec]
) -> list[OverlayPreview]:
    async with SyncSession(install_root, specs, settings=settings) as session:
        return await session.plan()


def print_report(report: SyncReport) -> None:
    for result in report.results:
        label = _overlay_label(result.spec)
        if result.error is not None:
            print(f"  {result.status.upper()}: {label} ({result.error})")
        else:
            print(
                f"  {result.status.upper()}: {label} "
                f"({result.downloaded} downloaded, {result.deleted} deleted)"
            )
    failed = len(report.failed)
    print(f"Sync complete. {len(report.results) - failed} overlay(s) ok, {failed} failed.")


def print_previews(previews: list[OverlayPreview]) -> None:
    print("Overlay Status:")
    for preview in previews:
        label = _overlay_label(preview.spec)
        if preview.plan is None:
            print(f"  {label}: ERROR ({preview.error})")
            continue
        plan = preview.plan
        print(f"  {label}")
        print(f"    To fetch:  {len(plan.to_fetch)}")
        print(f"    To delete: {len(plan.to_delete)}")
        print(f"    Unchanged: {len(plan.unchanged)}")
        for f in plan.to_fetch:
            print(f"      < {f} (fetch)")
        for f in plan.to_delete:
            print(f"      - {f} (delete)")


def main(argv: list[str] | None = None) -> None:
    """CLI entry point."""
    parser = argparse.ArgumentParser(
        prog="overlay-sync",
        description="Synchronize overlays from their remote sources into an installation",
    )
    parser.add_argument("--config", "-c", help="Overlay list file (default: overlays.toml)")
    parser.add_argument("--root", "-r", help="Installation root directory")
    parser.add_argument(
        "--allow-insecure-http",
        action="store_true",
        help="Allow http:// overlay URIs for non-localhost hosts",
    )
    parser.add_argument(
        "--max-downloads",
        type=_non_negative_int,
        help="Maximum concurrent downloads per overlay (0 = unbounded)",
    )
    parser.add_argument(
        "--verify-hashes",
        action="store_true",
        help="Rehash cached files even when their size is unchanged",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command")
    subparsers.add_parser("sync", help="Bring all overlays up to date")
    subparsers.add_parser("status", help="Show what would change")
    manifest_parser = subparsers.add_parser("manifest", help="Write a manifest for a directory")
    manifest_parser.add_argument("directory", help="Directory to scan")
    manifest_parser.add_argument("--output", "-o", help="Output file (default: DIR/manifest.xml)")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return

    try:
        settings = build_settings(args)
    except ValidationError as exc:
        print(f"Error: invalid settings: {exc}")
        sys.exit(1)
    _configure_logging(settings.debug)

    if args.command == "manifest":
        source_dir = Path(args.directory)
        if not source_dir.is_dir():
            print(f"Error: not a directory: {source_dir}")
            sys.exit(1)
        output = Path(args.output) if args.output else None
        target, manifest = write_manifest(source_dir, output)
        print(f"Wrote {target} ({len(manifest)} file(s))")
        return

    try:
        install_root, specs = load_overlays(settings, args.root)
    except FileNotFoundError:
        print(f"Error: overlay config not found: {settings.overlays_file}")
        sys.exit(1)
    except ValueError as exc:
        print(f"Error: {exc}")
        sys.exit(1)
    if not specs:
        print("Error: no overlays configured")
        sys.exit(1)

    if args.command == "status":
        print_previews(asyncio.run(run_status(settings, install_root, specs)))
        return

    report = asyncio.run(run_sync(settings, install_root, specs))
    print_report(report)
    if not report.ok:
        sys.exit(1)


if __name__ == "__main__":
    main()
