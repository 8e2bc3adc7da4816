"""
Sub-Image Studio — Command-line front end

Usage:
  python -m subimage_studio.main generate --description "Insulated bottle, 500 ml" \\
      --appeal "Cold for 24 hours" --appeal "Fits every cup holder" --product photos/bottle.jpg
  python -m subimage_studio.main generate ... --ratio SQUARE_1000_1000 --preserve --no-review
  python -m subimage_studio.main resize --image outputs/panel_1.png --ratio APLUS_PREMIUM_DESKTOP
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from typing import List, Optional, Tuple

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Prompt
from rich.rule import Rule
from rich.table import Table

from .commands import (
    AddProductImages,
    SetAppealText,
    SetAspectRatio,
    SetBrandLogo,
    SetCompetitorUrl,
    SetDescription,
    SetFeedback,
    SetPreserveOriginal,
    SetResizeRatio,
    SetResizeSource,
    SetStyleReference,
)
from .config import StudioConfig
from .credentials import EnvCredentials
from .encoding import EncodedImage, ImageAsset
from .events import WAITING, ProgressEvent
from .models import AspectRatio, parse_aspect_ratio
from .orchestrator import OperationResult, Studio
from .panel import HistoryDirection, PanelStatus

console = Console()

LOG_FORMAT = "%(asctime)s — %(name)s — %(levelname)s — %(message)s"

REVIEW_HELP = """\
  [bold]regen N [feedback][/bold]      regenerate panel N, optionally with a correction
  [bold]edit N X Y instruction[/bold]  patch panel N around X%/Y% (0,0 = top-left)
  [bold]undo N[/bold] / [bold]redo N[/bold]          step through panel N's history
  [bold]copy N[/bold]                  suggest a catch copy for panel N
  [bold]accept N[/bold]                use the suggested copy as panel N's appeal text
  [bold]save[/bold]  [bold]status[/bold]  [bold]reset[/bold]  [bold]quit[/bold]"""


# ── CLI ───────────────────────────────────────────────────────────────────────

def parse_args(argv: Optional[List[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Sub-Image Studio — AI product image generator"
    )
    parser.add_argument("--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    gen = sub.add_parser("generate", help="Generate a set of sub-images, then review them")
    gen.add_argument("--description", required=True, help="Product description")
    gen.add_argument(
        "--appeal",
        action="append",
        required=True,
        help="Appeal point / on-image copy; repeat once per panel (panel 1 sets the style)",
    )
    gen.add_argument("--product", action="append", default=[], help="Product photo (repeatable)")
    gen.add_argument("--logo", default=None, help="Brand logo image")
    gen.add_argument("--style", default=None, help="Style reference image")
    gen.add_argument("--url", default="", help="Competitor / reference URL")
    gen.add_argument("--ratio", default=AspectRatio.PORTRAIT_1000_1500.value, help="Aspect ratio name or WxH")
    gen.add_argument("--preserve", action="store_true", help="Keep product photo pixels untouched")
    gen.add_argument("--output", default=None, help="Output directory (default: outputs/<timestamp>)")
    gen.add_argument("--no-review", action="store_true", help="Skip the interactive review loop")

    rs = sub.add_parser("resize", help="Re-layout a finished design onto another aspect ratio")
    rs.add_argument("--image", required=True, help="Design image to resize")
    rs.add_argument("--ratio", required=True, help="Target aspect ratio name or WxH")
    rs.add_argument("--output", default=None, help="Output directory (default: outputs/<timestamp>)")

    return parser.parse_args(argv)


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
    )


def _render_event(event: ProgressEvent) -> None:
    """Live retry waits only; each outcome is printed once by _report()."""
    if event.stage == WAITING:
        console.print(f"  [yellow]⏳ {event.topic}: {event.message}[/yellow]")


# ── Output helpers ────────────────────────────────────────────────────────────

def save_image(image: EncodedImage, output_dir: Path, stem: str) -> Path:
    output_dir.mkdir(parents=True, exist_ok=True)
    path = output_dir / f"{stem}.{image.extension}"
    path.write_bytes(image.to_bytes())
    return path


def save_all(studio: Studio, output_dir: Path) -> List[Path]:
    """Write every panel's current result as panel_<n>.<ext> (1-based, like the UI)."""
    paths = []
    for panel in studio.snapshot().panels:
        if panel.result is not None:
            paths.append(save_image(panel.result, output_dir, f"panel_{panel.index + 1}"))
    return paths


def _report(label: str, result: OperationResult) -> None:
    if result.success:
        console.print(f"  [green]✓ {label} in {result.elapsed_seconds:.1f}s[/green]")
    elif result.discarded:
        console.print(f"  [dim]{label}: result discarded[/dim]")
    else:
        console.print(f"  [red]✗ {label}: {result.message}[/red]")


def show_status(studio: Studio) -> None:
    snap = studio.snapshot()
    table = Table(title=f"Panels — {snap.settings.aspect_ratio.value} ({snap.settings.aspect_ratio.label})")
    table.add_column("#", justify="right")
    table.add_column("Status")
    table.add_column("History", justify="center")
    table.add_column("Appeal")
    table.add_column("Style")
    table.add_column("Notes")

    colours = {
        PanelStatus.IDLE: "dim",
        PanelStatus.REQUESTING: "yellow",
        PanelStatus.SUCCEEDED: "green",
        PanelStatus.FAILED: "red",
    }
    for p in snap.panels:
        if not p.appeal_text and p.result is None:
            continue
        history = f"{p.cursor + 1}/{len(p.history)}" if p.history else "—"
        style = "image 1" if p.inherits_style else ("local" if p.style_image else "shared")
        notes = p.error or (f"suggested: {p.suggested_copy}" if p.suggested_copy else "")
        table.add_row(
            str(p.index + 1),
            f"[{colours[p.status]}]{p.status.value}[/{colours[p.status]}]",
            history,
            p.appeal_text,
            style,
            notes,
        )
    console.print(table)
    if snap.error:
        console.print(f"  [red]{snap.error}[/red]")


# ── Generate flow ─────────────────────────────────────────────────────────────

async def generate_set(studio: Studio, panel_ids: List[int]) -> None:
    """Panel 1 first (it is the style source), then the rest concurrently."""
    first, rest = panel_ids[0], panel_ids[1:]

    console.print(f"\n[bold]Step 1/2 — Style source (panel {first + 1})[/bold]")
    result = await studio.generate(first)
    _report(f"Panel {first + 1}", result)
    if not result.success:
        return

    if rest:
        console.print(f"\n[bold]Step 2/2 — Remaining {len(rest)} panel(s), concurrently[/bold]")
        results = await asyncio.gather(*(studio.generate(i) for i in rest))
        for panel_id, r in zip(rest, results):
            _report(f"Panel {panel_id + 1}", r)


def _parse_review(line: str) -> Tuple[str, List[str]]:
    parts = line.strip().split(maxsplit=1)
    if not parts:
        return ("", [])
    verb = parts[0].lower()
    rest = parts[1] if len(parts) > 1 else ""
    if verb == "edit":
        return (verb, rest.split(maxsplit=3))
    if verb == "regen":
        return (verb, rest.split(maxsplit=1))
    return (verb, rest.split())


def _panel_arg(studio: Studio, args: List[str]) -> Optional[int]:
    try:
        number = int(args[0])
    except (IndexError, ValueError):
        console.print("  [yellow]⚠ Give a panel number, e.g. 'regen 2'[/yellow]")
        return None
    if not 1 <= number <= len(studio.state.panels):
        console.print(f"  [yellow]⚠ Panels are numbered 1–{len(studio.state.panels)}[/yellow]")
        return None
    return number - 1


async def review_loop(studio: Studio, output_dir: Path) -> None:
    """Interactive review: regenerate, patch, undo/redo and copy-edit panels."""
    while True:
        console.print(Rule("[bold]Review[/bold]"))
        console.print(REVIEW_HELP + "\n")

        line = (await asyncio.to_thread(Prompt.ask, "💬 Command")).strip()
        verb, args = _parse_review(line)
        if not verb:
            continue

        if verb in ("q", "quit", "exit"):
            break

        elif verb == "status":
            show_status(studio)

        elif verb == "save":
            for path in save_all(studio, output_dir):
                console.print(f"  [dim]Saved → {path}[/dim]")

        elif verb == "reset":
            studio.reset()
            console.print("  [dim]Studio reset. Start a new set with the generate command.[/dim]")
            break

        elif verb == "regen":
            panel_id = _panel_arg(studio, args)
            if panel_id is None:
                continue
            if len(args) > 1:
                studio.apply(SetFeedback(panel_id, args[1]))
            _report(f"Panel {panel_id + 1}", await studio.generate(panel_id))

        elif verb == "edit":
            panel_id = _panel_arg(studio, args)
            if panel_id is None:
                continue
            try:
                x, y = float(args[1]), float(args[2])
                instruction = args[3]
            except (IndexError, ValueError):
                console.print("  [yellow]⚠ Usage: edit N X Y instruction[/yellow]")
                continue
            _report(f"Edit panel {panel_id + 1}", await studio.edit(panel_id, instruction, x, y))

        elif verb in ("undo", "redo"):
            panel_id = _panel_arg(studio, args)
            if panel_id is None:
                continue
            direction = HistoryDirection.PREV if verb == "undo" else HistoryDirection.NEXT
            if not studio.navigate_history(panel_id, direction).success:
                console.print("  [dim]Nothing further in that direction.[/dim]")
            panel = studio.snapshot().panel(panel_id)
            console.print(f"  Panel {panel_id + 1}: version {panel.cursor + 1}/{len(panel.history)}")

        elif verb == "copy":
            panel_id = _panel_arg(studio, args)
            if panel_id is None:
                continue
            result = await studio.refine_copy(panel_id)
            if result.success:
                console.print(Panel(result.text or "", title=f"Suggested copy — panel {panel_id + 1}"))
                console.print(f"  [dim]Type 'accept {panel_id + 1}' to use it.[/dim]")
            else:
                _report("Copy", result)

        elif verb == "accept":
            panel_id = _panel_arg(studio, args)
            if panel_id is None:
                continue
            result = studio.apply_suggested_copy(panel_id)
            if result.success:
                console.print(f"  [green]✓ Appeal text now: {result.text}[/green]")
            else:
                console.print("  [dim]No suggestion to accept — run 'copy N' first.[/dim]")

        else:
            console.print(f"  [yellow]⚠ Unknown command '{verb}'[/yellow]")


async def run_generate(studio: Studio, args: argparse.Namespace, output_dir: Path) -> None:
    appeals = args.appeal[: len(studio.state.panels)]
    if len(args.appeal) > len(appeals):
        console.print(f"  [yellow]⚠ Only the first {len(appeals)} appeal points are used[/yellow]")

    studio.apply(SetDescription(args.description))
    studio.apply(SetCompetitorUrl(args.url))
    studio.apply(SetAspectRatio(parse_aspect_ratio(args.ratio)))
    if args.product:
        studio.apply(AddProductImages(tuple(ImageAsset.from_path(p) for p in args.product)))
    if args.logo:
        studio.apply(SetBrandLogo(ImageAsset.from_path(args.logo)))
    if args.style:
        studio.apply(SetStyleReference(ImageAsset.from_path(args.style)))
    for panel_id, appeal in enumerate(appeals):
        studio.apply(SetAppealText(panel_id, appeal))
        studio.apply(SetPreserveOriginal(panel_id, args.preserve))

    t0 = time.time()
    await generate_set(studio, list(range(len(appeals))))
    paths = save_all(studio, output_dir)

    console.print(
        Panel(
            f"{len(paths)}/{len(appeals)} image(s) generated in [bold]{time.time() - t0:.0f}s[/bold]\n"
            f"Outputs saved to: [bold]{output_dir}[/bold]",
            title="[bold green]Generation Complete[/bold green]",
            border_style="green",
        )
    )
    show_status(studio)

    if not args.no_review:
        await review_loop(studio, output_dir)


async def run_resize(studio: Studio, args: argparse.Namespace, output_dir: Path) -> None:
    studio.apply(SetResizeSource(ImageAsset.from_path(args.image)))
    studio.apply(SetResizeRatio(parse_aspect_ratio(args.ratio)))

    result = await studio.resize()
    _report("Resize", result)
    if result.success and result.image is not None:
        ratio = studio.snapshot().resize.target_ratio
        path = save_image(result.image, output_dir, f"{Path(args.image).stem}_{ratio.value.lower()}")
        console.print(f"  [dim]Saved → {path}[/dim]")


# ── Main ──────────────────────────────────────────────────────────────────────

def main(argv: Optional[List[str]] = None) -> None:
    args = parse_args(argv)
    _configure_logging(args.verbose)

    config = StudioConfig.from_env()
    credentials = EnvCredentials()
    _check_env(credentials)

    studio = Studio(credentials, config)
    studio.events.subscribe(_render_event)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    output_dir = Path(args.output) if args.output else config.output_dir / timestamp

    console.print(Rule("[bold magenta]Sub-Image Studio[/bold magenta]"))
    console.print(
        f"  Command: [bold]{args.command}[/bold]  |  "
        f"Model: [bold]{config.image_model}[/bold]  |  "
        f"Output: [bold]{output_dir}[/bold]"
    )

    try:
        if args.command == "generate":
            asyncio.run(run_generate(studio, args, output_dir))
        else:
            asyncio.run(run_resize(studio, args, output_dir))
    except ValueError as exc:
        console.print(f"[bold red]Error:[/bold red] {exc}")
        sys.exit(2)
    except KeyboardInterrupt:
        console.print("\n[dim]Interrupted.[/dim]")


def _check_env(credentials: EnvCredentials) -> None:
    """Check required environment variables."""
    if not credentials.is_ready:
        console.print("[bold red]Error:[/bold red] GEMINI_API_KEY not set.")
        console.print("Create a .env file from .env.example and add your key.")
        sys.exit(1)


if __name__ == "__main__":
    main()
