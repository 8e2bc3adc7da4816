"""
Tests for the command-line front end helpers.
"""
import io

import pytest
from rich.console import Console

from subimage_studio import main
from subimage_studio.commands import SetDescription
from subimage_studio.encoding import EncodedImage
from subimage_studio.errors import NonRetryableError
from subimage_studio.events import DISCARDED, FAILED, WAITING, ProgressEvent
from subimage_studio.main import _parse_review, parse_args, save_all, save_image
from subimage_studio.orchestrator import OperationResult


class TestParseArgs:

    def test_generate(self):
        args = parse_args([
            "generate", "--description", "bottle",
            "--appeal", "cold 24h", "--appeal", "leak-proof",
            "--product", "a.jpg", "--preserve", "--no-review",
        ])
        assert args.command == "generate"
        assert args.appeal == ["cold 24h", "leak-proof"]
        assert args.product == ["a.jpg"]
        assert args.preserve and args.no_review

    def test_resize(self):
        args = parse_args(["--verbose", "resize", "--image", "x.png", "--ratio", "800x600"])
        assert args.verbose
        assert (args.command, args.image, args.ratio) == ("resize", "x.png", "800x600")

    def test_appeal_required(self):
        with pytest.raises(SystemExit):
            parse_args(["generate", "--description", "bottle"])


@pytest.mark.parametrize("line,expected", [
    ("regen 2", ("regen", ["2"])),
    ("regen 2 make it darker please", ("regen", ["2", "make it darker please"])),
    ("edit 1 30 40.5 remove the red badge", ("edit", ["1", "30", "40.5", "remove the red badge"])),
    ("UNDO 3", ("undo", ["3"])),
    ("   ", ("", [])),
])
def test_parse_review(line, expected):
    assert _parse_review(line) == expected


def test_save_image(tmp_path, png_bytes):
    path = save_image(EncodedImage.from_bytes(png_bytes, "image/png"), tmp_path / "out", "panel_1")
    assert path.name == "panel_1.png"
    assert path.read_bytes() == png_bytes


@pytest.mark.asyncio
async def test_save_all_writes_current_results(studio, backend, tmp_path):
    studio.apply(SetDescription("bottle"))
    backend.queue_image(b"first", "image/jpeg")
    await studio.generate(0)

    paths = save_all(studio, tmp_path)

    assert [p.name for p in paths] == ["panel_1.jpg"]
    assert paths[0].read_bytes() == b"first"


def test_failure_printed_once(monkeypatch):
    buf = io.StringIO()
    monkeypatch.setattr(main, "console", Console(file=buf, width=200))
    error = NonRetryableError("quota exhausted")

    main._render_event(ProgressEvent("panel:0", FAILED, error.message))
    main._render_event(ProgressEvent("panel:0", DISCARDED, "Stale result discarded"))
    main._report("Panel 1", OperationResult(False, 0, error=error))

    output = buf.getvalue()
    assert output.count("quota exhausted") == 1
    assert "Stale result discarded" not in output


def test_retry_wait_is_rendered(monkeypatch):
    buf = io.StringIO()
    monkeypatch.setattr(main, "console", Console(file=buf, width=200))
    main._render_event(ProgressEvent("panel:0", WAITING, "Server busy, waiting 5s (1/2)", 2))
    assert "waiting 5s" in buf.getvalue()
