"""Command-line interface for ImageSort."""

import json
import logging
import os
import signal
import sys
import threading
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.markup import escape

from .classifier import ImageClassifier
from .constants import (
    DEBOUNCE_SECONDS,
    DEFAULT_CONFIDENCE,
    DEFAULT_EXTENSIONS,
    DEFAULT_MODEL,
    ENV_LABELS,
    ENV_WEIGHTS,
    ExitCode,
)
from .errors import ConfigError, OracleError
from .formatting import build_record, format_percent
from .labels import LabelTable
from .pipeline import ImageSorter
from .utils import save_json, setup_logger
from .watcher import WatchLoop, WatchTarget

app = typer.Typer(help="ImageSort: watch a folder and sort new images by what they show")
console = Console()
logger = logging.getLogger("imagesort")


def _validate_confidence(value: float) -> float:
    if not 0.0 < value <= 1.0:
        raise typer.BadParameter("must be greater than 0 and at most 1")
    return value


def _env_path(name: str) -> Optional[Path]:
    value = os.getenv(name)
    return Path(value) if value else None


def _load_classifier(model_name: str, weights: Optional[Path], device: Optional[str]) -> ImageClassifier:
    return ImageClassifier.from_pretrained(
        model_name,
        device=device,
        weights_path=weights or _env_path(ENV_WEIGHTS)
    )


def _load_labels(labels: Optional[Path], classifier: ImageClassifier) -> LabelTable:
    """Label file from the option or environment, else the model's own categories."""
    path = labels or _env_path(ENV_LABELS)
    if path:
        return LabelTable.load(path)
    if not classifier.categories:
        raise ConfigError("No label file given and the model has no bundled categories")
    return LabelTable.from_categories(classifier.categories)


@app.command()
def watch(
    directory: Path = typer.Argument(..., help="Directory to watch for new images"),
    extensions: List[str] = typer.Option(
        list(DEFAULT_EXTENSIONS), "--ext", "-e", help="Image extension to watch (repeatable)"
    ),
    confidence: float = typer.Option(
        DEFAULT_CONFIDENCE, "--confidence", "-c", callback=_validate_confidence, help="Minimum confidence"
    ),
    labels: Optional[Path] = typer.Option(None, "--labels", "-l", help="Label table JSON file"),
    weights: Optional[Path] = typer.Option(None, "--weights", "-w", help="Path to model weights"),
    model_name: str = typer.Option(DEFAULT_MODEL, "--model", help="torchvision model name"),
    device: Optional[str] = typer.Option(None, "--device", help="Device to run on (cpu, cuda)"),
    debounce: float = typer.Option(
        DEBOUNCE_SECONDS, "--debounce", min=0.0, help="Seconds to wait before processing a new file"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")
):
    """Watch a directory and sort new images into label folders."""
    setup_logger(level=logging.DEBUG if verbose else logging.INFO)

    try:
        target = WatchTarget.create(directory, extensions, confidence, debounce)
    except ConfigError as e:
        raise typer.BadParameter(str(e))

    try:
        target.validate()
        classifier = _load_classifier(model_name, weights, device)
        label_table = _load_labels(labels, classifier)
    except (ConfigError, OracleError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(ExitCode.STARTUP_FAILURE)

    sorter = ImageSorter(classifier, label_table, target.confidence)
    loop = WatchLoop(target, sorter)

    stop_event = threading.Event()

    def _signal_handler(signum, frame):
        logger.info(f"Received signal {signum}, shutting down.")
        stop_event.set()

    previous = {sig: signal.signal(sig, _signal_handler) for sig in (signal.SIGINT, signal.SIGTERM)}
    try:
        loop.run(stop_event)
    except ConfigError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(ExitCode.STARTUP_FAILURE)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(ExitCode.UNHANDLED_ERROR)
    finally:
        for sig, handler in previous.items():
            signal.signal(sig, handler)


@app.command()
def classify(
    image: Path = typer.Argument(..., exists=True, dir_okay=False, help="Path to image file"),
    confidence: float = typer.Option(
        DEFAULT_CONFIDENCE, "--confidence", "-c", callback=_validate_confidence, help="Minimum confidence"
    ),
    labels: Optional[Path] = typer.Option(None, "--labels", "-l", help="Label table JSON file"),
    weights: Optional[Path] = typer.Option(None, "--weights", "-w", help="Path to model weights"),
    model_name: str = typer.Option(DEFAULT_MODEL, "--model", help="torchvision model name"),
    device: Optional[str] = typer.Option(None, "--device", help="Device to run on (cpu, cuda)"),
    json_out: bool = typer.Option(False, "--json", help="Output as JSON"),
    pretty: bool = typer.Option(False, "--pretty", help="Pretty-print JSON (only with --json)"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging")
):
    """Classify a single image without moving it."""
    setup_logger(level=logging.DEBUG if verbose else logging.WARNING)

    try:
        classifier = _load_classifier(model_name, weights, device)
        label_table = _load_labels(labels, classifier)
    except (ConfigError, OracleError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(ExitCode.STARTUP_FAILURE)

    sorter = ImageSorter(classifier, label_table, confidence)
    try:
        decision = sorter.classify(image)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(ExitCode.UNHANDLED_ERROR)
    finally:
        sorter.close()

    if json_out:
        record = build_record(image, decision)
        json.dump(record, sys.stdout, indent=2 if pretty else None, separators=(',', ':') if not pretty else None)
        sys.stdout.write('\n')
    elif decision.accepted:
        console.print(f"{escape(decision.label)}: {format_percent(decision.probability)}")
    else:
        console.print(
            f"[yellow]Below confidence: {escape(decision.label)}: {format_percent(decision.probability)} "
            f"(minimum {format_percent(decision.threshold)})[/yellow]"
        )

    if not decision.accepted:
        raise typer.Exit(ExitCode.BELOW_CONFIDENCE)


@app.command("labels")
def export_labels(
    output: Path = typer.Argument(..., help="Where to write the label table JSON"),
    model_name: str = typer.Option(DEFAULT_MODEL, "--model", help="torchvision model name")
):
    """Write a model's bundled categories as a label table file."""
    try:
        table = LabelTable.from_categories(ImageClassifier.bundled_categories(model_name))
    except (ConfigError, OracleError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(ExitCode.STARTUP_FAILURE)

    save_json(table.to_mapping(), output)
    console.print(f"[green]Wrote {len(table)} labels to {escape(str(output))}[/green]")


if __name__ == "__main__":
    app()
