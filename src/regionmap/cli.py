"""CLI entrypoint for the region map."""

from __future__ import annotations

import argparse
import asyncio
import logging
from pathlib import Path
from typing import Sequence

from .config import AppConfig, load_config
from .inspect_report import build_dataset_report, format_report_lines
from .loader import DataLoader, FileDataLoader, LoadError
from .util import setup_logging, write_json
from .view import DatasetLoader, ViewController, ViewState

LOGGER = logging.getLogger("regionmap.cli")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regionmap",
        description="Interactive map of administrative regions.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    def add_common(p: argparse.ArgumentParser) -> None:
        p.add_argument(
            "--config",
            default=None,
            help="Path to YAML config. Built-in defaults are used when omitted.",
        )
        p.add_argument(
            "--file",
            default=None,
            help="Read the boundary dataset from a local GeoJSON file instead of HTTP.",
        )
        p.add_argument("--verbose", action="store_true", help="Enable debug logs.")

    show_p = subparsers.add_parser("show", help="Open the interactive map window.")
    add_common(show_p)

    render_p = subparsers.add_parser("render", help="Render the map to an image file.")
    add_common(render_p)
    render_p.add_argument("--out", required=True, help="Output image path (format from suffix).")
    render_p.add_argument(
        "--select",
        default=None,
        help="Region code to render as selected.",
    )

    inspect_p = subparsers.add_parser(
        "inspect",
        help="Print per-region geometry and label anchor details.",
    )
    add_common(inspect_p)
    inspect_p.add_argument("--json", default=None, help="Also write the report as JSON.")

    return parser


def _load_and_setup(args: argparse.Namespace) -> AppConfig:
    cfg = load_config(args.config)
    setup_logging(cfg.logging.log_file, verbose=args.verbose)
    return cfg


def _make_loader(cfg: AppConfig, file: str | None) -> DatasetLoader:
    if file is not None:
        return FileDataLoader(Path(file), default_name=cfg.data.default_region_name)
    return DataLoader(
        cfg.data.dataset_url,
        timeout_s=cfg.data.request_timeout_s,
        user_agent=cfg.data.user_agent,
        default_name=cfg.data.default_region_name,
    )


def _run_show(cfg: AppConfig, loader: DatasetLoader) -> int:
    import matplotlib.pyplot as plt

    window = cfg.window
    fig, ax = plt.subplots(
        figsize=(window.width_px / window.dpi, window.height_px / window.dpi),
        dpi=window.dpi,
    )
    fig.subplots_adjust(left=0.0, right=1.0, bottom=0.0, top=1.0)
    if fig.canvas.manager is not None:
        fig.canvas.manager.set_window_title(window.title)

    controller = ViewController(ax, loader, cfg.map)
    try:
        state = asyncio.run(controller.mount())
        plt.show()
    finally:
        controller.unmount()
        plt.close(fig)
    return 0 if state is ViewState.READY else 1


def _run_render(
    cfg: AppConfig,
    loader: DatasetLoader,
    *,
    out: Path,
    select: str | None,
) -> int:
    from matplotlib.backends.backend_agg import FigureCanvasAgg
    from matplotlib.figure import Figure

    window = cfg.window
    fig = Figure(
        figsize=(window.width_px / window.dpi, window.height_px / window.dpi),
        dpi=window.dpi,
    )
    FigureCanvasAgg(fig)
    ax = fig.add_axes((0.0, 0.0, 1.0, 1.0))

    controller = ViewController(ax, loader, cfg.map)
    try:
        state = asyncio.run(controller.mount())
        if state is not ViewState.READY:
            LOGGER.error("Render aborted: %s", controller.error_message)
            return 1
        if select is not None:
            dataset = controller.dataset
            if dataset is None or select not in dataset:
                LOGGER.error("Unknown region code for --select: %s", select)
                return 1
            controller.store.toggle(select)
        out.parent.mkdir(parents=True, exist_ok=True)
        fig.savefig(out, dpi=window.dpi, transparent=True)
    finally:
        controller.unmount()
    LOGGER.info("Map written to %s", out)
    return 0


def _run_inspect(loader: DatasetLoader, *, json_out: Path | None) -> int:
    try:
        dataset = loader.load()
    except LoadError as exc:
        LOGGER.error("Inspection failed: %s", exc)
        return 1
    report = build_dataset_report(dataset)
    for line in format_report_lines(report):
        LOGGER.info(line)
    if json_out is not None:
        write_json(json_out, report.to_dict())
        LOGGER.info("Inspection JSON report written to %s", json_out)
    return 0 if report.ok else 1


def _dispatch(args: argparse.Namespace) -> int:
    cfg = _load_and_setup(args)
    loader = _make_loader(cfg, args.file)
    command = str(args.command)
    if command == "show":
        return _run_show(cfg, loader)
    if command == "render":
        return _run_render(cfg, loader, out=Path(args.out), select=args.select)
    if command == "inspect":
        json_out = Path(args.json) if args.json else None
        return _run_inspect(loader, json_out=json_out)
    raise ValueError(f"Unknown command: {command}")


def main(argv: Sequence[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    return _dispatch(args)


if __name__ == "__main__":
    raise SystemExit(main())
