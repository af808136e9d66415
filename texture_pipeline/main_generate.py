"""Command line interface for the height and normal map generator."""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional, Sequence

from .core import config
from .core.errors import TexturePipelineError
from .core.utils_io import SafeFileManager, iter_images, load_image
from .modules.generator import TextureMapGenerator

LOGGER = logging.getLogger("texture_pipeline.main_generate")


class BoolAction(argparse.Action):
    """Robust boolean flag parser supporting affirmative and negative forms."""

    def __call__(self, parser, namespace, values, option_string=None):  # type: ignore[override]
        if values is None:
            setattr(namespace, self.dest, True)
            return
        normalized = str(values).strip().lower()
        if normalized in {"1", "y", "yes", "t", "true", "on"}:
            setattr(namespace, self.dest, True)
        elif normalized in {"0", "n", "no", "f", "false", "off"}:
            setattr(namespace, self.dest, False)
        else:
            raise argparse.ArgumentTypeError(f"Invalid boolean for {option_string}: {values!r}")


def _configure_logging(log_path: Path, verbose: bool = False) -> None:
    log_path.parent.mkdir(parents=True, exist_ok=True)
    level = logging.DEBUG if verbose else logging.INFO
    formatter = logging.Formatter("%(asctime)s [%(levelname)s] %(name)s: %(message)s", "%Y-%m-%d %H:%M:%S")
    file_handler = logging.FileHandler(log_path, encoding="utf-8", delay=True)
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logging.basicConfig(level=level, handlers=[file_handler, console_handler], force=True)


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Height (DoG) and normal map generator")
    parser.add_argument("--input", type=Path, required=True, help="Source image or directory of images")
    parser.add_argument("--output", type=Path, default=config.PATH_OUTPUT, help="Directory to write generated maps")
    parser.add_argument("--sigma1", type=float, default=config.DEFAULT_SIGMA1, help="First Gaussian sigma")
    parser.add_argument("--sigma2", type=float, default=config.DEFAULT_SIGMA2, help="Second Gaussian sigma")
    parser.add_argument("--height-scale", type=float, default=config.DEFAULT_HEIGHT_SCALE, help="DoG height multiplier")
    parser.add_argument("--threshold", type=float, default=config.DEFAULT_THRESHOLD, help="DoG edge threshold")
    parser.add_argument(
        "--method",
        choices=config.GRADIENT_METHODS,
        default=config.DEFAULT_GRADIENT_METHOD,
        help="Gradient stencil used for the normal map",
    )
    parser.add_argument(
        "--strength",
        type=float,
        default=config.DEFAULT_STRENGTH,
        help=f"Normal strength, clamped to [{config.STRENGTH_MIN}, {config.STRENGTH_MAX}]",
    )
    parser.add_argument("--threads", type=int, default=1, help="Number of worker threads per stage")
    parser.add_argument("--log-file", type=Path, default=None, help="Path of the processing log")
    parser.add_argument("--verbose", action="store_true", help="Log per-stage diagnostics")
    parser.add_argument(
        "--normal",
        nargs="?",
        default=True,
        action=BoolAction,
        help="Create a normal map next to the height map (default: true)",
    )
    parser.add_argument(
        "--no-normal",
        dest="normal",
        action="store_false",
        help="Only write height maps",
    )
    return parser.parse_args(argv)


def build_runtime_config(args: argparse.Namespace) -> config.GeneratorConfig:
    overrides: Dict[str, object] = {
        "sigma1": args.sigma1,
        "sigma2": args.sigma2,
        "heightScale": args.height_scale,
        "threshold": args.threshold,
        "gradientMethod": args.method,
        "strength": args.strength,
        "threads": args.threads,
        "generate_normal": args.normal,
        "output_path": args.output.resolve(),
        "log_file": args.log_file.resolve() if args.log_file else None,
    }
    return config.build_config(overrides)


def run(cfg: config.GeneratorConfig, input_path: Path) -> List[Path]:
    """Generate maps for every image under *input_path* and return the written files."""

    generator = TextureMapGenerator(cfg)
    manager = SafeFileManager(cfg.output_path)
    written: List[Path] = []
    try:
        for source in iter_images(input_path):
            LOGGER.info("Processing %s", source.name)
            result = generator.generate_maps(load_image(source))
            for name, buffer in result["maps"].items():
                written.append(manager.atomic_save(buffer, f"{source.stem}_{name}.png"))
    finally:
        generator.dispose()
    return written


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)
    try:
        cfg = build_runtime_config(args)
    except TexturePipelineError as exc:
        logging.basicConfig(level=logging.INFO)
        LOGGER.error("Invalid configuration: %s", exc)
        return 2
    _configure_logging(cfg.log_file, verbose=args.verbose)
    LOGGER.info(
        "CLI flags resolved -> method=%s, strength=%s, normal=%s, threads=%s",
        cfg.gradient_method,
        cfg.strength,
        cfg.generate_normal,
        cfg.threads,
    )
    try:
        written = run(cfg, args.input.resolve())
    except TexturePipelineError as exc:
        LOGGER.error("Map generation failed: %s", exc)
        return 1
    LOGGER.info("Wrote %d maps to %s", len(written), cfg.output_path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
