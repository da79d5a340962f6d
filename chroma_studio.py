"""
Chroma Studio command-line front-end.

Keys a green-screen photo, composites it over a backdrop (a file, a
generated image, or the fallback checkerboard) and writes the result.

Usage:
    chroma-studio subject.png out/composite-{TIMESTAMP}.png --background set.jpg
    chroma-studio subject.png out.jpg --prompt "neon alley at night" --max-size-kb 400
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from CS_Libs.ImageEditingLib.color_utils import HEX_COLOR_PATTERN
from CS_Libs.PipelineLib.editing_session import EditingSession
from CS_Libs.ServicesLib.backdrop_service import GeminiBackdropService
from CS_Libs.ServicesLib.export_encoder import ExportSettings, ExportWriter
from CS_Libs.constants import (
    BACKDROP_FALLBACK_CHECKERBOARD,
    BACKDROP_FALLBACK_SOLID,
    DEFAULT_EXPORT_QUALITY,
    EXPORT_FORMAT_JPEG,
    EXPORT_FORMAT_PNG,
)

logger = logging.getLogger("chroma_studio")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Chroma key compositor")

    parser.add_argument("foreground", help="Foreground image shot against the key color")
    parser.add_argument("output", help="Output path; may contain {DATE}, {TIME}, {DATETIME}, {TIMESTAMP}, {COUNTER}")

    backdrop = parser.add_mutually_exclusive_group()
    backdrop.add_argument("-b", "--background", help="Backdrop image path")
    backdrop.add_argument("--prompt", help="Generate the backdrop from this text prompt")
    parser.add_argument("--fallback", choices=[BACKDROP_FALLBACK_CHECKERBOARD, BACKDROP_FALLBACK_SOLID],
                        default=BACKDROP_FALLBACK_CHECKERBOARD,
                        help="Backdrop used when none is given (default: checkerboard)")

    parser.add_argument("--preset", help="Settings preset (.cspreset) to start from")
    parser.add_argument("-k", "--key-color", help="Key color as hex, e.g. #00b140")
    parser.add_argument("--similarity", type=float, help="Keying threshold (0-1)")
    parser.add_argument("--smoothness", type=float, help="Alpha ramp width (0-0.5)")
    parser.add_argument("--spill", type=float, help="Spill suppression range (0-0.5)")

    parser.add_argument("-f", "--format", choices=[EXPORT_FORMAT_PNG, EXPORT_FORMAT_JPEG, "jpg"],
                        help="Output format (default: from the output extension)")
    parser.add_argument("-q", "--quality", type=float, default=DEFAULT_EXPORT_QUALITY,
                        help="JPEG quality (0-1)")
    parser.add_argument("--max-size-kb", type=float, help="JPEG byte budget in kilobytes")
    parser.add_argument("--export-scale", type=float, default=1.0, help="Resample factor (0.1-3.0)")
    parser.add_argument("--overwrite", action="store_true", help="Replace an existing output file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser


def infer_format(output: str) -> str:
    if Path(output).suffix.lower() in (".jpg", ".jpeg"):
        return EXPORT_FORMAT_JPEG
    return EXPORT_FORMAT_PNG


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    if args.key_color and not HEX_COLOR_PATTERN.match(args.key_color):
        parser.error(f"--key-color must be a hex color like #00b140, got {args.key_color!r}")

    try:
        export_settings = ExportSettings(
            format=args.format or infer_format(args.output),
            quality=args.quality,
            max_size_kb=args.max_size_kb,
            scale=args.export_scale,
        )
    except ValueError as e:
        parser.error(str(e))

    session = EditingSession(backdrop_fallback=args.fallback)
    if args.preset:
        session.apply_preset(Path(args.preset))

    chroma_changes = {
        name: value
        for name, value in (
            ("key_color", args.key_color),
            ("similarity", args.similarity),
            ("smoothness", args.smoothness),
            ("spill", args.spill),
        )
        if value is not None
    }
    if chroma_changes:
        session.update_chroma(**chroma_changes)

    if not session.load_foreground(args.foreground):
        logger.error(session.last_error)
        return 1

    if args.background and not session.load_background(args.background):
        logger.error(session.last_error)
        return 1

    if args.prompt:
        try:
            installed = session.generate_backdrop(args.prompt, GeminiBackdropService())
        except ValueError as e:
            logger.error(str(e))
            return 1
        if not installed:
            logger.error(session.last_error)
            return 1

    result = session.export(export_settings)
    writer = ExportWriter(args.output, overwrite=args.overwrite)
    try:
        path = writer.write(result)
    except (ValueError, OSError) as e:
        logger.error(str(e))
        return 1

    print(path)
    return 0


if __name__ == "__main__":
    sys.exit(main())
