import sys
import argparse
import logging
from pathlib import Path

from pixel_editor.core.color import Color, TRANSPARENT
from pixel_editor.core.document import Document
from pixel_editor.core.errors import EditorError
from pixel_editor.core.image_handler import open_document, save_document
from pixel_editor.core.layer import ResizeAnchor
from pixel_editor.utils.config import AppConfig
from pixel_editor.utils.helpers import human_readable_size, parse_size

logger = logging.getLogger(__name__)


def run_cli_new(args, config: AppConfig):
    width, height = parse_size(args.new)
    background = Color.from_hex(args.background) if args.background else TRANSPARENT
    doc = Document(width, height, config.tile_width, config.tile_height,
                   background=background, max_history=config.history_limit)
    doc.draw_grid = config.draw_grid
    try:
        save_document(doc, args.output)
    finally:
        doc.close()
    config.add_recent(args.output)
    print(f"Created {width}x{height} document: {args.output}")


def run_cli_single(args, config: AppConfig):
    input_path = Path(args.input)
    output_path = Path(args.output)
    doc = open_document(input_path, max_history=config.history_limit)
    try:
        if args.resize:
            width, height = parse_size(args.resize)
            doc.resize_canvas(width, height, ResizeAnchor(args.anchor))
        save_document(doc, output_path)
    finally:
        doc.close()
    config.add_recent(input_path)
    print(f"Saved: {output_path} ({human_readable_size(output_path.stat().st_size)})")


def run_cli_batch(args):
    in_dir = Path(args.input_dir)
    out_dir = Path(args.out_dir) if args.out_dir else in_dir / "png_output"
    pattern = args.pattern or "*.pix"
    if not in_dir.is_dir():
        raise FileNotFoundError(f"Input directory not found: {in_dir}")
    out_dir.mkdir(parents=True, exist_ok=True)

    count = 0
    for path in sorted(in_dir.rglob(pattern)):
        if not path.is_file():
            continue
        try:
            doc = open_document(path)
        except (OSError, EditorError) as e:
            print(f"[SKIP] {path.name}: {e}")
            continue
        out_png = out_dir / f"{path.stem}.png"
        try:
            save_document(doc, out_png)
            print(f"[OK] {path.name} -> {out_png.name}")
            count += 1
        except (OSError, EditorError) as e:
            print(f"[FAIL] {path.name}: {e}")
        finally:
            doc.close()
    print(f"Batch complete. {count} images exported to {out_dir}")
    return count


def run_cli_info(args):
    doc = open_document(args.info)
    try:
        print(f"File: {doc.filename}")
        print(f"Canvas: {doc.canvas_width}x{doc.canvas_height}")
        print(f"Tile: {doc.tile_width}x{doc.tile_height}")
        print(f"Layers: {len(doc.layers) - 1}")
        for i, layer in enumerate(doc.layers[:-1]):
            flag = " (hidden)" if layer.hidden else ""
            print(f"  [{i}] {layer.name}: {len(layer.painted())} pixels{flag}")
        print(f"Animations: {len(doc.animations)}")
        for anim in doc.animations:
            print(f"  {anim.name}: frames {anim.frame_start}-{anim.frame_end} @ {anim.timing:g} fps")
    finally:
        doc.close()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Pixel Art Editor (headless)")
    parser.add_argument("--input", type=str, help="Input .pix or image path")
    parser.add_argument("--output", type=str, help="Output .pix or .png path")
    parser.add_argument("--new", type=str, metavar="WxH", help="Create a blank document of this size")
    parser.add_argument("--background", type=str, help="Background color for --new (#RRGGBB or #RRGGBBAA)")
    parser.add_argument("--info", type=str, metavar="PATH", help="Print a summary of a document")
    parser.add_argument("--resize", type=str, metavar="WxH", help="Resize the canvas of --input before saving")
    parser.add_argument("--anchor", type=str, default="tl",
                        choices=[a.value for a in ResizeAnchor],
                        help="Anchor used by --resize")

    # Batch mode
    parser.add_argument("--input-dir", type=str, help="Input directory for batch PNG export")
    parser.add_argument("--pattern", type=str, help="Glob pattern for input (e.g., '*.pix')")
    parser.add_argument("--out-dir", type=str, help="Output directory for batch output")

    parser.add_argument("--config", type=str, help="Config file path (default: ~/.pixel_editor_config.json)")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )
    config = AppConfig(Path(args.config) if args.config else None)

    if not (args.info or args.input_dir or args.new or args.input):
        parser.error("nothing to do: use --input/--output, --new, --info or --input-dir")
    if (args.new or args.input) and not args.output:
        parser.error("--output is required with --input and --new")

    try:
        if args.info:
            run_cli_info(args)
        elif args.input_dir:
            run_cli_batch(args)
        elif args.new:
            run_cli_new(args, config)
        else:
            run_cli_single(args, config)
    except (OSError, ValueError, EditorError) as e:
        logger.debug("CLI failure", exc_info=True)
        print(f"Error: {e}")
        sys.exit(1)
    config.save()


if __name__ == "__main__":
    main()
