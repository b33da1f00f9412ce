import json
import logging
from pathlib import Path

from PIL import Image

from pixel_editor.core.color import Color, Coordinate
from pixel_editor.core.document import Animation, Document
from pixel_editor.core.errors import DocumentFormatError, UnsupportedFormatError
from pixel_editor.core.layer import Layer

logger = logging.getLogger(__name__)

PIX_FORMAT = "pixel_editor"
PIX_VERSION = 1
PIX_SUFFIX = ".pix"
SUPPORTED_INPUTS = (".png", ".jpg", ".jpeg", ".bmp", ".gif", ".tif", ".tiff", ".webp", ".ico")
SUPPORTED_OUTPUTS = (PIX_SUFFIX, ".png")


def document_to_dict(doc: Document) -> dict:
    """Everything a .pix file holds. The preview layer is never written."""
    layers = []
    for layer in doc.layers[:-1]:
        layers.append({
            "hidden": layer.hidden,
            "name": layer.name,
            "width": layer.width,
            "height": layer.height,
            "pixels": [[c.x, c.y, *col] for c, col in sorted(layer.painted().items())],
        })
    return {
        "format": PIX_FORMAT,
        "version": PIX_VERSION,
        "draw_grid": doc.draw_grid,
        "canvas_width": doc.canvas_width,
        "canvas_height": doc.canvas_height,
        "tile_width": doc.tile_width,
        "tile_height": doc.tile_height,
        "layers": layers,
        "animations": [
            {"name": a.name, "frame_start": a.frame_start, "frame_end": a.frame_end, "timing": a.timing}
            for a in doc.animations
        ],
    }


def document_from_dict(data: dict, max_history: int = 500, clipboard=None) -> Document:
    try:
        if data.get("format") != PIX_FORMAT:
            raise DocumentFormatError(f"Not a {PIX_SUFFIX} document")
        if int(data.get("version", 0)) > PIX_VERSION:
            raise DocumentFormatError(f"Unsupported {PIX_SUFFIX} version {data['version']}")

        doc = Document(
            int(data["canvas_width"]), int(data["canvas_height"]),
            int(data.get("tile_width", 8)), int(data.get("tile_height", 8)),
            max_history=max_history, clipboard=clipboard,
        )
        doc.draw_grid = bool(data.get("draw_grid", True))

        layers = []
        for entry in data["layers"]:
            layer = Layer(int(entry["width"]), int(entry["height"]), str(entry["name"]))
            if (layer.width, layer.height) != (doc.canvas_width, doc.canvas_height):
                raise DocumentFormatError(f"Layer {layer.name!r} does not match the canvas size")
            layer.hidden = bool(entry.get("hidden", False))
            for x, y, r, g, b, a in entry["pixels"]:
                layer.write(Coordinate(x, y), Color(r, g, b, a))
            layer.redraw()
            layers.append(layer)
        if not layers:
            raise DocumentFormatError("Document has no layers")

        for animation in data.get("animations", []):
            doc.animations.append(Animation(
                str(animation["name"]),
                int(animation["frame_start"]),
                int(animation["frame_end"]),
                float(animation["timing"]),
            ))
    except DocumentFormatError:
        raise
    except (KeyError, TypeError, ValueError) as e:
        raise DocumentFormatError(f"Malformed document: {e}") from e

    for old in doc.layers[:-1]:
        old.release()
    doc.layers = layers + [doc.preview_layer]
    return doc


def load_image_with_alpha(path: str | Path) -> Image.Image:
    p = Path(path)
    if p.suffix.lower() not in SUPPORTED_INPUTS:
        raise UnsupportedFormatError(f"Unsupported format: {p.suffix}")
    if not p.exists():
        raise FileNotFoundError(f"File not found: {p}")
    with Image.open(p) as img:
        return img.convert("RGBA")


def document_from_image(img: Image.Image, max_history: int = 500, clipboard=None) -> Document:
    """A single background layer holding every non-transparent pixel of the image."""
    doc = Document(img.width, img.height, max_history=max_history, clipboard=clipboard)
    layer = doc.layers[0]
    px = img.load()
    for y in range(img.height):
        for x in range(img.width):
            color = Color(*px[x, y])
            if color.a:
                layer.write(Coordinate(x, y), color)
    layer.redraw()
    return doc


def open_document(path: str | Path, max_history: int = 500, clipboard=None) -> Document:
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix == PIX_SUFFIX:
        if not p.exists():
            raise FileNotFoundError(f"File not found: {p}")
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise DocumentFormatError(f"Could not decode {p.name}: {e}") from e
        if not isinstance(data, dict):
            raise DocumentFormatError(f"Could not decode {p.name}: expected an object")
        doc = document_from_dict(data, max_history=max_history, clipboard=clipboard)
    else:
        img = load_image_with_alpha(p)
        doc = document_from_image(img, max_history=max_history, clipboard=clipboard)
    doc.path = p
    logger.info("Opened %s (%dx%d, %d layers)", p, doc.canvas_width, doc.canvas_height, len(doc.layers) - 1)
    return doc


def save_png(image: Image.Image, out_path: str | Path):
    p = Path(out_path)
    p.parent.mkdir(parents=True, exist_ok=True)
    image.save(p, format="PNG", optimize=True)


def save_document(doc: Document, path: str | Path):
    """
    Write doc to path, picking the format from the extension. A .pix save
    also makes path the document's file; a .png export does not.
    """
    p = Path(path)
    suffix = p.suffix.lower()
    if suffix not in SUPPORTED_OUTPUTS:
        raise UnsupportedFormatError(f"Unsupported format: {p.suffix}")
    doc.commit_selection()

    if suffix == ".png":
        save_png(doc.flatten(), p)
    else:
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(json.dumps(document_to_dict(doc)), encoding="utf-8")
        doc.path = p
    logger.info("Saved %s", p)
