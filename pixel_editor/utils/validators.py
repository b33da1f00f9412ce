MAX_CANVAS_DIMENSION = 4096


def validate_canvas_size(width: int, height: int) -> tuple[int, int]:
    for name, v in (("width", width), ("height", height)):
        if not isinstance(v, int) or isinstance(v, bool):
            raise ValueError(f"Canvas {name} must be an integer, got {v!r}")
        if not 1 <= v <= MAX_CANVAS_DIMENSION:
            raise ValueError(f"Canvas {name} must be between 1 and {MAX_CANVAS_DIMENSION}, got {v}")
    return width, height
