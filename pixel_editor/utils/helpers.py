def clamp(v: int, lo: int, hi: int) -> int:
    return max(lo, min(hi, int(v)))


def human_readable_size(bytes_count: int) -> str:
    units = ["B", "KB", "MB", "GB"]
    i = 0
    v = float(bytes_count)
    while v >= 1024 and i < len(units) - 1:
        v /= 1024.0
        i += 1
    return f"{v:.2f} {units[i]}"


def parse_size(s: str) -> tuple[int, int]:
    """
    "64x32" -> (64, 32). A single number means a square canvas.
    Raises ValueError on malformed input.
    """
    if not s or not s.strip():
        raise ValueError("Empty size")
    token = s.strip().lower().replace("*", "x")
    parts = [p.strip() for p in token.split("x")]
    if len(parts) == 1:
        n = int(parts[0])
        return n, n
    if len(parts) != 2:
        raise ValueError(f"Invalid size: {s!r}")
    return int(parts[0]), int(parts[1])
