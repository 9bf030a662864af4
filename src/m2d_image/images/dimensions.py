"""Fit image dimensions to the printable page area."""


def fit_dimensions(
    orig_w: float,
    orig_h: float,
    max_w: float,
    max_h: float,
    dpi: float,
    width: float | None = None,
    height: float | None = None,
) -> tuple[float, float]:
    """
    Compute the embed size of an image.

    A single author override derives the other side from the intrinsic aspect
    ratio; without overrides the intrinsic size is used. The result is then
    scaled down (never up) to fit ``max_w`` x ``max_h`` inches at ``dpi``.

    Args:
        orig_w: Intrinsic width in pixels
        orig_h: Intrinsic height in pixels
        max_w: Maximum width in inches
        max_h: Maximum height in inches
        dpi: Pixels per inch
        width: Optional author-specified width in pixels
        height: Optional author-specified height in pixels

    Returns:
        Tuple of (width, height) in pixels
    """
    if width and not height:
        height = orig_h * width / orig_w
    elif height and not width:
        width = orig_w * height / orig_h
    elif not width and not height:
        width, height = orig_w, orig_h

    scale = min(max_w * dpi / width, max_h * dpi / height, 1.0)
    return width * scale, height * scale
