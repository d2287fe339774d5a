"""Image → WhatsApp sticker conversion (512×512 WebP)."""

import io
import logging

from PIL import Image, UnidentifiedImageError

from .errors import StickerError

logger = logging.getLogger("jarvis.stickers")

STICKER_SIZE = 512
MAX_INPUT_BYTES = 10 * 1024 * 1024


def make_sticker(image_bytes: bytes) -> bytes:
    """Fit an image inside a transparent 512×512 canvas and encode as WebP.

    Aspect ratio is preserved; the image is centered. Raises StickerError
    for empty, oversized or undecodable input.
    """
    if not image_bytes:
        raise StickerError("No image data")
    if len(image_bytes) > MAX_INPUT_BYTES:
        raise StickerError(f"Image too large ({len(image_bytes)} bytes)")

    try:
        with Image.open(io.BytesIO(image_bytes)) as im:
            im.load()
            img = im.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise StickerError(f"Cannot decode image: {e}") from e

    w, h = img.size
    if not w or not h:
        raise StickerError("Image has no pixels")

    scale = STICKER_SIZE / max(w, h)
    tw, th = max(1, int(w * scale)), max(1, int(h * scale))
    img = img.resize((tw, th), Image.LANCZOS)

    canvas = Image.new("RGBA", (STICKER_SIZE, STICKER_SIZE), (0, 0, 0, 0))
    canvas.paste(img, ((STICKER_SIZE - tw) // 2, (STICKER_SIZE - th) // 2), img)

    out = io.BytesIO()
    canvas.save(out, format="WEBP", quality=80)
    data = out.getvalue()
    logger.debug(f"Sticker: {w}x{h} → {tw}x{th}, {len(data)} bytes")
    return data
