"""
    Image decoding, resizing and re-encoding with Pillow.
"""
from dataclasses import dataclass, replace
from io import BytesIO
from typing import Optional

from PIL import Image, ImageOps, UnidentifiedImageError

from media_service.exceptions import TransformError

FORMAT_MIME = {
    "JPEG": "image/jpeg",
    "PNG": "image/png",
    "GIF": "image/gif",
    "WEBP": "image/webp",
}

FORMAT_EXTENSION = {
    "jpeg": ".jpg",
    "png": ".png",
    "gif": ".gif",
    "webp": ".webp",
}

# Suffixes a client may send for each detected format
FORMAT_SUFFIXES = {
    "jpeg": {".jpg", ".jpeg", ".jpe"},
    "png": {".png"},
    "gif": {".gif"},
    "webp": {".webp"},
}

FORMAT_ALIASES = {"jpg": "jpeg"}

def normalize_format(fmt: str) -> str:
    fmt = fmt.lower()
    return FORMAT_ALIASES.get(fmt, fmt)

@dataclass(frozen=True)
class ImageProfile:
    width: int
    height: int
    quality: int = 85
    format: str = "jpeg"

@dataclass(frozen=True)
class ImageProbe:
    format: str
    mime_type: str
    width: int
    height: int

DEFAULT_PROFILE = ImageProfile(width=800, height=600, quality=85, format="jpeg")
THUMBNAIL_PROFILE = ImageProfile(width=150, height=150, quality=70, format="jpeg")

def probe(data: bytes) -> ImageProbe:
    """Decodes ``data`` fully and reports what it actually is."""
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            fmt = (img.format or "").upper()
            width, height = img.size
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise TransformError(f"Invalid image file: {e}")
    mime_type = FORMAT_MIME.get(fmt)
    if mime_type is None:
        raise TransformError(f"Unsupported image encoding: {fmt or 'unknown'}")
    return ImageProbe(format=fmt.lower(), mime_type=mime_type, width=width, height=height)

def transform(data: bytes, profile: ImageProfile = DEFAULT_PROFILE) -> bytes:
    """Cover-fits the image to exactly ``profile.width`` x ``profile.height``.

    Overflow is cropped symmetrically around the center; the image is never
    letterboxed.
    """
    fmt = normalize_format(profile.format)
    if fmt not in FORMAT_EXTENSION:
        raise TransformError(f"Unsupported output format: {profile.format}")
    try:
        with Image.open(BytesIO(data)) as img:
            img = ImageOps.exif_transpose(img)
            fitted = ImageOps.fit(
                img,
                (profile.width, profile.height),
                method=Image.Resampling.LANCZOS,
                centering=(0.5, 0.5),
            )
            return _encode(fitted, fmt, profile.quality)
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError, Image.DecompressionBombError) as e:
        raise TransformError(f"Could not process image: {e}")

def thumbnail(data: bytes, format: str = "jpeg") -> bytes:
    """Fixed 150x150 preview, whatever the source aspect ratio."""
    return transform(data, replace(THUMBNAIL_PROFILE, format=format))

def profile_for(
    width: int,
    height: int,
    override_width: Optional[int] = None,
    override_height: Optional[int] = None,
    quality: Optional[int] = None,
    format: Optional[str] = None,
) -> ImageProfile:
    """Category dimensions with any per-request overrides applied."""
    return ImageProfile(
        width=override_width or width,
        height=override_height or height,
        quality=quality or DEFAULT_PROFILE.quality,
        format=normalize_format(format or DEFAULT_PROFILE.format),
    )

def _encode(img: Image.Image, fmt: str, quality: int) -> bytes:
    buf = BytesIO()
    if fmt == "jpeg":
        if img.mode != "RGB":
            img = img.convert("RGB")
        img.save(buf, format="JPEG", quality=quality, optimize=True)
    elif fmt == "webp":
        img.save(buf, format="WEBP", quality=quality)
    elif fmt == "png":
        if img.mode not in ("RGB", "RGBA", "L", "LA", "P"):
            img = img.convert("RGBA")
        img.save(buf, format="PNG", optimize=True)
    else:
        img.save(buf, format="GIF")
    return buf.getvalue()
