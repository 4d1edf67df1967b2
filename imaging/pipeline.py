"""
Image transformation pipeline.

decode -> resize -> crop -> encode, as a pure function of the source bytes
and the TransformSpec. Errors are raised as the typed ImageUnavailable
subclasses from imaging.errors.
"""

import math
from io import BytesIO

from imaging.errors import CropOutOfBounds, DecodeError, EncodeFailure
from imaging.transform_spec import MAX_DIMENSION

# Lazy imports for heavy modules
_Image = None
_ImageOps = None

# Output container by lowercase filename extension; anything else is JPEG
FORMATS_BY_EXTENSION = {'jpg': 'JPEG', 'png': 'PNG', 'gif': 'GIF'}

# Modes each encoder accepts without conversion
_ENCODER_MODES = {
    'JPEG': ('L', 'RGB', 'CMYK'),
    'PNG': ('1', 'L', 'LA', 'I', 'I;16', 'P', 'RGB', 'RGBA'),
    'WEBP': ('RGB', 'RGBA'),
}


def _ensure_pil():
    """Lazy load PIL."""
    global _Image, _ImageOps
    if _Image is None:
        from PIL import Image, ImageOps
        _Image = Image
        _ImageOps = ImageOps
    return _Image, _ImageOps


def _has_alpha(img):
    return img.mode in ('RGBA', 'LA', 'PA', 'RGBa', 'La') or 'transparency' in img.info


def decode_image(source_bytes, identifier=''):
    """
    Decode raw bytes into a PIL image with EXIF orientation applied.

    The image is fully loaded here so truncated or corrupt files fail as
    DecodeError instead of surfacing later during resize or encode.
    Multi-frame images (animated GIF/WebP) yield their first frame.
    """
    Image, ImageOps = _ensure_pil()
    try:
        img = Image.open(BytesIO(source_bytes))
        img.load()
        img = ImageOps.exif_transpose(img)
    except (OSError, ValueError, SyntaxError, Image.DecompressionBombError) as e:
        raise DecodeError(identifier, f"Cannot decode {identifier}: {e}") from e
    return img


def fit_within(size, width=None, height=None):
    """
    Compute fit-within dimensions for a bounding box.

    A missing axis is unbounded (MAX_DIMENSION). Aspect ratio is preserved;
    the result scales up as well as down so that the image touches the box.

    Args:
        size: (width, height) of the source image
        width: Bounding box width, or None
        height: Bounding box height, or None

    Returns:
        tuple: (new_width, new_height), each at least 1
    """
    src_w, src_h = size
    box_w = MAX_DIMENSION if width is None else width
    box_h = MAX_DIMENSION if height is None else height
    ratio = min(box_w / src_w, box_h / src_h)
    # Round half away from zero
    new_w = max(1, math.floor(src_w * ratio + 0.5))
    new_h = max(1, math.floor(src_h * ratio + 0.5))
    return new_w, new_h


def resize_to_fit(img, width=None, height=None, identifier=''):
    """Resize with Lanczos so the image fits inside (width, height)."""
    Image, _ = _ensure_pil()
    new_size = fit_within(img.size, width, height)
    if new_size == img.size:
        return img
    limit = Image.MAX_IMAGE_PIXELS
    if limit and new_size[0] * new_size[1] > limit:
        raise EncodeFailure(identifier, f"Resize of {identifier} to {new_size} exceeds pixel limit")
    # Palette and bilevel images only resample with NEAREST in Pillow
    if img.mode in ('1', 'P'):
        img = img.convert('RGBA' if _has_alpha(img) else 'RGB')
    return img.resize(new_size, Image.Resampling.LANCZOS)


def clamp_crop_box(size, x=None, y=None, width=None, height=None):
    """
    Clamp a crop rectangle to the image bounds.

    Missing origin coordinates default to 0; a missing width/height extends
    to the image edge.

    Returns:
        tuple: (left, top, right, bottom) box inside the image; may be empty
    """
    img_w, img_h = size
    left = min(x or 0, img_w)
    top = min(y or 0, img_h)
    right = img_w if width is None else min(left + width, img_w)
    bottom = img_h if height is None else min(top + height, img_h)
    return left, top, right, bottom


def crop_image(img, x=None, y=None, width=None, height=None, identifier=''):
    """Crop to the clamped rectangle; raise CropOutOfBounds if nothing remains."""
    left, top, right, bottom = clamp_crop_box(img.size, x, y, width, height)
    if right <= left or bottom <= top:
        raise CropOutOfBounds(
            identifier,
            f"Crop ({x}, {y}, {width}, {height}) is empty for {identifier} at {img.size}")
    if (left, top, right, bottom) == (0, 0) + img.size:
        return img
    return img.crop((left, top, right, bottom))


def output_format(spec, extension):
    """Pick the Pillow encoder name for a spec and filename extension."""
    if spec.wants_webp():
        return 'WEBP'
    return FORMATS_BY_EXTENSION.get(extension.lower(), 'JPEG')


def _prepare_for_format(img, fmt):
    """Convert modes the target encoder cannot store."""
    allowed = _ENCODER_MODES.get(fmt)
    if allowed is None or img.mode in allowed:
        return img
    if fmt == 'JPEG':
        return img.convert('RGB')
    return img.convert('RGBA' if _has_alpha(img) else 'RGB')


def encode_image(img, fmt, quality=None, identifier=''):
    """
    Encode an image into the given container.

    Args:
        img: PIL Image
        fmt: Pillow format name ('WEBP', 'JPEG', 'PNG', 'GIF')
        quality: Lossy quality 0-100, only passed to the WebP encoder
        identifier: Image identifier for error messages

    Returns:
        bytes: Encoded image
    """
    buf = BytesIO()
    try:
        img = _prepare_for_format(img, fmt)
        if fmt == 'WEBP':
            img.save(buf, format='WEBP', quality=quality, lossless=False)
        else:
            img.save(buf, format=fmt)
    except (OSError, ValueError, KeyError) as e:
        raise EncodeFailure(identifier, f"Cannot encode {identifier} as {fmt}: {e}") from e
    return buf.getvalue()


def transform(source_bytes, spec, extension, identifier=''):
    """
    Run the full pipeline on encoded source bytes.

    Args:
        source_bytes: Encoded source image
        spec: TransformSpec to apply
        extension: Filename extension of the identifier (selects the container
                   when webp is not requested)
        identifier: Image identifier for error messages

    Returns:
        bytes: Encoded output image

    Raises:
        DecodeError, CropOutOfBounds, EncodeFailure
    """
    img = decode_image(source_bytes, identifier)

    if spec.needs_resize():
        img = resize_to_fit(img, spec.width, spec.height, identifier)

    if spec.needs_crop():
        img = crop_image(img, spec.crop_x, spec.crop_y, spec.crop_width, spec.crop_height, identifier)

    fmt = output_format(spec, extension)
    quality = spec.webp_quality() if fmt == 'WEBP' else None
    return encode_image(img, fmt, quality, identifier)
