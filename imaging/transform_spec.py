"""Transform parameters for a single image request."""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

DEFAULT_WEBP_QUALITY = 85
MAX_DIMENSION = 65535  # u16 range of every geometry field


class TransformSpec(BaseModel):
    """Validated resize/crop/encode parameters.

    A missing field means "no constraint on that axis", never zero. The crop
    fields use their query-string names (cx, cy, cwidth, cheight) as aliases.
    """

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra='forbid')

    webp: Optional[bool] = None
    quality: Optional[int] = Field(None, ge=0, le=100)
    width: Optional[int] = Field(None, ge=0, le=MAX_DIMENSION)
    height: Optional[int] = Field(None, ge=0, le=MAX_DIMENSION)
    crop_x: Optional[int] = Field(None, alias='cx', ge=0, le=MAX_DIMENSION)
    crop_y: Optional[int] = Field(None, alias='cy', ge=0, le=MAX_DIMENSION)
    crop_width: Optional[int] = Field(None, alias='cwidth', ge=0, le=MAX_DIMENSION)
    crop_height: Optional[int] = Field(None, alias='cheight', ge=0, le=MAX_DIMENSION)

    def wants_webp(self) -> bool:
        return self.webp is True

    def needs_resize(self) -> bool:
        return self.width is not None or self.height is not None

    def needs_crop(self) -> bool:
        return any(v is not None for v in (
            self.crop_x, self.crop_y, self.crop_width, self.crop_height))

    def webp_quality(self) -> int:
        return DEFAULT_WEBP_QUALITY if self.quality is None else self.quality

    def effective(self) -> 'TransformSpec':
        """Return the spec with output-neutral differences folded away.

        webp=False behaves exactly like an absent webp flag, and quality only
        reaches the encoder on the webp path, so two specs with equal
        effective() values always produce byte-identical output.
        """
        if self.wants_webp():
            return self.model_copy(update={'quality': self.webp_quality()})
        return self.model_copy(update={'webp': None, 'quality': None})
