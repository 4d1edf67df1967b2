"""
Cache key construction for transformed images.

Two schemes are supported:

- "delimited" (default): tag=value pairs joined with ';', then '|', then the
  image identifier. Built from TransformSpec.effective(), so requests that
  produce identical output share a key.
- "legacy": bare tags and values concatenated with no separators, followed
  directly by the identifier. Kept for compatibility with keys produced by
  earlier deployments; distinct requests can alias (w1 + h23 vs w12 + h3).
"""

from imaging.transform_spec import TransformSpec

KEY_SCHEMES = ('delimited', 'legacy')

# Emission order shared by both schemes: (field name, tag)
_FIELD_TAGS = (
    ('quality', 'q'),
    ('width', 'w'),
    ('height', 'h'),
    ('crop_x', 'cx'),
    ('crop_y', 'cy'),
    ('crop_width', 'cw'),
    ('crop_height', 'ch'),
)


def legacy_key(spec: TransformSpec, identifier: str) -> str:
    """Build a key with the unseparated legacy scheme."""
    # The webp tag is emitted whenever the flag is present, true or false
    parts = ['webp'] if spec.webp is not None else []
    for name, tag in _FIELD_TAGS:
        value = getattr(spec, name)
        if value is not None:
            parts.append(f"{tag}{value}")
    parts.append(identifier)
    return ''.join(parts)


def canonical_key(spec: TransformSpec, identifier: str) -> str:
    """Build a collision-free key from the effective spec."""
    spec = spec.effective()
    parts = ['webp=1'] if spec.wants_webp() else []
    for name, tag in _FIELD_TAGS:
        value = getattr(spec, name)
        if value is not None:
            parts.append(f"{tag}={value}")
    # Neither tags nor values contain '|', so the first '|' ends the spec part
    return ';'.join(parts) + '|' + identifier


def make_key(spec: TransformSpec, identifier: str, scheme: str = 'delimited') -> str:
    """Build a cache key using the named scheme."""
    if scheme == 'delimited':
        return canonical_key(spec, identifier)
    if scheme == 'legacy':
        return legacy_key(spec, identifier)
    raise ValueError(f"Unknown key scheme: {scheme!r} (expected one of {KEY_SCHEMES})")
