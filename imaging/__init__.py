"""
Image optimizer core package.

Re-exports the public classes and functions for short imports.
"""

from imaging.errors import (
    ImageUnavailable, SourceUnreadable, DecodeError, EncodeFailure,
    CropOutOfBounds, WorkerPoolSaturated,
)
from imaging.transform_spec import TransformSpec, DEFAULT_WEBP_QUALITY, MAX_DIMENSION
from imaging.keys import canonical_key, legacy_key, make_key, KEY_SCHEMES
from imaging.pipeline import transform
from imaging.store import CacheStore
from imaging.single_flight import SingleFlight
from imaging.worker_pool import WorkerPool
from imaging.optimizer import Optimizer, ImageResult, content_type, extension_of
