"""
Image optimizer: serves transformed variants of images in a directory.

Composes key canonicalization, the cache store, the single-flight registry,
the worker pool and the transform pipeline.
"""

import logging
import os
import threading
from typing import NamedTuple, Optional

from imaging.errors import EncodeFailure, ImageUnavailable, SourceUnreadable
from imaging.keys import make_key, KEY_SCHEMES
from imaging.pipeline import transform
from imaging.single_flight import SingleFlight
from imaging.store import CacheStore
from imaging.transform_spec import TransformSpec
from imaging.worker_pool import WorkerPool

DEFAULT_EXTENSION = 'jpg'


class ImageResult(NamedTuple):
    content: bytes
    media_type: str


def extension_of(identifier: str) -> str:
    """Filename extension of the identifier's last path component, 'jpg' if none."""
    name = identifier.replace('\\', '/').rsplit('/', 1)[-1]
    if '.' not in name:
        return DEFAULT_EXTENSION
    return name.rsplit('.', 1)[1] or DEFAULT_EXTENSION


def content_type(identifier: str, spec: TransformSpec) -> str:
    """Media type for a response: image/webp, else image/<extension> verbatim."""
    if spec.wants_webp():
        return 'image/webp'
    return f"image/{extension_of(identifier)}"


class Optimizer:
    """
    Serves resized/cropped/re-encoded images from a directory, memoized.

    Cached variants are never revalidated against the source file: once a
    variant is computed it is served until evicted or the process exits.

    Usage:
        optimizer = Optimizer('./images', store=CacheStore(max_entries=5000))
        result = optimizer.fetch('sample.jpg', TransformSpec(width=100, webp=True))
        result.content, result.media_type
    """

    def __init__(self, directory, store: Optional[CacheStore] = None,
                 worker_pool: Optional[WorkerPool] = None, key_scheme: str = 'delimited'):
        """
        Args:
            directory: Root directory holding the source images (read-only)
            store: Cache store; a fresh unbounded store if None
            worker_pool: Pool running the pipeline; WorkerPool() defaults if None
            key_scheme: 'delimited' (collision-free) or 'legacy'
        """
        if key_scheme not in KEY_SCHEMES:
            raise ValueError(f"Unknown key scheme: {key_scheme!r}")
        directory = os.path.realpath(os.fspath(directory))
        if not os.path.isdir(directory):
            raise NotADirectoryError(f"Image directory not found: {directory}")
        self.directory = directory
        self.store = store if store is not None else CacheStore()
        self.worker_pool = worker_pool if worker_pool is not None else WorkerPool()
        self.key_scheme = key_scheme
        self._flights = SingleFlight()
        self._metrics_lock = threading.Lock()
        self._pipeline_runs = 0
        logging.debug(f"serving images from {directory}")

    def key(self, identifier: str, spec: TransformSpec) -> str:
        return make_key(spec, identifier, self.key_scheme)

    def fetch(self, identifier: str, spec: Optional[TransformSpec] = None) -> ImageResult:
        """
        Return the transformed image for identifier, computing it on a miss.

        Raises:
            ImageUnavailable: Source missing/unreadable/undecodable, encode
                failure or empty crop (all map to "not found")
            WorkerPoolSaturated: Pipeline queue is full
        """
        if spec is None:
            spec = TransformSpec()
        key = self.key(identifier, spec)

        data = self.store.get(key)
        if data is not None:
            logging.debug(f"cache hit {key}")
        else:
            logging.debug(f"cache miss {key}")
            data = self._flights.do(key, self._render, key, identifier, spec)
        return ImageResult(data, content_type(identifier, spec))

    def _render(self, key, identifier, spec):
        """Compute, store and return one variant (runs once per in-flight key)."""
        # A previous flight may have completed between our miss and this call
        if key in self.store:
            data = self.store.get(key)
            if data is not None:
                return data

        source = self.read_source(identifier)
        try:
            data = self.worker_pool.run(transform, source, spec, extension_of(identifier), identifier)
        except EncodeFailure as e:
            logging.warning(f"Encode failed for {identifier}: {e}")
            raise
        except ImageUnavailable as e:
            logging.debug(f"Transform failed for {identifier}: {e}")
            raise

        with self._metrics_lock:
            self._pipeline_runs += 1
        self.store.put(key, data)
        return data

    def resolve_path(self, identifier: str) -> str:
        """Absolute path of identifier inside the image directory.

        Raises:
            SourceUnreadable: If the identifier escapes the directory
        """
        if not identifier or '\x00' in identifier:
            raise SourceUnreadable(identifier, f"Invalid image identifier: {identifier!r}")
        resolved = os.path.realpath(os.path.join(self.directory, identifier))
        if not resolved.startswith(self.directory + os.sep):
            raise SourceUnreadable(identifier, f"Image outside served directory: {identifier}")
        return resolved

    def read_source(self, identifier: str) -> bytes:
        """Read the raw source file bytes."""
        path = self.resolve_path(identifier)
        try:
            with open(path, 'rb') as f:
                return f.read()
        except OSError as e:
            raise SourceUnreadable(identifier, f"Cannot read {identifier}: {e}") from e

    def stats(self) -> dict:
        """Cache counters plus pipeline activity."""
        stats = self.store.stats()
        with self._metrics_lock:
            stats['pipeline_runs'] = self._pipeline_runs
        stats['in_flight'] = self._flights.in_flight()
        stats['workers'] = self.worker_pool.get_metrics()
        return stats

    def close(self):
        """Shut down the worker pool. Cached entries are kept."""
        self.worker_pool.shutdown()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()
        return False
