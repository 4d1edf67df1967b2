"""
Configuration loading for the image optimizer API server.

"""

import os
import json
import logging

from imaging import CacheStore, Optimizer, WorkerPool

_PROJECT_ROOT = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_DEFAULT_CONFIG_PATH = os.path.join(_PROJECT_ROOT, 'optimizer_config.json')


def get_config_path():
    """Config file path; IMAGE_OPTIMIZER_CONFIG overrides the project default."""
    return os.environ.get('IMAGE_OPTIMIZER_CONFIG', _DEFAULT_CONFIG_PATH)


def _defaults():
    return {
        'image_dir': './images',
        'url_prefix': '/images',
        'key_scheme': 'delimited',
        'cache': {'max_entries': None, 'ttl_seconds': None, 'shards': 16},
        'workers': {'max_workers': 4, 'max_pending': 64},
    }


def load_optimizer_config(config=None, path=None):
    """Load optimizer settings, merging defaults with config.

    Args:
        config: Already-parsed config dict; read from path when None
        path: Config file path (defaults to get_config_path())

    Returns:
        dict with every default key present. IMAGE_DIR, when set in the
        environment, overrides image_dir.
    """
    defaults = _defaults()
    if config is None:
        path = path or get_config_path()
        try:
            with open(path) as f:
                config = json.load(f)
        except FileNotFoundError:
            config = {}
        except json.JSONDecodeError as e:
            logging.warning(f"Ignoring malformed config {path}: {e}")
            config = {}

    merged = dict(config)
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = value
        elif isinstance(value, dict):
            section = dict(merged[key] or {})
            for k, v in value.items():
                if k not in section:
                    section[k] = v
            merged[key] = section

    if os.environ.get('IMAGE_DIR'):
        merged['image_dir'] = os.environ['IMAGE_DIR']
    return merged


def build_optimizer(config):
    """Create an Optimizer with its own store and worker pool from config."""
    cache = config['cache']
    workers = config['workers']
    store = CacheStore(
        max_entries=cache['max_entries'],
        ttl_seconds=cache['ttl_seconds'],
        shards=cache['shards'],
    )
    pool = WorkerPool(max_workers=workers['max_workers'], max_pending=workers['max_pending'])
    return Optimizer(config['image_dir'], store=store, worker_pool=pool,
                     key_scheme=config['key_scheme'])
