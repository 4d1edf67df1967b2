"""
Entry point for the image optimizer API server.

Usage:
    python run_api.py                          # Development (auto-reload)
    python run_api.py --image-dir ./photos     # Serve another directory
    python run_api.py --production             # Production mode

Or directly with uvicorn:
    uvicorn api:create_app --factory --reload --port 3003

Example requests:
    http://127.0.0.1:3003/images/sample.jpg?width=100&height=100&webp=true&quality=80
    http://127.0.0.1:3003/images/sample.jpg?cx=50&cy=50&cwidth=100&cheight=100
"""

import os
import sys
import argparse
import logging

# Ensure the script's directory is in Python path for local imports
_script_dir = os.path.dirname(os.path.abspath(__file__))
if _script_dir not in sys.path:
    sys.path.insert(0, _script_dir)


def main():
    parser = argparse.ArgumentParser(description='Image Optimizer Server')
    parser.add_argument('--port', type=int, default=int(os.environ.get('PORT', 3003)),
                        help='Port to listen on (default: 3003)')
    parser.add_argument('--host', default='127.0.0.1', help='Host to bind to (default: 127.0.0.1)')
    parser.add_argument('--image-dir', help='Directory to serve images from (overrides config)')
    parser.add_argument('--production', action='store_true', help='Run in production mode')
    parser.add_argument('--workers', type=int, default=1, help='Number of workers (production)')
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s %(levelname)s %(message)s',
    )

    # The app factory runs in uvicorn's process(es), so pass overrides via env
    if args.image_dir:
        os.environ['IMAGE_DIR'] = args.image_dir
    logging.info(f"Starting image optimizer on {args.host}:{args.port}")

    import uvicorn

    if args.production:
        # Each worker process holds its own in-memory cache
        uvicorn.run(
            "api:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            workers=args.workers,
        )
    else:
        uvicorn.run(
            "api:create_app",
            factory=True,
            host=args.host,
            port=args.port,
            reload=True,
            reload_dirs=[_script_dir],
        )


if __name__ == '__main__':
    main()
