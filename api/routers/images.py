"""
Image router - transformed images served from the optimizer's directory.

"""

import asyncio
import hashlib
from functools import partial
from typing import Optional

from fastapi import APIRouter, Query, Request, Response

from imaging import ImageResult, ImageUnavailable, TransformSpec, WorkerPoolSaturated, MAX_DIMENSION

router = APIRouter(tags=["images"])

CACHE_CONTROL = 'public, max-age=31536000, immutable'


async def run_sync(fn, *args):
    """Run a blocking function in the default executor."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, partial(fn, *args))


def _cached_image_response(result: ImageResult, request: Request) -> Response:
    """Build an immutable image response with ETag and conditional 304."""
    etag = hashlib.md5(result.content).hexdigest()
    if request.headers.get('if-none-match') == etag:
        return Response(status_code=304, headers={'ETag': etag, 'Cache-Control': CACHE_CONTROL})
    return Response(
        content=result.content,
        media_type=result.media_type,
        headers={
            'Cache-Control': CACHE_CONTROL,
            'ETag': etag,
        }
    )


@router.get("/{image}")
async def get_image(
    request: Request,
    image: str,
    webp: Optional[bool] = Query(None),
    quality: Optional[int] = Query(None, ge=0, le=100),
    width: Optional[int] = Query(None, ge=0, le=MAX_DIMENSION),
    height: Optional[int] = Query(None, ge=0, le=MAX_DIMENSION),
    cx: Optional[int] = Query(None, ge=0, le=MAX_DIMENSION),
    cy: Optional[int] = Query(None, ge=0, le=MAX_DIMENSION),
    cwidth: Optional[int] = Query(None, ge=0, le=MAX_DIMENSION),
    cheight: Optional[int] = Query(None, ge=0, le=MAX_DIMENSION),
):
    """Serve an image resized, cropped and re-encoded per the query."""
    spec = TransformSpec(
        webp=webp, quality=quality, width=width, height=height,
        cx=cx, cy=cy, cwidth=cwidth, cheight=cheight,
    )
    optimizer = request.app.state.optimizer
    try:
        result = await run_sync(optimizer.fetch, image, spec)
    except ImageUnavailable:
        return Response(status_code=404)
    except WorkerPoolSaturated:
        return Response(status_code=503, headers={'Retry-After': '1'})
    return _cached_image_response(result, request)
