"""
HTTP endpoints for the content index and the variant optimizer (bottle).
"""

import json
import logging
from functools import wraps
from typing import Optional

from bottle import Bottle, HTTPResponse, request

from .errors import BadRequestError, NotFoundError, PhotoIndexError, StaleRunError
from .index_cache import ContentIndexCache
from .optimizer import OptimizationCoordinator


logger = logging.getLogger(__name__)


def str2bool(value, default=False):
    """Convert common truthy/falsy strings (and JSON booleans) to bool."""
    if isinstance(value, bool):
        return value
    if value is None or value == '':
        return default
    value = str(value).lower()
    if value in ('yes', 'true', 't', 'y', '1'):
        return True
    if value in ('no', 'false', 'f', 'n', '0'):
        return False
    raise BadRequestError(f"Expected a boolean, got {value!r}")


def parse_int(value, name: str, required: bool = False) -> Optional[int]:
    if value is None or value == '':
        if required:
            raise BadRequestError(f"{name} is required")
        return None
    if isinstance(value, bool):
        raise BadRequestError(f"{name} must be an integer")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise BadRequestError(f"{name} must be an integer, got {value!r}") from None


def request_params() -> dict:
    """Request parameters from a JSON body, or form fields otherwise."""
    try:
        body = request.json
    except ValueError:
        raise BadRequestError("Request body is not valid JSON") from None
    if body is None:
        return {key: request.forms.get(key) for key in request.forms}
    if not isinstance(body, dict):
        raise BadRequestError("Request body must be a JSON object")
    return body


def json_response(payload, status: int = 200) -> HTTPResponse:
    return HTTPResponse(
        body=json.dumps(payload),
        status=status,
        headers={'Content-Type': 'application/json'},
    )


def json_errors(func):
    """Decorate a view to turn photoindex errors into JSON error responses."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except BadRequestError as e:
            return json_response({'success': False, 'error': str(e)}, status=400)
        except NotFoundError as e:
            return json_response({'success': False, 'error': str(e)}, status=404)
        except StaleRunError as e:
            return json_response({
                'success': False,
                'error': str(e),
                'currentRunId': e.current_run_id,
            }, status=409)
        except PhotoIndexError as e:
            logger.error(f"{request.method} {request.path} failed: {e}")
            return json_response({'success': False, 'error': str(e)}, status=500)
    return wrapper


def create_app(index_cache: ContentIndexCache, coordinator: OptimizationCoordinator) -> Bottle:
    """
    Build the bottle application.

    Args:
        index_cache: Content index cache
        coordinator: Variant optimization coordinator

    Returns:
        Bottle app exposing status, optimize-batch, optimize-gallery,
        optimize-image, cleanup-old-sizes, content-index and storage-check
        routes
    """
    app = Bottle()

    @app.route('/status', method='GET')
    @json_errors
    def status():
        return coordinator.status()

    @app.route('/optimize-batch', method='POST')
    @json_errors
    def optimize_batch():
        params = request_params()
        offset = parse_int(params.get('offset'), 'offset', required=True)
        limit = parse_int(params.get('limit'), 'limit')
        cleanup = str2bool(params.get('cleanup'))
        run_id = params.get('runId') or None

        result = coordinator.optimize_batch(offset, limit=limit, cleanup=cleanup, run_id=run_id)
        payload = result.to_dict()
        payload['success'] = True
        return payload

    @app.route('/optimize-gallery', method='POST')
    @json_errors
    def optimize_gallery():
        params = request_params()
        gallery = params.get('gallerySlug') or params.get('galleryPath')
        result = coordinator.optimize_gallery(gallery, cleanup=str2bool(params.get('cleanup')))
        payload = result.to_dict()
        payload['success'] = True
        payload['message'] = f"Optimized gallery: {result.gallery_path}"
        return payload

    @app.route('/optimize-image', method='POST')
    @json_errors
    def optimize_image():
        params = request_params()
        result = coordinator.optimize_image(params.get('imagePath'))
        payload = result.to_dict()
        payload['success'] = True
        payload['message'] = f"Created {len(result.variants)} variants for {result.path}"
        return payload

    @app.route('/cleanup-old-sizes', method='POST')
    @json_errors
    def cleanup_old_sizes():
        deleted = coordinator.cleanup_old_sizes()
        return {'success': True, 'deletedCount': deleted}

    @app.route('/content-index', method='GET')
    @json_errors
    def content_index():
        index = index_cache.get()
        payload = index.to_dict()
        payload['age_seconds'] = index.age_seconds
        return payload

    @app.route('/content-index/rebuild', method='POST')
    @json_errors
    def rebuild_content_index():
        index = index_cache.build()
        return {'success': True, 'generatedAt': index.generated_at, 'stats': index.summary()}

    @app.route('/content-index/invalidate', method='POST')
    @json_errors
    def invalidate_content_index():
        index_cache.invalidate()
        return {'success': True}

    @app.route('/storage-check', method='GET')
    @json_errors
    def storage_check():
        check = index_cache.storage.check_access()
        return check.to_dict()

    return app
