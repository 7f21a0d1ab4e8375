"""
HTTP front end for photovault (Bottle).

Routes only translate between HTTP and the catalog/coordinator; every
dependency is passed to create_app() explicitly.
"""

import json
import logging
import os
import threading
from datetime import datetime
from functools import wraps
from typing import Optional

from bottle import Bottle, BaseRequest, HTTPResponse, Response, redirect, request, response, static_file

from .blob_placer import LocalBlobPlacer
from .catalog import PhotoCatalog
from .config import AppConfig
from .errors import NotFoundError, PhotoVaultError, ValidationError
from .photo_record import UploadFile
from .upload_coordinator import STATUS_PARTIAL, STATUS_SUCCESS, BatchResult, UploadCoordinator

ID_FILTER = 're:[0-9a-f]{24}'

BATCH_STATUS_CODES = {
    STATUS_SUCCESS: 200,
    STATUS_PARTIAL: 207,
}


def json_datetime_handler(x):
    if isinstance(x, datetime):
        return x.isoformat()
    raise TypeError("Unknown type")


def json_response(data, status: int = 200) -> HTTPResponse:
    body = json.dumps(data, default=json_datetime_handler)
    return HTTPResponse(body=body, status=status, headers={'Content-Type': 'application/json'})


def error_status(error: Exception) -> int:
    """HTTP status for a photovault error."""
    if isinstance(error, ValidationError):
        return 400
    if isinstance(error, NotFoundError):
        return 404
    return 500


def batch_status_code(result: BatchResult) -> int:
    """200 when every file committed, 207 when some did, 500 when none did."""
    return BATCH_STATUS_CODES.get(result.status, 500)


def allow_cross_origin(func):
    """Decorate a view function to allow cross domain access."""
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            result = func(*args, **kwargs)
        except HTTPResponse as r:
            r.set_header('Access-Control-Allow-Origin', '*')
            raise
        (result if isinstance(result, Response) else response) \
            .set_header('Access-Control-Allow-Origin', '*')
        return result
    return wrapper


def handle_errors(logger: logging.Logger):
    """Decorate a view so photovault errors become JSON error responses."""
    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            try:
                return func(*args, **kwargs)
            except PhotoVaultError as e:
                status = error_status(e)
                if status >= 500:
                    logger.error(f"{request.method} {request.path} failed: {e}")
                else:
                    logger.info(f"{request.method} {request.path} rejected: {e}")
                return json_response({'error': str(e)}, status=status)
        return wrapper
    return decorator


def create_app(
    catalog: PhotoCatalog,
    coordinator: UploadCoordinator,
    config: Optional[AppConfig] = None,
    logger: Optional[logging.Logger] = None
) -> Bottle:
    """
    Build the Bottle application.

    Args:
        catalog: Read/delete access to photos
        coordinator: Batch upload coordinator
        config: Application settings
        logger: Optional logger instance
    """
    config = config or AppConfig()
    logger = logger or logging.getLogger(__name__)
    app = Bottle()
    BaseRequest.MEMFILE_MAX = config.max_upload_bytes

    @app.route('/photos', method='GET')
    @allow_cross_origin
    @handle_errors(logger)
    def list_photos():
        photos = catalog.list(last_id=request.query.get('lastId'), limit=request.query.get('limit'))
        logger.info(f"Retrieved photos: {len(photos)}")
        return json_response([p.to_dict() for p in photos])

    @app.route('/photos/search', method='GET')
    @allow_cross_origin
    @handle_errors(logger)
    def search_photos():
        q = request.query
        photos = catalog.search_by_box(
            q.get('latMin'), q.get('latMax'), q.get('lonMin'), q.get('lonMax'),
            last_id=q.get('lastId'),
            limit=q.get('limit'),
        )
        logger.info(f"Retrieved photos by box: {len(photos)}")
        return json_response([p.to_dict() for p in photos])

    @app.route('/photos/near', method='GET')
    @allow_cross_origin
    @handle_errors(logger)
    def search_near():
        q = request.query
        photos = catalog.search_near(
            q.get('lon'), q.get('lat'), q.get('distance'),
            last_id=q.get('lastId'),
            limit=q.get('limit'),
        )
        logger.info(f"Retrieved photos by location: {len(photos)}")
        return json_response([p.to_dict() for p in photos])

    @app.route(f'/photos/<photo_id:{ID_FILTER}>', method='GET')
    @allow_cross_origin
    @handle_errors(logger)
    def get_photo(photo_id):
        return json_response(catalog.get(photo_id).to_dict())

    @app.route(f'/photos/<photo_id:{ID_FILTER}>/<kind:re:file|thumbnail>', method='GET')
    @allow_cross_origin
    @handle_errors(logger)
    def get_photo_file(photo_id, kind):
        record = catalog.get(photo_id)
        location = record.file_path if kind == 'file' else record.thumbnail_path
        placer = catalog.placer
        if isinstance(placer, LocalBlobPlacer):
            path = placer.resolve(location)
            mimetype = record.content_type if kind == 'file' else True
            return static_file(os.path.basename(path), root=os.path.dirname(path), mimetype=mimetype)
        return redirect(placer.resolve(location))

    @app.route('/photos', method='OPTIONS')
    @allow_cross_origin
    def upload_options():
        response.set_header('Access-Control-Allow-Methods', 'GET, POST, DELETE, OPTIONS')
        response.set_header('Access-Control-Allow-Headers', 'Content-Type')
        return ''

    @app.route('/photos', method='POST')
    @allow_cross_origin
    @handle_errors(logger)
    def upload_photos():
        if request.content_length > config.max_upload_bytes:
            logger.error(f"Request size exceeds limit: {request.content_length} > {config.max_upload_bytes}")
            return json_response({'error': 'File size exceeds limit'}, status=413)

        uploads = request.files.getall('file')
        if not uploads:
            raise ValidationError("No file found in the request")

        files = [
            UploadFile(
                filename=upload.raw_filename or upload.filename,
                content_type=upload.content_type or '',
                size=upload.content_length,
                stream=upload.file,
            )
            for upload in uploads
        ]

        cancel_event = threading.Event()
        timer = threading.Timer(config.upload_timeout, cancel_event.set)
        timer.daemon = True
        timer.start()
        try:
            result = coordinator.upload(files, cancel_event)
        finally:
            timer.cancel()

        return json_response(result.to_dict(), status=batch_status_code(result))

    @app.route('/photos', method='DELETE')
    @allow_cross_origin
    @handle_errors(logger)
    def delete_photo():
        photo_id = request.query.get('id')
        catalog.delete(photo_id)
        return json_response({'message': 'Photo deleted successfully'})

    @app.route('/photos/bulk-delete', method='DELETE')
    @allow_cross_origin
    @handle_errors(logger)
    def delete_photos():
        try:
            payload = json.load(request.body)
        except ValueError:
            raise ValidationError("Invalid request body")
        ids = payload.get('ids') if isinstance(payload, dict) else None
        if not isinstance(ids, list):
            raise ValidationError("Request body must be {\"ids\": [...]}")

        result = catalog.delete_many(ids)
        status = 200 if result.ok else 500
        return json_response(result.to_dict(), status=status)

    @app.route('/')
    def main_page():
        response.content_type = 'text/plain; charset=utf-8'
        return 'photovault'

    return app


def run_server(app: Bottle, config: AppConfig, logger: Optional[logging.Logger] = None) -> None:
    from bottle import run

    logger = logger or logging.getLogger(__name__)
    logger.info(f"Starting server on :{config.port}")
    run(
        app=app,
        host='0.0.0.0',
        port=config.port,
        server=config.server,
        debug=config.debug,
        quiet=not config.debug,
    )
    logger.info("Exiting.")

