#!/usr/bin/env python3
"""
Cutout Studio API Server
Upload an image, remove its background, preview it over a colour and
download it as PNG or JPEG.  Batch mode keeps up to 10 images per session.
"""

import os
import logging
import uuid
from io import BytesIO
from typing import Dict

from dotenv import load_dotenv

# Load environment variables first
load_dotenv()

from flask import Flask, request, jsonify, send_file
from flask_cors import CORS
from werkzeug.utils import secure_filename

# --- Centralized Logging Configuration ---
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)-25s - %(levelname)-8s - %(message)s',
    datefmt='%H:%M:%S'
)

from .errors import ImageDecodeError, InvalidInputError, RemoteServiceError
from .models.pixel_buffer import PixelBuffer
from .models.segmentation_params import SegmentationStrategy
from .pipeline.background_remover import DEFAULT_STRATEGY
from .services.background_service import BackgroundService
from .services.batch_service import BatchService
from .services.image_service import ImageService, MIME_TYPES
from .services.segmentation_service import SegmentationService

app = Flask(__name__)
CORS(app)  # Enable CORS for frontend communication

# Configuration
MAX_CONTENT_LENGTH = int(os.getenv("MAX_UPLOAD_SIZE_MB", "25")) * 1024 * 1024

app.config['MAX_CONTENT_LENGTH'] = MAX_CONTENT_LENGTH

# Initialize services
image_service = ImageService()
background_service = BackgroundService(image_service)
segmentation_service = SegmentationService(image_service=image_service)
batch_service = BatchService(segmentation_service, background_service)

logger = logging.getLogger(__name__)

# Single-image results, keyed by result id
results: Dict[str, PixelBuffer] = {}


def read_upload(field: str = 'image_file'):
    """Return (filename, bytes) of one uploaded file or raise InvalidInputError."""
    if field not in request.files:
        raise InvalidInputError(f"No image provided (expected form field '{field}')")
    file = request.files[field]
    return _read_file(file)


def _read_file(file):
    if not file or file.filename == '':
        raise InvalidInputError("No file selected")
    filename = secure_filename(file.filename) or "image"
    if not image_service.is_allowed(filename):
        raise InvalidInputError(f"File type not allowed: {filename}")
    data = file.read()
    if not data:
        raise InvalidInputError(f"Empty upload: {filename}")
    return filename, data


def requested_strategy() -> SegmentationStrategy:
    return SegmentationStrategy.parse(request.values.get('strategy') or DEFAULT_STRATEGY)


def send_image(data: bytes, fmt: str, download_name: str = None):
    pil_format = image_service.export_format(fmt)
    return send_file(
        BytesIO(data),
        mimetype=MIME_TYPES[pil_format],
        as_attachment=download_name is not None,
        download_name=download_name,
    )


def not_found(message: str):
    return jsonify({'success': False, 'message': message}), 404


# ---------- single image ----------
@app.route('/api/remove-background', methods=['POST'])
def remove_background():
    """Remove the background of one uploaded image and keep the result for preview/download."""
    filename, data = read_upload()
    strategy = requested_strategy()

    logger.info(f"Removing background from {filename} with {strategy.value}")
    result = segmentation_service.remove_background(data, strategy, filename=filename)

    result_id = uuid.uuid4().hex
    results[result_id] = result

    return jsonify({
        'success': True,
        'result_id': result_id,
        'filename': f"processed_{result_id}.png",
        'strategy': strategy.value,
        'width': result.width,
        'height': result.height,
        'image': image_service.to_data_url(result),
    })


@app.route('/api/results/<result_id>/preview', methods=['GET'])
def preview_result(result_id):
    """Result composited over ?background=#hex."""
    if result_id not in results:
        return not_found('Result not found')
    color = request.args.get('background')
    return send_image(background_service.preview(results[result_id], color), 'png')


@app.route('/api/results/<result_id>/download', methods=['GET'])
def download_result(result_id):
    if result_id not in results:
        return not_found('Result not found')
    fmt = request.args.get('format', 'png')
    data = background_service.export(results[result_id], fmt, request.args.get('background'))
    return send_image(data, fmt, f"background-removed.{fmt.lower()}")


@app.route('/api/results/<result_id>', methods=['DELETE'])
def delete_result(result_id):
    if results.pop(result_id, None) is None:
        return not_found('Result not found')
    return jsonify({'success': True, 'message': 'Result cleared'})


@app.route('/api/edges', methods=['POST'])
def edges():
    """Sobel edge map of the uploaded image, as PNG."""
    _, data = read_upload()
    return send_image(image_service.to_png(segmentation_service.detect_edges(data)), 'png')


# ---------- batch ----------
@app.route('/api/batch', methods=['POST'])
def add_batch_images():
    """Create a batch session (or extend ?session_id=) with the uploaded 'images'."""
    files = request.files.getlist('images')
    if not files:
        raise InvalidInputError("No batch images provided")

    session_id = request.values.get('session_id')
    if session_id and session_id not in batch_service.sessions:
        return not_found('Invalid session')

    uploads = [_read_file(f) for f in files]
    session = batch_service.get_or_create_session(session_id)
    batch_service.add_images(session, uploads)
    return jsonify({'success': True, **session.to_dict()})


@app.route('/api/batch/<session_id>', methods=['GET'])
def batch_status(session_id):
    if session_id not in batch_service.sessions:
        return not_found('Invalid session')
    return jsonify({'success': True, **batch_service.get_session(session_id).to_dict()})


@app.route('/api/batch/<session_id>', methods=['DELETE'])
def clear_batch(session_id):
    if session_id not in batch_service.sessions:
        return not_found('Invalid session')
    batch_service.clear_session(session_id)
    return jsonify({'success': True, 'message': 'Session cleared'})


@app.route('/api/batch/<session_id>/process', methods=['POST'])
def process_batch(session_id):
    if session_id not in batch_service.sessions:
        return not_found('Invalid session')
    strategy = requested_strategy()
    session = batch_service.process(session_id, strategy)
    return jsonify({'success': True, **session.to_dict()})


@app.route('/api/batch/<session_id>/items/<item_id>/background', methods=['POST'])
def set_item_background(session_id, item_id):
    payload = request.get_json(silent=True)
    if payload is None:
        payload = request.form
    if not isinstance(payload, dict):
        raise InvalidInputError("Expected a JSON object with a 'color' field")
    color = payload.get('color')
    try:
        item = batch_service.set_background(session_id, item_id, color)
    except KeyError as err:
        return not_found(err.args[0])
    return jsonify({'success': True, 'item': item.to_dict()})


@app.route('/api/batch/<session_id>/items/<item_id>', methods=['DELETE'])
def remove_batch_item(session_id, item_id):
    try:
        batch_service.remove_item(session_id, item_id)
    except KeyError as err:
        return not_found(err.args[0])
    return jsonify({'success': True, **batch_service.get_session(session_id).to_dict()})


@app.route('/api/batch/<session_id>/items/<item_id>/download', methods=['GET'])
def download_batch_item(session_id, item_id):
    fmt = request.args.get('format', 'png')
    try:
        item = batch_service.get_item(session_id, item_id)
        data = batch_service.export_item(session_id, item_id, fmt)
    except KeyError as err:
        return not_found(err.args[0])
    stem = os.path.splitext(item.filename)[0]
    return send_image(data, fmt, f"{stem}-background-removed.{fmt.lower()}")


@app.route('/api/health', methods=['GET'])
def health_check():
    """Health check endpoint."""
    return jsonify({
        'status': 'healthy',
        'message': 'Cutout Studio API is running',
        'default_strategy': DEFAULT_STRATEGY,
        'remote_configured': segmentation_service.repo.engine.is_configured,
        'active_sessions': len(batch_service.sessions),
    })


# ---------- error mapping ----------
@app.errorhandler(InvalidInputError)
def invalid_input(e):
    logger.warning(f"Invalid request: {e}")
    return jsonify({'success': False, 'message': str(e)}), 400


@app.errorhandler(ImageDecodeError)
def decode_failed(e):
    logger.error(f"Decode failure: {e}")
    return jsonify({'success': False, 'message': str(e)}), 400


@app.errorhandler(RemoteServiceError)
def remote_failed(e):
    logger.error(f"Remote service failure: {e}")
    return jsonify({'success': False, 'message': 'Failed to process image. Please try again.'}), 502


@app.errorhandler(413)
def too_large(e):
    """Handle file too large error."""
    return jsonify({
        'success': False,
        'message': f'File too large. Maximum size is {MAX_CONTENT_LENGTH // (1024 * 1024)}MB.'
    }), 413


@app.errorhandler(500)
def internal_error(e):
    """Handle internal server error."""
    logger.error(f"Internal server error: {e}")
    return jsonify({'success': False, 'message': 'Internal server error'}), 500


def main():
    host = os.getenv("API_HOST", "0.0.0.0")
    port = int(os.getenv("API_PORT", "5000"))
    logger.info(f"Starting Cutout Studio API on {host}:{port} (default strategy: {DEFAULT_STRATEGY})")
    app.run(host=host, port=port, debug=False)


if __name__ == '__main__':
    main()
