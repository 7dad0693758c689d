"""
HTTP API for the music library.
A thin Flask layer over LibraryManager: routing, request decoding and error
mapping only.
"""

import logging
from typing import Optional

from flask import Flask, request, jsonify, Response, send_from_directory, abort
from flask_cors import CORS
from werkzeug.exceptions import RequestEntityTooLarge

from shared.config import ServerConfig
from shared.errors import (
    TrackNotFound,
    UploadRejected,
    StorageUnavailable,
    CatalogCorrupt,
)
from library_tool.audio import AudioProcessor
from player.catalog import bind_urls
from player.library import LibraryManager
from player.streamer import StreamResponse

logger = logging.getLogger(__name__)

# Multipart framing on top of the file bytes themselves
_FORM_OVERHEAD = 1024 * 1024


def _server_address(lib: LibraryManager) -> str:
    return lib.config.public_url or request.host_url.rstrip('/')


def _to_response(result: StreamResponse) -> Response:
    # Werkzeug closes the iterable when the client goes away, which closes the file
    return Response(
        result.body if result.body is not None else b"",
        status=result.status,
        headers=result.headers,
        direct_passthrough=True,
    )


def create_app(config: ServerConfig, lib: Optional[LibraryManager] = None) -> Flask:
    """
    Build the Flask app.

    The storage root is checked here, so an unusable root stops the process
    before it starts serving.
    """
    lib = lib or LibraryManager.open(config)

    app = Flask(__name__)
    app.config['MAX_CONTENT_LENGTH'] = config.max_upload_bytes * config.max_files_per_upload + _FORM_OVERHEAD
    app.extensions['library'] = lib
    CORS(app, expose_headers=['Content-Range', 'Content-Length', 'Accept-Ranges', 'Content-Disposition'])

    @app.errorhandler(TrackNotFound)
    def handle_not_found(e):
        return jsonify({"error": "File not found"}), 404

    @app.errorhandler(UploadRejected)
    def handle_rejected(e):
        return jsonify({"error": e.reason, "filename": e.filename}), 400

    @app.errorhandler(RequestEntityTooLarge)
    def handle_too_large(e):
        return jsonify({"error": "Upload too large"}), 413

    @app.errorhandler(StorageUnavailable)
    @app.errorhandler(CatalogCorrupt)
    def handle_storage_error(e):
        logger.error(f"Storage error: {e}")
        return jsonify({"error": str(e)}), 500

    @app.route('/api/health')
    def health_check():
        return jsonify({"status": "healthy"})

    # --- Library Endpoints ---

    @app.route('/api/upload', methods=['POST'])
    def upload_music():
        files = request.files.getlist('music')
        items = [
            (f.stream, f.filename or "", f.content_length or None, f.mimetype)
            for f in files
        ]
        report = lib.ingest(items)
        return jsonify(report.to_dict())

    @app.route('/api/scan', methods=['POST'])
    def scan_library():
        report = lib.rescan()
        address = _server_address(lib)
        for track in report.catalog.entries:
            bind_urls(track, address)
        return jsonify({"message": "Scan complete", **report.to_dict()})

    @app.route('/api/music', methods=['GET'])
    def get_music():
        catalog = lib.read_catalog(_server_address(lib))
        data = catalog.to_dict()
        if catalog.needs_scan:
            data["message"] = "No catalog yet. Run a scan first."
        return jsonify(data)

    @app.route('/api/music/<track_id>', methods=['DELETE'])
    def delete_music(track_id):
        filename = lib.delete(track_id)
        return jsonify({"message": "Deleted", "filename": filename})

    @app.route('/api/stats', methods=['GET'])
    def get_stats():
        return jsonify(lib.stats().to_dict())

    # --- Playback Endpoints ---

    @app.route('/api/stream/<track_id>', methods=['GET'])
    def stream_music(track_id):
        return _to_response(lib.stream(track_id, request.headers.get('Range')))

    @app.route('/api/download/<track_id>', methods=['GET'])
    def download_music(track_id):
        return _to_response(lib.download(track_id, request.headers.get('Range')))

    @app.route('/covers/<path:reference>', methods=['GET'])
    def get_cover(reference):
        return send_from_directory(config.covers_dir, reference)

    @app.route('/uploads/<path:filename>', methods=['GET'])
    def get_upload(filename):
        if not AudioProcessor.is_supported_format(filename):
            abort(404)
        return send_from_directory(config.storage_dir, filename, conditional=True)

    return app


def start_server(config: ServerConfig, debug: bool = False):
    app = create_app(config)
    logger.info(f"Serving {config.storage_dir} on http://{config.host}:{config.port}")
    app.run(host=config.host, port=config.port, debug=debug, threaded=True)
