"""Flask JSON API exposing the head count session's configuration surface."""

import io
from typing import Optional

from flask import Flask, jsonify, request, Response
from PIL import Image, ImageDraw, ImageFont

from ..head_count_session import HeadCountSession
from ..services.errors import ConfigurationError
from ..logging_config import get_logger

logger = get_logger("web_app")

CONFIG_KEYS = ("target_time", "auto_capture_enabled", "camera_source", "remote_url", "local_facing")


class HeadCountWebApp:
    """Flask application bound to one head count session."""

    def __init__(self, session: Optional[HeadCountSession] = None):
        self.app = Flask(__name__)
        self.session = session or HeadCountSession()

        self.app.config['MAX_CONTENT_LENGTH'] = 64 * 1024

        self._placeholder_jpeg: Optional[bytes] = None
        self._setup_routes()

        logger.info("Head count web application initialized")

    def _setup_routes(self):
        """Setup Flask routes."""

        @self.app.route('/api/status')
        def api_status():
            """Get session status and the latest outcome."""
            try:
                return jsonify({
                    'success': True,
                    'data': self.session.get_status()
                })
            except Exception as e:
                logger.error(f"Error getting status: {e}", exc_info=True)
                return jsonify({
                    'success': False,
                    'error': str(e)
                }), 500

        @self.app.route('/api/config', methods=['GET'])
        def api_get_config():
            """Get the user-editable configuration."""
            snapshot = self.session.session_state.snapshot()
            return jsonify({
                'success': True,
                'data': {key: snapshot[key] for key in CONFIG_KEYS}
            })

        @self.app.route('/api/config', methods=['POST'])
        def api_update_config():
            """Update the user-editable configuration."""
            data = request.get_json(silent=True)
            if not data or not isinstance(data, dict):
                return jsonify({
                    'success': False,
                    'error': 'No data provided'
                }), 400

            try:
                self.session.update(**data)
            except ConfigurationError as e:
                return jsonify({
                    'success': False,
                    'error': str(e)
                }), 400

            return jsonify({
                'success': True,
                'message': 'Configuration updated successfully'
            })

        @self.app.route('/api/capture', methods=['POST'])
        def api_capture():
            """Manual capture trigger."""
            accepted = self.session.capture_now()
            return jsonify({
                'success': accepted,
                'message': 'Capture started' if accepted
                else 'Capture not started (model not ready or capture in progress)'
            }), 200 if accepted else 409

        @self.app.route('/api/frame')
        def api_frame():
            """Latest captured frame as JPEG."""
            jpeg = self.session.latest_frame_jpeg()
            if jpeg is None:
                jpeg = self._placeholder_frame()
            return Response(jpeg, mimetype='image/jpeg',
                            headers={'Cache-Control': 'no-store'})

    def _placeholder_frame(self) -> bytes:
        """JPEG shown before the first capture."""
        if self._placeholder_jpeg is None:
            img = Image.new('RGB', (640, 480), color='gray')
            draw = ImageDraw.Draw(img)
            draw.text((270, 232), "No capture yet", fill="white", font=ImageFont.load_default())

            buffer = io.BytesIO()
            img.save(buffer, format='JPEG', quality=85)
            self._placeholder_jpeg = buffer.getvalue()
        return self._placeholder_jpeg

    def run(self, host='0.0.0.0', port=5000, debug=False):
        """Run the Flask application."""
        logger.info(f"Starting head count web API on {host}:{port}")
        self.app.run(host=host, port=port, debug=debug, threaded=True, use_reloader=False)

    def get_app(self):
        """Get the Flask app instance for external WSGI servers."""
        return self.app


def create_app(session: Optional[HeadCountSession] = None) -> Flask:
    """Factory function to create Flask app."""
    return HeadCountWebApp(session).get_app()
