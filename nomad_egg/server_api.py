"""
Server API for the Nomad server - status and ServerConfig.json management.
Runs alongside the game server when SERVER_API_ENABLED=true.
"""

import logging
import shutil
import sys
import time
from datetime import datetime, timezone
from functools import wraps

import psutil
from flask import Flask, jsonify, request
from flask_cors import CORS

from . import __version__
from .config_document import DEFAULT_CONFIG, coerce_override, load_document, save_document
from .errors import ConfigurationError, DocumentError
from .settings import EggSettings


def format_uptime(seconds):
    """Format uptime in human-readable format."""
    days = int(seconds // 86400)
    hours = int((seconds % 86400) // 3600)
    minutes = int((seconds % 3600) // 60)
    secs = int(seconds % 60)

    parts = []
    if days > 0:
        parts.append(f"{days}d")
    if hours > 0:
        parts.append(f"{hours}h")
    if minutes > 0:
        parts.append(f"{minutes}m")
    parts.append(f"{secs}s")

    return " ".join(parts)


def get_server_process(exe_name='Nomad.exe'):
    """Find the Wine process running the server executable."""
    for proc in psutil.process_iter(['pid', 'name', 'cmdline']):
        try:
            cmdline = proc.info['cmdline']
            if not cmdline:
                continue
            cmdline_str = ' '.join(cmdline)
            # Skip the xvfb-run wrapper, it carries the same arguments
            if 'xvfb-run' in cmdline_str:
                continue
            if exe_name in cmdline_str:
                return proc
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            continue
    return None


def create_app(settings):
    app = Flask(__name__)

    CORS(app, resources={
        r"/*": {
            "origins": "*",
            "methods": ["GET", "PUT", "PATCH", "OPTIONS"],
            "allow_headers": ["Content-Type", "X-API-Key", "Authorization"],
            "supports_credentials": False
        }
    })

    def require_api_key(f):
        """Decorator to require API key for protected operations."""
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if not settings.api_key:
                return f(*args, **kwargs)

            provided_key = request.headers.get('X-API-Key') or request.args.get('api_key')
            if provided_key != settings.api_key:
                return jsonify({'error': 'Unauthorized', 'message': 'Invalid or missing API key'}), 401
            return f(*args, **kwargs)
        return decorated_function

    @app.route('/health', methods=['GET'])
    def health_check():
        return jsonify({
            'status': 'healthy',
            'timestamp': datetime.now(timezone.utc).isoformat(),
            'version': __version__
        })

    @app.route('/api/server/status', methods=['GET'])
    def get_server_status():
        proc = get_server_process(settings.server_exe.name)

        if not proc:
            return jsonify({
                'server_running': False,
                'status': 'offline'
            })

        try:
            uptime = time.time() - proc.create_time()
            return jsonify({
                'server_running': True,
                'status': 'online',
                'pid': proc.pid,
                'uptime_seconds': uptime,
                'uptime_formatted': format_uptime(uptime)
            })
        except (psutil.NoSuchProcess, psutil.AccessDenied):
            return jsonify({
                'server_running': False,
                'status': 'unknown'
            })

    @app.route('/api/config', methods=['GET'])
    def get_config():
        path = settings.config_document
        if not path.exists():
            return jsonify({'error': f'{path.name} not found'}), 404

        try:
            config = load_document(path)
        except DocumentError as e:
            return jsonify({'error': str(e)}), 500

        return jsonify({
            'file': path.name,
            'path': str(path),
            'config': config
        })

    @app.route('/api/config', methods=['PUT', 'PATCH'])
    @require_api_key
    def update_config():
        path = settings.config_document
        if not path.exists():
            return jsonify({'error': f'{path.name} not found'}), 404

        data = request.get_json(silent=True)
        if not data or not isinstance(data.get('config'), dict):
            return jsonify({'error': 'Invalid request body. Expected {"config": {...}}'}), 400

        try:
            current = load_document(path)
        except DocumentError as e:
            return jsonify({'error': str(e)}), 500

        unknown = sorted(k for k in data['config'] if k not in current and k not in DEFAULT_CONFIG)
        if unknown:
            return jsonify({'error': f"Unknown config keys: {', '.join(unknown)}"}), 400

        try:
            for key, value in data['config'].items():
                current[key] = coerce_override(key, value, current.get(key, DEFAULT_CONFIG.get(key)))
        except ConfigurationError as e:
            return jsonify({'error': str(e)}), 400

        backup_path = path.with_name(f"{path.name}.backup.{int(time.time())}")
        shutil.copy2(path, backup_path)
        save_document(path, current)
        logging.info(f"{path.name} updated via API (backup {backup_path.name})")

        return jsonify({
            'success': True,
            'message': f'{path.name} updated successfully',
            'backup': str(backup_path),
            'note': 'Server restart required for changes to take effect'
        })

    return app


def main():
    logging.basicConfig(
        level=logging.INFO,
        format='[%(asctime)s] %(levelname)s in %(module)s: %(message)s',
        handlers=[logging.StreamHandler(sys.stdout)]
    )

    try:
        settings = EggSettings.from_env()
    except ConfigurationError as e:
        logging.error(str(e))
        return 1

    if not settings.api_enabled:
        logging.info("Server API is disabled (SERVER_API_ENABLED=false). Exiting.")
        return 0

    logging.info(f"Starting Server API on port {settings.api_port}")
    logging.info(f"Config file: {settings.config_document}")

    if settings.api_key:
        logging.info("API Key authentication enabled for protected operations")
    else:
        logging.warning("No API key set. Protected operations are unprotected!")

    create_app(settings).run(host='0.0.0.0', port=settings.api_port, debug=False)
    return 0


if __name__ == '__main__':
    sys.exit(main())
