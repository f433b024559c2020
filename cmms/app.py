#!/usr/bin/env python3
"""
Flask app for the HTTP surface: health check, the messaging service worker,
and the Cloud Scheduler endpoints.
"""

import logging
import time
from datetime import datetime, timezone
from pathlib import Path

from dotenv import load_dotenv
from flask import Flask, Response, jsonify, render_template

from .db import NOTIFICATIONS, get_clients
from .lib.logging_config import setup_logging
from .routes.scheduled_jobs_routes import bp as scheduled_jobs_bp
from .service_worker import get_service_worker_context

# Get the directory where this file is located
BASE_DIR = Path(__file__).parent
PROJECT_ROOT = BASE_DIR.parent

# Load environment variables from .env file
load_dotenv(PROJECT_ROOT / '.env')
setup_logging()

# Create logger for this module
logger = logging.getLogger(__name__)

app = Flask(__name__, template_folder=str(BASE_DIR / 'templates'))


@app.route('/health', methods=['GET'])
def health_check():
    """
    Report Firestore reachability. Returns 200 when healthy, 503 otherwise.
    """
    db_status = 'healthy'
    db_response_time_ms = None
    db_error = None

    try:
        db = get_clients().db
        start_time = time.time()
        list(db.collection(NOTIFICATIONS).limit(1).stream())
        db_response_time_ms = round((time.time() - start_time) * 1000, 2)
    except Exception as e:
        logger.warning(f"[Health] Firestore check failed: {e}")
        db_status = 'unhealthy'
        db_error = str(e)

    response = {
        'status': db_status,
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'services': {
            'database': {
                'status': db_status,
                'available': db_status == 'healthy',
                'response_time_ms': db_response_time_ms,
                'error': db_error,
            }
        },
    }
    return jsonify(response), 200 if db_status == 'healthy' else 503


@app.route('/firebase-messaging-sw.js', methods=['GET'])
def messaging_service_worker():
    """Serve the Firebase messaging service worker with the web config filled in."""
    script = render_template('firebase-messaging-sw.js', **get_service_worker_context())
    response = Response(script, mimetype='application/javascript')
    response.headers['Service-Worker-Allowed'] = '/'
    response.headers['Cache-Control'] = 'no-cache'
    return response


# Register blueprints
app.register_blueprint(scheduled_jobs_bp)
