#!/usr/bin/env python3
"""
Flask web application for the playscout inactive-publisher scanner.
Routes: liveness, health, and /run which scans Play keywords and returns a CSV report.
"""

from flask import Flask, jsonify, request
from werkzeug.middleware.proxy_fix import ProxyFix
from flask_limiter import Limiter
from flask_limiter.util import get_remote_address
import logging
import os
from datetime import datetime
from dotenv import load_dotenv

from playscout.config import (
    EmptyFallbackPolicy,
    FilterPolicy,
    ScoutConfig,
    SourceMode,
    apply_socket_timeout,
    parse_enum,
)
from playscout.errors import RunFailure
from playscout.pipeline.scan import build_report, build_scanner, clamp_per, parse_keywords

# Load environment variables from .env file
load_dotenv()

# Configure logging
logging.basicConfig(
    level=getattr(logging, os.environ.get('LOG_LEVEL', 'INFO').upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

CONFIG = ScoutConfig.from_env()
apply_socket_timeout(CONFIG)

app = Flask(__name__)
# Configure app to trust proxy headers (nginx forwards X-Forwarded-Proto, etc.)
app.wsgi_app = ProxyFix(app.wsgi_app, x_for=1, x_proto=1, x_host=1, x_prefix=1)

limiter = Limiter(
    key_func=get_remote_address,
    default_limits=["1000 per day", "100 per hour"],
    storage_uri="memory://"
)
limiter.init_app(app)


def add_security_headers(response):
    """Add security headers to all responses"""
    response.headers['X-Content-Type-Options'] = 'nosniff'
    response.headers['X-Frame-Options'] = 'DENY'
    response.headers['Referrer-Policy'] = 'strict-origin-when-cross-origin'
    return response

app.after_request(add_security_headers)


@app.route('/')
@limiter.exempt
def index():
    """Liveness text"""
    return 'App running. Go to /run to start scraper.'


@app.route('/api/health')
@limiter.exempt
def health_check():
    """API health check endpoint"""
    return jsonify({
        'status': 'healthy',
        'timestamp': datetime.now().isoformat(),
        'version': '1.0.0'
    })


@app.route('/run')
@limiter.limit(CONFIG.run_rate_limit)
def run_scan():
    """Scan keywords and return the inactive-publisher report"""
    try:
        mode = parse_enum(SourceMode, request.args.get('mode'), CONFIG.source_mode)
        filter_policy = parse_enum(FilterPolicy, request.args.get('filter'), CONFIG.filter_policy)
        empty_fallback = parse_enum(EmptyFallbackPolicy, request.args.get('empty'), CONFIG.empty_fallback)
        scanner = build_scanner(mode, CONFIG)

        keywords = parse_keywords(request.args.get('keywords'))
        per = clamp_per(request.args.get('per'), scanner.sources.default_limit, scanner.sources.max_limit)
        logger.info(f"Run requested: mode={mode.value} keywords={keywords} per={per}")

        result = scanner.run(keywords, per)
        report = build_report(result, filter_policy, empty_fallback)

        if report.content_type == 'application/json':
            return app.response_class(report.body, mimetype='application/json')

        filename = CONFIG.report_filename
        if filter_policy == FilterPolicy.ALL:
            filename = f"{filename}_all"
        return app.response_class(
            report.body,
            mimetype='text/csv',
            headers={'Content-Disposition': f'attachment; filename="{filename}.csv"'}
        )
    except RunFailure as e:
        logger.error(f"Run error: {e}", exc_info=True)
        return jsonify({'error': str(e)}), 500
    except Exception as e:
        logger.error(f"Run error: {e}", exc_info=True)
        return jsonify({'error': str(e) or e.__class__.__name__}), 500


@app.errorhandler(404)
def not_found(error):
    """Custom 404 handler"""
    return jsonify({'error': 'Endpoint not found'}), 404

@app.errorhandler(429)
def rate_limit_handler(error):
    """Custom rate limit handler"""
    return jsonify({
        'error': 'Rate limit exceeded',
        'message': 'Scans hit the Play store sequentially; please slow down',
        'retry_after': 60
    }), 429

@app.errorhandler(500)
def internal_error(error):
    """Custom 500 handler"""
    logger.error(f"Internal server error: {error}")
    return jsonify({'error': 'Internal server error'}), 500


# Main execution block - MUST be at the very end after all routes are defined
if __name__ == '__main__':
    port = int(os.environ.get('PORT', 3000))
    debug = os.environ.get('FLASK_ENV') == 'development'

    logger.info(f"Starting playscout on port {port}")
    logger.info(f"Source mode: {CONFIG.source_mode.value}, filter: {CONFIG.filter_policy.value}")

    app.run(
        host='0.0.0.0',
        port=port,
        debug=debug,
        threaded=True
    )
