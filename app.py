#!/usr/bin/env python3
"""
Tour Stats Web App
==================

Flask app that serves enhanced setlists and the current tour dashboard
as JSON.
"""

import logging

from flask import Flask, jsonify
from flask_cors import CORS

from tourstats import config
from tourstats.engine import TourStatsEngine, create_engine
from tourstats.errors import SetlistUnavailableError, UpstreamError
from tourstats.models import parse_date

logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)

# Created on first request so importing the app needs no API key
engine = None


def get_engine() -> TourStatsEngine:
    """Get or create the tour stats engine."""
    global engine
    if engine is None:
        engine = create_engine()
    return engine


@app.route('/api/shows/<show_date>', methods=['GET'])
def enhanced_setlist(show_date):
    """Enhanced setlist for one show date (YYYY-MM-DD)."""
    try:
        parsed = parse_date(show_date)
    except ValueError:
        return jsonify({'error': f'Invalid date: {show_date}'}), 400

    try:
        setlist = get_engine().get_enhanced_setlist(parsed)
    except SetlistUnavailableError as e:
        return jsonify({'error': str(e)}), 404

    return jsonify(setlist.to_dict())


@app.route('/api/tour-dashboard', methods=['GET'])
def tour_dashboard():
    """Longest, rarest and most played songs of the current tour."""
    try:
        boards = get_engine().get_current_tour_leaderboards()
    except UpstreamError as e:
        logger.error("Dashboard failed: %s", e)
        return jsonify({'error': f'Upstream unavailable: {e}'}), 502

    return jsonify(boards.to_dict())


if __name__ == '__main__':
    config.setup_logging()
    print("\n" + "=" * 50)
    print("Tour Stats is running!")
    print("Try http://localhost:5050/api/tour-dashboard")
    print("=" * 50 + "\n")
    app.run(debug=True, port=5050)
