#!/usr/bin/env python3
"""
Trainingsplan Web Application

Flask web application for browsing, filtering and mapping training sessions.
Per-user state (filters, manual location, favourites, map view) lives in the
session cookie.
"""

import logging
import traceback
from pathlib import Path

from flask import Flask, Response, jsonify, render_template, request, session, url_for

from trainingsplan.lib.config import load_config
from trainingsplan.lib.data_loader import load_feed
from trainingsplan.lib.errors import DataLoadError, TrainingsplanError, geolocation_error_from_code
from trainingsplan.lib.filter_store import ResetFilters
from trainingsplan.lib.map_controller import MapController
from trainingsplan.lib.planner import TrainingsPlaner
from trainingsplan.lib.quick_filters import (CATEGORY_FEATURE, CATEGORY_LOCATION, CATEGORY_PERSONAL,
                                             CATEGORY_TIME, filters_by_category)
from trainingsplan.lib.storage import JsonFileBackend, LocalStore
from trainingsplan.lib.url_filters import filters_to_dict

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

APP_CONFIG = load_config()

PACKAGE_DIR = Path(__file__).parent.parent
TEMPLATES_DIR = PACKAGE_DIR / 'templates'

app = Flask(__name__, template_folder=str(TEMPLATES_DIR))
app.config['SECRET_KEY'] = APP_CONFIG.secret_key
app.config['TRAININGSPLAN_DATA'] = APP_CONFIG.data_url
# Set to a feed dict to bypass loading (tests, embedding)
app.config['TRAININGSPLAN_FEED'] = None

# Server-side cache for the remote feed snapshot
FEED_STORE = LocalStore(JsonFileBackend(APP_CONFIG.state_file) if APP_CONFIG.state_file else {})

QUICK_FILTER_GROUPS = [
    ('Zeit', filters_by_category(CATEGORY_TIME)),
    ('Merkmal', filters_by_category(CATEGORY_FEATURE)),
    ('Ort', filters_by_category(CATEGORY_LOCATION)),
    ('Persönlich', filters_by_category(CATEGORY_PERSONAL)),
]


def get_feed():
    """The raw training feed, from the injected config value or the data source."""
    feed = app.config.get('TRAININGSPLAN_FEED')
    if feed is not None:
        return feed
    return load_feed(app.config['TRAININGSPLAN_DATA'], store=FEED_STORE, max_age=APP_CONFIG.cache_duration)


def get_planner():
    """Planner for the current user, with data loaded and saved filters restored."""
    planner = TrainingsPlaner(APP_CONFIG, LocalStore(session))
    planner.load_data(get_feed())
    planner.restore_filters()
    return planner


def is_mobile():
    return 'Mobi' in request.headers.get('User-Agent', '')


def error_response(error, status):
    if status >= 500:
        logger.error(f"❌ Exception occurred: {error}")
        logger.error(f"Traceback:\n{traceback.format_exc()}")
        return jsonify({'success': False, 'error': f'Internal error: {error}'}), status
    logger.warning(f"⚠️  {type(error).__name__}: {error}")
    return jsonify({'success': False, 'error': str(error)}), status


def planner_payload(planner):
    """JSON view of the planner state after a change."""
    position = planner.user_position
    return {
        'success': True,
        'count': len(planner.filtered_trainings),
        'total': len(planner.all_trainings),
        'trainings': [t.to_dict() for t in planner.filtered_trainings],
        'filters': filters_to_dict(planner.filter_state),
        'active_quick_filter': planner.filter_state.active_quick_filter.value
        if planner.filter_state.active_quick_filter else None,
        'position': position.to_dict() if position else None,
        'favorites': planner.favorites.ids,
        'notifications': planner.pop_notifications(),
    }


@app.route('/')
def index():
    """Main page - filter sidebar, training list and embedded map."""
    try:
        planner = get_planner()
    except DataLoadError as e:
        logger.error(f"❌ {e}")
        return render_template('index.html', error=str(e), planner=None), 503

    if request.args.get('reset') == '1':
        planner.dispatch(ResetFilters())
    elif request.args:
        planner.load_filters_from_query(request.args)
    planner.save_filters()

    return render_template(
        'index.html',
        error=None,
        planner=planner,
        state=planner.filter_state,
        metadata=planner.metadata,
        groups=planner.grouped_trainings(),
        quick_filter_groups=QUICK_FILTER_GROUPS,
        share_link=planner.share_link(url_for('index', _external=True)),
        notifications=planner.pop_notifications(),
    )


@app.route('/map')
def map_page():
    """Standalone Leaflet map of the current filtered trainings."""
    try:
        planner = get_planner()
        controller = MapController(
            APP_CONFIG.map,
            planner.store,
            view_endpoint=url_for('map_view'),
            location_endpoint=url_for('device_location'),
            mobile=is_mobile(),
        )
        planner.build_map(controller)
        if request.args.get('zoom') == 'favoriten':
            planner.zoom_to_favorites()
        html = controller.render()
        controller.destroy()
        return Response(html, mimetype='text/html')
    except (ValueError, TrainingsplanError) as e:
        return error_response(e, 400)
    except Exception as e:
        return error_response(e, 500)


@app.route('/api/trainings')
def api_trainings():
    """Filtered trainings as JSON. Query parameters use the share-link names."""
    try:
        planner = get_planner()
        if request.args:
            planner.load_filters_from_query(request.args)
            planner.save_filters()
        payload = planner_payload(planner)
        payload['metadata'] = planner.metadata.to_dict()
        return jsonify(payload)
    except DataLoadError as e:
        return error_response(e, 503)
    except (ValueError, TrainingsplanError) as e:
        return error_response(e, 400)
    except Exception as e:
        return error_response(e, 500)


@app.route('/api/quick-filter/<name>', methods=['POST', 'DELETE'])
def quick_filter(name):
    """Apply (POST) or remove (DELETE) a quick filter."""
    try:
        planner = get_planner()

        if request.method == 'DELETE':
            planner.remove_quick_filter()
            planner.save_filters()
            return jsonify(planner_payload(planner))

        data = request.get_json(silent=True) or {}
        provider = None
        if 'lat' in data and 'lng' in data:
            provider = lambda: (data['lat'], data['lng'])

        applied = planner.apply_quick_filter(name, device_provider=provider)
        planner.save_filters()
        payload = planner_payload(planner)
        if not applied:
            payload['success'] = False
            payload['error'] = planner.geolocation.error or 'Standort wird benötigt'
            return jsonify(payload), 409
        return jsonify(payload)
    except (ValueError, TrainingsplanError) as e:
        return error_response(e, 400)
    except Exception as e:
        return error_response(e, 500)


@app.route('/api/location', methods=['POST'])
def manual_location():
    """Set the manual location from lat/lng or an address."""
    try:
        data = request.get_json(silent=True) or {}
        planner = get_planner()

        if data.get('address') and ('lat' not in data or 'lng' not in data):
            position = planner.geolocation.set_manual_address(data['address'])
        else:
            position = planner.geolocation.set_manual_location(
                data.get('lat'), data.get('lng'), label=data.get('label') or ''
            )

        payload = planner_payload(planner)
        if position is None:
            payload['success'] = False
            payload['error'] = planner.geolocation.error
            return jsonify(payload), 400
        return jsonify(payload)
    except (ValueError, TrainingsplanError) as e:
        return error_response(e, 400)
    except Exception as e:
        return error_response(e, 500)


@app.route('/api/location/device', methods=['POST'])
def device_location():
    """Coordinates (or an error code) reported by the browser's geolocation."""
    try:
        data = request.get_json(silent=True) or {}
        planner = get_planner()

        def provider():
            if 'error_code' in data:
                raise geolocation_error_from_code(data['error_code'])
            return data.get('lat'), data.get('lng')

        position = planner.geolocation.request_device_location(provider)
        payload = planner_payload(planner)
        if position is None:
            payload['success'] = False
            payload['error'] = planner.geolocation.error
            return jsonify(payload), 400
        return jsonify(payload)
    except (ValueError, TrainingsplanError) as e:
        return error_response(e, 400)
    except Exception as e:
        return error_response(e, 500)


@app.route('/api/location/reset', methods=['POST'])
def reset_location():
    try:
        planner = get_planner()
        planner.geolocation.reset_location()
        planner.save_filters()
        return jsonify(planner_payload(planner))
    except (ValueError, TrainingsplanError) as e:
        return error_response(e, 400)
    except Exception as e:
        return error_response(e, 500)


@app.route('/api/favorites/<int:training_id>', methods=['POST'])
def toggle_favorite(training_id):
    try:
        planner = get_planner()
        is_favorite = planner.toggle_favorite(training_id)
        payload = planner_payload(planner)
        payload['is_favorite'] = is_favorite
        return jsonify(payload)
    except (ValueError, TrainingsplanError) as e:
        return error_response(e, 400)
    except Exception as e:
        return error_response(e, 500)


@app.route('/api/map/view', methods=['POST'])
def map_view():
    """Move-end persistence posted by the map page."""
    data = request.get_json(silent=True) or {}
    controller = MapController(APP_CONFIG.map, LocalStore(session))
    stored = controller.handle_move_end(
        data.get('center'),
        data.get('zoom'),
        user_initiated=data.get('user_interacted') is True,
    )
    if not stored:
        return jsonify({'success': False, 'error': 'Ungültige Kartenansicht'}), 400
    return jsonify({'success': True})


@app.route('/api/share')
def share():
    try:
        planner = get_planner()
        return jsonify({'success': True, 'url': planner.share_link(url_for('index', _external=True))})
    except (ValueError, TrainingsplanError) as e:
        return error_response(e, 400)
    except Exception as e:
        return error_response(e, 500)
