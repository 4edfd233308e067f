from flask import Blueprint, jsonify, request, current_app
import random
import string
import time

from solsnake.services.competition.store import (
    ENTITY_TYPES,
    InvalidEntityType,
    StoreAuthError,
    StoreError,
)

state = Blueprint('state', __name__)


def _store():
    return current_app.extensions['solsnake']['store']


@state.after_request
def _no_store(response):
    response.headers['Cache-Control'] = 'no-store'
    return response


@state.errorhandler(StoreAuthError)
def _store_auth_error(exc):
    current_app.logger.warning(f"[state-auth] {exc}")
    return jsonify({'error': 'Storage authentication failed'}), 401


@state.errorhandler(StoreError)
def _store_error(exc):
    current_app.logger.error(f"[state-error] {exc}")
    return jsonify({'error': str(exc) or 'Server error'}), 500


@state.errorhandler(InvalidEntityType)
def _invalid_type(exc):
    return jsonify({'error': str(exc)}), 400


def _generate_id(entity_type: str) -> str:
    suffix = ''.join(random.choices(string.ascii_lowercase + string.digits, k=7))
    return f"{entity_type}-{int(time.time() * 1000)}-{suffix}"


@state.route('/state', methods=['GET', 'POST', 'PUT', 'DELETE', 'PATCH', 'OPTIONS'])
def state_handler():
    if request.method == 'OPTIONS':
        return jsonify({'status': 'ok'}), 200

    entity_type = request.args.get('type')
    if not entity_type:
        return jsonify({'error': 'Missing type'}), 400
    if entity_type not in ENTITY_TYPES:
        return jsonify({'error': f'Invalid type: {entity_type}'}), 400

    store = _store()
    entity_id = request.args.get('id')

    if request.method == 'GET':
        if entity_id:
            return jsonify(store.get(entity_type, entity_id))
        date = request.args.get('date')
        return jsonify(store.list(entity_type, date=date or None))

    if request.method == 'POST':
        body = request.get_json(silent=True)
        if body is None:
            body = {}
        if not isinstance(body, dict):
            return jsonify({'error': 'Body must be a JSON object'}), 400
        new_id = str(body.get('id') or _generate_id(entity_type))
        store.put(entity_type, new_id, {**body, 'id': new_id})
        return jsonify({'success': True, 'id': new_id})

    if request.method == 'PUT':
        if not entity_id:
            return jsonify({'error': 'Missing id for update'}), 400
        body = request.get_json(silent=True)
        if body is None:
            body = {}
        if not isinstance(body, dict):
            return jsonify({'error': 'Body must be a JSON object'}), 400
        store.patch(entity_type, entity_id, body)
        return jsonify({'success': True})

    if request.method == 'DELETE':
        if not entity_id:
            return jsonify({'error': 'Missing id for delete'}), 400
        store.delete(entity_type, entity_id)
        return jsonify({'success': True})

    return jsonify({'error': 'Method not allowed'}), 405
