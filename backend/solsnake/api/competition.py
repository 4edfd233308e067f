from flask import Blueprint, jsonify, request, current_app
from solsnake import socketio, get_engine
from solsnake.services.competition.scheduler import COMPETITION_ROOM


competition = Blueprint('competition', __name__)


@competition.after_request
def _no_store(response):
    response.headers['Cache-Control'] = 'no-store'
    return response


@competition.route('/period', methods=['GET'])
def get_period():
    return jsonify(get_engine().clock.current_period().to_dict())


@competition.route('/leaderboard', methods=['GET'])
def get_leaderboard():
    engine = get_engine()
    date = request.args.get('date') or engine.clock.current_period().day_key
    return jsonify({
        'date': date,
        'dailyPot': engine.daily_pot(date),
        'entries': [e.to_dict() for e in engine.leaderboard(date)],
    })


@competition.route('/scores', methods=['POST'])
def submit_score():
    data = request.get_json(silent=True) or {}
    wallet = data.get('wallet')
    if not wallet:
        return jsonify({'error': 'Wallet is required'}), 400
    if data.get('score') is None:
        return jsonify({'error': 'Score is required'}), 400

    engine = get_engine()
    result = engine.submit_score(wallet, data.get('score'), x_username=data.get('xUsername') or '')
    if not result.accepted:
        return jsonify({'error': 'A confirmed payment for today is required'}), 402
    if not result.saved:
        return jsonify({'error': 'Score could not be saved, try again'}), 503

    payload = result.to_dict()
    socketio.emit(
        'leaderboard_update',
        {'date': result.entry.date, 'entries': payload['leaderboard']},
        to=COMPETITION_ROOM,
        namespace='/ws',
    )
    return jsonify(payload), 201


@competition.route('/payments', methods=['POST'])
def confirm_payment():
    data = request.get_json(silent=True) or {}
    wallet = data.get('wallet')
    if not wallet:
        return jsonify({'error': 'Wallet is required'}), 400
    payment = get_engine().record_payment(
        wallet,
        data.get('amount'),
        signature=data.get('signature') or '',
        date=data.get('date') or None,
        confirmed=data.get('confirmed', True) is True,
    )
    if payment is None:
        return jsonify({'error': 'Payment could not be recorded, try again'}), 503
    return jsonify(payment.to_dict()), 201


@competition.route('/payments/<string:wallet>', methods=['GET'])
def get_payment_status(wallet):
    engine = get_engine()
    date = request.args.get('date') or engine.clock.current_period().day_key
    return jsonify({'wallet': wallet, 'date': date, 'paid': engine.has_paid(wallet, date)})


@competition.route('/pot', methods=['GET'])
def get_pot():
    engine = get_engine()
    date = request.args.get('date') or engine.clock.current_period().day_key
    return jsonify({'date': date, 'dailyPot': engine.daily_pot(date)})


@competition.route('/winners', methods=['GET'])
def get_winners():
    date = request.args.get('date') or None
    return jsonify([w.to_dict() for w in get_engine().winners(date)])


@competition.route('/finalize', methods=['POST'])
def finalize():
    data = request.get_json(silent=True) or {}
    engine = get_engine()
    date = data.get('date') or engine.clock.current_period().yesterday_key
    result = engine.finalize_day(date)
    if result is None:
        return jsonify({'error': f'Finalization for {date} did not complete'}), 503
    current_app.logger.info(f"[finalize] date={date} winners={len(result.winners)}")
    socketio.emit('rollover', result.to_dict(), to=COMPETITION_ROOM, namespace='/ws')
    return jsonify(result.to_dict())
