from flask_socketio import join_room, leave_room, emit
from solsnake import socketio, get_engine
from solsnake.services.competition.scheduler import COMPETITION_ROOM


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_join_competition(data=None):
    join_room(COMPETITION_ROOM)
    # Send the current period right away so clients can render the countdown
    emit('joined', {'room': COMPETITION_ROOM, 'period': get_engine().clock.current_period().to_dict()})


def handle_leave_competition(data=None):
    leave_room(COMPETITION_ROOM)
    emit('left', {'room': COMPETITION_ROOM})


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = ['/ws', '/'] if testing else ['/ws']
    for ns in namespaces:
        socketio.on_event('connect', handle_connect, namespace=ns)
        socketio.on_event('join_competition', handle_join_competition, namespace=ns)
        socketio.on_event('leave_competition', handle_leave_competition, namespace=ns)
        socketio.on_event('ping', handle_ping, namespace=ns)
