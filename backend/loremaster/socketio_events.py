from flask import current_app
from flask_socketio import join_room, leave_room, emit

from loremaster import socketio
from loremaster.exceptions import TriviaError
from loremaster.services.trivia import get_controller
from loremaster.services.trivia.broadcast import NAMESPACE, channel_room
from loremaster.services.trivia.commands import dispatch


def handle_connect():
    emit('connected', {'message': f'Connected to {NAMESPACE}'})


def handle_join_channel(data):
    channel_id = (data or {}).get('channel_id')
    if not channel_id:
        emit('error', {'message': 'channel_id is required'})
        return
    room = channel_room(channel_id)
    join_room(room)
    # Late joiners get the current round state straight away
    emit('joined', {'room': room, 'state': get_controller().snapshot()})


def handle_leave_channel(data):
    channel_id = (data or {}).get('channel_id')
    if not channel_id:
        emit('error', {'message': 'channel_id is required'})
        return
    room = channel_room(channel_id)
    leave_room(room)
    emit('left', {'room': room})


def handle_trivia_command(data):
    """Broadcaster panel command: ``{'channel_id': ..., 'message': {'type': ...}}``.

    Responses go to the channel's room; the return value is the sender's ack.
    """
    data = data if isinstance(data, dict) else {}
    try:
        return dispatch(get_controller(), data.get('channel_id'), data.get('message'))
    except TriviaError as exc:
        current_app.logger.warning(f"[command] rejected: {exc.message}")
        ack = {'success': False}
        ack.update(exc.to_dict())
        emit('error', ack)
        return ack


def handle_ping(data):
    emit('pong', data or {})


def register_socketio_handlers(testing: bool = False) -> None:
    """Bind socket handlers on '/ws' (and on '/' as well under test)."""
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('join_channel', handle_join_channel, namespace=namespace)
        socketio.on_event('leave_channel', handle_leave_channel, namespace=namespace)
        socketio.on_event('trivia_command', handle_trivia_command, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
