from typing import Any, Dict

from flask import request
from flask_socketio import emit, join_room, leave_room

from quizroom import socketio
from quizroom.models import Player

NAMESPACE = '/ws'


def room_channel(code: str) -> str:
    return f"room:{code.upper()}"


def players_payload(room) -> list:
    players = Player.query.filter_by(room_id=room.id).order_by(Player.created_at, Player.id).all()
    return [p.to_dict() for p in players]


def publish_room_update(room) -> None:
    """Push the room snapshot to every device subscribed to the room."""
    socketio.emit('room_update', room.to_dict(), to=room_channel(room.code), namespace=NAMESPACE)


def publish_players_update(room) -> None:
    socketio.emit(
        'players_update',
        {'room_code': room.code, 'players': players_payload(room)},
        to=room_channel(room.code),
        namespace=NAMESPACE,
    )


def handle_connect():
    emit('connected', {'message': 'Connected to /ws'})


def handle_disconnect(*args):
    _sid_to_room.pop(_get_sid(), None)


def handle_join_room(data):
    room_code = (data or {}).get('room_code')
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    channel = room_channel(room_code)
    join_room(channel)
    _sid_to_room[_get_sid()] = room_code.upper()
    emit('joined', {'room': channel})


def handle_leave_room(data):
    room_code = (data or {}).get('room_code') or _sid_to_room.get(_get_sid())
    if not room_code:
        emit('error', {'message': 'room_code is required'})
        return
    channel = room_channel(room_code)
    leave_room(channel)
    _sid_to_room.pop(_get_sid(), None)
    emit('left', {'room': channel})


def handle_ping(data):
    emit('pong', data or {})


_sid_to_room: Dict[str, Any] = {}


def _get_sid() -> str:
    return request.sid  # type: ignore


def register_socketio_handlers(testing: bool = False) -> None:
    """Register Socket.IO event handlers.

    Always register on namespace '/ws'. When testing is True, also mirror
    handlers on the default namespace '/' to accommodate the test harness.
    """
    namespaces = [NAMESPACE, '/'] if testing else [NAMESPACE]
    for namespace in namespaces:
        socketio.on_event('connect', handle_connect, namespace=namespace)
        socketio.on_event('disconnect', handle_disconnect, namespace=namespace)
        socketio.on_event('join_room', handle_join_room, namespace=namespace)
        socketio.on_event('leave_room', handle_leave_room, namespace=namespace)
        socketio.on_event('ping', handle_ping, namespace=namespace)
