from flask import Blueprint, current_app, jsonify, request

from quizroom import db
from quizroom.errors import QuizRoomError
from quizroom.models import Question
from quizroom.socketio_events import players_payload, publish_players_update, publish_room_update

rooms = Blueprint('rooms', __name__)


def _controller():
    return current_app.extensions['round_controller']


@rooms.errorhandler(QuizRoomError)
def handle_quizroom_error(exc):
    return jsonify(exc.to_dict()), exc.status_code


@rooms.route('/rooms', methods=['POST'])
def create_room():
    data = request.get_json(silent=True) or {}
    device_id = data.get('device_id') or request.headers.get('X-Device-Id')
    room, player = _controller().start_room(data.get('audience_band'), device_id=device_id)
    question = room.current_question
    return jsonify({
        'code': room.code,
        'room': room.to_dict(),
        'question': question.to_dict() if question else None,
        'round_ends_at': room.round_ends_at,
        'player': player.to_dict() if player else None,
    }), 201


@rooms.route('/rooms/join', methods=['POST'])
def join_room():
    data = request.get_json(silent=True) or {}
    device_id = data.get('device_id') or request.headers.get('X-Device-Id')
    room, player, created = _controller().join_room(data.get('code'), device_id)
    if created:
        publish_players_update(room)
    return jsonify({'room': room.to_dict(), 'player': player.to_dict()})


@rooms.route('/rooms/<string:code>', methods=['GET'])
def get_room_state(code):
    controller = _controller()
    room = controller.get_room(code)
    payload = room.to_dict()
    payload['players'] = players_payload(room)
    payload['durations'] = controller.durations()
    payload['heartbeat_interval'] = int(current_app.config.get('HEARTBEAT_INTERVAL_SEC', 2))
    return jsonify(payload)


@rooms.route('/rooms/<string:code>/answer', methods=['POST'])
def submit_answer(code):
    data = request.get_json(silent=True) or {}
    if any(data.get(k) is None for k in ('player_id', 'round_number', 'choice_index')):
        return jsonify({'error': 'Missing required fields'}), 400
    recorded = _controller().submit_answer(code, data['player_id'], data['round_number'], data['choice_index'])
    if not recorded:
        return jsonify({'ok': True, 'message': 'Answer already submitted'})
    return jsonify({'ok': True})


@rooms.route('/rooms/<string:code>/tick', methods=['POST'])
def tick(code):
    controller = _controller()
    result = controller.tick(code)
    if result.advanced:
        room = controller.get_room(code)
        publish_room_update(room)
        publish_players_update(room)
    return jsonify({'ok': True, 'advanced': result.advanced, 'room': result.room})


@rooms.route('/rooms/<string:code>/skip', methods=['POST'])
def skip_question(code):
    data = request.get_json(silent=True) or {}
    if not data.get('feedback_type'):
        return jsonify({'error': 'Missing required fields'}), 400
    room, skipped = _controller().skip(code, data.get('player_id'), data['feedback_type'])
    if skipped:
        publish_room_update(room)
    return jsonify({'ok': True, 'skipped': skipped, 'room': room.to_dict()})


@rooms.route('/rooms/<string:code>/reset', methods=['POST'])
def reset_game(code):
    room = _controller().reset(code)
    publish_room_update(room)
    publish_players_update(room)
    return jsonify({'ok': True, 'room': room.to_dict()})


@rooms.route('/questions/<int:question_id>', methods=['GET'])
def get_question(question_id):
    question = db.session.get(Question, question_id)
    if not question:
        return jsonify({'error': 'Question not found'}), 404
    return jsonify(question.to_dict())
