from flask import Blueprint, jsonify

from quizroom.models import AUDIENCE_BANDS

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the quiz room server!', 'audience_bands': list(AUDIENCE_BANDS)})
