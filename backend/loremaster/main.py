from flask import Blueprint, jsonify

from loremaster.services.trivia import get_controller

main = Blueprint('main', __name__)

@main.route('/')
def index():
    return jsonify({'message': 'Welcome to the Loremaster trivia server!'})

@main.route('/health')
def health():
    return jsonify({'status': 'healthy', 'triviaActive': get_controller().state.active})
