import csv
import io

from flask import Blueprint, Response, current_app, jsonify, request

from loremaster.exceptions import LogicConflict, TriviaError, ValidationError
from loremaster.services.trivia import get_controller
from loremaster.services.trivia.importer import parse_csv
from loremaster.services.trivia.settings import normalize_filters


trivia = Blueprint('trivia', __name__)


@trivia.errorhandler(TriviaError)
def handle_trivia_error(exc):
    return jsonify(exc.to_dict()), exc.status_code


def _json_body():
    """The request JSON as a dict; missing or unparsable bodies count as empty."""
    data = request.get_json(silent=True)
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError('Request body must be a JSON object')
    return data


def _broadcaster_id(data=None):
    data = data if data is not None else _json_body()
    return data.get('broadcasterId') or current_app.config.get('DEFAULT_BROADCASTER_ID')


# ---- round control ----

@trivia.route('/start', methods=['POST'])
def start_trivia():
    result = get_controller().start(_broadcaster_id())
    if result.success:
        return jsonify({'success': True, 'message': result.message})
    if result.conflict:
        return jsonify({'success': False, 'message': result.message}), 409
    return jsonify({'success': False, 'error': result.message}), 500


@trivia.route('/end', methods=['POST'])
def end_trivia():
    result = get_controller().end(_broadcaster_id())
    return jsonify({'success': result.success, 'message': result.message})


@trivia.route('/state', methods=['GET'])
def round_state():
    return jsonify(get_controller().snapshot())


@trivia.route('/send-question', methods=['POST'])
def send_question():
    """Manually fire the next question without waiting for the countdown."""
    result = get_controller().send_question(_broadcaster_id())
    if result.success:
        return jsonify({'success': True, 'message': result.message})
    status = 409 if result.conflict else 500
    return jsonify({'success': False, 'error': result.message}), status


@trivia.route('/get-next-question', methods=['GET'])
def get_next_question():
    """Polling clients ask here; the body carries ``error`` until a question is due."""
    return jsonify(get_controller().pull_question())


# ---- answers and scores ----

@trivia.route('/submit-answer', methods=['POST'])
def submit_answer():
    data = _json_body()
    if not data:
        raise ValidationError('Empty request body')
    result = get_controller().submit_answer(
        user_id=data.get('userId'),
        selected_answer=data.get('selectedAnswer'),
        correct_answer=data.get('correctAnswer'),
        answer_time_ms=data.get('answerTime'),
        difficulty=data.get('difficulty'),
        duration_ms=data.get('duration'),
        username=data.get('username'),
    )
    if not result.accepted:
        raise LogicConflict(result.message, {'success': False})
    return jsonify(result.to_dict())


@trivia.route('/score/<string:user_id>', methods=['GET'])
def get_score(user_id):
    total, session = get_controller().score_store.get(user_id)
    return jsonify({'userId': user_id, 'totalScore': total, 'sessionScore': session})


@trivia.route('/reset-session-scores', methods=['POST'])
def reset_session_scores():
    get_controller().score_store.reset_session()
    return jsonify({'success': True, 'message': 'Session scores reset'})


@trivia.route('/leaderboard', methods=['GET'])
def leaderboard():
    limit = int(current_app.config.get('LEADERBOARD_LIMIT', 20))
    return jsonify(get_controller().score_store.leaderboard(limit))


@trivia.route('/export-scores', methods=['GET'])
def export_scores():
    buf = io.StringIO()
    writer = csv.writer(buf)
    writer.writerow(['User ID', 'Username', 'Score', 'Last Updated'])
    writer.writerows(get_controller().score_store.export_rows())
    return Response(
        buf.getvalue(),
        mimetype='text/csv',
        headers={'Content-Disposition': 'attachment; filename=loremaster_scores.csv'},
    )


# ---- settings ----

@trivia.route('/update-settings', methods=['POST'])
def update_settings():
    data = _json_body()
    settings = get_controller().update_timing(_broadcaster_id(data), data)
    return jsonify({'success': True, 'settings': settings.to_dict()})


@trivia.route('/settings/<string:broadcaster_id>', methods=['GET'])
def get_settings(broadcaster_id):
    settings = get_controller().settings_store.get(broadcaster_id)
    return jsonify({'broadcasterId': broadcaster_id, 'settings': settings.to_dict()})


@trivia.route('/settings/<string:broadcaster_id>', methods=['POST'])
def update_filters(broadcaster_id):
    controller = get_controller()
    current = controller.settings_store.get(broadcaster_id)
    settings = normalize_filters(_json_body(), current)
    controller.settings_store.put(broadcaster_id, settings)
    filters = settings.filters
    count = controller.selector.store.count(filters['categories'], filters['difficulties'])
    return jsonify({
        'broadcasterId': broadcaster_id,
        'settings': settings.to_dict(),
        'questionCount': count,
        'message': f'Settings updated. {count} questions match your filters.',
    })


# ---- question catalogue ----

@trivia.route('/categories', methods=['GET'])
def categories():
    return jsonify({'categories': get_controller().selector.store.categories()})


@trivia.route('/difficulties', methods=['GET'])
def difficulties():
    return jsonify({'difficulties': get_controller().selector.store.difficulties()})


def _split(value):
    return [v.strip() for v in value.split(',') if v.strip()] if value else []


@trivia.route('/sample-questions', methods=['GET'])
def sample_questions():
    categories_filter = _split(request.args.get('categories'))
    difficulties_filter = _split(request.args.get('difficulties'))
    try:
        limit = int(request.args.get('limit', 5))
    except ValueError:
        raise ValidationError('limit must be an integer')
    preview = get_controller().selector.preview(
        {'categories': categories_filter, 'difficulties': difficulties_filter}, limit=max(1, limit)
    )
    preview['filters'] = {'categories': categories_filter, 'difficulties': difficulties_filter}
    return jsonify(preview)


@trivia.route('/upload-csv', methods=['POST'])
def upload_csv():
    upload = request.files.get('file')
    if upload is None:
        raise ValidationError('No file uploaded')
    try:
        text = upload.read().decode('utf-8-sig')
    except UnicodeDecodeError:
        raise ValidationError('CSV must be UTF-8')
    questions, skipped = parse_csv(text)
    for reason in skipped:
        current_app.logger.warning(f"[upload-csv] skipped {reason}")
    if not questions:
        raise ValidationError('No valid questions found in CSV!', {'skipped': skipped})
    count = get_controller().selector.load_static(questions)
    current_app.logger.info(f"[upload-csv] loaded {count} fallback questions")
    return jsonify({
        'message': f'{count} trivia questions uploaded successfully!',
        'count': count,
        'skipped': skipped,
    })
