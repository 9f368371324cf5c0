from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import QuizQuestion
from bawmnet.forms import json_body, uploaded_file
from bawmnet.services import memberships, quizzes, storage

bp = Blueprint('quiz_play', __name__, url_prefix='/quizzes')


def _load_quiz(quiz_id):
    return memberships.load_entity('quiz', quiz_id)


def _require_moderator(user, quiz):
    if not quizzes.is_moderator(user, quiz):
        abort(403, description='Only quiz moderators can do this')


def _load_question(quiz, question_id):
    doc = dao.get_quiz_question(question_id)
    if not doc or doc.get('quiz_id') != quiz.id:
        abort(404, description='Question not found')
    return QuizQuestion.from_dict(doc, doc['id'])


# ---------------------------------------------------------------------------
# Questions
# ---------------------------------------------------------------------------

@bp.route('/<quiz_id>/questions')
@auth_required
def list_questions(quiz_id):
    """Moderators see the answer key; participants see an ongoing quiz without it."""
    user = current_profile()
    quiz = _load_quiz(quiz_id)
    questions = quizzes.load_questions(quiz_id)
    if quizzes.is_moderator(user, quiz):
        return jsonify({'questions': [q.to_api() for q in questions]})
    if not quiz.is_member(user.uid):
        abort(403, description='Only participants can see the questions')
    if quiz.status() != 'ongoing':
        abort(403, description=f'Quiz is {quiz.status()}')
    return jsonify({'questions': [q.public_view() for q in questions]})


@bp.route('/<quiz_id>/questions', methods=['POST'])
@auth_required
def add_question(quiz_id):
    quiz = _load_quiz(quiz_id)
    _require_moderator(current_profile(), quiz)
    question = quizzes.validate_question(json_body())
    question.quiz_id = quiz_id
    question.id = dao.create_quiz_question(question.to_dict())
    return jsonify({'question': question.to_api()}), 201


@bp.route('/<quiz_id>/questions/<question_id>', methods=['PUT'])
@auth_required
def update_question(quiz_id, question_id):
    quiz = _load_quiz(quiz_id)
    _require_moderator(current_profile(), quiz)
    current = _load_question(quiz, question_id)
    payload = current.to_dict()
    payload.update(json_body())
    question = quizzes.validate_question(payload)
    question.id = question_id
    question.quiz_id = quiz_id
    data = question.to_dict()
    data.pop('created_at', None)
    dao.update_quiz_question(question_id, data)
    return jsonify({'question': question.to_api()})


@bp.route('/<quiz_id>/questions/<question_id>', methods=['DELETE'])
@auth_required
def delete_question(quiz_id, question_id):
    quiz = _load_quiz(quiz_id)
    _require_moderator(current_profile(), quiz)
    _load_question(quiz, question_id)
    dao.delete_quiz_question(question_id)
    return jsonify({'success': True})


@bp.route('/<quiz_id>/questions/<question_id>/image', methods=['POST'])
@auth_required
def upload_question_image(quiz_id, question_id):
    """Image of the question itself, or of one option with ?option=<option id>."""
    quiz = _load_quiz(quiz_id)
    _require_moderator(current_profile(), quiz)
    question = _load_question(quiz, question_id)
    data, ext = uploaded_file('file', 'image')
    option_id = request.args.get('option')
    if option_id is None:
        _, url = storage.upload_quiz_image(quiz_id, question_id, data, ext)
        dao.update_quiz_question(question_id, {'image_url': url})
        return jsonify({'image_url': url})

    options = [dict(o) for o in question.options]
    option = next((o for o in options if str(o.get('id')) == option_id), None)
    if option is None:
        abort(404, description='Option not found')
    _, url = storage.upload_quiz_image(quiz_id, f'{question_id}_{option_id}', data, ext)
    option['image_url'] = url
    dao.update_quiz_question(question_id, {'options': options})
    return jsonify({'image_url': url, 'option': option_id})


# ---------------------------------------------------------------------------
# Attempts
# ---------------------------------------------------------------------------

@bp.route('/<quiz_id>/attempts')
@auth_required
def my_attempts(quiz_id):
    attempts = quizzes.attempts_of(current_profile(), _load_quiz(quiz_id))
    return jsonify({'attempts': [a.to_api() for a in attempts]})


@bp.route('/<quiz_id>/attempts', methods=['POST'])
@auth_required
def start_attempt(quiz_id):
    quiz = _load_quiz(quiz_id)
    submission = quizzes.start_attempt(current_profile(), quiz)
    questions = quizzes.load_questions(quiz_id)
    return jsonify({
        'attempt': submission.to_api(),
        'time_limit_minutes': quiz.time_limit_minutes,
        'questions': [q.public_view() for q in questions],
    }), 201


@bp.route('/<quiz_id>/attempts/<submission_id>/submit', methods=['POST'])
@auth_required
def submit_attempt(quiz_id, submission_id):
    quiz = _load_quiz(quiz_id)
    submission, total = quizzes.submit_attempt(current_profile(), quiz, submission_id,
                                               json_body().get('answers', {}))
    return jsonify({'attempt': submission.to_api(), 'score': submission.score, 'total': total})


@bp.route('/<quiz_id>/attempts/<submission_id>', methods=['DELETE'])
@auth_required
def delete_attempt(quiz_id, submission_id):
    quizzes.delete_submission(current_profile(), _load_quiz(quiz_id), submission_id)
    return jsonify({'success': True})


@bp.route('/<quiz_id>/leaderboard')
@auth_required
def leaderboard(quiz_id):
    entries = quizzes.leaderboard(_load_quiz(quiz_id), limit=min(request.args.get('limit', 50, type=int), 200))
    return jsonify({'leaderboard': [e.to_api() for e in entries]})
