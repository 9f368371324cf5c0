"""
Quiz questions, attempts and scoring.

A question scores its points when answered correctly:
  checkbox   the chosen option ids equal the correct set exactly
  text       exactly one answer, matching a correct answer after trimming,
             case-insensitively
  others     exactly one answer, contained in the correct set
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Dict, List

from flask import abort

from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import (
    QuizInfo, QuizQuestion, QuizSubmission, UserProfile, QUESTION_ANSWER_TYPES,
)

logger = logging.getLogger(__name__)

# Submissions arriving this long after the time limit are still accepted
SUBMIT_GRACE = timedelta(seconds=30)


def _normalize(text):
    return (text or '').strip().lower()


def is_correct(question: QuizQuestion, given: List[str]) -> bool:
    given = [str(a) for a in (given or [])]
    correct = [str(a) for a in question.correct_answers]
    if question.answer_type == 'checkbox':
        return sorted(given) == sorted(correct)
    if len(given) != 1:
        return False
    if question.answer_type == 'text':
        return _normalize(given[0]) in {_normalize(c) for c in correct}
    return given[0] in correct


def score(questions: List[QuizQuestion], answers: Dict[str, List[str]]) -> float:
    return sum(q.points for q in questions if is_correct(q, answers.get(q.id, [])))


def validate_question(data) -> QuizQuestion:
    """Build a question from request data, 400 on malformed input."""
    question = QuizQuestion.from_dict(data)
    if not question.question_text.strip():
        abort(400, description='Question text is required')
    if question.answer_type not in QUESTION_ANSWER_TYPES:
        abort(400, description=f'answer_type must be one of {", ".join(QUESTION_ANSWER_TYPES)}')
    if not question.correct_answers:
        abort(400, description='At least one correct answer is required')
    if question.answer_type != 'text':
        option_ids = {str(o.get('id')) for o in question.options if isinstance(o, dict)}
        if question.answer_type == 'true_false' and not option_ids:
            question.options = [{'id': 'true', 'text': 'True'}, {'id': 'false', 'text': 'False'}]
            option_ids = {'true', 'false'}
        if not option_ids:
            abort(400, description='Options are required for this answer type')
        if not set(map(str, question.correct_answers)) <= option_ids:
            abort(400, description='Correct answers must reference option ids')
        if question.answer_type != 'checkbox' and len(question.correct_answers) != 1:
            abort(400, description='Only checkbox questions may have several correct answers')
    try:
        question.points = float(question.points)
    except (TypeError, ValueError):
        abort(400, description='points must be a number')
    if question.points < 0:
        abort(400, description='points must not be negative')
    return question


def load_questions(quiz_id) -> List[QuizQuestion]:
    return [QuizQuestion.from_dict(d, d['id']) for d in dao.get_quiz_questions(quiz_id)]


def is_moderator(user: UserProfile, quiz: QuizInfo) -> bool:
    return quiz.is_admin(user.uid) or user.is_site_admin()


def attempts_of(user: UserProfile, quiz: QuizInfo) -> List[QuizSubmission]:
    return [QuizSubmission.from_dict(d, d['id']) for d in dao.get_user_submissions(quiz.id, user.uid)]


def _expired(submission: QuizSubmission, quiz: QuizInfo, now) -> bool:
    if not quiz.time_limit_minutes or not submission.started_at:
        return False
    deadline = submission.started_at + timedelta(minutes=quiz.time_limit_minutes) + SUBMIT_GRACE
    return now > deadline


def start_attempt(user: UserProfile, quiz: QuizInfo, now=None) -> QuizSubmission:
    """Begin (or resume) an attempt.

    Participants may take an ongoing quiz up to attempt_limit times
    (0 means unlimited); owners, quiz admins and site admins always may.
    """
    now = now or datetime.now(timezone.utc)
    questions = load_questions(quiz.id)
    if not questions:
        abort(400, description='This quiz has no questions yet')

    moderator = is_moderator(user, quiz)
    if not moderator:
        if not quiz.is_member(user.uid):
            abort(403, description='Only participants can take this quiz')
        if quiz.status(now) != 'ongoing':
            abort(403, description=f'Quiz is {quiz.status(now)}')

    attempts = attempts_of(user, quiz)
    for attempt in attempts:
        if attempt.status == 'started' and not _expired(attempt, quiz, now):
            return attempt
    if not moderator and quiz.attempt_limit and len(attempts) >= quiz.attempt_limit:
        abort(403, description='No attempts left')

    submission = QuizSubmission(quiz_id=quiz.id, user_id=user.uid, status='started',
                                attempt_number=len(attempts) + 1, started_at=now)
    submission.id = dao.create_submission(submission.to_dict())
    return submission


def submit_attempt(user: UserProfile, quiz: QuizInfo, submission_id, answers, now=None):
    """Score and complete an attempt. Returns (submission, total_points)."""
    now = now or datetime.now(timezone.utc)
    doc = dao.get_submission(submission_id)
    if not doc or doc.get('quiz_id') != quiz.id:
        abort(404, description='Attempt not found')
    submission = QuizSubmission.from_dict(doc, doc['id'])
    if submission.user_id != user.uid:
        abort(403, description='Not your attempt')
    if submission.status == 'completed':
        abort(409, description='Attempt already submitted')
    if _expired(submission, quiz, now):
        logger.info('Late submission %s for quiz %s scored with answers so far', submission_id, quiz.id)

    if not isinstance(answers, dict):
        abort(400, description='answers must map question ids to lists of answers')
    answers = {str(k): [str(a) for a in (v if isinstance(v, list) else [v])]
               for k, v in answers.items()}

    questions = load_questions(quiz.id)
    submission.answers = answers
    submission.score = score(questions, answers)
    submission.status = 'completed'
    submission.completed_at = now
    dao.update_submission(submission_id, {
        'answers': submission.answers,
        'score': submission.score,
        'status': 'completed',
        'completed_at': now,
    })
    return submission, sum(q.points for q in questions)


def leaderboard(quiz: QuizInfo, limit=50) -> List[QuizSubmission]:
    """Completed attempts, best score first, with user cards attached."""
    docs = dao.get_leaderboard(quiz.id, limit=limit)
    users = dao.get_users_by_ids([d.get('user_id') for d in docs])
    entries = []
    for d in docs:
        submission = QuizSubmission.from_dict(d, d['id'])
        user_doc = users.get(submission.user_id)
        if user_doc:
            submission.user = UserProfile.from_dict(user_doc, user_doc['id']).summary()
        entries.append(submission)
    return entries


def delete_submission(user: UserProfile, quiz: QuizInfo, submission_id):
    if not is_moderator(user, quiz):
        abort(403, description='Only quiz moderators can delete attempts')
    doc = dao.get_submission(submission_id)
    if not doc or doc.get('quiz_id') != quiz.id:
        abort(404, description='Attempt not found')
    dao.delete_submission(submission_id)
