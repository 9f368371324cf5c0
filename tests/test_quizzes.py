import io
import unittest
from datetime import datetime, timedelta, timezone

from bawmnet.firestore_models import QuizInfo, QuizQuestion
from bawmnet.services import quizzes
from tests.base import BawmnetTestCase

RADIO = {
    'question_text': 'Capital of Mizoram?',
    'answer_type': 'radio',
    'options': [{'id': 'a', 'text': 'Aizawl'}, {'id': 'b', 'text': 'Lunglei'}],
    'correct_answers': ['a'],
    'points': 2,
}
CHECKBOX = {
    'question_text': 'Which are rivers?',
    'answer_type': 'checkbox',
    'options': [{'id': 'a', 'text': 'Tlawng'}, {'id': 'b', 'text': 'Phawngpui'}, {'id': 'c', 'text': 'Tuirial'}],
    'correct_answers': ['a', 'c'],
    'points': 3,
}
TEXT = {
    'question_text': 'Name of the people?',
    'answer_type': 'text',
    'correct_answers': ['Bawm'],
}


class ScoringTests(unittest.TestCase):

    def test_checkbox_needs_exact_set(self):
        q = QuizQuestion(answer_type='checkbox', correct_answers=['a', 'c'])
        self.assertTrue(quizzes.is_correct(q, ['c', 'a']))
        self.assertFalse(quizzes.is_correct(q, ['a']))
        self.assertFalse(quizzes.is_correct(q, ['a', 'b', 'c']))

    def test_text_is_trimmed_and_case_insensitive(self):
        q = QuizQuestion(answer_type='text', correct_answers=['Bawm'])
        self.assertTrue(quizzes.is_correct(q, ['  bAWM ']))
        self.assertFalse(quizzes.is_correct(q, ['Bawm', 'Bawm']))

    def test_single_choice(self):
        q = QuizQuestion(answer_type='radio', correct_answers=['a'])
        self.assertTrue(quizzes.is_correct(q, ['a']))
        self.assertFalse(quizzes.is_correct(q, ['a', 'b']))
        self.assertFalse(quizzes.is_correct(q, []))

    def test_score_sums_points(self):
        questions = [QuizQuestion(id='1', correct_answers=['a'], points=2),
                     QuizQuestion(id='2', correct_answers=['b'], points=1.5)]
        self.assertEqual(quizzes.score(questions, {'1': ['a'], '2': ['b']}), 3.5)
        self.assertEqual(quizzes.score(questions, {'1': ['b']}), 0)


class QuizRouteTestCase(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        for uid in ('host', 'p1', 'p2', 'outsider'):
            self.make_user(uid)
        now = datetime.now(timezone.utc)
        self.quiz = QuizInfo(name='Bible Quiz', owner_id='host', members=['host', 'p1', 'p2'],
                             start_date=now - timedelta(hours=1), end_date=now + timedelta(days=1),
                             attempt_limit=2, time_limit_minutes=15)
        self.save_quiz()

    def save_quiz(self):
        self.db.put('quizzes/bible', self.quiz.to_dict())

    def add_question(self, payload):
        resp = self.post('/quizzes/bible/questions', 'host', json=payload)
        self.assertEqual(resp.status_code, 201, resp.get_json())
        return resp.get_json()['question']['id']


class QuestionTests(QuizRouteTestCase):

    def test_validation(self):
        bad = [
            dict(RADIO, question_text=' '),
            dict(RADIO, answer_type='essay'),
            dict(RADIO, correct_answers=['z']),
            dict(RADIO, correct_answers=['a', 'b']),
            dict(RADIO, points=-1),
            dict(RADIO, correct_answers=[]),
            dict(CHECKBOX, options=[]),
        ]
        for payload in bad:
            with self.subTest(payload=payload):
                resp = self.post('/quizzes/bible/questions', 'host', json=payload)
                self.assertEqual(resp.status_code, 400)

    def test_true_false_gets_default_options(self):
        qid = self.add_question({'question_text': 'Is it Sunday?', 'answer_type': 'true_false',
                                 'correct_answers': ['true']})
        stored = self.db.read(f'quiz_questions/{qid}')
        self.assertEqual([o['id'] for o in stored['options']], ['true', 'false'])

    def test_only_moderators_manage_questions(self):
        self.assertEqual(self.post('/quizzes/bible/questions', 'p1', json=RADIO).status_code, 403)
        qid = self.add_question(RADIO)
        resp = self.put(f'/quizzes/bible/questions/{qid}', 'host', json={'points': 5})
        self.assertEqual(resp.get_json()['question']['points'], 5)
        self.assertEqual(self.db.read(f'quiz_questions/{qid}')['question_text'], RADIO['question_text'])
        self.assertEqual(self.delete(f'/quizzes/bible/questions/{qid}', 'p1').status_code, 403)
        self.assertEqual(self.delete(f'/quizzes/bible/questions/{qid}', 'host').status_code, 200)
        self.assertEqual(self.delete(f'/quizzes/bible/questions/{qid}', 'host').status_code, 404)

    def test_answer_key_hidden_from_participants(self):
        self.add_question(RADIO)
        host_view = self.get('/quizzes/bible/questions', 'host').get_json()['questions']
        self.assertEqual(host_view[0]['correct_answers'], ['a'])
        player_view = self.get('/quizzes/bible/questions', 'p1').get_json()['questions']
        self.assertNotIn('correct_answers', player_view[0])
        self.assertEqual(self.get('/quizzes/bible/questions', 'outsider').status_code, 403)

    def test_questions_closed_before_start(self):
        self.add_question(RADIO)
        self.quiz.start_date = datetime.now(timezone.utc) + timedelta(hours=2)
        self.save_quiz()
        self.assertEqual(self.get('/quizzes/bible/questions', 'p1').status_code, 403)
        self.assertEqual(self.get('/quizzes/bible/questions', 'host').status_code, 200)

    def test_option_image_upload(self):
        qid = self.add_question(RADIO)
        url = f'/quizzes/bible/questions/{qid}/image'
        resp = self.post(f'{url}?option=b', 'host', data={'file': (io.BytesIO(b'img'), 'b.png')},
                         content_type='multipart/form-data')
        self.assertEqual(resp.status_code, 200)
        options = self.db.read(f'quiz_questions/{qid}')['options']
        self.assertEqual(options[1]['image_url'], resp.get_json()['image_url'])
        resp = self.post(f'{url}?option=zz', 'host', data={'file': (io.BytesIO(b'img'), 'z.png')},
                         content_type='multipart/form-data')
        self.assertEqual(resp.status_code, 404)


class AttemptTests(QuizRouteTestCase):

    def setUp(self):
        super().setUp()
        self.radio = self.add_question(RADIO)
        self.checkbox = self.add_question(CHECKBOX)
        self.text = self.add_question(TEXT)

    def start(self, uid):
        return self.post('/quizzes/bible/attempts', uid)

    def submit(self, uid, attempt_id, answers):
        return self.post(f'/quizzes/bible/attempts/{attempt_id}/submit', uid, json={'answers': answers})

    def test_start_hides_answers_and_resumes(self):
        resp = self.start('p1')
        self.assertEqual(resp.status_code, 201)
        body = resp.get_json()
        self.assertEqual(body['time_limit_minutes'], 15)
        self.assertEqual(len(body['questions']), 3)
        self.assertTrue(all('correct_answers' not in q for q in body['questions']))
        again = self.start('p1').get_json()
        self.assertEqual(again['attempt']['id'], body['attempt']['id'])

    def test_submit_scores(self):
        attempt_id = self.start('p1').get_json()['attempt']['id']
        resp = self.submit('p1', attempt_id, {self.radio: ['a'], self.checkbox: ['c', 'a'],
                                              self.text: '  bawm '})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual((resp.get_json()['score'], resp.get_json()['total']), (6, 6))
        self.assertEqual(self.db.read(f'quiz_submissions/{attempt_id}')['status'], 'completed')
        self.assertEqual(self.submit('p1', attempt_id, {}).status_code, 409)
        self.assertEqual(self.submit('p2', attempt_id, {}).status_code, 403)

    def test_attempt_limit(self):
        for _ in range(2):
            attempt_id = self.start('p1').get_json()['attempt']['id']
            self.submit('p1', attempt_id, {})
        self.assertEqual(self.start('p1').status_code, 403)
        self.assertEqual(len(self.get('/quizzes/bible/attempts', 'p1').get_json()['attempts']), 2)
        self.assertEqual(self.start('host').status_code, 201)

    def test_zero_attempt_limit_is_unlimited(self):
        self.quiz.attempt_limit = 0
        self.save_quiz()
        for _ in range(3):
            attempt_id = self.start('p1').get_json()['attempt']['id']
            self.assertEqual(self.submit('p1', attempt_id, {}).status_code, 200)

    def test_outsiders_and_closed_quiz(self):
        self.assertEqual(self.start('outsider').status_code, 403)
        self.quiz.end_date = datetime.now(timezone.utc) - timedelta(minutes=1)
        self.save_quiz()
        self.assertEqual(self.start('p1').status_code, 403)

    def test_late_submission_still_scored(self):
        attempt_id = self.start('p1').get_json()['attempt']['id']
        self.db.docs[('quiz_submissions', attempt_id)]['started_at'] = (
            datetime.now(timezone.utc) - timedelta(hours=1))
        with self.assertLogs('bawmnet.services.quizzes', level='INFO'):
            resp = self.submit('p1', attempt_id, {self.radio: ['a']})
        self.assertEqual(resp.get_json()['score'], 2)

    def test_expired_attempt_is_not_resumed(self):
        first = self.start('p1').get_json()['attempt']['id']
        self.db.docs[('quiz_submissions', first)]['started_at'] = (
            datetime.now(timezone.utc) - timedelta(hours=1))
        second = self.start('p1').get_json()['attempt']
        self.assertNotEqual(second['id'], first)
        self.assertEqual(second['attempt_number'], 2)

    def test_leaderboard(self):
        a1 = self.start('p1').get_json()['attempt']['id']
        a2 = self.start('p2').get_json()['attempt']['id']
        self.submit('p2', a2, {self.radio: ['a']})
        self.submit('p1', a1, {self.radio: ['a'], self.checkbox: ['a', 'c']})
        self.start('host')
        board = self.get('/quizzes/bible/leaderboard', 'outsider').get_json()['leaderboard']
        self.assertEqual([(e['user']['uid'], e['score']) for e in board], [('p1', 5), ('p2', 2)])

    def test_moderator_deletes_attempt(self):
        attempt_id = self.start('p1').get_json()['attempt']['id']
        self.assertEqual(self.delete(f'/quizzes/bible/attempts/{attempt_id}', 'p1').status_code, 403)
        self.assertEqual(self.delete(f'/quizzes/bible/attempts/{attempt_id}', 'host').status_code, 200)
        self.assertEqual(self.db.ids('quiz_submissions'), [])

    def test_quiz_without_questions(self):
        for qid in (self.radio, self.checkbox, self.text):
            self.delete(f'/quizzes/bible/questions/{qid}', 'host')
        self.assertEqual(self.start('p1').status_code, 400)
