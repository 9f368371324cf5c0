from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from google.api_core.exceptions import ServiceUnavailable

from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import EventInfo, GroupInfo, PageInfo, UserProfile
from bawmnet.services import feed
from tests.base import BawmnetTestCase

NOW = datetime.now(timezone.utc)


def ago(minutes):
    return NOW - timedelta(minutes=minutes)


class FeedTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('me', followed_pages=['news'], followed_groups=['band'])
        self.make_user('friend')
        self.make_user('stranger')
        self.make_user('banned', user_type='suspended')
        self.connect('me', 'friend')
        self.db.put('pages/news', PageInfo(name='Bawm News', owner_id='stranger').to_dict())
        self.db.put('pages/other', PageInfo(name='Other', owner_id='stranger').to_dict())
        self.db.put('groups/band', GroupInfo(name='Band', owner_id='friend', members=['me']).to_dict())
        self.db.put('events/mine', EventInfo(name='My Event', owner_id='me').to_dict())

    def test_feed_sources_and_order(self):
        self.db.put('user_posts/f1', {'author_id': 'friend', 'text': 'friend', 'created_at': ago(5)})
        self.db.put('user_posts/m1', {'author_id': 'me', 'text': 'mine', 'created_at': ago(1)})
        self.db.put('user_posts/s1', {'author_id': 'stranger', 'text': 'stranger', 'created_at': ago(2)})
        self.db.put('page_posts/p1', {'author_id': 'stranger', 'page_id': 'news', 'text': 'news',
                                      'created_at': ago(3)})
        self.db.put('page_posts/p2', {'author_id': 'stranger', 'page_id': 'other', 'text': 'other',
                                      'created_at': ago(3)})
        self.db.put('group_posts/g1', {'author_id': 'friend', 'group_id': 'band', 'text': 'band',
                                       'created_at': ago(4)})
        self.db.put('event_posts/e1', {'author_id': 'me', 'event_id': 'mine', 'text': 'owned event',
                                       'created_at': ago(6)})

        resp = self.get('/feed', 'me')
        self.assertEqual(resp.status_code, 200)
        posts = resp.get_json()['posts']
        self.assertEqual([p['text'] for p in posts], ['mine', 'news', 'band', 'friend', 'owned event'])
        news = posts[1]
        self.assertEqual(news['source'], {'type': 'page', 'id': 'news', 'name': 'Bawm News'})
        self.assertEqual(posts[3]['source'], {'type': 'user'})
        self.assertEqual(news['author']['uid'], 'stranger')

    def test_hidden_posts_are_dropped(self):
        self.db.put('user_posts/later', {'author_id': 'friend', 'text': 'later', 'created_at': ago(1),
                                         'scheduled_at': NOW + timedelta(hours=1)})
        self.db.put('page_posts/spam', {'author_id': 'banned', 'page_id': 'news', 'text': 'spam',
                                        'created_at': ago(1)})
        self.db.put('page_posts/ghost', {'author_id': 'deleted', 'page_id': 'news', 'text': 'ghost',
                                         'created_at': ago(1)})
        self.db.put('event_announcements/a1', {'author_id': 'me', 'event_id': 'mine', 'text': 'notice',
                                               'created_at': ago(1)})
        self.db.put('user_posts/ok', {'author_id': 'friend', 'text': 'ok', 'created_at': ago(2)})

        posts = self.get('/feed', 'me').get_json()['posts']
        self.assertEqual([p['text'] for p in posts], ['ok'])

    def test_limit(self):
        for i in range(5):
            self.db.put(f'user_posts/p{i}', {'author_id': 'friend', 'text': str(i), 'created_at': ago(i)})
        posts = self.get('/feed?limit=2', 'me').get_json()['posts']
        self.assertEqual([p['text'] for p in posts], ['0', '1'])

    def test_more_than_thirty_friends(self):
        for i in range(35):
            uid = f'pal{i:02d}'
            self.make_user(uid)
            self.connect('me', uid)
            self.db.put(f'user_posts/{uid}', {'author_id': uid, 'text': uid, 'created_at': ago(i)})
        posts = self.get('/feed', 'me').get_json()['posts']
        self.assertEqual(len(posts), 35)

    def test_transient_errors_are_retried(self):
        self.db.put('user_posts/f1', {'author_id': 'friend', 'text': 'friend', 'created_at': ago(1)})
        real = dao.get_posts_in
        calls = []

        def flaky(post_type, field, values):
            calls.append(post_type)
            if calls.count(post_type) == 1:
                raise ServiceUnavailable('try again')
            return real(post_type, field, values)

        user = UserProfile.from_dict(self.db.read('users/me'), 'me')
        with patch.object(dao, 'get_posts_in', side_effect=flaky), patch('time.sleep'):
            posts = feed.build_feed(user)
        self.assertEqual([p.text for p in posts], ['friend'])

    def test_backend_failure_is_503(self):
        with patch.object(dao, 'get_friend_ids', side_effect=ServiceUnavailable('down')):
            resp = self.get('/feed', 'me')
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.get_json()['error'], 'backend unavailable')

    def test_feed_rooms(self):
        user = UserProfile.from_dict(self.db.read('users/me'), 'me')
        rooms = feed.feed_rooms(user)
        for room in ('user_me', 'user_friend', 'page_news', 'group_band', 'event_mine'):
            self.assertIn(room, rooms)
