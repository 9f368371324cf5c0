import io
from datetime import datetime, timedelta, timezone
from unittest.mock import patch

from google.api_core.exceptions import ServiceUnavailable

from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import EventInfo, GroupInfo, PageInfo
from tests.base import BawmnetTestCase


def _upload(name, data=b'bytes'):
    return (io.BytesIO(data), name)


class PostCreationTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('author')
        self.make_user('other')

    def test_timeline_post(self):
        resp = self.post('/posts/user', 'author', json={'text': '  Hello Bawm  '})
        self.assertEqual(resp.status_code, 201)
        post = resp.get_json()['post']
        self.assertEqual(post['text'], 'Hello Bawm')
        self.assertEqual(post['author']['uid'], 'author')
        self.assertEqual(self.db.read(f'user_posts/{post["id"]}')['author_id'], 'author')

    def test_anonymous_is_401(self):
        resp = self.post('/posts/user', json={'text': 'x'})
        self.assertEqual(resp.status_code, 401)
        self.assertEqual(resp.get_json()['error'], 'Login required')

    def test_unknown_type_and_missing_context(self):
        self.assertEqual(self.post('/posts/bogus', 'author', json={'text': 'x'}).status_code, 404)
        resp = self.post('/posts/page', 'author', json={'text': 'x', 'context_id': 'nope'})
        self.assertEqual(resp.status_code, 404)

    def test_empty_post_rejected(self):
        resp = self.post('/posts/user', 'author', json={'text': '   '})
        self.assertEqual(resp.status_code, 400)

    def test_suspended_user_cannot_post(self):
        self.make_user('bad', user_type='suspended')
        self.assertEqual(self.post('/posts/user', 'bad', json={'text': 'x'}).status_code, 403)

    def test_page_posters(self):
        self.db.put('pages/news', PageInfo(name='News', owner_id='author',
                                           followers=['other']).to_dict())
        body = {'text': 'x', 'context_id': 'news'}
        self.assertEqual(self.post('/posts/page', 'other', json=body).status_code, 403)
        resp = self.post('/posts/page', 'author', json=body)
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json()['post']['page_id'], 'news')

    def test_daily_limit_counts_every_collection(self):
        now = datetime.now(timezone.utc)
        for i in range(3):
            self.db.put(f'user_posts/u{i}', {'author_id': 'author', 'created_at': now})
        for i in range(2):
            self.db.put(f'group_posts/g{i}', {'author_id': 'author', 'group_id': 'g', 'created_at': now})
        self.db.put('user_posts/old', {'author_id': 'author', 'created_at': now - timedelta(days=2)})

        resp = self.post('/posts/user', 'author', json={'text': 'one more'})
        self.assertEqual(resp.status_code, 429)
        self.assertEqual(self.post('/posts/user', 'other', json={'text': 'fine'}).status_code, 201)

    def test_site_limit_override(self):
        self.db.put('app_settings/post_permissions', {'daily_post_limit': {'active': 1}})
        self.assertEqual(self.post('/posts/user', 'author', json={'text': 'a'}).status_code, 201)
        self.assertEqual(self.post('/posts/user', 'author', json={'text': 'b'}).status_code, 429)


class PostMediaTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('author')
        self.make_user('celeb', user_type='star')

    def _post(self, uid, files, text='media'):
        return self.post('/posts/user', uid, data={'text': text, 'media': files},
                         content_type='multipart/form-data')

    def test_single_image_is_stored_publicly(self):
        resp = self._post('author', [_upload('photo.png')])
        self.assertEqual(resp.status_code, 201)
        post = resp.get_json()['post']
        path = f'posts/user/{post["id"]}/0.png'
        self.assertIn(path, self.bucket.files)
        self.assertIn(path, self.bucket.public)
        self.assertEqual(post['media_type'], 'image')
        self.assertTrue(post['media_urls'][0].endswith(path))
        self.assertNotIn('media_paths', post)

    def test_image_limit_per_user_type(self):
        two = [_upload('a.png'), _upload('b.jpg')]
        self.assertEqual(self._post('author', two).status_code, 403)
        self.assertEqual(self._post('celeb', [_upload('a.png'), _upload('b.jpg')]).status_code, 201)

    def test_video_needs_permission(self):
        self.assertEqual(self._post('author', [_upload('clip.mp4')]).status_code, 403)
        self.assertEqual(self._post('celeb', [_upload('clip.mp4')]).status_code, 201)
        self.assertEqual(self._post('celeb', [_upload('a.mp4'), _upload('b.mp4')]).status_code, 403)

    def test_mixed_and_unsupported_media(self):
        self.assertEqual(self._post('celeb', [_upload('a.png'), _upload('b.mp4')]).status_code, 400)
        self.assertEqual(self._post('celeb', [_upload('song.mp3')]).status_code, 400)
        self.assertEqual(self._post('celeb', [_upload('notes.txt')]).status_code, 400)
        self.assertEqual(self.bucket.files, {})

    def test_group_settings_override_site_defaults(self):
        self.db.put('groups/band', GroupInfo(name='Band', owner_id='celeb', members=['author'],
                                             posters='members').to_dict())
        self.db.put('groups/band/settings/post_permissions', {'can_upload_video': ['active']})
        resp = self.post('/posts/group', 'author',
                         data={'text': 'live', 'context_id': 'band', 'media': [_upload('gig.mp4')]},
                         content_type='multipart/form-data')
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(resp.get_json()['post']['group_id'], 'band')


class ScheduledPostTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('lead', user_type='leader')
        self.make_user('reader')

    def test_schedule_needs_permission_and_future_time(self):
        later = (datetime.now(timezone.utc) + timedelta(hours=3)).isoformat()
        earlier = (datetime.now(timezone.utc) - timedelta(hours=3)).isoformat()
        self.assertEqual(self.post('/posts/user', 'reader',
                                   json={'text': 'x', 'scheduled_at': later}).status_code, 403)
        self.assertEqual(self.post('/posts/user', 'lead',
                                   json={'text': 'x', 'scheduled_at': earlier}).status_code, 400)
        self.assertEqual(self.post('/posts/user', 'lead',
                                   json={'text': 'x', 'scheduled_at': 'tomorrow'}).status_code, 400)

    def test_scheduled_post_hidden_from_others(self):
        later = (datetime.now(timezone.utc) + timedelta(hours=3)).isoformat()
        resp = self.post('/posts/user', 'lead', json={'text': 'soon', 'scheduled_at': later})
        self.assertEqual(resp.status_code, 201)
        post_id = resp.get_json()['post']['id']

        own = self.get('/posts/user?context_id=lead', 'lead').get_json()['posts']
        self.assertEqual([p['id'] for p in own], [post_id])
        self.assertEqual(self.get('/posts/user?context_id=lead', 'reader').get_json()['posts'], [])
        self.assertEqual(self.get(f'/posts/user/{post_id}', 'reader').status_code, 404)


class EventPostTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        for uid in ('owner', 'fan', 'guest'):
            self.make_user(uid)
        now = datetime.now(timezone.utc)
        self.event = EventInfo(name='Concert', owner_id='owner', members=['owner', 'fan', 'guest'],
                               start_date=now - timedelta(hours=1), end_date=now + timedelta(hours=5),
                               participant_post_limit=2)

    def _save(self):
        self.db.put('events/concert', self.event.to_dict())

    def test_participant_post_limit(self):
        self._save()
        long_ago = datetime.now(timezone.utc) - timedelta(days=3)
        for i in range(2):
            self.db.put(f'event_posts/e{i}', {'author_id': 'fan', 'event_id': 'concert',
                                              'created_at': long_ago})
        body = {'text': 'x', 'context_id': 'concert'}
        self.assertEqual(self.post('/posts/event', 'fan', json=body).status_code, 403)
        self.assertEqual(self.post('/posts/event', 'guest', json=body).status_code, 201)

    def test_special_poster_ignores_limit(self):
        self.event.posters = ['fan']
        self._save()
        for i in range(2):
            self.db.put(f'event_posts/e{i}', {'author_id': 'fan', 'event_id': 'concert',
                                              'created_at': datetime.now(timezone.utc) - timedelta(days=3)})
        resp = self.post('/posts/event', 'fan', json={'text': 'x', 'context_id': 'concert'})
        self.assertEqual(resp.status_code, 201)

    def test_upcoming_event_closed_to_participants(self):
        self.event.start_date = datetime.now(timezone.utc) + timedelta(days=1)
        self.event.end_date = datetime.now(timezone.utc) + timedelta(days=2)
        self._save()
        body = {'text': 'x', 'context_id': 'concert'}
        self.assertEqual(self.post('/posts/event', 'fan', json=body).status_code, 403)
        self.assertEqual(self.post('/posts/event', 'owner', json=body).status_code, 201)

    def test_announcements_owner_only(self):
        self._save()
        body = {'text': 'Doors open at 6', 'context_id': 'concert'}
        self.assertEqual(self.post('/posts/event_announcement', 'fan', json=body).status_code, 403)
        self.assertEqual(self.post('/posts/event_announcement', 'owner', json=body).status_code, 201)
        posts = self.get('/events/concert/announcements', 'fan').get_json()['posts']
        self.assertEqual(len(posts), 1)
        self.assertEqual(posts[0]['source']['name'], 'Concert')


class PostActionTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('author')
        self.make_user('other')
        self.post_id = self.post('/posts/user', 'author', json={'text': 'original'}).get_json()['post']['id']
        self.url = f'/posts/user/{self.post_id}'

    def test_edit_needs_editing_rights(self):
        self.assertEqual(self.patch(self.url, 'author', json={'text': 'changed'}).status_code, 403)
        self.make_user('author', user_type='editor')
        resp = self.patch(self.url, 'author', json={'text': 'changed'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.db.read(f'user_posts/{self.post_id}')['text'], 'changed')

    def test_delete_by_author_or_admin_only(self):
        self.assertEqual(self.delete(self.url, 'other').status_code, 403)
        self.make_user('boss', user_type='admin')
        self.assertEqual(self.delete(self.url, 'boss').status_code, 200)
        self.assertEqual(self.db.ids('user_posts'), [])
        self.assertEqual(self.delete(self.url, 'author').status_code, 404)

    def test_delete_removes_media_and_comments(self):
        resp = self.post('/posts/user', 'author', data={'text': 'pic', 'media': [_upload('a.png')]},
                         content_type='multipart/form-data')
        post_id = resp.get_json()['post']['id']
        self.post(f'/posts/user/{post_id}/comments', 'other', json={'text': 'nice'})
        self.assertEqual(len(self.bucket.files), 1)

        self.assertEqual(self.delete(f'/posts/user/{post_id}', 'author').status_code, 200)
        self.assertEqual(self.bucket.files, {})
        self.assertEqual(self.db.ids('comments'), [])

    def test_failed_delete_keeps_media(self):
        resp = self.post('/posts/user', 'author', data={'text': 'pic', 'media': [_upload('a.png')]},
                         content_type='multipart/form-data')
        post_id = resp.get_json()['post']['id']
        with patch.object(dao, 'delete_post', side_effect=ServiceUnavailable('down')):
            self.assertEqual(self.delete(f'/posts/user/{post_id}', 'author').status_code, 503)
        self.assertEqual(len(self.bucket.files), 1)
        self.assertIsNotNone(self.db.read(f'user_posts/{post_id}'))

    def test_like_toggles(self):
        first = self.post(f'{self.url}/like', 'other').get_json()
        self.assertEqual(first, {'liked': True, 'like_count': 1})
        second = self.post(f'{self.url}/like', 'other').get_json()
        self.assertEqual(second, {'liked': False, 'like_count': 0})

    def test_view_and_share_counters(self):
        self.post(f'{self.url}/view', 'other')
        self.post(f'{self.url}/view', 'other')
        self.post(f'{self.url}/share', 'other')
        doc = self.db.read(f'user_posts/{self.post_id}')
        self.assertEqual((doc['view_count'], doc['share_count']), (2, 1))
        self.assertEqual(self.post(f'{self.url}/bogus', 'other').status_code, 404)

    def test_comments(self):
        resp = self.post(f'{self.url}/comments', 'other', json={'text': 'Great'})
        self.assertEqual(resp.status_code, 201)
        self.assertEqual(self.db.read(f'user_posts/{self.post_id}')['comment_count'], 1)
        self.assertEqual(self.post(f'{self.url}/comments', 'other', json={'text': ''}).status_code, 400)

        comments = self.get(f'{self.url}/comments', 'author').get_json()['comments']
        self.assertEqual([c['text'] for c in comments], ['Great'])
        self.assertEqual(comments[0]['author']['uid'], 'other')

    def test_comments_of_suspended_users_hidden(self):
        self.post(f'{self.url}/comments', 'other', json={'text': 'spam'})
        self.make_user('other', user_type='suspended')
        self.assertEqual(self.get(f'{self.url}/comments', 'author').get_json()['comments'], [])
        self.assertEqual(self.post(f'{self.url}/comments', 'other', json={'text': 'more'}).status_code, 403)


class PrivateContextTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        for uid in ('owner', 'insider', 'outsider'):
            self.make_user(uid)
        now = datetime.now(timezone.utc)
        self.db.put('groups/secret', GroupInfo(name='Secret', owner_id='owner', members=['owner', 'insider'],
                                               visibility='private').to_dict())
        self.db.put('events/hush', EventInfo(name='Hush', owner_id='owner', members=['owner'],
                                              visibility='private').to_dict())
        self.db.put('group_posts/g1', {'author_id': 'owner', 'group_id': 'secret', 'text': 'hidden',
                                       'created_at': now})
        self.db.put('event_announcements/a1', {'author_id': 'owner', 'event_id': 'hush', 'text': 'soon',
                                               'created_at': now})

    def test_outsider_cannot_read_or_comment(self):
        for url in ('/posts/group?context_id=secret', '/posts/group/g1', '/posts/group/g1/comments',
                    '/posts/event_announcement?context_id=hush', '/posts/event_announcement/a1'):
            with self.subTest(url=url):
                self.assertEqual(self.get(url, 'outsider').status_code, 403)
        for url in ('/posts/group/g1/comments', '/posts/group/g1/like', '/posts/group/g1/view',
                    '/posts/group/g1/share'):
            with self.subTest(url=url):
                self.assertEqual(self.post(url, 'outsider', json={'text': 'hi'}).status_code, 403)
        self.assertEqual(self.db.ids('comments'), [])
        self.assertNotIn('likes', self.db.read('group_posts/g1'))

    def test_members_and_site_admins_can(self):
        self.make_user('root', user_type='admin')
        for uid in ('insider', 'root'):
            with self.subTest(uid=uid):
                posts = self.get('/posts/group?context_id=secret', uid).get_json()['posts']
                self.assertEqual([p['text'] for p in posts], ['hidden'])
                self.assertEqual(self.get('/posts/group/g1', uid).status_code, 200)
        self.assertEqual(self.post('/posts/group/g1/comments', 'insider', json={'text': 'hi'}).status_code, 201)
        comments = self.get('/posts/group/g1/comments', 'owner').get_json()['comments']
        self.assertEqual([c['text'] for c in comments], ['hi'])

    def test_missing_post_is_404(self):
        self.assertEqual(self.get('/posts/group/nope', 'insider').status_code, 404)
        self.assertEqual(self.get('/posts/group/nope/comments', 'insider').status_code, 404)
