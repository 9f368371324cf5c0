import io
from unittest.mock import patch

from bawmnet import firebase_init
from tests.base import BawmnetTestCase


class ConnectionTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('ana')
        self.make_user('ben')

    def action(self, uid, other, action):
        return self.post(f'/users/{other}/connection/{action}', uid)

    def test_request_then_accept(self):
        resp = self.action('ana', 'ben', 'request')
        self.assertEqual(resp.get_json(), {'status': 'pending_sent'})
        self.assertEqual(self.db.read('users/ben/connections/ana')['status'], 'pending_received')
        notes = self.get('/notifications', 'ben').get_json()['notifications']
        self.assertEqual(len(notes), 1)
        self.assertEqual(notes[0]['type'], 'connection_request')
        self.assertEqual(notes[0]['sender']['uid'], 'ana')

        self.assertEqual(self.action('ben', 'ana', 'accept').get_json(), {'status': 'connected'})
        self.assertEqual(self.db.read('users/ana/connections/ben')['status'], 'connected')
        self.assertEqual(self.db.ids('notifications'), [])
        self.assertEqual(self.get('/users/ana/connection', 'ben').get_json(), {'status': 'connected'})

    def test_crossed_requests_connect(self):
        self.action('ana', 'ben', 'request')
        self.assertEqual(self.action('ben', 'ana', 'request').get_json(), {'status': 'connected'})

    def test_duplicate_and_self_requests(self):
        self.action('ana', 'ben', 'request')
        self.assertEqual(self.action('ana', 'ben', 'request').status_code, 409)
        self.assertEqual(self.action('ana', 'ana', 'request').status_code, 400)
        self.assertEqual(self.action('ana', 'nobody', 'request').status_code, 404)

    def test_cancel_removes_both_sides_and_notification(self):
        self.action('ana', 'ben', 'request')
        self.assertEqual(self.action('ana', 'ben', 'cancel').get_json(), {'status': 'none'})
        self.assertIsNone(self.db.read('users/ben/connections/ana'))
        self.assertEqual(self.db.ids('notifications'), [])
        self.assertEqual(self.action('ana', 'ben', 'cancel').status_code, 404)

    def test_decline_and_disconnect(self):
        self.action('ana', 'ben', 'request')
        self.assertEqual(self.action('ben', 'ana', 'decline').get_json(), {'status': 'none'})
        self.assertIsNone(self.db.read('users/ana/connections/ben'))

        self.connect('ana', 'ben')
        self.assertEqual(self.action('ana', 'ben', 'disconnect').get_json(), {'status': 'none'})
        self.assertEqual(self.action('ana', 'ben', 'disconnect').status_code, 404)
        self.assertEqual(self.action('ana', 'ben', 'unknown').status_code, 404)

    def test_list_connections_by_status(self):
        self.make_user('cal')
        self.connect('ana', 'ben')
        self.action('cal', 'ana', 'request')
        connected = self.get('/users/me/connections', 'ana').get_json()['connections']
        self.assertEqual([c['user']['uid'] for c in connected], ['ben'])
        pending = self.get('/users/me/connections?status=pending_received', 'ana').get_json()['connections']
        self.assertEqual([c['id'] for c in pending], ['cal'])
        self.assertEqual(self.get('/users/me/connections?status=weird', 'ana').status_code, 400)


class ProfileTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('ana', bio='Hello')
        self.make_user('ben')

    def test_profile_hides_email_and_shows_status(self):
        self.connect('ana', 'ben')
        user = self.get('/users/ana', 'ben').get_json()['user']
        self.assertNotIn('email', user)
        self.assertEqual(user['connection_status'], 'connected')
        self.assertEqual(user['friend_count'], 1)
        self.assertEqual(self.get('/users/nobody', 'ben').status_code, 404)

    def test_update_only_submitted_fields(self):
        resp = self.patch('/users/me', 'ana', json={'hometown': 'Lunglei', 'gender': 'female'})
        self.assertEqual(resp.status_code, 200)
        doc = self.db.read('users/ana')
        self.assertEqual(doc['hometown'], 'Lunglei')
        self.assertEqual(doc['bio'], 'Hello')
        self.assertEqual(self.patch('/users/me', 'ana', json={'gender': 'robot'}).status_code, 400)
        self.assertEqual(self.patch('/users/me', 'ana', json={}).status_code, 400)

    def test_bio_length(self):
        resp = self.patch('/users/me', 'ana', json={'bio': 'x' * 161})
        self.assertEqual(resp.status_code, 400)
        self.assertIn('bio', resp.get_json()['fields'])

    def test_avatar_upload(self):
        resp = self.post('/users/me/profile', 'ana', data={'file': (io.BytesIO(b'png'), 'me.png')},
                         content_type='multipart/form-data')
        self.assertEqual(resp.status_code, 200)
        self.assertIn('users/ana/profile.png', self.bucket.files)
        self.assertEqual(self.db.read('users/ana')['profile_picture_url'],
                         resp.get_json()['profile_picture_url'])
        big = io.BytesIO(b'x' * (1024 * 1024 + 1))
        resp = self.post('/users/me/profile', 'ana', data={'file': (big, 'big.png')},
                         content_type='multipart/form-data')
        self.assertEqual(resp.status_code, 400)

    def test_upload_without_bucket(self):
        with patch.object(firebase_init, '_bucket', None):
            resp = self.post('/users/me/profile', 'ana', data={'file': (io.BytesIO(b'png'), 'me.png')},
                             content_type='multipart/form-data')
        self.assertEqual(resp.status_code, 503)
        self.assertEqual(resp.get_json()['error'], 'File uploads are not configured')


class UserManagementTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('root', user_type='admin')
        self.make_user('ed', user_type='editor')
        self.make_user('ana')

    def test_admin_changes_user_type(self):
        resp = self.put('/users/ana/type', 'root', json={'user_type': 'star'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.db.read('users/ana')['user_type'], 'star')
        self.assertEqual(self.put('/users/ana/type', 'ed', json={'user_type': 'star'}).status_code, 403)
        self.assertEqual(self.put('/users/root/type', 'root', json={'user_type': 'active'}).status_code, 403)
        self.assertEqual(self.put('/users/ana/type', 'root', json={'user_type': 'suspended'}).status_code, 400)

    def test_setting_grants_editors(self):
        self.db.put('app_settings/user_management_permissions', {'can_delete_users': ['editor']})
        self.assertEqual(self.delete('/users/ana', 'ed').status_code, 200)
        self.assertIsNone(self.db.read('users/ana'))
        self.assertEqual(self.db.read('deleted_users/ana')['deleted_by'], 'ed')
        self.assertEqual(self.delete('/users/ana', 'ed').status_code, 404)
        self.assertEqual(self.delete('/users/root', 'root').status_code, 403)
