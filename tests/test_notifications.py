from datetime import datetime, timedelta, timezone

from bawmnet.firestore_models import EventInfo
from tests.base import BawmnetTestCase


class NotificationTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        for uid in ('ana', 'ben', 'cal'):
            self.make_user(uid)

    def only_notification(self, uid):
        notes = self.get('/notifications', uid).get_json()['notifications']
        self.assertEqual(len(notes), 1)
        return notes[0]

    def test_accept_connection_request(self):
        self.post('/users/ben/connection/request', 'ana')
        note = self.only_notification('ben')
        self.assertEqual(self.post(f'/notifications/{note["id"]}/respond', 'ana',
                                   json={'action': 'accept'}).status_code, 403)
        resp = self.post(f'/notifications/{note["id"]}/respond', 'ben', json={'action': 'accept'})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(self.db.read('users/ana/connections/ben')['status'], 'connected')
        self.assertEqual(self.db.ids('notifications'), [])

    def test_decline_connection_request(self):
        self.post('/users/ben/connection/request', 'ana')
        note = self.only_notification('ben')
        self.post(f'/notifications/{note["id"]}/respond', 'ben', json={'action': 'decline'})
        self.assertIsNone(self.db.read('users/ben/connections/ana'))
        self.assertEqual(self.db.ids('notifications'), [])

    def test_join_request_via_notification(self):
        self.db.put('events/fest', EventInfo(name='Fest', owner_id='ana', members=['ana'],
                                             visibility='private').to_dict())
        self.post('/events/fest/join', 'ben')
        note = self.only_notification('ana')
        self.assertEqual(note['type'], 'event_join_request')
        self.assertEqual(note['entity']['name'], 'Fest')
        self.post(f'/notifications/{note["id"]}/respond', 'ana', json={'action': 'accept'})
        event = self.db.read('events/fest')
        self.assertEqual(event['participants'], ['ana', 'ben'])
        self.assertEqual(self.db.read('users/ben')['participated_events'], ['fest'])
        self.assertEqual(self.db.ids('notifications'), [])

    def test_invalid_responses(self):
        self.post('/users/ben/connection/request', 'ana')
        note = self.only_notification('ben')
        resp = self.post(f'/notifications/{note["id"]}/respond', 'ben', json={'action': 'maybe'})
        self.assertEqual(resp.status_code, 400)
        self.db.put('notifications/plain', {'recipient_id': 'ben', 'sender_id': 'ana', 'type': 'post_like',
                                            'read': False, 'created_at': datetime.now(timezone.utc)})
        resp = self.post('/notifications/plain/respond', 'ben', json={'action': 'accept'})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.post('/notifications/missing/respond', 'ben',
                                   json={'action': 'accept'}).status_code, 404)

    def test_read_state(self):
        now = datetime.now(timezone.utc)
        for i in range(3):
            self.db.put(f'notifications/n{i}', {'recipient_id': 'ben', 'sender_id': 'ana', 'type': 'post_like',
                                                'read': False, 'created_at': now - timedelta(minutes=i)})
        self.db.put('notifications/other', {'recipient_id': 'cal', 'sender_id': 'ana', 'type': 'post_like',
                                            'read': False, 'created_at': now})
        self.assertEqual(self.get('/notifications/unread-count', 'ben').get_json(), {'count': 3})

        self.assertEqual(self.post('/notifications/n0/read', 'cal').status_code, 403)
        self.post('/notifications/n0/read', 'ben')
        self.assertTrue(self.db.read('notifications/n0')['read'])
        self.assertEqual(self.get('/notifications/unread-count', 'ben').get_json(), {'count': 2})

        self.assertEqual(self.post('/notifications/read-all', 'ben').get_json(), {'updated': 2})
        self.assertFalse(self.db.read('notifications/other')['read'])

        notes = self.get('/notifications', 'ben').get_json()['notifications']
        self.assertEqual([n['id'] for n in notes], ['n0', 'n1', 'n2'])
        self.assertEqual(notes[0]['sender']['uid'], 'ana')

    def test_delete_own_only(self):
        self.db.put('notifications/n1', {'recipient_id': 'ben', 'sender_id': 'ana', 'type': 'post_like',
                                         'read': False, 'created_at': datetime.now(timezone.utc)})
        self.assertEqual(self.delete('/notifications/n1', 'ana').status_code, 403)
        self.assertEqual(self.delete('/notifications/n1', 'ben').status_code, 200)
        self.assertEqual(self.delete('/notifications/n1', 'ben').status_code, 404)
