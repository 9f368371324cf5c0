from datetime import datetime, timedelta, timezone

from bawmnet.firestore_models import GroupInfo, EventInfo, UserProfile
from bawmnet.services import memberships
from tests.base import BawmnetTestCase


class EntityCreationTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('lead', user_type='leader')
        self.make_user('plain')

    def test_creation_needs_allow_list(self):
        body = {'slug': 'bawm-choir', 'name': 'Bawm Choir', 'category': 'music'}
        self.assertEqual(self.post('/groups', 'lead', json=body).status_code, 403)
        self.allow('group', 'lead')
        resp = self.post('/groups', 'lead', json=body)
        self.assertEqual(resp.status_code, 201)
        group = resp.get_json()['group']
        self.assertEqual(group['membership'], 'owner')
        self.assertEqual(group['members'], ['lead'])
        self.assertEqual(self.db.read('users/lead')['followed_groups'], ['bawm-choir'])
        self.assertEqual(self.post('/groups', 'lead', json=body).status_code, 409)

    def test_slug_rules(self):
        self.allow('group', 'lead')
        body = {'slug': 'Bad Slug!', 'name': 'Choir', 'category': 'music'}
        resp = self.post('/groups', 'lead', json=body)
        self.assertEqual(resp.status_code, 400)
        self.assertIn('slug', resp.get_json()['fields'])

    def test_event_dates_validated(self):
        self.allow('event', 'lead')
        start = datetime(2026, 12, 24, 18, tzinfo=timezone.utc)
        body = {'slug': 'christmas', 'name': 'Christmas', 'category': 'festival',
                'start_date': start.isoformat(), 'end_date': (start - timedelta(hours=1)).isoformat()}
        self.assertEqual(self.post('/events', 'lead', json=body).status_code, 400)
        body['end_date'] = (start + timedelta(hours=4)).isoformat()
        resp = self.post('/events', 'lead', json=body)
        self.assertEqual(resp.status_code, 201)
        event = resp.get_json()['event']
        self.assertEqual(event['participants'], ['lead'])
        self.assertEqual(event['participant_post_limit'], 5)
        self.assertEqual(self.db.read('events/christmas')['start_date'], start)

    def test_quiz_defaults(self):
        self.allow('quiz', 'lead')
        now = datetime.now(timezone.utc)
        resp = self.post('/quizzes', 'lead', json={
            'slug': 'bible-quiz', 'name': 'Bible Quiz', 'category': 'faith', 'visibility': 'private',
            'start_date': now.isoformat(), 'end_date': (now + timedelta(days=1)).isoformat(),
            'attempt_limit': 0})
        self.assertEqual(resp.status_code, 201)
        stored = self.db.read('quizzes/bible-quiz')
        self.assertEqual(stored['attempt_limit'], 0)
        self.assertEqual(stored['time_limit_minutes'], 10)
        self.assertEqual(stored['visibility'], 'private')

    def test_update_by_manager_only(self):
        self.db.put('groups/g1', GroupInfo(name='Old', owner_id='lead').to_dict())
        self.assertEqual(self.patch('/groups/g1', 'plain', json={'name': 'New'}).status_code, 403)
        resp = self.patch('/groups/g1', 'lead', json={'name': 'New'})
        self.assertEqual(resp.get_json()['group']['name'], 'New')
        self.assertEqual(self.patch('/groups/g1', 'lead', json={}).status_code, 400)


class JoinTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        for uid in ('owner', 'mod', 'joe', 'ann'):
            self.make_user(uid)
        self.db.put('groups/open', GroupInfo(name='Open', owner_id='owner', members=['owner']).to_dict())
        self.db.put('groups/closed', GroupInfo(name='Closed', owner_id='owner', admins=['mod'],
                                               members=['owner', 'mod'], visibility='private').to_dict())

    def test_public_join_and_leave(self):
        self.assertEqual(self.post('/groups/open/join', 'joe').get_json(), {'status': 'joined'})
        self.assertEqual(self.db.read('groups/open')['members'], ['owner', 'joe'])
        self.assertEqual(self.db.read('users/joe')['followed_groups'], ['open'])
        self.assertEqual(self.post('/groups/open/join', 'joe').get_json(), {'status': 'member'})

        self.assertEqual(self.post('/groups/open/leave', 'joe').status_code, 200)
        self.assertEqual(self.db.read('users/joe')['followed_groups'], [])
        self.assertEqual(self.post('/groups/open/leave', 'joe').status_code, 404)
        self.assertEqual(self.post('/groups/open/leave', 'owner').status_code, 400)

    def test_private_request_accept(self):
        self.assertEqual(self.post('/groups/closed/join', 'joe').get_json(), {'status': 'requested'})
        self.assertEqual(self.db.read('groups/closed')['pending_members'], ['joe'])
        self.assertEqual(self.post('/groups/closed/join', 'joe').get_json(), {'status': 'pending'})

        notes = self.get('/notifications', 'owner').get_json()['notifications']
        self.assertEqual(notes[0]['type'], 'group_join_request')
        self.assertEqual(notes[0]['entity'], {'id': 'closed', 'type': 'group', 'name': 'Closed'})

        self.assertEqual(self.post('/groups/closed/requests/joe/accept', 'ann').status_code, 403)
        self.assertEqual(self.post('/groups/closed/requests/joe/accept', 'mod').status_code, 200)
        group = self.db.read('groups/closed')
        self.assertIn('joe', group['members'])
        self.assertEqual(group['pending_members'], [])
        self.assertEqual(self.db.ids('notifications'), [])

    def test_declined_user_waits_for_cooldown(self):
        self.post('/groups/closed/join', 'joe')
        self.assertEqual(self.post('/groups/closed/requests/joe/decline', 'owner').status_code, 200)
        self.assertIn('joe', self.db.read('groups/closed')['declined_members'])

        resp = self.post('/groups/closed/join', 'joe')
        self.assertEqual(resp.status_code, 429)

        group = self.db.read('groups/closed')
        group['declined_members']['joe'] = datetime.now(timezone.utc) - timedelta(hours=25)
        self.db.put('groups/closed', group)
        self.assertEqual(self.post('/groups/closed/join', 'joe').get_json(), {'status': 'requested'})
        self.assertNotIn('joe', self.db.read('groups/closed')['declined_members'])

    def test_cancel_request(self):
        self.post('/groups/closed/join', 'joe')
        self.assertEqual(self.delete('/groups/closed/join', 'joe').status_code, 200)
        self.assertEqual(self.db.read('groups/closed')['pending_members'], [])
        self.assertEqual(self.db.ids('notifications'), [])
        self.assertEqual(self.delete('/groups/closed/join', 'joe').status_code, 404)

    def test_private_lists_hidden_from_outsiders(self):
        outsider = self.get('/groups/closed', 'joe').get_json()['group']
        self.assertNotIn('members', outsider)
        self.assertEqual(outsider['member_count'], 2)
        self.assertEqual(self.get('/groups/closed/members', 'joe').status_code, 403)
        self.assertEqual(self.get('/groups/closed/posts', 'joe').status_code, 403)

        self.post('/groups/closed/join', 'ann')
        member_view = self.get('/groups/closed', 'mod').get_json()['group']
        self.assertEqual(member_view['pending'], ['ann'])
        cards = self.get('/groups/closed/members', 'mod').get_json()
        self.assertEqual([c['uid'] for c in cards['admins']], ['mod'])
        self.assertEqual([c['uid'] for c in cards['pending']], ['ann'])

    def test_remove_member_and_admins(self):
        self.post('/groups/open/join', 'joe')
        self.assertEqual(self.post('/groups/open/admins/ann', 'owner').status_code, 400)
        self.assertEqual(self.post('/groups/open/admins/joe', 'owner').status_code, 200)
        self.assertEqual(self.db.read('groups/open')['admins'], ['joe'])
        self.assertEqual(self.delete('/groups/open/members/owner', 'joe').status_code, 400)
        self.assertEqual(self.delete('/groups/open/members/joe', 'owner').status_code, 200)
        group = self.db.read('groups/open')
        self.assertEqual(group['admins'], [])
        self.assertEqual(group['members'], ['owner'])

    def test_suspended_user_cannot_join(self):
        self.make_user('bad', user_type='suspended')
        self.assertEqual(self.post('/groups/open/join', 'bad').status_code, 403)

    def test_membership_status(self):
        group = GroupInfo.from_dict(self.db.read('groups/closed'), 'closed')
        now = datetime.now(timezone.utc)
        group.declined['joe'] = now - timedelta(hours=1)
        joe = UserProfile(uid='joe')
        self.assertEqual(memberships.membership_status(joe, group, now), 'declined')
        self.assertEqual(memberships.membership_status(joe, group, now + timedelta(days=1)), 'none')
        self.assertEqual(memberships.membership_status(None, group), 'none')


class PosterSettingsTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        for uid in ('owner', 'fan'):
            self.make_user(uid)
        self.db.put('events/fest', EventInfo(name='Fest', owner_id='owner',
                                             members=['owner', 'fan']).to_dict())

    def test_poster_modes(self):
        self.assertEqual(self.put('/events/fest/posters', 'owner', json={'posters': 'members'}).status_code, 400)
        resp = self.put('/events/fest/posters', 'owner', json={'posters': 'participants'})
        self.assertEqual(resp.get_json(), {'posters': 'participants'})
        self.assertEqual(self.put('/events/fest/posters', 'fan', json={'posters': 'admins'}).status_code, 403)

    def test_special_posters(self):
        resp = self.post('/events/fest/special-posters/fan', 'owner')
        self.assertEqual(resp.get_json(), {'posters': ['fan']})
        resp = self.delete('/events/fest/special-posters/fan', 'owner')
        self.assertEqual(resp.get_json(), {'posters': []})

    def test_entity_post_permissions(self):
        resp = self.put('/events/fest/post-permissions', 'owner', json={'daily_post_limit': {'active': 2}})
        self.assertEqual(resp.status_code, 200)
        self.assertEqual(resp.get_json()['effective']['daily_post_limit']['active'], 2)
        resp = self.put('/events/fest/post-permissions', 'owner', json={'can_post': ['wizard']})
        self.assertEqual(resp.status_code, 400)
        self.assertEqual(self.get('/events/fest/post-permissions', 'fan').status_code, 403)
