from tests.base import BawmnetTestCase


class AdminSettingsTests(BawmnetTestCase):

    def setUp(self):
        super().setUp()
        self.make_user('root', user_type='admin')
        self.make_user('ed', user_type='editor')
        self.make_user('ana')

    def test_admins_only(self):
        self.assertEqual(self.get('/admin/settings').status_code, 401)
        self.assertEqual(self.get('/admin/settings', 'ed').status_code, 403)
        self.assertEqual(self.put('/admin/settings/post-permissions', 'ed', json={}).status_code, 403)
        self.assertEqual(self.post('/admin/allow-lists/page/ana', 'ed').status_code, 403)

    def test_settings_snapshot_has_defaults(self):
        settings = self.get('/admin/settings', 'root').get_json()
        self.assertEqual(settings['post_permissions']['daily_post_limit']['active'], 5)
        self.assertEqual(settings['user_management_permissions']['can_delete_users'], ['admin'])
        self.assertFalse(settings['message_permissions']['active']['can_send_photo'])
        self.assertEqual(set(settings['allow_lists']),
                         {'page', 'group', 'event', 'quiz', 'book', 'lyrics', 'marketplace', 'video', 'about'})

    def test_post_permissions(self):
        resp = self.put('/admin/settings/post-permissions', 'root',
                        json={'daily_post_limit': {'star': '30'}, 'can_upload_video': ['active', 'star']})
        self.assertEqual(resp.status_code, 200)
        effective = resp.get_json()['post_permissions']
        self.assertEqual(effective['daily_post_limit']['star'], 30)
        self.assertEqual(effective['daily_post_limit']['active'], 5)
        self.assertEqual(effective['can_upload_video'], ['active', 'star'])

        for bad in ({'daily_post_limit': {'wizard': 3}}, {'image_upload_limit': {'active': -1}},
                    {'can_post': 'active'}):
            with self.subTest(bad=bad):
                self.assertEqual(self.put('/admin/settings/post-permissions', 'root', json=bad).status_code, 400)

    def test_user_management(self):
        resp = self.put('/admin/settings/user-management', 'root', json={'can_update_user_type': ['admin', 'editor']})
        self.assertEqual(resp.get_json()['user_management_permissions']['can_update_user_type'], ['admin', 'editor'])
        self.assertEqual(self.put('/users/ana/type', 'ed', json={'user_type': 'thunder'}).status_code, 200)
        self.assertEqual(self.put('/admin/settings/user-management', 'root', json={}).status_code, 400)
        self.assertEqual(self.put('/admin/settings/user-management', 'root',
                                  json={'can_delete_users': ['ghost']}).status_code, 400)

    def test_message_permissions(self):
        resp = self.put('/admin/settings/message-permissions', 'root',
                        json={'star': {'can_send_photo': True, 'can_send_video': 1}})
        perms = resp.get_json()['message_permissions']
        self.assertEqual(perms['star'], {'can_send_photo': True, 'can_send_video': True})
        self.assertFalse(perms['active']['can_send_photo'])
        self.assertEqual(self.put('/admin/settings/message-permissions', 'root',
                                  json={'wizard': {}}).status_code, 400)

    def test_allow_lists(self):
        resp = self.post('/admin/allow-lists/marketplace/ana', 'root')
        self.assertEqual(resp.get_json(), {'kind': 'marketplace', 'allowed_user_ids': ['ana']})
        users = self.get('/admin/allow-lists/marketplace', 'root').get_json()['users']
        self.assertEqual([u['uid'] for u in users], ['ana'])

        self.assertEqual(self.post('/admin/allow-lists/marketplace/ghost', 'root').status_code, 404)
        self.assertEqual(self.post('/admin/allow-lists/spaceships/ana', 'root').status_code, 404)
        self.assertEqual(self.get('/admin/allow-lists/spaceships', 'root').status_code, 404)

        resp = self.delete('/admin/allow-lists/marketplace/ana', 'root')
        self.assertEqual(resp.get_json()['allowed_user_ids'], [])
