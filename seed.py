from datetime import datetime, timezone, timedelta
from bawmnet import create_app
from bawmnet.firebase_init import get_auth
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import (
    UserProfile, PageInfo, GroupInfo, EventInfo, QuizInfo, Post, Product,
    Lyrics, Publication,
)


def seed_database():
    app = create_app()
    with app.app_context():
        auth = get_auth()
        now = datetime.now(timezone.utc)

        password = 'password123'

        print("Creating users...")

        def create_firebase_user(email, username, first_name, last_name, user_type='active'):
            display_name = f'{first_name} {last_name}'
            try:
                fb_user = auth.create_user(email=email, password=password, display_name=display_name)
            except auth.EmailAlreadyExistsError:
                fb_user = auth.get_user_by_email(email)
            profile = UserProfile(
                uid=fb_user.uid,
                username=username,
                email=email,
                display_name=display_name,
                first_name=first_name,
                last_name=last_name,
                user_type=user_type,
            )
            dao.create_user(fb_user.uid, profile.to_dict())
            return fb_user.uid

        create_firebase_user('admin@bawmnet.example', 'bawm_admin', 'Site', 'Admin', 'admin')
        leader_uid = create_firebase_user('lalrina@bawmnet.example', 'lalrina', 'Lal', 'Rina', 'leader')
        star_uid = create_firebase_user('zomi@bawmnet.example', 'zomi', 'Zo', 'Mi', 'star')
        member_uids = [
            create_firebase_user(f'member{i}@bawmnet.example', f'member{i}', 'Member', str(i))
            for i in range(1, 6)
        ]

        print("Connecting users...")
        dao.save_connection_pair(leader_uid, star_uid, 'connected', 'connected')
        for uid in member_uids[:3]:
            dao.save_connection_pair(leader_uid, uid, 'connected', 'connected')
        dao.save_connection_pair(member_uids[3], star_uid, 'pending_sent', 'pending_received')

        print("Granting creation rights...")
        for kind in ('page', 'group', 'event', 'quiz', 'lyrics', 'book', 'marketplace'):
            dao.update_allow_list(perm.CREATION_KINDS[kind], leader_uid, True)
        dao.update_allow_list(perm.CREATION_KINDS['marketplace'], star_uid, True)

        print("Creating a page...")
        page = PageInfo(
            id='bawm-news',
            name='Bawm News',
            category='News',
            description='Community news and announcements',
            owner_id=leader_uid,
            admins=[leader_uid],
        )
        dao.create_entity('pages', page.id, page.to_dict())
        for uid in [star_uid] + member_uids:
            dao.set_page_relation(page.id, uid, 'followers', 'followed_pages', True)

        print("Creating a group, an event and a quiz...")
        group = GroupInfo(
            id='bawm-musicians',
            name='Bawm Musicians',
            category='Music',
            description='Songwriters and singers',
            owner_id=leader_uid,
            admins=[leader_uid],
            posters='members',
        )
        event = EventInfo(
            id='christmas-concert',
            name='Christmas Concert',
            category='Music',
            location='Community Hall',
            owner_id=leader_uid,
            admins=[leader_uid],
            posters='participants',
            start_date=now + timedelta(days=30),
            end_date=now + timedelta(days=30, hours=4),
        )
        quiz = QuizInfo(
            id='bible-quiz',
            name='Bible Quiz',
            category='Education',
            owner_id=leader_uid,
            admins=[leader_uid],
            visibility='private',
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=7),
            attempt_limit=2,
            time_limit_minutes=15,
        )
        for entity in (group, event, quiz):
            dao.create_entity(entity.COLLECTION, entity.id, entity.to_dict())
            dao.add_member(type(entity), entity.id, leader_uid)
        for uid in member_uids[:3]:
            dao.add_member(GroupInfo, group.id, uid)
            dao.add_member(EventInfo, event.id, uid)
        dao.add_member(QuizInfo, quiz.id, star_uid)

        print("Creating quiz questions...")
        dao.create_quiz_question({
            'quiz_id': quiz.id,
            'question_text': 'How many books are in the Bible?',
            'answer_type': 'radio',
            'options': [{'id': 'a', 'text': '39'}, {'id': 'b', 'text': '66'}, {'id': 'c', 'text': '73'}],
            'correct_answers': ['b'],
            'points': 1,
        })
        dao.create_quiz_question({
            'quiz_id': quiz.id,
            'question_text': 'Genesis is the first book of the Bible.',
            'answer_type': 'true_false',
            'options': [{'id': 'true', 'text': 'True'}, {'id': 'false', 'text': 'False'}],
            'correct_answers': ['true'],
            'points': 1,
        })

        print("Creating posts...")
        dao.create_post('user', Post(author_id=leader_uid, text='Hello BawmNet!').to_dict())
        dao.create_post('user', Post(author_id=star_uid, text='Practising for the concert').to_dict())
        dao.create_post('page', Post(author_id=leader_uid, page_id=page.id,
                                     text='Welcome to Bawm News').to_dict())
        dao.create_post('group', Post(author_id=member_uids[0], group_id=group.id,
                                      text='Who is joining the choir?').to_dict())
        dao.create_post('event_announcement', Post(author_id=leader_uid, event_id=event.id,
                                                   text='Rehearsals start next week').to_dict())

        print("Creating marketplace products...")
        dao.create_product(dao.new_product_id(), Product(
            name='Handwoven Bag',
            description='Traditional handwoven shoulder bag',
            price=25.0,
            category='traditional',
            stock=4,
            seller_id=star_uid,
            seller_contact='+91 98765 43210',
        ).to_dict())

        print("Creating lyrics and books...")
        lyrics_id = dao.new_lyrics_id()
        dao.create_lyrics(lyrics_id, Lyrics(
            id=lyrics_id,
            slug=dao.unique_slug('lyrics', 'Amazing Grace'),
            title='Amazing Grace',
            full_lyrics='Amazing grace, how sweet the sound\nThat saved a wretch like me',
            tags=['hymn', 'classic'],
            author_id=leader_uid,
        ).to_dict())
        book_id = dao.create_publication(Publication(
            book_id='bawm-history',
            title='A Short History of the Bawm',
            author_id=leader_uid,
            tags=['history'],
            is_published=True,
        ).to_dict())
        dao.add_publication_page(book_id, {
            'title': 'Origins',
            'content': 'The Bawm people live in the hills...',
            'content_type': 'paragraph',
        })

        print("\n=== Seed data created ===")
        print(f"Password for all accounts: {password}")
        print("admin@bawmnet.example (admin)")
        print("lalrina@bawmnet.example (leader, creator of every entity)")
        print("zomi@bawmnet.example (star)")
        print("member1..5@bawmnet.example (active)")


if __name__ == '__main__':
    seed_database()
