"""
Firestore Data Access Object (DAO) layer.

Route and service modules call functions from this module instead of
querying Firestore directly.  Reads return plain dicts carrying an 'id'
key; writes take dicts shaped by ``bawmnet.firestore_models``.

Ordered queries that need a composite index go through ``_ordered()``:
when the index is missing Firestore answers FailedPrecondition, and the
query is retried without ``order_by`` and sorted in process.
"""

import re
import logging
from datetime import datetime, timezone

from google.api_core.exceptions import FailedPrecondition
from google.cloud.firestore_v1 import (
    FieldFilter, ArrayUnion, ArrayRemove, Increment, DELETE_FIELD,
)

from bawmnet.firebase_init import get_db

logger = logging.getLogger(__name__)

# Firestore 'in' filter supports max 30 items per query
IN_QUERY_LIMIT = 30
BATCH_LIMIT = 500

POST_COLLECTIONS = {
    'user': 'user_posts',
    'page': 'page_posts',
    'group': 'group_posts',
    'event': 'event_posts',
    'quiz': 'quiz_posts',
    'event_announcement': 'event_announcements',
    'quiz_announcement': 'quiz_announcements',
}

# Field tying a post to its context document
POST_CONTEXT_FIELDS = {
    'user': 'author_id',
    'page': 'page_id',
    'group': 'group_id',
    'event': 'event_id',
    'quiz': 'quiz_id',
    'event_announcement': 'event_id',
    'quiz_announcement': 'quiz_id',
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _doc_to_dict(doc_snapshot):
    """Convert a Firestore DocumentSnapshot to a dict with 'id' field."""
    if not doc_snapshot.exists:
        return None
    d = doc_snapshot.to_dict()
    d['id'] = doc_snapshot.id
    return d


def _query_to_list(query_ref):
    """Run a query and return a list of dicts."""
    return [_doc_to_dict(doc) for doc in query_ref.stream()]


def _now():
    return datetime.now(timezone.utc)


def chunked(items, size=IN_QUERY_LIMIT):
    items = list(items)
    for i in range(0, len(items), size):
        yield items[i:i + size]


def _sort_key(field):
    epoch = datetime.min.replace(tzinfo=timezone.utc)

    def key(d):
        value = d.get(field)
        if value is None:
            return epoch if field.endswith('_at') or field.endswith('_date') else 0
        return value
    return key


def _ordered(query_ref, field, descending=False, limit=None):
    """Run ``query_ref`` ordered by ``field``.

    Falls back to an unordered query plus an in-process sort when the
    composite index for the ordering is missing.
    """
    direction = 'DESCENDING' if descending else 'ASCENDING'
    q = query_ref.order_by(field, direction=direction)
    if limit:
        q = q.limit(limit)
    try:
        return _query_to_list(q)
    except FailedPrecondition as exc:
        logger.warning('Missing index for order_by(%s); sorting in process: %s', field, exc)
    results = _query_to_list(query_ref)
    results.sort(key=_sort_key(field), reverse=descending)
    return results[:limit] if limit else results


def _commit_in_batches(operations):
    """Apply (op, ref, data) tuples in batches of BATCH_LIMIT writes."""
    db = get_db()
    batch = db.batch()
    count = 0
    for op, ref, data in operations:
        if op == 'delete':
            batch.delete(ref)
        elif op == 'set':
            batch.set(ref, data)
        else:
            batch.update(ref, data)
        count += 1
        if count >= BATCH_LIMIT:
            batch.commit()
            batch = db.batch()
            count = 0
    if count:
        batch.commit()


def get_doc(collection, doc_id):
    """Get any document by collection and ID. Returns dict or None."""
    if not doc_id:
        return None
    return _doc_to_dict(get_db().collection(collection).document(doc_id).get())


def get_docs_by_ids(collection, ids):
    """Fetch several documents by ID in chunks of 30. Returns dict id -> doc."""
    ids = [i for i in dict.fromkeys(ids) if i]
    results = {}
    coll = get_db().collection(collection)
    for chunk in chunked(ids):
        docs = (
            coll.where(filter=FieldFilter('__name__', 'in',
                       [coll.document(doc_id) for doc_id in chunk]))
            .stream()
        )
        for doc in docs:
            d = _doc_to_dict(doc)
            if d:
                results[d['id']] = d
    return results


def set_array_member(collection, doc_id, field, value, present):
    """Add (present=True) or remove a value from an array field."""
    op = ArrayUnion([value]) if present else ArrayRemove([value])
    get_db().collection(collection).document(doc_id).update({field: op})


def increment_counter(collection, doc_id, field, amount=1):
    """Atomically increment a numeric field."""
    get_db().collection(collection).document(doc_id).update({field: Increment(amount)})


def slugify(text):
    slug = re.sub(r'[^a-z0-9]+', '-', (text or '').lower()).strip('-')
    return slug or 'item'


def unique_slug(collection, text, field='slug'):
    """Slug for ``text`` unique within ``collection``; '-2', '-3', ... on collision."""
    base = slugify(text)
    candidate = base
    counter = 1
    while True:
        if field == '__name__':
            taken = get_doc(collection, candidate) is not None
        else:
            taken = any(
                get_db().collection(collection)
                .where(filter=FieldFilter(field, '==', candidate))
                .limit(1)
                .stream()
            )
        if not taken:
            return candidate
        counter += 1
        candidate = f"{base}-{counter}"


# ========================================================================
# Users  (collection: users)
# ========================================================================

def get_user(uid):
    """Get a user document by UID. Returns dict or None."""
    return get_doc('users', uid)


def get_user_by_email(email):
    """Get a user by email address. Returns dict or None."""
    docs = (
        get_db().collection('users')
        .where(filter=FieldFilter('email', '==', email))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def get_user_by_username(username):
    """Get a user by username. Returns dict or None."""
    docs = (
        get_db().collection('users')
        .where(filter=FieldFilter('username', '==', username))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def create_user(uid, data):
    """Create a user document with the given UID as the document ID."""
    data.setdefault('created_at', _now())
    get_db().collection('users').document(uid).set(data)


def update_user(uid, data):
    """Update fields on an existing user document."""
    data.setdefault('updated_at', _now())
    get_db().collection('users').document(uid).update(data)


def get_users_by_ids(uids):
    """Fetch multiple users by their UIDs. Returns dict uid -> user."""
    return get_docs_by_ids('users', uids)


def list_users(limit=100):
    """Community directory, newest members first."""
    return _ordered(get_db().collection('users'), 'created_at', descending=True, limit=limit)


def search_users(term, limit=20):
    """Prefix search over username and display name."""
    results = {}
    for field in ('username', 'display_name'):
        docs = (
            get_db().collection('users')
            .where(filter=FieldFilter(field, '>=', term))
            .where(filter=FieldFilter(field, '<=', term + '\uf8ff'))
            .limit(limit)
            .stream()
        )
        for doc in docs:
            d = _doc_to_dict(doc)
            results[d['id']] = d
    return list(results.values())[:limit]


def move_user_to_deleted(uid, deleted_by):
    """Copy a profile into deleted_users and remove the original."""
    user = get_user(uid)
    if not user:
        return False
    user.pop('id', None)
    user['deleted_at'] = _now()
    user['deleted_by'] = deleted_by
    db = get_db()
    batch = db.batch()
    batch.set(db.collection('deleted_users').document(uid), user)
    batch.delete(db.collection('users').document(uid))
    batch.commit()
    return True


# ========================================================================
# Connections  (subcollection: users/{uid}/connections/{other_uid})
# ========================================================================

def _connection_ref(uid, other_uid):
    return get_db().collection('users').document(uid).collection('connections').document(other_uid)


def get_connection(uid, other_uid):
    """Connection document as seen from ``uid``. Returns dict or None."""
    return _doc_to_dict(_connection_ref(uid, other_uid).get())


def get_connections(uid, status=None):
    """All connection documents of a user, optionally by status."""
    q = get_db().collection('users').document(uid).collection('connections')
    if status:
        q = q.where(filter=FieldFilter('status', '==', status))
    return _query_to_list(q)


def get_friend_ids(uid):
    return [c['id'] for c in get_connections(uid, status='connected')]


def save_connection_pair(uid, other_uid, status, other_status, notification=None):
    """Write both sides of a connection, plus an optional notification, in one batch."""
    db = get_db()
    now = _now()
    batch = db.batch()
    batch.set(_connection_ref(uid, other_uid), {'status': status, 'updated_at': now}, merge=True)
    batch.set(_connection_ref(other_uid, uid), {'status': other_status, 'updated_at': now}, merge=True)
    notification_id = None
    if notification is not None:
        notification.setdefault('created_at', now)
        ref = db.collection('notifications').document()
        batch.set(ref, notification)
        notification_id = ref.id
    batch.commit()
    return notification_id


def delete_connection_pair(uid, other_uid):
    """Delete both sides of a connection."""
    batch = get_db().batch()
    batch.delete(_connection_ref(uid, other_uid))
    batch.delete(_connection_ref(other_uid, uid))
    batch.commit()


# ========================================================================
# Settings  (collection: app_settings, <collection>/<id>/settings)
# ========================================================================

def get_app_setting(name):
    """Get a site-wide settings document. Returns dict or None."""
    d = get_doc('app_settings', name)
    if d:
        d.pop('id', None)
    return d


def set_app_setting(name, data):
    """Merge fields into a site-wide settings document."""
    data.setdefault('updated_at', _now())
    get_db().collection('app_settings').document(name).set(data, merge=True)


def update_allow_list(name, uid, allowed):
    """Add or remove a UID on an app_settings allow-list."""
    op = ArrayUnion([uid]) if allowed else ArrayRemove([uid])
    get_db().collection('app_settings').document(name).set(
        {'allowed_user_ids': op, 'updated_at': _now()}, merge=True)


def _entity_settings_ref(collection, entity_id):
    return (
        get_db().collection(collection).document(entity_id)
        .collection('settings').document('post_permissions')
    )


def get_entity_post_permissions(collection, entity_id):
    """Per-entity post permission overrides. Returns dict or None."""
    d = _doc_to_dict(_entity_settings_ref(collection, entity_id).get())
    if d:
        d.pop('id', None)
    return d


def set_entity_post_permissions(collection, entity_id, data):
    data.setdefault('updated_at', _now())
    _entity_settings_ref(collection, entity_id).set(data, merge=True)


# ========================================================================
# Posts  (collections: user_posts, page_posts, group_posts, event_posts,
#         quiz_posts, event_announcements, quiz_announcements)
# ========================================================================

def get_post(post_type, post_id):
    """Get a post by type and ID. Returns dict or None."""
    d = get_doc(POST_COLLECTIONS[post_type], post_id)
    if d:
        d['post_type'] = post_type
    return d


def create_post(post_type, data):
    """Create a post. Returns the generated doc ID."""
    data.setdefault('created_at', _now())
    _, doc_ref = get_db().collection(POST_COLLECTIONS[post_type]).add(data)
    return doc_ref.id


def new_post_id(post_type):
    """Reserve a document ID, used to build storage paths before the write."""
    return get_db().collection(POST_COLLECTIONS[post_type]).document().id


def create_post_with_id(post_type, post_id, data):
    data.setdefault('created_at', _now())
    get_db().collection(POST_COLLECTIONS[post_type]).document(post_id).set(data)
    return post_id


def update_post(post_type, post_id, data):
    """Update a post."""
    data.setdefault('updated_at', _now())
    get_db().collection(POST_COLLECTIONS[post_type]).document(post_id).update(data)


def delete_post(post_type, post_id):
    """Delete a post and its comments in one batch."""
    _delete_with_comments(POST_COLLECTIONS[post_type], post_type, post_id)


def get_posts_in(post_type, field, values):
    """One 'in' query (at most 30 values) against a post collection, unordered."""
    docs = (
        get_db().collection(POST_COLLECTIONS[post_type])
        .where(filter=FieldFilter(field, 'in', list(values)))
        .stream()
    )
    results = []
    for doc in docs:
        d = _doc_to_dict(doc)
        d['post_type'] = post_type
        results.append(d)
    return results


def get_context_posts(post_type, context_id, limit=50):
    """Posts of one context (author, page, group, event or quiz), newest first."""
    q = (
        get_db().collection(POST_COLLECTIONS[post_type])
        .where(filter=FieldFilter(POST_CONTEXT_FIELDS[post_type], '==', context_id))
    )
    posts = _ordered(q, 'created_at', descending=True, limit=limit)
    for p in posts:
        p['post_type'] = post_type
    return posts


def count_posts_since(post_type, author_id, since, context_id=None):
    """Number of posts by ``author_id`` in one collection since ``since``."""
    q = (
        get_db().collection(POST_COLLECTIONS[post_type])
        .where(filter=FieldFilter('author_id', '==', author_id))
    )
    if context_id:
        q = q.where(filter=FieldFilter(POST_CONTEXT_FIELDS[post_type], '==', context_id))
    try:
        return len(list(q.where(filter=FieldFilter('created_at', '>=', since)).stream()))
    except FailedPrecondition as exc:
        logger.warning('Missing index for post count; filtering in process: %s', exc)
    return sum(1 for d in _query_to_list(q) if d.get('created_at') and d['created_at'] >= since)


def count_user_posts_since(author_id, since):
    """Posts by a user across every post collection since ``since``."""
    return sum(count_posts_since(post_type, author_id, since) for post_type in POST_COLLECTIONS)


# ========================================================================
# Comments  (collection: comments)
# ========================================================================

def _delete_with_comments(collection, parent_type, parent_id):
    db = get_db()
    comments = (
        db.collection('comments')
        .where(filter=FieldFilter('post_id', '==', parent_id))
        .where(filter=FieldFilter('post_type', '==', parent_type))
        .stream()
    )
    ops = [('delete', c.reference, None) for c in comments]
    ops.append(('delete', db.collection(collection).document(parent_id), None))
    _commit_in_batches(ops)


def add_comment(parent_collection, parent_id, data):
    """Create a comment and bump the parent's comment_count. Returns doc ID."""
    db = get_db()
    data.setdefault('created_at', _now())
    ref = db.collection('comments').document()
    batch = db.batch()
    batch.set(ref, data)
    batch.update(db.collection(parent_collection).document(parent_id),
                 {'comment_count': Increment(1)})
    batch.commit()
    return ref.id


def get_comments(parent_type, parent_id, limit=100):
    """Comments of a post, lyrics entry or video, newest first."""
    q = (
        get_db().collection('comments')
        .where(filter=FieldFilter('post_id', '==', parent_id))
        .where(filter=FieldFilter('post_type', '==', parent_type))
    )
    return _ordered(q, 'created_at', descending=True, limit=limit)


# ========================================================================
# Pages, groups, events, quizzes
# (collections: pages, groups, events, quizzes; doc ID is the URL slug)
# ========================================================================

def get_entity(collection, entity_id):
    """Get a page, group, event or quiz. Returns dict or None."""
    return get_doc(collection, entity_id)


def create_entity(collection, entity_id, data):
    """Create an entity under its slug. Returns the slug."""
    data.setdefault('created_at', _now())
    get_db().collection(collection).document(entity_id).set(data)
    return entity_id


def update_entity(collection, entity_id, data):
    data.setdefault('updated_at', _now())
    get_db().collection(collection).document(entity_id).update(data)


def list_entities(collection, limit=100):
    """Newest entities first."""
    return _ordered(get_db().collection(collection), 'created_at', descending=True, limit=limit)


def get_entities_owned_by(collection, uid):
    return _query_to_list(
        get_db().collection(collection)
        .where(filter=FieldFilter('owner_id', '==', uid))
    )


def set_page_relation(page_id, uid, page_field, user_field, present):
    """Follow/unfollow or like/unlike: page array and user array in one batch."""
    db = get_db()
    op = ArrayUnion([uid]) if present else ArrayRemove([uid])
    user_op = ArrayUnion([page_id]) if present else ArrayRemove([page_id])
    batch = db.batch()
    batch.update(db.collection('pages').document(page_id), {page_field: op})
    batch.update(db.collection('users').document(uid), {user_field: user_op})
    batch.commit()


def add_member(entity_cls, entity_id, uid):
    """Join immediately: member array, user array, clear pending/declined."""
    db = get_db()
    batch = db.batch()
    batch.update(db.collection(entity_cls.COLLECTION).document(entity_id), {
        entity_cls.MEMBERS_FIELD: ArrayUnion([uid]),
        entity_cls.pending_field(): ArrayRemove([uid]),
        f"{entity_cls.declined_field()}.{uid}": DELETE_FIELD,
    })
    batch.update(db.collection('users').document(uid), {
        entity_cls.USER_FIELD: ArrayUnion([entity_id]),
    })
    batch.commit()


def add_join_request(entity_cls, entity_id, uid, notification):
    """Record a pending join request and notify the owner in one batch."""
    db = get_db()
    notification.setdefault('created_at', _now())
    batch = db.batch()
    batch.update(db.collection(entity_cls.COLLECTION).document(entity_id), {
        entity_cls.pending_field(): ArrayUnion([uid]),
        f"{entity_cls.declined_field()}.{uid}": DELETE_FIELD,
    })
    ref = db.collection('notifications').document()
    batch.set(ref, notification)
    batch.commit()
    return ref.id


def decline_member(entity_cls, entity_id, uid):
    """Drop a pending request and record when it was declined."""
    get_db().collection(entity_cls.COLLECTION).document(entity_id).update({
        entity_cls.pending_field(): ArrayRemove([uid]),
        f"{entity_cls.declined_field()}.{uid}": _now(),
    })


def cancel_join_request(entity_cls, entity_id, uid):
    get_db().collection(entity_cls.COLLECTION).document(entity_id).update({
        entity_cls.pending_field(): ArrayRemove([uid]),
    })


def remove_member(entity_cls, entity_id, uid):
    """Leave or be removed: member array and user array in one batch."""
    db = get_db()
    batch = db.batch()
    batch.update(db.collection(entity_cls.COLLECTION).document(entity_id), {
        entity_cls.MEMBERS_FIELD: ArrayRemove([uid]),
        'admins': ArrayRemove([uid]),
    })
    batch.update(db.collection('users').document(uid), {
        entity_cls.USER_FIELD: ArrayRemove([entity_id]),
    })
    batch.commit()


# ========================================================================
# Quiz questions & submissions  (collections: quiz_questions, quiz_submissions)
# ========================================================================

def get_quiz_questions(quiz_id):
    """Questions of a quiz in creation order."""
    q = (
        get_db().collection('quiz_questions')
        .where(filter=FieldFilter('quiz_id', '==', quiz_id))
    )
    return _ordered(q, 'created_at')


def get_quiz_question(question_id):
    return get_doc('quiz_questions', question_id)


def create_quiz_question(data):
    """Create a quiz question. Returns doc ID."""
    data.setdefault('created_at', _now())
    _, doc_ref = get_db().collection('quiz_questions').add(data)
    return doc_ref.id


def update_quiz_question(question_id, data):
    data.setdefault('updated_at', _now())
    get_db().collection('quiz_questions').document(question_id).update(data)


def delete_quiz_question(question_id):
    get_db().collection('quiz_questions').document(question_id).delete()


def get_submission(submission_id):
    return get_doc('quiz_submissions', submission_id)


def create_submission(data):
    """Create a quiz attempt. Returns doc ID."""
    data.setdefault('started_at', _now())
    _, doc_ref = get_db().collection('quiz_submissions').add(data)
    return doc_ref.id


def update_submission(submission_id, data):
    get_db().collection('quiz_submissions').document(submission_id).update(data)


def delete_submission(submission_id):
    get_db().collection('quiz_submissions').document(submission_id).delete()


def get_user_submissions(quiz_id, user_id):
    """A user's attempts at a quiz, oldest first."""
    q = (
        get_db().collection('quiz_submissions')
        .where(filter=FieldFilter('quiz_id', '==', quiz_id))
        .where(filter=FieldFilter('user_id', '==', user_id))
    )
    return _ordered(q, 'started_at')


def get_leaderboard(quiz_id, limit=50):
    """Completed attempts of a quiz, best score first."""
    q = (
        get_db().collection('quiz_submissions')
        .where(filter=FieldFilter('quiz_id', '==', quiz_id))
        .where(filter=FieldFilter('status', '==', 'completed'))
    )
    return _ordered(q, 'score', descending=True, limit=limit)


# ========================================================================
# Marketplace  (collections: products, reviews)
# ========================================================================

def _review_id(product_id, user_id):
    return f"{product_id}_{user_id}"


def get_product(product_id):
    """Get a product by ID. Returns dict or None."""
    return get_doc('products', product_id)


def new_product_id():
    return get_db().collection('products').document().id


def create_product(product_id, data):
    data.setdefault('created_at', _now())
    get_db().collection('products').document(product_id).set(data)
    return product_id


def list_products(category=None, limit=100):
    """Products newest first, optionally in one category."""
    q = get_db().collection('products')
    if category:
        q = q.where(filter=FieldFilter('category', '==', category))
    return _ordered(q, 'created_at', descending=True, limit=limit)


def delete_product(product_id):
    """Delete a product and its reviews."""
    db = get_db()
    reviews = (
        db.collection('reviews')
        .where(filter=FieldFilter('product_id', '==', product_id))
        .stream()
    )
    ops = [('delete', r.reference, None) for r in reviews]
    ops.append(('delete', db.collection('products').document(product_id), None))
    _commit_in_batches(ops)


def get_review(product_id, user_id):
    return get_doc('reviews', _review_id(product_id, user_id))


def create_review(product_id, user_id, data):
    """One review per user per product: the doc ID is product_user."""
    data.setdefault('created_at', _now())
    review_id = _review_id(product_id, user_id)
    get_db().collection('reviews').document(review_id).set(data)
    return review_id


def get_reviews(product_id):
    """Reviews of a product, newest first."""
    q = (
        get_db().collection('reviews')
        .where(filter=FieldFilter('product_id', '==', product_id))
    )
    return _ordered(q, 'created_at', descending=True)


# ========================================================================
# Conversations  (collection: conversations, subcollection: messages)
# ========================================================================

def conversation_id(uid_a, uid_b):
    return '_'.join(sorted([uid_a, uid_b]))


def get_conversation(conv_id):
    return get_doc('conversations', conv_id)


def create_conversation(conv_id, participants):
    """Create the one-to-one conversation document."""
    data = {
        'participants': sorted(participants),
        'unread_count': {uid: 0 for uid in participants},
        'created_at': _now(),
        'updated_at': _now(),
    }
    get_db().collection('conversations').document(conv_id).set(data)
    data['id'] = conv_id
    return data


def get_conversations(uid, limit=50):
    """Conversations of a user, most recently active first."""
    q = (
        get_db().collection('conversations')
        .where(filter=FieldFilter('participants', 'array_contains', uid))
    )
    return _ordered(q, 'updated_at', descending=True, limit=limit)


def new_message_id(conv_id):
    return (
        get_db().collection('conversations').document(conv_id)
        .collection('messages').document().id
    )


def add_message(conv_id, message_id, data, recipient_id):
    """Store a message and update the conversation summary in one batch."""
    db = get_db()
    data.setdefault('created_at', _now())
    conv_ref = db.collection('conversations').document(conv_id)
    batch = db.batch()
    batch.set(conv_ref.collection('messages').document(message_id), data)
    batch.update(conv_ref, {
        'last_message': dict(data, id=message_id),
        'updated_at': data['created_at'],
        f"unread_count.{recipient_id}": Increment(1),
    })
    batch.commit()
    return message_id


def get_messages(conv_id, limit=200):
    """Messages of a conversation, oldest first."""
    q = (
        get_db().collection('conversations').document(conv_id)
        .collection('messages')
        .order_by('created_at', direction='DESCENDING')
        .limit(limit)
    )
    return list(reversed(_query_to_list(q)))


def mark_conversation_read(conv_id, uid):
    get_db().collection('conversations').document(conv_id).update({
        f"unread_count.{uid}": 0,
    })


# ========================================================================
# Notifications  (collection: notifications)
# ========================================================================

def get_notification(notification_id):
    return get_doc('notifications', notification_id)


def get_notifications(recipient_id, limit=50):
    """Notifications of a user, newest first."""
    q = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('recipient_id', '==', recipient_id))
    )
    return _ordered(q, 'created_at', descending=True, limit=limit)


def count_unread_notifications(recipient_id):
    docs = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('recipient_id', '==', recipient_id))
        .where(filter=FieldFilter('read', '==', False))
        .stream()
    )
    return sum(1 for _ in docs)


def mark_notification_read(notification_id):
    get_db().collection('notifications').document(notification_id).update({'read': True})


def mark_all_notifications_read(recipient_id):
    """Mark every unread notification of a user as read, 500 per batch."""
    docs = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('recipient_id', '==', recipient_id))
        .where(filter=FieldFilter('read', '==', False))
        .stream()
    )
    ops = [('update', doc.reference, {'read': True}) for doc in docs]
    _commit_in_batches(ops)
    return len(ops)


def delete_notification(notification_id):
    get_db().collection('notifications').document(notification_id).delete()


def delete_notifications_matching(recipient_id, sender_id, type_, entity_id):
    """Delete notifications of one kind between two users about one entity."""
    docs = (
        get_db().collection('notifications')
        .where(filter=FieldFilter('recipient_id', '==', recipient_id))
        .where(filter=FieldFilter('sender_id', '==', sender_id))
        .where(filter=FieldFilter('type', '==', type_))
        .where(filter=FieldFilter('entity_id', '==', entity_id))
        .stream()
    )
    ops = [('delete', doc.reference, None) for doc in docs]
    _commit_in_batches(ops)
    return len(ops)


# ========================================================================
# Lyrics  (collection: lyrics)
# ========================================================================

def get_lyrics_by_slug(slug):
    """Get lyrics by slug. Returns dict or None."""
    docs = (
        get_db().collection('lyrics')
        .where(filter=FieldFilter('slug', '==', slug))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def new_lyrics_id():
    return get_db().collection('lyrics').document().id


def create_lyrics(lyrics_id, data):
    data.setdefault('created_at', _now())
    get_db().collection('lyrics').document(lyrics_id).set(data)
    return lyrics_id


def update_lyrics(lyrics_id, data):
    data.setdefault('updated_at', _now())
    get_db().collection('lyrics').document(lyrics_id).update(data)


def delete_lyrics(lyrics_id):
    """Delete lyrics and their comments."""
    _delete_with_comments('lyrics', 'lyrics', lyrics_id)


def list_lyrics(tag=None, limit=100):
    """Lyrics newest first, optionally carrying ``tag``."""
    q = get_db().collection('lyrics')
    if tag:
        q = q.where(filter=FieldFilter('tags', 'array_contains', tag))
    return _ordered(q, 'created_at', descending=True, limit=limit)


# ========================================================================
# Publications  (collections: publications, about_bawm; subcollection: pages)
# ========================================================================

PUBLICATIONS = 'publications'
ABOUT_ARTICLES = 'about_bawm'


def _find_one(collection, field, value):
    docs = (
        get_db().collection(collection)
        .where(filter=FieldFilter(field, '==', value))
        .limit(1)
        .stream()
    )
    for doc in docs:
        return _doc_to_dict(doc)
    return None


def get_publication_by_book_id(book_id):
    """Get a publication by its book_id. Returns dict or None."""
    return _find_one(PUBLICATIONS, 'book_id', book_id)


def get_about_article(slug):
    """Get an About BAWM article by slug. Returns dict or None."""
    return _find_one(ABOUT_ARTICLES, 'slug', slug)


def create_publication(data, collection=PUBLICATIONS):
    """Create a publication. Returns doc ID."""
    data.setdefault('created_at', _now())
    _, doc_ref = get_db().collection(collection).add(data)
    return doc_ref.id


def update_publication(publication_id, data, collection=PUBLICATIONS):
    data.setdefault('updated_at', _now())
    get_db().collection(collection).document(publication_id).update(data)


def list_publications(limit=100, collection=PUBLICATIONS, tag=None):
    q = get_db().collection(collection)
    if tag:
        q = q.where(filter=FieldFilter('tags', 'array_contains', tag))
    return _ordered(q, 'created_at', descending=True, limit=limit)


def delete_publication(publication_id, collection=PUBLICATIONS):
    """Delete a publication together with its pages."""
    db = get_db()
    ref = db.collection(collection).document(publication_id)
    ops = [('delete', page.reference, None) for page in ref.collection('pages').stream()]
    ops.append(('delete', ref, None))
    _commit_in_batches(ops)


def _publication_pages(publication_id, collection=PUBLICATIONS):
    return get_db().collection(collection).document(publication_id).collection('pages')


def get_publication_pages(publication_id, collection=PUBLICATIONS):
    """Pages of a publication in reading order."""
    return _query_to_list(_publication_pages(publication_id, collection).order_by('order'))


def get_max_page_order(publication_id, collection=PUBLICATIONS):
    """Return the highest page order in a publication, or -1."""
    docs = list(
        _publication_pages(publication_id, collection)
        .order_by('order', direction='DESCENDING')
        .limit(1)
        .stream()
    )
    if docs:
        return docs[0].to_dict().get('order', 0)
    return -1


def add_publication_page(publication_id, data, collection=PUBLICATIONS):
    """Append a page at the end. Returns doc ID."""
    data.setdefault('created_at', _now())
    data['order'] = get_max_page_order(publication_id, collection) + 1
    _, doc_ref = _publication_pages(publication_id, collection).add(data)
    return doc_ref.id


def update_publication_page(publication_id, page_id, data, collection=PUBLICATIONS):
    data.setdefault('updated_at', _now())
    _publication_pages(publication_id, collection).document(page_id).update(data)


def delete_publication_page(publication_id, page_id, collection=PUBLICATIONS):
    _publication_pages(publication_id, collection).document(page_id).delete()


# ========================================================================
# Videos  (collection: videos)
# ========================================================================

def get_video_by_slug(slug):
    return _find_one('videos', 'slug', slug)


def new_video_id():
    return get_db().collection('videos').document().id


def create_video(video_id, data):
    data.setdefault('created_at', _now())
    get_db().collection('videos').document(video_id).set(data)
    return video_id


def update_video(video_id, data):
    data.setdefault('updated_at', _now())
    get_db().collection('videos').document(video_id).update(data)


def delete_video(video_id):
    """Delete a video and its comments."""
    _delete_with_comments('videos', 'video', video_id)


def list_videos(tag=None, limit=100):
    """Videos newest first, optionally carrying ``tag``."""
    q = get_db().collection('videos')
    if tag:
        q = q.where(filter=FieldFilter('tags', 'array_contains', tag))
    return _ordered(q, 'created_at', descending=True, limit=limit)
