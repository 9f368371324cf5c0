"""
Posting across contexts: a user's own timeline, pages, groups, events,
quizzes and the event/quiz announcement boards.

Every write goes through the permission model in ``bawmnet.permissions``;
refusals are raised as HTTP errors with ``flask.abort``.
"""

import logging
from datetime import datetime, timezone

from flask import abort

from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import (
    Post, Comment, UserProfile, PageInfo, GroupInfo, EventInfo, QuizInfo,
    MembershipEntity,
)
from bawmnet.services import storage, realtime
from bawmnet.services.feed import hydrate_posts

logger = logging.getLogger(__name__)

CONTEXT_MODELS = {
    'page': PageInfo,
    'group': GroupInfo,
    'event': EventInfo,
    'quiz': QuizInfo,
    'event_announcement': EventInfo,
    'quiz_announcement': QuizInfo,
}

ENTITY_COLLECTIONS = {
    'page': 'pages',
    'group': 'groups',
    'event': 'events',
    'quiz': 'quizzes',
    'event_announcement': 'events',
    'quiz_announcement': 'quizzes',
}

COMMENTABLE = dict(dao.POST_COLLECTIONS, lyrics='lyrics', video='videos')

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


def check_post_type(post_type):
    if post_type not in dao.POST_COLLECTIONS:
        abort(404, description=f'Unknown post type: {post_type}')


def load_context(post_type, context_id):
    """The page/group/event/quiz a post belongs to, as a model. 404 if missing."""
    model = CONTEXT_MODELS.get(post_type)
    if model is None:
        return None
    doc = dao.get_entity(ENTITY_COLLECTIONS[post_type], context_id)
    if not doc:
        abort(404, description='Post context not found')
    return model.from_dict(doc, doc['id'])


def require_visible_context(viewer: UserProfile, post_type, context_id):
    """403 when the context is a private group, event or quiz the viewer is outside of."""
    entity = load_context(post_type, context_id)
    if isinstance(entity, MembershipEntity) and not perm.can_view_entity(viewer, entity):
        abort(403, description='This content is private')
    return entity


def permissions_for(post_type, context_id):
    collection = ENTITY_COLLECTIONS.get(post_type)
    return perm.load_post_permissions(collection, context_id if collection else None)


def _load_post(post_type, post_id):
    check_post_type(post_type)
    doc = dao.get_post(post_type, post_id)
    if not doc:
        abort(404, description='Post not found')
    return Post.from_dict(doc, doc['id'], post_type=post_type)


def _classify_uploads(files):
    kinds = {storage.media_type_for(f.filename) for f in files}
    if None in kinds or 'audio' in kinds:
        abort(400, description='Posts accept image or video files only')
    if len(kinds) > 1:
        abort(400, description='Images and a video cannot be mixed in one post')
    return kinds.pop() if kinds else None


def create_post(user: UserProfile, post_type, context_id=None, text='', files=None,
                scheduled_at=None, now=None):
    """Create a post after every permission, limit and media check.

    Returns the stored ``Post``.
    """
    check_post_type(post_type)
    now = now or datetime.now(timezone.utc)
    files = [f for f in (files or []) if f and f.filename]
    text = (text or '').strip()

    if post_type == 'user':
        context_id = user.uid
    entity = load_context(post_type, context_id)
    perms = permissions_for(post_type, context_id)

    if not perm.can_post_to(user, post_type, entity, now=now, perms=perms):
        abort(403, description='You are not allowed to post here')
    if not text and not files:
        abort(400, description='A post needs text or media')

    posted_today = dao.count_user_posts_since(user.uid, perm.start_of_day(now))
    if not perm.within_daily_limit(user, perms, posted_today):
        abort(429, description='Daily post limit reached')

    if post_type == 'event' and not perm.is_event_special_poster(user, entity):
        used = dao.count_posts_since('event', user.uid, _EPOCH, context_id=context_id)
        if used >= entity.participant_post_limit:
            abort(403, description='Participant post limit for this event reached')

    media_type = _classify_uploads(files)
    if not perm.media_allowed(user, perms, media_type, len(files)):
        abort(403, description='Media upload not allowed or over the limit')

    if scheduled_at is not None:
        if not perm.can_schedule(user, perms):
            abort(403, description='You are not allowed to schedule posts')
        if scheduled_at <= now:
            abort(400, description='Scheduled time must be in the future')

    post_id = dao.new_post_id(post_type)
    post = Post(id=post_id, author_id=user.uid, post_type=post_type, text=text,
                media_type=media_type, scheduled_at=scheduled_at, created_at=now)
    if post_type != 'user':
        setattr(post, dao.POST_CONTEXT_FIELDS[post_type], context_id)

    try:
        for index, f in enumerate(files):
            data, ext = storage.validate_upload(f, media_type)
            path, url = storage.upload_post_media(post_type, post_id, index, data, ext, media_type)
            post.media_paths.append(path)
            post.media_urls.append(url)
    except storage.UploadError as exc:
        storage.delete_files(post.media_paths)
        abort(400, description=str(exc))

    dao.create_post_with_id(post_type, post_id, post.to_dict())
    logger.info('Post %s/%s created by %s', post_type, post_id, user.uid)
    post.author = user.summary()
    realtime.push_post(post)
    return post


def edit_post(user: UserProfile, post_type, post_id, text):
    post = _load_post(post_type, post_id)
    perms = permissions_for(post_type, post.context_id)
    if not perm.can_edit_post(user, post, perms):
        abort(403, description='You cannot edit this post')
    text = (text or '').strip()
    if not text and not post.media_urls:
        abort(400, description='A post needs text or media')
    dao.update_post(post_type, post_id, {'text': text})
    post.text = text
    return post


def delete_post(user: UserProfile, post_type, post_id):
    """Delete a post, its media blobs and its comments."""
    post = _load_post(post_type, post_id)
    perms = permissions_for(post_type, post.context_id)
    if not perm.can_delete_post(user, post, perms):
        abort(403, description='You cannot delete this post')
    dao.delete_post(post_type, post_id)
    storage.delete_files(post.media_paths)
    logger.info('Post %s/%s deleted by %s', post_type, post_id, user.uid)


def toggle_like(user: UserProfile, collection, doc):
    """Like or unlike a post, lyrics or video document. Returns (liked, like_count)."""
    likes = list(doc.get('likes') or [])
    liked = user.uid not in likes
    dao.set_array_member(collection, doc['id'], 'likes', user.uid, liked)
    count = len(likes) + (1 if liked else -1)
    return liked, count


def _load_visible_doc(viewer: UserProfile, post_type, post_id):
    check_post_type(post_type)
    doc = dao.get_post(post_type, post_id)
    if not doc:
        abort(404, description='Post not found')
    post = Post.from_dict(doc, doc['id'], post_type=post_type)
    require_visible_context(viewer, post_type, post.context_id)
    return doc


def get_post(viewer: UserProfile, post_type, post_id):
    """One hydrated post; 404 when hidden from the viewer."""
    doc = _load_visible_doc(viewer, post_type, post_id)
    posts = hydrate_posts([doc], viewer_uid=viewer.uid)
    if not posts:
        abort(404, description='Post not found')
    return posts[0]


def like_post(user: UserProfile, post_type, post_id):
    doc = _load_visible_doc(user, post_type, post_id)
    return toggle_like(user, dao.POST_COLLECTIONS[post_type], doc)


def count_post(viewer: UserProfile, post_type, post_id, counter):
    """Bump view_count or share_count."""
    _load_visible_doc(viewer, post_type, post_id)
    dao.increment_counter(dao.POST_COLLECTIONS[post_type], post_id, counter)


def context_posts(viewer: UserProfile, post_type, context_id, limit=50):
    """Posts of one context, hydrated, newest first."""
    check_post_type(post_type)
    require_visible_context(viewer, post_type, context_id)
    return hydrate_posts(dao.get_context_posts(post_type, context_id, limit=limit),
                         viewer_uid=viewer.uid)


# ---------------------------------------------------------------------------
# Comments  (posts, lyrics and videos)
# ---------------------------------------------------------------------------

def _check_parent(viewer: UserProfile, parent_type, parent_id):
    collection = COMMENTABLE.get(parent_type)
    if collection is None:
        abort(404, description=f'Unknown post type: {parent_type}')
    if parent_type in dao.POST_COLLECTIONS:
        _load_visible_doc(viewer, parent_type, parent_id)
    elif not dao.get_doc(collection, parent_id):
        abort(404, description='Post not found')
    return collection


def add_comment(user: UserProfile, parent_type, parent_id, text):
    if parent_type not in COMMENTABLE:
        abort(404, description=f'Unknown post type: {parent_type}')
    if user.is_blocked():
        abort(403, description='Your account cannot comment')
    text = (text or '').strip()
    if not text:
        abort(400, description='Comment text is required')
    collection = _check_parent(user, parent_type, parent_id)
    comment = Comment(author_id=user.uid, post_id=parent_id, post_type=parent_type, text=text)
    comment.id = dao.add_comment(collection, parent_id, comment.to_dict())
    comment.author = user.summary()
    return comment


def list_comments(viewer: UserProfile, parent_type, parent_id):
    """Comments newest first, authors attached; blocked authors are hidden."""
    _check_parent(viewer, parent_type, parent_id)
    docs = dao.get_comments(parent_type, parent_id)
    authors = dao.get_users_by_ids([d.get('author_id') for d in docs])
    comments = []
    for d in docs:
        author_doc = authors.get(d.get('author_id'))
        if not author_doc:
            continue
        author = UserProfile.from_dict(author_doc, author_doc['id'])
        if author.is_blocked():
            continue
        comment = Comment.from_dict(d, d['id'])
        comment.author = author.summary()
        comments.append(comment)
    return comments
