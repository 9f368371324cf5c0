"""
Home feed assembly.

The feed of a user is drawn from five post collections:

  user_posts   authored by a connected friend or the user
  page_posts   on a page the user follows or owns
  group_posts  in a group the user joined or owns
  event_posts  in an event the user participates in or owns
  quiz_posts   in a quiz the user participates in or owns

One 'in' query is issued per (collection, chunk of 30 ids) and the
queries run in parallel on a thread pool.  Results are hydrated with
their authors and context names, merged, de-duplicated and re-sorted.
"""

import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Optional

from google.api_core.exceptions import ServiceUnavailable, DeadlineExceeded
from tenacity import (retry, stop_after_attempt, wait_exponential,
                      retry_if_exception_type, before_sleep_log)

from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import Post, UserProfile

logger = logging.getLogger(__name__)

MAX_WORKERS = 8

# post_type -> field on the post naming its source
FEED_SOURCES = {
    'user': 'author_id',
    'page': 'page_id',
    'group': 'group_id',
    'event': 'event_id',
    'quiz': 'quiz_id',
}

CONTEXT_COLLECTIONS = {
    'page': 'pages',
    'group': 'groups',
    'event': 'events',
    'quiz': 'quizzes',
    'event_announcement': 'events',
    'quiz_announcement': 'quizzes',
}

_EPOCH = datetime.min.replace(tzinfo=timezone.utc)


@retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=0.2, min=0.2, max=2),
    retry=retry_if_exception_type((ServiceUnavailable, DeadlineExceeded)),
    before_sleep=before_sleep_log(logger, logging.WARNING),
    reraise=True,
)
def _fetch_chunk(post_type: str, field: str, ids: List[str]) -> List[dict]:
    return dao.get_posts_in(post_type, field, ids)


def gather_sources(user: UserProfile) -> Dict[str, List[str]]:
    """Ids feeding each post collection, owned entities included."""
    friends = dao.get_friend_ids(user.uid)
    friends.append(user.uid)

    def _merge(followed, collection):
        owned = [e['id'] for e in dao.get_entities_owned_by(collection, user.uid)]
        return list(dict.fromkeys(list(followed) + owned))

    return {
        'user': list(dict.fromkeys(friends)),
        'page': _merge(user.followed_pages, 'pages'),
        'group': _merge(user.followed_groups, 'groups'),
        'event': _merge(user.participated_events, 'events'),
        'quiz': _merge(user.participated_quizzes, 'quizzes'),
    }


def fan_out(sources: Dict[str, List[str]]) -> List[dict]:
    """Run every (collection, id chunk) query in parallel."""
    jobs = []
    for post_type, ids in sources.items():
        field = FEED_SOURCES[post_type]
        for chunk in dao.chunked(ids):
            jobs.append((post_type, field, chunk))
    if not jobs:
        return []

    posts = []
    with ThreadPoolExecutor(max_workers=min(MAX_WORKERS, len(jobs))) as executor:
        futures = {executor.submit(_fetch_chunk, *job): job for job in jobs}
        for future in as_completed(futures):
            posts.extend(future.result())
    logger.debug('Feed fan-out ran %d queries, %d posts', len(jobs), len(posts))
    return posts


def _context_names(posts: Iterable[Post]) -> Dict[tuple, dict]:
    wanted: Dict[str, set] = {}
    for p in posts:
        collection = CONTEXT_COLLECTIONS.get(p.post_type)
        if collection and p.context_id:
            wanted.setdefault(collection, set()).add(p.context_id)
    names = {}
    for collection, ids in wanted.items():
        for entity_id, doc in dao.get_docs_by_ids(collection, ids).items():
            names[(collection, entity_id)] = doc
    return names


def hydrate_posts(raw_posts: Iterable[dict], viewer_uid: Optional[str] = None,
                  now: Optional[datetime] = None) -> List[Post]:
    """Attach authors and sources, drop hidden posts, newest first.

    Posts whose author is missing, suspended or inactive are dropped, as
    are scheduled posts not yet due (unless the viewer wrote them).
    Duplicates by (post_type, id) are collapsed.
    """
    posts = []
    seen = set()
    for raw in raw_posts:
        post = Post.from_dict(raw, raw.get('id'), post_type=raw.get('post_type'))
        key = (post.post_type, post.id)
        if key in seen:
            continue
        seen.add(key)
        if post.is_visible_to(viewer_uid, now):
            posts.append(post)

    authors = dao.get_users_by_ids([p.author_id for p in posts])
    contexts = _context_names(posts)

    result = []
    for post in posts:
        author_doc = authors.get(post.author_id)
        if not author_doc:
            continue
        author = UserProfile.from_dict(author_doc, author_doc['id'])
        if author.is_blocked():
            continue
        post.author = author.summary()
        collection = CONTEXT_COLLECTIONS.get(post.post_type)
        context = contexts.get((collection, post.context_id)) if collection else None
        if context:
            post.source = {'type': post.post_type, 'id': post.context_id, 'name': context.get('name', '')}
        else:
            post.source = {'type': 'user'}
        result.append(post)

    result.sort(key=lambda p: p.created_at or _EPOCH, reverse=True)
    return result


def build_feed(user: UserProfile, limit: int = 50, now: Optional[datetime] = None) -> List[Post]:
    """The home feed of ``user``, capped at ``limit`` posts."""
    sources = gather_sources(user)
    posts = hydrate_posts(fan_out(sources), viewer_uid=user.uid, now=now)
    return posts[:limit]


def feed_rooms(user: UserProfile) -> List[str]:
    """Socket.IO rooms carrying new posts for the feed of ``user``."""
    sources = gather_sources(user)
    rooms = []
    for post_type, ids in sources.items():
        rooms.extend(f'{post_type}_{i}' for i in ids)
    return rooms
