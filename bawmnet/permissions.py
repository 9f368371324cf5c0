"""
Permission settings and the decisions built on top of them.

Post permissions resolve through three layers: the entity settings
document (``<collection>/<id>/settings/post_permissions``), then the site
wide ``app_settings/post_permissions`` document, then the built-in
defaults below.  List settings replace the layer beneath them; the
per-user-type limit maps are merged key by key.
"""

from dataclasses import dataclass, field, fields, asdict
from datetime import datetime, timezone
from typing import Dict, List, Optional

from bawmnet import firestore_dao as dao
from bawmnet.firestore_models import (
    ASSIGNABLE_USER_TYPES, USER_TYPES, UserProfile, PageInfo,
    MembershipEntity, EventInfo,
)


DEFAULT_DAILY_POST_LIMIT = {
    'active': 5, 'thunder': 10, 'star': 15, 'leader': 20, 'editor': 25,
    'admin': 999, 'advanced': 999, 'inactive': 0, 'suspended': 0,
}

DEFAULT_IMAGE_UPLOAD_LIMIT = {
    'active': 1, 'thunder': 2, 'star': 4, 'leader': 6, 'editor': 8,
    'admin': 10, 'advanced': 10, 'inactive': 0, 'suspended': 0,
}

LIMIT_SETTINGS = ('daily_post_limit', 'image_upload_limit')

# Allow-list documents in app_settings, keyed by what they gate
CREATION_KINDS = {
    'page': 'page_creation_permissions',
    'group': 'group_creation_permissions',
    'event': 'event_creation_permissions',
    'quiz': 'quiz_creation_permissions',
    'book': 'book_creation_permissions',
    'lyrics': 'lyrics_creation_permissions',
    'marketplace': 'marketplace_permissions',
    'video': 'video_creation_permissions',
    'about': 'about_bawm_creation_permissions',
}


def _coerce_limit(value) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass
class PostPermissions:
    can_post: List[str] = field(default_factory=lambda: list(ASSIGNABLE_USER_TYPES))
    daily_post_limit: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_DAILY_POST_LIMIT))
    can_upload_image: List[str] = field(default_factory=lambda: list(ASSIGNABLE_USER_TYPES))
    image_upload_limit: Dict[str, int] = field(default_factory=lambda: dict(DEFAULT_IMAGE_UPLOAD_LIMIT))
    can_upload_video: List[str] = field(default_factory=lambda: ['star', 'leader', 'editor', 'admin', 'advanced'])
    can_delete_others_posts: List[str] = field(default_factory=lambda: ['admin', 'advanced'])
    can_edit_own_post: List[str] = field(default_factory=lambda: ['editor', 'admin', 'leader', 'advanced'])
    can_schedule_post: List[str] = field(default_factory=lambda: ['editor', 'admin', 'leader', 'advanced'])

    def merged(self, overrides: Optional[dict]) -> 'PostPermissions':
        """Return a copy with ``overrides`` layered on top."""
        data = asdict(self)
        for f in fields(self):
            if not overrides or overrides.get(f.name) is None:
                continue
            value = overrides[f.name]
            if f.name in LIMIT_SETTINGS:
                data[f.name].update({k: _coerce_limit(v) for k, v in dict(value).items()})
            else:
                data[f.name] = list(value)
        return PostPermissions(**data)

    def to_dict(self):
        return asdict(self)

    def daily_limit(self, user_type: str) -> int:
        return self.daily_post_limit.get(user_type, 0)

    def image_limit(self, user_type: str) -> int:
        return self.image_upload_limit.get(user_type, 0)


@dataclass
class UserManagementPermissions:
    can_update_user_type: List[str] = field(default_factory=lambda: ['admin'])
    can_delete_users: List[str] = field(default_factory=lambda: ['admin'])

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> 'UserManagementPermissions':
        perms = cls()
        for key in ('can_update_user_type', 'can_delete_users'):
            if data and data.get(key) is not None:
                setattr(perms, key, list(data[key]))
        return perms

    def to_dict(self):
        return asdict(self)


def clean_post_permissions(data: dict) -> dict:
    """Validate a post permission settings payload.

    Keeps known settings only; raises ValueError on unknown user types or
    negative limits.
    """
    known = {f.name for f in fields(PostPermissions)}
    cleaned = {}
    for key, value in (data or {}).items():
        if key not in known:
            continue
        if key in LIMIT_SETTINGS:
            if not isinstance(value, dict):
                raise ValueError(f'{key} must map user types to numbers')
            limits = {}
            for user_type, limit in value.items():
                if user_type not in USER_TYPES:
                    raise ValueError(f'Unknown user type: {user_type}')
                limit = _coerce_limit(limit)
                if limit < 0:
                    raise ValueError(f'{key} cannot be negative')
                limits[user_type] = limit
            cleaned[key] = limits
        else:
            if not isinstance(value, list) or any(t not in USER_TYPES for t in value):
                raise ValueError(f'{key} must be a list of user types')
            cleaned[key] = list(value)
    return cleaned


def clean_message_permissions(data: dict) -> dict:
    cleaned = {}
    for user_type, flags in (data or {}).items():
        if user_type not in USER_TYPES or not isinstance(flags, dict):
            raise ValueError(f'Invalid message permissions for {user_type}')
        cleaned[user_type] = {k: bool(flags[k]) for k in ('can_send_photo', 'can_send_video') if k in flags}
    return cleaned


def default_message_permissions() -> Dict[str, Dict[str, bool]]:
    return {
        t: {'can_send_photo': t == 'admin', 'can_send_video': t == 'admin'}
        for t in USER_TYPES
    }


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------

def load_post_permissions(collection: Optional[str] = None,
                          entity_id: Optional[str] = None) -> PostPermissions:
    """Resolve post permissions for a context, entity settings first."""
    perms = PostPermissions().merged(dao.get_app_setting('post_permissions'))
    if collection and entity_id:
        perms = perms.merged(dao.get_entity_post_permissions(collection, entity_id))
    return perms


def load_user_management_permissions() -> UserManagementPermissions:
    return UserManagementPermissions.from_dict(dao.get_app_setting('user_management_permissions'))


def load_message_permissions() -> Dict[str, Dict[str, bool]]:
    perms = default_message_permissions()
    stored = dao.get_app_setting('message_permissions') or {}
    for user_type, flags in stored.items():
        if isinstance(flags, dict):
            perms.setdefault(user_type, {}).update({k: bool(v) for k, v in flags.items()})
    return perms


def creation_allow_list(kind: str) -> List[str]:
    data = dao.get_app_setting(CREATION_KINDS[kind]) or {}
    return list(data.get('allowed_user_ids') or [])


# ---------------------------------------------------------------------------
# Decisions
# ---------------------------------------------------------------------------

def can_create(user: UserProfile, kind: str) -> bool:
    """Creation of pages, groups, events, quizzes, books, lyrics and products."""
    if user.is_blocked():
        return False
    if user.is_site_admin():
        return True
    return user.uid in creation_allow_list(kind)


def can_view_entity(user: Optional[UserProfile], entity: MembershipEntity) -> bool:
    if entity.visibility != 'private':
        return True
    if user is None:
        return False
    return user.is_site_admin() or entity.is_admin(user.uid) or entity.is_member(user.uid)


def can_post_to_page(user: UserProfile, page: PageInfo) -> bool:
    if user.uid in page.banned_users:
        return False
    if page.is_admin(user.uid) or user.is_site_admin():
        return True
    if page.posters == 'followers':
        return user.uid in page.followers
    if isinstance(page.posters, list):
        return user.uid in page.posters
    return False


def can_post_to_group(user: UserProfile, group: MembershipEntity) -> bool:
    if group.is_admin(user.uid) or user.is_site_admin():
        return True
    if group.posters == 'members':
        return group.is_member(user.uid)
    if isinstance(group.posters, list):
        return user.uid in group.posters
    return False


def can_post_to_event(user: UserProfile, event: EventInfo,
                      now: Optional[datetime] = None) -> bool:
    """Owner, admins, site admins and special posters always; participants
    only while the event is ongoing."""
    if event.is_admin(user.uid) or user.is_site_admin():
        return True
    if isinstance(event.posters, list) and user.uid in event.posters:
        return True
    return event.is_member(user.uid) and event.status(now) == 'ongoing'


def is_event_special_poster(user: UserProfile, event: EventInfo) -> bool:
    """True when the participant post limit does not apply."""
    return (event.is_admin(user.uid) or user.is_site_admin()
            or (isinstance(event.posters, list) and user.uid in event.posters))


def can_post_to_quiz(user: UserProfile, quiz: MembershipEntity) -> bool:
    if quiz.is_admin(user.uid) or user.is_site_admin():
        return True
    if quiz.posters == 'participants':
        return quiz.is_member(user.uid)
    if isinstance(quiz.posters, list):
        return user.uid in quiz.posters
    return False


def can_announce(user: UserProfile, entity: MembershipEntity) -> bool:
    return entity.owner_id == user.uid or user.is_site_admin()


def can_post_to(user: UserProfile, context: str, entity=None,
                now: Optional[datetime] = None, perms: Optional[PostPermissions] = None) -> bool:
    """Whether ``user`` may post in ``context`` at all.

    ``context`` is one of user, page, group, event, quiz,
    event_announcement, quiz_announcement.
    """
    if user is None or user.is_blocked():
        return False
    perms = perms or PostPermissions()
    if user.user_type not in perms.can_post:
        return False
    if context == 'user':
        return True
    if entity is None:
        return False
    if context == 'page':
        return can_post_to_page(user, entity)
    if context == 'group':
        return can_post_to_group(user, entity)
    if context == 'event':
        return can_post_to_event(user, entity, now)
    if context == 'quiz':
        return can_post_to_quiz(user, entity)
    if context in ('event_announcement', 'quiz_announcement'):
        return can_announce(user, entity)
    return False


def media_allowed(user: UserProfile, perms: PostPermissions, media_type: Optional[str],
                  count: int) -> bool:
    """Media limits: images up to the per-type limit, one video, never both."""
    if not media_type or count == 0:
        return True
    if media_type == 'image':
        return (user.user_type in perms.can_upload_image
                and count <= perms.image_limit(user.user_type))
    if media_type == 'video':
        return user.user_type in perms.can_upload_video and count == 1
    return False


def can_schedule(user: UserProfile, perms: PostPermissions) -> bool:
    return user.user_type in perms.can_schedule_post


def can_edit_post(user: UserProfile, post, perms: PostPermissions) -> bool:
    return post.author_id == user.uid and user.user_type in perms.can_edit_own_post


def can_delete_post(user: UserProfile, post, perms: PostPermissions) -> bool:
    if post.author_id == user.uid or user.is_site_admin():
        return True
    return user.user_type in perms.can_delete_others_posts


def within_daily_limit(user: UserProfile, perms: PostPermissions, posted_today: int) -> bool:
    return posted_today < perms.daily_limit(user.user_type)


def can_manage_user(actor: UserProfile, target_uid: str, allowed_types: List[str]) -> bool:
    """User management never applies to oneself."""
    if actor.uid == target_uid:
        return False
    return actor.user_type in allowed_types


def can_send_message_media(user: UserProfile, media_type: str,
                           message_perms: Dict[str, Dict[str, bool]]) -> bool:
    if user.is_site_admin():
        return True
    flags = message_perms.get(user.user_type) or {}
    key = 'can_send_photo' if media_type == 'image' else 'can_send_video'
    return bool(flags.get(key))


def start_of_day(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(hour=0, minute=0, second=0, microsecond=0)
