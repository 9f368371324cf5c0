"""
Firestore document models using Python dataclasses.

Documents are schema-less; these classes pin down the shapes the app
writes and reads. Each model includes:
  - An `id` field for the Firestore document ID
  - A `to_dict()` instance method for serialization to Firestore
  - A `from_dict(data, doc_id)` classmethod for deserialization
  - A `to_api()` method rendering datetimes as ISO-8601 strings

Array fields default to empty lists and counters to zero when absent
from the stored document.
"""

from __future__ import annotations

from dataclasses import dataclass, field, asdict
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional


USER_TYPES = ['active', 'thunder', 'star', 'leader', 'editor', 'admin', 'advanced', 'inactive', 'suspended']
ASSIGNABLE_USER_TYPES = ['active', 'thunder', 'star', 'leader', 'editor', 'admin', 'advanced']
BLOCKED_USER_TYPES = ('inactive', 'suspended')

RELATIONSHIP_STATUSES = ['single', 'in_a_relationship', 'engaged', 'married', 'complicated', 'rather_not_say']
GENDERS = ['male', 'female', 'other', 'rather_not_say']

PRODUCT_CATEGORIES = [
    'women_fashion', 'men_fashion', 'traditional', 'culture', 'hand_crafted',
    'electronic', 'foods', 'kids_assets', 'instruments', 'others',
]

QUESTION_ANSWER_TYPES = ['radio', 'checkbox', 'text', 'true_false', 'image']

VIDEO_QUALITIES = ['144p', '360p', '720p', '1080p']


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _parse_datetime(value) -> Optional[datetime]:
    """Convert a value to datetime. Accepts datetime objects, ISO-format
    strings, and Firestore DatetimeWithNanoseconds objects."""
    if value is None:
        return None
    if isinstance(value, datetime):
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value
    if isinstance(value, str):
        value = value.replace("Z", "+00:00")
        try:
            parsed = datetime.fromisoformat(value)
        except (ValueError, TypeError):
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed
    return None


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _list(value) -> list:
    return list(value) if value else []


def _window_status(start: Optional[datetime], end: Optional[datetime],
                   now: Optional[datetime] = None) -> str:
    """upcoming / ongoing / ended, judged against start and end dates."""
    now = now or _now()
    if start and now < start:
        return "upcoming"
    if end and now > end:
        return "ended"
    return "ongoing"


def _is_live(is_published: bool, publish_date: Optional[datetime],
             now: Optional[datetime] = None) -> bool:
    if is_published:
        return True
    return publish_date is not None and publish_date <= (now or _now())


def serialize(value):
    """Recursively render datetimes inside a document as ISO strings."""
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: serialize(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [serialize(v) for v in value]
    return value


class _ApiMixin:

    def to_api(self) -> Dict[str, Any]:
        return serialize(asdict(self))


# ===========================================================================
# 1. UserProfile
# ===========================================================================

@dataclass
class UserProfile(_ApiMixin):
    uid: Optional[str] = None
    username: str = ""
    email: str = ""
    display_name: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    bio: Optional[str] = None
    profile_picture_url: str = ""
    cover_image_url: str = ""
    hometown: Optional[str] = None
    live_in: Optional[str] = None
    current_study: Optional[str] = None
    institute_name: Optional[str] = None
    dob: Optional[str] = None
    relationship_status: Optional[str] = None
    gender: Optional[str] = None
    user_type: str = "active"

    followed_pages: List[str] = field(default_factory=list)
    liked_pages: List[str] = field(default_factory=list)
    followed_groups: List[str] = field(default_factory=list)
    participated_events: List[str] = field(default_factory=list)
    participated_quizzes: List[str] = field(default_factory=list)

    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def name(self) -> str:
        if self.display_name:
            return self.display_name
        full = " ".join(p for p in (self.first_name, self.last_name) if p)
        return full or self.username

    def is_site_admin(self) -> bool:
        return self.user_type == "admin"

    def is_blocked(self) -> bool:
        return self.user_type in BLOCKED_USER_TYPES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "username": self.username,
            "email": self.email,
            "display_name": self.display_name or self.username,
            "first_name": self.first_name,
            "last_name": self.last_name,
            "bio": self.bio,
            "profile_picture_url": self.profile_picture_url,
            "cover_image_url": self.cover_image_url,
            "hometown": self.hometown,
            "live_in": self.live_in,
            "current_study": self.current_study,
            "institute_name": self.institute_name,
            "dob": self.dob,
            "relationship_status": self.relationship_status,
            "gender": self.gender,
            "user_type": self.user_type,
            "followed_pages": self.followed_pages,
            "liked_pages": self.liked_pages,
            "followed_groups": self.followed_groups,
            "participated_events": self.participated_events,
            "participated_quizzes": self.participated_quizzes,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> UserProfile:
        return cls(
            uid=doc_id or data.get("uid"),
            username=data.get("username", ""),
            email=data.get("email", ""),
            display_name=data.get("display_name"),
            first_name=data.get("first_name"),
            last_name=data.get("last_name"),
            bio=data.get("bio"),
            profile_picture_url=data.get("profile_picture_url") or "",
            cover_image_url=data.get("cover_image_url") or "",
            hometown=data.get("hometown"),
            live_in=data.get("live_in"),
            current_study=data.get("current_study"),
            institute_name=data.get("institute_name"),
            dob=data.get("dob"),
            relationship_status=data.get("relationship_status"),
            gender=data.get("gender"),
            user_type=data.get("user_type") or "active",
            followed_pages=_list(data.get("followed_pages")),
            liked_pages=_list(data.get("liked_pages")),
            followed_groups=_list(data.get("followed_groups")),
            participated_events=_list(data.get("participated_events")),
            participated_quizzes=_list(data.get("participated_quizzes")),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )

    def summary(self) -> Dict[str, Any]:
        """Public author card embedded in posts, comments and reviews."""
        return {
            "uid": self.uid,
            "username": self.username,
            "display_name": self.name,
            "profile_picture_url": self.profile_picture_url,
            "user_type": self.user_type,
        }


# ===========================================================================
# 2. Post
# ===========================================================================

@dataclass
class Post(_ApiMixin):
    id: Optional[str] = None
    author_id: Optional[str] = None
    post_type: str = "user"
    page_id: Optional[str] = None
    group_id: Optional[str] = None
    event_id: Optional[str] = None
    quiz_id: Optional[str] = None
    text: str = ""
    media_urls: List[str] = field(default_factory=list)
    media_paths: List[str] = field(default_factory=list)
    media_type: Optional[str] = None
    likes: List[str] = field(default_factory=list)
    view_count: int = 0
    share_count: int = 0
    comment_count: int = 0
    scheduled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Hydrated, never stored
    author: Optional[Dict[str, Any]] = None
    source: Optional[Dict[str, Any]] = None

    @property
    def context_id(self) -> Optional[str]:
        return self.page_id or self.group_id or self.event_id or self.quiz_id

    def is_visible_to(self, uid: Optional[str], now: Optional[datetime] = None) -> bool:
        if self.scheduled_at is None or self.author_id == uid:
            return True
        return self.scheduled_at <= (now or _now())

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "author_id": self.author_id,
            "text": self.text,
            "media_urls": self.media_urls,
            "media_paths": self.media_paths,
            "media_type": self.media_type,
            "likes": self.likes,
            "view_count": self.view_count,
            "share_count": self.share_count,
            "comment_count": self.comment_count,
            "scheduled_at": self.scheduled_at,
            "created_at": self.created_at or _now(),
        }
        for key in ("page_id", "group_id", "event_id", "quiz_id"):
            if getattr(self, key):
                data[key] = getattr(self, key)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None,
                  post_type: Optional[str] = None) -> Post:
        return cls(
            id=doc_id or data.get("id"),
            author_id=data.get("author_id"),
            post_type=post_type or data.get("post_type", "user"),
            page_id=data.get("page_id"),
            group_id=data.get("group_id"),
            event_id=data.get("event_id"),
            quiz_id=data.get("quiz_id"),
            text=data.get("text") or "",
            media_urls=_list(data.get("media_urls")),
            media_paths=_list(data.get("media_paths")),
            media_type=data.get("media_type") or None,
            likes=_list(data.get("likes")),
            view_count=data.get("view_count", 0),
            share_count=data.get("share_count", 0),
            comment_count=data.get("comment_count", 0),
            scheduled_at=_parse_datetime(data.get("scheduled_at")),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )

    def to_api(self) -> Dict[str, Any]:
        data = super().to_api()
        data.pop("media_paths", None)
        data["like_count"] = len(self.likes)
        return data


# ===========================================================================
# 3. Comment
# ===========================================================================

@dataclass
class Comment(_ApiMixin):
    id: Optional[str] = None
    author_id: Optional[str] = None
    post_id: Optional[str] = None
    post_type: Optional[str] = None
    text: str = ""
    created_at: Optional[datetime] = None
    author: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "author_id": self.author_id,
            "post_id": self.post_id,
            "post_type": self.post_type,
            "text": self.text,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Comment:
        return cls(
            id=doc_id or data.get("id"),
            author_id=data.get("author_id"),
            post_id=data.get("post_id"),
            post_type=data.get("post_type"),
            text=data.get("text", ""),
            created_at=_parse_datetime(data.get("created_at")),
        )


# ===========================================================================
# 4. Pages, groups, events, quizzes
# ===========================================================================

@dataclass
class PageInfo(_ApiMixin):
    id: Optional[str] = None
    name: str = ""
    category: str = ""
    description: Optional[str] = None
    profile_picture_url: str = ""
    cover_image_url: str = ""
    owner_id: Optional[str] = None
    admins: List[str] = field(default_factory=list)
    followers: List[str] = field(default_factory=list)
    likes: List[str] = field(default_factory=list)
    banned_users: List[str] = field(default_factory=list)
    posters: Any = "admins"        # 'admins' | 'followers' | [uid, ...]
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "profile_picture_url": self.profile_picture_url,
            "cover_image_url": self.cover_image_url,
            "owner_id": self.owner_id,
            "admins": self.admins,
            "followers": self.followers,
            "likes": self.likes,
            "banned_users": self.banned_users,
            "posters": self.posters,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> PageInfo:
        return cls(
            id=doc_id or data.get("id"),
            name=data.get("name", ""),
            category=data.get("category", ""),
            description=data.get("description"),
            profile_picture_url=data.get("profile_picture_url") or "",
            cover_image_url=data.get("cover_image_url") or "",
            owner_id=data.get("owner_id"),
            admins=_list(data.get("admins")),
            followers=_list(data.get("followers")),
            likes=_list(data.get("likes")),
            banned_users=_list(data.get("banned_users")),
            posters=data.get("posters") or "admins",
            created_at=_parse_datetime(data.get("created_at")),
        )

    def is_admin(self, uid: Optional[str]) -> bool:
        return bool(uid) and (uid == self.owner_id or uid in self.admins)


@dataclass
class MembershipEntity(_ApiMixin):
    """Shared shape of groups, events and quizzes.

    `members` holds group members or event/quiz participants. The stored
    field names differ per kind: MEMBERS_FIELD names the member array,
    and the pending list and decline map are derived from it.
    """
    KIND: ClassVar[str] = ""
    COLLECTION: ClassVar[str] = ""
    MEMBERS_FIELD: ClassVar[str] = "members"
    USER_FIELD: ClassVar[str] = ""

    id: Optional[str] = None
    name: str = ""
    category: str = ""
    description: Optional[str] = None
    profile_picture_url: str = ""
    cover_image_url: str = ""
    owner_id: Optional[str] = None
    admins: List[str] = field(default_factory=list)
    members: List[str] = field(default_factory=list)
    pending: List[str] = field(default_factory=list)
    declined: Dict[str, Any] = field(default_factory=dict)
    posters: Any = "admins"
    visibility: str = "public"
    created_at: Optional[datetime] = None

    @classmethod
    def pending_field(cls) -> str:
        return "pending_" + cls.MEMBERS_FIELD

    @classmethod
    def declined_field(cls) -> str:
        return "declined_" + cls.MEMBERS_FIELD

    def is_admin(self, uid: Optional[str]) -> bool:
        return bool(uid) and (uid == self.owner_id or uid in self.admins)

    def is_member(self, uid: Optional[str]) -> bool:
        return bool(uid) and uid in self.members

    def declined_at(self, uid: str) -> Optional[datetime]:
        return _parse_datetime(self.declined.get(uid))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "profile_picture_url": self.profile_picture_url,
            "cover_image_url": self.cover_image_url,
            "owner_id": self.owner_id,
            "admins": self.admins,
            self.MEMBERS_FIELD: self.members,
            self.pending_field(): self.pending,
            self.declined_field(): self.declined,
            "posters": self.posters,
            "visibility": self.visibility,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def _common(cls, data: Dict[str, Any], doc_id: Optional[str]) -> Dict[str, Any]:
        return dict(
            id=doc_id or data.get("id"),
            name=data.get("name", ""),
            category=data.get("category", ""),
            description=data.get("description"),
            profile_picture_url=data.get("profile_picture_url") or "",
            cover_image_url=data.get("cover_image_url") or "",
            owner_id=data.get("owner_id"),
            admins=_list(data.get("admins")),
            members=_list(data.get(cls.MEMBERS_FIELD)),
            pending=_list(data.get(cls.pending_field())),
            declined=dict(data.get(cls.declined_field()) or {}),
            posters=data.get("posters") or "admins",
            visibility=data.get("visibility") or "public",
            created_at=_parse_datetime(data.get("created_at")),
        )

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None):
        return cls(**cls._common(data, doc_id))

    def to_api(self) -> Dict[str, Any]:
        data = super().to_api()
        data["kind"] = self.KIND
        data[self.MEMBERS_FIELD] = data.pop("members")
        return data


@dataclass
class GroupInfo(MembershipEntity):
    KIND: ClassVar[str] = "group"
    COLLECTION: ClassVar[str] = "groups"
    MEMBERS_FIELD: ClassVar[str] = "members"
    USER_FIELD: ClassVar[str] = "followed_groups"


@dataclass
class EventInfo(MembershipEntity):
    KIND: ClassVar[str] = "event"
    COLLECTION: ClassVar[str] = "events"
    MEMBERS_FIELD: ClassVar[str] = "participants"
    USER_FIELD: ClassVar[str] = "participated_events"

    location: Optional[str] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    participant_post_limit: int = 5

    def status(self, now: Optional[datetime] = None) -> str:
        return _window_status(self.start_date, self.end_date, now)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "location": self.location,
            "start_date": self.start_date,
            "end_date": self.end_date,
            "participant_post_limit": self.participant_post_limit,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> EventInfo:
        limit = data.get("participant_post_limit")
        return cls(
            location=data.get("location"),
            start_date=_parse_datetime(data.get("start_date")),
            end_date=_parse_datetime(data.get("end_date")),
            participant_post_limit=5 if limit is None else limit,
            **cls._common(data, doc_id),
        )

    def to_api(self) -> Dict[str, Any]:
        data = super().to_api()
        data["status"] = self.status()
        return data


@dataclass
class QuizInfo(MembershipEntity):
    KIND: ClassVar[str] = "quiz"
    COLLECTION: ClassVar[str] = "quizzes"
    MEMBERS_FIELD: ClassVar[str] = "participants"
    USER_FIELD: ClassVar[str] = "participated_quizzes"

    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    attempt_limit: int = 1
    time_limit_minutes: int = 10

    def status(self, now: Optional[datetime] = None) -> str:
        return _window_status(self.start_date, self.end_date, now)

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data.update({
            "start_date": self.start_date,
            "end_date": self.end_date,
            "attempt_limit": self.attempt_limit,
            "time_limit_minutes": self.time_limit_minutes,
        })
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> QuizInfo:
        attempts = data.get("attempt_limit")
        minutes = data.get("time_limit_minutes")
        return cls(
            start_date=_parse_datetime(data.get("start_date")),
            end_date=_parse_datetime(data.get("end_date")),
            attempt_limit=1 if attempts is None else attempts,
            time_limit_minutes=10 if minutes is None else minutes,
            **cls._common(data, doc_id),
        )

    def to_api(self) -> Dict[str, Any]:
        data = super().to_api()
        data["status"] = self.status()
        return data


MEMBERSHIP_KINDS = {cls.KIND: cls for cls in (GroupInfo, EventInfo, QuizInfo)}


# ===========================================================================
# 4b. Connections  (subcollection: users/{uid}/connections)
# ===========================================================================

@dataclass
class Connection(_ApiMixin):
    id: Optional[str] = None       # the other user's uid
    status: str = "pending_sent"   # pending_sent | pending_received | connected
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    user: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {"status": self.status, "created_at": self.created_at or _now()}
        if self.updated_at:
            data["updated_at"] = self.updated_at
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Connection:
        return cls(
            id=doc_id or data.get("id"),
            status=data.get("status", "pending_sent"),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass
class QuizQuestion(_ApiMixin):
    id: Optional[str] = None
    quiz_id: Optional[str] = None
    question_text: str = ""
    image_url: str = ""
    answer_type: str = "radio"
    options: List[Dict[str, Any]] = field(default_factory=list)
    correct_answers: List[str] = field(default_factory=list)
    points: float = 1
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quiz_id": self.quiz_id,
            "question_text": self.question_text,
            "image_url": self.image_url,
            "answer_type": self.answer_type,
            "options": self.options,
            "correct_answers": self.correct_answers,
            "points": self.points,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> QuizQuestion:
        return cls(
            id=doc_id or data.get("id"),
            quiz_id=data.get("quiz_id"),
            question_text=data.get("question_text", ""),
            image_url=data.get("image_url") or "",
            answer_type=data.get("answer_type", "radio"),
            options=_list(data.get("options")),
            correct_answers=_list(data.get("correct_answers")),
            points=data.get("points", 1),
            created_at=_parse_datetime(data.get("created_at")),
        )

    def public_view(self) -> Dict[str, Any]:
        """Question as shown to quiz takers: without the answer key."""
        data = self.to_api()
        data.pop("correct_answers", None)
        return data


@dataclass
class QuizSubmission(_ApiMixin):
    id: Optional[str] = None
    quiz_id: Optional[str] = None
    user_id: Optional[str] = None
    answers: Dict[str, List[str]] = field(default_factory=dict)
    score: float = 0
    status: str = "started"
    attempt_number: int = 1
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    user: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "quiz_id": self.quiz_id,
            "user_id": self.user_id,
            "answers": self.answers,
            "score": self.score,
            "status": self.status,
            "attempt_number": self.attempt_number,
            "started_at": self.started_at or _now(),
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> QuizSubmission:
        return cls(
            id=doc_id or data.get("id"),
            quiz_id=data.get("quiz_id"),
            user_id=data.get("user_id"),
            answers=dict(data.get("answers") or {}),
            score=data.get("score", 0),
            status=data.get("status", "started"),
            attempt_number=data.get("attempt_number", 1),
            started_at=_parse_datetime(data.get("started_at")),
            completed_at=_parse_datetime(data.get("completed_at")),
        )


# ===========================================================================
# 5. Marketplace
# ===========================================================================

@dataclass
class Product(_ApiMixin):
    id: Optional[str] = None
    name: str = ""
    description: str = ""
    price: float = 0.0
    category: str = "others"
    images: List[str] = field(default_factory=list)
    image_paths: List[str] = field(default_factory=list)
    stock: int = 0
    seller_id: Optional[str] = None
    seller_contact: str = ""
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "description": self.description,
            "price": self.price,
            "category": self.category,
            "images": self.images,
            "image_paths": self.image_paths,
            "stock": self.stock,
            "seller_id": self.seller_id,
            "seller_contact": self.seller_contact,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Product:
        return cls(
            id=doc_id or data.get("id"),
            name=data.get("name", ""),
            description=data.get("description", ""),
            price=data.get("price", 0.0),
            category=data.get("category", "others"),
            images=_list(data.get("images")),
            image_paths=_list(data.get("image_paths")),
            stock=data.get("stock", 0),
            seller_id=data.get("seller_id"),
            seller_contact=data.get("seller_contact", ""),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass
class Review(_ApiMixin):
    id: Optional[str] = None
    product_id: Optional[str] = None
    user_id: Optional[str] = None
    rating: int = 0
    comment: str = ""
    created_at: Optional[datetime] = None
    author: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "product_id": self.product_id,
            "user_id": self.user_id,
            "rating": self.rating,
            "comment": self.comment,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Review:
        return cls(
            id=doc_id or data.get("id"),
            product_id=data.get("product_id"),
            user_id=data.get("user_id"),
            rating=data.get("rating", 0),
            comment=data.get("comment") or "",
            created_at=_parse_datetime(data.get("created_at")),
        )


# ===========================================================================
# 6. Messaging & notifications
# ===========================================================================

@dataclass
class Message(_ApiMixin):
    id: Optional[str] = None
    sender_id: Optional[str] = None
    text: str = ""
    image_url: Optional[str] = None
    video_url: Optional[str] = None
    status: str = "sent"
    created_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "sender_id": self.sender_id,
            "text": self.text,
            "status": self.status,
            "created_at": self.created_at or _now(),
        }
        if self.image_url:
            data["image_url"] = self.image_url
        if self.video_url:
            data["video_url"] = self.video_url
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Message:
        return cls(
            id=doc_id or data.get("id"),
            sender_id=data.get("sender_id"),
            text=data.get("text") or "",
            image_url=data.get("image_url"),
            video_url=data.get("video_url"),
            status=data.get("status", "sent"),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass
class Conversation(_ApiMixin):
    id: Optional[str] = None
    participants: List[str] = field(default_factory=list)
    last_message: Optional[Dict[str, Any]] = None
    unread_count: Dict[str, int] = field(default_factory=dict)
    updated_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Conversation:
        return cls(
            id=doc_id or data.get("id"),
            participants=_list(data.get("participants")),
            last_message=data.get("last_message"),
            unread_count=dict(data.get("unread_count") or {}),
            updated_at=_parse_datetime(data.get("updated_at")),
        )

    def other_participant(self, uid: str) -> Optional[str]:
        for p in self.participants:
            if p != uid:
                return p
        return None


@dataclass
class Notification(_ApiMixin):
    id: Optional[str] = None
    recipient_id: Optional[str] = None
    sender_id: Optional[str] = None
    type: str = ""
    entity_id: Optional[str] = None
    entity_type: str = "user"
    read: bool = False
    created_at: Optional[datetime] = None
    sender: Optional[Dict[str, Any]] = None
    entity: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "recipient_id": self.recipient_id,
            "sender_id": self.sender_id,
            "type": self.type,
            "entity_id": self.entity_id,
            "entity_type": self.entity_type,
            "read": self.read,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Notification:
        return cls(
            id=doc_id or data.get("id"),
            recipient_id=data.get("recipient_id"),
            sender_id=data.get("sender_id"),
            type=data.get("type", ""),
            entity_id=data.get("entity_id"),
            entity_type=data.get("entity_type", "user"),
            read=data.get("read", False),
            created_at=_parse_datetime(data.get("created_at")),
        )


# ===========================================================================
# 7. Publishing
# ===========================================================================

@dataclass
class Lyrics(_ApiMixin):
    id: Optional[str] = None
    slug: str = ""
    title: str = ""
    full_lyrics: str = ""
    description: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    song_audio_url: str = ""
    song_audio_path: str = ""
    karaoke_audio_url: str = ""
    karaoke_audio_path: str = ""
    author_id: Optional[str] = None
    view_count: int = 0
    likes: List[str] = field(default_factory=list)
    share_count: int = 0
    comment_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    author: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "title": self.title,
            "full_lyrics": self.full_lyrics,
            "description": self.description,
            "tags": self.tags,
            "song_audio_url": self.song_audio_url,
            "song_audio_path": self.song_audio_path,
            "karaoke_audio_url": self.karaoke_audio_url,
            "karaoke_audio_path": self.karaoke_audio_path,
            "author_id": self.author_id,
            "view_count": self.view_count,
            "likes": self.likes,
            "share_count": self.share_count,
            "comment_count": self.comment_count,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Lyrics:
        return cls(
            id=doc_id or data.get("id"),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            full_lyrics=data.get("full_lyrics", ""),
            description=data.get("description"),
            tags=_list(data.get("tags")),
            song_audio_url=data.get("song_audio_url") or "",
            song_audio_path=data.get("song_audio_path") or "",
            karaoke_audio_url=data.get("karaoke_audio_url") or "",
            karaoke_audio_path=data.get("karaoke_audio_path") or "",
            author_id=data.get("author_id"),
            view_count=data.get("view_count", 0),
            likes=_list(data.get("likes")),
            share_count=data.get("share_count", 0),
            comment_count=data.get("comment_count", 0),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass
class PublicationPage(_ApiMixin):
    id: Optional[str] = None
    title: str = ""
    content: str = ""
    content_type: str = "paragraph"
    image_urls: List[str] = field(default_factory=list)
    order: int = 0
    created_at: Optional[datetime] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> PublicationPage:
        return cls(
            id=doc_id or data.get("id"),
            title=data.get("title", ""),
            content=data.get("content", ""),
            content_type=data.get("content_type", "paragraph"),
            image_urls=_list(data.get("image_urls")),
            order=data.get("order", 0),
            created_at=_parse_datetime(data.get("created_at")),
        )


@dataclass
class Publication(_ApiMixin):
    id: Optional[str] = None
    book_id: str = ""
    title: str = ""
    description: Optional[str] = None
    cover_photo_url: str = ""
    author_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    is_published: bool = False
    publish_date: Optional[datetime] = None
    read_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    author: Optional[Dict[str, Any]] = None
    pages: List[Dict[str, Any]] = field(default_factory=list)

    def is_live(self, now: Optional[datetime] = None) -> bool:
        return _is_live(self.is_published, self.publish_date, now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "book_id": self.book_id,
            "title": self.title,
            "description": self.description,
            "cover_photo_url": self.cover_photo_url,
            "author_id": self.author_id,
            "tags": self.tags,
            "is_published": self.is_published,
            "publish_date": self.publish_date,
            "read_count": self.read_count,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Publication:
        return cls(
            id=doc_id or data.get("id"),
            book_id=data.get("book_id", ""),
            title=data.get("title", ""),
            description=data.get("description"),
            cover_photo_url=data.get("cover_photo_url") or "",
            author_id=data.get("author_id"),
            tags=_list(data.get("tags")),
            is_published=data.get("is_published", False),
            publish_date=_parse_datetime(data.get("publish_date")),
            read_count=data.get("read_count", 0),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


@dataclass
class AboutArticle(_ApiMixin):
    """An About BAWM article; pages live in its 'pages' subcollection."""
    id: Optional[str] = None
    slug: str = ""
    title: str = ""
    description: Optional[str] = None
    cover_photo_url: str = ""
    cover_photo_path: str = ""
    author_id: Optional[str] = None
    tags: List[str] = field(default_factory=list)
    is_published: bool = False
    publish_date: Optional[datetime] = None
    read_count: int = 0
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    author: Optional[Dict[str, Any]] = None
    pages: List[Dict[str, Any]] = field(default_factory=list)

    def is_live(self, now: Optional[datetime] = None) -> bool:
        return _is_live(self.is_published, self.publish_date, now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "title": self.title,
            "description": self.description,
            "cover_photo_url": self.cover_photo_url,
            "cover_photo_path": self.cover_photo_path,
            "author_id": self.author_id,
            "tags": self.tags,
            "is_published": self.is_published,
            "publish_date": self.publish_date,
            "read_count": self.read_count,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> AboutArticle:
        return cls(
            id=doc_id or data.get("id"),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            description=data.get("description"),
            cover_photo_url=data.get("cover_photo_url") or "",
            cover_photo_path=data.get("cover_photo_path") or "",
            author_id=data.get("author_id"),
            tags=_list(data.get("tags")),
            is_published=data.get("is_published", False),
            publish_date=_parse_datetime(data.get("publish_date")),
            read_count=data.get("read_count", 0),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )


# ===========================================================================
# 8. Videos
# ===========================================================================

@dataclass
class Video(_ApiMixin):
    """A published video; one file per quality in ``video_urls``.

    ``scheduled_time`` holds a future release moment; until then only the
    uploader and site admins see the video.
    """
    id: Optional[str] = None
    slug: str = ""
    title: str = ""
    description: str = ""
    tags: List[str] = field(default_factory=list)
    video_urls: Dict[str, str] = field(default_factory=dict)
    video_paths: Dict[str, str] = field(default_factory=dict)
    thumbnail_url: str = ""
    thumbnail_path: str = ""
    uploader_id: Optional[str] = None
    view_count: int = 0
    likes: List[str] = field(default_factory=list)
    comment_count: int = 0
    scheduled_time: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    uploader: Optional[Dict[str, Any]] = None

    def is_live(self, now: Optional[datetime] = None) -> bool:
        return self.scheduled_time is None or self.scheduled_time <= (now or _now())

    def storage_paths(self) -> List[str]:
        paths = list(self.video_paths.values())
        if self.thumbnail_path:
            paths.append(self.thumbnail_path)
        return paths

    def to_dict(self) -> Dict[str, Any]:
        return {
            "slug": self.slug,
            "title": self.title,
            "description": self.description,
            "tags": self.tags,
            "video_urls": self.video_urls,
            "video_paths": self.video_paths,
            "thumbnail_url": self.thumbnail_url,
            "thumbnail_path": self.thumbnail_path,
            "uploader_id": self.uploader_id,
            "view_count": self.view_count,
            "likes": self.likes,
            "comment_count": self.comment_count,
            "scheduled_time": self.scheduled_time,
            "created_at": self.created_at or _now(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], doc_id: Optional[str] = None) -> Video:
        return cls(
            id=doc_id or data.get("id"),
            slug=data.get("slug", ""),
            title=data.get("title", ""),
            description=data.get("description") or "",
            tags=_list(data.get("tags")),
            video_urls=dict(data.get("video_urls") or {}),
            video_paths=dict(data.get("video_paths") or {}),
            thumbnail_url=data.get("thumbnail_url") or "",
            thumbnail_path=data.get("thumbnail_path") or "",
            uploader_id=data.get("uploader_id"),
            view_count=data.get("view_count", 0),
            likes=_list(data.get("likes")),
            comment_count=data.get("comment_count", 0),
            scheduled_time=_parse_datetime(data.get("scheduled_time")),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at")),
        )
