import logging

from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import Lyrics, UserProfile
from bawmnet.forms import LyricsForm, LyricsUpdateForm, CommentForm, validate_or_400, uploaded_file, tag_list
from bawmnet.services import posting, storage

logger = logging.getLogger(__name__)

bp = Blueprint('lyrics', __name__, url_prefix='/lyrics')

AUDIO_SLOTS = ('song', 'karaoke')


def _load_lyrics(slug):
    doc = dao.get_lyrics_by_slug(slug)
    if not doc:
        abort(404, description='Lyrics not found')
    return Lyrics.from_dict(doc, doc['id'])


def _require_author(user, lyrics):
    if not (lyrics.author_id == user.uid or user.is_site_admin()):
        abort(403, description='Only the author can change these lyrics')


def _lyrics_api(lyrics, viewer):
    data = lyrics.to_api()
    data.pop('song_audio_path', None)
    data.pop('karaoke_audio_path', None)
    data['like_count'] = len(lyrics.likes)
    data['is_liked'] = viewer.uid in lyrics.likes
    return data


def _store_audio(lyrics, slot):
    """Upload the '<slot>' file if present and point the entry at it."""
    upload = uploaded_file(slot, 'audio', required=False)
    if upload is None:
        return False
    data, ext = upload
    old_path = getattr(lyrics, f'{slot}_audio_path')
    path, url = storage.upload_lyrics_audio(lyrics.id, slot, data, ext)
    if old_path and old_path != path:
        storage.delete_file(old_path)
    setattr(lyrics, f'{slot}_audio_path', path)
    setattr(lyrics, f'{slot}_audio_url', url)
    return True


@bp.route('')
@auth_required
def list_lyrics():
    viewer = current_profile()
    tag = (request.args.get('tag') or '').strip().lower() or None
    items = [Lyrics.from_dict(d, d['id']) for d in dao.list_lyrics(tag=tag)]
    return jsonify({'lyrics': [_lyrics_api(item, viewer) for item in items]})


@bp.route('', methods=['POST'])
@auth_required
def create_lyrics():
    """Title, lyrics and tags; 'song' and 'karaoke' audio files are optional."""
    user = current_profile()
    if not perm.can_create(user, 'lyrics'):
        abort(403, description='You are not allowed to publish lyrics')
    form = validate_or_400(LyricsForm())
    tags = tag_list()
    if not tags:
        abort(400, description='Add at least one tag')

    lyrics = Lyrics(
        id=dao.new_lyrics_id(),
        slug=dao.unique_slug('lyrics', form.title.data),
        title=form.title.data.strip(),
        full_lyrics=form.full_lyrics.data,
        description=form.description.data or None,
        tags=tags,
        author_id=user.uid,
    )
    for slot in AUDIO_SLOTS:
        _store_audio(lyrics, slot)
    dao.create_lyrics(lyrics.id, lyrics.to_dict())
    logger.info('Lyrics %s published by %s', lyrics.slug, user.uid)
    return jsonify({'lyrics': _lyrics_api(lyrics, user)}), 201


@bp.route('/<slug>')
@auth_required
def get_lyrics(slug):
    viewer = current_profile()
    lyrics = _load_lyrics(slug)
    author = dao.get_user(lyrics.author_id)
    if author:
        lyrics.author = UserProfile.from_dict(author, author['id']).summary()
    return jsonify({'lyrics': _lyrics_api(lyrics, viewer)})


@bp.route('/<slug>', methods=['PATCH'])
@auth_required
def update_lyrics(slug):
    user = current_profile()
    lyrics = _load_lyrics(slug)
    _require_author(user, lyrics)
    form = validate_or_400(LyricsUpdateForm())
    updates = {}
    for name in ('title', 'full_lyrics', 'description'):
        field = getattr(form, name)
        if field.raw_data:
            updates[name] = field.data
    if form.tags.raw_data:
        updates['tags'] = tag_list()
        if not updates['tags']:
            abort(400, description='Add at least one tag')
    if updates.get('title') is not None and not updates['title'].strip():
        abort(400, description='Title cannot be empty')
    if updates.get('full_lyrics') is not None and not updates['full_lyrics'].strip():
        abort(400, description='Lyrics cannot be empty')
    if not updates:
        abort(400, description='Nothing to update')
    dao.update_lyrics(lyrics.id, updates)
    return jsonify({'lyrics': _lyrics_api(_load_lyrics(slug), user)})


@bp.route('/<slug>/audio', methods=['POST'])
@auth_required
def upload_audio(slug):
    """Replace the 'song' and/or 'karaoke' track."""
    user = current_profile()
    lyrics = _load_lyrics(slug)
    _require_author(user, lyrics)
    stored = [slot for slot in AUDIO_SLOTS if _store_audio(lyrics, slot)]
    if not stored:
        abort(400, description='Upload a song or karaoke file')
    dao.update_lyrics(lyrics.id, {
        f'{slot}_audio_{part}': getattr(lyrics, f'{slot}_audio_{part}')
        for slot in stored for part in ('url', 'path')
    })
    return jsonify({'lyrics': _lyrics_api(lyrics, user)})


@bp.route('/<slug>', methods=['DELETE'])
@auth_required
def delete_lyrics(slug):
    user = current_profile()
    lyrics = _load_lyrics(slug)
    _require_author(user, lyrics)
    dao.delete_lyrics(lyrics.id)
    storage.delete_files([p for p in (lyrics.song_audio_path, lyrics.karaoke_audio_path) if p])
    logger.info('Lyrics %s deleted by %s', slug, user.uid)
    return jsonify({'success': True})


@bp.route('/<slug>/like', methods=['POST'])
@auth_required
def like_lyrics(slug):
    doc = dao.get_lyrics_by_slug(slug)
    if not doc:
        abort(404, description='Lyrics not found')
    liked, count = posting.toggle_like(current_profile(), 'lyrics', doc)
    return jsonify({'liked': liked, 'like_count': count})


@bp.route('/<slug>/<counter>', methods=['POST'])
@auth_required
def count_lyrics(slug, counter):
    if counter not in ('view', 'share'):
        abort(404)
    lyrics = _load_lyrics(slug)
    dao.increment_counter('lyrics', lyrics.id, f'{counter}_count')
    return jsonify({'success': True})


@bp.route('/<slug>/comments')
@auth_required
def list_comments(slug):
    lyrics = _load_lyrics(slug)
    comments = posting.list_comments(current_profile(), 'lyrics', lyrics.id)
    return jsonify({'comments': [c.to_api() for c in comments]})


@bp.route('/<slug>/comments', methods=['POST'])
@auth_required
def add_comment(slug):
    lyrics = _load_lyrics(slug)
    form = validate_or_400(CommentForm())
    comment = posting.add_comment(current_profile(), 'lyrics', lyrics.id, form.text.data)
    return jsonify({'comment': comment.to_api()}), 201
