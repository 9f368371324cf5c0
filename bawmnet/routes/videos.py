import logging

from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import Video, UserProfile, VIDEO_QUALITIES
from bawmnet.forms import VideoForm, VideoUpdateForm, CommentForm, validate_or_400, uploaded_file, tag_list
from bawmnet.services import posting, storage

logger = logging.getLogger(__name__)

bp = Blueprint('videos', __name__, url_prefix='/videos')


def _can_manage(user, video):
    return video.uploader_id == user.uid or user.is_site_admin()


def _load_video(slug, viewer):
    """A video by slug; scheduled ones only for the uploader and site admins."""
    doc = dao.get_video_by_slug(slug)
    if not doc:
        abort(404, description='Video not found')
    video = Video.from_dict(doc, doc['id'])
    if not video.is_live() and not _can_manage(viewer, video):
        abort(404, description='Video not found')
    return video


def _load_managed_video(slug):
    user = current_profile()
    video = _load_video(slug, user)
    if not _can_manage(user, video):
        abort(403, description='Only the uploader can change this video')
    return video


def _video_api(video, viewer):
    data = video.to_api()
    data.pop('video_paths', None)
    data.pop('thumbnail_path', None)
    data['like_count'] = len(video.likes)
    data['is_liked'] = viewer.uid in video.likes
    return data


def _quality_uploads():
    """{quality: (bytes, ext)} for every quality file in the request."""
    uploads = {}
    for quality in VIDEO_QUALITIES:
        upload = uploaded_file(quality, 'video', required=False)
        if upload is not None:
            uploads[quality] = upload
    return uploads


def _store_files(video, uploads, thumbnail=None):
    for quality, (data, ext) in uploads.items():
        old_path = video.video_paths.get(quality)
        path, url = storage.upload_video_file(video.id, quality, data, ext)
        if old_path and old_path != path:
            storage.delete_file(old_path)
        video.video_paths[quality] = path
        video.video_urls[quality] = url
    if thumbnail is not None:
        old_path = video.thumbnail_path
        video.thumbnail_path, video.thumbnail_url = storage.upload_video_thumbnail(video.id, *thumbnail)
        if old_path and old_path != video.thumbnail_path:
            storage.delete_file(old_path)


@bp.route('')
@auth_required
def list_videos():
    """Newest first; ?tag= filters by tag and ?q= searches titles."""
    viewer = current_profile()
    tag = (request.args.get('tag') or '').strip().lower() or None
    term = (request.args.get('q') or '').strip().lower()
    videos = [Video.from_dict(d, d['id']) for d in dao.list_videos(tag=tag)]
    videos = [v for v in videos if (v.is_live() or _can_manage(viewer, v)) and term in v.title.lower()]
    uploaders = dao.get_users_by_ids([v.uploader_id for v in videos])
    items = []
    for video in videos:
        uploader = uploaders.get(video.uploader_id)
        if uploader:
            video.uploader = UserProfile.from_dict(uploader, uploader['id']).summary()
        items.append(_video_api(video, viewer))
    return jsonify({'videos': items})


@bp.route('', methods=['POST'])
@auth_required
def publish_video():
    """Multipart: title, tags, a 'thumbnail' image and one file per quality ('144p' ... '1080p')."""
    user = current_profile()
    if not perm.can_create(user, 'video'):
        abort(403, description='You are not allowed to publish videos')
    form = validate_or_400(VideoForm())
    tags = tag_list()
    if not tags:
        abort(400, description='Add at least one tag')
    uploads = _quality_uploads()
    if not uploads:
        abort(400, description='Upload at least one video quality')
    thumbnail = uploaded_file('thumbnail', 'image')

    video = Video(
        id=dao.new_video_id(),
        slug=dao.unique_slug('videos', form.slug.data or form.title.data),
        title=form.title.data.strip(),
        description=form.description.data or '',
        tags=tags,
        uploader_id=user.uid,
        scheduled_time=form.scheduled_time.data,
    )
    _store_files(video, uploads, thumbnail)
    dao.create_video(video.id, video.to_dict())
    logger.info('Video %s %s by %s', video.slug,
                'scheduled' if video.scheduled_time else 'published', user.uid)
    return jsonify({'video': _video_api(video, user)}), 201


@bp.route('/<slug>')
@auth_required
def get_video(slug):
    viewer = current_profile()
    video = _load_video(slug, viewer)
    uploader = dao.get_user(video.uploader_id)
    if uploader:
        video.uploader = UserProfile.from_dict(uploader, uploader['id']).summary()
    return jsonify({'video': _video_api(video, viewer)})


@bp.route('/<slug>', methods=['PATCH'])
@auth_required
def update_video(slug):
    """Title, description, tags or release time; an empty scheduled_time releases now."""
    video = _load_managed_video(slug)
    form = validate_or_400(VideoUpdateForm())
    updates = {}
    for name in ('title', 'description', 'scheduled_time'):
        field = getattr(form, name)
        if field.raw_data:
            updates[name] = field.data
    if form.tags.raw_data:
        updates['tags'] = tag_list()
        if not updates['tags']:
            abort(400, description='Add at least one tag')
    if 'title' in updates and not (updates['title'] or '').strip():
        abort(400, description='Title cannot be empty')
    if not updates:
        abort(400, description='Nothing to update')
    dao.update_video(video.id, updates)
    return jsonify({'video': _video_api(_load_video(slug, current_profile()), current_profile())})


@bp.route('/<slug>/media', methods=['POST'])
@auth_required
def replace_media(slug):
    """Replace quality files and/or the 'thumbnail'."""
    user = current_profile()
    video = _load_managed_video(slug)
    uploads = _quality_uploads()
    thumbnail = uploaded_file('thumbnail', 'image', required=False)
    if not uploads and thumbnail is None:
        abort(400, description='Upload a video file or a thumbnail')
    _store_files(video, uploads, thumbnail)
    dao.update_video(video.id, {
        'video_urls': video.video_urls,
        'video_paths': video.video_paths,
        'thumbnail_url': video.thumbnail_url,
        'thumbnail_path': video.thumbnail_path,
    })
    return jsonify({'video': _video_api(video, user)})


@bp.route('/<slug>', methods=['DELETE'])
@auth_required
def delete_video(slug):
    user = current_profile()
    video = _load_managed_video(slug)
    dao.delete_video(video.id)
    storage.delete_files(video.storage_paths())
    logger.info('Video %s deleted by %s', slug, user.uid)
    return jsonify({'success': True})


@bp.route('/<slug>/like', methods=['POST'])
@auth_required
def like_video(slug):
    user = current_profile()
    video = _load_video(slug, user)
    liked, count = posting.toggle_like(user, 'videos', {'id': video.id, 'likes': video.likes})
    return jsonify({'liked': liked, 'like_count': count})


@bp.route('/<slug>/view', methods=['POST'])
@auth_required
def count_view(slug):
    video = _load_video(slug, current_profile())
    dao.increment_counter('videos', video.id, 'view_count')
    return jsonify({'view_count': video.view_count + 1})


@bp.route('/<slug>/comments')
@auth_required
def list_comments(slug):
    viewer = current_profile()
    video = _load_video(slug, viewer)
    comments = posting.list_comments(viewer, 'video', video.id)
    return jsonify({'comments': [c.to_api() for c in comments]})


@bp.route('/<slug>/comments', methods=['POST'])
@auth_required
def add_comment(slug):
    user = current_profile()
    video = _load_video(slug, user)
    form = validate_or_400(CommentForm())
    comment = posting.add_comment(user, 'video', video.id, form.text.data)
    return jsonify({'comment': comment.to_api()}), 201
