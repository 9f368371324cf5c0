import logging

from google.api_core.exceptions import GoogleAPICallError

from bawmnet.firebase_init import get_bucket

logger = logging.getLogger(__name__)

IMAGE_EXTENSIONS = {'png', 'jpg', 'jpeg', 'gif', 'webp'}
VIDEO_EXTENSIONS = {'mp4', 'mov', 'webm', 'mkv'}
AUDIO_EXTENSIONS = {'mp3', 'wav', 'm4a', 'ogg', 'aac'}

MAX_IMAGE_BYTES = 5 * 1024 * 1024
MAX_VIDEO_BYTES = 50 * 1024 * 1024
MAX_AUDIO_BYTES = 20 * 1024 * 1024
MAX_AVATAR_BYTES = 1 * 1024 * 1024


class UploadError(ValueError):
    """Rejected upload: wrong type or too large."""


def file_extension(filename):
    return filename.rsplit('.', 1)[1].lower() if filename and '.' in filename else ''


def media_type_for(filename):
    """'image', 'video', 'audio' or None, judged by extension."""
    ext = file_extension(filename)
    if ext in IMAGE_EXTENSIONS:
        return 'image'
    if ext in VIDEO_EXTENSIONS:
        return 'video'
    if ext in AUDIO_EXTENSIONS:
        return 'audio'
    return None


def _content_type(ext, kind):
    if ext == 'jpg':
        return 'image/jpeg'
    if ext == 'mp3':
        return 'audio/mpeg'
    return f'{kind}/{ext}'


def validate_upload(file, kind, max_bytes=None):
    """Check a werkzeug FileStorage against ``kind`` and a size limit.

    Returns (bytes, extension).
    """
    ext = file_extension(file.filename)
    allowed = {'image': IMAGE_EXTENSIONS, 'video': VIDEO_EXTENSIONS, 'audio': AUDIO_EXTENSIONS}[kind]
    if ext not in allowed:
        raise UploadError(f'{file.filename}: only {", ".join(sorted(allowed))} files are accepted')
    if max_bytes is None:
        max_bytes = {'image': MAX_IMAGE_BYTES, 'video': MAX_VIDEO_BYTES, 'audio': MAX_AUDIO_BYTES}[kind]
    data = file.read()
    if len(data) > max_bytes:
        raise UploadError(f'{file.filename}: file must be {max_bytes // (1024 * 1024)}MB or smaller')
    return data, ext


def upload_file(file_data, destination_path, content_type=None):
    """Upload file bytes to Firebase Storage.

    Args:
        file_data: bytes or file-like object
        destination_path: path in the bucket (e.g. 'users/uid/profile.png')
        content_type: MIME type

    Returns:
        The storage path (same as destination_path)
    """
    bucket = get_bucket()
    blob = bucket.blob(destination_path)
    if content_type:
        blob.content_type = content_type
    if isinstance(file_data, bytes):
        blob.upload_from_string(file_data, content_type=content_type)
    else:
        blob.upload_from_file(file_data, content_type=content_type)
    return destination_path


def get_public_url(storage_path):
    """Make a blob publicly readable and return its permanent URL."""
    blob = get_bucket().blob(storage_path)
    blob.make_public()
    return blob.public_url


def delete_file(storage_path):
    """Delete a file from Firebase Storage."""
    bucket = get_bucket()
    blob = bucket.blob(storage_path)
    if blob.exists():
        blob.delete()


def delete_files(storage_paths):
    """Delete several blobs; a failure on one is logged and the rest continue."""
    for path in storage_paths or []:
        try:
            delete_file(path)
        except GoogleAPICallError:
            logger.exception('Failed to delete blob %s', path)


def _store(file_data, path, ext, kind):
    upload_file(file_data, path, _content_type(ext, kind))
    return path, get_public_url(path)


def upload_profile_image(uid, file_data, ext, slot='profile'):
    """Upload a user's avatar ('profile') or cover image.

    Returns:
        (storage path, public URL)
    """
    return _store(file_data, f'users/{uid}/{slot}.{ext}', ext, 'image')


def upload_entity_image(collection, entity_id, file_data, ext, slot='profile'):
    """Profile or cover image of a page, group, event or quiz."""
    return _store(file_data, f'{collection}/{entity_id}/{slot}.{ext}', ext, 'image')


def upload_post_media(post_type, post_id, index, file_data, ext, kind):
    """Image or video attached to a post."""
    return _store(file_data, f'posts/{post_type}/{post_id}/{index}.{ext}', ext, kind)


def upload_message_media(conv_id, message_id, file_data, ext, kind):
    """Image or video sent in a conversation."""
    return _store(file_data, f'messages/{conv_id}/{message_id}/{kind}.{ext}', ext, kind)


def upload_product_image(product_id, index, file_data, ext):
    return _store(file_data, f'products/{product_id}/{index}.{ext}', ext, 'image')


def upload_lyrics_audio(lyrics_id, slot, file_data, ext):
    """Song or karaoke track of a lyrics entry."""
    return _store(file_data, f'lyrics/{lyrics_id}/{slot}.{ext}', ext, 'audio')


def upload_publication_cover(publication_id, file_data, ext):
    return _store(file_data, f'publications/{publication_id}/cover.{ext}', ext, 'image')


def upload_quiz_image(quiz_id, name, file_data, ext):
    """Question or answer-option image of a quiz."""
    return _store(file_data, f'quizzes/{quiz_id}/questions/{name}.{ext}', ext, 'image')


def upload_video_file(video_id, quality, file_data, ext):
    return _store(file_data, f'videos/{video_id}/{quality}.{ext}', ext, 'video')


def upload_video_thumbnail(video_id, file_data, ext):
    return _store(file_data, f'videos/{video_id}/thumbnail.{ext}', ext, 'image')


def upload_about_cover(article_id, file_data, ext):
    return _store(file_data, f'about_bawm/{article_id}/cover.{ext}', ext, 'image')


def upload_about_page_image(article_id, page_id, index, file_data, ext):
    return _store(file_data, f'about_bawm/{article_id}/pages/{page_id}/{index}.{ext}', ext, 'image')
