import logging
from datetime import datetime, timezone

from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import AboutArticle, PublicationPage, UserProfile
from bawmnet.forms import (AboutArticleForm, AboutArticleUpdateForm, PublicationPageForm,
                           validate_or_400, uploaded_file, tag_list)
from bawmnet.services import storage

logger = logging.getLogger(__name__)

bp = Blueprint('about', __name__, url_prefix='/about')

ARTICLES = dao.ABOUT_ARTICLES


def _published_by(publish_date):
    return publish_date is None or publish_date <= datetime.now(timezone.utc)


def _can_manage(user, article):
    return article.author_id == user.uid or user.is_site_admin()


def _load_article(slug, viewer):
    """An article by slug; future ones only for the author and site admins."""
    doc = dao.get_about_article(slug)
    if not doc:
        abort(404, description='Article not found')
    article = AboutArticle.from_dict(doc, doc['id'])
    if not article.is_live() and not _can_manage(viewer, article):
        abort(404, description='Article not found')
    return article


def _load_managed_article(slug):
    user = current_profile()
    article = _load_article(slug, user)
    if not _can_manage(user, article):
        abort(403, description='Only the author can change this article')
    return article


def _require_page(article, page_id):
    for page in dao.get_publication_pages(article.id, collection=ARTICLES):
        if page['id'] == page_id:
            return page
    abort(404, description='Page not found')


def _article_api(article):
    data = article.to_api()
    data.pop('cover_photo_path', None)
    return data


@bp.route('')
@auth_required
def list_articles():
    """Newest first; ?tag= filters by tag."""
    viewer = current_profile()
    tag = (request.args.get('tag') or '').strip().lower() or None
    articles = [AboutArticle.from_dict(d, d['id'])
                for d in dao.list_publications(collection=ARTICLES, tag=tag)]
    visible = [a for a in articles if a.is_live() or _can_manage(viewer, a)]
    return jsonify({'articles': [_article_api(a) for a in visible]})


@bp.route('', methods=['POST'])
@auth_required
def create_article():
    user = current_profile()
    if not perm.can_create(user, 'about'):
        abort(403, description='You are not allowed to write About BAWM articles')
    form = validate_or_400(AboutArticleForm())
    if form.slug.data:
        slug = form.slug.data
        if dao.get_about_article(slug):
            abort(409, description='This link is already taken')
    else:
        slug = dao.unique_slug(ARTICLES, form.title.data)
    article = AboutArticle(
        slug=slug,
        title=form.title.data.strip(),
        description=form.description.data or None,
        author_id=user.uid,
        tags=tag_list(),
        is_published=_published_by(form.publish_date.data),
        publish_date=form.publish_date.data,
    )
    article.id = dao.create_publication(article.to_dict(), collection=ARTICLES)
    logger.info('About article %s created by %s', article.slug, user.uid)
    return jsonify({'article': _article_api(article)}), 201


@bp.route('/<slug>')
@auth_required
def get_article(slug):
    article = _load_article(slug, current_profile())
    author = dao.get_user(article.author_id)
    if author:
        article.author = UserProfile.from_dict(author, author['id']).summary()
    article.pages = [PublicationPage.from_dict(p, p['id']).to_api()
                     for p in dao.get_publication_pages(article.id, collection=ARTICLES)]
    return jsonify({'article': _article_api(article)})


@bp.route('/<slug>/read', methods=['POST'])
@auth_required
def read_article(slug):
    article = _load_article(slug, current_profile())
    dao.increment_counter(ARTICLES, article.id, 'read_count')
    return jsonify({'read_count': article.read_count + 1})


@bp.route('/<slug>', methods=['PATCH'])
@auth_required
def update_article(slug):
    """Sending publish_date also recomputes whether the article is out."""
    article = _load_managed_article(slug)
    form = validate_or_400(AboutArticleUpdateForm())
    updates = {}
    for name in ('title', 'description', 'publish_date'):
        field = getattr(form, name)
        if field.raw_data:
            updates[name] = field.data
    if 'title' in updates and not (updates['title'] or '').strip():
        abort(400, description='Title cannot be empty')
    if 'publish_date' in updates:
        updates['is_published'] = _published_by(updates['publish_date'])
    if form.tags.raw_data:
        updates['tags'] = tag_list()
    if not updates:
        abort(400, description='Nothing to update')
    dao.update_publication(article.id, updates, collection=ARTICLES)
    return jsonify({'article': _article_api(_load_article(slug, current_profile()))})


@bp.route('/<slug>/cover', methods=['POST'])
@auth_required
def upload_cover(slug):
    article = _load_managed_article(slug)
    data, ext = uploaded_file('file', 'image')
    path, url = storage.upload_about_cover(article.id, data, ext)
    if article.cover_photo_path and article.cover_photo_path != path:
        storage.delete_file(article.cover_photo_path)
    dao.update_publication(article.id, {'cover_photo_url': url, 'cover_photo_path': path},
                           collection=ARTICLES)
    return jsonify({'cover_photo_url': url})


@bp.route('/<slug>', methods=['DELETE'])
@auth_required
def delete_article(slug):
    """Delete the article and its pages, then their images."""
    user = current_profile()
    article = _load_managed_article(slug)
    paths = [article.cover_photo_path] if article.cover_photo_path else []
    for page in dao.get_publication_pages(article.id, collection=ARTICLES):
        paths.extend(page.get('image_paths') or [])
    dao.delete_publication(article.id, collection=ARTICLES)
    storage.delete_files(paths)
    logger.info('About article %s deleted by %s', slug, user.uid)
    return jsonify({'success': True})


@bp.route('/<slug>/pages', methods=['POST'])
@auth_required
def add_page(slug):
    """Append a page after the current last one."""
    article = _load_managed_article(slug)
    form = validate_or_400(PublicationPageForm())
    page_id = dao.add_publication_page(article.id, {
        'title': form.title.data.strip(),
        'content': form.content.data,
        'content_type': form.content_type.data,
    }, collection=ARTICLES)
    page = _require_page(article, page_id)
    return jsonify({'page': PublicationPage.from_dict(page, page_id).to_api()}), 201


@bp.route('/<slug>/pages/<page_id>', methods=['PATCH'])
@auth_required
def update_page(slug, page_id):
    article = _load_managed_article(slug)
    _require_page(article, page_id)
    form = validate_or_400(PublicationPageForm())
    dao.update_publication_page(article.id, page_id, {
        'title': form.title.data.strip(),
        'content': form.content.data,
        'content_type': form.content_type.data,
    }, collection=ARTICLES)
    return jsonify({'success': True})


@bp.route('/<slug>/pages/<page_id>/images', methods=['POST'])
@auth_required
def upload_page_images(slug, page_id):
    """Multipart 'images'; appended to the page's image list."""
    article = _load_managed_article(slug)
    page = _require_page(article, page_id)
    files = [f for f in request.files.getlist('images') if f and f.filename]
    if not files:
        abort(400, description='No images uploaded')
    uploads = []
    for f in files:
        try:
            uploads.append(storage.validate_upload(f, 'image'))
        except storage.UploadError as exc:
            abort(400, description=str(exc))
    urls = list(page.get('image_urls') or [])
    paths = list(page.get('image_paths') or [])
    for data, ext in uploads:
        path, url = storage.upload_about_page_image(article.id, page_id, len(paths), data, ext)
        paths.append(path)
        urls.append(url)
    dao.update_publication_page(article.id, page_id, {'image_urls': urls, 'image_paths': paths},
                                collection=ARTICLES)
    return jsonify({'image_urls': urls})


@bp.route('/<slug>/pages/<page_id>', methods=['DELETE'])
@auth_required
def delete_page(slug, page_id):
    article = _load_managed_article(slug)
    page = _require_page(article, page_id)
    dao.delete_publication_page(article.id, page_id, collection=ARTICLES)
    storage.delete_files(page.get('image_paths') or [])
    return jsonify({'success': True})
