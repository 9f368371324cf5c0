import logging

from flask import Blueprint, jsonify, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import Publication, PublicationPage, UserProfile
from bawmnet.forms import (PublicationForm, PublicationUpdateForm, PublicationPageForm,
                           validate_or_400, uploaded_file, tag_list)
from bawmnet.services import storage

logger = logging.getLogger(__name__)

bp = Blueprint('books', __name__, url_prefix='/books')


def _can_manage(user, book):
    return book.author_id == user.uid or user.is_site_admin()


def _load_book(book_id, viewer):
    """A publication by book_id; unpublished ones only for the author and site admins."""
    doc = dao.get_publication_by_book_id(book_id)
    if not doc:
        abort(404, description='Book not found')
    book = Publication.from_dict(doc, doc['id'])
    if not book.is_live() and not _can_manage(viewer, book):
        abort(404, description='Book not found')
    return book


def _require_page(book, page_id):
    if page_id not in {p['id'] for p in dao.get_publication_pages(book.id)}:
        abort(404, description='Page not found')


def _load_managed_book(book_id):
    user = current_profile()
    book = _load_book(book_id, user)
    if not _can_manage(user, book):
        abort(403, description='Only the author can change this book')
    return book


@bp.route('')
@auth_required
def list_books():
    viewer = current_profile()
    books = [Publication.from_dict(d, d['id']) for d in dao.list_publications()]
    visible = [b for b in books if b.is_live() or _can_manage(viewer, b)]
    return jsonify({'books': [b.to_api() for b in visible]})


@bp.route('', methods=['POST'])
@auth_required
def create_book():
    user = current_profile()
    if not perm.can_create(user, 'book'):
        abort(403, description='You are not allowed to publish books')
    form = validate_or_400(PublicationForm())
    if dao.get_publication_by_book_id(form.book_id.data):
        abort(409, description='This book address is taken')
    book = Publication(
        book_id=form.book_id.data,
        title=form.title.data.strip(),
        description=form.description.data or None,
        author_id=user.uid,
        tags=tag_list(),
        is_published=bool(form.is_published.data),
        publish_date=form.publish_date.data,
    )
    book.id = dao.create_publication(book.to_dict())
    logger.info('Book %s created by %s', book.book_id, user.uid)
    return jsonify({'book': book.to_api()}), 201


@bp.route('/<book_id>')
@auth_required
def get_book(book_id):
    book = _load_book(book_id, current_profile())
    author = dao.get_user(book.author_id)
    if author:
        book.author = UserProfile.from_dict(author, author['id']).summary()
    book.pages = [PublicationPage.from_dict(p, p['id']).to_api()
                  for p in dao.get_publication_pages(book.id)]
    return jsonify({'book': book.to_api()})


@bp.route('/<book_id>/read', methods=['POST'])
@auth_required
def read_book(book_id):
    book = _load_book(book_id, current_profile())
    dao.increment_counter('publications', book.id, 'read_count')
    return jsonify({'read_count': book.read_count + 1})


@bp.route('/<book_id>', methods=['PATCH'])
@auth_required
def update_book(book_id):
    book = _load_managed_book(book_id)
    form = validate_or_400(PublicationUpdateForm())
    updates = {}
    for name in ('title', 'description', 'is_published', 'publish_date'):
        field = getattr(form, name)
        if field.raw_data:
            updates[name] = field.data
    if form.tags.raw_data:
        updates['tags'] = tag_list()
    if not updates:
        abort(400, description='Nothing to update')
    dao.update_publication(book.id, updates)
    return jsonify({'book': _load_book(book_id, current_profile()).to_api()})


@bp.route('/<book_id>/cover', methods=['POST'])
@auth_required
def upload_cover(book_id):
    book = _load_managed_book(book_id)
    data, ext = uploaded_file('file', 'image')
    _, url = storage.upload_publication_cover(book.id, data, ext)
    dao.update_publication(book.id, {'cover_photo_url': url})
    return jsonify({'cover_photo_url': url})


@bp.route('/<book_id>/pages', methods=['POST'])
@auth_required
def add_page(book_id):
    """Append a page after the current last one."""
    book = _load_managed_book(book_id)
    form = validate_or_400(PublicationPageForm())
    page_id = dao.add_publication_page(book.id, {
        'title': form.title.data.strip(),
        'content': form.content.data,
        'content_type': form.content_type.data,
    })
    pages = {p['id']: p for p in dao.get_publication_pages(book.id)}
    return jsonify({'page': PublicationPage.from_dict(pages[page_id], page_id).to_api()}), 201


@bp.route('/<book_id>/pages/<page_id>', methods=['PATCH'])
@auth_required
def update_page(book_id, page_id):
    book = _load_managed_book(book_id)
    _require_page(book, page_id)
    form = validate_or_400(PublicationPageForm())
    dao.update_publication_page(book.id, page_id, {
        'title': form.title.data.strip(),
        'content': form.content.data,
        'content_type': form.content_type.data,
    })
    return jsonify({'success': True})


@bp.route('/<book_id>/pages/<page_id>', methods=['DELETE'])
@auth_required
def delete_page(book_id, page_id):
    book = _load_managed_book(book_id)
    _require_page(book, page_id)
    dao.delete_publication_page(book.id, page_id)
    return jsonify({'success': True})
