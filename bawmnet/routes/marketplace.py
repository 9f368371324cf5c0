import logging

from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet import firestore_dao as dao
from bawmnet import permissions as perm
from bawmnet.firestore_models import Product, Review, UserProfile, PRODUCT_CATEGORIES
from bawmnet.forms import ProductForm, ReviewForm, validate_or_400
from bawmnet.services import storage

logger = logging.getLogger(__name__)

bp = Blueprint('marketplace', __name__, url_prefix='/marketplace')

MAX_PRODUCT_IMAGES = 5


def _load_product(product_id):
    doc = dao.get_product(product_id)
    if not doc:
        abort(404, description='Product not found')
    return Product.from_dict(doc, doc['id'])


def _product_api(product):
    data = product.to_api()
    data.pop('image_paths', None)
    return data


def _reviews(product_id):
    docs = dao.get_reviews(product_id)
    users = dao.get_users_by_ids([d.get('user_id') for d in docs])
    reviews = []
    for d in docs:
        review = Review.from_dict(d, d['id'])
        user_doc = users.get(review.user_id)
        if user_doc:
            review.author = UserProfile.from_dict(user_doc, user_doc['id']).summary()
        reviews.append(review)
    return reviews


def average_rating(reviews):
    if not reviews:
        return 0
    return round(sum(r.rating for r in reviews) / len(reviews), 2)


@bp.route('/products')
@auth_required
def list_products():
    category = request.args.get('category')
    if category and category not in PRODUCT_CATEGORIES:
        abort(400, description='Unknown category')
    products = [Product.from_dict(d, d['id']) for d in dao.list_products(category=category)]
    return jsonify({'products': [_product_api(p) for p in products], 'categories': PRODUCT_CATEGORIES})


@bp.route('/products', methods=['POST'])
@auth_required
def create_product():
    user = current_profile()
    if not perm.can_create(user, 'marketplace'):
        abort(403, description='You are not allowed to sell on the marketplace')
    form = validate_or_400(ProductForm())
    files = [f for f in request.files.getlist('images') if f and f.filename]
    if not 1 <= len(files) <= MAX_PRODUCT_IMAGES:
        abort(400, description=f'Add between 1 and {MAX_PRODUCT_IMAGES} images')
    try:
        uploads = [storage.validate_upload(f, 'image') for f in files]
    except storage.UploadError as exc:
        abort(400, description=str(exc))

    product = Product(
        id=dao.new_product_id(),
        name=form.name.data.strip(),
        description=form.description.data.strip(),
        price=float(form.price.data),
        category=form.category.data,
        stock=form.stock.data or 0,
        seller_id=user.uid,
        seller_contact=form.seller_contact.data.strip(),
    )
    for index, (data, ext) in enumerate(uploads):
        path, url = storage.upload_product_image(product.id, index, data, ext)
        product.image_paths.append(path)
        product.images.append(url)
    dao.create_product(product.id, product.to_dict())
    logger.info('Product %s listed by %s', product.id, user.uid)
    return jsonify({'product': _product_api(product)}), 201


@bp.route('/products/<product_id>')
@auth_required
def get_product(product_id):
    product = _load_product(product_id)
    reviews = _reviews(product_id)
    data = _product_api(product)
    seller = dao.get_user(product.seller_id)
    data['seller'] = UserProfile.from_dict(seller, seller['id']).summary() if seller else None
    data['reviews'] = [r.to_api() for r in reviews]
    data['average_rating'] = average_rating(reviews)
    return jsonify({'product': data})


@bp.route('/products/<product_id>', methods=['DELETE'])
@auth_required
def delete_product(product_id):
    user = current_profile()
    product = _load_product(product_id)
    if not (product.seller_id == user.uid or user.is_site_admin()):
        abort(403, description='Only the seller can delete this product')
    dao.delete_product(product_id)
    storage.delete_files(product.image_paths)
    logger.info('Product %s deleted by %s', product_id, user.uid)
    return jsonify({'success': True})


@bp.route('/products/<product_id>/reviews')
@auth_required
def list_reviews(product_id):
    _load_product(product_id)
    reviews = _reviews(product_id)
    return jsonify({'reviews': [r.to_api() for r in reviews], 'average_rating': average_rating(reviews)})


@bp.route('/products/<product_id>/reviews', methods=['POST'])
@auth_required
def add_review(product_id):
    user = current_profile()
    product = _load_product(product_id)
    if user.is_blocked():
        abort(403, description='Your account cannot review')
    if product.seller_id == user.uid:
        abort(400, description='You cannot review your own product')
    form = validate_or_400(ReviewForm())
    if dao.get_review(product_id, user.uid):
        abort(409, description='You already reviewed this product')
    review = Review(product_id=product_id, user_id=user.uid, rating=form.rating.data,
                    comment=(form.comment.data or '').strip())
    review.id = dao.create_review(product_id, user.uid, review.to_dict())
    review.author = user.summary()
    return jsonify({'review': review.to_api()}), 201
