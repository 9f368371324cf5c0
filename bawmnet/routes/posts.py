from flask import Blueprint, jsonify, request, abort
from bawmnet.decorators import auth_required, current_profile
from bawmnet.forms import PostForm, EditPostForm, CommentForm, validate_or_400, request_value
from bawmnet.services import posting

bp = Blueprint('posts', __name__, url_prefix='/posts')


@bp.route('/<post_type>', methods=['POST'])
@auth_required
def create_post(post_type):
    """Text and/or media ('media' files) to a timeline, page, group, event or quiz."""
    form = validate_or_400(PostForm())
    post = posting.create_post(
        current_profile(),
        post_type,
        context_id=request_value('context_id'),
        text=form.text.data,
        files=request.files.getlist('media'),
        scheduled_at=form.scheduled_at.data,
    )
    return jsonify({'post': post.to_api()}), 201


@bp.route('/<post_type>')
@auth_required
def list_posts(post_type):
    """Posts of one context: ?context_id=<uid|page|group|event|quiz id>."""
    context_id = request.args.get('context_id')
    if not context_id:
        abort(400, description='context_id is required')
    posts = posting.context_posts(current_profile(), post_type, context_id,
                                  limit=min(request.args.get('limit', 50, type=int), 200))
    return jsonify({'posts': [p.to_api() for p in posts]})


@bp.route('/<post_type>/<post_id>')
@auth_required
def get_post(post_type, post_id):
    post = posting.get_post(current_profile(), post_type, post_id)
    return jsonify({'post': post.to_api()})


@bp.route('/<post_type>/<post_id>', methods=['PATCH'])
@auth_required
def edit_post(post_type, post_id):
    form = validate_or_400(EditPostForm())
    post = posting.edit_post(current_profile(), post_type, post_id, form.text.data)
    return jsonify({'post': post.to_api()})


@bp.route('/<post_type>/<post_id>', methods=['DELETE'])
@auth_required
def delete_post(post_type, post_id):
    posting.delete_post(current_profile(), post_type, post_id)
    return jsonify({'success': True})


@bp.route('/<post_type>/<post_id>/like', methods=['POST'])
@auth_required
def like_post(post_type, post_id):
    liked, count = posting.like_post(current_profile(), post_type, post_id)
    return jsonify({'liked': liked, 'like_count': count})


@bp.route('/<post_type>/<post_id>/<counter>', methods=['POST'])
@auth_required
def count_post(post_type, post_id, counter):
    if counter not in ('view', 'share'):
        abort(404)
    posting.count_post(current_profile(), post_type, post_id, f'{counter}_count')
    return jsonify({'success': True})


@bp.route('/<post_type>/<post_id>/comments')
@auth_required
def list_comments(post_type, post_id):
    posting.check_post_type(post_type)
    comments = posting.list_comments(current_profile(), post_type, post_id)
    return jsonify({'comments': [c.to_api() for c in comments]})


@bp.route('/<post_type>/<post_id>/comments', methods=['POST'])
@auth_required
def add_comment(post_type, post_id):
    posting.check_post_type(post_type)
    form = validate_or_400(CommentForm())
    comment = posting.add_comment(current_profile(), post_type, post_id, form.text.data)
    return jsonify({'comment': comment.to_api()}), 201
