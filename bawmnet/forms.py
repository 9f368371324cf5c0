from flask import abort, jsonify, make_response, request
from flask_wtf import FlaskForm
from wtforms import StringField, PasswordField, TextAreaField, SelectField, IntegerField, DecimalField, BooleanField
from wtforms.validators import DataRequired, Email, Length, EqualTo, NumberRange, Regexp, ValidationError, Optional

from bawmnet.firestore_models import (
    _parse_datetime, USER_TYPES, RELATIONSHIP_STATUSES, GENDERS, PRODUCT_CATEGORIES,
)
from bawmnet.services.storage import UploadError, validate_upload


class IsoDateTimeField(StringField):
    """Accepts ISO-8601 strings; ``data`` becomes an aware datetime."""

    def process_formdata(self, valuelist):
        self.data = None
        if valuelist and valuelist[0]:
            self.data = _parse_datetime(valuelist[0])
            if self.data is None:
                raise ValueError('Use an ISO-8601 date and time')

    def _value(self):
        return self.data.isoformat() if self.data else ''


def validate_or_400(form):
    """Validate a submitted form; abort with the field errors otherwise."""
    if not form.validate_on_submit():
        abort(make_response(jsonify(error='invalid input', status=400, fields=form.errors), 400))
    return form


def uploaded_file(name='file', kind='image', max_bytes=None, required=True):
    """Validated upload from request.files as (bytes, extension); None when absent."""
    file = request.files.get(name)
    if file is None or not file.filename:
        if required:
            abort(400, description=f'No {name} uploaded')
        return None
    try:
        return validate_upload(file, kind, max_bytes)
    except UploadError as exc:
        abort(400, description=str(exc))


def json_body():
    """Request JSON object, or {} for other bodies."""
    body = request.get_json(silent=True) if request.is_json else None
    return body if isinstance(body, dict) else {}


def request_value(name, default=None):
    """A single value from a JSON body or form data."""
    if request.is_json:
        return json_body().get(name, default)
    return request.form.get(name, default)


def tag_list(name='tags'):
    """Lower-cased unique tags from a JSON list or comma-separated form values."""
    raw = json_body().get(name) if request.is_json else request.form.getlist(name)
    if isinstance(raw, str):
        raw = [raw]
    tags = []
    for item in raw or []:
        for tag in str(item).split(','):
            tag = tag.strip().lower()
            if tag and tag not in tags:
                tags.append(tag)
    return tags


class ApiForm(FlaskForm):
    """Base form; CSRF is checked once per request by CSRFProtect in create_app."""

    class Meta:
        csrf = False


def _choices(values):
    return [(v, v.replace('_', ' ').title()) for v in values]


SLUG_RULE = Regexp(r'^[a-z0-9][a-z0-9-]{2,49}$', message='3-50 lowercase letters, digits or hyphens')
USERNAME_RULE = Regexp(r'^[A-Za-z0-9_.]{3,20}$', message='3-20 letters, digits, dots or underscores')
VISIBILITY_CHOICES = [('public', 'Public'), ('private', 'Private')]


class RegistrationForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    password = PasswordField('Password', validators=[DataRequired(message='Enter a password'), Length(min=6, message='At least 6 characters')])
    confirm_password = PasswordField('Confirm password', validators=[Optional(), EqualTo('password', message='Passwords do not match')])
    username = StringField('Username', validators=[Optional(), USERNAME_RULE])
    first_name = StringField('First name', validators=[Optional(), Length(max=60)])
    last_name = StringField('Last name', validators=[Optional(), Length(max=60)])


class LoginForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])
    password = PasswordField('Password', validators=[DataRequired(message='Enter your password')])


class ForgotPasswordForm(ApiForm):
    email = StringField('Email', validators=[DataRequired(message='Enter your email'), Email(message='Enter a valid email address')])


class ProfileForm(ApiForm):
    display_name = StringField('Display name', validators=[Optional(), Length(max=80)])
    first_name = StringField('First name', validators=[Optional(), Length(max=60)])
    last_name = StringField('Last name', validators=[Optional(), Length(max=60)])
    bio = TextAreaField('Bio', validators=[Optional(), Length(max=160, message='Bio can be at most 160 characters')])
    hometown = StringField('Hometown', validators=[Optional(), Length(max=100)])
    live_in = StringField('Lives in', validators=[Optional(), Length(max=100)])
    current_study = StringField('Currently studying', validators=[Optional(), Length(max=100)])
    institute_name = StringField('Institute', validators=[Optional(), Length(max=100)])
    dob = StringField('Date of birth', validators=[Optional(), Regexp(r'^\d{4}-\d{2}-\d{2}$', message='Use YYYY-MM-DD')])
    relationship_status = SelectField('Relationship status', choices=_choices(RELATIONSHIP_STATUSES), validators=[Optional()], validate_choice=False)
    gender = SelectField('Gender', choices=_choices(GENDERS), validators=[Optional()], validate_choice=False)

    def validate_relationship_status(self, field):
        if field.data and field.data not in RELATIONSHIP_STATUSES:
            raise ValidationError('Unknown relationship status')

    def validate_gender(self, field):
        if field.data and field.data not in GENDERS:
            raise ValidationError('Unknown gender')


class PostForm(ApiForm):
    text = TextAreaField('Text', validators=[Optional(), Length(max=5000)])
    scheduled_at = IsoDateTimeField('Scheduled at', validators=[Optional()])


class EditPostForm(ApiForm):
    text = TextAreaField('Text', validators=[Optional(), Length(max=5000)])


class CommentForm(ApiForm):
    text = TextAreaField('Comment', validators=[DataRequired(message='Write a comment'), Length(max=2000)])


class PageForm(ApiForm):
    page_id = StringField('Page address', validators=[DataRequired(message='Choose a page address'), SLUG_RULE])
    name = StringField('Name', validators=[DataRequired(message='Enter a name'), Length(min=2, max=100)])
    category = StringField('Category', validators=[DataRequired(message='Choose a category'), Length(max=60)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])


class EntityForm(ApiForm):
    """Groups, events and quizzes."""
    slug = StringField('Address', validators=[DataRequired(message='Choose an address'), SLUG_RULE])
    name = StringField('Name', validators=[DataRequired(message='Enter a name'), Length(min=2, max=100)])
    category = StringField('Category', validators=[DataRequired(message='Choose a category'), Length(max=60)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])
    visibility = SelectField('Visibility', choices=VISIBILITY_CHOICES, default='public')


class EventForm(EntityForm):
    location = StringField('Location', validators=[Optional(), Length(max=200)])
    start_date = IsoDateTimeField('Starts', validators=[DataRequired(message='Enter a start date')])
    end_date = IsoDateTimeField('Ends', validators=[DataRequired(message='Enter an end date')])
    participant_post_limit = IntegerField('Posts per participant', default=5, validators=[Optional(), NumberRange(min=0)])

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data <= self.start_date.data:
            raise ValidationError('End must be after start')


class QuizForm(EntityForm):
    start_date = IsoDateTimeField('Starts', validators=[DataRequired(message='Enter a start date')])
    end_date = IsoDateTimeField('Ends', validators=[DataRequired(message='Enter an end date')])
    attempt_limit = IntegerField('Attempts allowed', default=1, validators=[Optional(), NumberRange(min=0)])
    time_limit_minutes = IntegerField('Time limit (minutes)', default=10, validators=[Optional(), NumberRange(min=0)])

    def validate_end_date(self, field):
        if self.start_date.data and field.data and field.data <= self.start_date.data:
            raise ValidationError('End must be after start')


class EntityUpdateForm(ApiForm):
    name = StringField('Name', validators=[Optional(), Length(min=2, max=100)])
    category = StringField('Category', validators=[Optional(), Length(max=60)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])
    visibility = SelectField('Visibility', choices=VISIBILITY_CHOICES, validators=[Optional()], validate_choice=False)
    location = StringField('Location', validators=[Optional(), Length(max=200)])
    start_date = IsoDateTimeField('Starts', validators=[Optional()])
    end_date = IsoDateTimeField('Ends', validators=[Optional()])
    participant_post_limit = IntegerField('Posts per participant', validators=[Optional(), NumberRange(min=0)])
    attempt_limit = IntegerField('Attempts allowed', validators=[Optional(), NumberRange(min=0)])
    time_limit_minutes = IntegerField('Time limit (minutes)', validators=[Optional(), NumberRange(min=0)])

    def validate_visibility(self, field):
        if field.data and field.data not in ('public', 'private'):
            raise ValidationError('Visibility is public or private')


class ProductForm(ApiForm):
    name = StringField('Product name', validators=[DataRequired(message='Enter a product name'), Length(min=3, max=100, message='3-100 characters')])
    description = TextAreaField('Description', validators=[DataRequired(message='Describe the product'), Length(min=10, max=5000, message='10-5000 characters')])
    price = DecimalField('Price', validators=[DataRequired(message='Enter a price'), NumberRange(min=0.01, message='Price must be greater than 0')])
    category = SelectField('Category', choices=_choices(PRODUCT_CATEGORIES))
    stock = IntegerField('Stock', default=0, validators=[Optional(), NumberRange(min=0, message='Stock cannot be negative')])
    seller_contact = StringField('Seller contact', validators=[DataRequired(message='Enter contact details'), Length(min=10, max=200, message='At least 10 characters')])


class ReviewForm(ApiForm):
    rating = IntegerField('Rating', validators=[DataRequired(message='Give a rating'), NumberRange(min=1, max=5, message='Rating is 1 to 5')])
    comment = TextAreaField('Comment', validators=[Optional(), Length(max=2000)])


class MessageForm(ApiForm):
    text = TextAreaField('Message', validators=[Optional(), Length(max=5000)])


class LyricsForm(ApiForm):
    title = StringField('Title', validators=[DataRequired(message='Enter a title'), Length(max=150)])
    full_lyrics = TextAreaField('Lyrics', validators=[DataRequired(message='Enter the lyrics')])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])
    tags = StringField('Tags', validators=[Optional()])


class LyricsUpdateForm(ApiForm):
    title = StringField('Title', validators=[Optional(), Length(max=150)])
    full_lyrics = TextAreaField('Lyrics', validators=[Optional()])
    description = TextAreaField('Description', validators=[Optional(), Length(max=2000)])
    tags = StringField('Tags', validators=[Optional()])


class PublicationForm(ApiForm):
    book_id = StringField('Book address', validators=[DataRequired(message='Choose a book address'), SLUG_RULE])
    title = StringField('Title', validators=[DataRequired(message='Enter a title'), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    tags = StringField('Tags', validators=[Optional()])
    is_published = BooleanField('Publish now')
    publish_date = IsoDateTimeField('Publish on', validators=[Optional()])


class PublicationUpdateForm(ApiForm):
    title = StringField('Title', validators=[Optional(), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    tags = StringField('Tags', validators=[Optional()])
    is_published = BooleanField('Publish now')
    publish_date = IsoDateTimeField('Publish on', validators=[Optional()])


class PublicationPageForm(ApiForm):
    title = StringField('Title', validators=[DataRequired(message='Enter a title'), Length(max=200)])
    content = TextAreaField('Content', validators=[DataRequired(message='Write the page content')])
    content_type = SelectField('Content type', choices=[('paragraph', 'Paragraph'), ('code', 'Code')], default='paragraph')


class VideoForm(ApiForm):
    title = StringField('Title', validators=[DataRequired(message='Enter a title'), Length(min=5, max=150, message='5-150 characters')])
    slug = StringField('Link', validators=[Optional(), SLUG_RULE])
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    tags = StringField('Tags', validators=[Optional()])
    scheduled_time = IsoDateTimeField('Release at', validators=[Optional()])


class VideoUpdateForm(ApiForm):
    title = StringField('Title', validators=[Optional(), Length(min=5, max=150, message='5-150 characters')])
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    tags = StringField('Tags', validators=[Optional()])
    scheduled_time = IsoDateTimeField('Release at', validators=[Optional()])


class AboutArticleForm(ApiForm):
    title = StringField('Title', validators=[DataRequired(message='Enter a title'), Length(max=200)])
    slug = StringField('Link', validators=[Optional(), SLUG_RULE])
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    tags = StringField('Tags', validators=[Optional()])
    publish_date = IsoDateTimeField('Publish on', validators=[Optional()])


class AboutArticleUpdateForm(ApiForm):
    title = StringField('Title', validators=[Optional(), Length(max=200)])
    description = TextAreaField('Description', validators=[Optional(), Length(max=5000)])
    tags = StringField('Tags', validators=[Optional()])
    publish_date = IsoDateTimeField('Publish on', validators=[Optional()])


class UserTypeForm(ApiForm):
    user_type = SelectField('User type', choices=_choices(USER_TYPES))
