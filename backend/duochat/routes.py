# All API routes are in this one file
from flask import request, jsonify, Blueprint, current_app, send_file
from flask_jwt_extended import jwt_required, current_user
import io
from . import limiter
from .auth import clear_session, credential_store, issue_session
from .delivery import MessageDelivery
from .errors import AuthenticationFailure, NotFound, ValidationFailure
from .realtime import connection_registry, push
from .schemas import LoginRequest, ProfileUpdateRequest, SendMessageRequest, SignupRequest
from .security import check_password, decode_image, hash_password, validate_image_data

# This line creates the 'api' object that __init__.py is looking for
api = Blueprint('api', __name__)

# Thresholds come from config at request time
auth_limit = limiter.shared_limit(
    lambda: current_app.config['RATELIMIT_AUTH'],
    scope='auth',
    error_message='Too many authentication attempts, please try again later.',
)
message_limit = limiter.limit(
    lambda: current_app.config['RATELIMIT_MESSAGES'],
    error_message='Too many messages sent, please slow down.',
)
upload_limit = limiter.limit(
    lambda: current_app.config['RATELIMIT_UPLOADS'],
    exempt_when=lambda: not json_body().get('image'),
    error_message='Too many file uploads, please try again later.',
)


def message_store():
    return current_app.extensions['duochat.messages']()


def message_delivery():
    config = current_app.config
    return MessageDelivery(
        credential_store(),
        message_store(),
        connection_registry(),
        push,
        max_image_bytes=config['MAX_IMAGE_BYTES'],
        allowed_image_types=config['ALLOWED_IMAGE_TYPES'],
        max_text_length=config['MAX_MESSAGE_LENGTH'],
    )


def json_body():
    body = request.get_json(silent=True)
    return body if isinstance(body, dict) else {}


# Basic index and health endpoints for quick checks
@api.route('/', methods=['GET'])
def api_index():
    current_app.logger.debug('GET /api invoked for index')
    return jsonify({
        'name': 'duochat API',
        'version': 1,
        'endpoints': [
            'POST /api/auth/signup',
            'POST /api/auth/login',
            'POST /api/auth/logout',
            'PUT  /api/auth/update-profile',
            'GET  /api/auth/check',
            'GET  /api/messages/contacts',
            'GET  /api/messages/chats',
            'GET  /api/messages/image/<message_id>',
            'GET  /api/messages/<user_id>',
            'POST /api/messages/send/<user_id>',
            'GET  /api/health'
        ]
    }), 200

@api.route('/health', methods=['GET'])
def api_health():
    current_app.logger.debug('GET /api/health invoked')
    return jsonify({'status': 'ok'}), 200

# Auth endpoints
@api.route('/auth/signup', methods=['POST'])
@auth_limit
def signup():
    current_app.logger.debug('POST /api/auth/signup invoked')
    data = SignupRequest.model_validate(json_body())
    store = credential_store()
    if store.find_by_email(data.email):
        raise ValidationFailure('Email already exists')

    password_hash = hash_password(data.password, current_app.config['BCRYPT_COST'])
    user = store.create_user(data.email, data.fullName, password_hash)
    current_app.logger.info(f'New user signed up: id={user.id}')

    response = jsonify(user.to_dict())
    issue_session(response, user)
    return response, 201

@api.route('/auth/login', methods=['POST'])
@auth_limit
def login():
    current_app.logger.debug('POST /api/auth/login invoked')
    data = LoginRequest.model_validate(json_body())
    user = credential_store().find_by_email(data.email)
    # Same answer for an unknown email and a wrong password
    if user is None or not check_password(data.password, user.password_hash):
        raise AuthenticationFailure('Invalid credentials')

    current_app.logger.info(f'User logged in: id={user.id}')
    response = jsonify(user.to_dict())
    issue_session(response, user)
    return response, 200

@api.route('/auth/logout', methods=['POST'])
@auth_limit
def logout():
    current_app.logger.debug('POST /api/auth/logout invoked')
    response = jsonify({'message': 'Logged out successfully'})
    clear_session(response)
    return response, 200

@api.route('/auth/update-profile', methods=['PUT'])
@auth_limit
@jwt_required()
def update_profile():
    current_app.logger.debug(f'PUT /api/auth/update-profile invoked by user {current_user.id}')
    data = ProfileUpdateRequest.model_validate(json_body())
    check = validate_image_data(
        data.profilePic,
        current_app.config['MAX_PROFILE_PIC_BYTES'],
        current_app.config['ALLOWED_IMAGE_TYPES'],
    )
    if not check.valid:
        raise ValidationFailure(check.error)
    if decode_image(check) is None:
        raise ValidationFailure('Invalid image data')

    user = credential_store().update_profile_picture(current_user.id, data.profilePic)
    if user is None:
        raise NotFound('User not found')
    return jsonify(user.to_dict()), 200

@api.route('/auth/check', methods=['GET'])
@auth_limit
@jwt_required()
def check_auth():
    current_app.logger.debug(f'GET /api/auth/check invoked by user {current_user.id}')
    return jsonify(current_user.to_dict()), 200

# Message endpoints
@api.route('/messages/contacts', methods=['GET'])
@jwt_required()
def get_contacts():
    current_app.logger.debug(f'GET /api/messages/contacts invoked by user {current_user.id}')
    users = credential_store().list_except(current_user.id)
    return jsonify([user.to_dict() for user in users]), 200

@api.route('/messages/chats', methods=['GET'])
@jwt_required()
def get_chat_partners():
    current_app.logger.debug(f'GET /api/messages/chats invoked by user {current_user.id}')
    store = credential_store()
    partners = []
    for partner_id in message_store().list_distinct_partners(current_user.id):
        user = store.find_by_id(partner_id)
        if user is not None:
            partners.append(user.to_dict())
    return jsonify(partners), 200

@api.route('/messages/image/<int:message_id>', methods=['GET'])
@jwt_required()
def get_message_image(message_id):
    current_app.logger.debug(f'GET /api/messages/image/{message_id} invoked')
    attachment = message_store().find_attachment(message_id)
    # Only the two participants may read an attachment; anyone else sees 404
    if attachment is None or current_user.id not in (attachment.sender_id, attachment.receiver_id):
        current_app.logger.warning(f'Attachment not found for message_id={message_id}')
        raise NotFound('Image not found')
    return send_file(
        io.BytesIO(attachment.data),
        mimetype=attachment.mime_type,
        download_name=attachment.name,
    )

@api.route('/messages/<int:user_id>', methods=['GET'])
@jwt_required()
def get_conversation(user_id):
    current_app.logger.debug(f'GET /api/messages/{user_id} invoked by user {current_user.id}')
    messages = message_store().find_conversation(current_user.id, user_id)
    return jsonify([message.to_dict() for message in messages]), 200

@api.route('/messages/send/<int:user_id>', methods=['POST'])
@message_limit
@upload_limit
@jwt_required()
def send_message(user_id):
    data = SendMessageRequest.model_validate(json_body())
    current_app.logger.debug(
        f'POST /api/messages/send/{user_id} invoked by user {current_user.id}: '
        f'has_text={bool(data.text)}, image_length={len(data.image) if data.image else 0}'
    )
    record = message_delivery().send(current_user.id, user_id, text=data.text, image=data.image)
    return jsonify(record), 201
