# Password hashing, input sanitization, image validation

from Crypto.Protocol.KDF import bcrypt, bcrypt_check
from Crypto.Hash import SHA256
from base64 import b64decode, b64encode
from collections import namedtuple
import binascii
import logging
import re
import uuid

logger = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_ALLOWED_IMAGE_TYPES = frozenset({'image/jpeg', 'image/png', 'image/gif', 'image/webp'})
DEFAULT_MAX_MESSAGE_LENGTH = 2000

# --- Password hashing (bcrypt) ---

def _prehash(password: str) -> bytes:
    # bcrypt only reads 72 bytes and rejects NUL, so feed it a fixed-size digest
    return b64encode(SHA256.new(password.encode('utf-8')).digest())

def hash_password(password: str, cost: int = 10) -> str:
    hashed = bcrypt(_prehash(password), cost)
    logger.debug(f'Hashed password with bcrypt cost={cost}')
    return hashed.decode('ascii')

def check_password(password: str, password_hash: str) -> bool:
    if not isinstance(password, str) or not password_hash:
        return False
    try:
        bcrypt_check(_prehash(password), password_hash.encode('ascii'))
        return True
    except ValueError:
        logger.debug('Password check failed')
        return False

# --- Text sanitization ---

HTML_TAGS = re.compile(r'<[^>]*>')
SCRIPT_BLOCKS = re.compile(r'<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>', re.IGNORECASE)
EVENT_HANDLERS = (
    'abort', 'animationend', 'animationstart', 'beforeunload', 'blur', 'change',
    'click', 'contextmenu', 'dblclick', 'drag', 'drop', 'error', 'focus',
    'focusin', 'hashchange', 'input', 'keydown', 'keypress', 'keyup', 'load',
    'message', 'mousedown', 'mouseenter', 'mouseleave', 'mousemove', 'mouseout',
    'mouseover', 'mouseup', 'paste', 'pointerdown', 'pointerover', 'resize',
    'scroll', 'select', 'submit', 'toggle', 'transitionend', 'unload', 'wheel',
)
XSS_PATTERNS = re.compile(
    r'(javascript:|vbscript:|\bon(?:' + '|'.join(EVENT_HANDLERS) + r')\s*=)', re.IGNORECASE
)
SQL_KEYWORDS = re.compile(
    r'\b(SELECT|INSERT|UPDATE|DELETE|DROP|CREATE|ALTER|EXEC|UNION|SCRIPT)\b', re.IGNORECASE
)

def sanitize_input(value):
    """Strip markup and XSS triggers from short free-form fields (names).

    Non-string input is returned unchanged.
    """
    if not isinstance(value, str):
        return value
    value = SCRIPT_BLOCKS.sub('', value)
    value = HTML_TAGS.sub('', value)
    value = XSS_PATTERNS.sub('', value)
    return value.strip()

def sanitize_message_text(value, max_length: int = DEFAULT_MAX_MESSAGE_LENGTH):
    """Sanitize a message body and cap it at ``max_length`` characters.

    Removes script blocks, remaining HTML tags, XSS triggers and SQL keywords,
    then trims and truncates. Empty or non-string input is returned unchanged.
    """
    if not value or not isinstance(value, str):
        return value
    value = SCRIPT_BLOCKS.sub('', value)
    value = HTML_TAGS.sub('', value)
    value = XSS_PATTERNS.sub('', value)
    value = SQL_KEYWORDS.sub('', value)
    return value.strip()[:max_length]

EMAIL_PATTERN = re.compile(r'^[^\s@]+@[^\s@]+\.[^\s@]+$')

def sanitize_email(value):
    """Lower-case and trim an email; None when it does not look like one."""
    if not value or not isinstance(value, str):
        return None
    email = value.strip().lower()
    return email if EMAIL_PATTERN.match(email) else None

# --- Account fields ---

PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_LENGTH = 128

def validate_password(password):
    """Return (ok, error message)."""
    if not password or not isinstance(password, str):
        return False, 'Password is required'
    if len(password) < PASSWORD_MIN_LENGTH:
        return False, f'Password must be at least {PASSWORD_MIN_LENGTH} characters long'
    if len(password) > PASSWORD_MAX_LENGTH:
        return False, 'Password is too long'
    if not re.search(r'[a-z]', password):
        return False, 'Password must contain at least one lowercase letter'
    if not re.search(r'[A-Z]', password):
        return False, 'Password must contain at least one uppercase letter'
    if not re.search(r'\d', password):
        return False, 'Password must contain at least one number'
    return True, None

FULL_NAME_PATTERN = re.compile(r'^[^\W\d_]+(?:\s+[^\W\d_]+)*$')

def validate_full_name(name):
    if not isinstance(name, str) or not 2 <= len(name) <= 50:
        return False, 'Full name must be between 2 and 50 characters'
    if not FULL_NAME_PATTERN.match(name):
        return False, 'Full name can only contain letters and spaces'
    return True, None

# --- Inline images ---

ImageValidation = namedtuple(
    'ImageValidation', ['valid', 'error', 'mime_type', 'size_in_bytes', 'base64_data']
)

DATA_URI_PATTERN = re.compile(r'^data:([A-Za-z+/-]+);base64,(.+)$')

def _invalid(error):
    return ImageValidation(False, error, None, None, None)

def decoded_size(base64_data: str) -> int:
    """Exact decoded length of a padded base64 string."""
    padding = len(base64_data) - len(base64_data.rstrip('='))
    return len(base64_data) * 3 // 4 - min(padding, 2)

def validate_image_data(value, max_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
                        allowed_types=DEFAULT_ALLOWED_IMAGE_TYPES) -> ImageValidation:
    """Check a ``data:<mime>;base64,<payload>`` string.

    Never raises; a failure is reported through ``valid``/``error``.
    """
    if not value or not isinstance(value, str):
        return _invalid('Invalid image data')
    match = DATA_URI_PATTERN.match(value)
    if not match:
        return _invalid('Invalid image format')
    mime_type, base64_data = match.group(1), match.group(2)
    # Unpadded payloads are accepted; restore the padding b64decode expects
    base64_data += '=' * (-len(base64_data) % 4)
    if mime_type not in allowed_types:
        return _invalid('Image type not allowed')
    size = decoded_size(base64_data)
    if size > max_bytes:
        return _invalid('Image size too large')
    logger.debug(f'Image validated: mime={mime_type}, size={size}')
    return ImageValidation(True, None, mime_type, size, base64_data)

def decode_image(validation: ImageValidation):
    """Decode a validated payload; None when the base64 itself is malformed."""
    try:
        return b64decode(validation.base64_data, validate=True)
    except (binascii.Error, ValueError):
        logger.debug('Image payload is not valid base64')
        return None

def attachment_name(mime_type: str) -> str:
    extension = mime_type.split('/', 1)[1]
    return f'image_{uuid.uuid4().hex}.{extension}'
