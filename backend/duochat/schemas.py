# Request bodies, validated with pydantic
from typing import Optional
from pydantic import BaseModel, ValidationError, field_validator, model_validator
from .security import sanitize_email, sanitize_input, validate_full_name, validate_password


class SignupRequest(BaseModel):
    fullName: str
    email: str
    password: str

    @field_validator('fullName')
    @classmethod
    def clean_full_name(cls, value):
        value = sanitize_input(value)
        ok, error = validate_full_name(value)
        if not ok:
            raise ValueError(error)
        return value

    @field_validator('email')
    @classmethod
    def clean_email(cls, value):
        email = sanitize_email(value)
        if email is None:
            raise ValueError('Please provide a valid email address')
        return email

    @field_validator('password')
    @classmethod
    def strong_password(cls, value):
        ok, error = validate_password(value)
        if not ok:
            raise ValueError(error)
        return value


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator('email')
    @classmethod
    def clean_email(cls, value):
        email = sanitize_email(value)
        if email is None:
            raise ValueError('Please provide a valid email address')
        return email

    @field_validator('password')
    @classmethod
    def present(cls, value):
        if not value:
            raise ValueError('Password is required')
        return value


class ProfileUpdateRequest(BaseModel):
    profilePic: str

    @field_validator('profilePic')
    @classmethod
    def looks_like_image(cls, value):
        if not value:
            raise ValueError('Profile pic is required')
        if not value.startswith('data:image/'):
            raise ValueError('Invalid image format')
        return value


class SendMessageRequest(BaseModel):
    # Length is not limited here; long text is truncated during delivery
    text: Optional[str] = None
    image: Optional[str] = None

    @field_validator('image')
    @classmethod
    def looks_like_image(cls, value):
        if value and not value.startswith('data:image/'):
            raise ValueError('Invalid image format')
        return value

    @model_validator(mode='after')
    def text_or_image(self):
        if not self.text and not self.image:
            raise ValueError('Either text or image is required')
        return self


def field_errors(error: ValidationError):
    """Flatten a pydantic error into ``[{'field': ..., 'message': ...}]``."""
    errors = []
    for item in error.errors():
        field = '.'.join(str(part) for part in item.get('loc', ())) or 'body'
        message = item.get('msg', 'Invalid value')
        # pydantic prefixes messages from our own ValueErrors
        if message.startswith('Value error, '):
            message = message[len('Value error, '):]
        errors.append({'field': field, 'message': message})
    return errors
