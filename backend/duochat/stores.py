# Persistence layer over an injected SQLAlchemy session
import logging
from collections import namedtuple
from sqlalchemy import and_, case, or_, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from .errors import StoreFailure, ValidationFailure
from .models import Message, User

logger = logging.getLogger(__name__)

Attachment = namedtuple('Attachment', ['data', 'mime_type', 'name', 'sender_id', 'receiver_id'])


def _as_id(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class _Store:
    def __init__(self, session):
        self.session = session

    def _commit(self, action):
        try:
            self.session.commit()
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception(f'{action} failed')
            raise StoreFailure(str(e)) from e


class CredentialStore(_Store):
    def create_user(self, email: str, full_name: str, password_hash: str) -> User:
        user = User(email=email, full_name=full_name, password_hash=password_hash)
        self.session.add(user)
        try:
            self.session.commit()
        except IntegrityError as e:
            # Unique constraint on users.email
            self.session.rollback()
            logger.debug(f'create_user rejected duplicate email: {email}')
            raise ValidationFailure('Email already exists') from e
        except SQLAlchemyError as e:
            self.session.rollback()
            logger.exception('create_user failed')
            raise StoreFailure(str(e)) from e
        logger.debug(f'Created user id={user.id}')
        return user

    def find_by_email(self, email: str):
        return self.session.execute(
            select(User).where(User.email == email)
        ).scalar_one_or_none()

    def find_by_id(self, user_id):
        uid = _as_id(user_id)
        return self.session.get(User, uid) if uid is not None else None

    def exists(self, user_id) -> bool:
        if _as_id(user_id) is None:
            return False
        return self.session.execute(
            select(User.id).where(User.id == int(user_id))
        ).first() is not None

    def list_except(self, user_id):
        return list(self.session.execute(
            select(User).where(User.id != int(user_id)).order_by(User.full_name, User.id)
        ).scalars())

    def update_profile_picture(self, user_id, data: str):
        user = self.find_by_id(user_id)
        if user is None:
            return None
        user.profile_pic = data
        self._commit('update_profile_picture')
        logger.debug(f'Updated profile picture for user id={user.id}')
        return user


class MessageStore(_Store):
    def create_message(self, sender_id, receiver_id, text=None, image_bytes=None,
                       image_name=None, image_mime=None) -> Message:
        message = Message(
            sender_id=int(sender_id),
            receiver_id=int(receiver_id),
            text=text,
            image=image_bytes,
            image_name=image_name,
            image_type=image_mime,
        )
        self.session.add(message)
        self._commit('create_message')
        logger.debug(f'Stored message id={message.id} {message.sender_id}->{message.receiver_id}')
        return message

    def find_conversation(self, user_a, user_b):
        """Messages exchanged between the two users, oldest first."""
        a, b = int(user_a), int(user_b)
        query = (
            select(Message)
            .where(or_(
                and_(Message.sender_id == a, Message.receiver_id == b),
                and_(Message.sender_id == b, Message.receiver_id == a),
            ))
            .order_by(Message.created_at.asc(), Message.id.asc())
        )
        return list(self.session.execute(query).scalars())

    def find_attachment(self, message_id):
        row = self.session.execute(
            select(Message.image, Message.image_type, Message.image_name,
                   Message.sender_id, Message.receiver_id)
            .where(Message.id == int(message_id))
        ).first()
        if row is None or row.image is None:
            return None
        return Attachment(row.image, row.image_type or 'image/jpeg', row.image_name,
                          row.sender_id, row.receiver_id)

    def list_distinct_partners(self, user_id):
        uid = int(user_id)
        partner = case((Message.sender_id == uid, Message.receiver_id), else_=Message.sender_id)
        rows = self.session.execute(
            select(partner.label('partner_id'))
            .where(or_(Message.sender_id == uid, Message.receiver_id == uid))
            .distinct()
        )
        return sorted(row.partner_id for row in rows)
