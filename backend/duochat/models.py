# Database models (User, Message)
from datetime import datetime, timezone
from . import db


def _utcnow():
    return datetime.now(timezone.utc)


def _iso(value):
    return value.isoformat() if value else None


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    full_name = db.Column(db.String(255), nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    profile_pic = db.Column(db.Text, nullable=False, default='')
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        """Public representation; the password hash never leaves the model."""
        return {
            '_id': self.id,
            'id': self.id,
            'email': self.email,
            'fullName': self.full_name,
            'profilePic': self.profile_pic,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }

    def __repr__(self):
        return f'<User {self.id} {self.email}>'


class Message(db.Model):
    __tablename__ = 'messages'
    __table_args__ = (
        db.Index('idx_messages_sender_receiver', 'sender_id', 'receiver_id'),
        db.Index('idx_messages_created_at', 'created_at'),
    )

    id = db.Column(db.Integer, primary_key=True)
    sender_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    receiver_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='CASCADE'), nullable=False)
    text = db.Column(db.Text, nullable=True)
    image = db.Column(db.LargeBinary, nullable=True)
    image_name = db.Column(db.String(255), nullable=True)
    image_type = db.Column(db.String(100), nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=_utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=_utcnow, onupdate=_utcnow)

    def to_dict(self):
        # Attachment bytes are served separately; the record only points at them
        data = {
            '_id': self.id,
            'id': self.id,
            'senderId': self.sender_id,
            'receiverId': self.receiver_id,
            'text': self.text,
            'createdAt': _iso(self.created_at),
            'updatedAt': _iso(self.updated_at),
        }
        if self.image_name:
            data['image'] = f'/api/messages/image/{self.id}'
        return data

    def __repr__(self):
        return f'<Message {self.id} {self.sender_id}->{self.receiver_id}>'
