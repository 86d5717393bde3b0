# Message delivery: validate, persist, then fan out to live connections
import logging
from .errors import NotFound, ValidationFailure
from .security import (
    DEFAULT_ALLOWED_IMAGE_TYPES,
    DEFAULT_MAX_IMAGE_BYTES,
    DEFAULT_MAX_MESSAGE_LENGTH,
    attachment_name,
    decode_image,
    sanitize_message_text,
    validate_image_data,
)

logger = logging.getLogger(__name__)

NEW_MESSAGE_EVENT = 'newMessage'


class MessageDelivery:
    def __init__(self, credentials, messages, registry, push,
                 max_image_bytes=DEFAULT_MAX_IMAGE_BYTES,
                 allowed_image_types=DEFAULT_ALLOWED_IMAGE_TYPES,
                 max_text_length=DEFAULT_MAX_MESSAGE_LENGTH):
        self.credentials = credentials
        self.messages = messages
        self.registry = registry
        self.push = push
        self.max_image_bytes = max_image_bytes
        self.allowed_image_types = allowed_image_types
        self.max_text_length = max_text_length

    def send(self, sender_id, receiver_id, text=None, image=None) -> dict:
        """Send one message from an already authenticated sender.

        Returns the stored record. Raises ``ValidationFailure`` or
        ``NotFound`` before anything is written; once the store accepts the
        message, push problems no longer affect the result.
        """
        if not text and not image:
            raise ValidationFailure('Text or image is required.')
        if str(sender_id) == str(receiver_id):
            raise ValidationFailure('Cannot send messages to yourself.')
        if not self.credentials.exists(receiver_id):
            raise NotFound('Receiver not found.')

        clean_text = sanitize_message_text(text, self.max_text_length) if text else None
        if not clean_text and not image:
            raise ValidationFailure('Text or image is required.')

        image_bytes = image_name = image_mime = None
        if image:
            check = validate_image_data(image, self.max_image_bytes, self.allowed_image_types)
            if not check.valid:
                raise ValidationFailure(check.error)
            image_bytes = decode_image(check)
            if image_bytes is None:
                raise ValidationFailure('Invalid image data')
            image_mime = check.mime_type
            image_name = attachment_name(image_mime)
            logger.debug(f'Attachment prepared: name={image_name}, size={len(image_bytes)}')

        message = self.messages.create_message(
            sender_id,
            receiver_id,
            text=clean_text or None,
            image_bytes=image_bytes,
            image_name=image_name,
            image_mime=image_mime,
        )
        record = message.to_dict()
        self.fan_out(sender_id, receiver_id, record)
        return record

    def fan_out(self, sender_id, receiver_id, record):
        """Push ``record`` to every receiver connection and echo it to the sender's.

        Returns the number of pushes attempted. A sender handle that was
        already pushed to as a receiver handle is skipped.
        """
        delivered = set()
        receiver_handles = self.registry.lookup(receiver_id)
        for handle in receiver_handles:
            self._push(handle, record)
            delivered.add(handle)
        if not receiver_handles:
            logger.debug(f'Receiver {receiver_id} not online; message {record.get("id")} stored only')

        for handle in self.registry.lookup(sender_id):
            if handle in delivered:
                continue
            self._push(handle, record)
            delivered.add(handle)
        return len(delivered)

    def _push(self, handle, record):
        try:
            self.push(handle, NEW_MESSAGE_EVENT, record)
        except Exception:
            # The message is already stored; a dead connection only loses the push
            logger.exception(f'Push to connection {handle} failed')
