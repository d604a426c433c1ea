"""Notification sinks: email (SMTP), chat (Slack) and event publishing."""

from .base import ChatSink, EmailSink, EventSink, NotificationError, NullSink
from .email import EmailNotifier
from .events import EventPublisher
from .slack import SlackNotifier
