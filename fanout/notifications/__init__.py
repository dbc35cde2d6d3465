"""Notification records: wording, construction and the sink interface.

- TemplateRenderer: Jinja2 rendering of titles and messages
- build_content_records / build_reminder_records: one record per recipient
- NotificationSink: append-only store with a delivery-key uniqueness constraint
"""

from .models import NotificationError, NotificationTemplateError, SinkWriteError
from .payloads import build_content_records, build_reminder_records, format_offset_label
from .sink import NotificationSink
from .templates import DEFAULT_TEMPLATES, TemplateRenderer

__all__ = [
    "NotificationSink",
    "TemplateRenderer",
    "DEFAULT_TEMPLATES",
    "build_content_records",
    "build_reminder_records",
    "format_offset_label",
    "NotificationError",
    "NotificationTemplateError",
    "SinkWriteError",
]
