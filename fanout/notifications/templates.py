"""Title and message rendering for notifications using Jinja2.

Built-in templates reproduce the product's wording; each can be replaced from
configuration (``notifications.templates``). Rendering is strict: a template
referring to an unknown variable fails instead of producing a blank.
"""

import logging
from typing import Dict, Mapping, Optional

from jinja2 import DictLoader, Environment, StrictUndefined, TemplateError

from .models import NotificationTemplateError

logger = logging.getLogger(__name__)

DEFAULT_TEMPLATES: Dict[str, str] = {
    "content_title": "📢 {{ actor_name }} posted new content",
    "content_message": "Check out their latest post in the PLUG Feed",
    "reminder_title": '🎥 "{{ event_title }}" starts in {{ time_label }}',
    "reminder_message": (
        "{% if link_url %}Click to join the webinar"
        "{% else %}The webinar will stream live in the PLUG Feed{% endif %}"
    ),
}


class TemplateRenderer:
    """Renders notification titles and messages.

    Templates are compiled once per renderer and cached by Jinja2.
    """

    def __init__(self, overrides: Optional[Mapping[str, str]] = None):
        """Initialize the Jinja2 environment.

        Args:
            overrides: Template sources replacing built-ins, keyed by name

        Raises:
            NotificationTemplateError: If an override names an unknown template
                or does not compile
        """
        overrides = dict(overrides or {})
        unknown = sorted(set(overrides) - set(DEFAULT_TEMPLATES))
        if unknown:
            raise NotificationTemplateError(f"Unknown template name(s): {', '.join(unknown)}")

        self.env = Environment(
            loader=DictLoader({**DEFAULT_TEMPLATES, **overrides}),
            autoescape=False,  # plain-text notifications, not HTML
            undefined=StrictUndefined,
            keep_trailing_newline=False,
        )

        try:
            for name in DEFAULT_TEMPLATES:
                self.env.get_template(name)
        except TemplateError as e:
            raise NotificationTemplateError(f"Invalid notification template: {e}") from e

        if overrides:
            logger.debug(f"Using template overrides: {', '.join(sorted(overrides))}")

    def render_pair(self, kind: str, context: Mapping) -> Dict[str, str]:
        """Render the title and message templates of one notification kind.

        Args:
            kind: "content" or "reminder"
            context: Template variables

        Returns:
            Dictionary with single-line ``title`` and ``message``

        Raises:
            NotificationTemplateError: If rendering fails
        """
        try:
            title = self.env.get_template(f"{kind}_title").render(context)
            message = self.env.get_template(f"{kind}_message").render(context)
        except TemplateError as e:
            raise NotificationTemplateError(f"Failed to render {kind} notification: {e}") from e

        return {
            "title": " ".join(title.split()),
            "message": message.strip(),
        }
