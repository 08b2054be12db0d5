"""Wizard <-> dashboard cross-launch URLs.

The context travels in the query string under the keys ``action``,
``profile``, ``service``, ``returnUrl`` and ``currentState``. Values are
encoded exactly once; ``currentState`` is compact JSON.
"""

import json
import logging
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit

from kaspa_aio.config import Settings, settings
from kaspa_aio.models.navigation import NavigationAction, NavigationContext

logger = logging.getLogger(__name__)

CONTEXT_KEYS = ("action", "profile", "service", "returnUrl", "currentState")


class NavigationContextCodec:
    def __init__(self, config: Settings = settings) -> None:
        self.wizard_base = f"http://{config.wizard_host}:{config.wizard_port}"
        self.dashboard_base = f"http://{config.dashboard_host}:{config.dashboard_port}"
        self.max_state_chars = config.navigation_state_max_chars

    # ------------------------------------------------------------------
    # Encode / decode
    # ------------------------------------------------------------------

    def encode(self, context: NavigationContext | None) -> str:
        """Query string for *context* (without the leading ``?``)."""
        if context is None:
            return ""

        params = []
        if context.action is not None:
            params.append(("action", NavigationAction(context.action).value))
        if context.profile is not None:
            params.append(("profile", context.profile))
        if context.service is not None:
            params.append(("service", context.service))
        if context.return_url is not None:
            params.append(("returnUrl", context.return_url))
        if context.current_state is not None:
            snapshot = self._encode_state(context.current_state)
            if snapshot is not None:
                params.append(("currentState", snapshot))
        return urlencode(params)

    def _encode_state(self, state) -> str | None:
        try:
            text = json.dumps(state, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            logger.warning("Failed to serialize current state for URL: %s", e)
            return None
        if len(text) >= self.max_state_chars:
            logger.warning(
                "Current state too large for URL (%d chars, limit %d), skipping",
                len(text), self.max_state_chars,
            )
            return None
        return text

    def decode(self, url: str) -> NavigationContext | None:
        """Parse the context out of *url*; ``None`` when it carries none.

        *url* may be a full URL or a bare query string as returned by
        ``encode``. Unknown actions are dropped and an undecodable snapshot
        is skipped, the rest of the context is still returned.
        """
        parts = urlsplit(url)
        if "?" in url or parts.scheme or parts.netloc:
            query_string = parts.query
        else:
            query_string = url
        query = dict(parse_qsl(query_string, keep_blank_values=True))
        fields = {}

        action = query.get("action")
        if action:
            try:
                fields["action"] = NavigationAction(action)
            except ValueError:
                logger.debug("Ignoring unknown navigation action %r", action)

        for key, field in (("profile", "profile"), ("service", "service"), ("returnUrl", "return_url")):
            if key in query:
                fields[field] = query[key]

        snapshot = query.get("currentState")
        if snapshot:
            try:
                fields["current_state"] = json.loads(snapshot)
            except ValueError as e:
                logger.warning("Failed to parse current state from URL: %s", e)

        if not fields:
            return None
        return NavigationContext(**fields)

    # ------------------------------------------------------------------
    # URL helpers
    # ------------------------------------------------------------------

    def wizard_url(self, context: NavigationContext | None = None) -> str:
        query = self.encode(context)
        return f"{self.wizard_base}?{query}" if query else self.wizard_base

    def dashboard_url(self) -> str:
        return self.dashboard_base

    def url_for_action(self, action: NavigationAction, **fields) -> str:
        return self.wizard_url(NavigationContext(action=action, **fields))

    def add_profile_url(self, profile: str) -> str:
        return self.url_for_action(NavigationAction.ADD, profile=profile, return_url=self.dashboard_url())

    def modify_profile_url(self, profile: str) -> str:
        return self.url_for_action(NavigationAction.MODIFY, profile=profile, return_url=self.dashboard_url())

    def remove_profile_url(self, profile: str) -> str:
        return self.url_for_action(NavigationAction.REMOVE, profile=profile, return_url=self.dashboard_url())

    def reconfigure_url(self) -> str:
        return self.url_for_action(NavigationAction.MODIFY, return_url=self.dashboard_url())

    def has_context(self, url: str) -> bool:
        return self.decode(url) is not None

    @staticmethod
    def strip_context(url: str) -> str:
        """*url* with the context keys removed, other query parameters kept."""
        parts = urlsplit(url)
        kept = [(k, v) for k, v in parse_qsl(parts.query, keep_blank_values=True) if k not in CONTEXT_KEYS]
        return urlunsplit(parts._replace(query=urlencode(kept)))
