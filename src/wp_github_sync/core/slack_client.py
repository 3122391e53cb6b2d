import json
import logging
import threading
import time
import traceback
from typing import Any

import requests

from .errors import RemoteAPIError
from .retry import DEFAULT_DELAY, DEFAULT_RETRIES, retry_call

logger = logging.getLogger(__name__)

SLACK_API_URL = "https://slack.com/api"
ERROR_THREAD_WINDOW_SECONDS = 60 * 60


class SlackClient:
    """Minimal Slack Web API client used for sync notifications.

    Without a token every call is logged and skipped, so a deployment
    without Slack still syncs.
    """

    def __init__(
        self,
        token: str | None,
        api_url: str = SLACK_API_URL,
        retries: int = DEFAULT_RETRIES,
        delay: float = DEFAULT_DELAY,
    ):
        self.token = token
        self.api_url = api_url.rstrip("/")
        self.retries = retries
        self.delay = delay
        self._thread_local = threading.local()

    @property
    def enabled(self) -> bool:
        return bool(self.token)

    def _get_session(self) -> requests.Session:
        if not hasattr(self._thread_local, "session"):
            session = requests.Session()
            session.headers.update(
                {
                    "Authorization": f"Bearer {self.token}",
                    "Content-Type": "application/json;charset=utf-8",
                }
            )
            self._thread_local.session = session
        return self._thread_local.session

    def _send(self, method: str, url: str, **kwargs: Any) -> dict[str, Any]:
        response = self._get_session().request(
            method, url, timeout=(10, 30), **kwargs
        )
        if response.status_code >= 400:
            raise RemoteAPIError(response.status_code, url, response.text)
        data = response.json()
        if not data.get("ok", False):
            logger.warning("Slack %s failed: %s", url, data.get("error"))
        return data

    def _call(
        self, method: str, api_method: str, **kwargs: Any
    ) -> dict[str, Any] | None:
        if not self.enabled:
            logger.info("Slack disabled, skipping %s", api_method)
            return None
        return retry_call(
            self._send,
            method,
            f"{self.api_url}/{api_method}",
            retries=self.retries,
            delay=self.delay,
            **kwargs,
        )

    def chat_post(self, channel: str, text: str) -> dict[str, Any] | None:
        """Post a message; returns the Slack response (``ts`` included)."""
        return self._call(
            "POST", "chat.postMessage", json={"channel": channel, "text": text}
        )

    def reply_post(
        self, channel: str, thread_ts: str, text: str
    ) -> dict[str, Any] | None:
        return self._call(
            "POST",
            "chat.postMessage",
            json={"channel": channel, "text": text, "thread_ts": thread_ts},
        )

    def reaction_add(
        self, channel: str, timestamp: str, name: str
    ) -> dict[str, Any] | None:
        return self._call(
            "POST",
            "reactions.add",
            json={"channel": channel, "timestamp": timestamp, "name": name},
        )

    def channel_history(self, channel: str) -> list[dict[str, Any]]:
        data = self._call(
            "GET", "conversations.history", params={"channel": channel}
        )
        return (data or {}).get("messages", [])

    def report_error(
        self,
        channel: str,
        title: str,
        exc: BaseException,
        data: Any = None,
    ) -> dict[str, Any] | None:
        """Post an error report to *channel*.

        If a report with the same title was posted or replied to within
        the last hour, the new report goes into that thread instead.
        """
        stack = "".join(
            traceback.format_exception(type(exc), exc, exc.__traceback__)
        )
        text = f"{title}\n*Error Stack*\n```{stack}```"
        if data is not None:
            text += (
                f"\n\n*Data*\n```{json.dumps(data, indent=2, default=str)}```"
            )

        if not self.enabled:
            logger.error("%s", text)
            return None

        now = time.time()
        for message in self.channel_history(channel):
            last = float(message.get("latest_reply") or message.get("ts") or 0)
            if (
                message.get("text", "").startswith(f"{title}\n")
                and now - last < ERROR_THREAD_WINDOW_SECONDS
            ):
                return self.reply_post(channel, message["ts"], text)

        return self.chat_post(channel, text)
