"""Toast notifications and busy-state feedback for page scripts.

The page is modelled by :class:`Page`; timers run on the asyncio event loop,
so :meth:`Notifier.show` must be called while a loop is running (or with an
explicit ``loop``). At most one notification is on the page at a time.
"""

from __future__ import annotations

import asyncio
import html
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Literal, Mapping

import httpx
from pydantic import BaseModel, ConfigDict

logger = logging.getLogger("portal.notifications")

Severity = Literal["success", "error", "warning", "info"]
NotificationState = Literal["visible", "fading", "absent"]

DEFAULT_DURATION = 5.0
EXIT_TRANSITION = 0.3

KEYFRAMES_STYLE_ID = "notification-keyframes"
KEYFRAMES_CSS = """
@keyframes slideInNotification {
    from { transform: translateX(100%); opacity: 0; }
    to { transform: translateX(0); opacity: 1; }
}
@keyframes slideOutNotification {
    from { transform: translateX(0); opacity: 1; }
    to { transform: translateX(100%); opacity: 0; }
}
"""

NOTIFICATION_ICONS: dict[str, str] = {
    "success": "check-circle",
    "error": "exclamation-triangle",
    "warning": "exclamation-circle",
    "info": "info-circle",
}

SPINNER_HTML = '<i class="fas fa-spinner fa-spin"></i>'
ICON_MARKER = '<i class="fas'
LOADING_CLASS = "btn-loading"
ORIGINAL_CONTENT_KEY = "originalHtml"

GENERIC_FAILURE_MESSAGE = "Operation failed"
NETWORK_ERROR_MESSAGE = "Network error. Please check your connection and try again."
UNEXPECTED_ERROR_MESSAGE = "An unexpected error occurred. Please try again."


def notification_icon(severity: str) -> str:
    return NOTIFICATION_ICONS.get(severity, NOTIFICATION_ICONS["success"])


class Envelope(BaseModel):
    """JSON body returned by application endpoints."""

    model_config = ConfigDict(extra="allow")

    success: bool = False
    message: str | None = None
    error: str | None = None


class OperationFailed(Exception):
    """Raised when an endpoint answers without a successful envelope."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        envelope: Envelope | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.envelope = envelope


@dataclass(eq=False)
class Notification:
    message: str
    severity: str
    duration: float
    state: NotificationState = "visible"
    animation: str | None = "slideInNotification 0.3s ease"
    page: "Page | None" = field(default=None, repr=False)
    _timers: list[asyncio.TimerHandle] = field(default_factory=list, repr=False)

    @property
    def icon(self) -> str:
        return notification_icon(self.severity)

    @property
    def css_classes(self) -> list[str]:
        if self.severity == "success":
            return ["notification"]
        return ["notification", f"notification-{self.severity}"]

    @property
    def attached(self) -> bool:
        return self.page is not None and self in self.page.body

    def render(self) -> str:
        return (
            f'<div class="{" ".join(self.css_classes)}">'
            '<div class="notification-content">'
            f'<i class="fas fa-{self.icon} notification-icon"></i>'
            f"<span>{html.escape(self.message)}</span>"
            '<button class="notification-close">&times;</button>'
            "</div></div>"
        )

    def cancel_timers(self) -> None:
        for handle in self._timers:
            handle.cancel()
        self._timers.clear()

    def remove(self) -> None:
        self.cancel_timers()
        if self.attached:
            assert self.page is not None
            self.page.body.remove(self)
        self.page = None
        self.state = "absent"


@dataclass(eq=False)
class Button:
    content: str = ""
    disabled: bool = False
    css_classes: set[str] = field(default_factory=set)
    dataset: dict[str, str] = field(default_factory=dict)

    @property
    def loading(self) -> bool:
        return LOADING_CLASS in self.css_classes


class Page:
    """The document the helper draws into."""

    def __init__(self, *, confirm_answer: bool = True) -> None:
        self.body: list[Any] = []
        self.styles: dict[str, str] = {}
        self.confirm_answer = confirm_answer
        self.prompts: list[str] = []

    def append(self, element: Any) -> None:
        if isinstance(element, Notification):
            element.page = self
        self.body.append(element)

    def notifications(self) -> list[Notification]:
        return [el for el in self.body if isinstance(el, Notification)]

    def confirm(self, message: str) -> bool:
        self.prompts.append(message)
        return self.confirm_answer


class Notifier:
    """Shows toasts, toggles button busy state and wraps endpoint calls."""

    def __init__(
        self,
        page: Page,
        *,
        http_client: httpx.AsyncClient | None = None,
        prompt: Callable[[str], bool] | None = None,
        loop: asyncio.AbstractEventLoop | None = None,
        exit_transition: float = EXIT_TRANSITION,
        timeout: float = 30.0,
    ) -> None:
        self._page = page
        self._http_client = http_client
        self._prompt = prompt or page.confirm
        self._loop = loop
        self._exit_transition = exit_transition
        self._timeout = timeout

    @property
    def page(self) -> Page:
        return self._page

    def _install_styles(self) -> None:
        if KEYFRAMES_STYLE_ID not in self._page.styles:
            self._page.styles[KEYFRAMES_STYLE_ID] = KEYFRAMES_CSS

    def _schedule(
        self,
        delay: float,
        callback: Callable[[Notification], None],
        notification: Notification,
    ) -> None:
        loop = self._loop or asyncio.get_running_loop()
        notification._timers.append(loop.call_later(delay, callback, notification))

    def show(
        self,
        message: str,
        severity: str = "success",
        duration: float = DEFAULT_DURATION,
    ) -> Notification:
        """Replace any current notification with a new one.

        The new notification starts fading after ``duration`` seconds and is
        removed once the exit transition finishes.
        """
        # RuntimeError here (no running loop) must leave the page untouched
        loop = self._loop or asyncio.get_running_loop()
        self._install_styles()
        for existing in self._page.notifications():
            existing.remove()

        notification = Notification(
            message=str(message), severity=severity, duration=duration
        )
        self._page.append(notification)
        notification._timers.append(
            loop.call_later(duration, self._begin_fade, notification)
        )
        return notification

    def success(self, message: str, duration: float = DEFAULT_DURATION) -> Notification:
        return self.show(message, "success", duration)

    def error(self, message: str, duration: float = DEFAULT_DURATION) -> Notification:
        return self.show(message, "error", duration)

    def warning(self, message: str, duration: float = DEFAULT_DURATION) -> Notification:
        return self.show(message, "warning", duration)

    def info(self, message: str, duration: float = DEFAULT_DURATION) -> Notification:
        return self.show(message, "info", duration)

    def dismiss(self, notification: Notification) -> None:
        """Close button: start the exit transition now."""
        if notification.state != "visible":
            return
        notification.cancel_timers()
        self._begin_fade(notification)

    def _begin_fade(self, notification: Notification) -> None:
        if not notification.attached:
            return
        notification.state = "fading"
        notification.animation = (
            f"slideOutNotification {self._exit_transition}s ease forwards"
        )
        self._schedule(self._exit_transition, self._finish, notification)

    def _finish(self, notification: Notification) -> None:
        notification.remove()

    def set_loading(self, button: Button | None, is_loading: bool) -> None:
        """Toggle a button's busy state.

        The button's content is captured the first time this is called and
        restored verbatim whenever loading is switched off.
        """
        if button is None:
            return
        if ORIGINAL_CONTENT_KEY not in button.dataset:
            button.dataset[ORIGINAL_CONTENT_KEY] = button.content
        original = button.dataset[ORIGINAL_CONTENT_KEY]

        if is_loading:
            button.disabled = True
            button.css_classes.add(LOADING_CLASS)
            if ICON_MARKER in button.content:
                button.content = SPINNER_HTML
            else:
                button.content = f"{SPINNER_HTML} Processing..."
        else:
            button.disabled = False
            button.css_classes.discard(LOADING_CLASS)
            button.content = original

    async def _send(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        if self._http_client is not None:
            return await self._http_client.request(method, url, **kwargs)
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await client.request(method, url, **kwargs)

    async def fetch_with_feedback(
        self,
        url: str,
        options: Mapping[str, Any] | None = None,
        button: Button | None = None,
        success_message: str = "",
    ) -> Envelope:
        """Call an endpoint with busy state on ``button`` and toast feedback.

        ``options`` takes ``method``, ``headers`` and ``body`` plus any
        keyword accepted by :meth:`httpx.AsyncClient.request`.

        Raises:
            OperationFailed: If the response is not 2xx or the envelope is
                not successful. The error toast has already been shown.
            httpx.TransportError: If the endpoint could not be reached.
        """
        request_options = dict(options or {})
        method = str(request_options.pop("method", "GET")).upper()
        headers = {
            "Content-Type": "application/json",
            **(request_options.pop("headers", None) or {}),
        }
        if "body" in request_options:
            request_options["content"] = request_options.pop("body")

        self.set_loading(button, True)
        try:
            response = await self._send(method, url, headers=headers, **request_options)
            envelope = Envelope.model_validate(response.json())

            if response.is_success and envelope.success:
                if success_message:
                    self.show(envelope.message or success_message)
                return envelope

            failure = envelope.error or envelope.message or GENERIC_FAILURE_MESSAGE
            self.show(failure, "error")
            raise OperationFailed(
                failure, status_code=response.status_code, envelope=envelope
            )
        except OperationFailed:
            raise
        except httpx.TransportError as exc:
            logger.warning("fetch_network_error url=%s error=%s", url, exc)
            self.show(NETWORK_ERROR_MESSAGE, "error")
            raise
        except Exception as exc:
            logger.error("fetch_unexpected_error url=%s error=%s", url, exc)
            self.show(UNEXPECTED_ERROR_MESSAGE, "error")
            raise
        finally:
            self.set_loading(button, False)

    def confirm(
        self,
        message: str,
        on_confirm: Callable[[], Any] | None,
        on_cancel: Callable[[], Any] | None = None,
    ) -> bool:
        """Ask the user to confirm, then run the matching callback."""
        answer = bool(self._prompt(message))
        callback = on_confirm if answer else on_cancel
        if callable(callback):
            callback()
        return answer
