"""Firebase Cloud Messaging Client - Imperative Shell.

This module handles delivery of push notifications through FCM.
All I/O is contained here; notification content is built in the core
module.

Every send returns one PushOutcome per token, carrying the token itself,
so callers never have to correlate results by position.
"""

import logging
from dataclasses import dataclass
from enum import Enum

import firebase_admin
from firebase_admin import credentials, exceptions, messaging


logger = logging.getLogger(__name__)


# FCM accepts at most 500 tokens per multicast request
MAX_TOKENS_PER_BATCH = 500

# Name of the firebase_admin app owned by this client
APP_NAME = "weather-alerts"

# Android notification channel registered by the mobile app
ANDROID_CHANNEL_ID = "weather_alerts"


class PushErrorClass(str, Enum):
    """Why a delivery to a token failed."""
    UNREGISTERED = "unregistered"
    INVALID_TOKEN = "invalid_token"
    TRANSIENT = "transient"

    @property
    def is_permanent(self) -> bool:
        """True if the token will never work again and should be removed."""
        return self in (PushErrorClass.UNREGISTERED, PushErrorClass.INVALID_TOKEN)


@dataclass(frozen=True)
class PushOutcome:
    """Result of delivering to one token.

    Attributes:
        token: Device token the message was sent to
        success: Whether FCM accepted the message
        error_class: Failure classification (None on success)
        error: Error message if failed
        message_id: FCM message id if successful
    """
    token: str
    success: bool
    error_class: PushErrorClass | None = None
    error: str | None = None
    message_id: str | None = None


def classify_error(error: Exception | None) -> PushErrorClass:
    """Map an FCM exception to a PushErrorClass.

    Unregistered tokens and malformed or foreign tokens are permanent;
    everything else (quota, unavailable, internal) is transient.

    FCM also answers INVALID_ARGUMENT for a malformed message, which fails
    every token in the request. Only an INVALID_ARGUMENT that names the
    registration token marks the token itself as bad.
    """
    if isinstance(error, messaging.UnregisteredError):
        return PushErrorClass.UNREGISTERED
    if isinstance(error, messaging.SenderIdMismatchError):
        return PushErrorClass.INVALID_TOKEN
    if isinstance(error, exceptions.InvalidArgumentError):
        if "registration token" in str(error).lower():
            return PushErrorClass.INVALID_TOKEN
        return PushErrorClass.TRANSIENT
    return PushErrorClass.TRANSIENT


class FCMClient:
    """Client for sending push notifications via Firebase Cloud Messaging.

    This is part of the imperative shell - it handles network I/O.
    """

    def __init__(
        self,
        credentials_path: str | None = None,
        dry_run: bool = False,
        app: firebase_admin.App | None = None,
    ) -> None:
        """Initialize FCM client.

        Args:
            credentials_path: Service account JSON (None for application default)
            dry_run: Validate messages without delivering them
            app: Pre-initialized firebase_admin app
        """
        self.credentials_path = credentials_path
        self.dry_run = dry_run
        self._app = app

    @property
    def app(self) -> firebase_admin.App:
        """Lazy initialization of the firebase_admin app."""
        if self._app is None:
            try:
                self._app = firebase_admin.get_app(APP_NAME)
            except ValueError:
                if self.credentials_path:
                    cred = credentials.Certificate(self.credentials_path)
                else:
                    cred = credentials.ApplicationDefault()
                self._app = firebase_admin.initialize_app(cred, name=APP_NAME)
        return self._app

    def _build_message(
        self,
        tokens: list[str],
        title: str,
        body: str,
        metadata: dict[str, str],
        priority: str,
        tag: str | None,
        vibration_pattern: tuple[int, ...] | None,
    ) -> messaging.MulticastMessage:
        vibrate_ms = list(vibration_pattern) if vibration_pattern else None

        return messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=title, body=body),
            data=metadata,
            android=messaging.AndroidConfig(
                priority=priority,
                notification=messaging.AndroidNotification(
                    channel_id=ANDROID_CHANNEL_ID,
                    tag=tag,
                    default_sound=True,
                    default_vibrate_timings=vibrate_ms is None,
                    vibrate_timings_millis=vibrate_ms,
                ),
            ),
            apns=messaging.APNSConfig(
                payload=messaging.APNSPayload(
                    aps=messaging.Aps(sound="default", badge=1),
                ),
            ),
        )

    def _send_chunk(self, tokens: list[str], message: messaging.MulticastMessage) -> list[PushOutcome]:
        try:
            response = messaging.send_each_for_multicast(
                message,
                dry_run=self.dry_run,
                app=self.app,
            )
        except Exception as e:
            logger.error("FCM multicast request failed: %s", str(e))
            return [
                PushOutcome(
                    token=token,
                    success=False,
                    error_class=PushErrorClass.TRANSIENT,
                    error=str(e),
                )
                for token in tokens
            ]

        outcomes = []
        for token, send_response in zip(tokens, response.responses):
            if send_response.success:
                outcomes.append(PushOutcome(
                    token=token,
                    success=True,
                    message_id=send_response.message_id,
                ))
            else:
                error = send_response.exception
                outcomes.append(PushOutcome(
                    token=token,
                    success=False,
                    error_class=classify_error(error),
                    error=str(error) if error else "Unknown error",
                ))
        return outcomes

    def send_batch(
        self,
        tokens: list[str],
        title: str,
        body: str,
        metadata: dict[str, str] | None = None,
        priority: str = "high",
        tag: str | None = None,
        vibration_pattern: tuple[int, ...] | None = None,
    ) -> list[PushOutcome]:
        """Send one notification to many device tokens.

        This method performs network I/O.

        Args:
            tokens: Device tokens
            title: Notification title
            body: Notification body
            metadata: String data payload
            priority: Android priority ('high' or 'normal')
            tag: Android collapse tag
            vibration_pattern: Android vibration timings in ms

        Returns:
            One PushOutcome per token
        """
        if not tokens:
            return []

        logger.info("Sending push notification to %d device(s)", len(tokens))

        outcomes: list[PushOutcome] = []
        for start in range(0, len(tokens), MAX_TOKENS_PER_BATCH):
            chunk = tokens[start:start + MAX_TOKENS_PER_BATCH]
            message = self._build_message(
                chunk, title, body, metadata or {}, priority, tag, vibration_pattern,
            )
            outcomes.extend(self._send_chunk(chunk, message))

        failures = [o for o in outcomes if not o.success]
        logger.info(
            "Push results: %d sent, %d failed",
            len(outcomes) - len(failures),
            len(failures),
        )
        for outcome in failures:
            logger.warning(
                "Push to token %s... failed (%s): %s",
                outcome.token[:12],
                outcome.error_class.value,
                outcome.error,
            )

        return outcomes
