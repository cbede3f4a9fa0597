"""Orchestrator - Wires Functional Core and Imperative Shell.

This module coordinates the flow of data between the pure functional
core and the I/O-performing shell components. It's the "glue" that
makes the application work.

One dispatch cycle:
1. Loads user locations and groups them into location clusters
2. Caps the clusters to the remaining provider request budget
3. Fetches weather for each cluster under the rate limiter
4. Filters recipients through the cooldown store and sends push notifications
5. Records cooldowns for delivered notifications and prunes dead tokens
"""

import logging
import threading
import time
from collections import Counter
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable

from weather_alerts.core.cluster import Location, LocationCluster, cluster_users, select_clusters
from weather_alerts.core.config import Config
from weather_alerts.core.cooldown import partition_by_cooldown
from weather_alerts.core.formatter import format_notification
from weather_alerts.core.rate_limit import RateLimiter, WindowStats
from weather_alerts.core.weather import AlertFact, filter_notifiable
from weather_alerts.shell.cooldown_store import CooldownStore
from weather_alerts.shell.firestore_client import FirestoreClient, FirestoreConfig
from weather_alerts.shell.push_client import FCMClient
from weather_alerts.shell.weather_client import OpenMeteoClient


logger = logging.getLogger(__name__)


class CycleStatus(str, Enum):
    """Overall outcome of a dispatch cycle."""
    COMPLETED = "completed"
    PARTIAL = "partial"
    SKIPPED = "skipped"


class SkipReason(str, Enum):
    """Why a location was not processed in a cycle."""
    RATE_BUDGET = "rate_budget"
    RATE_WAIT_TIMEOUT = "rate_wait_timeout"
    FETCH_FAILED = "fetch_failed"
    REGISTRY_FAILED = "registry_failed"
    DEADLINE = "deadline"


@dataclass(frozen=True)
class SkippedLocation:
    """A location left out of a cycle.

    Attributes:
        location: Rounded location cell
        recipient_count: Users at the location
        reason: Why it was skipped
        error: Error message, if an error caused the skip
    """
    location: Location
    recipient_count: int
    reason: SkipReason
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data = {
            "latitude": self.location.latitude,
            "longitude": self.location.longitude,
            "recipient_count": self.recipient_count,
            "reason": self.reason.value,
        }
        if self.error:
            data["error"] = self.error
        return data


@dataclass
class CycleSummary:
    """Result of a dispatch cycle.

    Recipient counters are per (recipient, alert type): a user notified
    about rain and wind in the same cycle counts twice.

    Attributes:
        clusters_total: Location clusters built from the user registry
        locations_processed: Locations whose weather was evaluated
        skipped: Locations left out, with reasons
        recipients_notified: Recipients with at least one delivered notification
        recipients_skipped_cooldown: Recipients withheld by an active cooldown
        recipients_without_devices: Recipients with no registered push token
        deliveries_succeeded: Tokens the push service accepted
        deliveries_failed: Tokens the push service rejected
        tokens_removed: Permanently invalid tokens removed from the registry
        notified_by_type: Recipients notified per alert type
        cooldowns_purged: Expired cooldown records deleted
        errors: Errors that occurred
        cycle_skipped: True if another cycle was already running
    """
    clusters_total: int = 0
    locations_processed: int = 0
    skipped: list[SkippedLocation] = field(default_factory=list)
    recipients_notified: int = 0
    recipients_skipped_cooldown: int = 0
    recipients_without_devices: int = 0
    deliveries_succeeded: int = 0
    deliveries_failed: int = 0
    tokens_removed: int = 0
    notified_by_type: Counter = field(default_factory=Counter)
    cooldowns_purged: int = 0
    errors: list[str] = field(default_factory=list)
    cycle_skipped: bool = False

    @property
    def success(self) -> bool:
        """Returns True if no errors occurred."""
        return len(self.errors) == 0

    @property
    def status(self) -> CycleStatus:
        if self.cycle_skipped:
            return CycleStatus.SKIPPED
        if self.errors:
            return CycleStatus.PARTIAL
        return CycleStatus.COMPLETED

    @property
    def summary(self) -> str:
        """Human-readable summary of the cycle."""
        if self.cycle_skipped:
            return "Skipped: a dispatch cycle is already running"
        return (
            f"Processed {self.locations_processed} of {self.clusters_total} locations, "
            f"{len(self.skipped)} skipped, "
            f"{self.recipients_notified} recipients notified, "
            f"{self.recipients_skipped_cooldown} in cooldown, "
            f"{self.deliveries_failed} deliveries failed"
        )

    def skip(
        self,
        cluster: LocationCluster,
        reason: SkipReason,
        error: str | None = None,
    ) -> None:
        self.skipped.append(SkippedLocation(
            location=cluster.location,
            recipient_count=cluster.recipient_count,
            reason=reason,
            error=error,
        ))

    def to_dict(self) -> dict[str, Any]:
        """JSON-serialisable representation."""
        data = {
            "status": self.status.value,
            "summary": self.summary,
            "clusters_total": self.clusters_total,
            "locations_processed": self.locations_processed,
            "skipped": [s.to_dict() for s in self.skipped],
            "recipients_notified": self.recipients_notified,
            "recipients_skipped_cooldown": self.recipients_skipped_cooldown,
            "recipients_without_devices": self.recipients_without_devices,
            "deliveries_succeeded": self.deliveries_succeeded,
            "deliveries_failed": self.deliveries_failed,
            "tokens_removed": self.tokens_removed,
            "notified_by_type": dict(self.notified_by_type),
            "cooldowns_purged": self.cooldowns_purged,
        }
        if self.errors:
            data["errors"] = self.errors
        return data


class AlertDispatcher:
    """Coordinates weather checks and push alerting.

    This class wires together:
    - Rate limiter (provider request budget)
    - Open-Meteo client (fetches weather)
    - Core functions (clustering, alert evaluation, formatting)
    - Firestore client (user and device registries)
    - Cooldown store (notification frequency cap)
    - FCM client (push delivery)

    The dispatcher owns one RateLimiter for its whole lifetime, so the
    request budget is shared by every cycle it runs. At most one cycle
    runs at a time.
    """

    def __init__(
        self,
        config: Config,
        rate_limiter: RateLimiter | None = None,
        weather_client: OpenMeteoClient | None = None,
        push_client: FCMClient | None = None,
        firestore_client: FirestoreClient | None = None,
        cooldown_store: CooldownStore | None = None,
        sleep: Callable[[float], None] | None = None,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize dispatcher with configuration.

        Args:
            config: Application configuration
            rate_limiter: Provider rate limiter (created if not provided)
            weather_client: Weather client (created if not provided)
            push_client: Push client (created if not provided)
            firestore_client: Firestore client (created if not provided)
            cooldown_store: Cooldown store (created if not provided)
            sleep: Blocks for the given seconds (request spacing)
            clock: Monotonic seconds (cycle deadline)
        """
        self.config = config
        self.rate_limiter = rate_limiter or RateLimiter(config.rate_limit)
        self.weather_client = weather_client or OpenMeteoClient(
            timeout=config.weather_timeout_seconds,
        )
        self.push_client = push_client or FCMClient(
            credentials_path=config.firebase_credentials_path,
            dry_run=config.push_dry_run,
        )
        self.firestore_client = firestore_client or FirestoreClient(
            FirestoreConfig(
                database=config.firestore_database,
                users_collection=config.users_collection,
                devices_collection=config.devices_collection,
                cooldown_collection=config.cooldown_collection,
            )
        )
        self.cooldown_store = cooldown_store or CooldownStore(
            self.firestore_client,
            config=config.cooldown,
            precision=config.coordinate_precision,
        )
        self._sleep = sleep or time.sleep
        self._clock = clock or time.monotonic
        self._lock = threading.Lock()

    @property
    def is_running(self) -> bool:
        """True while a cycle is in progress."""
        return self._lock.locked()

    def run_dispatch_cycle(self) -> CycleSummary:
        """Run a complete dispatch cycle.

        If a cycle is already running, returns immediately with a summary
        whose status is 'skipped'; the request is not queued.

        Returns:
            CycleSummary with details of what happened

        Raises:
            Exception: If the user registry cannot be read
        """
        if not self._lock.acquire(blocking=False):
            logger.warning("Dispatch cycle already running, skipping")
            return CycleSummary(cycle_skipped=True)

        try:
            return self._run_cycle()
        finally:
            self._lock.release()

    def trigger_now(self) -> CycleSummary:
        """Run a cycle immediately, outside the schedule."""
        logger.info("Manual dispatch triggered")
        return self.run_dispatch_cycle()

    def get_rate_limiter_stats(self) -> dict[str, WindowStats]:
        """Current provider request usage per window."""
        return self.rate_limiter.get_stats()

    def _deadline(self, started: float) -> float | None:
        if self.config.cycle_deadline_seconds <= 0:
            return None
        return started + self.config.cycle_deadline_seconds

    def _run_cycle(self) -> CycleSummary:
        started = self._clock()
        summary = CycleSummary()

        # Step 1: Load users (the only failure that aborts a cycle)
        users = self.firestore_client.list_user_locations()

        # Step 2: Cluster (pure core function)
        clusters = cluster_users(users, self.config.coordinate_precision)
        summary.clusters_total = len(clusters)
        logger.info("%d users grouped into %d locations", len(users), len(clusters))

        # Step 3: Cap to the request budget
        max_allowed = self.rate_limiter.get_max_allowed_requests()
        selected, truncated = select_clusters(clusters, max_allowed)
        if truncated:
            logger.warning(
                "Rate budget allows %d request(s); skipping %d of %d locations",
                max_allowed,
                len(truncated),
                len(clusters),
            )
            for cluster in truncated:
                summary.skip(cluster, SkipReason.RATE_BUDGET)

        # Step 4: Process locations, largest first
        delay_ms = self.rate_limiter.calculate_optimal_delay(len(selected))
        deadline = self._deadline(started)

        for index, cluster in enumerate(selected):
            if deadline is not None and self._clock() >= deadline:
                remaining = selected[index:]
                logger.warning(
                    "Cycle deadline reached; abandoning %d location(s)",
                    len(remaining),
                )
                for pending in remaining:
                    summary.skip(pending, SkipReason.DEADLINE)
                break

            if index > 0:
                self._sleep(delay_ms / 1000)

            try:
                self._process_cluster(cluster, summary)
            except Exception as e:
                error_msg = f"Failed to process {cluster.location}: {e}"
                logger.exception(error_msg)
                summary.errors.append(error_msg)

        # Step 5: Retention sweep
        summary.cooldowns_purged = self.cooldown_store.purge_expired()

        logger.info("Dispatch cycle finished: %s", summary.summary)
        return summary

    def _process_cluster(self, cluster: LocationCluster, summary: CycleSummary) -> None:
        """Fetch weather for one location and notify its recipients."""
        location = cluster.location

        if not self.rate_limiter.wait_until_allowed():
            summary.skip(cluster, SkipReason.RATE_WAIT_TIMEOUT)
            return

        # Counted even if the fetch fails
        self.rate_limiter.record_request()

        try:
            facts = self.weather_client.fetch(
                location.latitude,
                location.longitude,
                timeout=self.config.weather_timeout_seconds,
            )
        except Exception as e:
            logger.error("Weather fetch failed for %s: %s", location, str(e))
            summary.skip(cluster, SkipReason.FETCH_FAILED, str(e))
            summary.errors.append(f"Weather fetch failed for {location}: {e}")
            return

        notifiable = filter_notifiable(facts)
        if not notifiable:
            logger.info("No alerts for %s", location)
            summary.locations_processed += 1
            return

        try:
            devices = self.firestore_client.get_device_tokens(cluster.recipient_ids)
        except Exception as e:
            logger.error("Device lookup failed for %s: %s", location, str(e))
            summary.skip(cluster, SkipReason.REGISTRY_FAILED, str(e))
            summary.errors.append(f"Device lookup failed for {location}: {e}")
            return

        summary.locations_processed += 1

        tokens_by_recipient: dict[str, list[str]] = {}
        for device in devices:
            tokens_by_recipient.setdefault(device.user_id, []).append(device.token)

        for fact in notifiable:
            self._dispatch_fact(cluster, fact, tokens_by_recipient, summary)

    def _dispatch_fact(
        self,
        cluster: LocationCluster,
        fact: AlertFact,
        tokens_by_recipient: dict[str, list[str]],
        summary: CycleSummary,
    ) -> None:
        """Notify a cluster's eligible recipients about one alert fact."""
        location = cluster.location

        in_cooldown = {
            recipient_id
            for recipient_id in cluster.recipient_ids
            if self.cooldown_store.is_in_cooldown(
                recipient_id, location.latitude, location.longitude, fact.type,
            )
        }
        to_notify, withheld = partition_by_cooldown(list(cluster.recipient_ids), in_cooldown)
        summary.recipients_skipped_cooldown += len(withheld)

        # A token shared by several recipients is sent once
        recipients_by_token: dict[str, list[str]] = {}
        for recipient_id in to_notify:
            tokens = tokens_by_recipient.get(recipient_id)
            if not tokens:
                summary.recipients_without_devices += 1
                continue
            for token in tokens:
                recipients_by_token.setdefault(token, []).append(recipient_id)

        if not recipients_by_token:
            logger.debug("Nobody to notify about %s at %s", fact.type.value, location)
            return

        # Format notification (pure core function)
        notification = format_notification(fact, location)

        outcomes = self.push_client.send_batch(
            list(recipients_by_token),
            notification.title,
            notification.body,
            metadata=notification.metadata,
            priority=notification.priority,
            tag=notification.tag,
            vibration_pattern=notification.vibration_pattern,
        )

        delivered: dict[str, None] = {}
        for outcome in outcomes:
            if outcome.success:
                summary.deliveries_succeeded += 1
                for recipient_id in recipients_by_token.get(outcome.token, []):
                    delivered[recipient_id] = None
                continue

            summary.deliveries_failed += 1
            if outcome.error_class is not None and outcome.error_class.is_permanent:
                # Later alerts for this location must not reuse the dead token
                for recipient_id in recipients_by_token.get(outcome.token, []):
                    tokens_by_recipient[recipient_id] = [
                        token
                        for token in tokens_by_recipient[recipient_id]
                        if token != outcome.token
                    ]
                if self.firestore_client.remove_device_token(outcome.token):
                    summary.tokens_removed += 1

        # Only confirmed deliveries start a cooldown
        for recipient_id in delivered:
            recorded = self.cooldown_store.record_sent(
                recipient_id,
                location.latitude,
                location.longitude,
                fact.type,
                severity=fact.severity_label,
                value=fact.value,
            )
            if not recorded:
                summary.errors.append(
                    f"Failed to record cooldown for {recipient_id} "
                    f"({fact.type.value} at {location})"
                )

        if delivered:
            summary.recipients_notified += len(delivered)
            summary.notified_by_type[fact.type.value] += len(delivered)
            logger.info(
                "Notified %d recipient(s) about %s at %s",
                len(delivered),
                fact.type.value,
                location,
            )
