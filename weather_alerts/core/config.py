"""Configuration models - Pure data structures.

These are domain models for configuration. The actual loading
(I/O) is handled by the shell layer.
"""

from dataclasses import dataclass, field


@dataclass
class RateLimitConfig:
    """Request budget for the weather provider.

    Attributes:
        per_second: Maximum provider requests in any 1 second window
        per_hour: Maximum provider requests in any 1 hour window
        per_day: Maximum provider requests in any 24 hour window
        max_wait_ms: How long a caller may block waiting for budget
    """
    per_second: int = 3
    per_hour: int = 25
    per_day: int = 500
    max_wait_ms: int = 5000


@dataclass
class CooldownConfig:
    """Notification suppression settings.

    Attributes:
        window_minutes: Suppression window per recipient/location/alert type
        retention_minutes: Age after which cooldown records may be purged
    """
    window_minutes: int = 60
    retention_minutes: int = 120


@dataclass
class Config:
    """Application configuration.

    This is a pure data structure - no I/O or side effects.

    Attributes:
        dispatch_interval_minutes: How often the scheduler runs a cycle
        coordinate_precision: Decimal places kept when grouping locations
        cycle_deadline_seconds: Abandon remaining locations after this (0 = no deadline)
        weather_timeout_seconds: Timeout for each weather provider request
        rate_limit: Weather provider request budget
        cooldown: Notification cooldown settings
        firestore_database: Firestore database name (None for default)
        users_collection: Collection holding user locations
        devices_collection: Collection holding device push tokens
        cooldown_collection: Collection holding cooldown records
        firebase_credentials_path: Service account JSON (None for default credentials)
        push_dry_run: Validate push messages without delivering them
    """
    dispatch_interval_minutes: int = 10
    coordinate_precision: int = 2
    cycle_deadline_seconds: int = 300
    weather_timeout_seconds: int = 10
    rate_limit: RateLimitConfig = field(default_factory=RateLimitConfig)
    cooldown: CooldownConfig = field(default_factory=CooldownConfig)
    firestore_database: str | None = None
    users_collection: str = "users"
    devices_collection: str = "devices"
    cooldown_collection: str = "notification_cooldown"
    firebase_credentials_path: str | None = None
    push_dry_run: bool = False


@dataclass
class ValidationError:
    """A configuration validation error.

    Attributes:
        field: The field that has an error
        message: Human-readable error description
        severity: 'error' or 'warning'
    """
    field: str
    message: str
    severity: str = "error"


@dataclass
class ValidationResult:
    """Result of validating configuration.

    Attributes:
        valid: True if no errors (warnings are OK)
        errors: List of validation errors/warnings
    """
    valid: bool
    errors: list[ValidationError] = field(default_factory=list)

    @property
    def warnings(self) -> list[ValidationError]:
        """Get only warnings."""
        return [e for e in self.errors if e.severity == "warning"]

    @property
    def critical_errors(self) -> list[ValidationError]:
        """Get only critical errors."""
        return [e for e in self.errors if e.severity == "error"]


def _require_positive(value: int, field_name: str) -> list[ValidationError]:
    if value <= 0:
        return [ValidationError(
            field=field_name,
            message=f"Must be positive, got {value}",
        )]
    return []


def validate_rate_limit(config: RateLimitConfig) -> list[ValidationError]:
    """Validate the provider request budget.

    Pure function.

    Args:
        config: Rate limit configuration

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []
    errors.extend(_require_positive(config.per_second, "rate_limit.per_second"))
    errors.extend(_require_positive(config.per_hour, "rate_limit.per_hour"))
    errors.extend(_require_positive(config.per_day, "rate_limit.per_day"))

    if config.max_wait_ms < 0:
        errors.append(ValidationError(
            field="rate_limit.max_wait_ms",
            message=f"Must not be negative, got {config.max_wait_ms}",
        ))

    # A tighter long window than short window makes the short one meaningless
    if config.per_second > config.per_hour:
        errors.append(ValidationError(
            field="rate_limit",
            message=f"per_second ({config.per_second}) > per_hour ({config.per_hour})",
            severity="warning",
        ))
    if config.per_hour > config.per_day:
        errors.append(ValidationError(
            field="rate_limit",
            message=f"per_hour ({config.per_hour}) > per_day ({config.per_day})",
            severity="warning",
        ))

    return errors


def validate_cooldown(config: CooldownConfig) -> list[ValidationError]:
    """Validate cooldown settings.

    Pure function.

    Args:
        config: Cooldown configuration

    Returns:
        List of validation errors (empty if valid)
    """
    errors = []
    errors.extend(_require_positive(config.window_minutes, "cooldown.window_minutes"))

    if config.retention_minutes < config.window_minutes:
        errors.append(ValidationError(
            field="cooldown.retention_minutes",
            message=(
                f"Retention ({config.retention_minutes} min) is shorter than "
                f"the cooldown window ({config.window_minutes} min)"
            ),
        ))

    return errors


def validate_config(config: Config) -> ValidationResult:
    """Validate configuration for errors and warnings.

    Pure function.

    Args:
        config: Configuration to validate

    Returns:
        ValidationResult with any errors/warnings found
    """
    errors: list[ValidationError] = []

    errors.extend(validate_rate_limit(config.rate_limit))
    errors.extend(validate_cooldown(config.cooldown))
    errors.extend(_require_positive(
        config.dispatch_interval_minutes, "dispatch_interval_minutes",
    ))
    errors.extend(_require_positive(
        config.weather_timeout_seconds, "weather_timeout_seconds",
    ))

    if not 0 <= config.coordinate_precision <= 6:
        errors.append(ValidationError(
            field="coordinate_precision",
            message=f"Precision {config.coordinate_precision} out of range [0, 6]",
        ))

    if config.cycle_deadline_seconds < 0:
        errors.append(ValidationError(
            field="cycle_deadline_seconds",
            message=f"Must not be negative, got {config.cycle_deadline_seconds}",
        ))
    elif (
        config.cycle_deadline_seconds
        and config.cycle_deadline_seconds > config.dispatch_interval_minutes * 60
    ):
        errors.append(ValidationError(
            field="cycle_deadline_seconds",
            message="Deadline is longer than the dispatch interval; ticks will be dropped",
            severity="warning",
        ))

    has_critical = any(e.severity == "error" for e in errors)

    return ValidationResult(
        valid=not has_critical,
        errors=errors,
    )
