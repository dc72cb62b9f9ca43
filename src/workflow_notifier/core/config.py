"""Configuration system for workflow-notifier.

This module implements the configuration schema using Pydantic for
validation, with support for environment variable resolution and fail-fast
validation with actionable error messages.
"""

import os
import re
from collections.abc import Mapping
from pathlib import Path
from typing import Annotated, Final

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

from workflow_notifier.types.models import (
    EMAIL_CHANNEL,
    MUTE_CHANNEL,
    PUBLISHED_STATUS,
    WorkflowDefinition,
)

# Matches ${VARIABLE_NAME} syntax where VARIABLE_NAME can contain letters, digits, and underscores
ENV_VAR_PATTERN: Final[re.Pattern[str]] = re.compile(r"\$\{([A-Z0-9_]+)\}")

# Scheduler action name under which deferred deliveries are registered
DEFAULT_DELIVERY_ACTION: Final[str] = "workflow_notifier.deliver"

_CHANNEL_PATTERN: Final[re.Pattern[str]] = re.compile(r"^[a-z][a-z0-9_]*$")


class WorkflowDefinitionConfig(BaseModel):
    """A workflow definition declared inline in the configuration file."""

    id: Annotated[int, Field(ge=1, description="Workflow identifier")]
    status: Annotated[
        str,
        Field(min_length=1, description="Workflow status; only 'publish' workflows run"),
    ] = PUBLISHED_STATUS
    title: Annotated[str, Field(description="Human readable workflow title")] = ""
    settings: Annotated[
        dict[str, object],
        Field(description="Event, receiver and content settings read by workflow steps"),
    ] = {}

    def to_definition(self) -> WorkflowDefinition:
        return WorkflowDefinition(
            id=self.id,
            status=self.status,
            title=self.title,
            settings=dict(self.settings),
        )


class ChannelPreferenceConfig(BaseModel):
    """A user's channel choice for one workflow."""

    user_id: Annotated[int, Field(ge=1, description="User identifier")]
    workflow_id: Annotated[int, Field(ge=1, description="Workflow identifier")]
    channel: Annotated[
        str,
        Field(
            pattern=r"^[a-z][a-z0-9_]*$",
            description="Channel name, or 'mute' to opt out",
        ),
    ]


class WorkflowsConfig(BaseModel):
    """Configuration for workflow definitions and receiver routing."""

    default_channel: Annotated[
        str,
        Field(
            description="Channel used for users without a stored channel preference",
        ),
    ] = EMAIL_CHANNEL
    definitions: Annotated[
        list[WorkflowDefinitionConfig],
        Field(description="Workflow definitions served by the built-in store"),
    ] = []
    preferences: Annotated[
        list[ChannelPreferenceConfig],
        Field(description="Stored per-user channel preferences"),
    ] = []

    @field_validator("default_channel", mode="after")
    @classmethod
    def validate_default_channel(cls, v: str) -> str:
        """Reject the reserved mute channel and malformed channel names.

        Raises:
            ValueError: If the channel is 'mute' or not a valid identifier
        """
        if v == MUTE_CHANNEL:
            msg = f"default_channel cannot be the reserved '{MUTE_CHANNEL}' channel"
            raise ValueError(msg)
        if not _CHANNEL_PATTERN.match(v):
            msg = (
                "default_channel must start with a lowercase letter and contain only "
                f"lowercase letters, numbers, or underscores, got: {v!r}"
            )
            raise ValueError(msg)
        return v

    @field_validator("definitions", mode="after")
    @classmethod
    def validate_unique_definition_ids(
        cls, v: list[WorkflowDefinitionConfig]
    ) -> list[WorkflowDefinitionConfig]:
        """Reject duplicate workflow ids.

        Raises:
            ValueError: If two definitions share an id
        """
        seen: set[int] = set()
        for definition in v:
            if definition.id in seen:
                msg = f"Duplicate workflow id: {definition.id}"
                raise ValueError(msg)
            seen.add(definition.id)
        return v


class DeliveryConfig(BaseModel):
    """Configuration for immediate versus deferred delivery."""

    async_enabled: Annotated[
        bool,
        Field(
            description="Queue deliveries on the scheduler instead of sending inline",
        ),
    ] = False
    delay_seconds: Annotated[
        float,
        Field(
            ge=0,
            description="Delay added to the current time when scheduling a deferred delivery",
        ),
    ] = 0.0
    action_name: Annotated[
        str,
        Field(
            min_length=1,
            description="Scheduler action name for deferred deliveries",
        ),
    ] = DEFAULT_DELIVERY_ACTION
    queue_file: Annotated[
        Path | None,
        Field(
            description="JSON file persisting scheduled deliveries",
        ),
    ] = None

    @field_validator("queue_file", mode="after")
    @classmethod
    def validate_queue_file_parent_exists(cls, v: Path | None) -> Path | None:
        """Validate that the queue file's parent directory exists.

        Raises:
            ValueError: If parent directory does not exist
        """
        if v is not None and not v.parent.exists():
            msg = f"Queue file parent directory does not exist: {v.parent}"
            raise ValueError(msg)
        return v


class ApplicationConfig(BaseModel):
    """Configuration for application-level settings."""

    log_level: Annotated[
        str,
        Field(
            description="Logging level",
            pattern=r"^(DEBUG|INFO|WARNING|ERROR|CRITICAL)$",
        ),
    ] = "INFO"
    dry_run: Annotated[
        bool,
        Field(
            description="Dry-run mode: log deliveries without calling channel transports",
        ),
    ] = False
    syslog_enabled: Annotated[
        bool,
        Field(
            description="Enable syslog integration",
        ),
    ] = False


class MainConfig(BaseModel):
    """Main application configuration schema.

    Top-level container aggregating all configuration sections:
    - workflows: Workflow definitions and receiver routing
    - delivery: Immediate or deferred delivery
    - application: Application-level settings
    """

    workflows: Annotated[
        WorkflowsConfig,
        Field(description="Receiver routing configuration"),
    ] = WorkflowsConfig()
    delivery: Annotated[
        DeliveryConfig,
        Field(description="Delivery configuration"),
    ] = DeliveryConfig()
    application: Annotated[
        ApplicationConfig,
        Field(description="Application-level configuration"),
    ] = ApplicationConfig()


class EnvironmentVariableError(Exception):
    """Exception raised when environment variable resolution fails.

    Provides clear error messages without exposing secret values.
    """


class ConfigurationError(Exception):
    """Exception raised when configuration loading or validation fails."""


def resolve_env_var(value: str) -> str:
    """Resolve ${VARIABLE_NAME} references in a string value.

    Raises:
        EnvironmentVariableError: If a referenced environment variable is missing

    Examples:
        >>> os.environ["QUEUE_DIR"] = "/var/lib/notifier"
        >>> resolve_env_var("${QUEUE_DIR}/queue.json")
        '/var/lib/notifier/queue.json'
    """

    def replace_match(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)

        if env_value is None:
            msg = (
                f"Required environment variable '{var_name}' is not set. "
                f"Please set this variable before starting the application."
            )
            raise EnvironmentVariableError(msg)

        return env_value

    return ENV_VAR_PATTERN.sub(replace_match, value)


def resolve_env_vars_in_dict(data: Mapping[str, object]) -> dict[str, object]:
    """Recursively resolve environment variables in a dictionary.

    Traverses nested dictionaries and lists, resolving references in string
    values. Non-string values are preserved as-is. Used on raw YAML data
    before Pydantic validation.

    Raises:
        EnvironmentVariableError: If a required environment variable is missing
    """
    result: dict[str, object] = {}

    for key, value in data.items():
        if isinstance(value, str):
            result[key] = resolve_env_var(value)
        elif isinstance(value, dict):
            result[key] = resolve_env_vars_in_dict(value)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
        elif isinstance(value, list):
            resolved_list: list[object] = []
            for item in value:  # pyright: ignore[reportUnknownVariableType]  # YAML list items
                if isinstance(item, str):
                    resolved_list.append(resolve_env_var(item))
                elif isinstance(item, dict):
                    resolved_list.append(resolve_env_vars_in_dict(item))  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
                else:
                    resolved_list.append(item)  # pyright: ignore[reportUnknownArgumentType]  # YAML primitives
            result[key] = resolved_list
        else:
            result[key] = value

    return result


def _format_validation_error(error: ValidationError, config_path: Path) -> str:
    error_lines = ["Configuration validation failed:", ""]
    for detail in error.errors():
        field_path = " → ".join(str(loc) for loc in detail["loc"])
        error_lines.append(f"  Field: {field_path}")
        error_lines.append(f"  Error: {detail['msg']}")
        error_lines.append(f"  Type: {detail['type']}")
        error_lines.append("")

    error_lines.append(f"Configuration file: {config_path}")
    error_lines.append("Please fix the above errors and try again.")
    return "\n".join(error_lines)


def load_main_config(config_path: Path) -> MainConfig:
    """Load and validate application configuration from a YAML file.

    Raises:
        ConfigurationError: If configuration file cannot be loaded or is invalid

    Examples:
        >>> config = load_main_config(Path("config/workflow-notifier.yaml"))
        >>> config.workflows.default_channel
        'email'
    """
    if not config_path.exists():
        msg = (
            f"Configuration file not found: {config_path}\n"
            f"Please create a configuration file at this location."
        )
        raise ConfigurationError(msg)

    try:
        with config_path.open("r") as f:
            raw_data: object = yaml.safe_load(f)  # pyright: ignore[reportAny]  # YAML boundary
    except yaml.YAMLError as e:
        msg = (
            f"Failed to parse YAML configuration file: {config_path}\n"
            f"YAML parsing error: {e}\n"
            f"Please check the file for syntax errors."
        )
        raise ConfigurationError(msg) from e
    except OSError as e:
        msg = f"Failed to read configuration file: {config_path}\nError: {e}\nPlease check file permissions."
        raise ConfigurationError(msg) from e

    # An empty file means "all defaults"
    if raw_data is None:
        raw_data = {}

    if not isinstance(raw_data, dict):
        msg = (
            f"Invalid configuration file format: {config_path}\n"
            f"Expected YAML dictionary at root level, got: {type(raw_data).__name__}\n"
            f"Configuration file must contain key-value pairs."
        )
        raise ConfigurationError(msg)

    try:
        resolved_data = resolve_env_vars_in_dict(raw_data)  # pyright: ignore[reportUnknownArgumentType]  # YAML boundary
    except EnvironmentVariableError as e:
        msg = (
            f"Environment variable resolution failed in: {config_path}\n"
            f"{e}\n"
            f"Set the required environment variable before starting the application."
        )
        raise ConfigurationError(msg) from e

    try:
        return MainConfig.model_validate(resolved_data)
    except ValidationError as e:
        raise ConfigurationError(_format_validation_error(e, config_path)) from e
