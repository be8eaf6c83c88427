"""
Resource configuration management for quicksub.

All managed resources are declared in a single resources.yaml file, together
with the state recorded for them after the last apply. The models here
validate that file and describe which attributes force replacement.
"""

import re
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Literal, Optional, Union

import yaml
from pydantic import BaseModel, Field, field_validator

from quicksub.config.settings import get_system_file_path


class ResourceType(str, Enum):
    """Supported resource types."""

    ACCOUNT_SUBSCRIPTION = "quicksight_account_subscription"


class AuthenticationMethod(str, Enum):
    """Authentication methods accepted by CreateAccountSubscription."""

    IAM_AND_QUICKSIGHT = "IAM_AND_QUICKSIGHT"
    IAM_ONLY = "IAM_ONLY"
    ACTIVE_DIRECTORY = "ACTIVE_DIRECTORY"
    IAM_IDENTITY_CENTER = "IAM_IDENTITY_CENTER"

    def __str__(self):
        return self.value

    @classmethod
    def list_values(cls):
        return [item.value for item in cls]


class Edition(str, Enum):
    """QuickSight editions."""

    STANDARD = "STANDARD"
    ENTERPRISE = "ENTERPRISE"
    ENTERPRISE_AND_Q = "ENTERPRISE_AND_Q"

    def __str__(self):
        return self.value

    @classmethod
    def list_values(cls):
        return [item.value for item in cls]


# ============================================================================
# Timeouts
# ============================================================================

DEFAULT_TIMEOUT = 10 * 60.0

_DURATION_PART = re.compile(r"(\d+(?:\.\d+)?)(ms|h|m|s)")
_DURATION_UNITS = {"h": 3600.0, "m": 60.0, "s": 1.0, "ms": 0.001}


def parse_duration(value: Union[str, int, float]) -> float:
    """
    Parse a duration into seconds.

    Accepts plain numbers (seconds) and duration strings such as ``"45s"``,
    ``"10m"`` or ``"1h30m"``.

    Raises:
        ValueError: If the value is not a valid, non-negative duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"Invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        seconds = float(value)
    else:
        text = value.strip().replace(" ", "")
        try:
            seconds = float(text)
        except ValueError:
            parts = _DURATION_PART.findall(text)
            if not parts or "".join(n + u for n, u in parts) != text:
                raise ValueError(f"Invalid duration: {value!r}") from None
            seconds = sum(float(n) * _DURATION_UNITS[u] for n, u in parts)

    if seconds < 0:
        raise ValueError(f"Duration must not be negative: {value!r}")
    return seconds


class Timeouts(BaseModel):
    """Per-operation timeouts in seconds."""

    create: float = DEFAULT_TIMEOUT
    read: float = DEFAULT_TIMEOUT
    delete: float = DEFAULT_TIMEOUT

    @field_validator("create", "read", "delete", mode="before")
    @classmethod
    def _parse(cls, v: Any) -> float:
        return parse_duration(v)


# ============================================================================
# Account Subscription Models
# ============================================================================

FORCE_NEW = {"force_new": True}


class ResourceState(BaseModel):
    """State recorded for a resource after it was applied."""

    id: Optional[str] = None
    tainted: bool = False
    attributes: Dict[str, Any] = Field(default_factory=dict)
    last_applied: Optional[datetime] = None


class AccountSubscriptionResource(BaseModel):
    """QuickSight account subscription. Every argument forces replacement."""

    type: Literal[ResourceType.ACCOUNT_SUBSCRIPTION] = ResourceType.ACCOUNT_SUBSCRIPTION
    account_name: str = Field(..., description="Name of the QuickSight account", json_schema_extra=FORCE_NEW)
    authentication_method: AuthenticationMethod = Field(
        ..., description="Method used to authenticate QuickSight users", json_schema_extra=FORCE_NEW
    )
    edition: Edition = Field(..., description="QuickSight edition", json_schema_extra=FORCE_NEW)
    notification_email: str = Field(
        ..., description="Email address QuickSight sends notifications to", json_schema_extra=FORCE_NEW
    )
    aws_account_id: Optional[str] = Field(
        None,
        pattern=r"^\d{12}$",
        description="AWS account ID (defaults to the caller's account)",
        json_schema_extra=FORCE_NEW,
    )
    active_directory_name: Optional[str] = Field(None, json_schema_extra=FORCE_NEW)
    admin_group: Optional[List[str]] = Field(None, min_length=1, json_schema_extra=FORCE_NEW)
    author_group: Optional[List[str]] = Field(None, min_length=1, json_schema_extra=FORCE_NEW)
    reader_group: Optional[List[str]] = Field(None, min_length=1, json_schema_extra=FORCE_NEW)
    contact_number: Optional[str] = Field(None, json_schema_extra=FORCE_NEW)
    directory_id: Optional[str] = Field(None, json_schema_extra=FORCE_NEW)
    email_address: Optional[str] = Field(None, json_schema_extra=FORCE_NEW)
    first_name: Optional[str] = Field(None, json_schema_extra=FORCE_NEW)
    last_name: Optional[str] = Field(None, json_schema_extra=FORCE_NEW)
    iam_identity_center_instance_arn: Optional[str] = Field(None, json_schema_extra=FORCE_NEW)
    realm: Optional[str] = Field(None, json_schema_extra=FORCE_NEW)
    timeouts: Timeouts = Field(default_factory=Timeouts)
    state: ResourceState = Field(default_factory=ResourceState)

    @classmethod
    def force_new_fields(cls) -> List[str]:
        """Names of arguments whose change requires destroy-then-create."""
        return [
            name
            for name, field in cls.model_fields.items()
            if isinstance(field.json_schema_extra, dict) and field.json_schema_extra.get("force_new")
        ]

    def arguments(self) -> Dict[str, Any]:
        """Configured arguments as plain JSON values, omitting unset ones."""
        return self.model_dump(
            mode="json",
            include=set(self.force_new_fields()),
            exclude_none=True,
        )


# ============================================================================
# Main Configuration Models
# ============================================================================


class ProviderConfig(BaseModel):
    """AWS connection settings shared by all resources."""

    region: Optional[str] = None
    profile: Optional[str] = None


class ResourceConfig(BaseModel):
    """Main resource configuration."""

    version: str = "1.0"
    provider: ProviderConfig = Field(default_factory=ProviderConfig)
    resources: Dict[str, AccountSubscriptionResource] = Field(default_factory=dict)


# ============================================================================
# Configuration Loading and Saving
# ============================================================================

RESOURCE_CONFIG_FILE = "resources.yaml"


def get_resource_config_path() -> Path:
    """Get the path to the resource configuration file."""
    from quicksub.config.environment import Environment

    return Environment.get_config_path() or get_system_file_path(RESOURCE_CONFIG_FILE)


def load_resource_config(config_path: Optional[Path] = None) -> ResourceConfig:
    """
    Load resource configuration from resources.yaml.

    Args:
        config_path: Path to the file (default: configured or per-OS location)

    Returns:
        ResourceConfig: The loaded configuration.

    Raises:
        FileNotFoundError: If resources.yaml doesn't exist.
        yaml.YAMLError: If the YAML is invalid.
        ValidationError: If the configuration is invalid.
    """
    config_path = config_path or get_resource_config_path()

    if not config_path.exists():
        raise FileNotFoundError(
            f"Resource configuration not found at {config_path}. Run 'quicksub init' to create it."
        )

    with open(config_path) as f:
        data = yaml.safe_load(f)

    if not data:
        return ResourceConfig()

    return ResourceConfig.model_validate(data)


def save_resource_config(config: ResourceConfig, config_path: Optional[Path] = None) -> None:
    """
    Save resource configuration to resources.yaml.

    This performs an atomic write by writing to a temporary file first,
    then renaming it to prevent corruption.
    """
    config_path = config_path or get_resource_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)

    data = config.model_dump(mode="json", exclude_none=True)
    temp_path = config_path.with_suffix(".tmp")

    try:
        with open(temp_path, "w") as f:
            yaml.dump(
                data,
                f,
                default_flow_style=False,
                sort_keys=False,
                allow_unicode=True,
            )

        temp_path.replace(config_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def init_resource_config(config_path: Optional[Path] = None, overwrite: bool = False) -> ResourceConfig:
    """
    Initialize a new resource configuration file with defaults.

    Raises:
        FileExistsError: If resources.yaml already exists and overwrite is False.
    """
    config_path = config_path or get_resource_config_path()

    if config_path.exists() and not overwrite:
        raise FileExistsError(f"Resource configuration already exists at {config_path}")

    config = ResourceConfig()
    save_resource_config(config, config_path)
    return config
