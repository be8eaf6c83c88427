"""Attribute container handed to lifecycle operations."""

from typing import Any, Dict, Optional

from quicksub.config.resources import AccountSubscriptionResource, Timeouts


def _is_zero(value: Any) -> bool:
    return value is None or value == "" or value == [] or value == {}


class ResourceData:
    """
    Values, ID and timeouts of one resource instance during an operation.

    Create operations start from the configured arguments; refresh and delete
    start from the attributes recorded in state. Operations read with
    ``get``/``get_if_set`` and write observed values back with ``set``.
    """

    def __init__(
        self,
        values: Optional[Dict[str, Any]] = None,
        id: str = "",
        timeouts: Optional[Timeouts] = None,
        is_new_resource: bool = False,
    ):
        self._values: Dict[str, Any] = dict(values or {})
        self._id = id or ""
        self._timeouts = timeouts or Timeouts()
        self._is_new_resource = is_new_resource

    @classmethod
    def from_config(cls, resource: AccountSubscriptionResource) -> "ResourceData":
        """Data for creating ``resource`` from its configured arguments."""
        return cls(resource.arguments(), timeouts=resource.timeouts, is_new_resource=True)

    @classmethod
    def from_state(cls, resource: AccountSubscriptionResource) -> "ResourceData":
        """Data for an already applied ``resource``, built from recorded state."""
        return cls(
            resource.state.attributes,
            id=resource.state.id or "",
            timeouts=resource.timeouts,
        )

    @property
    def id(self) -> str:
        return self._id

    def set_id(self, value: Optional[str]) -> None:
        """Set the resource ID; an empty value marks the resource as gone."""
        self._id = value or ""

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def get_if_set(self, key: str) -> Any:
        """Return the value for ``key``, or None when it is unset or empty."""
        value = self._values.get(key)
        return None if _is_zero(value) else value

    def set(self, key: str, value: Any) -> None:
        self._values[key] = value

    def is_new_resource(self) -> bool:
        return self._is_new_resource

    def timeout(self, operation: str) -> float:
        """Timeout in seconds for ``create``, ``read`` or ``delete``."""
        return getattr(self._timeouts, operation)

    def attributes(self) -> Dict[str, Any]:
        return dict(self._values)
