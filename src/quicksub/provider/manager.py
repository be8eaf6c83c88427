"""
Resource manager orchestrating lifecycle operations.

This module plays the role of the host for the account subscription
resource. It handles:
- Change detection (comparing configured arguments with recorded state)
- Plan generation (showing what will change)
- Apply (create, or destroy-then-create for replacements)
- Refresh (drift detection through read)
- Destroy
- State persistence
"""

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

from quicksub.config.logging_config import get_logger
from quicksub.config.resources import (
    AccountSubscriptionResource,
    ResourceState,
    ResourceType,
    get_resource_config_path,
    load_resource_config,
)
from quicksub.provider import account_subscription
from quicksub.provider.conns import AWSClient
from quicksub.provider.diagnostics import Diagnostics, Severity
from quicksub.provider.resource_data import ResourceData
from quicksub.provider.state import StateManager
from quicksub.retry import OperationContext

log = get_logger(__name__)

# Computed arguments are only compared when they are configured explicitly
_OPTIONAL_COMPUTED = {"aws_account_id"}


def _normalize(value: Any) -> Any:
    if value is None or value == "" or value == []:
        return None
    return value


def diff_force_new(resource: AccountSubscriptionResource) -> Dict[str, Tuple[Any, Any]]:
    """
    Compare configured arguments with the attributes recorded in state.

    Returns:
        Mapping of argument name to (recorded, configured) for every
        argument that differs. All of them force replacement.
    """
    desired = resource.arguments()
    recorded = resource.state.attributes
    diffs: Dict[str, Tuple[Any, Any]] = {}

    for key in resource.force_new_fields():
        new = _normalize(desired.get(key))
        if key in _OPTIONAL_COMPUTED and new is None:
            continue
        old = _normalize(recorded.get(key))
        if old != new:
            diffs[key] = (old, new)

    return diffs


class ResourceManager:
    """
    Plans and applies the resources declared in resources.yaml.

    Args:
        config_path: Path to resources.yaml (optional, uses default if not provided)
        client: AWS client (optional, built from the provider block and environment)
        state_manager: State manager (optional)
        ctx: Operation context used to cancel long waits (optional)
    """

    def __init__(
        self,
        config_path: Optional[Path] = None,
        client: Optional[AWSClient] = None,
        state_manager: Optional[StateManager] = None,
        ctx: Optional[OperationContext] = None,
    ):
        self.config_path = config_path or get_resource_config_path()
        self.config = load_resource_config(self.config_path)
        self.state_manager = state_manager or StateManager(config_path=self.config_path)
        self.ctx = ctx or OperationContext()
        self._client = client

    @property
    def client(self) -> AWSClient:
        if self._client is None:
            self._client = AWSClient.from_environment(
                region=self.config.provider.region,
                profile=self.config.provider.profile,
            )
        return self._client

    def get_resource(self, name: str) -> AccountSubscriptionResource:
        """
        Get a resource with its current recorded state.

        Raises:
            KeyError: If the resource is not declared
        """
        if name not in self.config.resources:
            raise KeyError(f"Resource '{name}' not found")

        resource = self.config.resources[name]
        state = self.state_manager.read_state(name)
        if state is None:
            return resource
        return resource.model_copy(update={"state": ResourceState.model_validate(state)})

    def list_resources(self) -> List[Dict[str, Any]]:
        """
        List all declared resources with their recorded status.
        """
        resources = []

        for name in self.config.resources:
            resource = self.get_resource(name)
            state = resource.state

            resources.append(
                {
                    "name": name,
                    "type": ResourceType(resource.type).value,
                    "account_name": resource.account_name,
                    "id": state.id,
                    "status": state.attributes.get("account_subscription_status") if state.id else "not created",
                    "tainted": state.tainted,
                    "last_applied": state.last_applied,
                }
            )

        return resources

    def show(self, name: str) -> Dict[str, Any]:
        resource = self.get_resource(name)
        return {
            "resource_name": name,
            "type": ResourceType(resource.type).value,
            "arguments": resource.arguments(),
            "timeouts": resource.timeouts.model_dump(),
            "state": resource.state.model_dump(mode="json"),
        }

    def plan(self, name: str) -> Dict[str, Any]:
        """
        Generate a plan showing what changes apply would make.

        Raises:
            KeyError: If the resource is not declared
        """
        resource = self.get_resource(name)
        label = f"{account_subscription.RES_NAME_ACCOUNT_SUBSCRIPTION}: {resource.account_name}"

        plan: Dict[str, Any] = {
            "resource_name": name,
            "type": ResourceType(resource.type).value,
            "changes": [],
            "will_create": [],
            "will_replace": [],
        }

        state = resource.state
        if not state.id:
            plan["changes"].append("Resource not created yet - will create")
            plan["will_create"].append(label)
            return plan

        if state.tainted:
            plan["changes"].append("Resource is tainted (previous create did not finish) - will replace")
            plan["will_replace"].append(label)
            return plan

        diffs = diff_force_new(resource)
        for key, (old, new) in diffs.items():
            plan["changes"].append(f"{key}: {old!r} -> {new!r} (forces replacement)")
        if diffs:
            plan["will_replace"].append(label)

        return plan

    def refresh(self, name: str) -> Dict[str, Any]:
        """
        Re-read the remote resource and record what was observed.

        A resource that no longer exists remotely is removed from state.
        """
        results = self._new_results(name)
        self._refresh(name, results)
        return results

    def apply(self, name: str, dry_run: bool = False) -> Dict[str, Any]:
        """
        Refresh, plan and execute the changes for a resource.

        Args:
            name: Resource name
            dry_run: If True, only return the plan

        Returns:
            Dictionary with apply results
        """
        if dry_run:
            return self.plan(name)

        results = self._new_results(name)

        if not self._refresh(name, results):
            return results

        plan = self.plan(name)
        results["changes"] = plan["changes"]

        if plan["will_replace"]:
            results["steps"].append("Replacing resource: destroying existing subscription...")
            if not self._destroy(name, results):
                return results

        if plan["will_create"] or plan["will_replace"]:
            self._create(name, results)
        else:
            results["steps"].append("No changes - resource is up to date")

        return results

    def destroy(self, name: str) -> Dict[str, Any]:
        """
        Delete the remote resource and clear its state.
        """
        results = self._new_results(name)
        self._destroy(name, results)
        return results

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @staticmethod
    def _new_results(name: str) -> Dict[str, Any]:
        return {"resource_name": name, "status": "success", "steps": [], "errors": []}

    @staticmethod
    def _record(results: Dict[str, Any], diags: Diagnostics) -> bool:
        for diag in diags:
            if diag.severity == Severity.ERROR:
                results["errors"].append(diag.summary)
                results["status"] = "error"
            else:
                results["steps"].append(f"Warning: {diag.summary}")
        return not diags.has_error()

    def _refresh(self, name: str, results: Dict[str, Any]) -> bool:
        resource = self.get_resource(name)
        if not resource.state.id:
            return True

        d = ResourceData.from_state(resource)
        log.info(f"Refreshing {name} ({d.id})")
        if not self._record(results, account_subscription.read(self.ctx, d, self.client)):
            return False

        if not d.id:
            self.state_manager.clear_state(name)
            results["steps"].append("Resource no longer exists remotely - removed from state")
        else:
            self.state_manager.write_state(name, {"attributes": d.attributes()}, update_timestamp=False)
            status = d.get("account_subscription_status")
            results["steps"].append(f"Refreshed state (status: {status})")
        return True

    def _create(self, name: str, results: Dict[str, Any]) -> bool:
        resource = self.get_resource(name)
        d = ResourceData.from_config(resource)

        results["steps"].append(f"Creating account subscription '{resource.account_name}'...")
        diags = account_subscription.create(self.ctx, d, self.client)
        ok = self._record(results, diags)

        if d.id:
            self.state_manager.write_state(
                name,
                {"id": d.id, "tainted": not ok, "attributes": d.attributes()},
            )
        if ok:
            results["steps"].append(
                f"Created account subscription {d.id} (status: {d.get('account_subscription_status')})"
            )
        elif d.id:
            results["steps"].append(f"Recorded {d.id} as tainted; the next apply will replace it")
        return ok

    def _destroy(self, name: str, results: Dict[str, Any]) -> bool:
        resource = self.get_resource(name)
        if not resource.state.id:
            results["steps"].append("Resource not created - nothing to destroy")
            return True

        d = ResourceData.from_state(resource)
        results["steps"].append(f"Deleting account subscription {d.id}...")
        if not self._record(results, account_subscription.delete(self.ctx, d, self.client)):
            return False

        self.state_manager.clear_state(name)
        results["steps"].append("Account subscription unsubscribed")
        return True
