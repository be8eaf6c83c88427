"""
Resource state management for quicksub.

State lives next to the configuration in resources.yaml. This module reads
and updates the ``state`` block of a resource under an exclusive file lock so
that two concurrent ``quicksub`` processes cannot interleave their writes.
"""

import fcntl
import time
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Generator, Optional

from quicksub.config.resources import (
    ResourceState,
    get_resource_config_path,
    load_resource_config,
    save_resource_config,
)


class StateManager:
    """
    Manages resource state with atomic writes and file locking.

    Args:
        config_path: Path to resources.yaml (optional, uses default if not provided)
    """

    def __init__(self, config_path: Optional[Path] = None):
        self.config_path = config_path or get_resource_config_path()
        self.lock_path = self.config_path.with_suffix(".lock")

    @contextmanager
    def lock(self, timeout: int = 30) -> Generator[None, None, None]:
        """
        Acquire an exclusive lock on the resource configuration file.

        Args:
            timeout: Maximum time to wait for lock acquisition (seconds)

        Raises:
            TimeoutError: If lock cannot be acquired within timeout
        """
        self.lock_path.parent.mkdir(parents=True, exist_ok=True)
        lock_file = open(self.lock_path, "w")

        start_time = time.time()
        acquired = False

        try:
            while time.time() - start_time < timeout:
                try:
                    fcntl.flock(lock_file.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
                    acquired = True
                    break
                except OSError:
                    time.sleep(0.1)

            if not acquired:
                raise TimeoutError(f"Could not acquire lock on {self.lock_path} within {timeout} seconds")

            yield

        finally:
            if acquired:
                fcntl.flock(lock_file.fileno(), fcntl.LOCK_UN)
            lock_file.close()

    def read_state(self, resource_name: str) -> Optional[Dict[str, Any]]:
        """
        Read the state for a specific resource.

        Returns:
            Dictionary containing resource state, or None if the resource is not declared

        Raises:
            FileNotFoundError: If resources.yaml doesn't exist
        """
        with self.lock():
            config = load_resource_config(self.config_path)

            resource = config.resources.get(resource_name)
            if not resource:
                return None

            return resource.state.model_dump(mode="json")

    def write_state(
        self,
        resource_name: str,
        state_updates: Dict[str, Any],
        update_timestamp: bool = True,
    ) -> None:
        """
        Update the state for a specific resource.

        Args:
            resource_name: Name of the resource
            state_updates: Dictionary of state fields to update
            update_timestamp: Whether to update the last_applied timestamp (default: True)

        Raises:
            FileNotFoundError: If resources.yaml doesn't exist
            KeyError: If the resource is not declared
        """
        with self.lock():
            config = load_resource_config(self.config_path)

            resource = config.resources.get(resource_name)
            if not resource:
                raise KeyError(f"Resource '{resource_name}' not found")

            updates = dict(state_updates)
            if update_timestamp:
                updates["last_applied"] = datetime.now(timezone.utc)

            current_state = resource.state.model_dump()
            current_state.update(updates)
            resource.state = ResourceState.model_validate(current_state)

            save_resource_config(config, self.config_path)

    def clear_state(self, resource_name: str) -> None:
        """
        Reset the state for a resource, keeping its configuration.

        Raises:
            KeyError: If the resource is not declared
        """
        with self.lock():
            config = load_resource_config(self.config_path)

            resource = config.resources.get(resource_name)
            if not resource:
                raise KeyError(f"Resource '{resource_name}' not found")

            resource.state = ResourceState()
            save_resource_config(config, self.config_path)
