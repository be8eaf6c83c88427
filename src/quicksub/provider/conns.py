"""
AWS connection holder passed to every provider operation.

Keeps the boto3 session, the resolved region and the ambient account ID in
one object so that operations never read process-wide globals.
"""

from typing import Any, Optional

import boto3

from quicksub.config.environment import Environment
from quicksub.config.logging_config import get_logger

log = get_logger(__name__)


class AWSClient:
    """
    Lazily created AWS service clients plus the caller's account ID.

    Args:
        region: AWS region (default: ``Environment.get_aws_region()``; None defers to boto3)
        profile: Named credentials profile (optional)
        account_id: Ambient account ID; resolved through STS when omitted
        session: Pre-built boto3 session (optional, mostly for tests)
    """

    def __init__(
        self,
        region: Optional[str] = None,
        profile: Optional[str] = None,
        account_id: Optional[str] = None,
        session: Optional[boto3.session.Session] = None,
    ):
        self.region = region or Environment.get_aws_region()
        self.profile = profile
        self._account_id = account_id
        self._session = session
        self._quicksight: Any = None

    @classmethod
    def from_environment(cls, region: Optional[str] = None, profile: Optional[str] = None) -> "AWSClient":
        return cls(
            region=region or Environment.get_aws_region(),
            profile=profile or Environment.get_aws_profile(),
        )

    @property
    def session(self) -> boto3.session.Session:
        if self._session is None:
            self._session = boto3.session.Session(profile_name=self.profile, region_name=self.region)
        return self._session

    @property
    def account_id(self) -> str:
        """The account the credentials belong to, looked up once via STS."""
        if self._account_id is None:
            identity = self.session.client("sts", region_name=self.region).get_caller_identity()
            self._account_id = identity["Account"]
            log.debug(f"Resolved caller account ID {self._account_id}")
        return self._account_id

    def quicksight_client(self) -> Any:
        """Return the (cached) boto3 QuickSight client."""
        if self._quicksight is None:
            self._quicksight = self.session.client("quicksight", region_name=self.region)
        return self._quicksight
