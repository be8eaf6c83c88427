from typing import Any, Dict
from unittest.mock import Mock

import pytest
from botocore.exceptions import ClientError

from quicksub.config.environment import Environment
from quicksub.provider.conns import AWSClient
from quicksub.retry import OperationContext

ACCOUNT_ID = "123456789012"


def make_client_error(code: str, operation: str = "DescribeAccountSubscription") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": f"{code} raised"}}, operation)


class FakeQuickSight:
    """In-memory stand-in for the boto3 QuickSight client."""

    def __init__(self, initial_status: str = "ACCOUNT_CREATED"):
        self.initial_status = initial_status
        self.accounts: Dict[str, Dict[str, Any]] = {}
        self.calls: list = []

    def create_account_subscription(self, **kwargs):
        self.calls.append(("create", kwargs))
        account_id = kwargs["AwsAccountId"]
        self.accounts[account_id] = {
            "AccountName": kwargs["AccountName"],
            "Edition": kwargs["Edition"],
            "NotificationEmail": kwargs["NotificationEmail"],
            "AuthenticationType": kwargs["AuthenticationMethod"],
            "AccountSubscriptionStatus": self.initial_status,
        }
        return {"SignupResponse": {"accountName": kwargs["AccountName"]}, "Status": 200, "RequestId": "req-1"}

    def describe_account_subscription(self, AwsAccountId):
        self.calls.append(("describe", AwsAccountId))
        if AwsAccountId not in self.accounts:
            raise make_client_error("ResourceNotFoundException")
        return {"AccountInfo": dict(self.accounts[AwsAccountId]), "Status": 200, "RequestId": "req-2"}

    def delete_account_subscription(self, AwsAccountId):
        self.calls.append(("delete", AwsAccountId))
        if AwsAccountId not in self.accounts:
            raise make_client_error("ResourceNotFoundException", "DeleteAccountSubscription")
        self.accounts[AwsAccountId]["AccountSubscriptionStatus"] = "UNSUBSCRIBED"
        return {"Status": 200, "RequestId": "req-3"}

    def count(self, operation: str) -> int:
        return sum(1 for name, _ in self.calls if name == operation)


@pytest.fixture(autouse=True)
def isolated_environment(tmp_path, monkeypatch):
    """Keep tests away from the real home directory, .env files and AWS settings."""
    monkeypatch.setenv("HOME", str(tmp_path))
    monkeypatch.chdir(tmp_path)
    for key in ("AWS_REGION", "AWS_PROFILE", "QUICKSUB_CONFIG_PATH", "LOG_LEVEL", "QUICKSUB_LOG_LEVEL", "DEBUG"):
        monkeypatch.delenv(key, raising=False)
    Environment.reset()
    yield
    Environment.reset()


@pytest.fixture
def op_ctx():
    """An operation context whose sleeps return immediately."""
    return Mock(spec=OperationContext)


@pytest.fixture
def fake_quicksight():
    return FakeQuickSight()


@pytest.fixture
def aws_client(fake_quicksight):
    client = Mock(spec=AWSClient)
    client.account_id = ACCOUNT_ID
    client.quicksight_client.return_value = fake_quicksight
    return client


@pytest.fixture
def client_error():
    return make_client_error
