"""
Tests for the QuickSight account subscription lifecycle operations.
"""

from unittest.mock import Mock

import pytest
from botocore.exceptions import EndpointConnectionError, NoCredentialsError, ProfileNotFound

from quicksub.config.resources import Timeouts
from quicksub.provider import account_subscription
from quicksub.provider.conns import AWSClient
from quicksub.provider.diagnostics import Severity
from quicksub.provider.errors import (
    CreateError,
    DeleteError,
    EmptyResultError,
    NotFoundError,
    ReadError,
    WaitError,
)
from quicksub.provider.resource_data import ResourceData
from quicksub.retry import UnexpectedStateError, WaitNotFoundError, WaitTimeoutError

ACCOUNT_ID = "123456789012"


def _new_data(**overrides):
    values = {
        "account_name": "acme-analytics",
        "authentication_method": "IAM_AND_QUICKSIGHT",
        "edition": "ENTERPRISE",
        "notification_email": "ops@example.com",
    }
    values.update(overrides)
    return ResourceData(values, is_new_resource=True)


def _existing_data(id=ACCOUNT_ID):
    return ResourceData({"account_name": "acme-analytics"}, id=id)


def _account(status="ACCOUNT_CREATED", **extra):
    info = {
        "AccountName": "acme-analytics",
        "Edition": "ENTERPRISE",
        "NotificationEmail": "ops@example.com",
        "AccountSubscriptionStatus": status,
    }
    info.update(extra)
    return info


class TestExpandCreateInput:
    def test_required_fields_only(self):
        d = _new_data(first_name="", admin_group=[], realm=None)
        request = account_subscription.expand_create_account_subscription_input(d, ACCOUNT_ID)

        assert request == {
            "AwsAccountId": ACCOUNT_ID,
            "AccountName": "acme-analytics",
            "AuthenticationMethod": "IAM_AND_QUICKSIGHT",
            "Edition": "ENTERPRISE",
            "NotificationEmail": "ops@example.com",
        }

    def test_optional_fields(self):
        d = _new_data(
            authentication_method="ACTIVE_DIRECTORY",
            active_directory_name="corp.example.com",
            directory_id="d-1234567890",
            realm="CORP.EXAMPLE.COM",
            admin_group=["qs-admins"],
            reader_group=["qs-readers", "qs-viewers"],
            first_name="Jane",
            last_name="Doe",
            email_address="jane@example.com",
            contact_number="+1 555 0100",
        )
        request = account_subscription.expand_create_account_subscription_input(d, ACCOUNT_ID)

        assert request["ActiveDirectoryName"] == "corp.example.com"
        assert request["DirectoryId"] == "d-1234567890"
        assert request["Realm"] == "CORP.EXAMPLE.COM"
        assert request["AdminGroup"] == ["qs-admins"]
        assert request["ReaderGroup"] == ["qs-readers", "qs-viewers"]
        assert "AuthorGroup" not in request
        assert request["FirstName"] == "Jane"
        assert request["LastName"] == "Doe"
        assert request["EmailAddress"] == "jane@example.com"
        assert request["ContactNumber"] == "+1 555 0100"


class TestCreate:
    def test_create_uses_ambient_account(self, op_ctx, aws_client, fake_quicksight):
        d = _new_data()
        diags = account_subscription.create(op_ctx, d, aws_client)

        assert diags == []
        assert d.id == ACCOUNT_ID
        assert d.get("aws_account_id") == ACCOUNT_ID
        assert d.get("account_subscription_status") == "ACCOUNT_CREATED"
        assert fake_quicksight.calls[0][1]["AwsAccountId"] == ACCOUNT_ID
        # Two consecutive ACCOUNT_CREATED observations, then the final read
        assert fake_quicksight.count("describe") == 3

    def test_create_uses_explicit_account(self, op_ctx, aws_client, fake_quicksight):
        d = _new_data(aws_account_id="111122223333")
        diags = account_subscription.create(op_ctx, d, aws_client)

        assert not diags.has_error()
        assert d.id == "111122223333"
        assert fake_quicksight.calls[0][1]["AwsAccountId"] == "111122223333"

    def test_create_api_error(self, op_ctx, aws_client, client_error):
        conn = Mock()
        conn.create_account_subscription.side_effect = client_error(
            "AccessDeniedException", "CreateAccountSubscription"
        )
        aws_client.quicksight_client.return_value = conn

        d = _new_data()
        diags = account_subscription.create(op_ctx, d, aws_client)

        assert diags.has_error()
        err = diags.errors[0]
        assert isinstance(err, CreateError)
        assert str(err).startswith("creating QuickSight Account Subscription (acme-analytics): ")
        assert d.id == ""
        conn.describe_account_subscription.assert_not_called()

    def test_create_empty_response(self, op_ctx, aws_client):
        conn = Mock()
        conn.create_account_subscription.return_value = {"Status": 200}
        aws_client.quicksight_client.return_value = conn

        d = _new_data()
        diags = account_subscription.create(op_ctx, d, aws_client)

        err = diags.errors[0]
        assert isinstance(err, CreateError)
        assert isinstance(err.cause, EmptyResultError)
        assert str(err) == "creating QuickSight Account Subscription (acme-analytics): empty result"
        assert d.id == ""

    def test_create_tolerates_eventual_consistency(self, op_ctx, aws_client, client_error):
        conn = Mock()
        conn.create_account_subscription.return_value = {"SignupResponse": {"accountName": "acme-analytics"}}
        not_found = client_error("ResourceNotFoundException")
        conn.describe_account_subscription.side_effect = [not_found] * 5 + [
            {"AccountInfo": _account("SIGNUP_ATTEMPT_IN_PROGRESS")},
            {"AccountInfo": _account("ACCOUNT_CREATED")},
            {"AccountInfo": _account("OK")},
            {"AccountInfo": _account("OK")},
        ]
        aws_client.quicksight_client.return_value = conn

        d = _new_data()
        diags = account_subscription.create(op_ctx, d, aws_client)

        assert diags == []
        assert d.get("account_subscription_status") == "OK"

    def test_create_wait_failure_keeps_id(self, op_ctx, aws_client, fake_quicksight):
        fake_quicksight.initial_status = "SIGNUP_ATTEMPT_IN_PROGRESS"
        d = ResourceData(_new_data().attributes(), timeouts=Timeouts(create=0), is_new_resource=True)

        diags = account_subscription.create(op_ctx, d, aws_client)

        err = diags.errors[0]
        assert isinstance(err, WaitError)
        assert isinstance(err.cause, WaitTimeoutError)
        assert str(err).startswith(f"waiting for creation QuickSight Account Subscription ({ACCOUNT_ID}): ")
        assert d.id == ACCOUNT_ID

    def test_create_credential_failure_is_diagnostic(self, op_ctx):
        session = Mock()
        sts = Mock()
        sts.get_caller_identity.side_effect = NoCredentialsError()
        session.client.side_effect = lambda name, region_name=None: {"sts": sts, "quicksight": Mock()}[name]
        meta = AWSClient(region="us-east-1", session=session)

        d = _new_data()
        diags = account_subscription.create(op_ctx, d, meta)

        err = diags.errors[0]
        assert isinstance(err, CreateError)
        assert isinstance(err.cause, NoCredentialsError)
        assert str(err).startswith("creating QuickSight Account Subscription (acme-analytics): ")
        assert d.id == ""

    def test_create_profile_failure_is_diagnostic(self, op_ctx, aws_client):
        aws_client.quicksight_client.side_effect = ProfileNotFound(profile="missing")

        d = _new_data()
        diags = account_subscription.create(op_ctx, d, aws_client)

        assert isinstance(diags.errors[0], CreateError)
        assert d.id == ""


class TestWaits:
    def test_created_after_two_consecutive_observations(self, op_ctx):
        conn = Mock()
        conn.describe_account_subscription.side_effect = [
            {"AccountInfo": _account("SIGNUP_ATTEMPT_IN_PROGRESS")},
            {"AccountInfo": _account("SIGNUP_ATTEMPT_IN_PROGRESS")},
            {"AccountInfo": _account("ACCOUNT_CREATED")},
            {"AccountInfo": _account("ACCOUNT_CREATED")},
        ]

        info = account_subscription.wait_account_subscription_created(op_ctx, conn, ACCOUNT_ID, 600)

        assert info["AccountSubscriptionStatus"] == "ACCOUNT_CREATED"
        assert conn.describe_account_subscription.call_count == 4

    def test_created_unexpected_state(self, op_ctx):
        conn = Mock()
        conn.describe_account_subscription.return_value = {"AccountInfo": _account("UNSUBSCRIBED")}

        with pytest.raises(UnexpectedStateError):
            account_subscription.wait_account_subscription_created(op_ctx, conn, ACCOUNT_ID, 600)

    def test_deleted_on_first_unsubscribed(self, op_ctx):
        conn = Mock()
        conn.describe_account_subscription.return_value = {"AccountInfo": _account("UNSUBSCRIBED")}

        account_subscription.wait_account_subscription_deleted(op_ctx, conn, ACCOUNT_ID, 600)

        assert conn.describe_account_subscription.call_count == 1
        conn.describe_account_subscription.assert_called_with(AwsAccountId=ACCOUNT_ID)


class TestRead:
    def test_read_maps_fields(self, op_ctx, aws_client, fake_quicksight):
        fake_quicksight.accounts[ACCOUNT_ID] = _account(
            IAMIdentityCenterInstanceArn="arn:aws:sso:::instance/ssoins-1"
        )
        d = _existing_data()

        diags = account_subscription.read(op_ctx, d, aws_client)

        assert diags == []
        assert d.id == ACCOUNT_ID
        assert d.get("account_name") == "acme-analytics"
        assert d.get("edition") == "ENTERPRISE"
        assert d.get("notification_email") == "ops@example.com"
        assert d.get("account_subscription_status") == "ACCOUNT_CREATED"
        assert d.get("iam_identity_center_instance_arn") == "arn:aws:sso:::instance/ssoins-1"

    def test_read_unsubscribed_removes_from_state(self, op_ctx, aws_client, fake_quicksight):
        fake_quicksight.accounts[ACCOUNT_ID] = _account("UNSUBSCRIBED", AccountName="renamed")
        d = _existing_data()

        diags = account_subscription.read(op_ctx, d, aws_client)

        assert not diags.has_error()
        assert [w.severity for w in diags] == [Severity.WARNING]
        assert diags[0].summary == f"QuickSight Account Subscription ({ACCOUNT_ID}) unsubscribed, removing from state"
        assert d.id == ""
        assert d.get("account_name") == "acme-analytics"

    def test_read_not_found_removes_from_state(self, op_ctx, aws_client):
        d = _existing_data()
        diags = account_subscription.read(op_ctx, d, aws_client)

        assert not diags.has_error()
        assert diags[0].severity == Severity.WARNING
        assert "not found, removing from state" in diags[0].summary
        assert d.id == ""

    def test_read_not_found_on_new_resource_is_error(self, op_ctx, aws_client):
        d = _new_data()
        d.set_id(ACCOUNT_ID)

        diags = account_subscription.read(op_ctx, d, aws_client)

        err = diags.errors[0]
        assert isinstance(err, ReadError)
        assert isinstance(err.cause, NotFoundError)
        assert str(err).startswith(f"reading QuickSight Account Subscription ({ACCOUNT_ID}): ")

    def test_read_api_error(self, op_ctx, aws_client, client_error):
        conn = Mock()
        conn.describe_account_subscription.side_effect = client_error("ThrottlingException")
        aws_client.quicksight_client.return_value = conn
        d = _existing_data()

        diags = account_subscription.read(op_ctx, d, aws_client)

        assert isinstance(diags.errors[0], ReadError)
        assert d.id == ACCOUNT_ID

    def test_read_error_not_masked_as_unsubscribed(self, op_ctx, aws_client):
        conn = Mock()
        conn.describe_account_subscription.side_effect = EndpointConnectionError(endpoint_url="https://quicksight")
        aws_client.quicksight_client.return_value = conn
        d = _existing_data()

        diags = account_subscription.read(op_ctx, d, aws_client)

        assert diags.has_error()
        assert d.id == ACCOUNT_ID

    def test_read_profile_failure_is_diagnostic(self, op_ctx, aws_client):
        aws_client.quicksight_client.side_effect = ProfileNotFound(profile="missing")
        d = _existing_data()

        diags = account_subscription.read(op_ctx, d, aws_client)

        assert isinstance(diags.errors[0], ReadError)
        assert d.id == ACCOUNT_ID


class TestDelete:
    def test_delete_waits_for_unsubscribed(self, op_ctx, aws_client, fake_quicksight):
        fake_quicksight.accounts[ACCOUNT_ID] = _account()
        d = _existing_data()

        diags = account_subscription.delete(op_ctx, d, aws_client)

        assert diags == []
        assert fake_quicksight.count("delete") == 1
        # The first UNSUBSCRIBED observation ends the wait
        assert fake_quicksight.count("describe") == 1

    def test_delete_waits_through_in_progress(self, op_ctx, aws_client):
        conn = Mock()
        conn.describe_account_subscription.side_effect = [
            {"AccountInfo": _account("UNSUBSCRIBE_IN_PROGRESS")},
            {"AccountInfo": _account("UNSUBSCRIBE_IN_PROGRESS")},
            {"AccountInfo": _account("UNSUBSCRIBED")},
        ]
        aws_client.quicksight_client.return_value = conn

        diags = account_subscription.delete(op_ctx, _existing_data(), aws_client)

        assert diags == []
        assert conn.describe_account_subscription.call_count == 3

    def test_delete_not_found_is_success(self, op_ctx, aws_client, fake_quicksight):
        diags = account_subscription.delete(op_ctx, _existing_data(), aws_client)

        assert diags == []
        assert fake_quicksight.count("describe") == 0

    def test_delete_api_error(self, op_ctx, aws_client, client_error):
        conn = Mock()
        conn.delete_account_subscription.side_effect = client_error(
            "PreconditionNotMetException", "DeleteAccountSubscription"
        )
        aws_client.quicksight_client.return_value = conn

        diags = account_subscription.delete(op_ctx, _existing_data(), aws_client)

        err = diags.errors[0]
        assert isinstance(err, DeleteError)
        assert str(err).startswith(f"deleting QuickSight Account Subscription ({ACCOUNT_ID}): ")
        conn.describe_account_subscription.assert_not_called()

    def test_delete_wait_not_found_is_error(self, op_ctx, aws_client, client_error):
        conn = Mock()
        conn.describe_account_subscription.side_effect = client_error("ResourceNotFoundException")
        aws_client.quicksight_client.return_value = conn

        diags = account_subscription.delete(op_ctx, _existing_data(), aws_client)

        err = diags.errors[0]
        assert isinstance(err, WaitError)
        assert isinstance(err.cause, WaitNotFoundError)
        assert str(err).startswith(f"waiting for delete QuickSight Account Subscription ({ACCOUNT_ID}): ")

    def test_delete_profile_failure_is_diagnostic(self, op_ctx, aws_client):
        aws_client.quicksight_client.side_effect = ProfileNotFound(profile="missing")

        diags = account_subscription.delete(op_ctx, _existing_data(), aws_client)

        err = diags.errors[0]
        assert isinstance(err, DeleteError)
        assert isinstance(err.cause, ProfileNotFound)


class TestFindAccountSubscription:
    def test_found(self, fake_quicksight):
        fake_quicksight.accounts[ACCOUNT_ID] = _account()
        info = account_subscription.find_account_subscription_by_id(fake_quicksight, ACCOUNT_ID)
        assert info["AccountName"] == "acme-analytics"

    def test_not_found(self, fake_quicksight):
        with pytest.raises(NotFoundError) as exc_info:
            account_subscription.find_account_subscription_by_id(fake_quicksight, ACCOUNT_ID)

        assert exc_info.value.last_request == {"AwsAccountId": ACCOUNT_ID}
        assert exc_info.value.last_error is not None

    def test_empty_result(self):
        conn = Mock()
        conn.describe_account_subscription.return_value = {"Status": 200}

        with pytest.raises(EmptyResultError):
            account_subscription.find_account_subscription_by_id(conn, ACCOUNT_ID)

    def test_other_errors_propagate(self, client_error):
        conn = Mock()
        conn.describe_account_subscription.side_effect = client_error("AccessDeniedException")

        with pytest.raises(Exception) as exc_info:
            account_subscription.find_account_subscription_by_id(conn, ACCOUNT_ID)
        assert not isinstance(exc_info.value, NotFoundError)
