"""
QuickSight account subscription resource.

Lifecycle operations for ``quicksight_account_subscription``:

- create: CreateAccountSubscription, then wait until the account is created
- read: DescribeAccountSubscription, mapping observed values into the resource data
- delete: DeleteAccountSubscription, then wait until the account is unsubscribed

There is no update: every argument forces replacement, which the resource
manager handles by deleting and re-creating.

Each operation takes an ``OperationContext`` (cancellation), a
``ResourceData`` and an ``AWSClient`` and returns ``Diagnostics``.
"""

from typing import Any, Dict, Tuple

from botocore.exceptions import BotoCoreError, ClientError

from quicksub.config.logging_config import get_logger
from quicksub.provider.conns import AWSClient
from quicksub.provider.diagnostics import Diagnostics
from quicksub.provider.errors import (
    ACTION_WAITING_FOR_CREATION,
    ACTION_WAITING_FOR_DELETION,
    CreateError,
    DeleteError,
    EmptyResultError,
    NotFoundError,
    ReadError,
    WaitError,
    is_not_found,
    is_resource_not_found_exception,
)
from quicksub.provider.resource_data import ResourceData
from quicksub.retry import CancellationError, OperationContext, StateChangeConf, StateChangeError

log = get_logger(__name__)

SERVICE = "QuickSight"
RES_NAME_ACCOUNT_SUBSCRIPTION = "Account Subscription"

# Not documented by AWS; observed from DescribeAccountSubscription
STATUS_CREATED = "ACCOUNT_CREATED"
STATUS_OK = "OK"
STATUS_SIGNUP_ATTEMPT_IN_PROGRESS = "SIGNUP_ATTEMPT_IN_PROGRESS"
STATUS_UNSUBSCRIBE_IN_PROGRESS = "UNSUBSCRIBE_IN_PROGRESS"
STATUS_UNSUBSCRIBED = "UNSUBSCRIBED"

CREATE_NOT_FOUND_CHECKS = 20
CREATE_CONTINUOUS_TARGET_OCCURENCE = 2

REMOTE_ERRORS = (ClientError, BotoCoreError)
WAIT_ERRORS = (StateChangeError, CancellationError, NotFoundError, ClientError, BotoCoreError)

_OPTIONAL_STRING_ARGUMENTS = (
    ("active_directory_name", "ActiveDirectoryName"),
    ("contact_number", "ContactNumber"),
    ("directory_id", "DirectoryId"),
    ("email_address", "EmailAddress"),
    ("first_name", "FirstName"),
    ("iam_identity_center_instance_arn", "IAMIdentityCenterInstanceArn"),
    ("last_name", "LastName"),
    ("realm", "Realm"),
)

_OPTIONAL_LIST_ARGUMENTS = (
    ("admin_group", "AdminGroup"),
    ("author_group", "AuthorGroup"),
    ("reader_group", "ReaderGroup"),
)


def expand_create_account_subscription_input(d: ResourceData, account_id: str) -> Dict[str, Any]:
    """
    Build CreateAccountSubscription parameters.

    Optional arguments are only included when set to a non-empty value.
    """
    request: Dict[str, Any] = {
        "AwsAccountId": account_id,
        "AccountName": d.get("account_name"),
        "AuthenticationMethod": str(d.get("authentication_method")),
        "Edition": str(d.get("edition")),
        "NotificationEmail": d.get("notification_email"),
    }

    for key, param in _OPTIONAL_STRING_ARGUMENTS:
        value = d.get_if_set(key)
        if value is not None:
            request[param] = value

    for key, param in _OPTIONAL_LIST_ARGUMENTS:
        value = d.get_if_set(key)
        if value is not None:
            request[param] = [str(v) for v in value]

    return request


def create(ctx: OperationContext, d: ResourceData, meta: AWSClient) -> Diagnostics:
    diags = Diagnostics()

    # Client creation and the STS lookup fail on missing profiles or credentials
    try:
        conn = meta.quicksight_client()
        account_id = d.get_if_set("aws_account_id") or meta.account_id
    except REMOTE_ERRORS as err:
        return diags.append_error(CreateError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.get("account_name"), err))

    request = expand_create_account_subscription_input(d, account_id)

    try:
        out = conn.create_account_subscription(**request)
    except REMOTE_ERRORS as err:
        return diags.append_error(CreateError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.get("account_name"), err))

    if not out or not out.get("SignupResponse"):
        return diags.append_error(
            CreateError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.get("account_name"), EmptyResultError(request))
        )

    d.set_id(account_id)
    d.set("aws_account_id", account_id)

    try:
        wait_account_subscription_created(ctx, conn, d.id, d.timeout("create"))
    except WAIT_ERRORS as err:
        return diags.append_error(
            WaitError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.id, err, action=ACTION_WAITING_FOR_CREATION)
        )

    diags.extend(read(ctx, d, meta))
    return diags


def _remove_from_state(diags: Diagnostics, d: ResourceData, reason: str) -> Diagnostics:
    message = f"QuickSight Account Subscription ({d.id}) {reason}, removing from state"
    log.warning(message)
    d.set_id("")
    return diags.append_warning(message)


def read(ctx: OperationContext, d: ResourceData, meta: AWSClient) -> Diagnostics:
    diags = Diagnostics()

    try:
        conn = meta.quicksight_client()
        info = find_account_subscription_by_id(conn, d.id)
    except NotFoundError as err:
        if not d.is_new_resource():
            return _remove_from_state(diags, d, "not found")
        return diags.append_error(ReadError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.id, err))
    except REMOTE_ERRORS as err:
        return diags.append_error(ReadError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.id, err))

    # The account record is never removed; UNSUBSCRIBED is the deleted state
    if not d.is_new_resource() and info.get("AccountSubscriptionStatus") == STATUS_UNSUBSCRIBED:
        return _remove_from_state(diags, d, "unsubscribed")

    d.set("account_name", info.get("AccountName"))
    d.set("edition", info.get("Edition"))
    d.set("notification_email", info.get("NotificationEmail"))
    d.set("account_subscription_status", info.get("AccountSubscriptionStatus"))
    d.set("iam_identity_center_instance_arn", info.get("IAMIdentityCenterInstanceArn"))

    return diags


def delete(ctx: OperationContext, d: ResourceData, meta: AWSClient) -> Diagnostics:
    diags = Diagnostics()

    log.info(f"Deleting QuickSight Account Subscription {d.id}")

    try:
        conn = meta.quicksight_client()
        conn.delete_account_subscription(AwsAccountId=d.id)
    except ClientError as err:
        if is_resource_not_found_exception(err):
            return diags
        return diags.append_error(DeleteError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.id, err))
    except BotoCoreError as err:
        return diags.append_error(DeleteError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.id, err))

    try:
        wait_account_subscription_deleted(ctx, conn, d.id, d.timeout("delete"))
    except WAIT_ERRORS as err:
        return diags.append_error(
            WaitError(SERVICE, RES_NAME_ACCOUNT_SUBSCRIPTION, d.id, err, action=ACTION_WAITING_FOR_DELETION)
        )

    return diags


def wait_account_subscription_created(
    ctx: OperationContext, conn: Any, id: str, timeout: float
) -> Dict[str, Any]:
    conf = StateChangeConf(
        pending=[STATUS_SIGNUP_ATTEMPT_IN_PROGRESS],
        target=[STATUS_CREATED, STATUS_OK],
        source=AccountSubscriptionStatus(conn, id),
        timeout=timeout,
        not_found_checks=CREATE_NOT_FOUND_CHECKS,
        continuous_target_occurence=CREATE_CONTINUOUS_TARGET_OCCURENCE,
    )
    return conf.wait_for_state(ctx)


def wait_account_subscription_deleted(
    ctx: OperationContext, conn: Any, id: str, timeout: float
) -> Dict[str, Any]:
    conf = StateChangeConf(
        pending=[STATUS_CREATED, STATUS_OK, STATUS_UNSUBSCRIBE_IN_PROGRESS],
        target=[STATUS_UNSUBSCRIBED],
        source=AccountSubscriptionStatus(conn, id),
        timeout=timeout,
    )
    return conf.wait_for_state(ctx)


class AccountSubscriptionStatus:
    """Status source polling DescribeAccountSubscription for one account."""

    def __init__(self, conn: Any, id: str):
        self.conn = conn
        self.id = id

    def fetch_status(self) -> Tuple[Dict[str, Any], str]:
        info = find_account_subscription_by_id(self.conn, self.id)
        return info, info.get("AccountSubscriptionStatus") or ""

    def is_not_found(self, err: Exception) -> bool:
        return is_not_found(err)


def find_account_subscription_by_id(conn: Any, id: str) -> Dict[str, Any]:
    """
    Describe the account subscription of account ``id``.

    Raises:
        NotFoundError: The service reported ResourceNotFoundException.
        EmptyResultError: The response carried no AccountInfo.
        ClientError/BotoCoreError: Any other remote failure, unchanged.
    """
    request = {"AwsAccountId": id}

    try:
        out = conn.describe_account_subscription(**request)
    except ClientError as err:
        if is_resource_not_found_exception(err):
            raise NotFoundError(last_error=err, last_request=request) from err
        raise

    if not out or not out.get("AccountInfo"):
        raise EmptyResultError(request)

    return out["AccountInfo"]
