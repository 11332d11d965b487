import base64
import hashlib
import hmac

import boto3
import pytest
from botocore.stub import Stubber

from coglet.domain.exceptions import AmbiguousNameError, DirectoryError, NotFoundError
from coglet.domain.models import UserRecord
from coglet.infra.directory.cognito_directory import (
    CognitoDirectory,
    DirectorySession,
    computeSecretHash,
    formatAttributeValue,
    resolvePoolId,
)

POOL_ID = "us-east-1_pool1"


def make_client():
    session = boto3.session.Session(
        region_name="us-east-1",
        aws_access_key_id="test",
        aws_secret_access_key="test",
    )
    return session.client("cognito-idp")


def make_directory(client):
    return CognitoDirectory(DirectorySession(client=client, pool_id=POOL_ID))


def test_resolve_pool_by_id_and_unique_name():
    client = make_client()
    pools = {"UserPools": [{"Id": "1", "Name": "a"}, {"Id": "2", "Name": "a"}, {"Id": "3", "Name": "b"}]}
    with Stubber(client) as stub:
        stub.add_response("list_user_pools", pools, {"MaxResults": 60})
        stub.add_response("list_user_pools", pools, {"MaxResults": 60})
        assert resolvePoolId(client, "2") == "2"
        assert resolvePoolId(client, "b") == "3"
        stub.assert_no_pending_responses()


def test_resolve_pool_ambiguous_and_missing():
    client = make_client()
    pools = {"UserPools": [{"Id": "1", "Name": "a"}, {"Id": "2", "Name": "a"}, {"Id": "3", "Name": "b"}]}
    with Stubber(client) as stub:
        stub.add_response("list_user_pools", pools, {"MaxResults": 60})
        stub.add_response("list_user_pools", pools, {"MaxResults": 60})
        with pytest.raises(AmbiguousNameError):
            resolvePoolId(client, "a")
        with pytest.raises(NotFoundError) as exc:
            resolvePoolId(client, "c")
    assert "user pool not found: c" in str(exc.value)


def test_resolve_pool_follows_next_token():
    client = make_client()
    with Stubber(client) as stub:
        stub.add_response(
            "list_user_pools",
            {"UserPools": [{"Id": "1", "Name": "a"}], "NextToken": "page2"},
            {"MaxResults": 60},
        )
        stub.add_response(
            "list_user_pools",
            {"UserPools": [{"Id": "9", "Name": "late"}]},
            {"MaxResults": 60, "NextToken": "page2"},
        )
        assert resolvePoolId(client, "late") == "9"


def test_user_exists_maps_user_not_found_to_false():
    client = make_client()
    directory = make_directory(client)
    with Stubber(client) as stub:
        stub.add_client_error(
            "admin_get_user",
            service_error_code="UserNotFoundException",
            service_message="User does not exist.",
            http_status_code=400,
        )
        stub.add_response("admin_get_user", {"Username": "bob"}, {"UserPoolId": POOL_ID, "Username": "bob"})
        assert directory.userExists("alice") is False
        assert directory.userExists("bob") is True


def test_other_directory_errors_keep_message():
    client = make_client()
    directory = make_directory(client)
    with Stubber(client) as stub:
        stub.add_client_error(
            "admin_get_user",
            service_error_code="NotAuthorizedException",
            service_message="Access denied",
            http_status_code=400,
        )
        with pytest.raises(DirectoryError) as exc:
            directory.userExists("alice")
    assert exc.value.aws_code == "NotAuthorizedException"
    assert exc.value.code == "NOT_AUTHORIZED"
    assert "Access denied" in str(exc.value)


def test_create_user_and_set_attributes():
    client = make_client()
    directory = make_directory(client)
    record = UserRecord(
        username="alice",
        attributes={"email": "a@example.com", "email_verified": True},
        client_metadata={"source": "batch"},
    )
    with Stubber(client) as stub:
        stub.add_response(
            "admin_create_user",
            {},
            {"UserPoolId": POOL_ID, "Username": "alice", "ClientMetadata": {"source": "batch"}},
        )
        stub.add_response(
            "admin_update_user_attributes",
            {},
            {
                "UserPoolId": POOL_ID,
                "Username": "alice",
                "UserAttributes": [
                    {"Name": "email", "Value": "a@example.com"},
                    {"Name": "email_verified", "Value": "true"},
                ],
                "ClientMetadata": {"source": "batch"},
            },
        )
        directory.createUser(record)
        directory.setAttributes(record)
        # без атрибутов запрос не отправляется
        directory.setAttributes(UserRecord(username="alice"))
        stub.assert_no_pending_responses()


def test_set_password_empty_is_noop_and_reset_passes_metadata():
    client = make_client()
    directory = make_directory(client)
    with Stubber(client) as stub:
        stub.add_response(
            "admin_set_user_password",
            {},
            {"UserPoolId": POOL_ID, "Username": "alice", "Password": "Secret#123", "Permanent": True},
        )
        stub.add_response(
            "admin_reset_user_password",
            {},
            {"UserPoolId": POOL_ID, "Username": "alice", "ClientMetadata": {"k": "v"}},
        )
        directory.setPassword("alice", "", False)
        directory.setPassword("alice", "Secret#123", True)
        directory.triggerPasswordReset("alice", {"k": "v"})
        stub.assert_no_pending_responses()


def test_fetch_password_policy():
    client = make_client()
    directory = make_directory(client)
    with Stubber(client) as stub:
        stub.add_response(
            "describe_user_pool",
            {
                "UserPool": {
                    "Policies": {
                        "PasswordPolicy": {
                            "MinimumLength": 12,
                            "RequireUppercase": True,
                            "RequireNumbers": True,
                        }
                    }
                }
            },
            {"UserPoolId": POOL_ID},
        )
        policy = directory.fetchPasswordPolicy()
    assert policy.minimum_length == 12
    assert policy.require_uppercase is True
    assert policy.require_numbers is True
    assert policy.require_lowercase is False
    assert policy.require_symbols is False


def test_resolve_single_app_client_without_name():
    client = make_client()
    directory = make_directory(client)
    with Stubber(client) as stub:
        stub.add_response(
            "list_user_pool_clients",
            {"UserPoolClients": [{"ClientId": "c1", "ClientName": "web", "UserPoolId": POOL_ID}]},
            {"UserPoolId": POOL_ID, "MaxResults": 60},
        )
        stub.add_response(
            "describe_user_pool_client",
            {"UserPoolClient": {"ClientId": "c1", "ClientName": "web", "ClientSecret": "s3cr3t"}},
            {"UserPoolId": POOL_ID, "ClientId": "c1"},
        )
        appClient = directory.resolveAppClient(None)
    assert appClient.client_id == "c1"
    assert appClient.client_secret == "s3cr3t"


def test_resolve_app_client_requires_name_when_many():
    client = make_client()
    directory = make_directory(client)
    clients = {
        "UserPoolClients": [
            {"ClientId": "c1", "ClientName": "web", "UserPoolId": POOL_ID},
            {"ClientId": "c2", "ClientName": "web", "UserPoolId": POOL_ID},
            {"ClientId": "c3", "ClientName": "cli", "UserPoolId": POOL_ID},
        ]
    }
    with Stubber(client) as stub:
        stub.add_response("list_user_pool_clients", clients)
        stub.add_response("list_user_pool_clients", clients)
        stub.add_response("list_user_pool_clients", clients)
        stub.add_response(
            "describe_user_pool_client",
            {"UserPoolClient": {"ClientId": "c3", "ClientName": "cli"}},
            {"UserPoolId": POOL_ID, "ClientId": "c3"},
        )
        with pytest.raises(NotFoundError):
            directory.resolveAppClient(None)
        with pytest.raises(AmbiguousNameError):
            directory.resolveAppClient("web")
        appClient = directory.resolveAppClient("cli")
    assert appClient.client_id == "c3"
    assert appClient.client_secret is None


def test_authenticate_sends_secret_hash_only_with_secret():
    client = make_client()
    directory = make_directory(client)
    tokens = {
        "AuthenticationResult": {
            "AccessToken": "at",
            "IdToken": "it",
            "RefreshToken": "rt",
            "TokenType": "Bearer",
            "ExpiresIn": 3600,
        }
    }
    with Stubber(client) as stub:
        stub.add_response(
            "initiate_auth",
            tokens,
            {
                "ClientId": "c1",
                "AuthFlow": "USER_PASSWORD_AUTH",
                "AuthParameters": {
                    "USERNAME": "alice",
                    "PASSWORD": "pw",
                    "SECRET_HASH": computeSecretHash("alice", "c1", "s3cr3t"),
                },
            },
        )
        stub.add_response(
            "initiate_auth",
            tokens,
            {
                "ClientId": "c2",
                "AuthFlow": "USER_PASSWORD_AUTH",
                "AuthParameters": {"USERNAME": "alice", "PASSWORD": "pw"},
                "ClientMetadata": {"k": "v"},
            },
        )
        withSecret = directory.authenticate("alice", "pw", "c1", "s3cr3t")
        withoutSecret = directory.authenticate("alice", "pw", "c2", None, {"k": "v"})

    assert withSecret.access_token == "at"
    assert withSecret.expires_in == 3600
    assert withoutSecret.id_token == "it"


def test_compute_secret_hash():
    expected = base64.b64encode(
        hmac.new(b"secret", b"aliceclient", hashlib.sha256).digest()
    ).decode("ascii")
    assert computeSecretHash("alice", "client", "secret") == expected


def test_format_attribute_value():
    assert formatAttributeValue(True) == "true"
    assert formatAttributeValue(None) == ""
    assert formatAttributeValue(30) == "30"
    assert formatAttributeValue({"a": 1}) == '{"a":1}'
