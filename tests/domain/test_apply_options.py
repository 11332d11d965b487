import pytest

from coglet.domain.exceptions import ValidationError
from coglet.domain.filter import UsernameFilter
from coglet.domain.models import (
    ApplyOptions,
    PasswordPolicy,
    buildApplyOptions,
    withPassword,
    withPermanentPassword,
    withRandomPassword,
    withSendPasswordResetCode,
)


def test_modifiers_fold_in_order():
    opt = buildApplyOptions([withPassword("pw"), withPermanentPassword(), withSendPasswordResetCode()])
    assert opt == ApplyOptions(password="pw", permanent_password=True, send_password_reset_code=True)


def test_no_modifiers_gives_defaults():
    assert buildApplyOptions([]) == ApplyOptions()


@pytest.mark.parametrize(
    "modifiers",
    [
        [withPassword("pw"), withRandomPassword()],
        [withRandomPassword(), withPassword("pw")],
    ],
)
def test_password_and_random_password_conflict(modifiers):
    with pytest.raises(ValidationError) as exc:
        buildApplyOptions(modifiers)
    assert str(exc.value) == "cannot specify password with random password"


def test_password_policy_from_cognito_defaults():
    policy = PasswordPolicy.fromCognito({})
    assert policy == PasswordPolicy(minimum_length=8)


def test_username_filter_is_unanchored_search():
    f = UsernameFilter("adm")
    assert f.matches("sysadmin")
    assert not f.matches("alice")
    assert UsernameFilter("^adm$").matches("adm")
    assert not UsernameFilter("^adm$").matches("admin")


def test_empty_filter_matches_everything():
    assert UsernameFilter(None).matches("anyone")
    assert UsernameFilter("").matches("")


def test_invalid_filter_pattern():
    with pytest.raises(ValidationError) as exc:
        UsernameFilter("(")
    assert exc.value.field == "filter"
