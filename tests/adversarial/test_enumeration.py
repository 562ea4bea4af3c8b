"""
Adversarial tests for account enumeration.

An attacker trying emails must not be able to tell registered from
unregistered addresses through login failures, password reset requests
or verification resends, including when the mail relay is failing.
"""

from unittest.mock import Mock

import pytest

from src.domain.lifecycle import AccountLifecycleService
from src.domain.ports import Failure

pytestmark = pytest.mark.adversarial

CANDIDATE_EMAILS = ["alice@x.com", "ALICE@x.com", "nobody@x.com", "pending@x.com"]


@pytest.fixture
def populated(service: AccountLifecycleService) -> AccountLifecycleService:
    service.register("alice@x.com", "secret1")
    token = service.repository.find_by_email("alice@x.com").email_verification_token
    service.verify_email(token)
    service.register("pending@x.com", "secret1")
    return service


class TestEnumeration:
    """Responses to candidate emails are indistinguishable."""

    def test_password_reset_responses_identical(self, populated) -> None:
        results = {populated.request_password_reset(email) for email in CANDIDATE_EMAILS}
        assert len(results) == 1

    def test_password_reset_identical_when_relay_fails(self, populated, dispatcher: Mock) -> None:
        baseline = populated.request_password_reset("nobody@x.com")
        dispatcher.dispatch.side_effect = RuntimeError("relay down")

        assert populated.request_password_reset("alice@x.com") == baseline

    def test_resend_responses_identical(self, populated) -> None:
        results = {populated.resend_verification(email) for email in CANDIDATE_EMAILS}
        assert len(results) == 1

    def test_login_failures_identical(self, populated) -> None:
        failures = {
            populated.login("nobody@x.com", "secret1"),
            populated.login("alice@x.com", "wrong-password"),
            populated.login("pending@x.com", "wrong-password"),
        }
        assert len(failures) == 1
        assert isinstance(failures.pop(), Failure)
