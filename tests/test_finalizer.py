"""Tests for account finalization."""

import unittest
from unittest.mock import MagicMock

from mail_autoconfig.modules.account import Account
from mail_autoconfig.modules.connection_validator import AccountValidationError
from mail_autoconfig.modules.finalizer import finalize_and_validate_account
from mail_autoconfig.modules.identity import id_for_account


def _account(**settings_overrides):
    settings = {
        "imap_host": "  imap.example.com ",
        "imap_port": "993",
        "imap_username": "jane@example.com",
        "imap_security": "SSL / TLS",
        "smtp_host": "smtp.example.com\n",
        "smtp_port": 465,
        "smtp_username": "jane@example.com",
        "smtp_security": "SSL / TLS",
    }
    settings.update(settings_overrides)
    return Account("jane@example.com", settings=settings)


class TestFinalizeAndValidateAccount(unittest.TestCase):

    def setUp(self):
        self.validator = MagicMock()

    def test_normalizes_settings(self):
        account = finalize_and_validate_account(_account(), self.validator)

        self.assertEqual(account.settings["imap_host"], "imap.example.com")
        self.assertEqual(account.settings["smtp_host"], "smtp.example.com")
        self.assertEqual(account.settings["imap_port"], 993)
        self.assertIsInstance(account.settings["imap_port"], int)
        self.assertEqual(account.settings["smtp_port"], 465)

    def test_id_computed_from_trimmed_hosts(self):
        account = finalize_and_validate_account(_account(), self.validator)

        expected = id_for_account("jane@example.com", {
            "imap_host": "imap.example.com",
            "imap_username": "jane@example.com",
            "smtp_host": "smtp.example.com",
            "smtp_username": "jane@example.com",
        })
        self.assertEqual(account.id, expected)

    def test_email_like_label_replaced_with_address(self):
        account = _account()
        account.label = "old@address.test"

        finalize_and_validate_account(account, self.validator)

        self.assertEqual(account.label, "jane@example.com")

    def test_custom_label_kept(self):
        account = _account()
        account.label = "Work"

        finalize_and_validate_account(account, self.validator)

        self.assertEqual(account.label, "Work")

    def test_validator_receives_access_token(self):
        account = _account()

        finalize_and_validate_account(account, self.validator, access_token="ya29.token")

        self.validator.test.assert_called_once_with(account, access_token="ya29.token")

    def test_authed_at_stamped_on_success(self):
        account = finalize_and_validate_account(_account(), self.validator)

        self.assertIsNotNone(account.authed_at)
        self.assertIsNotNone(account.authed_at.tzinfo)

    def test_validation_failure_propagates(self):
        self.validator.test.side_effect = AccountValidationError(
            "IMAP", "imap.example.com", 993, "Authentication failed"
        )
        account = _account()

        with self.assertRaises(AccountValidationError):
            finalize_and_validate_account(account, self.validator)

        self.assertIsNone(account.authed_at)

    def test_float_port_coerced(self):
        account = finalize_and_validate_account(
            _account(imap_port=993.0, smtp_port=587.0), self.validator
        )

        self.assertEqual(account.settings["imap_port"], 993)
        self.assertIsInstance(account.settings["imap_port"], int)
        self.assertEqual(account.settings["smtp_port"], 587)

    def test_non_numeric_port_rejected(self):
        with self.assertRaises(ValueError):
            finalize_and_validate_account(_account(imap_port="imaps"), self.validator)

        self.validator.test.assert_not_called()


if __name__ == "__main__":
    unittest.main()
