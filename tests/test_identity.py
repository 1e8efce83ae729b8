"""Tests for account id derivation."""

import hashlib
import unittest

from mail_autoconfig.modules.identity import id_for_account


def _settings(**overrides):
    settings = {
        "imap_host": "imap.example.com",
        "imap_port": 993,
        "imap_username": "jane@example.com",
        "imap_password": "hunter2",
        "smtp_host": "smtp.example.com",
        "smtp_port": 465,
        "smtp_username": "jane@example.com",
        "smtp_password": "hunter2",
    }
    settings.update(overrides)
    return settings


class TestIdForAccount(unittest.TestCase):

    def test_matches_compact_json_serialization(self):
        """The hashed string is the address followed by compact JSON in a fixed key order."""
        expected_source = (
            'jane@example.com{"imap_username":"jane@example.com",'
            '"imap_host":"imap.example.com","smtp_username":"jane@example.com",'
            '"smtp_host":"smtp.example.com"}'
        )
        expected = hashlib.sha256(expected_source.encode("utf-8")).hexdigest()[:8]

        self.assertEqual(id_for_account("jane@example.com", _settings()), expected)

    def test_id_is_eight_hex_characters(self):
        account_id = id_for_account("jane@example.com", _settings())
        self.assertEqual(len(account_id), 8)
        int(account_id, 16)

    def test_ports_security_and_passwords_do_not_change_id(self):
        base = id_for_account("jane@example.com", _settings())
        changed = id_for_account("jane@example.com", _settings(
            imap_port=143,
            smtp_port=587,
            imap_security="STARTTLS",
            imap_password="other",
            smtp_password="other",
        ))
        self.assertEqual(base, changed)

    def test_host_change_changes_id(self):
        base = id_for_account("jane@example.com", _settings())
        moved = id_for_account("jane@example.com", _settings(imap_host="mail.example.com"))
        self.assertNotEqual(base, moved)

    def test_unset_keys_are_omitted(self):
        with_none = _settings(smtp_username=None)
        without = _settings()
        del without["smtp_username"]
        self.assertEqual(
            id_for_account("jane@example.com", with_none),
            id_for_account("jane@example.com", without),
        )

    def test_non_ascii_is_not_escaped(self):
        settings = {"imap_host": "imap.bücher.de"}
        expected_source = 'jürgen@bücher.de{"imap_host":"imap.bücher.de"}'
        expected = hashlib.sha256(expected_source.encode("utf-8")).hexdigest()[:8]
        self.assertEqual(id_for_account("jürgen@bücher.de", settings), expected)


if __name__ == "__main__":
    unittest.main()
