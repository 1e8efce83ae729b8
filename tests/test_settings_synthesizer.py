"""
Tests for template resolution and settings synthesis

MX lookups and autoconfig fetches are replaced with stubs; the bundled
provider tables are used as-is unless a test needs fixture data.
"""

import unittest
from unittest.mock import MagicMock

from mail_autoconfig.modules.account import Account
from mail_autoconfig.modules.autoconfig_fetcher import AutoconfigFetcher
from mail_autoconfig.modules.provider_tables import ProviderTables
from mail_autoconfig.modules.provider_template import (
    SOURCE_AUTOCONFIG,
    SOURCE_FALLBACK,
    SOURCE_PRESET,
    SOURCE_STRUCTURED,
    ProviderTemplate,
    ServerTemplate,
)
from mail_autoconfig.modules.settings_synthesizer import (
    AccountSettingsResolver,
    expand_account_with_common_settings,
    infer_imap_port_security,
    infer_smtp_port_security,
    username_with_format,
)

SSL = "SSL / TLS"
STARTTLS = "STARTTLS"
NONE = "none"


class TestPortSecurityInference(unittest.TestCase):

    def test_imap(self):
        cases = [
            ((None, None), (993, SSL)),
            ((993, None), (993, SSL)),
            ((143, None), (143, NONE)),
            ((None, SSL), (993, SSL)),
            ((None, STARTTLS), (143, STARTTLS)),
            ((1143, STARTTLS), (1143, STARTTLS)),
            (("993", None), (993, SSL)),
        ]
        for args, expected in cases:
            with self.subTest(args=args):
                self.assertEqual(infer_imap_port_security(*args), expected)

    def test_smtp(self):
        cases = [
            ((None, None), (465, SSL)),
            ((587, None), (587, STARTTLS)),
            ((465, None), (465, SSL)),
            ((25, None), (25, NONE)),
            ((None, STARTTLS), (587, STARTTLS)),
            ((None, SSL), (465, SSL)),
            ((None, NONE), (25, NONE)),
        ]
        for args, expected in cases:
            with self.subTest(args=args):
                self.assertEqual(infer_smtp_port_security(*args), expected)

    def test_zero_port_counts_as_missing(self):
        self.assertEqual(infer_imap_port_security(0, None), (993, SSL))


class TestUsernameFormat(unittest.TestCase):

    def test_formats(self):
        self.assertEqual(username_with_format("jane@example.com", "email"), "jane@example.com")
        self.assertEqual(username_with_format("jane@example.com", "email-without-domain"), "jane")
        self.assertIsNone(username_with_format("jane@example.com", None))


class ResolverTestCase(unittest.TestCase):

    def setUp(self):
        self.mx_records = []
        self.mx_resolver = MagicMock(side_effect=lambda domain: list(self.mx_records))
        self.fetcher = MagicMock()
        self.fetcher.resolve.return_value = None
        self.resolver = self._resolver()

    def _resolver(self, tables=None, container_folder_default="Mailspring"):
        return AccountSettingsResolver(
            tables or ProviderTables.load(),
            mx_resolver=self.mx_resolver,
            autoconfig_fetcher=self.fetcher,
            container_folder_default=container_folder_default,
        )


class TestResolveTemplate(ResolverTestCase):

    def test_structured_wins_without_fetching_autoconfig(self):
        template = self.resolver.resolve_template(Account("jane@outlook.com"))

        self.assertEqual(template.source, SOURCE_STRUCTURED)
        self.fetcher.resolve.assert_not_called()

    def test_mx_lookup_uses_lowercased_domain(self):
        self.resolver.resolve_template(Account("Jane@Acme-Corp.TEST"))

        self.mx_resolver.assert_called_once_with("acme-corp.test")

    def test_custom_domain_on_workspace_uses_structured_template(self):
        self.mx_records = ["aspmx.l.google.com", "alt1.aspmx.l.google.com"]

        template = self.resolver.resolve_template(Account("jane@acme-corp.test"))

        self.assertEqual(template.source, SOURCE_STRUCTURED)
        self.assertEqual(template.imap.host, "imap.gmail.com")

    def test_autoconfig_consulted_before_presets(self):
        self.fetcher.resolve.return_value = ProviderTemplate(
            source=SOURCE_AUTOCONFIG,
            imap=ServerTemplate(host="imap.sonic.test", port="993", security=SSL),
            smtp=ServerTemplate(host="smtp.sonic.test", port="587", security=STARTTLS),
        )

        template = self.resolver.resolve_template(Account("jane@sonic.net"))

        self.assertEqual(template.source, SOURCE_AUTOCONFIG)
        self.fetcher.resolve.assert_called_once_with("jane@sonic.net")

    def test_autoconfig_404_on_both_urls_falls_through_to_presets(self):
        session = MagicMock()
        session.get.return_value = MagicMock(status_code=404, text="Not Found")
        resolver = AccountSettingsResolver(
            ProviderTables.load(),
            mx_resolver=self.mx_resolver,
            autoconfig_fetcher=AutoconfigFetcher(session=session),
        )

        template = resolver.resolve_template(Account("jane@gmail.com", provider="gmail"))

        self.assertEqual(template.source, SOURCE_PRESET)
        self.assertEqual(template.imap.host, "imap.gmail.com")
        self.assertEqual(session.get.call_count, 2)

    def test_preset_used_when_autoconfig_missing(self):
        template = self.resolver.resolve_template(Account("jane@gmail.com"))

        self.assertEqual(template.source, SOURCE_PRESET)

    def test_fallback_for_unknown_domain(self):
        with self.assertLogs("mail_autoconfig.modules.settings_synthesizer", level="INFO") as logs:
            template = self.resolver.resolve_template(Account("jane@example-unlisted-test.com"))

        self.assertEqual(template.source, SOURCE_FALLBACK)
        self.assertTrue(any("Using fallback template" in line for line in logs.output))


class TestExpandAccount(ResolverTestCase):

    def test_unknown_domain_gets_generic_settings(self):
        account = expand_account_with_common_settings(
            Account("jane@example-unlisted-test.com"), self.resolver
        )

        s = account.settings
        self.assertEqual(s["imap_host"], "imap.example-unlisted-test.com")
        self.assertEqual(s["imap_port"], 993)
        self.assertEqual(s["imap_security"], SSL)
        self.assertEqual(s["imap_username"], "jane@example-unlisted-test.com")
        self.assertEqual(s["smtp_host"], "smtp.example-unlisted-test.com")
        self.assertEqual(s["smtp_port"], 465)
        self.assertEqual(s["smtp_security"], SSL)
        self.assertEqual(s["smtp_username"], "jane@example-unlisted-test.com")
        self.assertEqual(s["container_folder"], "")
        self.assertFalse(s["imap_allow_insecure_ssl"])

    def test_gmail_preset(self):
        account = self.resolver.expand(Account("jane@gmail.com", provider="gmail"))

        self.assertEqual(account.settings["imap_host"], "imap.gmail.com")
        self.assertEqual(account.settings["smtp_host"], "smtp.gmail.com")
        self.assertEqual(account.settings["smtp_port"], 465)

    def test_existing_settings_take_precedence(self):
        original = Account("jane@gmail.com", settings={
            "imap_host": "imap.custom.test",
            "imap_password": "hunter2",
            "smtp_port": None,
        })

        account = self.resolver.expand(original)

        self.assertEqual(account.settings["imap_host"], "imap.custom.test")
        self.assertEqual(account.settings["smtp_port"], 465)
        self.assertEqual(account.settings["imap_password"], "hunter2")
        self.assertEqual(account.settings["smtp_password"], "hunter2")

    def test_explicit_smtp_password_kept(self):
        account = self.resolver.expand(Account("jane@gmail.com", settings={
            "imap_password": "imap-secret",
            "smtp_password": "smtp-secret",
        }))

        self.assertEqual(account.settings["smtp_password"], "smtp-secret")

    def test_input_account_is_not_modified(self):
        original = Account("jane@gmail.com", settings={"imap_password": "hunter2"})

        account = self.resolver.expand(original)

        self.assertIsNot(account, original)
        self.assertEqual(original.settings, {"imap_password": "hunter2"})

    def test_refresh_token_settings_survive(self):
        account = self.resolver.expand(Account("jane@gmail.com", settings={
            "refresh_client_id": "client",
            "refresh_token": "token",
        }))

        self.assertEqual(account.settings["refresh_token"], "token")
        self.assertEqual(account.settings["refresh_client_id"], "client")

    def test_local_part_usernames(self):
        account = self.resolver.expand(Account("jane@sonic.net"))

        self.assertEqual(account.settings["imap_username"], "jane")
        self.assertEqual(account.settings["smtp_username"], "jane")
        self.assertEqual(account.settings["smtp_security"], STARTTLS)

    def test_alias_with_insecure_ssl(self):
        account = self.resolver.expand(Account("jane@proton.me"))

        self.assertEqual(account.settings["imap_host"], "127.0.0.1")
        self.assertEqual(account.settings["imap_port"], 1143)
        self.assertTrue(account.settings["imap_allow_insecure_ssl"])
        self.assertTrue(account.settings["smtp_allow_insecure_ssl"])

    def test_security_only_preset_infers_ports(self):
        account = self.resolver.expand(Account("jane@posteo.net"))

        self.assertEqual(account.settings["imap_port"], 143)
        self.assertEqual(account.settings["smtp_port"], 587)

    def test_provider_hint_with_domain_placeholder(self):
        account = self.resolver.expand(Account("jane@small-host.test", provider="cpanel"))

        self.assertEqual(account.settings["imap_host"], "mail.small-host.test")
        self.assertEqual(account.settings["smtp_host"], "mail.small-host.test")

    def test_autoconfig_ports_kept_verbatim(self):
        self.fetcher.resolve.return_value = ProviderTemplate(
            source=SOURCE_AUTOCONFIG,
            imap=ServerTemplate(host="mail.%EMAILDOMAIN%", port="993", security=SSL),
            smtp=ServerTemplate(host="mail.%EMAILDOMAIN%", port="587", security=STARTTLS,
                                username_format="email-without-domain"),
        )

        account = self.resolver.expand(Account("jane@autoconf.test"))

        self.assertEqual(account.settings["imap_host"], "mail.autoconf.test")
        self.assertEqual(account.settings["imap_port"], "993")
        self.assertEqual(account.settings["smtp_username"], "jane")

    def test_unencrypted_smtp_logs_warning(self):
        tables = ProviderTables({}, {
            "oldhost.test": {
                "imap_host": "mail.oldhost.test",
                "imap_port": 993,
                "smtp_host": "mail.oldhost.test",
                "smtp_port": 25,
            },
        })
        resolver = self._resolver(tables)

        with self.assertLogs("mail_autoconfig.modules.settings_synthesizer", level="WARNING"):
            account = resolver.expand(Account("jane@oldhost.test"))

        self.assertEqual(account.settings["smtp_security"], NONE)
        self.assertEqual(account.settings["smtp_port"], 25)


class TestContainerFolderDefault(ResolverTestCase):

    def test_sentinel_leaves_template_value(self):
        account = self.resolver.expand(Account("jane@gmail.com"))

        self.assertEqual(account.settings["container_folder"], "")

    def test_deployment_default_fills_empty_folder(self):
        resolver = self._resolver(container_folder_default="[Mailspring]")

        account = resolver.expand(Account("jane@gmail.com"))

        self.assertEqual(account.settings["container_folder"], "[Mailspring]")

    def test_deployment_default_does_not_replace_existing_folder(self):
        resolver = self._resolver(container_folder_default="[Mailspring]")

        account = resolver.expand(Account("jane@gmail.com", settings={"container_folder": "INBOX"}))

        self.assertEqual(account.settings["container_folder"], "INBOX")

    def test_template_folder_wins_over_deployment_default(self):
        tables = ProviderTables({}, {
            "folders.test": {
                "imap_host": "mail.folders.test",
                "smtp_host": "mail.folders.test",
                "container_folder": "Folders",
            },
        })
        resolver = self._resolver(tables, container_folder_default="[Mailspring]")

        account = resolver.expand(Account("jane@folders.test"))

        self.assertEqual(account.settings["container_folder"], "Folders")

    def test_structured_result_keeps_empty_folder(self):
        resolver = self._resolver(container_folder_default="[Mailspring]")

        account = resolver.expand(Account("jane@outlook.com"))

        self.assertEqual(account.settings["container_folder"], "")

    def test_autoconfig_result_keeps_empty_folder(self):
        self.fetcher.resolve.return_value = ProviderTemplate(
            source=SOURCE_AUTOCONFIG,
            imap=ServerTemplate(host="imap.sonic.test", port="993", security=SSL),
            smtp=ServerTemplate(host="smtp.sonic.test", port="587", security=STARTTLS),
        )
        resolver = self._resolver(container_folder_default="[Mailspring]")

        account = resolver.expand(Account("jane@sonic.net"))

        self.assertEqual(account.settings["container_folder"], "")

    def test_fallback_result_gets_deployment_default(self):
        resolver = self._resolver(container_folder_default="[Mailspring]")

        account = resolver.expand(Account("jane@example-unlisted-test.com"))

        self.assertEqual(account.settings["container_folder"], "[Mailspring]")


if __name__ == "__main__":
    unittest.main()
