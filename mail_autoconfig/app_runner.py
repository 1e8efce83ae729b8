import argparse
import getpass
import json
import sys
from typing import List, Optional

from .modules.account import Account
from .modules.connection_validator import AccountValidationError
from .modules.oauth import MICROSOFT_PROVIDERS, OAuthError
from .modules.provider_tables import ProviderTableError
from .utils.colors import Colors
from .utils.config import ConfigurationError
from .utils.sanitization import redact_settings

OAUTH_PROVIDERS = ("gmail",) + MICROSOFT_PROVIDERS


class AppRunner:
    """Command line front end for account autoconfiguration."""

    def __init__(self, args: Optional[List[str]] = None) -> None:
        """
        Initialize the runner with CLI arguments.

        Args:
            args: Command line arguments, without the program name (defaults to sys.argv[1:])
        """
        self.options = self.build_parser().parse_args(args)

    @staticmethod
    def build_parser() -> argparse.ArgumentParser:
        parser = argparse.ArgumentParser(
            prog="mail-autoconfig",
            description="Resolve IMAP/SMTP settings for an email address.",
        )
        parser.add_argument("--env", default=".env", help="Path to the .env file")
        commands = parser.add_subparsers(dest="command", required=True)

        resolve = commands.add_parser("resolve", help="Resolve settings for an address")
        resolve.add_argument("email", help="Email address to configure")
        resolve.add_argument("--provider", default="imap",
                             help="Provider hint, e.g. yahoo or a preset key")
        resolve.add_argument("--validate", action="store_true",
                             help="Prompt for a password and test the settings")
        resolve.add_argument("--json", action="store_true", help="Print JSON only")

        auth_url = commands.add_parser("auth-url", help="Print an OAuth authorization URL")
        auth_url.add_argument("provider", choices=OAUTH_PROVIDERS)

        sign_in = commands.add_parser("sign-in", help="Build an account from an OAuth code")
        sign_in.add_argument("provider", choices=OAUTH_PROVIDERS)
        sign_in.add_argument("code", help="Authorization code from the redirect")
        sign_in.add_argument("--json", action="store_true", help="Print JSON only")

        return parser

    def run(self) -> int:
        """Execute the selected command and return the process exit code."""
        from .main import AccountSetup

        try:
            setup = AccountSetup(self.options.env)

            if self.options.command == "auth-url":
                print(setup.auth_url(self.options.provider))
                return 0

            if self.options.command == "sign-in":
                account = setup.sign_in(self.options.provider, self.options.code)
            else:
                account = setup.resolve(self.options.email, self.options.provider)
                if self.options.validate:
                    self._prompt_password(account)
                    account = setup.validate(account)

        except (ConfigurationError, ProviderTableError) as e:
            print(Colors.error(f"Configuration error: {e}"), file=sys.stderr)
            return 2
        except OAuthError as e:
            print(Colors.error(f"Sign-in failed: {e}"), file=sys.stderr)
            return 1
        except AccountValidationError as e:
            print(Colors.error(f"Connection test failed: {e}"), file=sys.stderr)
            if e.tip:
                print(Colors.warning(f"Tip: {e.tip}"), file=sys.stderr)
            return 1

        self.print_account(account, as_json=getattr(self.options, "json", False))
        return 0

    @staticmethod
    def _prompt_password(account: Account) -> None:
        password = getpass.getpass(f"{Colors.BOLD}Password for {account.email_address}:{Colors.RESET} ")
        account.settings["imap_password"] = password
        if not account.settings.get("smtp_password"):
            account.settings["smtp_password"] = password

    @staticmethod
    def print_account(account: Account, as_json: bool = False) -> None:
        """Print an account with its credentials masked."""
        data = account.to_dict()
        data["settings"] = redact_settings(data["settings"])

        if as_json:
            print(json.dumps(data, indent=2))
            return

        settings = data["settings"]
        print(Colors.header(f"\n{account.email_address}"))
        if account.id:
            print(f"  {Colors.BOLD}Account id:{Colors.RESET} {account.id}")
        for protocol in ("imap", "smtp"):
            security = settings.get(f"{protocol}_security")
            print(
                f"  {Colors.BOLD}{protocol.upper():<5}{Colors.RESET}"
                f"{settings.get(f'{protocol}_host')}:{settings.get(f'{protocol}_port')}  "
                f"{Colors.security(security)}  "
                f"{Colors.GREY}user={settings.get(f'{protocol}_username')}{Colors.RESET}"
            )
        if settings.get("container_folder"):
            print(f"  {Colors.BOLD}Container folder:{Colors.RESET} {settings['container_folder']}")
        if account.authed_at:
            print(Colors.success(f"  Connection test passed at {account.authed_at.isoformat()}"))
        print()


def main(args: Optional[List[str]] = None) -> None:
    """Console script entry point"""
    try:
        sys.exit(AppRunner(args).run())
    except KeyboardInterrupt:
        print("\nInterrupted.")
        sys.exit(130)


if __name__ == "__main__":
    main()
