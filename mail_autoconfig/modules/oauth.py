"""
OAuth Account Builders
Builds Gmail and Microsoft accounts from an OAuth authorization code

Each builder exchanges the code for tokens, fetches the signed-in user's
profile, resolves connection settings for the address and validates the
result with the fresh access token.
"""

import json
import logging
from typing import Any, Dict, Optional
from urllib.parse import quote, urlencode

import requests

from .account import Account
from .connection_validator import AccountValidator
from .finalizer import finalize_and_validate_account
from .identity import id_for_account
from .settings_synthesizer import AccountSettingsResolver, expand_account_with_common_settings
from ..utils.config import OAuthConfig
from ..utils.sanitization import redact_email

logger = logging.getLogger(__name__)

GMAIL_AUTH_URL = "https://accounts.google.com/o/oauth2/auth"
GMAIL_TOKEN_URL = "https://www.googleapis.com/oauth2/v4/token"
GMAIL_PROFILE_URL = "https://www.googleapis.com/oauth2/v1/userinfo?alt=json"

O365_AUTH_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/authorize"
O365_TOKEN_URL = "https://login.microsoftonline.com/common/oauth2/v2.0/token"
GRAPH_PROFILE_URL = "https://graph.microsoft.com/v1.0/me"

# Outlook resource scopes cannot share a token with Graph scopes; the code
# is redeemed for Graph and the refresh token for IMAP/SMTP
OUTLOOK_RESOURCE_PREFIX = "https://outlook.office.com"

MICROSOFT_PROVIDERS = ("office365", "outlook")


class OAuthError(Exception):
    """An OAuth provider endpoint rejected a request"""

    def __init__(self, message: str, status: Optional[int] = None,
                 reason: str = "", body: Any = None):
        self.status = status
        self.reason = reason
        self.body = body
        super().__init__(message)


class OAuthExchangeError(OAuthError):
    """The token endpoint refused the authorization code"""


class ProfileFetchError(OAuthError):
    """The profile endpoint refused the access token"""


class MissingMailboxError(OAuthError):
    """The Microsoft account has no mailbox attached"""


def gmail_redirect_uri(oauth: OAuthConfig) -> str:
    return f"http://127.0.0.1:{oauth.local_server_port}"


def o365_redirect_uri(oauth: OAuthConfig) -> str:
    return f"http://localhost:{oauth.local_server_port}/desktop"


def _query_string(params: Dict[str, str]) -> str:
    # %20 rather than "+" for spaces in scope and prompt
    return urlencode(params, quote_via=quote)


def build_gmail_auth_url(oauth: OAuthConfig) -> str:
    """Authorization URL for the Google consent screen"""
    return f"{GMAIL_AUTH_URL}?" + _query_string({
        "client_id": oauth.gmail_client_id,
        "redirect_uri": gmail_redirect_uri(oauth),
        "response_type": "code",
        "scope": " ".join(oauth.gmail_scopes),
        "access_type": "offline",
        "prompt": "select_account consent",
    })


def build_o365_auth_url(oauth: OAuthConfig) -> str:
    """Authorization URL for the Microsoft identity platform, with PKCE"""
    return f"{O365_AUTH_URL}?" + _query_string({
        "client_id": oauth.o365_client_id,
        "redirect_uri": o365_redirect_uri(oauth),
        "response_type": "code",
        "scope": " ".join(oauth.o365_scopes),
        "response_mode": "query",
        "code_challenge": oauth.code_challenge,
        "code_challenge_method": "S256",
        "prompt": "select_account",
    })


def _response_body(response: requests.Response) -> Any:
    try:
        return response.json() or {}
    except ValueError:
        return response.text


class OAuthAccountBuilder:
    """Turns authorization codes into validated accounts"""

    def __init__(
        self,
        oauth: OAuthConfig,
        resolver: AccountSettingsResolver,
        validator: AccountValidator,
        session: Optional[requests.Session] = None,
        timeout: float = 30,
    ):
        """
        Args:
            oauth: Client ids, secrets, scopes and PKCE verifier
            resolver: Settings resolver run on the new account
            validator: Live connection tester for the finished account
            session: HTTP session (a new one is created if omitted)
            timeout: Per-request timeout in seconds
        """
        self.oauth = oauth
        self.resolver = resolver
        self.validator = validator
        self.session = session or requests.Session()
        self.timeout = timeout

    def _post_form(self, url: str, body: Dict[str, str]) -> Dict[str, Any]:
        response = self.session.post(
            url,
            data=body,
            headers={'Content-Type': 'application/x-www-form-urlencoded;charset=UTF-8'},
            timeout=self.timeout,
        )
        payload = _response_body(response)
        if not response.ok:
            raise OAuthExchangeError(
                f"OAuth Code exchange returned {response.status_code} "
                f"{response.reason}: {json.dumps(payload)}",
                status=response.status_code,
                reason=response.reason,
                body=payload,
            )
        if not isinstance(payload, dict) or not payload.get("access_token"):
            raise OAuthExchangeError(
                "OAuth Code exchange returned no access token",
                status=response.status_code,
                reason=response.reason,
                body=payload,
            )
        return payload

    def _get_profile(self, url: str, access_token: str, label: str) -> Dict[str, Any]:
        response = self.session.get(
            url,
            headers={'Authorization': f'Bearer {access_token}'},
            timeout=self.timeout,
        )
        payload = _response_body(response)
        if not response.ok:
            raise ProfileFetchError(
                f"{label} profile request returned {response.status_code} "
                f"{response.reason}: {json.dumps(payload)}",
                status=response.status_code,
                reason=response.reason,
                body=payload,
            )
        if not isinstance(payload, dict):
            raise ProfileFetchError(
                f"{label} profile request returned an unexpected body",
                status=response.status_code,
                reason=response.reason,
                body=payload,
            )
        return payload

    def _complete(self, account: Account, access_token: str) -> Account:
        account = expand_account_with_common_settings(account, self.resolver)
        account.id = id_for_account(account.email_address, account.settings)
        return finalize_and_validate_account(account, self.validator, access_token=access_token)

    def build_gmail_account(self, code: str) -> Account:
        """
        Build a Gmail account from a Google authorization code.

        Raises:
            OAuthExchangeError, ProfileFetchError: on provider errors
            AccountValidationError: if the resulting account cannot connect
        """
        tokens = self._post_form(GMAIL_TOKEN_URL, {
            "code": code,
            "client_id": self.oauth.gmail_client_id,
            "client_secret": self.oauth.gmail_client_secret,
            "redirect_uri": gmail_redirect_uri(self.oauth),
            "grant_type": "authorization_code",
        })

        me = self._get_profile(GMAIL_PROFILE_URL, tokens["access_token"], "Gmail")
        if not me.get("email"):
            raise ProfileFetchError("Gmail profile has no email address", body=me)
        logger.info(f"Google sign-in for {redact_email(me.get('email', ''))}")

        account = Account(
            name=me.get("name") or "",
            email_address=me.get("email") or "",
            provider="gmail",
            settings={
                "refresh_client_id": self.oauth.gmail_client_id,
                "refresh_token": tokens.get("refresh_token"),
            },
        )
        return self._complete(account, tokens["access_token"])

    def build_o365_account(self, code: str) -> Account:
        return self.build_microsoft_account(code, "office365")

    def build_outlook_account(self, code: str) -> Account:
        return self.build_microsoft_account(code, "outlook")

    def build_microsoft_account(self, code: str, provider: str) -> Account:
        """
        Build an Office 365 or Outlook.com account from a Microsoft authorization code.

        Args:
            code: Authorization code from the redirect
            provider: "office365" or "outlook"

        Raises:
            OAuthExchangeError, ProfileFetchError: on provider errors
            MissingMailboxError: if the signed-in user has no mailbox
            AccountValidationError: if the resulting account cannot connect
        """
        if provider not in MICROSOFT_PROVIDERS:
            raise ValueError(f"Unknown Microsoft provider: {provider}")

        tokens = self._post_form(O365_TOKEN_URL, {
            "code": code,
            "scope": " ".join(
                s for s in self.oauth.o365_scopes if not s.startswith(OUTLOOK_RESOURCE_PREFIX)
            ),
            "client_id": self.oauth.o365_client_id,
            "code_verifier": self.oauth.code_verifier,
            "grant_type": "authorization_code",
            "redirect_uri": o365_redirect_uri(self.oauth),
        })

        me = self._get_profile(GRAPH_PROFILE_URL, tokens["access_token"], "O365")
        if not me.get("mail"):
            raise MissingMailboxError(
                "There is no email mailbox associated with this account.",
                body=me,
            )
        logger.info(f"Microsoft sign-in for {redact_email(me['mail'])}")

        account = Account(
            name=me.get("displayName") or "",
            email_address=me["mail"],
            provider=provider,
            settings={
                "refresh_client_id": self.oauth.o365_client_id,
                "refresh_token": tokens.get("refresh_token"),
            },
        )
        mail_token = self._redeem_outlook_token(tokens.get("refresh_token"))
        return self._complete(account, mail_token)

    def _redeem_outlook_token(self, refresh_token: Optional[str]) -> str:
        """Trade the refresh token for an access token IMAP and SMTP accept"""
        if not refresh_token:
            raise OAuthExchangeError("OAuth Code exchange returned no refresh token")
        scopes = [s for s in self.oauth.o365_scopes if s.startswith(OUTLOOK_RESOURCE_PREFIX)]
        tokens = self._post_form(O365_TOKEN_URL, {
            "grant_type": "refresh_token",
            "refresh_token": refresh_token,
            "client_id": self.oauth.o365_client_id,
            "scope": " ".join(scopes + ["offline_access"]),
        })
        return tokens["access_token"]
