"""
Connection Validator Module
Checks that resolved IMAP and SMTP settings actually accept a login

The finalizer only depends on the ``AccountValidator`` protocol;
``MailConnectionValidator`` is the default implementation, logging in over
imaplib and smtplib with the account's security mode.
"""

import imaplib
import logging
import smtplib
import ssl
from typing import Any, Dict, Optional, Protocol

from .account import SECURITY_SSL, SECURITY_STARTTLS, Account
from ..utils.sanitization import redact_email, sanitize_for_logging
from ..utils.security_validators import apply_ssl_overrides, create_secure_ssl_context

logger = logging.getLogger(__name__)


class AccountValidationError(Exception):
    """A live connection test failed"""

    def __init__(self, protocol: str, host: Any, port: Any, message: str,
                 tip: Optional[str] = None):
        self.protocol = protocol
        self.host = host
        self.port = port
        self.message = message
        self.tip = tip
        super().__init__(f"{protocol} connection to {host}:{port} failed: {message}")


class AccountValidator(Protocol):
    """Anything able to prove an account's settings work"""

    def test(self, account: Account, access_token: Optional[str] = None) -> None:
        """Raise AccountValidationError if the account cannot connect"""
        ...


def xoauth2_string(username: str, access_token: str) -> str:
    return f"user={username}\x01auth=Bearer {access_token}\x01\x01"


class MailConnectionValidator:
    """
    Logs in to the account's IMAP and SMTP servers and logs straight out.

    No mail is read or sent. Password accounts use LOGIN / AUTH LOGIN; when an
    OAuth access token is supplied both protocols authenticate with XOAUTH2.
    """

    def __init__(self, timeout: int = 30):
        """
        Args:
            timeout: Socket timeout for each connection, in seconds
        """
        self.timeout = timeout

    def test(self, account: Account, access_token: Optional[str] = None) -> None:
        settings = account.settings
        logger.info(f"Testing connection settings for {redact_email(account.email_address)}")
        self._test_imap(settings, account.email_address, access_token)
        self._test_smtp(settings, account.email_address, access_token)
        logger.info("IMAP and SMTP connection tests passed")

    def _ssl_context(self, settings: Dict[str, Any], protocol: str) -> ssl.SSLContext:
        context = create_secure_ssl_context()
        apply_ssl_overrides(
            context,
            bool(settings.get(f"{protocol}_allow_insecure_ssl")),
            logger.warning,
        )
        return context

    def _open_imap(self, settings: Dict[str, Any]) -> imaplib.IMAP4:
        host = settings.get("imap_host")
        port = int(settings.get("imap_port"))
        security = settings.get("imap_security")
        context = self._ssl_context(settings, "imap")

        if security == SECURITY_SSL:
            return imaplib.IMAP4_SSL(host, port, ssl_context=context, timeout=self.timeout)

        connection = imaplib.IMAP4(host, port, timeout=self.timeout)
        if security == SECURITY_STARTTLS:
            connection.starttls(ssl_context=context)
        return connection

    def _test_imap(self, settings: Dict[str, Any], email_address: str,
                   access_token: Optional[str]) -> None:
        host, port = settings.get("imap_host"), settings.get("imap_port")
        username = settings.get("imap_username") or email_address
        connection = None

        logger.info(f"Connecting to IMAP {host}:{port} ({settings.get('imap_security')})")
        try:
            connection = self._open_imap(settings)
            if access_token:
                auth_string = xoauth2_string(username, access_token)
                connection.authenticate("XOAUTH2", lambda _: auth_string.encode())
            else:
                connection.login(username, settings.get("imap_password") or "")
            connection.noop()
        except (imaplib.IMAP4.error, OSError, ValueError, TypeError) as e:
            message = sanitize_for_logging(str(e))
            tip = self._get_auth_tip(message, host or "")
            logger.error(f"IMAP connection error: {message}")
            raise AccountValidationError("IMAP", host, port, message, tip) from e
        finally:
            if connection is not None:
                try:
                    connection.logout()
                except (imaplib.IMAP4.error, OSError):
                    logger.debug("IMAP logout failed or connection already closed")

    def _open_smtp(self, settings: Dict[str, Any]) -> smtplib.SMTP:
        host = settings.get("smtp_host")
        port = int(settings.get("smtp_port"))
        security = settings.get("smtp_security")
        context = self._ssl_context(settings, "smtp")

        if security == SECURITY_SSL:
            return smtplib.SMTP_SSL(host, port, context=context, timeout=self.timeout)

        connection = smtplib.SMTP(host, port, timeout=self.timeout)
        connection.ehlo()
        if security == SECURITY_STARTTLS:
            connection.starttls(context=context)
            connection.ehlo()
        return connection

    def _test_smtp(self, settings: Dict[str, Any], email_address: str,
                   access_token: Optional[str]) -> None:
        host, port = settings.get("smtp_host"), settings.get("smtp_port")
        username = settings.get("smtp_username") or email_address
        connection = None

        logger.info(f"Connecting to SMTP {host}:{port} ({settings.get('smtp_security')})")
        try:
            connection = self._open_smtp(settings)
            if access_token:
                auth_string = xoauth2_string(username, access_token)
                connection.auth("XOAUTH2", lambda challenge=None: auth_string)
            else:
                connection.login(username, settings.get("smtp_password") or "")
            connection.noop()
        except (smtplib.SMTPException, OSError, ValueError, TypeError) as e:
            message = sanitize_for_logging(str(e))
            tip = self._get_auth_tip(message, host or "")
            logger.error(f"SMTP connection error: {message}")
            raise AccountValidationError("SMTP", host, port, message, tip) from e
        finally:
            if connection is not None:
                try:
                    connection.quit()
                except (smtplib.SMTPException, OSError):
                    logger.debug("SMTP quit failed or connection already closed")

    @staticmethod
    def _get_auth_tip(error_msg: str, server: str) -> Optional[str]:
        """
        Get an actionable tip for authentication failures

        Args:
            error_msg: Error message from the server
            server: Hostname that rejected the login

        Returns:
            User-friendly tip, or None if the error is not an auth failure
        """
        msg_lower = error_msg.lower()
        server_lower = server.lower()

        auth_keywords = [
            "authentication failed", "login failed", "invalid credentials",
            "logon failure", "authenticate", "username and password not accepted"
        ]
        if not any(k in msg_lower for k in auth_keywords):
            return None

        if "outlook" in server_lower or "office365" in server_lower:
            return (
                "Personal Outlook/Hotmail accounts no longer accept passwords. "
                "Sign in with Microsoft instead."
            )

        if "gmail" in server_lower:
            return (
                "Gmail requires 2-Step Verification and an App Password for "
                "password logins, or sign in with Google instead."
            )

        if "yahoo" in server_lower or "aol" in server_lower:
            return (
                "Yahoo and AOL require an App Password generated from account "
                "security settings."
            )

        return (
            "Check your username and password. If using 2FA, you likely need "
            "an App Password."
        )
