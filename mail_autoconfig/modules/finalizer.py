"""
Account finalization: normalize resolved settings, validate, stamp success
"""

import logging
import numbers
from datetime import datetime, timezone
from typing import Optional

from .account import Account
from .connection_validator import AccountValidator
from .identity import id_for_account
from ..utils.sanitization import redact_email

logger = logging.getLogger(__name__)


def _coerce_port(value):
    if value is None or value == "":
        return value
    if isinstance(value, numbers.Number):
        return int(value)
    return int(str(value).strip())


def finalize_and_validate_account(account: Account, validator: AccountValidator,
                                  access_token: Optional[str] = None) -> Account:
    """
    Normalize an account's settings and prove they work.

    Hosts are trimmed, ports coerced to int, the id recomputed (host or
    username may have been edited) and an email-looking label replaced by the
    address itself. The validator runs last; ``authed_at`` is only stamped
    when it succeeds.

    Args:
        account: Account with populated settings; modified in place
        validator: Live connection tester
        access_token: OAuth access token for XOAUTH2 logins, if any

    Returns:
        The same account

    Raises:
        AccountValidationError: If the validator rejects the settings
        ValueError: If a port is not numeric
    """
    settings = account.settings
    for key in ("imap_host", "smtp_host"):
        if settings.get(key):
            settings[key] = settings[key].strip()

    account.id = id_for_account(account.email_address, settings)

    for key in ("imap_port", "smtp_port"):
        if settings.get(key):
            settings[key] = _coerce_port(settings[key])

    if account.label and "@" in account.label:
        account.label = account.email_address

    validator.test(account, access_token=access_token)

    account.authed_at = datetime.now(timezone.utc)
    logger.info(f"Account {account.id} ({redact_email(account.email_address)}) validated")
    return account
