"""
Security Validators Module
TLS helpers used when testing IMAP/SMTP connections
"""

import ssl
import logging
from typing import Callable

logger = logging.getLogger(__name__)


def create_secure_ssl_context() -> ssl.SSLContext:
    """
    Create a secure SSL context with modern TLS settings

    TLS 1.2 is the minimum protocol version; hostname checking and certificate
    verification are on.

    Returns:
        Configured SSL context
    """
    context = ssl.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    context.minimum_version = ssl.TLSVersion.TLSv1_2

    context.check_hostname = True
    context.verify_mode = ssl.CERT_REQUIRED

    context.load_default_certs()

    logger.debug("Created secure SSL context with TLS 1.2+ enforcement")
    return context


def apply_ssl_overrides(
    context: ssl.SSLContext,
    allow_insecure_ssl: bool,
    log_warning: Callable[[str], None]
) -> None:
    """
    Relax certificate checks on a context when the account allows it.

    Accounts whose provider template sets ``*_allow_insecure_ssl`` (self-signed
    certificates on small hosts) skip hostname and chain verification.

    Args:
        context: SSL context to configure
        allow_insecure_ssl: When True, hostname checking and cert validation are disabled
        log_warning: Callable used to emit a warning when verification is disabled
    """
    if allow_insecure_ssl:
        context.check_hostname = False
        context.verify_mode = ssl.CERT_NONE
        log_warning("SSL verification disabled for this server")
