"""
Placeholder substitution for provider templates.

Structured templates write ``{domain}``, presets and autoconfig documents use
Thunderbird's ``%EMAILDOMAIN%`` / ``%EMAILLOCALPART%`` / ``%EMAILADDRESS%``.
"""

from typing import Optional, Tuple


def split_address(email_address: str) -> Tuple[str, str]:
    """
    Split an address into (local part, lower-cased domain).

    The domain is everything after the last "@"; the local part is everything
    before the first one.
    """
    local = email_address.split("@")[0]
    domain = email_address.split("@")[-1].lower()
    return local, domain


def expand_placeholders(template: Optional[str], email_address: str) -> Optional[str]:
    """
    Substitute every known placeholder in ``template``.

    Returns None unchanged so callers can pass optional template fields.
    """
    if template is None:
        return None

    local, domain = split_address(email_address)
    return (
        str(template)
        .replace("{domain}", domain)
        .replace("%EMAILDOMAIN%", domain)
        .replace("%EMAILLOCALPART%", local)
        .replace("%EMAILADDRESS%", email_address)
    )
