"""
MX record lookup for provider detection
"""

import logging
from typing import List

import dns.exception
import dns.resolver

logger = logging.getLogger(__name__)


class MXResolver:
    """
    Looks up mail exchangers for a domain.

    Missing MX data is an ordinary outcome for this system: every failure
    resolves to an empty list.
    """

    def __init__(self, lifetime: float = 10.0):
        """
        Args:
            lifetime: Total seconds allowed for the lookup, retries included
        """
        self.lifetime = lifetime

    def lookup(self, domain: str) -> List[str]:
        """
        Return the MX exchange hostnames for ``domain``.

        Hostnames are lower-cased without the trailing root dot, in the order
        the resolver returned them.
        """
        try:
            answers = dns.resolver.resolve(domain, "MX", lifetime=self.lifetime)
        except (dns.exception.DNSException, OSError, ValueError) as e:
            logger.debug(f"MX lookup for {domain} failed: {e.__class__.__name__}: {e}")
            return []

        exchanges = [
            record.exchange.to_text(omit_final_dot=True).lower()
            for record in answers
        ]
        logger.debug(f"MX records for {domain}: {exchanges}")
        return exchanges
