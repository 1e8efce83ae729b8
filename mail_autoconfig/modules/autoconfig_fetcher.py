"""
Remote Autoconfig Module
Fetches and interprets a provider's self-published Thunderbird autoconfig
document (ISPDB schema: clientConfig/emailProvider/incomingServer|outgoingServer)

Every failure here (HTTP error, network error, malformed XML, missing
elements) means "this source has nothing", never an exception for the caller.
"""

import logging
import xml.etree.ElementTree as ET
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import requests

from .account import SECURITY_NONE, SECURITY_SSL, SECURITY_STARTTLS
from .provider_template import (
    SOURCE_AUTOCONFIG,
    USERNAME_FORMAT_EMAIL,
    USERNAME_FORMAT_LOCAL_PART,
    ProviderTemplate,
    ServerTemplate,
)
from ..utils.sanitization import sanitize_for_logging
from ..utils.templating import split_address

logger = logging.getLogger(__name__)

AUTOCONFIG_URLS = (
    "https://autoconfig.{domain}/mail/config-v1.1.xml",
    "https://{domain}/.well-known/autoconfig/mail/config-v1.1.xml",
)

SOCKET_TYPE_SECURITY = {
    "plain": SECURITY_NONE,
    "STARTTLS": SECURITY_STARTTLS,
    "SSL": SECURITY_SSL,
}


@dataclass
class XmlNode:
    """
    Element of a parsed XML document.

    Attributes and child elements live in separate collections, so
    ``<incomingServer type="imap">`` exposes ``type`` only through ``attr``.
    """
    tag: str
    attributes: Dict[str, str] = field(default_factory=dict)
    children: List["XmlNode"] = field(default_factory=list)
    text: str = ""

    @classmethod
    def from_element(cls, element: ET.Element) -> "XmlNode":
        return cls(
            tag=_local_name(element.tag),
            attributes={_local_name(k): v for k, v in element.attrib.items()},
            children=[cls.from_element(child) for child in element],
            text=(element.text or "").strip(),
        )

    @classmethod
    def parse(cls, document: str) -> "XmlNode":
        """Parse a document; raises ET.ParseError on malformed XML"""
        return cls.from_element(ET.fromstring(document))

    def attr(self, name: str, default: Optional[str] = None) -> Optional[str]:
        return self.attributes.get(name, default)

    def find_all(self, tag: str) -> List["XmlNode"]:
        """Direct children named ``tag``, singular or repeated alike"""
        return [child for child in self.children if child.tag == tag]

    def find(self, tag: str) -> Optional["XmlNode"]:
        matches = self.find_all(tag)
        return matches[0] if matches else None

    def child_text(self, tag: str) -> Optional[str]:
        child = self.find(tag)
        if child is None or child.text == "":
            return None
        return child.text


def _local_name(tag: str) -> str:
    # Strip an ElementTree "{namespace}" prefix
    return tag.rsplit("}", 1)[-1]


def _server_template(server: XmlNode, default_host: str) -> ServerTemplate:
    username = server.child_text("username")
    socket_type = server.child_text("socketType")
    return ServerTemplate(
        host=server.child_text("hostname") or default_host,
        port=server.child_text("port"),
        security=SOCKET_TYPE_SECURITY.get(socket_type, SECURITY_STARTTLS),
        username_format=(
            USERNAME_FORMAT_LOCAL_PART if username == "%EMAILLOCALPART%"
            else USERNAME_FORMAT_EMAIL
        ),
    )


def _first_of_type(servers: List[XmlNode], server_type: str) -> Optional[XmlNode]:
    for server in servers:
        if server.attr("type") == server_type:
            return server
    return None


def parse_autoconfig(document: XmlNode, email_address: str) -> Optional[ProviderTemplate]:
    """
    Interpret an autoconfig document for ``email_address``.

    Args:
        document: Parsed root element (``clientConfig``)
        email_address: Address being configured

    Returns:
        Provider template, or None if the document does not describe an
        IMAP + SMTP pair for this domain
    """
    _, domain = split_address(email_address)

    providers = document.find_all("emailProvider")
    if not providers:
        return None
    if len(providers) == 1:
        provider = providers[0]
    else:
        provider = next((p for p in providers if p.attr("id") == domain), None)
        if provider is None:
            logger.debug(f"Autoconfig document lists no emailProvider for {domain}")
            return None

    # A POP-only provider yields nothing rather than a guessed imap.<domain> host
    imap = _first_of_type(provider.find_all("incomingServer"), "imap")
    smtp = _first_of_type(provider.find_all("outgoingServer"), "smtp")
    if imap is None or smtp is None:
        logger.debug(f"Autoconfig document for {domain} lacks an IMAP or SMTP server")
        return None

    return ProviderTemplate(
        source=SOURCE_AUTOCONFIG,
        imap=_server_template(imap, f"imap.{domain}"),
        smtp=_server_template(smtp, f"smtp.{domain}"),
        container_folder="",
    )


class AutoconfigFetcher:
    """Fetches autoconfig documents from the two well-known locations"""

    def __init__(self, timeout: float = 10.0, session: Optional[requests.Session] = None):
        """
        Args:
            timeout: Per-request timeout in seconds
            session: HTTP session to reuse (a new one is created if omitted)
        """
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_document(self, url: str) -> Optional[XmlNode]:
        """
        GET and parse one autoconfig URL.

        Returns:
            The parsed root node, or None on any HTTP, network or XML error
        """
        try:
            response = self.session.get(
                url,
                timeout=self.timeout,
                headers={'Accept': 'application/xml, text/xml'},
            )
        except requests.RequestException as e:
            logger.debug(f"Autoconfig request to {url} failed: {e}")
            return None

        if not 200 <= response.status_code < 300:
            logger.debug(f"Autoconfig request to {url} returned {response.status_code}")
            return None

        try:
            return XmlNode.parse(response.text)
        except ET.ParseError as e:
            logger.debug(
                f"Autoconfig document at {url} is not valid XML: "
                f"{sanitize_for_logging(str(e))}"
            )
            return None

    def fetch(self, domain: str) -> Optional[XmlNode]:
        """Try each well-known URL in order and return the first document found"""
        for template in AUTOCONFIG_URLS:
            document = self.fetch_document(template.format(domain=domain))
            if document is not None:
                return document
        return None

    def resolve(self, email_address: str) -> Optional[ProviderTemplate]:
        """Fetch and interpret the autoconfig document for an address's domain"""
        _, domain = split_address(email_address)
        document = self.fetch(domain)
        if document is None:
            return None
        return parse_autoconfig(document, email_address)
