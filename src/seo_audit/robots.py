"""Simplified robots.txt rules and sitemap XML parsing."""

import logging
import re
from dataclasses import dataclass, field
from typing import Optional
from urllib.parse import urlparse
from xml.etree import ElementTree as ET

logger = logging.getLogger(__name__)

SITEMAP_NAMESPACE = "{http://www.sitemaps.org/schemas/sitemap/0.9}"


@dataclass
class AgentRules:
    """Allow/disallow path prefixes for one user-agent group."""

    allow: list[str] = field(default_factory=list)
    disallow: list[str] = field(default_factory=list)

    def decide(self, path: str) -> bool:
        """Decide whether path is allowed by this group.

        A matching disallow prefix blocks the path unless an allow prefix
        also matches. Paths no disallow prefix covers are allowed.
        """
        if not any(path.startswith(rule) for rule in self.disallow):
            return True
        return any(path.startswith(rule) for rule in self.allow)


@dataclass
class RobotsRules:
    """Parsed robots.txt content.

    This is a deliberately small parser: rules are plain path prefixes, the
    first matching rule wins and there is no longest-match ordering.
    """

    agents: dict[str, AgentRules] = field(default_factory=dict)
    sitemaps: list[str] = field(default_factory=list)

    @classmethod
    def parse(cls, content: str) -> "RobotsRules":
        rules = cls()
        current_agent: Optional[str] = None

        for raw_line in content.splitlines():
            line = raw_line.split("#", 1)[0].strip()
            if not line or ":" not in line:
                continue

            directive, value = line.split(":", 1)
            directive = directive.strip().lower()
            value = value.strip()

            if directive == "user-agent":
                current_agent = value
                rules.agents.setdefault(current_agent, AgentRules())
            elif directive == "disallow" and current_agent and value:
                rules.agents[current_agent].disallow.append(value)
            elif directive == "allow" and current_agent and value:
                rules.agents[current_agent].allow.append(value)
            elif directive == "sitemap" and value:
                rules.sitemaps.append(value)

        logger.debug(
            f"Parsed robots.txt: {len(rules.agents)} agent group(s), "
            f"{len(rules.sitemaps)} sitemap(s)"
        )
        return rules

    def is_allowed(self, url: str, user_agent: str) -> bool:
        """Check a URL against the crawler's own group, else the ``*`` group.

        The first group present decides alone; with neither present every
        URL is allowed.
        """
        parsed = urlparse(url)
        path = parsed.path or "/"
        if parsed.query:
            path += f"?{parsed.query}"

        for agent in (user_agent, "*"):
            group = self.agents.get(agent)
            if group is not None:
                return group.decide(path)
        return True


def _local_name(tag: str) -> str:
    return tag.split("}")[-1] if "}" in tag else tag


def _find_loc(element: ET.Element) -> Optional[str]:
    loc = element.find(f"{SITEMAP_NAMESPACE}loc")
    if loc is None:
        loc = element.find("loc")
    if loc is not None and loc.text:
        return loc.text.strip()
    return None


def parse_sitemap_xml(content: str) -> tuple[list[str], list[str]]:
    """Extract page URLs and child sitemap URLs from sitemap XML.

    Args:
        content: Raw sitemap or sitemap index XML

    Returns:
        Tuple of (page_urls, child_sitemap_urls). Unparseable content yields
        two empty lists.
    """
    content = re.sub(r"<!DOCTYPE[^>]*>", "", content)
    try:
        root = ET.fromstring(content.strip())
    except ET.ParseError as e:
        logger.warning(f"Failed to parse sitemap XML: {e}")
        return [], []

    page_urls: list[str] = []
    child_sitemaps: list[str] = []
    root_tag = _local_name(root.tag)

    if root_tag == "sitemapindex":
        for element in root:
            if _local_name(element.tag) == "sitemap":
                loc = _find_loc(element)
                if loc:
                    child_sitemaps.append(loc)
    elif root_tag == "urlset":
        for element in root:
            if _local_name(element.tag) == "url":
                loc = _find_loc(element)
                if loc:
                    page_urls.append(loc)
    else:
        logger.warning(f"Unknown sitemap root element: {root_tag}")

    return page_urls, child_sitemaps
