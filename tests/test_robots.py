"""Tests for robots.txt rules and sitemap parsing."""

from seo_audit.robots import AgentRules, RobotsRules, parse_sitemap_xml

ROBOTS_TXT = """
# Staging paths
User-agent: *
Disallow: /private
Disallow: /search?
Allow: /private/press

User-agent: SEO-Audit-Bot/1.0
Disallow: /bot-only   # not for us

Sitemap: https://example.com/sitemap.xml
"""


class TestAgentRules:
    """Test cases for a single user-agent group."""

    def test_no_matching_disallow(self):
        """Test paths outside every disallow prefix are allowed."""
        rules = AgentRules(disallow=["/private"])
        assert rules.decide("/public") is True

    def test_disallow_match(self):
        """Test a disallowed prefix."""
        rules = AgentRules(disallow=["/private"])
        assert rules.decide("/private/file") is False

    def test_allow_overrides_disallow(self):
        """Test an allow prefix overrides a matching disallow."""
        rules = AgentRules(allow=["/private/press"], disallow=["/private"])
        assert rules.decide("/private/press/2024") is True


class TestRobotsRules:
    """Test cases for parsed robots.txt files."""

    def test_parse_groups_and_sitemaps(self):
        """Test parsing agents, rules, comments and sitemaps."""
        rules = RobotsRules.parse(ROBOTS_TXT)

        assert set(rules.agents) == {"*", "SEO-Audit-Bot/1.0"}
        assert rules.agents["*"].disallow == ["/private", "/search?"]
        assert rules.agents["SEO-Audit-Bot/1.0"].disallow == ["/bot-only"]
        assert rules.sitemaps == ["https://example.com/sitemap.xml"]

    def test_wildcard_group(self):
        """Test rules for all agents apply to any crawler."""
        rules = RobotsRules.parse(ROBOTS_TXT)

        assert rules.is_allowed("https://example.com/", "OtherBot")
        assert not rules.is_allowed("https://example.com/private/a", "OtherBot")
        assert rules.is_allowed("https://example.com/private/press", "OtherBot")

    def test_own_group_checked_first(self):
        """Test the crawler's own group applies before the wildcard group."""
        rules = RobotsRules.parse(ROBOTS_TXT)

        assert not rules.is_allowed("https://example.com/bot-only", "SEO-Audit-Bot/1.0")
        assert rules.is_allowed("https://example.com/bot-only", "OtherBot")

    def test_own_group_overrides_wildcard(self):
        """Test the wildcard group is not consulted when the crawler has its own group."""
        rules = RobotsRules.parse(
            "User-agent: SEO-Audit-Bot\nDisallow: /private\n\nUser-agent: *\nDisallow: /\n"
        )

        assert rules.is_allowed("https://example.com/public", "SEO-Audit-Bot")
        assert not rules.is_allowed("https://example.com/private/a", "SEO-Audit-Bot")
        assert not rules.is_allowed("https://example.com/public", "OtherBot")

    def test_empty_own_group_allows_everything(self):
        """Test an own group without rules allows every path."""
        rules = RobotsRules.parse("User-agent: SEO-Audit-Bot\n\nUser-agent: *\nDisallow: /\n")
        assert rules.is_allowed("https://example.com/anything", "SEO-Audit-Bot")

    def test_query_string_is_matched(self):
        """Test disallow prefixes include the query string."""
        rules = RobotsRules.parse(ROBOTS_TXT)

        assert not rules.is_allowed("https://example.com/search?q=widgets", "OtherBot")
        assert rules.is_allowed("https://example.com/search", "OtherBot")

    def test_empty_disallow_allows_everything(self):
        """Test an empty Disallow line adds no rule."""
        rules = RobotsRules.parse("User-agent: *\nDisallow:\n")
        assert rules.is_allowed("https://example.com/anything", "Bot")

    def test_empty_file(self):
        """Test no rules means everything is allowed."""
        assert RobotsRules.parse("").is_allowed("https://example.com/x", "Bot")


class TestSitemapParsing:
    """Test cases for sitemap XML."""

    def test_urlset(self):
        """Test page URLs from a namespaced urlset."""
        xml = """<?xml version="1.0" encoding="UTF-8"?>
        <urlset xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
            <url><loc>https://example.com/</loc></url>
            <url><loc> https://example.com/about </loc><priority>0.5</priority></url>
        </urlset>"""

        pages, children = parse_sitemap_xml(xml)

        assert pages == ["https://example.com/", "https://example.com/about"]
        assert children == []

    def test_sitemap_index(self):
        """Test child sitemap URLs from a sitemap index."""
        xml = """<sitemapindex xmlns="http://www.sitemaps.org/schemas/sitemap/0.9">
            <sitemap><loc>https://example.com/sitemap-pages.xml</loc></sitemap>
            <sitemap><loc>https://example.com/sitemap-posts.xml</loc></sitemap>
        </sitemapindex>"""

        pages, children = parse_sitemap_xml(xml)

        assert pages == []
        assert children == [
            "https://example.com/sitemap-pages.xml",
            "https://example.com/sitemap-posts.xml",
        ]

    def test_without_namespace(self):
        """Test a sitemap that omits the namespace."""
        pages, _ = parse_sitemap_xml("<urlset><url><loc>https://example.com/x</loc></url></urlset>")
        assert pages == ["https://example.com/x"]

    def test_invalid_xml(self):
        """Test unparseable content yields nothing."""
        assert parse_sitemap_xml("<html><body>oops") == ([], [])
