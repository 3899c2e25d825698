"""
Tests for captured-cookie normalization and header replay.
"""

import pytest

from browser.cookies import CookieReadback, extra_headers_for, normalize_cookie, normalize_cookies


class TestNormalizeCookie:

    def test_cookie_without_url_or_domain_is_dropped(self):
        assert normalize_cookie({"name": "sid", "value": "1", "sameSite": "no_restriction"}) is None

    def test_url_cookie_kept_with_samesite_none(self):
        cookie = normalize_cookie({
            "name": "sid",
            "value": "1",
            "sameSite": "no_restriction",
            "url": "https://www.mercari.com/",
        })
        assert cookie == {"name": "sid", "value": "1", "url": "https://www.mercari.com/", "sameSite": "None"}

    def test_url_preferred_over_domain(self):
        cookie = normalize_cookie({
            "name": "sid", "value": "1", "url": "https://www.mercari.com/", "domain": ".mercari.com", "path": "/x",
        })
        assert cookie["url"] == "https://www.mercari.com/"
        assert "domain" not in cookie and "path" not in cookie

    def test_non_http_url_falls_back_to_domain(self):
        cookie = normalize_cookie({"name": "sid", "value": "1", "url": "chrome://settings", "domain": ".mercari.com"})
        assert cookie["domain"] == ".mercari.com"
        assert cookie["path"] == "/"
        assert "url" not in cookie

    def test_host_prefixed_cookie_uses_url(self):
        cookie = normalize_cookie({"name": "__Host-csrf", "value": "t", "domain": "www.mercari.com", "path": "/"})
        assert cookie["url"] == "https://www.mercari.com/"
        assert "domain" not in cookie

    @pytest.mark.parametrize("raw,expected", [
        ("lax", "Lax"),
        ("Strict", "Strict"),
        ("none", "None"),
        ("no_restriction", "None"),
    ])
    def test_same_site_mapping(self, raw, expected):
        cookie = normalize_cookie({"name": "a", "value": "b", "domain": "x.com", "sameSite": raw})
        assert cookie["sameSite"] == expected

    def test_unknown_same_site_is_omitted(self):
        cookie = normalize_cookie({"name": "a", "value": "b", "domain": "x.com", "sameSite": "unspecified"})
        assert "sameSite" not in cookie

    def test_expiration_date_alias_and_flag_coercion(self):
        cookie = normalize_cookie({
            "name": "a", "value": "b", "domain": "x.com",
            "expirationDate": 1893456000, "httpOnly": 1, "secure": 0,
        })
        assert cookie["expires"] == 1893456000.0
        assert cookie["httpOnly"] is True
        assert cookie["secure"] is False

    @pytest.mark.parametrize("raw", [
        {"value": "b", "domain": "x.com"},
        {"name": "a", "value": None, "domain": "x.com"},
        "not-a-cookie",
    ])
    def test_incomplete_entries_are_dropped(self, raw):
        assert normalize_cookie(raw) is None

    def test_empty_string_value_is_kept(self):
        assert normalize_cookie({"name": "a", "value": "", "domain": "x.com"})["value"] == ""

    def test_normalize_list_filters(self):
        cookies = normalize_cookies([
            {"name": "a", "value": "1", "domain": ".mercari.com"},
            {"name": "b", "value": "2"},
            None,
        ])
        assert [c["name"] for c in cookies] == ["a"]

    def test_normalize_none(self):
        assert normalize_cookies(None) == []


class TestReadback:

    def test_summary(self):
        cookies = [{"name": f"c{i}"} for i in range(20)] + [{"name": "__Host-session"}]
        readback = CookieReadback.from_cookies("https://www.mercari.com/", cookies)
        assert readback.count == 21
        assert readback.has_host_prefix is True
        assert len(readback.sample_names) == 12


class TestExtraHeaders:

    def test_allowlisted_headers_only(self):
        session = {
            "type": "mercari_api_headers",
            "headers": {"Authorization": "Bearer t", "X-Platform": "web", "Cookie": "nope"},
        }
        assert extra_headers_for("mercari", session) == {"authorization": "Bearer t", "x-platform": "web"}

    def test_requires_authorization(self):
        session = {"type": "mercari_api_headers", "headers": {"x-platform": "web"}}
        assert extra_headers_for("mercari", session) == {}

    def test_other_marketplaces_ignored(self):
        session = {"type": "mercari_api_headers", "headers": {"authorization": "Bearer t"}}
        assert extra_headers_for("facebook", session) == {}
