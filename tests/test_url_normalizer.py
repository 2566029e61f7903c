"""
Tests for utils/url_normalizer.py
"""

from utils.url_normalizer import extract_name_from_url, normalize_instagram_handle, normalize_url


class TestNormalizeUrl:
    def test_scheme_added(self):
        assert normalize_url("ganni.com") == "https://ganni.com"

    def test_existing_scheme_kept(self):
        assert normalize_url("http://ganni.com") == "http://ganni.com"
        assert normalize_url("HTTPS://ganni.com") == "HTTPS://ganni.com"
        assert normalize_url("//ganni.com") == "//ganni.com"

    def test_trimmed(self):
        assert normalize_url("  www.ganni.com  ") == "https://www.ganni.com"

    def test_placeholders(self):
        for value in ("", "   ", "none", "NA", "False"):
            assert normalize_url(value) == ""


class TestNormalizeInstagramHandle:
    def test_at_sign(self):
        assert normalize_instagram_handle("@everlane") == "everlane"

    def test_profile_url(self):
        assert normalize_instagram_handle("https://www.instagram.com/everlane/?hl=en") == "everlane"

    def test_bare_handle(self):
        assert normalize_instagram_handle(" ganni ") == "ganni"

    def test_placeholder(self):
        assert normalize_instagram_handle("none") == ""
        assert normalize_instagram_handle("") == ""


class TestExtractNameFromUrl:
    def test_full_url(self):
        assert extract_name_from_url("https://www.everlane.com/shop") == "Everlane"

    def test_bare_domain(self):
        assert extract_name_from_url("ganni.com") == "Ganni"

    def test_protocol_relative(self):
        assert extract_name_from_url("//www.ganni.com") == "Ganni"
        assert extract_name_from_url(normalize_url("//ganni.com")) == "Ganni"

    def test_subdomain_first_label(self):
        assert extract_name_from_url("shop.toteme.com") == "Shop"

    def test_unparseable(self):
        assert extract_name_from_url("") == "Untitled Store"
        assert extract_name_from_url("", fallback="Fallback") == "Fallback"
