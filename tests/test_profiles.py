"""Tests for facsimile.impersonation.profiles module."""

import pytest

from facsimile.errors import ConfigurationError
from facsimile.impersonation import CATALOG, BrowserProfile, available_profiles, lookup
from facsimile.impersonation.ja3 import parse_ja3


class TestBrowserProfile:
    """Tests for BrowserProfile parsing."""

    def test_parse_value(self):
        """Test parse accepts the persisted value."""
        assert BrowserProfile.parse("chrome_133") is BrowserProfile.CHROME_133

    def test_parse_member_name(self):
        """Test parse accepts the member name."""
        assert BrowserProfile.parse("FIREFOX") is BrowserProfile.FIREFOX

    def test_parse_legacy_spelling(self):
        """Test parse accepts the Chrome133 spelling."""
        assert BrowserProfile.parse("Chrome133") is BrowserProfile.CHROME_133
        assert BrowserProfile.parse("Chrome120") is BrowserProfile.CHROME_120

    def test_parse_member_passthrough(self):
        """Test parse returns members unchanged."""
        assert BrowserProfile.parse(BrowserProfile.EDGE) is BrowserProfile.EDGE

    def test_parse_unknown_raises(self):
        """Test parse raises ConfigurationError for unknown names."""
        with pytest.raises(ConfigurationError, match="Unknown browser profile"):
            BrowserProfile.parse("netscape4")

    def test_available_profiles_ends_with_custom(self):
        """Test the enumeration surface lists Custom last."""
        profiles = available_profiles()
        assert profiles[-1] is BrowserProfile.CUSTOM
        assert set(profiles) == set(BrowserProfile)


class TestLookup:
    """Tests for the catalog lookup."""

    @pytest.mark.parametrize("profile", list(BrowserProfile))
    def test_lookup_is_total(self, profile):
        """Test every profile yields a JA3, ciphers and h2 in ALPN."""
        defaults = lookup(profile)
        assert defaults.ja3
        assert defaults.ciphers
        assert "h2" in defaults.alpn

    def test_custom_resolves_to_latest_chrome(self):
        """Test Custom resolves to Chrome 133."""
        assert lookup(BrowserProfile.CUSTOM) is CATALOG[BrowserProfile.CHROME_133]

    def test_unknown_string_resolves_to_latest_chrome(self):
        """Test unrecognised strings do not raise."""
        assert lookup("netscape4") is CATALOG[BrowserProfile.CHROME_133]
        assert lookup(None) is CATALOG[BrowserProfile.CHROME_133]

    def test_lookup_accepts_strings(self):
        """Test lookup parses string identifiers."""
        assert lookup("Firefox").engine_identifier == "firefox_120"

    def test_engine_identifiers(self):
        """Test engine identifiers per profile."""
        assert lookup(BrowserProfile.CHROME_133).engine_identifier == "chrome_133"
        assert lookup(BrowserProfile.CHROME_120).engine_identifier == "chrome_120"
        assert lookup(BrowserProfile.SAFARI).engine_identifier == "safari_ios_17_0"
        assert lookup(BrowserProfile.EDGE).engine_identifier == "chrome_133"


class TestProfileConsistency:
    """Tests that each profile agrees with itself across layers."""

    @pytest.mark.parametrize("profile", list(CATALOG))
    def test_ciphers_match_ja3(self, profile):
        """Test the cipher list is the JA3 cipher field."""
        defaults = CATALOG[profile]
        assert defaults.ciphers == parse_ja3(defaults.ja3).ciphers

    @pytest.mark.parametrize("profile", list(CATALOG))
    def test_http2_profiles_are_complete(self, profile):
        """Test h2 comes first in ALPN and the pseudo-header order is set."""
        defaults = CATALOG[profile]
        assert defaults.alpn[0] == "h2"
        assert sorted(defaults.pseudo_header_order) == [":authority", ":method", ":path", ":scheme"]

    @pytest.mark.parametrize("profile", list(CATALOG))
    def test_settings_order_covers_settings(self, profile):
        """Test every SETTINGS key appears in the declared order."""
        defaults = CATALOG[profile]
        assert set(defaults.h2_settings_order) == set(defaults.h2_settings)

    def test_chrome_h2_settings(self):
        """Test Chrome SETTINGS values and order."""
        defaults = lookup(BrowserProfile.CHROME_133)
        assert defaults.h2_settings["INITIAL_WINDOW_SIZE"] == 6291456
        assert defaults.h2_settings_order[0] == "HEADER_TABLE_SIZE"
        assert defaults.pseudo_header_order == (":method", ":authority", ":scheme", ":path")
        assert defaults.connection_flow == 15663105

    def test_firefox_h2_settings(self):
        """Test Firefox announces only three settings and its own pseudo order."""
        defaults = lookup(BrowserProfile.FIREFOX)
        assert defaults.h2_settings_order == ("HEADER_TABLE_SIZE", "INITIAL_WINDOW_SIZE", "MAX_FRAME_SIZE")
        assert defaults.h2_settings["INITIAL_WINDOW_SIZE"] == 131072
        assert defaults.pseudo_header_order == (":method", ":path", ":authority", ":scheme")

    def test_firefox_has_no_client_hints(self):
        """Test Firefox contributes no Sec-CH-UA headers."""
        assert lookup(BrowserProfile.FIREFOX).client_hints == ()

    def test_chrome_client_hints_match_user_agent(self):
        """Test the Sec-CH-UA major version matches the User-Agent."""
        defaults = lookup(BrowserProfile.CHROME_133)
        hints = dict(defaults.client_hints)
        assert hints["Sec-CH-UA"] == '"Not A(Brand";v="8", "Chromium";v="133", "Google Chrome";v="133"'
        assert "Chrome/133." in defaults.user_agent
        assert hints["Sec-CH-UA-Platform"] == '"Windows"'

    def test_edge_announces_edge_brand(self):
        """Test Edge carries its own brand and Edg token."""
        defaults = lookup(BrowserProfile.EDGE)
        assert '"Microsoft Edge";v="133"' in dict(defaults.client_hints)["Sec-CH-UA"]
        assert "Edg/133" in defaults.user_agent

    def test_safari_hints(self):
        """Test Safari only sends the mobile and platform hints."""
        hints = dict(lookup(BrowserProfile.SAFARI).client_hints)
        assert hints == {"Sec-CH-UA-Mobile": "?0", "Sec-CH-UA-Platform": '"macOS"'}

    def test_catalog_is_read_only(self):
        """Test the catalog cannot be mutated."""
        with pytest.raises(TypeError):
            CATALOG[BrowserProfile.CUSTOM] = CATALOG[BrowserProfile.CHROME_133]
        with pytest.raises(TypeError):
            lookup(BrowserProfile.CHROME_133).h2_settings["ENABLE_PUSH"] = 1
