"""
🧪 test_personas.py — проверка каталога персон
"""

import pytest

from core.proxy.personas import (
    CATALOG, LAST_RESORT, REGULAR_CHAIN, COOKIES_NONE, get_persona,
)


def test_catalog_order_is_fixed():
    assert [p.name for p in CATALOG] == [
        "chrome_direct",
        "chrome_nocors",
        "chrome_sessiononly",
        "safari",
        "firefox",
        "chrome_mobile",
        "iphone",
        "google_referer",
        "curl_minimal",
    ]


def test_names_are_unique_and_resolvable():
    names = [p.name for p in CATALOG + (LAST_RESORT,)]

    assert len(names) == len(set(names))
    for name in names:
        assert get_persona(name).name == name
    assert get_persona("unknown") is None


def test_mobile_hints_only_on_mobile_personas():
    for persona in CATALOG:
        mobile_hint = persona.headers.get("Sec-Ch-Ua-Mobile")
        if persona.name == "chrome_mobile":
            assert mobile_hint == "?1"
            assert "Mobile" in persona.headers["User-Agent"]
        else:
            assert mobile_hint in (None, "?0")


def test_non_chromium_personas_send_no_client_hints():
    for name in ("safari", "firefox", "iphone", "curl_minimal"):
        headers = get_persona(name).headers
        assert not any(key.startswith("Sec-Ch-") for key in headers)


def test_last_resort_is_referrerless_crawler():
    assert LAST_RESORT.name == "googlebot"
    assert LAST_RESORT.referer is None
    assert LAST_RESORT.cookies == COOKIES_NONE
    assert "Googlebot" in LAST_RESORT.headers["User-Agent"]
    assert LAST_RESORT.timeout >= max(p.timeout for p in CATALOG)


def test_headers_are_read_only():
    persona = CATALOG[0]

    with pytest.raises(TypeError):
        persona.headers["User-Agent"] = "x"


def test_with_user_agent_returns_copy():
    browser = REGULAR_CHAIN[0]
    custom = browser.with_user_agent("TestAgent/1.0")

    assert custom.headers["User-Agent"] == "TestAgent/1.0"
    assert browser.headers["User-Agent"] != "TestAgent/1.0"
    assert browser.with_user_agent(None) is browser
