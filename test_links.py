"""
Tests for same-site link extraction.
"""

from waybackdl.core.links import extract_site_links
from waybackdl.utils.validators import canonical_url, create_wildcard_pattern, is_same_host, validate_url


PAGE = "http://example.com/blog/"


def test_root_relative_and_same_host_absolute_collapse():
    html = '''<html><head>
    <link rel="stylesheet" href="/css/site.css">
    <script src="https://example.com/css/site.css"></script>
    <script src="http://example.com:80/js/app.js#main"></script>
    </head><body><img src="//example.com/img/logo.png"></body></html>'''
    assert extract_site_links(html, PAGE) == [
        "http://example.com/css/site.css",
        "http://example.com/js/app.js",
        "http://example.com/img/logo.png",
    ]


def test_cross_host_and_non_http_links_are_ignored():
    html = '''<a href="https://other.com/page">x</a>
    <img src="//cdn.example.net/a.png">
    <a href="mailto:someone@example.com">mail</a>
    <a href="javascript:void(0)">js</a>
    <img src="data:image/png;base64,AAAA">
    <a href="#top">top</a>
    <a href="tel:123">call</a>
    <a href="/about">about</a>'''
    assert extract_site_links(html, PAGE) == ["http://example.com/about"]


def test_document_relative_links_and_page_itself_are_skipped():
    html = '<a href="post.html">p</a><a href="/blog/">self</a><img src="../up.png"><a href="/x?q=1">q</a>'
    assert extract_site_links(html, PAGE) == ["http://example.com/x?q=1"]


def test_bytes_input():
    assert extract_site_links(b'<img src="/a.gif">', PAGE) == ["http://example.com/a.gif"]


def test_url_helpers():
    assert canonical_url("HTTPS://Example.COM:443") == "https://example.com/"
    assert canonical_url("http://example.com/a#b") == "http://example.com/a"
    assert is_same_host("https://EXAMPLE.com/a", "example.com")
    assert not is_same_host("https://www.example.com/a", "example.com")
    assert create_wildcard_pattern("example.com///") == "example.com/*"
    assert create_wildcard_pattern("example.com/*") == "example.com/*"
    assert create_wildcard_pattern("") is None
    assert validate_url("example.com") == (True, "http://example.com", "")
    assert not validate_url("ftp://example.com")[0]
    assert not validate_url("")[0]
