"""Unit tests for media URL directives."""

import pytest

from gphoto_cli.utils.media_urls import high_res_url, thumbnail_url

BASE = "https://lh3.googleusercontent.com/abc"


def test_thumbnail_url():
    assert thumbnail_url(BASE, 800, 600) == "https://lh3.googleusercontent.com/abc=w800-h600"


def test_high_res_url():
    assert high_res_url(BASE) == "https://lh3.googleusercontent.com/abc=d"


@pytest.mark.parametrize("url", ["https://example.com/photo.jpg", "", "not a url"])
def test_foreign_urls_unchanged(url):
    assert thumbnail_url(url, 800, 600) == url
    assert high_res_url(url) == url
    assert high_res_url(high_res_url(url)) == url
