"""Pytest configuration and fixtures."""

import json
from unittest.mock import AsyncMock

import pytest

from wpadvisories.feed import FeedEntry


@pytest.fixture
def composer_json():
    """A composer.json with an existing conflict section."""
    return json.dumps(
        {
            "name": "acme/site",
            "require": {"php": ">=8.1", "roots/wordpress": "^6.4"},
            "conflict": {
                "wpackagist-plugin/contact-form-7": "<5.3.2",
                "roots/wordpress": "<6.4.3",
            },
            "config": {"sort-packages": True},
        },
        indent=4,
    )


@pytest.fixture
def empty_composer_json():
    """A composer.json without any conflict section."""
    return json.dumps({"name": "acme/site", "require": {"php": ">=8.1"}}, indent=4)


@pytest.fixture
def plugin_entry():
    """Feed entry affecting every acme-seo release up to 2.1.0."""
    return FeedEntry.from_raw({
        "id": "v1",
        "title": "Acme SEO <= 2.1.0 - Reflected XSS",
        "software": [{
            "type": "plugin",
            "name": "Acme SEO",
            "slug": "acme-seo",
            "affected_versions": {
                "* - 2.1.0": {
                    "from_version": "*",
                    "from_inclusive": True,
                    "to_version": "2.1.0",
                    "to_inclusive": True,
                },
            },
        }],
        "cvss": {"score": 6.1, "rating": "Medium"},
        "references": ["https://example.com/advisory/acme-seo"],
    })


@pytest.fixture
def production_feed_payload():
    """Raw production feed keyed by vulnerability id."""
    return {
        "0a1b": {
            "id": "0a1b",
            "title": "Acme SEO <= 2.1.0 - Reflected XSS",
            "software": [{
                "type": "plugin",
                "name": "Acme SEO",
                "slug": "Acme-SEO",
                "affected_versions": {
                    "* - 2.1.0": {
                        "from_version": "*",
                        "from_inclusive": True,
                        "to_version": "2.1.0",
                        "to_inclusive": True,
                    },
                },
            }],
            "cvss": {"score": 6.1},
            "references": ["https://example.com/a"],
        },
        "2c3d": {
            "id": "2c3d",
            "title": "Twenty Nothing 1.0 - 1.4 - CSRF",
            "software": [{
                "type": "theme",
                "name": "Twenty Nothing",
                "slug": "twenty-nothing",
                "affected_versions": {
                    "1.0 - 1.4": {
                        "from_version": "1.0",
                        "from_inclusive": True,
                        "to_version": "1.4",
                        "to_inclusive": False,
                    },
                },
            }],
            "cvss": None,
            "references": [],
        },
    }


@pytest.fixture
def gateway(composer_json):
    """Repository gateway double that accepts every write."""
    mock_gateway = AsyncMock()
    mock_gateway.get_file_content.return_value = composer_json.encode("utf-8")
    mock_gateway.get_file_sha.return_value = "abc123"
    mock_gateway.create_pull_request.return_value = "https://github.com/acme/site/pull/1"
    return mock_gateway
