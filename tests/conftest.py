"""
Pytest configuration and shared fixtures.
"""

import pytest

from agentkb.core.source import Document, KnowledgeSource, SourceType
from agentkb.core.tree import UrlNode

# ============================================================================
# URL Tree Fixtures
# ============================================================================


@pytest.fixture
def sample_tree():
    """A crawl root with one nested section and a plain leaf.

    example.com
      /docs
        /docs/a   (selected)
        /docs/b
      /blog       (selected)
    """
    return UrlNode(
        url="https://example.com",
        id=1,
        children=(
            UrlNode(
                url="https://example.com/docs",
                id=2,
                children=(
                    UrlNode(url="https://example.com/docs/a", id=3, is_selected=True),
                    UrlNode(url="https://example.com/docs/b", id=4),
                ),
            ),
            UrlNode(url="https://example.com/blog", id=5, is_selected=True),
        ),
    )


@pytest.fixture
def make_leaf():
    """Factory fixture for leaf nodes."""

    def _make(path="a", selected=False, node_id=None):
        return UrlNode(
            url=f"https://site.test/{path}", id=node_id, is_selected=selected
        )

    return _make


# ============================================================================
# Knowledge Source Fixtures
# ============================================================================


@pytest.fixture
def website_source(sample_tree):
    """A website source owning the sample crawl tree."""
    return KnowledgeSource(
        id=10,
        name="https://example.com",
        type=SourceType.WEBSITE,
        children=(sample_tree,),
    )


@pytest.fixture
def document_source():
    """A document source with two files, one selected."""
    return KnowledgeSource(
        id=20,
        name="Handbook",
        type=SourceType.DOCUMENT,
        documents=(
            Document(id="d1", name="intro.pdf", is_selected=True),
            Document(id="d2", name="faq.pdf", is_selected=False),
        ),
    )


@pytest.fixture
def make_source():
    """Factory fixture for minimal sources."""

    def _make(source_id, name=None, **kwargs):
        return KnowledgeSource(
            id=source_id, name=name or f"Source {source_id}", **kwargs
        )

    return _make


# ============================================================================
# Service Payload Fixtures
# ============================================================================


@pytest.fixture
def website_payload():
    """A website source as the knowledge-base service returns it."""
    return {
        "id": 7,
        "title": "Docs site",
        "type": "website",
        "training_status": "success",
        "metadata": {
            "sub_urls": {
                "url": "https://docs.test",
                "title": "Docs",
                "children": [
                    {"id": 71, "url": "https://docs.test/start", "no_of_chars": 120},
                    {
                        "id": 72,
                        "url": "https://docs.test/api",
                        "is_selected": False,
                        "chars": 80,
                    },
                ],
            }
        },
    }
