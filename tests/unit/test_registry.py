"""Unit tests for SourceRegistry."""

import pytest

from agentkb.core.errors import SourceNotFoundError
from agentkb.core.selection import count_selected
from agentkb.core.source import KnowledgeSource, TrainingStatus
from agentkb.core.tree import UrlNode, iter_leaves
from agentkb.services.registry import (
    ADDED,
    RECONCILED,
    REMOVED,
    SELECTION,
    TRAINING,
    SourceRegistry,
)


@pytest.fixture
def events():
    return []


@pytest.fixture
def registry(website_source, document_source, events):
    reg = SourceRegistry([website_source, document_source])
    reg.subscribe(lambda action, ids: events.append((action, ids)))
    return reg


class TestAddRemove:
    """Tests for add, add_many and remove."""

    def test_add_appends_and_flags_retraining(self, registry, make_source, events):
        assert registry.add(make_source(30)) is True
        assert registry.ids() == [10, 20, 30]
        assert registry.needs_retraining
        assert events == [(ADDED, [30])]

    def test_add_duplicate_is_ignored(self, registry, make_source, events):
        assert registry.add(make_source(10, "other")) is False
        assert registry.get(10).name == "https://example.com"
        assert events == []

    def test_add_many_skips_duplicates(self, registry, make_source):
        added = registry.add_many([make_source(20), make_source(40), make_source(40)])
        assert [s.id for s in added] == [40]

    def test_remove(self, registry, events):
        registry.select_for_training(20)
        removed = registry.remove(20)
        assert removed.name == "Handbook"
        assert 20 not in registry
        assert registry.training_selection == []
        assert events == [(REMOVED, [20])]

    def test_remove_unknown_returns_none(self, registry):
        assert registry.remove(999) is None

    def test_require_unknown_raises(self, registry):
        with pytest.raises(SourceNotFoundError):
            registry.require(999)


class TestSelection:
    """Tests for selection mutations routed through the registry."""

    def test_toggle_node(self, registry, events):
        source = registry.toggle_node(10, "https://example.com/docs/b")
        assert count_selected(source) == 3
        assert registry.get(10) is source
        assert events == [(SELECTION, [10])]
        assert registry.needs_retraining

    def test_toggle_unknown_key_is_noop(self, registry, events):
        before = registry.get(10)
        assert registry.toggle_node(10, "https://nope.test") is before
        assert events == []

    def test_set_subtree(self, registry):
        source = registry.set_subtree(10, "https://example.com", False)
        assert count_selected(source) == 0

    def test_select_all_covers_documents(self, registry):
        source = registry.select_all(20, True)
        assert all(doc.is_selected for doc in source.documents)

    def test_toggle_document(self, registry):
        source = registry.toggle_document(20, "d1")
        assert count_selected(source) == 0

    def test_remove_nodes(self, registry):
        source = registry.remove_nodes(10, ["https://example.com/docs"])
        assert [leaf.id for leaf in iter_leaves(source.children)] == [5]

    def test_set_status_does_not_flag_retraining(self, registry, events):
        registry.set_status(10, TrainingStatus.TRAINING, progress=20)
        assert registry.get(10).progress == 20
        assert not registry.needs_retraining
        assert events == [(TRAINING, [10])]


class TestImportMerge:
    """Tests for import_merge."""

    def test_drops_ids_already_present(self, make_source):
        current = [make_source(1), make_source(2)]
        merged = SourceRegistry.import_merge(
            [make_source(1), make_source(3)], current
        )
        assert [s.id for s in merged] == [3]

    def test_never_returns_current_ids(self, make_source):
        current = [make_source(i) for i in range(5)]
        external = [make_source(i) for i in range(3, 9)]
        merged = SourceRegistry.import_merge(external, current)
        assert not {s.id for s in merged} & {s.id for s in current}

    def test_dedupes_within_external(self, make_source):
        merged = SourceRegistry.import_merge([make_source(3), make_source(3)], [])
        assert len(merged) == 1

    def test_narrows_selected_urls(self, website_source):
        merged = SourceRegistry.import_merge(
            [website_source], [], {10: ["https://example.com/docs/b"]}
        )
        flags = [leaf.is_selected for leaf in iter_leaves(merged[0].children)]
        assert flags == [False, True, False]
        # the external source is untouched
        assert count_selected(website_source) == 2

    def test_import_sources_adds(self, registry, make_source):
        added = registry.import_sources([make_source(10), make_source(50)])
        assert [s.id for s in added] == [50]
        assert registry.ids()[-1] == 50


class TestReconcile:
    """Tests for reconcile."""

    def test_replaces_contents_in_snapshot_order(self, registry, make_source, events):
        registry.reconcile([make_source(20, "Handbook v2"), make_source(60)])
        assert registry.ids() == [20, 60]
        assert registry.get(20).name == "Handbook v2"
        assert events[-1] == (RECONCILED, [20, 60])

    def test_keeps_local_selection(self, registry):
        registry.toggle_node(10, "https://example.com/docs/b")
        fresh = KnowledgeSource(
            id=10,
            name="https://example.com",
            children=(
                UrlNode(
                    url="https://example.com",
                    children=(
                        UrlNode(url="https://example.com/docs/b", is_selected=False),
                        UrlNode(url="https://example.com/new", is_selected=True),
                    ),
                ),
            ),
        )
        registry.reconcile([fresh])
        flags = [leaf.is_selected for leaf in iter_leaves(registry.get(10).children)]
        assert flags == [True, True]

    def test_keeps_local_training_state(self, registry, make_source):
        registry.set_status(10, TrainingStatus.TRAINING, progress=40)
        registry.reconcile([make_source(10, training_status="success")])
        source = registry.get(10)
        assert source.is_training
        assert source.progress == 40

    def test_prunes_training_selection(self, registry, make_source):
        registry.select_for_training(10)
        registry.select_for_training(20)
        registry.reconcile([make_source(20)])
        assert registry.training_selection == [20]

    def test_unreported_status_keeps_local_result(self, registry):
        registry.set_status(10, TrainingStatus.SUCCESS)
        registry.set_status(20, TrainingStatus.ERROR, link_broken=True)

        registry.reconcile(
            [
                KnowledgeSource.from_dict({"id": 10, "name": "a"}),
                KnowledgeSource.from_dict({"id": 20, "name": "b"}),
            ]
        )

        assert registry.get(10).training_status == TrainingStatus.SUCCESS
        assert registry.get(10).progress == 100
        assert registry.get(20).training_status == TrainingStatus.ERROR
        assert registry.get(20).link_broken is True

    def test_reported_status_wins_over_local_result(self, registry):
        registry.set_status(10, TrainingStatus.SUCCESS)
        registry.reconcile(
            [KnowledgeSource.from_dict({"id": 10, "training_status": "Issues"})]
        )
        assert registry.get(10).training_status == TrainingStatus.ERROR
