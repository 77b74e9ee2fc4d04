"""Unit tests for batch progress tracking and rendering."""

from agentkb.core.progress import (
    ProgressCount,
    QueueStatus,
    SourceTracker,
    create_progress_bar,
    format_progress_display,
    format_source_name,
    phase_message,
)
from agentkb.core.source import KnowledgeSource, SourceType


def _tracker():
    return SourceTracker(
        [
            KnowledgeSource(id=1, name="https://docs.test/start", type="website"),
            KnowledgeSource(id=2, name="Handbook", type=SourceType.DOCUMENT),
            KnowledgeSource(id=3, name=""),
        ]
    )


class TestSourceTracker:
    """Tests for SourceTracker."""

    def test_positions_are_one_based(self):
        tracker = _tracker()
        assert [s.position for s in tracker.sources] == [1, 2, 3]
        assert tracker.get_source_by_position(3).title == "Untitled Source"

    def test_activation_demotes_earlier_active(self):
        tracker = _tracker()
        tracker.update_status(1, QueueStatus.ACTIVE)
        tracker.update_status(2, QueueStatus.ACTIVE)
        assert tracker.get_source(1).status == QueueStatus.PENDING
        assert tracker.current_source().id == 2
        assert tracker.current_progress() == ProgressCount(2, 3)

    def test_completion_counts_failures_as_processed(self):
        tracker = _tracker()
        tracker.update_status(1, QueueStatus.COMPLETED)
        tracker.update_status(2, QueueStatus.FAILED)
        progress = tracker.completion_progress()
        assert progress == ProgressCount(2, 3)
        assert progress.percentage == 67
        assert tracker.counts()[QueueStatus.PENDING] == 1

    def test_unknown_id(self):
        assert _tracker().update_status(99, QueueStatus.ACTIVE) is False

    def test_reset(self):
        tracker = _tracker()
        tracker.update_status(1, QueueStatus.COMPLETED)
        tracker.reset()
        assert tracker.completion_progress().done == 0

    def test_empty_tracker(self):
        tracker = SourceTracker([])
        assert tracker.current_progress() == ProgressCount(0, 0)
        assert tracker.completion_progress().percentage == 0


class TestRendering:
    """Tests for the text helpers."""

    def test_web_source_shows_host(self):
        entry = _tracker().get_source(1)
        assert format_source_name(entry) == "🌐 docs.test"

    def test_document_name(self):
        entry = _tracker().get_source(2)
        assert format_source_name(entry) == "📄 Handbook"

    def test_progress_bar(self):
        assert create_progress_bar(50, width=10) == "█████░░░░░"
        assert create_progress_bar(150, width=4) == "████"

    def test_display(self):
        display = format_progress_display(2, 4, 50, "Handbook")
        assert display.current_text == "[2/4] Extracting Handbook..."
        assert display.progress_bar.endswith("50% complete")
        assert display.status_icon == "⚡"
        assert format_progress_display(4, 4, 100).status_icon == "✓"
        assert format_progress_display(0, 4, 0).status_icon == "⏳"

    def test_phase_message(self):
        assert phase_message("extracting", 1, 3).endswith("[1/3]")
        assert phase_message("extracting") == "Starting text extraction..."
        assert phase_message("unknown") == "Training in progress..."
