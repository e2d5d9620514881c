"""测试 ProgressTracker 进度计算."""

from inosync.core.sync import ProgressTracker


class TestProgressTracker:
    """测试分母上调时进度不回退."""

    def test_single_page_reaches_end(self) -> None:
        tracker = ProgressTracker(30, 90, max_pages=10)
        assert tracker.page_done(has_more=False) == 90

    def test_growing_denominator_never_regresses(self) -> None:
        """每页都有 continuation 时，进度单调递增且不超过终点."""
        tracker = ProgressTracker(30, 90, max_pages=10)
        values = [tracker.page_done(has_more=True) for _ in range(5)]
        values.append(tracker.page_done(has_more=False))

        assert values == sorted(values)
        assert values[-1] == 90
        assert all(30 <= v <= 90 for v in values)

    def test_denominator_capped_by_max_pages(self) -> None:
        tracker = ProgressTracker(30, 90, max_pages=3)
        tracker.page_done(has_more=True)
        tracker.page_done(has_more=True)
        assert tracker.pages_known == 3
        assert tracker.page_done(has_more=True) == 90

    def test_clamps_when_raw_value_drops(self) -> None:
        """原始值下降时保持上一次的百分比."""
        tracker = ProgressTracker(0, 100, max_pages=10)
        tracker.percentage = 80
        assert tracker.page_done(has_more=True) == 80
