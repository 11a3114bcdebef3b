"""
Tests for the accumulating Timer.
"""

import pytest

from pyflexcure.core.compute import Timer


class TestTimer:

    def test_sections_accumulate(self):
        timer = Timer()
        timer.start()
        with timer.section('optimization'):
            pass
        with timer.section('optimization'):
            pass
        timer.stop()
        result = timer.result()
        assert set(result) == {'total_seconds', 'optimization'}
        assert result['optimization'] >= 0.0

    def test_result_before_stop(self):
        timer = Timer()
        timer.start()
        with pytest.raises(RuntimeError):
            timer.result()

    def test_stop_before_start(self):
        with pytest.raises(RuntimeError):
            Timer().stop()
