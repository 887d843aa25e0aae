# -*- coding: utf-8 -*-
"""
Window Planner Tests - Pairing of window sizes and steps, aspect ratio
scaling and validation against the model size.

Dependencies
------------
pytest

Author
------
Steven Siebert

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-03-05

Modified
--------
2026-03-09
"""

import pytest

from geodetect.exceptions import (
    ConfigurationError,
    ResampleSizeTooLargeError,
    WindowSizeTooLargeError,
    WindowStepCountMismatchError,
)
from geodetect.planning.windows import WindowPlanner, WindowSpec, round_half_up


def half_step(size):
    return (size[0] // 2, size[1] // 2)


def planner(**kwargs):
    kwargs.setdefault('model_size', (224, 224))
    kwargs.setdefault('default_step', half_step)
    return WindowPlanner(**kwargs)


class TestPairing:

    def test_equal_counts_zip(self):
        plan = planner(window_sizes=[100, 200], window_steps=[50, 80]).plan()
        assert plan == (
            WindowSpec((100, 100), (50, 50)),
            WindowSpec((200, 200), (80, 80)),
        )

    def test_single_size_single_step(self):
        plan = planner(window_sizes=[150], window_steps=[30]).plan()
        assert plan == (WindowSpec((150, 150), (30, 30)),)

    def test_sizes_broadcast_primary_step(self):
        plan = planner(window_sizes=[150, 200], window_steps=[50]).plan()
        assert plan == (
            WindowSpec((150, 150), (50, 50)),
            WindowSpec((200, 200), (50, 50)),
        )

    def test_sizes_without_steps_use_default_of_primary(self):
        plan = planner(window_sizes=[100, 200]).plan()
        assert [spec.step for spec in plan] == [(50, 50), (50, 50)]

    def test_steps_broadcast_primary_size(self):
        plan = planner(window_sizes=[120], window_steps=[30, 60, 90]).plan()
        assert plan == (
            WindowSpec((120, 120), (30, 30)),
            WindowSpec((120, 120), (60, 60)),
            WindowSpec((120, 120), (90, 90)),
        )

    def test_steps_without_sizes_use_model_size(self):
        plan = planner(window_steps=[40, 80]).plan()
        assert [spec.size for spec in plan] == [(224, 224), (224, 224)]

    def test_default_plan(self):
        assert planner().plan() == (WindowSpec((224, 224), (112, 112)),)

    def test_mismatched_counts_fail(self):
        with pytest.raises(WindowStepCountMismatchError):
            planner(window_sizes=[100, 150, 200], window_steps=[30, 60]).plan()

    def test_mismatch_is_configuration_error(self):
        with pytest.raises(ConfigurationError):
            planner(window_sizes=[100, 150], window_steps=[30, 60, 90]).plan()


class TestAspectRatio:

    def test_heights_follow_model(self):
        plan = planner(model_size=(200, 100), window_sizes=[150], window_steps=[40]).plan()
        assert plan == (WindowSpec((150, 75), (40, 20)),)

    def test_half_rounds_up(self):
        plan = planner(model_size=(200, 100), window_sizes=[151], window_steps=[41]).plan()
        assert plan[0].size == (151, 76)
        assert plan[0].step == (41, 21)

    @pytest.mark.parametrize("value, expected", [
        (0.5, 1), (1.5, 2), (2.4999, 2), (-0.5, -1), (3.0, 3),
    ])
    def test_round_half_up(self, value, expected):
        assert round_half_up(value) == expected


class TestResampling:

    def test_primary_size_from_resample(self):
        p = planner(resampled_size=112)
        assert p.primary_size == (112, 112)
        assert p.primary_step == (56, 56)

    def test_resampled_and_padded_sizes(self):
        p = planner(resampled_size=112)
        assert p.resampled_size == (112, 112)
        assert p.padded_size == (224, 224)

    def test_without_resample(self):
        p = planner()
        assert p.resampled_size == (224, 224)
        assert p.padded_size is None

    def test_resample_larger_than_model_fails(self):
        with pytest.raises(ResampleSizeTooLargeError):
            planner(resampled_size=300)

    def test_window_larger_than_model_fails(self):
        with pytest.raises(WindowSizeTooLargeError):
            planner(window_sizes=[100, 300])

    def test_resample_allows_large_windows(self):
        plan = planner(window_sizes=[400], resampled_size=200).plan()
        assert plan[0].size == (400, 400)
