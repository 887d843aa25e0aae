# -*- coding: utf-8 -*-
"""
Window Planner - Multi-scale sliding-window sizes and steps.

Turns the user's window widths and step widths into the ordered window plan
the sliding-window node scans with. Each ``WindowSpec`` drives one sliding
pass over the area of interest. Heights are derived from widths through the
model's fixed aspect ratio.

Pairing rules, in order:

1. Equal, non-zero counts of widths and steps: zip element-wise.
2. Several widths (zero or one step): every width with the primary step.
3. Several steps (zero or one width): the primary width with every step.
4. Otherwise: a single pass with the primary size and primary step.

Several widths and several steps with different counts is an error.

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

# Standard library
import math
from typing import Callable, NamedTuple, Optional, Sequence, Tuple

# geodetect internal
from geodetect.exceptions import (
    ResampleSizeTooLargeError,
    WindowSizeTooLargeError,
    WindowStepCountMismatchError,
)

Size = Tuple[int, int]


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves away from zero."""
    return int(math.floor(abs(value) + 0.5)) * (1 if value >= 0 else -1)


class WindowSpec(NamedTuple):
    """One sliding-window pass.

    Attributes
    ----------
    size : Tuple[int, int]
        Window ``(width, height)`` in pixels.
    step : Tuple[int, int]
        Window step ``(dx, dy)`` in pixels.
    """

    size: Size
    step: Size


class WindowPlanner:
    """Plan sliding-window passes for a model.

    Parameters
    ----------
    model_size : Tuple[int, int]
        Model input ``(width, height)``.
    default_step : Callable[[Tuple[int, int]], Tuple[int, int]]
        The model's recommended step for a window size, typically
        ``DetectionModel.default_step``.
    window_sizes : Sequence[int]
        Requested window widths. Empty for the default.
    window_steps : Sequence[int]
        Requested step widths. Empty for the default.
    resampled_size : int, optional
        Width every window is resampled to before detection.

    Raises
    ------
    ResampleSizeTooLargeError
        If *resampled_size* exceeds the model width.
    WindowSizeTooLargeError
        If a window width exceeds the model width and no resample size is
        requested.

    Examples
    --------
    >>> planner = WindowPlanner((224, 224), model.default_step,
    ...                         window_sizes=[150, 200], window_steps=[50])
    >>> planner.plan()
    (WindowSpec(size=(150, 150), step=(50, 50)),
     WindowSpec(size=(200, 200), step=(50, 50)))
    """

    def __init__(
        self,
        model_size: Size,
        default_step: Callable[[Size], Size],
        window_sizes: Sequence[int] = (),
        window_steps: Sequence[int] = (),
        resampled_size: Optional[int] = None,
    ) -> None:
        self._model_size = (int(model_size[0]), int(model_size[1]))
        self._window_sizes = tuple(int(w) for w in window_sizes)
        self._window_steps = tuple(int(s) for s in window_steps)
        self._resampled_width = resampled_size
        self._validate()

        if self._window_sizes:
            self._primary_size = self._scaled(self._window_sizes[0])
        elif self._resampled_width:
            self._primary_size = self._scaled(self._resampled_width)
        else:
            self._primary_size = self._model_size

        if self._window_steps:
            self._primary_step = self._scaled(self._window_steps[0])
        else:
            self._primary_step = tuple(default_step(self._primary_size))

    def _validate(self) -> None:
        model_width = self._model_size[0]
        if self._resampled_width is not None and self._resampled_width > model_width:
            raise ResampleSizeTooLargeError(
                f"Resample size {self._resampled_width} does not fit within "
                f"the model (width: {model_width})"
            )
        if self._resampled_width is None:
            for width in self._window_sizes:
                if width > model_width:
                    raise WindowSizeTooLargeError(
                        f"Window size {width} does not fit within the model "
                        f"(width: {model_width})"
                    )

    @property
    def aspect_ratio(self) -> float:
        """Model height over model width."""
        return self._model_size[1] / self._model_size[0]

    def _scaled(self, width: int) -> Size:
        return (width, round_half_up(self.aspect_ratio * width))

    @property
    def primary_size(self) -> Size:
        """Size used for single-pass plans and broadcast over steps."""
        return self._primary_size

    @property
    def primary_step(self) -> Size:
        """Step used for single-pass plans and broadcast over sizes."""
        return self._primary_step

    @property
    def resampled_size(self) -> Size:
        """Size each window is resampled to before detection.

        The requested resample size, or the model size when none is
        requested.
        """
        if self._resampled_width:
            return self._scaled(self._resampled_width)
        return self._model_size

    @property
    def padded_size(self) -> Optional[Size]:
        """Border padding target: the model size when resampling, else
        ``None`` (pad to the window size)."""
        if self._resampled_width:
            return self._model_size
        return None

    def plan(self) -> Tuple[WindowSpec, ...]:
        """Ordered window plan.

        Returns
        -------
        Tuple[WindowSpec, ...]

        Raises
        ------
        WindowStepCountMismatchError
            If both lists hold several values with different counts.
        """
        sizes, steps = self._window_sizes, self._window_steps
        if len(sizes) > 1 and len(steps) > 1 and len(sizes) != len(steps):
            raise WindowStepCountMismatchError(
                f"Number of window sizes ({len(sizes)}) and window steps "
                f"({len(steps)}) must match"
            )

        if steps and len(sizes) == len(steps):
            return tuple(
                WindowSpec(self._scaled(size), self._scaled(step))
                for size, step in zip(sizes, steps)
            )
        if len(sizes) > 1:
            return tuple(
                WindowSpec(self._scaled(size), self._primary_step)
                for size in sizes
            )
        if len(steps) > 1:
            return tuple(
                WindowSpec(self._primary_size, self._scaled(step))
                for step in steps
            )
        return (WindowSpec(self._primary_size, self._primary_step),)

    def __repr__(self) -> str:
        return (
            f"WindowPlanner(model_size={self._model_size}, "
            f"window_sizes={self._window_sizes}, "
            f"window_steps={self._window_steps}, "
            f"resampled_size={self._resampled_width})"
        )
