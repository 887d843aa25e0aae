# -*- coding: utf-8 -*-
"""
geodetect Exception Hierarchy - Domain-specific exceptions for pipeline runs.

Every failure a detection run can report is a subclass of
``GeodetectError``. Configuration and precondition failures additionally
subclass ``ValueError`` (through ``ConfigurationError``) and processing
failures subclass ``RuntimeError``, so callers that only know about the
built-in exceptions keep working.

None of these errors are retried. Each is raised once, with a message that
names the offending file, argument or value, and aborts the run before any
pipeline execution starts.

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
2026-03-02

Modified
--------
2026-03-09
"""


class GeodetectError(Exception):
    """Base exception for all geodetect errors."""


class ConfigurationError(GeodetectError, ValueError):
    """Invalid or contradictory run configuration.

    Raised before any node runs. Subclasses name the specific
    precondition that failed.
    """


class MissingInputSourceError(ConfigurationError):
    """Neither a local image nor a remote map service was specified."""


class NoIntersectionError(ConfigurationError):
    """The requested bounding box does not overlap the image extent."""


class WindowStepCountMismatchError(ConfigurationError):
    """Window sizes and window steps are both multi-valued with
    different counts."""


class ResampleSizeTooLargeError(ConfigurationError):
    """The requested resample size exceeds the model's input width."""


class WindowSizeTooLargeError(ConfigurationError):
    """A requested window size exceeds the model's input width."""


class UnsupportedModelTypeError(ConfigurationError):
    """Segmentation post-processing requested on a model that cannot
    produce polygons."""


class UnsupportedGeometryTypeError(ConfigurationError):
    """A region-filter file contains a geometry that is not a polygon."""


class CrsMismatchError(ConfigurationError):
    """Inputs disagree on geographic anchoring: a region-filter layer and
    the image (one has a CRS, the other does not), or a catalog lookup on
    an image without a CRS."""


class UnknownFilterActionError(ConfigurationError):
    """A region-filter action other than ``include`` or ``exclude``."""


class MissingCredentialsError(ConfigurationError):
    """Cross-reference lookup requested without credentials or token."""


class GraphConstructionError(GeodetectError, RuntimeError):
    """Invalid node wiring.

    Raised when an input port is bound twice, when port kinds do not
    match, or when a required input is left unbound at run time.
    """


class ProcessingError(GeodetectError, RuntimeError):
    """A node failed while the pipeline was executing.

    The original exception is chained as ``__cause__`` and re-raised
    from ``Node.wait()``.
    """


class GeolocationError(GeodetectError, RuntimeError):
    """Coordinate transformation failure.

    Raised when a geographic conversion is requested for a spatial
    reference that has no geographic anchoring.
    """
