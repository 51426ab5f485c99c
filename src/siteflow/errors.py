"""Exception hierarchy for siteflow."""

from __future__ import annotations


class SiteflowError(Exception):
    """Base class for every error raised by siteflow."""


class GraphValidationError(SiteflowError, ValueError):
    """Input cannot be interpreted as a site-flow graph at all."""


class GenerationError(SiteflowError):
    """The text-generation collaborator failed or returned unusable output."""


class StorageError(SiteflowError):
    """A project record could not be written."""
