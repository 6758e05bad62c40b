"""Exceptions raised while building documentation content."""


class DocsError(Exception):
    """Base class for documentation content errors."""


class BuildError(DocsError):
    """Registry construction failed because of broken configuration."""


class OpenApiParseError(DocsError, ValueError):
    """An API specification could not be read.

    Only the offending specification is rejected; other content still loads.
    """
