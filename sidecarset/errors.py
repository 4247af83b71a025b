"""Exceptions raised by the sidecarset engine."""


class SidecarSetError(Exception):
    """Base class for sidecarset engine errors."""


class SelectorError(SidecarSetError):
    """A label selector could not be interpreted."""


class SerializationError(SidecarSetError):
    """A sidecar template could not be canonically encoded for hashing."""
