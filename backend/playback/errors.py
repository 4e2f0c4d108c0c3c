"""Error types shared by the playback engine and its boundaries."""


class FetchError(Exception):
    """Historical query or live subscription failed (transport or malformed payload)."""


class InvalidArgument(ValueError):
    """A setter received a value it cannot accept. State is left untouched."""
