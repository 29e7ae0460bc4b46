"""Error taxonomy for source pipelines.

Structural errors (InvalidAssetKind, SourceUnavailable, ConfigurationMissing)
abort a single pipeline invocation and are reported by the dispatcher.
RetrievalFailure is local to one retrieval attempt and is absorbed by the
pipeline. Being out of scope is not an error.
"""


class DiscoveryError(Exception):
    pass


class InvalidAssetKind(DiscoveryError):
    """The inbound asset is not the kind the handler accepts."""

    def __init__(self, expected: str, got: str):
        super().__init__(f"failed to extract the {expected} asset (got {got})")
        self.expected = expected
        self.got = got


class SourceUnavailable(DiscoveryError):
    """The graph store could not resolve or create the source node."""


class ConfigurationMissing(DiscoveryError):
    """No TTL policy exists for a (subject kind, evidence kind, source) triple."""


class RetrievalFailure(DiscoveryError):
    """A network or parsing failure during one external retrieval."""


class ConfigError(DiscoveryError):
    pass


class QueueClosed(DiscoveryError):
    pass


class MutationCancelled(DiscoveryError):
    """A mutation raised CancelledError without the writer being cancelled."""
