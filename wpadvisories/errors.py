"""Exception hierarchy for wp-advisories-upgrader."""


class AdvisoriesError(Exception):
    """Base class for all errors raised by this package."""


class ConfigError(AdvisoriesError):
    """Required configuration is missing or invalid."""


class SourceError(AdvisoriesError):
    """The feed or the manifest could not be fetched or decoded."""


class ManifestError(SourceError):
    """The manifest is not a usable composer.json document."""


class FeedNormalizationError(AdvisoriesError):
    """A single feed record does not match the expected schema."""


class PublishError(AdvisoriesError):
    """A remote write (branch, file update, pull request) failed."""


class GatewayError(PublishError):
    """The git hosting API answered with an error status."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code
