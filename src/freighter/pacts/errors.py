"""Public exception types — every failure the engine surfaces to callers."""


class FreighterError(Exception):
    """Base class for all freighter failures."""


class TemplateLoadError(FreighterError):
    """Manifest tree unreadable or its base descriptor unparseable."""


class MutationError(FreighterError):
    """A template-level or object-level mutator failed."""


class CompositionError(FreighterError):
    """Overlay merge failed or rendered an object of an unmapped kind."""


class SubmitError(FreighterError):
    """The remote upsert of one rendered object failed."""


class MissingAdvertisementError(FreighterError):
    """One or more required advertised keys are absent.

    ``missing`` holds every absent key, in the order they were asked for.
    """

    def __init__(self, missing: list[str]):
        self.missing = list(missing)
        super().__init__(f"{','.join(self.missing)} indexes not advertised")


class CredentialPersistenceError(FreighterError):
    """Reading or creating a generated credential record failed."""


class StatusQueryError(FreighterError):
    """A remote read or a condition re-encoding failed during Status."""


class NotAppliedError(FreighterError):
    """Status or Advertise called before any overlay was applied."""

    def __init__(self, message: str = "no overlay applied to the controller"):
        super().__init__(message)


class ReadinessTimeout(FreighterError):
    """A component did not report ready before the polling deadline."""
