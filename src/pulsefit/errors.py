from __future__ import annotations


class PulseFitError(Exception):
    """Base class for pulsefit errors."""

    pass


class ConfigurationError(PulseFitError):
    """Fatal error raised for structural misconfiguration. Halts the run.

    Attributes
    ----------
    detector: str
        name of the detector whose configuration is broken. This can be set
        after the exception is caught, and is appended to the error message
    entry: int
        index of the event being processed when the error was raised, if any
    """

    def __init__(self, *args, detector: str = None, entry: int = None) -> None:
        super().__init__(*args)
        self.detector = detector
        self.entry = entry

    def __str__(self) -> str:
        suffix = ""
        if self.detector:
            suffix += "\nThrown for detector " + self.detector
        if self.entry is not None:
            suffix += "\nThrown while processing entry " + str(self.entry)
        return super().__str__() + suffix


class TemplateError(PulseFitError):
    """Error thrown when a template cannot be built, read or written."""

    pass
