"""
ERRORS FOR THE ANCESTRY → ETHNICITY PIPELINE

Every lookup failure is raised loudly with the offending value in the message,
so that reference-data drift surfaces as an error rather than a mislabelled row.
"""

from typing import Iterable


class UnmappedAncestryError(KeyError):
    """An ancestry response reached the continent fallback without an entry."""

    def __init__(self, ancestry):
        self.ancestry = ancestry
        super().__init__(ancestry)

    def __str__(self) -> str:
        return f"No continent group for ancestry response {self.ancestry!r}"


class UnmappedEthnicityError(KeyError):
    """One or more ethnicity labels are missing from the category hierarchy."""

    def __init__(self, labels: Iterable):
        self.labels = sorted({str(label) for label in labels})
        super().__init__(self.labels)

    def __str__(self) -> str:
        return f"Ethnicity label(s) missing from the hierarchy: {', '.join(self.labels)}"


class InvalidIndigenousStatusError(ValueError):
    """An Indigenous-status value outside the codes 1-4."""

    def __init__(self, value):
        self.value = value
        super().__init__(f"Invalid Indigenous status {value!r} (expected 1, 2, 3 or 4)")


class MissingColumnsError(KeyError):
    """A dataset lacks columns a stage needs."""

    def __init__(self, missing: Iterable[str], available: Iterable[str] = ()):
        self.missing = list(missing)
        self.available = list(available)
        super().__init__(self.missing)

    def __str__(self) -> str:
        message = f"Missing required column(s): {', '.join(self.missing)}"
        if self.available:
            message += f" (available: {', '.join(self.available)})"
        return message
