"""Interface for presenting synchronization state to the user.

Allows different UI implementations (console today) to render the same
job and search state.
"""

import abc
from typing import Any, Sequence

from syncdash.domain.models.jobs import JobState
from syncdash.domain.models.search import CategorizedResults, DiscoverySuggestion


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message."""
        pass

    @abc.abstractmethod
    def display_job_state(self, state: JobState) -> None:
        """Renders the orphan analysis state (progress, counts, error)."""
        pass

    @abc.abstractmethod
    def display_suggestions(self, suggestions: Sequence[DiscoverySuggestion]) -> None:
        """Renders discovery suggestions."""
        pass

    @abc.abstractmethod
    def display_results(self, results: CategorizedResults) -> None:
        """Renders categorized retrieval results."""
        pass
