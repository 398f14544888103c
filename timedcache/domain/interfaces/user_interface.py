"""Interface for interacting with the user (output only).

Defines the contract for displaying information, errors, warnings and
lookup results, allowing different UI implementations.
"""

import abc
from typing import Any, Dict, List


class UserInterface(abc.ABC):
    """Abstract Base Class for user interaction."""

    @abc.abstractmethod
    def display_info(self, info_message: str, **kwargs: Any) -> None:
        """Displays an informational message to the user."""
        pass

    @abc.abstractmethod
    def display_success(self, message: str, **kwargs: Any) -> None:
        """Displays a success message to the user."""
        pass

    @abc.abstractmethod
    def display_warning(self, warning_message: str, **kwargs: Any) -> None:
        """Displays a warning message to the user."""
        pass

    @abc.abstractmethod
    def display_error(self, error_message: str, **kwargs: Any) -> None:
        """Displays an error message to the user."""
        pass

    @abc.abstractmethod
    def display_lookups(self, rows: List[Dict[str, Any]], title: str = "Lookups") -> None:
        """Displays a table of lookup results.

        Args:
            rows: One mapping per lookup; keys become column headers.
            title: Table title.
        """
        pass
