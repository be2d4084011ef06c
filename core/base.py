"""
Core Base Classes

Abstract interfaces shared by the loaders and renderers.
"""

from abc import ABC, abstractmethod
from typing import Any

import numpy as np


class BaseLoader(ABC):
    """Abstract base class for data loaders."""

    @abstractmethod
    def load(self, source: Any) -> Any:
        """
        Load data from a source.

        Args:
            source: Path, buffer or collection of either

        Returns:
            The loaded data object
        """
        pass

    def can_load(self, source: str) -> bool:
        """
        Check if this loader can handle the given source.

        Args:
            source: Path or URI to check

        Returns:
            True if this loader can handle the source
        """
        return True


class BaseRenderer(ABC):
    """Abstract base class for frame renderers."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Renderer name for logging."""
        pass

    @abstractmethod
    def render(self, atlas: Any, *args, **kwargs) -> np.ndarray:
        """
        Render one frame from an atlas.

        Returns:
            Frame array (height, width, channels)
        """
        pass
