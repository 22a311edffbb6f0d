"""Port for source sites that publish stories announced by email."""

from __future__ import annotations

from abc import ABC, abstractmethod

from ...domain.models.chapter import Chapter
from ...domain.models.extraction import ExtractionRequest
from ...domain.models.message import RawMessage


class SourceSitePort(ABC):
    """One implementation per supported source, selected by `source_kind`."""
    
    source_kind: str
    
    @abstractmethod
    def classify(self, message: RawMessage) -> list[ExtractionRequest]:
        """
        Derive extraction requests from a message.
        
        Pure function of the message content. Messages not sent by this
        source yield an empty list, never an error.
        
        Args:
            message: Decoded mailbox message
        
        Returns:
            Extraction requests tagged with this source's `source_kind`
        """
        pass
    
    @abstractmethod
    def fetch_chapter(self, story_id: str, index: int) -> Chapter:
        """
        Fetch one chapter and normalize its markup.
        
        Args:
            story_id: Story identifier on the source
            index: 1-based chapter index
        
        Returns:
            Chapter with normalized XHTML body
        
        Raises:
            SourceUnavailableError: Network failure or timeout (retryable)
            ContentBlockedError: Source rejects automated access (non-retryable)
            ChapterNotFoundError: Chapter does not exist (non-retryable)
        """
        pass
