"""Turn ordered chapters into a single portable document."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime
from typing import Iterable, Sequence

from ...domain.errors import IncompleteStoryError
from ...domain.models.chapter import Chapter
from ...domain.models.document import Document
from ...domain.policy.assembly_policy import AssemblyPolicy
from ...domain.types import StoryRef
from ..ports.packager import DocumentPackagerPort

logger = logging.getLogger(__name__)


class DocumentAssembler:
    """
    Builds a Document (and its package bytes) from a story's chapters.

    Output is deterministic: identical chapters in identical order produce a
    byte-identical package.
    """

    def __init__(self, packager: DocumentPackagerPort, policy: AssemblyPolicy | None = None) -> None:
        self.packager = packager
        self.policy = policy or AssemblyPolicy()

    def assemble(
        self,
        story: StoryRef,
        chapters: Sequence[Chapter],
        expected_indices: Iterable[int] | None = None,
        built_at: datetime | None = None,
    ) -> Document:
        """
        Assemble `chapters` into a Document.

        Args:
            story: Story being assembled
            chapters: Chapters of the story (a republished index replaces the older copy)
            expected_indices: Indices that were requested; absent ones count as gaps
            built_at: Package timestamp (default: latest chapter fetch time)

        Returns:
            Document with `package` populated and gaps listed in `missing`

        Raises:
            IncompleteStoryError: No chapters, or gaps while partial assembly is disabled
        """
        if not chapters:
            raise IncompleteStoryError(story.key, reason="no chapters were fetched")

        latest: dict[int, Chapter] = {}
        for chapter in chapters:
            if chapter.story_id != story.story_id:
                raise ValueError(
                    f"Chapter {chapter.index} belongs to story {chapter.story_id}, not {story.story_id}"
                )
            current = latest.get(chapter.index)
            if current is None or chapter.fetched_at >= current.fetched_at:
                latest[chapter.index] = chapter
        ordered = tuple(latest[i] for i in sorted(latest))

        missing = self._detect_gaps([c.index for c in ordered], expected_indices)
        if missing and not self.policy.allow_partial:
            raise IncompleteStoryError(story.key, missing)

        title = next((c.story_title for c in ordered if c.story_title), "") or f"Story {story.story_id}"
        author = next((c.author for c in ordered if c.author), "") or "Unknown"

        document = Document(
            story=story,
            title=title,
            author=author,
            chapters=ordered,
            built_at=built_at or max(c.fetched_at for c in ordered),
            missing=missing,
        )
        package = self.packager.package(document)

        if missing:
            logger.warning(
                f"Assembled {story.key} with gaps at chapter(s) {', '.join(str(i) for i in missing)}",
                extra={"story": story.key, "stage": "assembling", "missing": list(missing)},
            )
        else:
            logger.info(
                f"Assembled {story.key}: {len(ordered)} chapter(s), {len(package)} bytes",
                extra={"story": story.key, "stage": "assembling"},
            )
        return replace(document, package=package)

    @staticmethod
    def _detect_gaps(present: list[int], expected: Iterable[int] | None) -> tuple[int, ...]:
        wanted = set(range(min(present), max(present) + 1))
        if expected is not None:
            wanted |= set(expected)
        return tuple(sorted(wanted - set(present)))
