"""Deterministic EPUB 3 packaging of assembled documents."""

from __future__ import annotations

import io
import zipfile
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import Environment, FileSystemLoader, StrictUndefined

from ...domain.models.document import Document
from ...domain.policy.assembly_policy import AssemblyPolicy

TEMPLATES_DIR = Path(__file__).parent / "templates"

# Zip timestamps cannot predate the DOS epoch
_ZIP_EPOCH = datetime(1980, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True)
class _ChapterEntry:
    id: str
    href: str
    title: str
    body: str


class EpubPackager:
    """
    Renders a Document into an EPUB 3 container.

    Entry order, entry timestamps and compression settings are fixed, and the
    only clock read is `document.built_at`, so the same document always yields
    the same bytes.
    """

    def __init__(self, policy: AssemblyPolicy | None = None) -> None:
        self.policy = policy or AssemblyPolicy()
        self.env = Environment(
            loader=FileSystemLoader(str(TEMPLATES_DIR)),
            autoescape=True,
            undefined=StrictUndefined,
            keep_trailing_newline=True,
        )

    def package(self, document: Document) -> bytes:
        built_at = document.built_at
        if built_at.tzinfo is None:
            built_at = built_at.replace(tzinfo=timezone.utc)
        built_at = max(built_at.astimezone(timezone.utc), _ZIP_EPOCH)

        chapters = [
            _ChapterEntry(
                id=f"chapter_{chapter.index:04d}",
                href=f"chapter_{chapter.index:04d}.xhtml",
                title=chapter.title,
                body=chapter.body,
            )
            for chapter in document.chapters
        ]
        context = {
            "document": document,
            "chapters": chapters,
            "identifier": f"urn:ficsync:{document.story.source_kind}:{document.story_id}",
            "language": self.policy.language,
            "generator": self.policy.generator,
            "modified": built_at.strftime("%Y-%m-%dT%H:%M:%SZ"),
        }

        entries: list[tuple[str, str]] = [
            ("META-INF/container.xml", self._render("container.xml.j2", context)),
            ("OEBPS/content.opf", self._render("content.opf.j2", context)),
            ("OEBPS/nav.xhtml", self._render("nav.xhtml.j2", context)),
            ("OEBPS/toc.ncx", self._render("toc.ncx.j2", context)),
            ("OEBPS/style.css", self._render("style.css.j2", context)),
        ]
        # Single-chapter documents take their heading from the reader's own chrome
        show_titles = len(chapters) > 1
        for chapter in chapters:
            entries.append(
                (
                    f"OEBPS/{chapter.href}",
                    self._render("chapter.xhtml.j2", {**context, "chapter": chapter, "show_titles": show_titles}),
                )
            )

        date_time = built_at.timetuple()[:6]
        buffer = io.BytesIO()
        with zipfile.ZipFile(buffer, "w") as archive:
            # OCF requires an uncompressed mimetype as the very first entry
            archive.writestr(self._info("mimetype", date_time, zipfile.ZIP_STORED), "application/epub+zip")
            for name, content in entries:
                archive.writestr(self._info(name, date_time, zipfile.ZIP_DEFLATED), content.encode("utf-8"))
        return buffer.getvalue()

    def _render(self, template: str, context: dict) -> str:
        return self.env.get_template(template).render(**context)

    @staticmethod
    def _info(name: str, date_time: tuple, compress_type: int) -> zipfile.ZipInfo:
        info = zipfile.ZipInfo(name, date_time=date_time)
        info.compress_type = compress_type
        info.external_attr = 0o644 << 16
        info.create_system = 3
        return info
