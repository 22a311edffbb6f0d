"""FanFiction.Net source: new-chapter alert classification and chapter scraping."""

from __future__ import annotations

import logging
import re
from datetime import datetime, timezone

import httpx
from bs4 import BeautifulSoup

from ...application.ports.source_site import SourceSitePort
from ...domain.errors import ChapterNotFoundError, ContentBlockedError, SourceUnavailableError
from ...domain.models.chapter import Chapter
from ...domain.models.extraction import ChapterSelector, ExtractionRequest
from ...domain.models.message import RawMessage
from .markup_normalizer import normalize_markup

logger = logging.getLogger(__name__)

SOURCE_KIND = "fanfictionnet"

# Chapter links in alert mails: https://www.fanfiction.net/s/<story>/<chapter>/<slug>
CHAPTER_LINK_RE = re.compile(r"fanfiction\.net/s/(\d+)/(\d+)/")
ALERT_SENDER_DOMAINS = ("fanfiction.com", "fanfiction.net")

# Markers of the anti-bot interstitial served with a 200 or 503
CHALLENGE_MARKERS = ("cf-challenge", "challenge-platform", "Just a moment...", "cf-browser-verification")


class FanFictionNetSource(SourceSitePort):
    """
    Source for www.fanfiction.net.

    Classification reads alert mails from the FanFiction bot. Chapter pages
    are fetched over HTTPS with a timeout and scraped with BeautifulSoup.
    """

    source_kind = SOURCE_KIND

    def __init__(
        self,
        base_url: str = "https://www.fanfiction.net",
        timeout_seconds: float = 20.0,
        user_agent: str | None = None,
        full_story: bool = False,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.full_story = full_story
        headers = {"User-Agent": user_agent} if user_agent else {}
        self.client = client or httpx.Client(timeout=timeout_seconds, headers=headers, follow_redirects=True)

    def close(self) -> None:
        self.client.close()

    def classify(self, message: RawMessage) -> list[ExtractionRequest]:
        sender = message.sender.lower()
        if not any(domain in sender for domain in ALERT_SENDER_DOMAINS):
            return []

        # Story id -> highest chapter announced in this mail
        announced: dict[str, int] = {}
        for body in (message.text_body, message.html_body):
            for story_id, chapter in CHAPTER_LINK_RE.findall(body):
                announced[story_id] = max(announced.get(story_id, 0), int(chapter))

        requests = []
        for story_id, chapter in announced.items():
            if chapter < 1:
                continue
            first = 1 if self.full_story else chapter
            requests.append(
                ExtractionRequest(
                    source_kind=self.source_kind,
                    story_id=story_id,
                    chapter_selector=ChapterSelector(first, chapter),
                )
            )
        return requests

    def fetch_chapter(self, story_id: str, index: int) -> Chapter:
        url = f"{self.base_url}/s/{story_id}/{index}"
        logger.debug(f"Fetching {url}")

        try:
            response = self.client.get(url)
        except httpx.TimeoutException as e:
            raise SourceUnavailableError(self.source_kind, story_id, index, f"timed out ({type(e).__name__})") from e
        except httpx.RequestError as e:
            raise SourceUnavailableError(self.source_kind, story_id, index, f"request failed ({type(e).__name__})") from e

        text = response.text
        status = response.status_code
        if status in (403, 429) or (status == 503 and self._is_challenge(text)):
            raise ContentBlockedError(self.source_kind, story_id, index, f"HTTP {status}")
        if status == 404:
            raise ChapterNotFoundError(self.source_kind, story_id, index)
        if status >= 500:
            raise SourceUnavailableError(self.source_kind, story_id, index, f"HTTP {status}")
        if status != 200:
            raise ContentBlockedError(self.source_kind, story_id, index, f"unexpected HTTP {status}")
        if self._is_challenge(text):
            raise ContentBlockedError(self.source_kind, story_id, index, "anti-bot challenge page")

        return self.parse_chapter(text, story_id, index)

    def parse_chapter(self, html: str, story_id: str, index: int) -> Chapter:
        """
        Scrape one chapter page.

        Raises:
            ChapterNotFoundError: Page is the site's "Story Not Found" notice or has no story text
        """
        soup = BeautifulSoup(html, "html.parser")

        story_text = soup.select_one("#storytext") or soup.select_one(".storytext")
        if story_text is None:
            # "Story Not Found" notices and unpublished chapters have no story text
            raise ChapterNotFoundError(self.source_kind, story_id, index)

        story_title = self._text(soup.select_one("#profile_top > b.xcontrast_txt"))
        author = self._text(soup.select_one("#profile_top > a"))

        # The page carries two #chap_select menus; the first one is authoritative
        title = ""
        total = 0
        chap_select = soup.select_one("#chap_select")
        if chap_select is not None:
            options = chap_select.find_all("option")
            total = len(options)
            selected = chap_select.select_one("option[selected]")
            title = self._text(selected)
        if not title:
            title = f"Chapter {index}"

        return Chapter(
            story_id=story_id,
            index=index,
            title=title,
            body=normalize_markup(story_text.decode_contents()),
            fetched_at=datetime.now(timezone.utc),
            story_title=story_title,
            author=author,
            total_chapters=total,
        )

    @staticmethod
    def _text(tag) -> str:
        return tag.get_text(" ", strip=True) if tag is not None else ""

    @staticmethod
    def _is_challenge(html: str) -> bool:
        return any(marker in html for marker in CHALLENGE_MARKERS)
