"""Unit tests for the FanFiction.Net source, with HTTP served by httpx.MockTransport."""

import httpx
import pytest

from ficsync.domain.errors import ChapterNotFoundError, ContentBlockedError, SourceUnavailableError
from ficsync.domain.models.extraction import ChapterSelector, ExtractionRequest
from ficsync.domain.models.message import RawMessage
from ficsync.infrastructure.adapters.fanfictionnet import FanFictionNetSource

ALERT_SENDER = "FanFiction <bot@fanfiction.com>"

ALERT_TEXT = (
    "New chapter from AppoApples,\r\n\r\n"
    "Significant Brain Damage\r\n"
    "Chapter 31: The Twins of Alderaan\r\n\r\n"
    "https://www.fanfiction.net/s/13587604/31/Significant-Brain-Damage\r\n\r\n"
    "Star Wars\r\n\r\n"
    "Words: 3,479\r\n"
    "Genre: Drama/Humor\r\n"
    "Rated: T\r\n\r\n"
    "FanFiction https://www.fanfiction.net\r\n\r\n"
    "Follow us on twitter @ https://twitter.com/fictionpress\r\n\r\n"
)

CHAPTER_PAGE = """
<html><body>
<div id="profile_top">
  <b class="xcontrast_txt">Significant Brain Damage</b>
  <a class="xcontrast_txt" href="/u/1/AppoApples">AppoApples</a>
</div>
<select id="chap_select" name="chapter">
  <option value="1">1. Prologue</option>
  <option value="2" selected>2. The Twins of Alderaan</option>
  <option value="3">3. Later</option>
</select>
<div id="storytext" class="storytext xcontrast_txt nocopy">
  <p style="text-align:center;">First <em>line</em>.</p>
  <script>track();</script>
  <div class="adsbygoogle">Buy now</div>
  <p>Second line.</p>
</div>
<select id="chap_select" name="chapter"><option value="1">bottom menu</option></select>
</body></html>
"""


def make_source(handler, full_story: bool = False) -> FanFictionNetSource:
    client = httpx.Client(transport=httpx.MockTransport(handler))
    return FanFictionNetSource(base_url="https://www.fanfiction.net/", full_story=full_story, client=client)


def page(status: int, text: str = ""):
    return lambda request: httpx.Response(status, text=text)


def alert_message(text: str = ALERT_TEXT, sender: str = ALERT_SENDER) -> RawMessage:
    return RawMessage(message_id="m1", sender=sender, subject="New chapter", text_body=text)


def test_classify_fanfiction_alert():
    source = make_source(page(200))
    assert source.classify(alert_message()) == [
        ExtractionRequest("fanfictionnet", "13587604", ChapterSelector(31, 31))
    ]


def test_classify_full_story_mode():
    source = make_source(page(200), full_story=True)
    assert source.classify(alert_message())[0].chapter_selector == ChapterSelector(1, 31)


def test_classify_ignores_other_senders():
    assert make_source(page(200)).classify(alert_message(sender="someone@example.com")) == []


def test_classify_keeps_highest_chapter_per_story():
    text = (
        "https://www.fanfiction.net/s/1/4/a\n"
        "https://www.fanfiction.net/s/1/6/a\n"
        "https://www.fanfiction.net/s/2/1/b\n"
    )
    requests = make_source(page(200)).classify(alert_message(text=text))
    assert [(r.story_id, r.chapter_selector.last) for r in requests] == [("1", 6), ("2", 1)]


def test_classify_reads_html_body():
    message = RawMessage(
        message_id="m1",
        sender=ALERT_SENDER,
        html_body='<a href="https://www.fanfiction.net/s/77/3/x">Read</a>',
    )
    assert make_source(page(200)).classify(message)[0].story_id == "77"


def test_fetch_chapter_parses_page():
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(str(request.url))
        return httpx.Response(200, text=CHAPTER_PAGE)

    chapter = make_source(handler).fetch_chapter("13587604", 2)

    assert seen == ["https://www.fanfiction.net/s/13587604/2"]
    assert chapter.index == 2
    assert chapter.title == "2. The Twins of Alderaan"
    assert chapter.story_title == "Significant Brain Damage"
    assert chapter.author == "AppoApples"
    assert chapter.total_chapters == 3
    assert "<p>First <em>line</em>.</p>" in chapter.body
    assert "<p>Second line.</p>" in chapter.body
    assert "track()" not in chapter.body
    assert "Buy now" not in chapter.body


def test_chapter_title_fallback():
    html = '<div id="storytext"><p>Only chapter.</p></div>'
    chapter = make_source(page(200, html)).fetch_chapter("5", 1)
    assert chapter.title == "Chapter 1"
    assert chapter.total_chapters == 0


@pytest.mark.parametrize(
    "status,text,error",
    [
        (403, "", ContentBlockedError),
        (429, "", ContentBlockedError),
        (503, "<title>Just a moment...</title>", ContentBlockedError),
        (200, '<div class="cf-challenge"></div>', ContentBlockedError),
        (302, "", ContentBlockedError),
        (404, "", ChapterNotFoundError),
        (200, "<p>Story Not Found</p>", ChapterNotFoundError),
        (500, "", SourceUnavailableError),
        (503, "maintenance", SourceUnavailableError),
    ],
)
def test_fetch_chapter_error_mapping(status, text, error):
    with pytest.raises(error):
        make_source(page(status, text)).fetch_chapter("5", 1)


@pytest.mark.parametrize("exc", [httpx.ConnectTimeout("slow"), httpx.ConnectError("refused")])
def test_network_failures_are_transient(exc):
    def handler(request):
        raise exc

    with pytest.raises(SourceUnavailableError) as exc_info:
        make_source(handler).fetch_chapter("5", 1)
    assert exc_info.value.is_transient
