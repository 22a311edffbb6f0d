"""Unit tests for normalize_markup."""

from ficsync.infrastructure.adapters.markup_normalizer import normalize_markup


def test_attributes_are_stripped():
    assert normalize_markup('<p class="x" style="color:red">Hi <strong id="a">there</strong></p>') == (
        "<p>Hi <strong>there</strong></p>"
    )


def test_scripts_navigation_and_ads_are_removed():
    html = (
        "<nav>Prev | Next</nav>"
        "<p>Text</p>"
        "<script>alert(1)</script>"
        '<div id="div-gpt-ad-123">advert</div>'
        "<!-- tracking -->"
        "<form><button>Review</button></form>"
    )
    assert normalize_markup(html) == "<p>Text</p>"


def test_unknown_tags_are_unwrapped_keeping_text():
    assert normalize_markup('<div><span class="x">Kept</span> text</div>') == "Kept text"


def test_void_tags_are_self_closed():
    assert normalize_markup("<p>a<br>b</p><hr>") == "<p>a<br/>b</p><hr/>"


def test_text_is_escaped():
    assert normalize_markup("<p>Fish &amp; chips &lt;3</p>") == "<p>Fish &amp; chips &lt;3</p>"


def test_normalization_is_idempotent():
    once = normalize_markup('<div><p align="center">One<br>Two</p><center>Three</center></div>')
    assert normalize_markup(once) == once
