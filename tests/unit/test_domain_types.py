"""Unit tests for StoryRef and Checkpoint."""

import pytest

from ficsync.domain.types import Checkpoint, StoryRef


def test_story_ref_key_round_trip():
    story = StoryRef("fanfictionnet", "13587604")
    assert story.key == "fanfictionnet/13587604"
    assert StoryRef.from_key(story.key) == story


@pytest.mark.parametrize("key", ["", "fanfictionnet", "fanfictionnet/", "/42"])
def test_story_ref_rejects_malformed_keys(key):
    with pytest.raises(ValueError):
        StoryRef.from_key(key)


def test_checkpoint_compares_numeric_values_numerically():
    assert Checkpoint("1000").is_after(Checkpoint("999"))
    assert not Checkpoint("999").is_after(Checkpoint("1000"))
    assert not Checkpoint("500").is_after(Checkpoint("500"))


def test_checkpoint_is_after_nothing():
    assert Checkpoint("1").is_after(None)


def test_checkpoint_requires_value():
    with pytest.raises(ValueError):
        Checkpoint("")
