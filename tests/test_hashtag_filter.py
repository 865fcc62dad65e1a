from datetime import date

from pulse.analyzer.hashtag_filter import (
    extract_hashtags,
    filter_posts,
    matches,
    normalize_hashtags,
)
from pulse.core.metric_registry import Platform

from conftest import post


def test_empty_requirement_passes_everything():
    assert matches("anything", None) is True
    assert matches("anything", []) is True
    assert matches(None, []) is True


def test_missing_text_fails_non_empty_requirement():
    assert matches(None, ["promo"]) is False
    assert matches("", ["promo"]) is False


def test_hash_substring_match_is_case_insensitive():
    assert matches("Loving this #PromoWeek drop", ["promoweek"]) is True
    assert matches("Loving this drop", ["#PromoWeek"]) is False


def test_bare_word_match_on_word_boundaries():
    assert matches("big promo today", ["promo"]) is True
    assert matches("promotional stuff", ["promo"]) is False


def test_any_tag_is_enough():
    assert matches("#beta launch", ["alpha", "beta"]) is True


def test_tags_with_regex_characters_are_escaped():
    assert matches("price c++ deal", ["c++"]) is False
    assert matches("#c++ deal", ["c++"]) is True


def test_normalize_hashtags_strips_and_dedupes():
    assert normalize_hashtags(["#Promo", " promo ", "", "Launch"]) == ["promo", "launch"]


def test_extract_hashtags():
    assert extract_hashtags("Hi #One and #two_2!") == ["#one", "#two_2"]
    assert extract_hashtags(None) == []


def test_filter_posts_keeps_matching_posts():
    d = date(2024, 1, 3)
    posts = [
        post(Platform.TIKTOK, "1", "a", d, views=10, text="#promo"),
        post(Platform.TIKTOK, "2", "a", d, views=10, text="nothing"),
        post(Platform.TIKTOK, "3", "a", d, views=10),
    ]
    assert [p.external_id for p in filter_posts(posts, ["promo"])] == ["1"]
    assert len(filter_posts(posts, None)) == 3
