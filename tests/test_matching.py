"""Tests for keyword extraction, scoring and the chat reply."""

import pytest

from heritage_library.library.matching import (
    MatchWeights,
    build_reply,
    detect_aspect,
    extract_keywords,
    find_matches,
    match_resources,
)

from conftest import make_resource


class TestExtractKeywords:

    def test_raw_message_comes_first(self):
        assert extract_keywords("饺子")[0] == "饺子"

    def test_stop_words_are_stripped_from_chinese_text(self):
        assert extract_keywords("我要看烤鸭的图片") == ["我要看烤鸭的图片", "烤鸭"]

    def test_punctuation_splits_and_duplicates_collapse(self):
        assert extract_keywords("剪纸，剪纸！窗花") == ["剪纸，剪纸！窗花", "剪纸", "窗花"]

    def test_single_characters_are_dropped(self):
        assert extract_keywords("茶, 京剧") == ["茶, 京剧", "京剧"]

    def test_longer_stop_word_wins(self):
        assert extract_keywords("看看昆曲") == ["看看昆曲", "昆曲"]

    @pytest.mark.parametrize("message", ["", "   ", None])
    def test_empty_message(self, message):
        assert extract_keywords(message) == []


class TestFindMatches:

    def test_roast_duck_scenario(self, store):
        store.add("traditionalFoods", make_resource("duck", "北京烤鸭", keywords=["烤鸭"]))

        matches = match_resources(store, "我要看烤鸭的图片")

        assert len(matches) == 1
        assert matches[0]["id"] == "duck"
        assert matches[0]["category"] == "traditionalFoods"
        assert matches[0]["matchScore"] >= 15
        assert matches[0]["exactTitleMatch"] is False

    def test_exact_title_scores_twenty_and_stops(self):
        snapshot = {"c": [make_resource("a", "昆曲")]}
        matches = find_matches(snapshot, ["昆曲", "昆曲艺术"])
        assert matches[0]["matchScore"] == 20
        assert matches[0]["exactTitleMatch"] is True
        assert matches[0]["bestMatch"] == "昆曲"

    def test_below_threshold_is_dropped(self):
        snapshot = {"c": [make_resource("a", "景泰蓝工艺")]}
        # One containment hit (+5) is not enough.
        assert find_matches(snapshot, ["景泰蓝"]) == []

    def test_keyword_membership_scores_fifteen_plus_containment(self):
        snapshot = {"c": [make_resource("a", "端午节", keywords=["粽子"])]}
        matches = find_matches(snapshot, ["粽子"])
        # +15 keyword, +5 for containment in the keywords field.
        assert matches[0]["matchScore"] == 20
        assert matches[0]["exactTitleMatch"] is False

    def test_ranking_keeps_top_three_when_close(self):
        snapshot = {"c": [
            make_resource(str(i), f"剪纸作品{i}", tags=["剪纸"]) for i in range(5)
        ]}
        matches = find_matches(snapshot, ["剪纸"])
        assert len(matches) == 3
        assert [m["id"] for m in matches] == ["0", "1", "2"]

    def test_clear_winner_collapses_to_one(self):
        snapshot = {"c": [
            make_resource("weak", "剪纸作品", tags=["剪纸"]),
            make_resource("strong", "窗花", keywords=["剪纸"], tags=["剪纸"]),
        ]}
        matches = find_matches(snapshot, ["剪纸"])
        assert [m["id"] for m in matches] == ["strong"]

    def test_ties_prefer_exact_title(self):
        snapshot = {"c": [
            # Four containment hits: title, description, tag and keyword.
            make_resource("contains", "中国剪纸", keywords=["剪纸纹样"], description="剪纸", tags=["剪纸"]),
            make_resource("exact", "剪纸"),
        ]}
        matches = find_matches(snapshot, ["剪纸"])
        assert matches[0]["matchScore"] == matches[1]["matchScore"] == 20
        assert matches[0]["id"] == "exact"

    def test_weights_are_configurable(self):
        snapshot = {"c": [make_resource("a", "景泰蓝工艺")]}
        lenient = MatchWeights(min_score=5)
        assert [m["id"] for m in find_matches(snapshot, ["景泰蓝"], lenient)] == ["a"]

    def test_no_keywords_no_matches(self):
        assert find_matches({"c": [make_resource("a", "x")]}, []) == []


class TestBuildReply:

    def test_no_match_reply(self):
        reply = build_reply("随便问问", [])
        assert reply["media"] == []
        assert reply["resources"] == []
        assert reply["response"]

    @pytest.mark.parametrize("message,aspect", [
        ("烤鸭的历史", "历史"),
        ("怎么制作", "做法"),
        ("有什么特色", "特点"),
        ("你好", "详细信息"),
    ])
    def test_detect_aspect(self, message, aspect):
        assert detect_aspect(message) == aspect

    def test_reply_uses_aspect_field_and_fun_fact(self):
        match = make_resource("duck", "北京烤鸭", keywords=["烤鸭"], history="始于明代",
                              content="皮脆肉嫩", funFact="要片108片")
        reply = build_reply("烤鸭的历史", [match])
        assert "北京烤鸭" in reply["response"]
        assert "始于明代" in reply["response"]
        assert "要片108片" in reply["response"]
        assert "烤鸭" in reply["response"]

    def test_image_request_filters_media(self):
        match = make_resource("duck", "北京烤鸭", media=[
            {"name": "a.jpg", "type": "image", "size": 1, "url": "/resources/images/a.jpg"},
            {"name": "b.mp4", "type": "video", "size": 1, "url": "/resources/videos/b.mp4"},
        ])
        reply = build_reply("我要看烤鸭的图片", [match])
        assert [m["name"] for m in reply["media"]] == ["a.jpg"]

    def test_video_request_filters_media(self):
        match = make_resource("duck", "北京烤鸭", media=[
            {"name": "a.jpg", "type": "image", "size": 1, "url": "/resources/images/a.jpg"},
            {"name": "b.mp4", "type": "document", "size": 1, "url": "/resources/videos/b.mp4"},
        ])
        reply = build_reply("烤鸭视频", [match])
        assert [m["name"] for m in reply["media"]] == ["b.mp4"]

    def test_plain_question_returns_no_media(self):
        match = make_resource("duck", "北京烤鸭", media=[
            {"name": "a.jpg", "type": "image", "size": 1, "url": "/resources/images/a.jpg"},
        ])
        assert build_reply("介绍一下烤鸭", [match])["media"] == []
