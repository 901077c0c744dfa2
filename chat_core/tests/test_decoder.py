from chat_core.domain.events import ContentFragment, Ignored
from chat_core.streaming.decoder import decode


def test_decode_item_frame():
    assert decode('{"type":"item","content":"Hello"}') == ContentFragment(text="Hello")


def test_decode_item_without_content_is_empty_fragment():
    assert decode('{"type":"item"}') == ContentFragment(text="")
    assert decode('{"type":"item","content":null}') == ContentFragment(text="")


def test_decode_unknown_and_missing_type_are_ignored():
    status = decode('{"type":"status","metadata":{}}')
    assert isinstance(status, Ignored)
    assert status.frame_type == "status"
    assert status.reason == "unknown_type"
    assert decode('{"content":"x"}').reason == "missing_type"


def test_decode_never_raises_on_bad_input():
    assert decode('{"type":"item",').reason == "malformed"
    assert decode("[1, 2]").reason == "not_object"
    assert decode('{"type":"item","content":42}').reason == "bad_content"


def test_decode_ignores_extra_fields():
    event = decode('{"type":"item","content":"x","metadata":{"runIndex":0}}')
    assert event == ContentFragment(text="x")
