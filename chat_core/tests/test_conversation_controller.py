import pytest

from chat_core.agents.conversation_controller import ConversationController
from chat_core.domain.events import ContentFragment, Ignored
from chat_core.domain.exceptions import ApiError, ConversationBusyError, NetworkError, ValidationError
from chat_core.domain.models import GroundedAnswer, HistoryRecord, Reference, Turn
from chat_core.infrastructure.storage.history_store import HistoryStoreAdapter
from chat_core.infrastructure.storage.kv_store import InMemoryKeyValueStore


ERROR_TEMPLATE = "Sorry, I encountered an error: {message}"


class FakeProvider:
    name = "fake"

    def __init__(self, events=(), error=None):
        self._events = list(events)
        self._error = error
        self.calls = []
        self.closed = False

    def stream_events(self, chat_input, session_id):
        self.calls.append(([(t.role, t.content) for t in chat_input], session_id))
        try:
            for event in self._events:
                yield event
            if self._error is not None:
                raise self._error
        finally:
            self.closed = True


class RecordingHistory:
    def __init__(self):
        self.calls = []
        self._inner = HistoryStoreAdapter(InMemoryKeyValueStore(), key="h")

    def upsert(self, session_id, conversation):
        self.calls.append((session_id, [(t.role, t.content) for t in conversation]))
        self._inner.upsert(session_id, conversation)

    def get(self, session_id):
        return self._inner.get(session_id)

    def list_records(self):
        return self._inner.list_records()

    def delete(self, session_id):
        return self._inner.delete(session_id)


def make_controller(provider, history=None, answer_provider=None):
    return ConversationController(
        provider=provider,
        history=history or RecordingHistory(),
        answer_provider=answer_provider,
        error_message_template=ERROR_TEMPLATE,
    )


def test_send_appends_fragments_in_order():
    provider = FakeProvider([ContentFragment("Hello"), ContentFragment(" world")])
    history = RecordingHistory()
    ctrl = make_controller(provider, history)
    turn = ctrl.send("greet me")
    assert turn.role == "model"
    assert turn.content == "Hello world"
    assert ctrl.state == "finalized"
    assert [(t.role, t.content) for t in ctrl.conversation] == [
        ("user", "greet me"),
        ("model", "Hello world"),
    ]
    assert provider.calls == [([("user", "greet me")], ctrl.session_id)]
    assert [c[1][-1][1] for c in history.calls] == ["greet me", "", "Hello", "Hello world"]
    assert history.get(ctrl.session_id).title == "greet me"


def test_send_stream_yields_placeholder_then_growth():
    provider = FakeProvider([ContentFragment("a"), Ignored(frame_type="status"), ContentFragment("b")])
    ctrl = make_controller(provider)
    seen = []
    for turn in ctrl.send_stream("q"):
        seen.append(turn.content)
        if len(seen) == 1:
            assert ctrl.state == "awaiting_first_fragment"
    assert seen == ["", "a", "ab"]


def test_status_only_stream_leaves_placeholder_empty():
    ctrl = make_controller(FakeProvider([Ignored(frame_type="status")]))
    turn = ctrl.send("q")
    assert turn.content == ""
    assert ctrl.state == "finalized"


def test_http_error_replaces_placeholder_with_message():
    error = ApiError(code="API_ERROR", message="HTTP error! status: 500", http_status=500)
    provider = FakeProvider(error=error)
    history = RecordingHistory()
    ctrl = make_controller(provider, history)
    turn = ctrl.send("q")
    assert turn.content == "Sorry, I encountered an error: HTTP error! status: 500"
    assert ctrl.state == "finalized"
    assert history.get(ctrl.session_id).conversation[-1].content == turn.content


def test_error_after_partial_content_keeps_content():
    provider = FakeProvider(
        [ContentFragment("partial")],
        error=NetworkError(code="NETWORK_ERROR", message="reset"),
    )
    ctrl = make_controller(provider)
    assert ctrl.send("q").content == "partial"


def test_unavailable_store_does_not_break_exchange():
    class DownStore:
        def get(self, key):
            raise ConnectionError("store down")

        def set(self, key, value):
            raise RuntimeError("store down")

    ctrl = make_controller(
        FakeProvider([ContentFragment("Hello")]),
        history=HistoryStoreAdapter(DownStore(), key="h"),
    )
    turn = ctrl.send("q")
    assert turn.content == "Hello"
    assert ctrl.state == "finalized"
    assert [(t.role, t.content) for t in ctrl.conversation] == [("user", "q"), ("model", "Hello")]


def test_second_submission_while_streaming_is_rejected():
    provider = FakeProvider([ContentFragment("1"), ContentFragment("2")])
    ctrl = make_controller(provider)
    first = ctrl.send_stream("one")
    next(first)
    next(first)
    assert ctrl.is_busy
    with pytest.raises(ConversationBusyError):
        next(ctrl.send_stream("two"))
    with pytest.raises(ConversationBusyError):
        ctrl.new_chat()
    list(first)
    assert ctrl.state == "finalized"
    assert [t.content for t in ctrl.conversation] == ["one", "12"]


def test_abandoning_stream_finalizes_and_releases_provider():
    provider = FakeProvider([ContentFragment("1"), ContentFragment("2"), ContentFragment("3")])
    ctrl = make_controller(provider)
    gen = ctrl.send_stream("q")
    next(gen)
    assert next(gen).content == "1"
    gen.close()
    assert provider.closed
    assert ctrl.state == "finalized"
    assert ctrl.conversation[-1].content == "1"
    assert ctrl.send("again").content == "123"


def test_empty_prompt_is_rejected():
    ctrl = make_controller(FakeProvider())
    with pytest.raises(ValidationError):
        ctrl.send("   ")
    assert ctrl.conversation == []
    assert ctrl.state == "idle"


def test_new_chat_and_load_session():
    history = RecordingHistory()
    ctrl = make_controller(FakeProvider([ContentFragment("answer")]), history)
    first_id = ctrl.session_id
    ctrl.send("q1")
    new_id = ctrl.new_chat()
    assert new_id != first_id
    assert ctrl.conversation == []
    assert ctrl.load_session(first_id) is True
    assert ctrl.session_id == first_id
    assert [t.content for t in ctrl.conversation] == ["q1", "answer"]
    assert ctrl.load_session("missing") is False


def test_load_record_then_send_updates_same_record():
    history = RecordingHistory()
    ctrl = make_controller(FakeProvider([ContentFragment("more")]), history)
    ctrl.load_record(HistoryRecord(id="restored", title="old", conversation=[
        Turn(role="user", content="old q"),
        Turn(role="model", content="old a"),
    ]))
    ctrl.send("new q")
    records = history.list_records()
    assert [r.id for r in records] == ["restored"]
    assert [t.content for t in records[0].conversation] == ["old q", "old a", "new q", "more"]


class FakeAnswerProvider:
    name = "fake-answer"

    def __init__(self, answer=None, error=None):
        self._answer = answer
        self._error = error
        self.history = None

    def answer(self, history):
        self.history = history
        if self._error is not None:
            raise self._error
        return self._answer


def test_ask_appends_answer_with_deduplicated_references():
    answer = GroundedAnswer(
        content="grounded",
        references=[
            Reference(uri="https://a", title="A"),
            Reference(uri="https://b", title=""),
            Reference(uri="https://a", title="A2"),
        ],
    )
    answer_provider = FakeAnswerProvider(answer=answer)
    ctrl = make_controller(FakeProvider(), answer_provider=answer_provider)
    turn = ctrl.ask("question")
    assert turn.content == "grounded"
    assert turn.references == [Reference(uri="https://a", title="A2")]
    assert answer_provider.history == [{"role": "user", "content": "question"}]
    assert ctrl.state == "finalized"


def test_ask_failure_becomes_error_turn():
    answer_provider = FakeAnswerProvider(error=NetworkError(code="NETWORK_ERROR", message="offline"))
    ctrl = make_controller(FakeProvider(), answer_provider=answer_provider)
    turn = ctrl.ask("question")
    assert turn.content == "Sorry, I encountered an error: offline"


def test_ask_without_answer_provider():
    ctrl = make_controller(FakeProvider())
    with pytest.raises(ValidationError):
        ctrl.ask("question")
