from __future__ import annotations

import json

import pytest

from passport_extractor import session as session_module
from passport_extractor.actions import EXTRACTION_FAILED, SUGGESTIONS_FAILED
from passport_extractor.errors import LLMError
from passport_extractor.previews import PreviewRegistry
from passport_extractor.schemas import PassportFields, ResultEnvelope, SuggestionSet
from passport_extractor.session import FormState, PassportSession, SessionStore


@pytest.fixture
def previews() -> PreviewRegistry:
    return PreviewRegistry(max_size=200)


@pytest.fixture
def session(previews) -> PassportSession:
    return PassportSession(previews)


@pytest.fixture
def extracted(session, stub_model, run_async, passport_png, sample_fields) -> PassportSession:
    stub_model.queue(dict(sample_fields))
    assert run_async(session.select_file, "passport.png", passport_png, "image/png")
    return session


def test_starts_empty(session) -> None:
    assert session.state is FormState.EMPTY
    assert session.fields == PassportFields()
    assert session.suggestions is None
    assert session.document is None
    assert all(view.mode == "input" for view in session.field_views())


def test_upload_populates_form(extracted, sample_fields, previews) -> None:
    assert extracted.state is FormState.EXTRACTED
    assert extracted.fields.wire() == sample_fields
    assert extracted.extracted.wire() == sample_fields
    assert extracted.document.startswith("data:image/png;base64,")
    assert extracted.preview_id in previews
    assert not extracted.is_extracting
    titles = [n.title for n in extracted.drain_notifications()]
    assert titles == ["Extraction Complete"]


def test_extraction_failure_keeps_error(session, stub_model, run_async, passport_png, previews) -> None:
    stub_model.queue(LLMError("LLM request failed: network unreachable"))
    assert not run_async(session.select_file, "passport.png", passport_png, "image/png")
    assert session.state is FormState.EMPTY
    assert session.error == EXTRACTION_FAILED
    assert session.fields == PassportFields()
    assert session.preview_id is None
    assert len(previews) == 0
    [notification] = session.drain_notifications()
    assert notification.variant == "destructive"
    assert notification.description == EXTRACTION_FAILED


def test_unreadable_upload_releases_preview(session, stub_model, run_async, previews) -> None:
    assert not run_async(session.select_file, "notes.txt", b"hello", "text/plain")
    assert session.state is FormState.EMPTY
    assert "Unsupported file type" in session.error
    assert len(previews) == 0
    assert stub_model.calls == 0


def test_new_upload_releases_previous_preview(extracted, stub_model, run_async, passport_png, previews, sample_fields) -> None:
    first_preview = extracted.preview_id
    stub_model.queue(dict(sample_fields, firstName="JANE"))
    assert run_async(extracted.select_file, "second.png", passport_png, "image/png")
    assert first_preview not in previews
    assert len(previews) == 1
    assert extracted.fields.first_name == "JANE"


def test_edit_then_suggest_uses_edited_values(extracted, stub_model, run_async, suggestion_reply) -> None:
    extracted.edit_field("lastName", "DOW")
    stub_model.queue(suggestion_reply(lastName=["DOE", "DOW"], passportNumber=["A1234567"]))
    assert run_async(extracted.request_suggestions)
    assert '"DOW"' in stub_model.prompts[-1]
    assert extracted.state is FormState.EXTRACTED
    views = {view.wire_name: view for view in extracted.field_views()}
    assert views["lastName"].mode == "select"
    assert views["lastName"].options == ["DOE", "DOW"]
    # The current value is among the suggestions, so it stays selected.
    assert views["lastName"].value == "DOW"


def test_picker_defaults_to_first_suggestion(extracted, stub_model, run_async, suggestion_reply) -> None:
    stub_model.queue(suggestion_reply(passportNumber=["A1234561", "A1234567X"]))
    assert run_async(extracted.request_suggestions)
    assert extracted.fields.passport_number == "A1234561"
    extracted.choose_suggestion("passportNumber", "A1234567X")
    assert extracted.fields.passport_number == "A1234567X"
    with pytest.raises(ValueError):
        extracted.choose_suggestion("passportNumber", "ZZZ")


def test_suggestion_failure_leaves_suggestions_unset(extracted, stub_model, run_async) -> None:
    extracted.drain_notifications()
    stub_model.queue(LLMError("LLM disabled"))
    assert not run_async(extracted.request_suggestions)
    assert extracted.state is FormState.EXTRACTED
    assert extracted.suggestions is None
    [notification] = extracted.drain_notifications()
    assert notification.title == "Suggestion Failed"
    assert notification.description == SUGGESTIONS_FAILED


def test_invalid_edit_blocks_suggestions_without_model_call(extracted, stub_model, run_async) -> None:
    extracted.edit_field("date_of_birth", "1990-13-40")
    calls = stub_model.calls
    assert not run_async(extracted.request_suggestions)
    assert stub_model.calls == calls
    assert extracted.suggestions is None


def test_suggestions_not_available_before_extraction(session, stub_model, run_async) -> None:
    assert not run_async(session.request_suggestions)
    assert stub_model.calls == 0


def test_reset_clears_everything(extracted, stub_model, run_async, previews, suggestion_reply) -> None:
    stub_model.queue(suggestion_reply(lastName=["DOE"]))
    run_async(extracted.request_suggestions)
    generation = extracted.generation
    extracted.reset()
    assert extracted.state is FormState.EMPTY
    assert extracted.fields.wire() == {
        "firstName": "",
        "lastName": "",
        "dateOfBirth": "",
        "passportNumber": "",
        "expirationDate": "",
    }
    assert extracted.document is None
    assert extracted.suggestions is None
    assert extracted.extracted is None
    assert extracted.error is None
    assert extracted.preview_id is None
    assert len(previews) == 0
    assert extracted.generation == generation + 1


def test_stale_extraction_is_discarded(session, monkeypatch, run_async, passport_png, sample_fields) -> None:
    async def slow_extraction(document):
        # The user clears the form while the model is still working.
        session.reset()
        return ResultEnvelope[PassportFields].success(PassportFields.model_validate(sample_fields))

    monkeypatch.setattr(session_module, "request_extraction", slow_extraction)
    assert not run_async(session.select_file, "passport.png", passport_png, "image/png")
    assert session.state is FormState.EMPTY
    assert session.fields == PassportFields()


def test_stale_suggestions_are_discarded(extracted, monkeypatch, run_async) -> None:
    async def slow_suggestions(fields, document):
        extracted.reset()
        return ResultEnvelope.success(None)

    monkeypatch.setattr(session_module, "request_suggestions", slow_suggestions)
    assert not run_async(extracted.request_suggestions)
    assert extracted.state is FormState.EMPTY
    assert extracted.suggestions is None


def test_duplicate_upload_refused_while_extracting(session, passport_png, run_async) -> None:
    session.is_extracting = True
    assert not run_async(session.select_file, "passport.png", passport_png, "image/png")


def test_edit_requires_extracted_state(session) -> None:
    with pytest.raises(RuntimeError):
        session.edit_field("firstName", "JOHN")


def test_unknown_field_rejected(extracted) -> None:
    with pytest.raises(KeyError):
        extracted.edit_field("nationality", "UTO")


def test_save_is_simulated(extracted, sample_fields) -> None:
    extracted.drain_notifications()
    envelope = extracted.save()
    assert envelope.ok
    assert extracted.state is FormState.EXTRACTED
    [notification] = extracted.drain_notifications()
    assert notification.title == "Data Saved (Simulated)"
    assert json.loads(notification.description) == sample_fields


def test_save_reports_invalid_fields(extracted) -> None:
    extracted.edit_field("firstName", "")
    envelope = extracted.save()
    assert not envelope.ok
    assert envelope.error == "First Name is required."


def test_copy_field_emits_notification(extracted) -> None:
    received = []
    extracted.subscribe(received.append)
    assert extracted.copy_field("passportNumber") == "A1234567"
    assert received[0].title == "Passport Number Copied"
    extracted.edit_field("passportNumber", "")
    with pytest.raises(ValueError):
        extracted.copy_field("passportNumber")


def test_edits_refused_while_suggesting(extracted, monkeypatch, run_async) -> None:
    refused = []

    async def slow_suggestions(fields, document):
        try:
            extracted.edit_field("lastName", "DOW")
        except RuntimeError as exc:
            refused.append(str(exc))
        return ResultEnvelope[SuggestionSet].success(
            SuggestionSet(last_name=["D0E", "DOE"], passport_number=["A1234567"])
        )

    monkeypatch.setattr(session_module, "request_suggestions", slow_suggestions)
    assert run_async(extracted.request_suggestions)
    assert refused
    assert extracted.fields.last_name == "DOE"
    extracted.edit_field("lastName", "DOW")
    assert extracted.fields.last_name == "DOW"


def test_picker_default_skips_fields_changed_since_request(extracted) -> None:
    sent = extracted.fields.model_copy()
    extracted.fields.passport_number = "B7654321"
    extracted.suggestions = SuggestionSet(
        last_name=["D0E"],
        passport_number=["A1234561"],
    )
    extracted._apply_suggestion_defaults(sent)
    assert extracted.fields.last_name == "D0E"
    assert extracted.fields.passport_number == "B7654321"


class FakeClock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_store_expires_idle_sessions_and_releases_previews(
    stub_model, run_async, passport_png, sample_fields
) -> None:
    clock = FakeClock()
    store = SessionStore(PreviewRegistry(max_size=200), ttl_seconds=60, max_sessions=10, clock=clock)
    idle = store.create()
    stub_model.queue(dict(sample_fields))
    assert run_async(idle.select_file, "passport.png", passport_png, "image/png")
    assert len(store.previews) == 1

    clock.now = 30
    active = store.create()
    clock.now = 70
    assert store.get(active.session_id) is active
    assert idle.session_id not in store
    assert idle.document is None
    assert len(store.previews) == 0
    with pytest.raises(KeyError):
        store.get(idle.session_id)


def test_store_drops_least_recently_used_when_full() -> None:
    clock = FakeClock()
    store = SessionStore(PreviewRegistry(), ttl_seconds=0, max_sessions=2, clock=clock)
    first = store.create()
    clock.now = 1
    second = store.create()
    clock.now = 2
    store.get(first.session_id)
    clock.now = 3
    third = store.create()
    assert len(store) == 2
    assert first.session_id in store
    assert third.session_id in store
    assert second.session_id not in store
