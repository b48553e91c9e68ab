"""Unit tests for pulling participant details and answer values out of Typeform payloads."""

from screenops.services.intake import extract_participant_info, extract_response_value


def _answer(field_id, kind, value, ref=None):
    answer = {"field": {"id": field_id, "ref": ref or field_id}, "type": kind}
    answer[kind] = value
    return answer


def _form_response(answers, fields=None):
    return {
        "token": "tok_1",
        "definition": {"fields": fields or []},
        "answers": answers,
    }


def test_extracts_applicant_details():
    """Email, first/last name, phone and birth date are read from their answers."""
    form_response = _form_response(
        [
            _answer("f1", "email", "ada@example.com"),
            _answer("f2", "text", "Ada", ref="first_name"),
            _answer("f3", "text", "Lovelace", ref="last_name"),
            _answer("f4", "phone_number", "+15550100"),
            _answer("f5", "date", "1990-12-10", ref="date_of_birth"),
        ]
    )
    info = extract_participant_info(form_response)
    assert info.email == "ada@example.com"
    assert (info.first_name, info.last_name) == ("Ada", "Lovelace")
    assert info.phone == "+15550100"
    assert info.date_of_birth == "1990-12-10"


def test_emergency_contact_answers_are_skipped():
    """Emergency contact email and name never become the applicant's."""
    form_response = _form_response(
        [
            _answer("f1", "email", "mum@example.com", ref="emergency_email"),
            _answer("f2", "text", "Mum Smith", ref="contact_name"),
            _answer("f3", "email", "me@example.com"),
            _answer("f4", "text", "Sam Jones", ref="full_name"),
        ]
    )
    info = extract_participant_info(form_response)
    assert info.email == "me@example.com"
    assert (info.first_name, info.last_name) == ("Sam", "Jones")


def test_titles_identify_name_fields():
    """Field titles from the definition are used when refs are opaque."""
    form_response = _form_response(
        [_answer("abc", "text", "Grace", ref="a1b2"), _answer("def", "text", "Hopper", ref="c3d4")],
        fields=[{"id": "abc", "title": "First name"}, {"id": "def", "title": "Last name"}],
    )
    info = extract_participant_info(form_response)
    assert (info.first_name, info.last_name) == ("Grace", "Hopper")


def test_placeholders_when_identity_missing():
    """Missing details fall back to placeholders."""
    info = extract_participant_info(_form_response([]))
    assert info.email.startswith("applicant_") and info.email.endswith("@example.com")
    assert (info.first_name, info.last_name) == ("Anonymous", "Applicant")


def test_response_values_by_answer_type():
    """Answer types convert to their stored values."""
    assert extract_response_value({"type": "text", "text": "hello"}) == "hello"
    assert extract_response_value({"type": "number", "number": 4}) == 4
    assert extract_response_value({"type": "boolean", "boolean": True}) == "yes"
    assert extract_response_value({"type": "boolean", "boolean": False}) == "no"
    assert extract_response_value({"type": "choice", "choice": {"label": "Weekly"}}) == "Weekly"
    assert extract_response_value({"type": "choice", "choice": {"other": "Monthly-ish"}}) == "Monthly-ish"


def test_multi_select_values_are_label_lists():
    """choices answers become a list of labels, with 'other' text appended."""
    answer = {"type": "choices", "choices": {"labels": ["Therapist", "Family"], "other": "Church"}}
    assert extract_response_value(answer) == ["Therapist", "Family", "Church"]
    single = {"type": "choice", "choice": {"label": "Family"}}
    assert extract_response_value(single, multi_select=True) == ["Family"]


def test_unhandled_answer_type():
    """Unknown answer types produce no value."""
    assert extract_response_value({"type": "payment", "payment": {}}) is None
