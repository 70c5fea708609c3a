import pytest

from scoutwatch.domain.models import Form, FormType, ProtocolLayout, Record
from scoutwatch.exceptions import ParseError
from scoutwatch.protocol.codec import (
    decode_form,
    decode_payload,
    encode_form,
    encode_payload,
    parse_record,
    split_forms,
)


def test_decode_layout_a_example():
    result = decode_payload("1|12|Alice|118|-1|5,3|6,1")

    assert result.errors == []
    assert len(result.forms) == 1
    form = result.forms[0]
    assert form.form_type == FormType.MATCH
    assert form.tablet_num == 12
    assert form.scout_name == "Alice"
    assert form.team_num == 118
    assert form.match_num == -1
    assert form.flag is None
    assert form.records == [Record(item_id=5, value="3"), Record(item_id=6, value="1")]
    assert form.form_id is None  # only the store assigns ids


@pytest.mark.parametrize(
    "payload, expected",
    [
        ("", 0),
        ("hello there", 0),
        ("x|12|Alice|118|-1|5,3", 0),
        ("0|3|Bo|254|-1", 1),
        ("1|12|Alice|118|7|5,3|6,1|", 1),
    ],
)
def test_payload_without_form_delimiter_yields_at_most_one_form(payload, expected):
    assert len(decode_payload(payload).forms) == expected


def test_multiple_forms_and_empty_segments():
    payload = "||1|12|Alice|118|4|5,3||||0|3|Bo|254|-1|1,9||"
    assert split_forms(payload) == ["1|12|Alice|118|4|5,3", "0|3|Bo|254|-1|1,9"]

    result = decode_payload(payload)
    assert [f.team_num for f in result.forms] == [118, 254]
    assert result.forms[1].form_type == FormType.PRESCOUTING


def test_bad_header_discards_only_that_form():
    payload = "1|12|Alice|118|4|5,3||1|twelve|Bob|33|5|5,1||2|9|Cy|71|-1|3,0||"
    result = decode_payload(payload)

    assert [f.team_num for f in result.forms] == [118, 71]
    assert len(result.errors) == 1
    assert "tablet number" in str(result.errors[0])
    assert "Bob" in result.errors[0].segment


def test_truncated_header_and_unknown_type_are_parse_errors():
    with pytest.raises(ParseError):
        decode_form("1|12|Alice")
    with pytest.raises(ParseError, match="unknown form type"):
        decode_form("9|12|Alice|118|4|5,3")


def test_record_without_comma_is_dropped_alone():
    form, errors = decode_form("1|12|Alice|118|4|5,3|oops|6,1")

    assert [r.item_id for r in form.records] == [5, 6]
    assert len(errors) == 1
    assert "oops" in str(errors[0])


def test_record_value_keeps_extra_commas():
    assert parse_record("9,left, then right,fast") == Record(item_id=9, value="left, then right,fast")
    assert parse_record("9,") == Record(item_id=9, value="")
    with pytest.raises(ParseError):
        parse_record("nine,3")


def test_layout_b_selected_by_marker():
    result = decode_payload("v2||1|1|12|Bob|118|7|5,3||1|0|13|Cy|254|7||")

    assert result.layout is ProtocolLayout.B
    assert [(f.tablet_num, f.flag) for f in result.forms] == [(12, True), (13, False)]
    assert result.forms[0].records == [Record(item_id=5, value="3")]


def test_layout_b_as_configured_default():
    result = decode_payload("1|1|12|Bob|118|7|5,3", default_layout=ProtocolLayout.B)
    assert result.forms[0].scout_name == "Bob"
    assert result.forms[0].flag is True


def test_marker_overrides_default_layout():
    result = decode_payload("v1||1|12|Alice|118|-1|5,3", default_layout=ProtocolLayout.B)
    assert result.layout is ProtocolLayout.A
    assert result.forms[0].tablet_num == 12


@pytest.mark.parametrize("form_type", list(FormType))
def test_reencode_reproduces_raw_text(form_type):
    raw = f"{int(form_type)}|12|Alice|118|-1|5,3|6,1|8,slow, but steady"
    form, errors = decode_form(raw)
    assert errors == []
    assert encode_form(form) == raw


def test_encode_form_without_records_ends_at_trailing_delimiter():
    form = Form(form_type=FormType.PRESCOUTING, tablet_num=3, scout_name="Bo", team_num=254, match_num=-1)
    assert encode_form(form) == "0|3|Bo|254|-1|"
    assert decode_payload(encode_form(form)).forms[0].records == []


def test_encode_payload_layout_b_carries_marker():
    forms = [
        Form(form_type=FormType.MATCH, tablet_num=12, scout_name="Bob", team_num=118, match_num=7, flag=True,
             records=[Record(item_id=5, value="3")]),
        Form(form_type=FormType.PIT, tablet_num=2, scout_name="Di", team_num=33, match_num=-1, flag=False),
    ]
    text = encode_payload(forms, ProtocolLayout.B)

    assert text == "v2||1|1|12|Bob|118|7|5,3||2|0|2|Di|33|-1|||"
    decoded = decode_payload(text)
    assert decoded.errors == []
    assert [f.model_dump() for f in decoded.forms] == [f.model_dump() for f in forms]


def test_form_without_records_does_not_swallow_the_next_form():
    forms = [
        Form(form_type=FormType.PIT, tablet_num=2, scout_name="Di", team_num=33, match_num=-1),
        Form(form_type=FormType.MATCH, tablet_num=12, scout_name="Bob", team_num=118, match_num=7,
             records=[Record(item_id=5, value="3")]),
    ]
    text = encode_payload(forms)
    assert text == "2|2|Di|33|-1|||1|12|Bob|118|7|5,3||"

    decoded = decode_payload(text)
    assert decoded.errors == []
    assert [f.model_dump() for f in decoded.forms] == [f.model_dump() for f in forms]

    raw = decode_payload("0|3|Bo|254|-1|||1|12|Alice|118|4|5,3||")
    assert [f.team_num for f in raw.forms] == [254, 118]
    assert raw.forms[1].records == [Record(item_id=5, value="3")]


@pytest.mark.parametrize(
    "segment, field",
    [
        ("1|12|Alice|99999999999999999999|4|5,3", "team number"),
        ("1|12|Alice|118|-9223372036854775809|5,3", "match number"),
    ],
)
def test_header_numbers_beyond_64_bits_are_parse_errors(segment, field):
    with pytest.raises(ParseError, match=f"{field} .* out of range"):
        decode_form(segment)


def test_item_id_beyond_64_bits_drops_only_that_record():
    form, errors = decode_form(f"1|12|Alice|118|4|5,3|{10**20},x|{2**63 - 1},edge")

    assert [r.item_id for r in form.records] == [5, 2**63 - 1]
    assert len(errors) == 1
    assert "item id" in str(errors[0])
