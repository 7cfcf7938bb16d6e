"""Tests for the request item parser."""

import io

import pytest

from ht.errors import OperationalError, UsageError
from ht.models import (
    FORM_BODY,
    JSON_BODY,
    RAW_BODY,
    EmptyBody,
    Field,
    FormBody,
    JSONBody,
    RawBody,
    RequestDraft,
    RequestModel,
)
from ht.parser import (
    DATA_ITEM,
    FILE_ITEM,
    HEADER_ITEM,
    PARAMETER_ITEM,
    RAW_JSON_ITEM,
    UNKNOWN_ITEM,
    InputOptions,
    StdinSource,
    parse_args,
    parse_item,
    parse_method,
    parse_url,
    split_item,
)


class TestSplitItem:
    """Tests for the item grammar."""

    def test_raw_json(self):
        assert split_item("a:=1") == (RAW_JSON_ITEM, "a", "1")

    def test_header(self):
        assert split_item("a:1") == (HEADER_ITEM, "a", "1")

    def test_parameter(self):
        assert split_item("a==1") == (PARAMETER_ITEM, "a", "1")

    def test_data(self):
        assert split_item("a=1") == (DATA_ITEM, "a", "1")

    def test_file(self):
        assert split_item("a@f") == (FILE_ITEM, "a", "f")

    def test_no_trigger_is_unknown(self):
        assert split_item("abc")[0] == UNKNOWN_ITEM

    def test_leftmost_trigger_wins(self):
        assert split_item("a=b:c") == (DATA_ITEM, "a", "b:c")
        assert split_item("a:b=c") == (HEADER_ITEM, "a", "b=c")
        assert split_item("a@b=c") == (FILE_ITEM, "a", "b=c")

    def test_value_is_not_rescanned(self):
        assert split_item("url=http://x:8080/") == (
            DATA_ITEM,
            "url",
            "http://x:8080/",
        )

    def test_double_operators_only_at_same_position(self):
        assert split_item("a=:=b") == (DATA_ITEM, "a", ":=b")
        assert split_item("a:==b") == (RAW_JSON_ITEM, "a", "=b")

    def test_empty_values(self):
        assert split_item("X-Empty:") == (HEADER_ITEM, "X-Empty", "")
        assert split_item("q==") == (PARAMETER_ITEM, "q", "")
        assert split_item("d=") == (DATA_ITEM, "d", "")


class TestParseUrl:
    """Tests for URL normalisation."""

    def test_full_url_is_kept(self):
        assert parse_url("https://example.com/hello") == "https://example.com/hello"

    def test_scheme_defaults_to_http(self):
        assert parse_url("example.com") == "http://example.com/"

    def test_leading_colon_implies_localhost(self):
        assert parse_url(":8080/x") == "http://localhost:8080/x"

    def test_leading_slash_implies_localhost(self):
        assert parse_url("/hello") == "http://localhost/hello"

    def test_bare_colon_is_stripped(self):
        assert parse_url("example.com:") == "http://example.com/"

    def test_query_is_kept(self):
        assert parse_url("example.com?a=1") == "http://example.com/?a=1"

    def test_invalid_port_is_usage_error(self):
        with pytest.raises(UsageError, match="Invalid URL"):
            parse_url("example.com:abc/")

    def test_invalid_ipv6_is_usage_error(self):
        with pytest.raises(UsageError, match="Invalid URL"):
            parse_url("http://[::1/")


class TestParseMethod:
    def test_upper_cases(self):
        assert parse_method("get") == "GET"

    def test_rejects_non_alphabetic(self):
        with pytest.raises(UsageError):
            parse_method("G3T")

    def test_rejects_trailing_newline(self):
        with pytest.raises(UsageError):
            parse_method("get\n")


class TestParseItem:
    """Tests for applying single items to a draft."""

    def test_data_field(self):
        draft = RequestDraft()
        parse_item("hello=world", JSON_BODY, draft)
        assert draft.body_fields == [Field("hello", "world")]
        assert draft.body_type == JSON_BODY

    def test_data_field_form(self):
        draft = RequestDraft()
        parse_item("hello=world", FORM_BODY, draft)
        assert draft.body_type == FORM_BODY

    def test_data_field_keeps_current_body_type(self):
        draft = RequestDraft(body_type=JSON_BODY)
        parse_item("hello=world", FORM_BODY, draft)
        assert draft.body_type == JSON_BODY
        assert draft.body_fields == [Field("hello", "world")]

    def test_data_field_from_file(self):
        draft = RequestDraft()
        parse_item("hello=@world.txt", JSON_BODY, draft)
        assert draft.body_fields == [Field("hello", "world.txt", is_file=True)]

    def test_data_field_from_stdin(self):
        draft = RequestDraft()
        stdin = StdinSource(io.BytesIO(b"from stdin"))
        parse_item("hello=@-", JSON_BODY, draft, stdin)
        assert draft.body_fields == [Field("hello", "from stdin")]
        assert stdin.consumed

    def test_second_stdin_field_is_usage_error(self):
        draft = RequestDraft()
        stdin = StdinSource(io.BytesIO(b"x"))
        parse_item("a=@-", JSON_BODY, draft, stdin)
        with pytest.raises(UsageError, match="already been consumed"):
            parse_item("X-B:@-", JSON_BODY, draft, stdin)

    def test_raw_json_field(self):
        draft = RequestDraft()
        parse_item('hello:=[1, true, "world"]', JSON_BODY, draft)
        assert draft.raw_json_fields == [Field("hello", '[1, true, "world"]')]
        assert draft.body_type == JSON_BODY

    def test_raw_json_field_with_invalid_json(self):
        with pytest.raises(UsageError, match="invalid JSON at 'hello'"):
            parse_item("hello:={invalid: JSON}", JSON_BODY, RequestDraft())

    def test_raw_json_rejects_nan(self):
        with pytest.raises(UsageError, match="invalid JSON"):
            parse_item("n:=NaN", JSON_BODY, RequestDraft())

    def test_raw_json_scalars(self):
        draft = RequestDraft()
        for item in ('a:="s"', "b:=1.5", "c:=null", "d:=false"):
            parse_item(item, JSON_BODY, draft)
        assert [f.name for f in draft.raw_json_fields] == ["a", "b", "c", "d"]

    def test_raw_json_field_in_form_body(self):
        draft = RequestDraft(body_type=FORM_BODY)
        with pytest.raises(UsageError):
            parse_item("hello:=1", JSON_BODY, draft)

    def test_raw_json_field_with_form_preference(self):
        with pytest.raises(UsageError, match="non-JSON body"):
            parse_item("hello:=1", FORM_BODY, RequestDraft())

    def test_raw_json_from_file_validates_file_contents(self, tmp_path):
        f = tmp_path / "value.json"
        f.write_text('{"nested": [1, 2]}')
        draft = RequestDraft()
        parse_item(f"hello:=@{f}", JSON_BODY, draft)
        assert draft.raw_json_fields == [Field("hello", '{"nested": [1, 2]}')]

    def test_raw_json_from_file_with_invalid_contents(self, tmp_path):
        f = tmp_path / "value.json"
        f.write_text("{bad}")
        with pytest.raises(UsageError, match="invalid JSON"):
            parse_item(f"hello:=@{f}", JSON_BODY, RequestDraft())

    def test_raw_json_from_missing_file(self, tmp_path):
        with pytest.raises(OperationalError) as excinfo:
            parse_item(f"hello:=@{tmp_path / 'nope'}", JSON_BODY, RequestDraft())
        assert excinfo.value.field == "hello"

    def test_raw_json_from_stdin(self):
        draft = RequestDraft()
        stdin = StdinSource(io.BytesIO(b"[1, 2]"))
        parse_item("list:=@-", JSON_BODY, draft, stdin)
        assert draft.raw_json_fields == [Field("list", "[1, 2]")]

    def test_header_field(self):
        draft = RequestDraft()
        parse_item("X-Example:Sample Value", JSON_BODY, draft)
        assert draft.header_fields == [Field("X-Example", "Sample Value")]
        assert draft.body_type is None

    def test_invalid_header_field_name(self):
        with pytest.raises(UsageError, match="invalid header field name"):
            parse_item('Bad"header":test', JSON_BODY, RequestDraft())

    def test_header_field_name_with_trailing_newline(self):
        with pytest.raises(UsageError, match="invalid header field name"):
            parse_item("X-Foo\n:bar", JSON_BODY, RequestDraft())

    def test_url_parameter(self):
        draft = RequestDraft()
        parse_item("hello==world", JSON_BODY, draft)
        assert draft.parameters == [Field("hello", "world")]
        assert draft.body_type is None

    def test_url_parameter_from_file(self):
        draft = RequestDraft()
        parse_item("q==@query.txt", JSON_BODY, draft)
        assert draft.parameters == [Field("q", "query.txt", is_file=True)]

    def test_form_file_field(self):
        draft = RequestDraft()
        parse_item("upload@/tmp/a.txt", FORM_BODY, draft)
        assert draft.files == [Field("upload", "/tmp/a.txt", is_file=True)]
        assert draft.body_type == FORM_BODY

    def test_form_file_field_in_json_body(self):
        with pytest.raises(UsageError, match="perhaps you meant --form"):
            parse_item("upload@a.txt", JSON_BODY, RequestDraft())

    def test_unknown_item(self):
        with pytest.raises(UsageError, match="unknown request item"):
            parse_item("nonsense", JSON_BODY, RequestDraft())


class TestParseArgs:
    """Tests for the full argument parse."""

    def test_happy_case(self):
        model = parse_args(["GET", "http://example.com/hello"])
        assert model == RequestModel(method="GET", url="http://example.com/hello")

    def test_only_host(self):
        model = parse_args(["localhost"])
        assert model.method == "GET"
        assert model.url == "http://localhost/"
        assert model.body == EmptyBody()

    def test_url_missing(self):
        with pytest.raises(UsageError, match="URL is required"):
            parse_args([])

    def test_lower_case_method(self):
        assert parse_args(["get", "localhost"]).method == "GET"

    def test_method_with_trailing_newline_is_not_a_method(self):
        with pytest.raises(UsageError, match="unknown request item: example.com"):
            parse_args(["get\n", "example.com"])

    def test_first_arg_with_dots_is_url(self):
        model = parse_args(["example.com", "foo=bar"])
        assert model.method == "POST"
        assert model.url == "http://example.com/"
        assert model.body == JSONBody(fields=(Field("foo", "bar"),))

    def test_query_parameter_keeps_get(self):
        model = parse_args(["example.com", "foo==bar"])
        assert model.method == "GET"
        assert model.parameters == (Field("foo", "bar"),)

    def test_all_item_kinds(self):
        model = parse_args(["POST", "http://x/y", "a=1", "b==2", "c:3"])
        assert model.method == "POST"
        assert model.url == "http://x/y"
        assert model.parameters == (Field("b", "2"),)
        assert model.header_fields == (Field("c", "3"),)
        assert model.body == JSONBody(fields=(Field("a", "1"),))

    def test_form_option(self):
        model = parse_args(
            ["example.com", "a=1", "f@x.bin"], options=InputOptions(form=True)
        )
        assert model.body == FormBody(
            fields=(Field("a", "1"),),
            files=(Field("f", "x.bin", is_file=True),),
        )

    def test_raw_json_with_form_option(self):
        with pytest.raises(UsageError):
            parse_args(["example.com", "a:=1"], options=InputOptions(form=True))

    def test_invalid_json_fails_before_reading_stdin(self):
        stdin = io.BytesIO(b"unread")
        with pytest.raises(UsageError):
            parse_args(
                ["example.com", "hello:={bad}"],
                stdin,
                InputOptions(read_stdin=True),
            )
        assert stdin.tell() == 0

    def test_read_stdin(self):
        model = parse_args(
            ["example.com"],
            io.BytesIO(b"Hello, World!"),
            InputOptions(read_stdin=True),
        )
        assert model.method == "POST"
        assert model.body == RawBody(b"Hello, World!")
        assert model.body.body_type == RAW_BODY

    def test_stdin_and_items_mixed(self):
        with pytest.raises(UsageError, match="cannot be mixed"):
            parse_args(
                ["example.com", "foo=bar"],
                io.BytesIO(b"Hello"),
                InputOptions(read_stdin=True),
            )

    def test_header_items_allow_stdin_body(self):
        model = parse_args(
            ["PUT", "example.com", "X-A:1"],
            io.BytesIO(b"data"),
            InputOptions(read_stdin=True),
        )
        assert model.body == RawBody(b"data")
        assert model.header_fields == (Field("X-A", "1"),)

    def test_stdin_field_skips_body_capture(self):
        model = parse_args(
            ["example.com", "note=@-"],
            io.BytesIO(b"piped"),
            InputOptions(read_stdin=True),
        )
        assert model.body == JSONBody(fields=(Field("note", "piped"),))

    def test_without_read_stdin_body_stays_empty(self):
        model = parse_args(["example.com"], io.BytesIO(b"ignored"))
        assert model.body == EmptyBody()
        assert model.method == "GET"

    def test_parameter_order_is_preserved(self):
        model = parse_args(["example.com", "a==1", "b==2", "a==3"])
        assert [f.name for f in model.parameters] == ["a", "b", "a"]

    def test_model_sequences_are_tuples(self):
        model = parse_args(["example.com", "a==1", "X:1", "d=1"])
        assert isinstance(model.parameters, tuple)
        assert isinstance(model.header_fields, tuple)
        assert isinstance(model.body.fields, tuple)


class TestStdinSource:
    def test_reads_once(self):
        stdin = StdinSource(io.BytesIO(b"abc"))
        assert stdin.read() == b"abc"
        with pytest.raises(UsageError):
            stdin.read()

    def test_missing_stream_reads_empty(self):
        assert StdinSource(None).read() == b""

    def test_undecodable_field_value(self):
        stdin = StdinSource(io.BytesIO(b"\xff\xfe"))
        with pytest.raises(OperationalError, match="'name'"):
            stdin.read_text("name")
