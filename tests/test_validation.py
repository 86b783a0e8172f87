from schulportal_bridge.models.schemas import AUTOLOGIN_SCHEMA, LOGIN_SCHEMA, MOODLE_LOGIN_SCHEMA
from schulportal_bridge.patterns import HEX_CODE
from schulportal_bridge.validation import FieldSpec, describe_schema, validate_body, validate_query

SESSION = "ab" * 32


def test_valid_login_body():
    body = {"username": "max.mustermann", "password": "x", "school": 5120, "autologin": True}
    assert validate_body(LOGIN_SCHEMA, body).ok


def test_body_not_an_object():
    result = validate_body(LOGIN_SCHEMA, ["username"])
    assert result.invalid
    assert not result.ok


def test_missing_and_null_fields_are_required_violations():
    result = validate_body(LOGIN_SCHEMA, {"username": None, "school": 1})
    assert result.fields == {"username": ["required"], "password": ["required"]}
    assert result.violations == 2


def test_optional_field_absent_is_fine():
    result = validate_body(LOGIN_SCHEMA, {"username": "a", "password": "b", "school": 1})
    assert result.ok


def test_type_violations():
    result = validate_body(LOGIN_SCHEMA, {"username": 1, "password": "b", "school": "5120", "legacy": "yes"})
    assert result.fields == {"username": ["type"], "school": ["type"], "legacy": ["type"]}


def test_boolean_is_not_a_number():
    result = validate_body(LOGIN_SCHEMA, {"username": "a", "password": "b", "school": True})
    assert result.fields == {"school": ["type"]}


def test_string_bounds_and_empty():
    result = validate_body(LOGIN_SCHEMA, {"username": "", "password": "p" * 101, "school": 1})
    assert result.fields == {"username": ["empty"], "password": ["max"]}


def test_number_bounds():
    assert validate_body(LOGIN_SCHEMA, {"username": "a", "password": "b", "school": 0}).fields == {"school": ["min"]}
    assert validate_body(LOGIN_SCHEMA, {"username": "a", "password": "b", "school": 206569}).fields == {"school": ["max"]}
    assert validate_body(LOGIN_SCHEMA, {"username": "a", "password": "b", "school": 1.5}).fields == {"school": ["integer"]}


def test_size_and_pattern():
    assert validate_body(MOODLE_LOGIN_SCHEMA, {"session": SESSION, "school": 1}).ok
    result = validate_body(MOODLE_LOGIN_SCHEMA, {"session": "XY" * 31, "school": 1})
    assert result.fields == {"session": ["size", "pattern"]}


def test_autologin_pattern():
    assert validate_body(AUTOLOGIN_SCHEMA, {"autologin": SESSION}).ok
    assert validate_body(AUTOLOGIN_SCHEMA, {"autologin": SESSION.upper()}).fields == {"autologin": ["pattern"]}


def test_options():
    schema = {"mode": FieldSpec("string", options=("a", "b"))}
    assert validate_body(schema, {"mode": "a"}).ok
    assert validate_body(schema, {"mode": "c"}).fields == {"mode": ["options"]}


def test_query_values_are_coerced():
    schema = {"school": FieldSpec("number", required=True, min=1), "legacy": FieldSpec("boolean")}
    assert validate_query(schema, {"school": "5120", "legacy": "true"}).ok
    assert validate_query(schema, {"school": "abc"}).fields == {"school": ["type"]}
    assert validate_query(schema, {"school": "0", "legacy": "maybe"}).fields == {"school": ["min"], "legacy": ["type"]}


def test_describe_schema():
    described = describe_schema({"session": FieldSpec("string", required=True, size=64, pattern=HEX_CODE)})
    assert described == {"session": {"type": "string", "required": True, "size": 64, "pattern": "^[a-f0-9]+$"}}


def test_result_to_dict():
    result = validate_body(AUTOLOGIN_SCHEMA, {})
    assert result.to_dict() == {"invalid": False, "violations": 1, "fields": {"autologin": ["required"]}}


def test_huge_integers_are_reported_not_raised():
    result = validate_body(LOGIN_SCHEMA, {"username": "a", "password": "b", "school": 10 ** 400})
    assert result.fields == {"school": ["max"]}
    assert validate_body(LOGIN_SCHEMA, {"username": "a", "password": "b", "school": -(10 ** 400)}).fields == {"school": ["min"]}


def test_non_finite_numbers_are_not_integers():
    result = validate_body(LOGIN_SCHEMA, {"username": "a", "password": "b", "school": float("inf")})
    assert result.fields == {"school": ["integer"]}


def test_query_huge_number():
    schema = {"school": FieldSpec("number", required=True, max=206568)}
    assert validate_query(schema, {"school": "1" + "0" * 400}).fields == {"school": ["max"]}
