"""Unit tests for JSON Schema to pydantic conversion."""

import pytest
from pydantic import ValidationError

from a2ui_bridge.exceptions import UnsupportedSchemaError
from a2ui_bridge.schema_converter import compose_object, convert_schema
from pydantic import Field


def test_open_object_accepts_any_widget(open_catalog):
    converted = convert_schema(open_catalog)

    assert converted.is_valid({"type": "Text", "text": "hello"})
    assert converted.is_valid({})
    assert not converted.is_valid("not an object")


def test_required_and_types_are_enforced():
    converted = convert_schema({
        "type": "object",
        "properties": {
            "label": {"type": "string"},
            "count": {"type": "integer", "minimum": 0},
            "ratio": {"type": "number"},
            "enabled": {"type": "boolean"},
        },
        "required": ["label"],
    })

    assert converted.is_valid({"label": "ok", "count": 3, "ratio": 0.5, "enabled": True})
    assert converted.is_valid({"label": "ok", "ratio": 2})
    assert not converted.is_valid({"count": 1})
    assert not converted.is_valid({"label": 5})
    assert not converted.is_valid({"label": "ok", "count": "3"})
    assert not converted.is_valid({"label": "ok", "count": -1})
    assert not converted.is_valid({"label": "ok", "enabled": "yes"})


def test_additional_properties_false_rejects_extra_keys():
    converted = convert_schema({
        "type": "object",
        "properties": {"text": {"type": "string"}},
        "additionalProperties": False,
    })

    assert converted.is_valid({"text": "a"})
    assert not converted.is_valid({"text": "a", "color": "red"})


def test_additional_properties_schema_is_a_mapping():
    converted = convert_schema({"type": "object", "additionalProperties": {"type": "integer"}})

    assert converted.is_valid({"a": 1, "b": 2})
    assert not converted.is_valid({"a": "1"})


def test_enum_const_and_nullable():
    converted = convert_schema({
        "type": "object",
        "properties": {
            "kind": {"const": "Button"},
            "size": {"enum": ["small", "large"]},
            "hint": {"type": "string", "nullable": True},
            "either": {"type": ["string", "null"]},
        },
        "required": ["kind"],
    })

    assert converted.is_valid({"kind": "Button", "size": "small", "hint": None, "either": None})
    assert not converted.is_valid({"kind": "Link"})
    assert not converted.is_valid({"kind": "Button", "size": "medium"})


def test_array_bounds():
    converted = convert_schema({
        "type": "array",
        "items": {"type": "string"},
        "minItems": 1,
        "maxItems": 2,
    })

    assert converted.is_valid(["a"])
    assert not converted.is_valid([])
    assert not converted.is_valid(["a", "b", "c"])
    assert not converted.is_valid([1])


def test_string_formats():
    converted = convert_schema({
        "type": "object",
        "properties": {
            "id": {"type": "string", "format": "uuid"},
            "color": {"type": "string", "format": "hex-color"},
        },
    })

    assert converted.is_valid({"id": "12345678-1234-5678-1234-567812345678", "color": "anything"})
    assert not converted.is_valid({"id": "not-a-uuid"})


def test_union_of_refs(widget_catalog):
    converted = convert_schema(widget_catalog, name="Widget")

    assert converted.is_valid({"type": "Text", "text": "hi"})
    assert converted.is_valid({"type": "Column", "children": ["a", "b"]})
    assert not converted.is_valid({"type": "Column", "children": "a"})
    assert not converted.is_valid({"type": "Image", "url": "x"})


def test_recursive_definition_becomes_self_referential_model():
    converted = convert_schema({
        "$defs": {
            "Node": {
                "type": "object",
                "properties": {
                    "name": {"type": "string"},
                    "children": {"type": "array", "items": {"$ref": "#/$defs/Node"}},
                },
                "required": ["name"],
            }
        },
        "$ref": "#/$defs/Node",
    })

    tree = {"name": "root", "children": [{"name": "leaf", "children": [{"name": "deep"}]}]}
    assert converted.is_valid(tree)
    assert not converted.is_valid({"name": "root", "children": [{"children": []}]})


def test_root_self_reference():
    converted = convert_schema({
        "type": "object",
        "properties": {"next": {"$ref": "#", "nullable": True}},
    })

    assert converted.is_valid({"next": {"next": {"next": None}}})


def test_recursion_through_union():
    converted = convert_schema({
        "$defs": {
            "Widget": {"anyOf": [{"$ref": "#/$defs/Text"}, {"$ref": "#/$defs/Column"}]},
            "Text": {
                "type": "object",
                "properties": {"text": {"type": "string"}},
                "required": ["text"],
                "additionalProperties": False,
            },
            "Column": {
                "type": "object",
                "properties": {"children": {"type": "array", "items": {"$ref": "#/$defs/Widget"}}},
                "required": ["children"],
                "additionalProperties": False,
            },
        },
        "$ref": "#/$defs/Widget",
    })

    assert converted.is_valid({"children": [{"text": "a"}, {"children": [{"text": "b"}]}]})
    assert not converted.is_valid({"children": [{"label": "a"}]})


def test_reference_cycle_without_object_is_rejected():
    with pytest.raises(UnsupportedSchemaError, match="circular"):
        convert_schema({
            "$defs": {"A": {"$ref": "#/$defs/B"}, "B": {"$ref": "#/$defs/A"}},
            "$ref": "#/$defs/A",
        })


@pytest.mark.parametrize(
    "schema, feature",
    [
        ({"allOf": [{"type": "string"}]}, "allOf"),
        ({"not": {"type": "string"}}, "not"),
        ({"type": "object", "patternProperties": {"^x": {}}}, "patternProperties"),
        ({"type": "array", "prefixItems": [{"type": "string"}]}, "prefixItems"),
        ({"if": {"type": "string"}, "then": {}}, "if"),
        ({"$ref": "https://example.com/widget.json"}, "non-local"),
        ({"$ref": "#/$defs/Missing"}, "unresolvable"),
        ({"type": "tuple"}, "tuple"),
        ({"enum": [{"a": 1}]}, "enum"),
        ({"type": "array", "items": [{"type": "string"}]}, "tuple-form"),
        ({"$ref": "#/$defs/A", "type": "object", "$defs": {"A": {}}}, "combined"),
        ({"type": "object", "properties": {"x": False}}, "false"),
    ],
)
def test_unsupported_constructs_raise(schema, feature):
    with pytest.raises(UnsupportedSchemaError) as exc_info:
        convert_schema(schema)

    assert feature in exc_info.value.message
    assert exc_info.value.code == "unsupported_schema"


def test_unsupported_keyword_reports_path():
    with pytest.raises(UnsupportedSchemaError) as exc_info:
        convert_schema({
            "type": "object",
            "properties": {"child": {"type": "object", "dependentRequired": {}}},
        })

    assert exc_info.value.path == "#/properties/child"


def test_nesting_beyond_max_depth_is_rejected():
    schema = {"type": "string"}
    for _ in range(10):
        schema = {"type": "array", "items": schema}

    with pytest.raises(UnsupportedSchemaError, match="deeper"):
        convert_schema(schema, max_depth=5)

    assert convert_schema(schema, max_depth=20).is_valid([[[[[[[[[["x"]]]]]]]]]])


def test_invalid_pattern_is_unsupported():
    with pytest.raises(UnsupportedSchemaError):
        convert_schema({"type": "string", "pattern": "(unclosed"})


def test_annotation_keywords_and_extensions_are_ignored():
    converted = convert_schema({
        "$schema": "https://json-schema.org/draft/2020-12/schema",
        "title": "Label",
        "description": "A text label",
        "x-renderer": "flutter",
        "type": "object",
        "properties": {"text": {"type": "string", "examples": ["hi"], "default": ""}},
    })

    assert converted.is_valid({"text": "hi"})


def test_non_identifier_keys_keep_their_wire_names():
    converted = convert_schema({
        "type": "object",
        "properties": {
            "class": {"type": "string"},
            "data-id": {"type": "string"},
            "model_config": {"type": "string"},
        },
        "required": ["class", "data-id"],
    })

    dumped = converted.dump({"class": "a", "data-id": "b", "model_config": "c"})
    assert dumped == {"class": "a", "data-id": "b", "model_config": "c"}

    properties = converted.json_schema()["properties"]
    assert set(properties) == {"class", "data-id", "model_config"}


def test_json_schema_describes_constraints():
    converted = convert_schema({
        "type": "object",
        "properties": {"text": {"type": "string", "description": "Shown text", "maxLength": 10}},
        "required": ["text"],
    })

    schema = converted.json_schema()
    assert schema["required"] == ["text"]
    assert schema["properties"]["text"]["maxLength"] == 10
    assert schema["properties"]["text"]["description"] == "Shown text"


def test_compose_object_embeds_converted_type(widget_catalog):
    widget = convert_schema(widget_catalog, name="Widget")
    wrapper = compose_object(
        "Holder",
        {"item": (widget.annotation, Field(..., description="Held widget"))},
    )

    assert wrapper.is_valid({"item": {"type": "Text", "text": "x"}})
    assert not wrapper.is_valid({"item": {"type": "Text"}})
    with pytest.raises(ValidationError):
        wrapper.validate({})


def test_float_enum_and_const():
    converted = convert_schema({
        "type": "object",
        "properties": {
            "scale": {"type": "number", "enum": [0.5, 1.5]},
            "opacity": {"const": 0.5},
        },
    })

    assert converted.is_valid({"scale": 0.5, "opacity": 0.5})
    assert not converted.is_valid({"scale": 0.7})
    assert not converted.is_valid({"opacity": 0.7})


@pytest.mark.parametrize(
    "format_name, good, bad",
    [
        ("date-time", "2024-05-01T10:30:00Z", 1700000000),
        ("date", "2024-05-01", 0),
        ("time", "10:30:00", 3600),
        ("uuid", "12345678-1234-5678-1234-567812345678", 1),
        ("uri", "https://example.com/logo.png", 5),
    ],
)
def test_formatted_strings_reject_numbers(format_name, good, bad):
    converted = convert_schema({"type": "string", "format": format_name})

    assert converted.dump(good) == good
    assert not converted.is_valid(bad)
    assert not converted.is_valid("not valid")
    assert converted.json_schema()["format"] == format_name


def test_integer_accepts_integral_floats():
    converted = convert_schema({"type": "integer", "minimum": 0})

    assert converted.is_valid(2.0)
    assert converted.dump(2.0) == 2
    assert not converted.is_valid(2.5)
    assert not converted.is_valid(-1.0)
    assert not converted.is_valid(True)
