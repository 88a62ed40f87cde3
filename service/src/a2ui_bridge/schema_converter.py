"""Convert a JSON Schema catalog into a pydantic validator.

Conversion runs in two stages. ``SchemaParser`` walks the JSON Schema and
produces a tree of ``SchemaNode`` variants, rejecting every keyword it does
not understand. ``TypeBuilder`` turns that tree into a pydantic annotation
(dynamic models built with ``create_model``). The resulting ``TypeAdapter``
is both the runtime validator and, through ``json_schema()``, the
description handed to the generation engine, so the two cannot diverge.
"""

import keyword
import logging
import re
from dataclasses import dataclass, field
from datetime import date, datetime, time
from typing import Annotated, Any, Dict, List, Literal, Optional, Tuple, Union
from uuid import UUID

from pydantic import (
    AfterValidator,
    AnyUrl,
    BaseModel,
    BeforeValidator,
    ConfigDict,
    Field,
    PydanticSchemaGenerationError,
    PydanticUserError,
    TypeAdapter,
    create_model,
)
from pydantic_core import SchemaError

from .exceptions import UnsupportedSchemaError

logger = logging.getLogger(__name__)

DEFAULT_MAX_DEPTH = 32

# Keywords that only annotate a schema and never change what it accepts
ANNOTATION_KEYWORDS = frozenset({
    "title", "description", "default", "examples", "$schema", "$id",
    "$comment", "readOnly", "writeOnly", "deprecated",
})

STRUCTURAL_KEYWORDS = frozenset({
    "type", "properties", "required", "additionalProperties", "items",
    "enum", "const", "format", "nullable", "anyOf", "oneOf", "$ref",
    "$defs", "definitions",
    "minLength", "maxLength", "pattern",
    "minimum", "maximum", "exclusiveMinimum", "exclusiveMaximum", "multipleOf",
    "minItems", "maxItems",
})

STRING_FORMATS: Dict[str, Any] = {
    "date-time": datetime,
    "date": date,
    "time": time,
    "uuid": UUID,
    "uri": AnyUrl,
}


# ============================================================================
# Schema AST
# ============================================================================

@dataclass(frozen=True)
class SchemaNode:
    description: Optional[str] = None
    nullable: bool = False


@dataclass(frozen=True)
class AnyNode(SchemaNode):
    pass


@dataclass(frozen=True)
class NullNode(SchemaNode):
    pass


@dataclass(frozen=True)
class BooleanNode(SchemaNode):
    pass


@dataclass(frozen=True)
class StringNode(SchemaNode):
    format: Optional[str] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None


@dataclass(frozen=True)
class NumberNode(SchemaNode):
    integer: bool = False
    minimum: Optional[float] = None
    maximum: Optional[float] = None
    exclusive_minimum: Optional[float] = None
    exclusive_maximum: Optional[float] = None
    multiple_of: Optional[float] = None


@dataclass(frozen=True)
class EnumNode(SchemaNode):
    values: Tuple[Any, ...] = ()


@dataclass(frozen=True)
class ArrayNode(SchemaNode):
    items: SchemaNode = field(default_factory=AnyNode)
    min_items: Optional[int] = None
    max_items: Optional[int] = None


@dataclass(frozen=True)
class PropertyNode:
    name: str
    schema: SchemaNode
    required: bool


@dataclass(frozen=True)
class ObjectNode(SchemaNode):
    title: Optional[str] = None
    properties: Tuple[PropertyNode, ...] = ()
    # True, False, or a SchemaNode constraining every value
    additional: Any = True


@dataclass(frozen=True)
class UnionNode(SchemaNode):
    options: Tuple[SchemaNode, ...] = ()


@dataclass(frozen=True)
class RefNode(SchemaNode):
    ref: str = "#"


# ============================================================================
# Parsing
# ============================================================================

def _decode_pointer_token(token: str) -> str:
    return token.replace("~1", "/").replace("~0", "~")


class SchemaParser:
    """Parse a JSON Schema document into ``SchemaNode`` trees."""

    def __init__(self, root: Dict[str, Any], max_depth: int = DEFAULT_MAX_DEPTH):
        self.root = root
        self.max_depth = max_depth
        self.definitions: Dict[str, SchemaNode] = {}
        self._pending: set = set()

    def parse_root(self) -> SchemaNode:
        return self.parse(self.root, "#", 0)

    def parse(self, schema: Any, path: str, depth: int) -> SchemaNode:
        if depth > self.max_depth:
            raise UnsupportedSchemaError(
                f"schema nesting deeper than {self.max_depth} levels", path
            )

        if schema is True:
            return AnyNode()
        if schema is False:
            raise UnsupportedSchemaError("boolean schema 'false'", path)
        if not isinstance(schema, dict):
            raise UnsupportedSchemaError(
                f"schema must be an object, got {type(schema).__name__}", path
            )

        for key in schema:
            if key in STRUCTURAL_KEYWORDS or key in ANNOTATION_KEYWORDS:
                continue
            if key.startswith("x-"):
                continue
            raise UnsupportedSchemaError(f"keyword '{key}'", path)

        description = schema.get("description")
        nullable = bool(schema.get("nullable", False))

        if "$ref" in schema:
            return self._parse_ref(schema, path, depth, description, nullable)

        if "anyOf" in schema or "oneOf" in schema:
            return self._parse_union(schema, path, depth, description, nullable)

        if "const" in schema:
            return EnumNode(
                description=description,
                nullable=nullable,
                values=self._enum_values([schema["const"]], path),
            )
        if "enum" in schema:
            return EnumNode(
                description=description,
                nullable=nullable,
                values=self._enum_values(schema["enum"], path),
            )

        schema_type = schema.get("type")
        if schema_type is None:
            if "properties" in schema or "additionalProperties" in schema:
                schema_type = "object"
            elif "items" in schema:
                schema_type = "array"
            else:
                return AnyNode(description=description, nullable=nullable)

        if isinstance(schema_type, list):
            if not schema_type:
                raise UnsupportedSchemaError("empty type list", path)
            options = tuple(
                self.parse({**schema, "type": t, "nullable": False}, path, depth + 1)
                for t in schema_type
            )
            return UnionNode(description=description, nullable=nullable, options=options)

        if schema_type == "object":
            return self._parse_object(schema, path, depth, description, nullable)
        if schema_type == "array":
            return self._parse_array(schema, path, depth, description, nullable)
        if schema_type == "string":
            return StringNode(
                description=description,
                nullable=nullable,
                format=schema.get("format"),
                min_length=schema.get("minLength"),
                max_length=schema.get("maxLength"),
                pattern=schema.get("pattern"),
            )
        if schema_type in ("number", "integer"):
            return NumberNode(
                description=description,
                nullable=nullable,
                integer=schema_type == "integer",
                minimum=schema.get("minimum"),
                maximum=schema.get("maximum"),
                exclusive_minimum=schema.get("exclusiveMinimum"),
                exclusive_maximum=schema.get("exclusiveMaximum"),
                multiple_of=schema.get("multipleOf"),
            )
        if schema_type == "boolean":
            return BooleanNode(description=description, nullable=nullable)
        if schema_type == "null":
            return NullNode(description=description)

        raise UnsupportedSchemaError(f"type '{schema_type}'", path)

    def _enum_values(self, values: Any, path: str) -> Tuple[Any, ...]:
        if not isinstance(values, list) or not values:
            raise UnsupportedSchemaError("enum must be a non-empty list", path)
        for value in values:
            if value is not None and not isinstance(value, (str, int, float, bool)):
                raise UnsupportedSchemaError(
                    f"enum value of type {type(value).__name__}", path
                )
        return tuple(values)

    def _parse_ref(
        self, schema: Dict[str, Any], path: str, depth: int,
        description: Optional[str], nullable: bool,
    ) -> SchemaNode:
        structural = set(schema) & STRUCTURAL_KEYWORDS - {"$ref", "nullable", "$defs", "definitions"}
        if structural:
            raise UnsupportedSchemaError(
                f"$ref combined with {', '.join(sorted(structural))}", path
            )

        ref = schema["$ref"]
        if not isinstance(ref, str) or not ref.startswith("#"):
            raise UnsupportedSchemaError(f"non-local $ref '{ref}'", path)

        if ref not in self.definitions and ref not in self._pending:
            self._pending.add(ref)
            target = self._resolve_pointer(ref, path)
            self.definitions[ref] = self.parse(target, ref, depth + 1)
            self._pending.discard(ref)

        return RefNode(description=description, nullable=nullable, ref=ref)

    def _resolve_pointer(self, ref: str, path: str) -> Any:
        node: Any = self.root
        pointer = ref[1:]
        if not pointer:
            return node
        for token in pointer.lstrip("/").split("/"):
            token = _decode_pointer_token(token)
            if isinstance(node, dict) and token in node:
                node = node[token]
            elif isinstance(node, list) and token.isdigit() and int(token) < len(node):
                node = node[int(token)]
            else:
                raise UnsupportedSchemaError(f"unresolvable $ref '{ref}'", path)
        return node

    def _parse_union(
        self, schema: Dict[str, Any], path: str, depth: int,
        description: Optional[str], nullable: bool,
    ) -> SchemaNode:
        if "anyOf" in schema and "oneOf" in schema:
            raise UnsupportedSchemaError("anyOf combined with oneOf", path)
        keyword_name = "anyOf" if "anyOf" in schema else "oneOf"
        structural = set(schema) & STRUCTURAL_KEYWORDS - {keyword_name, "nullable", "$defs", "definitions"}
        if structural:
            raise UnsupportedSchemaError(
                f"{keyword_name} combined with {', '.join(sorted(structural))}", path
            )

        branches = schema[keyword_name]
        if not isinstance(branches, list) or not branches:
            raise UnsupportedSchemaError(f"{keyword_name} must be a non-empty list", path)

        options = tuple(
            self.parse(branch, f"{path}/{keyword_name}/{i}", depth + 1)
            for i, branch in enumerate(branches)
        )
        return UnionNode(description=description, nullable=nullable, options=options)

    def _parse_object(
        self, schema: Dict[str, Any], path: str, depth: int,
        description: Optional[str], nullable: bool,
    ) -> ObjectNode:
        properties = schema.get("properties", {})
        if not isinstance(properties, dict):
            raise UnsupportedSchemaError("properties must be an object", path)
        required = schema.get("required", [])
        if not isinstance(required, list):
            raise UnsupportedSchemaError("required must be a list", path)

        nodes = [
            PropertyNode(
                name=name,
                schema=self.parse(prop, f"{path}/properties/{name}", depth + 1),
                required=name in required,
            )
            for name, prop in properties.items()
        ]
        # Required names without a property schema accept any value
        for name in required:
            if name not in properties:
                nodes.append(PropertyNode(name=name, schema=AnyNode(), required=True))

        additional = schema.get("additionalProperties", True)
        if not isinstance(additional, bool):
            if nodes:
                raise UnsupportedSchemaError(
                    "additionalProperties schema alongside properties", path
                )
            additional = self.parse(additional, f"{path}/additionalProperties", depth + 1)

        return ObjectNode(
            description=description,
            nullable=nullable,
            title=schema.get("title"),
            properties=tuple(nodes),
            additional=additional,
        )

    def _parse_array(
        self, schema: Dict[str, Any], path: str, depth: int,
        description: Optional[str], nullable: bool,
    ) -> ArrayNode:
        items = schema.get("items", True)
        if isinstance(items, list):
            raise UnsupportedSchemaError("tuple-form items", path)
        return ArrayNode(
            description=description,
            nullable=nullable,
            items=self.parse(items, f"{path}/items", depth + 1),
            min_items=schema.get("minItems"),
            max_items=schema.get("maxItems"),
        )


# ============================================================================
# Building pydantic types
# ============================================================================

_RESERVED_FIELD_NAMES = frozenset(dir(BaseModel))


def _identifier(text: str, fallback: str) -> str:
    cleaned = re.sub(r"\W+", "_", text).strip("_")
    if not cleaned or cleaned[0].isdigit():
        return fallback
    return cleaned


def _format_check(format_name: str):
    """Validator that parses a string as ``format_name`` and keeps the text."""
    adapter = TypeAdapter(STRING_FORMATS[format_name])

    def check(value: str) -> str:
        try:
            adapter.validate_python(value)
        except ValueError:
            raise ValueError(f"not a valid '{format_name}' string") from None
        return value

    return check


def _integral_float(value: Any) -> Any:
    # JSON Schema counts 2.0 as an integer
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value


class TypeBuilder:
    """Turn parsed schema nodes into pydantic annotations."""

    def __init__(self, parser: SchemaParser):
        self.parser = parser
        self.models: List[type] = []
        self.namespace: Dict[str, Any] = {}
        self._ref_types: Dict[str, Any] = {}
        self._ref_names: Dict[str, str] = {}
        # ref -> object nesting depth at which its construction started
        self._building: Dict[str, int] = {}
        self._object_depth = 0
        self._used_names: set = set()

    def _unique_name(self, base: str) -> str:
        name = base
        counter = 2
        while name in self._used_names:
            name = f"{base}{counter}"
            counter += 1
        self._used_names.add(name)
        return name

    def build(self, node: SchemaNode, name: str) -> Any:
        annotation = self._build(node, name)
        if node.nullable and not isinstance(node, (NullNode, RefNode)):
            annotation = Optional[annotation]
        return annotation

    def _build(self, node: SchemaNode, name: str) -> Any:
        if isinstance(node, RefNode):
            annotation = self._build_ref(node)
            return Optional[annotation] if node.nullable else annotation
        if isinstance(node, AnyNode):
            return Any
        if isinstance(node, NullNode):
            return type(None)
        if isinstance(node, BooleanNode):
            return Annotated[bool, Field(strict=True)]
        if isinstance(node, StringNode):
            return self._build_string(node)
        if isinstance(node, NumberNode):
            return self._build_number(node)
        if isinstance(node, EnumNode):
            return Literal[node.values]
        if isinstance(node, ArrayNode):
            items = self.build(node.items, f"{name}Item")
            constraints = {}
            if node.min_items is not None:
                constraints["min_length"] = node.min_items
            if node.max_items is not None:
                constraints["max_length"] = node.max_items
            if constraints:
                return Annotated[List[items], Field(**constraints)]
            return List[items]
        if isinstance(node, UnionNode):
            options = tuple(
                self.build(option, f"{name}Option{i}")
                for i, option in enumerate(node.options)
            )
            if len(options) == 1:
                return options[0]
            return Union[options]
        if isinstance(node, ObjectNode):
            return self._build_object(node, self._unique_name(name))

        raise UnsupportedSchemaError(f"node {type(node).__name__}")

    def _build_ref(self, node: RefNode) -> Any:
        ref = node.ref
        if ref in self._ref_types:
            return self._ref_types[ref]

        if ref in self._building:
            # A cycle is finite only when it passes through a model, where
            # the forward reference is resolved by finalize()
            if self._object_depth > self._building[ref]:
                return self._ref_names[ref]
            raise UnsupportedSchemaError("circular $ref outside of an object", ref)

        target = self.parser.definitions[ref]
        base = "Root" if ref == "#" else ref.rsplit("/", 1)[-1]
        model_name = self._unique_name(_identifier(_decode_pointer_token(base), "Definition"))
        return self._build_named(ref, target, model_name)

    def _build_named(self, ref: str, target: SchemaNode, model_name: str) -> Any:
        self._ref_names[ref] = model_name
        self._building[ref] = self._object_depth
        try:
            if isinstance(target, ObjectNode) and not target.nullable:
                annotation = self._build_object(target, model_name)
            else:
                annotation = self.build(target, model_name)
        finally:
            del self._building[ref]

        self._ref_types[ref] = annotation
        self.namespace[model_name] = annotation
        return annotation

    def build_root(self, node: SchemaNode, name: str) -> Any:
        """Build the document root, registered as '#' for self-references."""
        return self._build_named("#", node, self._unique_name(_identifier(name, "Catalog")))

    def _build_string(self, node: StringNode) -> Any:
        constraints: Dict[str, Any] = {"strict": True}
        if node.min_length is not None:
            constraints["min_length"] = node.min_length
        if node.max_length is not None:
            constraints["max_length"] = node.max_length
        if node.pattern is not None:
            constraints["pattern"] = node.pattern
        if node.format in STRING_FORMATS:
            constraints["json_schema_extra"] = {"format": node.format}
            return Annotated[str, Field(**constraints), AfterValidator(_format_check(node.format))]
        return Annotated[str, Field(**constraints)]

    def _build_number(self, node: NumberNode) -> Any:
        constraints: Dict[str, Any] = {"strict": True}
        if node.minimum is not None:
            constraints["ge"] = node.minimum
        if node.maximum is not None:
            constraints["le"] = node.maximum
        if node.exclusive_minimum is not None:
            constraints["gt"] = node.exclusive_minimum
        if node.exclusive_maximum is not None:
            constraints["lt"] = node.exclusive_maximum
        if node.multiple_of is not None:
            constraints["multiple_of"] = node.multiple_of
        if node.integer:
            return Annotated[int, Field(**constraints), BeforeValidator(_integral_float)]
        return Annotated[float, Field(**constraints)]

    @staticmethod
    def _field_name(key: str, index: int, taken: Dict[str, Any]) -> str:
        name = _identifier(key, f"field_{index}")
        if (
            keyword.iskeyword(name)
            or name in _RESERVED_FIELD_NAMES
            or name.startswith("model_")
        ):
            name = f"field_{index}"
        while name in taken:
            name = f"{name}_"
        return name

    def _build_object(self, node: ObjectNode, model_name: str) -> Any:
        if not isinstance(node.additional, bool):
            values = self.build(node.additional, f"{model_name}Value")
            return Dict[str, values]

        fields: Dict[str, Any] = {}
        self._object_depth += 1
        try:
            for index, prop in enumerate(node.properties):
                field_name = self._field_name(prop.name, index, fields)
                annotation = self.build(
                    prop.schema, f"{model_name}_{_identifier(prop.name, str(index))}"
                )
                # Python-safe field name, original key on the wire
                field_kwargs: Dict[str, Any] = {"alias": prop.name}
                if prop.schema.description:
                    field_kwargs["description"] = prop.schema.description
                if prop.required:
                    fields[field_name] = (annotation, Field(..., **field_kwargs))
                else:
                    fields[field_name] = (annotation, Field(None, **field_kwargs))
        finally:
            self._object_depth -= 1

        config = ConfigDict(
            populate_by_name=True,
            extra="allow" if node.additional else "forbid",
            protected_namespaces=(),
            title=node.title or model_name,
        )
        model = create_model(
            model_name,
            __config__=config,
            __doc__=node.description,
            **fields,
        )
        self.models.append(model)
        self.namespace[model_name] = model
        return model

    def finalize(self) -> None:
        """Resolve forward references left by recursive definitions."""
        for model in self.models:
            model.model_rebuild(force=True, _types_namespace=self.namespace)


# ============================================================================
# Public API
# ============================================================================

class ConvertedSchema:
    """A JSON Schema turned into a pydantic validator and engine schema."""

    def __init__(self, annotation: Any, source: Dict[str, Any], models: List[type]):
        self.annotation = annotation
        self.source = source
        self.models = models
        self.adapter: TypeAdapter = TypeAdapter(annotation)

    def validate(self, value: Any) -> Any:
        """Validate a candidate value; raises ``pydantic.ValidationError``."""
        return self.adapter.validate_python(value)

    def is_valid(self, value: Any) -> bool:
        try:
            self.validate(value)
        except ValueError:
            return False
        return True

    def dump(self, value: Any) -> Any:
        """Validate and return the JSON-compatible form with original keys."""
        validated = self.validate(value)
        return self.adapter.dump_python(
            validated, mode="json", by_alias=True, exclude_unset=True
        )

    def json_schema(self) -> Dict[str, Any]:
        """Schema description for the generation engine's tool parameters."""
        return self.adapter.json_schema(by_alias=True)


def _build_converted(build) -> ConvertedSchema:
    try:
        return build()
    except (PydanticSchemaGenerationError, PydanticUserError, SchemaError) as e:
        raise UnsupportedSchemaError(str(e)) from e


def convert_schema(
    schema: Dict[str, Any],
    name: str = "Catalog",
    max_depth: int = DEFAULT_MAX_DEPTH,
) -> ConvertedSchema:
    """
    Convert a JSON Schema into a ``ConvertedSchema``.

    Raises:
        UnsupportedSchemaError: The schema uses a construct that cannot be
            expressed. Nothing partial is returned.
    """
    parser = SchemaParser(schema, max_depth=max_depth)
    node = parser.parse_root()

    def build() -> ConvertedSchema:
        builder = TypeBuilder(parser)
        annotation = builder.build_root(node, name)
        builder.finalize()
        return ConvertedSchema(annotation, schema, builder.models)

    converted = _build_converted(build)
    logger.debug(f"Converted schema '{name}' into {len(converted.models)} model(s)")
    return converted


def compose_object(
    name: str,
    fields: Dict[str, Tuple[Any, Any]],
    description: Optional[str] = None,
) -> ConvertedSchema:
    """
    Wrap already converted annotations in a new object schema.

    ``fields`` maps a property name to ``(annotation, Field(...))``.
    Used to embed a catalog-derived type inside a tool's input.
    """
    def build() -> ConvertedSchema:
        model = create_model(
            name,
            __config__=ConfigDict(populate_by_name=True, protected_namespaces=()),
            __doc__=description,
            **fields,
        )
        return ConvertedSchema(model, model.model_json_schema(), [model])

    return _build_converted(build)
