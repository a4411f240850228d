"""Schema loading and inheritance resolution service."""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping, Sequence
from typing import Any

from .schema_models import (
    TYPE_TAG_PROPERTY,
    DefinitionVariant,
    FieldDescriptor,
    FieldKind,
    SchemaDefinition,
    SchemaDocument,
)

_LOGGER = logging.getLogger(__name__)

_DEFINITION_CONTAINERS = ("$defs", "definitions")
_REFERENCE_PREFIXES = ("#/$defs/", "#/definitions/")
_COMBINATOR_KEYS = ("allOf", "anyOf", "oneOf")
_TYPE_KINDS = {
    "string": FieldKind.STRING,
    "integer": FieldKind.INTEGER,
    "number": FieldKind.NUMBER,
    "boolean": FieldKind.BOOLEAN,
    "array": FieldKind.ARRAY,
    "object": FieldKind.OBJECT,
}
_SCALAR_TYPES = frozenset({"string", "integer", "number", "boolean", "array"})


class SchemaError(Exception):
    """Raised for schema parsing or resolution failures."""


class CyclicInheritanceError(SchemaError):
    """Raised when a definition (transitively) inherits from itself."""

    def __init__(self, cycle: Sequence[str]) -> None:
        self.cycle = tuple(cycle)
        super().__init__(f"Cyclic inheritance between definitions: {' -> '.join(self.cycle)}")


class UnsupportedCombinatorError(SchemaError):
    """Raised for combinator shapes outside the supported subset."""


class UnresolvableReferenceError(SchemaError):
    """Raised when a `$ref` names a definition missing from the document."""

    def __init__(self, reference: str, context: str) -> None:
        self.reference = reference
        self.context = context
        super().__init__(f"Unresolvable reference '{reference}' in '{context}'.")


def load_schema_document(text: str) -> SchemaDocument:
    """Parse schema text and extract its named definitions.

    Definitions are read from `$defs`, from the older `definitions` key or,
    when neither is present, from the root mapping itself.
    """
    try:
        root = json.loads(text)
    except json.JSONDecodeError as exc:
        raise SchemaError(f"Invalid JSON schema: {exc}") from exc

    if not isinstance(root, Mapping):
        raise SchemaError("JSON schema root must be an object.")

    for container in _DEFINITION_CONTAINERS:
        if container in root:
            definitions = root[container]
            if not isinstance(definitions, Mapping):
                raise SchemaError(f"JSON schema '{container}' must be an object.")
            return SchemaDocument(definitions=dict(definitions))
    return SchemaDocument(definitions=dict(root))


def resolve_schema(document: SchemaDocument) -> dict[str, SchemaDefinition]:
    """Resolve every named definition into its complete field set."""
    resolved = _SchemaResolver(document.definitions).resolve_all()
    _LOGGER.debug("resolved %d schema definitions", len(resolved))
    return resolved


class _SchemaResolver:
    """Explicit-stack resolver over the definitions of one document."""

    def __init__(self, nodes: Mapping[str, Any]) -> None:
        self._nodes = nodes
        self._resolved: dict[str, SchemaDefinition] = {}

    def resolve_all(self) -> dict[str, SchemaDefinition]:
        for name in self._nodes:
            self._resolve(name)
        return {name: self._resolved[name] for name in self._nodes}

    def _resolve(self, root_name: str) -> None:
        if root_name in self._resolved:
            return
        stack = [root_name]
        in_progress = {root_name}
        while stack:
            name = stack[-1]
            node = self._node(name)
            pending = [
                dependency
                for dependency in self._inherited_from(name, node)
                if dependency not in self._resolved
            ]
            if pending:
                dependency = pending[0]
                if dependency in in_progress:
                    raise CyclicInheritanceError([*stack[stack.index(dependency) :], dependency])
                stack.append(dependency)
                in_progress.add(dependency)
                continue
            self._resolved[name] = self._build(name, node)
            stack.pop()
            in_progress.discard(name)

    def _node(self, name: str) -> Mapping[str, Any]:
        node = self._nodes[name]
        if not isinstance(node, Mapping):
            raise SchemaError(f"Definition '{name}' must be an object.")
        return node

    def _reference_name(self, reference: Any, context: str) -> str:
        if not isinstance(reference, str) or not reference.strip():
            raise SchemaError(f"'$ref' in '{context}' must be a non-empty string.")
        for prefix in _REFERENCE_PREFIXES:
            if reference.startswith(prefix):
                name = reference[len(prefix) :]
                break
        else:
            name = reference.rstrip("/").rsplit("/", 1)[-1].rsplit("#", 1)[-1]
        if name not in self._nodes:
            raise UnresolvableReferenceError(reference, context)
        return name

    def _inherited_from(self, name: str, node: Mapping[str, Any]) -> list[str]:
        """Names whose field sets are needed to build `name`."""
        if _is_alias(node):
            return [self._reference_name(node["$ref"], name)]
        if any(key in node for key in ("anyOf", "oneOf")):
            return []
        return [
            self._reference_name(part["$ref"], name)
            for part in _merge_parts(name, node)
            if "$ref" in part
        ]

    def _build(self, name: str, node: Mapping[str, Any]) -> SchemaDefinition:
        if _is_alias(node):
            target_name = self._reference_name(node["$ref"], name)
            target = self._resolved[target_name]
            return SchemaDefinition(
                name=name,
                variant=target.variant,
                fields=target.fields,
                supertypes=(target_name,),
                discriminator=target.discriminator,
                members=target.members,
                scalar_kind=target.scalar_kind,
            )
        for key in ("anyOf", "oneOf"):
            if key in node:
                extra = sorted(set(node) & {"$ref", "allOf", "properties"})
                if extra:
                    raise UnsupportedCombinatorError(
                        f"'{key}' in '{name}' cannot be combined with {', '.join(extra)}."
                    )
                return self._build_union(name, key, node[key])
        if "allOf" in node or "$ref" in node:
            return self._build_merged(name, _merge_parts(name, node))
        if _is_object_node(node):
            fields = self._object_fields(name, node)
            return SchemaDefinition(
                name=name,
                variant=DefinitionVariant.OBJECT,
                fields=fields,
                discriminator=_discriminator(name, fields, _type_tag_constant(fields)),
            )
        scalar_kind = _scalar_kind(node)
        if scalar_kind is not None:
            return SchemaDefinition(
                name=name, variant=DefinitionVariant.SCALAR, scalar_kind=scalar_kind
            )
        raise SchemaError(f"Definition '{name}' has an unsupported shape.")

    def _build_merged(self, name: str, parts: Sequence[Mapping[str, Any]]) -> SchemaDefinition:
        """Merge own and inherited field sets in order, first definition wins."""
        merged: dict[str, FieldDescriptor] = {}
        supertypes: list[str] = []
        own_constant: str | None = None
        for part in parts:
            if "$ref" in part:
                parent_name = self._reference_name(part["$ref"], name)
                parent = self._resolved[parent_name]
                if parent.variant is not DefinitionVariant.OBJECT:
                    raise UnsupportedCombinatorError(
                        f"'{name}' inherits from '{parent_name}',"
                        " which is not an object definition."
                    )
                supertypes.append(parent_name)
                inherited = parent.fields
            else:
                inherited = self._object_fields(name, part)
                own_constant = own_constant or _type_tag_constant(inherited)
            for descriptor in inherited:
                merged.setdefault(descriptor.name, descriptor)
        fields = tuple(merged.values())
        return SchemaDefinition(
            name=name,
            variant=DefinitionVariant.OBJECT,
            fields=fields,
            supertypes=tuple(supertypes),
            discriminator=_discriminator(name, fields, own_constant),
        )

    def _build_union(self, name: str, key: str, members: Any) -> SchemaDefinition:
        if not isinstance(members, list) or not members:
            raise UnsupportedCombinatorError(f"'{key}' in '{name}' must be a non-empty list.")
        names: list[str] = []
        for member in members:
            if not isinstance(member, Mapping) or set(member) != {"$ref"}:
                raise UnsupportedCombinatorError(
                    f"'{key}' in '{name}' may only list '$ref' alternatives."
                )
            names.append(self._reference_name(member["$ref"], name))
        return SchemaDefinition(name=name, variant=DefinitionVariant.UNION, members=tuple(names))

    def _object_fields(self, owner: str, node: Mapping[str, Any]) -> tuple[FieldDescriptor, ...]:
        properties = node.get("properties", {})
        if not isinstance(properties, Mapping):
            raise SchemaError(f"'properties' of '{owner}' must be an object.")
        required = node.get("required", [])
        if not isinstance(required, list):
            raise SchemaError(f"'required' of '{owner}' must be a list.")
        return tuple(
            self._describe_property(owner, property_name, property_node, property_name in required)
            for property_name, property_node in properties.items()
        )

    def _describe_property(
        self, owner: str, name: str, node: Any, required: bool
    ) -> FieldDescriptor:
        context = f"{owner}.{name}"
        if not isinstance(node, Mapping):
            raise SchemaError(f"Property '{context}' must be an object.")
        nullable = not required

        for key in ("oneOf", "anyOf"):
            if key in node:
                options = node[key]
                if not isinstance(options, list):
                    raise UnsupportedCombinatorError(f"'{key}' of '{context}' must be a list.")
                non_null = [option for option in options if not _is_null_node(option)]
                if len(non_null) != 1 or len(non_null) == len(options):
                    raise UnsupportedCombinatorError(
                        f"Property '{context}' uses '{key}' with {len(options)} alternatives;"
                        " only one type plus null is supported."
                    )
                node = non_null[0]
                nullable = True
                break
        if "allOf" in node:
            members = node["allOf"]
            if not isinstance(members, list) or len(members) != 1:
                raise UnsupportedCombinatorError(
                    f"Property '{context}' may only use 'allOf' with a single member."
                )
            node = members[0]
        if not isinstance(node, Mapping):
            raise SchemaError(f"Property '{context}' must be an object.")

        if "$ref" in node:
            target = self._reference_name(node["$ref"], context)
            variant, scalar_kind = self._variant_of(target)
            if variant is DefinitionVariant.SCALAR and scalar_kind is not None:
                return FieldDescriptor(name=name, kind=scalar_kind, nullable=nullable)
            return FieldDescriptor(
                name=name, kind=FieldKind.REFERENCE, nullable=nullable, referenced_type=target
            )

        declared = node.get("type")
        declared_types = declared if isinstance(declared, list) else [declared]
        if "null" in declared_types:
            nullable = True
        types = [value for value in declared_types if value not in (None, "null")]
        if len(types) > 1:
            raise SchemaError(f"Property '{context}' declares more than one type: {types}.")

        constant = node.get("const") if isinstance(node.get("const"), str) else None
        if types:
            kind = _TYPE_KINDS.get(types[0])
            if kind is None:
                raise SchemaError(f"Property '{context}' has unknown type '{types[0]}'.")
            if kind is FieldKind.ARRAY:
                return self._describe_array(name, context, node, nullable)
            return FieldDescriptor(name=name, kind=kind, nullable=nullable, constant=constant)
        if "const" in node or "enum" in node:
            literals = [node["const"]] if "const" in node else node["enum"]
            return FieldDescriptor(
                name=name,
                kind=_literal_kind(literals, context),
                nullable=nullable,
                constant=constant,
            )
        raise SchemaError(f"Property '{context}' has no recognizable type.")

    def _describe_array(
        self, name: str, context: str, node: Mapping[str, Any], nullable: bool
    ) -> FieldDescriptor:
        items = node.get("items")
        if isinstance(items, Mapping) and "$ref" in items:
            target = self._reference_name(items["$ref"], context)
            variant, _ = self._variant_of(target)
            if variant is not DefinitionVariant.SCALAR:
                return FieldDescriptor(
                    name=name,
                    kind=FieldKind.REFERENCE,
                    nullable=nullable,
                    referenced_type=target,
                    many=True,
                )
        return FieldDescriptor(name=name, kind=FieldKind.ARRAY, nullable=nullable)

    def _variant_of(self, name: str) -> tuple[DefinitionVariant, FieldKind | None]:
        """Classify a definition without resolving its field set."""
        resolved = self._resolved.get(name)
        if resolved is not None:
            return resolved.variant, resolved.scalar_kind
        visited: list[str] = []
        current = name
        while True:
            if current in visited:
                raise CyclicInheritanceError([*visited[visited.index(current) :], current])
            visited.append(current)
            node = self._node(current)
            if _is_alias(node):
                current = self._reference_name(node["$ref"], current)
                continue
            if "anyOf" in node or "oneOf" in node:
                return DefinitionVariant.UNION, None
            if "allOf" in node or _is_object_node(node):
                return DefinitionVariant.OBJECT, None
            scalar_kind = _scalar_kind(node)
            if scalar_kind is not None:
                return DefinitionVariant.SCALAR, scalar_kind
            return DefinitionVariant.OBJECT, None


def _merge_parts(name: str, node: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    """Flatten a definition into object parts and `$ref` parts, in merge order.

    Own `properties` come before the `$ref` written beside them, followed by the
    `allOf` members in their listed order.
    """
    parts = _split_own_fields(node)
    if "allOf" not in node:
        return parts
    members = node["allOf"]
    if not isinstance(members, list) or not members:
        raise UnsupportedCombinatorError(f"'allOf' in '{name}' must be a non-empty list.")
    for member in members:
        if not isinstance(member, Mapping):
            raise UnsupportedCombinatorError(f"'allOf' members of '{name}' must be objects.")
        if any(key in member for key in _COMBINATOR_KEYS):
            raise UnsupportedCombinatorError(f"Nested combinators in '{name}' are not supported.")
        if "$ref" not in member and not _is_object_node(member):
            raise UnsupportedCombinatorError(f"Unsupported 'allOf' member in '{name}'.")
        parts.extend(_split_own_fields(member))
    return parts


def _split_own_fields(node: Mapping[str, Any]) -> list[Mapping[str, Any]]:
    parts: list[Mapping[str, Any]] = []
    if "properties" in node:
        parts.append({key: node[key] for key in ("properties", "required") if key in node})
    elif "$ref" not in node and "allOf" not in node and _is_object_node(node):
        parts.append(node)
    if "$ref" in node:
        parts.append({"$ref": node["$ref"]})
    return parts


def _is_alias(node: Mapping[str, Any]) -> bool:
    return "$ref" in node and not any(
        key in node for key in ("properties", *_COMBINATOR_KEYS)
    )


def _is_object_node(node: Mapping[str, Any]) -> bool:
    declared = node.get("type")
    declared_types = declared if isinstance(declared, list) else [declared]
    return "properties" in node or "object" in declared_types


def _is_null_node(node: Any) -> bool:
    return isinstance(node, Mapping) and node.get("type") == "null"


def _scalar_kind(node: Mapping[str, Any]) -> FieldKind | None:
    declared = node.get("type")
    if isinstance(declared, str) and declared in _SCALAR_TYPES:
        return _TYPE_KINDS[declared]
    if "enum" in node or "const" in node:
        literals = [node["const"]] if "const" in node else node["enum"]
        return _literal_kind(literals, "definition")
    return None


def _literal_kind(literals: Any, context: str) -> FieldKind:
    if not isinstance(literals, list) or not literals:
        raise SchemaError(f"'enum' of '{context}' must be a non-empty list.")
    if all(isinstance(value, str) for value in literals):
        return FieldKind.STRING
    if all(isinstance(value, bool) for value in literals):
        return FieldKind.BOOLEAN
    if all(isinstance(value, int) and not isinstance(value, bool) for value in literals):
        return FieldKind.INTEGER
    if all(isinstance(value, int | float) and not isinstance(value, bool) for value in literals):
        return FieldKind.NUMBER
    raise SchemaError(f"Literals of '{context}' mix incompatible types.")


def _type_tag_constant(fields: Sequence[FieldDescriptor]) -> str | None:
    for descriptor in fields:
        if descriptor.name == TYPE_TAG_PROPERTY and descriptor.constant is not None:
            return descriptor.constant
    return None


def _discriminator(
    name: str, fields: Sequence[FieldDescriptor], own_constant: str | None
) -> str | None:
    if own_constant is not None:
        return own_constant
    if any(descriptor.name == TYPE_TAG_PROPERTY for descriptor in fields):
        return name
    return None
