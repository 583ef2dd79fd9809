"""Utility functions for graph operations.

This module provides helper functions for building safe Cypher identifiers,
converting Neo4j result records into graph snapshots, and splitting work into
batches.
"""

from collections.abc import Iterable, Iterator, Mapping, Sequence
from itertools import islice
from typing import Any, TypeVar

from .models import GraphNode, GraphRelationship

T = TypeVar("T")


def quote_identifier(value: str) -> str:
    """Quote a string for use as a Cypher label or relationship type.

    Labels and types cannot be passed as query parameters, so they are
    wrapped in backticks with embedded backticks doubled.

    Args:
        value: The raw identifier.

    Returns:
        The backtick-quoted identifier.

    Raises:
        ValueError: If the identifier is empty.
    """
    if not value:
        raise ValueError("Cypher identifiers must not be empty")
    return "`" + value.replace("`", "``") + "`"


def labels_clause(labels: Sequence[str]) -> str:
    """Build a ``:A:B`` label clause from a list of labels.

    Duplicate labels are dropped while preserving order.
    """
    unique = list(dict.fromkeys(labels))
    return "".join(f":{quote_identifier(label)}" for label in unique)


def rel_type_clause(rel_type: str | None) -> str:
    """Build the ``:TYPE`` part of a relationship pattern, or nothing."""
    if rel_type is None:
        return ""
    return f":{quote_identifier(rel_type)}"


def clean_properties(properties: Mapping[str, Any] | None) -> dict[str, Any]:
    """Drop None values, which the graph does not store."""
    if not properties:
        return {}
    return {key: value for key, value in properties.items() if value is not None}


def to_native(value: Any) -> Any:
    """Convert Neo4j temporal values to their Python equivalents.

    ``neo4j.time.DateTime`` and friends expose ``to_native()``; lists are
    converted element-wise. Everything else is returned unchanged.
    """
    if isinstance(value, list):
        return [to_native(item) for item in value]
    to_native_fn = getattr(value, "to_native", None)
    if callable(to_native_fn):
        return to_native_fn()
    return value


def record_to_node(record: Mapping[str, Any]) -> GraphNode:
    """Convert a record with ``id``, ``labels`` and ``properties`` to a node.

    Args:
        record: A result record projected with the node columns.

    Returns:
        The node snapshot.
    """
    properties = record.get("properties") or {}
    return GraphNode(
        id=str(record["id"]),
        labels=frozenset(record.get("labels") or []),
        properties={key: to_native(value) for key, value in properties.items()},
    )


def record_to_relationship(record: Mapping[str, Any]) -> GraphRelationship:
    """Convert a record projected with the relationship columns."""
    properties = record.get("rel_properties") or {}
    return GraphRelationship(
        id=str(record["rel_id"]),
        type=record["rel_type"],
        start_id=str(record["start_id"]),
        end_id=str(record["end_id"]),
        properties={key: to_native(value) for key, value in properties.items()},
    )


def take(iterator: Iterator[T], batch_size: int) -> list[T]:
    """Drain up to ``batch_size`` items from an iterator."""
    return list(islice(iterator, batch_size))


def iter_batches(items: Iterable[T], batch_size: int) -> Iterator[list[T]]:
    """Yield successive batches of at most ``batch_size`` items, in order.

    Args:
        items: The items to split.
        batch_size: Maximum items per batch.

    Yields:
        Non-empty lists of items.
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be positive, got {batch_size}")
    iterator = iter(items)
    while batch := take(iterator, batch_size):
        yield batch
