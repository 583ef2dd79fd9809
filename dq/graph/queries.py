"""Cypher query templates for graph operations.

This module contains the Cypher statements the Neo4j backend issues for each
storage primitive. Property values are always passed as parameters (prefixed
with $). Labels and relationship types cannot be parameterized in Cypher, so
those templates carry ``{labels}``, ``{label}`` or ``{rel_type}`` placeholders
that must only be filled with identifiers produced by ``quote_identifier``.
"""

from dataclasses import dataclass

# Columns every node-returning query projects
_NODE_COLUMNS = "elementId(n) AS id, labels(n) AS labels, properties(n) AS properties"

# Columns every relationship-returning query projects
_REL_COLUMNS = (
    "elementId(r) AS rel_id, type(r) AS rel_type, "
    "elementId(startNode(r)) AS start_id, elementId(endNode(r)) AS end_id, "
    "properties(r) AS rel_properties"
)


@dataclass(frozen=True)
class CypherQueries:
    """Collection of Cypher query templates.

    All queries use parameterized values (prefixed with $) for safety.
    Never concatenate user input directly into queries.
    """

    # ==========================================================================
    # Creation Queries
    # ==========================================================================

    CREATE_NODE = f"""
        CREATE (n{{labels}})
        SET n = $properties
        RETURN {_NODE_COLUMNS}
    """

    CREATE_RELATIONSHIP = f"""
        MATCH (a), (b)
        WHERE elementId(a) = $start_id AND elementId(b) = $end_id
        CREATE (a)-[r:{{rel_type}}]->(b)
        SET r = $properties
        RETURN {_REL_COLUMNS}
    """

    # ==========================================================================
    # Lookup Queries
    # ==========================================================================

    # LIMIT 2 is enough to tell "one" from "more than one"
    FIND_NODE_BY_PROPERTY = f"""
        MATCH (n:{{label}})
        WHERE n[$key] = $value
        RETURN {_NODE_COLUMNS}
        LIMIT 2
    """

    FIND_NODES_BY_PROPERTY = f"""
        MATCH (n:{{label}})
        WHERE n[$key] = $value
        RETURN {_NODE_COLUMNS}
    """

    FIND_NODES_BY_LABEL = f"""
        MATCH (n:{{label}})
        RETURN {_NODE_COLUMNS}
    """

    GET_NODE_BY_ELEMENT_ID = f"""
        MATCH (n)
        WHERE elementId(n) = $id
        RETURN {_NODE_COLUMNS}
    """

    GET_NODE_BY_NUMERIC_ID = f"""
        MATCH (n)
        WHERE id(n) = $id
        RETURN {_NODE_COLUMNS}
    """

    # ==========================================================================
    # Traversal Queries
    # ==========================================================================

    TRAVERSE_OUTGOING = f"""
        MATCH (s)-[r{{rel_type}}]->(n)
        WHERE elementId(s) = $id
        RETURN {_REL_COLUMNS}, {_NODE_COLUMNS}
    """

    TRAVERSE_INCOMING = f"""
        MATCH (s)<-[r{{rel_type}}]-(n)
        WHERE elementId(s) = $id
        RETURN {_REL_COLUMNS}, {_NODE_COLUMNS}
    """

    TRAVERSE_BOTH = f"""
        MATCH (s)-[r{{rel_type}}]-(n)
        WHERE elementId(s) = $id
        RETURN {_REL_COLUMNS}, {_NODE_COLUMNS}
    """

    # ==========================================================================
    # Deletion Queries
    # ==========================================================================

    DELETE_RELATIONSHIP = """
        MATCH ()-[r]->()
        WHERE elementId(r) = $id
        DELETE r
    """

    DELETE_NODE = """
        MATCH (n)
        WHERE elementId(n) = $id
        DELETE n
    """

    DETACH_DELETE_NODE = """
        MATCH (n)
        WHERE elementId(n) = $id
        DETACH DELETE n
    """

    # ==========================================================================
    # Schema Queries
    # ==========================================================================

    CREATE_CLASS_INDEX = """
        CREATE INDEX dq_class_label IF NOT EXISTS FOR (c:DQ_Class) ON (c.class)
    """

    CREATE_CLASS_UNIQUE_CONSTRAINT = """
        CREATE CONSTRAINT dq_class_label_unique IF NOT EXISTS
        FOR (c:DQ_Class) REQUIRE c.class IS UNIQUE
    """

    DROP_CLASS_INDEX = """
        DROP INDEX dq_class_label IF EXISTS
    """


# Singleton instance for easy access
QUERIES = CypherQueries()
