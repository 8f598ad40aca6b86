"""CodaMentor: sign-language concept graph built on NetworkX.

Concepts are nodes tagged with the topic they belong to; edges are
*prerequisite* relationships.  The session orchestrator uses the graph to
expand a topic into its concepts, in the order they should be taught.
"""

from __future__ import annotations

from typing import Any

import networkx as nx

from config import get_logger

logger = get_logger(__name__)


# Built-in curriculum: topic -> concepts in teaching order
DEFAULT_TOPICS: dict[str, tuple[str, ...]] = {
    "basic_greetings": ("hello", "goodbye", "thank_you", "please"),
    "numbers": ("counting_1_10", "tens", "hundreds"),
    "colors": ("primary_colors", "secondary_colors"),
    "family": ("family_members", "relationships"),
    "spatial_grammar": ("space_placement", "spatial_references"),
}


class ConceptGraph:
    """Directed acyclic graph of concepts grouped by topic.

    ``add_dependency(prereq, dependent)`` means *prereq* must be taught
    before *dependent*.
    """

    def __init__(self) -> None:
        self._graph: nx.DiGraph = nx.DiGraph()

    @classmethod
    def default(cls) -> ConceptGraph:
        """Return a graph pre-loaded with :data:`DEFAULT_TOPICS`."""
        graph = cls()
        for topic, concepts in DEFAULT_TOPICS.items():
            graph.add_topic(topic, concepts)
        return graph

    # ------------------------------------------------------------------
    # Mutators
    # ------------------------------------------------------------------
    def add_concept(self, concept_id: str, topic: str = "", **metadata: Any) -> None:
        """Add or update a concept node."""
        self._graph.add_node(concept_id, topic=topic, **metadata)
        logger.debug("add_concept  id=%s topic=%s", concept_id, topic)

    def add_dependency(self, prerequisite_id: str, dependent_id: str) -> None:
        """Declare that *prerequisite_id* must be taught before *dependent_id*.

        Raises ``ValueError`` if the edge would create a cycle.
        """
        for nid in (prerequisite_id, dependent_id):
            if nid not in self._graph:
                self.add_concept(nid)

        if nx.has_path(self._graph, dependent_id, prerequisite_id):
            raise ValueError(
                f"Adding edge {prerequisite_id} → {dependent_id} would create a cycle"
            )

        self._graph.add_edge(prerequisite_id, dependent_id)
        logger.debug("add_dependency %s → %s", prerequisite_id, dependent_id)

    def add_topic(self, topic: str, concepts: tuple[str, ...] | list[str]) -> None:
        """Register *concepts* under *topic*, chained in the given order."""
        previous: str | None = None
        for concept in concepts:
            self.add_concept(concept, topic=topic)
            if previous is not None:
                self.add_dependency(previous, concept)
            previous = concept

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def concepts_for(self, topic: str) -> list[str]:
        """Return the concepts of *topic* in prerequisite-first order.

        Unknown topics are taught as a single concept named after the topic.
        """
        members = [
            n for n in nx.topological_sort(self._graph)
            if self._graph.nodes[n].get("topic") == topic
        ]
        return members or [topic]

    def prerequisites(self, concept_id: str) -> list[str]:
        """Return every concept that must be taught before *concept_id*."""
        if concept_id not in self._graph:
            return []
        return sorted(nx.ancestors(self._graph, concept_id))

    @property
    def topics(self) -> list[str]:
        return sorted({
            attrs["topic"] for _, attrs in self._graph.nodes(data=True) if attrs.get("topic")
        })

    @property
    def num_concepts(self) -> int:
        return self._graph.number_of_nodes()

    @property
    def num_dependencies(self) -> int:
        return self._graph.number_of_edges()

    def __contains__(self, concept_id: str) -> bool:
        return concept_id in self._graph

    def __len__(self) -> int:
        return self.num_concepts

    def __repr__(self) -> str:
        return (
            f"ConceptGraph(topics={len(self.topics)}, concepts={self.num_concepts}, "
            f"dependencies={self.num_dependencies})"
        )
