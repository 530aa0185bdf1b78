"""
Transitive closure over accepted matches.

Matches are edges in an undirected graph. Within every connected
component of three or more entities, pairs with no direct match get an
inferred, lower-confidence match that is only ever suggested for linking.
"""

import logging
from itertools import combinations
from typing import Optional

import networkx as nx

from entity_resolution.entities.schemas import (
    EntityMatch,
    MatchReason,
    MatchType,
    SuggestedAction,
)

logger = logging.getLogger(__name__)

TRANSITIVE_CONFIDENCE = 0.7


class TransitiveClosureResolver:
    """
    Infer A-C matches from A-B and B-C.

    Inferred matches always carry ``SuggestedAction.LINK`` so chains of
    pairwise matches never trigger an unreviewed merge.
    """

    def __init__(self, confidence: float = TRANSITIVE_CONFIDENCE):
        if not 0.0 <= confidence <= 1.0:
            raise ValueError("confidence must be between 0.0 and 1.0")
        self.confidence = confidence

    def build_graph(self, matches: list[EntityMatch]) -> nx.Graph:
        """Undirected match graph; edges carry the match's entity type."""
        graph = nx.Graph()
        for match in matches:
            graph.add_edge(
                match.entity1_id,
                match.entity2_id,
                entity_type=match.entity_type,
            )
        return graph

    def connected_components(self, matches: list[EntityMatch]) -> list[list[str]]:
        """Components with more than two members, nodes in insertion order."""
        graph = self.build_graph(matches)
        order = {node: index for index, node in enumerate(graph.nodes)}
        components = []
        for component in nx.connected_components(graph):
            if len(component) > 2:
                components.append(sorted(component, key=order.__getitem__))
        return components

    def apply(self, matches: list[EntityMatch]) -> list[EntityMatch]:
        """
        Extend ``matches`` in place with inferred matches.

        Returns only the newly inferred matches.
        """
        graph = self.build_graph(matches)
        order = {node: index for index, node in enumerate(graph.nodes)}
        existing = {match.pair_key for match in matches}
        inferred: list[EntityMatch] = []

        for component in nx.connected_components(graph):
            if len(component) <= 2:
                continue

            entity_type = self._component_type(graph, component)
            if entity_type is None:
                logger.warning(
                    f"Skipping mixed-type component of {len(component)} entities"
                )
                continue

            members = sorted(component, key=order.__getitem__)
            for id1, id2 in combinations(members, 2):
                if frozenset((id1, id2)) in existing:
                    continue
                inferred.append(self._inferred_match(id1, id2, entity_type))

        matches.extend(inferred)
        if inferred:
            logger.debug(f"Inferred {len(inferred)} transitive matches")
        return inferred

    def _component_type(self, graph: nx.Graph, component: set[str]) -> Optional[str]:
        types = {data["entity_type"] for _, _, data in graph.subgraph(component).edges(data=True)}
        return types.pop() if len(types) == 1 else None

    def _inferred_match(self, id1: str, id2: str, entity_type: str) -> EntityMatch:
        return EntityMatch(
            entity1_id=id1,
            entity2_id=id2,
            entity_type=entity_type,
            confidence=self.confidence,
            match_reasons=[
                MatchReason(
                    field="transitive",
                    type=MatchType.TRANSITIVE,
                    score=self.confidence,
                    details="Inferred through connected entities",
                )
            ],
            suggested_action=SuggestedAction.LINK,
        )
