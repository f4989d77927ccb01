"""
Force-directed layout for the keyword intent graph.

Nodes sharing an intent or a purchase stage are linked, placed on a seeded
ring, relaxed with repulsion and springs, then rescaled into [-1, 1].
"""

import logging
import math
from collections import OrderedDict
from dataclasses import asdict, dataclass
from typing import Dict, List, Mapping, Sequence, Union

logger = logging.getLogger(__name__)

INTENT_COLORS = (
    '#60a5fa',
    '#f472b6',
    '#facc15',
    '#34d399',
    '#c084fc',
    '#fb7185',
    '#38bdf8',
)

INTENT_EDGE_WEIGHT = 1.25
STAGE_EDGE_WEIGHT = 0.8

REPULSION_STRENGTH = 0.05
BASE_SPRING = 80
SPRING_STRENGTH = 0.1
DAMPING = 0.85

BASE_ITERATIONS = 120
ITERATIONS_PER_NODE = 12
MAX_ITERATIONS = 300

RNG_MODULUS = 233280
RNG_MULTIPLIER = 9301
RNG_INCREMENT = 49297


@dataclass(frozen=True)
class IntentGraphNode:
    id: str
    term: str
    intent: str
    persona: str
    purchase_stage: str
    score: float

    @classmethod
    def from_dict(cls, row):
        """Build a node from a JSON row (camelCase or snake_case stage key)."""
        stage = row.get('purchaseStage', row.get('purchase_stage', ''))
        return cls(
            id=str(row['id']),
            term=row.get('term', ''),
            intent=row.get('intent', ''),
            persona=row.get('persona', ''),
            purchase_stage=stage,
            score=row.get('score', 0),
        )

    def to_dict(self):
        return {
            'id': self.id,
            'term': self.term,
            'intent': self.intent,
            'persona': self.persona,
            'purchaseStage': self.purchase_stage,
            'score': self.score,
        }


@dataclass(frozen=True)
class IntentGraphEdge:
    source: str
    target: str
    weight: float
    reason: str

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class PositionedIntentNode(IntentGraphNode):
    x: float = 0.0
    y: float = 0.0
    color: str = INTENT_COLORS[0]

    def to_dict(self):
        data = super().to_dict()
        data.update({'x': self.x, 'y': self.y, 'color': self.color})
        return data


@dataclass(frozen=True)
class LegendEntry:
    intent: str
    color: str

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class IntentGraphLayout:
    nodes: List[PositionedIntentNode]
    edges: List[IntentGraphEdge]
    legend: List[LegendEntry]

    def to_dict(self):
        return {
            'nodes': [n.to_dict() for n in self.nodes],
            'edges': [e.to_dict() for e in self.edges],
            'legend': [entry.to_dict() for entry in self.legend],
        }


NodeInput = Union[IntentGraphNode, Mapping]


class SeededRandom:
    """Linear congruential generator seeded from a string.

    One instance per layout call; never shared between calls.
    """

    def __init__(self, seed: str):
        state = 0
        for char in seed:
            state = (state + ord(char) * 31) % RNG_MODULUS
        self.state = state

    def next(self) -> float:
        self.state = (self.state * RNG_MULTIPLIER + RNG_INCREMENT) % RNG_MODULUS
        return self.state / RNG_MODULUS


def _connect(group, reason, weight, edges):
    for i, source in enumerate(group):
        for target in group[i + 1:]:
            edges.append(IntentGraphEdge(
                source=source.id,
                target=target.id,
                weight=weight,
                reason=reason,
            ))


def build_edges(nodes: Sequence[IntentGraphNode]) -> List[IntentGraphEdge]:
    """Link every pair of nodes sharing a lowercased intent or purchase stage.

    Intent groups come first, then stage groups, each in order of first
    appearance. A pair sharing both gets two parallel edges.
    """
    by_intent = OrderedDict()
    by_stage = OrderedDict()

    for node in nodes:
        by_intent.setdefault(node.intent.lower(), []).append(node)
        by_stage.setdefault(node.purchase_stage.lower(), []).append(node)

    edges = []
    for intent, group in by_intent.items():
        if len(group) > 1:
            _connect(group, f"Shared intent: {intent}", INTENT_EDGE_WEIGHT, edges)

    for stage, group in by_stage.items():
        if len(group) > 1:
            _connect(group, f"Funnel stage: {stage}", STAGE_EDGE_WEIGHT, edges)

    return edges


def initial_positions(node_count: int) -> List[Dict[str, float]]:
    """Place nodes on a ring with seeded radius jitter.

    The seed depends on the node count only, so any two graphs of the same
    size start from the same coordinates.
    """
    random = SeededRandom(f"intent-graph-{node_count}")
    positions = []
    for index in range(node_count):
        angle = (index / node_count) * math.pi * 2
        radius = 0.5 + random.next() * 0.25
        positions.append({
            'x': math.cos(angle) * radius,
            'y': math.sin(angle) * radius,
        })
    return positions


def iteration_count(node_count: int) -> int:
    return min(MAX_ITERATIONS, BASE_ITERATIONS + node_count * ITERATIONS_PER_NODE)


def apply_repulsion(positions, forces, repulsion_strength=REPULSION_STRENGTH):
    for i in range(len(positions)):
        for j in range(i + 1, len(positions)):
            dx = positions[j]['x'] - positions[i]['x']
            dy = positions[j]['y'] - positions[i]['y']
            distance_sq = max(dx * dx + dy * dy, 0.01)
            force = repulsion_strength / distance_sq
            distance = math.sqrt(distance_sq)
            fx = (force * dx) / distance
            fy = (force * dy) / distance

            forces[i]['x'] -= fx
            forces[i]['y'] -= fy
            forces[j]['x'] += fx
            forces[j]['y'] += fy


def apply_edge_forces(positions, forces, edges, node_index,
                      base_spring=BASE_SPRING, spring_strength=SPRING_STRENGTH):
    for edge in edges:
        source = node_index.get(edge.source)
        target = node_index.get(edge.target)
        if source is None or target is None:
            continue

        dx = positions[target]['x'] - positions[source]['x']
        dy = positions[target]['y'] - positions[source]['y']
        distance = max(math.sqrt(dx * dx + dy * dy), 0.001)
        desired = base_spring / max(0.5, edge.weight)
        force = spring_strength * (distance - desired)
        fx = (force * dx) / distance
        fy = (force * dy) / distance

        forces[source]['x'] += fx
        forces[source]['y'] += fy
        forces[target]['x'] -= fx
        forces[target]['y'] -= fy


def simulate(positions, edges, node_index, iterations=None, damping=DAMPING):
    """Relax positions in place for a fixed number of steps.

    There is no convergence check and no centering force; normalization
    takes care of drift.
    """
    count = len(positions)
    if count == 0:
        return positions
    if iterations is None:
        iterations = iteration_count(count)

    velocities = [{'x': 0.0, 'y': 0.0} for _ in range(count)]
    forces = [{'x': 0.0, 'y': 0.0} for _ in range(count)]

    for _ in range(iterations):
        for force in forces:
            force['x'] = 0.0
            force['y'] = 0.0

        apply_repulsion(positions, forces)
        apply_edge_forces(positions, forces, edges, node_index)

        for i in range(count):
            velocities[i]['x'] = (velocities[i]['x'] + forces[i]['x']) * damping
            velocities[i]['y'] = (velocities[i]['y'] + forces[i]['y']) * damping

            positions[i]['x'] += velocities[i]['x']
            positions[i]['y'] += velocities[i]['y']

    logger.debug("Relaxed %d nodes over %d iterations", count, iterations)
    return positions


def normalize_positions(positions):
    """Rescale x and y independently into [-1, 1]."""
    if not positions:
        return []

    min_x = min(p['x'] for p in positions)
    max_x = max(p['x'] for p in positions)
    min_y = min(p['y'] for p in positions)
    max_y = max(p['y'] for p in positions)

    # spans under 1 are not stretched, which keeps a lone node finite
    width = max(max_x - min_x, 1)
    height = max(max_y - min_y, 1)

    return [
        {
            'x': ((p['x'] - min_x) / width) * 2 - 1,
            'y': ((p['y'] - min_y) / height) * 2 - 1,
        }
        for p in positions
    ]


def build_legend(nodes: Sequence[IntentGraphNode]) -> List[LegendEntry]:
    """One entry per distinct (case-sensitive) intent, palette cycled."""
    intents = OrderedDict()
    for node in nodes:
        intents.setdefault(node.intent, None)
    return [
        LegendEntry(intent=intent, color=INTENT_COLORS[index % len(INTENT_COLORS)])
        for index, intent in enumerate(intents)
    ]


def _coerce_nodes(nodes):
    return [n if isinstance(n, IntentGraphNode) else IntentGraphNode.from_dict(n) for n in nodes]


def compute_layout(nodes: Sequence[NodeInput]) -> IntentGraphLayout:
    """Lay out intent nodes for a force-directed graph view."""
    nodes = _coerce_nodes(nodes)
    if not nodes:
        return IntentGraphLayout(nodes=[], edges=[], legend=[])

    edges = build_edges(nodes)
    node_index = {node.id: index for index, node in enumerate(nodes)}
    logger.debug("Built %d edges for %d nodes", len(edges), len(nodes))

    positions = simulate(initial_positions(len(nodes)), edges, node_index)
    normalized = normalize_positions(positions)

    legend = build_legend(nodes)
    color_by_intent = {entry.intent: entry.color for entry in legend}

    positioned = [
        PositionedIntentNode(
            id=node.id,
            term=node.term,
            intent=node.intent,
            persona=node.persona,
            purchase_stage=node.purchase_stage,
            score=node.score,
            x=normalized[index]['x'],
            y=normalized[index]['y'],
            color=color_by_intent.get(node.intent, INTENT_COLORS[0]),
        )
        for index, node in enumerate(nodes)
    ]

    return IntentGraphLayout(nodes=positioned, edges=edges, legend=legend)
