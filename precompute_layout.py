#!/usr/bin/env python3
"""
Pre-compute the intent graph layout from an extracted nodes file.
"""

import json
import logging
import math
from datetime import datetime, timezone

from intent_layout import IntentGraphNode, compute_layout

# Larger single groups make the fixed-step simulation overflow
DEFAULT_MAX_NODES = 20


def load_nodes(filepath):
    """Read nodes from a bare list or an object with a 'nodes' list.

    Returns (nodes, source, warnings).
    """
    print(f"Loading {filepath}...")
    with open(filepath, 'r', encoding='utf-8') as f:
        data = json.load(f)

    if isinstance(data, list):
        rows, source, warnings = data, 'file', []
    elif isinstance(data, dict) and isinstance(data.get('nodes'), list):
        rows = data['nodes']
        source = data.get('source', 'file')
        warnings = list(data.get('warnings', []))
    else:
        raise ValueError(f"{filepath}: expected a list of nodes or an object with a 'nodes' list")

    return [IntentGraphNode.from_dict(row) for row in rows], source, warnings


def _finite_or_none(value):
    return value if math.isfinite(value) else None


def build_payload(layout, source, warnings, generated_at=None):
    """Renderer payload; non-finite coordinates become null with a warning."""
    if generated_at is None:
        generated_at = datetime.now(timezone.utc)

    data = layout.to_dict()
    warnings = list(warnings)
    unplaced = 0
    for node in data['nodes']:
        x, y = _finite_or_none(node['x']), _finite_or_none(node['y'])
        if x is None or y is None:
            unplaced += 1
        node['x'], node['y'] = x, y
    if unplaced:
        warnings.append(f"Layout diverged; {unplaced} nodes have no coordinates.")

    payload = {'generatedAt': generated_at.isoformat(), 'source': source}
    payload.update(data)
    if warnings:
        payload['warnings'] = warnings
    return payload


def save_layout(payload, output_path):
    """Save the positioned graph for the renderer."""
    print(f"Saving to {output_path}...")
    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(payload, f, allow_nan=False)

    print("Done!")


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description='Pre-compute the intent graph layout')
    parser.add_argument('input', nargs='?', default='intent_nodes.json', help='Nodes file from extract_intent_nodes')
    parser.add_argument('--output', '-o', default='intent_graph_layout.json', help='Output filename')
    parser.add_argument('--max-nodes', type=int, default=DEFAULT_MAX_NODES,
                        help='Only lay out the first N nodes (0 for no cap)')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    nodes, source, warnings = load_nodes(args.input)
    if args.max_nodes > 0 and len(nodes) > args.max_nodes:
        print(f"Capping {len(nodes)} nodes to {args.max_nodes}...")
        nodes = nodes[:args.max_nodes]

    print(f"Computing layout for {len(nodes)} nodes...")
    layout = compute_layout(nodes)
    print(f"With {len(layout.edges)} edges and {len(layout.legend)} legend entries")

    save_layout(build_payload(layout, source, warnings), args.output)

    print(f"\nPre-computed positions for {len(layout.nodes)} nodes")
    print(f"Output: {args.output}")


if __name__ == '__main__':
    main()
