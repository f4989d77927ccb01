#!/usr/bin/env python3
"""
Extract classified keyword nodes for the intent graph from MongoDB.
Falls back to a built-in synthetic keyword set when nothing usable is stored.
"""

import json
import logging
import math
import os
from collections import Counter

from pymongo import DESCENDING, MongoClient
from pymongo.errors import PyMongoError

from intent_classifier import classification_to_extras, classify_term
from intent_layout import IntentGraphNode

logger = logging.getLogger(__name__)

DEFAULT_MONGO_URI = 'mongodb://localhost:27017'
DEFAULT_DATABASE = 'lexyhub'
KEYWORD_PROJECTION = {'term': 1, 'source': 1, 'market': 1, 'extras': 1}

SYNTHETIC_KEYWORDS = [
    {'term': 'boho wall art ideas', 'intent': 'discovery', 'persona': 'trend researcher',
     'purchaseStage': 'awareness', 'confidence': 0.72},
    {'term': 'minimalist nursery inspiration', 'intent': 'discovery', 'persona': 'new parent',
     'purchaseStage': 'awareness', 'confidence': 0.68},
    {'term': 'buy personalized necklace', 'intent': 'purchase', 'persona': 'gift buyer',
     'purchaseStage': 'purchase', 'confidence': 0.81},
    {'term': 'custom pet portrait price', 'intent': 'purchase', 'persona': 'pet owner',
     'purchaseStage': 'purchase', 'confidence': 0.77},
    {'term': 'how to make soy candles', 'intent': 'education', 'persona': 'do-it-yourself maker',
     'purchaseStage': 'consideration', 'confidence': 0.64},
    {'term': 'macrame tutorial beginner', 'intent': 'education', 'persona': 'hobbyist',
     'purchaseStage': 'consideration', 'confidence': 0.6},
    {'term': 'wholesale beeswax wraps', 'intent': 'wholesale', 'persona': 'reseller',
     'purchaseStage': 'consideration', 'confidence': 0.58},
    {'term': 'best linen bedding brands', 'intent': 'research', 'persona': 'market analyst',
     'purchaseStage': 'consideration', 'confidence': 0.55},
    {'term': 'ceramic mug gift set', 'intent': 'gifting', 'persona': 'holiday shopper',
     'purchaseStage': 'purchase', 'confidence': 0.62},
    {'term': 'handmade soap subscription', 'intent': 'loyalty', 'persona': 'repeat customer',
     'purchaseStage': 'retention', 'confidence': 0.5},
]


def _finite_or(value, default):
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    return number if math.isfinite(number) else default


def _classification_of(row):
    extras = row.get('extras')
    if not isinstance(extras, dict):
        return None
    classification = extras.get('classification')
    return classification if isinstance(classification, dict) else None


def _first_present(*values):
    for value in values:
        if value is not None:
            return value
    return None


def _label(classification, key, default):
    value = classification.get(key)
    return default if value is None else str(value)


def nodes_from_keyword_rows(rows):
    """Turn stored keyword rows into graph nodes, skipping unclassified ones."""
    nodes = []
    for row in rows or []:
        classification = _classification_of(row)
        if classification is None:
            continue

        term = row.get('term', '')
        row_id = _first_present(row.get('_id'), row.get('id'), term)
        nodes.append(IntentGraphNode(
            id=str(row_id),
            term=term,
            intent=_label(classification, 'intent', 'unspecified'),
            persona=_label(classification, 'persona', 'unknown'),
            purchase_stage=_label(classification, 'purchaseStage', 'consideration'),
            score=_finite_or(classification.get('confidence', 0.4), 0.4),
        ))
    return nodes


def nodes_from_fallback(rows):
    return [
        IntentGraphNode(
            id=str(_first_present(row.get('id'), f"synthetic-{index}")),
            term=row['term'],
            intent=row['intent'],
            persona=row['persona'],
            purchase_stage=row['purchaseStage'],
            score=_finite_or(row.get('confidence'), 0.6),
        )
        for index, row in enumerate(rows)
    ]


def load_keyword_rows(collection, limit=150):
    cursor = collection.find({}, KEYWORD_PROJECTION).sort('updated_at', DESCENDING).limit(limit)
    return list(cursor)


def collect_intent_nodes(collection, limit=150):
    """Load nodes from storage, or the synthetic set when storage yields none.

    Returns (nodes, source, warnings).
    """
    warnings = []
    nodes = []

    if collection is None:
        warnings.append("MongoDB unavailable; using synthetic intent graph data.")
    else:
        try:
            nodes = nodes_from_keyword_rows(load_keyword_rows(collection, limit))
        except PyMongoError as e:
            logger.warning("Failed to load keywords for intent graph: %s", e)
            warnings.append(f"MongoDB intent data unavailable: {e}")

    if not nodes:
        return nodes_from_fallback(SYNTHETIC_KEYWORDS), 'synthetic', warnings
    return nodes, 'keywords', warnings


def classify_missing(collection, limit=40):
    """Store a rule-based classification on recent keywords that have none."""
    processed = []
    for row in load_keyword_rows(collection, limit):
        if _classification_of(row) is not None:
            continue

        classification = classify_term(row.get('term', ''))
        extras = dict(row['extras']) if isinstance(row.get('extras'), dict) else {}
        extras['classification'] = classification_to_extras(classification)

        try:
            collection.update_one({'_id': row['_id']}, {'$set': {'extras': extras}})
        except PyMongoError as e:
            logger.warning("Failed to update classification for %s: %s", row['_id'], e)
            continue

        processed.append({'id': str(row['_id']), 'intent': classification.intent})
    return processed


def export_to_json(nodes, source, warnings, output_path):
    """Export nodes for the layout step."""
    data = {
        'stats': {
            'nodes': len(nodes),
            'intents': len({n.intent for n in nodes}),
            'stages': len({n.purchase_stage for n in nodes}),
        },
        'source': source,
        'nodes': [n.to_dict() for n in nodes],
    }
    if warnings:
        data['warnings'] = list(warnings)

    with open(output_path, 'w', encoding='utf-8') as f:
        json.dump(data, f, indent=2)

    print(f"Saved to {output_path}")
    print(f"  Nodes: {data['stats']['nodes']}, Intents: {data['stats']['intents']}")


def main(argv=None):
    import argparse

    parser = argparse.ArgumentParser(description='Extract classified keyword nodes for the intent graph')
    parser.add_argument('--output', '-o', default='intent_nodes.json', help='Output filename')
    parser.add_argument('--mongo-uri', default=os.environ.get('MONGO_URI', DEFAULT_MONGO_URI),
                        help='MongoDB connection URI')
    parser.add_argument('--database', default=DEFAULT_DATABASE, help='Database holding the keywords collection')
    parser.add_argument('--limit', '-n', type=int, default=150, help='Most recent keywords to load')
    parser.add_argument('--classify-missing', action='store_true',
                        help='Store rule-based classifications on unclassified keywords first')
    parser.add_argument('--synthetic', action='store_true', help='Skip MongoDB and use synthetic keywords')

    args = parser.parse_args(argv)
    logging.basicConfig(level=logging.INFO)

    collection = None
    if not args.synthetic:
        client = MongoClient(args.mongo_uri)
        collection = client[args.database].keywords

        if args.classify_missing:
            print("Classifying keywords without a stored classification...")
            try:
                processed = classify_missing(collection)
            except PyMongoError as e:
                print(f"  Classification skipped: {e}")
            else:
                print(f"  Classified {len(processed)} keywords")

    nodes, source, warnings = collect_intent_nodes(collection, args.limit)
    for warning in warnings:
        print(f"Warning: {warning}")

    export_to_json(nodes, source, warnings, args.output)

    print("\n=== Summary ===")
    print(f"Source: {source}")
    intent_counts = Counter(n.intent for n in nodes)
    print("\nNodes per intent:")
    for intent, count in intent_counts.most_common():
        print(f"  {intent or '(empty)'}: {count}")


if __name__ == '__main__':
    main()
