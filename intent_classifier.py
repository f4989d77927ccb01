"""
Rule-based keyword intent classifier.

Deterministic fallback used when no model classification is available for a
keyword. Cue phrases are matched on whole tokens from spaCy's tokenizer, not
as raw substrings: "buyer" or "sales" do not trigger the purchase rule, so
common inflections ("buying", "prices") are listed as cues of their own.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

import spacy
from spacy.matcher import PhraseMatcher

logger = logging.getLogger(__name__)

FALLBACK_MODEL = 'deterministic-fallback'

# Tokenizer only, no trained pipeline needed
nlp = spacy.blank('en')


@dataclass(frozen=True)
class IntentClassification:
    intent: str
    purchase_stage: str
    persona: str
    summary: str
    confidence: float
    model: str = FALLBACK_MODEL


# Ordered: the first rule with a matching cue wins
RULES = [
    (
        'DISCOVERY',
        ['ideas', 'idea', 'inspiration'],
        IntentClassification(
            intent='discovery',
            purchase_stage='awareness',
            persona='trend researcher',
            summary='User is exploring inspiration and gathering ideas before shortlisting products.',
            confidence=0.45,
        ),
    ),
    (
        'PURCHASE',
        ['buy', 'buying', 'for sale', 'price', 'prices', 'cheap'],
        IntentClassification(
            intent='purchase',
            purchase_stage='purchase',
            persona='ready-to-buy shopper',
            summary='Clear purchase language indicates transactional intent.',
            confidence=0.55,
        ),
    ),
    (
        'EDUCATION',
        ['how to', 'tutorial', 'diy'],
        IntentClassification(
            intent='education',
            purchase_stage='consideration',
            persona='do-it-yourself maker',
            summary='The user is looking to learn how to create or evaluate a product.',
            confidence=0.48,
        ),
    ),
    (
        'WHOLESALE',
        ['wholesale', 'bulk'],
        IntentClassification(
            intent='wholesale',
            purchase_stage='consideration',
            persona='reseller',
            summary='Wholesale intent suggests B2B persona evaluating supply.',
            confidence=0.5,
        ),
    ),
]

DEFAULT_CLASSIFICATION = IntentClassification(
    intent='research',
    purchase_stage='consideration',
    persona='market analyst',
    summary='Default classification when intent is ambiguous; assume comparative research.',
    confidence=0.35,
)


def _build_matcher():
    matcher = PhraseMatcher(nlp.vocab, attr='LOWER')
    for label, cues, _ in RULES:
        matcher.add(label, [nlp.make_doc(cue) for cue in cues])
    return matcher


matcher = _build_matcher()


def matched_rules(term):
    """Return the set of rule labels whose cues occur in the term."""
    doc = nlp.make_doc(term)
    return {nlp.vocab.strings[match_id] for match_id, _, _ in matcher(doc)}


def classify_term(term):
    labels = matched_rules(term)
    for label, _, classification in RULES:
        if label in labels:
            logger.debug("Classified %r as %s", term, classification.intent)
            return classification
    return DEFAULT_CLASSIFICATION


def classification_to_extras(classification, updated_at=None):
    """Shape a classification the way it is stored under extras.classification."""
    if updated_at is None:
        updated_at = datetime.now(timezone.utc)
    return {
        'intent': classification.intent,
        'purchaseStage': classification.purchase_stage,
        'persona': classification.persona,
        'summary': classification.summary,
        'confidence': classification.confidence,
        'model': classification.model,
        'updatedAt': updated_at.isoformat(),
    }
