"""
Standards Catalog
=================

Keyed lookup of curriculum standards by ``state|subject|gradeBand``, keyword
suggestion against a teacher's topics, selection helpers, and import/export
of the transportable standards document.

The catalog itself is kept as the plain keyed JSON document
(``{"Colorado|Social Studies|6-8": [{code, text, tags}, ...]}``) so it can be
persisted and backed up verbatim; ``StandardEntry`` is the parsed view.
"""
import copy
import json
import logging
import re
from dataclasses import dataclass
from functools import lru_cache

from ..config import (
    DEFAULT_JURISDICTION,
    SEED_STANDARDS_FILE,
    SUBJECT_ALIASES,
    config,
)

logger = logging.getLogger(__name__)

LABEL_SEPARATOR = " — "
KEY_SEPARATOR = "|"
ROW_KEY_FIELDS = ("state", "subject", "gradeBand")


class StandardsImportError(ValueError):
    """The standards document could not be read."""


@dataclass(frozen=True)
class StandardEntry:
    code: str
    text: str
    tags: frozenset = frozenset()

    @property
    def label(self):
        return f"{self.code}{LABEL_SEPARATOR}{self.text}"

    @classmethod
    def from_dict(cls, data):
        if not isinstance(data, dict):
            raise StandardsImportError(f"Standard entry must be an object, got {type(data).__name__}")
        code = data.get("code")
        if not isinstance(code, str) or not code.strip():
            raise StandardsImportError("Standard entry is missing a code")
        text = data.get("text", "")
        if not isinstance(text, str):
            raise StandardsImportError(f"Standard {code} has non-text description")
        tags = data.get("tags")
        if tags is None:
            tags = []
        if not isinstance(tags, list) or not all(isinstance(t, str) for t in tags):
            raise StandardsImportError(f"Standard {code} tags must be a list of strings")
        return cls(code=code.strip(), text=text.strip(), tags=frozenset(t.lower() for t in tags))


def catalog_key(state, subject, grade_band):
    """Composite key for one jurisdiction / subject / grade band pool."""
    subject = SUBJECT_ALIASES.get(subject, subject)
    return KEY_SEPARATOR.join([state or "", subject or "", grade_band or ""])


def parse_catalog(document):
    """Validate a keyed standards document into ``{key: [StandardEntry]}``."""
    if not isinstance(document, dict):
        raise StandardsImportError("Standards catalog must be an object keyed by state|subject|gradeBand")
    catalog = {}
    for key, entries in document.items():
        if not isinstance(entries, list):
            raise StandardsImportError(f"Catalog entry {key!r} must be a list of standards")
        catalog[str(key)] = [StandardEntry.from_dict(e) for e in entries]
    return catalog


@lru_cache(maxsize=1)
def _seed_document(path):
    with open(path, 'r', encoding='utf-8') as f:
        return json.load(f)


def load_seed_catalog(path=SEED_STANDARDS_FILE):
    """Built-in sample pools used when nothing was imported for a key."""
    return parse_catalog(_seed_document(str(path)))


def resolve_pool(standards_db, state, subject, grade_band, seed=None):
    """Imported pool for the exact key, else the seed pool, else empty."""
    key = catalog_key(state, subject, grade_band)
    if standards_db and key in standards_db:
        return parse_catalog({key: standards_db[key]})[key]
    seed = load_seed_catalog() if seed is None else seed
    return list(seed.get(key, []))


def keywords_from_text(text, min_length=None, limit=None):
    """Lowercased alphabetic runs of at least ``min_length`` letters, in order."""
    min_length = min_length or config.keyword_min_length
    words = re.findall(r"[a-z]{%d,}" % min_length, (text or "").lower())
    return words[:limit] if limit is not None else words


def build_corpus(project):
    """Topics and notes of every form, joined for keyword extraction."""
    parts = [project.daily.topic, project.daily.notes,
             project.weekly.topic, project.weekly.notes]
    for day in project.weekly.days:
        parts.extend([day.topic, day.notes])
    parts.extend([project.unit.title, project.unit.notes])
    for week in project.unit.pacing_weeks:
        parts.extend([week.title, week.notes])
    return "\n\n".join(p for p in parts if p)


def suggest(state, subject, grade_band, corpus="", search_term="", standards_db=None, seed=None):
    """Suggest ``"code — text"`` labels for a teacher's topics and search.

    An empty search keeps the whole pool. Otherwise an entry matches when
    its text contains the search term or one of its tags is a keyword of the
    corpus or search term. When nothing matches, the first
    ``suggestion_fallback_limit`` pool entries are returned instead.
    """
    pool = resolve_pool(standards_db, state, subject, grade_band, seed=seed)
    term = (search_term or "").strip()
    keywords = set(keywords_from_text(corpus, limit=config.max_corpus_keywords))
    keywords.update(keywords_from_text(term))

    hits = []
    for entry in pool:
        if not term or term.lower() in entry.text.lower() or entry.tags & keywords:
            hits.append(entry.label)

    if not hits:
        hits = [e.label for e in pool[:config.suggestion_fallback_limit]]
    return hits


# ══════════════════════════════════════════════════════════════
# SELECTION
# ══════════════════════════════════════════════════════════════

def standard_code(label):
    """Code part of a ``"code — text"`` label (the whole label if no text)."""
    return (label or "").split(LABEL_SEPARATOR, 1)[0].strip()


def unique_by_code(selected):
    seen = set()
    result = []
    for label in selected:
        code = standard_code(label)
        if code and code not in seen:
            seen.add(code)
            result.append(label)
    return result


def add_standard(selected, label):
    """Append ``label`` unless its code is already selected."""
    label = (label or "").strip()
    if not label or standard_code(label) in {standard_code(s) for s in selected}:
        return list(selected)
    return [*selected, label]


def remove_standard(selected, label):
    code = standard_code(label)
    return [s for s in selected if standard_code(s) != code]


def add_custom_standard(selected, text):
    return add_standard(selected, (text or "").strip())


def clear_standards(selected):
    return []


# ══════════════════════════════════════════════════════════════
# IMPORT / EXPORT
# ══════════════════════════════════════════════════════════════

def _group_rows(rows):
    grouped = {}
    for i, row in enumerate(rows):
        if not isinstance(row, dict):
            raise StandardsImportError(f"Row {i + 1} is not an object")
        key = catalog_key(row.get("state") or DEFAULT_JURISDICTION, row.get("subject"), row.get("gradeBand"))
        StandardEntry.from_dict(row)
        entry = {k: v for k, v in row.items() if k not in ROW_KEY_FIELDS}
        grouped.setdefault(key, []).append(entry)
    return grouped


def import_standards(raw):
    """Parse an uploaded standards document into a replacement catalog.

    Accepts the keyed object form or a flat list of rows carrying their own
    ``state``, ``subject`` and ``gradeBand``. Returns the keyed JSON document;
    nothing is stored here, so a failure leaves the current catalog untouched.
    A keyed document is kept exactly as uploaded once it validates.
    """
    data = raw
    if isinstance(raw, bytes):
        raw = raw.decode('utf-8-sig', errors='replace')
    if isinstance(raw, str):
        try:
            data = json.loads(raw or "{}")
        except json.JSONDecodeError as e:
            raise StandardsImportError(f"Could not read standards JSON: {e}") from e

    if isinstance(data, list):
        document = _group_rows(data)
    elif isinstance(data, dict):
        parse_catalog(data)
        document = copy.deepcopy(data)
    else:
        raise StandardsImportError("Standards JSON must be an object or a list of rows")

    logger.info("Imported %d standards across %d pools", count_standards(document), len(document))
    return document


def export_standards(standards_db):
    """Full keyed catalog as pretty-printed JSON."""
    return json.dumps(standards_db or {}, indent=2, ensure_ascii=False)


def count_standards(standards_db):
    return sum(len(entries or []) for entries in (standards_db or {}).values())
