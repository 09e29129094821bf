"""Flashcard data models: categories, word pairs, snapshots, statistics."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Tuple, Union

from ..config import Config
from ..exceptions import ValidationError
from ..utils.parsing import TextParser
from ..utils.helpers import utc_now_iso

SNAPSHOT_VERSION = 1


@dataclass
class LanguagePair:
    """Display labels of the two sides of every card in a category."""

    lang1: str = Config.DEFAULT_LANG1
    lang2: str = Config.DEFAULT_LANG2

    def to_dict(self) -> Dict[str, str]:
        return {"lang1": self.lang1, "lang2": self.lang2}

    @classmethod
    def from_value(cls, value: Union["LanguagePair", Dict[str, Any], None]) -> "LanguagePair":
        """Accept a LanguagePair, a ``{"lang1", "lang2"}`` dict or None."""
        if isinstance(value, cls):
            return value
        if not value:
            return cls()
        return cls(
            lang1=TextParser.clean_term(value.get("lang1")) or Config.DEFAULT_LANG1,
            lang2=TextParser.clean_term(value.get("lang2")) or Config.DEFAULT_LANG2,
        )


@dataclass
class WordSide:
    """One language side of a word pair."""

    word: str
    pronunciation: str = ""

    def to_dict(self) -> Dict[str, str]:
        return {"word": self.word, "pronunciation": self.pronunciation}

    @classmethod
    def from_value(cls, value: Union["WordSide", Dict[str, Any], None]) -> "WordSide":
        if isinstance(value, cls):
            return cls(TextParser.clean_term(value.word), TextParser.clean_term(value.pronunciation))
        value = value or {}
        return cls(
            word=TextParser.clean_term(value.get("word")),
            pronunciation=TextParser.clean_term(value.get("pronunciation")),
        )


@dataclass
class Category:
    """A named grouping of word pairs.

    ``word_count`` is a cache of the number of word pairs referencing the
    category; stores recompute it, it is never the source of truth.
    """

    id: Any
    name: str
    description: str = ""
    language_pair: LanguagePair = field(default_factory=LanguagePair)
    created_at: str = ""
    updated_at: str = ""
    word_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "languagePair": self.language_pair.to_dict(),
            "createdAt": self.created_at,
            "updatedAt": self.updated_at,
            "wordCount": self.word_count,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Category":
        return cls(
            id=data.get("id"),
            name=data.get("name", ""),
            description=data.get("description") or "",
            language_pair=LanguagePair.from_value(data.get("languagePair")),
            created_at=data.get("createdAt") or "",
            updated_at=data.get("updatedAt") or "",
            word_count=int(data.get("wordCount") or 0),
        )


@dataclass
class WordPair:
    """One vocabulary item expressed in two language sides."""

    id: Any
    category_id: Any
    lang1: WordSide
    lang2: WordSide
    created_at: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "categoryId": self.category_id,
            "lang1": self.lang1.to_dict(),
            "lang2": self.lang2.to_dict(),
            "createdAt": self.created_at,
        }

    def sides_dict(self) -> Dict[str, Any]:
        """The store-independent part of the pair (used by snapshots and queue payloads)."""
        return {"lang1": self.lang1.to_dict(), "lang2": self.lang2.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WordPair":
        return cls(
            id=data.get("id"),
            category_id=data.get("categoryId"),
            lang1=WordSide.from_value(data.get("lang1")),
            lang2=WordSide.from_value(data.get("lang2")),
            created_at=data.get("createdAt") or "",
        )


@dataclass
class CategorySnapshot:
    """Portable export of one category and its word pairs."""

    name: str
    description: str = ""
    language_pair: LanguagePair = field(default_factory=LanguagePair)
    words: List[WordPair] = field(default_factory=list)
    exported_at: str = field(default_factory=utc_now_iso)
    version: int = SNAPSHOT_VERSION

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": {
                "name": self.name,
                "description": self.description,
                "languagePair": self.language_pair.to_dict(),
            },
            "words": [w.sides_dict() for w in self.words],
            "exportedAt": self.exported_at,
            "version": self.version,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CategorySnapshot":
        category = data.get("category") or {}
        return cls(
            name=category.get("name", ""),
            description=category.get("description") or "",
            language_pair=LanguagePair.from_value(category.get("languagePair")),
            words=[WordPair.from_dict(w) for w in data.get("words") or []],
            exported_at=data.get("exportedAt") or utc_now_iso(),
            version=int(data.get("version") or SNAPSHOT_VERSION),
        )

    @classmethod
    def coerce(cls, value: Union["CategorySnapshot", Dict[str, Any]]) -> "CategorySnapshot":
        return value if isinstance(value, cls) else cls.from_dict(value)


@dataclass
class CategoryStat:
    id: Any
    name: str
    word_count: int


@dataclass
class Statistics:
    """Totals across all categories of a store."""

    total_categories: int = 0
    total_words: int = 0
    categories: List[CategoryStat] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalCategories": self.total_categories,
            "totalWords": self.total_words,
            "categories": [
                {"id": c.id, "name": c.name, "wordCount": c.word_count}
                for c in self.categories
            ],
        }


# ==================== Validation helpers ====================

def clean_category_name(name: Any) -> str:
    """Trim a category name, rejecting an empty one."""
    cleaned = TextParser.clean_term(name)
    if not cleaned:
        raise ValidationError("Category name must not be empty")
    return cleaned


def build_sides(
    word1: Any,
    pronunciation1: Any,
    word2: Any,
    pronunciation2: Any,
) -> Tuple[WordSide, WordSide]:
    """
    Build both sides of a word pair, enforcing non-empty terms.

    Raises:
        ValidationError: If either side's term is empty after trimming
    """
    lang1 = WordSide(TextParser.clean_term(word1), TextParser.clean_term(pronunciation1))
    lang2 = WordSide(TextParser.clean_term(word2), TextParser.clean_term(pronunciation2))
    if not lang1.word or not lang2.word:
        raise ValidationError("Both sides of a word pair need a non-empty term")
    return lang1, lang2


def normalize_pairs(
    pairs: Iterable[Union[WordPair, Dict[str, Any]]],
) -> List[Tuple[WordSide, WordSide]]:
    """
    Validate a batch of word pairs before any of them is written.

    Accepts WordPair objects or ``{"lang1": {...}, "lang2": {...}}`` dicts.
    One invalid pair rejects the whole batch.
    """
    normalized = []
    for index, pair in enumerate(pairs):
        if isinstance(pair, WordPair):
            lang1, lang2 = pair.lang1, pair.lang2
        else:
            lang1 = WordSide.from_value(pair.get("lang1"))
            lang2 = WordSide.from_value(pair.get("lang2"))
        try:
            normalized.append(build_sides(lang1.word, lang1.pronunciation, lang2.word, lang2.pronunciation))
        except ValidationError as e:
            raise ValidationError(f"Word pair #{index + 1}: {e}") from e
    return normalized


def normalize_category_updates(updates: Dict[str, Any]) -> Dict[str, Any]:
    """
    Normalize a partial category update to wire naming.

    Recognised keys: ``name``, ``description``, ``languagePair`` (or
    ``language_pair``). Anything else is ignored.
    """
    normalized: Dict[str, Any] = {}
    if updates.get("name") is not None:
        normalized["name"] = clean_category_name(updates["name"])
    if updates.get("description") is not None:
        normalized["description"] = TextParser.clean_term(updates["description"])
    language_pair = updates.get("languagePair", updates.get("language_pair"))
    if language_pair is not None:
        normalized["languagePair"] = LanguagePair.from_value(language_pair).to_dict()
    return normalized

