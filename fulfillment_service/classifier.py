"""Maps a listing title to the code pool and sub-range it draws from.

The keyword table is data, not code: adding a game or a code type means
adding a rule to the JSON rules file.
"""

import json
import logging

from pydantic import BaseModel

from fulfillment_service.errors import UnknownCodeType, UnknownGame
from fulfillment_service.models import Classification

logger = logging.getLogger(__name__)


class KeywordRule(BaseModel):
    keyword: str

    def matches(self, title: str) -> bool:
        return self.keyword.lower() in title.lower()


class GameRule(KeywordRule):
    pool: str


class CodeTypeRule(KeywordRule):
    sub_range: str


class ClassifierRules(BaseModel):
    games: list[GameRule]
    code_types: list[CodeTypeRule]


def load_rules(path: str) -> ClassifierRules:
    with open(path, "r", encoding="utf-8") as handle:
        return ClassifierRules.model_validate(json.load(handle))


def _first_match(rules: list, title: str, label: str):
    matched = [rule for rule in rules if rule.matches(title)]
    if len(matched) > 1:
        logger.warning(
            "Title %r matches %d %s keywords, using %r",
            title, len(matched), label, matched[0].keyword,
        )
    return matched[0] if matched else None


class ListingClassifier:
    def __init__(self, rules: ClassifierRules):
        self.rules = rules

    @classmethod
    def from_file(cls, path: str) -> "ListingClassifier":
        return cls(load_rules(path))

    def classify(self, title: str) -> Classification:
        game = _first_match(self.rules.games, title, "game")
        if game is None:
            raise UnknownGame(f"Unknown game type in listing title: {title!r}")

        code_type = _first_match(self.rules.code_types, title, "code type")
        if code_type is None:
            raise UnknownCodeType(f"Unknown code type in listing title: {title!r}")

        return Classification(pool=game.pool, sub_range=code_type.sub_range)
