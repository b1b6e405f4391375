import json

import pytest

from fulfillment_service.classifier import ClassifierRules, ListingClassifier, load_rules
from fulfillment_service.errors import ClassificationError, UnknownCodeType, UnknownGame
from fulfillment_service.models import Classification


def test_game_and_code_type_resolved(classifier):
    assert classifier.classify("Game1 Item32 Deluxe") == Classification(pool="Game1", sub_range="A:B")


def test_matching_is_case_insensitive(classifier):
    assert classifier.classify("GAME2 bundle ITEM99") == Classification(pool="Game2", sub_range="C:D")


def test_unknown_game(classifier):
    with pytest.raises(UnknownGame):
        classifier.classify("mystery item")


def test_unknown_code_type(classifier):
    with pytest.raises(UnknownCodeType):
        classifier.classify("Game1 starter pack")


def test_failures_share_a_base(classifier):
    with pytest.raises(ClassificationError):
        classifier.classify("Game1")


def test_ambiguous_title_uses_first_rule(classifier):
    assert classifier.classify("game2 game1 item32").pool == "Game1"


def test_rules_loaded_from_file(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({
        "games": [{"keyword": "space quest", "pool": "SpaceQuest"}],
        "code_types": [{"keyword": "gold", "sub_range": "E:F"}],
    }))

    classifier = ListingClassifier.from_file(str(path))

    assert classifier.classify("Space Quest 500 Gold") == Classification(pool="SpaceQuest", sub_range="E:F")
    with pytest.raises(UnknownGame):
        classifier.classify("Game1 Item32")


def test_invalid_rules_rejected(tmp_path):
    path = tmp_path / "rules.json"
    path.write_text(json.dumps({"games": [{"keyword": "x"}], "code_types": []}))
    with pytest.raises(ValueError):
        load_rules(str(path))


def test_rules_model_round_trip():
    rules = ClassifierRules(games=[{"keyword": "game9", "pool": "Game9"}], code_types=[{"keyword": "vip", "sub_range": "G:H"}])
    assert ListingClassifier(rules).classify("game9 vip") == Classification(pool="Game9", sub_range="G:H")
