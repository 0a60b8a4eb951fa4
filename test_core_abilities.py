"""
Tests for the core ability registry
"""

import json

import pytest

from core_abilities import (
    CoreAbilityRegistry, CoreAbilityType, get_default_registry, is_core_ability,
    parse_parameter_value, resolve_core_ability_mechanics,
)
from mechanic_schema import ApplicationTarget, Attribute, Effect


def test_parse_parameter_value():
    assert parse_parameter_value("5+") == 5
    assert parse_parameter_value("5") == 5
    assert parse_parameter_value(4) == 4
    assert parse_parameter_value("D3") == "D3"


def test_feel_no_pain_substitutes_parameter():
    mechanics = resolve_core_ability_mechanics("Feel No Pain", "5+")

    assert len(mechanics) == 1
    assert mechanics[0].effect == Effect.STATIC_NUMBER
    assert mechanics[0].attribute == Attribute.FEEL_NO_PAIN
    assert mechanics[0].value == 5
    assert mechanics[0].applies_to == ApplicationTarget.ATTACKS_AGAINST

    # Template is untouched
    template = get_default_registry().get("FEEL NO PAIN")
    assert template.mechanics[0].value == "{parameter}"


def test_parameterized_without_parameter_resolves_nothing():
    assert resolve_core_ability_mechanics("FEEL NO PAIN") == []


def test_stealth():
    mechanics = resolve_core_ability_mechanics("stealth")

    assert mechanics[0].effect == Effect.ROLL_PENALTY
    assert mechanics[0].attribute == Attribute.HIT
    assert mechanics[0].value == 1
    assert mechanics[0].applies_to == ApplicationTarget.ATTACKS_AGAINST


def test_unknown_and_mechanic_free_abilities():
    assert resolve_core_ability_mechanics("Made Up Ability") == []
    assert resolve_core_ability_mechanics("Deep Strike") == []
    assert is_core_ability("Deep Strike")
    assert not is_core_ability("Oath of Moment")


def test_ability_types():
    registry = get_default_registry()
    assert registry.get_ability_type("STEALTH") == CoreAbilityType.STATIC
    assert registry.get_ability_type("SUSTAINED HITS") == CoreAbilityType.PARAMETERIZED
    assert registry.get_ability_type("NOT A RULE") is None


def test_custom_registry_location(tmp_path):
    (tmp_path / "core_abilities.json").write_text(json.dumps({
        "abilities": {
            "Hard To Hit": {
                "type": "static",
                "mechanics": [{"entity": "thisUnit", "effect": "rollPenalty", "attribute": "h", "value": 1}],
            },
            "Broken": {"type": "mystery", "mechanics": []},
        }
    }))
    registry = CoreAbilityRegistry(base_path=tmp_path)

    assert registry.is_core_ability("HARD TO HIT")
    assert not registry.is_core_ability("BROKEN")
    assert resolve_core_ability_mechanics("Hard to Hit", registry=registry)[0].value == 1


def test_missing_registry_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        CoreAbilityRegistry(base_path=tmp_path)


def test_registry_without_abilities(tmp_path):
    (tmp_path / "core_abilities.json").write_text(json.dumps({"version": "10e"}))
    with pytest.raises(ValueError):
        CoreAbilityRegistry(base_path=tmp_path)


def test_malformed_entries_do_not_break_registry(tmp_path):
    (tmp_path / "core_abilities.json").write_text(json.dumps({
        "abilities": {
            "Hard To Hit": {
                "type": "static",
                "mechanics": [
                    {"entity": "thisUnit", "effect": "rollPenalty", "attribute": "h", "value": 1,
                     "conditions": ["isStationary"]},
                    {"entity": "thisUnit", "effect": "rollPenalty", "attribute": "w", "value": 1},
                ],
            },
            "Scrawled": "not an entry",
        }
    }))
    registry = CoreAbilityRegistry(base_path=tmp_path)

    assert not registry.is_core_ability("SCRAWLED")
    mechanics = resolve_core_ability_mechanics("Hard to Hit", registry=registry)
    assert [m.attribute for m in mechanics] == [Attribute.WOUND]
