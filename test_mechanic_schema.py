"""
Tests for the mechanic/condition schema and its JSON authoring format
"""

from mechanic_schema import (
    ApplicationTarget, Attribute, Condition, Effect, Entity, Mechanic, Operator, Phase,
    parse_mechanics,
)


def test_mechanic_from_dict():
    """Parse a conditional roll bonus record"""
    mechanic = Mechanic.from_dict({
        'entity': 'thisUnit',
        'effect': 'rollBonus',
        'attribute': 'h',
        'value': 1,
        'conditions': [{'entity': 'targetUnit', 'keywords': ['Infantry'], 'operator': 'includes'}],
        'phase': ['Shooting'],
    })

    assert mechanic.entity == Entity.THIS_UNIT
    assert mechanic.effect == Effect.ROLL_BONUS
    assert mechanic.attribute == Attribute.HIT
    assert mechanic.value == 1
    assert mechanic.phase == (Phase.SHOOTING,)
    assert mechanic.applies_to == ApplicationTarget.ATTACKS_MADE

    condition = mechanic.conditions[0]
    assert condition.entity == Entity.TARGET_UNIT
    assert condition.keywords == ('Infantry',)
    assert condition.operator == Operator.INCLUDES


def test_applies_to_attacks_against():
    mechanic = Mechanic.from_dict({
        'entity': 'thisUnit', 'effect': 'staticNumber', 'attribute': 'fnp',
        'value': 5, 'appliesTo': 'attacksAgainst',
    })
    assert mechanic.applies_to == ApplicationTarget.ATTACKS_AGAINST


def test_unknown_entity_or_effect_is_skipped():
    assert Mechanic.from_dict({'entity': 'everyone', 'effect': 'rollBonus'}) is None
    assert Mechanic.from_dict({'entity': 'thisUnit', 'effect': 'explodes'}) is None


def test_unparseable_condition_drops_mechanic():
    """A mechanic never applies more widely than it was written"""
    mechanic = Mechanic.from_dict({
        'entity': 'thisUnit', 'effect': 'rollBonus', 'attribute': 'w', 'value': 1,
        'conditions': [{'entity': 'nobody', 'state': 'isStationary'}],
    })
    assert mechanic is None


def test_unknown_attribute_degrades_to_absent():
    mechanic = Mechanic.from_dict({'entity': 'thisUnit', 'effect': 'rollBonus', 'attribute': 'luck', 'value': 1})
    assert mechanic is not None
    assert mechanic.attribute is None


def test_condition_state_list_takes_first():
    condition = Condition.from_dict({'entity': 'thisUnit', 'state': ['isStationary'], 'value': True})
    assert condition.state == 'isStationary'
    assert condition.operator == Operator.EQUALS


def test_with_value_copies():
    """Parameter substitution never edits the template"""
    template = Mechanic(entity=Entity.THIS_UNIT, effect=Effect.STATIC_NUMBER,
                        attribute=Attribute.FEEL_NO_PAIN, value="{parameter}")
    resolved = template.with_value(5)

    assert resolved.value == 5
    assert template.value == "{parameter}"
    assert resolved.attribute == template.attribute


def test_to_dict_matches_authoring_format():
    record = {
        'entity': 'thisUnit',
        'effect': 'reroll',
        'attribute': 'w',
        'value': 'ones',
        'conditions': [{'entity': 'thisUnit', 'operator': 'equals', 'state': 'isLeadingUnit', 'value': True}],
    }
    assert Mechanic.from_dict(record).to_dict() == record


def test_applies_in_phase():
    unrestricted = Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ROLL_BONUS)
    fight_only = Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ROLL_BONUS, phase=(Phase.FIGHT,))

    assert unrestricted.applies_in_phase(Phase.SHOOTING)
    assert fight_only.applies_in_phase(Phase.FIGHT)
    assert not fight_only.applies_in_phase(Phase.SHOOTING)


def test_parse_mechanics_skips_malformed():
    mechanics = parse_mechanics([
        {'entity': 'thisUnit', 'effect': 'addsAbility', 'abilities': 'LETHAL HITS'},
        {'entity': 'bogus', 'effect': 'rollBonus'},
    ])
    assert len(mechanics) == 1
    assert mechanics[0].abilities == ('LETHAL HITS',)
    assert parse_mechanics(None) == ()


def test_malformed_conditions_drop_mechanic():
    """Conditions authored as bare strings or as an object are not records"""
    bonus = {'entity': 'thisUnit', 'effect': 'rollBonus', 'attribute': 'h', 'value': 1}
    mechanics = parse_mechanics([
        dict(bonus, conditions=['isStationary']),
        dict(bonus, conditions={'entity': 'thisUnit', 'state': 'isStationary'}),
        'rollBonus',
        dict(bonus, attribute='w'),
    ])
    assert len(mechanics) == 1
    assert mechanics[0].attribute == Attribute.WOUND


def test_non_record_condition_is_skipped():
    assert Condition.from_dict('isStationary') is None
    assert Mechanic.from_dict(['thisUnit', 'rollBonus']) is None


def test_scalar_keywords_are_wrapped():
    mechanic = Mechanic.from_dict({'entity': 'targetUnit', 'effect': 'addsKeyword', 'keywords': 7})
    assert mechanic.keywords == ('7',)
