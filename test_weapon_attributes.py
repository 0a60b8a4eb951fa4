"""
Tests for weapon keyword translation
"""

from effect_source import EffectSourceType
from mechanic_schema import Attribute, Effect, Entity, RerollType
from modifier_result import SpecialEffectType
from weapon_attributes import extract_weapon_mechanics, parse_weapon_attribute


def test_heavy():
    """HEAVY gives +1 to hit when stationary"""
    result = parse_weapon_attribute('Heavy', 'Lascannon')

    assert result.mechanic.effect == Effect.ROLL_BONUS
    assert result.mechanic.attribute == Attribute.HIT
    assert result.mechanic.value == 1
    assert result.mechanic.conditions[0].state == 'isStationary'
    assert result.special_effect.type == SpecialEffectType.HEAVY
    assert result.special_effect.source.type == EffectSourceType.WEAPON_ATTRIBUTE
    assert result.special_effect.source.label == 'HEAVY'


def test_torrent_auto_hits():
    result = parse_weapon_attribute('TORRENT', 'Flamer')
    assert result.mechanic.effect == Effect.AUTO_SUCCESS
    assert result.mechanic.attribute == Attribute.HIT
    assert result.special_effect.type == SpecialEffectType.TORRENT


def test_numeric_payloads():
    rapid_fire = parse_weapon_attribute('RAPID FIRE 2', 'Bolter')
    assert rapid_fire.mechanic.attribute == Attribute.ATTACKS
    assert rapid_fire.mechanic.value == 2
    assert rapid_fire.mechanic.conditions[0].state == 'inHalfRange'
    assert rapid_fire.mechanic.conditions[0].entity == Entity.TARGET_UNIT

    melta = parse_weapon_attribute('MELTA D3', 'Multi-melta')
    assert melta.mechanic.attribute == Attribute.DAMAGE
    assert melta.mechanic.value == 'D3'

    sustained = parse_weapon_attribute('SUSTAINED HITS 2', 'Heavy bolter')
    assert sustained.mechanic.effect == Effect.ADDS_ABILITY
    assert sustained.special_effect.value == 2


def test_anti_keyword():
    result = parse_weapon_attribute('ANTI-INFANTRY 4+', 'Plasma')

    assert result.mechanic.abilities == ('ANTI-INFANTRY',)
    assert result.mechanic.value == 4
    assert result.mechanic.conditions[0].keywords == ('INFANTRY',)
    assert result.special_effect.type == SpecialEffectType.ANTI_KEYWORD
    assert result.special_effect.value == 'INFANTRY 4+'


def test_multi_word_anti_keyword():
    result = parse_weapon_attribute('ANTI-CHAOS SPACE MARINES 3+', 'Blade')
    assert result.special_effect.value == 'CHAOS SPACE MARINES 3+'


def test_ignores_cover_and_twin_linked():
    ignores = parse_weapon_attribute('IGNORES COVER', 'Sniper rifle')
    assert ignores.mechanic.effect == Effect.IGNORE_MODIFIER
    assert ignores.mechanic.attribute == Attribute.SAVE
    assert ignores.mechanic.value == 'cover'

    twin = parse_weapon_attribute('TWIN-LINKED', 'Twin bolter')
    assert twin.mechanic.effect == Effect.REROLL
    assert twin.mechanic.attribute == Attribute.WOUND
    assert twin.mechanic.value == RerollType.ALL.value
    assert twin.special_effect is None


def test_tag_only_attributes():
    for attr, effect_type in [('ASSAULT', SpecialEffectType.ASSAULT),
                              ('BLAST', SpecialEffectType.BLAST),
                              ('PRECISION', SpecialEffectType.PRECISION),
                              ('HAZARDOUS', SpecialEffectType.HAZARDOUS),
                              ('INDIRECT FIRE', SpecialEffectType.INDIRECT)]:
        result = parse_weapon_attribute(attr, 'Weapon')
        assert result.mechanic is None
        assert result.special_effect.type == effect_type


def test_unknown_attribute_is_ignored():
    result = parse_weapon_attribute('PISTOL', 'Bolt pistol')
    assert result.mechanic is None
    assert result.special_effect is None


def test_extract_weapon_mechanics():
    mechanics, effects = extract_weapon_mechanics(['Heavy', 'BLAST', 'PISTOL', 'LETHAL HITS'], 'Launcher')

    assert [source.attribute for _, source in mechanics] == ['HEAVY', 'LETHAL HITS']
    assert all(source.type == EffectSourceType.WEAPON_ATTRIBUTE for _, source in mechanics)
    assert mechanics[0][1].name == 'Launcher'
    assert [e.type for e in effects] == [SpecialEffectType.HEAVY, SpecialEffectType.BLAST,
                                         SpecialEffectType.LETHAL_HITS]
