"""
Tests for roster import: BattleScribe JSON -> roster records -> combat units
"""

import json

import pytest

from combat_context import AbilityType, CombatState, ModelInstance
from mechanic_schema import Attribute, Effect, Entity, Mechanic
from roster_parser import RosterParser, parse_roster, split_ability_parameter
from roster_to_combat import (
    attach_leader, convert_roster_force, convert_roster_to_combat_units, convert_roster_weapons,
    find_unit, leader_candidates, parse_dice_value, parse_range, parse_skill, parse_stat_value,
)


def characteristic(name, text):
    return {'name': name, '$text': text}


def unit_profile(name, m='6"', t='4', sv='3+', w='2', ld='6+', oc='2'):
    return {'name': name, 'typeName': 'Unit', 'characteristics': [
        characteristic('M', m), characteristic('T', t), characteristic('SV', sv),
        characteristic('W', w), characteristic('LD', ld), characteristic('OC', oc),
    ]}


def weapon_profile(name, type_name='Ranged Weapons', rng='24"', a='2', skill='3+', s='4', ap='-1', d='1',
                   keywords='-'):
    skill_name = 'BS' if type_name == 'Ranged Weapons' else 'WS'
    return {'name': name, 'typeName': type_name, 'characteristics': [
        characteristic('Range', rng), characteristic('A', a), characteristic(skill_name, skill),
        characteristic('S', s), characteristic('AP', ap), characteristic('D', d),
        characteristic('Keywords', keywords),
    ]}


def ability_profile(name, description=''):
    return {'name': name, 'typeName': 'Abilities', 'characteristics': [
        characteristic('Description', description)]}


ROSTER = {
    'roster': {
        'name': 'Strike Force',
        'costs': [{'name': 'pts', 'value': 1995.0}],
        'costLimits': [{'name': 'pts', 'value': 2000.0}],
        'forces': [{
            'catalogueName': 'Imperium - Space Marines',
            'rules': [{'name': 'Oath of Moment', 'description': 'Re-roll hits against one target.'}],
            'selections': [
                {'name': 'Detachment', 'selections': [{'name': 'Gladius Task Force'}]},
                {
                    'id': 'cap', 'name': 'Captain', 'type': 'model', 'number': 1,
                    'costs': [{'name': 'pts', 'value': 80.0}],
                    'categories': [{'name': 'Character'}, {'name': 'Infantry'},
                                   {'name': 'Faction: Adeptus Astartes'}],
                    'rules': [{'name': 'Leader'}, {'name': 'Deep Strike'}],
                    'profiles': [
                        unit_profile('Captain', w='5'),
                        ability_profile('Invulnerable Save', 'This model has a 4+ invulnerable save.'),
                        ability_profile('Rites of Battle'),
                    ],
                    'selections': [
                        {'name': 'Warlord'},
                        {'name': 'Artificer Armour', 'group': 'Enhancements'},
                        {'name': 'Master-crafted power weapon', 'profiles': [
                            weapon_profile('Master-crafted power weapon', 'Melee Weapons', rng='Melee',
                                           a='6', skill='2+', s='5', ap='-2', d='2'),
                        ]},
                    ],
                },
                {
                    'id': 'int', 'name': 'Intercessor Squad', 'type': 'unit', 'number': 1,
                    'categories': [{'name': 'Infantry'}, {'name': 'Battleline'}],
                    'rules': [{'name': 'Feel No Pain 6+'}, {'name': 'Oath of Moment'}],
                    'profiles': [unit_profile('Intercessor')],
                    'selections': [
                        {'name': 'Intercessor Sergeant', 'type': 'model', 'number': 1},
                        {'name': 'Intercessor', 'type': 'model', 'number': 4, 'profiles': [
                            weapon_profile('Bolt rifle', keywords='Assault, Heavy'),
                        ]},
                    ],
                },
            ],
        }],
    }
}


@pytest.fixture
def roster(tmp_path):
    path = tmp_path / 'strike_force.json'
    path.write_text(json.dumps(ROSTER))
    return parse_roster(str(path))


def test_roster_metadata(roster):
    assert roster.name == 'Strike Force'
    assert roster.faction == 'Imperium - Space Marines'
    assert roster.detachment == 'Gladius Task Force'
    assert roster.points_total == 1995
    assert [r.name for r in roster.army_rules] == ['Oath of Moment']


def test_non_roster_is_rejected():
    with pytest.raises(ValueError):
        RosterParser().parse_json({'catalogue': {}})
    with pytest.raises(ValueError):
        RosterParser().parse_json([])


def test_split_ability_parameter():
    assert split_ability_parameter('Feel No Pain 5+') == ('Feel No Pain', '5+')
    assert split_ability_parameter('Deadly Demise D3') == ('Deadly Demise', 'D3')
    assert split_ability_parameter('Scouts 6"') == ('Scouts', '6')
    assert split_ability_parameter('Deep Strike') == ('Deep Strike', None)


def test_character_parsing(roster):
    captain = roster.units[0]

    assert captain.is_character
    assert captain.is_leader
    assert captain.is_warlord
    assert captain.enhancement == 'Artificer Armour'
    assert captain.faction_keywords == ['Adeptus Astartes']
    assert captain.invuln_save == '4+'
    assert captain.profile.invuln_save == '4+'
    assert captain.melee_weapons[0].name == 'Master-crafted power weapon'
    assert 'Invulnerable Save' in [a.name for a in captain.abilities]


def test_model_count_from_subselections(roster):
    squad = roster.units[1]
    assert squad.number == 5
    assert squad.rules[0].name == 'Feel No Pain'
    assert squad.rules[0].parameter == '6+'
    assert squad.ranged_weapons[0].keywords == ['Assault', 'Heavy']


def test_stat_parsers():
    assert parse_stat_value('3+') == 3
    assert parse_stat_value('6"') == 6
    assert parse_stat_value('-', default=4) == 4
    assert parse_dice_value('D6+1') == 'D6+1'
    assert parse_dice_value('2') == 2
    assert parse_skill('2+') == 2
    assert parse_skill('N/A') == 'N/A'
    assert parse_range('Melee') == 'Melee'
    assert parse_range('24"') == 24


def test_convert_units(roster):
    library = {'RITES OF BATTLE': (Mechanic(entity=Entity.THIS_UNIT, effect=Effect.REROLL,
                                            attribute=Attribute.HIT, value='ones'),)}
    units = convert_roster_to_combat_units(roster, library)
    captain = find_unit(units, 'Captain')
    squad = find_unit(units, 'Intercessor Squad')

    assert captain.models[0].invuln_save == 4
    assert captain.models[0].wounds == 5
    assert 'ADEPTUS ASTARTES' in [k.upper() for k in captain.keywords]
    assert captain.enhancement.name == 'Artificer Armour'
    assert captain.enhancement.bearer_name == 'Captain'

    abilities = {a.name: a for a in captain.abilities}
    assert abilities['Deep Strike'].type == AbilityType.CORE
    assert abilities['Invulnerable Save'].type == AbilityType.CORE
    assert abilities['Invulnerable Save'].parameter == '4+'
    assert abilities['Rites of Battle'].type == AbilityType.DATASHEET
    assert abilities['Rites of Battle'].mechanics == library['RITES OF BATTLE']

    assert squad.combat_state == CombatState(model_count=5)
    assert len(squad.model_instances) == 5
    assert squad.model_instances[0] == ModelInstance('int-0', 'Intercessor Squad')


def test_unit_rule_outside_core_uses_library(roster):
    oath = (Mechanic(entity=Entity.THIS_UNIT, effect=Effect.REROLL, attribute=Attribute.WOUND, value='all'),)
    squad = find_unit(convert_roster_to_combat_units(roster, {'OATH OF MOMENT': oath}), 'Intercessor Squad')

    abilities = {a.name: a for a in squad.abilities}
    assert abilities['Oath of Moment'].type == AbilityType.DATASHEET
    assert abilities['Oath of Moment'].mechanics == oath
    assert abilities['Feel No Pain'].type == AbilityType.CORE
    assert abilities['Feel No Pain'].mechanics == ()


def test_convert_weapons(roster):
    weapons = convert_roster_weapons(roster.units[0])
    sword = weapons[0]

    assert sword.is_melee
    assert sword.range == 'Melee'
    assert sword.bs_ws == 2
    assert sword.ap == -2

    bolt_rifle = convert_roster_weapons(roster.units[1])[0]
    assert bolt_rifle.attributes == ('ASSAULT', 'HEAVY')
    assert not bolt_rifle.is_melee


def test_convert_force(roster):
    force = convert_roster_force(roster)
    assert force.faction_name == 'Imperium - Space Marines'
    assert force.detachment_name == 'Gladius Task Force'
    assert [a.name for a in force.faction_abilities] == ['Oath of Moment']


def test_attach_leader(roster):
    units = convert_roster_to_combat_units(roster)
    captain = find_unit(units, 'Captain')
    squad = find_unit(units, 'Intercessor Squad')

    led = attach_leader(squad, captain)

    assert led.name == 'Captain + Intercessor Squad'
    assert led.id == squad.id
    assert led.combat_state.model_count == 6
    assert len(led.model_instances) == 6
    assert [su.name for su in led.leaders] == ['Captain']
    assert led.leaders[0].abilities == captain.abilities
    assert led.enhancement.bearer_name == 'Captain'
    assert 'Character' in led.keywords
    assert led.keywords.count('Infantry') == 1


def test_leader_candidates(roster):
    units = convert_roster_to_combat_units(roster)
    captain = find_unit(units, 'Captain')
    squad = find_unit(units, 'Intercessor Squad')

    assert leader_candidates(units, squad) == [captain]
    assert leader_candidates(units, captain) == []
