"""
Tests for the tabular resolution report
"""

import math

import pytest

from combat_context import (
    Ability, AbilityType, CombatState, CombatUnit, ModelProfile, WeaponProfile, build_combat_context,
)
from combat_engine import AUTO, resolve_combat
from mechanic_schema import Phase
from resolution_report import modifier_table, pass_probability, summary_table, unsaved_wound_probability


def make_resolution(attributes=(), defender_abilities=(), in_cover=False):
    attacker = CombatUnit(id="a", name="Hellblasters", keywords=("Infantry",),
                          models=(ModelProfile("Hellblaster", 6, 4, 3, 2, 6, 1),),
                          combat_state=CombatState())
    defender = CombatUnit(id="d", name="Boyz", keywords=("Infantry", "Orks"), abilities=tuple(defender_abilities),
                          combat_state=CombatState(is_in_cover=in_cover))
    context = build_combat_context(
        Phase.SHOOTING, attacker,
        WeaponProfile("Plasma incinerator", 24, 2, 3, 7, -2, 1, tuple(attributes)),
        defender, ModelProfile("Boy", 6, 5, 5, 1, 7, 2),
    )
    return resolve_combat(context)


def test_pass_probability():
    assert pass_probability(4) == pytest.approx(0.5)
    assert pass_probability(2) == pytest.approx(5 / 6)
    assert pass_probability(1) == pytest.approx(5 / 6)
    assert pass_probability(7) == 0.0
    assert pass_probability(AUTO) == 1.0
    assert math.isnan(pass_probability(None))
    assert math.isnan(pass_probability('N/A'))


def test_summary_table():
    table = summary_table(make_resolution())

    assert list(table['Step']) == ['Hit', 'Wound', 'Save', 'Feel No Pain']
    hit = table.iloc[0]
    assert hit['Base'] == '3+'
    assert hit['Final'] == '3+'
    assert hit['Pass Chance'] == pytest.approx(4 / 6)
    assert table.iloc[1]['Notes'] == 'S7 vs T5, crit 6+'
    assert table.iloc[2]['Final'] == '7+'
    assert table.iloc[3]['Final'] == '-'


def test_modifier_table_lists_attributed_modifiers():
    stealth = Ability("Stealth", type=AbilityType.CORE)
    table = modifier_table(make_resolution(defender_abilities=[stealth], in_cover=True))

    rows = table.to_dict('records')
    assert {'Step': 'Hit', 'Type': 'Penalty', 'Source': 'Stealth', 'Value': 1, 'Leader': ''} in rows
    assert {'Step': 'Save', 'Type': 'Bonus', 'Source': 'Cover', 'Value': 1, 'Leader': ''} in rows


def test_empty_modifier_table_keeps_columns():
    table = modifier_table(make_resolution())
    assert table.empty
    assert list(table.columns) == ['Step', 'Type', 'Source', 'Value', 'Leader']


def test_unsaved_wound_probability():
    # Hit 3+, wound 3+, save 7+
    assert unsaved_wound_probability(make_resolution()) == pytest.approx((4 / 6) * (4 / 6))
    # Torrent auto-hits
    assert unsaved_wound_probability(make_resolution(['TORRENT'])) == pytest.approx(4 / 6)
