"""
BattleScribe Roster Parser
Parses .ros (roster) JSON files exported from BattleScribe into the
records the combat adapters need: stats, weapons, abilities with
parameters, keywords and invulnerable saves
"""

import json
import re
from typing import Dict, List, Optional
from dataclasses import dataclass, field
from pathlib import Path


# "Feel No Pain 5+", "Deadly Demise D3", "Scouts 6\""
ABILITY_PARAMETER_PATTERN = re.compile(r'^(.*?)\s+(\d+\+|\d+"|\d*D\d+(?:\+\d+)?|\d+)$')
INVULN_PATTERN = re.compile(r'(\d)\+')
FACTION_PREFIX = 'Faction: '


@dataclass
class RosterWeapon:
    """A weapon in a roster unit"""
    name: str
    profile_type: str  # 'Ranged Weapons' or 'Melee Weapons'
    range: str
    attacks: str
    bs_ws: str  # BS for ranged, WS for melee
    strength: str
    ap: str
    damage: str
    keywords: List[str] = field(default_factory=list)

    @property
    def is_melee(self) -> bool:
        return self.profile_type == 'Melee Weapons'


@dataclass
class RosterAbility:
    """An ability on a roster unit"""
    name: str
    description: str
    ability_type: str  # 'Abilities', 'Rules', 'Core', 'Faction', etc.
    parameter: Optional[str] = None  # "5+" for "Feel No Pain 5+"


@dataclass
class RosterUnitProfile:
    """Unit stats profile"""
    name: str
    movement: str
    toughness: str
    save: str
    wounds: str
    leadership: str
    oc: str
    invuln_save: Optional[str] = None


@dataclass
class RosterUnit:
    """A complete unit from a roster"""
    id: str
    name: str
    type: str  # 'model', 'unit', 'upgrade'
    number: int  # Model count
    points: int

    # Stats, one per distinct model profile
    profiles: List[RosterUnitProfile] = field(default_factory=list)

    # Wargear
    ranged_weapons: List[RosterWeapon] = field(default_factory=list)
    melee_weapons: List[RosterWeapon] = field(default_factory=list)

    # Abilities
    abilities: List[RosterAbility] = field(default_factory=list)
    rules: List[RosterAbility] = field(default_factory=list)

    # Keywords
    keywords: List[str] = field(default_factory=list)
    faction_keywords: List[str] = field(default_factory=list)

    # Metadata
    is_character: bool = False
    is_leader: bool = False
    is_warlord: bool = False
    enhancement: Optional[str] = None
    invuln_save: Optional[str] = None  # "4+"

    @property
    def profile(self) -> Optional[RosterUnitProfile]:
        return self.profiles[0] if self.profiles else None


@dataclass
class Roster:
    """Complete army roster"""
    name: str = ""
    faction: str = ""
    detachment: str = ""
    points_total: int = 0
    points_limit: int = 2000
    units: List[RosterUnit] = field(default_factory=list)
    army_rules: List[RosterAbility] = field(default_factory=list)


def split_ability_parameter(name: str):
    """'Feel No Pain 5+' -> ('Feel No Pain', '5+'); names without a parameter pass through"""
    match = ABILITY_PARAMETER_PATTERN.match(name.strip())
    if match:
        return match.group(1).strip(), match.group(2).rstrip('"')
    return name.strip(), None


def _points(costs: List[Dict], default: int = 0) -> int:
    """The 'pts' entry of a BattleScribe cost list"""
    for cost in costs:
        if cost.get('name') == 'pts':
            return int(float(cost.get('value', default)))
    return default


def _characteristics(profile: Dict) -> Dict[str, str]:
    return {char.get('name'): char.get('$text', '')
            for char in profile.get('characteristics', [])}


class RosterParser:
    """Parse BattleScribe .ros JSON files"""

    def __init__(self):
        self.roster = Roster()

    def parse_file(self, file_path: str) -> Roster:
        """Parse a .ros JSON file"""
        with open(Path(file_path), 'r', encoding='utf-8') as f:
            data = json.load(f)

        return self.parse_json(data)

    def parse_json(self, data: Dict) -> Roster:
        """Parse roster JSON data"""
        roster_data = data.get('roster') if isinstance(data, dict) else None
        if not isinstance(roster_data, dict):
            raise ValueError("Not a BattleScribe roster: missing 'roster' object")

        self.roster.name = roster_data.get('name', '')
        self.roster.points_total = _points(roster_data.get('costs', []))
        self.roster.points_limit = _points(roster_data.get('costLimits', []), default=2000)

        for force in roster_data.get('forces', []):
            self._parse_force(force)

        return self.roster

    def _parse_force(self, force: Dict):
        """Parse a force (detachment) from the roster"""
        if not self.roster.faction:
            self.roster.faction = force.get('catalogueName', '')

        for rule in force.get('rules', []):
            self.roster.army_rules.append(RosterAbility(
                name=rule.get('name', ''),
                description=rule.get('description', ''),
                ability_type='Faction',
            ))

        for selection in force.get('selections', []):
            if selection.get('name') == 'Detachment':
                chosen = selection.get('selections', [])
                if chosen:
                    self.roster.detachment = chosen[0].get('name', '')

            elif selection.get('type') in ('model', 'unit'):
                self.roster.units.append(self._parse_unit(selection))

    def _parse_unit(self, selection: Dict) -> RosterUnit:
        """Parse a unit selection"""
        unit = RosterUnit(
            id=selection.get('id', ''),
            name=selection.get('name', ''),
            type=selection.get('type', ''),
            number=int(selection.get('number', 1)),
            points=_points(selection.get('costs', [])),
        )

        # "Faction: X" categories are faction keywords, the rest are unit keywords
        for category in selection.get('categories', []):
            keyword = category.get('name', '')
            if keyword.startswith(FACTION_PREFIX):
                unit.faction_keywords.append(keyword[len(FACTION_PREFIX):])
            else:
                unit.keywords.append(keyword)

        unit.is_character = 'Character' in unit.keywords

        self._parse_profiles(unit, selection.get('profiles', []))

        # Parse rules (core abilities and some faction rules live here in 10th edition exports)
        for rule in selection.get('rules', []):
            name, parameter = split_ability_parameter(rule.get('name', ''))
            unit.rules.append(RosterAbility(
                name=name,
                description=rule.get('description', ''),
                ability_type='Rules',
                parameter=parameter,
            ))

        # Sub-selections: models, wargear, warlord, enhancements
        for sub_sel in selection.get('selections', []):
            self._parse_subselection(unit, sub_sel)

        # Multi-model units list their models as sub-selections
        model_count = sum(int(s.get('number', 1)) for s in selection.get('selections', [])
                          if s.get('type') == 'model')
        if unit.type == 'unit' and model_count:
            unit.number = model_count

        if unit.invuln_save:
            for profile in unit.profiles:
                profile.invuln_save = profile.invuln_save or unit.invuln_save

        unit.is_leader = any(a.name.upper() == 'LEADER' for a in unit.abilities + unit.rules)
        return unit

    def _parse_profiles(self, unit: RosterUnit, profiles: List[Dict]):
        for profile in profiles:
            profile_type = profile.get('typeName', '')

            if profile_type == 'Unit':
                unit.profiles.append(self._parse_unit_profile(profile))

            elif profile_type in ('Ranged Weapons', 'Melee Weapons'):
                weapon = self._parse_weapon_profile(profile, profile_type)
                target = unit.ranged_weapons if profile_type == 'Ranged Weapons' else unit.melee_weapons
                if all(w.name != weapon.name for w in target):
                    target.append(weapon)

            elif profile_type == 'Abilities':
                ability = self._parse_ability_profile(profile)
                if ability.name.upper().startswith('INVULNERABLE SAVE'):
                    self._apply_invuln(unit, ability)
                else:
                    unit.abilities.append(ability)

    def _apply_invuln(self, unit: RosterUnit, ability: RosterAbility):
        match = INVULN_PATTERN.search(ability.parameter or ability.description)
        if not match:
            return
        value = f"{match.group(1)}+"
        unit.invuln_save = value
        unit.abilities.append(RosterAbility(
            name='Invulnerable Save', description=ability.description,
            ability_type='Core', parameter=value,
        ))

    def _parse_unit_profile(self, profile: Dict) -> RosterUnitProfile:
        """Parse unit stat profile"""
        chars = _characteristics(profile)

        return RosterUnitProfile(
            name=profile.get('name', ''),
            movement=chars.get('M', ''),
            toughness=chars.get('T', ''),
            save=chars.get('SV', ''),
            wounds=chars.get('W', ''),
            leadership=chars.get('LD', ''),
            oc=chars.get('OC', '')
        )

    def _parse_weapon_profile(self, profile: Dict, profile_type: str) -> RosterWeapon:
        """Parse weapon profile"""
        chars = _characteristics(profile)

        keywords_str = chars.get('Keywords', '')
        keywords = [k.strip() for k in keywords_str.split(',') if k.strip() and k.strip() != '-']

        return RosterWeapon(
            name=profile.get('name', ''),
            profile_type=profile_type,
            range=chars.get('Range', ''),
            attacks=chars.get('A', ''),
            bs_ws=chars.get('BS') or chars.get('WS', ''),
            strength=chars.get('S', ''),
            ap=chars.get('AP', ''),
            damage=chars.get('D', ''),
            keywords=keywords
        )

    def _parse_ability_profile(self, profile: Dict) -> RosterAbility:
        """Parse ability profile"""
        chars = _characteristics(profile)
        name, parameter = split_ability_parameter(profile.get('name', ''))

        return RosterAbility(
            name=name,
            description=chars.get('Description', ''),
            ability_type=profile.get('typeName', 'Abilities'),
            parameter=parameter,
        )

    def _parse_subselection(self, unit: RosterUnit, sub_sel: Dict):
        """Parse sub-selections (models, wargear, weapons, etc.)"""
        if sub_sel.get('name') == 'Warlord':
            unit.is_warlord = True
            return

        if any(c.get('name') == 'Enhancements' for c in sub_sel.get('categories', [])) \
                or sub_sel.get('group') == 'Enhancements':
            unit.enhancement = sub_sel.get('name', '')

        self._parse_profiles(unit, sub_sel.get('profiles', []))
        for nested in sub_sel.get('selections', []):
            self._parse_subselection(unit, nested)


def parse_roster(file_path: str) -> Roster:
    """Parse a roster file with a fresh parser"""
    return RosterParser().parse_file(file_path)


# Example usage
if __name__ == "__main__":
    import sys

    if len(sys.argv) < 2:
        print("Usage: python roster_parser.py <roster.ros>")
        sys.exit(1)

    roster = parse_roster(sys.argv[1])
    print(f"\n=== {roster.faction} - {roster.detachment or 'no detachment'} ===")
    print(f"{roster.points_total}/{roster.points_limit} pts, {len(roster.units)} units")
    if roster.army_rules:
        print(f"Army rules: {', '.join(r.name for r in roster.army_rules)}")

    for unit in roster.units:
        tags = [tag for tag, on in (('Warlord', unit.is_warlord), ('Leader', unit.is_leader)) if on]
        suffix = f" [{', '.join(tags)}]" if tags else ""
        print(f"\n{unit.name} x{unit.number}{suffix}")

        for profile in unit.profiles:
            invuln = f" / {profile.invuln_save}++" if profile.invuln_save else ""
            print(f"  {profile.name}: T{profile.toughness} Sv {profile.save}{invuln} W{profile.wounds}")

        for weapon in unit.ranged_weapons + unit.melee_weapons:
            attrs = f" [{', '.join(weapon.keywords)}]" if weapon.keywords else ""
            print(f"    {weapon.name}: {weapon.attacks} @ {weapon.bs_ws} "
                  f"S{weapon.strength} AP{weapon.ap} D{weapon.damage}{attrs}")

        parameterised = [f"{a.name} {a.parameter}" for a in unit.rules + unit.abilities if a.parameter]
        if parameterised:
            print(f"  Parameterised: {', '.join(parameterised)}")
        if unit.enhancement:
            print(f"  Enhancement: {unit.enhancement}")
