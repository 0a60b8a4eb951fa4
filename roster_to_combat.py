"""
Converter: BattleScribe Roster → Combat Context
Converts parsed roster units into the immutable units, profiles and forces
the combat engine resolves
"""

from dataclasses import replace
from typing import Dict, List, Optional, Sequence, Tuple, Union

from combat_context import (
    Ability, AbilityType, CombatState, CombatUnit, Enhancement, FactionAbility, Force,
    ModelInstance, ModelProfile, SourceUnit, WeaponProfile,
)
from core_abilities import is_core_ability
from mechanic_schema import Mechanic
from roster_parser import Roster, RosterAbility, RosterUnit, RosterWeapon

# Authored mechanics keyed by uppercased ability / enhancement / rule name
MechanicLibrary = Dict[str, Tuple[Mechanic, ...]]


def parse_stat_value(value: str, default: int = 0) -> int:
    """Parse stat value from string (handles '-', 'N/A', '3+', '4++')"""
    value = value.strip().upper()

    if value in ['-', 'N/A', '']:
        return default

    # Handle values like "3+", "2+", "4++"
    value = value.replace('+', '').replace('"', '')

    try:
        return int(value)
    except ValueError:
        return default


def parse_dice_value(value: str, default: int = 1) -> Union[int, str]:
    """Fixed numbers become ints, dice expressions ('D6', '2D6+3') stay strings"""
    value = value.strip().upper()
    if not value or value in ['-', 'N/A']:
        return default
    if value.isdigit():
        return int(value)
    return value


def parse_skill(value: str) -> Union[int, str]:
    """BS/WS '3+' -> 3; 'N/A' (TORRENT weapons) is kept as a token"""
    value = value.strip().upper()
    stripped = value.replace('+', '')
    if stripped.isdigit():
        return int(stripped)
    return value or 'N/A'


def parse_range(range_str: str) -> Union[int, str]:
    """Parse weapon range (handles 'Melee', '24"', etc.)"""
    range_str = range_str.strip()

    if range_str.upper() == 'MELEE':
        return 'Melee'

    # Extract number
    try:
        return int(''.join(c for c in range_str if c.isdigit()))
    except ValueError:
        return 0


def _lookup(library: Optional[MechanicLibrary], name: str) -> Tuple[Mechanic, ...]:
    if not library:
        return ()
    return tuple(library.get(name.upper(), ()))


def convert_roster_weapon(weapon: RosterWeapon) -> WeaponProfile:
    """Convert RosterWeapon to WeaponProfile"""
    return WeaponProfile(
        name=weapon.name,
        range=parse_range(weapon.range),
        attacks=parse_dice_value(weapon.attacks),
        bs_ws=parse_skill(weapon.bs_ws),
        strength=parse_stat_value(weapon.strength, default=4),
        ap=parse_stat_value(weapon.ap, default=0),
        damage=parse_dice_value(weapon.damage),
        attributes=tuple(k.upper() for k in weapon.keywords),
        is_melee=weapon.is_melee,
    )


def convert_roster_ability(ability: RosterAbility,
                           library: Optional[MechanicLibrary] = None) -> Ability:
    """Core rules resolve through the registry, everything else through the library"""
    if is_core_ability(ability.name):
        ability_type = AbilityType.CORE
    elif ability.ability_type == 'Faction':
        ability_type = AbilityType.FACTION
    else:
        ability_type = AbilityType.DATASHEET

    return Ability(
        name=ability.name,
        type=ability_type,
        parameter=ability.parameter,
        mechanics=() if ability_type == AbilityType.CORE else _lookup(library, ability.name),
        description=ability.description,
    )


def convert_model_profiles(roster_unit: RosterUnit) -> Tuple[ModelProfile, ...]:
    profiles = []
    for profile in roster_unit.profiles:
        invuln = profile.invuln_save or roster_unit.invuln_save
        profiles.append(ModelProfile(
            name=profile.name,
            movement=parse_stat_value(profile.movement, default=6),
            toughness=parse_stat_value(profile.toughness, default=4),
            save=parse_stat_value(profile.save, default=5),
            wounds=parse_stat_value(profile.wounds, default=1),
            leadership=parse_stat_value(profile.leadership, default=7),
            oc=parse_stat_value(profile.oc, default=1),
            invuln_save=parse_stat_value(invuln) if invuln else None,
        ))

    if not profiles:
        # Default stats for units without profile
        profiles.append(ModelProfile(name=roster_unit.name, movement=6, toughness=4, save=5,
                                     wounds=1, leadership=7, oc=1))
    return tuple(profiles)


def convert_roster_unit(roster_unit: RosterUnit,
                        library: Optional[MechanicLibrary] = None) -> CombatUnit:
    """Convert RosterUnit to CombatUnit with a fresh combat state"""
    abilities = tuple(convert_roster_ability(a, library)
                      for a in roster_unit.rules + roster_unit.abilities)

    enhancement = None
    if roster_unit.enhancement:
        enhancement = Enhancement(
            name=roster_unit.enhancement,
            mechanics=_lookup(library, roster_unit.enhancement),
            bearer_name=roster_unit.name,
        )

    model_instances = tuple(
        ModelInstance(instance_id=f"{roster_unit.id}-{i}", source_unit_name=roster_unit.name)
        for i in range(roster_unit.number)
    )

    return CombatUnit(
        id=roster_unit.id,
        name=roster_unit.name,
        keywords=tuple(roster_unit.keywords + roster_unit.faction_keywords),
        abilities=abilities,
        models=convert_model_profiles(roster_unit),
        model_instances=model_instances,
        source_units=(SourceUnit(name=roster_unit.name, is_leader=False),),
        enhancement=enhancement,
        combat_state=CombatState(model_count=roster_unit.number),
    )


def convert_roster_weapons(roster_unit: RosterUnit) -> List[WeaponProfile]:
    return [convert_roster_weapon(w) for w in roster_unit.ranged_weapons + roster_unit.melee_weapons]


def convert_roster_force(roster: Roster, library: Optional[MechanicLibrary] = None) -> Force:
    """Army-level rules of a roster"""
    return Force(
        name=roster.name,
        faction_name=roster.faction,
        faction_abilities=tuple(
            FactionAbility(name=rule.name, mechanics=_lookup(library, rule.name))
            for rule in roster.army_rules
        ),
        detachment_name=roster.detachment,
    )


def attach_leader(bodyguard: CombatUnit, leader: CombatUnit) -> CombatUnit:
    """
    Merge a leader into a bodyguard unit.

    The leader's abilities move onto its SourceUnit so they are attributed
    to the leader and stop applying once its models are dead.
    """
    keywords = list(bodyguard.keywords)
    keywords.extend(k for k in leader.keywords if k not in keywords)

    enhancement = leader.enhancement
    if enhancement is not None:
        enhancement = replace(enhancement, bearer_name=leader.name)

    state = bodyguard.combat_state or CombatState()
    leader_models = len(leader.model_instances) or 1

    return replace(
        bodyguard,
        name=f"{leader.name} + {bodyguard.name}",
        keywords=tuple(keywords),
        models=bodyguard.models + leader.models,
        model_instances=bodyguard.model_instances + leader.model_instances,
        source_units=(
            SourceUnit(name=leader.name, is_leader=True, abilities=leader.abilities),
            SourceUnit(name=bodyguard.name, is_leader=False),
        ),
        enhancement=enhancement or bodyguard.enhancement,
        combat_state=replace(state, model_count=state.model_count + leader_models),
    )


def convert_roster_to_combat_units(roster: Roster,
                                   library: Optional[MechanicLibrary] = None) -> List[CombatUnit]:
    """
    Convert entire roster to list of combat units

    Args:
        roster: Parsed roster
        library: Optional authored mechanics keyed by uppercased name

    Returns:
        List of CombatUnit objects ready for a CombatContext
    """
    combat_units = []

    for roster_unit in roster.units:
        # Skip configuration/upgrades
        if roster_unit.type in ['upgrade', 'rule']:
            continue

        combat_units.append(convert_roster_unit(roster_unit, library))

    return combat_units


def find_unit(units: Sequence[CombatUnit], name: str) -> Optional[CombatUnit]:
    return next((u for u in units if u.name == name), None)


def leader_candidates(units: Sequence[CombatUnit], bodyguard: CombatUnit) -> List[CombatUnit]:
    """Other units with the Leader ability that could join the bodyguard"""
    return [u for u in units
            if u.id != bodyguard.id and any(a.name.upper() == 'LEADER' for a in u.abilities)]


# Example usage
if __name__ == "__main__":
    import sys
    from roster_parser import parse_roster

    if len(sys.argv) > 1:
        roster = parse_roster(sys.argv[1])
        combat_units = convert_roster_to_combat_units(roster)
        roster_units = {u.id: u for u in roster.units}

        print(f"\n=== Converted {len(combat_units)} units for combat ===\n")

        for unit in combat_units:
            print(f"{unit.name}")
            for model in unit.models:
                invuln = f" INV:{model.invuln_save}+" if model.invuln_save else ""
                print(f"  {model.name}: M:{model.movement}\" T:{model.toughness} "
                      f"SV:{model.save}+{invuln} W:{model.wounds}")

            weapons = convert_roster_weapons(roster_units[unit.id])
            if weapons:
                print(f"  Weapons: {', '.join(w.name for w in weapons)}")
            core = [a.name for a in unit.abilities if a.type == AbilityType.CORE]
            if core:
                print(f"  Core: {', '.join(core)}")

            print()
    else:
        print("Usage: python roster_to_combat.py <roster.ros>")
