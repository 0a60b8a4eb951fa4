"""
Ability Mechanics Extractor
Pairs the mechanics of a unit's abilities with their source for attribution
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

from combat_context import Ability, AbilityType
from core_abilities import CoreAbilityRegistry, resolve_core_ability_mechanics
from effect_source import EffectSource, EffectSourceType, create_effect_source
from mechanic_schema import ApplicationTarget, Mechanic

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourcedAbilityMechanic:
    """A mechanic paired with its source ability and application target"""
    mechanic: Mechanic
    source: EffectSource
    applies_to: ApplicationTarget
    leader_source_name: Optional[str] = None


def get_mechanics_for_ability(ability: Ability,
                              registry: Optional[CoreAbilityRegistry] = None) -> List[Mechanic]:
    """Core abilities come from the registry; others use their embedded mechanics"""
    if ability.type == AbilityType.CORE:
        return resolve_core_ability_mechanics(ability.name, ability.parameter, registry)
    return list(ability.mechanics)


def extract_ability_mechanics(abilities: Sequence[Ability],
                              unit_name: str,
                              source_type: EffectSourceType = EffectSourceType.UNIT_ABILITY,
                              leader_source_name: Optional[str] = None,
                              registry: Optional[CoreAbilityRegistry] = None) -> List[SourcedAbilityMechanic]:
    """
    Extract combat mechanics from a unit's abilities.

    Args:
        abilities: The unit's abilities
        unit_name: Name of the unit, for attribution
        source_type: UNIT_ABILITY, LEADER_ABILITY or WEAPON_ABILITY
        leader_source_name: Set when the abilities belong to an attached leader
        registry: Core ability registry (default: bundled one)
    """
    results = []
    is_from_leader = leader_source_name is not None

    for ability in abilities or ():
        mechanics = get_mechanics_for_ability(ability, registry)
        if not mechanics:
            continue

        source = create_effect_source(
            source_type, ability.name,
            source_unit_name=unit_name,
            source_id=ability.id,
            is_from_leader=is_from_leader,
        )
        for mechanic in mechanics:
            results.append(SourcedAbilityMechanic(
                mechanic=mechanic,
                source=source,
                applies_to=mechanic.applies_to,
                leader_source_name=leader_source_name,
            ))

    logger.debug("%s: %d ability mechanics", unit_name, len(results))
    return results
