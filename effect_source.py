"""
Effect Sources
Attribution records naming where a mechanic came from
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional


class EffectSourceType(str, Enum):
    """Categories of effect sources, ordered by typical application priority"""
    CORE_RULE = "coreRule"
    FACTION_ABILITY = "factionAbility"
    DETACHMENT_RULE = "detachmentRule"
    UNIT_ABILITY = "unitAbility"
    LEADER_ABILITY = "leaderAbility"
    ENHANCEMENT = "enhancement"
    WEAPON_ATTRIBUTE = "weaponAttribute"
    WEAPON_ABILITY = "weaponAbility"
    STRATAGEM = "stratagem"


# Higher = applied later. Only used for ordering and explanation today.
SOURCE_PRIORITIES: Dict[EffectSourceType, int] = {
    EffectSourceType.CORE_RULE: 0,
    EffectSourceType.FACTION_ABILITY: 10,
    EffectSourceType.DETACHMENT_RULE: 20,
    EffectSourceType.UNIT_ABILITY: 30,
    EffectSourceType.LEADER_ABILITY: 40,
    EffectSourceType.ENHANCEMENT: 50,
    EffectSourceType.WEAPON_ATTRIBUTE: 60,
    EffectSourceType.WEAPON_ABILITY: 70,
    EffectSourceType.STRATAGEM: 100,
}


@dataclass(frozen=True)
class EffectSource:
    """Where an effect comes from"""
    type: EffectSourceType
    name: str
    priority: int
    source_unit_name: Optional[str] = None
    source_id: Optional[str] = None
    attribute: Optional[str] = None  # e.g. "HEAVY" for a weapon attribute
    is_from_leader: bool = False

    @property
    def label(self) -> str:
        """Display label: the characteristic label if there is one, else the name"""
        return self.attribute or self.name

    def to_dict(self) -> Dict:
        data = {
            'type': self.type.value,
            'name': self.name,
            'priority': self.priority,
        }
        if self.source_unit_name:
            data['sourceUnitName'] = self.source_unit_name
        if self.source_id:
            data['sourceId'] = self.source_id
        if self.attribute:
            data['attribute'] = self.attribute
        if self.is_from_leader:
            data['isFromLeader'] = True
        return data


def create_effect_source(source_type: EffectSourceType, name: str,
                         source_unit_name: Optional[str] = None,
                         source_id: Optional[str] = None,
                         attribute: Optional[str] = None,
                         is_from_leader: bool = False) -> EffectSource:
    """Create an EffectSource with the priority fixed by its type"""
    return EffectSource(
        type=source_type,
        name=name,
        priority=SOURCE_PRIORITIES[source_type],
        source_unit_name=source_unit_name,
        source_id=source_id,
        attribute=attribute,
        is_from_leader=is_from_leader,
    )
