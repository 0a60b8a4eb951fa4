"""
Weapon Attribute Translator
Maps weapon keywords (HEAVY, LANCE, ANTI-X Y+, ...) to mechanics and special-effect tags
"""

import logging
import re
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

from effect_source import EffectSource, EffectSourceType, create_effect_source
from mechanic_schema import (
    Attribute, Condition, Effect, Entity, Mechanic, Operator, RerollType,
)
from modifier_result import SpecialEffect, SpecialEffectType

logger = logging.getLogger(__name__)

ANTI_PATTERN = re.compile(r'^ANTI-(.+)\s+(\d)\+$')
DICE_PATTERN = re.compile(r'^\d*D\d+(\+\d+)?$')


@dataclass(frozen=True)
class WeaponAttributeResult:
    """Mechanic and/or special effect produced by one weapon attribute"""
    mechanic: Optional[Mechanic] = None
    special_effect: Optional[SpecialEffect] = None


def _parse_attribute_number(attr: str, prefix: str) -> Union[int, str]:
    """Numeric payload of 'PREFIX N' keywords; dice tokens pass through, default 1"""
    rest = attr[len(prefix):].strip()
    if rest.isdigit():
        return int(rest)
    if DICE_PATTERN.match(rest):
        return rest
    return 1


def _state_condition(entity: Entity, state: str) -> Tuple[Condition, ...]:
    return (Condition(entity=entity, state=state, operator=Operator.EQUALS, value=True),)


def parse_weapon_attribute(attribute: str, weapon_name: str) -> WeaponAttributeResult:
    """Convert a single weapon attribute to its mechanic and special effect"""
    attr = attribute.upper().strip()
    source = create_effect_source(EffectSourceType.WEAPON_ATTRIBUTE, weapon_name, attribute=attr)

    def effect(effect_type: SpecialEffectType, value=True) -> SpecialEffect:
        return SpecialEffect(type=effect_type, source=source, value=value)

    # TORRENT - auto-hit
    if attr == 'TORRENT':
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.AUTO_SUCCESS,
                              attribute=Attribute.HIT, value=True),
            special_effect=effect(SpecialEffectType.TORRENT),
        )

    # HEAVY - +1 to hit if stationary
    if attr == 'HEAVY':
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ROLL_BONUS,
                              attribute=Attribute.HIT, value=1,
                              conditions=_state_condition(Entity.THIS_UNIT, 'isStationary')),
            special_effect=effect(SpecialEffectType.HEAVY),
        )

    # ASSAULT - can shoot after advancing, no modifier
    if attr == 'ASSAULT':
        return WeaponAttributeResult(special_effect=effect(SpecialEffectType.ASSAULT))

    # RAPID FIRE X - +X attacks at half range
    if attr.startswith('RAPID FIRE'):
        value = _parse_attribute_number(attr, 'RAPID FIRE')
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ROLL_BONUS,
                              attribute=Attribute.ATTACKS, value=value,
                              conditions=_state_condition(Entity.TARGET_UNIT, 'inHalfRange')),
            special_effect=effect(SpecialEffectType.RAPID_FIRE, value),
        )

    # LANCE - +1 to wound on the charge
    if attr == 'LANCE':
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ROLL_BONUS,
                              attribute=Attribute.WOUND, value=1,
                              conditions=_state_condition(Entity.THIS_UNIT, 'hasChargedThisTurn')),
            special_effect=effect(SpecialEffectType.LANCE),
        )

    # LETHAL HITS - critical hits auto-wound
    if attr == 'LETHAL HITS':
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ADDS_ABILITY,
                              abilities=('LETHAL HITS',), value=True),
            special_effect=effect(SpecialEffectType.LETHAL_HITS),
        )

    # SUSTAINED HITS X - critical hits score X extra hits
    if attr.startswith('SUSTAINED HITS'):
        value = _parse_attribute_number(attr, 'SUSTAINED HITS')
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ADDS_ABILITY,
                              abilities=('SUSTAINED HITS',), value=value),
            special_effect=effect(SpecialEffectType.SUSTAINED_HITS, value),
        )

    # DEVASTATING WOUNDS - critical wounds become mortal wounds
    if attr == 'DEVASTATING WOUNDS':
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ADDS_ABILITY,
                              abilities=('DEVASTATING WOUNDS',), value=True),
            special_effect=effect(SpecialEffectType.DEVASTATING_WOUNDS),
        )

    # IGNORES COVER - target gets no save bonus from cover
    if attr == 'IGNORES COVER':
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.TARGET_UNIT, effect=Effect.IGNORE_MODIFIER,
                              attribute=Attribute.SAVE, value='cover'),
            special_effect=effect(SpecialEffectType.IGNORES_COVER),
        )

    # PRECISION - can allocate to characters
    if attr == 'PRECISION':
        return WeaponAttributeResult(special_effect=effect(SpecialEffectType.PRECISION))

    # MELTA X - +X damage at half range
    if attr.startswith('MELTA'):
        value = _parse_attribute_number(attr, 'MELTA')
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.ROLL_BONUS,
                              attribute=Attribute.DAMAGE, value=value,
                              conditions=_state_condition(Entity.TARGET_UNIT, 'inHalfRange')),
            special_effect=effect(SpecialEffectType.MELTA, value),
        )

    # TWIN-LINKED - re-roll the wound roll
    if attr in ('TWIN-LINKED', 'TWIN LINKED'):
        return WeaponAttributeResult(
            mechanic=Mechanic(entity=Entity.THIS_UNIT, effect=Effect.REROLL,
                              attribute=Attribute.WOUND, value=RerollType.ALL.value),
        )

    if attr == 'HAZARDOUS':
        return WeaponAttributeResult(special_effect=effect(SpecialEffectType.HAZARDOUS))

    # BLAST - bonus attacks are computed from the target's model count
    if attr == 'BLAST':
        return WeaponAttributeResult(special_effect=effect(SpecialEffectType.BLAST))

    if attr == 'INDIRECT FIRE':
        return WeaponAttributeResult(special_effect=effect(SpecialEffectType.INDIRECT))

    # ANTI-KEYWORD X+ - critical wound on X+ against KEYWORD
    match = ANTI_PATTERN.match(attr)
    if match:
        keyword = match.group(1).strip()
        threshold = int(match.group(2))
        return WeaponAttributeResult(
            mechanic=Mechanic(
                entity=Entity.THIS_UNIT, effect=Effect.ADDS_ABILITY,
                abilities=(f'ANTI-{keyword}',), value=threshold,
                conditions=(Condition(entity=Entity.TARGET_UNIT, keywords=(keyword,),
                                      operator=Operator.INCLUDES, value=keyword),),
            ),
            special_effect=effect(SpecialEffectType.ANTI_KEYWORD, f'{keyword} {threshold}+'),
        )

    logger.debug("Unrecognised weapon attribute %r on %s", attribute, weapon_name)
    return WeaponAttributeResult()


def extract_weapon_mechanics(attributes: Sequence[str], weapon_name: str
                             ) -> Tuple[List[Tuple[Mechanic, EffectSource]], List[SpecialEffect]]:
    """Mechanics (each paired with the attribute it came from) and special effects of a weapon"""
    mechanics = []
    special_effects = []

    for attr in attributes:
        result = parse_weapon_attribute(attr, weapon_name)
        if result.mechanic is not None:
            source = create_effect_source(EffectSourceType.WEAPON_ATTRIBUTE, weapon_name,
                                          attribute=attr.upper().strip())
            mechanics.append((result.mechanic, source))
        if result.special_effect is not None:
            special_effects.append(result.special_effect)

    return mechanics, special_effects
