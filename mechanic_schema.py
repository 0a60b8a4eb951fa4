"""
Mechanic Schema
Shared vocabulary for declarative rule effects (mechanics) and their guard conditions
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple, Union

logger = logging.getLogger(__name__)


# ============================================================================
# VOCABULARIES
# ============================================================================

class Entity(str, Enum):
    """Which side or scope a mechanic or condition refers to"""
    THIS_ARMY = "thisArmy"
    THIS_UNIT = "thisUnit"
    THIS_MODEL = "thisModel"
    OPPONENT_ARMY = "opponentArmy"
    OPPOSING_UNIT = "opposingUnit"
    OPPOSING_MODEL = "opposingModel"
    TARGET_UNIT = "targetUnit"
    TARGET_MODEL = "targetModel"


ATTACKER_ENTITIES = (Entity.THIS_ARMY, Entity.THIS_UNIT, Entity.THIS_MODEL)


class Effect(str, Enum):
    """Type of effect a mechanic applies"""
    ROLL_BONUS = "rollBonus"
    ROLL_PENALTY = "rollPenalty"
    STATIC_NUMBER = "staticNumber"
    ADDS_KEYWORD = "addsKeyword"
    ADDS_ABILITY = "addsAbility"
    REROLL = "reroll"
    AUTO_SUCCESS = "autoSuccess"
    MORTAL_WOUNDS = "mortalWounds"
    IGNORE_MODIFIER = "ignoreModifier"
    HALVE_DAMAGE = "halveDamage"
    MIN_DAMAGE = "minDamage"


class Attribute(str, Enum):
    """Rolls, unit characteristics and weapon characteristics"""
    # Rolls
    HIT = "h"
    WOUND = "w"
    SAVE = "s"
    # Unit characteristics
    MOVEMENT = "m"
    TOUGHNESS = "t"
    SAVE_CHARACTERISTIC = "sv"
    INVULNERABLE_SAVE = "invSv"
    WOUNDS = "wounds"  # "w" is the wound roll
    LEADERSHIP = "ld"
    OBJECTIVE_CONTROL = "oc"
    FEEL_NO_PAIN = "fnp"
    # Weapon characteristics
    RANGE = "range"
    ATTACKS = "a"
    SKILL = "bsWs"
    STRENGTH = "str"  # "s" is the save roll
    ARMOUR_PENETRATION = "ap"
    DAMAGE = "d"


# Lower is better for these (roll targets)
SAVE_LIKE_ATTRIBUTES = (
    Attribute.SAVE_CHARACTERISTIC, Attribute.INVULNERABLE_SAVE, Attribute.FEEL_NO_PAIN,
    Attribute.SKILL,
)


class Operator(str, Enum):
    """Comparison operators for conditions"""
    EQUALS = "equals"
    NOT_EQUALS = "notEquals"
    GREATER_THAN = "greaterThan"
    GREATER_THAN_OR_EQUAL_TO = "greaterThanOrEqualTo"
    LESS_THAN = "lessThan"
    LESS_THAN_OR_EQUAL_TO = "lessThanOrEqualTo"
    INCLUDES = "includes"
    NOT_INCLUDES = "notIncludes"


class ApplicationTarget(str, Enum):
    """Whether an ability affects attacks made by its unit or attacks against it"""
    ATTACKS_MADE = "attacksMade"
    ATTACKS_AGAINST = "attacksAgainst"


class RerollType(str, Enum):
    """Which dice a reroll mechanic lets you re-roll"""
    NONE = "none"
    ONES = "ones"
    ALL = "all"
    FAILED = "failed"


class Phase(str, Enum):
    """Battle round phases"""
    COMMAND = "command"
    MOVEMENT = "movement"
    SHOOTING = "shooting"
    CHARGE = "charge"
    FIGHT = "fight"


MechanicValue = Union[bool, int, float, str]
ConditionValue = Union[bool, int, float, str, Tuple[str, ...]]


def _parse_enum(enum_cls, raw: Any):
    """Return the enum member for a raw token, or None if it is not recognised"""
    if raw is None:
        return None
    if isinstance(raw, enum_cls):
        return raw
    try:
        return enum_cls(raw)
    except ValueError:
        logger.debug("Unrecognised %s token %r", enum_cls.__name__, raw)
        return None


def _as_tuple(raw: Any) -> Tuple[str, ...]:
    if raw is None:
        return ()
    if isinstance(raw, (list, tuple)):
        return tuple(str(item) for item in raw)
    return (str(raw),)


# ============================================================================
# CONDITION
# ============================================================================

@dataclass(frozen=True)
class Condition:
    """
    Guard clause on a mechanic.

    Exactly one of state, keywords, abilities or attribute is normally set;
    the evaluator checks them in that order.
    """
    entity: Entity
    operator: Operator = Operator.EQUALS
    value: ConditionValue = True
    state: Optional[str] = None
    keywords: Tuple[str, ...] = ()
    abilities: Tuple[str, ...] = ()
    attribute: Optional[Attribute] = None

    @classmethod
    def from_dict(cls, data: Dict) -> Optional['Condition']:
        """Parse an authored condition record; None if the entity is unknown or it is not a record"""
        if not isinstance(data, dict):
            logger.debug("Skipping condition that is not a record: %r", data)
            return None
        entity = _parse_enum(Entity, data.get('entity'))
        if entity is None:
            return None

        operator = _parse_enum(Operator, data.get('operator')) or Operator.EQUALS
        value = data.get('value', True)
        if isinstance(value, list):
            value = tuple(value)

        state = data.get('state')
        if isinstance(state, list):
            # Older records store a single state in a list
            state = state[0] if state else None

        return cls(
            entity=entity,
            operator=operator,
            value=value,
            state=state,
            keywords=_as_tuple(data.get('keywords')),
            abilities=_as_tuple(data.get('abilities')),
            attribute=_parse_enum(Attribute, data.get('attribute')),
        )

    def to_dict(self) -> Dict:
        data = {'entity': self.entity.value, 'operator': self.operator.value}
        if self.state:
            data['state'] = self.state
        if self.keywords:
            data['keywords'] = list(self.keywords)
        if self.abilities:
            data['abilities'] = list(self.abilities)
        if self.attribute:
            data['attribute'] = self.attribute.value
        data['value'] = list(self.value) if isinstance(self.value, tuple) else self.value
        return data


# ============================================================================
# MECHANIC
# ============================================================================

@dataclass(frozen=True)
class Mechanic:
    """One atomic, declarative rule effect"""
    entity: Entity
    effect: Effect
    value: MechanicValue = True
    attribute: Optional[Attribute] = None
    abilities: Tuple[str, ...] = ()
    keywords: Tuple[str, ...] = ()
    conditions: Tuple[Condition, ...] = ()
    phase: Tuple[Phase, ...] = ()
    applies_to: ApplicationTarget = ApplicationTarget.ATTACKS_MADE

    @property
    def is_unconditional(self) -> bool:
        return not self.conditions

    def applies_in_phase(self, phase: Phase) -> bool:
        """True when the mechanic carries no phase restriction or lists this phase"""
        return not self.phase or phase in self.phase

    def with_value(self, value: MechanicValue) -> 'Mechanic':
        """Copy of this mechanic with a different value"""
        return Mechanic(
            entity=self.entity,
            effect=self.effect,
            value=value,
            attribute=self.attribute,
            abilities=self.abilities,
            keywords=self.keywords,
            conditions=self.conditions,
            phase=self.phase,
            applies_to=self.applies_to,
        )

    @classmethod
    def from_dict(cls, data: Dict) -> Optional['Mechanic']:
        """
        Parse an authored mechanic record.

        Returns None when entity or effect is not recognised. Conditions that
        cannot be parsed are kept out, but a mechanic that loses a condition
        this way is dropped entirely so it can never apply more widely than
        it was written.
        """
        if not isinstance(data, dict):
            logger.debug("Skipping mechanic that is not a record: %r", data)
            return None

        entity = _parse_enum(Entity, data.get('entity'))
        effect = _parse_enum(Effect, data.get('effect'))
        if entity is None or effect is None:
            logger.debug("Skipping mechanic with entity=%r effect=%r",
                         data.get('entity'), data.get('effect'))
            return None

        raw_conditions = data.get('conditions') or []
        if not isinstance(raw_conditions, list):
            logger.debug("Skipping mechanic with malformed conditions %r", raw_conditions)
            return None
        conditions = []
        for raw in raw_conditions:
            condition = Condition.from_dict(raw)
            if condition is None:
                logger.debug("Skipping mechanic with unparseable condition %r", raw)
                return None
            conditions.append(condition)

        phases = []
        for raw_phase in _as_tuple(data.get('phase')):
            phase = _parse_enum(Phase, raw_phase.lower())
            if phase is not None:
                phases.append(phase)

        applies_to = _parse_enum(ApplicationTarget, data.get('appliesTo'))

        return cls(
            entity=entity,
            effect=effect,
            value=data.get('value', True),
            attribute=_parse_enum(Attribute, data.get('attribute')),
            abilities=_as_tuple(data.get('abilities')),
            keywords=_as_tuple(data.get('keywords')),
            conditions=tuple(conditions),
            phase=tuple(phases),
            applies_to=applies_to or ApplicationTarget.ATTACKS_MADE,
        )

    def to_dict(self) -> Dict:
        data = {'entity': self.entity.value, 'effect': self.effect.value}
        if self.attribute:
            data['attribute'] = self.attribute.value
        if self.abilities:
            data['abilities'] = list(self.abilities)
        if self.keywords:
            data['keywords'] = list(self.keywords)
        data['value'] = self.value
        if self.conditions:
            data['conditions'] = [c.to_dict() for c in self.conditions]
        if self.phase:
            data['phase'] = [p.value for p in self.phase]
        if self.applies_to != ApplicationTarget.ATTACKS_MADE:
            data['appliesTo'] = self.applies_to.value
        return data


def parse_mechanics(records: Optional[List[Dict]]) -> Tuple[Mechanic, ...]:
    """Parse a list of authored mechanic records, skipping the malformed ones"""
    mechanics = []
    for record in records or []:
        mechanic = Mechanic.from_dict(record)
        if mechanic is not None:
            mechanics.append(mechanic)
    return tuple(mechanics)
