"""
Condition Evaluator
Decides whether a mechanic's guard conditions hold for one combat snapshot.

Entities are resolved attacker-relative: the "this*" entities are the
attacking unit, every target/opposing/opponent entity is the defending unit.
"""

import logging
from typing import Dict, FrozenSet, Iterable, Optional, Sequence, Tuple, Union

from combat_context import (
    CombatContext, CombatRole, CombatUnit, ModelProfile, MovementBehaviour, UnitStrength,
)
from mechanic_schema import (
    ATTACKER_ENTITIES, Attribute, Condition, Entity, Mechanic, Operator, Phase,
)

logger = logging.getLogger(__name__)

Comparable = Union[bool, int, float, str, Tuple, FrozenSet, None]

MODEL_ATTRIBUTE_FIELDS: Dict[Attribute, str] = {
    Attribute.MOVEMENT: 'movement',
    Attribute.TOUGHNESS: 'toughness',
    Attribute.SAVE_CHARACTERISTIC: 'save',
    Attribute.INVULNERABLE_SAVE: 'invuln_save',
    Attribute.WOUNDS: 'wounds',
    Attribute.LEADERSHIP: 'leadership',
    Attribute.OBJECTIVE_CONTROL: 'oc',
}

WEAPON_ATTRIBUTE_FIELDS: Dict[Attribute, str] = {
    Attribute.RANGE: 'range',
    Attribute.ATTACKS: 'attacks',
    Attribute.SKILL: 'bs_ws',
    Attribute.STRENGTH: 'strength',
    Attribute.ARMOUR_PENETRATION: 'ap',
    Attribute.DAMAGE: 'damage',
}

RELATIONAL_OPERATORS = (
    Operator.GREATER_THAN, Operator.GREATER_THAN_OR_EQUAL_TO,
    Operator.LESS_THAN, Operator.LESS_THAN_OR_EQUAL_TO,
)


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def compare(actual: Comparable, operator: Operator, expected: Comparable) -> bool:
    """
    Compare two values with an operator.

    Relational operators need two numbers; includes/notIncludes need a
    collection (or a string) on the left. Anything else is False.
    """
    if actual is None:
        if operator == Operator.EQUALS:
            return expected is None
        if operator == Operator.NOT_EQUALS:
            return expected is not None
        return False

    if operator == Operator.EQUALS:
        return actual == expected
    if operator == Operator.NOT_EQUALS:
        return actual != expected

    if operator in RELATIONAL_OPERATORS:
        if not (_is_number(actual) and _is_number(expected)):
            return False
        if operator == Operator.GREATER_THAN:
            return actual > expected
        if operator == Operator.GREATER_THAN_OR_EQUAL_TO:
            return actual >= expected
        if operator == Operator.LESS_THAN:
            return actual < expected
        return actual <= expected

    if operator in (Operator.INCLUDES, Operator.NOT_INCLUDES):
        if isinstance(actual, (tuple, list, set, frozenset)):
            found = expected in actual
        elif isinstance(actual, str) and isinstance(expected, str):
            found = expected in actual
        else:
            return False
        return found if operator == Operator.INCLUDES else not found

    return False


def _membership(found: bool, operator: Operator) -> bool:
    """Apply a presence test result to a keyword/ability operator"""
    if operator in (Operator.INCLUDES, Operator.EQUALS):
        return found
    if operator in (Operator.NOT_INCLUDES, Operator.NOT_EQUALS):
        return not found
    return False


def describe_condition(condition: Condition) -> str:
    """Human-readable one-liner for a condition"""
    parts = [condition.entity.value]
    if condition.state:
        parts.append(f"state={condition.state}")
    if condition.attribute:
        parts.append(f"attr={condition.attribute.value}")
    if condition.keywords:
        parts.append(f"keywords=[{','.join(condition.keywords)}]")
    if condition.abilities:
        parts.append(f"abilities=[{','.join(condition.abilities)}]")
    parts.append(condition.operator.value)
    parts.append(str(condition.value))
    return ' '.join(parts)


def is_leader_alive(unit: CombatUnit, leader_name: Optional[str] = None) -> bool:
    """
    True if the unit has an attached leader with at least one alive model.

    With leader_name, only that leader is checked.
    """
    for leader in unit.leaders:
        if leader_name and leader.name != leader_name:
            continue
        if unit.alive_instances(leader.name):
            return True
    return False


class ConditionEvaluator:
    """Evaluates conditions against one CombatContext"""

    def __init__(self, context: CombatContext,
                 granted_keywords: Optional[Dict[CombatRole, Iterable[str]]] = None):
        self.context = context
        granted_keywords = granted_keywords or {}
        self._keywords = {
            role: self._combine_keywords(self._unit_for_role(role).keywords,
                                         granted_keywords.get(role, ()))
            for role in CombatRole
        }

    @staticmethod
    def _combine_keywords(base: Sequence[str], granted: Iterable[str]) -> FrozenSet[str]:
        return frozenset(k.upper() for k in base) | frozenset(k.upper() for k in granted)

    def _unit_for_role(self, role: CombatRole) -> CombatUnit:
        if role == CombatRole.ATTACKER:
            return self.context.attacker.unit
        return self.context.defender.unit

    @staticmethod
    def role_for_entity(entity: Entity) -> CombatRole:
        return CombatRole.ATTACKER if entity in ATTACKER_ENTITIES else CombatRole.DEFENDER

    def resolve_unit(self, entity: Entity) -> CombatUnit:
        return self._unit_for_role(self.role_for_entity(entity))

    def keywords_for(self, entity: Entity) -> FrozenSet[str]:
        """Base plus granted keywords of the side an entity refers to, uppercased"""
        return self._keywords[self.role_for_entity(entity)]

    def abilities_for(self, entity: Entity) -> FrozenSet[str]:
        unit = self.resolve_unit(entity)
        names = [a.name for a in unit.abilities]
        names.extend(a.name for a in unit.wargear_abilities)
        for source_unit in unit.source_units:
            names.extend(a.name for a in source_unit.abilities)
        return frozenset(name.upper() for name in names)

    def model_for(self, entity: Entity) -> Optional[ModelProfile]:
        if self.role_for_entity(entity) == CombatRole.DEFENDER:
            return self.context.defender.target_model
        models = self.context.attacker.unit.models
        return models[0] if models else None

    def get_attribute_value(self, entity: Entity, attribute: Attribute) -> Comparable:
        """Model characteristic or (attacker only) weapon characteristic, None if unknown"""
        if attribute in MODEL_ATTRIBUTE_FIELDS:
            model = self.model_for(entity)
            return getattr(model, MODEL_ATTRIBUTE_FIELDS[attribute]) if model else None

        if attribute in WEAPON_ATTRIBUTE_FIELDS and self.role_for_entity(entity) == CombatRole.ATTACKER:
            return getattr(self.context.attacker.weapon_profile, WEAPON_ATTRIBUTE_FIELDS[attribute])

        return None

    def get_state_value(self, entity: Entity, state: str,
                        leader_source_name: Optional[str] = None) -> bool:
        """Resolve a named state flag for the unit an entity refers to"""
        # Context-level states
        if state in ('isShootingPhase', 'isRangedPhase'):
            return self.context.phase == Phase.SHOOTING
        if state in ('isFightPhase', 'isMeleePhase'):
            return self.context.phase == Phase.FIGHT
        if state == 'isOverwatch':
            return self.context.is_overwatch
        if state == 'isAttackersTurn':
            return self.context.is_player_turn

        unit = self.resolve_unit(entity)

        # Leader states read model instances, not the combat state
        if state == 'isLeadingUnit':
            return is_leader_alive(unit, leader_source_name)
        if state == 'isBeingLed':
            return is_leader_alive(unit)

        combat_state = unit.combat_state
        if combat_state is None:
            return False

        if state == 'isStationary':
            return combat_state.movement_behaviour == MovementBehaviour.HOLD
        if state == 'isBattleShocked':
            return combat_state.is_battle_shocked
        if state in ('inCover', 'isInCover'):
            return combat_state.is_in_cover
        if state in ('inEngagementRange', 'isInEngagementRange'):
            return combat_state.is_in_engagement_range
        if state in ('hasChargedThisTurn', 'hasCharged'):
            return combat_state.has_charged
        if state in ('hasFiredThisPhase', 'hasShot'):
            return combat_state.has_shot
        if state == 'hasFought':
            return combat_state.has_fought
        if state == 'isBelowHalfStrength':
            return combat_state.unit_strength == UnitStrength.BELOW_HALF
        if state == 'isBelowStartingStrength':
            return combat_state.unit_strength in (UnitStrength.BELOW_STARTING, UnitStrength.BELOW_HALF)
        if state == 'isDamaged':
            return combat_state.is_damaged

        # Faction-specific flags set on the unit
        return state in combat_state.active_flags

    def evaluate_condition(self, condition: Condition,
                           leader_source_name: Optional[str] = None) -> bool:
        """Evaluate one condition; checks state, then keywords, abilities, attribute"""
        entity = condition.entity
        operator = condition.operator

        if condition.state:
            actual = self.get_state_value(entity, condition.state, leader_source_name)
            return compare(actual, operator, condition.value)

        if condition.keywords:
            unit_keywords = self.keywords_for(entity)
            found = any(k.upper() in unit_keywords for k in condition.keywords)
            return _membership(found, operator)

        if condition.abilities:
            unit_abilities = self.abilities_for(entity)
            found = any(a.upper() in unit_abilities for a in condition.abilities)
            return _membership(found, operator)

        if condition.attribute:
            actual = self.get_attribute_value(entity, condition.attribute)
            return compare(actual, operator, condition.value)

        return True

    def evaluate_conditions(self, conditions: Sequence[Condition],
                            leader_source_name: Optional[str] = None) -> bool:
        """All conditions must hold; no conditions means always true"""
        return all(self.evaluate_condition(c, leader_source_name) for c in conditions)

    def evaluate(self, mechanic: Mechanic, leader_source_name: Optional[str] = None) -> bool:
        return self.evaluate_conditions(mechanic.conditions, leader_source_name)

    def explain(self, mechanic: Mechanic,
                leader_source_name: Optional[str] = None) -> Tuple[bool, str]:
        """Whether a mechanic applies, with the first failing condition if not"""
        if mechanic.is_unconditional:
            return True, "No conditions"

        for index, condition in enumerate(mechanic.conditions, start=1):
            if not self.evaluate_condition(condition, leader_source_name):
                reason = f"Condition {index} failed: {describe_condition(condition)}"
                logger.debug(reason)
                return False, reason

        return True, "All conditions met"
