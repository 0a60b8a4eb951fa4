"""
Mechanic Collector
Gathers every mechanic that could apply to one attacker/defender pairing,
tagged with where it came from, then derives the special effects, reroll
index and granted keywords the engine needs.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Dict, FrozenSet, List, Optional, Tuple

from ability_mechanics import extract_ability_mechanics
from combat_context import (
    CombatContext, CombatRole, CombatUnit, Force,
)
from condition_evaluator import ConditionEvaluator, is_leader_alive
from core_abilities import CoreAbilityRegistry
from effect_source import EffectSource, EffectSourceType, create_effect_source
from mechanic_schema import (
    ApplicationTarget, Attribute, Effect, Entity, Mechanic, Phase,
)
from modifier_result import SpecialEffect, SpecialEffectType
from weapon_attributes import extract_weapon_mechanics

logger = logging.getLogger(__name__)

GRANTED_ABILITY_EFFECTS: Dict[str, SpecialEffectType] = {
    'LETHAL HITS': SpecialEffectType.LETHAL_HITS,
    'SUSTAINED HITS': SpecialEffectType.SUSTAINED_HITS,
    'DEVASTATING WOUNDS': SpecialEffectType.DEVASTATING_WOUNDS,
    'PRECISION': SpecialEffectType.PRECISION,
}

GRANTED_ANTI_PATTERN = re.compile(r'^ANTI-(.+)$')

COVER_MODIFIER = 'cover'


@dataclass(frozen=True)
class SourcedMechanic:
    """A mechanic paired with its source for attribution"""
    mechanic: Mechanic
    source: EffectSource
    leader_source_name: Optional[str] = None  # Leader whose presence gates isLeadingUnit


@dataclass(frozen=True)
class CollectedMechanics:
    """Everything the engine reads after collection"""
    mechanics: Tuple[SourcedMechanic, ...] = ()
    weapon_effects: Tuple[SpecialEffect, ...] = ()
    reroll_effects: Tuple[SpecialEffect, ...] = ()
    reroll_sources: Tuple[Tuple[Attribute, EffectSource], ...] = ()
    granted_keywords: Dict[CombatRole, FrozenSet[str]] = field(default_factory=dict)


def is_enhancement_bearer_alive(unit: CombatUnit) -> bool:
    """
    An enhancement only works while its bearer has a model on the table.

    Units that track no model instances are treated as alive. A merged
    leader+bodyguard unit checks the leader's own models.
    """
    if unit.enhancement is None:
        return False
    if not unit.model_instances:
        return True
    if unit.enhancement.bearer_name:
        return bool(unit.alive_instances(unit.enhancement.bearer_name))
    if unit.leaders:
        return is_leader_alive(unit)
    return bool(unit.alive_instances())


class MechanicCollector:
    """Collects sourced mechanics for one CombatContext"""

    def __init__(self, context: CombatContext, registry: Optional[CoreAbilityRegistry] = None):
        self.context = context
        self.registry = registry
        self.mechanics: List[SourcedMechanic] = []
        self.weapon_effects: List[SpecialEffect] = []

    def _add(self, mechanic: Mechanic, source: EffectSource,
             leader_source_name: Optional[str] = None):
        self.mechanics.append(SourcedMechanic(mechanic, source, leader_source_name))

    # ========================================================================
    # SOURCES
    # ========================================================================

    def collect_from_weapon(self):
        """Weapon attribute mechanics and special-effect tags"""
        weapon = self.context.attacker.weapon_profile
        mechanics, special_effects = extract_weapon_mechanics(weapon.attributes, weapon.name)
        for mechanic, source in mechanics:
            self._add(mechanic, source)
        self.weapon_effects.extend(special_effects)
        logger.debug("Weapon %s: %d mechanics", weapon.name, len(mechanics))

    def _collect_unit_abilities(self, unit: CombatUnit, wanted: ApplicationTarget):
        collected = extract_ability_mechanics(
            unit.abilities, unit.name, EffectSourceType.UNIT_ABILITY, registry=self.registry)

        for leader in unit.leaders:
            collected.extend(extract_ability_mechanics(
                leader.abilities, leader.name, EffectSourceType.LEADER_ABILITY,
                leader_source_name=leader.name, registry=self.registry))

        count = 0
        for item in collected:
            if item.applies_to == wanted:
                self._add(item.mechanic, item.source, item.leader_source_name)
                count += 1
        logger.debug("%s abilities (%s): %d mechanics", unit.name, wanted.value, count)

    def collect_from_unit_abilities(self):
        """Attacker abilities affecting attacks made, defender abilities affecting attacks against"""
        self._collect_unit_abilities(self.context.attacker.unit, ApplicationTarget.ATTACKS_MADE)
        self._collect_unit_abilities(self.context.defender.unit, ApplicationTarget.ATTACKS_AGAINST)

    def _collect_wargear(self, unit: CombatUnit, wanted: ApplicationTarget):
        collected = extract_ability_mechanics(
            unit.wargear_abilities, unit.name, EffectSourceType.WEAPON_ABILITY, registry=self.registry)
        for item in collected:
            if item.applies_to == wanted:
                self._add(item.mechanic, item.source)

    def collect_from_wargear(self):
        self._collect_wargear(self.context.attacker.unit, ApplicationTarget.ATTACKS_MADE)
        self._collect_wargear(self.context.defender.unit, ApplicationTarget.ATTACKS_AGAINST)

    def _collect_enhancement(self, unit: CombatUnit, wanted: ApplicationTarget):
        enhancement = unit.enhancement
        if enhancement is None:
            return
        if not is_enhancement_bearer_alive(unit):
            logger.debug("Skipping enhancement %s: bearer is dead", enhancement.name)
            return

        bearer = enhancement.bearer_name or unit.name
        is_from_leader = any(leader.name == bearer for leader in unit.leaders)
        source = create_effect_source(
            EffectSourceType.ENHANCEMENT, enhancement.name,
            source_unit_name=bearer, source_id=enhancement.id, is_from_leader=is_from_leader,
        )
        for mechanic in enhancement.mechanics:
            if mechanic.applies_to == wanted:
                self._add(mechanic, source)

    def collect_from_enhancements(self):
        self._collect_enhancement(self.context.attacker.unit, ApplicationTarget.ATTACKS_MADE)
        self._collect_enhancement(self.context.defender.unit, ApplicationTarget.ATTACKS_AGAINST)

    def collect_from_damaged_profile(self):
        """Attacker's damaged-bracket mechanics; the defender's never affect this attack"""
        unit = self.context.attacker.unit
        profile = unit.damaged_profile
        if profile is None or unit.combat_state is None or not unit.combat_state.is_damaged:
            return

        source = create_effect_source(
            EffectSourceType.UNIT_ABILITY, f"Damaged: 1-{profile.threshold} wounds remaining",
            source_unit_name=unit.name,
        )
        for mechanic in profile.mechanics:
            if mechanic.applies_to == ApplicationTarget.ATTACKS_MADE:
                self._add(mechanic, source)

    def _collect_force(self, force: Force, unit: CombatUnit, wanted: ApplicationTarget):
        for ability in force.faction_abilities:
            source = create_effect_source(
                EffectSourceType.FACTION_ABILITY, ability.name,
                source_unit_name=unit.name, source_id=ability.id)
            for mechanic in ability.mechanics:
                if mechanic.applies_to == wanted:
                    self._add(mechanic, source)

        for rule in force.detachment_rules:
            source = create_effect_source(
                EffectSourceType.DETACHMENT_RULE, rule.name, source_unit_name=unit.name)
            for mechanic in rule.mechanics:
                if mechanic.applies_to == wanted:
                    self._add(mechanic, source)

    def collect_from_forces(self):
        """Faction abilities and detachment rules of both armies"""
        self._collect_force(self.context.attacker.force, self.context.attacker.unit,
                            ApplicationTarget.ATTACKS_MADE)
        self._collect_force(self.context.defender.force, self.context.defender.unit,
                            ApplicationTarget.ATTACKS_AGAINST)

    def collect_from_stratagems(self):
        phase = self.context.phase
        for stratagem in self.context.active_stratagems:
            if not stratagem.valid_in_phase(phase):
                logger.debug("Skipping stratagem %s: not usable in %s", stratagem.name, phase.value)
                continue

            unit = (self.context.attacker.unit if stratagem.applies_to == CombatRole.ATTACKER
                    else self.context.defender.unit)
            if stratagem.target_unit_id and stratagem.target_unit_id != unit.id:
                logger.debug("Skipping stratagem %s: targets unit %s", stratagem.name, stratagem.target_unit_id)
                continue

            source = create_effect_source(
                EffectSourceType.STRATAGEM, stratagem.name,
                source_unit_name=unit.name, source_id=stratagem.id)
            for mechanic in stratagem.mechanics:
                self._add(mechanic, source)

    # ========================================================================
    # DERIVED PASSES
    # ========================================================================

    def filter_by_phase(self):
        phase = self.context.phase
        kept = [sm for sm in self.mechanics if sm.mechanic.applies_in_phase(phase)]
        if len(kept) != len(self.mechanics):
            logger.debug("Dropped %d mechanics restricted to other phases", len(self.mechanics) - len(kept))
        self.mechanics = kept

    def harvest_granted_keywords(self, evaluator: ConditionEvaluator) -> Dict[CombatRole, FrozenSet[str]]:
        """Keywords granted by addsKeyword mechanics whose conditions hold, per side"""
        granted = {role: set() for role in CombatRole}
        for sm in self.mechanics:
            if sm.mechanic.effect != Effect.ADDS_KEYWORD:
                continue
            if not evaluator.evaluate(sm.mechanic, sm.leader_source_name):
                continue
            role = ConditionEvaluator.role_for_entity(sm.mechanic.entity)
            granted[role].update(k.upper() for k in sm.mechanic.keywords)
        return {role: frozenset(keywords) for role, keywords in granted.items()}

    def has_ignore_modifier(self, evaluator: ConditionEvaluator,
                            attribute: Attribute, modifier_type: str) -> bool:
        return any(
            sm.mechanic.effect == Effect.IGNORE_MODIFIER
            and sm.mechanic.attribute == attribute
            and sm.mechanic.value == modifier_type
            and evaluator.evaluate(sm.mechanic, sm.leader_source_name)
            for sm in self.mechanics
        )

    def synthesize_cover(self, evaluator: ConditionEvaluator):
        """Cover improves the save by 1 against shooting unless a weapon ignores it"""
        combat_state = self.context.defender.unit.combat_state
        if self.context.phase != Phase.SHOOTING or combat_state is None or not combat_state.is_in_cover:
            return
        if self.has_ignore_modifier(evaluator, Attribute.SAVE, COVER_MODIFIER):
            logger.debug("Cover ignored by weapon")
            return

        self._add(
            Mechanic(entity=Entity.TARGET_UNIT, effect=Effect.ROLL_BONUS,
                     attribute=Attribute.SAVE, value=-1),
            create_effect_source(EffectSourceType.CORE_RULE, 'Cover'),
        )

    @staticmethod
    def special_effect_for_ability(ability_name: str, source: EffectSource,
                                   value) -> Optional[SpecialEffect]:
        """Special effect for a granted ability name, None if it has no combat effect"""
        name = ability_name.upper().strip()
        effect_type = GRANTED_ABILITY_EFFECTS.get(name)
        if effect_type == SpecialEffectType.SUSTAINED_HITS:
            return SpecialEffect(type=effect_type, source=source,
                                 value=value if isinstance(value, (int, str)) and value is not True else 1)
        if effect_type is not None:
            return SpecialEffect(type=effect_type, source=source)

        match = GRANTED_ANTI_PATTERN.match(name)
        if match and isinstance(value, int) and not isinstance(value, bool):
            return SpecialEffect(type=SpecialEffectType.ANTI_KEYWORD, source=source,
                                 value=f"{match.group(1).strip()} {value}+")
        return None

    def process_ability_grants(self, evaluator: ConditionEvaluator) -> List[SpecialEffect]:
        """Turn addsAbility mechanics into special effects"""
        effects = []
        for sm in self.mechanics:
            mechanic = sm.mechanic
            if mechanic.effect != Effect.ADDS_ABILITY or not mechanic.abilities:
                continue
            # Weapon keywords already carry their own tag
            if sm.source.type == EffectSourceType.WEAPON_ATTRIBUTE:
                continue
            if not evaluator.evaluate(mechanic, sm.leader_source_name):
                continue
            for ability_name in mechanic.abilities:
                effect = self.special_effect_for_ability(ability_name, sm.source, mechanic.value)
                if effect is not None:
                    effects.append(effect)
        return effects

    def process_rerolls(self, evaluator: ConditionEvaluator
                        ) -> Tuple[List[SpecialEffect], List[Tuple[Attribute, EffectSource]]]:
        """Reroll special effects plus an attribute -> first granting source index"""
        effects = []
        sources = []
        seen = set()
        for sm in self.mechanics:
            mechanic = sm.mechanic
            if mechanic.effect != Effect.REROLL or mechanic.attribute is None:
                continue
            if not evaluator.evaluate(mechanic, sm.leader_source_name):
                continue
            effects.append(SpecialEffect(type=SpecialEffectType.REROLL, source=sm.source,
                                         value=mechanic.value, attribute=mechanic.attribute))
            if mechanic.attribute not in seen:
                seen.add(mechanic.attribute)
                sources.append((mechanic.attribute, sm.source))
        return effects, sources

    # ========================================================================
    # ENTRY POINT
    # ========================================================================

    def collect(self) -> CollectedMechanics:
        """Run every source and derived pass"""
        self.mechanics = []
        self.weapon_effects = []

        self.collect_from_weapon()
        self.collect_from_unit_abilities()
        self.collect_from_wargear()
        self.collect_from_enhancements()
        self.collect_from_damaged_profile()
        self.collect_from_forces()
        self.collect_from_stratagems()
        self.filter_by_phase()

        granted_keywords = self.harvest_granted_keywords(ConditionEvaluator(self.context))
        evaluator = ConditionEvaluator(self.context, granted_keywords)

        self.synthesize_cover(evaluator)
        self.weapon_effects.extend(self.process_ability_grants(evaluator))
        reroll_effects, reroll_sources = self.process_rerolls(evaluator)

        logger.debug("Collected %d mechanics for %s -> %s",
                     len(self.mechanics), self.context.attacker.unit.name, self.context.defender.unit.name)

        return CollectedMechanics(
            mechanics=tuple(self.mechanics),
            weapon_effects=tuple(self.weapon_effects),
            reroll_effects=tuple(reroll_effects),
            reroll_sources=tuple(reroll_sources),
            granted_keywords=granted_keywords,
        )


def collect_all_mechanics(context: CombatContext,
                          registry: Optional[CoreAbilityRegistry] = None) -> CollectedMechanics:
    return MechanicCollector(context, registry).collect()
