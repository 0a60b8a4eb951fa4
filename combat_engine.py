"""
Combat Engine
Resolves one weapon profile against one target model: evaluates the
collected mechanics and produces roll targets with attributed modifiers.
No dice are rolled here.
"""

import logging
import re
from typing import Dict, List, Optional, Sequence, Tuple, Union

from combat_context import CombatContext
from condition_evaluator import ConditionEvaluator
from core_abilities import CoreAbilityRegistry
from mechanic_collector import CollectedMechanics, MechanicCollector, SourcedMechanic
from mechanic_schema import SAVE_LIKE_ATTRIBUTES, Attribute, Effect, Entity
from modifier_result import (
    CAPPED_STEPS, STEP_ATTRIBUTES, AttackStep, AttributedModifier, CombatResolution,
    CriticalEffect, DisplayModifier, SpecialEffect, SpecialEffectType, StepModifiers,
)

logger = logging.getLogger(__name__)

# ============================================================================
# RULES CONSTANTS
# ============================================================================

MODIFIER_CAP = 1  # Hit and wound rolls can't be modified by more than +/-1
MIN_ROLL_TARGET = 2
MAX_ROLL_TARGET = 6
DEFAULT_CRITICAL_THRESHOLD = 6
OVERWATCH_TO_HIT = 6
BLAST_MODELS_PER_ATTACK = 5

AUTO = "auto"

ANTI_EFFECT_PATTERN = re.compile(r'^(.+)\s+(\d)\+$')

# Special effects shown on each step, besides rerolls and auto-success for its roll
STEP_EFFECT_TYPES: Dict[AttackStep, Tuple[SpecialEffectType, ...]] = {
    AttackStep.ATTACKS: (SpecialEffectType.BLAST, SpecialEffectType.RAPID_FIRE),
    AttackStep.HIT_ROLL: (SpecialEffectType.TORRENT, SpecialEffectType.LETHAL_HITS,
                          SpecialEffectType.SUSTAINED_HITS),
    AttackStep.WOUND_ROLL: (SpecialEffectType.DEVASTATING_WOUNDS, SpecialEffectType.ANTI_KEYWORD),
    AttackStep.SAVE_ROLL: (SpecialEffectType.IGNORES_COVER,),
    AttackStep.FEEL_NO_PAIN: (),
    AttackStep.DAMAGE_ROLL: (SpecialEffectType.MELTA, SpecialEffectType.HALVE_DAMAGE,
                             SpecialEffectType.MIN_DAMAGE),
}

CRITICAL_EFFECT_NAMES: Dict[SpecialEffectType, str] = {
    SpecialEffectType.LETHAL_HITS: 'LETHAL HITS',
    SpecialEffectType.SUSTAINED_HITS: 'SUSTAINED HITS',
    SpecialEffectType.DEVASTATING_WOUNDS: 'DEVASTATING WOUNDS',
}


def _is_number(value) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def clamp_roll_target(value: int) -> int:
    return max(MIN_ROLL_TARGET, min(MAX_ROLL_TARGET, value))


def calculate_to_wound(strength: int, toughness: int) -> int:
    """Wound roll target from strength vs toughness"""
    if strength >= toughness * 2:
        return 2
    if strength > toughness:
        return 3
    if strength == toughness:
        return 4
    if strength * 2 <= toughness:
        return 6
    return 5


def parse_anti_effect(value: str) -> Optional[Tuple[str, int]]:
    """'INFANTRY 4+' -> ('INFANTRY', 4)"""
    match = ANTI_EFFECT_PATTERN.match(value.strip())
    if not match:
        return None
    return match.group(1).strip().upper(), int(match.group(2))


def _display(modifier: AttributedModifier, absolute: bool) -> DisplayModifier:
    source = modifier.source
    return DisplayModifier(
        label=source.label,
        value=abs(modifier.value) if absolute else modifier.value,
        leader_name=source.source_unit_name if source.is_from_leader else None,
        is_from_leader=source.is_from_leader,
    )


def aggregate_step(step: AttackStep,
                   mechanics: Sequence[SourcedMechanic],
                   evaluator: ConditionEvaluator,
                   special_effects: Sequence[SpecialEffect] = ()) -> StepModifiers:
    """
    Sum the qualifying bonuses and penalties for one attack step.

    Hit and wound totals are capped to +/-MODIFIER_CAP. Save-roll display
    values are magnitudes, since an improved save is a negative modifier.
    """
    attribute = STEP_ATTRIBUTES[step]
    bonuses = []
    penalties = []

    for sm in mechanics:
        mechanic = sm.mechanic
        if mechanic.attribute != attribute:
            continue
        if mechanic.effect not in (Effect.ROLL_BONUS, Effect.ROLL_PENALTY):
            continue
        if not _is_number(mechanic.value):
            continue
        if not evaluator.evaluate(mechanic, sm.leader_source_name):
            continue

        modifier = AttributedModifier(value=mechanic.value, source=sm.source, description=sm.source.label)
        if mechanic.effect == Effect.ROLL_BONUS:
            bonuses.append(modifier)
        else:
            penalties.append(modifier)

    raw_total = sum(b.value for b in bonuses) - sum(p.value for p in penalties)
    if step in CAPPED_STEPS:
        capped_total = max(-MODIFIER_CAP, min(MODIFIER_CAP, raw_total))
    else:
        capped_total = raw_total

    is_save = step == AttackStep.SAVE_ROLL
    return StepModifiers(
        step=step,
        bonuses=tuple(bonuses),
        penalties=tuple(penalties),
        raw_total=raw_total,
        capped_total=capped_total,
        is_capped=raw_total != capped_total,
        special_effects=tuple(special_effects),
        display_bonuses=tuple(_display(b, is_save) for b in bonuses),
        display_penalties=tuple(_display(p, is_save) for p in penalties),
    )


class CombatEngine:
    """
    Resolves combat by:
    1. Collecting all applicable mechanics from every source
    2. Evaluating their conditions against the context
    3. Aggregating modifiers per step with capping
    4. Returning a complete CombatResolution
    """

    def __init__(self, context: CombatContext, registry: Optional[CoreAbilityRegistry] = None):
        self.context = context
        self.registry = registry
        self.collected: Optional[CollectedMechanics] = None
        self.evaluator: Optional[ConditionEvaluator] = None

    @property
    def mechanics(self) -> Tuple[SourcedMechanic, ...]:
        return self.collected.mechanics if self.collected else ()

    def _applies(self, sm: SourcedMechanic) -> bool:
        return self.evaluator.evaluate(sm.mechanic, sm.leader_source_name)

    # ========================================================================
    # DERIVED VALUES
    # ========================================================================

    def derive_static_value(self, attribute: Attribute) -> Optional[Union[int, float]]:
        """
        Best static override for an attribute among qualifying mechanics.

        Lowest wins for save-like attributes, highest otherwise; on a tie
        the first one collected is kept.
        """
        best = None
        lower_is_better = attribute in SAVE_LIKE_ATTRIBUTES
        for sm in self.mechanics:
            mechanic = sm.mechanic
            if mechanic.effect != Effect.STATIC_NUMBER or mechanic.attribute != attribute:
                continue
            if not _is_number(mechanic.value) or not self._applies(sm):
                continue
            if best is None:
                best = mechanic.value
            elif lower_is_better and mechanic.value < best:
                best = mechanic.value
            elif not lower_is_better and mechanic.value > best:
                best = mechanic.value
        return best

    def derive_invuln(self) -> Optional[int]:
        """Better of the target model's invulnerable save and any granted one"""
        candidates = [v for v in (self.context.defender.target_model.invuln_save,
                                  self.derive_static_value(Attribute.INVULNERABLE_SAVE))
                      if v is not None]
        return min(candidates) if candidates else None

    def has_auto_success(self, attribute: Attribute) -> bool:
        return any(
            sm.mechanic.effect == Effect.AUTO_SUCCESS and sm.mechanic.attribute == attribute
            and self._applies(sm)
            for sm in self.mechanics
        )

    def damage_effects(self) -> List[SpecialEffect]:
        """halveDamage / minDamage mechanics whose conditions hold"""
        effects = []
        for sm in self.mechanics:
            mechanic = sm.mechanic
            if mechanic.effect == Effect.HALVE_DAMAGE and self._applies(sm):
                effects.append(SpecialEffect(type=SpecialEffectType.HALVE_DAMAGE, source=sm.source,
                                             attribute=mechanic.attribute))
            elif mechanic.effect == Effect.MIN_DAMAGE and self._applies(sm):
                effects.append(SpecialEffect(type=SpecialEffectType.MIN_DAMAGE, source=sm.source,
                                             value=mechanic.value, attribute=mechanic.attribute))
        return effects

    def auto_success_effects(self) -> List[SpecialEffect]:
        return [
            SpecialEffect(type=SpecialEffectType.AUTO_SUCCESS, source=sm.source,
                          attribute=sm.mechanic.attribute)
            for sm in self.mechanics
            if sm.mechanic.effect == Effect.AUTO_SUCCESS and sm.mechanic.attribute is not None
            and self._applies(sm)
        ]

    def effects_for_step(self, step: AttackStep, pool: Sequence[SpecialEffect]) -> List[SpecialEffect]:
        attribute = STEP_ATTRIBUTES[step]
        wanted = STEP_EFFECT_TYPES[step]
        result = []
        for effect in pool:
            if effect.type in (SpecialEffectType.REROLL, SpecialEffectType.AUTO_SUCCESS):
                if effect.attribute == attribute:
                    result.append(effect)
            elif effect.type in wanted:
                result.append(effect)
        return result

    # ========================================================================
    # FINAL VALUES
    # ========================================================================

    def compute_final_to_hit(self, base_to_hit: Union[int, str],
                             modifiers: StepModifiers) -> Union[int, str]:
        if self.has_auto_success(Attribute.HIT):
            return AUTO
        if self.context.is_overwatch:
            return OVERWATCH_TO_HIT
        if not _is_number(base_to_hit):
            # Variable skill is passed through unmodified
            return base_to_hit
        return clamp_roll_target(base_to_hit - modifiers.capped_total)

    @staticmethod
    def compute_final_to_wound(base_to_wound: int, modifiers: StepModifiers) -> int:
        return clamp_roll_target(base_to_wound - modifiers.capped_total)

    @staticmethod
    def compute_final_save(armour_save: int, invuln: Optional[int], ap: int,
                           modifiers: StepModifiers) -> Tuple[int, bool]:
        """Modified armour save, or the invulnerable save if strictly better"""
        # AP is negative, subtracting it worsens the save
        modified_armour = armour_save - ap + modifiers.capped_total
        if invuln is not None and invuln < modified_armour:
            return invuln, True
        return modified_armour, False

    def compute_critical_wound_threshold(self, weapon_effects: Sequence[SpecialEffect]
                                         ) -> Tuple[int, Optional[str]]:
        """ANTI-X lowers the critical wound threshold against units with keyword X"""
        threshold = DEFAULT_CRITICAL_THRESHOLD
        source = None
        defender_keywords = self.evaluator.keywords_for(Entity.TARGET_UNIT)

        for effect in weapon_effects:
            if effect.type != SpecialEffectType.ANTI_KEYWORD or not isinstance(effect.value, str):
                continue
            parsed = parse_anti_effect(effect.value)
            if parsed is None:
                continue
            keyword, anti_threshold = parsed
            if keyword in defender_keywords and anti_threshold < threshold:
                threshold = anti_threshold
                source = f"ANTI-{keyword} {anti_threshold}+"

        return threshold, source

    def compute_blast_bonus(self, weapon_effects: Sequence[SpecialEffect]) -> Optional[int]:
        """+1 attack per BLAST_MODELS_PER_ATTACK models in the target unit"""
        if not any(e.type == SpecialEffectType.BLAST for e in weapon_effects):
            return None
        return self.context.defender.model_count // BLAST_MODELS_PER_ATTACK

    @staticmethod
    def critical_effects(weapon_effects: Sequence[SpecialEffect]) -> List[CriticalEffect]:
        result = []
        seen = set()
        for effect in weapon_effects:
            name = CRITICAL_EFFECT_NAMES.get(effect.type)
            if name is None:
                continue
            value = effect.value if _is_number(effect.value) else None
            if effect.type == SpecialEffectType.SUSTAINED_HITS:
                name = f"{name} {effect.value}"
            if name in seen:
                continue
            seen.add(name)
            result.append(CriticalEffect(name=name, type=effect.type, value=value))
        return result

    # ========================================================================
    # ENTRY POINT
    # ========================================================================

    def resolve(self) -> CombatResolution:
        """Resolve the complete attack"""
        self.collected = MechanicCollector(self.context, self.registry).collect()
        self.evaluator = ConditionEvaluator(self.context, self.collected.granted_keywords)

        weapon = self.context.attacker.weapon_profile
        target = self.context.defender.target_model
        weapon_effects = list(self.collected.weapon_effects)

        effect_pool = (weapon_effects + list(self.collected.reroll_effects)
                       + self.auto_success_effects() + self.damage_effects())

        steps = {
            step: aggregate_step(step, self.mechanics, self.evaluator,
                                 self.effects_for_step(step, effect_pool))
            for step in AttackStep
        }

        base_to_wound = calculate_to_wound(weapon.strength, target.toughness)
        invuln = self.derive_invuln()
        fnp = self.derive_static_value(Attribute.FEEL_NO_PAIN)

        final_to_hit = self.compute_final_to_hit(weapon.bs_ws, steps[AttackStep.HIT_ROLL])
        final_to_wound = self.compute_final_to_wound(base_to_wound, steps[AttackStep.WOUND_ROLL])
        final_save, use_invuln = self.compute_final_save(
            target.save, invuln, weapon.ap, steps[AttackStep.SAVE_ROLL])
        critical_wound_threshold, critical_wound_source = self.compute_critical_wound_threshold(weapon_effects)

        logger.debug("%s (%s) vs %s: hit %s, wound %s, save %s%s",
                     self.context.attacker.unit.name, weapon.name, target.name,
                     final_to_hit, final_to_wound, final_save, " (invuln)" if use_invuln else "")

        return CombatResolution(
            base_attacks=weapon.attacks,
            base_to_hit=weapon.bs_ws,
            base_to_wound=base_to_wound,
            base_save=target.save,
            base_invuln=target.invuln_save,
            base_fnp=fnp,
            base_damage=weapon.damage,
            weapon_strength=weapon.strength,
            weapon_ap=weapon.ap,
            target_toughness=target.toughness,
            attacks_modifiers=steps[AttackStep.ATTACKS],
            hit_modifiers=steps[AttackStep.HIT_ROLL],
            wound_modifiers=steps[AttackStep.WOUND_ROLL],
            save_modifiers=steps[AttackStep.SAVE_ROLL],
            fnp_modifiers=steps[AttackStep.FEEL_NO_PAIN],
            damage_modifiers=steps[AttackStep.DAMAGE_ROLL],
            final_to_hit=final_to_hit,
            final_to_wound=final_to_wound,
            final_save=final_save,
            use_invuln=use_invuln,
            final_fnp=fnp,
            critical_hit_threshold=DEFAULT_CRITICAL_THRESHOLD,
            critical_wound_threshold=critical_wound_threshold,
            critical_wound_source=critical_wound_source,
            blast_bonus_per_model=self.compute_blast_bonus(weapon_effects),
            defender_model_count=self.context.defender.model_count,
            weapon_effects=tuple(weapon_effects),
            critical_effects=tuple(self.critical_effects(weapon_effects)),
            reroll_sources=self.collected.reroll_sources,
            weapon_count=self.context.attacker.weapon_count,
        )


def resolve_combat(context: CombatContext,
                   registry: Optional[CoreAbilityRegistry] = None) -> CombatResolution:
    """Convenience function to resolve combat"""
    return CombatEngine(context, registry).resolve()
