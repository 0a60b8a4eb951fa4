"""
Modifier Results
Output records of a combat resolution: per-step modifier breakdowns and final targets
"""

from dataclasses import dataclass
from enum import Enum
from typing import Dict, Optional, Tuple, Union

from effect_source import EffectSource
from mechanic_schema import Attribute


class AttackStep(str, Enum):
    """Attack resolution steps where modifiers apply"""
    ATTACKS = "attacks"
    HIT_ROLL = "hitRoll"
    WOUND_ROLL = "woundRoll"
    SAVE_ROLL = "saveRoll"
    FEEL_NO_PAIN = "feelNoPain"
    DAMAGE_ROLL = "damageRoll"


STEP_ATTRIBUTES: Dict[AttackStep, Attribute] = {
    AttackStep.ATTACKS: Attribute.ATTACKS,
    AttackStep.HIT_ROLL: Attribute.HIT,
    AttackStep.WOUND_ROLL: Attribute.WOUND,
    AttackStep.SAVE_ROLL: Attribute.SAVE,
    AttackStep.FEEL_NO_PAIN: Attribute.FEEL_NO_PAIN,
    AttackStep.DAMAGE_ROLL: Attribute.DAMAGE,
}

CAPPED_STEPS = (AttackStep.HIT_ROLL, AttackStep.WOUND_ROLL)


class SpecialEffectType(str, Enum):
    """Special effects that aren't simple numeric modifiers"""
    AUTO_SUCCESS = "autoSuccess"
    REROLL = "reroll"
    LETHAL_HITS = "lethalHits"
    SUSTAINED_HITS = "sustainedHits"
    DEVASTATING_WOUNDS = "devastatingWounds"
    IGNORES_COVER = "ignoresCover"
    PRECISION = "precision"
    LANCE = "lance"
    ASSAULT = "assault"
    HEAVY = "heavy"
    TORRENT = "torrent"
    RAPID_FIRE = "rapidFire"
    MELTA = "melta"
    HAZARDOUS = "hazardous"
    BLAST = "blast"
    INDIRECT = "indirect"
    ANTI_KEYWORD = "antiKeyword"
    HALVE_DAMAGE = "halveDamage"
    MIN_DAMAGE = "minDamage"


EffectValue = Union[bool, int, float, str]


@dataclass(frozen=True)
class SpecialEffect:
    """A named, non-numeric qualifier with its source"""
    type: SpecialEffectType
    source: EffectSource
    value: EffectValue = True
    attribute: Optional[Attribute] = None  # Roll the effect is keyed to (rerolls, auto-success)

    def to_dict(self) -> Dict:
        data = {'type': self.type.value, 'value': self.value, 'source': self.source.to_dict()}
        if self.attribute:
            data['attribute'] = self.attribute.value
        return data


@dataclass(frozen=True)
class AttributedModifier:
    """Individual modifier with source attribution"""
    value: float
    source: EffectSource
    description: str = ""


@dataclass(frozen=True)
class DisplayModifier:
    """Display-ready modifier"""
    label: str
    value: float
    leader_name: Optional[str] = None
    is_from_leader: bool = False

    def to_dict(self) -> Dict:
        data = {'label': self.label, 'value': self.value}
        if self.is_from_leader:
            data['leaderName'] = self.leader_name
            data['isFromLeader'] = True
        return data


@dataclass(frozen=True)
class StepModifiers:
    """Aggregated modifiers for a single attack step"""
    step: AttackStep
    bonuses: Tuple[AttributedModifier, ...] = ()
    penalties: Tuple[AttributedModifier, ...] = ()
    raw_total: float = 0
    capped_total: float = 0
    is_capped: bool = False
    special_effects: Tuple[SpecialEffect, ...] = ()
    display_bonuses: Tuple[DisplayModifier, ...] = ()
    display_penalties: Tuple[DisplayModifier, ...] = ()

    def to_dict(self) -> Dict:
        return {
            'step': self.step.value,
            'rawTotal': self.raw_total,
            'cappedTotal': self.capped_total,
            'isCapped': self.is_capped,
            'specialEffects': [e.to_dict() for e in self.special_effects],
            'forDisplay': {
                'bonuses': [m.to_dict() for m in self.display_bonuses],
                'penalties': [m.to_dict() for m in self.display_penalties],
            },
        }


@dataclass(frozen=True)
class CriticalEffect:
    """Critical qualifier shown on an attack step"""
    name: str  # "LETHAL HITS", "SUSTAINED HITS 2", ...
    type: SpecialEffectType
    value: Optional[int] = None


@dataclass(frozen=True)
class CombatResolution:
    """Complete combat resolution output"""
    # Base values from weapon/model stats
    base_attacks: Union[int, str]
    base_to_hit: Union[int, str]
    base_to_wound: int
    base_save: int
    base_invuln: Optional[int]
    base_fnp: Optional[int]
    base_damage: Union[int, str]

    # Weapon stats for display
    weapon_strength: int
    weapon_ap: int
    target_toughness: int

    # Modifiers for each step
    attacks_modifiers: StepModifiers
    hit_modifiers: StepModifiers
    wound_modifiers: StepModifiers
    save_modifiers: StepModifiers
    fnp_modifiers: StepModifiers
    damage_modifiers: StepModifiers

    # Final computed values
    final_to_hit: Union[int, str]  # int or "auto"
    final_to_wound: int
    final_save: int
    use_invuln: bool
    final_fnp: Optional[int]

    # Critical thresholds
    critical_hit_threshold: int
    critical_wound_threshold: int
    critical_wound_source: Optional[str]

    # BLAST bonus attacks per attacking model
    blast_bonus_per_model: Optional[int]
    defender_model_count: int

    weapon_effects: Tuple[SpecialEffect, ...] = ()
    critical_effects: Tuple[CriticalEffect, ...] = ()
    reroll_sources: Tuple[Tuple[Attribute, EffectSource], ...] = ()
    weapon_count: int = 1

    def step(self, step: AttackStep) -> StepModifiers:
        return {
            AttackStep.ATTACKS: self.attacks_modifiers,
            AttackStep.HIT_ROLL: self.hit_modifiers,
            AttackStep.WOUND_ROLL: self.wound_modifiers,
            AttackStep.SAVE_ROLL: self.save_modifiers,
            AttackStep.FEEL_NO_PAIN: self.fnp_modifiers,
            AttackStep.DAMAGE_ROLL: self.damage_modifiers,
        }[step]

    def reroll_source_for(self, attribute: Attribute) -> Optional[EffectSource]:
        """Source that grants a reroll for a roll, if any"""
        for reroll_attribute, source in self.reroll_sources:
            if reroll_attribute == attribute:
                return source
        return None

    def to_dict(self) -> Dict:
        """camelCase output contract for presentation layers"""
        return {
            'baseAttacks': self.base_attacks,
            'baseToHit': self.base_to_hit,
            'baseToWound': self.base_to_wound,
            'baseSave': self.base_save,
            'baseInvuln': self.base_invuln,
            'baseFnp': self.base_fnp,
            'baseDamage': self.base_damage,
            'weaponStrength': self.weapon_strength,
            'weaponAp': self.weapon_ap,
            'targetToughness': self.target_toughness,
            'attacksModifiers': self.attacks_modifiers.to_dict(),
            'hitModifiers': self.hit_modifiers.to_dict(),
            'woundModifiers': self.wound_modifiers.to_dict(),
            'saveModifiers': self.save_modifiers.to_dict(),
            'fnpModifiers': self.fnp_modifiers.to_dict(),
            'damageModifiers': self.damage_modifiers.to_dict(),
            'finalToHit': self.final_to_hit,
            'finalToWound': self.final_to_wound,
            'finalSave': self.final_save,
            'useInvuln': self.use_invuln,
            'finalFnp': self.final_fnp,
            'criticalHitThreshold': self.critical_hit_threshold,
            'criticalWoundThreshold': self.critical_wound_threshold,
            'criticalWoundSource': self.critical_wound_source,
            'blastBonusPerModel': self.blast_bonus_per_model,
            'defenderModelCount': self.defender_model_count,
            'weaponEffects': [e.to_dict() for e in self.weapon_effects],
            'criticalEffects': [
                {'name': c.name, 'type': c.type.value, 'value': c.value}
                for c in self.critical_effects
            ],
            'rerollSources': {attr.value: source.to_dict() for attr, source in self.reroll_sources},
        }
