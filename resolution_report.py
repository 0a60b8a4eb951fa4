"""
Resolution Report
Tabulates a CombatResolution with pandas and computes per-step pass
chances with numpy. Targets only; no dice are rolled.
"""

from typing import Optional, Union

import numpy as np
import pandas as pd

from combat_engine import AUTO
from modifier_result import AttackStep, CombatResolution

STEP_LABELS = {
    AttackStep.ATTACKS: 'Attacks',
    AttackStep.HIT_ROLL: 'Hit',
    AttackStep.WOUND_ROLL: 'Wound',
    AttackStep.SAVE_ROLL: 'Save',
    AttackStep.FEEL_NO_PAIN: 'Feel No Pain',
    AttackStep.DAMAGE_ROLL: 'Damage',
}


def pass_probability(target: Optional[Union[int, str]]) -> float:
    """
    Chance a D6 meets a roll target: (7 - target) / 6, 1.0 for auto, NaN if unknown.

    An unmodified 1 always fails, so the chance never exceeds 5/6.
    """
    if target == AUTO:
        return 1.0
    if target is None or isinstance(target, str):
        return float('nan')
    return float(np.clip((7 - target) / 6, 0.0, 5 / 6))


def modifier_table(resolution: CombatResolution) -> pd.DataFrame:
    """One row per attributed modifier across all steps"""
    rows = []
    for step in AttackStep:
        modifiers = resolution.step(step)
        for kind, display in (('Bonus', modifiers.display_bonuses), ('Penalty', modifiers.display_penalties)):
            for item in display:
                rows.append({
                    'Step': STEP_LABELS[step],
                    'Type': kind,
                    'Source': item.label,
                    'Value': item.value,
                    'Leader': item.leader_name or '',
                })
    return pd.DataFrame(rows, columns=['Step', 'Type', 'Source', 'Value', 'Leader'])


def _format_target(target) -> str:
    if target is None:
        return '-'
    if target == AUTO:
        return 'Auto'
    if isinstance(target, str):
        return target
    return f"{target}+"


def summary_table(resolution: CombatResolution) -> pd.DataFrame:
    """Base target, net modifier, final target and pass chance for each roll"""
    save_note = 'invulnerable' if resolution.use_invuln else f"AP {resolution.weapon_ap}"
    rows = [
        (AttackStep.HIT_ROLL, resolution.base_to_hit, resolution.final_to_hit,
         f"crit {resolution.critical_hit_threshold}+"),
        (AttackStep.WOUND_ROLL, resolution.base_to_wound, resolution.final_to_wound,
         f"S{resolution.weapon_strength} vs T{resolution.target_toughness}, "
         f"crit {resolution.critical_wound_threshold}+"),
        (AttackStep.SAVE_ROLL, resolution.base_save, resolution.final_save, save_note),
        (AttackStep.FEEL_NO_PAIN, resolution.base_fnp, resolution.final_fnp, ''),
    ]

    data = []
    for step, base, final, note in rows:
        modifiers = resolution.step(step)
        data.append({
            'Step': STEP_LABELS[step],
            'Base': _format_target(base),
            'Modifier': modifiers.capped_total,
            'Capped': modifiers.is_capped,
            'Final': _format_target(final),
            'Pass Chance': pass_probability(final),
            'Notes': note,
        })
    return pd.DataFrame(data)


def unsaved_wound_probability(resolution: CombatResolution) -> float:
    """Chance one attack hits, wounds and is not saved (criticals ignored)"""
    chances = np.array([
        pass_probability(resolution.final_to_hit),
        pass_probability(resolution.final_to_wound),
        1.0 - pass_probability(resolution.final_save),
    ])
    return float(np.prod(chances))
