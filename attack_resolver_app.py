"""
Warhammer 40k Attack Resolver - Streamlit UI
Pick an attacker, weapon, target and battlefield state and see every roll
target with the modifiers behind it
"""

import tempfile
from dataclasses import replace
from pathlib import Path
from typing import List, Optional, Tuple

import plotly.graph_objects as go
import streamlit as st

from combat_context import (
    CombatState, CombatUnit, Force, MovementBehaviour, UnitStrength, WeaponProfile,
    build_combat_context,
)
from combat_engine import resolve_combat
from mechanic_schema import Phase
from modifier_result import AttackStep
from resolution_report import (
    STEP_LABELS, modifier_table, pass_probability, summary_table, unsaved_wound_probability,
)
from roster_parser import Roster, parse_roster
from roster_to_combat import (
    attach_leader, convert_roster_force, convert_roster_to_combat_units, convert_roster_weapons,
    leader_candidates,
)


# Page config
st.set_page_config(
    page_title="40k Attack Resolver",
    page_icon="🎲",
    layout="wide",
    initial_sidebar_state="expanded"
)


@st.cache_data
def load_roster_from_file(file_path: str):
    """Load and convert roster file"""
    roster = parse_roster(file_path)
    units = convert_roster_to_combat_units(roster)
    weapons = {u.id: convert_roster_weapons(u) for u in roster.units}
    return roster, units, weapons


def upload_roster(label: str, key: str) -> Tuple[Optional[Roster], List[CombatUnit], dict]:
    """Roster uploader; returns (roster, units, weapons by unit id)"""
    roster_file = st.file_uploader(label, type=["json", "ros"], key=key)
    if roster_file is None:
        return None, [], {}

    # Save uploaded file temporarily and load it
    with tempfile.NamedTemporaryFile(delete=False, suffix='.json') as tmp_file:
        tmp_file.write(roster_file.getvalue())
        tmp_path = tmp_file.name

    try:
        roster, units, weapons = load_roster_from_file(tmp_path)
    except ValueError as e:
        st.error(f"Could not read roster: {e}")
        return None, [], {}
    finally:
        Path(tmp_path).unlink()

    st.success(f"✓ Loaded {len(units)} units from {roster.faction or 'roster'}")
    return roster, units, weapons


def state_controls(prefix: str, unit: CombatUnit, with_range: bool = False) -> CombatState:
    """Sidebar controls for one unit's combat state"""
    base = unit.combat_state or CombatState()
    movement = st.selectbox("Movement", list(MovementBehaviour),
                            index=list(MovementBehaviour).index(base.movement_behaviour),
                            format_func=lambda m: m.value, key=f"{prefix}_move")
    strength = st.selectbox("Unit strength", list(UnitStrength),
                            format_func=lambda s: s.value, key=f"{prefix}_strength")
    return CombatState(
        model_count=base.model_count,
        movement_behaviour=movement,
        unit_strength=strength,
        is_in_cover=st.checkbox("In cover", key=f"{prefix}_cover"),
        is_battle_shocked=st.checkbox("Battle-shocked", key=f"{prefix}_shocked"),
        is_in_engagement_range=st.checkbox("In engagement range", key=f"{prefix}_engaged"),
        has_charged=st.checkbox("Charged this turn", key=f"{prefix}_charged"),
        is_damaged=st.checkbox("Damaged (bracketed)", key=f"{prefix}_damaged"),
        active_flags=frozenset(
            ["inHalfRange"] if with_range and st.checkbox("Within half range", key=f"{prefix}_half") else []
        ),
    )


def leader_select(prefix: str, bodyguard: CombatUnit, units: List[CombatUnit]) -> CombatUnit:
    """Optionally attach a Leader from the same roster to the selected unit"""
    candidates = leader_candidates(units, bodyguard)
    if not candidates:
        return bodyguard
    leader = st.selectbox("Leader", [None] + candidates,
                          format_func=lambda u: "None" if u is None else u.name, key=f"{prefix}_leader")
    return attach_leader(bodyguard, leader) if leader is not None else bodyguard


def create_pass_chance_chart(resolution) -> go.Figure:
    """Bar chart of pass chance per roll"""
    steps = [AttackStep.HIT_ROLL, AttackStep.WOUND_ROLL, AttackStep.SAVE_ROLL]
    targets = [resolution.final_to_hit, resolution.final_to_wound, resolution.final_save]
    chances = [pass_probability(t) for t in targets]

    fig = go.Figure(data=[go.Bar(
        x=[STEP_LABELS[s] for s in steps],
        y=chances,
        marker_color=['steelblue', 'darkorange', 'seagreen'],
        text=[f"{100 * c:.0f}%" for c in chances],
        textposition='auto',
    )])
    fig.update_layout(
        title="Pass Chance per Roll",
        yaxis_title="Probability",
        yaxis=dict(range=[0, 1]),
        height=350,
    )
    return fig


def render_resolution(resolution):
    col1, col2, col3, col4 = st.columns(4)
    with col1:
        st.metric("To Hit", "Auto" if resolution.final_to_hit == "auto" else f"{resolution.final_to_hit}+",
                  resolution.hit_modifiers.capped_total or None)
    with col2:
        st.metric("To Wound", f"{resolution.final_to_wound}+",
                  resolution.wound_modifiers.capped_total or None)
    with col3:
        label = "Invulnerable Save" if resolution.use_invuln else "Save"
        st.metric(label, f"{resolution.final_save}+")
    with col4:
        st.metric("Feel No Pain", f"{resolution.final_fnp}+" if resolution.final_fnp else "-")

    st.metric("Unsaved wound chance per attack", f"{100 * unsaved_wound_probability(resolution):.1f}%")

    if resolution.blast_bonus_per_model is not None:
        st.info(f"BLAST: +{resolution.blast_bonus_per_model} attacks per model "
                f"({resolution.defender_model_count} models in target)")
    if resolution.critical_wound_source:
        st.info(f"Critical wounds on {resolution.critical_wound_threshold}+ "
                f"({resolution.critical_wound_source})")
    if resolution.critical_effects:
        st.write("**Critical effects:** " + ", ".join(c.name for c in resolution.critical_effects))

    st.subheader("Roll Targets")
    st.dataframe(summary_table(resolution), use_container_width=True, hide_index=True)

    st.subheader("Modifiers")
    modifiers_df = modifier_table(resolution)
    if modifiers_df.empty:
        st.write("No modifiers apply.")
    else:
        st.dataframe(modifiers_df, use_container_width=True, hide_index=True)

    st.plotly_chart(create_pass_chance_chart(resolution), use_container_width=True)


def main():
    st.title("🎲 40k Attack Resolver")
    st.markdown("*Roll targets for one weapon against one target, with every modifier attributed*")

    with st.sidebar:
        st.header("⚔️ Armies")

        st.subheader("Attacker")
        attacker_roster, attacker_units, attacker_weapons = upload_roster("Upload Roster (JSON)", "att_file")

        st.divider()

        st.subheader("Defender")
        defender_roster, defender_units, _ = upload_roster("Upload Roster (JSON)", "def_file")

        st.divider()

        phase = st.radio("Phase", [Phase.SHOOTING, Phase.FIGHT], format_func=lambda p: p.value.title())
        is_overwatch = st.checkbox("Overwatch", disabled=phase != Phase.SHOOTING)

    if not attacker_units or not defender_units:
        st.info("Upload an attacker and a defender roster to begin.")
        return

    col1, col2 = st.columns(2)
    with col1:
        st.subheader("Attacker")
        attacker = st.selectbox("Unit", attacker_units, format_func=lambda u: u.name, key="att_unit")
        attacker = leader_select("att", attacker, attacker_units)
        weapons: List[WeaponProfile] = [
            w for w in attacker_weapons.get(attacker.id, [])
            if w.is_melee == (phase == Phase.FIGHT)
        ]
        weapon = st.selectbox("Weapon", weapons, format_func=lambda w: w.name, key="att_weapon")
        model_count = st.number_input("Attacking models", min_value=1,
                                      value=attacker.combat_state.model_count, key="att_models")
        with st.expander("Attacker state"):
            attacker_state = state_controls("att", attacker)

    with col2:
        st.subheader("Defender")
        defender = st.selectbox("Unit", defender_units, format_func=lambda u: u.name, key="def_unit")
        defender = leader_select("def", defender, defender_units)
        target_model = st.selectbox("Target model", defender.models, format_func=lambda m: m.name,
                                    key="def_model")
        with st.expander("Defender state"):
            defender_state = state_controls("def", defender, with_range=True)

    context = build_combat_context(
        phase=phase,
        attacker_unit=replace(attacker, combat_state=attacker_state),
        weapon_profile=weapon,
        defender_unit=replace(defender, combat_state=defender_state),
        target_model=target_model,
        model_count=int(model_count),
        attacker_force=convert_roster_force(attacker_roster) if attacker_roster else Force(),
        defender_force=convert_roster_force(defender_roster) if defender_roster else Force(),
        is_overwatch=is_overwatch,
    )

    if context is None:
        st.warning("Select a weapon and a target model.")
        return

    st.divider()
    render_resolution(resolve_combat(context))


if __name__ == "__main__":
    main()
