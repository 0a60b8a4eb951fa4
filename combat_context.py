"""
Combat Context
Immutable battlefield snapshot for resolving one weapon profile against one target
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import FrozenSet, Optional, Sequence, Tuple, Union

from mechanic_schema import Mechanic, Phase


# ============================================================================
# ENUMS
# ============================================================================

class MovementBehaviour(str, Enum):
    """How a unit moved this turn"""
    HOLD = "hold"
    MOVE = "move"
    ADVANCE = "advance"
    FALL_BACK = "fallBack"


class UnitStrength(str, Enum):
    """Unit strength bracket relative to its starting strength"""
    FULL = "full"
    BELOW_STARTING = "belowStarting"
    BELOW_HALF = "belowHalf"


class AbilityType(str, Enum):
    """Where an ability is defined"""
    CORE = "Core"
    FACTION = "Faction"
    DATASHEET = "Datasheet"
    WARGEAR = "Wargear"


class CombatRole(str, Enum):
    """Which side of the combat interaction"""
    ATTACKER = "attacker"
    DEFENDER = "defender"


# ============================================================================
# PROFILES
# ============================================================================

@dataclass(frozen=True)
class ModelProfile:
    """Model characteristics"""
    name: str
    movement: int
    toughness: int
    save: int
    wounds: int
    leadership: int
    oc: int  # Objective Control
    invuln_save: Optional[int] = None


@dataclass(frozen=True)
class WeaponProfile:
    """One profile of a weapon"""
    name: str
    range: Union[int, str]  # In inches, or "Melee"
    attacks: Union[int, str]  # "D6", "2D6+3", etc.
    bs_ws: Union[int, str]
    strength: int
    ap: int
    damage: Union[int, str]
    attributes: Tuple[str, ...] = ()
    is_melee: bool = False


@dataclass(frozen=True)
class Ability:
    """A unit ability, optionally carrying authored mechanics"""
    name: str
    type: AbilityType = AbilityType.DATASHEET
    parameter: Optional[str] = None  # e.g. "5+" for FEEL NO PAIN 5+
    mechanics: Tuple[Mechanic, ...] = ()
    id: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class Enhancement:
    """Enhancement carried by a character"""
    name: str
    mechanics: Tuple[Mechanic, ...] = ()
    id: Optional[str] = None
    bearer_name: Optional[str] = None  # Leader source unit carrying it, if merged


@dataclass(frozen=True)
class DamagedProfile:
    """Mechanics that apply once the unit is in its damaged wound bracket"""
    threshold: int  # Upper bound of the bracket, e.g. 4 for "1-4"
    mechanics: Tuple[Mechanic, ...] = ()
    description: str = ""


@dataclass(frozen=True)
class ModelInstance:
    """A single model on the table"""
    instance_id: str
    source_unit_name: str


@dataclass(frozen=True)
class SourceUnit:
    """A unit merged into a combined unit (leader or bodyguard)"""
    name: str
    is_leader: bool = False
    abilities: Tuple[Ability, ...] = ()


# ============================================================================
# COMBAT STATE
# ============================================================================

@dataclass(frozen=True)
class CombatState:
    """Read-only combat status of a unit for one resolution"""
    model_count: int = 1
    current_wounds: int = 0
    movement_behaviour: MovementBehaviour = MovementBehaviour.MOVE
    is_battle_shocked: bool = False
    is_in_cover: bool = False
    is_in_engagement_range: bool = False
    has_charged: bool = False
    has_shot: bool = False
    has_fought: bool = False
    is_damaged: bool = False
    unit_strength: UnitStrength = UnitStrength.FULL
    dead_model_ids: FrozenSet[str] = frozenset()
    active_flags: FrozenSet[str] = frozenset()  # Faction-specific state names that are set


@dataclass(frozen=True)
class CombatUnit:
    """A unit taking part in the attack"""
    id: str
    name: str
    keywords: Tuple[str, ...] = ()
    abilities: Tuple[Ability, ...] = ()
    wargear_abilities: Tuple[Ability, ...] = ()
    models: Tuple[ModelProfile, ...] = ()
    model_instances: Tuple[ModelInstance, ...] = ()
    source_units: Tuple[SourceUnit, ...] = ()
    enhancement: Optional[Enhancement] = None
    damaged_profile: Optional[DamagedProfile] = None
    combat_state: Optional[CombatState] = None

    @property
    def leaders(self) -> Tuple[SourceUnit, ...]:
        return tuple(su for su in self.source_units if su.is_leader)

    @property
    def dead_model_ids(self) -> FrozenSet[str]:
        if self.combat_state is None:
            return frozenset()
        return self.combat_state.dead_model_ids

    def alive_instances(self, source_unit_name: Optional[str] = None) -> Tuple[ModelInstance, ...]:
        """Alive model instances, optionally only those from one source unit"""
        dead = self.dead_model_ids
        return tuple(
            m for m in self.model_instances
            if m.instance_id not in dead
            and (source_unit_name is None or m.source_unit_name == source_unit_name)
        )


# ============================================================================
# ARMY-LEVEL RULES
# ============================================================================

@dataclass(frozen=True)
class FactionAbility:
    """Army-wide faction rule (e.g. Oath of Moment)"""
    name: str
    mechanics: Tuple[Mechanic, ...] = ()
    id: Optional[str] = None


@dataclass(frozen=True)
class DetachmentRule:
    """Detachment rule shared by the whole army"""
    name: str
    mechanics: Tuple[Mechanic, ...] = ()


@dataclass(frozen=True)
class Force:
    """The army a unit belongs to"""
    name: str = ""
    faction_name: str = ""
    faction_abilities: Tuple[FactionAbility, ...] = ()
    detachment_name: str = ""
    detachment_rules: Tuple[DetachmentRule, ...] = ()


@dataclass(frozen=True)
class ActiveStratagem:
    """A stratagem in effect for this attack"""
    id: str
    name: str
    applies_to: CombatRole
    mechanics: Tuple[Mechanic, ...] = ()
    target_unit_id: Optional[str] = None
    phases: Tuple[Phase, ...] = ()

    def valid_in_phase(self, phase: Phase) -> bool:
        return not self.phases or phase in self.phases


# ============================================================================
# CONTEXT
# ============================================================================

@dataclass(frozen=True)
class AttackerSide:
    unit: CombatUnit
    weapon_profile: WeaponProfile
    weapon_count: int = 1  # Copies of this weapon on the model (multiplies attacks)
    model_count: int = 1
    force: Force = field(default_factory=Force)


@dataclass(frozen=True)
class DefenderSide:
    unit: CombatUnit
    target_model: ModelProfile
    model_count: int = 1
    force: Force = field(default_factory=Force)


@dataclass(frozen=True)
class CombatContext:
    """The complete game state for one combat resolution"""
    phase: Phase
    attacker: AttackerSide
    defender: DefenderSide
    active_stratagems: Tuple[ActiveStratagem, ...] = ()
    turn: int = 1
    is_player_turn: bool = True
    is_overwatch: bool = False


def calculate_alive_model_count(unit: CombatUnit) -> int:
    """Number of alive models in a unit"""
    if unit.combat_state is None:
        return 1
    total = unit.combat_state.model_count or 1
    return max(0, total - len(unit.combat_state.dead_model_ids))


def build_combat_context(phase: Phase,
                         attacker_unit: Optional[CombatUnit],
                         weapon_profile: Optional[WeaponProfile],
                         defender_unit: Optional[CombatUnit],
                         target_model: Optional[ModelProfile],
                         model_count: int = 1,
                         weapon_count: int = 1,
                         defender_model_count: Optional[int] = None,
                         attacker_force: Optional[Force] = None,
                         defender_force: Optional[Force] = None,
                         active_stratagems: Sequence[ActiveStratagem] = (),
                         turn: int = 1,
                         is_player_turn: bool = True,
                         is_overwatch: bool = False) -> Optional[CombatContext]:
    """
    Build a CombatContext from selection state.

    Returns None if the attacker unit, weapon profile, defender unit or
    target model is missing.
    """
    if attacker_unit is None or weapon_profile is None or defender_unit is None or target_model is None:
        return None

    if defender_model_count is None:
        defender_model_count = calculate_alive_model_count(defender_unit)

    return CombatContext(
        phase=phase,
        attacker=AttackerSide(
            unit=attacker_unit,
            weapon_profile=weapon_profile,
            weapon_count=weapon_count,
            model_count=model_count,
            force=attacker_force or Force(),
        ),
        defender=DefenderSide(
            unit=defender_unit,
            target_model=target_model,
            model_count=defender_model_count,
            force=defender_force or Force(),
        ),
        active_stratagems=tuple(active_stratagems),
        turn=turn,
        is_player_turn=is_player_turn,
        is_overwatch=is_overwatch,
    )
