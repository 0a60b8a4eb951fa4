"""
Core Ability Registry
Resolves named core abilities (STEALTH, FEEL NO PAIN, ...) to their mechanics,
substituting the ability instance's parameter into parameterized templates
"""

import json
import logging
import re
from dataclasses import dataclass
from enum import Enum
from functools import lru_cache
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from mechanic_schema import Mechanic, MechanicValue, parse_mechanics

logger = logging.getLogger(__name__)

REGISTRY_FILE = "core_abilities.json"
PARAMETER_PLACEHOLDER = "{parameter}"
NUMERIC_PARAMETER = re.compile(r'^(\d+)\+?$')


class CoreAbilityType(str, Enum):
    STATIC = "static"  # Mechanics used as-is
    PARAMETERIZED = "parameterized"  # Mechanics carry a {parameter} placeholder


@dataclass(frozen=True)
class CoreAbilityDefinition:
    """Template mechanics for one core ability"""
    name: str
    type: CoreAbilityType
    mechanics: Tuple[Mechanic, ...] = ()


def normalize_ability_name(ability_name: str) -> str:
    return ability_name.upper().strip()


def parse_parameter_value(parameter: Union[int, str]) -> MechanicValue:
    """
    Coerce an ability parameter for substitution.

    "5" and "5+" become 5; dice tokens such as "D3" pass through unchanged.
    """
    if isinstance(parameter, int):
        return parameter
    text = str(parameter).strip()
    match = NUMERIC_PARAMETER.match(text)
    if match:
        return int(match.group(1))
    return text


def resolve_parameter_placeholder(mechanic: Mechanic,
                                  parameter: Optional[Union[int, str]]) -> Mechanic:
    """Return a copy of the mechanic with {parameter} replaced; the template is left untouched"""
    if mechanic.value == PARAMETER_PLACEHOLDER and parameter is not None:
        return mechanic.with_value(parse_parameter_value(parameter))
    return mechanic


class CoreAbilityRegistry:
    """Registry of core abilities keyed by uppercased name"""

    def __init__(self, base_path: Optional[Path] = None):
        if base_path is None:
            base_path = Path(__file__).parent

        self.base_path = Path(base_path)
        self.abilities = self._load_registry()

    def _load_registry(self) -> Dict[str, CoreAbilityDefinition]:
        """Load core ability definitions from JSON"""
        registry_file = self.base_path / REGISTRY_FILE
        if not registry_file.exists():
            raise FileNotFoundError(f"Core ability registry not found: {registry_file}")

        with open(registry_file, 'r', encoding='utf-8') as f:
            data = json.load(f)

        entries = data.get('abilities')
        if not isinstance(entries, dict):
            raise ValueError(f"Core ability registry {registry_file} has no 'abilities' mapping")

        abilities = {}
        for name, entry in entries.items():
            if not isinstance(entry, dict):
                logger.debug("Skipping core ability %s with malformed entry %r", name, entry)
                continue
            try:
                ability_type = CoreAbilityType(entry.get('type', 'static'))
            except ValueError:
                logger.debug("Skipping core ability %s with unknown type %r", name, entry.get('type'))
                continue

            key = normalize_ability_name(name)
            abilities[key] = CoreAbilityDefinition(
                name=key,
                type=ability_type,
                mechanics=parse_mechanics(entry.get('mechanics')),
            )

        logger.debug("Loaded %d core abilities from %s", len(abilities), registry_file)
        return abilities

    def get(self, ability_name: str) -> Optional[CoreAbilityDefinition]:
        return self.abilities.get(normalize_ability_name(ability_name))

    def is_core_ability(self, ability_name: str) -> bool:
        return normalize_ability_name(ability_name) in self.abilities

    def get_ability_type(self, ability_name: str) -> Optional[CoreAbilityType]:
        definition = self.get(ability_name)
        return definition.type if definition else None

    def resolve(self, ability_name: str,
                parameter: Optional[Union[int, str]] = None) -> List[Mechanic]:
        """
        Look up a core ability and resolve parameter placeholders.

        Unknown abilities resolve to no mechanics. A parameterized ability
        without a parameter also resolves to nothing, since its placeholder
        cannot be filled.
        """
        definition = self.get(ability_name)
        if definition is None or not definition.mechanics:
            return []

        if definition.type == CoreAbilityType.PARAMETERIZED and parameter in (None, '', 'none'):
            logger.debug("Core ability %s needs a parameter, none given", definition.name)
            return []

        return [resolve_parameter_placeholder(m, parameter) for m in definition.mechanics]


@lru_cache(maxsize=None)
def get_default_registry() -> CoreAbilityRegistry:
    """Registry loaded from the bundled core_abilities.json"""
    return CoreAbilityRegistry()


def resolve_core_ability_mechanics(ability_name: str,
                                   parameter: Optional[Union[int, str]] = None,
                                   registry: Optional[CoreAbilityRegistry] = None) -> List[Mechanic]:
    """Resolve a core ability against the given registry (default: bundled one)"""
    registry = registry or get_default_registry()
    return registry.resolve(ability_name, parameter)


def is_core_ability(ability_name: str) -> bool:
    return get_default_registry().is_core_ability(ability_name)
