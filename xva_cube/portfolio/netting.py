"""
Netting set definitions.

A netting set is a group of trades that can be netted in case of
counterparty default under a master agreement (e.g., ISDA). The
definition carries the counterparty and the terms of the credit support
annex (CSA) used by collateral modelling in post-processing.
"""

from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from typing import Any


@dataclass(frozen=True)
class NettingSetDefinition:
    """
    Netting agreement with one counterparty.

    Attributes
    ----------
    id : str
        Netting set id referenced by trade envelopes
    counterparty : str
        Counterparty name
    active_csa : bool
        Whether variation margin is exchanged
    threshold : float
        Exposure level below which no collateral is called
    mta : float
        Minimum transfer amount
    independent_amount : float
        Collateral held independently of exposure (posted if negative)
    mpor_days : int
        Margin period of risk in calendar days

    Example
    -------
    >>> ns = NettingSetDefinition("NS_A", "CPTY_A", active_csa=True, threshold=1e6, mta=1e5)
    """

    id: str
    counterparty: str
    active_csa: bool = False
    threshold: float = 0.0
    mta: float = 0.0
    independent_amount: float = 0.0
    mpor_days: int = 14

    def __post_init__(self) -> None:
        if self.threshold < 0:
            raise ValueError(f"Threshold must be non-negative, got {self.threshold}")
        if self.mta < 0:
            raise ValueError(f"MTA must be non-negative, got {self.mta}")

    @classmethod
    def from_config(cls, config: "NettingSetConfig") -> "NettingSetDefinition":  # noqa: F821
        return cls(
            id=config.id,
            counterparty=config.counterparty,
            active_csa=config.active_csa,
            threshold=config.threshold,
            mta=config.mta,
            independent_amount=config.independent_amount,
            mpor_days=config.mpor_days,
        )


class NettingSetManager:
    """
    Netting set definitions keyed by id.

    Parameters
    ----------
    definitions : Iterable[NettingSetDefinition]
        Initial definitions; ids must be unique
    """

    def __init__(self, definitions: Iterable[NettingSetDefinition] = ()) -> None:
        self._definitions: dict[str, NettingSetDefinition] = {}
        for definition in definitions:
            self.add(definition)

    def add(self, definition: NettingSetDefinition) -> None:
        if definition.id in self._definitions:
            raise ValueError(f"Duplicate netting set id '{definition.id}'")
        self._definitions[definition.id] = definition

    def has(self, netting_set_id: str) -> bool:
        return netting_set_id in self._definitions

    def get(self, netting_set_id: str) -> NettingSetDefinition:
        try:
            return self._definitions[netting_set_id]
        except KeyError:
            raise KeyError(f"No netting set definition for '{netting_set_id}'") from None

    def get_or_default(self, netting_set_id: str, counterparty: str = "") -> NettingSetDefinition:
        """Definition, or an uncollateralised one when none is configured."""
        if netting_set_id in self._definitions:
            return self._definitions[netting_set_id]
        return NettingSetDefinition(netting_set_id, counterparty or netting_set_id)

    @property
    def ids(self) -> list[str]:
        return sorted(self._definitions)

    def __len__(self) -> int:
        return len(self._definitions)

    def __iter__(self) -> Iterator[NettingSetDefinition]:
        return iter(self._definitions.values())

    @classmethod
    def from_configs(
        cls, configs: Iterable["NettingSetConfig | Mapping[str, Any]"]  # noqa: F821
    ) -> "NettingSetManager":
        """Create definitions from validated configs or plain mappings."""
        from xva_cube.config.models import NettingSetConfig

        definitions = []
        for config in configs:
            if not isinstance(config, NettingSetConfig):
                config = NettingSetConfig(**config)
            definitions.append(NettingSetDefinition.from_config(config))
        return cls(definitions)
