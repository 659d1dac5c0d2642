"""
Extension points of the runner.

Currency-restricted market projection is a capability that is not part of
this package. The runner talks to it through ``MarketProjection``; the
default ``UnavailableProjection`` fails fast with a descriptive error so a
requested currency filter is never silently ignored.

Engine builders are auxiliary pricing components supplied by the caller.
The runner resets them when a run is prepared.
"""

from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Protocol

from xva_cube.config.models import CrossAssetModelConfig
from xva_cube.errors import UnsupportedOperationError
from xva_cube.model.cross_asset import CrossAssetModel
from xva_cube.scenario.generator import ScenarioGenerator


class MarketProjection(ABC):
    """Projection of the simulation onto a subset of currencies."""

    #: Whether ``XvaRunner.prepare`` may be given a currency filter
    supports_currency_filter: bool = False

    @abstractmethod
    def project_sim_market_parameters(
        self, config: CrossAssetModelConfig, currencies: Sequence[str]
    ) -> CrossAssetModelConfig:
        """Model parameters restricted to ``currencies``."""

    @abstractmethod
    def projected_scenario_generator(
        self, generator: ScenarioGenerator, projected_model: CrossAssetModel
    ) -> ScenarioGenerator:
        """
        Scenario generator of the projected model.

        Parameters
        ----------
        generator : ScenarioGenerator
            Generator of the full, uncalibrated model
        projected_model : CrossAssetModel
            Model built from the projected parameters
        """


class UnavailableProjection(MarketProjection):
    """Default projection: every call raises ``UnsupportedOperationError``."""

    def project_sim_market_parameters(
        self, config: CrossAssetModelConfig, currencies: Sequence[str]
    ) -> CrossAssetModelConfig:
        raise UnsupportedOperationError(
            "currency-restricted market projection is only available in an extended edition"
        )

    def projected_scenario_generator(
        self, generator: ScenarioGenerator, projected_model: CrossAssetModel
    ) -> ScenarioGenerator:
        raise UnsupportedOperationError(
            "currency-filtered scenario generation is only available in an extended edition"
        )


class EngineBuilder(Protocol):
    """Auxiliary pricing component with cached state."""

    def reset(self) -> None: ...


@dataclass
class RunnerExtensions:
    """
    Optional capabilities handed to ``XvaRunner``.

    Attributes
    ----------
    projection : MarketProjection
        Currency projection capability
    engine_builders : list[EngineBuilder]
        Components reset by ``XvaRunner.prepare``
    """

    projection: MarketProjection = field(default_factory=UnavailableProjection)
    engine_builders: list[EngineBuilder] = field(default_factory=list)
