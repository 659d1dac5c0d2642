"""
Exception hierarchy and failure records for the exposure simulation pipeline.

Every error raised deliberately by the package derives from ``XvaError``.
Several classes also derive from the builtin exception a caller would
naturally catch (``ValueError`` for configuration problems, ``KeyError`` for
unknown ids), so that generic handlers keep working.

Failures that are tolerated under ``continue_on_error`` are not raised but
recorded as ``BuildFailure`` / ``PathFailure`` tuples.
"""

from typing import NamedTuple


class XvaError(Exception):
    """Base class for all errors raised by xva_cube."""


class ConfigurationError(XvaError, ValueError):
    """Inconsistent dimensions, parameters or run configuration."""


class UnknownTradeError(XvaError, KeyError):
    """A trade id requested in a filter is not part of the portfolio."""

    def __init__(self, trade_id: str) -> None:
        self.trade_id = trade_id
        super().__init__(
            f"portfolio does not contain trade with id '{trade_id}' "
            "specified in the filter"
        )

    def __str__(self) -> str:
        # KeyError would repr() the message
        return str(self.args[0])


class UnsupportedOperationError(XvaError, NotImplementedError):
    """A restricted capability was invoked without an implementation."""


class ModelCalibrationError(XvaError):
    """The stochastic model could not be calibrated to today's market."""


class PreconditionError(XvaError, RuntimeError):
    """An operation was called before the stage producing its input ran."""


class TradeBuildError(XvaError):
    """A trade could not be attached to a market."""

    def __init__(self, trade_id: str, cause: str) -> None:
        self.trade_id = trade_id
        self.cause = cause
        super().__init__(f"failed to build trade '{trade_id}': {cause}")


class ValuationError(XvaError):
    """Pricing a trade failed at one (date, sample) cell."""

    def __init__(
        self,
        trade_id: str,
        date_index: int | None,
        sample: int | None,
        cause: str,
    ) -> None:
        self.trade_id = trade_id
        self.date_index = date_index
        self.sample = sample
        self.cause = cause
        where = "T0" if date_index is None else f"date {date_index}, sample {sample}"
        super().__init__(f"failed to value trade '{trade_id}' at {where}: {cause}")


class BuildFailure(NamedTuple):
    """A trade excluded from a run because it failed to build."""

    trade_id: str
    cause: str


class PathFailure(NamedTuple):
    """A pricing failure tolerated during the valuation loop.

    ``date_index`` and ``sample`` are ``None`` for the T0 valuation.
    """

    trade_id: str
    date_index: int | None
    sample: int | None
    cause: str
