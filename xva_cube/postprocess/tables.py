"""
Report tables.

Creates the pandas DataFrames of the post-processing report set.
"""

from collections.abc import Mapping
from dataclasses import dataclass, field

import numpy as np
import pandas as pd

from xva_cube.dim.regression import DIM_EVOLUTION_COLUMNS
from xva_cube.postprocess.collateral import CollateralResult
from xva_cube.postprocess.exposure import ExposureProfile
from xva_cube.postprocess.xva import XVAResult

XVA_COLUMNS = ["NettingSet", "Counterparty", "CVA", "DVA", "FVA", "MVA", "KVA", "Total", "EEPE"]
EXPOSURE_COLUMNS = ["Date", "Time", "EPE", "ENE", "EE", "PFE"]
CVA_SENSITIVITY_COLUMNS = ["NettingSet", "Counterparty", "CVA", "BumpedCVA", "Sensitivity1bp"]


@dataclass
class XvaReports:
    """
    Report set of a post-processing run.

    Attributes
    ----------
    xva : pd.DataFrame
        Adjustments per netting set, with an ``ALL`` total row
    exposure_nettingset : pd.DataFrame
        Exposure profile per netting set and date
    exposure_trade : pd.DataFrame
        Exposure profile per trade and date
    dim_evolution : pd.DataFrame
        Initial margin per netting set and date
    cva_sensitivity : pd.DataFrame
        CVA change for a 1bp hazard rate bump per netting set
    """

    xva: pd.DataFrame
    exposure_nettingset: pd.DataFrame
    exposure_trade: pd.DataFrame
    dim_evolution: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=DIM_EVOLUTION_COLUMNS)
    )
    cva_sensitivity: pd.DataFrame = field(
        default_factory=lambda: pd.DataFrame(columns=CVA_SENSITIVITY_COLUMNS)
    )

    def to_dict(self) -> dict[str, pd.DataFrame]:
        return {
            "xva": self.xva,
            "exposure_nettingset": self.exposure_nettingset,
            "exposure_trade": self.exposure_trade,
            "dim_evolution": self.dim_evolution,
            "cva_sensitivity": self.cva_sensitivity,
        }


def create_xva_table(
    results: Mapping[str, XVAResult],
    counterparties: Mapping[str, str],
    eepe: Mapping[str, float],
) -> pd.DataFrame:
    """
    Create the xVA breakdown table.

    Parameters
    ----------
    results : Mapping[str, XVAResult]
        Adjustments per netting set
    counterparties : Mapping[str, str]
        Counterparty per netting set
    eepe : Mapping[str, float]
        Effective EPE per netting set

    Returns
    -------
    pd.DataFrame
        One row per netting set and a final ``ALL`` row
    """
    rows = []
    total = XVAResult()
    for ns_id, result in results.items():
        total = total + result
        rows.append(
            {
                "NettingSet": ns_id,
                "Counterparty": counterparties.get(ns_id, ""),
                "CVA": result.cva,
                "DVA": result.dva,
                "FVA": result.fva,
                "MVA": result.mva,
                "KVA": result.kva,
                "Total": result.total,
                "EEPE": eepe.get(ns_id, 0.0),
            }
        )
    rows.append(
        {
            "NettingSet": "ALL",
            "Counterparty": "",
            "CVA": total.cva,
            "DVA": total.dva,
            "FVA": total.fva,
            "MVA": total.mva,
            "KVA": total.kva,
            "Total": total.total,
            "EEPE": float(sum(eepe.values())),
        }
    )
    return pd.DataFrame(rows, columns=XVA_COLUMNS)


def _profile_rows(profile: ExposureProfile) -> dict[str, object]:
    return {
        "Date": list(profile.dates),
        "Time": profile.times,
        "EPE": profile.epe,
        "ENE": profile.ene,
        "EE": profile.ee,
        "PFE": profile.pfe,
    }


def create_exposure_nettingset_table(
    profiles: Mapping[str, ExposureProfile],
    collateral: Mapping[str, CollateralResult] | None = None,
    collateralised: Mapping[str, ExposureProfile] | None = None,
    dim: Mapping[str, np.ndarray] | None = None,
) -> pd.DataFrame:
    """
    Create the netting-set exposure time series table.

    Parameters
    ----------
    profiles : Mapping[str, ExposureProfile]
        Uncollateralised profile per netting set
    collateral : Mapping[str, CollateralResult] | None
        Collateral per netting set
    collateralised : Mapping[str, ExposureProfile] | None
        Profile net of collateral and initial margin
    dim : Mapping[str, np.ndarray] | None
        Expected initial margin per netting set and date

    Returns
    -------
    pd.DataFrame
        One row per (netting set, date)
    """
    frames = []
    for ns_id, profile in profiles.items():
        data = {"NettingSet": ns_id, **_profile_rows(profile)}
        if collateralised is not None:
            data["CollateralisedEPE"] = collateralised[ns_id].epe
            data["CollateralisedENE"] = collateralised[ns_id].ene
        if collateral is not None:
            data["ExpectedCollateral"] = collateral[ns_id].expected_collateral
        if dim is not None and ns_id in dim:
            data["ExpectedDIM"] = dim[ns_id]
        frames.append(pd.DataFrame(data))
    if not frames:
        return pd.DataFrame(columns=["NettingSet", *EXPOSURE_COLUMNS])
    return pd.concat(frames, ignore_index=True)


def create_exposure_trade_table(
    profiles: Mapping[str, ExposureProfile],
    netting_sets: Mapping[str, str],
) -> pd.DataFrame:
    """
    Create the trade exposure time series table.

    Parameters
    ----------
    profiles : Mapping[str, ExposureProfile]
        Profile per trade id
    netting_sets : Mapping[str, str]
        Netting set per trade id
    """
    frames = [
        pd.DataFrame(
            {"TradeId": trade_id, "NettingSet": netting_sets[trade_id], **_profile_rows(profile)}
        )
        for trade_id, profile in profiles.items()
    ]
    if not frames:
        return pd.DataFrame(columns=["TradeId", "NettingSet", *EXPOSURE_COLUMNS])
    return pd.concat(frames, ignore_index=True)


def create_cva_sensitivity_table(
    sensitivities: Mapping[str, tuple[float, float, float]],
    counterparties: Mapping[str, str],
) -> pd.DataFrame:
    """
    Create the CVA spread sensitivity table.

    Parameters
    ----------
    sensitivities : Mapping[str, tuple[float, float, float]]
        (CVA, bumped CVA, change per 1bp) per netting set
    counterparties : Mapping[str, str]
        Counterparty per netting set
    """
    rows = [
        {
            "NettingSet": ns_id,
            "Counterparty": counterparties.get(ns_id, ""),
            "CVA": cva,
            "BumpedCVA": bumped,
            "Sensitivity1bp": delta,
        }
        for ns_id, (cva, bumped, delta) in sensitivities.items()
    ]
    return pd.DataFrame(rows, columns=CVA_SENSITIVITY_COLUMNS)
