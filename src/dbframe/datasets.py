"""
Small sample tables for trying out connections and lazy queries.

The flight tables follow the layout of the nycflights13 data set
(``airlines``, ``airports``, ``planes`` and ``flights``) at a size that
fits in a test. ``mpg_sample`` is a handful of rows of fuel economy data.

Example:
    >>> con = connect()
    >>> load_sample_tables(con)
    ['airlines', 'airports', 'flights', 'mpg_sample', 'planes']
    >>> con.tbl("flights").count("carrier", sort=True).collect()
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Dict, Iterable, List, Optional

import pandas as pd

from dbframe_base.errors import ValidationError
from dbframe_base.logging import get_logger

if TYPE_CHECKING:
    from .dbi.connection import Connection

logger = get_logger("dbframe.datasets")

NA = float("nan")

_AIRLINES = [
    ("9E", "Endeavor Air Inc."),
    ("AA", "American Airlines Inc."),
    ("B6", "JetBlue Airways"),
    ("DL", "Delta Air Lines Inc."),
    ("EV", "ExpressJet Airlines Inc."),
    ("UA", "United Air Lines Inc."),
    ("WN", "Southwest Airlines Co."),
]

_AIRPORTS = [
    ("ATL", "Hartsfield Jackson Atlanta Intl", 33.636719, -84.428067, 1026, -5),
    ("BOS", "General Edward Lawrence Logan Intl", 42.364347, -71.005181, 19, -5),
    ("DFW", "Dallas Fort Worth Intl", 32.896828, -97.037997, 607, -6),
    ("EWR", "Newark Liberty Intl", 40.692500, -74.168667, 18, -5),
    ("FLL", "Fort Lauderdale Hollywood Intl", 26.072583, -80.152750, 9, -5),
    ("IAD", "Washington Dulles Intl", 38.944533, -77.455811, 313, -5),
    ("IAH", "George Bush Intercontinental", 29.984433, -95.341442, 97, -6),
    ("JFK", "John F Kennedy Intl", 40.639751, -73.778925, 13, -5),
    ("LAX", "Los Angeles Intl", 33.942536, -118.408075, 126, -8),
    ("LGA", "La Guardia", 40.777245, -73.872608, 22, -5),
    ("MCO", "Orlando Intl", 28.429394, -81.308994, 96, -5),
    ("MIA", "Miami Intl", 25.793250, -80.290556, 8, -5),
    ("ORD", "Chicago Ohare Intl", 41.978603, -87.904842, 668, -6),
    ("PBI", "Palm Beach Intl", 26.683161, -80.095589, 19, -5),
    ("SFO", "San Francisco Intl", 37.618972, -122.374889, 13, -8),
    ("TPA", "Tampa Intl", 27.975472, -82.533250, 26, -5),
]

_PLANES = [
    ("N13538", 2002, "EMBRAER", "EMB-145LR", 2, 55),
    ("N14228", 1999, "BOEING", "737-824", 2, 149),
    ("N24211", 1998, "BOEING", "737-824", 2, 149),
    ("N29129", 2001, "BOEING", "757-224", 2, 178),
    ("N39463", 2012, "BOEING", "737-924ER", 2, 191),
    ("N516JB", 2000, "AIRBUS INDUSTRIE", "A320-232", 2, 200),
    ("N53441", 2009, "BOEING", "737-924ER", 2, 191),
    ("N593JB", 2004, "AIRBUS INDUSTRIE", "A320-232", 2, 200),
    ("N619AA", 1990, "BOEING", "757-223", 2, 178),
    ("N668DN", 1991, "BOEING", "757-232", 2, 178),
    ("N793JB", 2011, "AIRBUS", "A320-232", 2, 200),
    ("N804JB", 2005, "AIRBUS", "A320-232", 2, 200),
    ("N829AS", 2004, "CANADAIR", "CL-600-2B19", 2, 55),
    ("N971DL", 1991, "MCDONNELL DOUGLAS", "MD-88", 2, 142),
]

# month, day, hour, carrier, flight, tailnum, origin, dest,
# dep_delay, arr_delay, air_time, distance
_FLIGHTS = [
    (1, 1, 5, "UA", 1545, "N14228", "EWR", "IAH", 2, 11, 227, 1400),
    (1, 1, 5, "UA", 1714, "N24211", "LGA", "IAH", 4, 20, 227, 1416),
    (1, 1, 5, "AA", 1141, "N619AA", "JFK", "MIA", 2, 33, 160, 1089),
    (1, 1, 5, "B6", 725, "N804JB", "JFK", "BQN", -1, -18, 183, 1576),
    (1, 1, 6, "DL", 461, "N668DN", "LGA", "ATL", -6, -25, 116, 762),
    (1, 1, 5, "UA", 1696, "N39463", "EWR", "ORD", -4, 12, 150, 719),
    (1, 1, 6, "B6", 507, "N516JB", "EWR", "FLL", -5, 19, 158, 1065),
    (1, 1, 6, "EV", 5708, "N829AS", "LGA", "IAD", -3, -14, 53, 229),
    (1, 1, 6, "B6", 79, "N593JB", "JFK", "MCO", -3, -8, 140, 944),
    (1, 1, 6, "AA", 301, "N3ALAA", "LGA", "ORD", -2, 8, 138, 733),
    (1, 2, 6, "B6", 49, "N793JB", "JFK", "PBI", -2, -2, 149, 1028),
    (1, 2, 6, "B6", 71, None, "JFK", "TPA", -2, -3, 158, 1005),
    (1, 2, 6, "UA", 194, "N29129", "JFK", "LAX", -2, 7, 345, 2475),
    (1, 2, 6, "UA", 1124, "N53441", "EWR", "SFO", -1, -14, 361, 2565),
    (2, 1, 6, "AA", 707, "N3DUAA", "LGA", "DFW", NA, NA, NA, 1389),
    (2, 1, 6, "DL", 1806, "N971DL", "JFK", "BOS", 25, 30, 38, 187),
    (2, 1, 7, "EV", 4424, "N13538", "EWR", "IAD", NA, NA, NA, 212),
    (2, 1, 7, "DL", 2042, "N3739P", "JFK", "ATL", 60, 55, 113, 760),
]

_MPG = [
    ("audi", "a4", 1.8, 1999, 4, "auto(l5)", "f", 18, 29, "compact"),
    ("audi", "a4 quattro", 2.8, 1999, 6, "manual(m5)", "4", 17, 25, "compact"),
    ("chevrolet", "c1500 suburban 2wd", 5.3, 2008, 8, "auto(l4)", "r", 14, 20, "suv"),
    ("chevrolet", "corvette", 6.2, 2008, 8, "manual(m6)", "r", 16, 26, "2seater"),
    ("dodge", "caravan 2wd", 3.3, 2008, 6, "auto(l4)", "f", 17, 24, "minivan"),
    ("ford", "mustang", 4.6, 2008, 8, "manual(m5)", "r", 15, 22, "subcompact"),
    ("honda", "civic", 1.8, 2008, 4, "manual(m5)", "f", 26, 34, "subcompact"),
    ("toyota", "camry", 2.4, 2008, 4, "auto(l5)", "f", 21, 31, "midsize"),
    ("toyota", "corolla", 1.8, 2008, 4, "manual(m5)", "f", 28, 37, "compact"),
    ("volkswagen", "jetta", 2.0, 1999, 4, "auto(l4)", "f", 19, 26, "compact"),
]


def _flights() -> pd.DataFrame:
    df = pd.DataFrame(
        _FLIGHTS,
        columns=[
            "month",
            "day",
            "hour",
            "carrier",
            "flight",
            "tailnum",
            "origin",
            "dest",
            "dep_delay",
            "arr_delay",
            "air_time",
            "distance",
        ],
    )
    df.insert(0, "year", 2013)
    return df


def sample_frames() -> Dict[str, pd.DataFrame]:
    """Return the sample tables as fresh DataFrames, keyed by table name."""
    return {
        "airlines": pd.DataFrame(_AIRLINES, columns=["carrier", "name"]),
        "airports": pd.DataFrame(
            _AIRPORTS, columns=["faa", "name", "lat", "lon", "alt", "tz"]
        ),
        "flights": _flights(),
        "mpg_sample": pd.DataFrame(
            _MPG,
            columns=[
                "manufacturer",
                "model",
                "displ",
                "year",
                "cyl",
                "trans",
                "drv",
                "cty",
                "hwy",
                "class",
            ],
        ),
        "planes": pd.DataFrame(
            _PLANES,
            columns=["tailnum", "year", "manufacturer", "model", "engines", "seats"],
        ),
    }


def load_sample_tables(
    con: "Connection",
    tables: Optional[Iterable[str]] = None,
    overwrite: bool = False,
) -> List[str]:
    """
    Write sample tables to a connection.

    Args:
        con: Open, writable connection
        tables: Table names to write; all of them when omitted
        overwrite: Replace tables that already exist

    Returns:
        Names of the tables written, sorted

    Raises:
        ValidationError: If an unknown table name is requested
    """
    frames = sample_frames()
    names = sorted(frames) if tables is None else sorted(set(tables))
    unknown = [name for name in names if name not in frames]
    if unknown:
        raise ValidationError(
            f"Unknown sample tables: {', '.join(unknown)}",
            field="tables",
            suggestions=[f"Available: {', '.join(sorted(frames))}"],
        )

    for name in names:
        con.write_table(name, frames[name], overwrite=overwrite)
    logger.info(f"Loaded sample tables: {', '.join(names)}")
    return names
