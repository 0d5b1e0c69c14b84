"""
Static reference datasets consumed read-only by the import pipeline
"""

import pandas as pd
from typing import Dict, FrozenSet, Optional
from pathlib import Path
import logging

logger = logging.getLogger(__name__)


def load_identifier_list(path: Optional[str]) -> FrozenSet[str]:
    """
    Read a curated airport identifier list (one ident per line, '#' comments).

    A missing file yields an empty list; the pipeline then runs without the
    curated adjustments.
    """
    if not path:
        return frozenset()

    file_path = Path(path)
    if not file_path.exists():
        logger.warning(f"Identifier list not found: {file_path}")
        return frozenset()

    idents = set()
    with file_path.open(encoding="utf-8") as handle:
        for line in handle:
            ident = line.split("#", 1)[0].strip().upper()
            if ident:
                idents.add(ident)

    logger.info(f"Loaded {len(idents)} identifiers from {file_path.name}")
    return frozenset(idents)


def load_country_lookup(path: Optional[str]) -> Dict[str, str]:
    """
    Read the ident -> ISO country lookup from an OurAirports style CSV.

    Expects `ident` and `iso_country` columns, everything else is ignored.
    """
    if not path:
        return {}

    file_path = Path(path)
    if not file_path.exists():
        logger.info(f"Country lookup not found, airport countries stay empty: {file_path}")
        return {}

    df = pd.read_csv(file_path, dtype=str, keep_default_na=False)
    df.columns = df.columns.str.strip().str.lower().str.replace(' ', '_')

    if "ident" not in df.columns or "iso_country" not in df.columns:
        logger.warning(f"Country lookup {file_path} lacks ident/iso_country columns, ignored")
        return {}

    df = df[["ident", "iso_country"]]
    df = df[(df["ident"].str.len() > 0) & (df["iso_country"].str.len() == 2)]
    lookup = dict(zip(df["ident"].str.strip().str.upper(), df["iso_country"].str.strip().str.upper()))

    logger.info(f"Loaded {len(lookup)} airport countries from {file_path.name}")
    return lookup
