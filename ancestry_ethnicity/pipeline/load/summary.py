"""
SUMMARY TABLES

Frequency tables of ethnicity labels, with a small-cell flag for the
suppression review that usually precedes collapsing.
"""

import pandas as pd


# CONFIGURATION
MIN_CELL_SIZE = 5


def ethnicity_frequency_table(
    df: pd.DataFrame,
    column: str = "ethnicity",
    min_cell_size: int = MIN_CELL_SIZE,
) -> pd.DataFrame:
    """
    Count records per category.

    Missing labels are counted under "(missing)" rather than dropped, so the
    counts always add up to len(df).

    Args:
        df (pd.DataFrame): Labelled data
        column (str): Category column to tabulate
        min_cell_size (int): Counts below this are flagged as small cells

    Returns:
        pd.DataFrame: Columns [column, 'count', 'percent', 'small_cell'],
            sorted by descending count then category
    """
    values = df[column].astype(object).where(df[column].notna(), "(missing)")

    table = (
        values.value_counts()
        .rename_axis(column)
        .reset_index(name="count")
        .sort_values(["count", column], ascending=[False, True], kind="mergesort")
        .reset_index(drop=True)
    )

    total = len(df)
    table["percent"] = (table["count"] / total * 100).round(1) if total else 0.0
    table["small_cell"] = table["count"] < min_cell_size

    return table


def small_cells(table: pd.DataFrame, column: str = "ethnicity"):
    """Categories flagged as small cells in a frequency table."""
    return table.loc[table["small_cell"], column].tolist()
