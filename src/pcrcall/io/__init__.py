"""pcrcall IO — rule configuration files, plate tables, result export."""

from pcrcall.io.plate_csv import parse_ct_cell, read_patients_csv, read_plate_csv
from pcrcall.io.results import RESULT_COLUMNS, results_to_frame, write_results_csv
from pcrcall.io.serialization import (
    config_from_dict,
    config_from_yaml,
    config_to_dict,
    config_to_yaml,
    default_configuration,
)

__all__ = [
    "RESULT_COLUMNS",
    "config_from_dict",
    "config_from_yaml",
    "config_to_dict",
    "config_to_yaml",
    "default_configuration",
    "parse_ct_cell",
    "read_patients_csv",
    "read_plate_csv",
    "results_to_frame",
    "write_results_csv",
]
