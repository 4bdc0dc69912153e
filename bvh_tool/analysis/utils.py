"""
Utilities Module
Common helper functions for file I/O, data conversion, and joint-position cleanup.
"""

import csv
import json
import os

import numpy as np

# ============================================================================
# File I/O Utilities
# ============================================================================


def ensure_output_dir(filepath):
    """
    Ensure the output directory exists for a given filepath.

    Args:
        filepath (str): Full path to output file.
    """
    directory = os.path.dirname(filepath)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)


def safe_overwrite(filepath):
    """
    Safely remove existing file to force overwrite.

    Args:
        filepath (str): Path to file to overwrite.

    Raises:
        RuntimeError: If file is locked or permission denied.
    """
    if os.path.exists(filepath):
        try:
            os.remove(filepath)
        except PermissionError:
            raise RuntimeError(
                f"Cannot overwrite {filepath} - file may be open in another program. " "Please close it and try again."
            )


def prepare_output_file(filepath):
    """
    Prepare output file by ensuring directory exists and clearing old file.

    Args:
        filepath (str): Path to output file.
    """
    ensure_output_dir(filepath)
    safe_overwrite(filepath)


# ============================================================================
# Data Conversion Utilities
# ============================================================================


def convert_numpy_to_native(obj):
    """
    Recursively convert NumPy types to native Python types for JSON serialization.

    Args:
        obj: Object potentially containing NumPy types

    Returns:
        Object with NumPy types converted to native Python types
    """
    if isinstance(obj, np.bool_):
        return bool(obj)
    elif isinstance(obj, np.integer):
        return int(obj)
    elif isinstance(obj, np.floating):
        return float(obj)
    elif isinstance(obj, np.ndarray):
        return obj.tolist()
    elif isinstance(obj, dict):
        return {key: convert_numpy_to_native(value) for key, value in obj.items()}
    elif isinstance(obj, (list, tuple)):
        return [convert_numpy_to_native(item) for item in obj]
    else:
        return obj


def as_points(points):
    """
    Coerce a point collection to a float array of shape (N, 3).

    Accepts lists of triples, (N, 3) arrays, or a single (3,) point.
    An empty input yields an empty (0, 3) array.
    """
    arr = np.asarray(points, dtype=float)
    if arr.size == 0:
        return np.zeros((0, 3))
    if arr.ndim == 1:
        arr = arr.reshape(1, -1)
    return arr


def finite_rows(points):
    """
    Drop rows containing NaN or inf.

    Joint positions read from a rig mid-reload can be partially populated;
    those rows are treated as missing rather than poisoning min/max/mean.

    Returns:
        np.array: (M, 3) array with M <= N
    """
    arr = as_points(points)
    if len(arr) == 0:
        return arr
    return arr[np.all(np.isfinite(arr), axis=1)]


# ============================================================================
# CSV / JSON Utilities
# ============================================================================


def write_dict_list_to_csv(data, filepath, fieldnames=None):
    """
    Write list of dictionaries to CSV file.

    Args:
        data: List of dictionaries
        filepath: Output CSV path
        fieldnames: Optional list of field names (defaults to keys of first dict)
    """
    if not data:
        return

    if fieldnames is None:
        fieldnames = data[0].keys()

    prepare_output_file(filepath)

    with open(filepath, "w", newline="") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()
        writer.writerows(data)


def write_json(data, filepath):
    """
    Write a (possibly NumPy-laden) structure to a JSON file.

    Args:
        data: dict or list to serialize
        filepath: Output JSON path
    """
    prepare_output_file(filepath)

    with open(filepath, "w") as f:
        json.dump(convert_numpy_to_native(data), f, indent=2)
