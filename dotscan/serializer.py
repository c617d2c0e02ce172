"""
Serialization of scan cycles.

Responsibility:
    Export the dots of every completed scan cycle to structured files
    (JSON, CSV) for offline analysis of detector yield and placement.

Non-goals:
    - No rendering, display, or detection logic.
    - No streaming output — writes complete files on finalize.
"""

import csv
import json
import logging
from pathlib import Path
from typing import Dict

import numpy as np

logger = logging.getLogger(__name__)


def save_json(
    points_by_cycle: Dict[int, np.ndarray],
    output_path: str,
) -> None:
    """Export all cycles to a JSON file.

    Output schema:
        {
            "cycles": [
                {"cycle": 1, "count": 2, "points": [[x, y], [x, y]]}
            ],
            "total_cycles": N,
            "total_points": M
        }

    Args:
        points_by_cycle: Mapping of cycle number → (N, 2) display points.
        output_path: Path to the output JSON file.

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    cycles = []
    total_points = 0

    for cycle in sorted(points_by_cycle.keys()):
        points = np.asarray(points_by_cycle[cycle]).reshape(-1, 2)
        total_points += len(points)
        cycles.append({
            "cycle": cycle,
            "count": len(points),
            "points": [[round(float(x), 6), round(float(y), 6)] for x, y in points],
        })

    payload = {
        "cycles": cycles,
        "total_cycles": len(cycles),
        "total_points": total_points,
    }

    with open(output_path, "w", encoding="utf-8") as f:
        json.dump(payload, f, indent=2)

    logger.info(
        "JSON output saved: %s (%d cycles, %d points)",
        output_path, len(cycles), total_points,
    )


def save_csv(
    points_by_cycle: Dict[int, np.ndarray],
    output_path: str,
) -> None:
    """Export all cycles to a CSV file.

    Columns: cycle, index, x, y

    Raises:
        OSError: If the output path is not writable.
    """
    _ensure_parent_dir(output_path)

    fieldnames = ["cycle", "index", "x", "y"]

    with open(output_path, "w", newline="", encoding="utf-8") as f:
        writer = csv.DictWriter(f, fieldnames=fieldnames)
        writer.writeheader()

        total = 0
        for cycle in sorted(points_by_cycle.keys()):
            points = np.asarray(points_by_cycle[cycle]).reshape(-1, 2)
            for index, (x, y) in enumerate(points):
                writer.writerow({
                    "cycle": cycle,
                    "index": index,
                    "x": round(float(x), 6),
                    "y": round(float(y), 6),
                })
                total += 1

    logger.info("CSV output saved: %s (%d rows)", output_path, total)


def _ensure_parent_dir(path: str) -> None:
    """Create parent directories if they don't exist."""
    parent = Path(path).parent
    parent.mkdir(parents=True, exist_ok=True)
