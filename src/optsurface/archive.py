"""Analysis archive — keep results without re-running the optimiser.

An optimiser run can take hours; the surface analysis of its final
population takes milliseconds but needs that population.  This module
serialises a :class:`~optsurface.pipeline.SurfaceAnalysis` to JSON and
provides an :class:`AnalysisArchive` that stores one file per labelled
run, so results from different runs or threshold settings can be
compared later.

Workflow
--------
>>> archive = AnalysisArchive("~/.optsurface_archive")
>>> archive.save("ma-crossover-2024", analysis)
>>> payload = archive.load("ma-crossover-2024")
>>> payload["variation"]
[1.0, 0.31, None, 0.55]            # None = undetermined
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Any, Dict, List, Optional

from .pipeline import SurfaceAnalysis, _jsonable

__all__ = [
    "ARCHIVE_VERSION",
    "AnalysisArchive",
    "analysis_to_dict",
    "analysis_to_json",
    "analysis_from_json",
]

ARCHIVE_VERSION = 1


# ═══════════════════════════════════════════════════════════════════
# Serialisation helpers
# ═══════════════════════════════════════════════════════════════════

def analysis_to_dict(
    analysis: SurfaceAnalysis,
    metadata: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Versioned JSON-safe payload for *analysis*."""
    payload = {
        "version": ARCHIVE_VERSION,
        "analysis": analysis.to_dict(),
    }
    if metadata:
        payload["metadata"] = _jsonable(dict(metadata))
    return payload


def analysis_to_json(
    analysis: SurfaceAnalysis,
    metadata: Optional[Dict[str, Any]] = None,
) -> str:
    return json.dumps(analysis_to_dict(analysis, metadata), indent=2)


def analysis_from_json(text: str) -> Dict[str, Any]:
    """Parse an archived payload back into its ``analysis`` dict.

    Metadata, if any, is returned under the ``"metadata"`` key.

    Raises
    ------
    ValueError
        Unknown payload version.
    """
    payload = json.loads(text)
    version = payload.get("version")
    if version != ARCHIVE_VERSION:
        raise ValueError(f"Unsupported archive version {version!r}")
    result = dict(payload["analysis"])
    result["metadata"] = payload.get("metadata", {})
    return result


# ═══════════════════════════════════════════════════════════════════
# AnalysisArchive — disk-backed store keyed by run label
# ═══════════════════════════════════════════════════════════════════

_LABEL_RE = re.compile(r"[^A-Za-z0-9_.-]+")


class AnalysisArchive:
    """Directory of archived analyses, one JSON file per label.

    Parameters
    ----------
    directory : str or Path
        Created on first write.
    """

    def __init__(self, directory: str | Path = "~/.optsurface_archive"):
        self.directory = Path(directory).expanduser()

    def _path(self, label: str) -> Path:
        safe = _LABEL_RE.sub("_", label).strip("_")
        if not safe:
            raise ValueError(f"Unusable archive label {label!r}")
        return self.directory / f"{safe}.json"

    def has(self, label: str) -> bool:
        return self._path(label).exists()

    def save(
        self,
        label: str,
        analysis: SurfaceAnalysis,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> Path:
        """Store *analysis* under *label*.  Returns the file path."""
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self._path(label)
        path.write_text(analysis_to_json(analysis, metadata), encoding="utf-8")
        return path

    def load(self, label: str) -> Dict[str, Any]:
        """Load the archived dict for *label*.

        Raises
        ------
        FileNotFoundError
            Nothing archived under this label.
        """
        path = self._path(label)
        if not path.exists():
            raise FileNotFoundError(
                f"No archived analysis for {label!r} at {path}")
        return analysis_from_json(path.read_text(encoding="utf-8"))

    def labels(self) -> List[str]:
        """Archived labels, sorted."""
        if not self.directory.exists():
            return []
        return sorted(p.stem for p in self.directory.glob("*.json"))

    def clear(self) -> int:
        """Remove all archived analyses.  Returns count of files removed."""
        if not self.directory.exists():
            return 0
        count = 0
        for p in self.directory.glob("*.json"):
            p.unlink()
            count += 1
        return count

    def __repr__(self) -> str:
        return f"AnalysisArchive({self.directory!s}, {len(self.labels())} runs)"
