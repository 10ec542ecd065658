"""
Track geometry module for pychainage.

A corridor's track geometry is an ordered table of reference points, each with
a GPS location, a nominal (posted) kilometreage and loop/TSR attributes. From
that table this module derives a "virtual" kilometreage: a monotonic chainage
obtained by summing the great-circle distances between consecutive rows, which
stays well behaved where the posted kilometreage jumps because of realignments.

The geometry is built once per corridor and then shared, read-only, by the
chainage resolver, the geometry annotator and the resampler. Nearest-point
queries are linear numpy scans; at corridor scale (hundreds of reference
points) this is fast, and it keeps the tie rule simple: the first reference
point in table order wins.
"""

from typing import Iterable, Iterator, Tuple, Union

import numpy as np
import pandas as pd
import polars as pl

from pychainage.models import Direction, GeoPoint, TrackReferencePoint
from pychainage.utilities.geodesy import haversine, path_distances

# strings accepted as a loop marker in the geometry table
_LOOP_MARKERS = {"loop", "true"}

# strings accepted in the TSR flag column; anything else is rejected
_TSR_TRUE = {"true", "1", "yes"}
_TSR_FALSE = {"false", "0", "no", ""}

# rows per block when matching many chainages at once (bounds the n x m matrix)
_MATCH_BLOCK = 4096


def _parse_loop_marker(value) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return False
    return str(value).strip().lower() in _LOOP_MARKERS


def parse_tsr_flag(value) -> bool:
    """
    Read one value of a geometry table's ``is_tsr`` column.

    Booleans, 0/1 and the strings ``true``/``false`` (also ``yes``/``no``,
    ``1``/``0``, case-insensitive) are accepted; an empty cell is not a TSR.
    Any other value raises ``ValueError`` rather than being read as a flag.
    """
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    if value is None or value is pd.NA:
        return False
    if isinstance(value, (int, float, np.integer, np.floating)):
        if np.isnan(value):
            return False
        if value in (0, 1):
            return bool(value)
        raise ValueError(f"TSR flag must be true or false, got {value!r}")
    text = str(value).strip().lower()
    if text in _TSR_TRUE:
        return True
    if text in _TSR_FALSE:
        return False
    raise ValueError(f"TSR flag must be true or false, got {value!r}")


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, copy=True)
    arr.setflags(write=False)
    return arr


class TrackGeometry:
    """
    Immutable, ordered collection of TrackReferencePoints for one corridor.

    Use :meth:`build` to construct it from a geometry table. The columnar
    arrays exposed by the properties are read-only numpy views, so the same
    instance can be handed to every pipeline stage without defensive copies.

    Examples
    --------
    >>> import pandas as pd
    >>> from pychainage.utilities.track_geometry import TrackGeometry
    >>> rows = pd.DataFrame({
    ...     'name': ['A', 'B', 'C'],
    ...     'lat': [-33.00, -33.01, -33.02],
    ...     'lon': [151.00, 151.00, 151.00],
    ...     'elevation': [10.0, 12.0, 15.0],
    ...     'km_post': [5.0, 6.1, 7.2],
    ...     'loop': ['', 'loop', ''],
    ... })
    >>> geometry = TrackGeometry.build(rows)
    >>> geometry.direction
    <Direction.INCREASING: 'increasing'>
    >>> geometry.find_nearest_chainage(6.0).name
    'B'
    """

    def __init__(self, points: Iterable[TrackReferencePoint], direction: Direction):
        self._points: Tuple[TrackReferencePoint, ...] = tuple(points)
        if not self._points:
            raise ValueError("Track geometry must contain at least one reference point.")
        self._direction = direction

        self._lat = _readonly([p.location.lat for p in self._points])
        self._lon = _readonly([p.location.lon for p in self._points])
        self._km_post = _readonly([p.km_post for p in self._points])
        self._virtual_km = _readonly([p.virtual_km for p in self._points])
        self._is_loop = _readonly([p.is_loop for p in self._points])
        self._is_tsr = _readonly([p.is_tsr for p in self._points])
        self._tsr_speed = _readonly([p.tsr_speed for p in self._points])

    # ------------------------------------------------------------------ build

    @classmethod
    def build(cls, rows: Union[pd.DataFrame, pl.DataFrame], corridor_id: int = 0) -> "TrackGeometry":
        """
        Build the geometry from a table of reference rows.

        Parameters
        ----------
        rows : pd.DataFrame or pl.DataFrame
            One row per reference point, in corridor order, with columns
            ``name``, ``lat``, ``lon``, ``elevation``, ``km_post`` and ``loop``.
            Optional ``is_tsr`` and ``tsr_speed`` columns carry temporary speed
            restrictions already known at load time.
        corridor_id : int, default=0
            Identifier stored on every reference point.

        Returns
        -------
        TrackGeometry

        Raises
        ------
        ValueError
            If ``rows`` is empty, a required column is missing, an ``is_tsr``
            value is not a true/false flag or a ``tsr_speed`` is not a number.

        Notes
        -----
        The first row seeds ``virtual_km = km_post``. The direction of the
        kilometreage is decided once from the first two rows
        (``km_post[1] - km_post[0] > 0`` is increasing, anything else is
        decreasing) and never revisited, even if later rows disagree. Each
        following row adds (increasing) or subtracts (decreasing) the
        haversine distance from the previous row, in km.
        """
        pdf = rows.to_pandas() if isinstance(rows, pl.DataFrame) else rows
        if len(pdf) == 0:
            raise ValueError("Track geometry must contain at least one reference point.")
        missing = [c for c in ("name", "lat", "lon", "elevation", "km_post", "loop") if c not in pdf.columns]
        if missing:
            raise ValueError(f"Track geometry is missing columns: {missing}")

        lats = pdf["lat"].to_numpy(dtype=float)
        lons = pdf["lon"].to_numpy(dtype=float)
        km_post = pdf["km_post"].to_numpy(dtype=float)

        if len(km_post) > 1 and km_post[1] - km_post[0] > 0:
            direction = Direction.INCREASING
        else:
            direction = Direction.DECREASING
        sign = 1.0 if direction is Direction.INCREASING else -1.0

        steps_km = path_distances(lats, lons) / 1000.0
        virtual_km = km_post[0] + sign * np.concatenate(([0.0], np.cumsum(steps_km)))

        if "is_tsr" in pdf.columns:
            is_tsr = np.array([parse_tsr_flag(v) for v in pdf["is_tsr"]], dtype=bool)
        else:
            is_tsr = np.zeros(len(pdf), dtype=bool)
        if "tsr_speed" in pdf.columns:
            try:
                tsr_speed = pd.to_numeric(pdf["tsr_speed"], errors="raise").fillna(0.0).to_numpy(dtype=float)
            except (ValueError, TypeError) as exc:
                raise ValueError(f"Track geometry column 'tsr_speed' contains a value that is not a number: {exc}") from exc
        else:
            tsr_speed = np.zeros(len(pdf), dtype=float)

        points = [
            TrackReferencePoint(
                corridor_id=corridor_id,
                name=str(name),
                location=GeoPoint(float(lat), float(lon)),
                elevation=float(elevation),
                km_post=float(km),
                virtual_km=float(vkm),
                is_loop=_parse_loop_marker(loop),
                is_tsr=bool(tsr),
                tsr_speed=float(tsr_v),
            )
            for name, lat, lon, elevation, km, vkm, loop, tsr, tsr_v in zip(
                pdf["name"], lats, lons, pdf["elevation"].to_numpy(dtype=float),
                km_post, virtual_km, pdf["loop"], is_tsr, tsr_speed,
            )
        ]
        return cls(points, direction)

    def with_speed_restrictions(
        self,
        restrictions: Union[pd.DataFrame, pl.DataFrame, Iterable[Tuple[float, float, float]]],
    ) -> "TrackGeometry":
        """
        Return a new geometry with temporary speed restrictions applied.

        Parameters
        ----------
        restrictions : DataFrame or iterable of (start_km, end_km, speed)
            Each restriction flags every reference point whose ``km_post`` lies
            in the inclusive range between ``start_km`` and ``end_km`` (in
            either order). A DataFrame must have ``start_km``, ``end_km`` and
            ``speed`` columns. Where restrictions overlap, the later one wins.

        Returns
        -------
        TrackGeometry
            A new instance; this geometry is left untouched.
        """
        if isinstance(restrictions, pl.DataFrame):
            restrictions = restrictions.to_pandas()
        if isinstance(restrictions, pd.DataFrame):
            restrictions = restrictions[["start_km", "end_km", "speed"]].itertuples(index=False, name=None)

        is_tsr = self._is_tsr.copy()
        tsr_speed = self._tsr_speed.copy()
        for start_km, end_km, speed in restrictions:
            lo, hi = sorted((float(start_km), float(end_km)))
            mask = (self._km_post >= lo) & (self._km_post <= hi)
            is_tsr[mask] = True
            tsr_speed[mask] = float(speed)

        points = [
            p._replace(is_tsr=bool(tsr), tsr_speed=float(v))
            for p, tsr, v in zip(self._points, is_tsr, tsr_speed)
        ]
        return TrackGeometry(points, self._direction)

    # ------------------------------------------------------------------ access

    def __len__(self) -> int:
        return len(self._points)

    def __iter__(self) -> Iterator[TrackReferencePoint]:
        return iter(self._points)

    def __getitem__(self, idx: int) -> TrackReferencePoint:
        return self._points[idx]

    def __repr__(self) -> str:
        return (f"TrackGeometry({len(self)} points, {self._direction.value}, "
                f"km {self._km_post[0]:.3f} to {self._km_post[-1]:.3f})")

    @property
    def direction(self) -> Direction:
        return self._direction

    @property
    def km_post(self) -> np.ndarray:
        return self._km_post

    @property
    def virtual_km(self) -> np.ndarray:
        return self._virtual_km

    @property
    def is_loop(self) -> np.ndarray:
        return self._is_loop

    @property
    def is_tsr(self) -> np.ndarray:
        return self._is_tsr

    @property
    def tsr_speed(self) -> np.ndarray:
        return self._tsr_speed

    def to_frame(self) -> pd.DataFrame:
        """Columnar view of the geometry (one row per reference point)."""
        return pd.DataFrame({
            "corridor_id": [p.corridor_id for p in self._points],
            "name": [p.name for p in self._points],
            "lat": self._lat,
            "lon": self._lon,
            "elevation": [p.elevation for p in self._points],
            "km_post": self._km_post,
            "virtual_km": self._virtual_km,
            "is_loop": self._is_loop,
            "is_tsr": self._is_tsr,
            "tsr_speed": self._tsr_speed,
        })

    # ------------------------------------------------------------------ nearest

    def nearest_index(self, point: GeoPoint) -> int:
        """Index of the reference point closest to ``point`` (first on ties)."""
        d = haversine(self._lat, self._lon, point.lat, point.lon)
        return int(np.argmin(d))

    def find_nearest(self, point: GeoPoint) -> TrackReferencePoint:
        """
        Reference point with the smallest great-circle distance to ``point``.

        Ties are broken by the first occurrence in table order.
        """
        return self._points[self.nearest_index(point)]

    def nearest_chainage_index(self, chainage_km: Union[float, np.ndarray]) -> np.ndarray:
        """
        Indices of the reference points whose ``km_post`` is closest to each chainage.

        Parameters
        ----------
        chainage_km : float or np.ndarray
            One or more chainage values (km).

        Returns
        -------
        np.ndarray
            Integer index array with the same length as ``chainage_km`` (a
            length-1 array for a scalar). Ties resolve to the first reference
            point in table order because ``np.argmin`` returns the first minimum.
        """
        targets = np.atleast_1d(np.asarray(chainage_km, dtype=float))
        out = np.empty(targets.size, dtype=np.intp)
        for start in range(0, targets.size, _MATCH_BLOCK):
            block = targets[start:start + _MATCH_BLOCK]
            gaps = np.abs(self._km_post[np.newaxis, :] - block[:, np.newaxis])
            out[start:start + block.size] = np.argmin(gaps, axis=1)
        return out

    def find_nearest_chainage(self, chainage_km: float) -> TrackReferencePoint:
        """Reference point whose nominal kilometreage is closest to ``chainage_km``."""
        return self._points[int(self.nearest_chainage_index(chainage_km)[0])]

    def attributes_at(self, chainage_km: Union[float, np.ndarray]) -> pd.DataFrame:
        """
        Loop/TSR attributes of the nearest reference point for each chainage.

        Returns a DataFrame with ``is_loop``, ``is_tsr`` and ``tsr_speed``
        columns, one row per chainage value.
        """
        index = self.nearest_chainage_index(chainage_km)
        return pd.DataFrame({
            "is_loop": self._is_loop[index],
            "is_tsr": self._is_tsr[index],
            "tsr_speed": self._tsr_speed[index],
        })
