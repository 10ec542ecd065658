"""
Visualization module for pychainage.

Static matplotlib plots of speed against chainage, for checking resampled
journeys and average speed profiles by eye or including them in reports.
"""

from typing import List, Optional, Sequence

import numpy as np
from matplotlib import pyplot as plt

from pychainage.models import AverageSpeedProfile, Direction, ResampledJourney
from pychainage.utilities.track_geometry import TrackGeometry


def _shade_geometry(ax, geometry: TrackGeometry, loop_boundary: float, tsr_boundary: float):
    """Shade the loop and TSR windows of ``geometry`` on ``ax``."""
    labelled = set()
    for km in geometry.km_post[geometry.is_loop]:
        label = None if 'loop' in labelled else 'Loop'
        ax.axvspan(km - loop_boundary, km + loop_boundary, color='tab:blue', alpha=0.08, label=label)
        labelled.add('loop')
    for km in geometry.km_post[geometry.is_tsr]:
        label = None if 'tsr' in labelled else 'TSR'
        ax.axvspan(km - tsr_boundary, km + tsr_boundary, color='tab:red', alpha=0.08, label=label)
        labelled.add('tsr')


def profile_plt(profiles: Sequence[AverageSpeedProfile],
                geometry: Optional[TrackGeometry] = None,
                direction: Optional[Direction] = None,
                loop_boundary: float = 2.0,
                tsr_boundary: float = 1.0,
                ax=None,
                show: bool = True):
    """
    Plot average speed profiles against chainage.

    Parameters
    ----------
    profiles : sequence of AverageSpeedProfile
        Profiles to draw, one line each, labelled with direction and band.
    geometry : TrackGeometry, optional
        When given, loop and TSR windows are shaded behind the lines.
    direction : Direction, optional
        Only draw profiles of this direction.
    loop_boundary, tsr_boundary : float
        Half widths of the shaded loop and TSR windows (km).
    ax : matplotlib.axes.Axes, optional
        Axes to draw on; a new figure is created when omitted.
    show : bool, default=True
        Call ``plt.show()`` once drawn.

    Returns
    -------
    matplotlib.axes.Axes

    Examples
    --------
    >>> import pychainage as pyc
    >>> result = pyc.process_corridor(points, geometry_rows, settings)
    >>> pyc.utilities.visualization.profile_plt(result.profiles, geometry=result.geometry)

    Notes
    -----
    Locations with no usable sample have an average speed of 0 and are drawn
    as gaps rather than drops to zero.
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(12, 4))

    selected = [p for p in profiles if direction is None or p.direction is direction]
    cmap = plt.get_cmap('tab10')

    if geometry is not None:
        _shade_geometry(ax, geometry, loop_boundary, tsr_boundary)

    for count, profile in enumerate(selected):
        lower, upper = profile.band
        speed = np.where(profile.sample_count > 0, profile.average_speed, np.nan)
        ax.plot(profile.chainage_km, speed, color=cmap(count % 10), linestyle='solid',
                label=f'{profile.direction.value} ({lower:g}, {upper:g}]')

    ax.set_xlabel('Chainage (km)')
    ax.set_ylabel('Average speed (km/h)')
    if selected or geometry is not None:
        ax.legend()

    if show:
        plt.show()
    return ax


def journeys_plt(resampled: List[ResampledJourney],
                 direction: Optional[Direction] = None,
                 names: Optional[List[str]] = None,
                 ax=None,
                 show: bool = True):
    """
    Plot resampled journeys as speed against chainage.

    Parameters
    ----------
    resampled : list of ResampledJourney
        Journeys to draw.
    direction : Direction, optional
        Only draw journeys of this direction.
    names : list of str, optional
        Legend labels. Defaults to ``"<train_id>/<loco_id>"``; if the list is
        shorter than the journeys drawn, the rest use the default.
    ax : matplotlib.axes.Axes, optional
        Axes to draw on; a new figure is created when omitted.
    show : bool, default=True
        Call ``plt.show()`` once drawn.

    Returns
    -------
    matplotlib.axes.Axes
    """
    if ax is None:
        _, ax = plt.subplots(figsize=(12, 4))

    selected = [j for j in resampled if direction is None or j.direction is direction]
    names = list(names or [])
    names += [f'{j.train_id}/{j.loco_id}' for j in selected[len(names):]]
    cmap = plt.get_cmap('tab10')

    for count, (journey, name) in enumerate(zip(selected, names)):
        # grid locations outside the journey carry speed 0
        speed = np.where(journey.speed > 0, journey.speed, np.nan)
        ax.plot(journey.chainage, speed, color=cmap(count % 10), linewidth=0.8, label=name)

    ax.set_xlabel('Chainage (km)')
    ax.set_ylabel('Speed (km/h)')
    if selected:
        ax.legend()

    if show:
        plt.show()
    return ax
