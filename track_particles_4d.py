"""
4D association of per-frame (x, y, z) detections into tracks.

Greedy, frame-by-frame matching: every detection looks for tracks whose last
observed position lies inside a gating radius; ambiguous cases are settled
by comparing the actual displacement with each track's recent velocity.
Tracks are born when nothing matches and are never deleted; a track that is
not observed for more than ``frame_forget`` frames simply stops being a
candidate.
"""
import logging
from collections import defaultdict, deque

import numpy as np

from settings import DEFAULT_FRAME_FORGET, DEFAULT_VELOCITY_WINDOW, GATING_FACTOR

logger = logging.getLogger(__name__)

_NAN3 = (np.nan, np.nan, np.nan)


class Track:

    def __init__(self, track_id: int, birth_frame: int, position, velocity_window: int):
        self.id = track_id
        self.birth_frame = birth_frame
        # one slot per frame since birth, None = not observed
        self.positions = [tuple(position)]
        self.displacements = deque(maxlen=velocity_window)

    def at(self, frame: int):
        idx = frame - self.birth_frame
        if 0 <= idx < len(self.positions):
            return self.positions[idx]
        return None

    def last_observed(self, first: int, last: int):
        '''Most recent observed position in frames [first, last], or None.'''
        for frame in range(last, max(first, self.birth_frame) - 1, -1):
            p = self.at(frame)
            if p is not None:
                return np.asarray(p)
        return None

    def velocity(self):
        """
        Average per-axis displacement over the recent transitions.

        Zero displacements are left out of the average. An axis with only
        zero displacements has velocity 0; a track without any valid
        transition has no velocity (None).
        """
        if not self.displacements:
            return None
        d = np.asarray(self.displacements, dtype=np.float64)
        d = d[np.isfinite(d).all(axis=1)]
        if d.size == 0:
            return None
        v = np.zeros(3)
        for axis in range(3):
            nz = d[:, axis][d[:, axis] != 0]
            if nz.size:
                v[axis] = nz.mean()
        return v


def gating_radius(previous: np.ndarray, current: np.ndarray,
                  factor: float = GATING_FACTOR, min_displacement: float = 0.0) -> float:
    '''factor x median nearest-neighbour XY displacement between two frames.'''
    dx = previous[:, None, 0] - current[None, :, 0]
    dy = previous[:, None, 1] - current[None, :, 1]
    nearest = np.min(np.sqrt(dx ** 2 + dy ** 2), axis=1)
    radius = factor * max(float(np.median(nearest)), min_displacement)
    return radius if radius > 0 else np.inf


class Tracker:
    """
    Sequential tracker. Feed one frame at a time with ``update``; read the
    result with ``to_table``.

    Parameters:
    frame_forget (int): Lookback window for a track's last observation
    velocity_window (int): Number of recent transitions averaged into the velocity
    gating_factor (float): Gating radius = factor x median first displacement
    min_displacement (float): Lower bound of that median (e.g. one pixel)
    """

    def __init__(self,
                 frame_forget: int = DEFAULT_FRAME_FORGET,
                 velocity_window: int = DEFAULT_VELOCITY_WINDOW,
                 gating_factor: float = GATING_FACTOR,
                 min_displacement: float = 0.0):
        self.frame_forget = frame_forget
        self.velocity_window = velocity_window
        self.gating_factor = gating_factor
        self.min_displacement = min_displacement
        self.tracks = []
        self.n_frames = 0
        self.radius = None
        self._previous = None

    @property
    def n_tracks(self) -> int:
        return len(self.tracks)

    def _fallback_radius(self) -> float:
        radius = self.gating_factor * self.min_displacement
        return radius if radius > 0 else np.inf

    def _birth(self, frame: int, position) -> Track:
        track = Track(len(self.tracks), frame, position, self.velocity_window)
        self.tracks.append(track)
        return track

    def update(self, detections) -> None:
        """
        Associates the detections of the next frame.

        Parameters:
        detections (array-like): (n, 3) x, y, z positions; n may be 0
        """
        det = np.asarray(detections, dtype=np.float64).reshape(-1, 3)
        t = self.n_frames

        if self.radius is None and self._previous is not None and len(self._previous) and len(det):
            self.radius = gating_radius(self._previous, det, self.gating_factor, self.min_displacement)
            logger.debug('[Tracking] Gating radius %.4g (frame %d)', self.radius, t)

        if t == 0:
            for p in det:
                self._birth(0, p)
        else:
            self._associate(t, det)

        self._previous = det
        self.n_frames += 1

    def _associate(self, t: int, det: np.ndarray) -> None:
        first = max(0, t - self.frame_forget)
        second_frame = t == 1
        radius = self.radius if self.radius is not None else self._fallback_radius()

        # --- last positions and velocity bookkeeping --------------------
        lasts = {}
        for track in self.tracks:
            last1 = track.last_observed(first, t - 1)
            last2 = track.last_observed(first, t - 2) if t - 2 >= first else None
            if last1 is None or last2 is None:
                track.displacements.append(_NAN3)
            else:
                track.displacements.append(tuple(last1 - last2))
            if last1 is not None:
                lasts[track.id] = last1
            track.positions.append(None)

        active = [track for track in self.tracks if track.id in lasts]
        last_xy = np.array([lasts[track.id][:2] for track in active]).reshape(-1, 2)

        # --- every detection claims a track ------------------------------
        claims = defaultdict(list)
        for i, p in enumerate(det):
            if not active:
                self._birth(t, p)
                continue
            dist_xy = np.sqrt(np.sum((last_xy - p[:2]) ** 2, axis=1))
            if second_frame:
                claims[active[int(np.argmin(dist_xy))].id].append(i)
                continue
            candidates = [track for track, d in zip(active, dist_xy) if d < radius]
            if not candidates:
                self._birth(t, p)
            elif len(candidates) == 1:
                claims[candidates[0].id].append(i)
            else:
                chosen = self._best_track(p, candidates, lasts)
                claims[chosen.id].append(i)

        # --- settle contended tracks -------------------------------------
        for track_id, idxs in claims.items():
            track = self.tracks[track_id]
            if len(idxs) == 1:
                track.positions[-1] = tuple(det[idxs[0]])
                continue
            last = lasts[track_id]
            points = det[idxs]
            dist_xy = np.sqrt(np.sum((points[:, :2] - last[:2]) ** 2, axis=1))
            if second_frame:
                track.positions[-1] = tuple(points[int(np.argmin(dist_xy))])
                continue
            inside = dist_xy < radius
            if not inside.any():
                continue
            points = points[inside]
            pick = self._best_detection(track, last, points)
            track.positions[-1] = tuple(points[pick])
            logger.debug('[Tracking] Frame %d: %d detections contended for track %d',
                         t, len(idxs), track_id)

    @staticmethod
    def _velocity_error(velocity, last, p) -> float:
        return float(np.linalg.norm(velocity - (p - last)))

    def _best_track(self, p: np.ndarray, candidates, lasts) -> Track:
        '''Candidate whose velocity best explains the displacement to p.'''
        scores = np.full(len(candidates), np.nan)
        for k, track in enumerate(candidates):
            v = track.velocity()
            if v is not None:
                scores[k] = self._velocity_error(v, lasts[track.id], p)
        if np.isfinite(scores).any():
            return candidates[int(np.nanargmin(scores))]
        dist_xy = [np.hypot(*(lasts[track.id][:2] - p[:2])) for track in candidates]
        return candidates[int(np.argmin(dist_xy))]

    def _best_detection(self, track: Track, last: np.ndarray, points: np.ndarray) -> int:
        v = track.velocity()
        if v is None:
            return int(np.argmin(np.sqrt(np.sum((points[:, :2] - last[:2]) ** 2, axis=1))))
        scores = [self._velocity_error(v, last, p) for p in points]
        return int(np.argmin(scores))

    def positions(self, track_id: int) -> np.ndarray:
        '''Full history of one track, (frames, 3), NaN where absent.'''
        out = np.full((self.n_frames, 3), np.nan)
        track = self.tracks[track_id]
        for offset, p in enumerate(track.positions):
            if p is not None:
                out[track.birth_frame + offset] = p
        return out

    def to_table(self):
        """
        Returns:
        out_x, out_y, out_z (2D arrays): (tracks, frames), NaN where absent
        """
        table = np.full((len(self.tracks), self.n_frames, 3), np.nan)
        for track in self.tracks:
            table[track.id] = self.positions(track.id)
        return table[:, :, 0], table[:, :, 1], table[:, :, 2]


def track_particles_4d(frames,
                       frame_forget: int = DEFAULT_FRAME_FORGET,
                       velocity_window: int = DEFAULT_VELOCITY_WINDOW,
                       min_displacement: float = 0.0):
    """
    Links the per-frame positions of objects into 4D tracks.

    Parameters:
    frames (list): One (n_i, 3) array of x, y, z positions per frame
    frame_forget (int): Frames after which an unseen track is no longer matched
    velocity_window (int): Transitions used to estimate the movement direction
    min_displacement (float): Lower bound of the displacement scale

    Returns:
    out_x, out_y, out_z (2D arrays): Rows are tracks, columns are frames
    """
    tracker = Tracker(frame_forget=frame_forget, velocity_window=velocity_window,
                      min_displacement=min_displacement)
    for det in frames:
        tracker.update(det)
    logger.info('[Tracking] %d tracks over %d frames', tracker.n_tracks, tracker.n_frames)
    return tracker.to_table()
