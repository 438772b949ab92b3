"""Geodetic math kernel on the WGS84 ellipsoid.

Stateless conversions between geodetic (lat, lon, h), ECEF and local
East-North-Up tangent-plane coordinates. All functions accept scalars or
numpy arrays and broadcast; ECEF/ENU triples live in the last axis.

Accuracy:
    ecef_to_geodetic starts from Bowring's closed-form estimate and runs a
    few fixed-point refinements. For |h| <= 50 km and |lat| <= 89.9 deg the
    round-trip error is below 1e-9 deg and 1e-4 m. Height uses the
    pole-stable form h = p*cos(lat) + z*sin(lat) - a*sqrt(1 - e2*sin^2(lat)).

ENU rotation (rows are the east, north, up unit vectors in ECEF):
    east  = [-sin(lon),           cos(lon),          0       ]
    north = [-sin(lat)cos(lon), -sin(lat)sin(lon),  cos(lat)]
    up    = [ cos(lat)cos(lon),  cos(lat)sin(lon),  sin(lat)]
"""

import numpy as np

from geoscene.constants import EllipsoidConfig, GeodesyConfig
from geoscene.model.origin import OriginFrame
from geoscene.model.points import GeographicPoint


class Geodesy:
    """Static WGS84 conversions.

    Angles are decimal degrees, distances meters.
    """

    A = EllipsoidConfig.WGS84_A
    E2 = EllipsoidConfig.WGS84_E2
    B = EllipsoidConfig.WGS84_B

    @staticmethod
    def prime_vertical_radius(lat_deg: float | np.ndarray) -> float | np.ndarray:
        """N(lat) = a / sqrt(1 - e2 sin^2(lat))."""
        sin_lat = np.sin(np.radians(lat_deg))
        return Geodesy.A / np.sqrt(1.0 - Geodesy.E2 * sin_lat**2)

    @staticmethod
    def geodetic_to_ecef(
        lat_deg: float | np.ndarray,
        lon_deg: float | np.ndarray,
        height_m: float | np.ndarray,
    ) -> np.ndarray:
        """Convert geodetic coordinates to ECEF.

        Args:
            lat_deg: Latitude(s) in degrees
            lon_deg: Longitude(s) in degrees
            height_m: Ellipsoidal height(s) in meters

        Returns:
            Array of shape (..., 3) with (x, y, z) in meters.
        """
        lat = np.radians(np.asarray(lat_deg, dtype=float))
        lon = np.radians(np.asarray(lon_deg, dtype=float))
        h = np.asarray(height_m, dtype=float)
        sin_lat, cos_lat = np.sin(lat), np.cos(lat)
        n = Geodesy.A / np.sqrt(1.0 - Geodesy.E2 * sin_lat**2)
        x = (n + h) * cos_lat * np.cos(lon)
        y = (n + h) * cos_lat * np.sin(lon)
        z = (n * (1.0 - Geodesy.E2) + h) * sin_lat
        return np.stack(np.broadcast_arrays(x, y, z), axis=-1)

    @staticmethod
    def ecef_to_geodetic(ecef: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Convert ECEF to geodetic coordinates.

        Args:
            ecef: Array of shape (..., 3)

        Returns:
            Tuple (lat_deg, lon_deg, height_m), each of shape (...).
        """
        xyz = np.asarray(ecef, dtype=float)
        x, y, z = xyz[..., 0], xyz[..., 1], xyz[..., 2]
        a, b, e2 = Geodesy.A, Geodesy.B, Geodesy.E2
        ep2 = (a * a - b * b) / (b * b)

        p = np.hypot(x, y)
        lon = np.arctan2(y, x)

        # Bowring's estimate
        theta = np.arctan2(z * a, p * b)
        lat = np.arctan2(z + ep2 * b * np.sin(theta) ** 3, p - e2 * a * np.cos(theta) ** 3)

        for _ in range(GeodesyConfig.REFINEMENT_ITERATIONS):
            sin_lat = np.sin(lat)
            n = a / np.sqrt(1.0 - e2 * sin_lat**2)
            h = p * np.cos(lat) + z * sin_lat - a * a / n
            lat = np.arctan2(z, p * (1.0 - e2 * n / (n + h)))

        sin_lat = np.sin(lat)
        n = a / np.sqrt(1.0 - e2 * sin_lat**2)
        h = p * np.cos(lat) + z * sin_lat - a * a / n
        return np.degrees(lat), np.degrees(lon), h

    @staticmethod
    def enu_rotation(lat_deg: float, lon_deg: float) -> np.ndarray:
        """3x3 rotation taking ECEF deltas into (east, north, up) at the given origin."""
        lat, lon = np.radians(lat_deg), np.radians(lon_deg)
        sin_lat, cos_lat = np.sin(lat), np.cos(lat)
        sin_lon, cos_lon = np.sin(lon), np.cos(lon)
        return np.array(
            [
                [-sin_lon, cos_lon, 0.0],
                [-sin_lat * cos_lon, -sin_lat * sin_lon, cos_lat],
                [cos_lat * cos_lon, cos_lat * sin_lon, sin_lat],
            ]
        )

    @staticmethod
    def ecef_to_enu(ecef: np.ndarray, origin_ecef: np.ndarray, origin_lat: float, origin_lon: float) -> np.ndarray:
        """Express ECEF point(s) as ENU offsets from an origin.

        Args:
            ecef: Array of shape (..., 3)
            origin_ecef: Origin (x, y, z)
            origin_lat: Origin latitude (degrees)
            origin_lon: Origin longitude (degrees)

        Returns:
            Array of shape (..., 3) with (east, north, up).
        """
        rotation = Geodesy.enu_rotation(origin_lat, origin_lon)
        delta = np.asarray(ecef, dtype=float) - np.asarray(origin_ecef, dtype=float)
        return delta @ rotation.T

    @staticmethod
    def enu_to_ecef(enu: np.ndarray, origin_ecef: np.ndarray, origin_lat: float, origin_lon: float) -> np.ndarray:
        """Inverse of ecef_to_enu (transpose rotation, then add the origin)."""
        rotation = Geodesy.enu_rotation(origin_lat, origin_lon)
        return np.asarray(enu, dtype=float) @ rotation + np.asarray(origin_ecef, dtype=float)

    @staticmethod
    def is_reliable(lat_deg: float | np.ndarray, height_m: float | np.ndarray) -> bool | np.ndarray:
        """False for non-finite results and inputs beyond the accuracy envelope (near poles)."""
        lat = np.asarray(lat_deg, dtype=float)
        h = np.asarray(height_m, dtype=float)
        ok = (
            np.isfinite(lat)
            & np.isfinite(h)
            & (np.abs(lat) <= GeodesyConfig.MAX_RELIABLE_LATITUDE_DEG)
            & (np.abs(h) <= GeodesyConfig.MAX_RELIABLE_ABS_HEIGHT_M)
        )
        return bool(ok) if ok.ndim == 0 else ok

    # =========================================================================
    # SCALAR HELPERS (GeographicPoint in/out)
    # =========================================================================

    @staticmethod
    def point_to_ecef(point: GeographicPoint) -> np.ndarray:
        return Geodesy.geodetic_to_ecef(point.lat, point.lon, point.height)

    @staticmethod
    def ecef_to_point(ecef: np.ndarray) -> GeographicPoint:
        """ECEF -> GeographicPoint, flagged unreliable outside the accuracy envelope."""
        lat, lon, h = Geodesy.ecef_to_geodetic(ecef)
        lat_f, lon_f, h_f = float(lat), float(lon), float(h)
        return GeographicPoint(lat=lat_f, lon=lon_f, height=h_f, reliable=Geodesy.is_reliable(lat_f, h_f))

    @staticmethod
    def tangent_rebase(source: OriginFrame, target: OriginFrame) -> tuple[np.ndarray, np.ndarray]:
        """Rigid transform re-expressing ENU vectors of ``source`` in the ENU frame of ``target``.

        Returns:
            (rotation, translation) with enu_target = rotation @ enu_source + translation.
        """
        r_source = Geodesy.enu_rotation(source.geographic.lat, source.geographic.lon)
        r_target = Geodesy.enu_rotation(target.geographic.lat, target.geographic.lon)
        rotation = r_target @ r_source.T
        translation = r_target @ (source.ecef_array - target.ecef_array)
        return rotation, translation
