"""
Constants used across the tour optimizer.
"""

# Fixed travel speeds per transport mode, km/h
WALKING_SPEED_KMH = 5.0
BUS_SPEED_KMH = 40.0
VEHICLE_SPEED_KMH = 60.0

TRANSPORT_SPEEDS_KMH = {
    'walking': WALKING_SPEED_KMH,
    'bus': BUS_SPEED_KMH,
    'vehicle': VEHICLE_SPEED_KMH,
}

MINUTES_PER_HOUR = 60.0

# WGS-84 equatorial radius
EARTH_RADIUS_KM = 6378.137

# Stand-in for zero distances between coincident stops before inverting them
MIN_DISTANCE_EPSILON = 1e-10

SYMMETRY_TOLERANCE = 1e-9
