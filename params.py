STRATEGIES = ("ORGANIC", "GRID", "RADIAL")
WATER_FEATURES = ("NONE", "RIVER", "COAST", "LAKE")

DEFAULT_PARAMS = {
    "WIDTH": 500,
    "HEIGHT": 500,
    "SEED": None,
    "STRATEGY": "ORGANIC",
    "BRANCHING_FACTOR": 0.3,
    "SEGMENT_LENGTH": 10,
    "CITY_SIZE": 0.5,
    "HARD_CITY_LIMIT": False,
    "OUTER_CITY_FALLOFF": 0.2,
    "OUTER_CITY_RANDOMNESS": 0.5,
    "MIN_BUILDING_AREA": 64,      # 8x8
    "MAX_BUILDING_AREA": 625,     # 25x25
    "MIN_EDGE_LENGTH": 4,
    "MIN_ANGLE": 30,
    "MIN_PLOT_ANGLE": 15,
    "BUILDING_IRREGULARITY": 0.2,
    "FIXED_BUILDING_DEPTH": 15,   # 0 = no trimming
    "WATER_FEATURE": "NONE",
    "RIVER_WIDTH": 30,
    "GROWTH_SPEED": 1,
    "BUILDING_BATCH": 3,
    "VERBOSE": False,
}

# (lo, hi) clamps; None = open side
_RANGES = {
    "WIDTH": (50, None), "HEIGHT": (50, None),
    "BRANCHING_FACTOR": (0.0, 1.0),
    "SEGMENT_LENGTH": (1.0, None),
    "CITY_SIZE": (0.05, 1.0),
    "OUTER_CITY_FALLOFF": (0.0, 1.0),
    "OUTER_CITY_RANDOMNESS": (0.0, 1.0),
    "MIN_BUILDING_AREA": (1.0, None),
    "MAX_BUILDING_AREA": (1.0, None),
    "MIN_EDGE_LENGTH": (0.0, None),
    "MIN_ANGLE": (0.0, 90.0),
    "MIN_PLOT_ANGLE": (0.0, 90.0),
    "BUILDING_IRREGULARITY": (0.0, 0.5),
    "FIXED_BUILDING_DEPTH": (0.0, None),
    "RIVER_WIDTH": (1.0, None),
    "GROWTH_SPEED": (1, None),
    "BUILDING_BATCH": (1, None),
}

_INT_KEYS = ("WIDTH", "HEIGHT", "GROWTH_SPEED", "BUILDING_BATCH")

def _clamp(v, lo, hi):
    if lo is not None and v < lo: v = lo
    if hi is not None and v > hi: v = hi
    return v

def make_params(base=None, **overrides):
    """Merge overrides (any key case) over DEFAULT_PARAMS and clamp ranges.

    Raises ValueError on unknown keys or unknown STRATEGY / WATER_FEATURE.
    """
    params = dict(DEFAULT_PARAMS)
    if base: params.update(base)
    for k, v in overrides.items():
        key = k.upper()
        if key not in DEFAULT_PARAMS:
            raise ValueError(f"unknown parameter {k!r}")
        params[key] = v
    for key in params:
        if key not in DEFAULT_PARAMS:
            raise ValueError(f"unknown parameter {key!r}")
    params["STRATEGY"] = str(params["STRATEGY"]).upper()
    params["WATER_FEATURE"] = str(params["WATER_FEATURE"]).upper()
    if params["STRATEGY"] not in STRATEGIES:
        raise ValueError(f"STRATEGY must be one of {STRATEGIES}, got {params['STRATEGY']!r}")
    if params["WATER_FEATURE"] not in WATER_FEATURES:
        raise ValueError(f"WATER_FEATURE must be one of {WATER_FEATURES}, got {params['WATER_FEATURE']!r}")
    for key, (lo, hi) in _RANGES.items():
        cast = int if key in _INT_KEYS else float
        params[key] = _clamp(cast(params[key]), lo, hi)
    if params["MAX_BUILDING_AREA"] < params["MIN_BUILDING_AREA"]:
        params["MAX_BUILDING_AREA"] = params["MIN_BUILDING_AREA"]
    params["HARD_CITY_LIMIT"] = bool(params["HARD_CITY_LIMIT"])
    params["VERBOSE"] = bool(params["VERBOSE"])
    return params
