"""
Configuration settings for the path tracer
"""

# Rendering settings
RENDER_SETTINGS = {
    'width': 320,
    'height': 240,
    'max_depth': 8,
    'iterations': 256,
    'use_bvh': True,           # stackless BVH traversal; False tests every object
    'sort_by_material': False,  # group paths by material type before shading
    'antialias': True,          # jitter camera rays inside the pixel
    'threads_per_block': 128,   # 1D kernels (intersect, compact, scatter)
    'tile_size': (16, 8),       # 2D kernels (generate, display)
    'max_leaf_size': 2,
}

# Presets selectable from the command line
QUALITY_LEVELS = {
    "interactive": {"max_depth": 2, "scale": 0.5},
    "balanced": {"max_depth": 4, "scale": 0.75},
    "high_quality": {"max_depth": 8, "scale": 1.0},
}

def load_settings(**overrides) -> dict:
    """
    Copy of RENDER_SETTINGS with overrides applied. Unknown keys are rejected
    so typos do not silently fall back to defaults.
    """
    unknown = set(overrides) - set(RENDER_SETTINGS)
    if unknown:
        raise ValueError(f"Unknown render settings: {', '.join(sorted(unknown))}")
    settings = dict(RENDER_SETTINGS)
    settings.update(overrides)
    if settings['max_depth'] < 1:
        raise ValueError(f"max_depth must be >= 1, got {settings['max_depth']}")
    if settings['threads_per_block'] < 1:
        raise ValueError("threads_per_block must be positive")
    return settings

def apply_quality(settings: dict, quality: str) -> dict:
    if quality not in QUALITY_LEVELS:
        raise ValueError(f"Unknown quality level {quality!r}; choose from {sorted(QUALITY_LEVELS)}")
    level = QUALITY_LEVELS[quality]
    settings = dict(settings)
    settings['max_depth'] = level['max_depth']
    settings['width'] = max(8, int(settings['width'] * level['scale']))
    settings['height'] = max(8, int(settings['height'] * level['scale']))
    return settings
