from .hull import clip_to_unit_square, convex_hull, shoelace_area, surface_on_screen

__all__ = ["clip_to_unit_square", "convex_hull", "shoelace_area", "surface_on_screen"]
