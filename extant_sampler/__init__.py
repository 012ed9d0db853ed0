"""Top-level package for extant_sampler."""

__all__ = ["sample_species_tree", "species_tree_sample_to_file"]

from .main import sample_species_tree, species_tree_sample_to_file  # noqa: F401
