"""
Treasury - Game content extraction into consolidated JSON.

Reads item definitions, recipe tables and stat curves out of a large
asset store and writes them as a small set of JSON artifacts:

- Exporters pick the asset paths they care about and extract records
  into private buffers, in parallel
- Buffers are merged into one shared data set in a fixed order
- Post-exporters refine the merged set (e.g. writing image files)
- Artifact generators serialize the result, optionally merging with
  the previous run's files
"""

__version__ = "0.1.0"
