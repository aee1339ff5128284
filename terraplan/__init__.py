"""terraplan — structure siting, pathing and placement on voxel terrain.

Stages, in data-flow order:

  masks      — volume masks of placed structures and their chunk index
  terrain    — surface solver, walkable graph, site classification
  pathing    — A* path planning, smoothing and path networks
  placement  — rotated footprints, placement queues and the commit pipeline
  engine     — SitingEngine, which wires the stages together

The host world is reached only through :class:`terraplan.world.World`.
"""
