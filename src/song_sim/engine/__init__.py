"""Season tick engine.

One season of the band's life, resolved as a fixed sequence of phases over
a single ``WorldState``.
"""
from song_sim.engine.tick_engine import TickEngine

__all__ = ["TickEngine"]
