"""Device-side round synchronization.

``reduce`` is the pure phase logic, ``ClientSynchronizer`` owns the state
and the single phase timer, and ``RoomClient`` wires both to the HTTP API
and the push feed.
"""

from .reducer import ClientState, Timings, reduce
from .synchronizer import ClientSynchronizer
from .transport import RoomClient

__all__ = ['ClientState', 'ClientSynchronizer', 'RoomClient', 'Timings', 'reduce']
