"""
netga: Evolve network topologies of servers and clients with genetic algorithms.

netga searches for link layouts that balance pleiotropy (how widely servers
fan out) against redundancy (how many servers back each client), subject to
node capacity, link cost and failure/repair constraints.
"""

__version__ = "0.1.0"

VERSION_TEXT = (
    f"netga {__version__}\n"
    "Evolve network topologies of servers and clients with genetic algorithms.\n"
)
