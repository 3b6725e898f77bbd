"""
Routing Kernel - inventory routing decision core.

Decides which sales channel (live auction, search marketplace, retail
marketplace) an inventory item should target, with:
- Hard eligibility rules and weighted scoring (see routing_engines)
- A per-key fairness quota that holds under concurrent item creation
- Re-route support that releases the previous quota reservation
"""

__version__ = "0.1.0"
