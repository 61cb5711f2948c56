"""ShipSight - barcode-driven packing and inspection recording station."""

__version__ = "0.4.0"
