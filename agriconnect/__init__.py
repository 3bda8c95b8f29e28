"""AgriConnect: farmer/retailer marketplace API."""

__version__ = "0.1.0"
