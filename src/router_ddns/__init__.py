"""
router-ddns - A dynamic DNS update service for routers.

Routers report their public IPv4 address with an HTTP Basic authenticated
``GET /nic/update`` request, and the service points the A-records of the
hostnames they own at it. Accounts are provisioned through an
administrative ``POST /user`` endpoint.
"""

__version__ = "0.1.0"
__author__ = "router-ddns Contributors"
