# path: road-marking-api/app/services/errors.py

from __future__ import annotations


class UpstreamError(Exception):
    """The inference service failed or returned something unusable."""


class InferenceError(UpstreamError):
    pass


class BundleError(UpstreamError):
    pass


class RouteNotFoundError(LookupError):
    def __init__(self, route_id: str):
        super().__init__(f"route with id {route_id} not found")
        self.route_id = route_id


class RouteExistsError(ValueError):
    def __init__(self, route_id: str):
        super().__init__(f"route with id {route_id} already exists")
        self.route_id = route_id
