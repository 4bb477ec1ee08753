"""API routers for Barnehage Tracker."""
