"""JSON query API for Barnehage Tracker."""
