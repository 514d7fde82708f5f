from conftest import meters_to_deg
from geotrail.geofence import Geofence, GeofenceMonitor

FENCE = Geofence(geofence_id="g1", name="Office", center_lat=0.0, center_lon=0.0, radius_m=100.0)


def _in_out_trail(make_fix):
    return [
        make_fix(meters_to_deg(500), 0.0, 0),
        make_fix(meters_to_deg(20), 0.0, 15),
        make_fix(meters_to_deg(40), 0.0, 30),
        make_fix(meters_to_deg(400), 0.0, 45),
    ]


def test_entry_then_exit(make_fix):
    events = GeofenceMonitor([FENCE]).scan(_in_out_trail(make_fix))
    assert [(e.kind, e.timestamp_ms) for e in events] == [("entry", 15_000), ("exit", 45_000)]
    assert events[0].geofence_name == "Office"


def test_scan_sorts_by_time(make_fix):
    trail = _in_out_trail(make_fix)
    events = GeofenceMonitor([FENCE]).scan(list(reversed(trail)))
    assert [e.kind for e in events] == ["entry", "exit"]


def test_first_observation_inside_is_an_entry(make_fix):
    events = GeofenceMonitor([FENCE]).check(make_fix(0.0, 0.0, 0))
    assert [e.kind for e in events] == ["entry"]


def test_alert_flags_are_honored_but_state_still_updates(make_fix):
    fence = Geofence("g2", "Home", 0.0, 0.0, 100.0, on_entry=False)
    monitor = GeofenceMonitor([fence])
    events = monitor.scan(_in_out_trail(make_fix))
    assert [e.kind for e in events] == ["exit"]
    assert monitor.state == {"g2_default": False}


def test_fence_bound_to_other_tracker_is_skipped(make_fix):
    fence = Geofence("g3", "School", 0.0, 0.0, 100.0, tracker_id="kid")
    monitor = GeofenceMonitor([fence])
    assert monitor.check(make_fix(0.0, 0.0, 0), tracker_id="parent") == []
    assert [e.tracker_id for e in monitor.check(make_fix(0.0, 0.0, 0), tracker_id="kid")] == ["kid"]


def test_injected_state_resumes_monitoring(make_fix):
    state = {"g1_phone": True}
    monitor = GeofenceMonitor([FENCE], state=state)
    assert monitor.check(make_fix(0.0, 0.0, 10), tracker_id="phone") == []
    events = monitor.check(make_fix(1.0, 0.0, 20), tracker_id="phone")
    assert [e.kind for e in events] == ["exit"]
    assert state["g1_phone"] is False
