"""Fleet discovery and the TTL report cache."""
import json
import threading
import time
from contextlib import contextmanager

import pytest

from ssl_migrate.cache import ReportCache, cache_key
from ssl_migrate.discovery import FleetDiscovery
from ssl_migrate.errors import DiscoveryTimeout, PreconditionError
from ssl_migrate.models import ContactRecord, FleetReport

from conftest import FakeTenantStore


class FakeClock:
    def __init__(self, now=1_000_000.0):
        self.now = now

    def __call__(self):
        return self.now


class RecordingProgress:
    def __init__(self):
        self.total = None
        self.ticks = 0

    @contextmanager
    def __call__(self, total):
        self.total = total
        yield self

    def update(self, n):
        self.ticks += n


@pytest.fixture()
def fleet():
    s = FakeTenantStore()
    s.add_blog(1, "example.edu", "/")
    s.add_blog(2, "example.edu", "/law/")          # protected + mapped -> reported
    s.add_blog(3, "example.edu", "/arts/")         # protected, not mapped
    s.add_blog(4, "example.edu", "/music/")        # mapped, nothing protected
    s.add_blog(5, "example.edu", "/empty/", posts_table=False)
    s.add_blog(6, "example.edu", "/old/", archived=True)
    s.add_blog(7, "example.edu", "/med/")          # protected + mapped -> reported
    s.protected.update({2: 3, 3: 1, 6: 4, 7: 1})
    s.mapping.update({"law.example.org": 2, "music.example.org": 4, "old.example.org": 6, "med.example.org": 7})
    s.options.update(
        {
            (2, "siteurl"): "https://example.edu/law",
            (2, "admin_email"): "law-admin@example.edu",
            (7, "siteurl"): "https://example.edu/med",
            (7, "admin_email"): "med-admin@example.edu",
        }
    )
    return s


def _discovery(store, settings, cache_clock, **kwargs):
    cache = ReportCache(settings.cache_dir, settings.cache_ttl, clock=cache_clock)
    return FleetDiscovery(store, settings, cache, **kwargs)


def test_only_protected_and_mapped_sites_are_reported(fleet, settings):
    report = _discovery(fleet, settings, FakeClock()).discover()
    assert report.records == (
        ContactRecord(2, "https://example.edu/law", "law.example.org", "law-admin@example.edu"),
        ContactRecord(7, "https://example.edu/med", "med.example.org", "med-admin@example.edu"),
    )


def test_archived_and_tableless_sites_are_not_scanned(fleet, settings):
    _discovery(fleet, settings, FakeClock()).discover()
    assert "protected_item_count:5" not in fleet.calls
    assert "protected_item_count:6" not in fleet.calls
    assert "table_exists:wp_6_posts" not in fleet.calls


def test_main_site_probes_unnumbered_table(fleet, settings):
    _discovery(fleet, settings, FakeClock()).discover()
    assert "table_exists:wp_posts" in fleet.calls
    assert "protected_item_count:1" in fleet.calls


def test_progress_ticks_once_per_tenant(fleet, settings):
    progress = RecordingProgress()
    _discovery(fleet, settings, FakeClock(), progress=progress).discover()
    assert progress.total == 6
    assert progress.ticks == 6


def test_no_flagged_sites_skips_mapping_query(settings):
    store = FakeTenantStore()
    store.add_blog(1, "example.edu", "/")
    report = _discovery(store, settings, FakeClock()).discover()
    assert len(report) == 0
    assert not any(c.startswith("mapped_tenant_ids") for c in store.calls)


def test_mapped_tenant_ids_rejects_empty_list():
    with pytest.raises(PreconditionError):
        FakeTenantStore().mapped_tenant_ids([])


def test_cached_within_ttl(fleet, settings):
    clock = FakeClock()
    first = _discovery(fleet, settings, clock).discover()
    queries = len(fleet.calls)

    clock.now += 11 * 60 * 60
    second = _discovery(fleet, settings, clock).discover()

    assert second.records == first.records
    assert len(fleet.calls) == queries


def test_recomputed_after_ttl(fleet, settings):
    clock = FakeClock()
    _discovery(fleet, settings, clock).discover()
    queries = len(fleet.calls)

    clock.now += 12 * 60 * 60 + 1
    fleet.protected[3] = 0
    fleet.protected[2] = 0
    report = _discovery(fleet, settings, clock).discover()

    assert len(fleet.calls) > queries
    assert [r.tenant_id for r in report.records] == [7]


def test_dry_run_does_not_write_cache(fleet, settings):
    _discovery(fleet, settings, FakeClock(), persist=False).discover()
    assert not settings.cache_dir.exists() or not any(settings.cache_dir.iterdir())


def test_cache_key_depends_on_configuration(settings):
    other = settings.with_overrides(prefix="blog_")
    assert cache_key(settings) != cache_key(other)
    assert cache_key(settings) == cache_key(settings.with_overrides())


def test_discovery_timeout(fleet, settings):
    ticking = {"now": 0.0}

    def monotonic():
        ticking["now"] += 1.0
        return ticking["now"]

    settings = settings.model_copy(update={"discovery_timeout": 3.0})
    discovery = _discovery(fleet, settings, FakeClock(), clock=monotonic)
    with pytest.raises(DiscoveryTimeout):
        discovery.discover()


# --------------------------------------------------------------------------- #
#                                  ReportCache                                #
# --------------------------------------------------------------------------- #


def test_cache_roundtrip_and_expiry(tmp_path):
    clock = FakeClock()
    cache = ReportCache(tmp_path, ttl=60, clock=clock)
    report = FleetReport(records=(ContactRecord(9, "https://a.org", "a.org", "x@a.org"),))

    assert cache.get("k") is None
    cache.set("k", report)
    assert cache.get("k").records == report.records

    clock.now += 61
    assert cache.get("k") is None


def test_unreadable_cache_entry_is_a_miss(tmp_path):
    (tmp_path / "k.json").write_text("{not json", encoding="utf-8")
    assert ReportCache(tmp_path).get("k") is None


@pytest.mark.parametrize(
    "payload",
    [
        {"expires_at": "soon"},
        {"expires_at": 9e18, "report": {"records": [{}]}},
        {"expires_at": 9e18, "report": []},
        {"expires_at": 9e18, "report": {"records": ["x"]}},
        {"report": {"records": []}},
        [1, 2, 3],
    ],
)
def test_malformed_cache_entry_is_a_miss(tmp_path, payload):
    (tmp_path / "k.json").write_text(json.dumps(payload), encoding="utf-8")
    cache = ReportCache(tmp_path, clock=FakeClock())
    assert cache.get("k") is None

    report = cache.get_or_compute("k", lambda: FleetReport(records=(), generated_at=1.0))
    assert report.generated_at == 1.0
    assert cache.get("k") is not None


def test_cache_file_layout(tmp_path):
    clock = FakeClock()
    ReportCache(tmp_path, ttl=10, clock=clock).set("k", FleetReport(records=(), generated_at=5.0))
    payload = json.loads((tmp_path / "k.json").read_text(encoding="utf-8"))
    assert payload == {"expires_at": clock.now + 10, "report": {"generated_at": 5.0, "records": []}}


def test_single_flight_recomputation(tmp_path):
    cache = ReportCache(tmp_path, ttl=60)
    computed = []

    def compute():
        computed.append(1)
        time.sleep(0.1)
        return FleetReport(records=())

    threads = [threading.Thread(target=cache.get_or_compute, args=("k", compute)) for _ in range(4)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(computed) == 1
