# tests/test_ephemeris_adapter.py
from __future__ import annotations

import os

import pytest

from astrotiming.core.angles import separation
from astrotiming.core.constants import BODY_ORDER, J2000_JD
from astrotiming.core.ephemeris import MeanMotionEphemeris
from astrotiming.core.ephemeris_adapter import SkyfieldEphemeris, resolve_kernel_path
from astrotiming.core.errors import EphemerisError, InvalidInput
from astrotiming.core.timescales import Instant

KERNEL = os.getenv("ASTRO_EPHEMERIS")
needs_kernel = pytest.mark.skipif(
    not (KERNEL and os.path.isfile(KERNEL)), reason="set ASTRO_EPHEMERIS to a local DE421 kernel"
)


def test_kernel_path_resolution(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("ASTRO_EPHEMERIS", raising=False)
    monkeypatch.chdir(tmp_path)
    assert resolve_kernel_path() is None
    (tmp_path / "data").mkdir()
    (tmp_path / "data" / "de421.bsp").write_bytes(b"\0" * 1024)
    assert resolve_kernel_path() == os.path.join(os.getcwd(), "data", "de421.bsp")
    explicit = tmp_path / "other.bsp"
    explicit.write_bytes(b"\0")
    assert resolve_kernel_path(str(explicit)) == str(explicit)


def test_missing_kernel_is_a_categorized_error(tmp_path, monkeypatch) -> None:
    monkeypatch.delenv("ASTRO_EPHEMERIS", raising=False)
    monkeypatch.chdir(tmp_path)
    with pytest.raises(EphemerisError) as ei:
        SkyfieldEphemeris().positions_at(Instant(J2000_JD))
    assert ei.value.stage == "kernel"


def test_lfs_pointer_is_rejected(tmp_path) -> None:
    p = tmp_path / "de421.bsp"
    p.write_bytes(b"version https://git-lfs.github.com/spec/v1\noid sha256:abc\nsize 1\n")
    with pytest.raises(EphemerisError) as ei:
        SkyfieldEphemeris(str(p)).positions_at(Instant(J2000_JD))
    assert "LFS" in ei.value.message


def test_jd_guard_runs_before_kernel_load(tmp_path, monkeypatch) -> None:
    monkeypatch.chdir(tmp_path)
    eph = SkyfieldEphemeris(str(tmp_path / "missing.bsp"))
    with pytest.raises(InvalidInput) as ei:
        eph.positions_at(Instant(2400000.5))
    assert ei.value.code == "out_of_range"
    with pytest.raises(InvalidInput):
        eph.positions_at(J2000_JD)


@needs_kernel
def test_sun_at_j2000_against_mean_motion() -> None:
    rows = SkyfieldEphemeris(KERNEL).positions_at(Instant(J2000_JD))
    assert list(rows) == list(BODY_ORDER)
    mean = MeanMotionEphemeris().positions_at(Instant(J2000_JD))
    # Apparent Sun sits within a fraction of a degree of the mean Sun in early January
    assert separation(rows["Sun"].longitude, mean["Sun"].longitude) < 0.5
    assert rows["Sun"].speed == pytest.approx(1.019, abs=0.01)
    assert rows["Ketu"].longitude == pytest.approx((rows["Rahu"].longitude + 180.0) % 360.0)


@needs_kernel
def test_topocentric_moon_differs_by_parallax() -> None:
    from astrotiming.utils.validation import validate_location
    geo = SkyfieldEphemeris(KERNEL).positions_at(Instant(J2000_JD))["Moon"]
    topo = SkyfieldEphemeris(KERNEL, location=validate_location(51.48, 0.0)).positions_at(Instant(J2000_JD))["Moon"]
    assert 0.0 < separation(geo.longitude, topo.longitude) < 1.1
